# SPDX-License-Identifier: MIT

"""Single-threaded loop shared by datagrams and timers.

Everything that touches protocol state runs as a call on one `Reactor`:
the socket thread hands datagrams over with `post()`, timers fire from
`run_pending()`. Nothing else mutates a lease pool or a client session.
"""

__all__ = ['Timer', 'Reactor']

import heapq
import itertools
import queue
from time import monotonic


class Timer:
	__slots__ = ('when', 'callback', 'args', 'cancelled')

	def __init__(self, when, callback, args):
		self.when = when
		self.callback = callback
		self.args = args
		self.cancelled = False

	def cancel(self):
		self.cancelled = True

	def __repr__(self):
		return '%s(when=%r, callback=%s%s)' % (type(self).__name__, self.when,
			getattr(self.callback, '__name__', self.callback),
			', cancelled' if self.cancelled else '')


class Reactor:
	def __init__(self, clock=monotonic):
		self.clock = clock
		self.running = False
		self._timers = []
		self._sequence = itertools.count()
		self._calls = queue.SimpleQueue()

	def now(self):
		return self.clock()

	def call_later(self, delay, callback, *args):
		timer = Timer(self.clock() + max(0, delay), callback, args)
		heapq.heappush(self._timers, (timer.when, next(self._sequence), timer))
		return timer

	def call_soon(self, callback, *args):
		return self.call_later(0, callback, *args)

	def post(self, callback, *args):
		"""Queue a call from another thread."""
		self._calls.put((callback, args))

	def next_deadline(self):
		while self._timers and self._timers[0][2].cancelled:
			heapq.heappop(self._timers)
		if not self._timers:
			return None
		return self._timers[0][0]

	def run_pending(self):
		"""Run queued calls and every timer that is due, without blocking."""
		ran = 0
		while True:
			try:
				callback, args = self._calls.get_nowait()
			except queue.Empty:
				break
			callback(*args)
			ran += 1

		now = self.clock()
		while self._timers and self._timers[0][0] <= now:
			_, _, timer = heapq.heappop(self._timers)
			if timer.cancelled:
				continue
			# NOTE(tori): mark fired timers so a late cancel() is harmless
			timer.cancelled = True
			timer.callback(*timer.args)
			ran += 1
		return ran

	def run_once(self, timeout=None):
		deadline = self.next_deadline()
		if deadline is not None:
			wait = max(0, deadline - self.clock())
			timeout = wait if timeout is None else min(timeout, wait)
		try:
			callback, args = self._calls.get(timeout=timeout)
		except queue.Empty:
			pass
		else:
			callback(*args)
		return self.run_pending()

	def run(self):
		self.running = True
		while self.running:
			self.run_once(timeout=1)

	def stop(self):
		self.running = False

	def pending(self):
		return [timer for _, _, timer in self._timers if not timer.cancelled]

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
