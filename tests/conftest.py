# SPDX-License-Identifier: MIT

import logging
import random

import pytest

from dhcpcore.reactor import Reactor


class ManualClock:
	def __init__(self, now=0.0):
		self.now = now

	def __call__(self):
		return self.now


class Recorder(list):
	"""Stands in for a socket: remembers every (data, address) sent."""

	def __call__(self, data, address):
		self.append((data, address))


class FixedRandom(random.Random):
	"""Deterministic draws and no retransmission jitter."""

	def uniform(self, a, b):
		return 0.0


@pytest.fixture
def logger():
	return logging.getLogger('dhcpcore.tests')


@pytest.fixture
def clock():
	return ManualClock()


@pytest.fixture
def reactor(clock):
	return Reactor(clock=clock)


@pytest.fixture
def sent():
	return Recorder()


@pytest.fixture
def rng():
	return FixedRandom(0)


@pytest.fixture
def advance(reactor, clock):
	"""Move the clock forward, firing each timer at its own deadline."""

	def advance_to(seconds):
		target = clock.now + seconds
		reactor.run_pending()
		while True:
			deadline = reactor.next_deadline()
			if deadline is None or deadline > target:
				break
			clock.now = max(clock.now, deadline)
			reactor.run_pending()
		clock.now = target
		reactor.run_pending()

	return advance_to
