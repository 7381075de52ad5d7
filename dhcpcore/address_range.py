# SPDX-License-Identifier: MIT

__all__ = ['address_range']

from ipaddress import IPv4Address, IPv4Network


class address_range:
	"""Inclusive range of IPv4 addresses, `start` through `stop`.

	N.B. the range is right-inclusive because a pool is written down as its
	first and last address, and 255.255.255.255 has no successor.
	"""

	def __init__(self, start, stop):
		self.start = IPv4Address(start)
		self.stop = IPv4Address(stop)
		if self.stop < self.start:
			raise ValueError('%s() start %s is after stop %s'
				% (type(self).__name__, self.start, self.stop))

	def __contains__(self, address):
		try:
			address = IPv4Address(address)
		except ValueError:
			return False
		return self.start <= address <= self.stop

	def __len__(self):
		return int(self.stop) - int(self.start) + 1

	def __iter__(self):
		current = int(self.start)
		# NOTE(tori): walk ints, IPv4Address('255.255.255.255') + 1 raises
		while current <= int(self.stop):
			yield IPv4Address(current)
			current += 1

	def network(self):
		"""Smallest network that holds both ends of the range."""
		differing = int(self.start) ^ int(self.stop)
		prefix = 32 - differing.bit_length()
		mask = (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
		return IPv4Network((int(self.start) & mask, prefix))

	def __eq__(self, other):
		if not isinstance(other, address_range):
			return NotImplemented
		return (self.start, self.stop) == (other.start, other.stop)

	def __hash__(self):
		return hash((self.start, self.stop))

	def __repr__(self):
		return '%s(%r, %r)' % (
			type(self).__name__,
			str(self.start),
			str(self.stop)
		)

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
