# SPDX-License-Identifier: MIT

__all__ = ['LeaseState', 'Lease', 'LeasePool']

import enum
import random
from dataclasses import dataclass
from ipaddress import IPv4Address
from time import time
from typing import Optional

from ..address_range import address_range
from ..error import LeaseInvariantError, PoolExhaustedError, RejectedError
from ..hardwaretype import format_hardware_address


@enum.unique
class LeaseState(enum.Enum):
	FREE = 'free'
	OFFERED = 'offered'
	BOUND = 'bound'
	RELEASED = 'released'
	EXPIRED = 'expired'


@dataclass
class Lease:
	mac: str
	ip: IPv4Address
	state: LeaseState = LeaseState.OFFERED
	offered_at: Optional[float] = None
	expires_at: Optional[float] = None
	client_id: Optional[bytes] = None


class LeasePool:
	"""Address allocation state for one server.

	`leases` maps ip to lease and `by_mac` maps mac to ip; both only hold
	OFFERED and BOUND leases, every other state means the address is free.
	Addresses in `reserved` are never handed out.
	Hardware addresses are kept in `aa:bb:cc:dd:ee:ff` form.
	"""

	def __init__(self, range_, static=None, *, lease_time=86400,
		offer_time=60, random_ip=False, reserved=(), clock=time, rng=None):
		if not isinstance(range_, address_range):
			range_ = address_range(*range_)
		self.range = range_
		self.static = {
			format_hardware_address(mac): IPv4Address(ip)
			for mac, ip in (static or {}).items()
		}
		self._static_ips = set(self.static.values())
		self.reserved = {IPv4Address(ip) for ip in reserved}
		self.lease_time = lease_time
		self.offer_time = offer_time
		self.random_ip = random_ip
		self.clock = clock
		if rng is None:
			rng = random.Random()
		self.rng = rng

		self.leases = {}
		self.by_mac = {}
		self.quarantined = set()

	@classmethod
	def from_config(cls, config, clock=time, rng=None):
		return cls(config.range, config.static, lease_time=config.lease_time,
			offer_time=config.offer_time, random_ip=config.random_ip,
			reserved=(config.server,), clock=clock, rng=rng)

	def _now(self, now):
		return self.clock() if now is None else now

	def is_free(self, ip):
		ip = IPv4Address(ip)
		return (ip in self.range
			and ip not in self._static_ips
			and ip not in self.reserved
			and ip not in self.leases
			and ip not in self.quarantined)

	def free_addresses(self):
		return (ip for ip in self.range if self.is_free(ip))

	def free_count(self):
		return sum(1 for _ in self.free_addresses())

	def state_of(self, ip):
		lease = self.leases.get(IPv4Address(ip))
		if lease is None:
			return LeaseState.FREE
		return lease.state

	def lease_for_mac(self, mac):
		ip = self.by_mac.get(format_hardware_address(mac))
		if ip is None:
			return None
		return self.leases[ip]

	def lease_for_ip(self, ip):
		return self.leases.get(IPv4Address(ip))

	def owns(self, ip):
		"""Whether `ip` is an address this pool hands out."""
		ip = IPv4Address(ip)
		return ip in self.range or ip in self._static_ips

	def is_current(self, lease, now=None):
		now = self._now(now)
		if lease.state == LeaseState.BOUND:
			return lease.expires_at >= now
		if lease.state == LeaseState.OFFERED:
			return lease.offered_at + self.offer_time >= now
		return False

	def allocate(self, mac, requested_ip=None, client_id=None, now=None):
		mac = format_hardware_address(mac)
		now = self._now(now)
		lease = self.lease_for_mac(mac)

		static_ip = self.static.get(mac)
		if static_ip is not None:
			if lease is not None and lease.ip == static_ip \
				and lease.state == LeaseState.BOUND:
				return static_ip
			if lease is not None:
				self._drop(lease, LeaseState.FREE)
			return self._offer(mac, static_ip, client_id, now)

		if lease is not None:
			sticky = (lease.state == LeaseState.BOUND or not self.random_ip)
			if sticky and self.is_current(lease, now):
				if lease.state == LeaseState.OFFERED:
					lease.offered_at = now
				return lease.ip
			self._drop(lease, LeaseState.FREE)

		if requested_ip is not None:
			try:
				requested_ip = IPv4Address(requested_ip)
			except ValueError:
				requested_ip = None
			if requested_ip is not None and self.is_free(requested_ip):
				return self._offer(mac, requested_ip, client_id, now)

		return self._offer(mac, self._select(), client_id, now)

	def _select(self):
		if self.random_ip:
			candidates = list(self.free_addresses())
			if candidates:
				return self.rng.choice(candidates)
		else:
			for ip in self.free_addresses():
				return ip
		raise PoolExhaustedError('no free address left in %r' % self.range)

	def _offer(self, mac, ip, client_id, now):
		lease = Lease(mac=mac, ip=ip, state=LeaseState.OFFERED,
			offered_at=now, client_id=client_id)
		self._commit(lease)
		return ip

	def _commit(self, lease):
		holder = self.leases.get(lease.ip)
		if holder is not None and holder.mac != lease.mac:
			raise LeaseInvariantError('%s is leased to %s, cannot give it to %s'
				% (lease.ip, holder.mac, lease.mac))
		previous = self.by_mac.get(lease.mac)
		if previous is not None and previous != lease.ip:
			raise LeaseInvariantError('%s already holds %s, cannot also hold %s'
				% (lease.mac, previous, lease.ip))
		self.leases[lease.ip] = lease
		self.by_mac[lease.mac] = lease.ip

	def _drop(self, lease, state):
		if self.leases.get(lease.ip) is not lease:
			raise LeaseInvariantError('%r is not the lease on record for %s'
				% (lease, lease.ip))
		del self.leases[lease.ip]
		if self.by_mac.get(lease.mac) == lease.ip:
			del self.by_mac[lease.mac]
		lease.state = state
		return lease

	def _lease_matching(self, mac, ip):
		lease = self.lease_for_mac(mac)
		if lease is None or lease.ip != IPv4Address(ip):
			return None
		return lease

	def confirm(self, mac, ip, now=None):
		now = self._now(now)
		ip = IPv4Address(ip)
		lease = self.lease_for_mac(mac)
		if lease is None:
			raise RejectedError('nothing was offered to %s'
				% format_hardware_address(mac))
		if lease.ip != ip:
			raise RejectedError('%s was offered %s, not %s'
				% (lease.mac, lease.ip, ip))
		if lease.state == LeaseState.OFFERED and not self.is_current(lease, now):
			raise RejectedError('offer of %s to %s has expired'
				% (lease.ip, lease.mac))
		lease.state = LeaseState.BOUND
		lease.expires_at = now + self.lease_time
		return lease

	def renew(self, mac, ip, now=None):
		now = self._now(now)
		lease = self._lease_matching(mac, ip)
		if lease is None or lease.state != LeaseState.BOUND:
			raise RejectedError('%s is not bound to %s'
				% (ip, format_hardware_address(mac)))
		lease.expires_at = now + self.lease_time
		return lease

	def release(self, mac, ip):
		lease = self._lease_matching(mac, ip)
		if lease is None or lease.state != LeaseState.BOUND:
			return None
		return self._drop(lease, LeaseState.RELEASED)

	def decline(self, mac, ip):
		lease = self._lease_matching(mac, ip)
		if lease is None:
			return None
		self._drop(lease, LeaseState.FREE)
		self.quarantined.add(lease.ip)
		return lease

	def reclaim(self, ip):
		lease = self.leases.get(IPv4Address(ip))
		if lease is None:
			return None
		return self._drop(lease, LeaseState.FREE)

	def clear_quarantine(self, ip=None):
		if ip is None:
			self.quarantined.clear()
		else:
			self.quarantined.discard(IPv4Address(ip))

	def sweep_expired(self, now=None):
		now = self._now(now)
		expired = [
			lease
			for lease in self.leases.values()
			if not self.is_current(lease, now)
		]
		for lease in expired:
			self._drop(lease, LeaseState.EXPIRED)
		return expired

	def check_invariants(self):
		for ip, lease in self.leases.items():
			if lease.ip != ip or self.by_mac.get(lease.mac) != ip:
				raise LeaseInvariantError('lease tables disagree about %s' % ip)
			if not self.owns(ip):
				raise LeaseInvariantError('%s is outside the pool' % ip)
		if len(self.by_mac) != len(self.leases):
			raise LeaseInvariantError('%d macs hold %d leases'
				% (len(self.by_mac), len(self.leases)))

	def snapshot(self):
		return [
			{
				'mac': lease.mac,
				'ip': str(lease.ip),
				'state': lease.state.value,
				'offered_at': lease.offered_at,
				'expires_at': lease.expires_at,
				'client_id': (None if lease.client_id is None
					else lease.client_id.hex()),
			}
			for lease in self.leases.values()
		]

	def restore(self, entries):
		for entry in entries:
			client_id = entry.get('client_id')
			lease = Lease(
				mac=format_hardware_address(entry['mac']),
				ip=IPv4Address(entry['ip']),
				state=LeaseState(entry['state']),
				offered_at=entry.get('offered_at'),
				expires_at=entry.get('expires_at'),
				client_id=None if client_id is None else bytes.fromhex(client_id)
			)
			if lease.state not in (LeaseState.OFFERED, LeaseState.BOUND):
				continue
			if lease.state == LeaseState.BOUND and lease.expires_at is None:
				raise ValueError('bound lease on %s has no expiry' % lease.ip)
			if lease.state == LeaseState.OFFERED and lease.offered_at is None:
				raise ValueError('offer of %s has no start time' % lease.ip)
			if lease.ip in self.reserved:
				raise ValueError('%s is reserved' % lease.ip)
			if not self.owns(lease.ip):
				raise ValueError('%s is outside %r' % (lease.ip, self.range))
			self._commit(lease)

	def __len__(self):
		return len(self.leases)

	def __repr__(self):
		return '%s(%r, leases=%d, static=%d, quarantined=%d)' % (
			type(self).__name__, self.range, len(self.leases),
			len(self.static), len(self.quarantined))

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
