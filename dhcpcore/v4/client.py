# SPDX-License-Identifier: MIT

"""DHCPv4 client state machine

The client never touches a socket or a clock itself: datagrams come in
through `on_datagram()`, go out through `send`, and every timeout is a
timer on the reactor it was given.
"""

__all__ = ['Client', 'ClientState', 'ClientLease', 'main']

import enum
import logging
import random
from dataclasses import dataclass, field
from ipaddress import IPv4Address

from ..error import DecodeError
from ..hardwaretype import format_hardware_address
from ..option_codecs import CodecError
from ..reactor import Reactor
from .config import ClientConfig
from .listener import (Listener, DHCP_SERVER_PORT, DHCP_CLIENT_PORT,
	BROADCAST_ADDRESS)
from .message import Operation, Flags, MessageType
from .option_codec import OptionCodec
from .rfc2132 import RFC2132OptionType
from .server import configure_logging

INFINITE_LEASE = 0xFFFFFFFF

# NOTE(tori): RFC 2131 section 4.4.5, retransmissions while renewing or
# rebinding never come closer together than a minute
MINIMUM_RETRANSMIT = 60


@enum.unique
class ClientState(enum.Enum):
	INIT = 'init'
	SELECTING = 'selecting'
	REQUESTING = 'requesting'
	BOUND = 'bound'
	RENEWING = 'renewing'
	REBINDING = 'rebinding'


@dataclass
class ClientLease:
	ip: IPv4Address
	server: IPv4Address
	lease_time: int
	renewal_time: float
	rebinding_time: float
	bound_at: float
	options: dict = field(default_factory=dict)

	@property
	def renew_at(self):
		return self.bound_at + self.renewal_time

	@property
	def rebind_at(self):
		return self.bound_at + self.rebinding_time

	@property
	def expires_at(self):
		return self.bound_at + self.lease_time


def lease_timers(lease_time, renewal_time=None, rebinding_time=None):
	"""T1 and T2 for a lease, falling back to the RFC 2131 defaults."""
	default_t1 = lease_time / 2
	default_t2 = lease_time * 7 / 8
	t1 = default_t1 if renewal_time is None else renewal_time
	t2 = default_t2 if rebinding_time is None else rebinding_time
	if not 0 < t1 < t2 < lease_time:
		if 0 < t1 < default_t2:
			return t1, default_t2
		return default_t1, default_t2
	return t1, t2


class Client:
	def __init__(self, logger, config, send, reactor, *, codec=None, rng=None):
		if not isinstance(config, ClientConfig):
			config = ClientConfig(config)
		self.logger = logger
		self.config = config
		self.send = send
		self.reactor = reactor
		if codec is None:
			codec = OptionCodec(config.registry)
		self.codec = codec
		if rng is None:
			rng = random.Random()
		self.rng = rng

		self.state = ClientState.INIT
		self.xid = None
		self.lease = None
		self.requested_ip = None
		self.server_id = None
		self.attempts = 0
		self.interval = config.initial_interval
		self.timers = {}

	@property
	def name(self):
		return format_hardware_address(self.config.mac)

	def arm(self, name, delay, callback):
		self.cancel(name)
		self.timers[name] = self.reactor.call_later(delay, callback)

	def cancel(self, *names):
		if not names:
			names = tuple(self.timers)
		for name in names:
			timer = self.timers.pop(name, None)
			if timer is not None:
				timer.cancel()

	def backoff(self):
		# NOTE(tori): RFC 2131 section 4.1, 4 seconds doubling up to 64, each
		# randomized by a second either way
		delay = self.interval + self.rng.uniform(-1, 1)
		self.interval = min(self.interval * 2, self.config.max_interval)
		return max(0, delay)

	def new_xid(self):
		self.xid = self.rng.randrange(0x100000000)
		return self.xid

	def make_message(self, message_type, ciaddr=0, broadcast=False):
		message = self.codec.new_message(
			op=Operation.REQUEST,
			xid=self.xid,
			flags=Flags.BROADCAST if broadcast else 0,
			ciaddr=ciaddr,
			hwaddr=self.config.mac
		)
		options = message.options
		options[RFC2132OptionType.MESSAGE_TYPE] = message_type
		if self.config.client_id is not None:
			options[RFC2132OptionType.CLIENT_IDENTIFIER] = self.config.client_id
		if message_type in (MessageType.DISCOVER, MessageType.REQUEST):
			if self.config.hostname is not None:
				options[RFC2132OptionType.HOST_NAME] = self.config.hostname
			if self.config.vendor_class is not None:
				options[RFC2132OptionType.VENDOR_CLASS_IDENTIFIER] = (
					self.config.vendor_class)
			requested = self.config.requested_options()
			if requested:
				options[RFC2132OptionType.PARAMETER_REQUEST_LIST] = requested
		return message

	def broadcast(self, message):
		self.send(self.codec.encode(message),
			(BROADCAST_ADDRESS, DHCP_SERVER_PORT))

	def unicast(self, message, ip):
		self.send(self.codec.encode(message), (IPv4Address(ip), DHCP_SERVER_PORT))

	def send_discover(self):
		self.cancel()
		self.lease = None
		self.requested_ip = None
		self.server_id = None
		self.new_xid()
		self.interval = self.config.initial_interval
		self.state = ClientState.SELECTING
		self.logger.info('%s - discovering, xid %#x', self.name, self.xid)
		self.transmit_discover()

	def transmit_discover(self):
		self.broadcast(self.make_message(MessageType.DISCOVER, broadcast=True))
		self.arm('retransmit', self.backoff(), self.transmit_discover)

	def send_request(self, offer):
		self.cancel('retransmit')
		self.requested_ip = offer.your_ip
		self.server_id = IPv4Address(
			offer.options[RFC2132OptionType.SERVER_IDENTIFIER])
		self.start_requesting()

	def reboot(self, ip):
		"""Ask to keep an address remembered from an earlier run."""
		self.cancel()
		self.lease = None
		self.new_xid()
		self.requested_ip = IPv4Address(ip)
		self.server_id = None
		self.start_requesting()

	def start_requesting(self):
		self.state = ClientState.REQUESTING
		self.attempts = 0
		self.interval = self.config.initial_interval
		self.logger.info('%s - requesting %s from %s', self.name,
			self.requested_ip, self.server_id or 'any server')
		self.transmit_request()

	def transmit_request(self):
		if self.attempts >= self.config.request_attempts:
			self.logger.warning('%s - no answer after %d requests', self.name,
				self.attempts)
			self.restart()
			return
		self.attempts += 1

		message = self.make_message(MessageType.REQUEST, broadcast=True)
		message.options[RFC2132OptionType.REQUESTED_IP_ADDRESS] = (
			self.requested_ip)
		if self.server_id is not None:
			message.options[RFC2132OptionType.SERVER_IDENTIFIER] = (
				self.server_id)
		self.broadcast(message)
		self.arm('retransmit', self.backoff(), self.transmit_request)

	def send_renew(self):
		if self.lease is None:
			return
		self.cancel('retransmit')
		self.new_xid()
		self.state = ClientState.RENEWING
		self.logger.info('%s - renewing %s with %s', self.name, self.lease.ip,
			self.lease.server)
		self.transmit_renew()

	def transmit_renew(self):
		message = self.make_message(MessageType.REQUEST, ciaddr=self.lease.ip)
		self.unicast(message, self.lease.server)
		self.arm_retransmit(self.lease.rebind_at, self.transmit_renew)

	def send_rebind(self):
		if self.lease is None:
			return
		self.cancel('retransmit')
		self.state = ClientState.REBINDING
		self.logger.info('%s - rebinding %s', self.name, self.lease.ip)
		self.transmit_rebind()

	def transmit_rebind(self):
		message = self.make_message(MessageType.REQUEST, ciaddr=self.lease.ip)
		self.broadcast(message)
		self.arm_retransmit(self.lease.expires_at, self.transmit_rebind)

	def arm_retransmit(self, deadline, callback):
		now = self.reactor.now()
		delay = max((deadline - now) / 2, MINIMUM_RETRANSMIT)
		if now + delay < deadline:
			self.arm('retransmit', delay, callback)

	def send_release(self):
		if self.lease is None:
			return None
		lease = self.lease
		message = self.make_message(MessageType.RELEASE, ciaddr=lease.ip)
		message.options[RFC2132OptionType.SERVER_IDENTIFIER] = lease.server
		self.unicast(message, lease.server)
		self.logger.info('%s - released %s', self.name, lease.ip)
		self.cancel()
		self.lease = None
		self.state = ClientState.INIT
		return lease

	def decline(self):
		if self.lease is None:
			return None
		lease = self.lease
		message = self.make_message(MessageType.DECLINE)
		message.options[RFC2132OptionType.REQUESTED_IP_ADDRESS] = lease.ip
		message.options[RFC2132OptionType.SERVER_IDENTIFIER] = lease.server
		self.broadcast(message)
		self.logger.warning('%s - declined %s', self.name, lease.ip)
		self.restart()
		return lease

	def restart(self):
		self.cancel()
		self.lease = None
		self.state = ClientState.INIT
		if self.config.restart_delay is not None:
			self.arm('restart', self.config.restart_delay, self.send_discover)

	def expire(self):
		self.logger.warning('%s - lease on %s expired', self.name,
			self.lease.ip)
		self.restart()

	def close(self):
		if self.config.release_on_close and self.lease is not None:
			self.send_release()
		self.cancel()

	def on_datagram(self, data, source=None):
		try:
			message = self.codec.decode(data)
		except (DecodeError, CodecError) as e:
			self.logger.warning('could not decode packet from %s (caused by'
				' %r)', source, e)
			return None
		self.handle(message)
		return message

	def handle(self, message):
		if message.operation != Operation.REPLY \
			or message.transaction_id != self.xid \
			or message.hardware_address != self.config.mac:
			return False

		message_type = message.message_type
		handler = None
		if isinstance(message_type, MessageType):
			handler = getattr(self, 'do_%s' % message_type.name, None)
		if handler is None:
			self.logger.debug('%s - ignoring %r', self.name, message_type)
			return False
		return handler(message)

	def do_OFFER(self, offer):
		if self.state != ClientState.SELECTING:
			return False
		if RFC2132OptionType.SERVER_IDENTIFIER not in offer.options:
			self.logger.warning('%s - offer of %s has no server identifier',
				self.name, offer.your_ip)
			return False
		self.logger.info('%s - offered %s by %s', self.name, offer.your_ip,
			offer.options[RFC2132OptionType.SERVER_IDENTIFIER])
		self.send_request(offer)
		return True

	def do_ACK(self, ack):
		if self.state not in (ClientState.REQUESTING, ClientState.RENEWING,
			ClientState.REBINDING):
			return False
		options = ack.options
		lease_time = options.get(RFC2132OptionType.IP_ADDRESS_LEASE_TIME)
		if lease_time is None:
			self.logger.warning('%s - ACK without a lease time', self.name)
			return False

		server = options.get(RFC2132OptionType.SERVER_IDENTIFIER,
			self.server_id)
		if server is None and self.lease is not None:
			server = self.lease.server
		renewal_time, rebinding_time = lease_timers(lease_time,
			options.get(RFC2132OptionType.RENEWAL_TIME_VALUE),
			options.get(RFC2132OptionType.REBINDING_TIME_VALUE))

		self.cancel()
		self.lease = ClientLease(
			ip=ack.your_ip,
			server=IPv4Address(server),
			lease_time=lease_time,
			renewal_time=renewal_time,
			rebinding_time=rebinding_time,
			bound_at=self.reactor.now(),
			options=options.decoded()
		)
		self.state = ClientState.BOUND
		self.logger.info('%s - bound to %s for %ss', self.name, self.lease.ip,
			lease_time)

		if lease_time != INFINITE_LEASE:
			self.arm('renew', renewal_time, self.on_renewal_time)
			self.arm('rebind', rebinding_time, self.on_rebinding_time)
			self.arm('expire', lease_time, self.expire)
		return True

	def do_NAK(self, nak):
		if self.state not in (ClientState.REQUESTING, ClientState.RENEWING,
			ClientState.REBINDING):
			return False
		self.logger.warning('%s - refused: %s', self.name,
			nak.options.get(RFC2132OptionType.MESSAGE, 'no reason given'))
		self.restart()
		return True

	def on_renewal_time(self):
		if self.state == ClientState.BOUND:
			self.send_renew()

	def on_rebinding_time(self):
		if self.state in (ClientState.BOUND, ClientState.RENEWING):
			self.send_rebind()


def main():
	import argparse

	parser = argparse.ArgumentParser()
	parser.add_argument('-m', '--mac', required=True,
		help='hardware address to lease for, e.g. 00:11:22:33:44:55')
	parser.add_argument('-f', '--log-file', default='-',
		type=argparse.FileType('w'), help='location to log messages')
	parser.add_argument('-l', '--log-level', default='INFO', choices=('ALL',
		'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'), type=str.upper,
		help='verbosity of log messages, in descending order')
	parser.add_argument('--release-on-exit', action='store_true',
		help='release the lease when shutting down')
	parser.add_argument('--host', default='0.0.0.0',
		help='address on which to bind')
	parser.add_argument('--port', default=DHCP_CLIENT_PORT, type=int,
		help='port on which to bind')
	args = parser.parse_args()

	target = args.log_file
	level = 0 if args.log_level == 'ALL' else getattr(logging, args.log_level)
	logger = configure_logging(output=target, level=level, name=__name__)

	try:
		config = ClientConfig(mac=args.mac,
			release_on_close=args.release_on_exit)
		reactor = Reactor()
		with Listener(logger, reactor, args.host, args.port) as listener:
			client = Client(logger, config, listener.send, reactor)
			listener.start(client.on_datagram)
			reactor.call_soon(client.send_discover)
			try:
				reactor.run()
			except KeyboardInterrupt:
				logger.info('shutting down')
			finally:
				client.close()
	except Exception as e:
		logger.error('unhandled client error (caused by %r)', e)
		if __debug__:
			raise e


if __name__ == '__main__':
	main()

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
