# SPDX-License-Identifier: MIT

__all__ = ['Server', 'TransactionState', 'configure_logging', 'main']

import enum
import json
import logging
from ipaddress import IPv4Address
from sys import stderr

from ..error import (DecodeError, DHCPv4Error, LeaseInvariantError,
	PoolExhaustedError, RejectedError)
from ..hardwaretype import format_hardware_address
from ..option_codecs import CodecError
from ..reactor import Reactor
from .config import ServerConfig
from .lease_pool import LeasePool, LeaseState
from .listener import (Listener, DHCP_SERVER_PORT, DHCP_CLIENT_PORT,
	BROADCAST_ADDRESS)
from .message import Operation, Flags, MessageType
from .option_codec import OptionCodec
from .rfc2132 import RFC2132OptionType

UNSPECIFIED_ADDRESS = IPv4Address(0)


@enum.unique
class TransactionState(enum.Enum):
	AWAITING_REQUEST = 'awaiting-request'
	BOUND = 'bound'


class Server:
	# NOTE(tori): options a reply must never carry, whatever the client asks
	ILLEGAL_OPTIONS = (
		RFC2132OptionType.REQUESTED_IP_ADDRESS,
		RFC2132OptionType.PARAMETER_REQUEST_LIST,
		RFC2132OptionType.MAXIMUM_DHCP_MESSAGE_SIZE,
		RFC2132OptionType.OPTION_OVERLOAD,
		RFC2132OptionType.CLIENT_IDENTIFIER,
	)
	LEASE_OPTIONS = (
		RFC2132OptionType.IP_ADDRESS_LEASE_TIME,
		RFC2132OptionType.RENEWAL_TIME_VALUE,
		RFC2132OptionType.REBINDING_TIME_VALUE,
	)
	KEEP_OPTIONS = (
		RFC2132OptionType.MESSAGE_TYPE,
		RFC2132OptionType.SERVER_IDENTIFIER,
		RFC2132OptionType.MESSAGE,
		RFC2132OptionType.CLIENT_IDENTIFIER,
		*LEASE_OPTIONS,
	)

	def __init__(self, logger, config, send, reactor=None, *, codec=None,
		pool=None, listen_only=False):
		if not isinstance(config, ServerConfig):
			config = ServerConfig(config)
		self.logger = logger
		self.config = config
		self.send = send
		self.reactor = reactor
		if codec is None:
			codec = OptionCodec(config.registry)
		self.codec = codec
		if pool is None:
			pool = LeasePool.from_config(config)
		self.pool = pool
		self.clock = pool.clock
		self.listen_only = listen_only
		self.ip = config.server

		# NOTE(tori): per-xid record for logging and inspection only; the
		# lease pool decides every reply, requests are not matched by xid
		self.transactions = {}
		self.housekeeping = [self.handle_expirations, self.handle_transactions]
		self.housekeeping_timer = None

		self.logger.info('server = %s, range = %r, lease time = %ss',
			self.ip, config.range, config.lease_time)

		if reactor is not None:
			self.housekeeping_timer = reactor.call_later(
				config.sweep_interval, self.housekeeping_target)

	def on_datagram(self, data, source=None):
		try:
			request = self.codec.decode(data)
		except (DecodeError, CodecError) as e:
			self.logger.warning('could not decode packet from %s (caused by'
				' %r)', source, e)
			return None

		if self.listen_only:
			self.logger.info('%s - received %s', self.describe(request),
				self.type_name(request.message_type))
			return request

		response = self.handle(request)
		if response is None:
			return None

		self.send(self.codec.encode(response),
			(self.destination(request, response), DHCP_CLIENT_PORT))
		return response

	def handle(self, request):
		if request.operation != Operation.REQUEST:
			self.logger.debug('%s - ignoring %s', self.describe(request),
				request.operation.name)
			return None

		request_type = request.message_type
		handler = None
		if isinstance(request_type, MessageType):
			handler = getattr(self, 'do_%s' % request_type.name, None)
		if handler is None:
			self.logger.warning('not implemented: %s',
				self.type_name(request_type))
			return None

		try:
			response = handler(request)
		except LeaseInvariantError as e:
			self.logger.error('lease table corrupted (caused by %s)', e)
			raise

		if response is None:
			self.logger.info('%s - received %s', self.describe(request),
				request_type.name)
			return None

		self.logger.info('%s - received %s, replying %s',
			self.describe(request), request_type.name,
			response.message_type.name)

		self.handle_boot_file(request, response)
		self.handle_message_size(request, response)
		return response

	@staticmethod
	def type_name(message_type):
		return getattr(message_type, 'name', repr(message_type))

	@staticmethod
	def describe(packet):
		return format_hardware_address(packet.hardware_address)

	def destination(self, request, response):
		if response.message_type == MessageType.NAK \
			or request.flags & Flags.BROADCAST:
			return BROADCAST_ADDRESS
		if request.client_ip != UNSPECIFIED_ADDRESS:
			return request.client_ip
		if response.your_ip != UNSPECIFIED_ADDRESS:
			return response.your_ip
		return BROADCAST_ADDRESS

	def track(self, request, state, ip):
		self.transactions[request.transaction_id] = {
			'state': state,
			'mac': self.describe(request),
			'ip': ip,
			'last_update': self.clock(),
		}

	def forget(self, request):
		self.transactions.pop(request.transaction_id, None)

	def make_response_packet(self, request, message_type):
		response = self.codec.new_message(
			op=Operation.REPLY,
			htype=request.hardware_type,
			xid=request.transaction_id,
			flags=request.flags,
			giaddr=request.gateway_ip,
			hwaddr=request.hardware_address,
			siaddr=self.ip
		)

		response.options[RFC2132OptionType.MESSAGE_TYPE] = message_type
		response.options[RFC2132OptionType.SERVER_IDENTIFIER] = self.ip
		return response

	def make_nak(self, request, message):
		response = self.make_response_packet(request, MessageType.NAK)
		response.server_ip = UNSPECIFIED_ADDRESS
		response.options[RFC2132OptionType.MESSAGE] = message
		self.handle_rfc6842(request, response)
		return response

	def make_ack(self, request, lease):
		response = self.make_response_packet(request, MessageType.ACK)
		response.your_ip = lease.ip
		self.track(request, TransactionState.BOUND, lease.ip)
		self.handle_options(request, response, grant=True)
		return response

	def handle_rfc6842(self, request, response):
		if RFC2132OptionType.CLIENT_IDENTIFIER in request.options:
			response.options[RFC2132OptionType.CLIENT_IDENTIFIER] = (
				request.options[RFC2132OptionType.CLIENT_IDENTIFIER])
		else:
			try:
				del response.options[RFC2132OptionType.CLIENT_IDENTIFIER]
			except KeyError:
				pass

	def handle_options(self, request, response, grant):
		requested = request.options.get(
			RFC2132OptionType.PARAMETER_REQUEST_LIST, ())
		required = self.LEASE_OPTIONS if grant else ()
		excluded = self.ILLEGAL_OPTIONS
		if not grant:
			excluded += self.LEASE_OPTIONS

		added = self.codec.fill_options(response, self.config,
			requested=requested, forced=self.config.force_options,
			required=required, excluded=excluded)
		self.logger.debug('%s - options %s', self.describe(request),
			', '.join(self.codec.registry.name(code) for code in added))

		unknown = [
			code
			for code in requested
			if code not in response.options
		]
		if unknown:
			self.logger.debug('%s - no value for requested options %s',
				self.describe(request),
				', '.join(str(code) for code in unknown))

		self.handle_rfc6842(request, response)

	def handle_boot_file(self, request, response):
		if self.config.boot_file is None:
			return
		if response.message_type not in (MessageType.OFFER, MessageType.ACK):
			return

		boot_file = self.config.boot_file(request, response)
		if boot_file is None:
			return
		if isinstance(boot_file, str):
			boot_file = boot_file.encode('latin-1')
		try:
			response.boot_file_name = boot_file
		except DHCPv4Error as e:
			self.logger.error('%s - boot file not set (caused by %s)',
				self.describe(request), e)

	def handle_message_size(self, request, response):
		limit = self.config.max_message_size
		client_limit = request.options.get(
			RFC2132OptionType.MAXIMUM_DHCP_MESSAGE_SIZE)
		if client_limit is not None:
			# NOTE(tori): RFC 2132 section 9.10, nothing below 576 is legal
			limit = min(limit, max(576, client_limit))

		shed = self.codec.shed_options(response, limit, self.KEEP_OPTIONS)
		if shed:
			self.logger.warning('%s - dropped %s to fit in %d bytes',
				self.describe(request),
				', '.join(self.codec.registry.name(code) for code in shed),
				limit)

	def do_DISCOVER(self, request):
		mac = self.describe(request)
		try:
			ip = self.pool.allocate(mac,
				request.options.get(RFC2132OptionType.REQUESTED_IP_ADDRESS),
				client_id=request.options.get(
					RFC2132OptionType.CLIENT_IDENTIFIER))
		except PoolExhaustedError as e:
			self.logger.warning('%s - could not assign IP address (caused by'
				' %s)', mac, e)
			return None

		self.track(request, TransactionState.AWAITING_REQUEST, ip)

		response = self.make_response_packet(request, MessageType.OFFER)
		response.your_ip = ip
		self.handle_options(request, response, grant=True)
		return response

	def do_REQUEST(self, request):
		server_id = request.options.get(RFC2132OptionType.SERVER_IDENTIFIER)
		requested_ip = request.options.get(
			RFC2132OptionType.REQUESTED_IP_ADDRESS)

		if server_id is not None:
			if IPv4Address(server_id) != self.ip:
				self.logger.debug('%s - chose server %s', self.describe(request),
					server_id)
				self.forget(request)
				return None
			if requested_ip is None:
				requested_ip = request.client_ip
			return self.handle_selecting(request, IPv4Address(requested_ip))

		if request.client_ip != UNSPECIFIED_ADDRESS:
			return self.handle_renewing(request, request.client_ip)

		if requested_ip is not None:
			return self.handle_init_reboot(request, IPv4Address(requested_ip))

		self.logger.debug('%s - request names no address',
			self.describe(request))
		return None

	def handle_selecting(self, request, ip):
		try:
			lease = self.pool.confirm(self.describe(request), ip)
		except RejectedError as e:
			self.forget(request)
			return self.make_nak(request, str(e))
		return self.make_ack(request, lease)

	def _bound_to(self, request, ip):
		lease = self.pool.lease_for_ip(ip)
		return (lease is not None
			and lease.mac == self.describe(request)
			and lease.state == LeaseState.BOUND)

	def handle_renewing(self, request, ip):
		if self._bound_to(request, ip):
			return self.make_ack(request,
				self.pool.renew(self.describe(request), ip))
		if self.pool.owns(ip):
			return self.make_nak(request, '%s is not bound to %s'
				% (ip, self.describe(request)))
		return None

	def handle_init_reboot(self, request, ip):
		if self._bound_to(request, ip):
			return self.make_ack(request,
				self.pool.renew(self.describe(request), ip))
		if self.pool.owns(ip):
			return self.make_nak(request, '%s is not bound to %s'
				% (ip, self.describe(request)))
		# NOTE(tori): RFC 2131 section 4.3.2, stay silent about addresses
		# that are not ours
		return None

	def do_DECLINE(self, request):
		self.forget(request)
		ip = request.options.get(RFC2132OptionType.REQUESTED_IP_ADDRESS)
		if ip is None:
			return None
		lease = self.pool.decline(self.describe(request), ip)
		if lease is not None:
			self.logger.warning('%s - declined %s, address quarantined',
				lease.mac, lease.ip)

	def do_RELEASE(self, request):
		self.forget(request)
		lease = self.pool.release(self.describe(request), request.client_ip)
		if lease is not None:
			self.logger.debug('%s - released %s', lease.mac, lease.ip)

	def do_INFORM(self, request):
		response = self.make_response_packet(request, MessageType.ACK)
		self.handle_options(request, response, grant=False)
		return response

	def handle_expirations(self):
		for lease in self.pool.sweep_expired():
			self.logger.debug('%s - lease on %s expired', lease.mac, lease.ip)

	def handle_transactions(self):
		now = self.clock()
		to_remove = [
			xid
			for xid, transaction in self.transactions.items()
			if now - transaction['last_update'] > self.config.offer_time
		]
		for xid in to_remove:
			del self.transactions[xid]

	def handle_housekeeping(self):
		for method in self.housekeeping:
			method()

	def housekeeping_target(self):
		self.handle_housekeeping()
		self.housekeeping_timer = self.reactor.call_later(
			self.config.sweep_interval, self.housekeeping_target)

	def close(self):
		if self.housekeeping_timer is not None:
			self.housekeeping_timer.cancel()
			self.housekeeping_timer = None
		self.transactions.clear()


def configure_logging(output='-', level='INFO', name=__name__):
	if isinstance(output, str):
		if output == '-':
			log_handler = logging.StreamHandler(stderr)
		else:
			log_handler = logging.FileHandler(output)
	else:
		log_handler = logging.StreamHandler(output)

	log_format = '{asctime}|{name}|{levelname}|{message}'
	log_formatter = logging.Formatter(log_format, style='{')
	log_handler.setFormatter(log_formatter)

	logger = logging.Logger(name)
	logger.addHandler(log_handler)

	logger.setLevel(level)

	return logger


def main():
	import argparse
	from textwrap import dedent

	from ..pxe import make_boot_file_getter

	parser = argparse.ArgumentParser()
	parser.add_argument('-f', '--log-file', default='-',
		type=argparse.FileType('w'), help='location to log messages')
	parser.add_argument('-l', '--log-level', default='INFO', choices=('ALL',
		'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'), type=str.upper,
		help='verbosity of log messages, in descending order')
	parser.add_argument('-c', '--config', default=None,
		type=argparse.FileType('r'),
		help='JSON file of server settings, e.g. {"range": ["10.0.0.2",'
		' "10.0.0.254"]}')
	parser.add_argument('--listen-only', action='store_true',
		help='log requests without ever answering them')
	parser.add_argument('--host', default='0.0.0.0',
		help='address on which to bind')
	parser.add_argument('--port', default=DHCP_SERVER_PORT, type=int,
		help='port on which to bind')
	map_example = dedent("""\
	0:bios/pxelinux.0,7:efi64/syslinux.efi
	These values are specified as their values defined for DHCP option 93
	(see RFC4578)
	""")
	parser.add_argument('-m', '--boot-file-map', metavar='MAP', default=None,
		help='map of machine types to boot file names, e.g. %s' % map_example)
	args = parser.parse_args()

	target = args.log_file
	level = 0 if args.log_level == 'ALL' else getattr(logging, args.log_level)
	logger = configure_logging(output=target, level=level)

	try:
		values = {}
		if args.config is not None:
			with args.config as config_file:
				values = json.load(config_file)
		if args.boot_file_map is not None:
			values['boot_file'] = make_boot_file_getter(args.boot_file_map)
		config = ServerConfig(values)

		reactor = Reactor()
		with Listener(logger, reactor, args.host, args.port) as listener:
			server = Server(logger, config, listener.send, reactor,
				listen_only=args.listen_only)
			listener.start(server.on_datagram)
			try:
				reactor.run()
			except KeyboardInterrupt:
				logger.info('shutting down')
			finally:
				server.close()
	except Exception as e:
		logger.error('unhandled server error (caused by %r)', e)
		if __debug__:
			raise e


if __name__ == '__main__':
	main()

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
