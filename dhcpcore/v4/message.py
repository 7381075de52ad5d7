# SPDX-License-Identifier: MIT

__all__ = ['Operation', 'HardwareType', 'Flags', 'MessageType', 'OptionMap',
	'DHCPMessage', 'DHCP_MAGIC_COOKIE']

import enum
import struct
from collections import namedtuple
from ipaddress import IPv4Address
from random import randrange

from ..hardwaretype import HardwareType
from ..error import DHCPv4Error, DecodeError, TruncatedError
from .rfc2132 import RFC2132OptionType, registry as rfc2132_registry


DHCP_MAGIC_COOKIE = b'\x63\x82\x53\x63'

# NOTE(tori): RFC 2131 section 2, the smallest message a BOOTP relay must
# accept; replies are padded out to it
BOOTP_MINIMUM_SIZE = 300


@enum.unique
class Operation(enum.IntEnum):
	REQUEST = 1
	REPLY = 2


@enum.unique
class Flags(enum.IntFlag):
	BROADCAST = 1 << 15


@enum.unique
class MessageType(enum.IntEnum):
	DISCOVER = 1
	OFFER = 2
	REQUEST = 3
	DECLINE = 4
	ACK = 5
	NAK = 6
	RELEASE = 7
	INFORM = 8


class OptionMap:
	"""Options of one message.

	`entries` is the list of raw `(code, bytes)` pairs as they appeared on
	the wire; lookups go through the per-code concatenation of those pairs,
	decoded with the registry the map was built with.
	"""

	def __init__(self, registry=None, entries=None):
		if registry is None:
			registry = rfc2132_registry
		self.registry = registry
		self.entries = []
		self._options = {}
		if entries is not None:
			for code, raw in entries:
				self.add_raw(code, raw)

	def add_raw(self, code, raw):
		if code in (RFC2132OptionType.PAD, RFC2132OptionType.END):
			return
		raw = bytes(raw)
		self.entries.append((code, raw))
		# NOTE(tori): RFC 3396, a repeated code continues the same value
		if code in self._options:
			self._options[code] += raw
		else:
			self._options[code] = raw

	def raw(self, code):
		return self._options[code]

	def __getitem__(self, code):
		return self.registry.decode(code, self._options[code])

	def __setitem__(self, code, value):
		raw = self.registry.encode(code, value)
		self.entries = [entry for entry in self.entries if entry[0] != code]
		self.entries.append((code, raw))
		self._options[code] = raw

	def __delitem__(self, code):
		del self._options[code]
		self.entries = [entry for entry in self.entries if entry[0] != code]

	def __contains__(self, code):
		return code in self._options

	def __iter__(self):
		return iter(self._options)

	def __len__(self):
		return len(self._options)

	def __eq__(self, other):
		if not isinstance(other, OptionMap):
			return NotImplemented
		return self._options == other._options

	def keys(self):
		return self._options.keys()

	def items(self):
		return ((code, self[code]) for code in self._options)

	def get(self, code, default=None):
		raw = self._options.get(code)
		if raw is None:
			return default
		return self.registry.decode(code, raw)

	def decoded(self):
		"""Every option decoded; raises on the first malformed one."""
		return {code: self[code] for code in self._options}

	def ordered(self):
		return sorted(self._options, key=self.registry.order)

	def __repr__(self):
		return '%s(%s)' % (type(self).__name__, ', '.join(
			self.registry.describe(code, self.get(code))
			for code in self.ordered()
		))

	def encode(self, pad_length=None):
		opts = b''
		for code in self.ordered():
			value = self._options[code]
			while len(value) > 255:
				opts += bytes([code, 255, *value[:255]])
				value = value[255:]
			opts += bytes([code, len(value), *value])
		opts += b'\xFF'
		if pad_length is not None:
			pad_needed = max(0, pad_length - len(opts))
			opts += b'\x00'*pad_needed
		return opts

	@staticmethod
	def decode_bytes(raw_data):
		options = []
		index = 0

		while index < len(raw_data):
			option_tag = raw_data[index]
			if option_tag == RFC2132OptionType.PAD:
				index += 1
				continue
			if option_tag == RFC2132OptionType.END:
				break
			if index + 1 >= len(raw_data):
				raise TruncatedError('option %d has no length' % option_tag)
			option_length = raw_data[index + 1]
			option_data = raw_data[index + 2:index + 2 + option_length]
			if len(option_data) != option_length:
				raise TruncatedError('option %d wants %d bytes, %d left'
					% (option_tag, option_length, len(option_data)))
			options.append((option_tag, option_data))
			index += 2 + option_length

		return options

	@classmethod
	def decode_from_packet(cls, vend, file, sname, registry=None):
		options = cls.decode_bytes(vend)

		option_overload = None
		for option_tag, option_value in options:
			# NOTE(tori): option tag 52 is option overload tag, which can have
			# a single byte with the value of 1, 2, or 3, representing options
			# in 'file', 'sname', or 'file' and 'sname', respectively
			if option_tag == RFC2132OptionType.OPTION_OVERLOAD:
				if len(option_value) != 1 or option_value[0] not in (1, 2, 3):
					raise DecodeError('invalid option overload: %r'
						% option_value)
				option_overload = option_value[0]
		if option_overload is not None:
			if option_overload & 0x1:
				options = [*options, *cls.decode_bytes(file)]
			if option_overload & 0x2:
				options = [*options, *cls.decode_bytes(sname)]

		return cls(registry, options)


class DHCPMessage:
	NAMES = namedtuple('Fields', 'op htype hlen hops xid secs flags ciaddr'
		' yiaddr siaddr giaddr chaddr sname file', defaults=(None,)*14)
	CODEC = struct.Struct(
		'!'			# network byte order (big)
		'BBBB'		# op, htype, hlen, hops
		'I'			# xid
		'HH'		# secs, flags
		'4s'		# ciaddr (client ip)
		'4s'		# yiaddr (given ip by server)
		'4s'		# siaddr (server ip address)
		'4s'		# giaddr (gateway ip address)
		'16s'		# chaddr (client hardware address)
		'64s'		# server host name (null-terminated)
		'128s'		# boot file name (null-terminated)
	)

	@property
	def operation(self):
		return Operation(self.raw_data['op'])

	@operation.setter
	def operation(self, value):
		self.raw_data['op'] = Operation(value).value

	@property
	def hardware_type(self):
		try:
			return HardwareType(self.raw_data['htype'])
		except ValueError:
			return self.raw_data['htype']

	@hardware_type.setter
	def hardware_type(self, value):
		if value not in range(0x100):
			raise DHCPv4Error('`%r` not in range(0x100)' % value)
		self.raw_data['htype'] = int(value)

	@property
	def hardware_address(self):
		return self.raw_data['chaddr'][:self.raw_data['hlen']]

	@hardware_address.setter
	def hardware_address(self, value):
		if len(value) > 16:
			raise DHCPv4Error('hardware address too long: `%r`' % value)
		self.raw_data['chaddr'] = (
			bytes(value) + b'\0'*16
		)[:16]
		self.raw_data['hlen'] = len(value)

	@property
	def hops(self):
		return self.raw_data['hops']

	@hops.setter
	def hops(self, value):
		if value not in range(0x100):
			raise DHCPv4Error('`%r` not in range(0x100)' % value)
		self.raw_data['hops'] = value

	@property
	def transaction_id(self):
		return self.raw_data['xid']

	@transaction_id.setter
	def transaction_id(self, value):
		if value not in range(0x100000000):
			raise DHCPv4Error('`%r` not in range(0x100000000)' % value)
		self.raw_data['xid'] = value

	@property
	def seconds(self):
		return self.raw_data['secs']

	@seconds.setter
	def seconds(self, value):
		if value not in range(0x10000):
			raise DHCPv4Error('`%r` not in range(0x10000)' % value)
		self.raw_data['secs'] = value

	@property
	def flags(self):
		return Flags(self.raw_data['flags'])

	@flags.setter
	def flags(self, value):
		if value not in range(0x10000):
			raise DHCPv4Error('`%r` not in range(0x10000)' % value)
		self.raw_data['flags'] = int(value)

	@property
	def client_ip(self):
		return IPv4Address(self.raw_data['ciaddr'])

	@client_ip.setter
	def client_ip(self, value):
		self.raw_data['ciaddr'] = IPv4Address(value).packed

	@property
	def your_ip(self):
		return IPv4Address(self.raw_data['yiaddr'])

	@your_ip.setter
	def your_ip(self, value):
		self.raw_data['yiaddr'] = IPv4Address(value).packed

	@property
	def server_ip(self):
		return IPv4Address(self.raw_data['siaddr'])

	@server_ip.setter
	def server_ip(self, value):
		self.raw_data['siaddr'] = IPv4Address(value).packed

	@property
	def gateway_ip(self):
		return IPv4Address(self.raw_data['giaddr'])

	@gateway_ip.setter
	def gateway_ip(self, value):
		self.raw_data['giaddr'] = IPv4Address(value).packed

	@property
	def server_name(self):
		return self.raw_data['sname'].rstrip(b'\0')

	@server_name.setter
	def server_name(self, value):
		data = bytes(value)
		if len(data) > 64:
			raise DHCPv4Error('encoded server name too long: `%r`' % value)
		self.raw_data['sname'] = (
			data + b'\0'*64
		)[:64]

	@property
	def boot_file_name(self):
		return self.raw_data['file'].rstrip(b'\0')

	@boot_file_name.setter
	def boot_file_name(self, value):
		data = bytes(value)
		if len(data) > 128:
			raise DHCPv4Error('encoded boot file name too long: `%r`' % value)
		self.raw_data['file'] = (
			data + b'\0'*128
		)[:128]

	@property
	def message_type(self):
		value = self.options.get(RFC2132OptionType.MESSAGE_TYPE)
		if value is None:
			return None
		try:
			return MessageType(value)
		except ValueError:
			return value

	def __init__(self, *, op, htype=HardwareType.ETH10MB, hops=0, xid=None,
		secs=0, flags=0, ciaddr=0, yiaddr=0, siaddr=0, giaddr=0,
		hwaddr=b'\x00\x00\x00\x00\x00\x00', sname=b'', file=b'',
		options=None, registry=None):
		self.raw_data = self.NAMES()._asdict()
		self.operation = op
		self.hardware_type = htype
		self.hops = hops
		if xid is None:
			xid = randrange(0x100000000)
		self.transaction_id = xid
		self.seconds = secs
		self.flags = flags
		self.client_ip = ciaddr
		self.your_ip = yiaddr
		self.server_ip = siaddr
		self.gateway_ip = giaddr
		self.hardware_address = hwaddr
		self.server_name = sname
		self.boot_file_name = file
		self.options = OptionMap(registry)
		if options is not None:
			for code, value in options.items():
				self.options[code] = value

	def _repr_parts(self):
		return (
			'operation={op}'.format(op=self.operation.name),
			'hardware_address={hwaddr}'.format(
				hwaddr=self.hardware_address.hex(':')),
			'transaction_id={xid}'.format(xid=hex(self.transaction_id)),
			'client_ip={ciaddr}'.format(ciaddr=self.client_ip),
			'your_ip={yiaddr}'.format(yiaddr=self.your_ip),
			'server_ip={siaddr}'.format(siaddr=self.server_ip),
			'gateway_ip={giaddr}'.format(giaddr=self.gateway_ip),
			'boot_file_name={file!r}'.format(file=self.boot_file_name),
			'options={options!r}'.format(options=self.options)
		)

	def __repr__(self):
		return '{cls}({parts})'.format(
			cls=type(self).__name__,
			parts=', '.join(self._repr_parts())
		)

	def __eq__(self, other):
		if not isinstance(other, DHCPMessage):
			return NotImplemented
		return (self.raw_data == other.raw_data
			and self.options == other.options)

	def encode(self):
		ordered_data = [self.raw_data[field] for field in self.NAMES._fields]
		header = self.CODEC.pack(*ordered_data)
		pad_length = BOOTP_MINIMUM_SIZE - len(header) - len(DHCP_MAGIC_COOKIE)
		return header + DHCP_MAGIC_COOKIE + self.options.encode(pad_length)

	@classmethod
	def decode(cls, packet, registry=None):
		packet = bytes(packet)
		minimum = cls.CODEC.size + len(DHCP_MAGIC_COOKIE)
		if len(packet) < minimum:
			raise TruncatedError('message is %d bytes, at least %d needed'
				% (len(packet), minimum))

		data = cls.CODEC.unpack(packet[:cls.CODEC.size])
		structured_data = cls.NAMES._make(data)

		if structured_data.op not in (Operation.REQUEST, Operation.REPLY):
			raise DecodeError('bad operation: %r' % structured_data.op)
		if not 0 < structured_data.hlen <= 16:
			raise DecodeError('bad hardware address length: %r'
				% structured_data.hlen)
		if structured_data.htype == HardwareType.ETH10MB \
			and structured_data.hlen != 6:
			raise DecodeError('ethernet address of %d bytes'
				% structured_data.hlen)
		cookie = packet[cls.CODEC.size:minimum]
		if cookie != DHCP_MAGIC_COOKIE:
			raise DecodeError('bad magic cookie: %r' % cookie)

		self = cls.__new__(cls)
		self.raw_data = structured_data._asdict()
		self.options = OptionMap.decode_from_packet(packet[minimum:],
			structured_data.file, structured_data.sname, registry)
		return self

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
