# SPDX-License-Identifier: MIT

__all__ = ['CodecError', 'Codec', 'ValueType', 'value_type_codec']

import enum
from functools import wraps
from ipaddress import IPv4Address
from struct import Struct, error as StructError

from .error import BadLengthError


class CodecError(ValueError):
	pass


class Codec:
	def __init__(self, *, name=None, codecs=None):
		if name is None:
			name = 'codec_%s' % id(self)
		self.name = name
		if codecs is None:
			codecs = {}
		self.codecs = codecs

	def get_codec(self, key):
		try:
			return self.codecs[key]
		except KeyError:
			raise CodecError('%r cannot be encoded by this codec (%s)'
				% (key, self.name)
			) from None

	def encode(self, key, value):
		encoder, decoder = self.get_codec(key)
		return encoder(value)

	def decode(self, key, value):
		encoder, decoder = self.get_codec(key)
		return decoder(value)


@enum.unique
class ValueType(enum.Enum):
	UINT8 = 'UInt8'
	UINT8S = 'UInt8s'
	UINT16 = 'UInt16'
	UINT32 = 'UInt32'
	INT32 = 'Int32'
	BOOL = 'Bool'
	ASCII = 'ASCII'
	IP = 'IP'
	IPS = 'IPs'
	BYTES = 'Bytes'


uint8 = Struct('!B')
uint16 = Struct('!H')
uint32 = Struct('!I')
int32 = Struct('!i')


def make_packer(struct):
	def packer(value):
		# NOTE(tori): bool is an int subclass, but `True` as a lease time is
		# a configuration mistake, not a 1
		if isinstance(value, bool) or not isinstance(value, int):
			raise CodecError('expected an integer, got %r' % (value,))
		try:
			return struct.pack(value)
		except StructError:
			raise CodecError('%r does not fit in %d bytes'
				% (value, struct.size)) from None
	return packer


def make_unpacker(struct):
	def unpacker(b):
		if len(b) != struct.size:
			raise BadLengthError('expected %d bytes, got %d'
				% (struct.size, len(b)))
		result, = struct.unpack(b)
		return result
	return unpacker


def make_guarded(fn, check=lambda _: True, message=None):
	@wraps(fn)
	def wrapper(value):
		try:
			ok = check(value)
		except TypeError:
			ok = False
		if not ok:
			if message is None:
				raise CodecError('invalid value for %s: %r'
					% (fn.__name__, value))
			raise CodecError('%s: %r' % (message, value))
		return fn(value)
	return wrapper


def encode_bool(decoded):
	if not isinstance(decoded, bool):
		raise CodecError('expected a bool, got %r' % (decoded,))
	return b'\x01' if decoded else b'\x00'


def decode_bool(encoded):
	if len(encoded) != 1:
		raise BadLengthError('expected 1 byte, got %d' % len(encoded))
	return encoded[0] != 0


def encode_ip(decoded):
	if isinstance(decoded, bool):
		raise CodecError('invalid decoded IP: %r' % decoded)
	try:
		return IPv4Address(decoded).packed
	except ValueError:
		raise CodecError('invalid decoded IP: %r' % (decoded,)) from None


def decode_ip(encoded):
	if len(encoded) != 4:
		raise BadLengthError('invalid encoded IP: %r' % encoded)
	return IPv4Address(bytes(encoded))


def encode_ips(decoded):
	if isinstance(decoded, (str, bytes)):
		raise CodecError('expected a list of IPs, got %r' % (decoded,))
	try:
		return b''.join(encode_ip(value) for value in decoded)
	except TypeError:
		raise CodecError('invalid decoded IP list: %r' % (decoded,)) from None


def decode_ips(encoded):
	if len(encoded)%4 != 0:
		raise BadLengthError('invalid encoded IP list: %r' % encoded)
	return [decode_ip(bytes(value)) for value in zip(*[iter(encoded)]*4)]


def encode_string(decoded):
	if isinstance(decoded, (bytes, bytearray)):
		return bytes(decoded)
	if not isinstance(decoded, str):
		raise CodecError('expected a string, got %r' % (decoded,))
	# NOTE(tori): latin-1 maps every byte to exactly one code point, so
	# whatever a client sent comes back out unchanged
	try:
		return decoded.encode('latin-1')
	except UnicodeEncodeError:
		raise CodecError('string is not single-byte text: %r'
			% decoded) from None


def decode_string(encoded):
	return bytes(encoded).decode('latin-1')


def encode_octets(decoded):
	if isinstance(decoded, str):
		raise CodecError('expected a list of octets, got %r' % decoded)
	try:
		return bytes(decoded)
	except (TypeError, ValueError):
		raise CodecError('invalid octet list: %r' % (decoded,)) from None


def decode_octets(encoded):
	return list(encoded)


def encode_bytes(decoded):
	if not isinstance(decoded, (bytes, bytearray)):
		raise CodecError('expected bytes, got %r' % (decoded,))
	return bytes(decoded)


def decode_bytes(encoded):
	return bytes(encoded)


# NOTE(tori): guard only the encodes, per Postel's Law
value_type_codec = Codec(
	name='value-types',
	codecs={
		ValueType.UINT8: (make_packer(uint8), make_unpacker(uint8)),
		ValueType.UINT8S: (
			make_guarded(encode_octets, lambda v: len(v) > 0,
				'octet list must not be empty'),
			decode_octets
		),
		ValueType.UINT16: (make_packer(uint16), make_unpacker(uint16)),
		ValueType.UINT32: (make_packer(uint32), make_unpacker(uint32)),
		ValueType.INT32: (make_packer(int32), make_unpacker(int32)),
		ValueType.BOOL: (encode_bool, decode_bool),
		ValueType.ASCII: (
			make_guarded(encode_string, lambda s: len(s) > 0,
				'string must not be empty'),
			decode_string
		),
		ValueType.IP: (encode_ip, decode_ip),
		ValueType.IPS: (
			make_guarded(encode_ips, lambda lst: len(lst) > 0,
				'IP list must not be empty'),
			decode_ips
		),
		ValueType.BYTES: (encode_bytes, decode_bytes),
	}
)

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
