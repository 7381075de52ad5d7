# SPDX-License-Identifier: MIT

from ipaddress import IPv4Address

import pytest

from dhcpcore.error import BadLengthError
from dhcpcore.option_codecs import CodecError, ValueType, value_type_codec

encode = value_type_codec.encode
decode = value_type_codec.decode


def test_integers_are_big_endian():
	assert encode(ValueType.UINT8, 5) == b'\x05'
	assert encode(ValueType.UINT16, 1500) == b'\x05\xdc'
	assert encode(ValueType.UINT32, 86400) == b'\x00\x01\x51\x80'
	assert encode(ValueType.INT32, -3600) == b'\xff\xff\xf1\xf0'
	assert decode(ValueType.UINT32, b'\x00\x01\x51\x80') == 86400
	assert decode(ValueType.INT32, b'\xff\xff\xf1\xf0') == -3600


@pytest.mark.parametrize('value_type, value', [
	(ValueType.UINT8, 256),
	(ValueType.UINT16, -1),
	(ValueType.UINT32, 1 << 32),
	(ValueType.UINT32, True),
	(ValueType.UINT32, '100'),
])
def test_integer_out_of_range(value_type, value):
	with pytest.raises(CodecError):
		encode(value_type, value)


@pytest.mark.parametrize('value_type, raw', [
	(ValueType.UINT8, b''),
	(ValueType.UINT16, b'\x01'),
	(ValueType.UINT32, b'\x00\x00\x01'),
	(ValueType.BOOL, b'\x01\x01'),
	(ValueType.IP, b'\x0a\x00\x00'),
	(ValueType.IPS, b'\x0a\x00\x00\x01\x0a'),
])
def test_wrong_size_is_bad_length(value_type, raw):
	with pytest.raises(BadLengthError):
		decode(value_type, raw)


def test_addresses():
	assert encode(ValueType.IP, '10.0.0.1') == b'\x0a\x00\x00\x01'
	assert decode(ValueType.IP, b'\x0a\x00\x00\x01') == IPv4Address('10.0.0.1')
	assert encode(ValueType.IPS, ['8.8.8.8', '8.8.4.4']) == (
		b'\x08\x08\x08\x08\x08\x08\x04\x04')
	assert decode(ValueType.IPS, b'\x08\x08\x08\x08\x08\x08\x04\x04') == [
		IPv4Address('8.8.8.8'), IPv4Address('8.8.4.4')]


@pytest.mark.parametrize('value_type, value', [
	(ValueType.IP, 'not an address'),
	(ValueType.IP, True),
	(ValueType.IPS, '8.8.8.8'),
	(ValueType.IPS, []),
	(ValueType.IPS, 7),
])
def test_bad_addresses(value_type, value):
	with pytest.raises(CodecError):
		encode(value_type, value)


def test_ascii_is_verbatim():
	assert decode(ValueType.ASCII, b'caf\xe9') == 'caf\xe9'
	assert encode(ValueType.ASCII, 'caf\xe9') == b'caf\xe9'
	assert encode(ValueType.ASCII, b'raw') == b'raw'


@pytest.mark.parametrize('value', ['', '€', 42])
def test_bad_ascii(value):
	with pytest.raises(CodecError):
		encode(ValueType.ASCII, value)


def test_bool():
	assert encode(ValueType.BOOL, True) == b'\x01'
	assert encode(ValueType.BOOL, False) == b'\x00'
	assert decode(ValueType.BOOL, b'\x02') is True
	assert decode(ValueType.BOOL, b'\x00') is False
	with pytest.raises(CodecError):
		encode(ValueType.BOOL, 1)


def test_octets_and_bytes():
	assert encode(ValueType.UINT8S, [1, 3, 6]) == b'\x01\x03\x06'
	assert decode(ValueType.UINT8S, b'\x01\x03\x06') == [1, 3, 6]
	assert decode(ValueType.UINT8S, b'') == []
	assert encode(ValueType.BYTES, bytearray(b'\x01\xff')) == b'\x01\xff'
	for value in ([], [256], 'abc'):
		with pytest.raises(CodecError):
			encode(ValueType.UINT8S, value)
	with pytest.raises(CodecError):
		encode(ValueType.BYTES, 'text')
