# SPDX-License-Identifier: MIT

__all__ = ['HardwareType', 'parse_hardware_address',
	'format_hardware_address']

import enum
import re

# NOTE(tori): hardware types come from the following:
# https://www.iana.org/assignments/arp-parameters/arp-parameters.xhtml

@enum.unique
class HardwareType(enum.IntEnum):
	RESERVED = 0
	ETH10MB = 1
	EXPERIMENTAL_ETHERNET = 2
	AX25 = 3
	LOCALTALK = 11
	FIBRE_CHANNEL = 18
	IEEE_1394 = 24
	IPSEC_TUNNEL = 31
	INFINIBAND = 32


_separators = re.compile(r'[:\-.]')


def parse_hardware_address(value):
	"""Turn `11:22:33:44:55:66`, `11-22-...` or raw bytes into bytes."""
	if isinstance(value, (bytes, bytearray)):
		data = bytes(value)
	elif isinstance(value, str):
		digits = _separators.sub('', value)
		try:
			data = bytes.fromhex(digits)
		except ValueError:
			raise ValueError('invalid hardware address: %r' % value) from None
	else:
		raise TypeError('hardware address must be str or bytes, not %s'
			% type(value).__name__)
	if not 0 < len(data) <= 16:
		raise ValueError('invalid hardware address length: %r' % value)
	return data


def format_hardware_address(value):
	return ':'.join('%02x' % octet for octet in parse_hardware_address(value))

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
