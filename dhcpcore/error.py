# SPDX-License-Identifier: MIT

__all__ = ['Error', 'DHCPv4Error', 'DecodeError', 'TruncatedError',
	'BadLengthError', 'ConfigError', 'RegistryError', 'PoolError',
	'PoolExhaustedError', 'RejectedError', 'LeaseInvariantError']


class Error(Exception):
	"""Base class for DHCP errors"""
	pass


class DHCPv4Error(Error):
	"""Base class for DHCPv4 errors"""
	pass


class DecodeError(DHCPv4Error):
	"""Datagram could not be decoded into a message"""
	pass


class TruncatedError(DecodeError):
	pass


class BadLengthError(DecodeError):
	pass


class ConfigError(DHCPv4Error):
	pass


class RegistryError(DHCPv4Error):
	pass


class PoolError(DHCPv4Error):
	pass


class PoolExhaustedError(PoolError):
	pass


class RejectedError(PoolError):
	pass


class LeaseInvariantError(DHCPv4Error):
	"""Two hardware addresses hold the same IP; this is a bug, not input"""
	pass

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
