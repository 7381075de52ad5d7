# SPDX-License-Identifier: MIT

__all__ = ['RFC2132OptionType', 'registry']

import enum
from ipaddress import IPv4Network

from ..optiontypes import OptionSpec, OptionRegistry, Derived


@enum.unique
class RFC2132OptionType(enum.IntEnum):
	PAD = 0
	SUBNET_MASK = 1
	TIME_OFFSET = 2
	ROUTER = 3
	TIME_SERVER = 4
	NAME_SERVER = 5
	DOMAIN_NAME_SERVER = 6
	HOST_NAME = 12
	DOMAIN_NAME = 15
	BROADCAST_ADDRESS = 28
	VENDOR_SPECIFIC_INFORMATION = 43
	REQUESTED_IP_ADDRESS = 50
	IP_ADDRESS_LEASE_TIME = 51
	OPTION_OVERLOAD = 52
	MESSAGE_TYPE = 53
	SERVER_IDENTIFIER = 54
	PARAMETER_REQUEST_LIST = 55
	MESSAGE = 56
	MAXIMUM_DHCP_MESSAGE_SIZE = 57
	RENEWAL_TIME_VALUE = 58
	REBINDING_TIME_VALUE = 59
	VENDOR_CLASS_IDENTIFIER = 60
	CLIENT_IDENTIFIER = 61
	TFTP_SERVER_NAME = 66
	BOOTFILE_NAME = 67
	USER_CLASS_IDENTIFIER = 77
	END = 255


def default_netmask(config):
	return config('range').network().netmask


def default_broadcast(config):
	network = IPv4Network((int(config('range').start), str(config('netmask'))),
		strict=False)
	return network.broadcast_address


def default_server(config):
	network = IPv4Network((int(config('range').start), str(config('netmask'))),
		strict=False)
	return network.network_address + 1


def default_router(config):
	return [config('server')]


T = RFC2132OptionType

registry = OptionRegistry([
	OptionSpec(T.SUBNET_MASK, 'Subnet Mask', 'IP', 'netmask',
		Derived(default_netmask)),
	OptionSpec(T.TIME_OFFSET, 'Time Offset', 'Int32', 'time_offset'),
	OptionSpec(T.ROUTER, 'Router', 'IPs', 'router', Derived(default_router)),
	OptionSpec(T.TIME_SERVER, 'Time Server', 'IPs', 'time_server'),
	OptionSpec(T.NAME_SERVER, 'Name Server', 'IPs', 'name_server'),
	OptionSpec(T.DOMAIN_NAME_SERVER, 'Domain Name Server', 'IPs', 'dns',
		['8.8.8.8', '8.8.4.4']),
	OptionSpec(T.HOST_NAME, 'Host Name', 'ASCII', 'hostname'),
	OptionSpec(T.DOMAIN_NAME, 'Domain Name', 'ASCII', 'domain_name'),
	OptionSpec(T.BROADCAST_ADDRESS, 'Broadcast Address', 'IP', 'broadcast',
		Derived(default_broadcast)),
	OptionSpec(T.VENDOR_SPECIFIC_INFORMATION, 'Vendor Specific Information',
		'Bytes', 'vendor_specific'),
	OptionSpec(T.REQUESTED_IP_ADDRESS, 'Requested IP Address', 'IP'),
	OptionSpec(T.IP_ADDRESS_LEASE_TIME, 'IP Address Lease Time', 'UInt32',
		'lease_time', 86400),
	OptionSpec(T.OPTION_OVERLOAD, 'Option Overload', 'UInt8'),
	OptionSpec(T.MESSAGE_TYPE, 'DHCP Message Type', 'UInt8'),
	OptionSpec(T.SERVER_IDENTIFIER, 'Server Identifier', 'IP', 'server',
		Derived(default_server)),
	OptionSpec(T.PARAMETER_REQUEST_LIST, 'Parameter Request List', 'UInt8s'),
	OptionSpec(T.MESSAGE, 'Message', 'ASCII'),
	OptionSpec(T.MAXIMUM_DHCP_MESSAGE_SIZE, 'Maximum DHCP Message Size',
		'UInt16', 'max_message_size', 1500),
	OptionSpec(T.RENEWAL_TIME_VALUE, 'Renewal (T1) Time Value', 'UInt32',
		'renewal_time', 3600),
	OptionSpec(T.REBINDING_TIME_VALUE, 'Rebinding (T2) Time Value', 'UInt32',
		'rebinding_time', 14400),
	OptionSpec(T.VENDOR_CLASS_IDENTIFIER, 'Vendor Class Identifier', 'ASCII'),
	OptionSpec(T.CLIENT_IDENTIFIER, 'Client Identifier', 'Bytes'),
	OptionSpec(T.TFTP_SERVER_NAME, 'TFTP Server Name', 'ASCII',
		'tftp_server'),
	OptionSpec(T.BOOTFILE_NAME, 'Bootfile Name', 'ASCII', 'boot_file_name'),
	OptionSpec(T.USER_CLASS_IDENTIFIER, 'User Class Information', 'Bytes'),
], labels={
	T.OPTION_OVERLOAD: {1: 'file', 2: 'sname', 3: 'file+sname'},
	T.MESSAGE_TYPE: {
		1: 'DHCPDISCOVER',
		2: 'DHCPOFFER',
		3: 'DHCPREQUEST',
		4: 'DHCPDECLINE',
		5: 'DHCPACK',
		6: 'DHCPNAK',
		7: 'DHCPRELEASE',
		8: 'DHCPINFORM',
	},
}).freeze()

del T

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
