# SPDX-License-Identifier: MIT

from ipaddress import IPv4Address

import pytest

from dhcpcore.error import RegistryError
from dhcpcore.option_codecs import CodecError, ValueType
from dhcpcore.optiontypes import Derived, Literal, OptionRegistry, OptionSpec
from dhcpcore.v4.config import ServerConfig
from dhcpcore.v4.rfc2132 import RFC2132OptionType, registry


def test_default_table_is_frozen():
	assert registry.frozen
	with pytest.raises(RegistryError):
		registry.add(OptionSpec(224, 'Private', 'Bytes'))


def test_spec_validation():
	with pytest.raises(RegistryError):
		OptionSpec(0, 'Pad', 'UInt8')
	with pytest.raises(RegistryError):
		OptionSpec(255, 'End', 'UInt8')
	with pytest.raises(RegistryError):
		OptionSpec(224, 'Private', 'Float')

	spec = OptionSpec(224, 'Private', 'UInt16', 'private', 7)
	assert spec.value_type is ValueType.UINT16
	assert isinstance(spec.default, Literal)


def test_duplicates_rejected():
	table = OptionRegistry([OptionSpec(224, 'Private', 'Bytes', 'private')])
	with pytest.raises(RegistryError):
		table.add(OptionSpec(224, 'Again', 'Bytes'))
	with pytest.raises(RegistryError):
		table.add(OptionSpec(225, 'Other', 'Bytes', 'private'))


def test_extend_makes_a_new_registry():
	extended = registry.extend(
		OptionSpec(224, 'Site Motd', 'ASCII', 'motd', 'welcome'))
	assert extended.frozen
	assert 224 in extended
	assert 224 not in registry
	assert len(extended) == len(registry) + 1
	assert extended.by_config_key('motd').code == 224
	assert extended.order(224) > extended.order(RFC2132OptionType.SUBNET_MASK)

	with pytest.raises(RegistryError):
		registry.extend(OptionSpec(1, 'Another Mask', 'IP'))


def test_unknown_codes_pass_through():
	assert registry.decode(200, b'\x01\x02') == b'\x01\x02'
	assert registry.encode(200, b'\x01\x02') == b'\x01\x02'
	with pytest.raises(CodecError):
		registry.encode(200, 'text')
	assert registry.order(200) > registry.order(
		RFC2132OptionType.USER_CLASS_IDENTIFIER)
	assert registry.order(199) < registry.order(200)


def test_labels_stay_out_of_values():
	assert registry.decode(RFC2132OptionType.MESSAGE_TYPE, b'\x01') == 1
	assert registry.describe(RFC2132OptionType.MESSAGE_TYPE, 1) == (
		'DHCP Message Type=DHCPDISCOVER')
	assert registry.describe(RFC2132OptionType.ROUTER, [1]) == 'Router=[1]'


def test_derived_defaults_follow_the_range():
	config = ServerConfig(range=('10.0.0.10', '10.0.0.20'))
	assert config.get('netmask') == IPv4Address('255.255.255.224')
	assert config.get('server') == IPv4Address('10.0.0.1')
	assert config.get('broadcast') == IPv4Address('10.0.0.31')
	assert config.get('router') == [IPv4Address('10.0.0.1')]
	assert config.get('dns') == ['8.8.8.8', '8.8.4.4']
	assert config.get('hostname') is None


def test_derived_defaults_see_configured_values():
	config = ServerConfig(range=('10.0.0.10', '10.0.0.20'),
		netmask='255.255.255.0', server='10.0.0.254')
	assert config.get('broadcast') == IPv4Address('10.0.0.255')
	assert config.get('router') == [IPv4Address('10.0.0.254')]


def test_derived_is_evaluated_each_time():
	calls = []

	def motd(view):
		calls.append(view('lease_time'))
		return 'lease is %d' % view('lease_time')

	extended = registry.extend(
		OptionSpec(224, 'Site Motd', 'ASCII', 'motd', Derived(motd)))
	config = ServerConfig(range=('10.0.0.10', '10.0.0.20'), lease_time=600,
		registry=extended)
	assert config.get('motd') == 'lease is 600'
	assert config.get('motd') == 'lease is 600'
	assert len(calls) >= 2
