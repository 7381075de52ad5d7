# SPDX-License-Identifier: MIT

from ipaddress import IPv4Address

import pytest

from dhcpcore.pxe import make_boot_file_getter
from dhcpcore.v4.config import ServerConfig
from dhcpcore.v4.lease_pool import LeasePool, LeaseState
from dhcpcore.v4.listener import BROADCAST_ADDRESS, DHCP_CLIENT_PORT
from dhcpcore.v4.message import DHCPMessage, Flags, MessageType, Operation
from dhcpcore.v4.rfc2132 import RFC2132OptionType as Option
from dhcpcore.v4.server import Server, TransactionState

MAC = bytes.fromhex('001122334455')
OTHER_MAC = bytes.fromhex('001122334466')
SERVER = IPv4Address('192.168.1.1')
FIRST = IPv4Address('192.168.1.50')

CONFIG = {
	'range': ('192.168.1.50', '192.168.1.100'),
	'server': '192.168.1.1',
	'netmask': '255.255.255.0',
	'lease_time': 100,
	'renewal_time': 50,
	'rebinding_time': 87,
}


def make_request(message_type, xid=1, mac=MAC, options=None, **fields):
	message = DHCPMessage(op=Operation.REQUEST, xid=xid, hwaddr=mac, **fields)
	message.options[Option.MESSAGE_TYPE] = message_type
	for code, value in (options or {}).items():
		message.options[code] = value
	return message.encode()


def make_server(logger, sent, clock, reactor=None, **values):
	config = ServerConfig({**CONFIG, **values})
	pool = LeasePool.from_config(config, clock=clock)
	return Server(logger, config, sent, reactor, pool=pool)


@pytest.fixture
def server(logger, sent, clock):
	return make_server(logger, sent, clock)


def dora(server, xid=1, mac=MAC):
	offer = server.on_datagram(make_request(MessageType.DISCOVER, xid, mac))
	return server.on_datagram(make_request(MessageType.REQUEST, xid, mac, {
		Option.REQUESTED_IP_ADDRESS: offer.your_ip,
		Option.SERVER_IDENTIFIER: SERVER,
	}))


def test_discover_offers_first_free_address(server, sent):
	offer = server.on_datagram(make_request(MessageType.DISCOVER, options={
		Option.PARAMETER_REQUEST_LIST: [1, 3, 6],
	}))
	assert offer.message_type == MessageType.OFFER
	assert offer.transaction_id == 1
	assert offer.your_ip == FIRST
	assert offer.hardware_address == MAC

	data, address = sent[-1]
	assert address == (FIRST, DHCP_CLIENT_PORT)
	wire = DHCPMessage.decode(data)
	assert wire.operation == Operation.REPLY
	assert wire.options[Option.SERVER_IDENTIFIER] == SERVER
	assert wire.options[Option.IP_ADDRESS_LEASE_TIME] == 100
	assert wire.options[Option.RENEWAL_TIME_VALUE] == 50
	assert wire.options[Option.REBINDING_TIME_VALUE] == 87
	assert wire.options[Option.SUBNET_MASK] == IPv4Address('255.255.255.0')
	assert wire.options[Option.ROUTER] == [SERVER]
	assert wire.options[Option.DOMAIN_NAME_SERVER] == [
		IPv4Address('8.8.8.8'), IPv4Address('8.8.4.4')]
	assert Option.BROADCAST_ADDRESS not in wire.options
	assert server.transactions[1]['state'] == TransactionState.AWAITING_REQUEST


def test_broadcast_flag_is_honoured(server, sent):
	server.on_datagram(make_request(MessageType.DISCOVER,
		flags=Flags.BROADCAST))
	data, address = sent[-1]
	assert address == (BROADCAST_ADDRESS, DHCP_CLIENT_PORT)
	assert DHCPMessage.decode(data).flags & Flags.BROADCAST


def test_full_exchange_binds(server):
	ack = dora(server)
	assert ack.message_type == MessageType.ACK
	assert ack.transaction_id == 1
	assert ack.your_ip == FIRST
	lease = server.pool.lease_for_mac(MAC)
	assert lease.state == LeaseState.BOUND
	assert lease.expires_at == 100
	assert server.transactions[1]['state'] == TransactionState.BOUND


def test_forced_options_are_sent_unasked(logger, sent, clock):
	server = make_server(logger, sent, clock, domain_name='lan',
		force_options=['domain_name', 'broadcast'])
	offer = server.on_datagram(make_request(MessageType.DISCOVER))
	assert offer.options[Option.DOMAIN_NAME] == 'lan'
	assert offer.options[Option.BROADCAST_ADDRESS] == (
		IPv4Address('192.168.1.255'))
	assert Option.SUBNET_MASK not in offer.options


def test_request_for_unoffered_address_is_refused(server, sent):
	nak = server.on_datagram(make_request(MessageType.REQUEST, options={
		Option.REQUESTED_IP_ADDRESS: '192.168.1.60',
		Option.SERVER_IDENTIFIER: SERVER,
	}))
	assert nak.message_type == MessageType.NAK
	assert nak.your_ip == IPv4Address(0)
	assert set(nak.options) == {Option.MESSAGE_TYPE, Option.SERVER_IDENTIFIER,
		Option.MESSAGE}
	assert sent[-1][1] == (BROADCAST_ADDRESS, DHCP_CLIENT_PORT)
	assert server.pool.state_of('192.168.1.60') == LeaseState.FREE


def test_renewal_refreshes_expiry(server, sent, clock):
	dora(server)
	clock.now = 50
	ack = server.on_datagram(make_request(MessageType.REQUEST, xid=2,
		ciaddr=FIRST))
	assert ack.message_type == MessageType.ACK
	assert ack.your_ip == FIRST
	assert sent[-1][1] == (FIRST, DHCP_CLIENT_PORT)
	assert server.pool.lease_for_mac(MAC).expires_at == 150


def test_renewal_of_someone_elses_address(server):
	dora(server)
	nak = server.on_datagram(make_request(MessageType.REQUEST, xid=2,
		mac=OTHER_MAC, ciaddr=FIRST))
	assert nak.message_type == MessageType.NAK
	assert server.pool.lease_for_mac(MAC).state == LeaseState.BOUND


def test_init_reboot(server, sent):
	dora(server)
	ack = server.on_datagram(make_request(MessageType.REQUEST, xid=3,
		options={Option.REQUESTED_IP_ADDRESS: FIRST}))
	assert ack.message_type == MessageType.ACK

	nak = server.on_datagram(make_request(MessageType.REQUEST, xid=4,
		options={Option.REQUESTED_IP_ADDRESS: '192.168.1.70'}))
	assert nak.message_type == MessageType.NAK

	count = len(sent)
	assert server.on_datagram(make_request(MessageType.REQUEST, xid=5,
		options={Option.REQUESTED_IP_ADDRESS: '10.9.9.9'})) is None
	assert len(sent) == count


def test_request_for_another_server(server, sent):
	server.on_datagram(make_request(MessageType.DISCOVER))
	assert server.on_datagram(make_request(MessageType.REQUEST, options={
		Option.REQUESTED_IP_ADDRESS: FIRST,
		Option.SERVER_IDENTIFIER: '192.168.1.2',
	})) is None
	assert len(sent) == 1
	assert 1 not in server.transactions


def test_inform_grants_no_lease(server, sent):
	ack = server.on_datagram(make_request(MessageType.INFORM,
		ciaddr='192.168.1.77', options={
			Option.PARAMETER_REQUEST_LIST: [1, 3, 51],
		}))
	assert ack.message_type == MessageType.ACK
	assert ack.your_ip == IPv4Address(0)
	assert Option.SUBNET_MASK in ack.options
	for code in (Option.IP_ADDRESS_LEASE_TIME, Option.RENEWAL_TIME_VALUE,
		Option.REBINDING_TIME_VALUE):
		assert code not in ack.options
	assert sent[-1][1] == (IPv4Address('192.168.1.77'), DHCP_CLIENT_PORT)
	assert server.pool.leases == {}


def test_release_frees_the_address(server, sent):
	dora(server)
	count = len(sent)
	assert server.on_datagram(make_request(MessageType.RELEASE, xid=9,
		ciaddr=FIRST, options={Option.SERVER_IDENTIFIER: SERVER})) is None
	assert len(sent) == count
	assert server.pool.is_free(FIRST)


def test_decline_quarantines_the_address(server):
	server.on_datagram(make_request(MessageType.DISCOVER))
	assert server.on_datagram(make_request(MessageType.DECLINE, options={
		Option.REQUESTED_IP_ADDRESS: FIRST,
		Option.SERVER_IDENTIFIER: SERVER,
	})) is None
	assert FIRST in server.pool.quarantined
	offer = server.on_datagram(make_request(MessageType.DISCOVER, xid=2,
		mac=OTHER_MAC))
	assert offer.your_ip == IPv4Address('192.168.1.51')


def test_exhausted_pool_stays_silent(logger, sent, clock):
	server = make_server(logger, sent, clock,
		range=('192.168.1.50', '192.168.1.50'))
	assert server.on_datagram(make_request(MessageType.DISCOVER)) is not None
	assert server.on_datagram(make_request(MessageType.DISCOVER, xid=2,
		mac=OTHER_MAC)) is None
	assert len(sent) == 1


def test_client_identifier_is_echoed(server):
	client_id = b'\x01' + MAC
	offer = server.on_datagram(make_request(MessageType.DISCOVER, options={
		Option.CLIENT_IDENTIFIER: client_id,
	}))
	assert offer.options[Option.CLIENT_IDENTIFIER] == client_id
	assert server.pool.lease_for_mac(MAC).client_id == client_id

	nak = server.on_datagram(make_request(MessageType.REQUEST, xid=2,
		mac=OTHER_MAC, options={
			Option.CLIENT_IDENTIFIER: client_id,
			Option.REQUESTED_IP_ADDRESS: FIRST,
			Option.SERVER_IDENTIFIER: SERVER,
		}))
	assert nak.options[Option.CLIENT_IDENTIFIER] == client_id


def test_garbage_is_dropped(server, sent):
	assert server.on_datagram(b'\x01\x02\x03') is None
	reply = DHCPMessage(op=Operation.REPLY, hwaddr=MAC)
	reply.options[Option.MESSAGE_TYPE] = MessageType.OFFER
	assert server.on_datagram(reply.encode()) is None
	assert sent == []


def test_empty_hardware_address_is_dropped(server, sent):
	assert server.on_datagram(make_request(MessageType.DISCOVER, mac=b'')) is None
	assert server.on_datagram(make_request(MessageType.DISCOVER,
		mac=MAC[:4])) is None
	assert sent == []
	assert server.pool.leases == {}


def test_listen_only_drops_empty_hardware_address(logger, sent, clock):
	config = ServerConfig(CONFIG)
	server = Server(logger, config, sent,
		pool=LeasePool.from_config(config, clock=clock), listen_only=True)
	assert server.on_datagram(make_request(MessageType.DISCOVER, mac=b'')) is None


def test_own_address_is_never_offered(logger, sent, clock):
	server = make_server(logger, sent, clock,
		range=('192.168.1.1', '192.168.1.100'))
	assert server.ip == SERVER
	offer = server.on_datagram(make_request(MessageType.DISCOVER))
	assert offer.your_ip == IPv4Address('192.168.1.2')
	assert server.pool.free_count() == 98


def test_listen_only_never_answers(logger, sent, clock):
	config = ServerConfig(CONFIG)
	server = Server(logger, config, sent,
		pool=LeasePool.from_config(config, clock=clock), listen_only=True)
	request = server.on_datagram(make_request(MessageType.DISCOVER))
	assert request.message_type == MessageType.DISCOVER
	assert sent == []
	assert server.pool.leases == {}


def test_boot_file_fills_the_header(logger, sent, clock):
	server = make_server(logger, sent, clock,
		boot_file=make_boot_file_getter('0:bios/pxelinux.0'))
	offer = server.on_datagram(make_request(MessageType.DISCOVER, options={
		93: b'\x00\x00',
	}))
	assert offer.boot_file_name == b'bios/pxelinux.0'
	assert DHCPMessage.decode(sent[-1][0]).boot_file_name == b'bios/pxelinux.0'


def test_boot_file_sees_request_and_response(logger, sent, clock):
	seen = []

	def boot_file(request, response):
		seen.append((request.message_type, response.message_type))

	server = make_server(logger, sent, clock, boot_file=boot_file)
	offer = server.on_datagram(make_request(MessageType.DISCOVER))
	assert offer.boot_file_name == b''
	assert seen == [(MessageType.DISCOVER, MessageType.OFFER)]


def test_large_responses_shed_optional_options(logger, sent, clock):
	server = make_server(logger, sent, clock, hostname='h' * 250,
		domain_name='d' * 250, force_options=['hostname', 'domain_name',
		'broadcast'])
	offer = server.on_datagram(make_request(MessageType.DISCOVER, options={
		Option.MAXIMUM_DHCP_MESSAGE_SIZE: 576,
	}))
	assert len(sent[-1][0]) <= 576
	assert Option.HOST_NAME in offer.options
	assert Option.DOMAIN_NAME not in offer.options
	assert Option.BROADCAST_ADDRESS not in offer.options
	assert offer.options[Option.IP_ADDRESS_LEASE_TIME] == 100


def test_housekeeping_reclaims_stale_offers(logger, sent, clock, reactor,
	advance):
	server = make_server(logger, sent, clock, reactor)
	server.on_datagram(make_request(MessageType.DISCOVER))
	assert server.pool.free_count() == 50

	advance(70)
	assert server.pool.free_count() == 51
	assert server.transactions == {}

	server.close()
	assert reactor.pending() == []
