# SPDX-License-Identifier: MIT

__all__ = ['Listener', 'DHCP_SERVER_PORT', 'DHCP_CLIENT_PORT',
	'BROADCAST_ADDRESS']

import socket
import threading
from ipaddress import IPv4Address

DHCP_ADDRESS = '0.0.0.0'
DHCP_TYPE = socket.SOCK_DGRAM

DHCP_SERVER_PORT = 67
DHCP_CLIENT_PORT = 68

BROADCAST_ADDRESS = IPv4Address('255.255.255.255')


class Listener:
	"""UDP socket whose datagrams are handed to a reactor.

	The receive thread only reads; everything it gets is posted to the
	reactor, so handlers always run on the reactor's thread.
	"""

	def __init__(self, logger, reactor, host=DHCP_ADDRESS,
		port=DHCP_SERVER_PORT):
		self.logger = logger
		self.reactor = reactor
		self.socket = socket.socket(socket.AF_INET, DHCP_TYPE)
		self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
		self.socket.bind((host, port))
		self.socket.settimeout(1)
		self.running = False
		self.thread = None

	def recv_target(self, handler):
		while self.running:
			try:
				data, address = self.socket.recvfrom(65535)
			except socket.timeout:
				continue
			except OSError as e:
				if self.running:
					self.logger.error('receive failed (caused by %r)', e)
				break
			source = (IPv4Address(address[0]), address[1])
			self.reactor.post(handler, data, source)

	def start(self, handler):
		if self.running:
			return False
		self.running = True
		self.thread = threading.Thread(target=self.recv_target,
			args=(handler,), daemon=True)
		self.thread.start()
		return True

	def send(self, data, address):
		ip, port = address
		self.socket.sendto(data, (str(ip), port))

	def close(self):
		self.running = False
		if self.thread is not None:
			self.thread.join()
			self.thread = None
		self.socket.close()

	def __enter__(self):
		return self

	def __exit__(self, *exc_info):
		self.close()

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
