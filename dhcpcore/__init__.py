"""dhcpcore

DHCPv4 server and client protocol engine

"""

__author__ = 'Tori Wolf <wiredwolf@wiredwolf.gg>'
__version__ = '0.1.0'
# SPDX-License-Identifier: MIT
__license__ = 'MIT'

from . import v4 as ipv4

__all__ = ['ipv4']

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
