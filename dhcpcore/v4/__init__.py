"""dhcpcore.v4

DHCPv4 messages, lease pool, server and client

"""

__author__ = 'Tori Wolf <wiredwolf@wiredwolf.gg>'
# SPDX-License-Identifier: MIT
__license__ = 'MIT'

from .message import *
from .message import __all__ as message_all
from .rfc2132 import *
from .rfc2132 import __all__ as rfc2132_all
from .config import ServerConfig, ClientConfig
from .lease_pool import LeaseState, Lease, LeasePool
from .option_codec import OptionCodec
from .server import Server
from .client import Client, ClientState

__all__ = [
	*message_all,
	*rfc2132_all,
	'ServerConfig', 'ClientConfig',
	'LeaseState', 'Lease', 'LeasePool',
	'OptionCodec',
	'Server',
	'Client', 'ClientState',
]

# NOTE(tori): rfc2131 - done
# NOTE(tori): rfc2132 - done
# NOTE(tori): rfc3396 - done
# NOTE(tori): rfc6842 - done

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
