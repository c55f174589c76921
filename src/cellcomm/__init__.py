"""
cellcomm - Cell Exchange Harness

A client and a server exchange fixed-layout binary cells over one TCP
connection, optionally through a local SOCKS proxy, for a duration chosen
by the client.
"""

from .common import Cell, FramedTransport
from .session import Session, Role, CommunicationResult
from .server import Listener
from .client import Client, SocksProxy
from .trace import TraceChannel, TraceRelay
from .exceptions import (
    CellCommError,
    ProtocolError,
    MalformedFrameError,
    MaxFrameExceededError,
    ConnectionError,
    ConnectionClosedError,
    HandshakeError,
    ProxyError,
    PeerDisconnectedError,
    IllegalStateError,
)

__version__ = "0.1.0"
__all__ = [
    # Protocol
    'Cell',
    'FramedTransport',
    'Session',
    'Role',
    'CommunicationResult',
    # Endpoints
    'Listener',
    'Client',
    'SocksProxy',
    # Trace
    'TraceChannel',
    'TraceRelay',
    # Exceptions
    'CellCommError',
    'ProtocolError',
    'MalformedFrameError',
    'MaxFrameExceededError',
    'ConnectionError',
    'ConnectionClosedError',
    'HandshakeError',
    'ProxyError',
    'PeerDisconnectedError',
    'IllegalStateError',
]
