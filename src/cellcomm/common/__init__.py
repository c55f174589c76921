"""cellcomm Common Package - cell model, codec and framing."""

from .constants import (
    LENGTH_PREFIX_SIZE,
    CELL_SIZE,
    HANDSHAKE_SIZE,
    MAX_FRAME_SIZE,
    CELL_ORDINARY,
    CELL_TERMINATE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ACCEPT_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PROXY_HOST,
    DEFAULT_PROXY_PORT,
    MAX_DURATION,
)
from .cell import Cell
from .codec import encode_cell, decode_cell, encode_handshake, decode_handshake
from .transport import recv_exact, recv_frame, send_frame, FramedTransport

__all__ = [
    # Constants
    'LENGTH_PREFIX_SIZE', 'CELL_SIZE', 'HANDSHAKE_SIZE', 'MAX_FRAME_SIZE',
    'CELL_ORDINARY', 'CELL_TERMINATE',
    'DEFAULT_CONNECT_TIMEOUT', 'DEFAULT_ACCEPT_TIMEOUT', 'DEFAULT_PORT',
    'DEFAULT_LISTEN_BACKLOG', 'DEFAULT_OUTPUT_DIR',
    'DEFAULT_PROXY_HOST', 'DEFAULT_PROXY_PORT', 'MAX_DURATION',
    # Cell
    'Cell',
    # Codec
    'encode_cell', 'decode_cell', 'encode_handshake', 'decode_handshake',
    # Transport
    'recv_exact', 'recv_frame', 'send_frame', 'FramedTransport',
]
