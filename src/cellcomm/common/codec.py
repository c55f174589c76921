"""
cellcomm Codec Module
Fixed-size binary encoding of cells and handshake payloads.
"""

import struct

from .cell import Cell
from .constants import CELL_SIZE, HANDSHAKE_SIZE
from ..exceptions import MalformedFrameError


# sender, receiver, year, month, day, hour, minute, second, millisecond, end_connection, payload, padding
CELL_STRUCT = struct.Struct('>hhhbbbbbhbi4x')
HANDSHAKE_STRUCT = struct.Struct('>h6x')
SESSION_ID_STRUCT = struct.Struct('>h')

assert CELL_STRUCT.size == CELL_SIZE
assert HANDSHAKE_STRUCT.size == HANDSHAKE_SIZE


def encode_cell(cell: Cell) -> bytes:
    """
    Encode a cell to its 22-byte wire form.

    Raises:
        MalformedFrameError: If a field does not fit its signed wire type
    """
    try:
        return CELL_STRUCT.pack(
            cell.sender_id,
            cell.receiver_id,
            cell.year,
            cell.month,
            cell.day,
            cell.hour,
            cell.minute,
            cell.second,
            cell.millisecond,
            cell.end_connection,
            cell.payload,
        )
    except struct.error as e:
        raise MalformedFrameError(f"Cell field out of range: {e}") from e


def decode_cell(data: bytes) -> Cell:
    """
    Decode a cell from the first 22 bytes of data; trailing bytes are ignored.

    Raises:
        MalformedFrameError: If data is shorter than a cell
    """
    if len(data) < CELL_SIZE:
        raise MalformedFrameError(f"Data too short for cell: {len(data)} < {CELL_SIZE}")

    return Cell(*CELL_STRUCT.unpack_from(data))


def encode_handshake(session_id: int) -> bytes:
    """Encode a session identifier as an 8-byte handshake payload."""
    try:
        return HANDSHAKE_STRUCT.pack(session_id)
    except struct.error as e:
        raise MalformedFrameError(f"Session id out of range: {e}") from e


def decode_handshake(data: bytes) -> int:
    """Read the peer's session identifier from the first 2 bytes of a handshake payload."""
    if len(data) < SESSION_ID_STRUCT.size:
        raise MalformedFrameError(
            f"Data too short for handshake: {len(data)} < {SESSION_ID_STRUCT.size}"
        )

    (session_id,) = SESSION_ID_STRUCT.unpack_from(data)
    return session_id
