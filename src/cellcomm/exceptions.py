"""
cellcomm Exceptions Module
Exception hierarchy for the cell exchange protocol.
"""

from typing import Optional, Tuple


class CellCommError(Exception):
    """Base exception for all cellcomm errors."""
    pass


class ProtocolError(CellCommError):
    """Protocol-level errors (bad frames, bad cells)."""
    pass


class MalformedFrameError(ProtocolError):
    """Declared length or encoded size inconsistent with the wire format."""
    pass


class MaxFrameExceededError(MalformedFrameError):
    """Frame size exceeds maximum allowed."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Frame size {size} exceeds maximum {max_size}")


class ConnectionError(CellCommError):
    """Connection-related errors."""
    pass


class ConnectionClosedError(ConnectionError):
    """Peer closed or reset the stream mid-frame."""
    pass


class HandshakeError(ConnectionError):
    """Handshake failed."""
    pass


class ProxyError(ConnectionError):
    """SOCKS proxy refused or failed the connection."""
    pass


class PeerDisconnectedError(ConnectionError):
    """Transport failure during a communication loop."""

    def __init__(self, address: Optional[Tuple[str, int]], message: str = "disconnected"):
        self.address = address
        host = address[0] if address else "unknown"
        super().__init__(f"{host} {message}.")


class IllegalStateError(CellCommError):
    """Operation not valid in the session's current state."""
    pass
