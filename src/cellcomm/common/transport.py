"""
cellcomm Transport Module
Length-prefixed framing over blocking stream sockets.
"""

import socket
import struct
import threading
from typing import Optional, Tuple

from .constants import LENGTH_PREFIX_SIZE, MAX_FRAME_SIZE
from ..exceptions import (
    ConnectionClosedError,
    MalformedFrameError,
    MaxFrameExceededError,
)


LENGTH_STRUCT = struct.Struct('>i')


def recv_exact(sock: socket.socket, size: int) -> bytes:
    """
    Receive exact number of bytes from socket.

    Uses bytearray and memoryview for O(n) performance instead of O(n^2)
    from repeated bytes concatenation.

    Args:
        sock: Socket to read from
        size: Exact number of bytes to receive

    Returns:
        Received bytes

    Raises:
        ConnectionClosedError: If the stream ends or fails before all bytes arrive
    """
    buffer = bytearray(size)
    view = memoryview(buffer)
    received = 0

    while received < size:
        try:
            chunk_size = sock.recv_into(view[received:], size - received)
        except OSError as e:
            raise ConnectionClosedError(
                f"Connection failed while reading (got {received}/{size} bytes): {e}"
            ) from e
        if chunk_size == 0:
            raise ConnectionClosedError(
                f"Connection closed while reading (got {received}/{size} bytes)"
            )
        received += chunk_size

    return bytes(buffer)


def recv_frame(sock: socket.socket, max_frame_size: int = MAX_FRAME_SIZE) -> bytes:
    """
    Receive one length-prefixed frame from socket.

    Args:
        sock: Socket to read from
        max_frame_size: Maximum allowed payload size

    Returns:
        Frame payload

    Raises:
        ConnectionClosedError: If connection is closed before the frame is complete
        MalformedFrameError: If the declared length is negative
        MaxFrameExceededError: If the declared length exceeds max size
    """
    header = recv_exact(sock, LENGTH_PREFIX_SIZE)
    (length,) = LENGTH_STRUCT.unpack(header)

    if length < 0:
        raise MalformedFrameError(f"Negative frame length: {length}")

    if length > max_frame_size:
        raise MaxFrameExceededError(length, max_frame_size)

    if length == 0:
        return b''

    return recv_exact(sock, length)


def send_frame(sock: socket.socket, payload: bytes, max_frame_size: int = MAX_FRAME_SIZE) -> None:
    """
    Send one length-prefixed frame over socket.

    Raises:
        MaxFrameExceededError: If payload exceeds max size
        ConnectionClosedError: If connection is closed
    """
    if len(payload) > max_frame_size:
        raise MaxFrameExceededError(len(payload), max_frame_size)

    try:
        sock.sendall(LENGTH_STRUCT.pack(len(payload)) + payload)
    except OSError as e:
        raise ConnectionClosedError(f"Failed to send frame: {e}") from e


class FramedTransport:
    """
    Frame-level wrapper around one connected stream socket.

    The transport exclusively owns the socket. close() may be called from
    another thread to unblock a pending receive().
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Optional[Tuple[str, int]] = None,
        read_timeout: Optional[float] = None,
        max_frame_size: int = MAX_FRAME_SIZE,
    ):
        self._socket = sock
        self._max_frame_size = max_frame_size
        self._closed = False
        self._lock = threading.Lock()

        if address is None:
            try:
                address = sock.getpeername()[:2]
            except OSError:
                address = None
        self._address = address

        if read_timeout is not None and read_timeout > 0:
            self._socket.settimeout(read_timeout)

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Get remote address (host, port)."""
        return self._address

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def send(self, payload: bytes) -> None:
        """Write one frame."""
        if self.closed:
            raise ConnectionClosedError("Transport closed")
        send_frame(self._socket, payload, self._max_frame_size)

    def receive(self) -> bytes:
        """Block until one complete frame has been read."""
        if self.closed:
            raise ConnectionClosedError("Transport closed")
        return recv_frame(self._socket, self._max_frame_size)

    def close(self) -> None:
        """Shut down and close the socket."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        # shutdown() wakes up a recv() blocked in another thread, close() alone may not
        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._socket.close()

    def __enter__(self) -> 'FramedTransport':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"FramedTransport({self._address}, closed={self.closed})"
