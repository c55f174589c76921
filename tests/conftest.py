from __future__ import annotations

import socket
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

# Ensure local "src/" takes precedence over any globally-installed "cellcomm" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from cellcomm.exceptions import ConnectionClosedError  # noqa: E402


class ScriptedTransport:
    """In-memory transport: replays queued frames and records what is sent."""

    def __init__(self, incoming: List[bytes], address: Optional[Tuple[str, int]] = ("203.0.113.7", 4207)):
        self.incoming = list(incoming)
        self.sent: List[bytes] = []
        self.address = address
        self.closed = False

    def send(self, payload: bytes) -> None:
        if self.closed:
            raise ConnectionClosedError("Transport closed")
        self.sent.append(payload)

    def receive(self) -> bytes:
        if self.closed or not self.incoming:
            raise ConnectionClosedError("Connection closed while reading (got 0/4 bytes)")
        return self.incoming.pop(0)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_transport():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def sock_pair():
    """A connected pair of stream sockets, closed after the test."""
    a, b = socket.socketpair()
    yield a, b
    for s in (a, b):
        try:
            s.close()
        except OSError:
            pass
