"""
cellcomm Session Module
Per-connection protocol state: identity, handshake and the communication loop.
"""

import logging
import random
import time

from enum import Enum
from typing import Callable, Optional, Tuple

from ..common.cell import Cell
from ..common.codec import encode_cell, decode_cell, encode_handshake, decode_handshake
from ..common.constants import SESSION_ID_BOUND
from ..common.transport import FramedTransport
from ..exceptions import (
    ConnectionError as CellCommConnectionError,
    HandshakeError,
    IllegalStateError,
    ProtocolError,
)
from ..trace import TraceChannel
from .communication import (
    ClientCommunication,
    Communication,
    CommunicationResult,
    ServerCommunication,
)


class Role(Enum):
    CLIENT = "client"
    SERVER = "server"


class Session:
    """
    One logical connection between a client and a server.

    The session owns its transport. Its role is fixed at construction and
    decides the handshake order and which communication loop runs.

    Example usage:
        session = Session.client(FramedTransport(sock), duration_ms=10_000)
        session.handshake()
        result = session.communicate()
        session.close()
    """

    def __init__(
        self,
        transport: FramedTransport,
        role: Role,
        duration_ms: Optional[int] = None,
        trace: Optional[TraceChannel] = None,
        logger: Optional[logging.Logger] = None,
        session_id: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if role is Role.CLIENT and duration_ms is None:
            raise ValueError("Client sessions require a duration")
        if role is Role.SERVER and duration_ms is not None:
            raise ValueError("Duration is decided by the client")

        self.transport = transport
        self.role = role
        self.duration_ms = duration_ms
        self.trace = trace
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

        self._rng = rng or random.Random()
        self._session_id = session_id if session_id is not None else self._rng.randrange(SESSION_ID_BOUND)
        self._dest_id: Optional[int] = None
        self._communication: Optional[Communication] = None

    @classmethod
    def client(cls, transport: FramedTransport, duration_ms: int, **kwargs) -> 'Session':
        return cls(transport, Role.CLIENT, duration_ms=duration_ms, **kwargs)

    @classmethod
    def server(cls, transport: FramedTransport, **kwargs) -> 'Session':
        return cls(transport, Role.SERVER, **kwargs)

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def dest_id(self) -> int:
        """
        The peer's session id.

        Raises:
            IllegalStateError: If the handshake was not established
        """
        if self._dest_id is None:
            raise IllegalStateError("Handshake not established. Unknown destination ID.")
        return self._dest_id

    @property
    def handshaken(self) -> bool:
        return self._dest_id is not None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        return self.transport.address

    @property
    def state(self) -> Optional[Enum]:
        """Current state of the communication loop, None before it starts."""
        if self._communication is None:
            return None
        return self._communication.state

    def handshake(self) -> int:
        """
        Exchange session ids with the peer.

        Returns:
            The peer's session id

        Raises:
            IllegalStateError: If the handshake was already established
            HandshakeError: If sending or receiving fails
        """
        if self._dest_id is not None:
            raise IllegalStateError("Handshake already established")

        try:
            if self.role is Role.CLIENT:
                self.transport.send(encode_handshake(self._session_id))
                dest_id = decode_handshake(self.transport.receive())
            else:
                dest_id = decode_handshake(self.transport.receive())
                self.transport.send(encode_handshake(self._session_id))
        except (CellCommConnectionError, ProtocolError, OSError) as e:
            raise HandshakeError(f"Handshake with {self._peer_host()} failed: {e}") from e

        self._dest_id = dest_id
        self.logger.debug(f"Session {self._session_id} paired with session {dest_id}")
        return dest_id

    def communicate(self) -> CommunicationResult:
        """
        Run the communication loop for this session's role until it ends.

        Raises:
            IllegalStateError: If the handshake was not established or the loop already ran
            PeerDisconnectedError: If the transport fails during the loop
        """
        if self._communication is not None:
            raise IllegalStateError("Communication already started")
        if self._dest_id is None:
            raise IllegalStateError("Handshake not established. Unknown destination ID.")

        if self.role is Role.CLIENT:
            self._communication = ClientCommunication(self)
        else:
            self._communication = ServerCommunication(self)

        return self._communication.run()

    def create_cell(self, end_connection: bool = False) -> Cell:
        return Cell.create(
            sender_id=self._session_id,
            receiver_id=self.dest_id,
            end_connection=end_connection,
            rng=self._rng,
        )

    def send_cell(self, cell: Cell) -> None:
        self.transport.send(encode_cell(cell))

    def receive_cell(self) -> Cell:
        return decode_cell(self.transport.receive())

    def emit(self, message: str) -> None:
        """Write a progress line to the trace channel, if any."""
        self.logger.debug(message)
        if self.trace is not None:
            self.trace.emit(message)

    def close(self) -> None:
        """Close the transport and end the trace stream."""
        self.transport.close()
        if self.trace is not None:
            self.trace.close()

    def _peer_host(self) -> str:
        address = self.address
        return address[0] if address else "unknown"

    def __enter__(self) -> 'Session':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Session({self.role.value}, id={self._session_id}, dest={self._dest_id})"
