"""
cellcomm Communication Module
Role-specific state machines that exchange cells until termination.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..common.cell import Cell
from ..exceptions import (
    ConnectionError as CellCommConnectionError,
    PeerDisconnectedError,
    ProtocolError,
)

if TYPE_CHECKING:
    from .session import Session


class ClientState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"
    CLOSED = "closed"


class ServerState(Enum):
    AWAITING_FIRST = "awaiting_first"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass(frozen=True)
class CommunicationResult:
    """Outcome of a completed communication loop."""

    exchanges: int  # ordinary cell round trips
    acknowledged: bool  # peer confirmed termination


class Communication:
    """
    Base class of the communication loops.

    Subclasses implement _run() and set self.state as they move through
    their states. Any transport or framing failure ends the loop in the
    closed state and surfaces as PeerDisconnectedError.
    """

    initial_state: Enum
    closed_state: Enum

    def __init__(self, session: 'Session'):
        self.session = session
        self.state = self.initial_state

    def run(self) -> CommunicationResult:
        try:
            return self._run()
        except (CellCommConnectionError, ProtocolError, OSError) as e:
            self.state = self.closed_state
            raise PeerDisconnectedError(self.session.address) from e

    def _run(self) -> CommunicationResult:
        raise NotImplementedError

    def _describe(self, owner: str, index: int, cell: Cell) -> str:
        return f"{owner} Cell {index} of connection with session {self.session.dest_id}\n{cell}"


class ClientCommunication(Communication):
    """
    Client-driven loop.

    RUNNING: send an ordinary cell, wait for the reply; repeat until the
    configured duration has elapsed (checked after each exchange, so at least
    one exchange happens). TERMINATING: send a termination cell and wait for
    the acknowledgement. CLOSED: done.
    """

    initial_state = ClientState.RUNNING
    closed_state = ClientState.CLOSED

    def _run(self) -> CommunicationResult:
        session = self.session
        emit = session.emit

        emit("Communication begun.")
        started = session.clock()
        exchanges = 0

        while self.state is ClientState.RUNNING:
            emit("Creating new cell.")
            client_cell = session.create_cell()
            emit(self._describe("Client", exchanges, client_cell))
            emit("Sending cell to server.")
            session.send_cell(client_cell)

            emit("Waiting for server reply...")
            server_cell = session.receive_cell()
            emit("Cell received.")
            emit(self._describe("Server", exchanges, server_cell))
            exchanges += 1

            if (session.clock() - started) * 1000 >= session.duration_ms:
                self.state = ClientState.TERMINATING

        emit("Time out.")
        emit("Sending terminate request...")
        session.send_cell(session.create_cell(end_connection=True))

        emit("Acknowledging end of connection by server...")
        ack = session.receive_cell()
        if ack.is_termination:
            emit("Termination acknowledged.")
        else:
            emit("Termination was not acknowledged.")

        self.state = ClientState.CLOSED
        emit("End of communication.")
        return CommunicationResult(exchanges=exchanges, acknowledged=ack.is_termination)


class ServerCommunication(Communication):
    """
    Server-driven loop.

    AWAITING_FIRST: wait for the client's first cell. RUNNING: reply to each
    ordinary cell and wait for the next. CLOSED: on a termination request,
    send the acknowledgement and stop.
    """

    initial_state = ServerState.AWAITING_FIRST
    closed_state = ServerState.CLOSED

    def _run(self) -> CommunicationResult:
        session = self.session
        emit = session.emit

        emit("Communication has begun.")
        emit("Waiting for client reply...")
        client_cell = session.receive_cell()
        emit("Client cell received.")
        self.state = ServerState.RUNNING
        exchanges = 0

        while not client_cell.is_termination:
            emit(self._describe("Client", exchanges, client_cell))
            emit("Creating new cell.")
            server_cell = session.create_cell()
            emit(self._describe("Server", exchanges, server_cell))
            emit("Sending new cell.")
            session.send_cell(server_cell)
            exchanges += 1

            emit("Waiting for client reply...")
            client_cell = session.receive_cell()

        emit("Client requested connection termination.")
        session.send_cell(session.create_cell(end_connection=True))
        emit("End of connection acknowledged.")

        self.state = ServerState.CLOSED
        emit("End of communication.")
        return CommunicationResult(exchanges=exchanges, acknowledged=True)
