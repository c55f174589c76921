from __future__ import annotations

import itertools

import pytest

from cellcomm.common.cell import Cell
from cellcomm.common.codec import decode_cell, encode_cell, encode_handshake
from cellcomm.exceptions import PeerDisconnectedError
from cellcomm.session import ClientState, ServerState, Session
from cellcomm.trace import TraceChannel

CLIENT_ID = 1111
SERVER_ID = 2222


def _cell_bytes(sender: int, receiver: int, end: bool = False) -> bytes:
    return encode_cell(Cell.create(sender_id=sender, receiver_id=receiver, end_connection=end))


def _ticking_clock(step: float):
    """Monotonic clock advancing by step seconds on every call."""
    counter = itertools.count()
    return lambda: next(counter) * step


def _paired_server(scripted_transport, incoming, trace=None) -> Session:
    transport = scripted_transport([encode_handshake(CLIENT_ID)] + incoming)
    session = Session.server(transport, session_id=SERVER_ID, trace=trace)
    session.handshake()
    transport.sent.clear()
    return session


def _paired_client(scripted_transport, incoming, duration_ms, trace=None, clock=None) -> Session:
    transport = scripted_transport([encode_handshake(SERVER_ID)] + incoming)
    kwargs = {"clock": clock} if clock is not None else {}
    session = Session.client(transport, duration_ms, session_id=CLIENT_ID, trace=trace, **kwargs)
    session.handshake()
    transport.sent.clear()
    return session


def test_server_loop_replies_then_acknowledges(scripted_transport) -> None:
    """3 ordinary cells + 1 termination give 3 ordinary replies + 1 acknowledgement."""

    incoming = [_cell_bytes(CLIENT_ID, SERVER_ID) for _ in range(3)]
    incoming.append(_cell_bytes(CLIENT_ID, SERVER_ID, end=True))
    session = _paired_server(scripted_transport, incoming)

    result = session.communicate()

    sent = [decode_cell(data) for data in session.transport.sent]
    assert [c.end_connection for c in sent] == [0, 0, 0, 1]
    assert all(c.sender_id == SERVER_ID and c.receiver_id == CLIENT_ID for c in sent)
    assert result.exchanges == 3
    assert result.acknowledged
    assert session.state is ServerState.CLOSED
    assert session.transport.incoming == []


def test_server_loop_with_immediate_termination(scripted_transport) -> None:
    session = _paired_server(scripted_transport, [_cell_bytes(CLIENT_ID, SERVER_ID, end=True)])

    result = session.communicate()

    assert result.exchanges == 0
    assert [decode_cell(d).end_connection for d in session.transport.sent] == [1]


def test_client_loop_with_zero_duration_sends_two_cells(scripted_transport) -> None:
    """One ordinary exchange, one termination exchange, nothing more."""

    replies = [_cell_bytes(SERVER_ID, CLIENT_ID), _cell_bytes(SERVER_ID, CLIENT_ID, end=True)]
    session = _paired_client(scripted_transport, replies, duration_ms=0)

    result = session.communicate()

    sent = [decode_cell(data) for data in session.transport.sent]
    assert [c.end_connection for c in sent] == [0, 1]
    assert all(c.sender_id == CLIENT_ID and c.receiver_id == SERVER_ID for c in sent)
    assert result.exchanges == 1
    assert result.acknowledged
    assert session.state is ClientState.CLOSED


def test_client_loop_runs_until_duration_elapses(scripted_transport) -> None:
    # The clock advances 30 ms per reading: exchanges end at 30, 60, 90, 120 ms.
    replies = [_cell_bytes(SERVER_ID, CLIENT_ID) for _ in range(4)]
    replies.append(_cell_bytes(SERVER_ID, CLIENT_ID, end=True))
    session = _paired_client(scripted_transport, replies, duration_ms=100, clock=_ticking_clock(0.03))

    result = session.communicate()

    assert result.exchanges == 4
    assert [decode_cell(d).end_connection for d in session.transport.sent] == [0, 0, 0, 0, 1]


def test_missing_acknowledgement_is_traced_not_raised(scripted_transport) -> None:
    trace = TraceChannel()
    replies = [_cell_bytes(SERVER_ID, CLIENT_ID), _cell_bytes(SERVER_ID, CLIENT_ID)]
    session = _paired_client(scripted_transport, replies, duration_ms=0, trace=trace)

    result = session.communicate()
    trace.close()
    lines = list(trace)

    assert not result.acknowledged
    assert "Termination was not acknowledged." in lines
    assert "Termination acknowledged." not in lines
    assert lines[-1] == "End of communication."


def test_client_trace_lines_follow_the_exchange(scripted_transport) -> None:
    trace = TraceChannel()
    replies = [_cell_bytes(SERVER_ID, CLIENT_ID), _cell_bytes(SERVER_ID, CLIENT_ID, end=True)]
    session = _paired_client(scripted_transport, replies, duration_ms=0, trace=trace)

    session.communicate()
    session.close()
    lines = list(trace)

    assert lines[0] == "Communication begun."
    assert lines[2].startswith(f"Client Cell 0 of connection with session {SERVER_ID}\n")
    assert "Sending terminate request..." in lines
    assert "Termination acknowledged." in lines


def test_client_loop_peer_disconnect(scripted_transport) -> None:
    """The server vanishing mid-loop surfaces as PeerDisconnectedError."""

    session = _paired_client(scripted_transport, [_cell_bytes(SERVER_ID, CLIENT_ID)], duration_ms=10_000,
                             clock=lambda: 0.0)

    with pytest.raises(PeerDisconnectedError) as exc_info:
        session.communicate()

    assert exc_info.value.address == ("203.0.113.7", 4207)
    assert "203.0.113.7" in str(exc_info.value)
    assert exc_info.value.__cause__ is not None
    assert session.state is ClientState.CLOSED


def test_server_loop_peer_disconnect(scripted_transport) -> None:
    session = _paired_server(scripted_transport, [_cell_bytes(CLIENT_ID, SERVER_ID)])

    with pytest.raises(PeerDisconnectedError):
        session.communicate()

    assert session.state is ServerState.CLOSED
    # The first ordinary cell was still answered.
    assert len(session.transport.sent) == 1


def test_malformed_cell_ends_the_loop(scripted_transport) -> None:
    session = _paired_server(scripted_transport, [b"\x00" * 10])

    with pytest.raises(PeerDisconnectedError):
        session.communicate()

    assert session.state is ServerState.CLOSED


def test_communicate_runs_once(scripted_transport) -> None:
    session = _paired_server(scripted_transport, [_cell_bytes(CLIENT_ID, SERVER_ID, end=True)])
    session.communicate()

    from cellcomm.exceptions import IllegalStateError

    with pytest.raises(IllegalStateError):
        session.communicate()
