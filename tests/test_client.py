from __future__ import annotations

import socket
import struct
import threading

import pytest

from cellcomm.client import Client, SocksProxy, open_connection, socks5_connect
from cellcomm.common.codec import encode_handshake
from cellcomm.common.transport import recv_exact, recv_frame, send_frame
from cellcomm.exceptions import ConnectionError, PeerDisconnectedError, ProxyError
from cellcomm.server import Listener


def _fake_proxy(sock: socket.socket, seen: dict, method: int = 0x00, reply: int = 0x00,
                atyp: int = 0x01) -> None:
    """Minimal SOCKS5 server side of one CONNECT request."""
    seen["greeting"] = recv_exact(sock, 3)
    sock.sendall(bytes([0x05, method]))
    if method != 0x00:
        return

    seen["header"] = recv_exact(sock, 5)
    seen["host"] = recv_exact(sock, seen["header"][4]).decode()
    (seen["port"],) = struct.unpack(">H", recv_exact(sock, 2))

    if atyp == 0x01:
        bound = bytes([127, 0, 0, 1])
    else:
        bound = bytes([9]) + b"localhost"
    sock.sendall(bytes([0x05, reply, 0x00, atyp]) + bound + struct.pack(">H", 9050))
    sock.sendall(b"after")


def _with_proxy(sock_pair, **kwargs):
    a, b = sock_pair
    seen: dict = {}
    proxy = threading.Thread(target=_fake_proxy, args=(b, seen), kwargs=kwargs)
    proxy.start()
    return a, seen, proxy


def test_socks5_connect_sends_domain_request(sock_pair) -> None:
    a, seen, proxy = _with_proxy(sock_pair)

    socks5_connect(a, "abcdefghijklmnop.onion", 4207)
    proxy.join(timeout=5)

    assert seen["greeting"] == b"\x05\x01\x00"
    assert seen["header"] == bytes([0x05, 0x01, 0x00, 0x03, 22])
    assert seen["host"] == "abcdefghijklmnop.onion"
    assert seen["port"] == 4207
    # The bound address was consumed, the stream now carries application data.
    assert recv_exact(a, 5) == b"after"


def test_socks5_connect_skips_domain_bound_address(sock_pair) -> None:
    a, _, proxy = _with_proxy(sock_pair, atyp=0x03)

    socks5_connect(a, "example.org", 80)
    proxy.join(timeout=5)

    assert recv_exact(a, 5) == b"after"


def test_socks5_failure_reply_raises_proxy_error(sock_pair) -> None:
    a, _, proxy = _with_proxy(sock_pair, reply=0x05)

    with pytest.raises(ProxyError, match="connection refused"):
        socks5_connect(a, "example.org", 80)
    proxy.join(timeout=5)


def test_socks5_auth_rejection_raises_proxy_error(sock_pair) -> None:
    a, _, proxy = _with_proxy(sock_pair, method=0xFF)

    with pytest.raises(ProxyError):
        socks5_connect(a, "example.org", 80)
    proxy.join(timeout=5)


def _closed_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_open_connection_to_closed_port_fails() -> None:
    port = _closed_port()

    with pytest.raises(ConnectionError, match=f"127.0.0.1:{port}"):
        open_connection("127.0.0.1", port, timeout=2)


def test_open_connection_to_missing_proxy_fails() -> None:
    proxy = SocksProxy(host="127.0.0.1", port=_closed_port())

    with pytest.raises(ConnectionError, match="through proxy"):
        open_connection("example.onion", 4207, timeout=2, proxy=proxy)


def test_client_run_against_listener(tmp_path) -> None:
    lines = []
    with Listener(host="127.0.0.1", port=0, output_dir=str(tmp_path), accept_timeout=0.05) as listener:
        host, port = listener.address
        client = Client(server_host=host, server_port=port, duration=0, connect_timeout=5)

        result = client.run(on_trace=lines.append)

    assert result.exchanges == 1
    assert result.acknowledged
    assert lines[0] == "Communication begun."
    assert "Termination acknowledged." in lines
    assert lines[-1] == "End of communication."
    assert client.session.transport.closed


def test_client_run_when_server_goes_away(tmp_path) -> None:
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)

    def _handshake_then_hang_up() -> None:
        conn, _ = server.accept()
        recv_frame(conn)
        send_frame(conn, encode_handshake(5))
        recv_frame(conn)
        conn.close()

    peer = threading.Thread(target=_handshake_then_hang_up)
    peer.start()
    try:
        client = Client(server_host="127.0.0.1", server_port=server.getsockname()[1], duration=60)
        with pytest.raises(PeerDisconnectedError):
            client.run()
        peer.join(timeout=5)
    finally:
        server.close()
