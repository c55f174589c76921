"""
cellcomm Client Connection Module
Opens the client's TCP connection, directly or through a SOCKS5 proxy.
"""

import socket
import struct

from dataclasses import dataclass
from typing import Optional

from ..common.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PROXY_HOST, DEFAULT_PROXY_PORT
from ..common.transport import recv_exact
from ..exceptions import (
    ConnectionError as CellCommConnectionError,
    ConnectionClosedError,
    ProxyError,
)


class SOCKS5:
    """SOCKS5 protocol constants (RFC 1928), CONNECT command only."""
    VERSION = 0x05
    AUTH_NONE = 0x00
    AUTH_NO_ACCEPTABLE = 0xFF
    CMD_CONNECT = 0x01
    RESERVED = 0x00
    ATYP_IPV4 = 0x01
    ATYP_DOMAIN = 0x03
    ATYP_IPV6 = 0x04
    REP_SUCCESS = 0x00


REPLY_MESSAGES = {
    0x01: "general SOCKS server failure",
    0x02: "connection not allowed by ruleset",
    0x03: "network unreachable",
    0x04: "host unreachable",
    0x05: "connection refused",
    0x06: "TTL expired",
    0x07: "command not supported",
    0x08: "address type not supported",
}

BOUND_ADDRESS_SIZES = {
    SOCKS5.ATYP_IPV4: 4,
    SOCKS5.ATYP_IPV6: 16,
}


@dataclass(frozen=True)
class SocksProxy:
    """Local SOCKS5 proxy endpoint, Tor's default port unless told otherwise."""
    host: str = DEFAULT_PROXY_HOST
    port: int = DEFAULT_PROXY_PORT


def socks5_connect(sock: socket.socket, host: str, port: int) -> None:
    """
    Ask the proxy behind sock to CONNECT to host:port.

    The destination is sent as a domain name so that the proxy resolves it.

    Raises:
        ProxyError: If the proxy rejects the greeting or the request
        ConnectionClosedError: If the proxy closes the connection
    """
    sock.sendall(bytes([SOCKS5.VERSION, 1, SOCKS5.AUTH_NONE]))

    version, method = recv_exact(sock, 2)
    if version != SOCKS5.VERSION:
        raise ProxyError(f"Invalid SOCKS version in proxy reply: {version}")
    if method != SOCKS5.AUTH_NONE:
        raise ProxyError("Proxy requires an unsupported authentication method")

    try:
        name = host.encode("idna")
    except UnicodeError as e:
        raise ProxyError(f"Invalid destination host: {host!r}") from e
    if not 0 < len(name) <= 255:
        raise ProxyError(f"Invalid destination host: {host!r}")

    request = (
        struct.pack('>BBBBB', SOCKS5.VERSION, SOCKS5.CMD_CONNECT, SOCKS5.RESERVED,
                    SOCKS5.ATYP_DOMAIN, len(name))
        + name
        + struct.pack('>H', port)
    )
    sock.sendall(request)

    version, reply, _, atyp = recv_exact(sock, 4)
    if version != SOCKS5.VERSION:
        raise ProxyError(f"Invalid SOCKS version in proxy reply: {version}")
    if reply != SOCKS5.REP_SUCCESS:
        reason = REPLY_MESSAGES.get(reply, f"error 0x{reply:02X}")
        raise ProxyError(f"Proxy could not connect to {host}:{port}: {reason}")

    # Bound address and port are not used
    if atyp == SOCKS5.ATYP_DOMAIN:
        (length,) = recv_exact(sock, 1)
        recv_exact(sock, length + 2)
    elif atyp in BOUND_ADDRESS_SIZES:
        recv_exact(sock, BOUND_ADDRESS_SIZES[atyp] + 2)
    else:
        raise ProxyError(f"Unknown address type in proxy reply: {atyp}")


def open_connection(
    host: str,
    port: int,
    timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT,
    proxy: Optional[SocksProxy] = None,
) -> socket.socket:
    """
    Open a connected, blocking stream socket to host:port.

    Raises:
        ProxyError: If the proxy refuses the connection
        ConnectionError: If the connection cannot be established
    """
    target = (proxy.host, proxy.port) if proxy else (host, port)
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

    try:
        if timeout is not None:
            sock.settimeout(timeout)

        sock.connect(target)

        if proxy is not None:
            socks5_connect(sock, host, port)

        sock.settimeout(None)
        return sock

    except ProxyError:
        sock.close()
        raise
    except (ConnectionClosedError, OSError) as e:
        sock.close()
        via = f" through proxy {proxy.host}:{proxy.port}" if proxy else ""
        raise CellCommConnectionError(
            f"Error when attempting to connect to {host}:{port}{via}: {e}"
        ) from e
