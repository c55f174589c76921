"""cellcomm Client Package."""

from .client import Client
from .connection import SocksProxy, open_connection, socks5_connect

__all__ = ['Client', 'SocksProxy', 'open_connection', 'socks5_connect']
