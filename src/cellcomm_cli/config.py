"""
Server and client configuration.
"""

import logging

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cellcomm.client import SocksProxy
from cellcomm.common.constants import (
    DEFAULT_ACCEPT_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PORT,
    DEFAULT_PROXY_HOST,
    DEFAULT_PROXY_PORT,
    MAX_DURATION,
)


class BaseAppSettings(BaseSettings):
    """Settings shared by both applications."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CELLCOMM_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    logging_level: str = "INFO"

    @field_validator("logging_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown logging level: {value}")
        return value


class ServerSettings(BaseAppSettings):
    """Server settings."""

    # Listener settings
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    listen_backlog: int = Field(default=DEFAULT_LISTEN_BACKLOG, ge=1)
    accept_timeout: float = Field(default=DEFAULT_ACCEPT_TIMEOUT, gt=0)
    read_timeout: Optional[float] = Field(default=None, gt=0)

    # Session trace files and main log
    output_dir: str = DEFAULT_OUTPUT_DIR
    logging_on_file: bool = True
    main_log_name: str = "mainLog.txt"

    @property
    def main_log_path(self) -> Path:
        return Path(self.output_dir) / self.main_log_name


class ClientSettings(BaseAppSettings):
    """Client settings."""

    # Target server
    server_host: str = "127.0.0.1"
    server_port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    # Communication duration in seconds
    duration: int = Field(default=10, ge=1, le=MAX_DURATION)

    # SOCKS proxy
    use_proxy: bool = False
    proxy_host: str = DEFAULT_PROXY_HOST
    proxy_port: int = Field(default=DEFAULT_PROXY_PORT, ge=1, le=65535)

    # Timeouts
    connect_timeout: float = Field(default=DEFAULT_CONNECT_TIMEOUT, gt=0)
    read_timeout: Optional[float] = Field(default=None, gt=0)

    # Log file with status and trace lines
    log_file: str = "client.log"

    @property
    def proxy(self) -> Optional[SocksProxy]:
        if not self.use_proxy:
            return None
        return SocksProxy(host=self.proxy_host, port=self.proxy_port)
