import logging

from cellcomm.client import Client
from cellcomm.session import CommunicationResult

from cellcomm_cli.config import ClientSettings
from cellcomm_cli.logging_setup import setup_logging


class CellCommClient:
    def __init__(self, settings: ClientSettings):
        self.settings = settings

        self.logger: logging.Logger | None = None
        self.trace_logger: logging.Logger | None = None

        self.client: Client | None = None

        self.configure_logging()
        self.configure_client()

    def configure_logging(self):
        setup_logging(level=self.settings.logging_level, log_file=self.settings.log_file)

        self.logger = logging.getLogger("cellcomm-client")
        self.trace_logger = logging.getLogger("cellcomm.trace")

    def configure_client(self):
        self.client = Client(
            server_host=self.settings.server_host,
            server_port=self.settings.server_port,
            duration=self.settings.duration,
            proxy=self.settings.proxy,
            connect_timeout=self.settings.connect_timeout,
            read_timeout=self.settings.read_timeout,
            logger=logging.getLogger("cellcomm.client"),
        )

    def print_settings(self):
        self.logger.info(f"hostname: {self.settings.server_host}")
        self.logger.info(f"port: {self.settings.server_port}")
        if self.settings.use_proxy:
            self.logger.info(f"proxy: {self.settings.proxy_host}:{self.settings.proxy_port}")
        else:
            self.logger.info("proxy: none")
        self.logger.info(f"duration: {self.settings.duration}")
        self.logger.info(f"file name: {self.settings.log_file}")

    def run(self) -> CommunicationResult:
        self.logger.info("Initializing client.")
        self.print_settings()

        try:
            if self.settings.use_proxy:
                self.logger.info("Connecting socket to OR proxy.")
            else:
                self.logger.info("Connecting socket.")
            self.logger.info("Setting up communication session.")
            self.client.connect()

            self.logger.info(f"Handshake done. Server session: {self.client.session.dest_id}")
            self.logger.info("Initializing communications.")
            result = self.client.run(on_trace=self.trace_logger.info)
        finally:
            self.client.close()

        self.logger.info("End of connection.")
        return result
