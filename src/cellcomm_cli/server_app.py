import sys
import logging

from typing import Optional, TextIO

from cellcomm.server import Listener

from cellcomm_cli.config import ServerSettings
from cellcomm_cli.logging_setup import setup_logging


class CellCommServer:
    def __init__(self, settings: ServerSettings, stdin: Optional[TextIO] = None):
        self.settings = settings
        self.stdin = stdin or sys.stdin

        self.logger: logging.Logger | None = None

        self.listener: Listener | None = None

        self.configure_logging()
        self.configure_listener()

    def configure_logging(self):
        log_file = self.settings.main_log_path if self.settings.logging_on_file else None
        setup_logging(level=self.settings.logging_level, log_file=log_file)

        self.logger = logging.getLogger("cellcomm-server")

    def configure_listener(self):
        listener_logger = logging.getLogger("cellcomm.server")
        listener_logger.setLevel(self.settings.logging_level)

        self.listener = Listener(
            host=self.settings.host,
            port=self.settings.port,
            output_dir=self.settings.output_dir,
            logger=listener_logger,
            listen_backlog=self.settings.listen_backlog,
            accept_timeout=self.settings.accept_timeout,
            read_timeout=self.settings.read_timeout,
        )

    def print_settings(self):
        self.logger.info(f"server host: {self.settings.host}")
        self.logger.info(f"server port: {self.settings.port}")
        self.logger.info(f"output directory: {self.settings.output_dir}")

    def startup(self):
        self.logger.info("Initializing server.")
        self.print_settings()

        self.logger.info("Start listening to socket connections.")
        self.listener.up()

    def wait_for_quit(self):
        """Block until 'q' (or end of input) is read."""
        self.logger.info("Enter q to close server.")
        for line in self.stdin:
            if line.strip() == "q":
                return
            self.logger.info("Invalid input.")
            self.logger.info("Enter q to close server.")

    def shutdown(self):
        self.logger.info("Closing down server.")
        self.listener.down()
        self.logger.info("Server successfully closed.")

    def run(self):
        self.startup()
        try:
            self.wait_for_quit()
        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
        finally:
            self.shutdown()
