"""
cellcomm Client Module
Client side of a cell exchange: connect, handshake, communicate.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from ..common.constants import DEFAULT_CONNECT_TIMEOUT, MAX_FRAME_SIZE
from ..common.transport import FramedTransport
from ..exceptions import HandshakeError
from ..session import CommunicationResult, Session
from ..trace import TraceChannel
from .connection import SocksProxy, open_connection


class Client:
    """
    cellcomm Client.

    The communication loop runs on a worker thread while run() hands the
    session's trace lines to the caller in the foreground.

    Example usage:
        with Client(server_host="127.0.0.1", server_port=4207, duration=10) as client:
            client.connect()
            result = client.run(on_trace=print)
    """

    def __init__(
        self,
        server_host: str,
        server_port: int,
        duration: float,
        proxy: Optional[SocksProxy] = None,
        connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: Optional[float] = None,
        max_frame_size: int = MAX_FRAME_SIZE,
        logger: Optional[logging.Logger] = None,
    ):
        self.server_host = server_host
        self.server_port = server_port
        self.duration = duration
        self.proxy = proxy
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_frame_size = max_frame_size
        self.logger = logger or logging.getLogger(__name__)

        self._session: Optional[Session] = None

    @property
    def duration_ms(self) -> int:
        return int(self.duration * 1000)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def connect(self) -> Session:
        """
        Connect to the server and perform the client handshake.

        Raises:
            ConnectionError: If the connection cannot be established
            HandshakeError: If the handshake fails
        """
        if self._session is not None:
            return self._session

        sock = open_connection(
            self.server_host,
            self.server_port,
            timeout=self.connect_timeout,
            proxy=self.proxy,
        )
        transport = FramedTransport(
            sock,
            (self.server_host, self.server_port),
            read_timeout=self.read_timeout,
            max_frame_size=self.max_frame_size,
        )
        session = Session.client(
            transport,
            self.duration_ms,
            trace=TraceChannel(),
            logger=self.logger,
        )

        self.logger.debug("Performing handshake.")
        try:
            session.handshake()
        except HandshakeError:
            session.close()
            raise

        self.logger.debug(f"Handshake established. Server ID: {session.dest_id}")
        self._session = session
        return session

    def run(self, on_trace: Optional[Callable[[str], None]] = None) -> CommunicationResult:
        """
        Run the communication loop to completion and close the session.

        Raises:
            PeerDisconnectedError: If the server goes away during the loop
        """
        session = self.connect()
        outcome: Dict[str, object] = {}

        def communicate() -> None:
            try:
                outcome["result"] = session.communicate()
            except Exception as e:
                outcome["error"] = e
            finally:
                session.trace.close()

        worker = threading.Thread(target=communicate, name="client-communication", daemon=True)
        worker.start()

        try:
            for line in session.trace:
                if on_trace is not None:
                    on_trace(line)
            worker.join()
        finally:
            self.close()

        if "error" in outcome:
            raise outcome["error"]
        return outcome["result"]

    def close(self) -> None:
        """Close the session, if any."""
        if self._session is not None:
            self._session.close()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
