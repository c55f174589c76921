"""
cellcomm Listener Module
TCP listener running one server session per accepted connection.
"""

import logging
import socket
import threading

from datetime import date
from pathlib import Path
from typing import Callable, Optional, TextIO, Tuple

from ..common.constants import (
    DEFAULT_ACCEPT_TIMEOUT,
    DEFAULT_JOIN_TIMEOUT,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PORT,
    MAX_FRAME_SIZE,
)
from ..common.transport import FramedTransport
from ..exceptions import HandshakeError
from ..session import Session
from ..trace import TraceChannel, TraceRelay
from .registry import SessionRegistry, SessionWorker


SinkFactory = Callable[[int, int, date], TextIO]


class FileSinkFactory:
    """Opens one trace file per session: <output_dir>/<YYYY-MM-DD>_<dest_id>_<session_id>.txt"""

    def __init__(self, output_dir: str = DEFAULT_OUTPUT_DIR):
        self.output_dir = Path(output_dir)

    def path_for(self, dest_id: int, session_id: int, day: date) -> Path:
        return self.output_dir / f"{day:%Y-%m-%d}_{dest_id}_{session_id}.txt"

    def __call__(self, dest_id: int, session_id: int, day: date) -> TextIO:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return open(self.path_for(dest_id, session_id, day), "a", encoding="utf-8")


class Listener:
    """
    cellcomm Listener.

    Accepts connections on its own thread. Every connection gets a server
    session whose handshake runs on the accept thread; the communication
    loop and the trace relay then run on threads of their own.

    Example usage:
        listener = Listener(host="0.0.0.0", port=4207, output_dir="output")
        listener.up()
        ...
        listener.down()
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        output_dir: str = DEFAULT_OUTPUT_DIR,
        logger: Optional[logging.Logger] = None,
        listen_backlog: int = DEFAULT_LISTEN_BACKLOG,
        accept_timeout: float = DEFAULT_ACCEPT_TIMEOUT,
        read_timeout: Optional[float] = None,
        max_frame_size: int = MAX_FRAME_SIZE,
        sink_factory: Optional[SinkFactory] = None,
        join_timeout: Optional[float] = DEFAULT_JOIN_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.logger = logger or logging.getLogger(__name__)
        self.listen_backlog = listen_backlog
        self.accept_timeout = accept_timeout
        self.read_timeout = read_timeout
        self.max_frame_size = max_frame_size
        self.sink_factory = sink_factory or FileSinkFactory(output_dir)
        self.join_timeout = join_timeout

        self._socket: Optional[socket.socket] = None
        self._listening = False
        self._accept_thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._sessions = SessionRegistry()

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); differs from the configured port when it was 0."""
        if self._socket is None:
            return self.host, self.port
        return self._socket.getsockname()[:2]

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    def up(self) -> None:
        """Bind the listening socket and start accepting connections."""
        if self._listening:
            self.logger.warning("Listener is already running")
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self.listen_backlog)
            sock.settimeout(self.accept_timeout)
        except OSError as e:
            sock.close()
            raise OSError(f"Error when opening socket at port {self.port}: {e}") from e

        self._socket = sock
        self._sessions = SessionRegistry()
        self._stopped.clear()
        self._listening = True

        host, port = self.address
        self.logger.info(f"Listener started on {host}:{port}")

        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            name="listener-accept",
            daemon=True,
        )
        self._accept_thread.start()

    def serve_forever(self) -> None:
        """Start listening and block until down() is called."""
        self.up()
        try:
            while not self._stopped.wait(self.accept_timeout):
                pass
        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
            self.down()

    def down(self) -> None:
        """Stop accepting, close all sessions and wait for their threads."""
        if not self._listening and self._socket is None:
            return

        self._listening = False

        # Closing the socket ends the pending accept()
        self._close_socket()

        # Unblocks a handshake that may be running on the accept thread
        self._sessions.interrupt_all()

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join()

        self.logger.info("Listener stopped")

    def _accept_loop(self) -> None:
        """Accept incoming connections until listening stops."""
        try:
            while self._listening:
                sock = self._socket
                if sock is None:
                    break
                try:
                    client_sock, address = sock.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._listening:
                        self.logger.error(f"Error accepting connection: {e}")
                        self._listening = False
                    break

                self._start_session(client_sock, address)

            self.logger.info("Listening has stopped.")

        finally:
            self._close_socket()
            self._shutdown_sessions()
            self._stopped.set()

    def _start_session(self, client_sock: socket.socket, address: Tuple[str, int]) -> None:
        """Handshake a new connection and start its loop and trace relay."""
        self.logger.info(f"Connection established from {address[0]}:{address[1]}")

        client_sock.settimeout(None)
        transport = FramedTransport(
            client_sock,
            address,
            read_timeout=self.read_timeout,
            max_frame_size=self.max_frame_size,
        )
        session = Session.server(transport, trace=TraceChannel(), logger=self.logger)
        worker = SessionWorker(session, logger=self.logger)
        self._sessions.add(worker)

        # down() may have run interrupt_all() before this session was registered
        if not self._listening:
            session.close()
            return

        self.logger.info("Performing handshake.")
        try:
            session.handshake()
        except HandshakeError as e:
            self.logger.warning(str(e))
            session.close()
            return

        dest_id = session.dest_id
        self.logger.info(f"New session set up. Client ID: {dest_id}")

        relay = None
        try:
            sink = self.sink_factory(dest_id, session.session_id, date.today())
            relay = TraceRelay(session.trace, sink, name=f"trace-{dest_id}", logger=self.logger)
        except OSError as e:
            self.logger.error(f"Failed to open trace sink for session {dest_id}: {e}")
            session.trace.close()

        self.logger.info("Starting communication.")
        worker.start(relay)

    def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def _shutdown_sessions(self) -> None:
        """Interrupt every registered session and wait for its threads."""
        workers = self._sessions.snapshot()
        self._sessions.interrupt_all()
        self._sessions.join_all(self.join_timeout)
        self.logger.info(f"Closed {len(workers)} sessions")

    def __enter__(self) -> 'Listener':
        self.up()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.down()
