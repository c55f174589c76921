"""
cellcomm Server Registry Module
Active session bookkeeping for the listener.
"""

import logging
import threading
from typing import Iterator, List, Optional

from ..exceptions import PeerDisconnectedError
from ..session import CommunicationResult, Session
from ..trace import TraceRelay


class SessionWorker:
    """
    One accepted connection: its session, the thread running the server
    loop and the relay thread writing its trace.
    """

    def __init__(self, session: Session, logger: Optional[logging.Logger] = None):
        self.session = session
        self.logger = logger or logging.getLogger(__name__)
        self.relay: Optional[TraceRelay] = None
        self.result: Optional[CommunicationResult] = None
        self.error: Optional[PeerDisconnectedError] = None
        self._thread: Optional[threading.Thread] = None

    def start(self, relay: Optional[TraceRelay] = None) -> None:
        """Start the relay (if any) and the communication loop."""
        self.relay = relay
        if relay is not None:
            relay.start()

        self._thread = threading.Thread(
            target=self._run,
            name=f"session-{self.session.session_id}",
            daemon=True,
        )
        self._thread.start()

    def _run(self) -> None:
        try:
            self.result = self.session.communicate()
            self.logger.info(
                f"Session {self.session.dest_id} ended after {self.result.exchanges} exchanges"
            )
        except PeerDisconnectedError as e:
            self.error = e
            self.logger.warning(str(e))
        finally:
            self.session.close()

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def interrupt(self) -> None:
        """Close the session, unblocking its loop."""
        self.session.close()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
        if self.relay is not None:
            self.relay.join(timeout)

    def __repr__(self) -> str:
        return f"SessionWorker({self.session!r}, alive={self.alive})"


class SessionRegistry:
    """
    Thread-safe, append-only registry of session workers.

    Entries are never removed, so finished sessions stay inspectable until
    the listener starts again with a fresh registry.
    """

    def __init__(self):
        self._workers: List[SessionWorker] = []
        self._lock = threading.Lock()

    def add(self, worker: SessionWorker) -> None:
        with self._lock:
            self._workers.append(worker)

    def snapshot(self) -> List[SessionWorker]:
        with self._lock:
            return list(self._workers)

    def interrupt_all(self) -> None:
        """Close every registered session."""
        for worker in self.snapshot():
            worker.interrupt()

    def join_all(self, timeout: Optional[float] = None) -> None:
        """Wait for every session and relay thread to finish."""
        for worker in self.snapshot():
            worker.join(timeout)

    def __iter__(self) -> Iterator[SessionWorker]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._workers)
