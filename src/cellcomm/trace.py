"""
cellcomm Trace Module
Message-passing channel for human-readable session progress lines.
"""

import logging
import queue
import threading
from typing import Iterator, Optional, TextIO


_END = object()


class TraceChannel:
    """
    Unbounded, thread-safe channel of trace lines.

    A session loop emits lines; one consumer iterates them until the channel
    is closed. Emitting never blocks, so a slow consumer cannot stall the loop.
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def emit(self, line: str) -> None:
        """Queue a line; dropped once the channel is closed."""
        with self._lock:
            if self._closed:
                return
            self._queue.put(line)

    def close(self) -> None:
        """Mark end of stream. Lines already queued are still delivered."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_END)

    def __iter__(self) -> Iterator[str]:
        while True:
            item = self._queue.get()
            if item is _END:
                return
            yield item


class TraceRelay:
    """
    Copies a trace channel into a text sink on its own thread.

    The sink is closed when the channel ends. Write failures stop the relay
    and close the channel; they never reach the session loop.
    """

    def __init__(
        self,
        channel: TraceChannel,
        sink: TextIO,
        name: str = "trace-relay",
        logger: Optional[logging.Logger] = None,
    ):
        self.channel = channel
        self.sink = sink
        self.logger = logger or logging.getLogger(__name__)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            for line in self.channel:
                self.sink.write(line + "\n")
                self.sink.flush()
        except (OSError, ValueError) as e:
            self.logger.error(f"Trace relay '{self._thread.name}' stopped: {e}")
            self.channel.close()
        finally:
            try:
                self.sink.close()
            except OSError as e:
                self.logger.error(f"Error closing trace sink: {e}")
