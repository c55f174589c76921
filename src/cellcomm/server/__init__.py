"""cellcomm Server Package."""

from .listener import Listener, FileSinkFactory, SinkFactory
from .registry import SessionWorker, SessionRegistry

__all__ = [
    'Listener',
    'FileSinkFactory',
    'SinkFactory',
    'SessionWorker',
    'SessionRegistry',
]
