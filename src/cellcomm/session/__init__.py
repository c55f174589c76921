"""cellcomm Session Package."""

from .session import Session, Role
from .communication import (
    Communication,
    ClientCommunication,
    ServerCommunication,
    ClientState,
    ServerState,
    CommunicationResult,
)

__all__ = [
    'Session',
    'Role',
    'Communication',
    'ClientCommunication',
    'ServerCommunication',
    'ClientState',
    'ServerState',
    'CommunicationResult',
]
