"""
Core request queue, ranking and request lifecycle logic for KTV Request Hub.
Everything in this package works on in-memory snapshots and never touches Flask.
"""

from .entities import Song, SongRequest, User, Role, RequestStatus
from .errors import (
    KtvError,
    Unauthenticated,
    Forbidden,
    NotFound,
    InvalidState,
    ValidationFailed,
    BackendUnavailable,
)

__all__ = [
    'Song', 'SongRequest', 'User', 'Role', 'RequestStatus',
    'KtvError', 'Unauthenticated', 'Forbidden', 'NotFound', 'InvalidState',
    'ValidationFailed', 'BackendUnavailable',
]
