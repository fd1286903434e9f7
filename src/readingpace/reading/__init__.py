"""Reading session timing, lifecycle and storage."""

from .errors import (
    BookNotFoundError,
    InvalidTransitionError,
    NoActiveSessionError,
    SessionBusyError,
    SessionConflictError,
    SessionError,
    SessionNotFoundError,
    SessionRequestError,
    SessionStateError,
    SessionValidationError,
)
from .lifecycle import SessionLifecycleController
from .records import SessionRecords
from .store import LocalSessionStore, SessionStore
from .timer import SessionTimer, compute_elapsed_seconds, format_elapsed

__all__ = [
    "BookNotFoundError",
    "InvalidTransitionError",
    "NoActiveSessionError",
    "SessionBusyError",
    "SessionConflictError",
    "SessionError",
    "SessionNotFoundError",
    "SessionRequestError",
    "SessionStateError",
    "SessionValidationError",
    "SessionLifecycleController",
    "SessionRecords",
    "LocalSessionStore",
    "SessionStore",
    "SessionTimer",
    "compute_elapsed_seconds",
    "format_elapsed",
]
