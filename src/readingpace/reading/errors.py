"""Errors raised by reading session operations."""


class SessionError(Exception):
    """Base exception for reading session errors."""

    pass


class SessionStateError(SessionError, ValueError):
    """A lifecycle request is not permitted in the session's current state."""

    pass


class SessionConflictError(SessionStateError):
    """A book already has an active or paused session."""

    pass


class NoActiveSessionError(SessionStateError):
    """A book has no active or paused session."""

    pass


class InvalidTransitionError(SessionStateError):
    """The session's state does not allow the requested transition."""

    pass


class SessionValidationError(SessionError, ValueError):
    """Page input was rejected (negative, or end before start)."""

    pass


class SessionBusyError(SessionError):
    """Another lifecycle request for the same book is still in flight."""

    pass


class SessionRequestError(SessionError):
    """The store failed or timed out while handling a request."""

    pass


class BookNotFoundError(SessionError, LookupError):
    """The referenced book does not exist."""

    pass


class SessionNotFoundError(SessionError, LookupError):
    """The referenced reading session does not exist."""

    pass
