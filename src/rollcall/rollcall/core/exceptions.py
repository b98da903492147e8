class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a session, group or member does not exist."""


class ForbiddenError(DomainError):
    """Raised when the acting profile lacks permission for an action."""


class ConflictError(DomainError):
    """Raised on a duplicate active session or a duplicate record."""


class AlreadyMarkedError(ConflictError):
    """Raised when a student already has a record in the session.

    Terminal: the first committed record stands.
    """


class WindowExpiredError(DomainError):
    """Raised when a self submit arrives after the session window."""


class SessionClosedError(DomainError):
    """Raised when a write targets a completed session."""


class StorageError(DomainError):
    """Raised when the datastore fails. The only retryable error."""
