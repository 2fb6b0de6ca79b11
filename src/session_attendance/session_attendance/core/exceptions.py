class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class NoActiveWindowError(NotFoundError):
    """Raised when there is no open attendance window to check in to."""


class NotEnrolledError(NotFoundError):
    """Raised when a subject has no stored biometric reference."""


class PersistenceError(DomainError):
    """Raised when the storage layer fails (unreachable, constraint violation, ...)."""


class DuplicateRecordError(PersistenceError):
    """Raised when an insert hits a uniqueness constraint."""
