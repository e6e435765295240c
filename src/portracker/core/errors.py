"""Error types shared by services and the HTTP layer."""


class PortrackerError(Exception):
    """Base class for errors raised by portracker services."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class IdentityValidationError(PortrackerError, ValueError):
    """A port identity or annotation payload failed validation.

    Always tagged with the offending field so the HTTP layer can report it.
    """

    def __init__(self, field: str, details: str) -> None:
        super().__init__("Validation failed", details)
        self.field = field


class StorageError(PortrackerError):
    """A database read or write failed after validation passed."""

    def __init__(self, details: str, message: str = "Database operation failed") -> None:
        super().__init__(message, details)


class ConflictError(StorageError):
    """The write collides with an existing row or a foreign key."""

    def __init__(self, details: str, message: str = "Conflict") -> None:
        super().__init__(details, message)


class NotFoundError(PortrackerError):
    """The requested row does not exist."""


class PeerUnavailableError(PortrackerError):
    """A peer server could not be reached while proxying a request."""

    def __init__(self, message: str, details: str | None = None, status_code: int = 502) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class CollectionError(PortrackerError):
    """A collector failed while gathering ports."""

    def __init__(self, details: str, message: str = "Failed to scan ports") -> None:
        super().__init__(message, details)


class UnsupportedOperationError(PortrackerError):
    """The request cannot be served for this kind of server."""
