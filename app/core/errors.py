"""Error types raised by the progress and gamification engines."""


class ServiceError(Exception):
    """Base class for service errors."""


class PersistenceError(ServiceError):
    """A read or write against the relational store failed."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NotificationError(ServiceError):
    """The outbound email API rejected or failed a request."""


class ChatServiceError(ServiceError):
    """The chat-completion API failed or returned an unusable payload."""
