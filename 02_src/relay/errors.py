"""Request-scoped error types."""


class RelayError(Exception):
    """Base class for errors raised by relay components."""

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original = original


class BackendError(RelayError):
    """The remote conversation exchange failed (timeout, transport, backend)."""


class NotificationError(RelayError):
    """Sending or editing a message through the notification channel failed."""


class FormatError(RelayError):
    """Text could not be adapted to the channel's formatting rules."""


class ConfigError(RelayError):
    """Invalid runtime configuration."""
