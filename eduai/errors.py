"""Exception types raised by the EduAI offline layer."""


class OfflineError(Exception):
    """Base class for offline-layer errors."""


class NetworkError(OfflineError):
    """A request could not reach the server (connection error or timeout)."""

    def __init__(self, message, url=None):
        super().__init__(message)
        self.url = url


class CachePopulationError(OfflineError):
    """A bulk cache add failed; nothing was written."""


class InvalidMessageError(OfflineError):
    """A protocol message is missing required fields."""
