"""
Domain errors shared by services and routers.
"""


class AppError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """A required field is missing or malformed."""

    status_code = 400


class NotFoundError(AppError):
    """Unknown device, category, task or note id."""

    status_code = 404


class ProviderError(AppError):
    """Network or HTTP failure talking to a push provider."""

    status_code = 502

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StoreIndexError(AppError):
    """Ordered query rejected because no supporting index exists."""


class NotifyError(AppError):
    """Notification delivery failed for an entity change."""
