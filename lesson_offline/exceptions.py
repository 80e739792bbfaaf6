"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class LessonOfflineError(Exception):
    """Base exception for all application-specific errors."""


class NetworkFetchError(LessonOfflineError):
    """
    Raised when a resource cannot be retrieved, either because the server answered
    with a non-success status or because the transport failed.
    """

    def __init__(self, url: str, status: int | None = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"HTTP error {status} while fetching '{url}'"
        else:
            message = f"Network failure while fetching '{url}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StorageError(LessonOfflineError):
    """Raised when a local store cannot be opened or an operation on it fails."""


class AuxiliaryFetchError(LessonOfflineError):
    """
    Describes a failed subtitle or thumbnail retrieval. It is logged by the
    orchestrator and never propagated to the caller.
    """

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Could not cache auxiliary asset '{url}': {cause}")


class DownloadCancelledError(LessonOfflineError):
    """Raised when a download is aborted through its cancellation token."""


class ConfigurationError(LessonOfflineError):
    """Raised for issues related to configuration loading or validation."""
