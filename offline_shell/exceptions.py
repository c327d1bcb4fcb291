"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class OfflineShellError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(OfflineShellError):
    """Raised for issues related to configuration loading or validation."""


class CacheIOError(OfflineShellError):
    """Raised when a cache namespace cannot be read from or written to."""


class NetworkError(OfflineShellError):
    """
    Raised when a fetch produces no response at all (connection refused, timeout,
    open circuit). A response with a non-ok status is not a NetworkError.
    """


class LifecycleError(OfflineShellError):
    """Raised when seeding or evicting cache namespaces did not fully succeed."""

    def __init__(self, message: str, failures: dict[str, str] | None = None):
        super().__init__(message)
        self.failures = failures or {}
