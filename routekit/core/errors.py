"""Core error types for the route management system."""

from pathlib import Path


class RoutekitError(Exception):
    """Base exception for all routekit errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize with a message and optional cause.

        Args:
            message: The error message
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.cause = cause
        if cause:
            # Use Python's exception chaining
            self.__cause__ = cause


class ConfigurationError(RoutekitError):
    """Raised when configuration loading or validation fails."""


class RouteDiscoveryError(RoutekitError):
    """Raised when a routes directory cannot be scanned at all."""

    def __init__(
        self,
        message: str,
        directory: Path | str | None = None,
        cause: Exception | None = None,
    ):
        """Initialize with a message, directory, and cause.

        Args:
            message: The error message
            directory: The directory that could not be read
            cause: The underlying exception
        """
        super().__init__(message, cause)
        self.directory = directory


class RouteLoadError(RoutekitError):
    """Raised inside the loader when a single route module cannot be loaded.

    Never escapes ``RouteLoader``; it is converted into a ``LoadError`` record.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.source_path = source_path


class RouteRegistrationError(RoutekitError):
    """Raised when route registration fails during initialization."""

    def __init__(
        self,
        message: str,
        route_paths: list[str] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.route_paths = route_paths or []


class RouteManagerStateError(RoutekitError):
    """Raised when the route manager is driven from an invalid state."""

    def __init__(self, message: str, state: str | None = None):
        super().__init__(message)
        self.state = state
