"""Error taxonomy for the dev live-reload server."""


class DevReloadError(Exception):
    """Base class for errors that abort startup with a non-zero exit."""


class ConfigurationError(DevReloadError):
    """Raised when configuration is unusable (missing root, bad address)."""


class BindError(DevReloadError):
    """Raised when a listening address cannot be bound at startup."""

    def __init__(self, message: str, host: str, port: int) -> None:
        """Initialize bind error.

        Args:
            message: Error description.
            host: Host that failed to bind.
            port: Port that failed to bind.
        """
        super().__init__(message)
        self.host = host
        self.port = port


class WatcherError(DevReloadError):
    """Raised when the filesystem watcher cannot observe anything."""


class BuildError(DevReloadError):
    """Raised when the configured build command exits non-zero."""

    def __init__(self, message: str, returncode: int) -> None:
        """Initialize build error.

        Args:
            message: Error description.
            returncode: Exit status of the build process.
        """
        super().__init__(message)
        self.returncode = returncode


class ServerExitError(DevReloadError):
    """Raised when an embedded HTTP server stops without a shutdown request."""


class CapacityError(Exception):
    """Raised when the broadcaster cannot accept another client."""


class InvalidTransitionError(Exception):
    """Raised on an illegal connection state transition."""
