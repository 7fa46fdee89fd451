"""Dev server configuration loaded from environment variables."""
from pathlib import Path

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_bind(value: str) -> tuple[str, int]:
    """Split a ``host:port`` bind string.

    Args:
        value: Address such as ``127.0.0.1:47109``.

    Returns:
        Tuple of (host, port).

    Raises:
        ValueError: If the string is not a valid host:port pair.
    """
    host, sep, port_str = value.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"Bind address must be host:port, got {value!r}")
    host = host.strip("[]")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in bind address {value!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in bind address {value!r}")
    return host, port


class Settings(BaseSettings):
    """Dev server configuration loaded from environment variables.

    Attributes:
        root: Build output directory, served and watched.
        asset_bind: host:port for the asset server.
        notify_bind: host:port for the reload notification server.
        debounce_ms: Quiet period before a reload is broadcast.
        queue_size: Outbound notification queue capacity per client.
        max_clients: Maximum number of concurrently connected clients.
        force_polling: Skip the native observer and poll the root.
        poll_interval: Seconds between polls when polling.
        heartbeat_interval: Seconds between SSE keep-alive pings.
        shutdown_timeout: Seconds to wait for servers to stop.
        inject_client: Inject the reload agent script into HTML pages.
        build_command: Shell command run once before serving.
        debug: Enable debug-level logging.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVRELOAD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    root: Path = Path("dist")
    asset_bind: str = "127.0.0.1:47109"
    notify_bind: str = "127.0.0.1:47110"
    debounce_ms: int = 100
    queue_size: int = 1
    max_clients: int = 100
    force_polling: bool = False
    poll_interval: float = 1.0
    heartbeat_interval: float = 15.0
    shutdown_timeout: float = 5.0
    inject_client: bool = False
    build_command: str | None = None
    debug: bool = False

    @field_validator("asset_bind", "notify_bind")
    @classmethod
    def _validate_bind(cls, value: str) -> str:
        parse_bind(value)
        return value.strip()

    @field_validator("debounce_ms", "queue_size", "max_clients")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("poll_interval", "heartbeat_interval", "shutdown_timeout")
    @classmethod
    def _validate_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @computed_field
    @property
    def asset_host(self) -> str:
        """Host part of the asset bind address."""
        return parse_bind(self.asset_bind)[0]

    @computed_field
    @property
    def asset_port(self) -> int:
        """Port part of the asset bind address."""
        return parse_bind(self.asset_bind)[1]

    @computed_field
    @property
    def notify_host(self) -> str:
        """Host part of the notification bind address."""
        return parse_bind(self.notify_bind)[0]

    @computed_field
    @property
    def notify_port(self) -> int:
        """Port part of the notification bind address."""
        return parse_bind(self.notify_bind)[1]

    @property
    def debounce_seconds(self) -> float:
        """Debounce window in seconds."""
        return self.debounce_ms / 1000.0
