"""Dev server runtime wiring watcher, debouncer, broadcaster and servers."""

import asyncio
import contextlib
import math
import socket
from collections.abc import Iterator

import structlog
import uvicorn
from fastapi import FastAPI

from devreload.app import create_asset_app, create_notify_app
from devreload.build import run_build
from devreload.config import Settings
from devreload.errors import BindError, ConfigurationError, ServerExitError
from devreload.events.broadcaster import Broadcaster
from devreload.events.debouncer import Debouncer
from devreload.events.watcher import FilesystemWatcher
from devreload.lifecycle import GracefulShutdown

logger = structlog.get_logger()


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket, failing fast if unavailable.

    Args:
        host: Interface to bind.
        port: Port to bind; 0 picks a free port.

    Returns:
        Bound socket ready to be handed to uvicorn.

    Raises:
        BindError: If the address cannot be bound.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise BindError(f"Cannot bind {host}:{port}: {e}", host, port) from e
    sock.set_inheritable(True)
    return sock


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the dev server."""

    def install_signal_handlers(self) -> None:
        return

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class DevServer:
    """Owns every long-lived resource of the dev live-reload server.

    ``start()`` acquires the watch handle, both listening sockets and the
    background tasks; ``shutdown()`` releases all of them, also when
    ``start()`` failed halfway.

    Attributes:
        settings: Server configuration.
        broadcaster: Hub fanning out reload notifications.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize dev server.

        Args:
            settings: Server configuration.
        """
        self._settings = settings
        self._broadcaster = Broadcaster(
            queue_size=settings.queue_size,
            max_clients=settings.max_clients,
        )
        self._debouncer = Debouncer(settings.debounce_seconds)
        self._watcher: FilesystemWatcher | None = None
        self._sockets: list[socket.socket] = []
        self._servers: list[uvicorn.Server] = []
        self._server_tasks: list[asyncio.Task[None]] = []
        self._debounce_task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def settings(self) -> Settings:
        """Server configuration."""
        return self._settings

    @property
    def broadcaster(self) -> Broadcaster:
        """Hub fanning out reload notifications."""
        return self._broadcaster

    @property
    def watcher(self) -> FilesystemWatcher | None:
        """Active filesystem watcher."""
        return self._watcher

    @property
    def debouncer(self) -> Debouncer:
        """Debouncer feeding the broadcaster."""
        return self._debouncer

    @property
    def addresses(self) -> list[tuple[str, int]]:
        """Actually bound (host, port) pairs: assets first, then notify."""
        return [sock.getsockname()[:2] for sock in self._sockets]

    def _check_root(self) -> None:
        root = self._settings.root
        if not root.exists():
            raise ConfigurationError(f"Root directory does not exist: {root}")
        if not root.is_dir():
            raise ConfigurationError(f"Root path is not a directory: {root}")

    async def start(self) -> None:
        """Build (optionally), bind, and start every component.

        Raises:
            BuildError: If the build command fails.
            ConfigurationError: If the root directory is unusable.
            WatcherError: If the root cannot be watched.
            BindError: If either address is unavailable.
        """
        settings = self._settings
        if settings.build_command:
            await run_build(settings.build_command)

        self._check_root()

        try:
            self._watcher = FilesystemWatcher(
                settings.root,
                asyncio.get_running_loop(),
                force_polling=settings.force_polling,
                poll_interval=settings.poll_interval,
            )
            self._watcher.start()

            self._sockets.append(bind_socket(settings.asset_host, settings.asset_port))
            self._sockets.append(bind_socket(settings.notify_host, settings.notify_port))
        except BaseException:
            await self.shutdown()
            raise

        apps: list[FastAPI] = [
            create_asset_app(settings),
            create_notify_app(settings, self._broadcaster, self._watcher),
        ]
        for app, sock in zip(apps, self._sockets):
            server = _EmbeddedServer(
                uvicorn.Config(
                    app,
                    log_config=None,
                    log_level="debug" if settings.debug else "warning",
                    access_log=False,
                    lifespan="off",
                    timeout_graceful_shutdown=math.ceil(settings.shutdown_timeout),
                )
            )
            self._servers.append(server)
            self._server_tasks.append(asyncio.create_task(server.serve(sockets=[sock])))

        self._debounce_task = asyncio.create_task(
            self._debouncer.run(self._watcher.events(), self._broadcaster.publish),
        )

        while not all(server.started for server in self._servers):
            if any(task.done() for task in self._server_tasks):
                await self.shutdown()
                raise BindError("Server exited during startup", settings.asset_host, 0)
            await asyncio.sleep(0.01)

        (asset_host, asset_port), (notify_host, notify_port) = self.addresses
        logger.info(
            "devreload_started",
            root=str(settings.root),
            assets=f"http://{asset_host}:{asset_port}/",
            notify=f"ws://{notify_host}:{notify_port}/ws",
            debounce_ms=settings.debounce_ms,
            watch_mode=self._watcher.mode,
        )

    async def shutdown(self) -> None:
        """Release every resource acquired by ``start()``. Idempotent."""
        if self._stopped:
            return
        self._stopped = True

        if self._debounce_task is not None:
            self._debounce_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._debounce_task
            self._debounce_task = None

        if self._watcher is not None:
            self._watcher.stop()

        await self._broadcaster.close_all()

        for server in self._servers:
            server.should_exit = True
        if self._server_tasks:
            done, pending = await asyncio.wait(
                self._server_tasks,
                timeout=self._settings.shutdown_timeout + 1.0,
            )
            for task in pending:
                task.cancel()
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error("server_task_failed", error=str(task.exception()))
            if pending:
                await asyncio.wait(pending)

        for sock in self._sockets:
            sock.close()

        logger.info("devreload_stopped")

    async def run(self, shutdown: GracefulShutdown) -> None:
        """Start, serve until shutdown is triggered, then tear down.

        Args:
            shutdown: Shutdown coordinator, usually fed by signal handlers.

        Raises:
            ServerExitError: If an HTTP server stopped before shutdown was
                triggered.
        """
        await self.start()
        trigger = asyncio.create_task(shutdown.wait_for_trigger())
        try:
            done, _ = await asyncio.wait(
                [trigger, *self._server_tasks],
                return_when=asyncio.FIRST_COMPLETED,
            )
            if trigger not in done:
                logger.error("server_exited_unexpectedly")
                raise ServerExitError("HTTP server stopped before shutdown was requested")
        finally:
            trigger.cancel()
            await self.shutdown()
