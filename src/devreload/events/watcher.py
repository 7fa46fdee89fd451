"""Filesystem watcher producing a deduplicated stream of change signals."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Literal

import structlog
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from devreload.errors import ConfigurationError, WatcherError
from devreload.events.types import TEMP_FILE_NAMES, TEMP_FILE_SUFFIXES, ChangeEvent

logger = structlog.get_logger()

WatchMode = Literal["native", "polling"]

# Opened/closed events are reads (including our own asset server's).
MUTATION_EVENTS: frozenset[str] = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
})


def is_temp_file(path: str) -> bool:
    """Check if path is a temporary file that should be ignored.

    Only editor suffixes and exact editor file names count, so build
    outputs such as ``template.html`` or ``tmp_bundle.js`` are never
    mistaken for scratch files.

    Args:
        path: File path to check.

    Returns:
        True if the file is a temporary file.
    """
    name = Path(path).name
    return name in TEMP_FILE_NAMES or name.endswith(TEMP_FILE_SUFFIXES)


def _decode_path(raw: str | bytes) -> str:
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode("utf-8", errors="replace")


class ChangeHandler(FileSystemEventHandler):
    """Watchdog handler that reduces every mutation to a bare signal.

    Runs on the observer thread; ``notify`` must be thread-safe.
    """

    def __init__(self, notify: Callable[[], None]) -> None:
        """Initialize change handler.

        Args:
            notify: Thread-safe callable invoked once per mutation.
        """
        super().__init__()
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Forward mutation events, ignoring reads and temp files.

        Args:
            event: Raw watchdog filesystem event.
        """
        if event.event_type not in MUTATION_EVENTS:
            return

        paths = [event.src_path]
        # A rename from a swap file onto a real file is a change to the latter.
        if event.event_type == EVENT_TYPE_MOVED and event.dest_path:
            paths.append(event.dest_path)
        if all(is_temp_file(_decode_path(path)) for path in paths):
            return

        self._notify()


class FilesystemWatcher:
    """Recursive watcher over the build output directory.

    Prefers the platform's native notification mechanism and falls back
    to polling when it cannot be started or dies while running. Raw
    events are bridged from the observer thread onto the event loop
    through a single-slot queue, so a signal arriving while another is
    still unconsumed is deduplicated.

    Attributes:
        root: Directory being watched.
        mode: Observation mechanism in use, or None when not running.
    """

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        force_polling: bool = False,
        poll_interval: float = 1.0,
        supervise_interval: float = 1.0,
    ) -> None:
        """Initialize filesystem watcher.

        Args:
            root: Directory to watch recursively.
            loop: Event loop that consumes the change stream.
            force_polling: Skip the native observer entirely.
            poll_interval: Seconds between directory snapshots when polling.
            supervise_interval: Seconds between native observer health checks.
        """
        self._root = root
        self._loop = loop
        self._force_polling = force_polling
        self._poll_interval = poll_interval
        self._supervise_interval = supervise_interval
        self._handler = ChangeHandler(self._notify_threadsafe)
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=1)
        self._observer: BaseObserver | None = None
        self._mode: WatchMode | None = None
        self._supervisor: asyncio.Task[None] | None = None
        self._stopped = False
        self._deduplicated = 0

    @property
    def root(self) -> Path:
        """Directory being watched."""
        return self._root

    @property
    def mode(self) -> WatchMode | None:
        """Observation mechanism in use."""
        return self._mode

    @property
    def is_running(self) -> bool:
        """Whether an observer is currently active."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def deduplicated_events(self) -> int:
        """Raw signals folded into an already pending one."""
        return self._deduplicated

    def _notify_threadsafe(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._enqueue)
        except RuntimeError:
            # Loop already closed; nothing left to notify.
            return

    def _enqueue(self) -> None:
        if self._stopped:
            return
        if self._queue.full():
            self._deduplicated += 1
            return
        self._queue.put_nowait(ChangeEvent())

    def _schedule(self, observer: BaseObserver) -> BaseObserver:
        observer.schedule(self._handler, str(self._root), recursive=True)
        try:
            observer.start()
        except BaseException:
            with contextlib.suppress(RuntimeError):
                observer.stop()
            raise
        return observer

    def _start_polling(self) -> None:
        try:
            self._observer = self._schedule(
                PollingObserver(timeout=self._poll_interval),
            )
        except OSError as e:
            raise WatcherError(f"Cannot watch {self._root}: {e}") from e
        self._mode = "polling"
        logger.info(
            "watcher_polling",
            root=str(self._root),
            poll_interval=self._poll_interval,
        )

    def start(self) -> None:
        """Start observing the root directory.

        Raises:
            ConfigurationError: If the root does not exist or is not a
                directory.
            WatcherError: If the watcher was already stopped, or neither the
                native nor the polling observer can be started.
        """
        if self._stopped:
            raise WatcherError("Watcher cannot be restarted after stop()")
        if self._observer is not None:
            return

        if not self._root.exists():
            raise ConfigurationError(f"Root directory does not exist: {self._root}")
        if not self._root.is_dir():
            raise ConfigurationError(f"Root path is not a directory: {self._root}")

        if not self._force_polling:
            try:
                self._observer = self._schedule(Observer())
                self._mode = "native"
            except OSError as e:
                logger.warning(
                    "watcher_native_failed",
                    root=str(self._root),
                    error=str(e),
                )

        if self._observer is None:
            self._start_polling()
        elif self._mode == "native":
            self._supervisor = self._loop.create_task(self._supervise())

        logger.info("watcher_started", root=str(self._root), mode=self._mode)

    def _native_healthy(self) -> bool:
        observer = self._observer
        if observer is None or not observer.is_alive():
            return False
        return all(emitter.is_alive() for emitter in observer.emitters)

    async def _supervise(self) -> None:
        while self._mode == "native":
            await asyncio.sleep(self._supervise_interval)
            if self._stopped or self._native_healthy():
                continue

            logger.warning("watcher_native_died", root=str(self._root))
            dead = self._observer
            self._observer = None
            if dead is not None:
                await asyncio.to_thread(self._release, dead)
            try:
                self._start_polling()
            except WatcherError as e:
                logger.error("watcher_failed", root=str(self._root), error=str(e))
                self._mode = None
                return

    @staticmethod
    def _release(observer: BaseObserver) -> None:
        with contextlib.suppress(RuntimeError):
            observer.stop()
            observer.join(timeout=5.0)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Iterate change signals until the watcher is stopped.

        Yields:
            One ChangeEvent per (deduplicated) filesystem mutation.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def stop(self) -> None:
        """Stop observing and release the OS watch handle.

        Idempotent. Ends any active ``events()`` iteration.
        """
        if self._stopped:
            return
        self._stopped = True

        if self._supervisor is not None:
            self._supervisor.cancel()
            self._supervisor = None

        if self._observer is not None:
            self._release(self._observer)
            self._observer = None

        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

        logger.info("watcher_stopped", root=str(self._root), mode=self._mode)
        self._mode = None
