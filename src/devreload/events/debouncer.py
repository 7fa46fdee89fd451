"""Quiet-period debouncing of raw change signals."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog

from devreload.events.types import ChangeEvent, Notification

logger = structlog.get_logger()

NotifyCallback = Callable[[Notification], Awaitable[object]]


class Debouncer:
    """Collapse bursts of change signals into single notifications.

    Every incoming ChangeEvent (re)starts one timer of ``window`` seconds.
    A Notification is emitted only once the timer elapses with no further
    event, so a burst of events spaced less than ``window`` apart yields
    exactly one Notification, never earlier than ``window`` after the last
    event of the burst.

    Attributes:
        window: Quiet period in seconds.
    """

    def __init__(self, window: float = 0.1) -> None:
        """Initialize debouncer.

        Args:
            window: Quiet period in seconds.
        """
        if window <= 0:
            raise ValueError("Debounce window must be positive")
        self._window = window
        self._timer: asyncio.TimerHandle | None = None
        self._last_event = 0.0
        self._inflight: set[asyncio.Task[object]] = set()
        self._emitted = 0
        self._coalesced = 0

    @property
    def window(self) -> float:
        """Quiet period in seconds."""
        return self._window

    @property
    def pending(self) -> bool:
        """Whether a quiet-period timer is currently armed."""
        return self._timer is not None

    @property
    def emitted(self) -> int:
        """Number of notifications emitted."""
        return self._emitted

    @property
    def coalesced(self) -> int:
        """Number of events that reset an already armed timer."""
        return self._coalesced

    async def run(
        self,
        events: AsyncIterator[ChangeEvent],
        on_notify: NotifyCallback,
    ) -> None:
        """Consume change signals and emit debounced notifications.

        Returns when ``events`` is exhausted. Cancelling the call cancels
        the pending timer without emitting.

        Args:
            events: Raw change signal stream.
            on_notify: Async callable receiving each Notification.
        """
        loop = asyncio.get_running_loop()
        try:
            async for _ in events:
                self._last_event = loop.time()
                if self._timer is not None:
                    self._timer.cancel()
                    self._coalesced += 1
                self._timer = loop.call_later(
                    self._window, self._fire, loop, on_notify,
                )
        finally:
            self.cancel()

    def _fire(self, loop: asyncio.AbstractEventLoop, on_notify: NotifyCallback) -> None:
        # The loop may run a timer up to one clock tick early.
        remaining = self._window - (loop.time() - self._last_event)
        if remaining > 0:
            self._timer = loop.call_later(remaining, self._fire, loop, on_notify)
            return

        self._timer = None
        self._emitted += 1
        logger.debug("debounce_fired", window=self._window, emitted=self._emitted)

        task = loop.create_task(on_notify(Notification()))
        self._inflight.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("debounce_callback_error", error=str(error))

    def cancel(self) -> None:
        """Cancel the pending timer and any in-flight callbacks."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._inflight):
            task.cancel()
