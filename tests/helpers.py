"""Shared test doubles for the notification path."""

import asyncio
from collections.abc import Callable


class FakeTransport:
    """In-memory transport recording frames."""

    def __init__(self, fail_on_send: bool = False) -> None:
        self.frames: list[str] = []
        self.accepted = False
        self.close_calls = 0
        self.fail_on_send = fail_on_send
        self._gone = asyncio.Event()

    async def accept(self) -> None:
        self.accepted = True

    async def send(self, frame: str) -> None:
        if self.fail_on_send:
            raise ConnectionResetError("peer reset")
        self.frames.append(frame)

    async def receive(self) -> None:
        await self._gone.wait()

    async def close(self) -> None:
        self.close_calls += 1

    def disconnect(self) -> None:
        self._gone.set()


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until predicate holds or fail the test."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)
