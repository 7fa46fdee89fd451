"""Tests for devreload.events.watcher — change detection and fallback."""

import asyncio
import errno
from pathlib import Path

import pytest
from watchdog.events import (
    FileClosedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)
from watchdog.observers.polling import PollingObserver

from devreload.errors import ConfigurationError, WatcherError
from devreload.events import watcher as watcher_module
from devreload.events.types import ChangeEvent
from devreload.events.watcher import ChangeHandler, FilesystemWatcher, is_temp_file


class _ExhaustedObserver(PollingObserver):
    """Observer whose start fails like an exhausted inotify watch table."""

    def start(self) -> None:
        raise OSError(errno.ENOSPC, "inotify watch limit reached")


async def _next_event(watcher: FilesystemWatcher, timeout: float = 3.0) -> ChangeEvent:
    return await asyncio.wait_for(anext(watcher.events()), timeout=timeout)


class TestChangeHandler:
    """Event filtering on the observer thread."""

    def test_mutations_notify(self) -> None:
        calls: list[None] = []
        handler = ChangeHandler(lambda: calls.append(None))
        handler.on_any_event(FileModifiedEvent("/dist/main.wasm"))
        handler.on_any_event(FileCreatedEvent("/dist/index.html"))
        assert len(calls) == 2

    def test_reads_and_temp_files_ignored(self) -> None:
        calls: list[None] = []
        handler = ChangeHandler(lambda: calls.append(None))
        handler.on_any_event(FileClosedEvent("/dist/main.wasm"))
        handler.on_any_event(FileModifiedEvent("/dist/.index.html.swp"))
        handler.on_any_event(FileModifiedEvent("/dist/index.html~"))
        assert calls == []

    def test_move_onto_real_file_notifies(self) -> None:
        calls: list[None] = []
        handler = ChangeHandler(lambda: calls.append(None))
        handler.on_any_event(FileMovedEvent("/dist/index.html.tmp", "/dist/index.html"))
        handler.on_any_event(FileMovedEvent("/dist/a.swp", "/dist/a.swo"))
        assert len(calls) == 1

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("main.wasm", False),
            ("a.swp", True),
            ("x.tmp", True),
            ("index.html~", True),
            (".DS_Store", True),
            ("4913", True),
            ("template.html", False),
            ("tmp_bundle.js", False),
            ("swordfish.wasm", False),
            ("temperature.js", False),
            ("DS_Store.css", False),
        ],
    )
    def test_is_temp_file(self, name: str, expected: bool) -> None:
        assert is_temp_file(f"/dist/{name}") is expected


class TestFilesystemWatcher:
    """Watcher lifecycle against a real directory."""

    @pytest.mark.asyncio
    async def test_missing_root_is_configuration_error(self, tmp_path: Path) -> None:
        watcher = FilesystemWatcher(tmp_path / "missing", asyncio.get_running_loop())
        with pytest.raises(ConfigurationError):
            watcher.start()

    @pytest.mark.asyncio
    async def test_root_must_be_directory(self, tmp_path: Path) -> None:
        file_root = tmp_path / "file"
        file_root.write_text("x")
        watcher = FilesystemWatcher(file_root, asyncio.get_running_loop())
        with pytest.raises(ConfigurationError):
            watcher.start()

    @pytest.mark.asyncio
    async def test_detects_write(self, root: Path) -> None:
        watcher = FilesystemWatcher(root, asyncio.get_running_loop(), poll_interval=0.05)
        watcher.start()
        try:
            assert watcher.is_running
            await asyncio.sleep(0.1)
            (root / "main.wasm").write_bytes(b"\x00asm\x01\x00\x00\x00rebuilt")
            assert isinstance(await _next_event(watcher), ChangeEvent)
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_detects_nested_create_when_polling(self, root: Path) -> None:
        (root / "assets").mkdir()
        watcher = FilesystemWatcher(
            root, asyncio.get_running_loop(), force_polling=True, poll_interval=0.05,
        )
        watcher.start()
        try:
            assert watcher.mode == "polling"
            await asyncio.sleep(0.1)
            (root / "assets" / "new.js").write_text("console.log(1)")
            await _next_event(watcher)
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_polling_detects_modify_of_prefix_named_file(self, root: Path) -> None:
        target = root / "template.html"
        target.write_text("<p>v1</p>")
        watcher = FilesystemWatcher(
            root, asyncio.get_running_loop(), force_polling=True, poll_interval=0.05,
        )
        watcher.start()
        try:
            await asyncio.sleep(0.1)
            target.write_text("<p>v2 changed, longer</p>")
            assert isinstance(await _next_event(watcher, timeout=2.0), ChangeEvent)
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_pending_signals_are_deduplicated(self, root: Path) -> None:
        watcher = FilesystemWatcher(root, asyncio.get_running_loop())
        watcher._enqueue()
        watcher._enqueue()
        watcher._enqueue()
        assert watcher.deduplicated_events == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_polling(
        self, root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(watcher_module, "Observer", _ExhaustedObserver)
        watcher = FilesystemWatcher(root, asyncio.get_running_loop(), poll_interval=0.05)
        watcher.start()
        try:
            assert watcher.mode == "polling"
            assert watcher.is_running
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_nothing_observable_is_fatal(
        self, root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(watcher_module, "Observer", _ExhaustedObserver)
        monkeypatch.setattr(watcher_module, "PollingObserver", _ExhaustedObserver)
        watcher = FilesystemWatcher(root, asyncio.get_running_loop())
        with pytest.raises(WatcherError):
            watcher.start()

    @pytest.mark.asyncio
    async def test_dead_native_observer_replaced_by_polling(
        self, root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        watcher = FilesystemWatcher(
            root, asyncio.get_running_loop(), poll_interval=0.05, supervise_interval=0.02,
        )
        watcher.start()
        if watcher.mode != "native":
            watcher.stop()
            pytest.skip("native observer unavailable")
        monkeypatch.setattr(FilesystemWatcher, "_native_healthy", lambda self: False)
        try:
            async with asyncio.timeout(2.0):
                while watcher.mode != "polling":
                    await asyncio.sleep(0.02)
            assert watcher.is_running
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_stop_ends_stream_and_forbids_restart(self, root: Path) -> None:
        watcher = FilesystemWatcher(root, asyncio.get_running_loop())
        watcher.start()
        watcher.stop()
        watcher.stop()

        assert not watcher.is_running
        assert watcher.mode is None
        assert [event async for event in watcher.events()] == []
        with pytest.raises(WatcherError):
            watcher.start()
