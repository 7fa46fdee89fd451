"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

import pytest
from fastapi.testclient import TestClient

from devreload.app import create_asset_app, create_notify_app
from devreload.config import Settings
from devreload.events.broadcaster import Broadcaster

INDEX_HTML = b"<!doctype html>\n<html><body><canvas id=\"glcanvas\"></canvas></body></html>\n"
MAIN_WASM = b"\x00asm\x01\x00\x00\x00"


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Build output directory holding a minimal wasm page."""
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_bytes(INDEX_HTML)
    (dist / "main.wasm").write_bytes(MAIN_WASM)
    return dist


@pytest.fixture
def settings(root: Path) -> Settings:
    """Create test settings."""
    return Settings(
        root=root,
        asset_bind="127.0.0.1:0",
        notify_bind="127.0.0.1:0",
        debounce_ms=100,
        heartbeat_interval=1.0,
        shutdown_timeout=1.0,
    )


@pytest.fixture
def asset_client(settings: Settings) -> TestClient:
    """Create test client for the asset app."""
    return TestClient(create_asset_app(settings))


@pytest.fixture
def broadcaster() -> Broadcaster:
    """Fresh broadcaster with default queue capacity."""
    return Broadcaster()


@pytest.fixture
def notify_client(settings: Settings, broadcaster: Broadcaster) -> TestClient:
    """Create test client for the notification app."""
    return TestClient(create_notify_app(settings, broadcaster))
