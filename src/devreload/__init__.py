"""Dev live-reload server for static WebAssembly builds."""

from devreload.config import Settings
from devreload.server import DevServer

__all__ = ["DevServer", "Settings"]

__version__ = "0.1.0"
