"""Notification path: filesystem watching, debouncing and broadcasting."""
from devreload.events.broadcaster import Broadcaster, Client
from devreload.events.connection import ConnectionHandler, Transport, WebSocketTransport
from devreload.events.debouncer import Debouncer
from devreload.events.types import ChangeEvent, ConnectionState, Notification
from devreload.events.watcher import FilesystemWatcher

__all__ = [
    "Broadcaster",
    "ChangeEvent",
    "Client",
    "ConnectionHandler",
    "ConnectionState",
    "Debouncer",
    "FilesystemWatcher",
    "Notification",
    "Transport",
    "WebSocketTransport",
]
