"""Value types flowing through the notification path."""
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Signal that something under the watched root changed.

    Carries no payload: any change triggers a full reload.
    """


@dataclass(frozen=True, slots=True)
class Notification:
    """Single logical "reload now" message."""

    frame: str = "reload"


class ConnectionState(str, Enum):
    """Lifecycle states of a reload client connection."""

    CONNECTING = "connecting"
    REGISTERED = "registered"
    NOTIFYING = "notifying"
    CLOSING = "closing"
    CLOSED = "closed"


# Sentinel pushed into a client queue to end its stream on shutdown.
CLOSE = object()


# Editor swap/backup files, matched on the end of the file name.
TEMP_FILE_SUFFIXES: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".tmp",
    ".temp",
    "~",
)

# Whole file names written by editors and file managers. Vim tests a
# directory's writability with a file literally named "4913".
TEMP_FILE_NAMES: frozenset[str] = frozenset({
    ".DS_Store",
    "4913",
    ".4913",
})
