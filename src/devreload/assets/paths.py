"""Security-first path resolution for build output assets."""
import mimetypes
from pathlib import Path

INDEX_FILE = "index.html"

# Older mimetypes tables do not know WebAssembly.
mimetypes.add_type("application/wasm", ".wasm")
mimetypes.add_type("text/javascript", ".js")
mimetypes.add_type("text/javascript", ".mjs")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class SecurityError(Exception):
    """Raised when a path operation violates security constraints."""

    def __init__(self, message: str, path: str) -> None:
        """Initialize security error.

        Args:
            message: Error description.
            path: The offending path value.
        """
        super().__init__(message)
        self.path = path


def resolve_asset(root: Path, request_path: str) -> Path:
    """Resolve a request path to a location inside the root directory.

    An empty path or a path naming a directory maps to its index file.
    The result is not checked for existence.

    Args:
        root: Build output directory.
        request_path: URL path, with or without a leading slash.

    Returns:
        Absolute resolved path within the root.

    Raises:
        SecurityError: If the path contains null bytes, traversal segments,
            or resolves outside the root.
    """
    if "\0" in request_path:
        raise SecurityError("Path contains null byte", request_path)

    relative = request_path.replace("\\", "/").lstrip("/")
    if ".." in relative.split("/"):
        raise SecurityError("Path contains directory traversal segment", request_path)

    root_path = root.resolve()
    resolved = (root_path / relative).resolve()

    if not resolved.is_relative_to(root_path):
        raise SecurityError(f"Path resolves outside root: {root_path}", request_path)

    if resolved.is_dir():
        resolved = resolved / INDEX_FILE

    return resolved


def guess_content_type(path: Path) -> str:
    """Infer a content type from the file extension.

    Args:
        path: File path.

    Returns:
        MIME type, ``application/octet-stream`` when unknown.
    """
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or DEFAULT_CONTENT_TYPE
