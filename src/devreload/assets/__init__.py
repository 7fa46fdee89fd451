"""Static asset serving for the build output directory."""

from devreload.assets.client import (
    CLIENT_SCRIPT_PATH,
    inject_client,
    render_client_script,
)
from devreload.assets.paths import (
    INDEX_FILE,
    SecurityError,
    guess_content_type,
    resolve_asset,
)

__all__ = [
    "CLIENT_SCRIPT_PATH",
    "INDEX_FILE",
    "SecurityError",
    "guess_content_type",
    "inject_client",
    "render_client_script",
    "resolve_asset",
]
