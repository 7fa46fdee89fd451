"""Static asset endpoints serving the build output directory."""
from pathlib import Path

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, Response

from devreload.assets.client import CLIENT_SCRIPT_PATH, inject_client, render_client_script
from devreload.assets.paths import SecurityError, guess_content_type, resolve_asset
from devreload.config import Settings

logger = structlog.get_logger()

router = APIRouter(tags=["assets"])

NO_CACHE_HEADERS = {"Cache-Control": "no-cache"}


@router.get(CLIENT_SCRIPT_PATH, include_in_schema=False)
async def client_script(request: Request) -> Response:
    """Serve the browser reload agent.

    Args:
        request: FastAPI request object.

    Returns:
        JavaScript response bound to the notification port.
    """
    settings: Settings = request.app.state.settings
    return Response(
        content=render_client_script(settings.notify_port),
        media_type="text/javascript",
        headers=NO_CACHE_HEADERS,
    )


@router.api_route("/{path:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def serve_asset(request: Request, path: str) -> Response:
    """Serve a file from the root directory.

    Args:
        request: FastAPI request object.
        path: Path relative to the root directory.

    Returns:
        File bytes with a content type inferred from the extension.

    Raises:
        HTTPException: 404 if the path is missing or escapes the root.
    """
    settings: Settings = request.app.state.settings
    root: Path = settings.root

    try:
        file_path = resolve_asset(root, path)
    except SecurityError as e:
        logger.warning("asset_path_rejected", path=path, error=str(e))
        raise HTTPException(status_code=404, detail="Not found") from e

    if not file_path.is_file():
        raise HTTPException(status_code=404, detail="Not found")

    content_type = guess_content_type(file_path)

    if settings.inject_client and content_type == "text/html":
        body = inject_client(file_path.read_bytes())
        return Response(content=body, media_type=content_type, headers=NO_CACHE_HEADERS)

    return FileResponse(file_path, media_type=content_type, headers=NO_CACHE_HEADERS)
