"""Health check endpoints for liveness and readiness checks."""
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

if TYPE_CHECKING:
    from devreload.events.broadcaster import Broadcaster
    from devreload.events.watcher import FilesystemWatcher

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness check.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness check.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        clients: Number of connected reload clients.
        checks: List of individual dependency check results.
    """

    status: Literal["ready", "not_ready"]
    clients: int
    checks: list[ReadinessCheck]


def _check_directory(path: Path) -> ReadinessCheck:
    """Verify directory exists and is accessible.

    Args:
        path: Directory path.

    Returns:
        Check result with status and optional error message.
    """
    name = f"dir:{path}"
    try:
        if path.exists() and path.is_dir():
            list(path.iterdir())
            return ReadinessCheck(name=name, status="ok")
        return ReadinessCheck(name=name, status="failed", message="Directory not found")
    except PermissionError as e:
        return ReadinessCheck(name=name, status="failed", message=f"Permission denied: {e}")
    except OSError as e:
        return ReadinessCheck(name=name, status="failed", message=str(e))


def _check_watcher(watcher: "FilesystemWatcher | None") -> ReadinessCheck:
    if watcher is None or not watcher.is_running:
        return ReadinessCheck(name="watcher", status="failed", message="Watcher not running")
    return ReadinessCheck(name=f"watcher:{watcher.mode}", status="ok")


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness check endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness check endpoint.

    Validates that the root directory is readable and the watcher is
    observing it. Returns 200 if all checks pass, 503 if any fail.

    Args:
        request: FastAPI request object.

    Returns:
        Readiness status with individual check results.
    """
    broadcaster: Broadcaster = request.app.state.broadcaster
    checks = [
        _check_directory(request.app.state.settings.root),
        _check_watcher(getattr(request.app.state, "watcher", None)),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        clients=broadcaster.client_count,
        checks=checks,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
