"""One-shot invocation of the external build command."""

import asyncio
import time
from pathlib import Path

import structlog

from devreload.errors import BuildError

logger = structlog.get_logger()


async def run_build(command: str, cwd: Path | None = None) -> None:
    """Run the build command and wait for it to exit.

    The command is opaque: only its exit status matters.

    Args:
        command: Shell command producing the root directory.
        cwd: Working directory for the command.

    Raises:
        BuildError: If the command cannot be started or exits non-zero.
    """
    logger.info("build_started", command=command)
    start = time.perf_counter()

    try:
        process = await asyncio.create_subprocess_shell(command, cwd=cwd)
    except OSError as e:
        logger.error("build_spawn_failed", error=str(e))
        raise BuildError(f"Failed to start build command: {e}", returncode=-1) from e

    returncode = await process.wait()
    duration_ms = (time.perf_counter() - start) * 1000

    if returncode != 0:
        logger.error("build_failed", returncode=returncode, duration_ms=round(duration_ms, 2))
        raise BuildError(f"Build command exited with status {returncode}", returncode)

    logger.info("build_finished", duration_ms=round(duration_ms, 2))
