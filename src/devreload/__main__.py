"""Entry point for the dev live-reload server."""

import argparse
import asyncio
import contextlib
import signal
import sys
from collections.abc import Sequence
from typing import Any

import structlog
from pydantic import ValidationError

from devreload.config import Settings
from devreload.errors import DevReloadError, ServerExitError
from devreload.lifecycle import GracefulShutdown
from devreload.logging import configure_logging
from devreload.server import DevServer

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_SERVER_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser; every option overrides its env var."""
    parser = argparse.ArgumentParser(
        prog="devreload",
        description="Serve a build directory and reload browsers when it changes.",
    )
    parser.add_argument("root", nargs="?", help="build output directory (default: dist)")
    parser.add_argument("--assets", dest="asset_bind", metavar="HOST:PORT",
                        help="asset server address (default: 127.0.0.1:47109)")
    parser.add_argument("--notify", dest="notify_bind", metavar="HOST:PORT",
                        help="reload notification address (default: 127.0.0.1:47110)")
    parser.add_argument("--debounce-ms", type=int, help="quiet period before reloading")
    parser.add_argument("--build", dest="build_command", metavar="COMMAND",
                        help="shell command to run once before serving")
    parser.add_argument("--poll", dest="force_polling", action="store_true", default=None,
                        help="poll the root instead of using native notifications")
    parser.add_argument("--inject", dest="inject_client", action="store_true", default=None,
                        help="inject the reload script into served HTML")
    parser.add_argument("--debug", action="store_true", default=None, help="debug logging")
    return parser


def load_settings(argv: Sequence[str] | None = None) -> Settings:
    """Build settings from the environment overridden by the command line.

    Raises:
        ValidationError: If any option is invalid.
    """
    args = build_parser().parse_args(argv)
    overrides: dict[str, Any] = {
        key: value for key, value in vars(args).items() if value is not None
    }
    return Settings(**overrides)


async def serve(settings: Settings) -> None:
    """Run the dev server until SIGINT/SIGTERM.

    Args:
        settings: Server configuration.
    """
    shutdown = GracefulShutdown()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.trigger)

    await DevServer(settings).run(shutdown)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for python -m devreload.

    Returns:
        Process exit code.
    """
    try:
        settings = load_settings(argv)
    except ValidationError as e:
        configure_logging()
        logger.error("startup_failed", reason="invalid_configuration", error=str(e))
        return EXIT_STARTUP_FAILED

    configure_logging(debug=settings.debug)

    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve(settings))
    except ServerExitError as e:
        logger.error("server_failed", error=str(e))
        return EXIT_SERVER_FAILED
    except DevReloadError as e:
        logger.error("startup_failed", reason=type(e).__name__, error=str(e))
        return EXIT_STARTUP_FAILED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
