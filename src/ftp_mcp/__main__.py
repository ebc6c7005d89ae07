"""Entry point for ftp-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .config import FtpSettings
from .server import create_server, get_state


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="FTP MCP Server - Transfer and manage files on an FTP host via MCP"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="FTP host name or address. Overrides FTP_HOST.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="FTP port. Overrides FTP_PORT (default 21).",
    )
    parser.add_argument(
        "--username",
        type=str,
        default=None,
        help="User name. Overrides FTP_USERNAME. "
        "The password is only read from FTP_PASSWORD.",
    )
    parser.add_argument(
        "--working-directory",
        type=str,
        default=None,
        help="Local base directory for uploads and downloads. "
        "Overrides FTP_WORKING_DIRECTORY.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Socket timeout in seconds. Overrides FTP_TIMEOUT (default 30).",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> FtpSettings:
    """Resolve settings from the environment and command line."""
    if args.port is not None and args.port <= 0:
        raise ValueError(f"--port must be positive, got {args.port}")
    if args.timeout is not None and args.timeout <= 0:
        raise ValueError(f"--timeout must be positive, got {args.timeout}")
    return FtpSettings.from_env().with_overrides(
        host=args.host,
        port=args.port,
        username=args.username,
        working_directory=args.working_directory,
        timeout=args.timeout,
    )


async def main() -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args()
    try:
        settings = build_settings(args)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)

    if not settings.host:
        logger.warning("No FTP host configured; tools must pass host explicitly")
    logger.info(f"Starting FTP MCP Server (host: {settings.host}:{settings.port})...")

    mcp = create_server(settings)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        state = get_state()
        if state is not None:
            state.shutdown()
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
