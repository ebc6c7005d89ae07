"""MCP Server for FTP transfers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .config import FtpSettings, configure
from .ftp import FtpConnection
from .resources import LAST_RESULT_URI, register_resources
from .tasks import FtpTaskRunner, TaskAction, TaskResult

logger = logging.getLogger(__name__)


class ServerState:
    """Settings, worker pool and last task result shared by the tools.

    The FTP client is blocking and a connection is not thread-safe, so every
    tool call opens its own connection on a worker thread.
    """

    def __init__(
        self,
        settings: FtpSettings,
        connection_factory: Callable[..., FtpConnection] = FtpConnection,
        max_workers: int = 4,
    ):
        self.settings = settings
        self.connection_factory = connection_factory
        self.last_result: TaskResult | None = None
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ftp")

    def resolve(self, host: str | None = None, port: int | None = None) -> FtpSettings:
        """Settings for one call, with optional host/port overrides."""
        return self.settings.with_overrides(host=host, port=port)

    def connect(self, settings: FtpSettings) -> FtpConnection:
        if not settings.host:
            raise ValueError("No FTP host configured. Set FTP_HOST or pass host.")
        return self.connection_factory(
            settings.host,
            settings.port,
            settings.username,
            settings.password,
            local_directory=settings.working_directory,
            timeout=settings.timeout,
        )

    async def run_blocking(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func)

    async def run_task(
        self, action: TaskAction, host: str | None, port: int | None, **kwargs: Any
    ) -> TaskResult:
        runner = FtpTaskRunner(self.resolve(host, port), self.connection_factory)
        result = await self.run_blocking(partial(runner.run, action, **kwargs))
        self.last_result = result
        logger.info(result.to_summary())
        return result

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


# Global server state (single server per process)
_state: ServerState | None = None


def get_state() -> ServerState | None:
    """Get the state of the server created by create_server, if any."""
    return _state


def list_remote(state: ServerState, settings: FtpSettings, path: str | None) -> dict[str, Any]:
    """List directories and files of ``path`` (the login directory when omitted)."""
    with state.connect(settings) as ftp:
        ftp.log_on()
        target = path or ftp.get_current_directory()
        return {
            "path": target,
            "directories": [d.to_dict() for d in ftp.get_directories(target)],
            "files": [f.to_dict() for f in ftp.get_files(target)],
        }


def send_raw_command(
    state: ServerState, settings: FtpSettings, command: str, expect_data: bool
) -> dict[str, Any]:
    """Send one raw command and return its data output and server reply."""
    with state.connect(settings) as ftp:
        ftp.log_on()
        output = ftp.send_command(command, expect_data=expect_data)
        return {"command": command, "output": output, "reply": ftp.last_response_info()}


def create_server(settings: FtpSettings | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        settings: Connection settings. Defaults to the environment.
    """
    global _state
    settings = settings or FtpSettings.from_env()
    configure(settings)
    state = _state = ServerState(settings)
    mcp = FastMCP("ftp-mcp")

    async def notify_result_changed(ctx: Context) -> None:
        """Notify client that ftp://last-result has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl(LAST_RESULT_URI))
        except Exception as e:
            logger.debug(f"Resource notification failed: {e}")

    async def task_response(ctx: Context, result: TaskResult) -> dict:
        await notify_result_changed(ctx)
        return {"success": result.success, "data": result.to_dict()}

    # ============== Task Tools ==============

    @mcp.tool()
    async def upload_files(
        ctx: Context,
        file_names: list[str],
        remote_directory: str | None = None,
        working_directory: str | None = None,
        overwrite: bool = True,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """
        Upload local files to the FTP server in binary mode.

        Args:
            file_names: Local files, relative to working_directory
            remote_directory: Remote directory to upload into
            working_directory: Local base directory (defaults to FTP_WORKING_DIRECTORY)
            overwrite: When false, files already present remotely are skipped
            host: FTP host (defaults to FTP_HOST)
            port: FTP port (defaults to FTP_PORT or 21)
        """
        try:
            result = await state.run_task(
                TaskAction.UPLOAD_FILES,
                host,
                port,
                file_names=file_names,
                remote_directory=remote_directory,
                working_directory=working_directory,
                overwrite=overwrite,
            )
            return await task_response(ctx, result)
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def download_files(
        ctx: Context,
        file_names: list[str] | None = None,
        remote_directory: str | None = None,
        working_directory: str | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """
        Download files from the FTP server in binary mode.

        With no file_names, every file in the remote directory is downloaded.
        The working directory is created when missing.

        Args:
            file_names: Remote file names to download
            remote_directory: Remote directory to download from
            working_directory: Local target directory (defaults to FTP_WORKING_DIRECTORY)
            host: FTP host (defaults to FTP_HOST)
            port: FTP port (defaults to FTP_PORT or 21)
        """
        try:
            result = await state.run_task(
                TaskAction.DOWNLOAD_FILES,
                host,
                port,
                file_names=file_names,
                remote_directory=remote_directory,
                working_directory=working_directory,
            )
            return await task_response(ctx, result)
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def delete_files(
        ctx: Context,
        file_names: list[str],
        remote_directory: str | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """
        Delete remote files. Files the server reports as unavailable (550) are skipped.

        Args:
            file_names: Remote file names to delete
            remote_directory: Remote directory containing the files
        """
        try:
            result = await state.run_task(
                TaskAction.DELETE_FILES,
                host,
                port,
                file_names=file_names,
                remote_directory=remote_directory,
            )
            return await task_response(ctx, result)
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def create_directory(
        ctx: Context,
        remote_directory: str,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """Create a remote directory. An already existing directory is not an error."""
        try:
            result = await state.run_task(
                TaskAction.CREATE_DIRECTORY, host, port, remote_directory=remote_directory
            )
            return await task_response(ctx, result)
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def delete_directory(
        ctx: Context,
        remote_directory: str,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """Delete an empty remote directory. A missing directory is not an error."""
        try:
            result = await state.run_task(
                TaskAction.DELETE_DIRECTORY, host, port, remote_directory=remote_directory
            )
            return await task_response(ctx, result)
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Inspection Tools ==============

    @mcp.tool()
    async def list_directory(
        path: str | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """
        List the directories and files of a remote directory.

        Each entry includes name, path, size, attributes and UTC timestamps
        (null when the server does not report them).

        Args:
            path: Remote directory or mask such as "/pub/*.zip" (defaults to login directory)
        """
        try:
            settings = state.resolve(host, port)
            data = await state.run_blocking(partial(list_remote, state, settings, path))
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def send_command(
        command: str,
        expect_data: bool = False,
        host: str | None = None,
        port: int | None = None,
    ) -> dict:
        """
        Send a raw FTP command (ASCII mode) after logging on.

        Args:
            command: Raw command, e.g. "SITE CHMOD 644 file.txt" or "NLST"
            expect_data: True for commands that answer over a data connection (LIST, NLST)
        """
        try:
            settings = state.resolve(host, port)
            data = await state.run_blocking(
                partial(send_raw_command, state, settings, command, expect_data)
            )
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_settings() -> dict:
        """Get the configured FTP connection settings (password redacted)."""
        return {"success": True, "data": state.settings.to_dict()}

    register_resources(mcp, state)

    logger.info("FTP MCP Server initialized")
    return mcp
