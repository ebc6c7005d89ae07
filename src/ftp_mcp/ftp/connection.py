"""FTP connection - owns the session/connection handle pair."""

from __future__ import annotations

import logging
import ntpath
import os
from typing import Any

from .. import __version__
from .enumeration import collect_entries
from .errors import LocalDirectoryError, NotConnectedError, translate_error
from .ftplib_api import FtplibInternetApi
from .info import FtpDirectoryInfo, FtpFileInfo
from .native import (
    DEFAULT_FTP_PORT,
    ERROR_NO_MORE_FILES,
    FTP_TRANSFER_TYPE_ASCII,
    FTP_TRANSFER_TYPE_BINARY,
    INTERNET_FLAG_NO_CACHE_WRITE,
    INTERNET_FLAG_PASSIVE,
    INTERNET_FLAG_SYNC,
    INTERNET_OPEN_TYPE_PRECONFIG,
    INTERNET_SERVICE_FTP,
    RESPONSE_BUFFER_SIZE,
    FileAttributes,
    Handle,
    InternetApi,
)

logger = logging.getLogger(__name__)

USER_AGENT = f"ftp-mcp/{__version__}"


def base_name(path: str) -> str:
    """Last path component, for both Windows and POSIX separators."""
    return ntpath.basename(path)


class FtpConnection:
    """Connection to one FTP host.

    Construction only captures values; ``log_on()`` opens the native session
    (once per instance) and the server connection. Use it as a context
    manager so both handles are released on every exit path:

        with FtpConnection("ftp.example.com") as ftp:
            ftp.log_on()
            files = ftp.get_files("*.txt")

    An instance is not safe for concurrent use from several threads.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_FTP_PORT,
        username: str | None = None,
        password: str | None = None,
        *,
        local_directory: str | None = None,
        api: InternetApi | None = None,
        user_agent: str = USER_AGENT,
        timeout: float = 30.0,
    ):
        self._connection_handle: Handle | None = None
        self._internet_handle: Handle | None = None
        self._host = host
        self._port = port or DEFAULT_FTP_PORT
        self._username = username
        self._password = password
        self._local_directory = local_directory
        self._api: InternetApi = api if api is not None else FtplibInternetApi(timeout=timeout)
        self._user_agent = user_agent

    def __enter__(self) -> FtpConnection:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def __del__(self) -> None:
        # Safety net only; close() or the with-block is the primary path
        if getattr(self, "_connection_handle", None) or getattr(self, "_internet_handle", None):
            self._release_handles()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"FtpConnection({self._host!r}, {self._port}, {state})"

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def username(self) -> str | None:
        return self._username

    @property
    def is_connected(self) -> bool:
        return self._connection_handle is not None

    @property
    def local_directory(self) -> str | None:
        """Base directory for relative local paths in get_file/put_file."""
        return self._local_directory

    def set_local_directory(self, directory: str) -> None:
        """Set the local base directory used for relative local paths.

        Raises:
            LocalDirectoryError: If the directory does not exist
        """
        if not os.path.isdir(directory):
            raise LocalDirectoryError(f"{directory} is not a directory!")
        self._local_directory = os.path.abspath(directory)

    # Connection lifecycle

    def log_on(self) -> None:
        """Open the session (first time only) and connect to the server.

        Empty username or password means anonymous login.

        Raises:
            ValueError: If no host was given
            FtpError: If the session or the server connection cannot be opened
        """
        username = self._username or None
        password = self._password or None

        if self._internet_handle is None:
            self._open()

        if self._connection_handle is not None:
            logger.debug(f"Reconnecting to {self._host}, releasing previous connection")
            self._api.internet_close_handle(self._connection_handle)
            self._connection_handle = None

        logger.info(f"Connecting to FTP host {self._host}:{self._port}")
        handle = self._api.internet_connect(
            self._internet_handle,
            self._host,
            self._port,
            username,
            password,
            INTERNET_SERVICE_FTP,
            INTERNET_FLAG_PASSIVE,
        )
        if handle is None:
            raise translate_error(self._api)
        self._connection_handle = handle
        logger.info(f"Logged on to {self._host} as {username or 'anonymous'}")

    def _open(self) -> None:
        if not self._host:
            raise ValueError("FTP host is required")

        handle = self._api.internet_open(
            self._user_agent, INTERNET_OPEN_TYPE_PRECONFIG, INTERNET_FLAG_SYNC
        )
        if handle is None:
            raise translate_error(self._api)
        self._internet_handle = handle

    def close(self) -> None:
        """Release both handles. Safe to call more than once."""
        if self._connection_handle is not None or self._internet_handle is not None:
            logger.info(f"Closing FTP connection to {self._host}")
        self._release_handles()

    def _release_handles(self) -> None:
        connection, self._connection_handle = self._connection_handle, None
        internet, self._internet_handle = self._internet_handle, None
        if connection is not None:
            self._api.internet_close_handle(connection)
        if internet is not None:
            self._api.internet_close_handle(internet)

    def _require_connection(self) -> Handle:
        if self._connection_handle is None:
            raise NotConnectedError()
        return self._connection_handle

    def resolve_local_path(self, path: str, local_directory: str | None = None) -> str:
        """Resolve a relative local path against the local base directory."""
        base = local_directory if local_directory is not None else self._local_directory
        if base and not os.path.isabs(path):
            return os.path.join(base, path)
        return path

    # Navigation

    def set_current_directory(self, directory: str) -> None:
        """Change the remote working directory."""
        handle = self._require_connection()
        if not self._api.ftp_set_current_directory(handle, directory):
            raise translate_error(self._api)

    def get_current_directory(self) -> str:
        """Return the remote working directory."""
        handle = self._require_connection()
        directory = self._api.ftp_get_current_directory(handle)
        if directory is None:
            raise translate_error(self._api)
        return directory

    def get_current_directory_info(self) -> FtpDirectoryInfo:
        return FtpDirectoryInfo(self.get_current_directory(), connection=self)

    # Enumeration

    def get_files(self, mask: str | None = None) -> list[FtpFileInfo]:
        """List files matching ``mask`` (the current directory when omitted)."""
        handle = self._require_connection()
        if mask is None:
            mask = self.get_current_directory()
        return collect_entries(self, self._api, handle, mask, want_directories=False)

    def get_directories(self, path: str | None = None) -> list[FtpDirectoryInfo]:
        """List directories under ``path`` (the current directory when omitted)."""
        handle = self._require_connection()
        if path is None:
            path = self.get_current_directory()
        return collect_entries(self, self._api, handle, path, want_directories=True)

    def file_exists(self, path: str) -> bool:
        handle = self._require_connection()
        find_handle, _ = self._api.ftp_find_first_file(
            handle, path, INTERNET_FLAG_NO_CACHE_WRITE
        )
        if find_handle is None:
            return False
        self._api.internet_close_handle(find_handle)
        return True

    def directory_exists(self, path: str) -> bool:
        """Check whether a remote directory exists.

        A search that yields entries means it exists. An empty search is
        ambiguous (empty or missing directory) and is settled by changing
        into the directory and back.
        """
        handle = self._require_connection()
        find_handle, _ = self._api.ftp_find_first_file(
            handle, path, INTERNET_FLAG_NO_CACHE_WRITE
        )
        if find_handle is not None:
            self._api.internet_close_handle(find_handle)
            return True
        if self._api.get_last_error() != ERROR_NO_MORE_FILES:
            return False

        original = self._api.ftp_get_current_directory(handle)
        if original is None or not self._api.ftp_set_current_directory(handle, path):
            return False
        if not self._api.ftp_set_current_directory(handle, original):
            raise translate_error(self._api)
        return True

    # Transfers and commands

    def get_file(
        self,
        remote_file: str,
        local_file: str | None = None,
        fail_if_exists: bool = False,
        *,
        local_directory: str | None = None,
    ) -> str:
        """Download ``remote_file`` in binary mode.

        Args:
            remote_file: Remote file name or path
            local_file: Local target; defaults to the remote base name
            fail_if_exists: Fail instead of overwriting an existing local file
            local_directory: Base for a relative local path; defaults to
                the connection's local directory

        Returns:
            The local path written
        """
        handle = self._require_connection()
        target = self.resolve_local_path(local_file or base_name(remote_file), local_directory)
        logger.debug(f"RETR {remote_file} -> {target}")
        if not self._api.ftp_get_file(
            handle,
            remote_file,
            target,
            fail_if_exists,
            FileAttributes.NORMAL,
            FTP_TRANSFER_TYPE_BINARY,
        ):
            raise translate_error(self._api)
        return target

    def put_file(
        self,
        local_file: str,
        remote_file: str | None = None,
        *,
        local_directory: str | None = None,
    ) -> str:
        """Upload ``local_file`` in binary mode.

        Returns:
            The remote name written; defaults to the local base name
        """
        handle = self._require_connection()
        source = self.resolve_local_path(local_file, local_directory)
        remote = remote_file or base_name(local_file)
        logger.debug(f"STOR {source} -> {remote}")
        if not self._api.ftp_put_file(handle, source, remote, FTP_TRANSFER_TYPE_BINARY):
            raise translate_error(self._api)
        return remote

    def rename_file(self, file_name: str, new_file_name: str) -> None:
        handle = self._require_connection()
        if not self._api.ftp_rename_file(handle, file_name, new_file_name):
            raise translate_error(self._api)

    def delete_file(self, file_name: str) -> None:
        handle = self._require_connection()
        if not self._api.ftp_delete_file(handle, file_name):
            raise translate_error(self._api)

    def create_directory(self, path: str) -> None:
        handle = self._require_connection()
        if not self._api.ftp_create_directory(handle, path):
            raise translate_error(self._api)

    def delete_directory(self, path: str) -> None:
        handle = self._require_connection()
        if not self._api.ftp_remove_directory(handle, path):
            raise translate_error(self._api)

    def send_command(self, command: str, expect_data: bool = False) -> str:
        """Send a raw command in ASCII mode.

        When the server opens a data stream (``expect_data=True``), its
        content is read in 8 KiB chunks until a short or empty read and
        returned as text. Otherwise the result is an empty string; the
        server reply is available from ``last_response_info()``.
        """
        handle = self._require_connection()
        ok, data_handle = self._api.ftp_command(
            handle, expect_data, FTP_TRANSFER_TYPE_ASCII, command
        )
        if not ok:
            raise translate_error(self._api)
        if data_handle is None:
            return ""

        chunks: list[bytes] = []
        try:
            while True:
                chunk = self._api.internet_read_file(data_handle, RESPONSE_BUFFER_SIZE)
                if chunk is None:
                    raise translate_error(self._api)
                chunks.append(chunk)
                if len(chunk) < RESPONSE_BUFFER_SIZE:
                    break
        finally:
            self._api.internet_close_handle(data_handle)
        return b"".join(chunks).decode("utf-8", errors="replace")

    def last_response_info(self) -> str:
        """Text of the most recent server response."""
        _, text = self._api.get_last_response_info()
        return text

