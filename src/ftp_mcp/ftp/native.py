"""Native internet-access boundary: constants, raw records and the API protocol."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntFlag
from typing import Final, Protocol, runtime_checkable

Handle = int

DEFAULT_FTP_PORT: Final[int] = 21

# InternetOpen / InternetConnect
INTERNET_OPEN_TYPE_PRECONFIG: Final[int] = 0
INTERNET_SERVICE_FTP: Final[int] = 1
INTERNET_FLAG_SYNC: Final[int] = 0x00000004
INTERNET_FLAG_PASSIVE: Final[int] = 0x08000000
INTERNET_FLAG_NO_CACHE_WRITE: Final[int] = 0x04000000

# Transfer types
FTP_TRANSFER_TYPE_ASCII: Final[int] = 0x00000001
FTP_TRANSFER_TYPE_BINARY: Final[int] = 0x00000002

# Error codes
ERROR_FILE_NOT_FOUND: Final[int] = 2
ERROR_ACCESS_DENIED: Final[int] = 5
ERROR_INVALID_HANDLE: Final[int] = 6
ERROR_NO_MORE_FILES: Final[int] = 18
ERROR_FILE_EXISTS: Final[int] = 80
ERROR_INVALID_PARAMETER: Final[int] = 87
ERROR_INTERNET_TIMEOUT: Final[int] = 12002
ERROR_INTERNET_EXTENDED_ERROR: Final[int] = 12003
ERROR_INTERNET_INTERNAL_ERROR: Final[int] = 12004
ERROR_INTERNET_NAME_NOT_RESOLVED: Final[int] = 12007
ERROR_INTERNET_INCORRECT_HANDLE_TYPE: Final[int] = 12018
ERROR_INTERNET_CANNOT_CONNECT: Final[int] = 12029
ERROR_INTERNET_CONNECTION_ABORTED: Final[int] = 12030

MAX_PATH: Final[int] = 260
RESPONSE_BUFFER_SIZE: Final[int] = 8192

# FILETIME counts 100ns intervals since 1601-01-01 UTC
_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


class FileAttributes(IntFlag):
    """Attribute flags of a remote entry."""

    READONLY = 0x0001
    HIDDEN = 0x0002
    SYSTEM = 0x0004
    DIRECTORY = 0x0010
    ARCHIVE = 0x0020
    DEVICE = 0x0040
    NORMAL = 0x0080
    TEMPORARY = 0x0100


def filetime_to_datetime(filetime: int) -> datetime | None:
    """Convert a FILETIME value to an aware UTC datetime.

    A zero FILETIME means the server did not supply the timestamp.
    """
    if not filetime:
        return None
    return _FILETIME_EPOCH + timedelta(microseconds=filetime // 10)


def datetime_to_filetime(value: datetime) -> int:
    """Convert a datetime to a FILETIME value. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - _FILETIME_EPOCH
    return (delta // timedelta(microseconds=1)) * 10


@dataclass
class FindData:
    """One raw record produced by find-first / find-next."""

    name: str
    attributes: FileAttributes = FileAttributes.NORMAL
    creation_time: int = 0
    last_access_time: int = 0
    last_write_time: int = 0
    size: int = 0
    path: str | None = None

    @property
    def is_directory(self) -> bool:
        return bool(self.attributes & FileAttributes.DIRECTORY)


@runtime_checkable
class InternetApi(Protocol):
    """Native internet-access API used by FtpConnection.

    Every call that can fail returns a falsy value (None or False) on
    failure; the failure detail is then available from get_last_error()
    and, for ERROR_INTERNET_EXTENDED_ERROR, from get_last_response_info().
    """

    def get_last_error(self) -> int:
        ...

    def get_last_response_info(self) -> tuple[int, str]:
        ...

    def internet_open(self, agent: str, access_type: int, flags: int) -> Handle | None:
        ...

    def internet_connect(
        self,
        session: Handle,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        service: int,
        flags: int,
    ) -> Handle | None:
        ...

    def internet_close_handle(self, handle: Handle | None) -> bool:
        ...

    def ftp_find_first_file(
        self, connection: Handle, search: str, flags: int
    ) -> tuple[Handle | None, FindData | None]:
        ...

    def internet_find_next_file(self, find_handle: Handle) -> FindData | None:
        ...

    def ftp_get_file(
        self,
        connection: Handle,
        remote_file: str,
        local_file: str,
        fail_if_exists: bool,
        attributes: int,
        transfer_type: int,
    ) -> bool:
        ...

    def ftp_put_file(
        self, connection: Handle, local_file: str, remote_file: str, transfer_type: int
    ) -> bool:
        ...

    def ftp_rename_file(self, connection: Handle, existing: str, new: str) -> bool:
        ...

    def ftp_delete_file(self, connection: Handle, file_name: str) -> bool:
        ...

    def ftp_create_directory(self, connection: Handle, directory: str) -> bool:
        ...

    def ftp_remove_directory(self, connection: Handle, directory: str) -> bool:
        ...

    def ftp_set_current_directory(self, connection: Handle, directory: str) -> bool:
        ...

    def ftp_get_current_directory(self, connection: Handle) -> str | None:
        ...

    def ftp_command(
        self, connection: Handle, expect_response: bool, transfer_type: int, command: str
    ) -> tuple[bool, Handle | None]:
        ...

    def internet_read_file(self, handle: Handle, size: int) -> bytes | None:
        ...
