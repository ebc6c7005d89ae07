"""Remote file and directory metadata."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .native import FileAttributes, FindData, filetime_to_datetime

if TYPE_CHECKING:
    from .connection import FtpConnection


def _local(value: datetime | None) -> datetime | None:
    return value.astimezone() if value is not None else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class RemoteEntry:
    """One remote filesystem entry.

    Timestamps are stored once, as aware UTC datetimes; the local-time
    properties are derived from the same instant.
    """

    full_path: str
    connection: FtpConnection | None = field(default=None, repr=False, compare=False)
    attributes: FileAttributes = FileAttributes.NORMAL
    size: int = 0
    creation_time_utc: datetime | None = None
    last_access_time_utc: datetime | None = None
    last_write_time_utc: datetime | None = None

    @classmethod
    def from_find_data(cls, connection: FtpConnection | None, record: FindData):
        """Build an entry from a raw find record."""
        name = record.name.rstrip("\0")
        path = (record.path or name).rstrip("\0")
        return cls(
            full_path=path,
            connection=connection,
            attributes=record.attributes,
            size=record.size,
            creation_time_utc=filetime_to_datetime(record.creation_time),
            last_access_time_utc=filetime_to_datetime(record.last_access_time),
            last_write_time_utc=filetime_to_datetime(record.last_write_time),
        )

    @property
    def name(self) -> str:
        return posixpath.basename(self.full_path.rstrip("/")) or self.full_path

    @property
    def is_directory(self) -> bool:
        return bool(self.attributes & FileAttributes.DIRECTORY)

    @property
    def creation_time(self) -> datetime | None:
        return _local(self.creation_time_utc)

    @property
    def last_access_time(self) -> datetime | None:
        return _local(self.last_access_time_utc)

    @property
    def last_write_time(self) -> datetime | None:
        return _local(self.last_write_time_utc)

    def _require_connection(self) -> FtpConnection:
        if self.connection is None:
            raise ValueError(f"{self.full_path} is not bound to an FTP connection")
        return self.connection

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "path": self.full_path,
            "isDirectory": self.is_directory,
            "attributes": int(self.attributes),
            "size": self.size,
            "creationTime": _iso(self.creation_time_utc),
            "lastAccessTime": _iso(self.last_access_time_utc),
            "lastWriteTime": _iso(self.last_write_time_utc),
        }


@dataclass
class FtpFileInfo(RemoteEntry):
    """A remote file."""

    @property
    def exists(self) -> bool:
        return self._require_connection().file_exists(self.full_path)

    def delete(self) -> None:
        self._require_connection().delete_file(self.full_path)


@dataclass
class FtpDirectoryInfo(RemoteEntry):
    """A remote directory."""

    attributes: FileAttributes = FileAttributes.DIRECTORY

    @property
    def exists(self) -> bool:
        return self._require_connection().directory_exists(self.full_path)

    def delete(self) -> None:
        self._require_connection().delete_directory(self.full_path)

    def get_directories(self, path: str | None = None) -> list[FtpDirectoryInfo]:
        """List subdirectories of this directory, or of ``path`` below it."""
        target = posixpath.join(self.full_path, path) if path else self.full_path
        return self._require_connection().get_directories(target)

    def get_files(self, mask: str | None = None) -> list[FtpFileInfo]:
        """List files of this directory, optionally filtered by ``mask``."""
        target = posixpath.join(self.full_path, mask) if mask else self.full_path
        return self._require_connection().get_files(target)
