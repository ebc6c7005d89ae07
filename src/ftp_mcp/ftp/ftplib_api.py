"""InternetApi implementation on top of the standard library ftplib client.

Handles are opaque integers mapped to session, connection, search and data
stream objects. The last error of every failed call is kept per thread so
that error translation can read it right after the failure.
"""

from __future__ import annotations

import contextlib
import fnmatch
import ftplib
import itertools
import logging
import os
import posixpath
import re
import socket
import tempfile
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .native import (
    ERROR_ACCESS_DENIED,
    ERROR_FILE_EXISTS,
    ERROR_FILE_NOT_FOUND,
    ERROR_INTERNET_CANNOT_CONNECT,
    ERROR_INTERNET_CONNECTION_ABORTED,
    ERROR_INTERNET_EXTENDED_ERROR,
    ERROR_INTERNET_INCORRECT_HANDLE_TYPE,
    ERROR_INTERNET_INTERNAL_ERROR,
    ERROR_INTERNET_NAME_NOT_RESOLVED,
    ERROR_INTERNET_TIMEOUT,
    ERROR_INVALID_HANDLE,
    ERROR_NO_MORE_FILES,
    FTP_TRANSFER_TYPE_ASCII,
    INTERNET_FLAG_PASSIVE,
    RESPONSE_BUFFER_SIZE,
    FileAttributes,
    FindData,
    Handle,
    datetime_to_filetime,
)

logger = logging.getLogger(__name__)

MLSD_FACTS = ["type", "size", "modify", "create", "perm"]

# Reply that means "no files" for any listing
NO_FILES_REPLY = "450"

# Replies that mean "nothing matched" when the parent of a missing path is listed
NO_MATCH_REPLIES = ("450", "550")

# Replies that mean the server does not implement MLSD
UNSUPPORTED_REPLIES = ("500", "502")

REPLY_CODE_PATTERN = re.compile(r"^(\d{3})")

# Format: drwxr-xr-x 2 user group 4096 Jan 01 12:00 name
UNIX_LIST_PATTERN = re.compile(
    r"^(?P<mode>[-dlbcps][-rwxsStT]{9})[+@.]?\s+\d+\s+\S+\s+\S+\s+(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<time>\d{1,2}:\d{2}|\d{4})\s+"
    r"(?P<name>.+)$"
)

# Format: 01-31-24 09:15AM <DIR> name  |  01-31-24 09:15AM 1024 name
DOS_LIST_PATTERN = re.compile(
    r"^(?P<date>\d{2}-\d{2}-\d{2,4})\s+(?P<time>\d{1,2}:\d{2}[AP]M)\s+"
    r"(?:(?P<dir><DIR>)|(?P<size>\d+))\s+(?P<name>.+)$",
    re.IGNORECASE,
)

MONTHS = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}


@dataclass
class _SessionHandle:
    agent: str
    access_type: int
    flags: int


@dataclass
class _ConnectionHandle:
    ftp: ftplib.FTP
    session: Handle
    use_mlsd: bool = True


@dataclass
class _FindHandle:
    records: Iterator[FindData]


@dataclass
class _DataHandle:
    sock: socket.socket
    ftp: ftplib.FTP


@dataclass
class _LastError:
    code: int = 0
    response: tuple[int, str] = field(default_factory=lambda: (0, ""))


def reply_code(text: str) -> int:
    """Extract the numeric FTP reply code from a response text."""
    match = REPLY_CODE_PATTERN.match(text.strip())
    return int(match.group(1)) if match else ERROR_INTERNET_EXTENDED_ERROR


def has_wildcard(name: str) -> bool:
    return any(ch in name for ch in "*?[")


def parse_mlsd_time(value: str | None) -> int:
    """Parse an MLSD timestamp (YYYYMMDDHHMMSS[.sss], UTC) to FILETIME."""
    if not value:
        return 0
    base, _, fraction = value.partition(".")
    try:
        parsed = datetime.strptime(base, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return 0
    if fraction.isdigit():
        parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return datetime_to_filetime(parsed)


def _attributes(is_directory: bool, readonly: bool, hidden: bool) -> FileAttributes:
    attributes = FileAttributes(0)
    if is_directory:
        attributes |= FileAttributes.DIRECTORY
    if readonly:
        attributes |= FileAttributes.READONLY
    if hidden:
        attributes |= FileAttributes.HIDDEN
    return attributes or FileAttributes.NORMAL


def _join(directory: str, name: str) -> str:
    return posixpath.join(directory, name) if directory else name


def parse_mlsd_entry(directory: str, name: str, facts: dict[str, str]) -> FindData:
    """Build a find record from one MLSD entry."""
    entry_type = facts.get("type", "file").lower()
    is_directory = entry_type == "dir"
    perm = facts.get("perm")
    readonly = perm is not None and not is_directory and not set("aw") & set(perm.lower())
    size = facts.get("size") or facts.get("sizd") or "0"
    return FindData(
        name=name,
        attributes=_attributes(is_directory, readonly, name.startswith(".")),
        creation_time=parse_mlsd_time(facts.get("create")),
        last_write_time=parse_mlsd_time(facts.get("modify")),
        size=int(size) if size.isdigit() else 0,
        path=_join(directory, name),
    )


def parse_list_line(line: str, directory: str = "", now: datetime | None = None) -> FindData | None:
    """Parse one Unix or DOS style LIST line. Returns None if unrecognized."""
    now = now or datetime.now(timezone.utc)

    match = UNIX_LIST_PATTERN.match(line)
    if match:
        mode = match.group("mode")
        name = match.group("name")
        if mode.startswith("l") and " -> " in name:
            name = name.split(" -> ", 1)[0]
        month = MONTHS.get(match.group("month").lower())
        day = int(match.group("day"))
        stamp = match.group("time")
        modified: datetime | None = None
        if month is not None:
            try:
                if ":" in stamp:
                    hour, minute = (int(part) for part in stamp.split(":"))
                    modified = datetime(now.year, month, day, hour, minute, tzinfo=timezone.utc)
                    # Listings without a year are within the last six months
                    if modified > now + timedelta(days=1):
                        modified = modified.replace(year=now.year - 1)
                else:
                    modified = datetime(int(stamp), month, day, tzinfo=timezone.utc)
            except ValueError:
                modified = None
        return FindData(
            name=name,
            attributes=_attributes(mode.startswith("d"), mode[2] != "w", name.startswith(".")),
            last_write_time=datetime_to_filetime(modified) if modified else 0,
            size=int(match.group("size")),
            path=_join(directory, name),
        )

    match = DOS_LIST_PATTERN.match(line)
    if match:
        date = match.group("date")
        date_format = "%m-%d-%y" if len(date) == 8 else "%m-%d-%Y"
        try:
            modified = datetime.strptime(
                f"{date} {match.group('time').upper()}", f"{date_format} %I:%M%p"
            ).replace(tzinfo=timezone.utc)
        except ValueError:
            modified = None
        name = match.group("name")
        return FindData(
            name=name,
            attributes=_attributes(match.group("dir") is not None, False, name.startswith(".")),
            last_write_time=datetime_to_filetime(modified) if modified else 0,
            size=int(match.group("size") or 0),
            path=_join(directory, name),
        )

    return None


class FtplibInternetApi:
    """Internet-access API backed by ftplib.FTP connections."""

    def __init__(
        self,
        timeout: float = 30.0,
        ftp_factory: Callable[..., ftplib.FTP] = ftplib.FTP,
    ):
        self.timeout = timeout
        self._ftp_factory = ftp_factory
        self._handles: dict[Handle, object] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._local = threading.local()

    # Last error bookkeeping

    def _last(self) -> _LastError:
        last = getattr(self._local, "last", None)
        if last is None:
            last = self._local.last = _LastError()
        return last

    def get_last_error(self) -> int:
        return self._last().code

    def get_last_response_info(self) -> tuple[int, str]:
        code, text = self._last().response
        return code, text[:RESPONSE_BUFFER_SIZE]

    def _set_error(self, code: int) -> None:
        self._last().code = code

    def _record_response(self, response: object) -> None:
        if isinstance(response, str) and REPLY_CODE_PATTERN.match(response):
            self._last().response = (reply_code(response), response)

    def _fail(self, exc: BaseException) -> None:
        """Store the native error code for an ftplib/socket/OS exception."""
        if isinstance(exc, ftplib.Error):
            text = str(exc)
            self._last().response = (reply_code(text), text)
            code = ERROR_INTERNET_EXTENDED_ERROR
        elif isinstance(exc, socket.gaierror):
            code = ERROR_INTERNET_NAME_NOT_RESOLVED
        elif isinstance(exc, TimeoutError):
            code = ERROR_INTERNET_TIMEOUT
        elif isinstance(exc, ConnectionRefusedError):
            code = ERROR_INTERNET_CANNOT_CONNECT
        elif isinstance(exc, (ConnectionError, EOFError)):
            code = ERROR_INTERNET_CONNECTION_ABORTED
        elif isinstance(exc, FileNotFoundError):
            code = ERROR_FILE_NOT_FOUND
        elif isinstance(exc, FileExistsError):
            code = ERROR_FILE_EXISTS
        elif isinstance(exc, PermissionError):
            code = ERROR_ACCESS_DENIED
        else:
            code = ERROR_INTERNET_INTERNAL_ERROR
        logger.debug(f"Native call failed with {code}: {exc!r}")
        self._set_error(code)

    # Handle table

    def _register(self, obj: object) -> Handle:
        with self._lock:
            handle = next(self._ids)
            self._handles[handle] = obj
        return handle

    def _lookup(self, handle: Handle | None, kind: type) -> object | None:
        with self._lock:
            obj = self._handles.get(handle) if handle else None
        if obj is None:
            self._set_error(ERROR_INVALID_HANDLE)
            return None
        if not isinstance(obj, kind):
            self._set_error(ERROR_INTERNET_INCORRECT_HANDLE_TYPE)
            return None
        return obj

    def _connection(self, handle: Handle | None) -> _ConnectionHandle | None:
        conn = self._lookup(handle, _ConnectionHandle)
        return conn if isinstance(conn, _ConnectionHandle) else None

    # Session / connection

    def internet_open(self, agent: str, access_type: int, flags: int) -> Handle | None:
        logger.debug(f"Opening internet session for agent {agent!r}")
        return self._register(_SessionHandle(agent, access_type, flags))

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
        if self._lookup(session, _SessionHandle) is None:
            return None

        ftp = self._ftp_factory(timeout=self.timeout)
        try:
            welcome = ftp.connect(host, port)
            logger.debug(f"<<< {welcome}")
            # ftplib logs in as anonymous when the user is empty
            response = ftp.login(username or "", password or "")
            ftp.set_pasv(bool(flags & INTERNET_FLAG_PASSIVE))
        except ftplib.all_errors as exc:
            self._fail(exc)
            ftp.close()
            return None

        self._record_response(response)
        return self._register(_ConnectionHandle(ftp, session))

    def internet_close_handle(self, handle: Handle | None) -> bool:
        with self._lock:
            obj = self._handles.pop(handle, None) if handle else None
        if obj is None:
            self._set_error(ERROR_INVALID_HANDLE)
            return False

        if isinstance(obj, _ConnectionHandle):
            try:
                obj.ftp.quit()
            except ftplib.all_errors as exc:
                logger.debug(f"QUIT failed, closing socket: {exc!r}")
                obj.ftp.close()
        elif isinstance(obj, _DataHandle):
            self._finish_data(obj)
        return True

    def _finish_data(self, data: _DataHandle) -> None:
        data.sock.close()
        try:
            self._record_response(data.ftp.voidresp())
        except ftplib.all_errors as exc:
            logger.debug(f"Data transfer did not complete cleanly: {exc!r}")

    # Enumeration

    def ftp_find_first_file(
        self, connection: Handle, search: str, flags: int
    ) -> tuple[Handle | None, FindData | None]:
        conn = self._connection(connection)
        if conn is None:
            return None, None

        try:
            records = self._list(conn, search or "")
        except ftplib.Error as exc:
            if str(exc).startswith(NO_FILES_REPLY):
                self._record_response(str(exc))
                self._set_error(ERROR_NO_MORE_FILES)
            else:
                self._fail(exc)
            return None, None
        except (OSError, EOFError) as exc:
            self._fail(exc)
            return None, None

        if not records:
            self._set_error(ERROR_NO_MORE_FILES)
            return None, None

        iterator = iter(records)
        first = next(iterator)
        return self._register(_FindHandle(iterator)), first

    def internet_find_next_file(self, find_handle: Handle) -> FindData | None:
        find = self._lookup(find_handle, _FindHandle)
        if not isinstance(find, _FindHandle):
            return None
        record = next(find.records, None)
        if record is None:
            self._set_error(ERROR_NO_MORE_FILES)
        return record

    def _list(self, conn: _ConnectionHandle, search: str) -> list[FindData]:
        directory, name = posixpath.split(search.rstrip("/") or search)
        if has_wildcard(name):
            return [
                record
                for record in self._list_directory(conn, directory)
                if fnmatch.fnmatchcase(record.name, name)
            ]

        try:
            return self._list_directory(conn, search)
        except ftplib.error_perm:
            # The path may name a file rather than a directory
            if not name:
                raise
            try:
                siblings = self._list_directory(conn, directory)
            except ftplib.error_perm as parent_exc:
                if str(parent_exc).startswith(NO_MATCH_REPLIES):
                    return []
                raise
            matches = [record for record in siblings if record.name == name]
            if any(record.is_directory for record in matches):
                # The directory is there, so its listing was refused
                raise
            return matches

    def _list_directory(self, conn: _ConnectionHandle, directory: str) -> list[FindData]:
        if conn.use_mlsd:
            try:
                return [
                    parse_mlsd_entry(directory, name, facts)
                    for name, facts in conn.ftp.mlsd(directory, MLSD_FACTS)
                    if name not in (".", "..")
                    and facts.get("type", "file").lower() not in ("cdir", "pdir")
                ]
            except ftplib.error_perm as exc:
                if not str(exc).startswith(UNSUPPORTED_REPLIES):
                    raise
                logger.debug("MLSD not supported, using LIST fallback")
                conn.use_mlsd = False

        lines: list[str] = []
        command = f"LIST {directory}" if directory else "LIST"
        conn.ftp.retrlines(command, lines.append)
        records = []
        for line in lines:
            record = parse_list_line(line, directory)
            if record is None:
                logger.debug(f"Skipping unrecognized listing line: {line!r}")
            elif record.name not in (".", ".."):
                records.append(record)
        return records

    # Transfers

    def ftp_get_file(
        self,
        connection: Handle,
        remote_file: str,
        local_file: str,
        fail_if_exists: bool,
        attributes: int,
        transfer_type: int,
    ) -> bool:
        conn = self._connection(connection)
        if conn is None:
            return False

        if fail_if_exists and os.path.exists(local_file):
            self._set_error(ERROR_FILE_EXISTS)
            return False

        # The target is only replaced once the whole file has arrived
        partial_file = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=os.path.dirname(os.path.abspath(local_file)),
                prefix=".ftp-",
                suffix=".part",
                delete=False,
            ) as handle:
                partial_file = handle.name
                if transfer_type == FTP_TRANSFER_TYPE_ASCII:
                    newline = os.linesep.encode()
                    response = conn.ftp.retrlines(
                        f"RETR {remote_file}",
                        lambda line: handle.write(line.encode(conn.ftp.encoding) + newline),
                    )
                else:
                    response = conn.ftp.retrbinary(f"RETR {remote_file}", handle.write)
            os.replace(partial_file, local_file)
        except ftplib.all_errors as exc:
            self._fail(exc)
            if partial_file is not None:
                with contextlib.suppress(OSError):
                    os.remove(partial_file)
            return False

        self._record_response(response)
        return True

    def ftp_put_file(
        self, connection: Handle, local_file: str, remote_file: str, transfer_type: int
    ) -> bool:
        conn = self._connection(connection)
        if conn is None:
            return False

        try:
            with open(local_file, "rb") as handle:
                if transfer_type == FTP_TRANSFER_TYPE_ASCII:
                    response = conn.ftp.storlines(f"STOR {remote_file}", handle)
                else:
                    response = conn.ftp.storbinary(f"STOR {remote_file}", handle)
        except ftplib.all_errors as exc:
            self._fail(exc)
            return False

        self._record_response(response)
        return True

    # Single commands

    def _invoke(self, connection: Handle, operation: Callable[[ftplib.FTP], object]) -> bool:
        conn = self._connection(connection)
        if conn is None:
            return False
        try:
            response = operation(conn.ftp)
        except ftplib.all_errors as exc:
            self._fail(exc)
            return False
        self._record_response(response)
        return True

    def ftp_rename_file(self, connection: Handle, existing: str, new: str) -> bool:
        return self._invoke(connection, lambda ftp: ftp.rename(existing, new))

    def ftp_delete_file(self, connection: Handle, file_name: str) -> bool:
        return self._invoke(connection, lambda ftp: ftp.delete(file_name))

    def ftp_create_directory(self, connection: Handle, directory: str) -> bool:
        return self._invoke(connection, lambda ftp: ftp.mkd(directory))

    def ftp_remove_directory(self, connection: Handle, directory: str) -> bool:
        return self._invoke(connection, lambda ftp: ftp.rmd(directory))

    def ftp_set_current_directory(self, connection: Handle, directory: str) -> bool:
        return self._invoke(connection, lambda ftp: ftp.cwd(directory))

    def ftp_get_current_directory(self, connection: Handle) -> str | None:
        conn = self._connection(connection)
        if conn is None:
            return None
        try:
            return conn.ftp.pwd()
        except ftplib.all_errors as exc:
            self._fail(exc)
            return None

    def ftp_command(
        self, connection: Handle, expect_response: bool, transfer_type: int, command: str
    ) -> tuple[bool, Handle | None]:
        conn = self._connection(connection)
        if conn is None:
            return False, None

        try:
            conn.ftp.voidcmd("TYPE A" if transfer_type == FTP_TRANSFER_TYPE_ASCII else "TYPE I")
            if expect_response:
                sock = conn.ftp.transfercmd(command)
                return True, self._register(_DataHandle(sock, conn.ftp))
            response = conn.ftp.sendcmd(command)
        except ftplib.all_errors as exc:
            self._fail(exc)
            return False, None

        self._record_response(response)
        return True, None

    def internet_read_file(self, handle: Handle, size: int) -> bytes | None:
        data = self._lookup(handle, _DataHandle)
        if not isinstance(data, _DataHandle):
            return None
        # Fill the buffer unless the stream ends, so a short read means end of data
        chunks: list[bytes] = []
        remaining = size
        try:
            while remaining > 0:
                chunk = data.sock.recv(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        except OSError as exc:
            self._fail(exc)
            return None
        return b"".join(chunks)
