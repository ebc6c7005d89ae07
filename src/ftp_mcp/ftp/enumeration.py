"""Remote directory enumeration over find-first / find-next."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .errors import FtpError, translate_error
from .info import FtpDirectoryInfo, FtpFileInfo
from .native import ERROR_NO_MORE_FILES, INTERNET_FLAG_NO_CACHE_WRITE, FindData, Handle

if TYPE_CHECKING:
    from .connection import FtpConnection
    from .native import InternetApi

logger = logging.getLogger(__name__)


def iter_find_data(api: InternetApi, connection: Handle, search: str) -> Iterator[FindData]:
    """Yield the raw records matching ``search``.

    The sequence is lazy and can be consumed once. "No more files" on the
    first call yields nothing. Any other failure raises the translated error.
    The search handle is closed however the iteration ends.
    """
    find_handle, record = api.ftp_find_first_file(
        connection, search, INTERNET_FLAG_NO_CACHE_WRITE
    )
    if find_handle is None:
        code = api.get_last_error()
        if code == ERROR_NO_MORE_FILES:
            logger.debug(f"No entries match {search!r}")
            return
        raise translate_error(api, code)

    try:
        if record is not None:
            yield record
        while True:
            record = api.internet_find_next_file(find_handle)
            if record is None:
                break
            yield record

        code = api.get_last_error()
        if code != ERROR_NO_MORE_FILES:
            raise translate_error(api, code)
    finally:
        api.internet_close_handle(find_handle)


def collect_entries(
    owner: FtpConnection,
    api: InternetApi,
    connection: Handle,
    search: str,
    want_directories: bool,
) -> list:
    """Map matching records to FtpDirectoryInfo or FtpFileInfo, in server order.

    On failure the error is logged and re-raised with the entries gathered
    so far attached as ``partial_results``.
    """
    entry_type = FtpDirectoryInfo if want_directories else FtpFileInfo
    entries: list = []
    try:
        for record in iter_find_data(api, connection, search):
            if record.is_directory == want_directories:
                entries.append(entry_type.from_find_data(owner, record))
    except FtpError as e:
        logger.error(f"Listing {search!r} failed after {len(entries)} entries: {e}")
        e.partial_results = entries
        raise
    return entries
