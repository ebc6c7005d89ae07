"""Tests for find-first / find-next enumeration."""

import pytest

from ftp_mcp.ftp import FtpDirectoryInfo, FtpError, FtpFileInfo, FtpSystemError
from ftp_mcp.ftp.enumeration import collect_entries, iter_find_data
from ftp_mcp.ftp.native import (
    ERROR_INTERNET_CONNECTION_ABORTED,
    ERROR_INTERNET_EXTENDED_ERROR,
    INTERNET_FLAG_NO_CACHE_WRITE,
)


class TestIterFindData:
    """Tests for the raw record sequence."""

    def test_yields_in_server_order(self, fake_api, record):
        fake_api.listings["/pub"] = [record("c"), record("a"), record("b")]

        names = [r.name for r in iter_find_data(fake_api, 1, "/pub")]

        assert names == ["c", "a", "b"]

    def test_no_more_files_on_first_call(self, fake_api):
        assert list(iter_find_data(fake_api, 1, "*.none")) == []
        assert fake_api.called("internet_close_handle") == []

    def test_search_uses_no_cache_flag(self, fake_api):
        list(iter_find_data(fake_api, 7, "*.txt"))

        assert fake_api.called("ftp_find_first_file") == [(7, "*.txt", INTERNET_FLAG_NO_CACHE_WRITE)]

    def test_first_call_failure_raises(self, fake_api):
        fake_api.find_errors["/denied"] = ERROR_INTERNET_EXTENDED_ERROR
        fake_api.response = (550, "550 Permission denied")

        with pytest.raises(FtpError, match="550 Permission denied"):
            list(iter_find_data(fake_api, 1, "/denied"))

    def test_lazy_until_consumed(self, fake_api, record):
        fake_api.listings["/pub"] = [record("a")]

        records = iter_find_data(fake_api, 1, "/pub")

        assert fake_api.calls == []
        assert next(records).name == "a"

    def test_handle_closed_after_full_iteration(self, fake_api, record):
        fake_api.listings["/pub"] = [record("a"), record("b")]

        list(iter_find_data(fake_api, 1, "/pub"))

        assert fake_api.open_handles == {}

    def test_handle_closed_when_abandoned(self, fake_api, record):
        fake_api.listings["/pub"] = [record("a"), record("b"), record("c")]

        records = iter_find_data(fake_api, 1, "/pub")
        next(records)
        records.close()

        assert fake_api.open_handles == {}

    def test_mid_listing_failure_raises_and_closes(self, fake_api, record):
        fake_api.listings["/pub"] = [record("a"), record("b")]
        fake_api.next_errors["/pub"] = ERROR_INTERNET_CONNECTION_ABORTED

        seen = []
        with pytest.raises(FtpSystemError) as exc_info:
            for r in iter_find_data(fake_api, 1, "/pub"):
                seen.append(r.name)

        assert seen == ["a", "b"]
        assert exc_info.value.code == ERROR_INTERNET_CONNECTION_ABORTED
        assert fake_api.open_handles == {}


class TestCollectEntries:
    """Tests for mapping records to info objects."""

    def test_partition_preserves_order(self, connected, fake_api, record):
        """Files and directories are split without reordering."""
        listing = [
            record("z.txt"),
            record("src", directory=True),
            record("a.txt"),
            record("docs", directory=True),
        ]
        fake_api.listings["/"] = listing

        files = connected.get_files("/")
        directories = connected.get_directories("/")

        assert [f.name for f in files] == ["z.txt", "a.txt"]
        assert [d.name for d in directories] == ["src", "docs"]
        assert all(isinstance(f, FtpFileInfo) for f in files)
        assert all(isinstance(d, FtpDirectoryInfo) for d in directories)

    def test_empty_mask_is_not_an_error(self, connected):
        assert connected.get_files("*.nothing") == []
        assert connected.get_directories("/nothing") == []

    def test_defaults_to_current_directory(self, connected, fake_api, record):
        fake_api.directories.add("/pub")
        fake_api.current_directory = "/pub"
        fake_api.listings["/pub"] = [record("readme", path="/pub/readme")]

        files = connected.get_files()

        assert [f.full_path for f in files] == ["/pub/readme"]
        searches = [args[1] for args in fake_api.called("ftp_find_first_file")]
        assert searches == ["/pub"]

    def test_entries_bound_to_connection(self, connected, fake_api, record):
        fake_api.listings["*"] = [record("a.txt")]

        (entry,) = connected.get_files("*")

        assert entry.connection is connected

    def test_partial_results_attached(self, connected, fake_api, record):
        fake_api.listings["/pub"] = [record("a.txt"), record("dir", directory=True), record("b.txt")]
        fake_api.next_errors["/pub"] = ERROR_INTERNET_CONNECTION_ABORTED

        with pytest.raises(FtpError) as exc_info:
            connected.get_files("/pub")

        partial = exc_info.value.partial_results
        assert [f.name for f in partial] == ["a.txt", "b.txt"]

    def test_collect_entries_directly(self, fake_api, record):
        fake_api.listings["/"] = [record("x", directory=True), record("y")]

        entries = collect_entries(None, fake_api, 1, "/", want_directories=True)

        assert [e.name for e in entries] == ["x"]
        assert entries[0].connection is None
