"""Pytest fixtures for ftp-mcp tests."""

import itertools
import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from ftp_mcp.ftp import FtpConnection  # noqa: E402
from ftp_mcp.ftp.native import (  # noqa: E402
    ERROR_INTERNET_EXTENDED_ERROR,
    ERROR_INVALID_HANDLE,
    ERROR_NO_MORE_FILES,
    FileAttributes,
    FindData,
)


class FakeInternetApi:
    """Scripted stand-in for the native internet API.

    Every call is recorded in ``calls`` as ``(name, args)``. Listings are
    keyed by the exact search string; failures are scripted per method
    with ``fail()``.
    """

    def __init__(self):
        self.calls = []
        self.last_error = 0
        self.response = (0, "")
        self.listings = {}
        self.find_errors = {}
        self.next_errors = {}
        self.failures = {}
        self.directories = {"/"}
        self.current_directory = "/"
        self.data_chunks = []
        self.open_handles = {}
        self._ids = itertools.count(100)
        self._finds = {}

    # Scripting helpers

    def fail(self, method, code, response=None):
        """Make ``method`` fail with ``code`` (and optional server response)."""
        self.failures[method] = (code, response)

    def fail_with_reply(self, method, text):
        """Make ``method`` fail with an extended error carrying ``text``."""
        self.fail(method, ERROR_INTERNET_EXTENDED_ERROR, (int(text[:3]), text))

    def called(self, name):
        return [args for call, args in self.calls if call == name]

    def _record(self, name, *args):
        self.calls.append((name, args))
        failure = self.failures.get(name)
        if failure is None:
            return True
        code, response = failure
        self.last_error = code
        if response is not None:
            self.response = response
        return False

    def _new(self, kind):
        handle = next(self._ids)
        self.open_handles[handle] = kind
        return handle

    # InternetApi

    def get_last_error(self):
        return self.last_error

    def get_last_response_info(self):
        return self.response

    def internet_open(self, agent, access_type, flags):
        if not self._record("internet_open", agent, access_type, flags):
            return None
        return self._new("session")

    def internet_connect(self, session, host, port, username, password, service, flags):
        if not self._record("internet_connect", session, host, port, username, password, service, flags):
            return None
        return self._new("connection")

    def internet_close_handle(self, handle):
        self.calls.append(("internet_close_handle", (handle,)))
        if self.open_handles.pop(handle, None) is None:
            self.last_error = ERROR_INVALID_HANDLE
            return False
        return True

    def ftp_find_first_file(self, connection, search, flags):
        if not self._record("ftp_find_first_file", connection, search, flags):
            return None, None
        if search in self.find_errors:
            self.last_error = self.find_errors[search]
            return None, None
        records = list(self.listings.get(search, []))
        if not records:
            self.last_error = ERROR_NO_MORE_FILES
            return None, None
        handle = self._new("find")
        self._finds[handle] = (iter(records[1:]), search)
        return handle, records[0]

    def internet_find_next_file(self, find_handle):
        self.calls.append(("internet_find_next_file", (find_handle,)))
        records, search = self._finds[find_handle]
        record = next(records, None)
        if record is None:
            self.last_error = self.next_errors.get(search, ERROR_NO_MORE_FILES)
        return record

    def ftp_get_file(self, connection, remote, local, fail_if_exists, attributes, transfer_type):
        return self._record(
            "ftp_get_file", connection, remote, local, fail_if_exists, attributes, transfer_type
        )

    def ftp_put_file(self, connection, local, remote, transfer_type):
        return self._record("ftp_put_file", connection, local, remote, transfer_type)

    def ftp_rename_file(self, connection, existing, new):
        return self._record("ftp_rename_file", connection, existing, new)

    def ftp_delete_file(self, connection, file_name):
        return self._record("ftp_delete_file", connection, file_name)

    def ftp_create_directory(self, connection, directory):
        return self._record("ftp_create_directory", connection, directory)

    def ftp_remove_directory(self, connection, directory):
        return self._record("ftp_remove_directory", connection, directory)

    def ftp_set_current_directory(self, connection, directory):
        if not self._record("ftp_set_current_directory", connection, directory):
            return False
        if directory not in self.directories:
            self.last_error = ERROR_INTERNET_EXTENDED_ERROR
            self.response = (550, f"550 {directory}: No such file or directory")
            return False
        self.current_directory = directory
        return True

    def ftp_get_current_directory(self, connection):
        if not self._record("ftp_get_current_directory", connection):
            return None
        return self.current_directory

    def ftp_command(self, connection, expect_response, transfer_type, command):
        if not self._record("ftp_command", connection, expect_response, transfer_type, command):
            return False, None
        self.response = (200, "200 Command okay.")
        if expect_response:
            return True, self._new("data")
        return True, None

    def internet_read_file(self, handle, size):
        if not self._record("internet_read_file", handle, size):
            return None
        return self.data_chunks.pop(0) if self.data_chunks else b""


def make_record(name, directory=False, size=0, path=None, **times):
    """Build a FindData record for listings."""
    attributes = FileAttributes.DIRECTORY if directory else FileAttributes.NORMAL
    return FindData(name=name, attributes=attributes, size=size, path=path, **times)


@pytest.fixture
def fake_api():
    """Scripted native API double."""
    return FakeInternetApi()


@pytest.fixture
def record():
    """Factory for FindData records."""
    return make_record


@pytest.fixture
def connection(fake_api):
    """Connection to ftp.example.com that has not logged on yet."""
    return FtpConnection("ftp.example.com", api=fake_api)


@pytest.fixture
def connected(connection):
    """Anonymous connection that has logged on."""
    connection.log_on()
    return connection
