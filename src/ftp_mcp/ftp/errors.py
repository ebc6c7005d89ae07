"""FTP exceptions and native error translation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .native import ERROR_INTERNET_EXTENDED_ERROR

if TYPE_CHECKING:
    from .native import InternetApi

logger = logging.getLogger(__name__)

ERROR_HELP_URL = "https://learn.microsoft.com/en-us/windows/win32/wininet/wininet-errors"

NOT_CONNECTED_MESSAGE = (
    "The user is not connected to the FTP server. Please connect and try again."
)


class FtpError(Exception):
    """Base exception for FTP failures.

    ``code`` holds the native error code; it is -1 when the error was
    built from a plain message.
    """

    def __init__(self, message: str, code: int = -1):
        super().__init__(message)
        self.code = code
        self.partial_results: list[Any] | None = None

    @property
    def message(self) -> str:
        return str(self)


class NotConnectedError(FtpError):
    """Raised when an operation needs a server connection and there is none."""

    def __init__(self, message: str = NOT_CONNECTED_MESSAGE):
        super().__init__(message)


class FtpProtocolError(FtpError):
    """Native call failed and the server supplied a response text."""

    pass


class FtpSystemError(FtpError):
    """Native call failed for a reason unrelated to the FTP protocol."""

    pass


class LocalDirectoryError(FileNotFoundError):
    """Raised when a local directory does not exist."""

    pass


def translate_error(api: InternetApi, code: int | None = None) -> FtpError:
    """Build the exception for the last failed native call.

    Args:
        api: Native API whose last call failed
        code: Error code already read right after the failure. When omitted
            it is read from the API here, so nothing else may run between
            the failing call and this one.

    Returns:
        FtpProtocolError carrying the server response for extended errors,
        FtpSystemError otherwise
    """
    if code is None:
        code = api.get_last_error()

    if code == ERROR_INTERNET_EXTENDED_ERROR:
        response_code, text = api.get_last_response_info()
        logger.debug(f"Extended error {response_code}: {text.strip()}")
        return FtpProtocolError(text, response_code)

    logger.debug(f"Native error {code}")
    return FtpSystemError(f"Error code: {code}. Please see: {ERROR_HELP_URL}", code)


def raise_last_error(api: InternetApi) -> None:
    """Raise the translated error for the last failed native call."""
    raise translate_error(api)
