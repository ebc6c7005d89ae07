"""FTP client over a native internet-access API."""

from .connection import FtpConnection
from .errors import (
    FtpError,
    FtpProtocolError,
    FtpSystemError,
    LocalDirectoryError,
    NotConnectedError,
)
from .ftplib_api import FtplibInternetApi
from .info import FtpDirectoryInfo, FtpFileInfo
from .native import DEFAULT_FTP_PORT, FileAttributes, FindData, InternetApi

__all__ = [
    "DEFAULT_FTP_PORT",
    "FileAttributes",
    "FindData",
    "FtpConnection",
    "FtpDirectoryInfo",
    "FtpError",
    "FtpFileInfo",
    "FtpProtocolError",
    "FtpSystemError",
    "FtplibInternetApi",
    "InternetApi",
    "LocalDirectoryError",
    "NotConnectedError",
]
