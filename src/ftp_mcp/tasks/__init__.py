"""FTP task actions: upload, download, delete files, create/delete directories."""

from .runner import FtpTaskRunner, is_benign_reply
from .state import TaskAction, TaskFailure, TaskResult

__all__ = [
    "FtpTaskRunner",
    "TaskAction",
    "TaskFailure",
    "TaskResult",
    "is_benign_reply",
]
