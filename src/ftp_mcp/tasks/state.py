"""FTP task actions and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskAction(str, Enum):
    """Supported FTP task actions."""

    UPLOAD_FILES = "UploadFiles"
    DOWNLOAD_FILES = "DownloadFiles"
    DELETE_FILES = "DeleteFiles"
    CREATE_DIRECTORY = "CreateDirectory"
    DELETE_DIRECTORY = "DeleteDirectory"


@dataclass
class TaskFailure:
    """One target that failed within a task."""

    target: str
    message: str
    code: int = -1

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target, "message": self.message, "code": self.code}

    def describe(self) -> str:
        return (
            f'The Error Details are "{self.message}" and error code is {self.code}'
        )


@dataclass
class TaskResult:
    """Outcome of one task action."""

    action: str
    host: str | None
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[TaskFailure] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    def fail(self, target: str, message: str, code: int = -1) -> None:
        self.failures.append(TaskFailure(target, message, code))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "action": self.action,
            "host": self.host,
            "success": self.success,
            "processed": list(self.processed),
            "skipped": list(self.skipped),
        }
        if self.failures:
            result["failures"] = [f.to_dict() for f in self.failures]
        if self.messages:
            result["messages"] = list(self.messages)
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK]" if self.success else "[FAILED]"
        parts = [
            f"{status} {self.action} on {self.host}",
            f"  Processed: {len(self.processed)}",
        ]
        if self.skipped:
            parts.append(f"  Skipped: {len(self.skipped)}")
        for failure in self.failures[:5]:
            parts.append(f"    {failure.target}: {failure.describe()}")
        if len(self.failures) > 5:
            parts.append(f"    ... and {len(self.failures) - 5} more failures")
        return "\n".join(parts)
