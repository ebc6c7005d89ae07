"""FTP connection settings.

Settings are resolved from two sources, later ones winning:
1. Environment variables (FTP_HOST, FTP_PORT, FTP_USERNAME, FTP_PASSWORD,
   FTP_WORKING_DIRECTORY, FTP_TIMEOUT)
2. Command line / per-call overrides
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .ftp.native import DEFAULT_FTP_PORT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _parse_number(name: str, value: str, kind: type) -> Any:
    try:
        number = kind(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


@dataclass
class FtpSettings:
    """Connection settings for the FTP host the server works against."""

    host: str | None = None
    port: int = DEFAULT_FTP_PORT
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    """Never logged or serialized."""

    working_directory: str | None = None
    """Local base directory for uploads and downloads."""

    timeout: float = DEFAULT_TIMEOUT
    """Socket timeout in seconds for the control and data connections."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FtpSettings:
        """Load settings from environment variables.

        Raises:
            ValueError: If FTP_PORT or FTP_TIMEOUT is not a positive number
        """
        env = os.environ if environ is None else environ
        settings = cls(
            host=env.get("FTP_HOST") or None,
            username=env.get("FTP_USERNAME") or None,
            password=env.get("FTP_PASSWORD") or None,
            working_directory=env.get("FTP_WORKING_DIRECTORY") or None,
        )
        if env.get("FTP_PORT"):
            settings.port = _parse_number("FTP_PORT", env["FTP_PORT"], int)
        if env.get("FTP_TIMEOUT"):
            settings.timeout = _parse_number("FTP_TIMEOUT", env["FTP_TIMEOUT"], float)
        return settings

    def with_overrides(self, **overrides: Any) -> FtpSettings:
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization. The password is redacted."""
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username or "anonymous",
            "password": "***" if self.password else None,
            "workingDirectory": self.working_directory,
            "timeout": self.timeout,
        }


# Global settings (set at startup)
_settings: FtpSettings = FtpSettings()


def configure(settings: FtpSettings) -> None:
    """Install the startup settings. Should be called once at server startup."""
    global _settings
    _settings = settings
    logger.debug(f"FTP settings configured: {settings.to_dict()}")


def get_settings() -> FtpSettings:
    """Get current settings."""
    return _settings
