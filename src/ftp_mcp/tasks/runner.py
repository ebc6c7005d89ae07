"""FTP task runner - upload, download and remote housekeeping actions.

Each action opens its own connection, performs its work and closes the
connection again. Replies containing "550" (file or directory unavailable,
already exists) are treated as benign where the action allows it; that
policy lives here, not in the FTP client.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from ..config import FtpSettings
from ..ftp import FtpConnection, FtpError, LocalDirectoryError
from ..ftp.connection import base_name
from ..ftp.info import FtpFileInfo
from .state import TaskAction, TaskResult

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., FtpConnection]


def is_benign_reply(error: FtpError) -> bool:
    """Check whether the server reply is a 550 (unavailable / already exists)."""
    return "550" in str(error)


class FtpTaskRunner:
    """Runs FTP task actions against the configured host.

    Usage:
        runner = FtpTaskRunner(FtpSettings.from_env())
        result = runner.upload_files(["build.zip"], remote_directory="drops")
    """

    def __init__(
        self,
        settings: FtpSettings,
        connection_factory: ConnectionFactory = FtpConnection,
    ):
        self.settings = settings
        self._connection_factory = connection_factory

    def run(self, action: str | TaskAction, **kwargs: Any) -> TaskResult:
        """Dispatch ``action`` to the matching task method."""
        try:
            task_action = TaskAction(action)
        except ValueError:
            result = TaskResult(str(action), self.settings.host)
            result.fail(str(action), f"Invalid Task Action passed: {action}")
            logger.error(f"Invalid Task Action passed: {action}")
            return result

        handlers: dict[TaskAction, Callable[..., TaskResult]] = {
            TaskAction.UPLOAD_FILES: self.upload_files,
            TaskAction.DOWNLOAD_FILES: self.download_files,
            TaskAction.DELETE_FILES: self.delete_files,
            TaskAction.CREATE_DIRECTORY: self.create_directory,
            TaskAction.DELETE_DIRECTORY: self.delete_directory,
        }
        return handlers[task_action](**kwargs)

    def _new_result(self, action: TaskAction) -> TaskResult:
        result = TaskResult(action.value, self.settings.host)
        if not self.settings.host:
            result.fail("Host", "The required host attribute has not been set for FTP.")
        return result

    def _connect(self) -> FtpConnection:
        logger.info(f"Connecting to FTP Host: {self.settings.host}")
        return self._connection_factory(
            self.settings.host,
            self.settings.port,
            self.settings.username,
            self.settings.password,
            timeout=self.settings.timeout,
        )

    def _abort(self, result: TaskResult, error: FtpError | LocalDirectoryError) -> TaskResult:
        logger.error(f"{result.action} on {self.settings.host} failed: {error}")
        result.fail(self.settings.host or "", str(error), getattr(error, "code", -1))
        return result

    def _apply(
        self,
        result: TaskResult,
        target: str,
        operation: Callable[[], Any],
        allow_unavailable: bool = False,
    ) -> None:
        try:
            operation()
        except FtpError as e:
            if allow_unavailable and is_benign_reply(e):
                logger.warning(f"Ignoring server reply for {target}: {e}")
                result.skipped.append(target)
                return
            logger.error(
                f"There was an error processing {target}. "
                f'The Error Details are "{e}" and error code is {e.code}'
            )
            result.fail(target, str(e), e.code)
        else:
            result.processed.append(target)

    def _enter_remote_directory(
        self, ftp: FtpConnection, result: TaskResult, remote_directory: str | None
    ) -> None:
        if remote_directory:
            logger.info(f"Setting Current Directory: {remote_directory}")
            result.messages.append(f"Current directory: {remote_directory}")
            ftp.set_current_directory(remote_directory)

    def create_directory(self, remote_directory: str | None = None) -> TaskResult:
        """Create ``remote_directory``; an existing directory is not an error."""
        result = self._new_result(TaskAction.CREATE_DIRECTORY)
        if not result.success:
            return result
        if not remote_directory:
            result.fail(
                "RemoteDirectoryName",
                "The required RemoteDirectoryName attribute has not been set for FTP.",
            )
            return result

        try:
            with self._connect() as ftp:
                ftp.log_on()
                logger.info(f"Creating Directory: {remote_directory}")
                self._apply(
                    result,
                    remote_directory,
                    partial(ftp.create_directory, remote_directory),
                    allow_unavailable=True,
                )
        except FtpError as e:
            return self._abort(result, e)
        return result

    def delete_directory(self, remote_directory: str | None = None) -> TaskResult:
        """Delete ``remote_directory``; a missing directory is not an error."""
        result = self._new_result(TaskAction.DELETE_DIRECTORY)
        if not result.success:
            return result
        if not remote_directory:
            result.fail(
                "RemoteDirectoryName",
                "The required RemoteDirectoryName attribute has not been set for FTP.",
            )
            return result

        try:
            with self._connect() as ftp:
                ftp.log_on()
                logger.info(f"Deleting Directory: {remote_directory}")
                self._apply(
                    result,
                    remote_directory,
                    partial(ftp.delete_directory, remote_directory),
                    allow_unavailable=True,
                )
        except FtpError as e:
            return self._abort(result, e)
        return result

    def delete_files(
        self, file_names: Iterable[str] | None = None, remote_directory: str | None = None
    ) -> TaskResult:
        """Delete remote files; missing files are skipped."""
        result = self._new_result(TaskAction.DELETE_FILES)
        if not result.success:
            return result
        if file_names is None:
            result.fail("FileNames", "The required FileNames attribute has not been set for FTP.")
            return result

        try:
            with self._connect() as ftp:
                ftp.log_on()
                logger.info("Deleting Files")
                self._enter_remote_directory(ftp, result, remote_directory)
                for file_name in file_names:
                    logger.info(f"Deleting: {file_name}")
                    self._apply(
                        result, file_name, partial(ftp.delete_file, file_name), allow_unavailable=True
                    )
        except FtpError as e:
            return self._abort(result, e)
        return result

    def upload_files(
        self,
        file_names: Iterable[str] | None = None,
        remote_directory: str | None = None,
        working_directory: str | None = None,
        overwrite: bool = True,
    ) -> TaskResult:
        """Upload local files into the remote directory.

        Args:
            file_names: Local files, relative to the working directory
            remote_directory: Remote directory to upload into
            working_directory: Local base directory (defaults to settings)
            overwrite: When False, names already present remotely are skipped
        """
        result = self._new_result(TaskAction.UPLOAD_FILES)
        if not result.success:
            return result
        if file_names is None:
            result.fail("FileNames", "The required fileNames attribute has not been set for FTP.")
            return result
        working_directory = working_directory or self.settings.working_directory

        try:
            with self._connect() as ftp:
                logger.info("Uploading Files")
                if working_directory:
                    logger.info(f"Setting Local Directory: {working_directory}")
                    ftp.set_local_directory(working_directory)

                ftp.log_on()
                self._enter_remote_directory(ftp, result, remote_directory)

                existing: set[str] = set()
                if not overwrite:
                    existing = {entry.name for entry in ftp.get_files()}

                for file_name in file_names:
                    local_path = ftp.resolve_local_path(file_name)
                    if not os.path.isfile(local_path):
                        logger.warning(f"Local file not found, skipping: {local_path}")
                        result.skipped.append(file_name)
                        continue
                    if base_name(file_name) in existing:
                        logger.info(f"Skipped: {file_name}")
                        result.skipped.append(file_name)
                        continue

                    logger.info(f"Uploading: {file_name}")
                    self._apply(result, file_name, partial(ftp.put_file, file_name))
        except (FtpError, LocalDirectoryError) as e:
            return self._abort(result, e)
        return result

    def download_files(
        self,
        file_names: Iterable[str] | None = None,
        remote_directory: str | None = None,
        working_directory: str | None = None,
    ) -> TaskResult:
        """Download remote files into the working directory.

        With no ``file_names`` every file of the remote directory is
        downloaded. The working directory is created when missing.
        """
        result = self._new_result(TaskAction.DOWNLOAD_FILES)
        if not result.success:
            return result
        working_directory = working_directory or self.settings.working_directory

        try:
            with self._connect() as ftp:
                if working_directory:
                    os.makedirs(working_directory, exist_ok=True)
                    logger.info(f"Setting Local Directory: {working_directory}")
                    ftp.set_local_directory(working_directory)

                ftp.log_on()
                self._enter_remote_directory(ftp, result, remote_directory)

                logger.info("Downloading Files")
                if file_names is None:
                    remote_files: list[FtpFileInfo] = ftp.get_files()
                    names = [entry.name for entry in remote_files]
                else:
                    names = [name.strip() for name in file_names]

                for file_name in names:
                    logger.info(f"Downloading: {file_name}")
                    self._apply(result, file_name, partial(ftp.get_file, file_name))
        except (FtpError, LocalDirectoryError) as e:
            return self._abort(result, e)
        return result
