"""Create declared files for one invocation and guarantee their removal."""
import logging
import os
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from ..domains.errors import (
    AlreadyExists,
    DirectoryCreationError,
    FileWriteError,
)
from ..domains.models import CleanupReport, EphemeralFile, FileState

logger = logging.getLogger(__name__)

# Content may be secret: owner read/write only.
FILE_MODE = 0o600


def _target(file: EphemeralFile) -> str:
    return os.path.expanduser(file.path)


class EphemeralFileManager:
    """
    Stages files and removes exactly the files it staged.

    Parent directories created along the way are left in place.
    """

    def __init__(self):
        self.last_report: Optional[CleanupReport] = None

    def stage(self, files: Sequence[EphemeralFile], force: bool = False) -> List[EphemeralFile]:
        """
        Write every file, in order, or none of them.

        Args:
            files: Pending files in manifest order
            force: Replace existing destinations (the old entry is unlinked,
                a symlink's target is left untouched; the new file is removed
                on cleanup like any other staged file)

        Returns:
            The staged files, state CREATED

        Raises:
            AlreadyExists: If a destination exists and force is not set
            DirectoryCreationError: If a parent directory cannot be created
            FileWriteError: If a destination cannot be written
        """
        created: List[EphemeralFile] = []
        try:
            for file in files:
                # Tracked before writing; cleanup skips files still PENDING.
                created.append(file)
                self._write(file, force)
        except BaseException:
            # Roll back this invocation's files before surfacing the error.
            logger.info("Staging aborted, removing files already written")
            log_cleanup_report(self.cleanup(created))
            raise
        return created

    def _write(self, file: EphemeralFile, force: bool) -> None:
        path = _target(file)
        parent = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(
                f"Failed to create directories for {file.path}: {e.strerror or e}"
            ) from e

        if force:
            # Replace the directory entry itself; writing through an existing
            # symlink would leave the content in its target after cleanup.
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise FileWriteError(f"Failed to replace file {file.path}: {e.strerror or e}") from e

        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(path, flags, FILE_MODE)
        except FileExistsError as e:
            raise AlreadyExists(f"File '{file.path}' already exists. Use --force to overwrite.") from e
        except OSError as e:
            raise FileWriteError(f"Failed to write file {file.path}: {e.strerror or e}") from e

        # From here on the file is ours to remove, even if writing fails.
        file.state = FileState.CREATED
        try:
            with os.fdopen(fd, 'wb') as handle:
                handle.write(file.content)
        except OSError as e:
            raise FileWriteError(f"Failed to write file {file.path}: {e.strerror or e}") from e
        logger.info(f"Created file {file.path}")

    def cleanup(self, created: Sequence[EphemeralFile]) -> CleanupReport:
        """
        Remove staged files. Each removal is attempted independently.

        Returns:
            CleanupReport with removed paths and (path, reason) failures
        """
        report = CleanupReport()
        for file in reversed(list(created)):
            if file.state not in (FileState.CREATED, FileState.REMOVAL_FAILED):
                continue
            try:
                os.remove(_target(file))
            except FileNotFoundError:
                logger.debug(f"File {file.path} was already removed")
            except OSError as e:
                file.state = FileState.REMOVAL_FAILED
                report.failures.append((file.path, e.strerror or str(e)))
                continue
            file.state = FileState.REMOVED
            report.removed.append(file.path)
        return report

    @contextmanager
    def staged(self, files: Sequence[EphemeralFile], force: bool = False) -> Iterator[List[EphemeralFile]]:
        """Stage files for the duration of the block; cleanup runs on every exit path."""
        created = self.stage(files, force)
        try:
            yield created
        finally:
            self.last_report = self.cleanup(created)
            log_cleanup_report(self.last_report)


def log_cleanup_report(report: CleanupReport) -> None:
    """Surface removal failures as warnings."""
    for path in report.removed:
        logger.info(f"Removed file {path}")
    for path, reason in report.failures:
        logger.warning(f"Warning: failed to remove file '{path}': {reason}")
