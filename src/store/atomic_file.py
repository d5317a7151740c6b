"""Cross-process atomic file channel.

Reads take a shared lock and writes take an exclusive lock on a sidecar
lock file, so no reader ever observes a partially written config file.
Writes go to a temporary file in the target directory and are renamed
over the target, which is atomic on a single filesystem.
"""

from __future__ import annotations

from contextlib import contextmanager
import fcntl
import os
from pathlib import Path
import tempfile
from typing import Iterator

from core.constants import LOCK_FILE_SUFFIX, TEMP_FILE_SUFFIX
from core.errors import StrataIOError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class AtomicFile:
    """Lock-protected read/write channel for one file path.

    Locks are held on a sidecar `<file_name>.lock` file next to the target.
    The sidecar is created on first use and never removed, so each target
    leaves two files in its directory.
    """

    def __init__(self, path: Path, durable: bool = True) -> None:
        """Create a channel for a target path.

        Args:
            path: Target file path.
            durable: Whether writes fsync the temp file and directory.
        """
        self._path = path
        self._lock_path = lock_path_for(path)
        self._durable = durable

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> bytes:
        """Read the full file contents under a shared lock.

        The target is created empty when absent.

        Returns:
            Raw file bytes.

        Raises:
            StrataIOError: If locking or reading fails.
        """
        try:
            with _flock(self._lock_path, fcntl.LOCK_SH):
                descriptor = os.open(self._path, os.O_RDONLY | os.O_CREAT, 0o644)
                with os.fdopen(descriptor, "rb") as handle:
                    return handle.read()
        except OSError as error:
            raise StrataIOError(
                f"Failed to read config file {self._path}: {error}. "
                "Check that the config directory exists and is readable."
            ) from error

    def write(self, data: bytes) -> None:
        """Atomically replace the file contents under an exclusive lock.

        Blocks until every other reader and writer of the path releases
        its lock. A failure before the rename leaves the original file
        untouched.

        Args:
            data: Complete new file contents.

        Raises:
            StrataIOError: If locking, writing, syncing, or renaming fails.
        """
        try:
            with _flock(self._lock_path, fcntl.LOCK_EX):
                self._replace_contents(data)
                self._sync_directory()
        except OSError as error:
            raise StrataIOError(
                f"Failed to write config file {self._path}: {error}. "
                "The previous file contents were kept."
            ) from error
        _LOGGER.debug("atomic_write_completed", path=str(self._path), size_bytes=len(data))

    def _replace_contents(self, data: bytes) -> None:
        directory = self._path.parent
        handle = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=directory,
            prefix=f".{self._path.name}.",
            suffix=TEMP_FILE_SUFFIX,
            delete=False,
        )
        temp_path = Path(handle.name)
        try:
            with handle:
                handle.write(data)
                handle.flush()
                if self._durable:
                    os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def _sync_directory(self) -> None:
        if not self._durable:
            return
        try:
            _fsync_directory(self._path.parent)
        except OSError as error:
            raise StrataIOError(
                f"Replaced config file {self._path} but failed to sync its directory: "
                f"{error}. The new contents may not survive a crash."
            ) from error


def lock_path_for(path: Path) -> Path:
    """Return the sidecar lock file path for a target file."""
    return path.with_name(path.name + LOCK_FILE_SUFFIX)


@contextmanager
def _flock(lock_path: Path, operation: int) -> Iterator[None]:
    """Hold an flock on the sidecar lock file for the block duration."""
    descriptor = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        fcntl.flock(descriptor, operation)
        try:
            yield
        finally:
            fcntl.flock(descriptor, fcntl.LOCK_UN)
    finally:
        os.close(descriptor)


def _fsync_directory(directory: Path) -> None:
    # Persists the rename itself.
    descriptor = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(descriptor)
    finally:
        os.close(descriptor)
