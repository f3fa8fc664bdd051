"""Cross-process exclusive locks scoped to a directory.

Two strategies share one contract: a kernel advisory lock (``flock``) where
the platform provides it, and a create-exclusive retry loop with stale lock
recovery elsewhere. Both are built on the filelock library and use
``<directory>/.lock`` as the lock file. Callers normally go through
``with_lock`` or ``directory_lock`` and never pick a strategy themselves.
"""

import importlib.util
import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar, Union

from filelock import SoftFileLock, Timeout as FilelockTimeout, UnixFileLock

from mdstore.config import StoreConfig
from mdstore.persistence import ensure_dir

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".lock"

HAS_KERNEL_LOCK = importlib.util.find_spec("fcntl") is not None

T = TypeVar("T")


class LockTimeout(Exception):
    """Raised when lock acquisition times out."""

    def __init__(self, lock_file: Path, timeout: Optional[float]):
        self.lock_file = lock_file
        self.timeout = timeout
        super().__init__(
            f"Lock {lock_file} is held by another process. "
            f"Gave up after {timeout}s; retry in a moment or increase the timeout."
        )


class DirectoryLock(ABC):
    """Exclusive lock over a directory's critical section.

    Attributes:
        directory: Directory being protected (created on acquisition)
        lock_file: Path of the lock file, ``<directory>/.lock``
        config: Timeouts and retry tuning
    """

    def __init__(self, directory: Union[str, Path], config: Optional[StoreConfig] = None):
        self.directory = Path(directory)
        self.lock_file = self.directory / LOCK_FILE_NAME
        self.config = config or StoreConfig()

    @abstractmethod
    @contextmanager
    def acquire(self) -> Iterator["DirectoryLock"]:
        """Hold the lock for the duration of the ``with`` block.

        Raises:
            LockTimeout: If the lock could not be obtained in time
            OSError: If the directory or lock file cannot be created
        """

    def run(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` while holding the lock and return its result.

        Exceptions raised by ``fn`` propagate after the lock is released.
        """
        with self.acquire():
            return fn()


class KernelLock(DirectoryLock):
    """Advisory ``flock`` on the lock file.

    Waits without limit unless ``config.kernel_lock_timeout`` is set. The
    operating system drops the lock when the holder dies, so an abandoned
    lock can never block forever. The lock file is left in place on release.
    """

    @contextmanager
    def acquire(self) -> Iterator["KernelLock"]:
        ensure_dir(self.directory)

        timeout = self.config.kernel_lock_timeout
        lock = UnixFileLock(str(self.lock_file), timeout=-1 if timeout is None else timeout)

        try:
            lock.acquire()
        except FilelockTimeout:
            raise LockTimeout(self.lock_file, timeout) from None

        logger.debug(f"Kernel lock acquired on {self.lock_file}")
        try:
            yield self
        finally:
            lock.release()
            logger.debug(f"Kernel lock released on {self.lock_file}")


class RetryLock(DirectoryLock):
    """Create-exclusive lock file with polling and stale lock recovery.

    The lock is held while the lock file exists. A lock file older than
    ``config.stale_lock_age`` is assumed to belong to a crashed holder and
    is removed. Acquisition fails with LockTimeout after ``config.lock_timeout``.
    """

    def lock_age(self) -> Optional[float]:
        """Seconds since the lock file was last modified, or None if absent."""
        try:
            return time.time() - self.lock_file.stat().st_mtime
        except FileNotFoundError:
            return None

    def release_if_stale(self) -> bool:
        """
        Remove the lock file if it is older than the staleness threshold.

        The file is first renamed to a unique name and its age is checked
        again, so a waiter that read a stale age cannot delete a lock file
        another waiter has just created. A fresh file is linked back into
        place.

        Returns:
            True if a stale lock was removed (or vanished meanwhile), False
            if there is no lock file or it is still fresh

        Raises:
            OSError: If a stale lock file exists but cannot be removed
        """
        age = self.lock_age()
        if age is None or age <= self.config.stale_lock_age:
            return False

        claimed = self.lock_file.with_name(f"{LOCK_FILE_NAME}.stale.{uuid.uuid4().hex}")
        try:
            os.rename(self.lock_file, claimed)
        except FileNotFoundError:
            return True
        except PermissionError:
            # Windows refuses to rename a file a live holder keeps open
            logger.debug(f"Lock {self.lock_file} is in use, not reclaiming")
            return False
        except OSError as e:
            logger.error(f"Failed to remove stale lock {self.lock_file}: {e}")
            raise

        age = time.time() - claimed.stat().st_mtime
        if age <= self.config.stale_lock_age:
            # Another waiter replaced the stale file between our stat and rename
            try:
                os.link(claimed, self.lock_file)
            except FileExistsError:
                logger.warning(f"Lock {self.lock_file} was taken while restoring a fresh lock file")
            finally:
                claimed.unlink()
            return False

        claimed.unlink()
        logger.warning(
            f"Removed stale lock {self.lock_file} "
            f"(age: {age:.1f}s, threshold: {self.config.stale_lock_age}s)"
        )
        return True

    @contextmanager
    def acquire(self) -> Iterator["RetryLock"]:
        ensure_dir(self.directory)

        lock = SoftFileLock(str(self.lock_file))
        deadline = time.monotonic() + self.config.lock_timeout

        while True:
            try:
                lock.acquire(blocking=False)
                break
            except FilelockTimeout:
                pass

            if self.release_if_stale():
                continue

            if self.lock_age() is None:
                # Released between the attempt and the check
                continue

            if time.monotonic() >= deadline:
                raise LockTimeout(self.lock_file, self.config.lock_timeout)

            time.sleep(self.config.lock_retry_interval)

        logger.debug(f"Lock file {self.lock_file} created")
        try:
            yield self
        finally:
            lock.release()
            logger.debug(f"Lock file {self.lock_file} removed")


def directory_lock(directory: Union[str, Path], config: Optional[StoreConfig] = None) -> DirectoryLock:
    """
    Build the lock for a directory using the best strategy for this platform.

    Args:
        directory: Directory whose ``.lock`` file serializes callers
        config: Tuning values; ``lock_strategy`` may force a strategy

    Returns:
        A KernelLock where ``fcntl`` is available, otherwise a RetryLock
    """
    config = config or StoreConfig()
    strategy = config.lock_strategy
    if strategy == "auto":
        strategy = "kernel" if HAS_KERNEL_LOCK else "retry"

    if strategy == "kernel":
        return KernelLock(directory, config)
    return RetryLock(directory, config)


def with_lock(directory: Union[str, Path], fn: Callable[[], T], config: Optional[StoreConfig] = None) -> T:
    """
    Run ``fn`` under the exclusive lock of ``directory``.

    No two callers, in any process on this machine, run their ``fn`` for the
    same directory at the same time. The lock is released before returning,
    also when ``fn`` raises.

    Example:
        >>> with_lock(store_dir, lambda: append_yaml(path, entry, lock=False))

    Returns:
        Whatever ``fn`` returns

    Raises:
        LockTimeout: If the lock could not be obtained in time
        OSError: If the directory or lock file cannot be created
    """
    return directory_lock(directory, config).run(fn)
