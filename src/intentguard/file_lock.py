"""Advisory workspace locking for read-modify-write cycles.

Provides a blocking file-lock interface that works across Windows, Linux, and
macOS using platform-appropriate primitives (msvcrt on Windows, fcntl on Unix).
Ledger, task-list and intent-map writers all serialize on one lock file per
workspace control directory.
"""

import logging
import os
import platform
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Union

from .exceptions import LedgerLockTimeout

logger = logging.getLogger(__name__)


class _HeldLock:
    """Per-path process state shared by every FileLock on that path."""

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()
        self.depth = 0
        self.fd: Optional[int] = None


# One entry per absolute lock path. flock is per open file description, so two
# fds from one process would block each other; nesting goes through the depth
# counter instead.
_HELD: Dict[str, _HeldLock] = {}
_HELD_GUARD = threading.Lock()


def _held_for(path: str) -> _HeldLock:
    with _HELD_GUARD:
        held = _HELD.get(path)
        if held is None:
            held = _HeldLock()
            _HELD[path] = held
        return held


class FileLock:
    """Cross-platform blocking file lock using OS-level primitives.

    Re-entrant within a thread, across FileLock instances for the same path.

    Example:
        >>> with FileLock("/repo/.orchestration/.lock", timeout=5.0):
        ...     # Protected region
        ...     pass

    The lock file itself is left in place on release; deleting it would let a
    waiter lock an unlinked inode while a newcomer locks a fresh one.
    """

    def __init__(
        self, lock_path: Union[str, Path], timeout: float = 10.0, poll_interval: float = 0.05
    ):
        """Initialize file lock.

        Args:
            lock_path: Path to the lock file
            timeout: Seconds to wait for the lock before giving up
            poll_interval: Seconds between acquisition attempts
        """
        self.lock_path = os.path.abspath(str(lock_path))
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._held = _held_for(self.lock_path)

    def _try_lock(self, fd: int) -> bool:
        if platform.system() == "Windows":
            import msvcrt

            try:
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
                return True
            except OSError:
                return False
        else:  # Unix/Linux/Mac
            import fcntl

            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return True
            except (IOError, OSError):
                return False

    def acquire(self) -> None:
        """Acquire file lock, waiting up to ``timeout`` seconds.

        Raises:
            LedgerLockTimeout: If the lock could not be acquired in time
        """
        held = self._held
        if not held.thread_lock.acquire(timeout=self.timeout):
            raise LedgerLockTimeout(f"Timed out waiting for workspace lock {self.lock_path}")

        if held.depth > 0:
            held.depth += 1
            return

        try:
            Path(self.lock_path).parent.mkdir(parents=True, exist_ok=True)
            held.fd = os.open(self.lock_path, os.O_CREAT | os.O_RDWR)

            deadline = time.monotonic() + self.timeout
            while not self._try_lock(held.fd):
                if time.monotonic() >= deadline:
                    raise LedgerLockTimeout(
                        f"Timed out after {self.timeout}s waiting for workspace lock {self.lock_path}"
                    )
                time.sleep(self.poll_interval)
            held.depth = 1
        except Exception as e:
            if not isinstance(e, LedgerLockTimeout):
                logger.error(f"Failed to acquire file lock {self.lock_path}: {e}")
            if held.fd is not None:
                try:
                    os.close(held.fd)
                finally:
                    held.fd = None
            held.thread_lock.release()
            raise

    def release(self) -> None:
        """Release file lock. Safe to call even if lock was never acquired."""
        held = self._held
        if held.depth == 0:
            return

        held.depth -= 1
        if held.depth > 0:
            held.thread_lock.release()
            return

        try:
            if held.fd is not None:
                if platform.system() == "Windows":
                    import msvcrt

                    try:
                        msvcrt.locking(held.fd, msvcrt.LK_UNLCK, 1)
                    except OSError:
                        pass  # Lock may already be released
                else:  # Unix
                    import fcntl

                    try:
                        fcntl.flock(held.fd, fcntl.LOCK_UN)
                    except (IOError, OSError):
                        pass  # Lock may already be released

                try:
                    os.close(held.fd)
                finally:
                    held.fd = None
        finally:
            held.thread_lock.release()

    def is_locked(self) -> bool:
        return self._held.depth > 0

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False  # Don't suppress exceptions
