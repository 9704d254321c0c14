"""
Advisory lock scoped to a backup destination.

Two runs against the same destination would both read the same position
record and the last save would win. Full and incremental runs therefore
hold an exclusive flock on `<destination>/.backup.lock` from the first
read (or purge) until the final save.

Usage:
    with DestinationLock(destination, timeout_seconds=30):
        coordinate = store.load(destination)
        ...
        store.save(destination, tip)
"""

from __future__ import annotations

import fcntl
import logging
import os
import platform
import time
from pathlib import Path
from typing import IO, Any, Optional

from ..errors import LockError

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".backup.lock"


class DestinationLock:
    """Exclusive, non-reentrant flock on a destination directory.

    The lock file itself is left in place on release; flock state dies
    with the file descriptor, so a crashed run never leaves a stale lock.
    """

    def __init__(
        self,
        destination: str | Path,
        timeout_seconds: float = 0.0,
        poll_seconds: float = 0.5,
    ) -> None:
        """
        Args:
            destination: Directory to lock (created if missing)
            timeout_seconds: How long to keep retrying a busy lock
            poll_seconds: Delay between attempts
        """
        self.path = Path(destination) / LOCK_FILENAME
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds
        self._fh: Optional[IO[str]] = None

    @property
    def is_held(self) -> bool:
        return self._fh is not None

    def acquire(self) -> None:
        """Take the lock or raise LockError once the timeout has passed."""
        if self._fh is not None:
            raise LockError(str(self.path), holder="this process")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(self.path, "a+", encoding="utf-8")
        deadline = time.monotonic() + self.timeout_seconds

        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    holder = self._read_holder(fh)
                    fh.close()
                    raise LockError(str(self.path), holder=holder)
                time.sleep(self.poll_seconds)
            except OSError:
                fh.close()
                raise

        # PID and hostname for troubleshooting
        fh.seek(0)
        fh.truncate()
        fh.write(f"{os.getpid()}@{platform.node()}\n")
        fh.flush()
        self._fh = fh
        logger.debug(f"Acquired destination lock {self.path}")

    def release(self) -> None:
        """Release the lock. Safe to call multiple times."""
        if self._fh is None:
            return
        try:
            fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        finally:
            self._fh.close()
            self._fh = None
        logger.debug(f"Released destination lock {self.path}")

    def __enter__(self) -> DestinationLock:
        self.acquire()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.release()

    @staticmethod
    def _read_holder(fh: IO[str]) -> Optional[str]:
        fh.seek(0)
        holder = fh.read().strip()
        return holder or None
