"""Advisory lock guarding one project prefix against concurrent provisioning."""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional

from .errors import PipelineLockedError

logger = logging.getLogger(__name__)

ACQUIRE_ATTEMPTS = 5


class ProvisionLock:
    """Exclusive ``flock`` on a PID file, removed on release.

    The kernel drops the lock when its holder exits, so a file left behind
    by a crashed run is simply locked again and rewritten.
    """

    def __init__(self, lock_file: Path):
        self.lock_file = Path(lock_file)
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def _read_owner(self) -> Optional[int]:
        try:
            return int(self.lock_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _is_current(self, fd: int) -> bool:
        """True while fd still refers to the file at lock_file."""
        try:
            current = os.stat(self.lock_file)
        except FileNotFoundError:
            return False
        return current.st_ino == os.fstat(fd).st_ino

    def acquire(self) -> None:
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(ACQUIRE_ATTEMPTS):
            fd = os.open(self.lock_file, os.O_RDWR | os.O_CREAT, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                os.close(fd)
                raise PipelineLockedError(self.lock_file, self._read_owner() or -1)

            # A releasing holder may have unlinked the file after our open
            if not self._is_current(fd):
                os.close(fd)
                continue

            previous = os.read(fd, 64).decode(errors="replace").strip()
            if previous:
                logger.warning(f"Taking over stale lock {self.lock_file} (pid {previous})")
            os.ftruncate(fd, 0)
            os.lseek(fd, 0, os.SEEK_SET)
            os.write(fd, str(os.getpid()).encode())
            self._fd = fd
            logger.debug(f"Acquired lock {self.lock_file}")
            return
        raise PipelineLockedError(self.lock_file, self._read_owner() or -1)

    def release(self) -> None:
        if self._fd is None:
            return
        # Unlink before unlocking so a waiter never locks a file that is about to vanish
        self.lock_file.unlink(missing_ok=True)
        os.close(self._fd)
        self._fd = None
        logger.debug(f"Released lock {self.lock_file}")

    def __enter__(self) -> "ProvisionLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
