"""
Run lock — keep two install runs from editing the same files at once.

Marker checks are "look, then append". Two runs racing through the same
step could both see a block as missing and both append it. An advisory
``flock`` around the whole run closes that window. It is non-blocking:
a busy lock is retried with exponential backoff a few times, then the
run aborts with ``FatalPrecondition`` instead of waiting forever.

``--check`` never takes the lock. Where ``fcntl`` does not exist the
lock is a no-op.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from types import TracebackType

from shellstrap.core.errors import FatalPrecondition

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 0.2


class RunLock:
    """Advisory exclusive lock on a lock file.

    Usage::

        with RunLock(config.lock_file):
            ...  # mutate files
    """

    def __init__(
        self,
        path: Path,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
    ):
        self._path = Path(path)
        self._attempts = max(1, attempts)
        self._base_delay = base_delay
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if fcntl is None:
            logger.debug("fcntl unavailable; running without a run lock")
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        delay = self._base_delay
        for attempt in range(1, self._attempts + 1):
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                if attempt == self._attempts:
                    os.close(fd)
                    raise FatalPrecondition(
                        f"Another install is running (lock held: {self._path})"
                    ) from None
                logger.debug("Run lock busy, retrying in %.2fs", delay)
                time.sleep(delay)
                delay *= 2
                continue
            os.ftruncate(fd, 0)
            os.write(fd, str(os.getpid()).encode())
            self._fd = fd
            logger.debug("Run lock acquired: %s", self._path)
            return

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
