"""Process-wide lock that keeps update cycles from overlapping.

The lock is a sentinel file created with :class:`filelock.SoftFileLock`, so
every process sharing the path sees it. A call that finds the lock held does
not wait: the overlapping trigger is dropped and reported as a successful
no-op.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from filelock import FileLock, SoftFileLock, Timeout

from feed_pickup.errors import FeedError, LockError

logger = logging.getLogger(__name__)

OnDone = Callable[[Optional[FeedError]], None]


@dataclass
class ExclusiveRun:
    """What happened to an operation passed to :meth:`ProcessLock.run_exclusively`."""
    ran: bool
    value: Any = None
    error: Optional[FeedError] = None


class ProcessLock:
    def __init__(self, path: str | Path, stale_after_seconds: float | None = None):
        self.path = Path(path)
        self.stale_after_seconds = stale_after_seconds
        self._held: SoftFileLock | None = None

    @property
    def breaker_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.break")

    def is_locked(self) -> bool:
        return self.path.exists()

    def is_stale(self) -> bool:
        if self.stale_after_seconds is None:
            return False
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_after_seconds

    def force_unlock(self) -> None:
        """Remove the lock file regardless of who created it."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise LockError(f"Failed to remove lock file {self.path}: {e}") from e
        logger.warning("Forced unlock of %s", self.path)

    def try_acquire(self) -> bool:
        """Take the lock without waiting.

        Returns False when another holder owns it. Stale locks and failed
        acquisitions are corrected once by force-unlocking and retrying.
        """
        if self._held is not None:
            return False

        if self.is_locked():
            if not self.is_stale():
                return False
        else:
            try:
                return self._acquire()
            except OSError as e:
                logger.warning("Failed to acquire %s (%s), unlocking and retrying", self.path, e)

        return self._recover_and_acquire()

    def _recover_and_acquire(self) -> bool:
        # Only one process at a time may remove a lock file it did not create.
        # The breaker is an OS-level lock, so a crashed holder never leaves it held.
        breaker = FileLock(str(self.breaker_path), timeout=0)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            breaker.acquire()
        except Timeout:
            logger.info("Another process is recovering %s, skipping", self.path)
            return False
        except OSError as e:
            raise LockError(f"Failed to acquire lock {self.path}: {e}") from e

        try:
            # Re-check under the breaker: whoever recovered before us may
            # already hold a fresh lock at the same path.
            if self.is_locked():
                if not self.is_stale():
                    return False
                logger.warning("Lock file %s is stale, removing it", self.path)
            self.force_unlock()
            try:
                return self._acquire()
            except OSError as e:
                raise LockError(f"Failed to acquire lock {self.path}: {e}") from e
        finally:
            breaker.release()

    def _acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # A fresh lock object per attempt: SoftFileLock is reentrant per object
        lock = SoftFileLock(str(self.path), timeout=0)
        try:
            lock.acquire()
        except Timeout:
            return False
        self._held = lock
        logger.debug("Acquired %s", self.path)
        return True

    def release(self) -> None:
        lock, self._held = self._held, None
        if lock is None:
            return
        try:
            lock.release()
        except OSError as e:
            raise LockError(f"Failed to release lock {self.path}: {e}") from e
        logger.debug("Released %s", self.path)

    def run_exclusively(
        self,
        operation: Callable[[], Any],
        on_done: OnDone | None = None,
    ) -> ExclusiveRun:
        """Run ``operation`` while holding the lock.

        If the lock is busy the operation is skipped and ``on_done(None)`` is
        called. Otherwise the lock is released on every exit path before
        ``on_done`` receives the operation's :class:`FeedError` (or a release
        failure), or None on success. Other exceptions propagate after the
        release.
        """
        try:
            acquired = self.try_acquire()
        except LockError as e:
            return self._finish(ExclusiveRun(ran=False, error=e), on_done)

        if not acquired:
            logger.info("Lock %s is held, skipping", self.path)
            return self._finish(ExclusiveRun(ran=False), on_done)

        run = ExclusiveRun(ran=True)
        try:
            run.value = operation()
        except FeedError as e:
            run.error = e
        finally:
            try:
                self.release()
            except LockError as e:
                logger.error("%s", e)
                if run.error is None:
                    run.error = e

        return self._finish(run, on_done)

    @staticmethod
    def _finish(run: ExclusiveRun, on_done: OnDone | None) -> ExclusiveRun:
        if on_done is not None:
            on_done(run.error)
        return run
