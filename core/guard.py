"""
SwapBank Core: Reentrancy Guard

Exclusive-execution lock for state-mutating entry points.

A trade executor is untrusted and may call back into the bank before it
returns. Every guarded entry point takes the lock without blocking; a second
entry while it is held (reentrant callback or a concurrent thread) fails
immediately instead of queuing. The lock is released on every exit path.
"""

from threading import Lock
from typing import Optional
import logging

from core.exceptions import ReentrancyViolation

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    """
    Non-blocking request lock.

    Usage:
        guard = ReentrancyGuard()
        with guard.hold("withdraw_reference"):
            ...  # ReentrancyViolation if already held
    """

    def __init__(self):
        self._lock = Lock()
        self._holder: Optional[str] = None
        self.rejections = 0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    def acquire(self, entry_point: str) -> None:
        if not self._lock.acquire(blocking=False):
            self.rejections += 1
            logger.warning(f"Rejected reentrant call to {entry_point} (held by {self._holder})")
            raise ReentrancyViolation(entry_point, holder=self._holder)
        self._holder = entry_point

    def release(self) -> None:
        self._holder = None
        self._lock.release()

    def hold(self, entry_point: str) -> "_GuardScope":
        return _GuardScope(self, entry_point)


class _GuardScope:
    def __init__(self, guard: ReentrancyGuard, entry_point: str):
        self._guard = guard
        self._entry_point = entry_point

    def __enter__(self) -> ReentrancyGuard:
        self._guard.acquire(self._entry_point)
        return self._guard

    def __exit__(self, exc_type, exc, tb) -> None:
        self._guard.release()
