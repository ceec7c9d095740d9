"""
Row Lock Table: Shared Update Locks for One Container

Every session on a container shares one table. A lock is held by a
transaction id until that transaction commits, aborts or passes its
validity deadline.

Waiting:
    A waiter blocks until (whichever comes first)
    1. the holder releases (commit / abort / close)
    2. the holder's deadline passes; the holder is reaped through the
       on_expired callback and the waiter proceeds
    3. the waiter's own deadline passes: TransactionTimeoutError
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gridclient.core import constants as C
from gridclient.core.errors import TransactionTimeoutError
from gridclient.core.types import Clock, Timestamp

logger = logging.getLogger(__name__)


@dataclass
class RowLock:
    """Internal lock state."""

    key: Any
    holder: str
    expires_at: Timestamp


class RowLockTable:
    """
    Update-lock table with deadline-aware blocking acquisition.

    Usage:
        table = RowLockTable("orders", on_expired=backend.reap)
        await table.acquire(key, holder="txn-1", deadline=txn.deadline)
        ...
        await table.release_all("txn-1")
    """

    __slots__ = (
        "_container",
        "_locks",
        "_condition",
        "_clock",
        "_poll_interval_s",
        "_on_expired",
    )

    def __init__(
        self,
        container: str,
        on_expired: Optional[Callable[[str], None]] = None,
        clock: Clock = Timestamp.now,
        poll_interval_ms: int = C.DEFAULT_LOCK_POLL_INTERVAL_MS,
    ) -> None:
        self._container = container
        self._locks: dict[Any, RowLock] = {}
        self._condition = asyncio.Condition()
        self._clock = clock
        self._poll_interval_s = poll_interval_ms / 1000
        self._on_expired = on_expired

    async def acquire(self, key: Any, holder: str, deadline: Timestamp) -> None:
        """
        Acquire (or re-enter) the update lock on ``key``.

        Raises:
            TransactionTimeoutError: ``deadline`` passed while waiting
        """
        waited = False
        started = self._clock()
        async with self._condition:
            while True:
                now = self._clock()
                current = self._locks.get(key)

                if current is None or current.holder == holder:
                    if current is None:
                        self._locks[key] = RowLock(key, holder, deadline)
                    else:
                        current.expires_at = deadline
                    if waited:
                        logger.debug(f"Lock on {key!r} in '{self._container}' granted to {holder} after wait")
                    return

                if current.expires_at <= now:
                    logger.info(
                        f"Lock holder {current.holder} on '{self._container}' passed its deadline; reaping"
                    )
                    self._reap_locked(current.holder)
                    continue

                if deadline <= now:
                    raise TransactionTimeoutError.lock_wait(
                        self._container, key, max(0, (deadline - started) // 1_000_000)
                    )

                waited = True
                timeout = min(
                    deadline.remaining_seconds(now),
                    current.expires_at.remaining_seconds(now),
                    self._poll_interval_s,
                )
                try:
                    await asyncio.wait_for(self._condition.wait(), timeout)
                except asyncio.TimeoutError:
                    pass

    async def release_all(self, holder: str) -> int:
        """Release every lock held by ``holder``. Returns count released."""
        async with self._condition:
            return self._reap_locked(holder, notify_owner=False)

    @property
    def active_locks(self) -> int:
        return len(self._locks)

    def _reap_locked(self, holder: str, notify_owner: bool = True) -> int:
        """Drop a holder's locks; condition lock must be held."""
        keys = [k for k, lock in self._locks.items() if lock.holder == holder]
        for k in keys:
            del self._locks[k]
        if notify_owner and self._on_expired is not None:
            self._on_expired(holder)
        self._condition.notify_all()
        return len(keys)
