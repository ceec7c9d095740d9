"""
Row lock table tests: reentry, blocking, timeout and reaping.

Run: python -m pytest gridclient/tests/test_locking.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from gridclient.core.errors import ErrorCode, TransactionTimeoutError
from gridclient.core.types import Timestamp
from gridclient.transaction import RowLockTable

from conftest import FakeClock


async def assert_held(table: RowLockTable, clock: FakeClock, key, other: str = "t-other") -> None:
    """A different holder with an already-passed deadline must time out."""
    with pytest.raises(TransactionTimeoutError):
        await table.acquire(key, other, clock())


class TestGrant:
    @pytest.mark.asyncio
    async def test_reentry_extends_without_second_lock(self):
        clock = FakeClock()
        table = RowLockTable("orders", clock=clock)
        await table.acquire(1, "t1", clock().plus_millis(100))
        await table.acquire(1, "t1", clock().plus_millis(1_000))
        assert table.active_locks == 1

        clock.advance(500)
        await assert_held(table, clock, 1)

    @pytest.mark.asyncio
    async def test_release_all_frees_every_key(self):
        table = RowLockTable("orders")
        deadline = Timestamp.now().plus_millis(5_000)
        await table.acquire(1, "t1", deadline)
        await table.acquire(2, "t1", deadline)
        await table.acquire(3, "t2", deadline)
        assert table.active_locks == 3

        assert await table.release_all("t1") == 2
        assert table.active_locks == 1
        assert await table.release_all("t1") == 0


class TestWaiting:
    @pytest.mark.asyncio
    async def test_waiter_proceeds_after_release(self):
        table = RowLockTable("orders", poll_interval_ms=10)
        deadline = Timestamp.now().plus_millis(5_000)
        await table.acquire(1, "t1", deadline)

        waiter = asyncio.create_task(table.acquire(1, "t2", deadline))
        await asyncio.sleep(0.05)
        assert not waiter.done()

        released = await table.release_all("t1")
        await asyncio.wait_for(waiter, 1.0)
        assert released == 1
        assert await table.release_all("t2") == 1

    @pytest.mark.asyncio
    async def test_waiter_deadline_raises_timeout(self):
        clock = FakeClock()
        table = RowLockTable("orders", clock=clock)
        await table.acquire(1, "t1", clock().plus_millis(10_000))
        with pytest.raises(TransactionTimeoutError) as excinfo:
            await table.acquire(1, "t2", clock())
        assert excinfo.value.code is ErrorCode.TRANSACTION_TIMEOUT
        assert await table.release_all("t1") == 1

    @pytest.mark.asyncio
    async def test_expired_holder_is_reaped(self):
        clock = FakeClock()
        reaped = []
        table = RowLockTable("orders", on_expired=reaped.append, clock=clock)
        await table.acquire(1, "t1", clock().plus_millis(100))
        await table.acquire(2, "t1", clock().plus_millis(100))
        clock.advance(100)

        await table.acquire(1, "t2", clock().plus_millis(1_000))
        assert reaped == ["t1"]
        assert table.active_locks == 1
        assert await table.release_all("t1") == 0
        await assert_held(table, clock, 1)

    @pytest.mark.asyncio
    async def test_release_all_does_not_report_expiry(self):
        reaped = []
        table = RowLockTable("orders", on_expired=reaped.append)
        await table.acquire(1, "t1", Timestamp.now().plus_millis(5_000))
        assert await table.release_all("t1") == 1
        assert reaped == []
