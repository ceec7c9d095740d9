"""
Transaction state machine tests.

Run: python -m pytest gridclient/tests/test_state_machine.py -v
"""

from __future__ import annotations

import pytest

from gridclient.core.errors import ClosedError, ModeError, TransactionTimeoutError
from gridclient.transaction import (
    AutoCommit,
    ManualIdle,
    ManualUncommitted,
    TransactionPhase,
    TransactionStateMachine,
    TransactionTrigger,
)

from conftest import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fsm(clock) -> TransactionStateMachine:
    return TransactionStateMachine(timeout_ms=1_000, clock=clock)


class TestCommitModes:
    def test_initial_state_is_auto_commit(self, fsm):
        assert isinstance(fsm.state, AutoCommit)
        assert fsm.is_auto_commit

    def test_set_manual_and_back(self, fsm):
        fsm.set_manual()
        assert isinstance(fsm.state, ManualIdle)
        fsm.set_manual()
        assert fsm.phase is TransactionPhase.MANUAL_IDLE
        fsm.set_auto_commit()
        assert fsm.is_auto_commit

    def test_set_auto_commit_when_already_auto_is_noop(self, fsm):
        fsm.set_auto_commit()
        assert fsm.is_auto_commit

    @pytest.mark.parametrize("trigger", [TransactionTrigger.COMMIT, TransactionTrigger.ABORT, TransactionTrigger.BEGIN])
    def test_manual_only_triggers_rejected_in_auto(self, fsm, trigger):
        result = fsm.transition(trigger)
        assert isinstance(result.error, ModeError)
        assert fsm.is_auto_commit

    def test_require_manual(self, fsm):
        with pytest.raises(ModeError):
            fsm.require_manual("get for update")


class TestTransactions:
    def test_begin_sets_deadline(self, fsm, clock):
        fsm.set_manual()
        txn = fsm.begin("t1")
        assert isinstance(txn, ManualUncommitted)
        assert txn.deadline.millis == clock().millis + 1_000

    def test_begin_with_explicit_start(self, fsm, clock):
        fsm.set_manual()
        started = clock()
        clock.advance(500)
        txn = fsm.begin("t1", started)
        assert txn.deadline == started.plus_millis(1_000)

    def test_record_lock_accumulates(self, fsm):
        fsm.set_manual()
        fsm.begin("t1")
        fsm.record_lock(1)
        state = fsm.record_lock(2)
        assert state.locked_keys == frozenset({1, 2})

    def test_commit_returns_to_idle(self, fsm):
        fsm.set_manual()
        fsm.begin("t1")
        fsm.commit()
        assert isinstance(fsm.state, ManualIdle)
        assert fsm.open_transaction is None

    def test_commit_without_transaction_is_noop(self, fsm):
        fsm.set_manual()
        fsm.commit()
        fsm.abort()
        assert fsm.phase is TransactionPhase.MANUAL_IDLE

    def test_deadline_check(self, fsm, clock):
        fsm.set_manual()
        fsm.begin("t1")
        fsm.check_deadline("put")
        clock.advance(1_000)
        with pytest.raises(TransactionTimeoutError):
            fsm.check_deadline("put")
        fsm.expire()
        assert fsm.phase is TransactionPhase.MANUAL_IDLE


class TestClose:
    def test_close_from_open_transaction(self, fsm):
        fsm.set_manual()
        fsm.begin("t1")
        fsm.close()
        assert fsm.is_closed

    def test_operations_after_close(self, fsm):
        fsm.close()
        fsm.close()
        with pytest.raises(ClosedError):
            fsm.check_open("put")
        with pytest.raises(ClosedError):
            fsm.set_manual()
        with pytest.raises(ClosedError):
            fsm.require_manual("commit")


class TestEvents:
    def test_listeners_receive_transitions(self, fsm):
        events = []
        fsm.add_listener(events.append)
        fsm.set_manual()
        fsm.begin("t1")
        fsm.commit()
        assert [e.trigger for e in events] == [
            TransactionTrigger.SET_MANUAL,
            TransactionTrigger.BEGIN,
            TransactionTrigger.COMMIT,
        ]
        assert events[-1].version == fsm.version == 3

    def test_failing_listener_does_not_block_transition(self, fsm):
        def broken(event):
            raise RuntimeError("listener failure")

        fsm.add_listener(broken)
        fsm.set_manual()
        assert fsm.phase is TransactionPhase.MANUAL_IDLE
