"""
Transaction module: commit-mode state machine and shared row locks.
"""

from gridclient.transaction.state_machine import (
    AutoCommit,
    Closed,
    ManualIdle,
    ManualUncommitted,
    TransactionEvent,
    TransactionPhase,
    TransactionState,
    TransactionStateMachine,
    TransactionTrigger,
    VALID_TRANSITIONS,
)
from gridclient.transaction.locks import RowLock, RowLockTable

__all__ = [
    "AutoCommit",
    "Closed",
    "ManualIdle",
    "ManualUncommitted",
    "TransactionEvent",
    "TransactionPhase",
    "TransactionState",
    "TransactionStateMachine",
    "TransactionTrigger",
    "VALID_TRANSITIONS",
    "RowLock",
    "RowLockTable",
]
