"""
Transaction State Machine: Commit-Mode FSM for One Container Session

States:
    AUTO_COMMIT         → Initial state; every mutation commits by itself
    MANUAL_IDLE         → Manual commit mode, no transaction open
    MANUAL_UNCOMMITTED  → Manual commit mode with an open transaction
    CLOSED              → Terminal; every operation fails

Transitions:
    AUTO_COMMIT        → AUTO_COMMIT        : SET_AUTO_COMMIT (no-op)
    AUTO_COMMIT        → MANUAL_IDLE        : SET_MANUAL
    MANUAL_*           → MANUAL_*           : SET_MANUAL (no-op)
    MANUAL_IDLE        → AUTO_COMMIT        : SET_AUTO_COMMIT
    MANUAL_UNCOMMITTED → AUTO_COMMIT        : SET_AUTO_COMMIT (after implicit commit)
    MANUAL_IDLE        → MANUAL_UNCOMMITTED : BEGIN
    MANUAL_UNCOMMITTED → MANUAL_UNCOMMITTED : LOCK
    MANUAL_*           → MANUAL_IDLE        : COMMIT / ABORT
    MANUAL_UNCOMMITTED → MANUAL_IDLE        : EXPIRE
    any                → CLOSED             : CLOSE

Design:
    - State values are immutable variants; ManualUncommitted carries the
      transaction id, its deadline and the keys locked so far
    - The machine is synchronous and does no I/O; the session facade
      drives the backend and reports outcomes here
    - An injectable clock makes deadline handling testable without sleeping
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Union

from gridclient.core.errors import (
    ClosedError,
    ErrorCode,
    GridError,
    ModeError,
    TransactionTimeoutError,
)
from gridclient.core.types import Clock, Err, Ok, Result, Timestamp

logger = logging.getLogger(__name__)


# =============================================================================
# STATE VARIANTS
# =============================================================================
class TransactionPhase(Enum):
    AUTO_COMMIT = auto()
    MANUAL_IDLE = auto()
    MANUAL_UNCOMMITTED = auto()
    CLOSED = auto()


@dataclass(frozen=True, slots=True)
class AutoCommit:
    @property
    def phase(self) -> TransactionPhase:
        return TransactionPhase.AUTO_COMMIT


@dataclass(frozen=True, slots=True)
class ManualIdle:
    @property
    def phase(self) -> TransactionPhase:
        return TransactionPhase.MANUAL_IDLE


@dataclass(frozen=True, slots=True)
class ManualUncommitted:
    transaction_id: str
    started_at: Timestamp
    deadline: Timestamp
    locked_keys: frozenset[Any] = field(default_factory=frozenset)

    @property
    def phase(self) -> TransactionPhase:
        return TransactionPhase.MANUAL_UNCOMMITTED

    def is_expired(self, now: Timestamp) -> bool:
        return now >= self.deadline

    def with_lock(self, key: Any) -> ManualUncommitted:
        return ManualUncommitted(
            transaction_id=self.transaction_id,
            started_at=self.started_at,
            deadline=self.deadline,
            locked_keys=self.locked_keys | {key},
        )


@dataclass(frozen=True, slots=True)
class Closed:
    @property
    def phase(self) -> TransactionPhase:
        return TransactionPhase.CLOSED


TransactionState = Union[AutoCommit, ManualIdle, ManualUncommitted, Closed]


# =============================================================================
# TRANSITION DEFINITIONS
# =============================================================================
class TransactionTrigger(Enum):
    SET_AUTO_COMMIT = auto()
    SET_MANUAL = auto()
    BEGIN = auto()
    LOCK = auto()
    COMMIT = auto()
    ABORT = auto()
    EXPIRE = auto()
    CLOSE = auto()


@dataclass(frozen=True, slots=True)
class TransactionTransition:
    from_phase: TransactionPhase
    to_phase: TransactionPhase
    trigger: TransactionTrigger


_AUTO = TransactionPhase.AUTO_COMMIT
_IDLE = TransactionPhase.MANUAL_IDLE
_OPEN = TransactionPhase.MANUAL_UNCOMMITTED
_CLOSED = TransactionPhase.CLOSED
_T = TransactionTrigger

VALID_TRANSITIONS: frozenset[TransactionTransition] = frozenset({
    # Commit mode changes
    TransactionTransition(_AUTO, _AUTO, _T.SET_AUTO_COMMIT),
    TransactionTransition(_AUTO, _IDLE, _T.SET_MANUAL),
    TransactionTransition(_IDLE, _IDLE, _T.SET_MANUAL),
    TransactionTransition(_OPEN, _OPEN, _T.SET_MANUAL),
    TransactionTransition(_IDLE, _AUTO, _T.SET_AUTO_COMMIT),
    TransactionTransition(_OPEN, _AUTO, _T.SET_AUTO_COMMIT),

    # Transaction lifecycle
    TransactionTransition(_IDLE, _OPEN, _T.BEGIN),
    TransactionTransition(_OPEN, _OPEN, _T.LOCK),
    TransactionTransition(_IDLE, _IDLE, _T.COMMIT),
    TransactionTransition(_OPEN, _IDLE, _T.COMMIT),
    TransactionTransition(_IDLE, _IDLE, _T.ABORT),
    TransactionTransition(_OPEN, _IDLE, _T.ABORT),
    TransactionTransition(_OPEN, _IDLE, _T.EXPIRE),

    # Close from anywhere; closing twice is a no-op
    TransactionTransition(_AUTO, _CLOSED, _T.CLOSE),
    TransactionTransition(_IDLE, _CLOSED, _T.CLOSE),
    TransactionTransition(_OPEN, _CLOSED, _T.CLOSE),
    TransactionTransition(_CLOSED, _CLOSED, _T.CLOSE),
})

_MANUAL_ONLY_TRIGGERS = frozenset({_T.BEGIN, _T.LOCK, _T.COMMIT, _T.ABORT, _T.EXPIRE})


@dataclass(frozen=True, slots=True)
class TransactionEvent:
    """Event emitted on every applied transition."""

    from_state: TransactionState
    to_state: TransactionState
    trigger: TransactionTrigger
    version: int
    timestamp: Timestamp


# =============================================================================
# STATE MACHINE
# =============================================================================
class TransactionStateMachine:
    """
    Commit-mode and transaction lifecycle for a single session.

    Usage:
        fsm = TransactionStateMachine(timeout_ms=300_000)
        fsm.set_manual()
        state = fsm.begin("txn-1")
        ...
        fsm.commit()

    Thread Safety:
        A session is single-owner; no internal synchronization.
    """

    __slots__ = ("_state", "_timeout_ms", "_clock", "_listeners", "_version")

    def __init__(
        self,
        timeout_ms: int,
        clock: Clock = Timestamp.now,
        initial: Optional[TransactionState] = None,
    ) -> None:
        self._state: TransactionState = initial or AutoCommit()
        self._timeout_ms = timeout_ms
        self._clock = clock
        self._listeners: list[Callable[[TransactionEvent], None]] = []
        self._version = 0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def phase(self) -> TransactionPhase:
        return self._state.phase

    @property
    def version(self) -> int:
        return self._version

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def is_closed(self) -> bool:
        return isinstance(self._state, Closed)

    @property
    def is_auto_commit(self) -> bool:
        return isinstance(self._state, AutoCommit)

    @property
    def open_transaction(self) -> Optional[ManualUncommitted]:
        return self._state if isinstance(self._state, ManualUncommitted) else None

    def now(self) -> Timestamp:
        return self._clock()

    def add_listener(self, listener: Callable[[TransactionEvent], None]) -> None:
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Checks (raise)
    # -------------------------------------------------------------------------
    def check_open(self, operation: str) -> None:
        if self.is_closed:
            raise ClosedError.session_closed(operation)

    def require_manual(self, operation: str) -> None:
        self.check_open(operation)
        if self.is_auto_commit:
            raise ModeError.requires_manual_commit(operation)

    def check_deadline(self, operation: str) -> None:
        """Raise if the open transaction's validity deadline has passed."""
        txn = self.open_transaction
        if txn is not None and txn.is_expired(self._clock()):
            raise TransactionTimeoutError.deadline_exceeded(operation, self._timeout_ms)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------
    def transition(
        self,
        trigger: TransactionTrigger,
        target: Optional[TransactionState] = None,
    ) -> Result[TransactionEvent, GridError]:
        """
        Attempt a transition.

        Args:
            trigger: Transition trigger
            target: Explicit target state; derived from the table if omitted

        Returns:
            Ok(event) when applied, Err(error) when not allowed from here
        """
        found = self._find(trigger)
        if found is None:
            return Err(self._rejection(trigger))

        if target is None:
            target = _default_state(found.to_phase, self._state)
        elif target.phase is not found.to_phase:
            return Err(GridError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"{trigger.name} cannot lead to {target.phase.name}",
            ))

        previous = self._state
        self._state = target
        self._version += 1
        event = TransactionEvent(
            from_state=previous,
            to_state=target,
            trigger=trigger,
            version=self._version,
            timestamp=self._clock(),
        )
        if previous.phase is not target.phase:
            logger.debug(f"Transaction {previous.phase.name} -> {target.phase.name} ({trigger.name})")

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Transaction listener failed on {trigger.name}")
        return Ok(event)

    def set_manual(self) -> TransactionState:
        self.transition(_T.SET_MANUAL).unwrap()
        return self._state

    def set_auto_commit(self) -> TransactionState:
        """Enter AUTO_COMMIT. The caller commits any open transaction first."""
        self.transition(_T.SET_AUTO_COMMIT).unwrap()
        return self._state

    def begin(self, transaction_id: str, started_at: Optional[Timestamp] = None) -> ManualUncommitted:
        """Open a transaction; its deadline counts from ``started_at`` (default now)."""
        now = started_at or self._clock()
        state = ManualUncommitted(
            transaction_id=transaction_id,
            started_at=now,
            deadline=now.plus_millis(self._timeout_ms),
        )
        self.transition(_T.BEGIN, state).unwrap()
        return state

    def record_lock(self, key: Any) -> ManualUncommitted:
        txn = self.open_transaction
        target = None if txn is None else txn.with_lock(key)
        self.transition(_T.LOCK, target).unwrap()
        return self._state  # type: ignore[return-value]

    def commit(self) -> None:
        self.transition(_T.COMMIT).unwrap()

    def abort(self) -> None:
        self.transition(_T.ABORT).unwrap()

    def expire(self) -> None:
        self.transition(_T.EXPIRE).unwrap()

    def close(self) -> None:
        self.transition(_T.CLOSE).unwrap()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _find(self, trigger: TransactionTrigger) -> Optional[TransactionTransition]:
        for t in VALID_TRANSITIONS:
            if t.from_phase is self._state.phase and t.trigger is trigger:
                return t
        return None

    def _rejection(self, trigger: TransactionTrigger) -> GridError:
        operation = trigger.name.lower()
        if self.is_closed:
            return ClosedError.session_closed(operation)
        if self.is_auto_commit and trigger in _MANUAL_ONLY_TRIGGERS:
            return ModeError.requires_manual_commit(operation)
        return GridError(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"No valid transition from {self._state.phase.name} with trigger {trigger.name}",
        )


def _default_state(phase: TransactionPhase, current: TransactionState) -> TransactionState:
    if phase is current.phase:
        return current
    if phase is TransactionPhase.AUTO_COMMIT:
        return AutoCommit()
    if phase is TransactionPhase.MANUAL_IDLE:
        return ManualIdle()
    if phase is TransactionPhase.CLOSED:
        return Closed()
    raise ValueError(f"{phase.name} needs an explicit target state")
