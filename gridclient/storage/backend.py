"""
In-Memory Grid Backend: Development and Testing Endpoint

Plays the role of the remote clustered database for container sessions:
- Container registry keyed by case-insensitive name, with schema versions
- READ_COMMITTED row transactions with per-transaction write sets
- Shared per-container update-lock table with deadline-aware waits
- Index and trigger lists maintained through the directive engines
- Trigger notifications delivered best-effort to a configured sink
- BLOB values above a threshold held lz4-compressed

Design Principles:
    - Full ContainerBackend compliance so a networked backend can be swapped in
    - Registry and row data guarded by an asyncio lock; never held while
      waiting on a row lock
    - Schema mutations serialize on a per-container schema lock, including
      requests that turn out to be no-ops
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from uuid import uuid4

import lz4.frame

from gridclient.core.config import GridClientConfig
from gridclient.core.errors import (
    QuerySyntaxError,
    StaleStateError,
    TransactionTimeoutError,
    TriggerValidationError,
    ValidationError,
)
from gridclient.core.types import Clock, Timestamp
from gridclient.directives.index import IndexAction, IndexDirectiveEngine, ResolvedIndex
from gridclient.directives.trigger import TriggerAction, TriggerDirectiveEngine
from gridclient.observability.metrics import ClientMetrics
from gridclient.schema.columns import ColumnType
from gridclient.schema.container_info import ContainerInfo
from gridclient.schema.index_info import IndexInfo
from gridclient.schema.symbols import normalize
from gridclient.schema.trigger_info import TriggerEvent, TriggerInfo
from gridclient.storage import tql
from gridclient.storage.protocols import (
    BackendStats,
    ContainerHandle,
    NotificationSink,
    QueryOutcome,
)
from gridclient.transaction.locks import RowLockTable

logger = logging.getLogger(__name__)

# Tombstone marker in write sets is None; values are column-value tuples.
Values = tuple[Any, ...]


# =============================================================================
# STORED VALUES
# =============================================================================
@dataclass(frozen=True, slots=True)
class PackedBlob:
    """lz4-compressed BLOB column value."""

    data: bytes
    size: int


@dataclass
class _Transaction:
    transaction_id: str
    deadline: Timestamp
    writes: dict[Any, Optional[Values]] = field(default_factory=dict)
    # One entry per row operation, in order, for trigger dispatch.
    events: list[tuple[TriggerEvent, Values]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _RowId:
    """Internal identity of a row in a container without a row key."""

    number: int


class _ContainerState:
    """Everything the endpoint holds for one container."""

    __slots__ = (
        "info",
        "version",
        "rows",
        "next_row_id",
        "transactions",
        "locks",
        "schema_lock",
        "indexes",
        "triggers",
        "dropped",
    )

    def __init__(self, info: ContainerInfo, version: int) -> None:
        self.info = info
        self.version = version
        self.rows: dict[Any, Values] = {}
        self.next_row_id = 0
        self.transactions: dict[str, _Transaction] = {}
        self.locks: Optional[RowLockTable] = None
        self.schema_lock = asyncio.Lock()
        self.indexes: list[ResolvedIndex] = []
        self.triggers: list[TriggerInfo] = []
        self.dropped = False

    @property
    def name(self) -> str:
        return self.info.name or ""

    def handle(self) -> ContainerHandle:
        return ContainerHandle(name=self.name, schema_version=self.version, info=self.info.copy())


# =============================================================================
# IN-MEMORY GRID BACKEND
# =============================================================================
class InMemoryGridBackend:
    """
    In-memory container endpoint.

    Example:
        backend = InMemoryGridBackend(notification_sink=received.append)
        handle = await backend.put_container(info)
        txn = await backend.begin(handle.name, handle.schema_version, deadline)
        await backend.put_row(handle.name, handle.schema_version, 1, (1, "x"), txn, deadline)
        await backend.commit(handle.name, txn)
    """

    __slots__ = (
        "_containers",
        "_lock",
        "_config",
        "_sink",
        "_clock",
        "_metrics",
        "_notifications_sent",
        "_notifications_dropped",
        "_flushes",
        "_versions",
    )

    def __init__(
        self,
        config: Optional[GridClientConfig] = None,
        notification_sink: Optional[NotificationSink] = None,
        clock: Clock = Timestamp.now,
        metrics: Optional[ClientMetrics] = None,
    ) -> None:
        self._containers: dict[str, _ContainerState] = {}
        self._lock = asyncio.Lock()
        self._config = config or GridClientConfig()
        self._sink = notification_sink
        self._clock = clock
        self._metrics = metrics or ClientMetrics(enabled=self._config.observability.metrics_enabled)
        self._notifications_sent = 0
        self._notifications_dropped = 0
        self._flushes = 0
        # Schema versions are unique across drops so old handles never match.
        self._versions = itertools.count(1)

    @property
    def config(self) -> GridClientConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    # -------------------------------------------------------------------------
    # Container lifecycle
    # -------------------------------------------------------------------------
    async def put_container(self, info: ContainerInfo, modifiable: bool = False) -> ContainerHandle:
        """
        Materialize a container, or open / re-layout an existing one.

        Raises:
            ValidationError: invalid info, or a different layout without
                ``modifiable``, or a change of container type or row key
        """
        info.check_materializable().unwrap()
        key = normalize(info.name or "")

        async with self._lock:
            existing = self._containers.get(key)
            if existing is None:
                state = self._create_state(info)
                self._containers[key] = state
                logger.info(f"Container '{state.name}' created (columns={info.column_count})")
                return state.handle()

        async with existing.schema_lock:
            if existing.dropped:
                raise StaleStateError.container_dropped(info.name or "")
            if info.same_layout(existing.info) or existing.info.same_layout(info):
                return existing.handle()
            if not modifiable:
                raise ValidationError.invalid_value(
                    "container layout", info.name, "container exists with a different layout"
                )
            await self._relayout(existing, info)
            return existing.handle()

    def _create_state(self, info: ContainerInfo) -> _ContainerState:
        canonical = info.copy()
        canonical.index_infos = ()
        canonical.trigger_infos = ()
        state = _ContainerState(canonical, version=next(self._versions))
        state.locks = self._new_lock_table(state)

        index_engine = IndexDirectiveEngine(canonical)
        for index_info in info.index_infos:
            plan = index_engine.plan_create(index_info, state.indexes).unwrap()
            if plan.action is IndexAction.CREATE:
                state.indexes.append(plan.index)

        trigger_engine = TriggerDirectiveEngine(canonical)
        for trigger in info.trigger_infos:
            plan = trigger_engine.plan_create(trigger, state.triggers).unwrap()
            self._apply_trigger_plan(state, plan)
        return state

    def _new_lock_table(self, state: _ContainerState) -> RowLockTable:
        return RowLockTable(
            state.name,
            on_expired=lambda holder: self._reap(state, holder),
            clock=self._clock,
            poll_interval_ms=self._config.transaction.lock_poll_interval_ms,
        )

    async def _relayout(self, state: _ContainerState, info: ContainerInfo) -> None:
        old = state.info
        if old.type is not info.type:
            raise ValidationError.invalid_value(
                "container type", info.type, "type of an existing container cannot change"
            )
        if old.row_key_assigned != info.row_key_assigned or (
            old.row_key_assigned
            and (
                normalize(old.columns[0].name) != normalize(info.columns[0].name)
                or old.columns[0].type is not info.columns[0].type
            )
        ):
            raise ValidationError.invalid_value(
                "row key", info.name, "row key of an existing container cannot change"
            )

        new_info = info.copy()
        new_info.index_infos = ()
        new_info.trigger_infos = ()

        # Open transactions die with the old layout.
        for transaction_id in list(state.transactions):
            state.transactions.pop(transaction_id, None)
            await state.locks.release_all(transaction_id)
            self._metrics.aborted(state.name, "relayout")

        mapping: list[Optional[int]] = []
        for number, column in enumerate(new_info.columns):
            old_number = old.find_column(column.name)
            if old_number is not None and old.get_column(old_number).type is column.type:
                mapping.append(old_number)
            else:
                mapping.append(None)

        async with self._lock:
            for row_key, values in list(state.rows.items()):
                state.rows[row_key] = tuple(
                    values[old_number] if old_number is not None else self._fill(new_info, number)
                    for number, old_number in enumerate(mapping)
                )
            index_engine = IndexDirectiveEngine(old)
            rebound = [index_engine.rebind(index, new_info) for index in state.indexes]
            dropped_indexes = sum(1 for index in rebound if index is None)
            state.indexes = [index for index in rebound if index is not None]
            state.triggers = TriggerDirectiveEngine.rebind(state.triggers, new_info)
            state.info = new_info
            state.version = next(self._versions)

        logger.info(
            f"Container '{state.name}' layout changed to version {state.version} "
            f"(indexes dropped={dropped_indexes})"
        )

    @staticmethod
    def _fill(info: ContainerInfo, number: int) -> Any:
        return None if info.is_nullable(number) else info.get_column(number).type.empty_value()

    async def open_container(self, name: str) -> Optional[ContainerHandle]:
        async with self._lock:
            state = self._containers.get(normalize(name))
            return None if state is None else state.handle()

    async def get_container_info(self, name: str) -> Optional[ContainerInfo]:
        """Current info, including live index and trigger lists."""
        async with self._lock:
            state = self._containers.get(normalize(name))
            if state is None:
                return None
            info = state.info.copy()
            info.index_infos = [index.to_info() for index in state.indexes]
            info.trigger_infos = state.triggers
            return info

    async def drop_container(self, name: str) -> bool:
        async with self._lock:
            state = self._containers.pop(normalize(name), None)
            if state is None:
                return False
            state.dropped = True
            transactions = list(state.transactions)
            state.transactions.clear()
        for transaction_id in transactions:
            await state.locks.release_all(transaction_id)
        logger.info(f"Container '{state.name}' dropped ({len(transactions)} open transactions discarded)")
        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    async def begin(self, name: str, version: int, deadline: Timestamp) -> str:
        state = self._bound(name, version)
        transaction_id = str(uuid4())
        state.transactions[transaction_id] = _Transaction(transaction_id, deadline)
        return transaction_id

    async def commit(self, name: str, transaction_id: str) -> None:
        """
        Apply a transaction's writes and release its locks.

        Raises:
            StaleStateError: container dropped
            TransactionTimeoutError: transaction reaped or past its deadline
        """
        state = self._containers.get(normalize(name))
        if state is None or state.dropped:
            raise StaleStateError.container_dropped(name)
        transaction = state.transactions.pop(transaction_id, None)
        if transaction is None:
            raise self._reaped("commit")
        if self._clock() >= transaction.deadline:
            await state.locks.release_all(transaction_id)
            raise self._reaped("commit")

        async with self._lock:
            for row_key, values in transaction.writes.items():
                if values is None:
                    state.rows.pop(row_key, None)
                else:
                    state.rows[row_key] = values
        await state.locks.release_all(transaction_id)
        if transaction.events:
            await self._dispatch(state, transaction.events)

    async def abort(self, name: str, transaction_id: str) -> None:
        """Discard a transaction; unknown transactions are a no-op."""
        state = self._containers.get(normalize(name))
        if state is None:
            return
        state.transactions.pop(transaction_id, None)
        await state.locks.release_all(transaction_id)

    def _reap(self, state: _ContainerState, transaction_id: str) -> None:
        if state.transactions.pop(transaction_id, None) is not None:
            logger.info(f"Transaction {transaction_id} on '{state.name}' aborted after its deadline")
            self._metrics.aborted(state.name, "expired")

    def _reaped(self, operation: str) -> TransactionTimeoutError:
        return TransactionTimeoutError.deadline_exceeded(
            operation, self._config.transaction.transaction_timeout_ms
        )

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------
    async def get_row(
        self,
        name: str,
        version: int,
        key: Any,
        transaction_id: Optional[str] = None,
        for_update: bool = False,
        deadline: Optional[Timestamp] = None,
    ) -> Optional[Values]:
        state = self._bound(name, version)
        transaction = None
        if transaction_id is not None:
            transaction = self._transaction(state, transaction_id, "get")
        if for_update:
            if transaction is None or deadline is None:
                raise ValueError("for_update reads need a transaction and a deadline")
            await self._lock_row(state, transaction, key, deadline)
            state = self._bound(name, version)
        values = self._visible(state, transaction, key)
        return None if values is None else self._unpack(state, values)

    async def put_row(
        self,
        name: str,
        version: int,
        key: Any,
        values: Values,
        transaction_id: str,
        deadline: Timestamp,
    ) -> bool:
        """
        Create or update a row. ``key`` of None appends to a keyless container.

        Returns:
            Whether a row with this key already existed
        """
        state = self._bound(name, version)
        transaction = self._transaction(state, transaction_id, "put")
        packed = self._pack(state, values)

        if key is None:
            async with self._lock:
                state.next_row_id += 1
                transaction.writes[_RowId(state.next_row_id)] = packed
                transaction.events.append((TriggerEvent.PUT, packed))
            return False

        await self._lock_row(state, transaction, key, deadline)
        state = self._bound(name, version)
        async with self._lock:
            existed = self._visible(state, transaction, key) is not None
            transaction.writes[key] = packed
            transaction.events.append((TriggerEvent.PUT, packed))
        return existed

    async def remove_row(
        self,
        name: str,
        version: int,
        key: Any,
        transaction_id: str,
        deadline: Timestamp,
    ) -> bool:
        state = self._bound(name, version)
        transaction = self._transaction(state, transaction_id, "remove")
        await self._lock_row(state, transaction, key, deadline)
        state = self._bound(name, version)
        async with self._lock:
            previous = self._visible(state, transaction, key)
            if previous is None:
                return False
            transaction.writes[key] = None
            transaction.events.append((TriggerEvent.DELETE, previous))
        return True

    async def query(
        self,
        name: str,
        version: int,
        statement: str,
        transaction_id: Optional[str] = None,
        for_update: bool = False,
        deadline: Optional[Timestamp] = None,
    ) -> QueryOutcome:
        state = self._bound(name, version)
        parsed = tql.parse(statement, state.info)
        transaction = None
        if transaction_id is not None:
            transaction = self._transaction(state, transaction_id, "query")

        if parsed.is_aggregation:
            if for_update:
                raise QuerySyntaxError.malformed(statement, "aggregations cannot be fetched for update")
            value = tql.aggregate(parsed, self._visible_rows(state, transaction))
            return QueryOutcome(aggregation=value, is_aggregation=True)

        selected = tql.select_rows(parsed, self._visible_rows(state, transaction))
        if for_update:
            if transaction is None or deadline is None:
                raise ValueError("for_update queries need a transaction and a deadline")
            for row_key, _ in selected:
                await self._lock_row(state, transaction, row_key, deadline)
            state = self._bound(name, version)
            # Re-read under lock; rows may have changed while waiting.
            refreshed = []
            for row_key, _ in selected:
                current = self._visible(state, transaction, row_key)
                if current is not None and tql.select_rows(
                    tql.TqlStatement(parsed.text, None, parsed.conditions), [(row_key, current)]
                ):
                    refreshed.append((row_key, current))
            selected = refreshed

        return QueryOutcome(
            rows=tuple(self._unpack(state, values) for _, values in selected),
            locked=len(selected) if for_update else 0,
        )

    # -------------------------------------------------------------------------
    # Schema directives
    # -------------------------------------------------------------------------
    async def create_index(self, name: str, version: int, index_info: IndexInfo) -> bool:
        """Returns whether a new index was created (False for a no-op)."""
        state = self._bound(name, version)
        async with state.schema_lock:
            state = self._bound(name, version)
            plan = IndexDirectiveEngine(state.info).plan_create(index_info, state.indexes).unwrap()
            if plan.action is IndexAction.NOOP:
                logger.debug(f"Index request on '{state.name}' is a no-op: {plan.index.describe()}")
                return False
            state.indexes.append(plan.index)
            logger.info(f"Created {plan.index.describe()} on '{state.name}'")
            return True

    async def drop_index(self, name: str, version: int, index_info: IndexInfo) -> int:
        """Returns the number of indexes removed."""
        state = self._bound(name, version)
        async with state.schema_lock:
            state = self._bound(name, version)
            matches = IndexDirectiveEngine(state.info).plan_drop(index_info, state.indexes).unwrap()
            if matches:
                state.indexes = [index for index in state.indexes if index not in matches]
                logger.info(f"Dropped {len(matches)} index(es) from '{state.name}'")
            return len(matches)

    async def create_trigger(self, name: str, version: int, trigger: TriggerInfo) -> None:
        state = self._bound(name, version)
        async with state.schema_lock:
            state = self._bound(name, version)
            plan = TriggerDirectiveEngine(state.info).plan_create(trigger, state.triggers).unwrap()
            if (
                plan.action is TriggerAction.CREATE
                and len(state.triggers) >= self._config.backend.max_trigger_count
            ):
                raise TriggerValidationError.invalid(
                    trigger.name,
                    f"container already has {len(state.triggers)} triggers (limit reached)",
                )
            self._apply_trigger_plan(state, plan)
            logger.info(f"Trigger '{plan.trigger.name}' {plan.action.name.lower()}d on '{state.name}'")

    @staticmethod
    def _apply_trigger_plan(state: _ContainerState, plan: Any) -> None:
        if plan.action is TriggerAction.REPLACE:
            state.triggers = [
                plan.trigger if current.name == plan.replaces else current
                for current in state.triggers
            ]
        else:
            state.triggers.append(plan.trigger)

    async def drop_trigger(self, name: str, version: int, trigger_name: str) -> bool:
        state = self._bound(name, version)
        async with state.schema_lock:
            state = self._bound(name, version)
            current = TriggerDirectiveEngine.find(trigger_name, state.triggers)
            if current is None:
                return False
            state.triggers = [t for t in state.triggers if t is not current]
            logger.info(f"Trigger '{current.name}' dropped from '{state.name}'")
            return True

    # -------------------------------------------------------------------------
    # Durability
    # -------------------------------------------------------------------------
    async def flush(self, name: str, version: int) -> None:
        state = self._bound(name, version)
        self._flushes += 1
        logger.debug(f"Flushed '{state.name}' ({len(state.rows)} rows)")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _bound(self, name: str, version: int) -> _ContainerState:
        state = self._containers.get(normalize(name))
        if state is None or state.dropped:
            raise StaleStateError.container_dropped(name)
        if state.version != version:
            raise StaleStateError.schema_changed(name, version, state.version)
        return state

    def _transaction(self, state: _ContainerState, transaction_id: str, operation: str) -> _Transaction:
        transaction = state.transactions.get(transaction_id)
        if transaction is None:
            raise self._reaped(operation)
        return transaction

    async def _lock_row(
        self,
        state: _ContainerState,
        transaction: _Transaction,
        key: Any,
        deadline: Timestamp,
    ) -> None:
        started = time.perf_counter()
        await state.locks.acquire(key, transaction.transaction_id, deadline)
        if transaction.transaction_id not in state.transactions and not state.dropped:
            await state.locks.release_all(transaction.transaction_id)
            raise self._reaped("lock")
        self._metrics.lock_waited(state.name, time.perf_counter() - started)

    @staticmethod
    def _visible(state: _ContainerState, transaction: Optional[_Transaction], key: Any) -> Optional[Values]:
        if transaction is not None and key in transaction.writes:
            return transaction.writes[key]
        return state.rows.get(key)

    @staticmethod
    def _visible_rows(
        state: _ContainerState,
        transaction: Optional[_Transaction],
    ) -> list[tuple[Any, Values]]:
        if transaction is None or not transaction.writes:
            return list(state.rows.items())
        rows = []
        for row_key, values in state.rows.items():
            if row_key in transaction.writes:
                values = transaction.writes[row_key]
                if values is None:
                    continue
            rows.append((row_key, values))
        for row_key, values in transaction.writes.items():
            if values is not None and row_key not in state.rows:
                rows.append((row_key, values))
        return rows

    def _pack(self, state: _ContainerState, values: Values) -> Values:
        threshold = self._config.backend.blob_compression_threshold_bytes
        packed = list(values)
        for number, column in enumerate(state.info.columns):
            value = packed[number]
            if column.type is ColumnType.BLOB and isinstance(value, bytes) and len(value) > threshold:
                packed[number] = PackedBlob(lz4.frame.compress(value), len(value))
        return tuple(packed)

    @staticmethod
    def _unpack(state: _ContainerState, values: Values) -> Values:
        return tuple(
            lz4.frame.decompress(value.data) if isinstance(value, PackedBlob) else value
            for value in values
        )

    async def _dispatch(self, state: _ContainerState, events: list[tuple[TriggerEvent, Values]]) -> None:
        """Deliver notifications best-effort: one attempt, failures dropped."""
        if not state.triggers:
            return
        engine = TriggerDirectiveEngine(state.info)
        for event, values in events:
            unpacked = self._unpack(state, values)
            for trigger in state.triggers:
                if not trigger.monitors(event):
                    continue
                notification = engine.build_notification(trigger, event, unpacked)
                if self._sink is None:
                    logger.debug(f"No notification sink; '{trigger.name}' event not delivered")
                    continue
                try:
                    result: Union[Any, None] = self._sink(notification)
                    if inspect.isawaitable(result):
                        await result
                    self._notifications_sent += 1
                except Exception as e:
                    self._notifications_dropped += 1
                    self._metrics.notification_dropped(state.name)
                    logger.warning(
                        f"Trigger '{trigger.name}' notification to {trigger.uri} dropped: {e}"
                    )

    def stats(self) -> BackendStats:
        return BackendStats(
            containers=len(self._containers),
            open_transactions=sum(len(s.transactions) for s in self._containers.values()),
            active_locks=sum(s.locks.active_locks for s in self._containers.values() if s.locks),
            notifications_sent=self._notifications_sent,
            notifications_dropped=self._notifications_dropped,
            extra={"flushes": self._flushes},
        )
