"""
Container Session: The Public Row and Schema Operation Surface

A Container is one caller's session on one materialized container. It
sequences every operation through the transaction state machine and the
row codec before reaching the backend.

Commit modes:
    - AUTO_COMMIT (default): each mutation runs in its own short-lived
      transaction that commits before the call returns
    - Manual: the first put/remove/locking read starts a transaction whose
      update locks are held until commit(), abort(), close() or the
      transaction deadline

Failure handling:
    - TransactionTimeoutError and StaleStateError abort the open
      transaction implicitly; the session is left in manual-idle mode
    - close() never raises; a failed remote abort is logged and the remote
      transaction is left to expire
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Final, Generic, Iterable, Optional, TypeVar, Union
from uuid import uuid4

from gridclient.codec.blob import Blob
from gridclient.codec.rows import CodecFactory, GenericRowCodec, RowCodec
from gridclient.core.config import GridClientConfig
from gridclient.core.errors import (
    KeyNotSupportedError,
    QuerySyntaxError,
    StaleStateError,
    TransactionTimeoutError,
    TypeMismatchError,
)
from gridclient.core.types import Clock, Timestamp
from gridclient.directives.index import IndexDirectiveEngine
from gridclient.directives.trigger import TriggerDirectiveEngine
from gridclient.observability.logging import StructuredLogger
from gridclient.observability.metrics import ClientMetrics
from gridclient.schema.container_info import ContainerInfo, ContainerType
from gridclient.schema.index_info import IndexInfo, IndexType
from gridclient.schema.trigger_info import TriggerInfo
from gridclient.session.query import AggregationResult, Query, RowSet
from gridclient.storage import tql
from gridclient.storage.protocols import ContainerBackend, ContainerHandle
from gridclient.transaction.state_machine import (
    ManualUncommitted,
    TransactionEvent,
    TransactionStateMachine,
)

K = TypeVar("K")
R = TypeVar("R")
T = TypeVar("T")

_UNSET: Final = object()


class Container(Generic[K, R]):
    """
    Session on one container.

    Example:
        container = await store.put_container(info)
        await container.put(1, Row(["id", "value"], [1, "x"]))
        row = await container.get(1)

        await container.set_auto_commit(False)
        await container.get(1, for_update=True)
        await container.remove(1)
        await container.commit()
    """

    __slots__ = (
        "_backend",
        "_name",
        "_version",
        "_info",
        "_codec",
        "_fsm",
        "_metrics",
        "_session_id",
        "_log",
        "_on_close",
    )

    def __init__(
        self,
        backend: ContainerBackend,
        handle: ContainerHandle,
        codec: Optional[CodecFactory] = None,
        config: Optional[GridClientConfig] = None,
        metrics: Optional[ClientMetrics] = None,
        clock: Clock = Timestamp.now,
        on_close: Optional[Callable[[Container[Any, Any]], None]] = None,
    ) -> None:
        config = config or GridClientConfig()
        self._backend = backend
        self._name = handle.name
        self._version = handle.schema_version
        self._info = handle.info
        self._codec: RowCodec[Any] = (codec or GenericRowCodec)(handle.info)
        self._fsm = TransactionStateMachine(config.transaction.transaction_timeout_ms, clock)
        self._metrics = metrics or ClientMetrics(enabled=config.observability.metrics_enabled)
        self._session_id = uuid4().hex[:12]
        self._log = StructuredLogger(__name__).with_extra(
            container=self._name, session_id=self._session_id
        )
        self._on_close = on_close
        self._fsm.add_listener(self._on_transition)
        self._metrics.session_opened(self._name)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def name(self) -> str:
        return self._name

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def schema_version(self) -> int:
        return self._version

    @property
    def type(self) -> Optional[ContainerType]:
        self._fsm.check_open("type")
        return self._info.type

    @property
    def info(self) -> ContainerInfo:
        """Copy of the layout this session is bound to."""
        return self._info.copy()

    @property
    def auto_commit(self) -> bool:
        return self._fsm.is_auto_commit

    @property
    def closed(self) -> bool:
        return self._fsm.is_closed

    @property
    def state_machine(self) -> TransactionStateMachine:
        return self._fsm

    def create_row(self) -> R:
        self._fsm.check_open("create_row")
        return self._codec.create_row()

    def create_blob(self) -> Blob:
        self._fsm.check_open("create_blob")
        return Blob()

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------
    async def put(self, key_or_row: Any, row: Any = _UNSET) -> bool:
        """
        Create or update a row.

        ``put(row)`` takes the key from column 0 of the row; ``put(key, row)``
        overrides it with ``key``.

        Returns:
            Whether a row with this key existed before (always False for
            containers without a row key)

        Raises:
            KeyNotSupportedError: explicit key on a container without a row key
            TypeMismatchError: key or row does not fit the layout
        """
        self._fsm.check_open("put")
        if row is _UNSET:
            key, row = None, key_or_row
        else:
            key = key_or_row
        if key is not None and not self._info.row_key_assigned:
            raise KeyNotSupportedError.no_row_key(self._name, "put")

        row_key, values = self._codec.encode(row, key)
        existed = await self._execute(
            "put",
            lambda txn_id, deadline: self._backend.put_row(
                self._name, self._version, row_key, values, txn_id, deadline
            ),
        )
        if row_key is not None and not self._fsm.is_auto_commit:
            self._fsm.record_lock(row_key)
        return existed

    async def put_rows(self, rows: Iterable[Any]) -> bool:
        """
        Put rows in iteration order; for duplicate keys the last row wins.

        Not atomic: a failure leaves the rows before it applied. Always
        returns False.
        """
        self._fsm.check_open("put_rows")
        for row in rows:
            await self.put(row)
        return False

    async def get(self, key: K, for_update: bool = False) -> Optional[R]:
        """
        Read the row with ``key``; None when absent.

        Raises:
            KeyNotSupportedError: container has no row key
            ModeError: ``for_update`` in auto-commit mode
        """
        self._fsm.check_open("get")
        self._require_key("get")
        if for_update:
            self._fsm.require_manual("get for update")
        row_key = self._codec.encode_key(key)

        if for_update:
            values = await self._execute(
                "get",
                lambda txn_id, deadline: self._backend.get_row(
                    self._name, self._version, row_key, txn_id, True, deadline
                ),
            )
            self._fsm.record_lock(row_key)
        else:
            values = await self._read(
                "get",
                lambda txn_id: self._backend.get_row(self._name, self._version, row_key, txn_id),
            )
        return None if values is None else self._codec.decode(values)

    async def remove(self, key: K) -> bool:
        """Remove the row with ``key``. Returns whether a row was removed."""
        self._fsm.check_open("remove")
        self._require_key("remove")
        row_key = self._codec.encode_key(key)
        removed = await self._execute(
            "remove",
            lambda txn_id, deadline: self._backend.remove_row(
                self._name, self._version, row_key, txn_id, deadline
            ),
        )
        if not self._fsm.is_auto_commit:
            self._fsm.record_lock(row_key)
        return removed

    def query(self, statement: str, result_type: Optional[type] = None) -> Query[R]:
        """Bind a TQL statement; nothing is parsed until fetch()."""
        self._fsm.check_open("query")
        return Query(self, statement, result_type)

    async def _fetch(self, statement: str, result_type: Optional[type], for_update: bool) -> RowSet[Any]:
        self._fsm.check_open("fetch")
        if for_update:
            self._fsm.require_manual("fetch for update")
            if tql.parse(statement, self._info).is_aggregation:
                raise QuerySyntaxError.malformed(statement, "aggregations cannot be fetched for update")
            outcome = await self._execute(
                "query",
                lambda txn_id, deadline: self._backend.query(
                    self._name, self._version, statement, txn_id, True, deadline
                ),
            )
        else:
            outcome = await self._read(
                "query",
                lambda txn_id: self._backend.query(self._name, self._version, statement, txn_id),
            )

        if outcome.is_aggregation:
            result = AggregationResult(outcome.aggregation)
            if result_type is not None and result_type is not AggregationResult:
                raise TypeMismatchError.row_shape(result_type.__name__, result)
            return RowSet([result])
        if result_type is AggregationResult:
            raise TypeMismatchError.row_shape("AggregationResult", outcome.rows)

        if for_update and self._info.row_key_assigned:
            for values in outcome.rows:
                self._fsm.record_lock(values[0])
        return RowSet([self._codec.decode(values) for values in outcome.rows])

    # -------------------------------------------------------------------------
    # Schema directives
    # -------------------------------------------------------------------------
    async def create_index(
        self,
        index_or_column: Union[IndexInfo, str],
        index_type: Optional[IndexType] = None,
    ) -> None:
        """
        Create an index; an equivalent existing index makes this a no-op.

        Any uncommitted transaction of this session is committed first.

        Raises:
            IndexConflictError: the requested name belongs to a different index
            UnsupportedIndexError: column/type combination cannot be indexed
        """
        self._fsm.check_open("create_index")
        index_info = self._as_index_info(index_or_column, index_type)
        IndexDirectiveEngine(self._info).resolve(index_info).unwrap()
        if self._fsm.open_transaction is not None:
            await self.commit()
        created = await self._backend.create_index(self._name, self._version, index_info)
        self._log.debug(f"create_index {index_info.describe()}: {'created' if created else 'no-op'}")

    async def drop_index(
        self,
        index_or_column: Union[IndexInfo, str],
        index_type: Optional[IndexType] = IndexType.DEFAULT,
    ) -> None:
        """Drop every index matching the set fields of the request; none is a no-op."""
        self._fsm.check_open("drop_index")
        index_info = self._as_index_info(index_or_column, index_type)
        if self._fsm.open_transaction is not None:
            await self.commit()
        dropped = await self._backend.drop_index(self._name, self._version, index_info)
        self._log.debug(f"drop_index {index_info.describe()}: {dropped} removed")

    @staticmethod
    def _as_index_info(index_or_column: Union[IndexInfo, str], index_type: Optional[IndexType]) -> IndexInfo:
        if isinstance(index_or_column, IndexInfo):
            return index_or_column
        return IndexInfo.for_column(index_or_column, index_type)

    async def create_trigger(self, trigger: TriggerInfo) -> None:
        """
        Create a trigger, or replace the one with exactly the same name.

        Raises:
            TriggerValidationError: malformed definition or case-insensitive
                name collision
        """
        self._fsm.check_open("create_trigger")
        TriggerDirectiveEngine(self._info).validate(trigger).unwrap()
        await self._backend.create_trigger(self._name, self._version, trigger)

    async def drop_trigger(self, name: str) -> None:
        self._fsm.check_open("drop_trigger")
        if not await self._backend.drop_trigger(self._name, self._version, name):
            self._log.debug(f"drop_trigger '{name}': no such trigger")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    async def commit(self) -> None:
        """
        Persist the open transaction and release its locks.

        Raises:
            ModeError: session is in auto-commit mode
            TransactionTimeoutError: deadline passed (transaction aborted)
        """
        self._fsm.require_manual("commit")
        txn = self._fsm.open_transaction
        if txn is None:
            self._fsm.commit()
            return
        await self._check_deadline("commit")
        try:
            await self._backend.commit(self._name, txn.transaction_id)
        except TransactionTimeoutError:
            self._metrics.timed_out(self._name)
            await self._implicit_abort("commit", "timeout")
            raise
        except StaleStateError:
            await self._implicit_abort("commit", "stale")
            raise
        self._fsm.commit()
        self._metrics.committed(self._name)

    async def abort(self) -> None:
        """Discard the open transaction and release its locks."""
        self._fsm.require_manual("abort")
        txn = self._fsm.open_transaction
        if txn is None:
            self._fsm.abort()
            return
        try:
            await self._backend.abort(self._name, txn.transaction_id)
        finally:
            self._fsm.abort()
            self._metrics.aborted(self._name, "requested")

    async def set_auto_commit(self, enabled: bool) -> None:
        """
        Switch commit mode. Enabling auto-commit commits pending changes
        first; switching to the mode already in effect is a no-op.
        """
        self._fsm.check_open("set_auto_commit")
        if not enabled:
            self._fsm.set_manual()
            return
        if self._fsm.open_transaction is not None:
            await self.commit()
        self._fsm.set_auto_commit()

    async def flush(self) -> None:
        self._fsm.check_open("flush")
        await self._backend.flush(self._name, self._version)

    async def close(self) -> None:
        """
        Abort any open transaction and close the session. Never raises.
        """
        if self._fsm.is_closed:
            return
        txn = self._fsm.open_transaction
        if txn is not None:
            try:
                await self._backend.abort(self._name, txn.transaction_id)
                self._metrics.aborted(self._name, "close")
            except Exception as e:
                self._log.warning(
                    f"Abort of {txn.transaction_id} on close failed; "
                    f"remote transaction left to expire: {e}"
                )
        self._fsm.close()
        self._metrics.session_closed(self._name)
        if self._on_close is not None:
            self._on_close(self)

    async def __aenter__(self) -> Container[K, R]:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _require_key(self, operation: str) -> None:
        if not self._info.row_key_assigned:
            raise KeyNotSupportedError.no_row_key(self._name, operation)

    def _on_transition(self, event: TransactionEvent) -> None:
        if event.from_state.phase is not event.to_state.phase:
            self._log.debug(
                f"{event.trigger.name}: {event.from_state.phase.name} -> {event.to_state.phase.name}"
            )

    async def _check_deadline(self, operation: str) -> None:
        try:
            self._fsm.check_deadline(operation)
        except TransactionTimeoutError:
            self._metrics.timed_out(self._name)
            await self._implicit_abort(operation, "timeout")
            raise

    async def _implicit_abort(self, operation: str, reason: str) -> None:
        txn = self._fsm.open_transaction
        if txn is None:
            return
        try:
            await self._backend.abort(self._name, txn.transaction_id)
        finally:
            if reason == "timeout":
                self._fsm.expire()
            else:
                self._fsm.abort()
            self._metrics.aborted(self._name, reason)
            self._log.warning(
                f"Transaction {txn.transaction_id} aborted during '{operation}' ({reason})"
            )

    async def _begin(self) -> ManualUncommitted:
        started = self._fsm.now()
        deadline = started.plus_millis(self._fsm.timeout_ms)
        txn_id = await self._backend.begin(self._name, self._version, deadline)
        return self._fsm.begin(txn_id, started)

    async def _execute(
        self,
        operation: str,
        action: Callable[[str, Timestamp], Awaitable[T]],
    ) -> T:
        """Run a locking operation inside the session's transaction."""
        started = time.perf_counter()
        self._metrics.row_operation(self._name, operation)
        try:
            if self._fsm.is_auto_commit:
                return await self._execute_auto(action)

            await self._check_deadline(operation)
            txn = self._fsm.open_transaction or await self._begin()
            try:
                return await action(txn.transaction_id, txn.deadline)
            except TransactionTimeoutError:
                self._metrics.timed_out(self._name)
                await self._implicit_abort(operation, "timeout")
                raise
            except StaleStateError:
                await self._implicit_abort(operation, "stale")
                raise
        finally:
            self._metrics.observe_operation(operation, time.perf_counter() - started)

    async def _execute_auto(self, action: Callable[[str, Timestamp], Awaitable[T]]) -> T:
        deadline = self._fsm.now().plus_millis(self._fsm.timeout_ms)
        txn_id = await self._backend.begin(self._name, self._version, deadline)
        try:
            result = await action(txn_id, deadline)
            await self._backend.commit(self._name, txn_id)
        except TransactionTimeoutError:
            self._metrics.timed_out(self._name)
            await self._backend.abort(self._name, txn_id)
            raise
        except Exception:
            await self._backend.abort(self._name, txn_id)
            raise
        self._metrics.committed(self._name)
        return result

    async def _read(self, operation: str, action: Callable[[Optional[str]], Awaitable[T]]) -> T:
        """Run a non-locking read; sees the open transaction's own writes."""
        started = time.perf_counter()
        self._metrics.row_operation(self._name, operation)
        try:
            if self._fsm.is_auto_commit:
                return await action(None)
            await self._check_deadline(operation)
            txn = self._fsm.open_transaction
            if txn is None:
                return await action(None)
            try:
                return await action(txn.transaction_id)
            except TransactionTimeoutError:
                self._metrics.timed_out(self._name)
                await self._implicit_abort(operation, "timeout")
                raise
            except StaleStateError:
                await self._implicit_abort(operation, "stale")
                raise
        finally:
            self._metrics.observe_operation(operation, time.perf_counter() - started)

    def __repr__(self) -> str:
        return (
            f"Container(name={self._name!r}, version={self._version}, "
            f"phase={self._fsm.phase.name}, session={self._session_id})"
        )
