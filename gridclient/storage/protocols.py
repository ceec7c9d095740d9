"""
Container Backend Protocol: The Remote Container Contract

Structural protocol (PEP 544) for the endpoint a container session talks
to. The in-memory backend implements it; a networked implementation would
implement the same calls over its transport.

Conventions:
    - Every row and schema call names the container and the schema version
      the session is bound to; a dropped container or a version mismatch
      raises StaleStateError
    - Row calls run inside a transaction id obtained from begin(); auto-commit
      sessions use a short-lived transaction per operation
    - Calls that may block on update locks take the caller's deadline and
      raise TransactionTimeoutError when it passes
    - Isolation is READ_COMMITTED: a transaction sees committed rows plus
      its own writes
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from gridclient.core.types import Timestamp
from gridclient.directives.trigger import TriggerNotification
from gridclient.schema.container_info import ContainerInfo
from gridclient.schema.index_info import IndexInfo
from gridclient.schema.trigger_info import TriggerInfo


@dataclass(frozen=True, slots=True)
class ContainerHandle:
    """Binding of a session to one materialized container version."""

    name: str
    schema_version: int
    info: ContainerInfo


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """Rows (as column-value tuples) or a single aggregation value."""

    rows: tuple[tuple[Any, ...], ...] = ()
    aggregation: Any = None
    is_aggregation: bool = False
    locked: int = 0


@dataclass(frozen=True, slots=True)
class BackendStats:
    containers: int
    open_transactions: int
    active_locks: int
    notifications_sent: int
    notifications_dropped: int
    extra: dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    """Receives trigger notifications; may be sync or async."""

    def __call__(self, notification: TriggerNotification) -> Any:
        ...


@runtime_checkable
class ContainerBackend(Protocol):
    """Operations a container session needs from the remote endpoint."""

    # Container lifecycle
    @abstractmethod
    async def put_container(self, info: ContainerInfo, modifiable: bool = False) -> ContainerHandle: ...

    @abstractmethod
    async def open_container(self, name: str) -> Optional[ContainerHandle]: ...

    @abstractmethod
    async def get_container_info(self, name: str) -> Optional[ContainerInfo]: ...

    @abstractmethod
    async def drop_container(self, name: str) -> bool: ...

    # Transactions
    @abstractmethod
    async def begin(self, name: str, version: int, deadline: Timestamp) -> str: ...

    @abstractmethod
    async def commit(self, name: str, transaction_id: str) -> None: ...

    @abstractmethod
    async def abort(self, name: str, transaction_id: str) -> None: ...

    # Rows
    @abstractmethod
    async def get_row(
        self,
        name: str,
        version: int,
        key: Any,
        transaction_id: Optional[str] = None,
        for_update: bool = False,
        deadline: Optional[Timestamp] = None,
    ) -> Optional[tuple[Any, ...]]: ...

    @abstractmethod
    async def put_row(
        self,
        name: str,
        version: int,
        key: Any,
        values: tuple[Any, ...],
        transaction_id: str,
        deadline: Timestamp,
    ) -> bool: ...

    @abstractmethod
    async def remove_row(
        self,
        name: str,
        version: int,
        key: Any,
        transaction_id: str,
        deadline: Timestamp,
    ) -> bool: ...

    @abstractmethod
    async def query(
        self,
        name: str,
        version: int,
        statement: str,
        transaction_id: Optional[str] = None,
        for_update: bool = False,
        deadline: Optional[Timestamp] = None,
    ) -> QueryOutcome: ...

    # Schema directives
    @abstractmethod
    async def create_index(self, name: str, version: int, index_info: IndexInfo) -> bool: ...

    @abstractmethod
    async def drop_index(self, name: str, version: int, index_info: IndexInfo) -> int: ...

    @abstractmethod
    async def create_trigger(self, name: str, version: int, trigger: TriggerInfo) -> None: ...

    @abstractmethod
    async def drop_trigger(self, name: str, version: int, trigger_name: str) -> bool: ...

    # Durability
    @abstractmethod
    async def flush(self, name: str, version: int) -> None: ...


