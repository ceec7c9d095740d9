"""Shared fixtures for the client test suite."""

from __future__ import annotations

from typing import Any

import pytest

from gridclient.core.config import GridClientConfig, TransactionConfig
from gridclient.core.types import Timestamp
from gridclient.directives.trigger import TriggerNotification
from gridclient.observability.metrics import ClientMetrics, MetricsCollector
from gridclient.schema import ColumnInfo, ColumnType, ContainerInfo, ContainerType
from gridclient.session.store import GridStore
from gridclient.storage.backend import InMemoryGridBackend


class FakeClock:
    """Manually advanced clock for deadline tests."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self._now = Timestamp.from_millis(start_ms)

    def __call__(self) -> Timestamp:
        return self._now

    def advance(self, millis: int) -> None:
        self._now = self._now.plus_millis(millis)


def keyed_info(name: str = "items") -> ContainerInfo:
    return ContainerInfo(
        name=name,
        type=ContainerType.COLLECTION,
        columns=[
            ColumnInfo("id", ColumnType.INTEGER),
            ColumnInfo("value", ColumnType.STRING),
        ],
        row_key_assigned=True,
    )


def keyless_info(name: str = "events") -> ContainerInfo:
    return ContainerInfo(
        name=name,
        type=ContainerType.COLLECTION,
        columns=[
            ColumnInfo("source", ColumnType.STRING),
            ColumnInfo("amount", ColumnType.LONG),
        ],
    )


def values_of(row: Any) -> tuple[Any, ...]:
    return tuple(row.values)


@pytest.fixture
def metrics() -> ClientMetrics:
    return ClientMetrics(MetricsCollector())


@pytest.fixture
def notifications() -> list[TriggerNotification]:
    return []


@pytest.fixture
def backend(notifications: list[TriggerNotification], metrics: ClientMetrics) -> InMemoryGridBackend:
    return InMemoryGridBackend(notification_sink=notifications.append, metrics=metrics)


@pytest.fixture
def store(backend: InMemoryGridBackend, metrics: ClientMetrics) -> GridStore:
    return GridStore(backend, metrics=metrics)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clocked_store(clock: FakeClock, metrics: ClientMetrics) -> GridStore:
    """Store whose sessions and backend share a manually advanced clock."""
    config = GridClientConfig(transaction=TransactionConfig(transaction_timeout_ms=1_000))
    backend = InMemoryGridBackend(config, clock=clock, metrics=metrics)
    return GridStore(backend, config, metrics=metrics, clock=clock)
