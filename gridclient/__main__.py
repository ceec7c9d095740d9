#!/usr/bin/env python3
"""
Grid Container Client

Entry point demonstrating a container session against the in-memory
endpoint.

Usage:
    python -m gridclient

    # Or with custom config
    GRIDCLIENT_LOG_LEVEL=DEBUG python -m gridclient
"""

from __future__ import annotations

import asyncio
import sys

from gridclient.core.config import GridClientConfig
from gridclient.codec.rows import Row
from gridclient.directives.trigger import TriggerNotification
from gridclient.observability.logging import setup_logging
from gridclient.observability.metrics import MetricsCollector
from gridclient.schema import (
    ColumnInfo,
    ColumnType,
    ContainerInfo,
    ContainerType,
    IndexType,
    TriggerEvent,
    TriggerInfo,
)
from gridclient.session.store import GridStore
from gridclient.storage.backend import InMemoryGridBackend


async def demo_local_mode() -> None:
    """Create a container, write and query rows, and show trigger output."""
    print("\n" + "=" * 60)
    print("Grid Container Client - Local Demo")
    print("=" * 60 + "\n")

    config_result = GridClientConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    setup_logging(config.observability)
    print("✓ Configuration loaded and validated")

    notifications: list[TriggerNotification] = []
    backend = InMemoryGridBackend(config, notification_sink=notifications.append)
    store = GridStore(backend, config)

    info = ContainerInfo(
        name="sensors",
        type=ContainerType.COLLECTION,
        columns=[
            ColumnInfo("id", ColumnType.INTEGER),
            ColumnInfo("location", ColumnType.STRING),
            ColumnInfo("reading", ColumnType.DOUBLE),
        ],
        row_key_assigned=True,
    )
    names = [column.name for column in info.columns]

    async with store:
        container = await store.put_container(info)
        print(f"✓ Container '{container.name}' materialized")

        await container.create_index("reading", IndexType.TREE)
        await container.create_trigger(
            TriggerInfo.rest("alerts", "http://localhost:8080/alerts", [TriggerEvent.PUT], ["id", "reading"])
        )

        print("\n--- Demo Operations ---\n")
        existed = await container.put(Row(names, [1, "hall", 20.5]))
        print(f"1. put(1) existed={existed}")
        existed = await container.put(1, Row(names, [1, "hall", 21.0]))
        print(f"2. put(1) again existed={existed}")

        await container.set_auto_commit(False)
        await container.put_rows([Row(names, [2, "roof", 12.25]), Row(names, [3, "cellar", 9.0])])
        await container.commit()
        print("3. Batch of 2 rows committed in manual mode")

        rows = await container.query("SELECT * WHERE reading > 10 ORDER BY reading DESC").fetch()
        print(f"4. Rows with reading > 10: {[row.as_dict() for row in rows]}")

        average = await container.query("SELECT AVG(reading)").fetch()
        print(f"5. Average reading: {average.next().value}")

        print(f"6. Trigger notifications: {len(notifications)}")
        for notification in notifications:
            print(f"   {notification.payload}")

    print("\n--- Metrics ---\n")
    print(MetricsCollector.get_instance().export_prometheus())

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo_local_mode()
    except KeyboardInterrupt:
        print("\nInterrupted")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
