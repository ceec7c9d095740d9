"""
Schema module: container, column, index and trigger descriptions.
"""

from gridclient.schema.columns import ColumnInfo, ColumnType
from gridclient.schema.index_info import IndexInfo, IndexType
from gridclient.schema.trigger_info import TriggerEvent, TriggerInfo, TriggerType
from gridclient.schema.container_info import (
    CompressionMethod,
    ContainerInfo,
    ContainerType,
    TimeSeriesProperties,
    TimeUnit,
)

__all__ = [
    "ColumnInfo",
    "ColumnType",
    "IndexInfo",
    "IndexType",
    "TriggerEvent",
    "TriggerInfo",
    "TriggerType",
    "CompressionMethod",
    "ContainerInfo",
    "ContainerType",
    "TimeSeriesProperties",
    "TimeUnit",
]
