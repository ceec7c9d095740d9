"""
Grid Container Client

Client-side contract for schema-bound containers of rows in a clustered
container database:
- Container layouts (columns, row key, indexes, triggers, time-series options)
- Sessions with auto-commit and manual transactions over shared update locks
- Idempotent index and trigger directives
- Narrow TQL queries and aggregations
- An in-memory endpoint implementing the remote container contract
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from gridclient.core.types import Result, Ok, Err, Timestamp
from gridclient.core.errors import (
    ErrorCode,
    GridError,
    ModeError,
    TransactionTimeoutError,
    ClosedError,
    StaleStateError,
    KeyNotSupportedError,
    TypeMismatchError,
    IndexConflictError,
    UnsupportedIndexError,
    TriggerValidationError,
    ValidationError,
    QuerySyntaxError,
)
from gridclient.core.config import GridClientConfig

from gridclient.schema import (
    ColumnInfo,
    ColumnType,
    CompressionMethod,
    ContainerInfo,
    ContainerType,
    IndexInfo,
    IndexType,
    TimeSeriesProperties,
    TimeUnit,
    TriggerEvent,
    TriggerInfo,
    TriggerType,
)
from gridclient.codec import Blob, GenericRowCodec, MappingRowCodec, Row, RowCodec
from gridclient.directives import TriggerNotification
from gridclient.storage import ContainerBackend, InMemoryGridBackend
from gridclient.session import AggregationResult, Container, GridStore, Query, RowSet

__all__ = [
    # Version
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "GridClientConfig",
    # Errors
    "ErrorCode",
    "GridError",
    "ModeError",
    "TransactionTimeoutError",
    "ClosedError",
    "StaleStateError",
    "KeyNotSupportedError",
    "TypeMismatchError",
    "IndexConflictError",
    "UnsupportedIndexError",
    "TriggerValidationError",
    "ValidationError",
    "QuerySyntaxError",
    # Schema
    "ColumnInfo",
    "ColumnType",
    "CompressionMethod",
    "ContainerInfo",
    "ContainerType",
    "IndexInfo",
    "IndexType",
    "TimeSeriesProperties",
    "TimeUnit",
    "TriggerEvent",
    "TriggerInfo",
    "TriggerType",
    # Codec
    "Blob",
    "GenericRowCodec",
    "MappingRowCodec",
    "Row",
    "RowCodec",
    # Storage
    "ContainerBackend",
    "InMemoryGridBackend",
    "TriggerNotification",
    # Sessions
    "AggregationResult",
    "Container",
    "GridStore",
    "Query",
    "RowSet",
]
