"""
Storage module: the remote container contract and its in-memory endpoint.
"""

from gridclient.storage.protocols import (
    BackendStats,
    ContainerBackend,
    ContainerHandle,
    NotificationSink,
    QueryOutcome,
)
from gridclient.storage.backend import InMemoryGridBackend, PackedBlob

__all__ = [
    "BackendStats",
    "ContainerBackend",
    "ContainerHandle",
    "NotificationSink",
    "QueryOutcome",
    "InMemoryGridBackend",
    "PackedBlob",
]
