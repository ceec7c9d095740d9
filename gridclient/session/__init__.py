"""
Session module: container sessions, queries and the store entry point.
"""

from gridclient.session.container import Container
from gridclient.session.query import AggregationResult, Query, RowSet
from gridclient.session.store import GridStore

__all__ = [
    "AggregationResult",
    "Container",
    "GridStore",
    "Query",
    "RowSet",
]
