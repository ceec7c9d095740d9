"""
Directive module: planning of index and trigger mutations.
"""

from gridclient.directives.index import (
    IndexAction,
    IndexDirectiveEngine,
    IndexPlan,
    ResolvedIndex,
    default_index_type,
)
from gridclient.directives.trigger import (
    TriggerAction,
    TriggerDirectiveEngine,
    TriggerNotification,
    TriggerPlan,
    parse_uri,
)

__all__ = [
    "IndexAction",
    "IndexDirectiveEngine",
    "IndexPlan",
    "ResolvedIndex",
    "default_index_type",
    "TriggerAction",
    "TriggerDirectiveEngine",
    "TriggerNotification",
    "TriggerPlan",
    "parse_uri",
]
