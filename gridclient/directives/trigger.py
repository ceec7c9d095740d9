"""
Trigger Directive Engine

Validates and normalizes trigger definitions, resolves name collisions,
rebinds monitored columns after a layout change, and builds the
notification payload the server emits for a matching row operation.

Destination URIs follow ``method://host:port/path``; REST triggers only
accept the ``http`` method.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Final, Optional, Sequence

from gridclient.codec.values import timestamp_millis
from gridclient.core.errors import TriggerValidationError
from gridclient.core.types import Result, Ok, Err
from gridclient.schema.columns import ColumnType
from gridclient.schema.container_info import ContainerInfo
from gridclient.schema.symbols import check_trigger_name, normalize
from gridclient.schema.trigger_info import TriggerEvent, TriggerInfo, TriggerType

_URI_PATTERN: Final = re.compile(
    r"(?P<method>[A-Za-z][A-Za-z0-9+.\-]*)://"
    r"(?P<host>[A-Za-z0-9.\-_]+|\[[0-9A-Fa-f:.]+\])"
    r":(?P<port>[0-9]{1,5})"
    r"(?P<path>/[^\s]*)?"
)

MESSAGE_QUEUE_DESTINATION_TYPES: Final = frozenset({"queue", "topic"})


@dataclass(frozen=True, slots=True)
class DestinationUri:
    method: str
    host: str
    port: int
    path: str


def parse_uri(uri: str) -> Optional[DestinationUri]:
    match = _URI_PATTERN.fullmatch(uri or "")
    if match is None:
        return None
    port = int(match.group("port"))
    if not 0 < port <= 65535:
        return None
    return DestinationUri(
        method=match.group("method").lower(),
        host=match.group("host"),
        port=port,
        path=match.group("path") or "/",
    )


class TriggerAction(Enum):
    CREATE = auto()
    REPLACE = auto()


@dataclass(frozen=True, slots=True)
class TriggerPlan:
    action: TriggerAction
    trigger: TriggerInfo
    replaces: Optional[str] = None


@dataclass(frozen=True)
class TriggerNotification:
    """One notification emitted for one trigger and one row operation."""

    trigger_name: str
    type: TriggerType
    uri: str
    payload: dict[str, Any] = field(default_factory=dict)
    destination_type: Optional[str] = None
    destination_name: Optional[str] = None


class TriggerDirectiveEngine:
    """Pure validation and planning logic over one container layout."""

    def __init__(self, info: ContainerInfo) -> None:
        self._info = info

    def validate(self, trigger: TriggerInfo) -> Result[TriggerInfo, TriggerValidationError]:
        """Check a definition and return it with columns in canonical case."""
        if not trigger.name:
            return Err(TriggerValidationError.invalid(trigger.name, "name must not be empty"))
        name_result = check_trigger_name(trigger.name)
        if name_result.is_err():
            return Err(TriggerValidationError.invalid(trigger.name, name_result.error.message))
        if not isinstance(trigger.type, TriggerType):
            return Err(TriggerValidationError.invalid(trigger.name, "unknown trigger type"))
        if not trigger.target_events:
            return Err(TriggerValidationError.invalid(
                trigger.name, "at least one monitored operation is required"
            ))

        destination = parse_uri(trigger.uri)
        if destination is None:
            return Err(TriggerValidationError.invalid(
                trigger.name, f"URI {trigger.uri!r} is not of the form method://host:port/path"
            ))
        if trigger.type is TriggerType.REST and destination.method != "http":
            return Err(TriggerValidationError.invalid(
                trigger.name, f"REST triggers require http, got {destination.method}"
            ))
        if trigger.type is TriggerType.MESSAGE_QUEUE:
            if (trigger.destination_type or "").lower() not in MESSAGE_QUEUE_DESTINATION_TYPES:
                return Err(TriggerValidationError.invalid(
                    trigger.name, "message-queue destination type must be 'queue' or 'topic'"
                ))
            if not trigger.destination_name:
                return Err(TriggerValidationError.invalid(
                    trigger.name, "message-queue destination name is required"
                ))

        columns = []
        seen: set[str] = set()
        for column_name in trigger.target_columns:
            number = self._info.find_column(column_name)
            if number is None:
                return Err(TriggerValidationError.invalid(
                    trigger.name, f"monitored column '{column_name}' does not exist"
                ))
            canonical = self._info.get_column(number).name
            if normalize(canonical) not in seen:
                seen.add(normalize(canonical))
                columns.append(canonical)
        return Ok(trigger.with_columns(columns))

    def plan_create(
        self,
        trigger: TriggerInfo,
        existing: Sequence[TriggerInfo],
    ) -> Result[TriggerPlan, TriggerValidationError]:
        validated = self.validate(trigger)
        if validated.is_err():
            return validated
        normalized = validated.unwrap()
        wanted = normalize(normalized.name)
        for current in existing:
            if normalize(current.name) != wanted:
                continue
            if current.name != normalized.name:
                return Err(TriggerValidationError.name_conflict(normalized.name, current.name))
            return Ok(TriggerPlan(TriggerAction.REPLACE, normalized, replaces=current.name))
        return Ok(TriggerPlan(TriggerAction.CREATE, normalized))

    @staticmethod
    def find(name: str, existing: Sequence[TriggerInfo]) -> Optional[TriggerInfo]:
        wanted = normalize(name)
        for current in existing:
            if normalize(current.name) == wanted:
                return current
        return None

    @staticmethod
    def rebind(triggers: Sequence[TriggerInfo], new_info: ContainerInfo) -> list[TriggerInfo]:
        """Drop monitored columns that no longer resolve; keep every trigger."""
        rebound = []
        for trigger in triggers:
            kept = []
            for column_name in trigger.target_columns:
                number = new_info.find_column(column_name)
                if number is not None:
                    kept.append(new_info.get_column(number).name)
            rebound.append(trigger.with_columns(kept))
        return rebound

    def build_notification(
        self,
        trigger: TriggerInfo,
        event: TriggerEvent,
        values: Sequence[Any],
    ) -> TriggerNotification:
        row = {}
        for column_name in trigger.target_columns:
            number = self._info.find_column(column_name)
            if number is None:
                continue
            column = self._info.get_column(number)
            row[column.name] = notification_value(column.type, values[number])
        return TriggerNotification(
            trigger_name=trigger.name,
            type=trigger.type,
            uri=trigger.uri,
            payload={
                "container": self._info.name,
                "event": event.value,
                "row": row,
            },
            destination_type=trigger.destination_type,
            destination_name=trigger.destination_name,
        )


def notification_value(column_type: ColumnType, value: Any) -> Any:
    if column_type.is_array or column_type in (ColumnType.BLOB, ColumnType.GEOMETRY):
        return ""
    if column_type is ColumnType.TIMESTAMP and value is not None:
        return timestamp_millis(value)
    return value
