"""
Trigger Definitions

A trigger tells the server to emit a best-effort notification to a REST
endpoint or a message queue whenever a monitored row operation happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class TriggerType(Enum):
    REST = "REST"
    MESSAGE_QUEUE = "JMS"


class TriggerEvent(Enum):
    """Monitored row operation kinds; values are the payload event names."""

    PUT = "put"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class TriggerInfo:
    """
    Trigger definition.

    Collections passed in are copied into immutable containers, so later
    mutation of the caller's list has no effect.
    """

    name: str
    type: TriggerType
    uri: str
    target_events: frozenset[TriggerEvent] = frozenset()
    target_columns: tuple[str, ...] = ()
    destination_type: Optional[str] = None
    destination_name: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_events", frozenset(self.target_events))
        object.__setattr__(self, "target_columns", tuple(self.target_columns))

    @classmethod
    def rest(
        cls,
        name: str,
        uri: str,
        events: Iterable[TriggerEvent],
        columns: Iterable[str] = (),
    ) -> TriggerInfo:
        return cls(
            name=name,
            type=TriggerType.REST,
            uri=uri,
            target_events=frozenset(events),
            target_columns=tuple(columns),
        )

    @classmethod
    def message_queue(
        cls,
        name: str,
        uri: str,
        events: Iterable[TriggerEvent],
        destination_type: str,
        destination_name: str,
        columns: Iterable[str] = (),
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> TriggerInfo:
        return cls(
            name=name,
            type=TriggerType.MESSAGE_QUEUE,
            uri=uri,
            target_events=frozenset(events),
            target_columns=tuple(columns),
            destination_type=destination_type,
            destination_name=destination_name,
            user=user,
            password=password,
        )

    def monitors(self, event: TriggerEvent) -> bool:
        return event in self.target_events

    def with_columns(self, columns: Iterable[str]) -> TriggerInfo:
        """Same definition with a different monitored column set."""
        return TriggerInfo(
            name=self.name,
            type=self.type,
            uri=self.uri,
            target_events=self.target_events,
            target_columns=tuple(columns),
            destination_type=self.destination_type,
            destination_name=self.destination_name,
            user=self.user,
            password=self.password,
        )

    def __repr__(self) -> str:
        events = ",".join(sorted(e.value for e in self.target_events))
        return f"TriggerInfo({self.name!r}, {self.type.value}, {self.uri!r}, events={events})"
