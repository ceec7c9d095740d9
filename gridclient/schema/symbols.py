"""
Symbol Syntax Checks

Names of containers, columns, indexes and triggers, and the data affinity
hint, are restricted to a small character set and a per-kind maximum
length. Checks run locally before any remote interaction.
"""

from __future__ import annotations

import re
from typing import Final

from gridclient.core import constants as C
from gridclient.core.errors import ValidationError
from gridclient.core.types import Result, Ok, Err

# Container names additionally allow a few separator characters.
_CONTAINER_NAME_PATTERN: Final = re.compile(r"[A-Za-z0-9_\-./=]+")
_IDENTIFIER_PATTERN: Final = re.compile(r"[A-Za-z0-9_]+")


def check_symbol(
    value: str,
    kind: str,
    max_length: int,
    pattern: re.Pattern[str] = _IDENTIFIER_PATTERN,
) -> Result[str, ValidationError]:
    """
    Validate a symbol against the allowed grammar.

    Returns:
        Ok(value) when valid, Err(ValidationError) otherwise
    """
    if not isinstance(value, str):
        return Err(ValidationError.invalid_value(kind, value, "must be a string"))
    if not value:
        return Err(ValidationError.invalid_value(kind, value, "must not be empty"))
    if len(value) > max_length:
        return Err(ValidationError.invalid_value(
            kind, value, f"longer than {max_length} characters"
        ))
    if not pattern.fullmatch(value):
        return Err(ValidationError.invalid_value(
            kind, value, "contains characters outside the allowed symbol set"
        ))
    return Ok(value)


def check_container_name(name: str) -> Result[str, ValidationError]:
    return check_symbol(
        name, "container name", C.MAX_CONTAINER_NAME_LENGTH, _CONTAINER_NAME_PATTERN
    )


def check_column_name(name: str) -> Result[str, ValidationError]:
    return check_symbol(name, "column name", C.MAX_COLUMN_NAME_LENGTH)


def check_index_name(name: str) -> Result[str, ValidationError]:
    return check_symbol(name, "index name", C.MAX_INDEX_NAME_LENGTH)


def check_trigger_name(name: str) -> Result[str, ValidationError]:
    return check_symbol(name, "trigger name", C.MAX_TRIGGER_NAME_LENGTH)


def check_data_affinity(value: str) -> Result[str, ValidationError]:
    return check_symbol(value, "data affinity", C.MAX_DATA_AFFINITY_LENGTH)


def normalize(name: str) -> str:
    """Case-insensitive comparison form of a symbol (ASCII only)."""
    return name.lower()
