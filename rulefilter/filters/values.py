#!/usr/bin/env python3
"""
Typed classification of decoded rule values.
Value checks match on a ValueKind instead of inspecting types ad hoc.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional

from .base import FieldType, RuleFactory
from ..exceptions import TypeMismatchError


class ValueKind(Enum):
    """Kinds a decoded value can take."""
    NULL = "null"
    STRING = "string"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TIME = "time"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    RULE = "rule"
    OTHER = "other"


SCALAR_KINDS = {ValueKind.STRING, ValueKind.NUMERIC, ValueKind.BOOLEAN, ValueKind.TIME}


def kind_of(value: Any) -> ValueKind:
    """Classify a decoded value."""
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMERIC
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (datetime, date)):
        return ValueKind.TIME
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    if isinstance(value, RuleFactory):
        return ValueKind.RULE
    return ValueKind.OTHER


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a time-like value to a datetime.

    Accepts datetime/date objects and ISO-8601 strings (a trailing `Z`
    is read as UTC). Returns None when value is not time-like.
    """
    kind = kind_of(value)
    if kind == ValueKind.TIME:
        if isinstance(value, datetime):
            return value
        return datetime.combine(value, time.min)

    if kind == ValueKind.STRING and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    return None


def normalize_datetime(value: datetime) -> datetime:
    """
    Get value at the precision mongo stores, UTC with milliseconds.
    Naive datetimes are read as UTC, like the bson encoder does.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def mongo_value(value: Any) -> Any:
    """Get a rule value as mongo stores it, time values become UTC datetimes."""
    kind = kind_of(value)
    if kind == ValueKind.TIME:
        return normalize_datetime(parse_datetime(value))
    if kind == ValueKind.SEQUENCE:
        return [mongo_value(item) for item in value]
    return value


def validate_field_value(field: str, value: Any, typ: FieldType) -> None:
    """
    Check value against the declared type of field.
    Sequences are checked element by element.

    Raises:
        TypeMismatchError: If value (or any element) does not match typ
    """
    kind = kind_of(value)
    if kind == ValueKind.SEQUENCE:
        for item in value:
            validate_field_value(field, item, typ)
        return

    if typ == FieldType.STRING:
        if kind != ValueKind.STRING:
            raise TypeMismatchError(field, typ, "value should be a string")
    elif typ == FieldType.NUMERIC:
        if kind != ValueKind.NUMERIC:
            raise TypeMismatchError(field, typ, "value should be a numeric")
    elif typ == FieldType.BOOLEAN:
        if kind != ValueKind.BOOLEAN:
            raise TypeMismatchError(field, typ, "value should be a boolean")
    elif typ == FieldType.TIME:
        if parse_datetime(value) is None:
            raise TypeMismatchError(field, typ, "value should be a datetime")
    else:
        raise TypeMismatchError(field, typ, f"unsupported value type format: {typ.value}")
