from typing import Any
from datetime import date, datetime, timezone
from dataclasses import is_dataclass, fields
from pathlib import Path
from enum import Enum


TLiteral = bool | int | float | str | bytes
TComposite = (
    list[TLiteral] | dict[TLiteral, TLiteral] | set[TLiteral] | tuple[TLiteral, ...]
)
TPrimitive = TLiteral | TComposite | None


def isoformat(value: datetime | date) -> str:
    """Formats dates as ISO-8601, naive datetimes are taken as UTC and
    rendered with a `Z` suffix."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
        return text.replace("+00:00", "Z")
    else:
        return value.isoformat()


def asPrimitive(value: Any) -> Any:
    """Converts the given value to a primitive value, that can be converted
    to JSON"""
    if value is None or type(value) in (bool, float, int, str):
        return value
    elif isinstance(value, tuple) and hasattr(value, "_fields"):
        # NamedTuples can define their own `asPrimitive` to control their
        # JSON representation.
        f = getattr(type(value), "asPrimitive", None)
        return (
            f(value)
            if f
            else {k: asPrimitive(getattr(value, k)) for k in value._fields}
        )
    elif isinstance(value, list) or isinstance(value, tuple) or isinstance(value, set):
        return [asPrimitive(v) for v in value]
    elif is_dataclass(value) and not isinstance(value, type):
        return {_.name: asPrimitive(getattr(value, _.name)) for _ in fields(value)}
    elif isinstance(value, Enum):
        return asPrimitive(value.value)
    elif isinstance(value, dict):
        return {asPrimitive(k): asPrimitive(v) for k, v in value.items()}
    elif isinstance(value, Path):
        return str(value)
    elif isinstance(value, datetime) or isinstance(value, date):
        return isoformat(value)
    else:
        return value


# EOF
