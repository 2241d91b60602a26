from typing import Any, TypeAlias, cast
import json as basejson
from .primitives import asPrimitive


TJSON: TypeAlias = None | int | float | bool | str | list[Any] | dict[str, Any]


def json(value: Any) -> bytes:
	"""Serializes the value as UTF-8 JSON, non-ASCII characters (display
	names) are kept as-is."""
	return basejson.dumps(asPrimitive(value), ensure_ascii=False).encode("utf8")


def unjson(value: bytes | str) -> TJSON:
	return cast(TJSON, basejson.loads(value))


# EOF
