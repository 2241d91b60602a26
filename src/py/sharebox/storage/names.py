import re
import time
from typing import Pattern

# -----------------------------------------------------------------------------
#
# NAME CODEC
#
# -----------------------------------------------------------------------------
# Storage names are `<epoch-millis>_<sanitized-name>`: they never contain a
# path separator, and sort by ingestion time for a given digit count.

RE_UNSAFE: Pattern[str] = re.compile(r"[^A-Za-z0-9.\-]")
# NOTE: `\d` would also match non-ASCII digits
RE_PREFIX: Pattern[str] = re.compile(r"^[0-9]+_")


def sanitize(name: str) -> str:
	"""Replaces every character outside `[A-Za-z0-9.-]` with `_`, which is
	idempotent."""
	return RE_UNSAFE.sub("_", name)


def timestamp() -> int:
	"""Milliseconds since the epoch."""
	return time.time_ns() // 1_000_000


def encode(name: str, at: int | None = None) -> str:
	return f"{timestamp() if at is None else at}_{sanitize(name)}"


def decode(storageName: str) -> str:
	"""Strips the timestamp prefix, names without one are returned as-is."""
	return RE_PREFIX.sub("", storageName, count=1)


def basename(name: str) -> str:
	"""Some clients send the full client-side path as the filename."""
	return name.replace("\\", "/").rsplit("/", 1)[-1].strip()


# EOF
