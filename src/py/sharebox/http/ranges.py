import re
from typing import ClassVar, NamedTuple, Pattern

from ..errors import UnsatisfiableRangeError

# --
# Plans single byte ranges as in `Range: bytes=<start>-<end>` against the
# current size of a file.
#
# - <http://tools.ietf.org/html/rfc7233#section-2.1>
# - <http://benramsey.com/blog/2008/05/206-partial-content-and-range-requests/>
#
# Anything that is not a single `start-end` or `start-` range (suffix ranges,
# multiple ranges, garbage) is ignored, and the whole file is sent instead,
# which is what lenient servers do.


class RangeSpec(NamedTuple):
	"""A satisfiable byte span, `end` is inclusive and is always within
	the file."""

	start: int
	end: int
	totalSize: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	@property
	def contentRange(self) -> str:
		return f"bytes {self.start}-{self.end}/{self.totalSize}"


class RangePlanner:
	RE_RANGE: ClassVar[Pattern[str]] = re.compile(
		r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE
	)

	@classmethod
	def Parse(cls, header: str | None) -> tuple[int, int | None] | None:
		"""Extracts `(start, end)` from the header value, where `end` is
		`None` for open-ended ranges."""
		if not header:
			return None
		match = cls.RE_RANGE.match(header)
		if not match:
			return None
		start = int(match.group(1))
		end = int(match.group(2)) if match.group(2) else None
		if end is not None and end < start:
			return None
		return start, end

	@classmethod
	def Plan(cls, header: str | None, totalSize: int) -> RangeSpec | None:
		"""Returns the span to serve, `None` when no range was requested (or
		it couldn't be understood), and raises `UnsatisfiableRangeError`
		when the range starts past the end of the file."""
		parsed = cls.Parse(header)
		if parsed is None:
			return None
		start, end = parsed
		if start >= totalSize:
			raise UnsatisfiableRangeError(totalSize, header)
		last: int = totalSize - 1
		return RangeSpec(start, last if end is None else min(end, last), totalSize)


def plan(header: str | None, totalSize: int) -> RangeSpec | None:
	return RangePlanner.Plan(header, totalSize)


def unsatisfiable(totalSize: int) -> str:
	"""The `Content-Range` value that goes with a 416 response."""
	return f"bytes */{totalSize}"


# EOF
