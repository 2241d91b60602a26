import re
from enum import Enum
from typing import ClassVar, Iterator, NamedTuple, Pattern, TypeAlias
from urllib.parse import unquote

from .model import headername

# -----------------------------------------------------------------------------
#
# MULTIPART
#
# -----------------------------------------------------------------------------
# An incremental `multipart/form-data` parser: it is fed with body chunks
# as they come from the connection and produces part heads, body chunks and
# part ends, so that a part is never held in memory as a whole.
#
# http://stackoverflow.com/questions/4526273/what-does-enctype-multipart-form-data-mean
# https://www.rfc-editor.org/rfc/rfc7578


class MultipartError(ValueError):
	pass


class MultipartHeaders(NamedTuple):
	headers: dict[str, str]
	name: str | None = None
	filename: str | None = None
	contentType: str | None = None


class MultipartData(NamedTuple):
	data: bytes


class MultipartEnd(NamedTuple):
	pass


MultipartAtom: TypeAlias = MultipartHeaders | MultipartData | MultipartEnd

# NOTE: Part heads are small, anything past that is not a form
MAX_HEAD: int = 16_000


class MultipartState(Enum):
	Preamble = 0
	Boundary = 1
	Headers = 2
	Body = 3
	Epilogue = 4


RE_BOUNDARY: Pattern[str] = re.compile(
	r"boundary\s*=\s*(?:\"([^\"]+)\"|([^;\s]+))", re.IGNORECASE
)
RE_PARAM: Pattern[str] = re.compile(
	r";\s*([\w\-*]+)\s*=\s*(?:\"((?:[^\"\\]|\\.)*)\"|([^;]*))"
)


def boundary(contentType: str | None) -> bytes | None:
	"""Extracts the boundary from a `multipart/form-data` content type."""
	if not contentType or not contentType.lower().startswith("multipart/"):
		return None
	match = RE_BOUNDARY.search(contentType)
	if not match:
		return None
	return (match.group(1) or match.group(2)).encode("latin-1")


def disposition(value: str | None) -> dict[str, str]:
	"""Parses the parameters of a `Content-Disposition` header, decoding
	the RFC 5987 `filename*` form when present."""
	res: dict[str, str] = {}
	if not value:
		return res
	for match in RE_PARAM.finditer(value):
		key: str = match.group(1).lower()
		quoted: str | None = match.group(2)
		# NOTE: Only escaped quotes are unescaped, as backslashes may
		# legitimately be part of a filename.
		text: str = (
			quoted.replace('\\"', '"')
			if quoted is not None
			else match.group(3).strip()
		)
		if key.endswith("*"):
			# filename*=UTF-8''My%20Report.pdf
			charset, _, rest = text.partition("'")
			_, _, encoded = rest.partition("'")
			try:
				res[key[:-1]] = unquote(encoded, encoding=charset or "utf8")
			except LookupError:
				res[key[:-1]] = unquote(encoded)
		elif key not in res:
			res[key] = text
	return res


class MultipartParser:
	"""Parses a multipart body given its boundary."""

	EOL: ClassVar[bytes] = b"\r\n"

	__slots__ = ["boundary", "delimiter", "buffer", "state", "headers"]

	def __init__(self, boundary: bytes):
		# The first boundary may come without a preceding CRLF
		self.boundary: bytes = b"--" + boundary
		self.delimiter: bytes = self.EOL + self.boundary
		self.buffer: bytearray = bytearray()
		self.state: MultipartState = MultipartState.Preamble
		self.headers: dict[str, str] = {}

	@property
	def isComplete(self) -> bool:
		return self.state is MultipartState.Epilogue

	def feed(self, chunk: bytes) -> Iterator[MultipartAtom]:
		"""Feeds the chunk and yields the atoms that can be produced, the
		returned iterator must be consumed before the next feed."""
		self.buffer += chunk
		buffer = self.buffer
		while True:
			if self.state is MultipartState.Preamble:
				i = buffer.find(self.boundary)
				if i == -1:
					# The boundary may straddle two chunks
					del buffer[: max(0, len(buffer) - len(self.boundary) + 1)]
					return
				del buffer[: i + len(self.boundary)]
				self.state = MultipartState.Boundary
			elif self.state is MultipartState.Boundary:
				if len(buffer) < 2:
					return
				elif buffer[:2] == b"--":
					self.state = MultipartState.Epilogue
				else:
					# There may be transport padding after the boundary
					i = buffer.find(self.EOL)
					if i == -1:
						if len(buffer) > MAX_HEAD:
							raise MultipartError("Malformed boundary line")
						return
					del buffer[: i + 2]
					self.headers = {}
					self.state = MultipartState.Headers
			elif self.state is MultipartState.Headers:
				i = buffer.find(self.EOL)
				if i == -1:
					if len(buffer) > MAX_HEAD:
						raise MultipartError("Part headers are too large")
					return
				# NOTE: Browsers send non-ASCII filenames as raw UTF-8
				line: str = buffer[:i].decode("utf8", errors="replace")
				del buffer[: i + 2]
				if line:
					name, sep, value = line.partition(":")
					if sep:
						self.headers[headername(name.strip().lower())] = value.strip()
				else:
					self.state = MultipartState.Body
					yield self.head(self.headers)
			elif self.state is MultipartState.Body:
				i = buffer.find(self.delimiter)
				if i == -1:
					# We keep what could be the start of the delimiter
					safe = len(buffer) - len(self.delimiter) + 1
					if safe > 0:
						yield MultipartData(bytes(buffer[:safe]))
						del buffer[:safe]
					return
				if i > 0:
					yield MultipartData(bytes(buffer[:i]))
				del buffer[: i + len(self.delimiter)]
				self.state = MultipartState.Boundary
				yield MultipartEnd()
			else:
				buffer.clear()
				return

	@staticmethod
	def head(headers: dict[str, str]) -> MultipartHeaders:
		params = disposition(headers.get("Content-Disposition"))
		return MultipartHeaders(
			headers=headers,
			name=params.get("name"),
			filename=params.get("filename"),
			contentType=headers.get("Content-Type"),
		)


# EOF
