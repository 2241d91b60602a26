from typing import Iterator, ClassVar, Literal
from urllib.parse import unquote_plus
from ..utils.io import LineParser
from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPBodyBlob,
	HTTPAtom,
	HTTPProcessingStatus,
	headername,
)

# NOTE: Request and header lines past that size are rejected
MAX_LINE: int = 64_000


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser(limit=MAX_LINE)
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		line, read = self.line.feed(chunk, start)
		if not line:
			# Empty lines between pipelined requests are skipped
			return None, read
		# NOTE: Request lines are ASCII, anything else is percent-encoded
		ln = line.decode("latin-1")
		i = ln.find(" ")
		j = ln.rfind(" ")
		if i == -1 or i == j:
			raise ValueError(f"Malformed request line: {ln!r}")
		p: list[str] = ln[i + 1 : j].split("?", 1)
		self.value = HTTPRequestLine(
			ln[0:i].upper(), p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
		)
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser(limit=MAX_LINE)
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, a header with that name was
		added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# An empty line denotes the end of headers
			return False, read
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = -1
			if self.contentLength < 0:
				raise ValueError(f"Malformed Content-Length: {v!r}")
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class HTTPParser:
	"""A stateful HTTP request parser. Request bodies are not accumulated:
	the request is produced as soon as its head is parsed, with whatever
	body bytes came along, and the rest of the body is read from the
	connection by the request itself."""

	METHOD_HAS_BODY: ClassVar[set[str]] = {"POST", "PUT", "PATCH"}

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.parser: MessageParser | HeadersParser = self.message
		self.requestLine: HTTPRequestLine | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.parser = self.message
		self.requestLine = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			try:
				ln, read = self.parser.feed(chunk, offset)
			except ValueError:
				self.reset()
				yield HTTPProcessingStatus.BadFormat
				return
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				self.requestLine = self.message.flush()
				if self.requestLine is not None:
					yield self.requestLine
					self.parser = self.headers
			elif ln is False:
				headers = self.headers.flush()
				yield headers
				line = self.requestLine
				self.parser = self.message.reset()
				self.requestLine = None
				if line is None:
					yield HTTPProcessingStatus.BadFormat
					continue
				expected: int = (
					headers.contentLength or 0
					if line.method in self.METHOD_HAS_BODY
					else 0
				)
				# We take the part of the body that's already there
				available: int = min(expected, size - offset)
				payload: bytes = chunk[offset : offset + available]
				offset += available
				yield HTTPRequest(
					method=line.method,
					path=line.path,
					query=parseQuery(line.query),
					headers=headers,
					protocol=line.protocol,
					body=HTTPBodyBlob(payload, available, expected - available),
				)
				yield HTTPProcessingStatus.Complete


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[unquote_plus(item)] = ""
		else:
			res[unquote_plus(kv[0])] = unquote_plus(kv[1])
	return res


# EOF
