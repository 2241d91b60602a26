from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
	Any,
	AsyncGenerator,
	BinaryIO,
	NamedTuple,
	TypeAlias,
	Union,
)

from ..utils.io import DEFAULT_ENCODING
from ..utils.logging import warning
from .api import ResponseFactory
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------

# NOTE: Uploads can stall for a while on slow links, this is the maximum
# wait between two chunks of a request body.
BODY_READER_TIMEOUT: float = 30.0
BODY_READ_SIZE: int = 256_000


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0
	# NOTE: We don't know how many is remaining
	remaining: int | None = None


class HTTPBodyIO:
	"""A request body that is read chunk by chunk from the reader, starting
	with what the parser had already received along with the head."""

	__slots__ = ["reader", "read", "expected", "remaining", "existing"]

	def __init__(
		self,
		reader: "HTTPBodyReader",
		expected: int | None = None,
		existing: bytes | None = None,
	):
		self.reader: HTTPBodyReader = reader
		self.read: int = 0
		self.expected: int | None = expected
		# What's left to read from the reader once `existing` is consumed
		self.remaining: int | None = (
			expected - len(existing) if expected is not None and existing else expected
		)
		self.existing: bytes | None = existing

	async def _read(self) -> bytes | None:
		"""Reads the next available chunk, returns `None` when the body has
		been fully read."""
		if self.existing and self.read == 0:
			self.read += len(self.existing)
			return self.existing
		elif self.remaining:
			try:
				payload = await self.reader.read(
					size=min(self.remaining, BODY_READ_SIZE)
				)
			except TimeoutError:
				warning(
					"Request body loading timed out",
					Remaining=self.remaining,
					Read=self.read,
				)
				raise
			if not payload:
				# The client closed before sending the whole body
				raise ConnectionResetError(
					f"Body incomplete, {self.remaining} bytes missing"
				)
			n = len(payload)
			self.read += n
			self.remaining -= n
			return payload
		else:
			return None


class HTTPBodyFile:
	"""A response body that is a span of a file. The file is opened before the
	head is sent so that the span stays valid even if the file is removed
	afterwards, the writer closes it once sent."""

	__slots__ = ["path", "file", "offset", "length"]

	def __init__(
		self,
		path: Path,
		file: BinaryIO,
		offset: int,
		length: int,
	):
		self.path: Path = path
		self.file: BinaryIO | None = file
		self.offset: int = offset
		self.length: int = length

	def close(self) -> None:
		if self.file:
			self.file.close()
			self.file = None

	def __repr__(self) -> str:
		return f"HTTPBodyFile({self.path}, offset={self.offset}, length={self.length})"


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyReader(ABC):
	"""A base class for being able to read a request body, typically from a
	socket."""

	async def read(
		self, timeout: float = BODY_READER_TIMEOUT, size: int | None = None
	) -> bytes | None:
		return await self._read(timeout=timeout, size=size)

	@abstractmethod
	async def _read(
		self, timeout: float = BODY_READER_TIMEOUT, size: int | None = None
	) -> bytes | None: ...


class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			try:
				return await self._writeFile(body)
			finally:
				body.close()
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	@abstractmethod
	async def _writeFile(self, body: HTTPBodyFile) -> bool: ...

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"peer",
		"_headers",
		"_body",
		"_reader",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyIO | HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self.peer: str | None = None
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyIO | HTTPBodyBlob | None = body
		self._reader: HTTPBodyReader | None = None

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def body(self) -> HTTPBodyIO | HTTPBodyBlob:
		if self._body is None:
			if not self._reader:
				raise RuntimeError("Request has no reader, can't read body")
			self._body = HTTPBodyIO(self._reader, expected=self.contentLength)
		elif isinstance(self._body, HTTPBodyBlob) and self._body.remaining:
			if not self._reader:
				raise RuntimeError("Request has no reader, can't read body")
			self._body = HTTPBodyIO(
				self._reader,
				expected=self._body.length + self._body.remaining,
				existing=self._body.payload,
			)
		return self._body

	@property
	def isBodyConsumed(self) -> bool:
		"""Tells if the whole body was read from the connection, when it is
		not the connection can't be reused for another request."""
		body = self._body
		if body is None:
			return not self.contentLength
		elif isinstance(body, HTTPBodyBlob):
			return not body.remaining
		else:
			return not body.remaining

	async def read(self) -> AsyncGenerator[bytes, None]:
		"""Iterates on the body chunks as they are received, without
		accumulating them."""
		body = self.body
		if isinstance(body, HTTPBodyBlob):
			if body.payload:
				yield body.payload
		else:
			while (chunk := await body._read()) is not None:
				yield chunk

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		payload: bytes | None = None
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		elif isinstance(content, HTTPBodyFile):
			body = content
			contentLength = content.length
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		# If we have a payload then it's a Blob response
		if payload is not None:
			contentLength = len(payload)
			body = HTTPBodyBlob(payload, contentLength, 0)
		res_headers: dict[str, str] = {headername(k): v for k, v in (headers or {}).items()}
		if contentType is not None:
			res_headers["Content-Type"] = contentType
		if contentLength is not None:
			res_headers["Content-Length"] = str(contentLength)
		elif "Content-Length" in res_headers:
			contentLength = int(res_headers["Content-Length"])
		elif body is None:
			res_headers["Content-Length"] = "0"
			contentLength = 0
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				res_headers,
				contentType=res_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self.shouldClose: bool = shouldClose

	def header(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def withoutBody(self) -> "HTTPResponse":
		"""Drops the body while keeping the headers, which is what a `HEAD`
		request gets."""
		if isinstance(self.body, HTTPBodyFile):
			self.body.close()
		self.body = None
		return self

	def close(self) -> None:
		"""Releases the resources held by the body, if not sent."""
		if isinstance(self.body, HTTPBodyFile):
			self.body.close()

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		# NOTE: Header values are ASCII, non-ASCII names are sent in their
		# RFC 5987 encoded form.
		return "\r\n".join(lines).encode("latin-1", errors="replace")

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
