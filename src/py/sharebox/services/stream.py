import asyncio
import os
from email.utils import formatdate
from typing import BinaryIO
from urllib.parse import quote

from ..errors import NotFoundError, StorageError, UnsatisfiableRangeError
from ..http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from ..http.ranges import RangeSpec, plan, unsatisfiable
from ..storage.index import DirectoryIndex
from ..storage.media import MediaType, classify
from ..storage.model import StoredFile
from ..utils.logging import info, warning


def contentDisposition(kind: str, name: str) -> str:
	"""Returns the `Content-Disposition` value with the quoted name, adding
	the RFC 6266 `filename*` form when the name is not plain ASCII."""
	fallback: str = (
		name.encode("ascii", errors="replace")
		.decode("ascii")
		.replace("\\", "_")
		.replace('"', "_")
	)
	if fallback == name:
		return f'{kind}; filename="{name}"'
	else:
		return f"{kind}; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


class StreamServer:
	"""Serves stored files by display name, honouring single byte ranges.

	The file is opened before the response head is built, so the size
	that goes in the headers is the size of what is actually sent and
	the span stays readable even if the file is deleted meanwhile."""

	def __init__(self, index: DirectoryIndex, cacheAge: int = 86_400):
		self.index: DirectoryIndex = index
		self.cacheAge: int = cacheAge

	async def serve(self, request: HTTPRequest, displayName: str) -> HTTPResponse:
		stored: StoredFile = await asyncio.to_thread(self.index.resolve, displayName)
		media: MediaType = classify(stored.displayName)
		file, stat = await asyncio.to_thread(self.open, stored)
		try:
			span: RangeSpec | None = plan(request.header("Range"), stat.st_size)
		except UnsatisfiableRangeError as e:
			file.close()
			warning(
				"Range not satisfiable",
				Name=stored.storageName,
				Range=e.header,
				Total=e.totalSize,
			)
			return request.respondEmpty(
				416, headers={"Content-Range": unsatisfiable(e.totalSize)}
			)
		headers: dict[str, str] = {
			"Cache-Control": f"public, max-age={self.cacheAge}",
			"Content-Disposition": contentDisposition(
				media.disposition, stored.displayName
			),
			"Last-Modified": formatdate(stat.st_mtime, usegmt=True),
		}
		if media.isMedia:
			headers["Accept-Ranges"] = "bytes"
		if span:
			info(
				"Range request",
				Name=stored.storageName,
				Start=span.start,
				End=span.end,
				Total=span.totalSize,
			)
			headers["Content-Range"] = span.contentRange
			body = HTTPBodyFile(stored.path, file, span.start, span.length)
		else:
			body = HTTPBodyFile(stored.path, file, 0, stat.st_size)
		return request.respond(
			body,
			contentType=media.mimeType,
			status=206 if span else 200,
			headers=headers,
		)

	@staticmethod
	def open(stored: StoredFile) -> tuple[BinaryIO, os.stat_result]:
		try:
			file = open(stored.path, "rb")
		except FileNotFoundError as e:
			# Deleted since it was resolved
			raise NotFoundError(stored.displayName) from e
		except OSError as e:
			raise StorageError(f"Could not open {stored.storageName}: {e}") from e
		try:
			return file, os.fstat(file.fileno())
		except OSError as e:
			file.close()
			raise StorageError(f"Could not stat {stored.storageName}: {e}") from e


# EOF
