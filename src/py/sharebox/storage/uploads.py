import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, BinaryIO, ClassVar

from ..config import SharingConfig
from ..errors import StorageError, ValidationError
from ..http.multipart import (
	MultipartData,
	MultipartError,
	MultipartHeaders,
	MultipartParser,
)
from ..utils.logging import debug, info, logged, warning
from .model import UploadDisposition, UploadedFile, UploadRejection, UploadResult
from .names import basename, encode, timestamp

# -----------------------------------------------------------------------------
#
# PART WRITER
#
# -----------------------------------------------------------------------------


class PartWriter:
	"""Writes the body of one multipart part to its destination file, the
	file operations run in worker threads."""

	__slots__ = ["originalName", "path", "file", "size", "createdAt"]

	def __init__(self, originalName: str, path: Path, file: BinaryIO, createdAt: int):
		self.originalName: str = originalName
		self.path: Path = path
		self.file: BinaryIO | None = file
		self.size: int = 0
		self.createdAt: int = createdAt

	async def write(self, data: bytes) -> int:
		if not self.file:
			raise RuntimeError(f"Part writer already closed: {self.path}")
		try:
			await asyncio.to_thread(self.file.write, data)
		except OSError as e:
			raise StorageError(f"Could not write {self.path.name}: {e}") from e
		self.size += len(data)
		return self.size

	async def close(self) -> UploadedFile:
		if self.file:
			file, self.file = self.file, None
			try:
				await asyncio.to_thread(file.close)
			except OSError as e:
				raise StorageError(f"Could not write {self.path.name}: {e}") from e
		return UploadedFile(
			originalName=self.originalName,
			filename=self.path.name,
			size=self.size,
			uploadDate=datetime.fromtimestamp(self.createdAt / 1000, tz=timezone.utc),
		)

	def discard(self) -> None:
		"""Closes and removes the file, for parts that did not make it."""
		if self.file:
			self.file.close()
			self.file = None
		self.path.unlink(missing_ok=True)


# -----------------------------------------------------------------------------
#
# UPLOAD RECEIVER
#
# -----------------------------------------------------------------------------


class UploadReceiver:
	"""Stores the files of a `multipart/form-data` body as they stream in.
	Rejected parts are skipped, and a request that fails leaves nothing
	behind."""

	# Names are unique per millisecond, this is how many following
	# milliseconds are tried on a collision.
	ATTEMPTS: ClassVar[int] = 100

	def __init__(self, config: SharingConfig):
		self.config: SharingConfig = config
		self.root: Path = config.storage

	def disposition(self, filename: str) -> UploadDisposition:
		i = filename.rfind(".")
		ext: str = filename[i:].lower() if i >= 0 else ""
		if ext and ext in self.config.deniedExtensions:
			return UploadDisposition.Rejected("File type not allowed")
		else:
			return UploadDisposition.Allowed()

	def create(self, name: str) -> tuple[Path, BinaryIO, int]:
		"""Creates the destination file exclusively, moving to the next
		millisecond when the storage name is already taken."""
		at: int = timestamp()
		for i in range(self.ATTEMPTS):
			path = self.root / encode(name, at + i)
			try:
				fd = os.open(
					path,
					os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0),
					0o644,
				)
			except FileExistsError:
				continue
			return path, os.fdopen(fd, "wb"), at + i
		raise StorageError(f"Could not find an available storage name for: {name}")

	async def open(self, name: str) -> PartWriter:
		try:
			path, file, at = await asyncio.to_thread(self.create, name)
		except OSError as e:
			raise StorageError(f"Could not create file for {name}: {e}") from e
		logged(debug) and debug("Receiving file", Name=name, Storage=path.name)
		return PartWriter(name, path, file, at)

	async def receive(
		self, chunks: AsyncIterator[bytes], boundary: bytes
	) -> UploadResult:
		"""Consumes the body chunks, writing each accepted file to the
		storage directory. Raises `ValidationError` when no file was
		accepted or when the request has too many files, in which case
		the files it wrote are removed."""
		parser = MultipartParser(boundary)
		result = UploadResult([], [])
		written: list[PartWriter] = []
		part: PartWriter | None = None
		try:
			async for chunk in chunks:
				for atom in parser.feed(chunk):
					if isinstance(atom, MultipartHeaders):
						part = await self.onPart(atom, result)
						if part:
							written.append(part)
					elif isinstance(atom, MultipartData):
						if part:
							await part.write(atom.data)
					else:
						if part:
							result.accepted.append(await part.close())
							info(
								"File uploaded",
								Name=part.originalName,
								Storage=part.path.name,
								Size=part.size,
							)
						part = None
			if not parser.isComplete:
				raise ValidationError("Incomplete multipart body")
		except MultipartError as e:
			await asyncio.to_thread(self.discard, written)
			raise ValidationError(f"Malformed multipart body: {e}") from e
		except BaseException:
			await asyncio.to_thread(self.discard, written)
			raise
		if not result.accepted:
			raise ValidationError(
				"File type not allowed" if result.rejected else "No files uploaded"
			)
		return result

	async def onPart(
		self, headers: MultipartHeaders, result: UploadResult
	) -> PartWriter | None:
		"""Decides what to do with a part from its headers, returning the
		writer when the part is to be stored."""
		if headers.filename is None:
			# A regular form field
			return None
		name: str = basename(headers.filename)
		if not name:
			# Browsers send an empty file part when nothing was picked
			return None
		if result.count >= self.config.maxFiles:
			raise ValidationError(
				f"Too many files, at most {self.config.maxFiles} per upload"
			)
		disposition = self.disposition(name)
		if not disposition.allowed:
			warning("Upload rejected", Name=name, Reason=disposition.reason)
			result.rejected.append(
				UploadRejection(name, disposition.reason or "Rejected")
			)
			return None
		return await self.open(name)

	@staticmethod
	def discard(parts: list[PartWriter]) -> None:
		for part in parts:
			try:
				part.discard()
			except OSError as e:
				warning("Could not remove file", Storage=part.path.name, Error=str(e))
		if parts:
			info("Upload discarded", Files=len(parts))


# EOF
