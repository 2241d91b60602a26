from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple
import os

# -----------------------------------------------------------------------------
#
# STORAGE MODEL
#
# -----------------------------------------------------------------------------
# The storage directory is the only source of truth: these values are
# projected from directory entries on every request and never cached.


class ListingEntry(NamedTuple):
	"""The JSON view of a stored file, as returned by `GET /files`."""

	name: str
	filename: str
	size: int
	date: datetime


class StoredFile(NamedTuple):
	storageName: str
	displayName: str
	sizeBytes: int
	modifiedAt: datetime
	path: Path
	# Kept for ordering, as `modifiedAt` loses the sub-microsecond part
	modifiedNs: int = 0

	@staticmethod
	def FromStat(path: Path, stat: os.stat_result, displayName: str) -> "StoredFile":
		return StoredFile(
			storageName=path.name,
			displayName=displayName,
			sizeBytes=stat.st_size,
			modifiedAt=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
			path=path,
			modifiedNs=stat.st_mtime_ns,
		)

	@property
	def entry(self) -> ListingEntry:
		return ListingEntry(
			name=self.displayName,
			filename=self.storageName,
			size=self.sizeBytes,
			date=self.modifiedAt,
		)


class UploadedFile(NamedTuple):
	"""Describes a file accepted by an upload, `originalName` is the name
	the client sent."""

	originalName: str
	filename: str
	size: int
	uploadDate: datetime


class UploadDisposition(NamedTuple):
	"""Tells if an incoming file can be stored, decided from its name
	before any of its bytes are written."""

	allowed: bool
	reason: str | None = None

	@staticmethod
	def Allowed() -> "UploadDisposition":
		return UploadDisposition(True)

	@staticmethod
	def Rejected(reason: str) -> "UploadDisposition":
		return UploadDisposition(False, reason)


class UploadRejection(NamedTuple):
	originalName: str
	reason: str


class UploadResult(NamedTuple):
	"""The per-part outcomes of an upload request."""

	accepted: list[UploadedFile]
	rejected: list[UploadRejection]

	@property
	def count(self) -> int:
		return len(self.accepted) + len(self.rejected)


# EOF
