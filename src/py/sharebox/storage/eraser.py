import os

from ..errors import NotFoundError, StorageError
from ..utils.logging import info
from .index import DirectoryIndex
from .model import StoredFile


class AdminEraser:
	"""Removes stored files by display name, the newest one first when
	several files share it."""

	def __init__(self, index: DirectoryIndex):
		self.index: DirectoryIndex = index

	def delete(self, displayName: str) -> StoredFile:
		stored = self.index.resolve(displayName)
		try:
			os.unlink(stored.path)
		except FileNotFoundError as e:
			# Someone else removed it since we resolved it
			raise NotFoundError(displayName) from e
		except OSError as e:
			raise StorageError(f"Could not delete {stored.storageName}: {e}") from e
		info("File deleted", Name=displayName, Storage=stored.storageName)
		return stored


# EOF
