import os
from pathlib import Path

from ..errors import NotFoundError, StorageError
from ..utils.logging import debug, logged, warning
from .model import ListingEntry, StoredFile
from .names import decode, sanitize


def isDecodable(name: str) -> bool:
	"""Tells if the name from the filesystem is valid UTF-8, `scandir` gives
	the other ones as surrogate escapes that can't be sent to clients."""
	try:
		os.fsencode(name).decode("utf8")
	except UnicodeDecodeError:
		return False
	return True


class DirectoryIndex:
	"""Lists the flat storage directory. Every call reads the directory
	again, there is no in-memory index to invalidate."""

	def __init__(self, root: Path):
		self.root: Path = root

	def files(self) -> list[StoredFile]:
		"""Returns the stored files, newest first, ties broken by storage
		name descending."""
		res: list[StoredFile] = []
		try:
			with os.scandir(self.root) as entries:
				for entry in entries:
					if entry.name.startswith("."):
						continue
					if not isDecodable(entry.name):
						warning(
							"Skipping file with a non UTF-8 name",
							Name=os.fsencode(entry.name),
						)
						continue
					try:
						if not entry.is_file(follow_symlinks=False):
							continue
						stat = entry.stat(follow_symlinks=False)
					except FileNotFoundError:
						# Deleted between the listing and the stat
						continue
					path = Path(entry.path)
					res.append(StoredFile.FromStat(path, stat, decode(entry.name)))
		except FileNotFoundError:
			warning("Storage directory does not exist", Path=str(self.root))
			return []
		except OSError as e:
			raise StorageError(f"Could not list storage: {e}") from e
		res.sort(key=lambda _: (_.modifiedNs, _.storageName), reverse=True)
		return res

	def listing(self) -> list[ListingEntry]:
		return [_.entry for _ in self.files()]

	def resolve(self, displayName: str) -> StoredFile:
		"""Returns the newest stored file whose display name is the given
		one, or its sanitized form, so that names can be given as the
		client originally wrote them."""
		if not displayName or "/" in displayName or "\\" in displayName:
			raise NotFoundError(displayName)
		sanitized = sanitize(displayName)
		for stored in self.files():
			if stored.displayName == displayName or stored.displayName == sanitized:
				logged(debug) and debug(
					"Resolved file", Name=displayName, Storage=stored.storageName
				)
				return stored
		raise NotFoundError(displayName)


# EOF
