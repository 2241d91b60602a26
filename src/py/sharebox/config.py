from os import getenv
from pathlib import Path
from typing import NamedTuple

PORT: int = int(getenv("PORT", 8000))

# When starting in a development environment, we want it to be accessible from everywhere
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

LOG_REQUESTS: bool = getenv("SHAREBOX_LOG_REQUESTS", "1") == "1"

STORAGE: str = getenv("SHAREBOX_STORAGE", "uploads")

# NOTE: No secret means the admin endpoints refuse everything
ADMIN_SECRET: str | None = getenv("SHAREBOX_ADMIN_SECRET") or None

MAX_FILES: int = int(getenv("SHAREBOX_MAX_FILES", 20))

UPLOAD_FIELD: str = getenv("SHAREBOX_UPLOAD_FIELD", "files")

DEFAULT_DENIED: str = ".exe,.bat,.cmd,.scr,.pif,.com,.vbs,.jar"

DENIED_EXTENSIONS: str = getenv("SHAREBOX_DENIED", DEFAULT_DENIED)

CACHE_AGE: int = int(getenv("SHAREBOX_CACHE_AGE", 86_400))


def extensions(text: str) -> frozenset[str]:
	"""Parses a comma-separated list of extensions, normalizing them as
	lowercase with a leading dot."""
	res: set[str] = set()
	for _ in text.split(","):
		ext = _.strip().lower()
		if ext:
			res.add(ext if ext.startswith(".") else f".{ext}")
	return frozenset(res)


class SharingConfig(NamedTuple):
	"""The configuration given to the services when they're created."""

	storage: Path
	adminSecret: str | None = None
	maxFiles: int = 20
	uploadField: str = "files"
	deniedExtensions: frozenset[str] = extensions(DEFAULT_DENIED)
	cacheAge: int = 86_400

	@staticmethod
	def FromEnv() -> "SharingConfig":
		return SharingConfig(
			storage=Path(STORAGE).absolute(),
			adminSecret=ADMIN_SECRET,
			maxFiles=MAX_FILES,
			uploadField=UPLOAD_FIELD,
			deniedExtensions=extensions(DENIED_EXTENSIONS),
			cacheAge=CACHE_AGE,
		)


# EOF
