from typing import ClassVar

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------
# Storage and planning components raise these, the HTTP service turns them
# into responses at the request boundary using their `status`.


class ShareboxError(Exception):
	STATUS: ClassVar[int] = 500

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.message: str = message
		self.status: int = self.STATUS if status is None else status


class ValidationError(ShareboxError):
	"""Bad or forbidden input: denied extension, no files, too many files."""

	STATUS = 400


class NotAuthorizedError(ShareboxError):
	STATUS = 401


class NotFoundError(ShareboxError):
	"""No stored file decodes to the requested display name."""

	STATUS = 404

	def __init__(self, name: str):
		super().__init__(f"File not found: {name}")
		self.name: str = name


class UnsatisfiableRangeError(ShareboxError):
	STATUS = 416

	def __init__(self, totalSize: int, header: str | None = None):
		super().__init__(f"Range not satisfiable for {totalSize} bytes: {header}")
		self.totalSize: int = totalSize
		self.header: str | None = header


class StorageError(ShareboxError):
	"""Wraps filesystem failures (disk full, permissions) that happen before
	any response byte is sent."""

	STATUS = 500


# EOF
