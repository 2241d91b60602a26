import hmac

from ..errors import NotAuthorizedError
from ..http.model import HTTPRequest
from ..utils.logging import warning


class AdminGate:
	"""Checks the shared admin secret, given either as `X-Admin-Password`
	or as an `Authorization: Bearer` token."""

	def __init__(self, secret: str | None):
		self.secret: bytes | None = secret.encode("utf8") if secret else None

	@staticmethod
	def credential(request: HTTPRequest) -> str | None:
		password = request.header("X-Admin-Password")
		if password:
			return password
		auth = request.header("Authorization") or ""
		scheme, _, token = auth.partition(" ")
		return token.strip() if scheme.lower() == "bearer" and token else None

	def check(self, request: HTTPRequest) -> None:
		"""Raises `NotAuthorizedError` unless the request carries the secret."""
		if self.secret is None:
			warning("Admin access disabled", Path=request.path, Peer=request.peer)
			raise NotAuthorizedError("Admin access disabled", status=403)
		given = self.credential(request)
		if given is None or not hmac.compare_digest(given.encode("utf8"), self.secret):
			warning("Admin access denied", Path=request.path, Peer=request.peer)
			raise NotAuthorizedError("Unauthorized")


# EOF
