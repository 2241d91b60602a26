import asyncio
import os
from pathlib import Path
from typing import Any

import pytest

from sharebox.config import SharingConfig
from sharebox.http.model import HTTPBodyBlob, HTTPBodyFile, HTTPRequest, HTTPResponse
from sharebox.http.parser import HTTPParser
from sharebox.model import Application
from sharebox.services.files import SharingService
from sharebox.utils.json import unjson

SECRET: str = "s3cret"
BOUNDARY: str = "----ShareboxBoundary7MA4YWxkTrZu0gW"


def parse(payload: bytes) -> list[HTTPRequest]:
	return [_ for _ in HTTPParser().feed(payload) if isinstance(_, HTTPRequest)]


def request(
	method: str,
	path: str,
	headers: dict[str, str] | None = None,
	body: bytes = b"",
) -> HTTPRequest:
	"""Builds a request by parsing its wire form, so that it goes through
	the same path as the server's."""
	lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
	for k, v in (headers or {}).items():
		lines.append(f"{k}: {v}")
	if body or method in ("POST", "PUT", "PATCH"):
		lines.append(f"Content-Length: {len(body)}")
	head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
	(req,) = parse(head + body)
	return req


def multipart(
	*files: tuple[str, bytes],
	field: str = "files",
	boundary: str = BOUNDARY,
	fields: dict[str, str] | None = None,
) -> tuple[bytes, dict[str, str]]:
	"""Encodes the files as a `multipart/form-data` body, returning the body
	and the headers that go with it."""
	parts: list[bytes] = []
	for name, value in (fields or {}).items():
		parts.append(
			f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode()
		)
	for filename, data in files:
		parts.append(
			f'--{boundary}\r\nContent-Disposition: form-data; name="{field}"; filename="{filename}"\r\nContent-Type: application/octet-stream\r\n\r\n'.encode()
			+ data
			+ b"\r\n"
		)
	parts.append(f"--{boundary}--\r\n".encode())
	return b"".join(parts), {
		"Content-Type": f"multipart/form-data; boundary={boundary}"
	}


def body(response: HTTPResponse) -> bytes:
	"""Returns what the response would send, closing file bodies."""
	b = response.body
	if b is None:
		return b""
	elif isinstance(b, HTTPBodyBlob):
		return b.payload
	elif isinstance(b, HTTPBodyFile):
		try:
			if b.file is None:
				return b""
			b.file.seek(b.offset)
			return b.file.read(b.length)
		finally:
			b.close()
	raise ValueError(f"Unsupported body: {b}")


def data(response: HTTPResponse) -> Any:
	return unjson(body(response))


def store(root: Path, storageName: str, content: bytes, mtime: float | None = None) -> Path:
	"""Puts a file in storage as if uploaded, with the given modification
	time."""
	path = root / storageName
	path.write_bytes(content)
	if mtime is not None:
		os.utime(path, (mtime, mtime))
	return path


class Client:
	"""Sends requests to an application without a server."""

	def __init__(self, app: Application):
		self.app = app

	def send(self, req: HTTPRequest) -> HTTPResponse:
		return asyncio.run(self.app.process(req))

	def get(self, path: str, headers: dict[str, str] | None = None) -> HTTPResponse:
		return self.send(request("GET", path, headers))

	def head(self, path: str, headers: dict[str, str] | None = None) -> HTTPResponse:
		res = self.send(request("HEAD", path, headers))
		return res

	def delete(self, path: str, headers: dict[str, str] | None = None) -> HTTPResponse:
		return self.send(request("DELETE", path, headers))

	def upload(self, *files: tuple[str, bytes], **kwargs: Any) -> HTTPResponse:
		payload, headers = multipart(*files, **kwargs)
		return self.send(request("POST", "/upload", headers, payload))


@pytest.fixture
def storage(tmp_path: Path) -> Path:
	path = tmp_path / "uploads"
	path.mkdir()
	return path


@pytest.fixture
def config(storage: Path) -> SharingConfig:
	return SharingConfig(storage=storage, adminSecret=SECRET, maxFiles=3)


@pytest.fixture
def service(config: SharingConfig) -> SharingService:
	return SharingService(config)


@pytest.fixture
def client(service: SharingService) -> Client:
	app = Application([service])
	asyncio.run(app.start())
	return Client(app)


# EOF
