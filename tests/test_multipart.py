from sharebox.http.multipart import (
	MultipartData,
	MultipartEnd,
	MultipartHeaders,
	MultipartParser,
	boundary,
	disposition,
)

from conftest import BOUNDARY, multipart


def collect(chunks: list[bytes]) -> list[tuple[MultipartHeaders, bytes]]:
	parser = MultipartParser(BOUNDARY.encode())
	parts: list[tuple[MultipartHeaders, bytes]] = []
	head: MultipartHeaders | None = None
	data = bytearray()
	for chunk in chunks:
		for atom in parser.feed(chunk):
			if isinstance(atom, MultipartHeaders):
				head, data = atom, bytearray()
			elif isinstance(atom, MultipartData):
				data += atom.data
			else:
				assert isinstance(atom, MultipartEnd)
				assert head is not None
				parts.append((head, bytes(data)))
	assert parser.isComplete
	return parts


def test_boundary() -> None:
	assert boundary("multipart/form-data; boundary=abc") == b"abc"
	assert boundary('multipart/form-data; boundary="a b"') == b"a b"
	assert boundary("application/json") is None
	assert boundary(None) is None
	assert boundary("multipart/form-data") is None


def test_disposition() -> None:
	assert disposition('form-data; name="files"; filename="My Report.PDF"') == {
		"name": "files",
		"filename": "My Report.PDF",
	}
	assert (
		disposition("form-data; name=files; filename*=UTF-8''na%C3%AFve.txt")[
			"filename"
		]
		== "naïve.txt"
	)
	assert disposition('form-data; filename="a\\"b.txt"')["filename"] == 'a"b.txt'


def test_parts() -> None:
	payload, _ = multipart(
		("a.txt", b"hello"), ("b.bin", b"\r\n--not-a-boundary\r\n"), fields={"x": "1"}
	)
	parts = collect([payload])
	assert [(_.name, _.filename) for _, __ in parts] == [
		("x", None),
		("files", "a.txt"),
		("files", "b.bin"),
	]
	assert [_ for __, _ in parts] == [b"1", b"hello", b"\r\n--not-a-boundary\r\n"]


def test_parts_byte_by_byte() -> None:
	content = bytes(range(256)) * 8
	payload, _ = multipart(("a.bin", content), ("b.txt", b""))
	parts = collect([payload[i : i + 1] for i in range(len(payload))])
	assert parts[0][1] == content
	assert parts[1][0].filename == "b.txt"
	assert parts[1][1] == b""


def test_incomplete() -> None:
	payload, _ = multipart(("a.txt", b"hello"))
	parser = MultipartParser(BOUNDARY.encode())
	atoms = list(parser.feed(payload[:-10]))
	assert isinstance(atoms[0], MultipartHeaders)
	assert not parser.isComplete


# EOF
