from sharebox.http.model import HTTPBodyBlob, HTTPProcessingStatus, HTTPRequest
from sharebox.http.parser import HTTPParser, parseQuery


def test_chunked_head() -> None:
	parser = HTTPParser()
	atoms = []
	for chunk in [
		b"GET /download/My%20",
		b"Report.PDF?x=1 HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nRange: bytes=0-",
		b"\r\n\r",
		b"\n",
	]:
		atoms += list(parser.feed(chunk))
	(req,) = [_ for _ in atoms if isinstance(_, HTTPRequest)]
	assert req.method == "GET"
	assert req.path == "/download/My%20Report.PDF"
	assert req.query == {"x": "1"}
	assert req.header("range") == "bytes=0-"
	assert atoms[-1] is HTTPProcessingStatus.Complete


def test_pipelined() -> None:
	atoms = list(
		HTTPParser().feed(
			b"GET /a HTTP/1.1\r\n\r\n"
			b"POST /b HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
			b"GET /c HTTP/1.1\r\n\r\n"
		)
	)
	reqs = [_ for _ in atoms if isinstance(_, HTTPRequest)]
	assert [_.path for _ in reqs] == ["/a", "/b", "/c"]
	assert isinstance(reqs[1].body, HTTPBodyBlob)
	assert reqs[1].body.payload == b"abc"
	assert all(_.isBodyConsumed for _ in reqs)


def test_partial_body() -> None:
	(req,) = [
		_
		for _ in HTTPParser().feed(
			b"POST /upload HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"
		)
		if isinstance(_, HTTPRequest)
	]
	assert req.contentLength == 10
	assert not req.isBodyConsumed


def test_bad_format() -> None:
	atoms = list(HTTPParser().feed(b"NONSENSE\r\n\r\n"))
	assert HTTPProcessingStatus.BadFormat in atoms
	atoms = list(HTTPParser().feed(b"POST / HTTP/1.1\r\nContent-Length: -2\r\n\r\n"))
	assert HTTPProcessingStatus.BadFormat in atoms


def test_query() -> None:
	assert parseQuery("a=1&b=x+y&c") == {"a": "1", "b": "x y", "c": ""}
	assert parseQuery("") == {}


# EOF
