from reel.http.model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
)
from reel.http.parser import HTTPParser, parseQuery
from reel.utils.io import LineParser


def test_line_parser_chunks():
	parser = LineParser()
	assert parser.feed(b"Hello") == (None, 5)
	assert parser.feed(b", World\r") == (None, 8)
	line, read = parser.feed(b"\nNext")
	assert line == b"Hello, World"
	assert read == 1


def test_line_parser_overflow():
	parser = LineParser(limit=10)
	assert parser.feed(b"0123456789") == (None, 10)
	assert not parser.overflow
	assert parser.feed(b"A") == (None, 1)
	assert parser.overflow
	assert not parser.reset().overflow


def test_line_parser_offset():
	parser = LineParser()
	data = b"first\r\nsecond\r\n"
	line, read = parser.feed(data)
	assert (line, read) == (b"first", 7)
	line, read = parser.reset().feed(data, 7)
	assert (line, read) == (b"second", 8)


def test_parser_chunked():
	parser = HTTPParser("127.0.0.1")
	atoms = []
	for chunk in [
		b"GET /time/5 ",
		b"HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nConn",
		b"ection: close\r\n",
		b"\r",
		b"\n",
	]:
		atoms += list(parser.feed(chunk))
	assert atoms[0] == HTTPRequestLine("GET", "/time/5", "", "HTTP/1.1")
	assert isinstance(atoms[1], HTTPHeaders)
	assert atoms[1].headers == {"Host": "127.0.0.1", "Connection": "close"}
	request = atoms[2]
	assert isinstance(request, HTTPRequest)
	assert request.method == "GET"
	assert request.path == "/time/5"
	assert request.peer == "127.0.0.1"
	assert request.header("connection") == "close"
	assert len(atoms) == 3


def test_parser_range_header():
	parser = HTTPParser()
	requests = [
		_
		for _ in parser.feed(
			b"GET /stream?t=1 HTTP/1.1\r\nrange: bytes=0-99\r\n\r\n"
		)
		if isinstance(_, HTTPRequest)
	]
	assert len(requests) == 1
	assert requests[0].header("Range") == "bytes=0-99"
	assert requests[0].path == "/stream"
	assert requests[0].param("t") == "1"


def test_parser_body():
	parser = HTTPParser()
	atoms = list(
		parser.feed(b"POST /upload HTTP/1.1\r\nContent-Length: 10\r\n\r\nhello")
	)
	assert HTTPProcessingStatus.Body in atoms
	assert not any(isinstance(_, HTTPRequest) for _ in atoms)
	atoms = list(parser.feed(b"world"))
	assert len(atoms) == 1
	assert isinstance(atoms[0], HTTPRequest)
	assert atoms[0].body.payload == b"helloworld"
	assert atoms[0].contentLength == 10


def test_parser_pipelined():
	parser = HTTPParser()
	requests = [
		_.path
		for _ in parser.feed(
			b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\nHost: localhost\r\n\r\n"
		)
		if isinstance(_, HTTPRequest)
	]
	assert requests == ["/a", "/b"]


def test_parser_malformed():
	parser = HTTPParser()
	atoms = list(parser.feed(b"garbage\r\n"))
	assert atoms == [HTTPProcessingStatus.BadFormat]


def test_parser_line_too_long():
	parser = HTTPParser()
	atoms = list(parser.feed(b"GET /" + b"a" * 4_000))
	assert atoms == []
	atoms = list(parser.feed(b"a" * 5_000))
	assert atoms == [HTTPProcessingStatus.BadFormat]


def test_parser_headers_too_large():
	parser = HTTPParser()
	atoms = list(parser.feed(b"GET /stream HTTP/1.1\r\n"))
	assert isinstance(atoms[0], HTTPRequestLine)
	atoms = []
	for _ in range(700):
		atoms += list(parser.feed(b"X-Padding: " + b"a" * 100 + b"\r\n"))
	assert HTTPProcessingStatus.BadFormat in atoms
	assert not any(isinstance(_, HTTPRequest) for _ in atoms)


def test_parser_header_line_too_long():
	parser = HTTPParser()
	atoms = list(parser.feed(b"GET /stream HTTP/1.1\r\nX-Padding: " + b"a" * 9_000))
	assert atoms[-1] is HTTPProcessingStatus.BadFormat


def test_parser_unquotes_path():
	parser = HTTPParser()
	line = next(parser.feed(b"GET /my%20video.mp4 HTTP/1.1\r\n"))
	assert line == HTTPRequestLine("GET", "/my video.mp4", "", "HTTP/1.1")


def test_parse_query():
	assert parseQuery("") == {}
	assert parseQuery("a=1&b&c=x%20y") == {"a": "1", "b": "", "c": "x y"}


# EOF
