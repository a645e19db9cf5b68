from typing import ClassVar, Iterator, Literal, TypeAlias, Union
from urllib.parse import unquote
from ..utils.io import LineParser
from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPBodyBlob,
	HTTPProcessingStatus,
	headername,
)

# What the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
]


class RequestLineParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "RequestLineParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a well-formed line was parsed, `False` when
		the line is malformed and `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# Empty lines preceding the request line are ignored
			return None, read
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		i = ln.find(" ")
		j = ln.rfind(" ")
		if i == -1 or i == j:
			return False, read
		p: list[str] = ln[i + 1 : j].split("?", 1)
		self.value = HTTPRequestLine(
			ln[0:i], unquote(p[0]), p[1] if len(p) > 1 else "", ln[j + 1 :]
		)
		return True, read

	@property
	def overflow(self) -> bool:
		return self.line.overflow

	def __str__(self) -> str:
		return f"RequestLineParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line", "size"]

	# Largest header block accepted, in bytes
	MAX_SIZE: ClassVar[int] = 64_000

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None
		self.size: int = 0

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		self.size = 0
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, a header was added."""
		line, read = self.line.feed(chunk, start)
		self.size += read
		if line is None:
			return None, read
		elif not line:
			# An empty line denotes the end of headers
			return False, read
		# Headers are expected to be in ASCII format
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = None
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	@property
	def overflow(self) -> bool:
		return self.size > self.MAX_SIZE or self.line.overflow

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses the body of a request with `Content-Length` set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(b"".join(self.data), self.read, self.expected - self.read)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP request parser, chunks are fed as they arrive from
	the socket and atoms are yielded as soon as they're available."""

	METHOD_HAS_BODY: ClassVar[set[str]] = {"POST", "PUT", "PATCH"}

	def __init__(self, peer: str | None = None) -> None:
		self.peer: str | None = peer
		self.message: RequestLineParser = RequestLineParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: RequestLineParser | HeadersParser | BodyLengthParser = (
			self.message
		)
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.parser = self.message.reset()
		self.headers.reset()
		self.bodyLength.reset()
		self.requestLine = None
		self.requestHeaders = None
		return self

	def request(self, body: HTTPBodyBlob) -> HTTPRequest:
		line = self.requestLine
		if line is None:
			raise RuntimeError("Request line has not been parsed yet")
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=self.requestHeaders or HTTPHeaders({}),
			body=body,
			protocol=line.protocol,
			peer=self.peer,
		)

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# When a chunk is partially read, the underlying parser keeps
			# a buffer until it is flushed.
			if self.parser is self.message:
				ok, read = self.message.feed(chunk, offset)
				offset += read
				if ok is False or (ok is None and self.message.overflow):
					self.message.reset()
					yield HTTPProcessingStatus.BadFormat
				elif ok:
					self.requestLine = self.message.flush()
					self.requestHeaders = None
					if self.requestLine:
						yield self.requestLine
						self.parser = self.headers
			elif self.parser is self.headers:
				name, read = self.headers.feed(chunk, offset)
				offset += read
				if name is None and self.headers.overflow:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
				elif name is False:
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					length: int = headers.contentLength or 0
					if (
						self.requestLine
						and self.requestLine.method in self.METHOD_HAS_BODY
						and length > 0
					):
						self.parser = self.bodyLength.reset(length)
						yield HTTPProcessingStatus.Body
					else:
						yield self.request(HTTPBodyBlob(b"", 0))
						self.parser = self.message.reset()
			elif self.parser is self.bodyLength:
				done, read = self.bodyLength.feed(chunk, offset)
				offset += read
				if done:
					yield self.request(self.bodyLength.flush())
					self.parser = self.message.reset()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[unquote(item)] = ""
		else:
			res[unquote(kv[0])] = unquote(kv[1])
	return res


# EOF
