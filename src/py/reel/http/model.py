import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
	Any,
	BinaryIO,
	Callable,
	NamedTuple,
	TypeAlias,
)

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .status import HTTP_STATUS


# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, 500 unless
	a status is given."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
		headers: dict[str, str] | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType
		self.headers: dict[str, str] | None = headers


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0
	# NOTE: We don't know how many is remaining
	remaining: int | None = None

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""Represents an HTTP body from a window of a file. When a `handle` is
	given, it is read from and left open, the response owning it is
	expected to close it."""

	path: Path
	handle: BinaryIO | None = None
	offset: int = 0
	count: int | None = None

	@property
	def length(self) -> int:
		if self.count is not None:
			return self.count
		size: int = (
			os.fstat(self.handle.fileno()).st_size
			if self.handle
			else self.path.stat().st_size
		)
		return max(0, size - self.offset)


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for response bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			if body.handle:
				return await self._writeFile(body.handle, body.offset, body.length)
			else:
				with open(body.path, "rb") as f:
					return await self._writeFile(f, body.offset, body.length)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(
		self, file: BinaryIO, offset: int, count: int, size: int = 64_000
	) -> bool:
		"""Writes `count` bytes of the given file starting at `offset`."""
		file.seek(offset)
		remaining: int = count
		while remaining > 0 and (chunk := file.read(min(size, remaining))):
			remaining -= len(chunk)
			await self._writeBytes(chunk, remaining > 0)
		return remaining == 0

	@abstractmethod
	async def _writeBytes(self, chunk: bytes, more: bool = False) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"peer",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
		peer: str | None = None,
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self.peer: str | None = peer
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def param(self, name: str, default: str | None = None) -> str | None:
		return self.query.get(name, default) if self.query else default

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def body(self) -> HTTPBodyBlob:
		return self._body or HTTPBodyBlob()

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(content, HTTPBodyFile):
			body = content
		elif isinstance(content, Path):
			body = HTTPBodyFile(content.absolute())
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if contentLength is None:
			contentLength = body.length if body else 0
		res_headers: dict[str, str] = {headername(k): v for k, v in (headers or {}).items()}
		if contentType is not None:
			res_headers["Content-Type"] = contentType
		res_headers["Content-Length"] = str(contentLength)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				res_headers,
				contentType=contentType or res_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None
		self.shouldClose: bool = shouldClose

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("ascii")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Triggers the close callback, at most once."""
		callback, self._onClose = self._onClose, None
		if callback:
			callback(self)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
