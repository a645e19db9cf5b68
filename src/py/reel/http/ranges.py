import re
from typing import ClassVar, NamedTuple, Pattern

from .model import HTTPRequestError

# --
# == Byte ranges
#
# Parses the `Range` request header into a single byte window.
# SEE: https://www.rfc-editor.org/rfc/rfc9110#name-range-requests
#
# Only one `bytes` range is supported. Anything that can't be satisfied is
# rejected with a 416 that carries the resource size as `bytes */<size>`.


class RangeNotSatisfiable(HTTPRequestError):
	"""Raised when a `Range` header is malformed or out of bounds."""

	def __init__(self, message: str, size: int):
		super().__init__(
			message, status=416, headers={"Content-Range": f"bytes */{size}"}
		)
		self.size: int = size


class ByteRange(NamedTuple):
	"""An inclusive byte window `[start, end]` of a resource of `size` bytes."""

	start: int
	end: int
	size: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	@property
	def contentRange(self) -> str:
		return f"bytes {self.start}-{self.end}/{self.size}"


class RangeParser:
	RE_DIGITS: ClassVar[Pattern[str]] = re.compile(r"^[0-9]+$")
	UNIT: ClassVar[str] = "bytes"

	@classmethod
	def Parse(cls, header: str | None, size: int) -> ByteRange | None:
		"""Parses the `Range` header value for a resource of `size` bytes,
		returning `None` when there is no header, and raising
		`RangeNotSatisfiable` when it can't be served."""
		if header is None or not (text := header.strip()):
			return None
		unit, sep, value = text.partition("=")
		if not sep or unit.strip().lower() != cls.UNIT:
			raise RangeNotSatisfiable(f"Unsupported range unit: {header}", size)
		if "," in value:
			raise RangeNotSatisfiable(f"Multiple ranges are not supported: {header}", size)
		first, dash, last = value.partition("-")
		first = first.strip()
		last = last.strip()
		if not dash or (first and not cls.RE_DIGITS.match(first)):
			raise RangeNotSatisfiable(f"Malformed range: {header}", size)
		if last and not cls.RE_DIGITS.match(last):
			raise RangeNotSatisfiable(f"Malformed range: {header}", size)
		if not first:
			# A suffix range `bytes=-N` is the last N bytes
			suffix: int = int(last) if last else 0
			if suffix == 0 or size == 0:
				raise RangeNotSatisfiable(f"Empty suffix range: {header}", size)
			return ByteRange(max(0, size - suffix), size - 1, size)
		start: int = int(first)
		end: int = int(last) if last else size - 1
		if start > end:
			raise RangeNotSatisfiable(f"Range start is after its end: {header}", size)
		if start >= size:
			raise RangeNotSatisfiable(f"Range starts after the end of the resource: {header}", size)
		return ByteRange(start, min(end, size - 1), size)


def parseRange(header: str | None, size: int) -> ByteRange | None:
	return RangeParser.Parse(header, size)


# EOF
