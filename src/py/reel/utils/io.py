DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"

# Longest line accepted before a line is considered malformed
MAX_LINE: int = 8_192


class LineParser:
	"""Accumulates chunks until an end-of-line delimiter is found."""

	__slots__ = ["buffer", "line", "eol", "eolsize", "offset", "limit"]

	def __init__(self, limit: int = MAX_LINE) -> None:
		self.buffer: bytearray = bytearray()
		self.line: bytes | None = None
		self.offset: int = 0
		self.eol: bytes = EOL
		self.eolsize: int = len(EOL)
		self.limit: int = limit

	def reset(self, eol: bytes = EOL) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.offset = 0
		self.eol = eol
		self.eolsize = len(eol)
		return self

	def flush(self) -> bytes | None:
		return self.line

	@property
	def overflow(self) -> bool:
		"""Tells if the pending, unterminated line is longer than the limit."""
		return len(self.buffer) > self.limit

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line and how many bytes were read in chunk from
		start. When line is None, then the whole chunk has been consumed."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(self.eol, self.offset)
		if end == -1:
			# The delimiter may be split across chunks, so we look back a bit.
			self.offset = max(0, len(self.buffer) - self.eolsize + 1)
			return None, len(chunk) - start
		else:
			self.line = bytes(self.buffer[:end])
			self.buffer.clear()
			self.offset = 0
			return self.line, (end - pos) + self.eolsize


# EOF
