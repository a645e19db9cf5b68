import os
from pathlib import Path
from ..decorators import on
from ..model import Service
from ..http.model import HTTPRequest, HTTPResponse, HTTPBodyFile
from ..http.ranges import RangeNotSatisfiable, parseRange
from ..utils.logging import Logger


class StreamService(Service):
	"""Streams a single video file, honouring `Range` requests so that
	players can seek. The file is opened and sized on each request, so
	that changes to the file are picked up by the next request."""

	CONTENT_TYPE: str = "video/mp4"

	def __init__(
		self,
		path: str | Path,
		*,
		contentType: str | None = None,
		logger: Logger | None = None,
	):
		super().__init__(logger=logger)
		self.path: Path = Path(path).absolute()
		self.contentType: str = contentType or self.CONTENT_TYPE

	async def start(self) -> None:
		self.logger.info(f"Serving video file {self.path}")
		if not self.path.exists():
			self.logger.warn(f"Video file '{self.path}' doesn't exist")

	@on(priority=10, GET_HEAD="/stream")
	def stream(self, request: HTTPRequest) -> HTTPResponse:
		try:
			f = open(self.path, "rb")
		except OSError as e:
			self.logger.error(f"Could not open video file: [{e.__class__.__name__}] {e}")
			return request.respondEmpty(500)
		try:
			size: int = os.fstat(f.fileno()).st_size
			window = parseRange(request.header("Range"), size)
		except RangeNotSatisfiable as e:
			f.close()
			self.logger.debug(e.message, Path=request.path)
			return request.respondEmpty(416, headers=e.headers)
		except OSError as e:
			f.close()
			self.logger.error(f"Could not read video file: [{e.__class__.__name__}] {e}")
			return request.respondEmpty(500)
		if window is None:
			res = request.respond(
				HTTPBodyFile(self.path, f, 0, size),
				contentType=self.contentType,
				headers={"Accept-Ranges": "bytes"},
			)
		else:
			res = request.respond(
				HTTPBodyFile(self.path, f, window.start, window.length),
				contentType=self.contentType,
				status=206,
				headers={
					"Content-Range": window.contentRange,
					"Accept-Ranges": "bytes",
				},
			)
		# The handle is released once the transfer is done or aborted
		return res.onClose(lambda _: f.close())


# EOF
