from pathlib import Path
from ..decorators import on
from ..model import Service
from ..http.model import HTTPRequest, HTTPResponse
from ..utils.files import isWithin
from ..utils.logging import Logger


class FileService(Service):
	"""A service to serve static files from a local directory"""

	INDEX: str = "index.html"

	def __init__(self, root: str | Path | None = None, *, logger: Logger | None = None):
		super().__init__(logger=logger)
		self.root: Path = Path(root or ".").resolve()

	async def start(self) -> None:
		self.logger.debug(f"Serving static files from '{self.root}'")

	@on(GET_HEAD=("/", "/{path:any}"))
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		try:
			local_path = self.resolvePath(path)
		except ValueError:
			# Paths with NUL bytes can't exist on disk
			return request.notFound()
		if local_path is None:
			return request.notAuthorized(f"Not authorized to access path: {path}")
		elif not local_path.is_file():
			return request.notFound()
		else:
			return request.respondFile(local_path)

	def resolvePath(self, path: str) -> Path | None:
		"""Resolves the given URL path to a local path, returns `None` when
		it points outside of the root. Directories resolve to their
		index file."""
		local_path = self.root.joinpath(path.lstrip("/")).resolve()
		if not isWithin(local_path, self.root):
			return None
		elif local_path.is_dir():
			return local_path / self.INDEX
		else:
			return local_path


# EOF
