import asyncio

from .http.model import HTTPBodyWriter, HTTPRequest
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .server import AIOSocketServer
from .utils.logging import Logger


class BufferedBodyWriter(HTTPBodyWriter):
	"""A body writer that accumulates what is written in memory."""

	def __init__(self) -> None:
		super().__init__()
		self.buffer: bytearray = bytearray()

	async def _writeBytes(self, chunk: bytes, more: bool = False) -> bool:
		self.buffer += chunk
		return True


class PythonBridge:
	"""Runs raw HTTP requests through an application without any socket,
	returning the raw response bytes."""

	def __init__(self, app: Application, *, peer: str = "127.0.0.1") -> None:
		self.app: Application = app
		self.peer: str = peer

	async def arequest(self, payload: bytes) -> bytes:
		writer = BufferedBodyWriter()
		for atom in HTTPParser(self.peer).feed(payload):
			if isinstance(atom, HTTPRequest):
				await AIOSocketServer.SendResponse(atom, self.app, writer, self.app.logger)
		return bytes(writer.buffer)

	def request(self, payload: bytes) -> bytes:
		return asyncio.run(self.arequest(payload))


def run(*components: Application | Service, logger: Logger | None = None) -> PythonBridge:
	"""Mounts the given services in an application that can be queried
	in-process."""
	return PythonBridge(mount(*components, logger=logger))


# EOF
