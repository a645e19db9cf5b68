import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, BinaryIO, Callable, NamedTuple

from .config import HOST, PORT, LOG_REQUESTS
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.logging import Logger, LogLevel


@dataclass(slots=True)
class ServerState:
	logger: Logger
	isRunning: bool = True

	def stop(self) -> None:
		self.logger.info("Interrupt signal received")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			self.logger.exception(e, level=LogLevel.Error)
		else:
			self.logger.error(str(context.get("message")))


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 1_000
	# This is the polling timeout for accepting new requests.
	polling: float = 1.0
	readsize: int = 4_096
	keepalive: float = 60.0
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_BADREQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Length: 0\r\n"
	b"Connection: close\r\n"
	b"\r\n"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes, more: bool = False) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True

	async def _writeFile(
		self, file: BinaryIO, offset: int, count: int, size: int = 64_000
	) -> bool:
		# NOTE: Uses `sendfile` when available, falls back to read/send.
		if count > 0:
			await self.loop.sock_sendfile(self.client, file, offset, count)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		peer: str | None = None,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
		logger: Logger,
	) -> None:
		"""Asynchronous worker, processing a socket in the context
		of an application."""
		buffer = bytearray(options.readsize)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser(peer)
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			# A client may send more than one request on the same connection
			# until it sends `Connection: close` or the keep-alive expires.
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						logger.warn("Malformed request", Client=peer)
						await loop.sock_sendall(client, SERVER_BADREQUEST)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						if (
							atom.protocol == "HTTP/1.0"
							or (atom.header("Connection") or "").lower() == "close"
						):
							keep_alive = False
						res = await cls.SendResponse(atom, app, writer, logger)
						if res:
							res_count += 1
							if res.shouldClose:
								keep_alive = False
			if res_count != req_count:
				logger.warn(
					"Incomplete responses",
					Client=peer,
					Status=status.name,
					Requests=req_count,
					Responses=res_count,
				)
		except (BrokenPipeError, ConnectionResetError):
			logger.debug("Client closed the connection", Client=peer)
		except Exception as e:
			logger.exception(e, level=LogLevel.Error)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
		logger: Logger,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends a response
		using the given writer."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		sent: bool = False
		try:
			r = app.process(req)
			res = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			logger.exception(e, f"Could not process {req.method} {req.path}", level=LogLevel.Error)
		try:
			if res is not None:
				# We send the request head
				await writer.write(res.head())
				sent = True
				if req.method != "HEAD":
					await writer.write(res.body)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			logger.debug("Client closed the connection early", Path=req.path)
			writer.shouldClose = True
		finally:
			# The response may own resources (like an open file) that are
			# released on close, whether the transfer completed or not.
			if res is not None:
				try:
					res.close()
				except Exception as e:
					logger.exception(e, "Response close handler failed", level=LogLevel.Error)
		if not sent and not writer.shouldClose:
			await writer.write(SERVER_ERROR)
			writer.shouldClose = True
		return res

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = ServerOptions(),
		*,
		logger: Logger | None = None,
	) -> None:
		"""Main server coroutine."""
		logger = logger or app.logger
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		port: int = options.port
		try:
			server.bind((options.host, port))
		except OSError as e:
			logger.warn(f"Could not bind to {options.host}:{port}, trying other ports")
			bound: bool = False
			for p in range(options.port + 1, options.port + 5):
				try:
					server.bind((options.host, p))
					bound = True
					port = p
					logger.info(f"Found alternate available port: {port}")
					break
				except OSError:
					continue
			if not bound:
				server.close()
				logger.error(f"Unable to bind to {options.host}:{options.port}, aborting")
				raise e from e

		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()

		state = ServerState(logger)
		# Signal handlers can only be registered from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		await app.start()
		logger.info(f"Listening at http://localhost:{port}/", Host=options.host)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, address = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						logger.exception(e, level=LogLevel.Error)
					continue
				task = loop.create_task(
					cls.OnRequest(
						app,
						client,
						peer=address[0] if address else None,
						loop=loop,
						options=options,
						logger=logger,
					)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			if options.stopSignals and threading.current_thread() is threading.main_thread():
				loop.remove_signal_handler(SIGINT)
				loop.remove_signal_handler(SIGTERM)
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()
			logger.info("Server stopped")


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
	logger: Logger | None = None,
) -> None:
	"""High level function to run the server."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		keepalive=keepalive,
	)
	app = mount(*components, logger=logger)
	app.logRequests = logRequests
	try:
		asyncio.run(AIOSocketServer.Serve(app, options, logger=logger))
	except KeyboardInterrupt:
		app.logger.info("Manual shutdown")


# EOF
