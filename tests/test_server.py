import asyncio
import os
import signal
import socket
import subprocess  # nosec: B404
import sys
import threading
import time
from pathlib import Path
from typing import Iterator

import pytest

from reel.model import mount
from reel.server import AIOSocketServer, ServerOptions
from reel.services.files import FileService
from reel.services.stream import StreamService
from reel.utils.logging import Logger

from conftest import Response, parseResponse

LARGE_SIZE: int = 300_000


def freePort() -> int:
	with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
		s.bind(("127.0.0.1", 0))
		return s.getsockname()[1]


def waitForPort(
	port: int, timeout: float = 10.0, process: subprocess.Popen | None = None
) -> None:
	deadline = time.monotonic() + timeout
	while True:
		try:
			with socket.create_connection(("127.0.0.1", port), timeout=0.5):
				return
		except OSError:
			if time.monotonic() > deadline or (process and process.poll() is not None):
				raise
			time.sleep(0.05)


def exchange(port: int, payload: bytes) -> bytes:
	"""Sends the payload and reads until the server closes the connection."""
	with socket.create_connection(("127.0.0.1", port), timeout=10) as client:
		client.sendall(payload)
		chunks: list[bytes] = []
		while chunk := client.recv(65_536):
			chunks.append(chunk)
	return b"".join(chunks)


def splitResponses(payload: bytes) -> list[Response]:
	responses: list[Response] = []
	while payload:
		head, _, rest = payload.partition(b"\r\n\r\n")
		res = parseResponse(head + b"\r\n\r\n")
		length = int(res.headers.get("Content-Length", 0))
		responses.append(Response(res.status, res.headers, rest[:length]))
		payload = rest[length:]
	return responses


def streamRequest(window: str | None = None, close: bool = True) -> bytes:
	lines = ["GET /stream HTTP/1.1", "Host: localhost"]
	if window:
		lines.append(f"Range: {window}")
	if close:
		lines.append("Connection: close")
	return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii")


@pytest.fixture
def large(tmp_path: Path) -> Path:
	path = tmp_path / "large.mp4"
	path.write_bytes(bytes(i % 253 for i in range(LARGE_SIZE)))
	return path


@pytest.fixture
def server(large: Path, public: Path, logger: Logger) -> Iterator[int]:
	port = freePort()
	running = threading.Event()
	running.set()
	app = mount(
		FileService(public, logger=logger),
		StreamService(large, logger=logger),
		logger=logger,
	)
	options = ServerOptions(
		host="127.0.0.1",
		port=port,
		polling=0.05,
		keepalive=5.0,
		condition=running.is_set,
		stopSignals=False,
	)
	thread = threading.Thread(
		target=asyncio.run, args=(AIOSocketServer.Serve(app, options, logger=logger),)
	)
	thread.start()
	try:
		waitForPort(port)
		yield port
	finally:
		running.clear()
		thread.join(10)
	assert not thread.is_alive()
	assert "Server stopped" in logger.out.getvalue()


def test_server_range(server: int, large: Path):
	(res,) = splitResponses(exchange(server, streamRequest("bytes=100000-199999")))
	assert res.status == 206
	assert res.headers["Content-Range"] == f"bytes 100000-199999/{LARGE_SIZE}"
	assert res.headers["Content-Length"] == "100000"
	assert res.body == large.read_bytes()[100_000:200_000]


def test_server_full(server: int, large: Path):
	(res,) = splitResponses(exchange(server, streamRequest()))
	assert res.status == 200
	assert res.headers["Content-Length"] == str(LARGE_SIZE)
	assert res.body == large.read_bytes()


def test_server_keepalive(server: int, large: Path):
	data = large.read_bytes()
	payload = streamRequest("bytes=0-9", close=False) + streamRequest(
		"bytes=-20", close=True
	)
	first, second = splitResponses(exchange(server, payload))
	assert first.status == 206
	assert first.body == data[:10]
	assert second.status == 206
	assert second.headers["Content-Range"] == f"bytes {LARGE_SIZE - 20}-{LARGE_SIZE - 1}/{LARGE_SIZE}"
	assert second.body == data[-20:]


def test_server_not_satisfiable(server: int):
	(res,) = splitResponses(exchange(server, streamRequest("bytes=300000-")))
	assert res.status == 416
	assert res.headers["Content-Range"] == f"bytes */{LARGE_SIZE}"
	assert res.body == b""


def test_server_bad_request(server: int, logger: Logger):
	(res,) = splitResponses(exchange(server, b"garbage\r\n\r\n"))
	assert res.status == 400
	assert res.headers["Connection"] == "close"
	assert " WARN  Malformed request" in logger.err.getvalue()


def test_server_logs_requests(server: int, logger: Logger):
	exchange(server, streamRequest("bytes=0-0"))
	assert " TRACE 127.0.0.1: GET /stream\n" in logger.out.getvalue()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("stop", [signal.SIGTERM, signal.SIGINT])
def test_server_graceful_shutdown(stop: signal.Signals, large: Path, public: Path):
	port = freePort()
	process = subprocess.Popen(  # nosec: B603
		[
			sys.executable,
			"-m",
			"reel",
			"-H",
			"127.0.0.1",
			"-p",
			str(port),
			"-P",
			str(public),
			"-l",
			"trace",
			str(large),
		],
		stdout=subprocess.PIPE,
		stderr=subprocess.PIPE,
		env=os.environ | {"NO_COLOR": "1"},
	)
	try:
		waitForPort(port, process=process)
		# A response means the accept loop runs, so the signal handlers are set.
		(res,) = splitResponses(exchange(port, streamRequest("bytes=0-99")))
		assert res.status == 206
		assert res.body == large.read_bytes()[:100]
		process.send_signal(stop)
		out, err = process.communicate(timeout=10)
	finally:
		if process.poll() is None:
			process.kill()
			process.communicate()
	assert process.returncode == 0, err.decode()
	text = out.decode()
	assert f"Listening at http://localhost:{port}/" in text
	assert "TRACE 127.0.0.1: GET /stream" in text
	assert "Interrupt signal received" in text
	assert "Server stopped" in text


# EOF
