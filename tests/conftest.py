from io import StringIO
from pathlib import Path
from typing import Callable, NamedTuple

import pytest

from reel.bridge import PythonBridge, run
from reel.services.files import FileService
from reel.services.stream import StreamService
from reel.utils.logging import Logger, LogLevel

VIDEO_SIZE: int = 1000


class Response(NamedTuple):
	status: int
	headers: dict[str, str]
	body: bytes


def parseResponse(payload: bytes) -> Response:
	head, _, body = payload.partition(b"\r\n\r\n")
	lines = head.decode("ascii").split("\r\n")
	status = int(lines[0].split(" ", 2)[1])
	headers = dict(_.split(": ", 1) for _ in lines[1:] if _)
	return Response(status, headers, body)


@pytest.fixture
def logger() -> Logger:
	return Logger(LogLevel.Trace, color=False, out=StringIO(), err=StringIO())


@pytest.fixture
def video(tmp_path: Path) -> Path:
	path = tmp_path / "video.mp4"
	path.write_bytes(bytes(i % 251 for i in range(VIDEO_SIZE)))
	return path


@pytest.fixture
def public(tmp_path: Path) -> Path:
	root = tmp_path / "public"
	root.mkdir()
	(root / "index.html").write_text("<video src='/stream'></video>")
	(root / "app.js").write_text("console.log('reel')")
	(tmp_path / "secret.txt").write_text("secret")
	return root


@pytest.fixture
def bridge(video: Path, public: Path, logger: Logger) -> PythonBridge:
	return run(
		FileService(public, logger=logger),
		StreamService(video, logger=logger),
		logger=logger,
	)


@pytest.fixture
def get(bridge: PythonBridge) -> Callable[..., Response]:
	def request(path: str, method: str = "GET", **headers: str) -> Response:
		lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
		lines += [f"{k.replace('_', '-')}: {v}" for k, v in headers.items()]
		payload = ("\r\n".join(lines) + "\r\n\r\n").encode("ascii")
		return parseResponse(bridge.request(payload))

	return request


# EOF
