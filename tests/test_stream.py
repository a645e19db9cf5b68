from pathlib import Path

from reel.bridge import run
from reel.services.stream import StreamService
from reel.utils.logging import Logger

from conftest import VIDEO_SIZE, parseResponse

STREAM_RANGE = b"GET /stream HTTP/1.1\r\nHost: localhost\r\nRange: bytes=0-9\r\n\r\n"


def test_stream_full(get, video: Path):
	res = get("/stream")
	assert res.status == 200
	assert res.headers["Content-Length"] == str(VIDEO_SIZE)
	assert res.headers["Content-Type"] == "video/mp4"
	assert "Content-Range" not in res.headers
	assert res.body == video.read_bytes()


def test_stream_range(get, video: Path):
	res = get("/stream", Range="bytes=500-999")
	assert res.status == 206
	assert res.headers["Content-Range"] == "bytes 500-999/1000"
	assert res.headers["Content-Length"] == "500"
	assert res.headers["Accept-Ranges"] == "bytes"
	assert res.headers["Content-Type"] == "video/mp4"
	assert res.body == video.read_bytes()[500:1000]


def test_stream_windows(get, video: Path):
	data = video.read_bytes()
	for start, end in ((0, 0), (0, 999), (1, 2), (250, 749), (999, 999)):
		res = get("/stream", Range=f"bytes={start}-{end}")
		assert res.status == 206
		assert res.headers["Content-Length"] == str(end - start + 1)
		assert res.body == data[start : end + 1]


def test_stream_open_ended(get, video: Path):
	res = get("/stream", Range="bytes=100-")
	assert res.status == 206
	assert res.headers["Content-Range"] == "bytes 100-999/1000"
	assert res.headers["Content-Length"] == "900"
	assert res.body == video.read_bytes()[100:]


def test_stream_suffix_and_clamp(get, video: Path):
	res = get("/stream", Range="bytes=-10")
	assert res.status == 206
	assert res.headers["Content-Range"] == "bytes 990-999/1000"
	assert res.body == video.read_bytes()[-10:]
	res = get("/stream", Range="bytes=900-5000")
	assert res.status == 206
	assert res.headers["Content-Range"] == "bytes 900-999/1000"
	assert len(res.body) == 100


def test_stream_not_satisfiable(get):
	for header in ("bytes=10-5", "bytes=1000-", "items=0-1", "bytes=a-b", "bytes=0-1,4-5"):
		res = get("/stream", Range=header)
		assert res.status == 416, header
		assert res.headers["Content-Range"] == "bytes */1000"
		assert res.body == b""


def test_stream_head(get):
	res = get("/stream", method="HEAD")
	assert res.status == 200
	assert res.headers["Content-Length"] == str(VIDEO_SIZE)
	assert res.body == b""


def test_stream_reflects_file_changes(get, video: Path):
	video.write_bytes(b"0123456789")
	res = get("/stream", Range="bytes=5-")
	assert res.headers["Content-Range"] == "bytes 5-9/10"
	assert res.body == b"56789"


def test_stream_missing_file(tmp_path: Path, logger: Logger):
	bridge = run(StreamService(tmp_path / "missing.mp4", logger=logger), logger=logger)
	res = parseResponse(bridge.request(STREAM_RANGE))
	assert res.status == 500
	assert res.headers["Content-Length"] == "0"
	assert res.body == b""
	errors = [_ for _ in logger.err.getvalue().splitlines() if " ERROR " in _]
	assert len(errors) == 1
	# The server keeps on serving once the file shows up
	(tmp_path / "missing.mp4").write_bytes(b"abcdefghijklmnop")
	res = parseResponse(bridge.request(STREAM_RANGE))
	assert res.status == 206
	assert res.body == b"abcdefghij"


def test_stream_closes_file(video: Path, logger: Logger):
	bridge = run(StreamService(video, logger=logger), logger=logger)
	handler = bridge.app.dispatcher.routes["GET"][0].handler
	stream = handler.functor
	handles = []

	def tracked(request):
		res = stream(request)
		handles.append(res.body.handle)
		return res

	handler.functor = tracked
	res = parseResponse(bridge.request(STREAM_RANGE))
	assert res.status == 206
	assert len(handles) == 1
	assert handles[0].closed


# EOF
