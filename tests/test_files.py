from pathlib import Path

from conftest import VIDEO_SIZE


def test_files_index(get, public: Path):
	res = get("/")
	assert res.status == 200
	assert res.headers["Content-Type"].startswith("text/html")
	assert res.body == (public / "index.html").read_bytes()


def test_files_asset(get, public: Path):
	res = get("/app.js")
	assert res.status == 200
	assert "javascript" in res.headers["Content-Type"]
	assert res.headers["Content-Length"] == str((public / "app.js").stat().st_size)
	assert res.body == (public / "app.js").read_bytes()


def test_files_head(get):
	res = get("/app.js", method="HEAD")
	assert res.status == 200
	assert res.body == b""


def test_files_missing(get):
	assert get("/missing.css").status == 404
	assert get("/nested/missing.css").status == 404


def test_files_escape(get):
	res = get("/../secret.txt")
	assert res.status == 403
	assert res.body != b"secret"


def test_files_null_byte(get, logger):
	res = get("/%00")
	assert res.status == 404
	assert get("/app%00.js").status == 404
	assert " ERROR " not in logger.err.getvalue()


def test_files_no_method(get):
	assert get("/app.js", method="DELETE").status == 404


def test_files_do_not_shadow_stream(get):
	res = get("/stream")
	assert res.status == 200
	assert res.headers["Content-Type"] == "video/mp4"
	assert len(res.body) == VIDEO_SIZE


# EOF
