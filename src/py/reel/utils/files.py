import mimetypes
from pathlib import Path

mimetypes.init()

MIME_TYPES: dict[str, str] = dict(
	mp4="video/mp4",
	m4v="video/mp4",
	webm="video/webm",
	mjs="application/javascript",
)


def contentType(path: Path | str) -> str:
	"""Guesses the content type from the given path"""
	name = str(path)
	return (
		res
		if (res := MIME_TYPES.get(name.rsplit(".", 1)[-1].lower()))
		else mimetypes.guess_type(name)[0] or "application/octet-stream"
	)


def isWithin(path: Path, root: Path) -> bool:
	"""Tells if the absolute `path` is `root` or one of its descendants."""
	return path.parts[: len(parts := root.parts)] == parts


# EOF
