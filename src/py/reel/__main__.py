import argparse
import sys
from pathlib import Path

from . import config
from .server import run
from .services.files import FileService
from .services.stream import StreamService
from .utils.logging import Logger, LogLevel


def parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="reel",
		description="Serves a video file over HTTP with byte-range support",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the host/interface to listen on",
		default=config.HOST,
	)
	parser.add_argument(
		"-P",
		"--public",
		action="store",
		dest="public",
		help="Directory of the static files",
		default=str(config.PUBLIC),
	)
	parser.add_argument(
		"-l",
		"--log-level",
		action="store",
		dest="level",
		help="Minimum log level (trace, debug, info, warn, error, fatal)",
		default=config.LOG_LEVEL,
	)
	parser.add_argument(
		"-o",
		"--log-file",
		action="store",
		dest="logFile",
		help="Appends a plain-text copy of the logs to the given file",
		default=config.LOG_FILE,
	)
	# The file is optional for argparse so that we can report its absence
	# through the logger.
	parser.add_argument(
		"file",
		metavar="FILE",
		nargs="?",
		help="The video file to serve",
	)
	return parser


def main(args: list[str] | None = None) -> int:
	argv: list[str] = sys.argv[1:] if args is None else args
	options = parser().parse_args(args=argv)
	try:
		level = LogLevel.Parse(options.level)
	except ValueError as e:
		Logger().fatal(str(e))
		return 1
	with Logger(level, file=options.logFile) as logger:
		if not options.file:
			logger.fatal(f"No video file was specified. Args: {argv!r}")
			return 1
		try:
			run(
				FileService(Path(options.public), logger=logger),
				StreamService(Path(options.file), logger=logger),
				host=options.host,
				port=options.port,
				logger=logger,
			)
		except Exception as e:
			logger.exception(e)
			return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
