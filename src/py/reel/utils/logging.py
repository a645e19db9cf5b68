import sys
import time
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Literal, NamedTuple, TextIO, TypeAlias
from .io import DEFAULT_ENCODING
from .term import COLOR, Term

__doc__ = """
A leveled logger. Messages below the logger's minimum level are dropped,
the others are rendered with a timestamp and written to stdout (below
`Warn`) or stderr (`Warn` and above). When a log file is given, a
colorless copy of each line is appended to it through a single handle
owned by the logger.

Loggers are plain objects: create one and pass it along, there is no
module-level default instance.
"""


class LogLevel(Enum):
	Trace = 0
	Debug = 10
	Info = 20
	Warn = 30
	Error = 40
	Fatal = 50

	@staticmethod
	def Parse(name: "str | LogLevel") -> "LogLevel":
		"""Parses a level name like `info` or `WARN`, raising `ValueError`
		for unknown names."""
		if isinstance(name, LogLevel):
			return name
		key: str = name.strip().capitalize()
		for level in LogLevel:
			if level.name == key:
				return level
		raise ValueError(
			f"Unknown log level '{name}', pick one of: {', '.join(_.name.lower() for _ in LogLevel)}"
		)


LOG_LEVEL_NAME: dict[LogLevel, str] = {
	LogLevel.Trace: "TRACE",
	LogLevel.Debug: "DEBUG",
	LogLevel.Info: "INFO",
	LogLevel.Warn: "WARN",
	LogLevel.Error: "ERROR",
	LogLevel.Fatal: "FATAL",
}

LOG_LEVEL_COLOR: dict[LogLevel, int | None] = {
	LogLevel.Trace: None,
	LogLevel.Debug: Term.BLUE,
	LogLevel.Info: Term.GREEN,
	LogLevel.Warn: Term.YELLOW,
	LogLevel.Error: Term.RED,
	LogLevel.Fatal: Term.RED,
}

LEVEL_WIDTH: int = max(len(_) for _ in LOG_LEVEL_NAME.values())


class LogRecord(NamedTuple):
	level: LogLevel
	message: str
	time: float


# Takes the level, the message, whether color is enabled and the record time.
TFormat: TypeAlias = Callable[[LogLevel, str, bool, float], str]


def timestamp(at: float, format: Literal["time", "date", "both"] = "both") -> str:
	"""Formats the given epoch time as `YYYY-MM-DD`, `HH:MM:SS.mmm` or both,
	in local time."""
	d = datetime.fromtimestamp(at)
	time_str = f"{d.hour:02d}:{d.minute:02d}:{d.second:02d}.{d.microsecond // 1000:03d}"
	date_str = f"{d.year:04d}-{d.month:02d}-{d.day:02d}"
	match format:
		case "time":
			return time_str
		case "date":
			return date_str
		case _:
			return f"{date_str} {time_str}"


def formatMessage(level: LogLevel, message: str, color: bool, at: float) -> str:
	"""The default line format: `<date> <time> <LEVEL> <message>`, where the
	level is colored when `color` is set. Fatal messages are colored as a
	whole."""
	name: str = LOG_LEVEL_NAME[level]
	pad: str = " " * (LEVEL_WIDTH - len(name))
	clr = LOG_LEVEL_COLOR[level]
	if level is LogLevel.Fatal:
		return f"{timestamp(at)} {Term.Paint(f'{name}{pad} {message}', clr, color)}\n"
	else:
		return f"{timestamp(at)} {Term.Paint(name, clr, color)}{pad} {message}\n"


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{k}={formatData(v)}" for k, v in value.items())
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def formatException(exception: BaseException, message: str | None = None) -> str:
	"""Renders the exception and its traceback as a multi-line text."""
	head: str = f"[{exception.__class__.__name__}] {exception}"
	lines: list[str] = [f"{message}: {head}" if message else head]
	tb = exception.__traceback__
	while tb:
		code = tb.tb_frame.f_code
		lines.append(
			f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}"
		)
		tb = tb.tb_next
	return "\n".join(lines)


# -----------------------------------------------------------------------------
#
# LOGGER
#
# -----------------------------------------------------------------------------


class Logger:
	"""Filters messages by level and routes them to the console and,
	optionally, to an append-only log file."""

	def __init__(
		self,
		level: LogLevel = LogLevel.Trace,
		*,
		format: TFormat = formatMessage,
		file: str | Path | None = None,
		color: bool = COLOR,
		out: TextIO | None = None,
		err: TextIO | None = None,
	) -> None:
		self.level: LogLevel = level
		self.format: TFormat = format
		self.file: Path | None = Path(file) if file else None
		self.color: bool = color
		# Streams are resolved on write when not given, so that redirections
		# of `sys.stdout`/`sys.stderr` are honoured.
		self.out: TextIO | None = out
		self.err: TextIO | None = err
		self._lock: threading.Lock = threading.Lock()
		self._handle: TextIO | None = None

	def isEnabled(self, level: LogLevel) -> bool:
		return level.value >= self.level.value

	def log(self, level: LogLevel, message: str, **context: Any) -> LogRecord | None:
		if not self.isEnabled(level):
			return None
		record = LogRecord(
			level, f"{message} {formatData(context)}" if context else message, time.time()
		)
		self._console(record)
		if self.file is not None:
			self._append(record)
		return record

	def trace(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Trace, message, **context)

	def debug(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Debug, message, **context)

	def info(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Info, message, **context)

	def warn(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Warn, message, **context)

	def error(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Error, message, **context)

	def fatal(self, message: str, **context: Any) -> LogRecord | None:
		return self.log(LogLevel.Fatal, message, **context)

	def exception(
		self,
		exception: BaseException,
		message: str | None = None,
		*,
		level: LogLevel = LogLevel.Fatal,
	) -> BaseException:
		"""Logs the exception along with its traceback. Returns the exception
		so that this can be used like `raise logger.exception(e)`."""
		self.log(level, formatException(exception, message))
		return exception

	def close(self) -> None:
		"""Closes the log file handle, it is reopened on the next write."""
		with self._lock:
			handle, self._handle = self._handle, None
		if handle:
			handle.close()

	def __enter__(self) -> "Logger":
		return self

	def __exit__(self, *args: Any) -> None:
		self.close()

	def _console(self, record: LogRecord) -> None:
		stream: TextIO = (
			(self.err or sys.stderr)
			if record.level.value >= LogLevel.Warn.value
			else (self.out or sys.stdout)
		)
		stream.write(self.format(record.level, record.message, self.color, record.time))
		stream.flush()

	def _append(self, record: LogRecord) -> None:
		line: str = self.format(record.level, record.message, False, record.time)
		failures: list[OSError] = []
		with self._lock:
			try:
				if self._handle is None and self.file is not None:
					self._handle = open(self.file, "a", encoding=DEFAULT_ENCODING)
				if self._handle:
					self._handle.write(line)
					self._handle.flush()
			except OSError as e:
				failures.append(e)
				# The handle is dropped, the next write will try to reopen it.
				handle, self._handle = self._handle, None
				if handle:
					try:
						handle.close()
					except OSError as f:
						failures.append(f)
		# NOTE: Failures go to the console only, never back to the file.
		for e in failures:
			self._console(
				LogRecord(
					LogLevel.Fatal,
					formatException(e, f"Could not write to log file {self.file}"),
					time.time(),
				)
			)

	def __repr__(self) -> str:
		return f"(Logger {self.level.name}{f' {self.file}' if self.file else ''})"


# EOF
