import os
import sys
import time
from enum import Enum
from typing import NamedTuple, Any, Callable, TextIO
from contextvars import ContextVar
from .primitives import TPrimitive

# --
# Structured logging, one colored line per entry on stderr. Entries carry
# a message and a context made of `Key=value` pairs, which is what the
# service uses to report uploads, deletions and streams.

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="sharebox")

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
COLOR: bool = "FORCE_COLOR" in os.environ or not NO_COLOR


class LogType(Enum):
	Message = 0
	Event = 20


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVELS: dict[str, LogLevel] = {_.name.lower(): _ for _ in LogLevel}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None
	icon: str | None = None


class LogSink:
	"""Holds the output stream and the minimum level, both can be changed
	at runtime. Without a stream, entries go to the current `sys.stderr`."""

	__slots__ = ["output", "level"]

	def __init__(
		self, stream: TextIO | None = None, level: LogLevel = LogLevel.Info
	) -> None:
		self.output: TextIO | None = stream
		self.level: LogLevel = level

	@property
	def stream(self) -> TextIO:
		return self.output or sys.stderr

	def accepts(self, level: LogLevel) -> bool:
		return level.value >= self.level.value


SINK: LogSink = LogSink(
	None,
	LOG_LEVELS.get(os.getenv("SHAREBOX_LOG_LEVEL", "info").lower(), LogLevel.Info),
)


def color(code: int, bold: bool = False) -> str:
	return f"\033[{'1' if bold else '0'};38;5;{code}m" if COLOR else ""


BOLD: str = "\033[1m" if COLOR else ""
RESET: str = "\033[0m" if COLOR else ""


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{BOLD}{k}{RESET}={formatData(v)}" for k, v in value.items())
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


def send(entry: LogEntry) -> LogEntry:
	if not SINK.accepts(entry.level):
		return entry
	clr: str = color(LOG_LEVEL_COLOR[entry.level])
	out = SINK.stream
	if entry.type == LogType.Event:
		out.write(
			f"{clr}{BOLD}[{entry.origin}] {entry.name}{RESET} {formatData(entry.value)} {formatData(entry.context)}{RESET}\n"
		)
	else:
		icon: str = f" {entry.icon}" if entry.icon else ""
		code: str = f" ({entry.value})" if entry.value is not None else ""
		out.write(
			f"{clr}{BOLD}[{entry.origin}]{RESET}{icon} {entry.message}{code} {formatData(entry.context)}{RESET}\n"
		)
	out.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Debug,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context, icon=icon))


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	if not SINK.accepts(LogLevel.Exception):
		return exception
	try:
		stream = SINK.stream
		stream.write(
			f"!!! EXCP {f'{message}: ' if message else ''}[{exception.__class__.__name__}] {exception}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Must be safe to call from within an exception handler
		pass
	return exception


LOGGERS: dict[Callable[..., Any], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
	exception: LogLevel.Exception,
}


def logged(item: Callable[..., Any]) -> bool:
	"""Tells if the given logging function currently emits anything, this is
	used to guard hot paths as in `logged(debug) and debug(…)`."""
	level = LOGGERS.get(item)
	return True if level is None else SINK.accepts(level)


# EOF
