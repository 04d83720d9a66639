"""Severity-based logging with verbosity levels.

A :class:`Logger` owns one writer per severity (INFO, WARNING, ERROR, FATAL,
PANIC).  A message of a given severity is written to the writer of that
severity and to the writers of every lower severity, so a FATAL message
reaches the FATAL, ERROR, WARNING and INFO writers.  Pass :data:`DISCARD`
for a writer to suppress output at that level.

Every line carries the logger prefix and a ``YYYY/MM/DD HH:MM:SS`` timestamp,
and ends with a newline.  ``fatal`` exits the process with status 1 and
``panic`` raises :class:`LogPanic` after writing the message.
"""

from __future__ import annotations

import enum
import json
import re
import sys
import threading
import time
from typing import Any, Protocol, Sequence

__all__ = [
    "DEFAULT_LOGGER",
    "DISCARD",
    "LogPanic",
    "Logger",
    "Verbose",
    "new_logger",
    "v",
    "info",
    "infof",
    "warning",
    "warningf",
    "error",
    "errorf",
    "fatal",
    "fatalf",
    "panic",
    "panicf",
]


class _Writer(Protocol):
    def write(self, text: str) -> Any: ...


class _Severity(enum.IntEnum):
    INFO = 0
    WARNING = 1
    ERROR = 2
    FATAL = 3
    PANIC = 4


_NUM_SEVERITY = len(_Severity)


class LogPanic(Exception):
    """Raised by ``panic``/``panicf`` after the message has been logged."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class _Discard:
    """A writer that drops everything written to it."""

    def write(self, text: str) -> int:
        return len(text)

    def __repr__(self) -> str:
        return "DISCARD"


class _Stderr:
    """A writer that resolves ``sys.stderr`` at write time."""

    def write(self, text: str) -> int:
        return sys.stderr.write(text)

    def flush(self) -> None:
        sys.stderr.flush()

    def __repr__(self) -> str:
        return "STDERR"


DISCARD: _Writer = _Discard()
_STDERR: _Writer = _Stderr()


# ---------------------------------------------------------------------------
# Go-style value formatting
# ---------------------------------------------------------------------------

def _type_name(value: Any) -> str:
    if value is None:
        return "<nil>"
    return type(value).__name__


def _go_str(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "<nil>"
    if isinstance(value, (bytes, bytearray)):
        return "[" + " ".join(str(b) for b in value) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_go_str(item) for item in value) + "]"
    if isinstance(value, dict):
        inner = " ".join(f"{_go_str(k)}:{_go_str(val)}" for k, val in value.items())
        return "map[" + inner + "]"
    return str(value)


def _sprint(args: Sequence[Any]) -> str:
    """Concatenate operands, adding a space between two non-string operands."""
    parts: list[str] = []
    previous_is_str = True
    for index, arg in enumerate(args):
        is_str = isinstance(arg, str)
        if index > 0 and not is_str and not previous_is_str:
            parts.append(" ")
        parts.append(_go_str(arg))
        previous_is_str = is_str
    return "".join(parts)


_VERB = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")


def _bad_verb(verb: str, arg: Any) -> str:
    return f"%!{verb}({_type_name(arg)}={_go_str(arg)})"


def _pad(text: str, flags: str, width: str | None) -> str:
    if not width:
        return text
    size = int(width)
    if "-" in flags:
        return text.ljust(size)
    if "0" in flags:
        return text.rjust(size, "0")
    return text.rjust(size)


def _format_verb(arg: Any, flags: str, width: str | None, prec: str | None, verb: str) -> str:
    spec = "%" + flags + (width or "") + ("." + prec if prec else "")

    if verb in ("v", "s"):
        if verb == "s" and isinstance(arg, (bytes, bytearray)):
            text = bytes(arg).decode("utf-8", errors="replace")
        else:
            text = _go_str(arg)
        if prec:
            text = text[: int(prec)]
        return _pad(text, flags.replace("0", ""), width)

    if verb == "T":
        return _pad(_type_name(arg), flags, width)

    if verb == "t":
        if isinstance(arg, bool):
            return _pad(_go_str(arg), flags, width)
        return _bad_verb(verb, arg)

    if verb == "q":
        if isinstance(arg, (bytes, bytearray)):
            arg = bytes(arg).decode("utf-8", errors="replace")
        if isinstance(arg, str):
            return _pad(json.dumps(arg, ensure_ascii=False), flags, width)
        if isinstance(arg, int) and not isinstance(arg, bool):
            return _pad("'" + chr(arg) + "'", flags, width)
        return _bad_verb(verb, arg)

    if verb in ("x", "X"):
        if isinstance(arg, str):
            arg = arg.encode("utf-8")
        if isinstance(arg, (bytes, bytearray)):
            text = bytes(arg).hex()
            return _pad(text.upper() if verb == "X" else text, flags, width)
        if isinstance(arg, int) and not isinstance(arg, bool):
            return (spec + verb) % arg
        return _bad_verb(verb, arg)

    if verb in ("d", "o", "b", "c"):
        if not isinstance(arg, int) or isinstance(arg, bool):
            return _bad_verb(verb, arg)
        if verb == "d":
            return (spec + "d") % arg
        if verb == "o":
            return (spec + "o") % arg
        if verb == "c":
            return _pad(chr(arg), flags, width)
        return _pad(format(arg, "b"), flags, width)

    if verb in ("f", "F", "e", "E", "g", "G"):
        if isinstance(arg, bool) or not isinstance(arg, (int, float)):
            return _bad_verb(verb, arg)
        conversion = "f" if verb == "F" else verb
        if verb in ("f", "F", "e", "E") and not prec:
            spec += ".6"
        return (spec + conversion) % arg

    return _bad_verb(verb, arg)


def _sprintf(fmt: str, args: Sequence[Any]) -> str:
    """Format ``args`` with Go-style printf verbs."""
    position = 0

    def replace(match: re.Match[str]) -> str:
        nonlocal position
        flags, width, prec, verb = match.groups()
        if verb == "%":
            return "%"
        if position >= len(args):
            return f"%!{verb}(MISSING)"
        arg = args[position]
        position += 1
        return _format_verb(arg, flags, width, prec, verb)

    out = _VERB.sub(replace, fmt)
    if position < len(args):
        extra = ", ".join(f"{_type_name(a)}={_go_str(a)}" for a in args[position:])
        out += f"%!(EXTRA {extra})"
    return out


# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------

class Logger:
    """Writes severity-tagged lines to per-severity writers."""

    def __init__(self, verbosity: int = 0, prefix: str = "", writers: Sequence[_Writer] = ()) -> None:
        chosen = list(writers) or [_STDERR]
        while len(chosen) < _NUM_SEVERITY:
            chosen.append(chosen[-1])
        self.verbosity = verbosity
        self.prefix = prefix
        self._writers = chosen[:_NUM_SEVERITY]
        self._lock = threading.Lock()

    def _output(self, severity: _Severity, message: str) -> None:
        line = f"{self.prefix}{time.strftime('%Y/%m/%d %H:%M:%S')} {severity.name}: {message}"
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            for writer in self._writers[: severity + 1]:
                writer.write(line)
                flush = getattr(writer, "flush", None)
                if callable(flush):
                    flush()

    def info(self, *args: Any) -> None:
        """Log to the INFO writer."""
        self._output(_Severity.INFO, _sprint(args))

    def infof(self, fmt: str, *args: Any) -> None:
        """Log a formatted message to the INFO writer."""
        self._output(_Severity.INFO, _sprintf(fmt, args))

    def warning(self, *args: Any) -> None:
        """Log to the WARNING and INFO writers."""
        self._output(_Severity.WARNING, _sprint(args))

    def warningf(self, fmt: str, *args: Any) -> None:
        """Log a formatted message to the WARNING and INFO writers."""
        self._output(_Severity.WARNING, _sprintf(fmt, args))

    def error(self, *args: Any) -> None:
        """Log to the ERROR, WARNING and INFO writers."""
        self._output(_Severity.ERROR, _sprint(args))

    def errorf(self, fmt: str, *args: Any) -> None:
        """Log a formatted message to the ERROR, WARNING and INFO writers."""
        self._output(_Severity.ERROR, _sprintf(fmt, args))

    def fatal(self, *args: Any) -> None:
        """Log at FATAL severity, then exit with status 1."""
        self._output(_Severity.FATAL, _sprint(args))
        sys.exit(1)

    def fatalf(self, fmt: str, *args: Any) -> None:
        """Log a formatted message at FATAL severity, then exit with status 1."""
        self._output(_Severity.FATAL, _sprintf(fmt, args))
        sys.exit(1)

    def panic(self, *args: Any) -> None:
        """Log at PANIC severity, then raise :class:`LogPanic`."""
        message = _sprint(args)
        self._output(_Severity.PANIC, message)
        raise LogPanic(message)

    def panicf(self, fmt: str, *args: Any) -> None:
        """Log a formatted message at PANIC severity, then raise :class:`LogPanic`."""
        message = _sprintf(fmt, args)
        self._output(_Severity.PANIC, message)
        raise LogPanic(message)

    def v(self, level: int) -> "Verbose":
        """Return a view that logs only if ``level`` is within the verbosity."""
        return Verbose(self, level)


class Verbose:
    """Logging view guarded by a verbosity level."""

    def __init__(self, logger: Logger, level: int) -> None:
        self._logger = logger
        self.level = level

    def enabled(self) -> bool:
        """Whether this level is enabled on the underlying logger."""
        return self.level <= self._logger.verbosity

    def info(self, *args: Any) -> None:
        if self.enabled():
            self._logger.info(*args)

    def infof(self, fmt: str, *args: Any) -> None:
        if self.enabled():
            self._logger.infof(fmt, *args)

    def warning(self, *args: Any) -> None:
        if self.enabled():
            self._logger.warning(*args)

    def warningf(self, fmt: str, *args: Any) -> None:
        if self.enabled():
            self._logger.warningf(fmt, *args)

    def error(self, *args: Any) -> None:
        if self.enabled():
            self._logger.error(*args)

    def errorf(self, fmt: str, *args: Any) -> None:
        if self.enabled():
            self._logger.errorf(fmt, *args)


def new_logger(verbosity: int, prefix: str, *args: _Writer) -> Logger:
    """Create a logger from per-severity writers.

    Writers are given in severity order (INFO, WARNING, ERROR, FATAL, PANIC).
    Missing writers are filled with the last one given; with none at all,
    standard error is used.
    """
    return Logger(verbosity, prefix, args)


DEFAULT_LOGGER: Logger = new_logger(0, "", _STDERR, DISCARD)


def v(level: int) -> Verbose:
    """Verbosity-guarded view of the default logger."""
    return DEFAULT_LOGGER.v(level)


def info(*args: Any) -> None:
    DEFAULT_LOGGER.info(*args)


def infof(fmt: str, *args: Any) -> None:
    DEFAULT_LOGGER.infof(fmt, *args)


def warning(*args: Any) -> None:
    DEFAULT_LOGGER.warning(*args)


def warningf(fmt: str, *args: Any) -> None:
    DEFAULT_LOGGER.warningf(fmt, *args)


def error(*args: Any) -> None:
    DEFAULT_LOGGER.error(*args)


def errorf(fmt: str, *args: Any) -> None:
    DEFAULT_LOGGER.errorf(fmt, *args)


def fatal(*args: Any) -> None:
    DEFAULT_LOGGER.fatal(*args)


def fatalf(fmt: str, *args: Any) -> None:
    DEFAULT_LOGGER.fatalf(fmt, *args)


def panic(*args: Any) -> None:
    DEFAULT_LOGGER.panic(*args)


def panicf(fmt: str, *args: Any) -> None:
    DEFAULT_LOGGER.panicf(fmt, *args)