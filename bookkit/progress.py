"""Progress reporting and logging for preprocessors.

When stderr is a terminal, progress is drawn by a spinner running on a
background thread and log records are printed above it. Otherwise progress
updates are emitted as ordinary log records.
"""

from __future__ import annotations

import logging
import os
import queue
import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any

from .diagnostics import Level

CRATE_TARGET = "bookkit"
LOG_ENV = "BOOKKIT_LOG"

_LOGGER = logging.getLogger(CRATE_TARGET)

_TICKS = "⠇⠋⠙⠸⠴⠦⠿"
_TICK_INTERVAL = 0.1
_LONG_RUNNING = 10.0

_STYLES = {
    "bold": "1",
    "dim": "2",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
}


class MessageKind(Enum):
    """The kinds of progress messages."""

    CREATE = "create"
    UPDATE = "update"
    TASK = "task"
    DONE = "done"
    FINISH = "finish"


@dataclass(frozen=True)
class Message:
    """A progress message. ``key`` is the prefix of the bar it targets."""

    kind: MessageKind
    key: str
    text: str = ""
    total: int | None = None

    def __str__(self) -> str:
        match self.kind:
            case MessageKind.CREATE:
                return self.key
            case MessageKind.UPDATE | MessageKind.TASK:
                return f"{self.key} {self.text}"
            case MessageKind.DONE:
                return f"{self.key} {self.text} .. done"
            case MessageKind.FINISH:
                return f"{self.key} .. {self.text}"
        raise ValueError(f"unknown message kind {self.kind!r}")


def _colors_enabled() -> bool:
    if os.environ.get("CLICOLOR_FORCE", "") not in ("", "0"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CLICOLOR") == "0":
        return False
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


def styled(value: Any, *args: str) -> str:
    """Apply named terminal styles (``"red"``, ``"dim"``, ...) to ``value``."""
    codes = []
    for name in args:
        try:
            codes.append(_STYLES[name])
        except KeyError:
            raise ValueError(f"unknown style {name!r}") from None
    text = str(value)
    if not codes or not _colors_enabled():
        return text
    prefix = "".join(f"\x1b[{code}m" for code in codes)
    return f"{prefix}{text}\x1b[0m"


def _human_duration(seconds: float) -> str:
    units = (
        ("year", 365 * 86400),
        ("week", 7 * 86400),
        ("day", 86400),
        ("hour", 3600),
        ("minute", 60),
        ("second", 1),
    )
    for name, size in units:
        if seconds >= size:
            count = int(seconds // size)
            return f"{count} {name}{'' if count == 1 else 's'}"
    return "0 seconds"


@dataclass
class _Bar:
    prefix: str
    total: int | None
    display_prefix: str
    position: int = 0
    message: str = ""
    tick: int = 0
    started: float = field(default_factory=time.monotonic)


_STOP = object()


class Spinner:
    """A progress spinner drawn on ``stream`` by a background thread."""

    def __init__(self, name: str, stream: IO[str] | None = None) -> None:
        self.name = name
        self.stream = stream if stream is not None else sys.stderr
        self._queue: queue.Queue[Any] = queue.Queue()
        self._lock = threading.RLock()
        self._bar: _Bar | None = None
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=f"{name}-spinner", daemon=True)
        self._thread.start()

    def send(self, message: Message) -> None:
        """Queue a progress message for the spinner thread."""
        if not self._closed:
            self._queue.put(message)

    def close(self) -> None:
        """Stop the spinner thread after it has handled queued messages."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._thread.join()

    def _line(self, bar: _Bar, finished: bool) -> str:
        if finished:
            tick = _TICKS[-1]
        else:
            tick = _TICKS[bar.tick % (len(_TICKS) - 1)]
        return f"{styled(tick, 'cyan')} [{self.name}] {bar.display_prefix} ... {bar.message}"

    def _draw(self, finished: bool = False) -> None:
        with self._lock:
            bar = self._bar
            if bar is None:
                return
            self.stream.write("\r\x1b[2K" + self._line(bar, finished))
            if finished:
                self.stream.write("\n")
            self.stream.flush()

    def _write_line(self, text: str) -> None:
        with self._lock:
            if self._bar is not None:
                self.stream.write("\r\x1b[2K")
            self.stream.write(text + "\n")
            self.stream.flush()
            self._draw()

    def _counter(self, bar: _Bar) -> None:
        if bar.total is not None:
            counter = styled(f"({bar.position}/{bar.total})", "dim")
            bar.display_prefix = f"{bar.prefix} {counter}"

    def _handle(self, message: Message, tasks: set[str]) -> bool:
        """Apply a message; return True when a task was touched."""
        with self._lock:
            if message.kind is MessageKind.CREATE:
                if self._bar is not None:
                    self._draw(finished=True)
                self._bar = _Bar(message.key, message.total, message.key)
                self._draw()
                return False

            bar = self._bar
            if bar is None or message.key != bar.prefix:
                return False

            match message.kind:
                case MessageKind.UPDATE:
                    bar.message = message.text
                    self._draw()
                case MessageKind.FINISH:
                    bar.message = message.text
                    self._draw(finished=True)
                    self._bar = None
                case MessageKind.TASK:
                    self._counter(bar)
                    bar.message = styled(message.text, "magenta")
                    self._draw()
                    tasks.add(message.text)
                    return True
                case MessageKind.DONE:
                    bar.position += 1
                    self._counter(bar)
                    bar.message = styled(message.text, "green")
                    self._draw()
                    tasks.add(message.text)
                    return True
            return False

    def _run(self) -> None:
        tasks: set[str] = set()
        task_idx = 0
        interval = time.monotonic()

        while True:
            try:
                message = self._queue.get(timeout=_TICK_INTERVAL)
            except queue.Empty:
                message = None

            if message is _STOP:
                break

            if message is not None and self._handle(message, tasks):
                interval = time.monotonic()

            with self._lock:
                bar = self._bar
                if bar is None:
                    continue
                now = time.monotonic()
                if now - interval > _LONG_RUNNING:
                    interval = now
                    ordered = sorted(tasks)
                    if task_idx >= len(ordered):
                        task_idx = 0
                    if ordered:
                        task = ordered[task_idx]
                        elapsed = _human_duration(now - bar.started)
                        _LOGGER.warning(
                            "task %s - %s has been running for more than %s",
                            bar.prefix,
                            task,
                            elapsed,
                        )
                        bar.message = styled(task, "magenta")
                        task_idx += 1
                bar.tick += 1
                self._draw()

        with self._lock:
            if self._bar is not None:
                self._draw(finished=True)
                self._bar = None


_spinner_lock = threading.Lock()
_spinner: Spinner | None = None


def _current_spinner() -> Spinner | None:
    return _spinner


def _spinner_get_or_init(name: str) -> Spinner:
    global _spinner
    with _spinner_lock:
        if _spinner is None:
            _spinner = Spinner(name)
        return _spinner


def is_logging() -> bool:
    """True when progress is reported as log records instead of a spinner."""
    return _current_spinner() is None


class TaskHandle:
    """Marks a task as done when closed or when its ``with`` block ends."""

    def __init__(self, spinner: Spinner | None, done: Message) -> None:
        self._spinner = spinner
        self._done: Message | None = done

    def close(self) -> None:
        done, self._done = self._done, None
        if done is None:
            return
        if self._spinner is not None:
            self._spinner.send(done)
        else:
            _LOGGER.info("%s", done)

    def __enter__(self) -> TaskHandle:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class SpinnerHandle:
    """Sends progress to the global spinner, or logs it if there is none."""

    def _dispatch(self, message: Message) -> None:
        spinner = _current_spinner()
        if spinner is not None:
            spinner.send(message)
        else:
            _LOGGER.info("%s", message)

    def create(self, prefix: str, total: int | None = None) -> SpinnerHandle:
        self._dispatch(Message(MessageKind.CREATE, prefix, total=total))
        return self

    def update(self, prefix: str, update: Any) -> SpinnerHandle:
        self._dispatch(Message(MessageKind.UPDATE, prefix, str(update)))
        return self

    def task(self, prefix: str, task: Any) -> TaskHandle:
        text = str(task)
        opened = Message(MessageKind.TASK, prefix, text)
        done = Message(MessageKind.DONE, prefix, text)
        spinner = _current_spinner()
        if spinner is not None:
            spinner.send(opened)
            return TaskHandle(spinner, done)
        _LOGGER.info("%s", opened)
        return TaskHandle(None, done)

    def finish(self, prefix: str, update: Any) -> None:
        self._dispatch(Message(MessageKind.FINISH, prefix, str(update)))


def spinner() -> SpinnerHandle:
    """A handle for reporting progress."""
    return SpinnerHandle()


def _record_level(record: logging.LogRecord) -> Level:
    if record.levelno >= logging.ERROR:
        return Level.ERROR
    if record.levelno >= logging.WARNING:
        return Level.WARN
    if record.levelno >= logging.INFO:
        return Level.INFO
    if record.levelno >= logging.DEBUG:
        return Level.DEBUG
    return Level.TRACE


def _styled_log(message: str, level: Level) -> str:
    if level is Level.WARN:
        return styled(message, "yellow")
    if level is Level.ERROR:
        return styled(message, "red")
    if level is Level.INFO:
        return styled(message)
    return styled(message, "dim")


def log_format(record: logging.LogRecord) -> str:
    """Format a record as ``<time> [<LEVEL>] (<target>): <message>``."""
    level = _record_level(record)
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))
    message = f"{stamp} [{level.name}] ({record.name}): {record.getMessage()}"
    return _styled_log(message, level)


def _parse_level(text: str) -> Level | None:
    try:
        return Level[text.strip().upper()]
    except KeyError:
        return None


def _parse_filter(spec: str) -> tuple[Level, dict[str, Level]]:
    default: Level | None = None
    targets: dict[str, Level] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" in part:
            target, text = part.split("=", 1)
            level = _parse_level(text)
            if level is not None:
                targets[target.strip()] = level
            continue
        level = _parse_level(part)
        if level is not None:
            default = level
        else:
            targets[part] = Level.TRACE
    if default is None:
        default = Level.OFF if targets else Level.ERROR
    return default, targets


def _maybe_logging() -> Level | None:
    if os.environ.get(LOG_ENV):
        return None
    isatty = getattr(sys.stderr, "isatty", None)
    if not (isatty and isatty()):
        return Level.INFO
    return Level.OFF


class ConsoleLogger(logging.Handler):
    """A logging handler that draws a spinner on a terminal and logs otherwise.

    If ``BOOKKIT_LOG`` is set, records are filtered by its directives. If
    stderr is not a terminal, records at INFO and above are printed. Otherwise
    a spinner is started and records are printed above it.
    """

    def __init__(self, name: str) -> None:
        super().__init__(level=1)
        self._spinner: Spinner | None = None
        self._default = Level.ERROR
        self._targets: dict[str, Level] = {}
        level = _maybe_logging()
        if level is Level.OFF:
            self._spinner = _spinner_get_or_init(name)
            return
        self._default, self._targets = _parse_filter(os.environ.get(LOG_ENV, ""))
        if level is not None:
            self._default = level

    @classmethod
    def install(cls, name: str) -> ConsoleLogger:
        """Install as the root handler; fail if one is already installed."""
        try:
            return cls.try_install(name)
        except RuntimeError as error:
            raise RuntimeError("logger should not have been set") from error

    @classmethod
    def try_install(cls, name: str) -> ConsoleLogger:
        root = logging.getLogger()
        if any(isinstance(handler, ConsoleLogger) for handler in root.handlers):
            raise RuntimeError("a logger has already been installed")
        handler = cls(name)
        root.addHandler(handler)
        root.setLevel(1)
        return handler

    def _enabled(self, record: logging.LogRecord) -> bool:
        level = _record_level(record)
        if self._spinner is not None:
            if record.name.startswith(CRATE_TARGET):
                return level <= Level.INFO
            return level <= Level.WARN
        limit = self._default
        best = -1
        for target, target_level in self._targets.items():
            if record.name.startswith(target) and len(target) > best:
                best = len(target)
                limit = target_level
        return level <= limit

    def emit(self, record: logging.LogRecord) -> None:
        if not self._enabled(record):
            return
        try:
            message = log_format(record)
            if self._spinner is not None:
                self._spinner._write_line(message.rstrip())
            else:
                sys.stderr.write(message + "\n")
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        stream = self._spinner.stream if self._spinner is not None else sys.stderr
        try:
            stream.flush()
        except (OSError, ValueError):
            pass