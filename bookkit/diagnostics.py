"""Diagnostics for Markdown files, rendered as graphical reports or log lines."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

_LOGGER = logging.getLogger("bookkit")


class Level(IntEnum):
    """Severity levels; lower values are more severe. OFF filters out everything."""

    OFF = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5

    @property
    def logging_level(self) -> int:
        """The matching level of the standard logging module."""
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS = {
    Level.OFF: logging.CRITICAL + 10,
    Level.ERROR: logging.ERROR,
    Level.WARN: logging.WARNING,
    Level.INFO: logging.INFO,
    Level.DEBUG: logging.DEBUG,
    Level.TRACE: 5,
}

_ANSI = {
    Level.TRACE: "2",
    Level.DEBUG: "35",
    Level.INFO: "32",
    Level.WARN: "33",
    Level.ERROR: "31",
}


class Issue:
    """A class of diagnostics, like an error code.

    The title should be plural, since reports may group several problems
    of the same issue together.
    """

    __slots__ = ("title", "_level")

    def __init__(self, title: str, level: Level) -> None:
        self.title = title
        self._level = Level(level)

    def level(self) -> Level:
        return self._level

    def __str__(self) -> str:
        return self.title

    def __repr__(self) -> str:
        return f"Issue({self.title!r}, {self._level.name})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Issue):
            return NotImplemented
        return (self.title, self._level) == (other.title, other._level)

    def __hash__(self) -> int:
        return hash((self.title, self._level))


@dataclass(frozen=True)
class LabeledSpan:
    """A span of the Markdown source, with an optional message."""

    offset: int
    length: int
    label: str | None = None


class Problem:
    """A specific message tied to an issue and a location in the source."""

    def __init__(self, issue: Issue, label: LabeledSpan) -> None:
        self._issue = issue
        self._label = label

    def issue(self) -> Issue:
        return self._issue

    def label(self) -> LabeledSpan:
        return self._label

    def __repr__(self) -> str:
        return f"Problem({self._issue!r}, {self._label!r})"


def _severity(level: Level) -> str:
    if level == Level.ERROR:
        return "error"
    if level == Level.WARN:
        return "warning"
    return "info"


def _paint(text: str, level: Level, colored: bool) -> str:
    code = _ANSI.get(level)
    if not colored or code is None:
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _locate(text: str, offset: int) -> tuple[int, int, str]:
    """Return the zero-based line, column and line text at an offset."""
    offset = max(0, min(offset, len(text)))
    start = text.rfind("\n", 0, offset) + 1
    end = text.find("\n", offset)
    if end == -1:
        end = len(text)
    return text.count("\n", 0, offset), offset - start, text[start:end]


class Diagnostics:
    """A collection of problems found in one Markdown file."""

    def __init__(self, text: str, name: Any, issues: Iterable[Problem], kind: Issue) -> None:
        self.text = text
        self.name = name
        self.issues = list(issues)
        self.kind = kind

    def status(self) -> Issue:
        """The most severe issue, or ``kind`` when there are no problems."""
        return min((p.issue() for p in self.issues), key=lambda i: i.level(), default=self.kind)

    def filtered(self, level: Level) -> Diagnostics | None:
        """Keep problems at or above ``level``; None if none are left."""
        kept = [p for p in self.issues if p.issue().level() <= level]
        if not kept:
            return None
        return Diagnostics(self.text, self.name, kept, self.kind)

    def to_report(self, colored: bool = True) -> str:
        """Render a graphical report with source snippets."""
        status = self.status()
        status_level = status.level()
        header = _paint(f"{_severity(status_level)}:", status_level, colored)
        out = [f"  {header} {status}"]

        labelled = sorted(
            ((p.label(), p.issue().level()) for p in self.issues),
            key=lambda item: item[0].offset,
        )
        if not labelled:
            out.append(f"  help: in {self.name}")
            return "\n".join(out) + "\n"

        located = [(_locate(self.text, span.offset), span, level) for span, level in labelled]
        width = len(str(max(line for (line, _, _), _, _ in located) + 1))
        pad = " " * width
        (first_line, first_col, _), _, _ = located[0]
        out.append(f"{pad} ╭─[{self.name}:{first_line + 1}:{first_col + 1}]")
        for (line, col, source), span, level in located:
            source = source.rstrip("\r")
            out.append(f"{line + 1:>{width}} │ {source}")
            mark = "─" * max(1, min(span.length, len(source) - col))
            note = f" {span.label}" if span.label else ""
            out.append(f"{pad} · {' ' * col}{_paint(mark + note, level, colored)}")
        out.append(f"{pad} ╰────")
        return "\n".join(out) + "\n"

    def to_logs(self) -> str:
        """Render the problems as plain log lines."""
        status = self.status()
        name = "<anonymous>" if self.name is None else str(self.name)
        parts = [f"{_severity(status.level())}: {status}"]
        if not self.issues:
            parts.append(f"help: in {self.name}")
        for problem in self.issues:
            span = problem.label()
            line, col, _ = _locate(self.text, span.offset)
            location = f"  {name}:{line + 1}:{col + 1}"
            parts.append(f"{location}: {span.label}" if span.label else location)
        return "\n".join(parts)

    def __str__(self) -> str:
        return str(self.status())

    def __repr__(self) -> str:
        return repr(self.status())


class ReportBuilder:
    """Configure how diagnostics over several files are printed."""

    def __init__(self, items: Iterable[Diagnostics], print_name: Callable[[Any], str]) -> None:
        self.items = list(items)
        self.print_name = print_name
        self.log_filter = Level.TRACE
        self.is_colored = True
        self.is_logging = True

    def names(self, print_name: Callable[[Any], str]) -> ReportBuilder:
        """Specify how file names should be printed."""
        self.print_name = print_name
        return self

    def level(self, level: Level) -> ReportBuilder:
        self.log_filter = Level(level)
        return self

    def colored(self, colored: bool) -> ReportBuilder:
        self.is_colored = colored
        return self

    def logging(self, logging: bool) -> ReportBuilder:
        self.is_logging = logging
        return self

    def build(self) -> Reporter:
        kept = []
        for diag in self.items:
            if diag.status().level() > self.log_filter:
                continue
            narrowed = diag.filtered(self.log_filter)
            if narrowed is None:
                continue
            kept.append(
                Diagnostics(narrowed.text, self.print_name(narrowed.name), narrowed.issues, narrowed.kind)
            )
        default = self.items[0].kind if self.items else None
        return Reporter(kept, self.is_colored, self.is_logging, default)


class Reporter:
    """Prints a set of filtered diagnostics."""

    def __init__(
        self,
        items: list[Diagnostics],
        colored: bool = True,
        logging: bool = True,
        default: Issue | None = None,
    ) -> None:
        self.items = items
        self.colored = colored
        self.logging = logging
        self.default = default

    def to_status(self) -> Issue | None:
        """The most severe issue over all files."""
        return min((d.status() for d in self.items), key=lambda i: i.level(), default=self.default)

    def to_stderr(self) -> Reporter:
        if not self.items:
            return self
        if self.logging:
            status = self.to_status()
            _LOGGER.log(status.level().logging_level, "%s", self.to_logs())
        else:
            report = self.to_report()
            for handler in logging.getLogger().handlers:
                handler.flush()
            sys.stderr.write(f"\n\n{report}")
        return self

    def to_report(self) -> str:
        return "".join(f"{d.to_report(self.colored)}\n" for d in self.items)

    def to_logs(self) -> str:
        return "".join(f"{d.to_logs()}\n" for d in self.items)