"""Environment, configuration and book I/O for preprocessors."""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable, Iterable, Iterator, Mapping
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from .diagnostics import Level

T = TypeVar("T")


def is_ci() -> str | None:
    """Return the value of ``CI`` unless it is unset, empty, ``0`` or ``false``."""
    ci = os.environ.get("CI", "")
    if ci in ("", "0", "false"):
        return None
    return ci


class PreprocessorError(Exception):
    """Raised when a preprocessor must fail."""


class ErrorHandling(Enum):
    """How to proceed when there are warnings. ``ENV`` is the default."""

    ENV = "ci"
    ALWAYS = "always"

    def check(self, level: Level) -> None:
        """Raise PreprocessorError if ``level`` should fail the build."""
        if level == Level.ERROR:
            raise PreprocessorError("preprocessor has errors")
        if level != Level.WARN:
            return
        if self is ErrorHandling.ALWAYS:
            reason = 'treating warnings as errors because fail-on-unresolved is "always"'
        else:
            ci = is_ci()
            if ci is None:
                return
            reason = f'treating warnings as errors because fail-on-unresolved is "ci" and CI={ci}'
        raise PreprocessorError("preprocessor has errors") from PreprocessorError(reason)

    def adjusted(self, warning: BaseException | None) -> BaseException | None:
        """Raise a soft failure when running in CI; otherwise hand it back."""
        if warning is not None and is_ci() is not None:
            raise warning
        return warning


def string_from_stdin() -> str:
    """Read all of stdin as UTF-8."""
    return sys.stdin.buffer.read().decode("utf-8")


def book_from_stdin() -> tuple[dict[str, Any], dict[str, Any]]:
    """Read the ``[context, book]`` pair a preprocessor is given."""
    data = json.loads(string_from_stdin())
    if not isinstance(data, list) or len(data) != 2:
        raise ValueError("expected a [context, book] pair on stdin")
    context, book = data
    return context, book


def config_from_book(config: Mapping[str, Any], name: str, factory: Callable[..., T]) -> T:
    """Build a preprocessor's options from its table, or with defaults if absent."""
    table = (config.get("preprocessor") or {}).get(name)
    if isinstance(table, Mapping):
        return factory(dict(table))
    return factory()


def smart_punctuation(config: Mapping[str, Any]) -> bool:
    """Whether the HTML renderer uses smart punctuation (default True)."""
    value: Any = config
    for key in ("output", "html", "smart-punctuation"):
        if not isinstance(value, Mapping) or key not in value:
            return True
        value = value[key]
    return value if isinstance(value, bool) else True


def _chapter(item: Any) -> dict[str, Any] | None:
    if isinstance(item, Mapping) and isinstance(item.get("Chapter"), Mapping):
        return item["Chapter"]
    return None


def _pre_order(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    for item in items:
        chapter = _chapter(item)
        if chapter is not None:
            yield chapter
            yield from _pre_order(chapter.get("sub_items") or [])


def _post_order(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    for item in items:
        chapter = _chapter(item)
        if chapter is not None:
            yield from _post_order(chapter.get("sub_items") or [])
            yield chapter


def iter_chapters(book: Mapping[str, Any]) -> Iterator[tuple[Path, dict[str, Any]]]:
    """Yield chapters that have a source file, parents before children."""
    for chapter in _pre_order(book.get("sections") or []):
        source = chapter.get("source_path")
        if source is not None:
            yield Path(source), chapter


def for_each_chapter(book: Mapping[str, Any], func: Callable[[Path, dict[str, Any]], None]) -> None:
    """Call ``func`` on each chapter with a source file, children first."""
    for chapter in _post_order(book.get("sections") or []):
        source = chapter.get("source_path")
        if source is not None:
            func(Path(source), chapter)


def book_into_stdout(book: Mapping[str, Any]) -> None:
    """Write the book to stdout as compact JSON."""
    try:
        output = json.dumps(book, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as error:
        raise PreprocessorError("failed to serialize book") from error
    try:
        sys.stdout.write(output)
        sys.stdout.flush()
    except OSError as error:
        raise PreprocessorError("failed to write book to stdout") from error