"""Markdown helpers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import IntFlag
from typing import Union

Span = Union[range, slice, tuple[int, int]]
Spanned = tuple[Union[str, Iterable[str]], Span]


class MarkdownOptions(IntFlag):
    """Markdown extensions a parser may enable."""

    NONE = 0
    ENABLE_TABLES = 1 << 1
    ENABLE_FOOTNOTES = 1 << 2
    ENABLE_STRIKETHROUGH = 1 << 3
    ENABLE_TASKLISTS = 1 << 4
    ENABLE_SMART_PUNCTUATION = 1 << 5
    ENABLE_HEADING_ATTRIBUTES = 1 << 6


def _bounds(span: Span) -> tuple[int, int]:
    if isinstance(span, (range, slice)):
        return span.start, span.stop
    start, end = span
    return start, end


class PatchStream:
    """Patch spans of a Markdown source instead of regenerating it whole.

    ``stream`` yields ``(replacement, span)`` pairs, where ``replacement`` is
    Markdown text (or an iterable of text chunks) and ``span`` is the
    ``(start, end)`` range of ``source`` it replaces. Spans must not overlap
    or go backwards; a ValueError is raised if they do.
    """

    def __init__(self, source: str, stream: Iterable[Spanned]) -> None:
        self.source = source
        self.stream = stream

    def __iter__(self) -> Iterator[str]:
        start = 0
        for replacement, span in self.stream:
            begin, end = _bounds(span)
            if start > begin:
                raise ValueError(
                    f"span {begin}..{end} is backwards from already yielded span ending at {start}"
                )
            patch = replacement if isinstance(replacement, str) else "".join(replacement)
            yield self.source[start:begin]
            yield patch
            start = end
        yield self.source[start:]

    def into_string(self) -> str:
        """Render the patched Markdown source."""
        return "".join(self)


def mdbook_markdown() -> MarkdownOptions:
    """The extensions mdBook enables when parsing Markdown."""
    return (
        MarkdownOptions.ENABLE_TABLES
        | MarkdownOptions.ENABLE_FOOTNOTES
        | MarkdownOptions.ENABLE_STRIKETHROUGH
        | MarkdownOptions.ENABLE_TASKLISTS
        | MarkdownOptions.ENABLE_HEADING_ATTRIBUTES
    )