import pytest

from bookkit.markdown import MarkdownOptions, PatchStream, mdbook_markdown

SOURCE = "hello world!\n\n  > [!NOTE]\n  > keep   spacing\n"


def test_no_patches_keeps_source():
    assert PatchStream(SOURCE, []).into_string() == SOURCE


def test_single_patch():
    start = SOURCE.index("world")
    stream = [("there", (start, start + len("world")))]
    assert PatchStream(SOURCE, stream).into_string() == SOURCE.replace("world", "there")


def test_chunks_are_yielded_in_order():
    chunks = list(PatchStream("hello world!", [("there", (6, 11))]))
    assert chunks == ["hello ", "there", "!"]


def test_iterable_replacement_and_range_span():
    source = "a [b] c"
    stream = [(iter(["[", "B", "]"]), range(2, 5))]
    assert PatchStream(source, stream).into_string() == source.replace("[b]", "[B]")


def test_identity_patches_preserve_whitespace():
    spans = [(i, i + 1) for i in range(0, len(SOURCE), 3)]
    stream = ((SOURCE[a:b], (a, b)) for a, b in spans)
    assert PatchStream(SOURCE, stream).into_string() == SOURCE


def test_adjacent_patches():
    source = "abcdef"
    stream = [("X", (1, 2)), ("Y", (2, 3))]
    assert PatchStream(source, stream).into_string() == "aXYdef"


def test_backwards_span_raises():
    stream = [("x", (5, 8)), ("y", (6, 7))]
    with pytest.raises(ValueError, match="backwards"):
        PatchStream(SOURCE, stream).into_string()


def test_mdbook_markdown_flags():
    options = mdbook_markdown()
    for flag in (
        MarkdownOptions.ENABLE_TABLES,
        MarkdownOptions.ENABLE_FOOTNOTES,
        MarkdownOptions.ENABLE_STRIKETHROUGH,
        MarkdownOptions.ENABLE_TASKLISTS,
        MarkdownOptions.ENABLE_HEADING_ATTRIBUTES,
    ):
        assert flag in options
    assert MarkdownOptions.ENABLE_SMART_PUNCTUATION not in options