# bookkit

Building blocks and small tools for working with mdBook books from Python:
preprocessor plumbing, Markdown diagnostics, progress reporting, Markdown
patching that keeps the original whitespace, documentation generated from
`argparse` parsers, and an HTML postprocessor that adds social-media metadata
to a built book.

## Installation

```
pip install bookkit
```

For running the test suite:

```
pip install "bookkit[test]"
pytest
```

## Modules

- `bookkit.env`: preprocessor plumbing. `book_from_stdin()` reads the
  `[context, book]` pair mdBook sends to a preprocessor and
  `book_into_stdout(book)` writes the book back as compact JSON.
  `iter_chapters(book)` yields `(path, chapter)` for every chapter with a
  source path, parents before children; `for_each_chapter(book, func)` calls
  `func(path, chapter)` on them, children first. `config_from_book(config,
  name, factory)` builds options from the `[preprocessor.<name>]` table (or
  calls `factory()` when there is none), and `smart_punctuation(config)` reads
  `output.html.smart-punctuation`, defaulting to `True`.
  `ErrorHandling` decides whether warnings fail the build: `ENV` (`"ci"`)
  fails on warnings only when `is_ci()` finds the `CI` environment variable set
  to something other than empty, `0` or `false`; `ALWAYS` fails on any
  warning. Errors always fail. Failures are raised as `PreprocessorError`.
- `bookkit.markdown`: `PatchStream(source, stream)` splices replacements into
  a Markdown source at `(start, end)` spans, leaving everything else as it
  was; `into_string()` returns the patched text. Spans that go backwards raise
  `ValueError`. `mdbook_markdown()` returns the `MarkdownOptions` mdBook
  enables (tables, footnotes, strikethrough, task lists, heading attributes).
- `bookkit.diagnostics`: describe a kind of problem with `Issue(title,
  level)`, tie it to a source location with `Problem(issue, LabeledSpan(offset,
  length, label))`, and collect problems per file as `Diagnostics`. A
  `ReportBuilder` filters them by `Level`, names the files, and builds a
  `Reporter` whose `to_report()` gives a graphical report with source
  snippets, `to_logs()` gives `path:line:column` log lines, and `to_stderr()`
  prints one or the other.
- `bookkit.progress`: `spinner()` returns a `SpinnerHandle` with `create`,
  `update`, `task` and `finish`. When a `ConsoleLogger` has been installed on
  a terminal, progress is drawn by a background `Spinner`; otherwise it is
  logged. `task()` returns a `TaskHandle` that marks the task done when closed
  or when its `with` block ends. `ConsoleLogger.install(name)` adds the
  handler to the root logger; the `BOOKKIT_LOG` environment variable (e.g.
  `info` or `bookkit=debug`) switches to plain filtered log lines.
- `bookkit.reflect`: `describe_options(parser)` turns the long options of an
  `argparse` parser into Markdown/HTML documentation (choices are documented
  when given as a mapping of value to description); `option_tag(name)` gives
  the `<name>(autogenerated)</name>` placeholder and
  `replace_in_book(book, tag, content)` substitutes it in every chapter.

## Commands

### `bookkit-socials`

Postprocesses the HTML output of a built book:

```
bookkit-socials path/to/book
```

It reads `book.toml` in the given directory and rewrites every HTML page in
the build directory (default `book`) that has a matching Markdown file in the
source directory (default `src`):

- sets `<title>` to the page's first heading, followed by the titles of the
  enclosing sections, innermost first;
- inserts OpenGraph and Twitter card `<meta>` tags, built from the first
  heading and first paragraph of `<main>`, before the description meta tag,
  and removes existing `og:` tags;
- sets the page description and theme colour (default `#00000000`);
- adds explicit `width` and `height` to local images, and a fixed height to
  shields.io badges.

It is configured under a `[_metadata]` table in `book.toml`:

```toml
[_metadata]
base-url = "https://example.com/book/"
default-theme-color = "#d2a6ff"

[_metadata.socials."/guide/"]
title = "Guide"
image = "src/guide/cover.png"
```

Keys of `socials` are path prefixes. Image paths are relative to `book.toml`
and are published under `base-url`; the last matching prefix, in sorted
order, that has an image supplies the page image.

### `bookkit-analyzer`

Fetches a rust-analyzer release for local use and runs it:

```
bookkit-analyzer download
bookkit-analyzer analyzer --version
bookkit-analyzer --ra-version 2025-03-17 download
bookkit-analyzer --ra-path ./bin/rust-analyzer download
```

The default release is `2025-03-17`. Without `--ra-path`, the binary is stored
under `.bin/rust-analyzer/<release>/` in the nearest directory containing a
`Cargo.lock`. `analyzer` downloads the binary if it is missing, runs it with
the remaining arguments and exits with its exit code. `version` acts as an
mdBook preprocessor that replaces `<ra-version>(version)</ra-version>` in
every chapter with the release in use; `version supports <renderer>` always
succeeds.

## Small examples

```python
from bookkit.socials import collapse_whitespace
from bookkit.reflect import option_tag

collapse_whitespace("  Getting\n   started ")   # "Getting started "
option_tag("link-forever-options")
# "<link-forever-options>(autogenerated)</link-forever-options>"
```

## What is not included

The package provides the plumbing for preprocessors but no ready-made
preprocessor that resolves or rewrites links in a book; those have to be
written on top of `bookkit.env`, `bookkit.markdown` and
`bookkit.diagnostics`. It also has no Markdown parser or renderer of its own:
`PatchStream` takes replacements that are already rendered text.