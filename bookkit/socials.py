"""Post-process built HTML pages: social metadata and explicit image sizes.

Adds OpenGraph metadata to each page built from a Markdown source, and sets
explicit widths and heights on local images.
"""

from __future__ import annotations

import argparse
import os
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import jinja2
from bs4 import BeautifulSoup
from PIL import Image

DEFAULT_THEME_COLOR = "#00000000"

OPEN_GRAPH = """
    <meta property="og:type"            content="article">
    <meta property="og:title"           content="{{ og_title }}">
    <meta property="og:url"             content="{{ og_url }}">
    <meta property="og:image"           content="{{ og_image }}">
    <meta property="og:description"     content="{{ og_description }}">
    <meta property="og:site_name"       content="{{ og_site_name }}">
    <meta name="twitter:card"           content="summary_large_image">
    <meta name="twitter:title"          content="{{ og_title }}">
    <meta name="twitter:image"          content="{{ og_image }}">
    <meta name="twitter:image:alt"      content="toolkit for mdbook">
    <meta name="twitter:description"    content="{{ og_description }}">
    <meta name="theme-color"            content="#d2a6ff">
"""

_JINJA = jinja2.Environment(
    autoescape=True,
    finalize=lambda value: "none" if value is None else value,
)
_OPEN_GRAPH_TEMPLATE = _JINJA.from_string(OPEN_GRAPH)

_WHITESPACE = " \n\t"


@dataclass(frozen=True)
class PageMetadata:
    """Title and image for pages under a path prefix."""

    title: str | None = None
    image: str | None = None


def _table(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if not isinstance(value, Mapping):
        raise ValueError(f"book.toml: missing table [{key}]")
    return value


def _optional_str(table: Mapping[str, Any], key: str) -> str | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"book.toml: {key} must be a string")
    return value


@dataclass
class BookToml:
    """The parts of ``book.toml`` this tool reads."""

    base_url: str
    title: str | None = None
    src: str | None = None
    build_dir: str | None = None
    default_theme_color: str | None = None
    socials: dict[str, PageMetadata] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> BookToml:
        """Read and validate a ``book.toml`` file."""
        with open(path, "rb") as file:
            data = tomllib.load(file)
        book = _table(data, "book")
        build = _table(data, "build")
        metadata = _table(data, "_metadata")

        base_url = metadata.get("base-url")
        if not isinstance(base_url, str) or not urlsplit(base_url).scheme:
            raise ValueError("book.toml: _metadata.base-url must be an absolute URL")

        socials_table = metadata.get("socials") or {}
        if not isinstance(socials_table, Mapping):
            raise ValueError("book.toml: _metadata.socials must be a table")
        socials = {}
        for prefix, entry in socials_table.items():
            if not isinstance(entry, Mapping):
                raise ValueError(f"book.toml: socials entry {prefix!r} must be a table")
            socials[prefix] = PageMetadata(
                title=_optional_str(entry, "title"),
                image=_optional_str(entry, "image"),
            )

        return cls(
            base_url=base_url,
            title=_optional_str(book, "title"),
            src=_optional_str(book, "src"),
            build_dir=_optional_str(build, "build-dir"),
            default_theme_color=_optional_str(metadata, "default-theme-color"),
            socials=socials,
        )


def collapse_whitespace(src: str) -> str:
    """Collapse runs of spaces, tabs and newlines into single spaces; drop leading ones."""
    out = []
    last: str | None = None
    for ch in src:
        if ch in _WHITESPACE:
            if last is not None and last not in _WHITESPACE:
                out.append(" ")
        else:
            out.append(ch)
        last = ch
    return "".join(out)


def page_title(
    pathname: str, metadata: Sequence[tuple[str, PageMetadata]], og_title: str
) -> str:
    """Join the page title with the titles of every enclosing prefix, innermost first."""
    titles = [
        meta.title
        for prefix, meta in metadata
        if meta.title is not None and pathname.startswith(prefix) and pathname != prefix
    ]
    titles.append(og_title)
    return " | ".join(reversed(titles))


def page_image(pathname: str, metadata: Sequence[tuple[str, PageMetadata]]) -> str | None:
    """The image of the last matching prefix that has an absolute image URL."""
    for prefix, meta in reversed(metadata):
        if not pathname.startswith(prefix) or meta.image is None:
            continue
        if urlsplit(meta.image).scheme:
            return meta.image
    return None


def render_open_graph(context: Mapping[str, Any]) -> str:
    """Render the OpenGraph meta tags for one page."""
    return _OPEN_GRAPH_TEMPLATE.render(**context)


def _image_path(page_path: Path, src: str) -> Path | None:
    joined = urljoin(Path(page_path).absolute().as_uri(), src)
    parts = urlsplit(joined)
    if parts.scheme != "file":
        return None
    return Path(url2pathname(parts.path))


def rewrite_page(
    html: str,
    page_path: str | os.PathLike[str],
    title: str,
    description: str,
    open_graph: str,
    theme_color: str,
) -> str:
    """Apply title, metadata and image sizes to a page's HTML."""
    soup = BeautifulSoup(html, "html.parser")
    page_path = Path(page_path)

    for element in soup.select("title"):
        element.string = title

    for element in soup.select('meta[property^="og:"]'):
        element.decompose()

    for element in soup.select("img[src]"):
        path = _image_path(page_path, element["src"])
        if path is None:
            continue
        with Image.open(path) as img:
            width, height = img.size
        element["width"] = str(width)
        element["height"] = str(height)

    for element in soup.select('img[src^="https://img.shields.io/"]'):
        element["height"] = "20"
        element["fetchpriority"] = "low"

    theme_metas = soup.select('meta[name="theme-color"]')
    description_metas = soup.select('meta[name="description"]')

    for element in theme_metas:
        element["content"] = theme_color

    for element in description_metas:
        element["content"] = description
        fragment = BeautifulSoup(open_graph, "html.parser")
        for node in list(fragment.contents):
            element.insert_before(node.extract())

    return str(soup)


def _text_of(soup: BeautifulSoup, selector: str) -> str:
    return "".join(element.get_text() for element in soup.select(selector))


def _resolve_image(root: Path, src_dir: Path, base_url: str, image: str) -> str:
    scheme = urlsplit(image).scheme
    if len(scheme) > 1:
        raise ValueError("failed to make relative path to image")
    relative = Path(os.path.relpath(root / image, src_dir)).as_posix()
    return urljoin(base_url, relative)


def process_book(root_dir: str | os.PathLike[str]) -> list[Path]:
    """Rewrite every built page that has a Markdown source; return the pages written."""
    root = Path(root_dir).resolve(strict=True)
    book = BookToml.load(root / "book.toml")

    src_dir = root / (book.src or "src")
    out_dir = root / (book.build_dir or "book")

    metadata = sorted(
        (
            (
                prefix,
                meta
                if meta.image is None
                else PageMetadata(
                    title=meta.title,
                    image=_resolve_image(root, src_dir, book.base_url, meta.image),
                ),
            )
            for prefix, meta in book.socials.items()
        ),
        key=lambda item: item[0],
    )

    theme_color = book.default_theme_color or DEFAULT_THEME_COLOR
    written = []

    for page in sorted(out_dir.glob("**/*.html")):
        relative = page.relative_to(out_dir).as_posix()
        if not (src_dir / relative.replace(".html", ".md")).exists():
            continue

        html = page.read_text(encoding="utf-8")
        soup = BeautifulSoup(html, "html.parser")
        og_title = collapse_whitespace(_text_of(soup, "main > h1:first-of-type"))
        og_description = collapse_whitespace(_text_of(soup, "main > p:first-of-type"))

        pathname = "/" + relative.replace("index.html", "").replace(".html", "")
        title = page_title(pathname, metadata, og_title)
        context = {
            "og_title": og_title,
            "og_image": page_image(pathname, metadata),
            "og_url": urljoin(book.base_url, pathname[1:]),
            "og_description": og_description,
            "og_site_name": book.title,
        }

        output = rewrite_page(
            html, page, title, og_description, render_open_graph(context), theme_color
        )
        page.write_text(output, encoding="utf-8")
        written.append(page)

    return written


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry: post-process the book at ROOT_DIR."""
    parser = argparse.ArgumentParser(
        prog="bookkit-socials", description="Add social metadata to built book pages."
    )
    parser.add_argument("root_dir", type=Path)
    args = parser.parse_args(argv)
    process_book(args.root_dir)
    return 0