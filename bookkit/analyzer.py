"""Fetch a pinned copy of rust-analyzer for testing, and run it."""

from __future__ import annotations

import argparse
import os
import platform
import shutil
import stat
import subprocess
import sys
import tempfile
import zipfile
import zlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

import requests

from .env import book_from_stdin, book_into_stdout
from .progress import spinner
from .reflect import replace_in_book

RELEASES_URL = "https://github.com/rust-lang/rust-analyzer/releases/download"
DEFAULT_RELEASE = "2025-03-17"
PROGRESS_PREFIX = "downloading rust-analyzer"
VERSION_TAG = "<ra-version>(version)</ra-version>"
ZIP_MEMBER = "rust-analyzer.exe"

_CHUNK_SIZE = 64 * 1024
_TIMEOUT = 60

_ARCHES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def platform_target() -> str:
    """The target triple of the running machine, as used in release file names."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Linux" and machine.startswith("armv7"):
        return "arm-unknown-linux-gnueabihf"
    arch = _ARCHES.get(machine)
    if arch is None:
        raise RuntimeError(f"unsupported machine architecture {machine!r}")
    if system == "Linux":
        return f"{arch}-unknown-linux-gnu"
    if system == "Darwin":
        return f"{arch}-apple-darwin"
    if system == "Windows":
        return f"{arch}-pc-windows-msvc"
    raise RuntimeError(f"unsupported operating system {system!r}")


def project_root(start: str | os.PathLike[str] | None = None) -> Path:
    """The nearest directory at or above ``start`` that holds a ``Cargo.lock``."""
    path = Path(start if start is not None else Path.cwd()).resolve()
    for candidate in (path, *path.parents):
        if (candidate / "Cargo.lock").is_file():
            return candidate
    raise FileNotFoundError("Root directory for rust project not found.")


def _stream(url: str) -> Iterator[bytes]:
    response = requests.get(url, stream=True, timeout=_TIMEOUT)
    try:
        response.raise_for_status()
        length = response.headers.get("content-length")
        total = int(length) if length and length.isdigit() else None
        progress = spinner().create(PROGRESS_PREFIX, total)
        received = 0
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            if chunk:
                received += len(chunk)
                yield chunk
        progress.finish(PROGRESS_PREFIX, f"{received} bytes")
    finally:
        response.close()


@dataclass
class Download:
    """A rust-analyzer release and where its executable is stored."""

    release: str
    path: Path
    platform: str | None = None

    def url(self, extension: str) -> str:
        """The release asset URL for this machine with the given file extension."""
        target = self.platform or platform_target()
        return f"{RELEASES_URL}/{self.release}/rust-analyzer-{target}.{extension}"

    def download(self) -> None:
        """Fetch the executable in the format published for this platform."""
        if sys.platform == "win32":
            self.download_zip()
        else:
            self.download_gzip()

    def download_gzip(self) -> None:
        """Fetch and decompress the gzip release, then mark it executable."""
        path = Path(self.path)
        chunks = _stream(self.url("gz"))
        path.parent.mkdir(parents=True, exist_ok=True)
        decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
        with open(path, "wb") as out:
            for chunk in chunks:
                out.write(decompressor.decompress(chunk))
            out.write(decompressor.flush())
        if not decompressor.eof:
            raise ValueError("downloaded gzip stream is truncated")
        if sys.platform != "win32":
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH)

    def download_zip(self) -> None:
        """Fetch the zip release and extract the executable from it."""
        path = Path(self.path)
        with tempfile.TemporaryFile() as temp:
            for chunk in _stream(self.url("zip")):
                temp.write(chunk)
            temp.seek(0)
            with zipfile.ZipFile(temp) as archive:
                path.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(ZIP_MEMBER) as member, open(path, "wb") as out:
                    shutil.copyfileobj(member, out)


def analyzer(download: Download, args: Sequence[str]) -> int:
    """Run rust-analyzer with ``args``, fetching it first if needed; return its exit code."""
    if not Path(download.path).exists():
        download.download()
    completed = subprocess.run([str(download.path), *args])
    return max(completed.returncode, 0)


def ra_version_preprocessor(download: Download) -> None:
    """Replace the version placeholder in every chapter with the release in use."""
    _, book = book_from_stdin()
    replace_in_book(book, VERSION_TAG, f"`{download.release}`")
    book_into_stdout(book)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookkit-analyzer", description="Manage a pinned copy of rust-analyzer."
    )
    parser.add_argument("--ra-version")
    parser.add_argument("--ra-path", type=Path)
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("download")
    run = commands.add_parser("analyzer")
    run.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    version = commands.add_parser("version")
    version_commands = version.add_subparsers(dest="version")
    supports = version_commands.add_parser("supports")
    supports.add_argument("renderer")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point."""
    parser = _parser()
    args, extra = parser.parse_known_args(argv)
    if extra and args.command != "analyzer":
        parser.error(f"unrecognized arguments: {' '.join(extra)}")

    release = args.ra_version or DEFAULT_RELEASE
    if args.ra_path is not None:
        path = args.ra_path
    else:
        path = project_root() / ".bin" / "rust-analyzer" / release / "rust-analyzer"
    download = Download(release, path)

    if args.command == "download":
        download.download()
        return 0
    if args.command == "analyzer":
        return analyzer(download, [*args.args, *extra])
    if args.version == "supports":
        return 0
    ra_version_preprocessor(download)
    return 0