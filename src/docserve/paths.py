"""The Allowed-Path Set: every request path the server is willing to answer.

Built in a single pass over the docs and styling checkouts. The link validator
treats membership as ground truth for "does this internal file exist"; the
server rescans when a request misses, since a document or image may have been
added since the last scan.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from docserve.models.document import DocumentKey

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

log = structlog.get_logger()

_IMAGE_RE = re.compile(r"\.(png|jpeg|jpg|svg)$")
# Fragments and the menu are rendered but never served on their own.
_UNSERVED_RE = re.compile(r"^(include|menu)")

REPORT_PATHS = (
    "/errors.csv",
    "/errors.html",
    "/wordcount.html",
    "/images.txt",
    "/images.html",
    "/links.html",
    "/latest/",
    "/latest",
)


@dataclass
class AllowedPaths:
    paths: set[str] = field(default_factory=set)
    # served document path → key, e.g. "/latest/en/intro.html"
    documents: dict[str, DocumentKey] = field(default_factory=dict)
    # images as documents reference them, e.g. "../images/foo.png"
    images: list[str] = field(default_factory=list)

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def __len__(self) -> int:
        return len(self.paths)

    def is_document(self, path: str) -> bool:
        return path in self.documents

    def replace(self, other: AllowedPaths) -> None:
        """Swap in a fresh scan without breaking references held by collaborators."""
        self.paths, self.documents, self.images = other.paths, other.documents, other.images


def _files(directory: Path) -> list[str]:
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir() if p.is_file())


def scan_allowed_paths(
    docs_dir: Path,
    styling_dir: Path,
    languages: Iterable[str],
) -> AllowedPaths:
    """Enumerate documents, images, assets and report pages."""
    allowed = AllowedPaths()

    for language in languages:
        for name in _files(docs_dir / language):
            if not name.endswith(".asciidoc") or _UNSERVED_RE.match(name):
                continue
            key = DocumentKey(language=language, path=name)
            allowed.paths.add(key.served_path)
            allowed.paths.add(f"/last_change{key.served_path}")
            allowed.documents[key.served_path] = key
        allowed.paths.add(f"/latest/{language}/")
        allowed.paths.add(f"/latest/{language}")

    for subdir in ("images", "images/icons"):
        for name in _files(docs_dir / subdir):
            if _IMAGE_RE.search(name):
                allowed.paths.add(f"/latest/{subdir}/{name}")
                allowed.images.append(f"../{subdir}/{name}")

    assets = styling_dir / "assets"
    if assets.is_dir():
        for directory in sorted(assets.iterdir()):
            if directory.is_dir() and not directory.name.startswith("."):
                for name in _files(directory):
                    allowed.paths.add(f"/assets/{directory.name}/{name}")

    allowed.paths.update(REPORT_PATHS)
    log.info(
        "allowed_paths_scanned",
        paths=len(allowed.paths),
        documents=len(allowed.documents),
        images=len(allowed.images),
    )
    return allowed
