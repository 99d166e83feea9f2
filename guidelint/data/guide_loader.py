"""
Guide discovery and loading.

Walks a documentation tree, groups Markdown files into guide collections
(one per directory), parses every chapter and reads the README index of each
collection into ordered index entries.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from guidelint.core.config import Settings
from guidelint.core.exceptions import DiscoveryError, GuideParseError
from guidelint.core.models import Chapter, GuideCollection, IndexEntry, Link
from guidelint.data.markdown_parser import parse_markdown

logger = structlog.get_logger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")

CHAPTER_NUMBER_RE = re.compile(
    r"^(?:ch(?:apter)?|part|lesson|module)?[-_ .]?(\d+)(?=[-_ .]|$)", re.IGNORECASE
)
LIST_NUMBER_RE = re.compile(r"^\s*(\d{1,9})[.)]\s")
LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d{1,9}[.)])\s")
TEXT_NUMBER_RE = re.compile(
    r"^\s*(?:(?:chapter|ch\.?|part|lesson|module)\s*(\d+)|(\d+)\s*[.:)\-–]\s)", re.IGNORECASE
)


def chapter_number(path: Path) -> Optional[int]:
    """Parse the chapter number from a filename such as ``03-setup.md``."""
    match = CHAPTER_NUMBER_RE.match(path.stem)
    return int(match.group(1)) if match else None


def normalize_path(path: Path) -> Path:
    return Path(os.path.normpath(str(path)))


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def resolve_link(document: Path, link: Link, root: Path) -> Path:
    """Resolve a relative link against its document (or the root for ``/`` paths)."""
    target = link.path_part
    if target.startswith("/"):
        return normalize_path(root / target.lstrip("/"))
    return normalize_path(document.parent / target)


class GuideLoader:
    """Discovers guide collections under a root directory."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.errors: List[GuideParseError] = []
        self._exclude = {name.lower() for name in settings.exclude_dirs}
        self._index_name = settings.index_filename.lower()

    def discover(self, root: Path) -> List[GuideCollection]:
        """
        Find every directory holding Markdown files and load it as a collection.

        Args:
            root: Directory to walk

        Returns:
            Collections sorted by relative path (the root collection first)
        """
        root = normalize_path(Path(root).absolute())
        if not root.is_dir():
            raise DiscoveryError(f"Not a directory: {root}", {"root": str(root)})

        self.errors = []
        collections = []

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames if not d.startswith(".") and d.lower() not in self._exclude
            )
            markdown_files = sorted(f for f in filenames if is_markdown(Path(f)))
            if not markdown_files:
                continue
            collection = self._load_collection(root, Path(dirpath), markdown_files)
            collections.append(collection)

        logger.info(
            "Guide discovery completed",
            root=str(root),
            collections=len(collections),
            unreadable=len(self.errors),
        )
        return collections

    def load_directory(self, directory: Path) -> GuideCollection:
        """Load a single directory as a collection, without descending into subdirectories."""
        directory = normalize_path(Path(directory).absolute())
        if not directory.is_dir():
            raise DiscoveryError(f"Not a directory: {directory}", {"directory": str(directory)})
        self.errors = []
        filenames = sorted(p.name for p in directory.iterdir() if p.is_file() and is_markdown(p))
        return self._load_collection(directory, directory, filenames)

    def _load_collection(self, root: Path, directory: Path, filenames: List[str]) -> GuideCollection:
        directory = normalize_path(directory)
        relative = directory.relative_to(root).as_posix()
        collection = GuideCollection(
            directory=directory, relative_path="" if relative == "." else relative
        )

        index_lines: List[str] = []
        for filename in filenames:
            path = directory / filename
            loaded = self._load_chapter(root, path)
            if loaded is None:
                continue
            chapter, text = loaded
            if filename.lower() == self._index_name:
                collection.index = chapter
                index_lines = text.splitlines()
            else:
                collection.chapters.append(chapter)

        collection.chapters.sort(
            key=lambda c: (c.number is None, c.number or 0, c.path.name.lower())
        )

        if collection.index is not None:
            collection.entries = self._read_index(root, collection, index_lines)

        logger.debug(
            "Collection loaded",
            collection=collection.name,
            chapters=len(collection.chapters),
            has_index=collection.index is not None,
            entries=len(collection.entries),
        )
        return collection

    def _load_chapter(self, root: Path, path: Path):
        relative = path.relative_to(root).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            self.errors.append(GuideParseError(relative, f"not valid UTF-8 ({e.reason})"))
            return None
        except OSError as e:
            self.errors.append(GuideParseError(relative, e.strerror or str(e)))
            return None

        chapter = Chapter(
            path=path,
            relative_path=relative,
            number=chapter_number(path),
            document=parse_markdown(text),
        )
        return chapter, text

    def _read_index(
        self, root: Path, collection: GuideCollection, lines: List[str]
    ) -> List[IndexEntry]:
        index = collection.index
        entries: List[IndexEntry] = []

        for link in index.document.links:
            if link.is_image or not link.is_relative or not is_markdown(Path(link.path_part)):
                continue
            target = resolve_link(index.path, link, root)
            if target.parent != collection.directory or target == index.path:
                continue

            line_text = lines[link.line - 1] if 0 < link.line <= len(lines) else ""
            list_match = LIST_NUMBER_RE.match(line_text)
            entries.append(
                IndexEntry(
                    target=target,
                    link=link,
                    list_number=int(list_match.group(1)) if list_match else None,
                    list_item=bool(LIST_ITEM_RE.match(line_text)),
                )
            )

        self._number_entries(entries)
        return entries

    @staticmethod
    def _number_entries(entries: List[IndexEntry]) -> None:
        """
        Assign each entry its effective number.

        Markdown renders ``1. 1. 1.`` as 1, 2, 3, so when every ordered entry
        carries the same list number they are numbered by position.
        """
        ordered = [e for e in entries if e.list_number is not None]
        lazy = len(ordered) > 1 and len({e.list_number for e in ordered}) == 1
        positions: Dict[int, int] = {}
        if lazy:
            first = ordered[0].list_number
            positions = {id(e): first + i for i, e in enumerate(ordered)}

        for entry in entries:
            if entry.list_number is not None:
                entry.number = positions.get(id(entry), entry.list_number)
                continue
            match = TEXT_NUMBER_RE.match(entry.link.text)
            if match:
                entry.number = int(match.group(1) or match.group(2))
