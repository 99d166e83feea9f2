"""
README index checks.

An index is the per-directory table of contents that lists the chapters of a
guide in reading order. These rules keep it in step with the chapter files
that actually exist and with the numbers in their filenames.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict, Iterator, List, Set

from guidelint.checks.base import CheckContext, make_finding, register_check, rule
from guidelint.core.models import Finding, GuideCollection, IndexEntry, Severity

INDEX_MISSING = rule(
    "index-missing", Severity.WARNING, "Guide directory has chapters but no index listing them"
)
INDEX_MISSING_CHAPTER = rule(
    "index-missing-chapter", Severity.ERROR, "Chapter file is not listed in the index"
)
INDEX_MISSING_FILE = rule(
    "index-missing-file",
    Severity.ERROR,
    "Index entry points at a chapter file that does not exist",
)
INDEX_DUPLICATE_ENTRY = rule(
    "index-duplicate-entry", Severity.WARNING, "The same chapter is listed twice in the index"
)
INDEX_NUMBER_MISMATCH = rule(
    "index-number-mismatch",
    Severity.ERROR,
    "Index numbering disagrees with the number in the chapter filename",
)
INDEX_NUMBERING_GAP = rule(
    "index-numbering-gap", Severity.WARNING, "Index numbers are not consecutive"
)
INDEX_ORDER = rule(
    "index-order", Severity.WARNING, "Index order differs from chapter filename order"
)
HEADING_DUPLICATE_TITLE = rule(
    "heading-duplicate-title", Severity.INFO, "Two chapters of one guide share a title"
)


def needs_index(collection: GuideCollection) -> bool:
    """A directory looks like a guide when it has numbered or several chapters."""
    return len(collection.chapters) > 1 or any(c.number is not None for c in collection.chapters)


def unique_entries(entries: List[IndexEntry]) -> List[IndexEntry]:
    seen: Set[Path] = set()
    unique = []
    for entry in entries:
        if entry.target not in seen:
            seen.add(entry.target)
            unique.append(entry)
    return unique


@register_check
def check_index(collection: GuideCollection, context: CheckContext) -> Iterator[Finding]:
    index = collection.index

    if index is None:
        if needs_index(collection):
            yield make_finding(
                INDEX_MISSING.code,
                f"{len(collection.chapters)} chapter(s) but no "
                f"{context.settings.index_filename} index",
                collection=collection,
                path=collection.relative_path or ".",
            )
        return

    if not collection.entries:
        if any(c.number is not None for c in collection.chapters):
            yield make_finding(
                INDEX_MISSING.code,
                f"{index.path.name} lists none of the {len(collection.chapters)} chapter(s)",
                index,
                collection=collection,
            )
        return

    listed_items: Set[Path] = set()
    for entry in collection.entries:
        name = entry.target.name
        if not entry.target.exists():
            yield make_finding(
                INDEX_MISSING_FILE.code,
                f"Index lists '{entry.link.target}' but {name} does not exist",
                index,
                entry.link.line,
                collection,
            )
        # Links in surrounding prose may repeat a chapter; list items may not
        if entry.list_item:
            if entry.target in listed_items:
                yield make_finding(
                    INDEX_DUPLICATE_ENTRY.code,
                    f"{name} is listed more than once",
                    index,
                    entry.link.line,
                    collection,
                )
            listed_items.add(entry.target)

    listed = {entry.target for entry in collection.entries}
    for chapter in collection.chapters:
        if chapter.path not in listed:
            yield make_finding(
                INDEX_MISSING_CHAPTER.code,
                f"Chapter {chapter.path.name} is not listed in {index.path.name}",
                index,
                collection=collection,
            )

    yield from _check_numbering(collection)
    yield from _check_titles(collection)


def _check_numbering(collection: GuideCollection) -> Iterator[Finding]:
    index = collection.index
    entries = unique_entries(collection.entries)

    numbers = [entry.number for entry in entries if entry.number is not None]
    if numbers:
        expected = list(range(numbers[0], numbers[0] + len(numbers)))
        if numbers != expected:
            yield make_finding(
                INDEX_NUMBERING_GAP.code,
                "Index numbers are not consecutive: " + ", ".join(str(n) for n in numbers),
                index,
                collection=collection,
            )

    pairs = []
    for entry in entries:
        chapter = collection.chapter_for(entry.target)
        if chapter is not None and chapter.number is not None:
            pairs.append((entry, chapter))

    numbered_pairs = [(entry, chapter) for entry, chapter in pairs if entry.number is not None]
    if numbered_pairs:
        # Chapters may legitimately start at 00 while the index starts at 1
        offsets = Counter(chapter.number - entry.number for entry, chapter in numbered_pairs)
        first_offset = numbered_pairs[0][1].number - numbered_pairs[0][0].number
        best = max(offsets.values())
        offset = first_offset if offsets[first_offset] == best else offsets.most_common(1)[0][0]

        for entry, chapter in numbered_pairs:
            if chapter.number - entry.number != offset:
                yield make_finding(
                    INDEX_NUMBER_MISMATCH.code,
                    f"Index entry {entry.number} points to {chapter.path.name} "
                    f"(chapter {chapter.number}, expected {entry.number + offset})",
                    index,
                    entry.link.line,
                    collection,
                )

    previous = None
    for entry, chapter in pairs:
        if previous is not None and chapter.number <= previous.number:
            yield make_finding(
                INDEX_ORDER.code,
                f"{chapter.path.name} is listed after {previous.path.name}",
                index,
                entry.link.line,
                collection,
            )
        previous = chapter


def _check_titles(collection: GuideCollection) -> Iterator[Finding]:
    by_title: Dict[str, list] = defaultdict(list)
    for chapter in collection.chapters:
        if chapter.document.title:
            by_title[chapter.document.title.strip().lower()].append(chapter)

    for chapters in by_title.values():
        for duplicate in chapters[1:]:
            yield make_finding(
                HEADING_DUPLICATE_TITLE.code,
                f"Title '{duplicate.title}' is also used by {chapters[0].path.name}",
                duplicate,
                collection=collection,
            )
