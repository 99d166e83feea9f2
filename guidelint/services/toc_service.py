"""
Index (table of contents) generation for guide collections.
"""

from pathlib import Path
from urllib.parse import quote

import structlog

from guidelint.core.models import GuideCollection

logger = structlog.get_logger(__name__)

TOC_START = "<!-- toc -->"
TOC_END = "<!-- /toc -->"


def build_toc(collection: GuideCollection) -> str:
    """
    Markdown list of the collection's chapters in filename order.

    The list is numbered when the filename numbers run without gaps and
    bulleted otherwise, so the generated index never disagrees with them.
    """
    numbers = [chapter.number for chapter in collection.chapters if chapter.number is not None]
    consecutive = not numbers or numbers == list(range(numbers[0], numbers[0] + len(numbers)))

    lines = []
    for position, chapter in enumerate(collection.chapters, 1):
        title = chapter.title.replace("[", "\\[").replace("]", "\\]")
        marker = f"{position}." if consecutive else "-"
        lines.append(f"{marker} [{title}]({quote(chapter.path.name)})")
    return "\n".join(lines)


def write_toc(index_path: Path, toc: str, title: str = "Contents") -> bool:
    """
    Put ``toc`` between the TOC markers of ``index_path``.

    The marked block is replaced when present and appended otherwise; a
    missing index file is created with a heading.

    Returns:
        True if the file changed
    """
    block = f"{TOC_START}\n{toc}\n{TOC_END}"

    if index_path.exists():
        original = index_path.read_text(encoding="utf-8")
    else:
        original = f"# {title}\n"

    start = original.find(TOC_START)
    end = original.find(TOC_END, start + len(TOC_START)) if start != -1 else -1

    if start != -1 and end != -1:
        updated = original[:start] + block + original[end + len(TOC_END):]
    else:
        updated = original.rstrip("\n") + "\n\n" + block + "\n"

    if index_path.exists() and updated == original:
        logger.debug("Index already up to date", path=str(index_path))
        return False

    index_path.write_text(updated, encoding="utf-8")
    logger.info("Index written", path=str(index_path), chapters=toc.count("\n") + 1 if toc else 0)
    return True
