"""
Data models and type definitions for guidelint.

Provides type-safe structures for parsed Markdown chapters, guide
collections, lint findings and run reports.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set
from urllib.parse import unquote, urlsplit

from pydantic import BaseModel, ConfigDict, Field, computed_field

EXTERNAL_SCHEMES = ("http", "https")


class Severity(str, Enum):
    """Finding severity, ordered from most to least serious."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return {"error": 0, "warning": 1, "info": 2}[self.value]


class NavKind(str, Enum):
    """Kinds of chapter navigation links."""

    PREVIOUS = "previous"
    NEXT = "next"
    INDEX = "index"


class LinkKind(str, Enum):
    """How a link was written in the source."""

    INLINE = "inline"
    REFERENCE = "reference"
    AUTOLINK = "autolink"


class RunStatus(str, Enum):
    """Outcome of a lint run."""

    PASSED = "passed"
    FAILED = "failed"


# Parsed document models


class Link(BaseModel):
    """A link or image reference found in a Markdown document."""

    text: str = ""
    target: str
    line: int
    kind: LinkKind = LinkKind.INLINE
    is_image: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def scheme(self) -> str:
        return urlsplit(self.target).scheme.lower()

    @property
    def is_external(self) -> bool:
        return self.scheme in EXTERNAL_SCHEMES

    @property
    def is_other_scheme(self) -> bool:
        """True for mailto:, tel:, data: and similar non-file targets."""
        scheme = self.scheme
        # Windows drive letters ("C:/...") parse as one-letter schemes
        return bool(scheme) and scheme not in EXTERNAL_SCHEMES and len(scheme) > 1

    @property
    def is_anchor_only(self) -> bool:
        return self.target.startswith("#")

    @property
    def is_relative(self) -> bool:
        return not (self.is_external or self.is_other_scheme or self.is_anchor_only)

    @property
    def path_part(self) -> str:
        """URL-decoded path without query string or fragment."""
        return unquote(urlsplit(self.target).path)

    @property
    def fragment(self) -> Optional[str]:
        parts = self.target.split("#", 1)
        if len(parts) == 2 and parts[1]:
            return unquote(parts[1])
        return None


class NavLink(BaseModel):
    """A Previous / Next / Back to Index navigation link."""

    kind: NavKind
    link: Link

    model_config = ConfigDict(frozen=True)


class CodeBlock(BaseModel):
    """A fenced code block (snippet)."""

    start_line: int
    end_line: int
    fence_char: str
    fence_length: int
    info: str = ""
    closed: bool = True

    @property
    def language(self) -> Optional[str]:
        """First token of the info string; ``{.python}`` style is unwrapped."""
        info = self.info.strip()
        if not info:
            return None
        token = info.split()[0]
        if token.startswith("{"):
            token = token.strip("{}").lstrip(".").split(",")[0]
        return token.lower() or None


class Heading(BaseModel):
    """A Markdown heading."""

    level: int = Field(..., ge=1, le=6)
    text: str
    line: int
    slug: str


class ParsedDocument(BaseModel):
    """Everything guidelint extracts from one Markdown file."""

    headings: List[Heading] = Field(default_factory=list)
    code_blocks: List[CodeBlock] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    html_anchors: List[str] = Field(default_factory=list)
    nav_links: List[NavLink] = Field(default_factory=list)

    @property
    def title(self) -> Optional[str]:
        for heading in self.headings:
            if heading.level == 1:
                return heading.text
        return self.headings[0].text if self.headings else None

    def anchors(self) -> Set[str]:
        return {h.slug for h in self.headings} | set(self.html_anchors)


# Guide tree models


class Chapter(BaseModel):
    """One Markdown file of a guide collection."""

    path: Path
    relative_path: str
    number: Optional[int] = None
    document: ParsedDocument = Field(default_factory=ParsedDocument)

    @property
    def title(self) -> str:
        if self.document.title:
            return self.document.title
        stem = self.path.stem
        return stem.replace("-", " ").replace("_", " ").strip().title()


class IndexEntry(BaseModel):
    """A chapter link listed in a collection index."""

    target: Path
    link: Link
    list_number: Optional[int] = None
    list_item: bool = False
    number: Optional[int] = None


class GuideCollection(BaseModel):
    """A directory of chapters with an optional README index."""

    directory: Path
    relative_path: str
    index: Optional[Chapter] = None
    chapters: List[Chapter] = Field(default_factory=list)
    entries: List[IndexEntry] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.relative_path or "."

    def chapter_for(self, path: Path) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.path == path:
                return chapter
        return None

    def documents(self) -> List[Chapter]:
        """Chapters plus the index, in that order."""
        return self.chapters + ([self.index] if self.index else [])

    def reading_order(self) -> List[Path]:
        """Chapter paths in index order, falling back to filename order."""
        ordered: List[Path] = []
        for entry in self.entries:
            if entry.target not in ordered and self.chapter_for(entry.target):
                ordered.append(entry.target)
        if ordered:
            return ordered
        return [chapter.path for chapter in self.chapters]


# Report models


class Finding(BaseModel):
    """A single rule violation."""

    rule: str
    severity: Severity
    message: str
    path: str
    line: Optional[int] = None
    collection: Optional[str] = None

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}" if self.line else self.path


class LinkProbe(BaseModel):
    """Result of probing one external URL."""

    url: str
    status_code: Optional[int] = None
    ok: bool = False
    error: Optional[str] = None


class LintReport(BaseModel):
    """Outcome of one guidelint run."""

    root: str
    collections_checked: int = 0
    files_checked: int = 0
    findings: List[Finding] = Field(default_factory=list)
    strict: bool = False
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @computed_field
    @property
    def counts(self) -> Dict[str, int]:
        counts = {severity.value: 0 for severity in Severity}
        for finding in self.findings:
            counts[Severity(finding.severity).value] += 1
        return counts

    @property
    def error_count(self) -> int:
        return self.counts[Severity.ERROR.value]

    @property
    def warning_count(self) -> int:
        return self.counts[Severity.WARNING.value]

    def has_failures(self, strict: Optional[bool] = None) -> bool:
        strict = self.strict if strict is None else strict
        return self.error_count > 0 or (strict and self.warning_count > 0)

    @computed_field
    @property
    def status(self) -> RunStatus:
        return RunStatus.FAILED if self.has_failures() else RunStatus.PASSED
