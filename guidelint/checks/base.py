"""
Rule registry and shared helpers for guide checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from guidelint.core.config import Settings
from guidelint.core.models import Chapter, Finding, GuideCollection, Severity


@dataclass(frozen=True)
class RuleInfo:
    """A rule code with its default severity."""

    code: str
    severity: Severity
    description: str


@dataclass
class CheckContext:
    """Everything a check may look at beyond its own collection."""

    root: Path
    settings: Settings
    collections: Dict[Path, GuideCollection] = field(default_factory=dict)
    documents: Dict[Path, Chapter] = field(default_factory=dict)

    @classmethod
    def build(cls, root: Path, settings: Settings, collections: List[GuideCollection]):
        context = cls(root=root, settings=settings)
        for collection in collections:
            context.collections[collection.directory] = collection
            for document in collection.documents():
                context.documents[document.path] = document
        return context

    def is_index(self, path: Path) -> bool:
        """True when ``path`` is an index file, or a directory that has one."""
        name = self.settings.index_filename.lower()
        if path.is_dir():
            return any(child.name.lower() == name for child in path.iterdir())
        return path.name.lower() == name

    def within_root(self, path: Path) -> bool:
        return path == self.root or self.root in path.parents


CheckFunc = Callable[[GuideCollection, CheckContext], Iterable[Finding]]

RULES: Dict[str, RuleInfo] = {}
CHECKS: List[CheckFunc] = []


def rule(code: str, severity: Severity, description: str) -> RuleInfo:
    """Register a rule code."""
    info = RuleInfo(code=code, severity=severity, description=description)
    RULES[code] = info
    return info


def register_check(func: CheckFunc) -> CheckFunc:
    """Decorator adding a check function to the run list."""
    CHECKS.append(func)
    return func


def make_finding(
    code: str,
    message: str,
    document: Optional[Chapter] = None,
    line: Optional[int] = None,
    collection: Optional[GuideCollection] = None,
    path: Optional[str] = None,
) -> Finding:
    """Build a finding carrying the rule's default severity."""
    return Finding(
        rule=code,
        severity=RULES[code].severity,
        message=message,
        path=path or (document.relative_path if document else ""),
        line=line,
        collection=collection.name if collection else None,
    )


# Rules raised outside the per-collection checks
FILE_UNREADABLE = rule(
    "file-unreadable", Severity.ERROR, "Markdown file cannot be read or decoded as UTF-8"
)
LINK_EXTERNAL_BROKEN = rule(
    "link-external-broken",
    Severity.WARNING,
    "External URL answered with an error status or could not be reached",
)
