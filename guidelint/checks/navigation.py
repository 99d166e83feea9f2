"""
Chapter footer navigation checks (Previous / Next / Back to Index).
"""

from __future__ import annotations

from typing import Iterator

from guidelint.checks.base import CheckContext, make_finding, register_check, rule
from guidelint.core.models import Finding, GuideCollection, NavKind, Severity
from guidelint.data.guide_loader import resolve_link

NAV_BROKEN = rule(
    "nav-broken",
    Severity.ERROR,
    "Previous / Next / Back to Index link does not resolve to an existing file",
)
NAV_ORDER = rule(
    "nav-order",
    Severity.WARNING,
    "Previous / Next link skips the adjacent chapter, or Back to Index misses the index",
)
NAV_MISSING = rule(
    "nav-missing", Severity.INFO, "Chapter listed in the index has no navigation links"
)

LABELS = {NavKind.PREVIOUS: "Previous", NavKind.NEXT: "Next", NavKind.INDEX: "Back to Index"}


@register_check
def check_navigation(collection: GuideCollection, context: CheckContext) -> Iterator[Finding]:
    order = collection.reading_order()
    listed = {entry.target for entry in collection.entries}

    for chapter in collection.chapters:
        nav_links = chapter.document.nav_links
        if not nav_links:
            if chapter.path in listed:
                yield make_finding(
                    NAV_MISSING.code,
                    "Chapter has no Previous / Next / Back to Index links",
                    chapter,
                    collection=collection,
                )
            continue

        position = order.index(chapter.path) if chapter.path in order else None

        for nav in nav_links:
            link = nav.link
            if not link.is_relative:
                continue

            label = LABELS[nav.kind]
            target = resolve_link(chapter.path, link, context.root)
            if not target.exists():
                yield make_finding(
                    NAV_BROKEN.code,
                    f"{label} link '{link.target}' does not resolve to an existing file",
                    chapter,
                    link.line,
                    collection,
                )
                continue

            if nav.kind == NavKind.INDEX:
                if not context.is_index(target):
                    yield make_finding(
                        NAV_ORDER.code,
                        f"{label} link points to '{link.target}', which is not an index",
                        chapter,
                        link.line,
                        collection,
                    )
                continue

            if position is None:
                continue

            expected = position - 1 if nav.kind == NavKind.PREVIOUS else position + 1
            if not 0 <= expected < len(order):
                continue
            if target != order[expected]:
                expected_path = context.documents[order[expected]].relative_path
                yield make_finding(
                    NAV_ORDER.code,
                    f"{label} link points to '{link.target}', expected {expected_path}",
                    chapter,
                    link.line,
                    collection,
                )
