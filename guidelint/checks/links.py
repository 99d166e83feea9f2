"""
Relative link and anchor checks.
"""

from __future__ import annotations

from typing import Iterator, Set, Tuple

from guidelint.checks.base import CheckContext, make_finding, register_check, rule
from guidelint.core.models import Chapter, Finding, GuideCollection, Link, Severity
from guidelint.data.guide_loader import is_markdown, resolve_link

LINK_BROKEN = rule(
    "link-broken", Severity.ERROR, "Relative link target file or directory does not exist"
)
LINK_OUTSIDE_ROOT = rule(
    "link-outside-root", Severity.WARNING, "Relative link escapes the checked root directory"
)
ANCHOR_MISSING = rule(
    "anchor-missing",
    Severity.ERROR,
    "Link fragment matches no heading or HTML anchor in the target document",
)


def link_key(link: Link) -> Tuple[int, str, str]:
    return (link.line, link.target, link.text)


def normalize_fragment(fragment: str) -> str:
    fragment = fragment.lower()
    if fragment.startswith("user-content-"):
        fragment = fragment[len("user-content-"):]
    return fragment


def _anchors(document: Chapter) -> Set[str]:
    return {anchor.lower() for anchor in document.document.anchors()}


def _skipped_links(document: Chapter, collection: GuideCollection) -> Set[Tuple[int, str, str]]:
    """Links owned by the navigation and index rules."""
    skipped = {link_key(nav.link) for nav in document.document.nav_links}
    if collection.index is not None and document.path == collection.index.path:
        skipped |= {link_key(entry.link) for entry in collection.entries}
    return skipped


@register_check
def check_links(collection: GuideCollection, context: CheckContext) -> Iterator[Finding]:
    for document in collection.documents():
        skipped = _skipped_links(document, collection)

        for link in document.document.links:
            if link.is_anchor_only:
                fragment = link.fragment
                if fragment and normalize_fragment(fragment) not in _anchors(document):
                    yield make_finding(
                        ANCHOR_MISSING.code,
                        f"Anchor '#{fragment}' not found in this document",
                        document,
                        link.line,
                        collection,
                    )
                continue

            if not link.is_relative:
                continue

            target = resolve_link(document.path, link, context.root)
            if not context.within_root(target):
                yield make_finding(
                    LINK_OUTSIDE_ROOT.code,
                    f"Link '{link.target}' points outside the checked root",
                    document,
                    link.line,
                    collection,
                )
                continue

            if link_key(link) in skipped:
                continue

            if not target.exists():
                kind = "Image" if link.is_image else "Link"
                yield make_finding(
                    LINK_BROKEN.code,
                    f"{kind} target '{link.target}' does not exist",
                    document,
                    link.line,
                    collection,
                )
                continue

            fragment = link.fragment
            if fragment and target.is_file() and is_markdown(target):
                linked = context.documents.get(target)
                if linked is not None and normalize_fragment(fragment) not in _anchors(linked):
                    yield make_finding(
                        ANCHOR_MISSING.code,
                        f"Anchor '#{fragment}' not found in {linked.relative_path}",
                        document,
                        link.line,
                        collection,
                    )
