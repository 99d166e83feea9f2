"""
Fenced code block (snippet) checks.
"""

from __future__ import annotations

from typing import Iterator

from guidelint.checks.base import CheckContext, make_finding, register_check, rule
from guidelint.core.models import Finding, GuideCollection, Severity

FENCE_MISSING_LANGUAGE = rule(
    "fence-missing-language", Severity.ERROR, "Fenced code block declares no language tag"
)
FENCE_UNCLOSED = rule("fence-unclosed", Severity.ERROR, "Fenced code block is never closed")
FENCE_UNKNOWN_LANGUAGE = rule(
    "fence-unknown-language",
    Severity.WARNING,
    "Fence language is not in the configured list of known languages",
)


@register_check
def check_fences(collection: GuideCollection, context: CheckContext) -> Iterator[Finding]:
    known = set(context.settings.known_languages)

    for document in collection.documents():
        for block in document.document.code_blocks:
            fence = block.fence_char * block.fence_length
            if not block.closed:
                yield make_finding(
                    FENCE_UNCLOSED.code,
                    f"Code fence {fence} opened here is never closed",
                    document,
                    block.start_line,
                    collection,
                )

            language = block.language
            if language is None:
                yield make_finding(
                    FENCE_MISSING_LANGUAGE.code,
                    f"Code fence {fence} has no language tag (e.g. {fence}python)",
                    document,
                    block.start_line,
                    collection,
                )
            elif known and language not in known:
                yield make_finding(
                    FENCE_UNKNOWN_LANGUAGE.code,
                    f"Unknown code fence language '{language}'",
                    document,
                    block.start_line,
                    collection,
                )
