"""
Lint service: runs every guide check over a documentation tree.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import structlog

from guidelint.checks import CHECKS, RULES, CheckContext, make_finding
from guidelint.checks.base import FILE_UNREADABLE, LINK_EXTERNAL_BROKEN
from guidelint.core.config import ExternalLinkConfig, Settings
from guidelint.core.exceptions import ConfigurationError
from guidelint.core.logging import get_correlation_id
from guidelint.core.models import Finding, GuideCollection, LintReport, Severity
from guidelint.data.guide_loader import GuideLoader, normalize_path
from guidelint.services.external_link_service import ExternalLinkChecker
from guidelint.utils.reliability import track_performance

logger = structlog.get_logger(__name__)


class LintService:
    """Discovers guide collections, runs the checks and builds a report."""

    def __init__(
        self,
        settings: Settings,
        link_checker_factory: Optional[Callable[[ExternalLinkConfig], ExternalLinkChecker]] = None,
    ):
        self.settings = settings
        self.link_checker_factory = link_checker_factory or ExternalLinkChecker

    @track_performance("guide_lint")
    def run(self, root: Optional[Path] = None) -> LintReport:
        """
        Lint the guide tree under ``root`` (defaults to the configured root).

        Raises:
            ConfigurationError: when the root is missing or not a directory
        """
        root = Path(root) if root is not None else Path(self.settings.root)
        if not root.exists():
            raise ConfigurationError(f"Root directory does not exist: {root}", {"root": str(root)})
        if not root.is_dir():
            raise ConfigurationError(f"Root is not a directory: {root}", {"root": str(root)})

        root = normalize_path(root.absolute())
        report = LintReport(root=str(root), strict=self.settings.strict)

        logger.info(
            "Lint run started",
            root=str(root),
            correlation_id=get_correlation_id(),
            external=self.settings.external.enabled,
        )

        loader = GuideLoader(self.settings)
        collections = loader.discover(root)
        context = CheckContext.build(root, self.settings, collections)

        findings: List[Finding] = [
            make_finding(FILE_UNREADABLE.code, error.reason, path=error.path)
            for error in loader.errors
        ]

        for collection in collections:
            for check in CHECKS:
                findings.extend(check(collection, context))

        if self.settings.external.enabled:
            findings.extend(self._check_external(collections))

        report.findings = self._finalize(findings)
        report.collections_checked = len(collections)
        report.files_checked = len(context.documents) + len(loader.errors)
        report.finished_at = datetime.now()

        logger.info(
            "Lint run completed",
            collections=report.collections_checked,
            files=report.files_checked,
            errors=report.error_count,
            warnings=report.warning_count,
            status=report.status.value,
        )
        return report

    def _finalize(self, findings: List[Finding]) -> List[Finding]:
        """Drop disabled rules, apply severity overrides, and sort by location."""
        overrides = self.settings.severity_overrides
        kept = []
        for finding in findings:
            if not self.settings.is_rule_enabled(finding.rule):
                continue
            if finding.rule in overrides:
                finding = finding.model_copy(update={"severity": Severity(overrides[finding.rule])})
            kept.append(finding)

        kept.sort(key=lambda f: (f.path, f.line or 0, Severity(f.severity).rank, f.rule))
        return kept

    def _check_external(self, collections: List[GuideCollection]) -> Iterator[Finding]:
        references = [
            (collection, document, link)
            for collection in collections
            for document in collection.documents()
            for link in document.document.links
            if link.is_external
        ]
        if not references:
            return

        with self.link_checker_factory(self.settings.external) as checker:
            probes = checker.probe_all(link.target for _, _, link in references)

        for collection, document, link in references:
            probe = probes.get(link.target.split("#", 1)[0])
            if probe is None or probe.ok:
                continue
            yield make_finding(
                LINK_EXTERNAL_BROKEN.code,
                f"External link '{link.target}' failed: {probe.error}",
                document,
                link.line,
                collection,
            )


def list_rules() -> List[dict]:
    """Rule codes with their default severities, for ``guidelint rules``."""
    return [
        {"code": info.code, "severity": info.severity.value, "description": info.description}
        for info in sorted(RULES.values(), key=lambda r: (r.severity.rank, r.code))
    ]
