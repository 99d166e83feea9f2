"""
"Doctor" command: consolidated health, config, and diagnostics.

Runs a series of checks and prints a concise, friendly report:
 - Config summary and validation problems
 - Root directory and guide collections found under it
 - Files that could not be read
 - External link reachability (if enabled)
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import click

from guidelint.core.config import Settings, print_configuration_summary, validate_settings
from guidelint.core.exceptions import GuideLintError
from guidelint.core.models import GuideCollection
from guidelint.data.guide_loader import GuideLoader
from guidelint.services.external_link_service import ExternalLinkChecker
from guidelint.utils.reliability import HealthChecker

# Enough to tell "network is fine" from "everything is down" without a full run
EXTERNAL_SAMPLE_SIZE = 5


def build_health_checker(settings: Settings) -> HealthChecker:
    """Register the diagnostic checks for ``settings.root``."""
    health = HealthChecker()
    loader = GuideLoader(settings)
    found: List[GuideCollection] = []

    def root_check():
        root = Path(settings.root)
        if not root.is_dir():
            raise GuideLintError(f"Root is not a directory: {root}")
        return {"root": str(root.absolute())}

    def collections_check():
        found[:] = loader.discover(settings.root)
        if not found:
            raise GuideLintError("No Markdown files found")
        return {
            "collections": len(found),
            "chapters": sum(len(c.chapters) for c in found),
            "indexes": sum(1 for c in found if c.index is not None),
        }

    def readable_check():
        if loader.errors:
            raise GuideLintError(
                f"{len(loader.errors)} unreadable file(s): "
                + ", ".join(error.path for error in loader.errors[:3])
            )
        return {"unreadable": 0}

    health.register_check("root", root_check)
    health.register_check("collections", collections_check)
    health.register_check("readable", readable_check)

    if settings.external.enabled:

        def external_check():
            urls = []
            for collection in found:
                for document in collection.documents():
                    for link in document.document.links:
                        if link.is_external and link.target not in urls:
                            urls.append(link.target)
            urls = urls[:EXTERNAL_SAMPLE_SIZE]
            if not urls:
                return {"sampled": 0}

            with ExternalLinkChecker(settings.external) as checker:
                probes = checker.probe_all(urls)
            if probes and not any(probe.ok for probe in probes.values()):
                raise GuideLintError(f"None of {len(probes)} sampled external links answered")
            return {"sampled": len(probes), "ok": sum(1 for p in probes.values() if p.ok)}

        health.register_check("external", external_check)

    return health


@click.command()
@click.argument("root", required=False, type=click.Path(path_type=Path))
@click.pass_context
def doctor(ctx, root: Optional[Path]):
    """Run guidelint diagnostics and print a summary report."""
    settings: Settings = ctx.obj["settings"].model_copy(deep=True)
    if root is not None:
        settings.root = root

    click.echo("guidelint Doctor")
    click.echo("=" * 40)

    print_configuration_summary(settings)

    problems = validate_settings(settings)
    if problems:
        click.echo("\nConfiguration Issues:")
        for problem in problems:
            click.echo(f"  ✗ {problem}")

    click.echo("\nHealth Checks:")
    health = build_health_checker(settings)
    results = health.check_all()
    for name, result in results.items():
        if result["status"] == "healthy":
            details = ", ".join(f"{k}={v}" for k, v in result["details"].items())
            click.echo(f"  ✓ {name}: {details}")
        else:
            click.echo(f"  ✗ {name}: {result['error']}")

    if not settings.external.enabled:
        click.echo("  - external: disabled (set GUIDELINT_CHECK_EXTERNAL=true)")

    click.echo("\nDone.")
    sys.exit(0 if health.is_healthy() and not problems else 1)
