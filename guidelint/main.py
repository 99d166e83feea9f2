"""
Main application entry point for guidelint.

Provides the CLI for checking guide collections and inspecting configuration.
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from guidelint.cli_commands.doctor import doctor
from guidelint.cli_commands.toc import toc
from guidelint.core.config import (
    Settings,
    get_settings,
    print_configuration_summary,
    reset_settings,
    validate_settings,
)
from guidelint.core.exceptions import ConfigurationError, GuideLintError
from guidelint.core.logging import set_correlation_id, setup_logging
from guidelint.core.models import LintReport, Severity
from guidelint.data.guide_loader import GuideLoader
from guidelint.services.lint_service import LintService, list_rules
from guidelint.services.render_service import OUTPUT_FORMATS, render_report, summary_line

console = Console()

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_CONFIG = 2

SEVERITY_STYLES = {"error": "red", "warning": "yellow", "info": "blue"}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--correlation-id", help="Set correlation ID for log tracing")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Read settings from this .env file",
)
@click.version_option(package_name="guidelint")
@click.pass_context
def main(ctx, debug: bool, correlation_id: Optional[str], env_file: Optional[str]):
    """Integrity checks for Markdown guide collections.

    Verifies that chapter navigation links resolve, that every fenced code
    block declares a language, and that each README index matches the
    chapter files in its directory.
    """
    ctx.ensure_object(dict)

    reset_settings()
    try:
        settings = get_settings(env_file)
    except ValidationError as e:
        console.print(f"[red]Configuration Error:[/red] {escape(str(e))}")
        sys.exit(EXIT_CONFIG)

    setup_logging(debug=debug or settings.debug, rich_output=True)
    set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings


main.add_command(toc)
main.add_command(doctor)


def _settings_for(ctx, root: Optional[Path]) -> Settings:
    settings: Settings = ctx.obj["settings"].model_copy(deep=True)
    if root is not None:
        settings.root = root
    return settings


def _exit_on_config_problems(settings: Settings) -> None:
    problems = validate_settings(settings)
    if problems:
        console.print("[red]Configuration Error:[/red]")
        for problem in problems:
            console.print(f"  • {escape(problem)}")
        sys.exit(EXIT_CONFIG)


@main.command()
@click.argument("root", required=False, type=click.Path(path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="text",
    show_default=True,
    help="Report format",
)
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), help="Write report here")
@click.option("--strict", is_flag=True, help="Fail on warnings as well as errors")
@click.option("--external", is_flag=True, help="Also probe external http(s) links")
@click.option("--disable", multiple=True, help="Disable a rule (repeatable)")
@click.pass_context
def check(
    ctx,
    root: Optional[Path],
    output_format: str,
    output: Optional[Path],
    strict: bool,
    external: bool,
    disable: Tuple[str, ...],
):
    """Check the guide tree under ROOT (default: GUIDELINT_ROOT or the current directory)."""
    settings = _settings_for(ctx, root)
    if strict:
        settings.strict = True
    if external:
        settings.external.enabled = True
    if disable:
        settings.disabled_rules = settings.disabled_rules + [rule.lower() for rule in disable]

    _exit_on_config_problems(settings)

    try:
        report = LintService(settings).run()

        if output is not None:
            output.write_text(render_report(report, output_format), encoding="utf-8")
            console.print(f"[blue]Report written to {escape(str(output))}[/blue]")
            console.print(summary_line(report))
        elif output_format == "text":
            _display_report(report)
        else:
            click.echo(render_report(report, output_format), nl=False)

        sys.exit(EXIT_FINDINGS if report.has_failures() else EXIT_OK)

    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {escape(e.message)}")
        sys.exit(EXIT_CONFIG)
    except GuideLintError as e:
        console.print(f"[red]Check Error:[/red] {escape(e.message)}")
        sys.exit(EXIT_FINDINGS)
    except Exception as e:
        console.print(f"[red]Unexpected Error:[/red] {escape(str(e))}")
        if ctx.obj["debug"]:
            import traceback

            console.print(traceback.format_exc())
        sys.exit(EXIT_FINDINGS)


@main.command()
@click.argument("root", required=False, type=click.Path(path_type=Path))
@click.pass_context
def collections(ctx, root: Optional[Path]):
    """List the guide collections found under ROOT."""
    settings = _settings_for(ctx, root)
    _exit_on_config_problems(settings)

    try:
        loader = GuideLoader(settings)
        found = loader.discover(settings.root)

        table = Table(title="Guide Collections")
        table.add_column("Collection", style="cyan")
        table.add_column("Chapters", justify="right")
        table.add_column("Index", justify="center")
        table.add_column("Entries", justify="right")
        table.add_column("Numbered", justify="right")

        for collection in found:
            numbered = sum(1 for c in collection.chapters if c.number is not None)
            table.add_row(
                escape(collection.name),
                str(len(collection.chapters)),
                "[green]✓[/green]" if collection.index else "[red]✗[/red]",
                str(len(collection.entries)),
                str(numbered),
            )

        console.print(table)
        if loader.errors:
            console.print(f"[yellow]{len(loader.errors)} file(s) could not be read[/yellow]")
        sys.exit(EXIT_OK)

    except GuideLintError as e:
        console.print(f"[red]Discovery Error:[/red] {escape(e.message)}")
        sys.exit(EXIT_FINDINGS)


@main.command()
def rules():
    """List every rule with its default severity."""
    table = Table(title="guidelint Rules")
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Description", style="white")

    for info in list_rules():
        style = SEVERITY_STYLES[info["severity"]]
        table.add_row(info["code"], f"[{style}]{info['severity']}[/{style}]", info["description"])

    console.print(table)


@main.command()
@click.pass_context
def config(ctx):
    """Display current configuration."""
    settings: Settings = ctx.obj["settings"]
    console.print("[blue]guidelint Configuration[/blue]")

    problems = validate_settings(settings)
    if problems:
        console.print("[red]⚠️  Configuration Issues:[/red]")
        for problem in problems:
            console.print(f"  • {escape(problem)}")
    else:
        console.print("[green]✅ Configuration Valid[/green]")
    console.print()

    print_configuration_summary(settings)
    sys.exit(EXIT_CONFIG if problems else EXIT_OK)


def _display_report(report: LintReport) -> None:
    """Display lint findings as a table with a summary line."""
    if report.findings:
        table = Table(title="Guide Check Findings")
        table.add_column("Location", style="cyan", overflow="fold")
        table.add_column("Severity")
        table.add_column("Rule", style="magenta", no_wrap=True)
        table.add_column("Message", style="white", overflow="fold")

        for finding in report.findings:
            severity = Severity(finding.severity).value
            style = SEVERITY_STYLES[severity]
            table.add_row(
                escape(finding.location),
                f"[{style}]{severity}[/{style}]",
                finding.rule,
                escape(finding.message),
            )
        console.print(table)

    if report.has_failures():
        console.print(f"[red]❌ {summary_line(report)}[/red]")
    else:
        console.print(f"[green]✅ {summary_line(report)}[/green]")


if __name__ == "__main__":
    main()
