"""
Render service for lint reports.

Turns a :class:`LintReport` into plain text, Markdown (via a Jinja2
template) or JSON.
"""

from typing import Callable, Dict

import structlog
from jinja2 import BaseLoader, Environment, TemplateError

from guidelint.core.exceptions import RenderError
from guidelint.core.models import LintReport, Severity

logger = structlog.get_logger(__name__)

OUTPUT_FORMATS = ("text", "markdown", "json")

SEVERITY_BADGES = {"error": "🔴 error", "warning": "🟡 warning", "info": "🔵 info"}

MARKDOWN_TEMPLATE = """\
# guidelint report

- **Root:** `{{ report.root }}`
- **Status:** {{ report.status.value | upper }}
- **Collections checked:** {{ report.collections_checked }}
- **Files checked:** {{ report.files_checked }}
- **Findings:** {{ counts.error }} error(s), {{ counts.warning }} warning(s), {{ counts.info }} info
{%- if report.duration_seconds is not none %}
- **Duration:** {{ "%.2f" | format(report.duration_seconds) }}s
{%- endif %}
{% if report.findings %}
| Severity | Rule | Location | Message |
|----------|------|----------|---------|
{% for f in report.findings -%}
| {{ badges[f.severity.value] }} | `{{ f.rule }}` | `{{ f.location }}` | {{ f.message | md_cell }} |
{% endfor -%}
{% else %}
No problems found.
{% endif %}"""


def _md_cell(value: str) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def _environment() -> Environment:
    env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)
    env.filters["md_cell"] = _md_cell
    return env


def render_text(report: LintReport) -> str:
    """One finding per line, compiler style, followed by a summary line."""
    lines = [
        f"{f.location}: {Severity(f.severity).value} [{f.rule}] {f.message}"
        for f in report.findings
    ]
    lines.append(summary_line(report))
    return "\n".join(lines) + "\n"


def render_markdown(report: LintReport) -> str:
    try:
        template = _environment().from_string(MARKDOWN_TEMPLATE)
        return template.render(report=report, counts=report.counts, badges=SEVERITY_BADGES)
    except TemplateError as e:
        logger.error("Markdown report rendering failed", error=str(e))
        raise RenderError(f"Markdown rendering failed: {e}") from e


def render_json(report: LintReport) -> str:
    return report.model_dump_json(indent=2) + "\n"


RENDERERS: Dict[str, Callable[[LintReport], str]] = {
    "text": render_text,
    "markdown": render_markdown,
    "json": render_json,
}


def render_report(report: LintReport, fmt: str = "text") -> str:
    """Render a report in one of :data:`OUTPUT_FORMATS`."""
    renderer = RENDERERS.get(fmt)
    if renderer is None:
        raise RenderError(
            f"Unknown output format '{fmt}'", {"supported": list(OUTPUT_FORMATS)}
        )
    return renderer(report)


def summary_line(report: LintReport) -> str:
    counts = report.counts
    return (
        f"{counts['error']} error(s), {counts['warning']} warning(s), {counts['info']} info "
        f"in {report.files_checked} file(s) across {report.collections_checked} collection(s)"
    )
