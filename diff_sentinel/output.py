"""Output rendering."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import click

from diff_sentinel import __version__
from diff_sentinel.engine import CoreResult
from diff_sentinel.findings import FindingsComparison, ReviewFinding, group_by_severity

REVIEW_ENVELOPE_VERSION = 1

SEVERITY_COLORS = {
    "critical": "red",
    "major": "yellow",
    "minor": "cyan",
    "info": "white",
}


def render_human(result: CoreResult) -> str:
    """Render findings grouped by severity, then file."""
    findings = result.findings
    if not findings:
        lines = [click.style("No findings.", fg="green", bold=True)]
    else:
        lines = [click.style(f"{len(findings)} finding(s)", bold=True)]
        for severity, items in group_by_severity(findings).items():
            if not items:
                continue
            color = SEVERITY_COLORS[severity]
            lines.append(click.style(f"{severity.upper()} ({len(items)})", fg=color, bold=True))
            for finding in sorted(items, key=lambda item: (item.area, item.file)):
                lines.append(f"- [{finding.rule}] {finding.file}:{finding.locator}")
                if finding.finding:
                    lines.append(f"   evidence: {finding.finding[0]}")
                if finding.why:
                    lines.append(f"   why: {finding.why}")
                if finding.suggestion:
                    lines.append(f"   follow-up: {finding.suggestion}")

    if result.llm_tasks:
        rule_ids = sorted({task.rule_id for task in result.llm_tasks})
        lines.append(
            f"{len(result.llm_tasks)} line(s) deferred to LLM review for: {', '.join(rule_ids)}"
        )
    return "\n".join(lines)


def build_review_payload(
    result: CoreResult,
    *,
    run_id: str,
    input_source: str,
    base: str | None,
    head: str | None,
) -> dict[str, Any]:
    """Wrap engine output in the review envelope stamped with run metadata."""
    return {
        "ai_review": {
            "version": REVIEW_ENVELOPE_VERSION,
            "run_id": run_id,
            "findings": [item.to_dict() for item in result.findings],
        },
        "llm_tasks": [item.to_dict() for item in result.llm_tasks],
        "meta": {
            "generated_at": datetime.now(tz=UTC)
            .replace(microsecond=0)
            .isoformat()
            .replace("+00:00", "Z"),
            "base": base,
            "head": head,
            "input_source": input_source,
            "version": __version__,
        },
    }


def render_comparison_human(comparison: FindingsComparison) -> str:
    lines = [
        click.style(
            f"added: {len(comparison.added)}, removed: {len(comparison.removed)}, "
            f"unchanged: {len(comparison.unchanged)}",
            bold=True,
        )
    ]
    for label, items in (("+", comparison.added), ("-", comparison.removed)):
        for finding in items:
            lines.append(_comparison_line(label, finding))
    return "\n".join(lines)


def _comparison_line(label: str, finding: ReviewFinding) -> str:
    color = "red" if label == "+" else "green"
    return click.style(
        f"{label} [{finding.rule}] {finding.file}:{finding.locator} ({finding.severity})",
        fg=color,
    )
