"""Post-filter for findings produced outside the static engine."""

from __future__ import annotations

import re
from typing import Any

from diff_sentinel.constraints import RulesJson, derive_rule_constraints
from diff_sentinel.diff_parser import FileDiff, added_lines_by_file
from diff_sentinel.findings import ReviewFinding, normalize_findings
from diff_sentinel.matchers import any_exempt, any_match

EVIDENCE_TAG_RE = re.compile(r"^\[[^\]]+\]\s*")
QUOTE_PREFIX = 20


def gate_findings(
    raw: Any,
    files: list[FileDiff],
    rules: RulesJson | dict[str, Any] | None,
) -> list[ReviewFinding]:
    """Keep only externally produced findings the diff and policy support.

    A finding survives when its rule is declared, its file is part of the
    diff, the rule's exempt/require-signal policy passes on that file's added
    lines, and its first evidence line quotes one of those added lines.
    """
    constraints = {item.id: item for item in derive_rule_constraints(rules)}
    added_by_file = added_lines_by_file(files)

    kept: list[ReviewFinding] = []
    for finding in normalize_findings(raw):
        constraint = constraints.get(finding.rule)
        if constraint is None or finding.file not in added_by_file:
            continue

        texts = [item.text for item in added_by_file[finding.file]]
        if constraint.require_signal_match:
            if any_exempt(texts, list(constraint.exempt)):
                continue
            if not any_match(texts, list(constraint.signals)):
                continue

        if finding.finding and not _quotes_added_line(finding.finding[0], texts):
            continue
        kept.append(finding)
    return kept


def _quotes_added_line(evidence: str, texts: list[str]) -> bool:
    stripped = EVIDENCE_TAG_RE.sub("", evidence)
    return any(text[:QUOTE_PREFIX] in stripped for text in texts if text.strip())
