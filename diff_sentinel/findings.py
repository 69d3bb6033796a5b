"""Review finding records, fingerprints and normalization."""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

Severity = Literal["critical", "major", "minor", "info"]

SEVERITIES: tuple[Severity, ...] = ("critical", "major", "minor", "info")
SEVERITY_RANK: dict[str, int] = {"info": 0, "minor": 1, "major": 2, "critical": 3}
DEFAULT_SEVERITY: Severity = "minor"
DEFAULT_AREA = "general"
DEFAULT_LOCATOR = "L0"

LOCATOR_RE = re.compile(r"^(?:L\d+|HUNK:@@.*@@)$")
FINGERPRINT_RE = re.compile(r"^[0-9a-f]{40}$")
EVIDENCE_CLIP = 180


@dataclass(slots=True)
class ReviewFinding:
    """A single review finding anchored to a file location."""

    rule: str
    area: str
    severity: Severity
    file: str
    locator: str
    finding: list[str] = field(default_factory=list)
    why: str = ""
    suggestion: str = ""
    fingerprint: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "area": self.area,
            "severity": self.severity,
            "file": self.file,
            "locator": self.locator,
            "finding": list(self.finding),
            "why": self.why,
            "suggestion": self.suggestion,
            "fingerprint": self.fingerprint,
        }


@dataclass(slots=True)
class FindingsComparison:
    """Findings partitioned against a previous run by fingerprint."""

    added: list[ReviewFinding] = field(default_factory=list)
    removed: list[ReviewFinding] = field(default_factory=list)
    unchanged: list[ReviewFinding] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": [item.to_dict() for item in self.added],
            "removed": [item.to_dict() for item in self.removed],
            "unchanged": [item.to_dict() for item in self.unchanged],
        }


def make_fingerprint(rule: str, file: str, locator: str, first_line: str) -> str:
    """Content hash of a finding's identity, used as the dedup key."""
    key = f"{rule}\n{file}\n{locator}\n{first_line}"
    return hashlib.sha1(key.encode("utf-8", errors="surrogatepass")).hexdigest()


def build_finding(
    *,
    rule: str,
    area: str,
    severity: Severity,
    file: str,
    locator: str,
    finding: list[str],
    why: str,
    suggestion: str,
) -> ReviewFinding:
    """Assemble a finding and stamp its fingerprint."""
    first_line = finding[0] if finding else ""
    return ReviewFinding(
        rule=rule,
        area=area,
        severity=severity,
        file=file,
        locator=locator,
        finding=list(finding),
        why=why,
        suggestion=suggestion,
        fingerprint=make_fingerprint(rule, file, locator, first_line),
    )


def evidence_line(line_no: int, text: str, message: str) -> str:
    """Format ``[L<n>] message: "quoted text"`` with the quote clipped."""
    quoted = text if len(text) <= EVIDENCE_CLIP else text[: EVIDENCE_CLIP - 3] + "…"
    return f'[L{line_no}] {message}: "{quoted}"'


def coerce_severity(value: Any) -> Severity:
    if isinstance(value, str) and value in SEVERITIES:
        return value  # type: ignore[return-value]
    return DEFAULT_SEVERITY


def normalize_findings(raw: Any) -> list[ReviewFinding]:
    """Coerce loosely typed finding objects into canonical findings.

    Accepts a list of mappings, ``{"findings": [...]}`` or a review envelope
    ``{"ai_review": {"findings": [...]}}``. Entries without ``rule`` or
    ``file`` are dropped.
    """
    normalized: list[ReviewFinding] = []
    for item in _raw_items(raw):
        if not isinstance(item, dict):
            continue
        rule = _as_text(item.get("rule"))
        file = _as_text(item.get("file"))
        if not rule or not file:
            continue

        locator = _as_text(item.get("locator"))
        if not LOCATOR_RE.match(locator):
            locator = DEFAULT_LOCATOR

        raw_lines = item.get("finding")
        if isinstance(raw_lines, list):
            lines = [str(line) for line in raw_lines]
        elif isinstance(raw_lines, str) and raw_lines:
            lines = [raw_lines]
        else:
            lines = []

        finding = ReviewFinding(
            rule=rule,
            area=_as_text(item.get("area")) or DEFAULT_AREA,
            severity=coerce_severity(item.get("severity")),
            file=file,
            locator=locator,
            finding=lines,
            why=_as_text(item.get("why")),
            suggestion=_as_text(item.get("suggestion")),
        )
        supplied = _as_text(item.get("fingerprint")).lower()
        if FINGERPRINT_RE.match(supplied):
            finding.fingerprint = supplied
        else:
            finding.fingerprint = _fallback_fingerprint(finding)
        normalized.append(finding)
    return normalized


def group_by_severity(findings: Iterable[ReviewFinding]) -> dict[Severity, list[ReviewFinding]]:
    """Group findings in canonical severity order (critical first)."""
    grouped: dict[Severity, list[ReviewFinding]] = {severity: [] for severity in SEVERITIES}
    for finding in findings:
        grouped[coerce_severity(finding.severity)].append(finding)
    return grouped


def max_severity(findings: Iterable[ReviewFinding]) -> Severity | None:
    top: Severity | None = None
    for finding in findings:
        severity = coerce_severity(finding.severity)
        if top is None or SEVERITY_RANK[severity] > SEVERITY_RANK[top]:
            top = severity
    return top


def compare_findings(
    current: list[ReviewFinding], previous: list[ReviewFinding]
) -> FindingsComparison:
    """Split findings into added/removed/unchanged between two runs."""
    previous_keys = {item.fingerprint for item in previous}
    current_keys = {item.fingerprint for item in current}
    return FindingsComparison(
        added=[item for item in current if item.fingerprint not in previous_keys],
        removed=[item for item in previous if item.fingerprint not in current_keys],
        unchanged=[item for item in current if item.fingerprint in previous_keys],
    )


def _raw_items(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, dict):
        return []
    envelope = raw.get("ai_review")
    if isinstance(envelope, dict):
        raw = envelope
    items = raw.get("findings")
    return items if isinstance(items, list) else []


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _fallback_fingerprint(finding: ReviewFinding) -> str:
    payload = finding.to_dict()
    payload.pop("fingerprint")
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha1(canonical.encode("utf-8", errors="surrogatepass")).hexdigest()
