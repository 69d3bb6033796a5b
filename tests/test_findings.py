"""Tests for finding construction, normalization and comparison."""

from __future__ import annotations

import json
import re

from diff_sentinel.findings import (
    ReviewFinding,
    build_finding,
    compare_findings,
    evidence_line,
    group_by_severity,
    make_fingerprint,
    max_severity,
    normalize_findings,
)

HEX40 = re.compile(r"^[0-9a-f]{40}$")


def _finding(**overrides: object) -> ReviewFinding:
    values: dict[str, object] = {
        "rule": "style.no-todo-comment",
        "area": "Style",
        "severity": "minor",
        "file": "a.ts",
        "locator": "L1",
        "finding": ['[L1] Matched signal: "// TODO"'],
        "why": "why",
        "suggestion": "fix",
    }
    values.update(overrides)
    return build_finding(**values)  # type: ignore[arg-type]


def test_fingerprint_is_stable_hex_digest() -> None:
    first = _finding()
    second = _finding(why="other reason", suggestion="other fix", area="Other")
    assert HEX40.match(first.fingerprint)
    assert first.fingerprint == second.fingerprint
    assert first.fingerprint == make_fingerprint(
        "style.no-todo-comment", "a.ts", "L1", '[L1] Matched signal: "// TODO"'
    )


def test_fingerprint_changes_with_identity_fields() -> None:
    base = _finding().fingerprint
    assert _finding(rule="other").fingerprint != base
    assert _finding(file="b.ts").fingerprint != base
    assert _finding(locator="L2").fingerprint != base
    assert _finding(finding=["[L1] different"]).fingerprint != base


def test_fingerprint_with_no_evidence_lines() -> None:
    assert _finding(finding=[]).fingerprint == make_fingerprint(
        "style.no-todo-comment", "a.ts", "L1", ""
    )


def test_evidence_line_clips_long_text() -> None:
    assert evidence_line(3, "x = 1", "Matched signal") == '[L3] Matched signal: "x = 1"'

    long_text = "a" * 200
    line = evidence_line(9, long_text, "Matched signal")
    quoted = line.split(": ", 1)[1].strip('"')
    assert len(quoted) == 178
    assert quoted.endswith("…")

    exact = "b" * 180
    assert exact in evidence_line(1, exact, "m")


def test_normalize_coerces_loose_fields() -> None:
    findings = normalize_findings(
        [
            {
                "rule": "r1",
                "file": "src/a.ts",
                "severity": "blocker",
                "locator": "line 4",
                "finding": "single string",
            },
            {"rule": "r2", "file": "src/b.ts", "locator": "HUNK:@@ -1 +1 @@", "area": "Perf"},
            {"rule": "", "file": "src/c.ts"},
            {"rule": "r3"},
            "junk",
        ]
    )
    assert [item.rule for item in findings] == ["r1", "r2"]

    first, second = findings
    assert first.severity == "minor"
    assert first.locator == "L0"
    assert first.area == "general"
    assert first.finding == ["single string"]
    assert HEX40.match(first.fingerprint)

    assert second.locator == "HUNK:@@ -1 +1 @@"
    assert second.area == "Perf"
    assert second.finding == []


def test_normalize_keeps_valid_supplied_fingerprint_only() -> None:
    supplied = "A" * 40
    kept, replaced = normalize_findings(
        {
            "findings": [
                {"rule": "r", "file": "f", "locator": "L1", "fingerprint": supplied},
                {"rule": "r", "file": "f", "locator": "L1", "fingerprint": "short"},
            ]
        }
    )
    assert kept.fingerprint == "a" * 40
    assert replaced.fingerprint != "short"
    assert HEX40.match(replaced.fingerprint)


def test_normalize_fallback_fingerprint_is_deterministic() -> None:
    payload = {"ai_review": {"findings": [{"rule": "r", "file": "f", "severity": "major"}]}}
    assert normalize_findings(payload)[0].fingerprint == normalize_findings(payload)[0].fingerprint


def test_fingerprints_accept_lone_surrogates() -> None:
    raw = json.loads('[{"rule": "r", "file": "a.ts", "why": "bad \\ud83d char"}]')
    (normalized,) = normalize_findings(raw)
    assert normalized.why == "bad \ud83d char"
    assert HEX40.match(normalized.fingerprint)

    built = _finding(finding=["[L1] \udcff"])
    assert HEX40.match(built.fingerprint)
    assert built.fingerprint != _finding(finding=["[L1] \udcfe"]).fingerprint


def test_normalize_ignores_unusable_inputs() -> None:
    assert normalize_findings(None) == []
    assert normalize_findings("text") == []
    assert normalize_findings({"findings": "nope"}) == []


def test_group_and_max_severity() -> None:
    findings = [
        _finding(severity="info"),
        _finding(severity="critical", rule="a"),
        _finding(severity="minor", rule="b"),
    ]
    grouped = group_by_severity(findings)
    assert list(grouped) == ["critical", "major", "minor", "info"]
    assert [item.rule for item in grouped["critical"]] == ["a"]
    assert grouped["major"] == []
    assert max_severity(findings) == "critical"
    assert max_severity([]) is None


def test_compare_findings_by_fingerprint() -> None:
    kept = _finding()
    fixed = _finding(rule="fixed")
    new = _finding(rule="new")
    comparison = compare_findings([kept, new], [fixed, kept])
    assert [item.rule for item in comparison.added] == ["new"]
    assert [item.rule for item in comparison.removed] == ["fixed"]
    assert [item.rule for item in comparison.unchanged] == ["style.no-todo-comment"]
    assert set(comparison.to_dict()) == {"added", "removed", "unchanged"}
