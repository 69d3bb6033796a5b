"""Static review engine: rule gating, boundary checks and LLM task planning."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, assert_never

from diff_sentinel.boundaries import (
    BoundariesConfig,
    ImportEdge,
    check_forbidden,
    extract_import_specifier,
    load_boundaries,
    to_posix,
)
from diff_sentinel.constraints import (
    RuleConstraint,
    RuleItem,
    RulesJson,
    TriggerType,
    derive_rule_constraints,
    load_rules,
)
from diff_sentinel.diff_parser import AddedLine, FileDiff, added_lines_by_file, parse_unified_diff
from diff_sentinel.findings import ReviewFinding, Severity, build_finding, evidence_line
from diff_sentinel.globs import matches_any
from diff_sentinel.matchers import any_exempt, any_match, line_matches

logger = logging.getLogger(__name__)

SNIPPET_LIMIT = 240
BOUNDARY_RULE_PREFIX = "boundaries."
BOUNDARY_DEFAULT_AREA = "architecture"
BOUNDARY_DEFAULT_SEVERITY: Severity = "major"


@dataclass(frozen=True, slots=True)
class EngineOptions:
    """Tuning knobs for the static engine.

    ``strict_signals`` treats every rule that declares signals as if it set
    ``requireSignalMatch``. The caps bound how many findings one rule may
    emit per file and in total; ``None`` disables a cap.
    """

    strict_signals: bool = False
    cap_per_rule_per_file: int | None = None
    cap_per_rule_total: int | None = None


@dataclass(frozen=True, slots=True)
class LlmTask:
    """An added line deferred to an LLM-backed reviewer."""

    rule_id: str
    file: str
    locator: str
    snippet: str

    def to_dict(self) -> dict[str, str]:
        return {
            "rule_id": self.rule_id,
            "file": self.file,
            "locator": self.locator,
            "snippet": self.snippet,
        }


@dataclass(slots=True)
class CoreResult:
    """Findings plus deferred LLM tasks of one engine run."""

    findings: list[ReviewFinding] = field(default_factory=list)
    llm_tasks: list[LlmTask] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "findings": [item.to_dict() for item in self.findings],
            "llm_tasks": [item.to_dict() for item in self.llm_tasks],
        }


def analyze_diff(
    diff_text: str,
    rules: RulesJson | dict[str, Any] | None,
    boundaries: BoundariesConfig | dict[str, Any] | None = None,
    options: EngineOptions | None = None,
) -> CoreResult:
    """Run rule handlers and boundary checks over a unified diff.

    The result depends only on the arguments: no clock, randomness or I/O.
    """
    files = parse_unified_diff(diff_text)
    document = load_rules(rules)
    result = _run_rules(files, document, options or EngineOptions())

    boundaries_config = load_boundaries(boundaries)
    if boundaries_config is not None:
        result.findings.extend(_boundary_findings(files, boundaries_config, document))
    return result


def run_static_engine(
    diff_text: str,
    rules: RulesJson | dict[str, Any] | None,
    options: EngineOptions | None = None,
) -> CoreResult:
    """Run only the trigger-type handlers (no boundary checks)."""
    files = parse_unified_diff(diff_text)
    return _run_rules(files, load_rules(rules), options or EngineOptions())


def _run_rules(
    files: list[FileDiff],
    document: RulesJson | None,
    options: EngineOptions,
) -> CoreResult:
    result = CoreResult()
    added_by_file = added_lines_by_file(files)

    for constraint in derive_rule_constraints(document):
        trigger_type = constraint.trigger_type
        if trigger_type is None:
            logger.warning(
                "Skipping rule %s: unknown trigger type %r", constraint.id, constraint.raw_type
            )
            continue

        scoped = _scope_files(constraint, added_by_file)
        logger.debug(
            "rule %s (type=%s): %d file(s) in scope", constraint.id, trigger_type, len(scoped)
        )

        match trigger_type:
            case TriggerType.PATTERN | TriggerType.HEURISTIC | TriggerType.HYBRID:
                produced = _pattern_handler(constraint, scoped, options)
                result.findings.extend(_apply_caps(produced, options))
            case TriggerType.LLM:
                result.llm_tasks.extend(_llm_tasks(constraint, scoped))
            case _:
                assert_never(trigger_type)

    return result


def _scope_files(
    constraint: RuleConstraint,
    added_by_file: dict[str, list[AddedLine]],
) -> dict[str, list[AddedLine]]:
    scoped: dict[str, list[AddedLine]] = {}
    for path, added in added_by_file.items():
        if not added:
            continue
        if constraint.file_glob and not matches_any(path, list(constraint.file_glob)):
            continue
        scoped[path] = added
    return scoped


def _pattern_handler(
    constraint: RuleConstraint,
    scoped: dict[str, list[AddedLine]],
    options: EngineOptions,
) -> list[ReviewFinding]:
    signals = list(constraint.signals)
    exempt = list(constraint.exempt)
    require_signal = constraint.require_signal_match or (options.strict_signals and bool(signals))

    findings: list[ReviewFinding] = []
    for path, added in scoped.items():
        texts = [item.text for item in added]
        # Exemption and the signal gate both look at the whole file first.
        if any_exempt(texts, exempt):
            logger.debug("  %s: exempted", path)
            continue
        if require_signal and not any_match(texts, signals):
            logger.debug("  %s: no signal match", path)
            continue

        for item in added:
            if require_signal and not line_matches(item.text, signals):
                continue
            findings.append(
                build_finding(
                    rule=constraint.id,
                    area=constraint.area or "general",
                    severity=constraint.severity,
                    file=path,
                    locator=f"L{item.line}",
                    finding=[evidence_line(item.line, item.text, "Matched signal")],
                    why="Added line matches rule signal and is not exempted.",
                    suggestion="Review and apply the project guideline for this rule.",
                )
            )
    return findings


def _llm_tasks(
    constraint: RuleConstraint,
    scoped: dict[str, list[AddedLine]],
) -> list[LlmTask]:
    return [
        LlmTask(
            rule_id=constraint.id,
            file=path,
            locator=f"L{item.line}",
            snippet=item.text[:SNIPPET_LIMIT],
        )
        for path, added in scoped.items()
        for item in added
    ]


def _apply_caps(findings: list[ReviewFinding], options: EngineOptions) -> list[ReviewFinding]:
    per_file = options.cap_per_rule_per_file
    total = options.cap_per_rule_total
    if not per_file and not total:
        return findings

    counters: dict[str, int] = {}
    capped: list[ReviewFinding] = []
    for finding in findings:
        if total and len(capped) >= total:
            break
        seen = counters.get(finding.file, 0)
        if per_file and seen >= per_file:
            continue
        counters[finding.file] = seen + 1
        capped.append(finding)
    return capped


def _boundary_findings(
    files: list[FileDiff],
    config: BoundariesConfig,
    document: RulesJson | None,
) -> list[ReviewFinding]:
    rules_by_id = document.by_id() if document is not None else {}
    findings: list[ReviewFinding] = []
    for file_diff in files:
        from_file = to_posix(file_diff.file_path)
        for item in file_diff.added_lines():
            specifier = extract_import_specifier(item.text)
            if specifier is None:
                continue
            edge = ImportEdge(from_file=from_file, specifier=specifier)
            for violated in check_forbidden(edge, config):
                rule_id = BOUNDARY_RULE_PREFIX + violated.rule
                area, severity = _boundary_meta(rules_by_id.get(rule_id))
                locator = f"L{item.line}"
                findings.append(
                    build_finding(
                        rule=rule_id,
                        area=area,
                        severity=severity,
                        file=file_diff.file_path,
                        locator=locator,
                        finding=[f"[{locator}] Forbidden import per boundaries: `{specifier}`"],
                        why=violated.explain or "Import violates module boundaries policy.",
                        suggestion="Import through an allowed adapter/port or public API.",
                    )
                )
    return findings


def _boundary_meta(rule: RuleItem | None) -> tuple[str, Severity]:
    if rule is None:
        return (BOUNDARY_DEFAULT_AREA, BOUNDARY_DEFAULT_SEVERITY)
    return (rule.area or BOUNDARY_DEFAULT_AREA, rule.severity)
