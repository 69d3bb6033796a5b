"""Rule documents and the matching constraints derived from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from diff_sentinel.findings import SEVERITIES, Severity, coerce_severity

Evidence = Literal["added-only", "diff-any"]

EVIDENCE_MODES: tuple[Evidence, ...] = ("added-only", "diff-any")
RULE_STATUSES = ("active", "experimental", "deprecated")


class TriggerType(StrEnum):
    """Closed set of rule trigger kinds."""

    PATTERN = "pattern"
    HEURISTIC = "heuristic"
    HYBRID = "hybrid"
    LLM = "llm"


TRIGGER_TYPES = frozenset(item.value for item in TriggerType)


@dataclass(slots=True)
class RuleTrigger:
    """Declared trigger of a rule.

    ``type`` is ``None`` when ``raw_type`` is not one of :class:`TriggerType`.
    """

    type: TriggerType | None = TriggerType.PATTERN
    raw_type: str = TriggerType.PATTERN.value
    evidence: Evidence = "added-only"
    require_signal_match: bool = False
    signals: list[str] = field(default_factory=list)
    exempt: list[str] = field(default_factory=list)
    file_glob: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.raw_type,
            "evidence": self.evidence,
            "requireSignalMatch": self.require_signal_match,
            "signals": list(self.signals),
            "exempt": list(self.exempt),
            "file_glob": list(self.file_glob),
        }


@dataclass(slots=True)
class RuleItem:
    """One rule of a rules document."""

    id: str
    area: str
    severity: Severity
    description: str = ""
    trigger: RuleTrigger | None = None
    status: str | None = None
    version: int | None = None

    @property
    def trigger_type(self) -> TriggerType | None:
        if self.trigger is None:
            return TriggerType.PATTERN
        return self.trigger.type


@dataclass(slots=True)
class RulesJson:
    """A rules document: ``{version, domain, rules}``."""

    version: int = 1
    domain: str = ""
    rules: list[RuleItem] = field(default_factory=list)

    def by_id(self) -> dict[str, RuleItem]:
        return {rule.id: rule for rule in self.rules}


@dataclass(frozen=True, slots=True)
class RuleConstraint:
    """Flattened matching settings for one rule, defaults applied."""

    id: str
    area: str
    severity: Severity
    trigger_type: TriggerType | None
    raw_type: str
    evidence: Evidence = "added-only"
    require_signal_match: bool = False
    signals: tuple[str, ...] = ()
    exempt: tuple[str, ...] = ()
    file_glob: tuple[str, ...] = ()


def load_rules(data: Any) -> RulesJson | None:
    """Leniently turn a parsed rules.json value into :class:`RulesJson`.

    Malformed entries are dropped or defaulted; this never raises.
    """
    if isinstance(data, RulesJson):
        return data
    if not isinstance(data, dict):
        return None

    version = data.get("version")
    rules: list[RuleItem] = []
    raw_rules = data.get("rules")
    for raw in raw_rules if isinstance(raw_rules, list) else []:
        rule = _load_rule(raw)
        if rule is not None:
            rules.append(rule)
    return RulesJson(
        version=version if isinstance(version, int) and not isinstance(version, bool) else 1,
        domain=str(data.get("domain") or ""),
        rules=rules,
    )


def derive_rule_constraints(rules: RulesJson | dict[str, Any] | None) -> list[RuleConstraint]:
    """Derive one constraint per rule, in declared order."""
    document = load_rules(rules)
    if document is None:
        return []

    constraints: list[RuleConstraint] = []
    for rule in document.rules:
        trigger = rule.trigger or RuleTrigger()
        constraints.append(
            RuleConstraint(
                id=rule.id,
                area=rule.area,
                severity=rule.severity,
                trigger_type=trigger.type,
                raw_type=trigger.raw_type,
                evidence=trigger.evidence,
                require_signal_match=trigger.require_signal_match,
                signals=tuple(trigger.signals),
                exempt=tuple(trigger.exempt),
                file_glob=tuple(trigger.file_glob),
            )
        )
    return constraints


def validate_rules(data: Any) -> list[str]:
    """Return schema problems of a rules.json document (empty when valid)."""
    if not isinstance(data, dict):
        return ["(root) must be an object"]

    errors: list[str] = []
    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        errors.append("/version must be an integer")
    if not isinstance(data.get("domain"), str):
        errors.append("/domain must be a string")
    raw_rules = data.get("rules")
    if not isinstance(raw_rules, list):
        errors.append("/rules must be an array")
        return errors

    seen: set[str] = set()
    for index, raw in enumerate(raw_rules):
        pointer = f"/rules/{index}"
        if not isinstance(raw, dict):
            errors.append(f"{pointer} must be an object")
            continue
        rule_id = raw.get("id")
        if not isinstance(rule_id, str) or not rule_id:
            errors.append(f"{pointer}/id must be a non-empty string")
        elif rule_id in seen:
            errors.append(f"{pointer}/id duplicates '{rule_id}'")
        else:
            seen.add(rule_id)
        if not isinstance(raw.get("area"), str):
            errors.append(f"{pointer}/area must be a string")
        if raw.get("severity") not in SEVERITIES:
            errors.append(f"{pointer}/severity must be one of: {', '.join(SEVERITIES)}")
        if "status" in raw and raw["status"] not in RULE_STATUSES:
            errors.append(f"{pointer}/status must be one of: {', '.join(RULE_STATUSES)}")
        if "trigger" in raw:
            errors.extend(_validate_trigger(raw["trigger"], f"{pointer}/trigger"))
    return errors


def _validate_trigger(raw: Any, pointer: str) -> list[str]:
    if not isinstance(raw, dict):
        return [f"{pointer} must be an object"]

    errors: list[str] = []
    trigger_type = raw.get("type")
    if not isinstance(trigger_type, str) or trigger_type not in TRIGGER_TYPES:
        errors.append(f"{pointer}/type must be one of: {', '.join(sorted(TRIGGER_TYPES))}")
    if "evidence" in raw and raw["evidence"] not in EVIDENCE_MODES:
        errors.append(f"{pointer}/evidence must be one of: {', '.join(EVIDENCE_MODES)}")
    if "requireSignalMatch" in raw and not isinstance(raw["requireSignalMatch"], bool):
        errors.append(f"{pointer}/requireSignalMatch must be a boolean")
    for key in ("signals", "exempt", "file_glob"):
        if key not in raw:
            continue
        value = raw[key]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            errors.append(f"{pointer}/{key} must be an array of strings")
    return errors


def _load_rule(raw: Any) -> RuleItem | None:
    if not isinstance(raw, dict):
        return None
    rule_id = raw.get("id")
    if rule_id is None or str(rule_id) == "":
        return None

    version = raw.get("version")
    status = raw.get("status")
    return RuleItem(
        id=str(rule_id),
        area=str(raw.get("area") or ""),
        severity=coerce_severity(raw.get("severity")),
        description=str(raw.get("description") or ""),
        trigger=_load_trigger(raw.get("trigger")),
        status=status if isinstance(status, str) else None,
        version=version if isinstance(version, int) and not isinstance(version, bool) else None,
    )


def _load_trigger(raw: Any) -> RuleTrigger | None:
    if not isinstance(raw, dict):
        return None

    raw_type = str(raw.get("type") or TriggerType.PATTERN.value)
    trigger_type = TriggerType(raw_type) if raw_type in TRIGGER_TYPES else None
    evidence: Evidence = "diff-any" if raw.get("evidence") == "diff-any" else "added-only"
    return RuleTrigger(
        type=trigger_type,
        raw_type=raw_type,
        evidence=evidence,
        require_signal_match=bool(raw.get("requireSignalMatch")),
        signals=_as_strings(raw.get("signals")),
        exempt=_as_strings(raw.get("exempt")),
        file_glob=_as_strings(raw.get("file_glob")),
    )


def _as_strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]
