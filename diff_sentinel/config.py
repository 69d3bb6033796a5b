"""Configuration loading for diff-sentinel."""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from diff_sentinel.engine import EngineOptions

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".diff-sentinel.toml", "diff-sentinel.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("diff_sentinel", "diff-sentinel")
FAIL_ON_CHOICES = {"none", "major", "critical"}


@dataclass(slots=True)
class EngineConfig:
    """Static-engine tuning from the ``[engine]`` table."""

    strict_signals: bool = False
    cap_per_rule_per_file: int | None = None
    cap_per_rule_total: int | None = None

    def to_options(self) -> EngineOptions:
        return EngineOptions(
            strict_signals=self.strict_signals,
            cap_per_rule_per_file=self.cap_per_rule_per_file,
            cap_per_rule_total=self.cap_per_rule_total,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strict_signals": self.strict_signals,
            "cap_per_rule_per_file": self.cap_per_rule_per_file,
            "cap_per_rule_total": self.cap_per_rule_total,
        }


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    fail_on: str | None = None
    max_findings: int | None = None
    rules: str | None = None
    boundaries: str | None = None
    engine: EngineConfig = field(default_factory=EngineConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "fail_on": self.fail_on,
            "max_findings": self.max_findings,
            "rules": self.rules,
            "boundaries": self.boundaries,
            "engine": self.engine.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def load_json_file(path: Path, *, label: str) -> Any:
    """Read a JSON policy file (rules, boundaries, findings)."""
    if not path.exists():
        raise ValueError(f"{label} file does not exist: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def resolve_policy_path(repo: Path, value: str | Path | None) -> Path | None:
    """Resolve a rules/boundaries path relative to the repository."""
    if value is None:
        return None
    path = Path(value)
    return path if path.is_absolute() else repo.resolve() / path


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "json"',
            'fail_on = "major"',
            "max_findings = 50",
            'rules = "docs/rules/rules.json"',
            'boundaries = "docs/rules/boundaries.json"',
            "",
            "[engine]",
            "strict_signals = false",
            "# cap_per_rule_per_file = 3",
            "# cap_per_rule_total = 50",
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    logger.debug("Loaded config from %s", path)
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    engine_mapping = _as_table(mapping.get("engine"), "engine")

    format_value = str(mapping.get("format", "human")).lower()
    if format_value not in {"human", "json"}:
        format_value = "human"

    raw_fail_on = mapping.get("fail_on")
    fail_on = None if raw_fail_on is None else _as_choice(raw_fail_on, FAIL_ON_CHOICES, "fail_on")

    return AppConfig(
        format=format_value,
        fail_on=fail_on,
        max_findings=_as_optional_positive_int(mapping.get("max_findings"), "max_findings"),
        rules=_as_optional_str(mapping.get("rules"), "rules"),
        boundaries=_as_optional_str(mapping.get("boundaries"), "boundaries"),
        engine=_parse_engine_config(engine_mapping),
        source=source,
    )


def _parse_engine_config(value: dict[str, Any]) -> EngineConfig:
    return EngineConfig(
        strict_signals=_as_bool(value.get("strict_signals", False), "engine.strict_signals"),
        cap_per_rule_per_file=_as_optional_positive_int(
            value.get("cap_per_rule_per_file"), "engine.cap_per_rule_per_file"
        ),
        cap_per_rule_total=_as_optional_positive_int(
            value.get("cap_per_rule_total"), "engine.cap_per_rule_total"
        ),
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value


def _as_optional_positive_int(raw: Any, field_name: str) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    if raw <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw
