"""Import-boundary policy: forbidden from/to globs with allow-via overrides."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from diff_sentinel.globs import glob_match

IMPORT_PATTERNS = (
    re.compile(r"""\bfrom\s+['"]([^'"]+)['"]"""),
    re.compile(r"""\bimport\s+['"]([^'"]+)['"]"""),
    re.compile(r"""\bexport\s+\*\s+from\s+['"]([^'"]+)['"]"""),
)
RELATIVE_PREFIX_RE = re.compile(r"^(?:\.\.?/)+")
REPEATED_SEPARATOR_RE = re.compile(r"/{2,}")


@dataclass(frozen=True, slots=True)
class BoundaryLayer:
    """A named architectural layer rooted at ``path``."""

    name: str
    path: str
    index: int


@dataclass(frozen=True, slots=True)
class BoundaryRule:
    """A forbidden import relationship between two path globs."""

    rule: str
    from_glob: str
    to_glob: str
    allow_via: tuple[str, ...] = ()
    explain: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "rule": self.rule,
            "from": {"glob": self.from_glob},
            "to": {"glob": self.to_glob},
        }
        if self.allow_via:
            payload["allowVia"] = list(self.allow_via)
        if self.explain is not None:
            payload["explain"] = self.explain
        return payload


@dataclass(slots=True)
class BoundariesConfig:
    """Layers plus the forbidden import rules."""

    forbidden: list[BoundaryRule] = field(default_factory=list)
    layers: list[BoundaryLayer] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ImportEdge:
    """An import found on one added line."""

    from_file: str
    specifier: str


def load_boundaries(data: Any) -> BoundariesConfig | None:
    """Leniently turn a parsed boundaries.json value into :class:`BoundariesConfig`.

    Forbidden entries without ``rule``, ``from.glob`` or ``to.glob`` are
    dropped; this never raises.
    """
    if isinstance(data, BoundariesConfig):
        return data
    if not isinstance(data, dict):
        return None

    forbidden: list[BoundaryRule] = []
    raw_forbidden = data.get("forbidden")
    for raw in raw_forbidden if isinstance(raw_forbidden, list) else []:
        rule = _load_rule(raw)
        if rule is not None:
            forbidden.append(rule)

    layers: list[BoundaryLayer] = []
    raw_layers = data.get("layers")
    for raw in raw_layers if isinstance(raw_layers, list) else []:
        if not isinstance(raw, dict) or not raw.get("name") or not raw.get("path"):
            continue
        index = raw.get("index")
        layers.append(
            BoundaryLayer(
                name=str(raw["name"]),
                path=to_posix(str(raw["path"])),
                index=index if isinstance(index, int) and not isinstance(index, bool) else 0,
            )
        )
    return BoundariesConfig(forbidden=forbidden, layers=layers)


def to_posix(path: str) -> str:
    """Use ``/`` separators and collapse repeated ones."""
    return REPEATED_SEPARATOR_RE.sub("/", path.replace("\\", "/"))


def extract_import_specifier(line: str) -> str | None:
    """Return the module specifier of an ESM import/export on ``line``.

    CommonJS ``require(...)`` and commented-out imports yield ``None``.
    """
    code = _strip_line_comment(line).strip()
    if not code:
        return None
    for pattern in IMPORT_PATTERNS:
        match = pattern.search(code)
        if match is not None:
            return match.group(1) or None
    return None


def normalize_specifier(specifier: str) -> str:
    """Drop the leading run of ``./`` and ``../`` segments."""
    return RELATIVE_PREFIX_RE.sub("", to_posix(specifier))


def violates_rule(edge: ImportEdge, rule: BoundaryRule) -> bool:
    if not glob_match(rule.from_glob, edge.from_file):
        return False
    target = normalize_specifier(edge.specifier)
    if any(glob_match(glob, target) for glob in rule.allow_via):
        return False
    return glob_match(rule.to_glob, target)


def check_forbidden(edge: ImportEdge, config: BoundariesConfig) -> list[BoundaryRule]:
    """Return every forbidden rule the edge violates, in declared order."""
    return [rule for rule in config.forbidden if violates_rule(edge, rule)]


def layer_for(path: str, config: BoundariesConfig) -> BoundaryLayer | None:
    """Return the layer containing ``path``; the deepest layer path wins."""
    posix = to_posix(path)
    best: BoundaryLayer | None = None
    for layer in config.layers:
        root = layer.path.rstrip("/")
        inside = glob_match(layer.path, posix) or posix == root or posix.startswith(root + "/")
        if inside and (best is None or len(layer.path) > len(best.path)):
            best = layer
    return best


def _load_rule(raw: Any) -> BoundaryRule | None:
    if not isinstance(raw, dict):
        return None
    from_glob = _glob_of(raw.get("from"))
    to_glob = _glob_of(raw.get("to"))
    name = raw.get("rule")
    if not name or from_glob is None or to_glob is None:
        return None

    allow_via = raw.get("allowVia")
    explain = raw.get("explain")
    return BoundaryRule(
        rule=str(name),
        from_glob=from_glob,
        to_glob=to_glob,
        allow_via=tuple(str(item) for item in allow_via) if isinstance(allow_via, list) else (),
        explain=str(explain) if explain else None,
    )


def _glob_of(value: Any) -> str | None:
    if not isinstance(value, dict):
        return None
    glob = value.get("glob")
    if not isinstance(glob, str) or not glob:
        return None
    return glob


def _strip_line_comment(line: str) -> str:
    quote: str | None = None
    index = 0
    while index < len(line):
        char = line[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif line.startswith("//", index):
            return line[:index]
        index += 1
    return line
