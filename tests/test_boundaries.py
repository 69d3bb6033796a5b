"""Tests for import extraction and forbidden-boundary checks."""

from __future__ import annotations

from typing import Any

import pytest

from diff_sentinel.boundaries import (
    BoundariesConfig,
    BoundaryLayer,
    BoundaryRule,
    ImportEdge,
    check_forbidden,
    extract_import_specifier,
    layer_for,
    load_boundaries,
    normalize_specifier,
    to_posix,
    violates_rule,
)


@pytest.fixture
def config(boundaries_json: dict[str, Any]) -> BoundariesConfig:
    loaded = load_boundaries(boundaries_json)
    assert loaded is not None
    return loaded


def test_allow_via_overrides_forbidden_target(config: BoundariesConfig) -> None:
    edge = ImportEdge(from_file="src/features/a/view.ts", specifier="src/shared/ports/b-adapter.ts")
    assert check_forbidden(edge, config) == []


def test_internal_import_violates_exactly_one_rule(config: BoundariesConfig) -> None:
    edge = ImportEdge(
        from_file="src/features/a/view.ts", specifier="src/features/b/internal/utils.ts"
    )
    violations = check_forbidden(edge, config)
    assert [rule.rule for rule in violations] == ["feature-to-feature-internal"]


def test_relative_prefix_is_stripped_before_matching(config: BoundariesConfig) -> None:
    edge = ImportEdge(
        from_file="src/features/a/view.ts", specifier="../../../src/features/b/internal/x.ts"
    )
    assert len(check_forbidden(edge, config)) == 1


def test_source_outside_from_glob_is_not_checked(config: BoundariesConfig) -> None:
    edge = ImportEdge(from_file="scripts/build.ts", specifier="src/features/b/internal/x.ts")
    assert check_forbidden(edge, config) == []


def test_every_violated_rule_is_returned() -> None:
    config = BoundariesConfig(
        forbidden=[
            BoundaryRule(rule="no-internal", from_glob="src/**", to_glob="**/internal/**"),
            BoundaryRule(rule="allowed", from_glob="src/**", to_glob="lib/**"),
            BoundaryRule(rule="no-legacy", from_glob="src/*/**", to_glob="legacy/**"),
        ]
    )
    edge = ImportEdge(from_file="src/ui/page.ts", specifier="legacy/internal/db.ts")
    assert [rule.rule for rule in check_forbidden(edge, config)] == ["no-internal", "no-legacy"]


def test_violates_rule_respects_allow_via() -> None:
    rule = BoundaryRule(
        rule="r", from_glob="src/**", to_glob="vendor/**", allow_via=("vendor/public/**",)
    )
    assert violates_rule(ImportEdge("src/x.ts", "vendor/private/a.ts"), rule) is True
    assert violates_rule(ImportEdge("src/x.ts", "./vendor/public/a.ts"), rule) is False


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("import { parse } from 'feature-b/internal/parser'", "feature-b/internal/parser"),
        ('import "./styles.css"', "./styles.css"),
        ("export * from '../shared/index'", "../shared/index"),
        ("export { a } from \"./a\"", "./a"),
        ("const fs = require('fs')", None),
        ("// import { x } from 'commented'", None),
        ("   ", None),
        ("const url = 'http://example.com' // from 'nowhere'", None),
    ],
)
def test_extract_import_specifier(line: str, expected: str | None) -> None:
    assert extract_import_specifier(line) == expected


def test_normalize_specifier() -> None:
    assert normalize_specifier("../../shared/x") == "shared/x"
    assert normalize_specifier("./a/../b") == "a/../b"
    assert normalize_specifier("pkg") == "pkg"


def test_to_posix() -> None:
    assert to_posix("src\\features\\\\a.ts") == "src/features/a.ts"
    assert to_posix("src//a.ts") == "src/a.ts"


def test_layer_for_prefers_deepest_layer(config: BoundariesConfig) -> None:
    config.layers.append(BoundaryLayer(name="ports", path="src/shared/ports", index=2))
    assert layer_for("src/shared/ports/x.ts", config).name == "ports"  # type: ignore[union-attr]
    assert layer_for("src/shared/util.ts", config).name == "shared"  # type: ignore[union-attr]
    assert layer_for("src/other/x.ts", config) is None


def test_load_boundaries_drops_incomplete_rules() -> None:
    loaded = load_boundaries(
        {
            "forbidden": [
                {"rule": "ok", "from": {"glob": "a/**"}, "to": {"glob": "b/**"}},
                {"rule": "missing-to", "from": {"glob": "a/**"}},
                {"from": {"glob": "a/**"}, "to": {"glob": "b/**"}},
                "junk",
            ],
            "layers": [{"name": "core", "path": "src\\core"}, {"name": "nameless"}],
        }
    )
    assert loaded is not None
    assert [rule.rule for rule in loaded.forbidden] == ["ok"]
    assert [(layer.name, layer.path, layer.index) for layer in loaded.layers] == [
        ("core", "src/core", 0)
    ]
    assert load_boundaries("nope") is None


def test_boundary_rule_to_dict_round_trips_json_shape(boundaries_json: dict[str, Any]) -> None:
    loaded = load_boundaries(boundaries_json)
    assert loaded is not None
    assert loaded.forbidden[0].to_dict() == boundaries_json["forbidden"][0]
