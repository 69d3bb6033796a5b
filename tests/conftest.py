"""Shared fixtures for diff-sentinel tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

FIXTURE_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def diff_fixture_dir() -> Path:
    return FIXTURE_DIR / "diffs"


@pytest.fixture
def policy_dir() -> Path:
    return FIXTURE_DIR / "policies"


@pytest.fixture
def rules_json(policy_dir: Path) -> dict[str, Any]:
    return json.loads((policy_dir / "rules.json").read_text(encoding="utf-8"))


@pytest.fixture
def boundaries_json(policy_dir: Path) -> dict[str, Any]:
    return json.loads((policy_dir / "boundaries.json").read_text(encoding="utf-8"))
