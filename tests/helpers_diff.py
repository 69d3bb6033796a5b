"""Helpers for building diff inputs in tests."""

from __future__ import annotations

from pathlib import Path

FIXTURE_DIR = Path(__file__).parent / "fixtures"


def load_diff(name: str) -> str:
    return (FIXTURE_DIR / "diffs" / name).read_text(encoding="utf-8")


def build_added_file_diff(path: str, lines: list[str], *, start: int = 1) -> str:
    """Build a diff that adds ``lines`` to ``path`` starting at new line ``start``."""
    return "\n".join(
        [
            f"diff --git a/{path} b/{path}",
            f"--- a/{path}",
            f"+++ b/{path}",
            f"@@ -{max(start - 1, 0)},0 +{start},{len(lines)} @@",
            *[f"+{line}" for line in lines],
        ]
    )
