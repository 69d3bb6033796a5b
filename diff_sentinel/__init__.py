"""Deterministic review findings from unified diffs and rule policies."""

from diff_sentinel.engine import CoreResult, EngineOptions, LlmTask, analyze_diff, run_static_engine
from diff_sentinel.findings import ReviewFinding, normalize_findings

__version__ = "0.1.0"

__all__ = [
    "CoreResult",
    "EngineOptions",
    "LlmTask",
    "ReviewFinding",
    "__version__",
    "analyze_diff",
    "normalize_findings",
    "run_static_engine",
]
