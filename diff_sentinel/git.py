"""Git subprocess helpers for acquiring review diffs."""

from __future__ import annotations

from pathlib import Path
from subprocess import CalledProcessError, run

DEFAULT_CONTEXT_LINES = 3


class GitError(RuntimeError):
    """Raised when git command execution fails."""


def get_working_tree_diff(repo: Path, *, unified: int = DEFAULT_CONTEXT_LINES) -> str:
    """Return the uncommitted diff of a repository."""
    return _run_git(repo, ["diff", "--no-color", "--no-ext-diff", f"--unified={unified}"])


def get_diff_between(
    repo: Path, base: str, head: str, *, unified: int = DEFAULT_CONTEXT_LINES
) -> str:
    """Return the diff from ``base`` to ``head``."""
    return _run_git(
        repo,
        ["diff", "--no-color", "--no-ext-diff", f"--unified={unified}", f"{base}..{head}"],
    )


def _run_git(repo: Path, args: list[str]) -> str:
    try:
        completed = run(
            ["git", *args],
            cwd=repo,
            check=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    except CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitError(stderr or f"git {' '.join(args)} failed") from exc

    return completed.stdout
