"""CLI entrypoint for diff-sentinel."""

from __future__ import annotations

import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Annotated, Any

import typer

from diff_sentinel import __version__
from diff_sentinel.boundaries import BoundariesConfig, layer_for, load_boundaries
from diff_sentinel.config import (
    FAIL_ON_CHOICES,
    AppConfig,
    default_config_template,
    load_app_config,
    load_json_file,
    resolve_policy_path,
)
from diff_sentinel.constraints import derive_rule_constraints, load_rules, validate_rules
from diff_sentinel.diff_parser import parse_unified_diff
from diff_sentinel.engine import CoreResult, analyze_diff
from diff_sentinel.findings import (
    SEVERITY_RANK,
    ReviewFinding,
    Severity,
    compare_findings,
    max_severity,
    normalize_findings,
)
from diff_sentinel.gate import gate_findings
from diff_sentinel.git import GitError, get_diff_between, get_working_tree_diff
from diff_sentinel.output import build_review_payload, render_comparison_human, render_human

app = typer.Typer(
    name="diff-sentinel",
    no_args_is_help=True,
    help="Review unified diffs against rule and boundary policies.",
)

LEGACY_EXIT_CODES = {"critical": 20, "major": 10}


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Log engine decisions to stderr.")] = False,
) -> None:
    """Root command callback."""
    _ = version
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


@app.command("review")
def review_command(
    diff_file: Annotated[Path | None, typer.Option(help="Path to unified diff file.")] = None,
    stdin: Annotated[bool, typer.Option(help="Read unified diff from stdin.")] = False,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    base: Annotated[str | None, typer.Option(help="Base git revision.")] = None,
    head: Annotated[str | None, typer.Option(help="Head git revision.")] = None,
    unified: Annotated[int, typer.Option(help="Context lines when diffing with git.")] = 3,
    rules: Annotated[Path | None, typer.Option(help="Path to rules.json.")] = None,
    boundaries: Annotated[Path | None, typer.Option(help="Path to boundaries.json.")] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    fail_on: Annotated[
        str | None,
        typer.Option(help="Exit 1 when a finding reaches this severity: none|major|critical."),
    ] = None,
    max_findings: Annotated[
        int | None, typer.Option(help="Keep at most this many findings.")
    ] = None,
    out: Annotated[Path | None, typer.Option(help="Also write the JSON review here.")] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Analyze a diff and report findings."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = (format or app_config.format).lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    resolved_fail_on = fail_on if fail_on is not None else app_config.fail_on
    if resolved_fail_on is not None and resolved_fail_on.lower() not in FAIL_ON_CHOICES:
        choices = ", ".join(sorted(FAIL_ON_CHOICES))
        raise typer.BadParameter(f"--fail-on must be one of: {choices}", param_hint="--fail-on")

    if diff_file and stdin:
        raise typer.BadParameter("Use either --diff-file or --stdin, not both.")

    if (base is None) ^ (head is None):
        raise typer.BadParameter("Provide both --base and --head together.")

    try:
        diff_text, input_source = _resolve_diff_input(
            diff_file=diff_file,
            stdin=stdin,
            repo=repo,
            base=base,
            head=head,
            unified=unified,
        )
    except GitError as exc:
        raise typer.BadParameter(str(exc)) from exc

    rules_data = _load_policy_or_raise(
        _policy_path(repo, rules, app_config.rules), label="Rules"
    )
    boundaries_data = _load_policy_or_raise(
        _policy_path(repo, boundaries, app_config.boundaries), label="Boundaries"
    )

    result = analyze_diff(
        diff_text,
        rules_data,
        boundaries_data,
        options=app_config.engine.to_options(),
    )
    cap = max_findings if max_findings is not None else app_config.max_findings
    if cap is not None and cap > 0:
        result = CoreResult(findings=result.findings[:cap], llm_tasks=result.llm_tasks)

    payload = build_review_payload(
        result,
        run_id=str(uuid.uuid4()),
        input_source=input_source,
        base=base,
        head=head,
    )
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(payload, sort_keys=True, indent=2), encoding="utf-8")

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
    else:
        typer.echo(render_human(result))

    exit_code = compute_exit_code(max_severity(result.findings), resolved_fail_on)
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command("rules")
def rules_command(
    rules: Annotated[Path | None, typer.Option(help="Path to rules.json.")] = None,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List rules and how each one gates findings."""
    output_format = _output_format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    rules_path = _policy_path(repo, rules, app_config.rules)
    if rules_path is None:
        raise typer.BadParameter("Provide --rules or set `rules` in config.", param_hint="--rules")

    constraints = derive_rule_constraints(_load_policy_or_raise(rules_path, label="Rules"))
    if output_format == "json":
        payload = {
            "rules": [
                {
                    "id": item.id,
                    "area": item.area,
                    "severity": item.severity,
                    "type": item.raw_type,
                    "supported": item.trigger_type is not None,
                    "evidence": item.evidence,
                    "requireSignalMatch": item.require_signal_match,
                    "signals": list(item.signals),
                    "exempt": list(item.exempt),
                    "file_glob": list(item.file_glob),
                }
                for item in constraints
            ],
            "meta": {"source": str(rules_path)},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Rules ({len(constraints)}):"]
    for item in constraints:
        gate = "signal-gated" if item.require_signal_match else "ungated"
        kind = item.raw_type if item.trigger_type is not None else f"{item.raw_type} (unsupported)"
        lines.append(f"- {item.id} [{item.severity}] {item.area} - {kind}, {gate}")
    typer.echo("\n".join(lines))


@app.command("rules-validate")
def rules_validate_command(
    rules: Annotated[Path, typer.Option(help="Path to rules.json to validate.")],
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a rules.json document against the rules schema."""
    output_format = _output_format_or_raise(format)
    data = _load_policy_or_raise(rules, label="Rules")
    errors = validate_rules(data)
    document = load_rules(data)
    rule_count = len(document.rules) if document is not None else 0

    if output_format == "json":
        typer.echo(
            json.dumps(
                {"ok": not errors, "errors": errors, "rules": rule_count, "source": str(rules)},
                sort_keys=True,
            )
        )
    elif errors:
        typer.echo("\n".join([f"Invalid rules file: {rules}", *[f"- {err}" for err in errors]]))
    else:
        typer.echo(f"Rules file is valid: {rules} ({rule_count} rules)")

    if errors:
        raise typer.Exit(code=1)


@app.command("boundaries")
def boundaries_command(
    boundaries: Annotated[Path, typer.Option(help="Path to boundaries.json.")],
    path: Annotated[
        list[str] | None,
        typer.Option("--path", help="Report the layer of this file path (repeatable)."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """List forbidden import rules and layers."""
    output_format = _output_format_or_raise(format)
    config = load_boundaries(_load_policy_or_raise(boundaries, label="Boundaries"))
    if config is None:
        config = BoundariesConfig()
    layers = sorted(config.layers, key=lambda item: item.index)
    path_layers = {item: layer_for(item, config) for item in path or []}

    if output_format == "json":
        payload = {
            "forbidden": [item.to_dict() for item in config.forbidden],
            "layers": [
                {"name": item.name, "path": item.path, "index": item.index} for item in layers
            ],
            "paths": {
                item: layer.name if layer is not None else None
                for item, layer in path_layers.items()
            },
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Forbidden imports ({len(config.forbidden)}):"]
    for rule in config.forbidden:
        allow = f" (allow via {', '.join(rule.allow_via)})" if rule.allow_via else ""
        lines.append(f"- {rule.rule}: {rule.from_glob} -> {rule.to_glob}{allow}")
    if layers:
        lines.append(f"Layers ({len(layers)}):")
        for layer in layers:
            lines.append(f"- {layer.index}. {layer.name}: {layer.path}")
    if path_layers:
        lines.append("Paths:")
        for item, layer in path_layers.items():
            lines.append(f"- {item}: {layer.name if layer is not None else '(no layer)'}")
    typer.echo("\n".join(lines))


@app.command("normalize")
def normalize_command(
    input_file: Annotated[Path, typer.Option("--input", help="Provider output JSON to normalize.")],
    diff_file: Annotated[
        Path | None, typer.Option(help="Diff to gate findings against (requires --rules).")
    ] = None,
    rules: Annotated[Path | None, typer.Option(help="Path to rules.json for gating.")] = None,
) -> None:
    """Normalize externally produced findings, optionally gating them by diff and rules."""
    raw = _load_policy_or_raise(input_file, label="Findings")
    if (diff_file is None) ^ (rules is None):
        raise typer.BadParameter("Provide both --diff-file and --rules to gate findings.")

    if diff_file is not None and rules is not None:
        files = parse_unified_diff(diff_file.read_text(encoding="utf-8", errors="replace"))
        findings = gate_findings(raw, files, _load_policy_or_raise(rules, label="Rules"))
    else:
        findings = normalize_findings(raw)
    typer.echo(json.dumps([item.to_dict() for item in findings], sort_keys=True))


@app.command("compare")
def compare_command(
    current: Annotated[Path, typer.Option(help="Findings JSON of this run.")],
    previous: Annotated[Path, typer.Option(help="Findings JSON of the previous run.")],
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Compare two runs' findings by fingerprint."""
    output_format = _output_format_or_raise(format)
    current_findings = _load_findings_or_raise(current)
    previous_findings = _load_findings_or_raise(previous) if previous.exists() else []
    comparison = compare_findings(current_findings, previous_findings)

    if output_format == "json":
        typer.echo(json.dumps(comparison.to_dict(), sort_keys=True))
    else:
        typer.echo(render_comparison_human(comparison))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _output_format_or_raise(format)
    payload = _load_config_or_raise(repo, config_file).to_dict()

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- fail_on: {payload['fail_on']}",
        f"- max_findings: {payload['max_findings']}",
        f"- rules: {payload['rules']}",
        f"- boundaries: {payload['boundaries']}",
        f"- engine: {payload['engine']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".diff-sentinel.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def compute_exit_code(top: Severity | None, fail_on: str | None) -> int:
    """Map the top finding severity to a process exit code.

    Without ``fail_on`` the legacy codes apply: 20 for critical, 10 for major.
    """
    if fail_on is None:
        return LEGACY_EXIT_CODES.get(top or "", 0)
    if fail_on.lower() == "none" or top is None:
        return 0
    return 1 if SEVERITY_RANK[top] >= SEVERITY_RANK[fail_on.lower()] else 0


def _resolve_diff_input(
    *,
    diff_file: Path | None,
    stdin: bool,
    repo: Path,
    base: str | None,
    head: str | None,
    unified: int,
) -> tuple[str, str]:
    if diff_file is not None:
        diff_text = diff_file.read_text(encoding="utf-8", errors="replace")
        return (diff_text, f"diff_file:{diff_file}")

    if stdin:
        return (sys.stdin.read(), "stdin")

    if base is not None and head is not None:
        return (get_diff_between(repo, base, head, unified=unified), "git_range")

    return (get_working_tree_diff(repo, unified=unified), "git_working_tree")


def _policy_path(repo: Path, explicit: Path | None, configured: str | None) -> Path | None:
    if explicit is not None:
        return explicit
    return resolve_policy_path(repo, configured)


def _output_format_or_raise(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _load_policy_or_raise(path: Path | None, *, label: str) -> Any:
    if path is None:
        return None
    try:
        return load_json_file(path, label=label)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_findings_or_raise(path: Path) -> list[ReviewFinding]:
    return normalize_findings(_load_policy_or_raise(path, label="Findings"))
