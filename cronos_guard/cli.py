"""
命令行入口：`cronos-guard run`。

退出码：
- 0：PASS / 无相关变更 / WARN（默认不阻塞）
- 1：FAIL（阻塞合并）
- 2：结构性错误（配置缺失、提交历史无法解析）
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import anyio
import typer

from cronos_guard.ci.github import TriggerOption
from cronos_guard.ci.github import export_final_status
from cronos_guard.ci.github import select_trigger
from cronos_guard.config import apply_overrides
from cronos_guard.config import load_config_from_env
from cronos_guard.errors import StructuralError
from cronos_guard.gate.aggregator import EXIT_STRUCTURAL_ERROR
from cronos_guard.gate.aggregator import exit_code_for
from cronos_guard.gate.models import GateResult
from cronos_guard.gate.models import GateStatus
from cronos_guard.gate.orchestrator import run_configured_gate
from cronos_guard.vcs.git import GitRepository

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="cronos-guard",
    help="CRONOS Code Guard - CI gate backed by the CRONOS analysis API",
    add_completion=False,
)


@app.callback()
def main_callback() -> None:
    """CRONOS Code Guard."""


@app.command()
def run(
    repo_dir: Path = typer.Option(Path("."), "--repo-dir", help="Repository root (git working tree)"),
    trigger: TriggerOption = typer.Option(TriggerOption.AUTO, "--trigger", help="Change detection mode"),
    report_dir: Optional[str] = typer.Option(None, "--report-dir", help="Directory for JSON reports"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Analysis mode sent to the API (default: STRICT)"),
    fail_on_warn: Optional[bool] = typer.Option(None, "--fail-on-warn/--no-fail-on-warn", help="Block the merge on WARN"),
    max_workers: Optional[int] = typer.Option(None, "--max-workers", help="Concurrent API requests"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Analyze changed files and exit with a CI-actionable code."""
    _configure_logging(verbose=verbose)

    try:
        config = load_config_from_env(os.environ)
        config = apply_overrides(
            config,
            report_dir=report_dir,
            analysis_mode=mode,
            fail_on_warn=fail_on_warn,
            max_workers=max_workers,
        )
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=EXIT_STRUCTURAL_ERROR)

    vcs = GitRepository(repo_dir=str(repo_dir))
    try:
        trigger_context = select_trigger(option=trigger, event_name=config.event_name, base_ref=config.base_ref, vcs=vcs)
        gate_run = anyio.run(run_configured_gate, config, vcs, trigger_context)
    except StructuralError as exc:
        logger.error(f"Cannot run analysis: {exc}")
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=EXIT_STRUCTURAL_ERROR)

    _print_summary(result=gate_run.result, skipped_paths=[s.path for s in gate_run.change_set.skipped])
    export_final_status(github_env=config.github_env, status=gate_run.result.overall)
    raise typer.Exit(code=exit_code_for(gate_run.result, fail_on_warn=config.fail_on_warn))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx 在 INFO 级别会逐请求打日志，这里只保留告警
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_summary(result: GateResult, skipped_paths: list[str]) -> None:
    counts = result.counts
    lines = [
        "CRONOS ANALYSIS SUMMARY",
        f"Files analyzed: {counts.total}",
        f"Passed:  {counts.passed}",
        f"Warning: {counts.warned}",
        f"Failed:  {counts.failed} (errors: {counts.errors})",
        f"Max risk: {result.max_risk}/100",
    ]
    if skipped_paths:
        lines.append(f"Skipped: {', '.join(skipped_paths)}")
    if result.cancelled:
        lines.append("Run was cancelled before all files completed")
    lines.append(f"Overall Status: {result.overall.value}")
    if result.overall is GateStatus.FAIL:
        lines.append("CRONOS blocked this change")
    typer.echo("\n".join(lines))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
