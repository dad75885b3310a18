"""CLI command definitions for the multi-bagger scoring engine."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from config import Config
from multibagger.domain.models.report import AnalysisReport
from multibagger.infrastructure.data_providers.json_provider import JsonBundleProvider
from multibagger.settings.loader import load_settings
from multibagger.settings.strategy import DEFAULT_GROWTH_TIERS, SECTOR_GROWTH_TIERS, SECTOR_THRESHOLDS
from multibagger.utils.logging import configure_logging
from multibagger.workflows.batch import BatchRunner
from multibagger.workflows.graph import ScoringWorkflow
from multibagger.workflows.state import ScoringState

console = Console()
app = typer.Typer(help="Score multi-bagger candidates from exported financial bundles.")


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands."""

    config: Config
    workflow: ScoringWorkflow
    provider: JsonBundleProvider


def _init_context(debug_override: Optional[bool] = None, max_concurrency: Optional[int] = None) -> AppContext:
    """Create a context with configuration, logging, and workflow wiring."""
    config = load_settings(debug_override, max_concurrency=max_concurrency)
    configure_logging(debug=config.debug)
    workflow = ScoringWorkflow(config=config)
    return AppContext(config=config, workflow=workflow, provider=JsonBundleProvider())


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", min=1, help="Maximum subjects scored at once (overrides MAX_CONCURRENCY)."
    ),
) -> None:
    """Attach the lazily constructed application context to Typer."""
    ctx.obj = _init_context(debug_override=debug, max_concurrency=concurrency)
    ctx.call_on_close(ctx.obj.workflow.close)


def _parse_as_of(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter("Use YYYY-MM-DD for --as-of") from exc


@app.command()
def score(
    ctx: typer.Context,
    bundle_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Subject bundle JSON file."),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Analysis date (YYYY-MM-DD); defaults to today."),
    emit_json: bool = typer.Option(False, "--json", help="Persist the report to JSON."),
    output: Optional[Path] = typer.Option(None, "--output", help="Custom path for the JSON report."),
    show_logs: bool = typer.Option(False, "--logs", help="Print the per-stage workflow log."),
) -> None:
    """Score a single subject and present the outcome."""
    if ctx.obj is None:
        raise typer.Exit(code=1)

    context: AppContext = ctx.obj
    bundle = context.provider.load(bundle_path)
    console.rule(f"Scoring {bundle.ticker}")

    with console.status("[bold cyan]Running workflow..."):
        result: ScoringState = context.workflow.run(bundle, _parse_as_of(as_of))

    if result.get("errors"):
        console.print("[bold yellow]Workflow completed with recoverable errors:[/bold yellow]")
        for issue in result["errors"]:
            console.print(f"- {issue}")
    else:
        console.print("[bold green]Workflow completed successfully.[/bold green]")

    report = result["report"]
    _print_report(report)
    if show_logs:
        for line in result.get("logs", []):
            console.print(f"[dim]{line}[/dim]")

    if emit_json:
        target = output or context.config.output_dir / f"{report.ticker}_score.json"
        context.workflow.persist_report(report, target)
        console.print(f"Report saved to {target}")


@app.command()
def batch(
    ctx: typer.Context,
    bundle_paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Subject bundle JSON files."),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Analysis date (YYYY-MM-DD); defaults to today."),
    emit_json: bool = typer.Option(False, "--json", help="Persist each report to JSON."),
) -> None:
    """Score several subjects with bounded concurrency."""
    if ctx.obj is None:
        raise typer.Exit(code=1)
    context: AppContext = ctx.obj
    runner = BatchRunner(
        context.workflow,
        context.provider.load,
        max_concurrency=context.config.max_concurrency,
    )
    with console.status(f"[bold cyan]Scoring {len(bundle_paths)} subjects..."):
        result = runner.run(bundle_paths, _parse_as_of(as_of))

    table = Table(title="Multi-bagger Ranking", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan")
    table.add_column("Ticker")
    table.add_column("Sector")
    table.add_column("Score", justify="right")
    table.add_column("Tier")
    table.add_column("Verdict")
    table.add_column("Warnings", justify="right")
    for idx, report in enumerate(result.reports, start=1):
        table.add_row(
            str(idx),
            report.ticker,
            report.sector,
            f"{report.final_score:.1f}",
            report.tier,
            report.verdict,
            str(len(report.risk.warnings)),
        )
    console.print(table)

    if result.failures:
        console.print("[bold red]Failed subjects:[/bold red]")
        for name, message in result.failures.items():
            console.print(f"- {name}: {message}")

    if emit_json:
        context.config.ensure_directories()
        for report in result.reports:
            target = context.config.output_dir / f"{report.ticker}_score.json"
            context.workflow.persist_report(report, target)
        console.print(f"{len(result.reports)} reports saved to {context.config.output_dir}")


@app.command()
def plan(ctx: typer.Context) -> None:
    """Display the scoring workflow stages for quick operator reference."""
    if ctx.obj is None:
        raise typer.Exit(code=1)

    context: AppContext = ctx.obj
    table = Table(title="Workflow Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(context.workflow.describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)


@app.command()
def sectors() -> None:
    """Show the sector-relative thresholds used by the quality and growth pillars."""
    table = Table(title="Sector Thresholds")
    table.add_column("Sector", style="cyan")
    table.add_column("GM top", justify="right")
    table.add_column("GM mid", justify="right")
    table.add_column("ROIC top", justify="right")
    table.add_column("ROIC mid", justify="right")
    table.add_column("Elite CAGR", justify="right")
    for name, thresholds in SECTOR_THRESHOLDS.items():
        tiers = SECTOR_GROWTH_TIERS.get(name, DEFAULT_GROWTH_TIERS)
        table.add_row(
            name,
            f"{thresholds.gross_margin_top:.0%}",
            f"{thresholds.gross_margin_mid:.0%}",
            f"{thresholds.roic_top:.0%}",
            f"{thresholds.roic_mid:.0%}",
            f"{tiers.elite:.0%}",
        )
    console.print(table)


def _print_report(report: AnalysisReport) -> None:
    """Pretty-print the score summary, pillars and adjustment trail."""
    summary = Table(show_header=True, header_style="bold magenta")
    summary.add_column("Key")
    summary.add_column("Value")
    summary.add_row("Ticker", report.ticker)
    summary.add_row("Sector", report.sector)
    summary.add_row("As of", report.as_of.isoformat())
    summary.add_row("Quant Score", f"{report.quant_score:.1f}")
    summary.add_row("Raw Score", f"{report.raw_score:.1f}")
    summary.add_row("Final Score", f"{report.final_score:.1f}")
    summary.add_row("Tier", report.tier)
    summary.add_row("Verdict", report.verdict)
    summary.add_row("Position Size", report.position_size)
    summary.add_row("Confidence", report.data_quality.overall_confidence)
    summary.add_row("Beneish M", _fmt(report.risk.beneish_m_score))
    summary.add_row(f"Altman Z ({report.risk.altman_model})", _fmt(report.risk.altman_z_score))
    summary.add_row("Cash Runway (q)", _fmt(report.risk.cash_runway_quarters))
    console.print(summary)

    pillars = Table(title="Pillars")
    pillars.add_column("Pillar", style="cyan")
    pillars.add_column("Score", justify="right")
    pillars.add_column("Details")
    for pillar in report.composite.pillars:
        pillars.add_row(pillar.name, f"{pillar.score:g}/{pillar.max_score:g}", "\n".join(pillar.details))
    console.print(pillars)

    if report.risk.disqualify_reasons:
        console.print("[bold red]Disqualified:[/bold red]")
        for reason in report.risk.disqualify_reasons:
            console.print(f"- {reason}")
    if report.trail:
        console.print("[bold]Adjustments:[/bold]")
        for item in report.trail:
            console.print(f"- {item.describe()}")
    for note in report.data_quality.warnings:
        console.print(f"[yellow]Data quality: {note}[/yellow]")


def _fmt(value: float) -> str:
    if value is None or math.isnan(value):
        return "n/a"
    if math.isinf(value):
        return "infinite"
    return f"{value:.2f}"
