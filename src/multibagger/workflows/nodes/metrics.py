"""LangGraph node for metrics extraction."""
from __future__ import annotations

import math

from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    quality_notes = state.setdefault("data_quality_warnings", [])
    bundle = state["bundle"]

    logs.append("MetricsAgent -> compute TTM aggregates, CAGR and margins")
    metrics = context.extractor.extract(bundle.dataset, state["sector"])
    state["metrics"] = metrics

    cagr = metrics.revenue_cagr
    if cagr.is_partial:
        quality_notes.append(
            f"Revenue CAGR uses a {cagr.years_used:g}-year window ({metrics.periods_available} periods available)"
        )
    if not math.isfinite(metrics.ttm_revenue):
        quality_notes.append("TTM revenue unavailable")
    logs.append(
        f"MetricsAgent -> CAGR {cagr.cagr:.1%} over {cagr.years_used:g}y, "
        f"{metrics.periods_available} income periods"
    )
    return state
