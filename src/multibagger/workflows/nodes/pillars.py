"""LangGraph node computing the five pillar scores."""
from __future__ import annotations

from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    quality_notes = state.setdefault("data_quality_warnings", [])
    bundle = state["bundle"]
    qualitative = bundle.qualitative

    logs.append("PillarAgent -> score growth, quality, alignment, valuation and catalysts")
    pillars = context.pillar_scorer.score_all(
        state["metrics"],
        qualitative,
        bundle.market,
        insider_activity=state.get("insider_activity", "Neutral"),
        founder_led=state.get("founder_led", False),
        short_interest=state.get("short_interest"),
    )
    state["pillars"] = pillars

    if qualitative.institutional_ownership is None:
        quality_notes.append("Institutional ownership unavailable; alignment scored without it")
    if qualitative.insider_ownership is None:
        quality_notes.append("Insider ownership unavailable; alignment scored without it")

    summary = ", ".join(f"{p.name} {p.score:g}/{p.max_score:g}" for p in pillars)
    logs.append(f"PillarAgent -> {summary}")
    return state
