"""LangGraph node running the hard-kill and soft-warning risk checks."""
from __future__ import annotations

from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    bundle = state["bundle"]
    metrics = state["metrics"]

    logs.append("RiskAgent -> Beneish, Altman, dilution, runway and earnings checks")
    assessment = context.risk_engine.assess(
        bundle.dataset,
        metrics,
        market_cap=bundle.market.market_cap,
        ttm_revenue=metrics.ttm_revenue,
        short_interest=state.get("short_interest"),
    )
    state["risk"] = assessment
    if assessment.disqualified:
        logs.append(f"RiskAgent -> DISQUALIFIED: {'; '.join(assessment.disqualify_reasons)}")
    else:
        logs.append(
            f"RiskAgent -> {len(assessment.warnings)} warnings, penalty {assessment.risk_penalty:+g}"
        )
    return state
