"""LangGraph node folding pillars, bonus and risk penalty together."""
from __future__ import annotations

from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    composite = context.aggregator.aggregate(state["pillars"], state["metrics"], state["risk"])
    state["composite"] = composite

    bonus = composite.bonus.name if composite.bonus else "none"
    logs.append(
        f"CompositeAgent -> pillars {composite.pillar_total:g}, bonus {bonus}, "
        f"penalty {composite.risk_penalty:+g} => {composite.total_score:g} ({composite.tier})"
    )
    return state
