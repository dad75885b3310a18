"""Workflow blueprint describing scoring stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, TYPE_CHECKING

from multibagger.workflows.nodes import (
    composite,
    intake,
    judgment,
    metrics,
    pillars,
    report,
    risk,
)

if TYPE_CHECKING:
    from multibagger.workflows.context import WorkflowContext
    from multibagger.workflows.state import ScoringState


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    description: str
    handler: Callable[["ScoringState", "WorkflowContext"], "ScoringState"]
    depends_on: List[str] = field(default_factory=list)


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages for the scoring workflow."""
    return [
        StageSpec(
            key="intake",
            description="Resolve sector, flag stale filings and derive insider/founder signals.",
            handler=intake.run,
        ),
        StageSpec(
            key="metrics",
            description="Extract TTM aggregates, dynamic CAGR and margin statistics (pandas).",
            handler=metrics.run,
            depends_on=["intake"],
        ),
        StageSpec(
            key="risk",
            description="Beneish, Altman, dilution, runway, short interest and earnings-quality checks.",
            handler=risk.run,
            depends_on=["metrics"],
        ),
        StageSpec(
            key="pillars",
            description="Score growth, quality/moat, alignment, valuation and catalysts.",
            handler=pillars.run,
            depends_on=["metrics"],
        ),
        StageSpec(
            key="composite",
            description="Sum pillars, apply the single best bonus and the risk penalty.",
            handler=composite.run,
            depends_on=["risk", "pillars"],
        ),
        StageSpec(
            key="judgment",
            description="Fetch the rate-limited qualitative verdict and apply its capped adjustment.",
            handler=judgment.run,
            depends_on=["composite"],
        ),
        StageSpec(
            key="report",
            description="Apply the profitability cap, clamp to [0, 100] and assemble the report.",
            handler=report.run,
            depends_on=["judgment"],
        ),
    ]
