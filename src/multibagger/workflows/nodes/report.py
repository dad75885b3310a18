"""LangGraph node assembling the final, clamped AnalysisReport."""
from __future__ import annotations

import math
from typing import List

from multibagger.domain.models.report import AnalysisReport
from multibagger.domain.models.scoring import DataQuality, RiskAssessment, ScoreAdjustment
from multibagger.domain.services.composite import clamp_score, tier_for
from multibagger.domain.services.judgment import apply_profitability_cap, determine_verdict, position_size
from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    bundle = state["bundle"]
    metrics = state["metrics"]
    risk = state["risk"]
    composite = state["composite"]
    outcome = state["judgment"]

    raw_score = outcome.raw_score
    capped, cap_adjustments = apply_profitability_cap(raw_score, metrics)
    # The single authoritative clamp; hard kills always end at zero.
    final_score = 0.0 if risk.disqualified else clamp_score(capped)
    tier = tier_for(final_score, risk.disqualified)
    verdict = determine_verdict(final_score, risk.disqualified, tier)

    trail: List[ScoreAdjustment] = []
    if composite.bonus is not None:
        trail.append(composite.bonus)
    trail.extend(risk.adjustments)
    trail.extend(outcome.adjustments)
    trail.extend(cap_adjustments)

    breakdown: List[str] = []
    for pillar in composite.pillars:
        breakdown.append(f"{pillar.name}: {pillar.score:g}/{pillar.max_score:g}")
        breakdown.extend(f"  {line}" for line in pillar.details)
    breakdown.extend(item.describe() for item in trail)

    report = AnalysisReport(
        ticker=bundle.ticker,
        sector=state["sector"].value,
        as_of=state["as_of"],
        metrics=metrics,
        risk=risk,
        composite=composite,
        verdict_input=state["verdict"],
        quant_score=composite.total_score,
        raw_score=raw_score,
        final_score=final_score,
        tier=tier,
        verdict=verdict,
        position_size=position_size(tier, risk.disqualified),
        data_quality=_data_quality(state, risk),
        trail=trail,
        breakdown=breakdown,
    )
    state["report"] = report
    logs.append(f"ReportAgent -> final {final_score:g} ({tier}, {verdict})")
    return state


def _data_quality(state: ScoringState, risk: RiskAssessment) -> DataQuality:
    qualitative = state["bundle"].qualitative
    warnings = list(state.get("data_quality_warnings", []))

    if math.isnan(risk.beneish_m_score):
        beneish = "unavailable"
    elif risk.beneish_defaulted_indices == 0:
        beneish = "high"
    else:
        beneish = "degraded"
        warnings.append(f"Beneish M-Score used neutral values for {risk.beneish_defaulted_indices} indices")

    insider_source = _source(qualitative.insider_ownership, qualitative.insider_ownership_source)
    institutional_source = _source(qualitative.institutional_ownership, qualitative.institutional_ownership_source)
    short_source = state.get("short_interest_source", "unavailable")

    issues = sum(
        source != "real" for source in (insider_source, institutional_source, short_source)
    )
    issues += beneish != "high"
    issues += len(state["bundle"].fetch_errors)
    if issues == 0:
        confidence = "high"
    elif issues <= 2:
        confidence = "medium"
    else:
        confidence = "low"

    return DataQuality(
        insider_ownership_source=insider_source,
        institutional_ownership_source=institutional_source,
        short_interest_source=short_source,
        beneish_reliability=beneish,
        overall_confidence=confidence,
        warnings=warnings,
    )


def _source(value, declared: str) -> str:
    if value is None:
        return "unavailable"
    # A value without declared provenance is treated as an estimate.
    return "estimated" if declared == "unavailable" else declared
