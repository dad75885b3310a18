"""LangGraph node requesting the qualitative verdict and integrating it."""
from __future__ import annotations

import math
from typing import Any, Dict

from multibagger.domain.models.scoring import QualitativeVerdict
from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    bundle = state["bundle"]
    composite = state["composite"]
    risk = state["risk"]

    if not context.judge.available:
        logs.append("JudgmentAgent -> skipped (judgment provider not configured)")
        verdict = QualitativeVerdict.neutral("judgment provider not configured")
    elif risk.disqualified:
        logs.append("JudgmentAgent -> skipped (subject disqualified)")
        verdict = QualitativeVerdict.neutral("subject disqualified")
    else:
        logs.append("JudgmentAgent -> request qualitative verdict")
        try:
            verdict = context.judge.assess(bundle.ticker, _facts(state))
        except Exception as exc:  # pylint: disable=broad-except
            verdict = QualitativeVerdict.neutral(str(exc))
        if verdict.error:
            errors.append(f"Qualitative judgment fell back to neutral: {verdict.error}")

    outcome = context.integrator.integrate(
        composite.total_score, risk, verdict, pre_penalty_score=composite.pre_penalty_score
    )
    state["verdict"] = verdict
    state["judgment"] = outcome
    logs.append(
        f"JudgmentAgent -> {verdict.status.value} (conviction {verdict.conviction:.0f}), "
        f"adjustment {outcome.ai_adjustment:+.1f}, raw {outcome.raw_score:.1f}"
    )
    return state


def _facts(state: ScoringState) -> Dict[str, Any]:
    bundle = state["bundle"]
    metrics = state["metrics"]
    composite = state["composite"]
    return {
        "ticker": bundle.ticker,
        "companyName": bundle.company_name,
        "sector": state["sector"].value,
        "industry": bundle.industry_text,
        "marketCap": bundle.market.market_cap,
        "revenueCagr": _round(metrics.revenue_cagr.cagr),
        "latestYoYGrowth": _round(metrics.latest_yoy_growth),
        "grossMargin": _round(metrics.gross_margin),
        "grossMarginTrend": metrics.gross_margin_trend,
        "roe": _round(metrics.return_on_equity),
        "fcfMargin": _round(metrics.fcf_margin),
        "ttmRevenue": _round(metrics.ttm_revenue, 0),
        "pillars": {p.name: p.score for p in composite.pillars},
        "quantScore": composite.total_score,
        "riskWarnings": list(state["risk"].warnings),
        "insiderActivity": state.get("insider_activity"),
        "founderLed": state.get("founder_led"),
    }


def _round(value: float, digits: int = 4):
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits)
