"""Judgment integration, profitability cap, verdict and position sizing."""
from __future__ import annotations

import math
from typing import List, Optional, Tuple

from multibagger.domain.models.financials import ExtractedMetrics
from multibagger.domain.models.scoring import (
    AdjustmentKind,
    JudgmentOutcome,
    JudgmentStatus,
    QualitativeVerdict,
    RiskAssessment,
    ScoreAdjustment,
)
from multibagger.settings.strategy import (
    POSITION_SIZES,
    STRONG_BUY_SCORE,
    TIER_DISQUALIFIED,
    Judgment,
)


class JudgmentIntegrator:
    """Blend a bounded qualitative adjustment into the quantitative score.

    STRONG_PASS and SOFT_PASS add a conviction-scaled boost of at most 5 and 3
    points; MONITOR_ONLY and AVOID subtract fixed penalties. For subjects that
    are not disqualified, risk plus judgment penalties never exceed -20 in total.
    When ``pre_penalty_score`` is given, only the part of the risk penalty that
    actually lowered the clamped composite counts toward that floor.
    The raw result is returned unclamped.
    """

    def integrate(
        self,
        quant_score: float,
        risk: RiskAssessment,
        verdict: QualitativeVerdict,
        *,
        pre_penalty_score: Optional[float] = None,
    ) -> JudgmentOutcome:
        adjustments: List[ScoreAdjustment] = []
        status = verdict.status
        scale = verdict.conviction / 100.0

        if status is JudgmentStatus.STRONG_PASS:
            ai_adjustment = scale * Judgment.STRONG_PASS_CAP
        elif status is JudgmentStatus.SOFT_PASS:
            ai_adjustment = scale * Judgment.SOFT_PASS_CAP
        elif status is JudgmentStatus.AVOID:
            ai_adjustment = Judgment.AVOID_PENALTY
        else:
            ai_adjustment = Judgment.MONITOR_PENALTY

        detail = f"{status.value} at conviction {verdict.conviction:.0f}"
        if verdict.error:
            detail = f"{detail} (fallback: {verdict.error})"
        if ai_adjustment > 0:
            adjustments.append(ScoreAdjustment(AdjustmentKind.BONUS, "Qualitative Judgment", ai_adjustment, detail))
        elif ai_adjustment < 0:
            adjustments.append(ScoreAdjustment(AdjustmentKind.PENALTY, "Qualitative Judgment", ai_adjustment, detail))

        refund = 0.0
        ai_penalty = min(ai_adjustment, 0.0)
        combined = risk.risk_penalty + ai_penalty
        if not risk.disqualified and combined < Judgment.COMBINED_PENALTY_FLOOR:
            applied_risk = risk.risk_penalty
            if pre_penalty_score is not None:
                applied_risk = min(0.0, float(quant_score) - pre_penalty_score)
            refund = max(0.0, Judgment.COMBINED_PENALTY_FLOOR - (applied_risk + ai_penalty))
        if refund > 0:
            adjustments.append(
                ScoreAdjustment(
                    AdjustmentKind.BONUS,
                    "Penalty Floor",
                    refund,
                    f"Combined penalties {combined:+g} limited to {Judgment.COMBINED_PENALTY_FLOOR:+g}",
                )
            )

        raw = float(quant_score) + ai_adjustment + refund
        return JudgmentOutcome(
            verdict=verdict,
            ai_adjustment=ai_adjustment,
            penalty_refund=refund,
            raw_score=raw,
            adjustments=adjustments,
        )


def apply_profitability_cap(score: float, metrics: ExtractedMetrics) -> Tuple[float, List[ScoreAdjustment]]:
    """Cap unprofitable subjects (negative ROE or FCF margin) below Tier 1 scores."""
    roe = metrics.return_on_equity
    fcf_margin = metrics.fcf_margin
    unprofitable = (math.isfinite(roe) and roe < 0) or (math.isfinite(fcf_margin) and fcf_margin < 0)
    if not unprofitable or score <= Judgment.PROFITABILITY_CAP:
        return score, []
    adjustment = ScoreAdjustment(
        AdjustmentKind.PENALTY,
        "Profitability Cap",
        Judgment.PROFITABILITY_CAP - score,
        f"Negative ROE or FCF margin caps the score at {Judgment.PROFITABILITY_CAP:g}",
    )
    return Judgment.PROFITABILITY_CAP, [adjustment]


def determine_verdict(score: float, disqualified: bool, tier: str) -> str:
    if disqualified:
        return TIER_DISQUALIFIED
    if score >= STRONG_BUY_SCORE:
        return "Strong Buy"
    if tier in ("Tier 1", "Tier 2"):
        return "Buy"
    if tier == "Tier 3":
        return "Watch"
    return "Pass"


def position_size(tier: str, disqualified: bool) -> str:
    if disqualified:
        return "0% (Disqualified)"
    return POSITION_SIZES.get(tier, "0%")
