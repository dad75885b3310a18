"""Composite aggregation: pillar sum, exclusive bonus, risk penalty, tier."""
from __future__ import annotations

import logging
import math
from typing import List, Optional

from multibagger.domain.models.financials import ExtractedMetrics
from multibagger.domain.models.scoring import (
    AdjustmentKind,
    CompositeScore,
    PillarScore,
    RiskAssessment,
    ScoreAdjustment,
)
from multibagger.domain.services.pillars import GROWTH, QUALITY
from multibagger.settings.strategy import (
    TIER_DISQUALIFIED,
    TIER_LADDER,
    TIER_NOT_INTERESTING,
    Bonus,
    BonusRule,
)

logger = logging.getLogger(__name__)


def tier_for(score: float, disqualified: bool) -> str:
    """Map a score onto the fixed tier ladder; any hard kill wins."""
    if disqualified:
        return TIER_DISQUALIFIED
    for threshold, label in TIER_LADDER:
        if score >= threshold:
            return label
    return TIER_NOT_INTERESTING


def clamp_score(value: float) -> float:
    return float(max(0.0, min(100.0, value)))


class CompositeAggregator:
    """Fold pillar scores, at most one bonus and the risk penalty into a composite."""

    def aggregate(
        self,
        pillars: List[PillarScore],
        metrics: ExtractedMetrics,
        risk: RiskAssessment,
    ) -> CompositeScore:
        pillar_total = float(sum(p.score for p in pillars))
        matched = self.matching_bonuses(pillars, metrics)
        bonus: Optional[ScoreAdjustment] = None
        if matched:
            # max() keeps the first of equal values, i.e. declaration order.
            best = max(matched, key=lambda rule: rule.value)
            bonus = ScoreAdjustment(AdjustmentKind.BONUS, best.name, float(best.value), best.description)
            if len(matched) > 1:
                logger.debug(
                    "%s matched %s; applying %s only",
                    metrics.ticker,
                    [rule.name for rule in matched],
                    best.name,
                )

        bonus_value = bonus.magnitude if bonus else 0.0
        total = clamp_score(pillar_total + bonus_value + risk.risk_penalty)
        return CompositeScore(
            pre_penalty_score=clamp_score(pillar_total + bonus_value),
            pillars=list(pillars),
            pillar_total=pillar_total,
            bonus=bonus,
            matched_bonuses=[rule.name for rule in matched],
            risk_penalty=risk.risk_penalty,
            total_score=total,
            tier=tier_for(total, risk.disqualified),
        )

    def matching_bonuses(self, pillars: List[PillarScore], metrics: ExtractedMetrics) -> List[BonusRule]:
        """All bonus rules the subject satisfies, in declaration order."""
        growth_pillar = _pillar_score(pillars, GROWTH)
        quality_pillar = _pillar_score(pillars, QUALITY)
        cagr = metrics.revenue_cagr.cagr
        margin = metrics.gross_margin
        roe = metrics.return_on_equity
        fcf_margin = metrics.fcf_margin

        matched: List[BonusRule] = []
        if (
            _gte(cagr, Bonus.QC_MIN_CAGR)
            and _gte(margin, Bonus.QC_MIN_GROSS_MARGIN)
            and _gte(roe, Bonus.QC_MIN_ROE)
            and _gte(fcf_margin, Bonus.QC_MIN_FCF_MARGIN)
        ):
            matched.append(Bonus.QUALITY_COMPOUNDER)
        if growth_pillar >= Bonus.LEADER_MIN_GROWTH and quality_pillar >= Bonus.LEADER_MIN_QUALITY:
            matched.append(Bonus.SECTOR_LEADER)
        if (
            metrics.sector == "SaaS"
            and _gte(cagr, Bonus.SAAS_MIN_CAGR)
            and _gte(margin, Bonus.SAAS_MIN_GROSS_MARGIN)
        ):
            matched.append(Bonus.SAAS_COMPOUNDER)
        if (
            _gte(roe, Bonus.CE_MIN_ROE)
            and _gte(fcf_margin, Bonus.CE_MIN_FCF_MARGIN)
            and _gte(metrics.growth_rate, Bonus.CE_MIN_GROWTH)
        ):
            matched.append(Bonus.CAPITAL_EFFICIENCY)
        high_returns = _gt(metrics.return_on_invested_capital, Bonus.QG_MIN_ROIC) or _gt(
            margin, Bonus.QG_MIN_GROSS_MARGIN
        )
        if metrics.is_profitable and high_returns and growth_pillar >= Bonus.QG_MIN_GROWTH_PILLAR:
            matched.append(Bonus.QUALITY_GROWTH)
        return matched


def _pillar_score(pillars: List[PillarScore], name: str) -> float:
    for pillar in pillars:
        if pillar.name == name:
            return pillar.score
    return 0.0


def _gte(value: float, bound: float) -> bool:
    return value is not None and math.isfinite(value) and value >= bound


def _gt(value: float, bound: float) -> bool:
    return value is not None and math.isfinite(value) and value > bound
