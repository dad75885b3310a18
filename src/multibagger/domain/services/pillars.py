"""Five independently capped pillar scorers.

Each scorer is a pure function of its inputs and returns a PillarScore with
a justification trail. Sector-relative cut-offs come from ``settings.strategy``.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from multibagger.domain.models.financials import ExtractedMetrics, MarketSnapshot
from multibagger.domain.models.scoring import PillarScore, QualitativeInputs
from multibagger.domain.services.metrics import sdiv
from multibagger.settings.strategy import (
    DEFAULT_GROWTH_TIERS,
    SECTOR_GROWTH_TIERS,
    SECTOR_THRESHOLDS,
    Alignment,
    Catalysts,
    Growth,
    Quality,
    Valuation,
)

GROWTH = "Growth"
QUALITY = "Quality/Moat"
ALIGNMENT = "Alignment"
VALUATION = "Valuation"
CATALYSTS = "Catalysts"


class PillarScorer:
    """Compute the growth, quality, alignment, valuation and catalyst pillars."""

    def score_all(
        self,
        metrics: ExtractedMetrics,
        qualitative: QualitativeInputs,
        market: MarketSnapshot,
        *,
        insider_activity: str,
        founder_led: bool,
        short_interest: Optional[float] = None,
    ) -> List[PillarScore]:
        return [
            self.growth(metrics, qualitative),
            self.quality(metrics, qualitative),
            self.alignment(qualitative, insider_activity=insider_activity, founder_led=founder_led),
            self.valuation(metrics, market),
            self.catalysts(qualitative, short_interest=short_interest),
        ]

    # -----------------
    # Growth (max 25)
    # -----------------
    def growth(self, metrics: ExtractedMetrics, qualitative: QualitativeInputs) -> PillarScore:
        details: List[str] = []
        tiers = SECTOR_GROWTH_TIERS.get(metrics.sector, DEFAULT_GROWTH_TIERS)
        cagr_info = metrics.revenue_cagr
        cagr = cagr_info.cagr

        elite, high, moderate = Growth.CAGR_POINTS
        if cagr >= tiers.elite:
            cagr_points = elite
        elif cagr >= tiers.high:
            cagr_points = high
        elif cagr >= tiers.moderate:
            cagr_points = moderate
        else:
            cagr_points = 0
        window = f"{cagr_info.years_used:g}y"
        details.append(f"Revenue CAGR {cagr:.1%} over {window} (elite >= {tiers.elite:.0%}): +{cagr_points}")
        if cagr_info.penalty:
            adjusted = max(0, cagr_points + cagr_info.penalty)
            details.append(
                f"Partial history ({cagr_info.window_quarters} periods): {cagr_info.penalty} -> {adjusted}"
            )
            cagr_points = adjusted

        acceleration = Growth.ACCELERATION_BASE
        yoy = metrics.latest_yoy_growth
        if cagr > 0 and math.isfinite(yoy):
            if yoy > Growth.ACCELERATION_FACTOR * cagr:
                acceleration = Growth.ACCELERATION_STRONG
                details.append(f"Accelerating: YoY {yoy:.1%} > 1.2x trend: +{acceleration}")
            elif yoy > cagr:
                acceleration = Growth.ACCELERATION_ABOVE_TREND
                details.append(f"YoY {yoy:.1%} above trend: +{acceleration}")
            else:
                details.append(f"YoY {yoy:.1%} at or below trend: +{acceleration}")
        else:
            details.append(f"Acceleration baseline: +{acceleration}")

        bucket = qualitative.tam_penetration
        if bucket in Growth.TAM_POINTS:
            tam_points = Growth.TAM_POINTS[bucket]
            details.append(f"TAM penetration {bucket}: +{tam_points}")
        else:
            tam_points = Growth.TAM_UNKNOWN_POINTS
            details.append(f"TAM penetration unknown: +{tam_points}")

        total = cagr_points + acceleration + min(tam_points, Growth.TAM_MAX)
        return PillarScore(GROWTH, _clamp(total, Growth.MAX_SCORE), Growth.MAX_SCORE, details)

    # -----------------
    # Quality/Moat (max 30)
    # -----------------
    def quality(self, metrics: ExtractedMetrics, qualitative: QualitativeInputs) -> PillarScore:
        details: List[str] = []
        thresholds = SECTOR_THRESHOLDS.get(metrics.sector, SECTOR_THRESHOLDS["Other"])
        margin = metrics.gross_margin

        if _at_least(margin, thresholds.gross_margin_top):
            margin_points = Quality.GROSS_MARGIN_TOP_POINTS
        elif _at_least(margin, thresholds.gross_margin_mid):
            margin_points = Quality.GROSS_MARGIN_MID_POINTS
        else:
            margin_points = 0
        details.append(f"Gross margin {_pct(margin)} ({metrics.gross_margin_trend}): +{margin_points}")

        moat = 0
        ndr = qualitative.net_dollar_retention
        if ndr is not None and ndr > Quality.NDR_STRONG:
            moat += Quality.NDR_POINTS
            details.append(f"Net dollar retention {ndr:.0%}: +{Quality.NDR_POINTS}")
        elif qualitative.revenue_type:
            type_points = Quality.REVENUE_TYPE_POINTS.get(qualitative.revenue_type, 0)
            moat += type_points
            details.append(f"Revenue type {qualitative.revenue_type}: +{type_points}")
        std = metrics.gross_margin_std
        if _at_most(std, Quality.STABILITY_MAX_STD) and _above(margin, Quality.STABILITY_MIN_MARGIN):
            moat += Quality.STABILITY_POINTS
            details.append(f"Stable margins (std {std:.1%}): +{Quality.STABILITY_POINTS}")
        moat = min(moat, Quality.MOAT_MAX)

        balance = 0
        leverage = metrics.net_debt_to_ebitda
        if math.isfinite(leverage):
            if leverage < Quality.NET_DEBT_EBITDA_STRONG:
                balance += Quality.LEVERAGE_POINTS
                details.append(f"Net debt/EBITDA {leverage:.1f}x: +{Quality.LEVERAGE_POINTS}")
            elif leverage > Quality.NET_DEBT_EBITDA_WEAK:
                balance -= Quality.LEVERAGE_POINTS
                details.append(f"Net debt/EBITDA {leverage:.1f}x: -{Quality.LEVERAGE_POINTS}")
        if _above(metrics.rd_intensity, Quality.RND_INTENSITY_HIGH):
            balance += Quality.RND_POINTS
            details.append(f"R&D intensity {metrics.rd_intensity:.0%}: +{Quality.RND_POINTS}")

        roic = metrics.return_on_invested_capital
        if _above(roic, thresholds.roic_top):
            roic_points = Quality.ROIC_TOP_POINTS
        elif _at_least(roic, thresholds.roic_mid):
            roic_points = Quality.ROIC_MID_POINTS
        else:
            roic_points = 0
        details.append(f"ROIC {_pct(roic)}: +{roic_points}")

        total = margin_points + moat + balance + roic_points
        return PillarScore(QUALITY, _clamp(total, Quality.MAX_SCORE), Quality.MAX_SCORE, details)

    # -----------------
    # Alignment (max 15)
    # -----------------
    def alignment(
        self,
        qualitative: QualitativeInputs,
        *,
        insider_activity: str,
        founder_led: bool,
    ) -> PillarScore:
        details: List[str] = []
        ownership = qualitative.insider_ownership
        ladder = Alignment.FOUNDER_OWNERSHIP_POINTS if founder_led else Alignment.MANAGER_OWNERSHIP_POINTS
        label = "Founder-led" if founder_led else "Professionally managed"
        if ownership is None:
            ownership_points = 0
            details.append(f"{label}; insider ownership unavailable: +0")
        else:
            ownership_points = _ownership_points(ownership, ladder)
            details.append(f"{label}; insider ownership {ownership:.1%}: +{ownership_points}")

        activity_points = Alignment.INSIDER_ACTIVITY_POINTS.get(
            insider_activity, Alignment.INSIDER_ACTIVITY_POINTS["Neutral"]
        )
        details.append(f"Insider activity {insider_activity}: +{activity_points}")

        institutional = qualitative.institutional_ownership
        if institutional is None:
            inst_points = 0
            details.append("Institutional ownership unavailable: +0")
        else:
            low, high = Alignment.INSTITUTIONAL_BAND
            if low <= institutional <= high:
                inst_points = Alignment.INSTITUTIONAL_IN_BAND_POINTS
            else:
                inst_points = Alignment.INSTITUTIONAL_OUT_OF_BAND_POINTS
            details.append(f"Institutional ownership {institutional:.0%}: +{inst_points}")

        total = ownership_points + activity_points + inst_points
        return PillarScore(ALIGNMENT, _clamp(total, Alignment.MAX_SCORE), Alignment.MAX_SCORE, details)

    # -----------------
    # Valuation (max 20)
    # -----------------
    def valuation(self, metrics: ExtractedMetrics, market: MarketSnapshot) -> PillarScore:
        details: List[str] = []
        revenue = metrics.ttm_revenue
        enterprise_value = market.enterprise_value if market.enterprise_value is not None else market.market_cap
        ev_sales = sdiv(enterprise_value, revenue, positive_only=True)
        growth = metrics.growth_rate
        fcf_margin = metrics.fcf_margin if math.isfinite(metrics.fcf_margin) else 0.0
        denominator = (growth if math.isfinite(growth) else 0.0) * 100 + fcf_margin * 100

        peg_points = 0
        if not math.isfinite(ev_sales):
            details.append("EV/Sales unavailable: +0")
        elif denominator <= 0:
            details.append(f"EV/Sales {ev_sales:.1f}x with no growth or cash support: +0")
        else:
            peg = ev_sales / denominator
            peg_points = _peg_points(peg)
            details.append(f"Adjusted PEG {peg:.2f} (EV/Sales {ev_sales:.1f}x): +{peg_points}")
            if not _at_least(growth, Valuation.LOW_GROWTH_FLOOR) and peg_points > Valuation.LOW_GROWTH_CAP:
                peg_points = Valuation.LOW_GROWTH_CAP
                details.append(f"Value-trap guard (growth {_pct(growth)}): capped at {peg_points}")

        price_to_sales = market.price_to_sales
        if price_to_sales is None:
            price_to_sales = sdiv(market.market_cap, revenue, positive_only=True)
        if _above(price_to_sales, Valuation.PS_EXTREME):
            peg_points = 0
            details.append(f"P/S {price_to_sales:.0f}x above {Valuation.PS_EXTREME:.0f}x: valuation credit removed")

        pe_points = Valuation.PE_NEUTRAL_POINTS
        trailing, forward = market.trailing_pe, market.forward_pe
        if trailing is not None and forward is not None and trailing > 0 and forward > 0:
            expansion = trailing / forward
            if expansion > Valuation.PE_EXPANSION_STRONG:
                pe_points = Valuation.PE_STRONG_POINTS
            elif expansion >= Valuation.PE_EXPANSION_FLAT:
                pe_points = Valuation.PE_FLAT_POINTS
            else:
                pe_points = 0
            details.append(f"Trailing/forward P/E {expansion:.2f}: +{pe_points}")
        else:
            details.append(f"P/E not meaningful: +{pe_points}")

        total = peg_points + pe_points
        return PillarScore(VALUATION, _clamp(total, Valuation.MAX_SCORE), Valuation.MAX_SCORE, details)

    # -----------------
    # Catalysts (max 15)
    # -----------------
    def catalysts(self, qualitative: QualitativeInputs, *, short_interest: Optional[float] = None) -> PillarScore:
        details: List[str] = []
        density = Catalysts.DENSITY_POINTS.get(qualitative.catalyst_density or "", 0)
        details.append(f"Catalyst density {qualitative.catalyst_density or 'unknown'}: +{density}")

        asymmetry = Catalysts.ASYMMETRY_POINTS.get(qualitative.asymmetry or "", 0)
        if qualitative.pricing_power == "Strong":
            asymmetry = min(Catalysts.ASYMMETRY_MAX, asymmetry + Catalysts.PRICING_POWER_ADJUST)
        elif qualitative.pricing_power == "Weak":
            asymmetry = max(0, asymmetry - Catalysts.PRICING_POWER_ADJUST)
        details.append(
            f"Asymmetry {qualitative.asymmetry or 'unknown'} "
            f"(pricing power {qualitative.pricing_power or 'unknown'}): +{asymmetry}"
        )

        squeeze = 0
        if _above(short_interest, Catalysts.SQUEEZE_SHORT_INTEREST):
            squeeze = Catalysts.SQUEEZE_POINTS
            details.append(f"Short squeeze potential ({short_interest:.0%} short): +{squeeze}")

        total = density + asymmetry + squeeze
        return PillarScore(CATALYSTS, _clamp(total, Catalysts.MAX_SCORE), Catalysts.MAX_SCORE, details)


def _ownership_points(ownership: float, ladder: Sequence[Tuple[float, int]]) -> int:
    # Top rung is strict (> 10%); lower rungs are inclusive.
    top_bound, top_points = ladder[0]
    if ownership > top_bound:
        return top_points
    for bound, points in ladder[1:]:
        if ownership >= bound:
            return points
    return 0


def _peg_points(peg: float) -> int:
    first_bound, first_points = Valuation.PEG_LADDER[0]
    if peg < first_bound:
        return first_points
    for bound, points in Valuation.PEG_LADDER[1:]:
        if peg <= bound:
            return points
    return 0


def _clamp(value: float, maximum: float) -> float:
    return float(max(0.0, min(float(maximum), float(value))))


def _at_least(value: Optional[float], bound: float) -> bool:
    return value is not None and math.isfinite(value) and value >= bound


def _at_most(value: Optional[float], bound: float) -> bool:
    return value is not None and math.isfinite(value) and value <= bound


def _above(value: Optional[float], bound: float) -> bool:
    return value is not None and math.isfinite(value) and value > bound


def _pct(value: float) -> str:
    return f"{value:.1%}" if value is not None and math.isfinite(value) else "n/a"
