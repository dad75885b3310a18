"""Hard-kill and soft-warning risk checks.

Two independent signal groups protect the composite score:

- hard kills (disqualify): extreme Beneish M-Score for established companies,
  negative Altman Z for small/mid caps, catastrophic dilution, imminent insolvency
- soft warnings (bounded penalties): grey-zone M-Score, distress-zone Z,
  tiered dilution, short runway, elevated short interest, paper-tiger earnings

Missing inputs degrade to "insufficient data" warnings and never to a
disqualification.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from multibagger.domain.models.financials import (
    RUNWAY_INFINITE,
    ExtractedMetrics,
    FinancialDataset,
    StatementPeriod,
)
from multibagger.domain.models.scoring import QualityOfEarnings, RiskAssessment, Sector
from multibagger.domain.services.metrics import sdiv, trailing_sum
from multibagger.settings.strategy import MANUFACTURING_SECTORS, Risk

logger = logging.getLogger(__name__)

NEUTRAL_INDEX = 1.0


@dataclass(frozen=True)
class BeneishBreakdown:
    dsri: float
    gmi: float
    aqi: float
    sgi: float
    depi: float
    sgai: float
    tata: float
    lvgi: float
    defaulted: int

    @property
    def m_score(self) -> float:
        return (
            -4.84
            + 0.92 * self.dsri
            + 0.528 * self.gmi
            + 0.404 * self.aqi
            + 0.892 * self.sgi
            + 0.115 * self.depi
            - 0.172 * self.sgai
            + 4.679 * self.tata
            - 0.327 * self.lvgi
        )


def beneish_m_score(
    current_is: StatementPeriod,
    prior_is: StatementPeriod,
    current_bs: StatementPeriod,
    prior_bs: StatementPeriod,
    current_cf: Optional[StatementPeriod] = None,
) -> BeneishBreakdown:
    """Eight-variable M-Score; any index lacking denominator data is neutral (1.0)."""
    defaulted = 0

    def index(value: float) -> float:
        nonlocal defaulted
        if value is None or not math.isfinite(value):
            defaulted += 1
            return NEUTRAL_INDEX
        return value

    sales_t, sales_t1 = current_is.get("revenue"), prior_is.get("revenue")
    rec_t, rec_t1 = current_bs.get("receivables"), prior_bs.get("receivables")

    dsri = float("nan")
    if _positive(rec_t1) and _positive(sales_t1) and _positive(sales_t) and _finite(rec_t):
        dsri = (rec_t / sales_t) / (rec_t1 / sales_t1)

    gm_t, gm_t1 = _gross_margin(current_is), _gross_margin(prior_is)
    gmi = gm_t1 / gm_t if _positive(gm_t) and _finite(gm_t1) else float("nan")

    soft_t, soft_t1 = _soft_asset_ratio(current_bs), _soft_asset_ratio(prior_bs)
    aqi = float("nan")
    if _finite(soft_t) and _finite(soft_t1) and 0 < soft_t1 < 1:
        aqi = soft_t / soft_t1

    sgi = sales_t / sales_t1 if _positive(sales_t1) and _finite(sales_t) else float("nan")

    dep_rate_t = _depreciation_rate(current_is, current_bs)
    dep_rate_t1 = _depreciation_rate(prior_is, prior_bs)
    depi = dep_rate_t1 / dep_rate_t if _positive(dep_rate_t) and _finite(dep_rate_t1) else float("nan")

    sga_t, sga_t1 = current_is.get("sga_expense"), prior_is.get("sga_expense")
    sgai = float("nan")
    if _positive(sga_t1) and _positive(sales_t1) and _positive(sales_t) and _finite(sga_t):
        sgai = (sga_t / sales_t) / (sga_t1 / sales_t1)

    lev_t = sdiv(current_bs.get("total_liabilities"), current_bs.get("total_assets"), positive_only=True)
    lev_t1 = sdiv(prior_bs.get("total_liabilities"), prior_bs.get("total_assets"), positive_only=True)
    lvgi = lev_t / lev_t1 if _positive(lev_t1) and _finite(lev_t) else float("nan")

    tata = _total_accruals(current_is, current_bs, prior_bs, current_cf)
    if not _finite(tata):
        defaulted += 1
        tata = 0.0

    return BeneishBreakdown(
        dsri=index(dsri),
        gmi=index(gmi),
        aqi=index(aqi),
        sgi=index(sgi),
        depi=index(depi),
        sgai=index(sgai),
        tata=tata,
        lvgi=index(lvgi),
        defaulted=defaulted,
    )


def altman_z_score(
    current_bs: StatementPeriod,
    ttm_ebit: float,
    ttm_revenue: float,
    market_cap: float,
    sector: Sector,
) -> Tuple[float, str]:
    """Altman Z (manufacturing) or Z'' (non-manufacturing) by sector."""
    total_assets = current_bs.get("total_assets")
    if not _positive(total_assets):
        return float("nan"), "unavailable"
    working_capital = current_bs.get("current_assets") - current_bs.get("current_liabilities")
    x1 = _zero_if_nan(working_capital / total_assets)
    x2 = _zero_if_nan(current_bs.get("retained_earnings") / total_assets)
    x3 = _zero_if_nan(ttm_ebit / total_assets)
    liabilities = current_bs.get("total_liabilities")

    if sector.value in MANUFACTURING_SECTORS:
        x4 = _zero_if_nan(sdiv(market_cap, liabilities, positive_only=True))
        x5 = _zero_if_nan(ttm_revenue / total_assets)
        z = 1.2 * x1 + 1.4 * x2 + 3.3 * x3 + 0.6 * x4 + 1.0 * x5
        return float(z), "manufacturing"

    equity = current_bs.get("total_equity")
    if not _finite(equity) and _finite(liabilities):
        equity = total_assets - liabilities
    x4 = _zero_if_nan(sdiv(equity, liabilities, positive_only=True))
    z = 6.56 * x1 + 3.26 * x2 + 6.72 * x3 + 1.05 * x4
    return float(z), "non-manufacturing"


def dilution_rate(current_is: StatementPeriod, prior_is: StatementPeriod) -> float:
    """YoY change in diluted weighted-average shares (fraction)."""
    current = current_is.get("weighted_diluted_shares")
    prior = prior_is.get("weighted_diluted_shares")
    if not _positive(prior) or not _finite(current):
        return float("nan")
    return (current - prior) / prior


def cash_runway_quarters(
    current_bs: StatementPeriod,
    cash_flows: List[StatementPeriod],
    *,
    annual: bool = False,
) -> float:
    """Quarters of cash left at the average trailing free-cash-flow burn.

    A non-negative average FCF means self-funding and returns RUNWAY_INFINITE.
    """
    cash = np.nansum([current_bs.get("cash_and_equivalents"), current_bs.get("short_term_investments")])
    flows = [_free_cash_flow(cf) for cf in cash_flows[: Risk.RUNWAY_WINDOW]]
    flows = [f for f in flows if _finite(f)]
    if not flows:
        return float("nan")
    average = float(np.mean(flows))
    if annual:
        average = average / 4.0
    if average >= 0:
        return RUNWAY_INFINITE
    return float(cash) / abs(average)


def quality_of_earnings(
    incomes: List[StatementPeriod],
    cash_flows: List[StatementPeriod],
    *,
    annual: bool = False,
) -> Tuple[QualityOfEarnings, int, float]:
    """Paper-tiger check: positive TTM net income alongside negative TTM operating cash flow.

    Returns (status, paper tiger period count, OCF/NI conversion ratio).
    """
    ttm_ni = trailing_sum(incomes, "net_income", annual=annual)
    ttm_ocf = trailing_sum(cash_flows, "operating_cash_flow", annual=annual)
    if not _finite(ttm_ni) or not _finite(ttm_ocf):
        return QualityOfEarnings.UNAVAILABLE, 0, float("nan")

    periods = min(len(incomes), len(cash_flows), Risk.QOE_LOOKBACK)
    paper_tigers = 0
    for idx in range(periods):
        ni = incomes[idx].get("net_income")
        ocf = cash_flows[idx].get("operating_cash_flow")
        if _finite(ni) and _finite(ocf) and ni > 0 and ocf < 0:
            paper_tigers += 1

    conversion = ttm_ocf / ttm_ni if ttm_ni > 0 else float("nan")
    if ttm_ni > 0 and ttm_ocf < 0:
        return QualityOfEarnings.FAIL, paper_tigers, conversion
    if paper_tigers >= Risk.QOE_WARN_COUNT:
        return QualityOfEarnings.WARN, paper_tigers, conversion
    return QualityOfEarnings.PASS, paper_tigers, conversion


class RiskEngine:
    """Run every risk signal and fold the results into a RiskAssessment."""

    def assess(
        self,
        dataset: FinancialDataset,
        metrics: ExtractedMetrics,
        *,
        market_cap: float,
        ttm_revenue: Optional[float] = None,
        short_interest: Optional[float] = None,
    ) -> RiskAssessment:
        sector = Sector.parse(metrics.sector)
        revenue = metrics.ttm_revenue if ttm_revenue is None else float(ttm_revenue)
        annual = dataset.is_annual()
        result = RiskAssessment()

        incomes, balances, flows = dataset.income_statements, dataset.balance_sheets, dataset.cash_flows
        prior_is_idx = dataset.prior_year_index(incomes)
        prior_bs_idx = dataset.prior_year_index(balances)

        # 1. Beneish M-Score
        if prior_is_idx is None or prior_bs_idx is None:
            result.warn("Beneish M-Score", "Beneish M-Score: insufficient data for fraud check")
        else:
            breakdown = beneish_m_score(
                incomes[0],
                incomes[prior_is_idx],
                balances[0],
                balances[prior_bs_idx],
                flows[0] if flows else None,
            )
            result.beneish_m_score = breakdown.m_score
            result.beneish_defaulted_indices = breakdown.defaulted
            self._evaluate_beneish(result, breakdown.m_score, revenue, sector)
            logger.debug("%s Beneish components %s", dataset.ticker, breakdown)

        # 2. Dilution
        if prior_is_idx is not None:
            result.dilution_rate = dilution_rate(incomes[0], incomes[prior_is_idx])
            self._evaluate_dilution(result, result.dilution_rate)

        # 3. Cash runway
        if balances and flows:
            result.cash_runway_quarters = cash_runway_quarters(balances[0], flows, annual=annual)
            latest_ni = incomes[0].get("net_income") if incomes else float("nan")
            self._evaluate_runway(result, result.cash_runway_quarters, latest_ni)
        else:
            result.warn("Cash Runway", "Cash runway: insufficient data for runway check")

        # 4. Altman Z-Score
        if balances and incomes:
            ttm_ebit = trailing_sum(incomes, "operating_income", annual=annual)
            if not _finite(ttm_ebit):
                ttm_ebit = trailing_sum(incomes, "ebit", annual=annual)
            z, model = altman_z_score(balances[0], ttm_ebit, revenue, market_cap, sector)
            result.altman_z_score, result.altman_model = z, model
            self._evaluate_altman(result, z, market_cap)
        else:
            result.warn("Altman Z-Score", "Altman Z-Score: insufficient data for distress check")

        # 5. Short interest
        if short_interest is not None and _finite(short_interest):
            result.short_interest = float(short_interest)
            self._evaluate_short_interest(result, result.short_interest)

        # 6. Quality of earnings
        if incomes and flows:
            status, paper_tigers, conversion = quality_of_earnings(incomes, flows, annual=annual)
            result.quality_of_earnings = status
            result.earnings_conversion = conversion
            self._evaluate_earnings(result, status, paper_tigers)

        if result.disqualified:
            logger.info("%s disqualified: %s", dataset.ticker, "; ".join(result.disqualify_reasons))
        return result

    # -----------------
    # Rule evaluation
    # -----------------
    @staticmethod
    def _evaluate_beneish(result: RiskAssessment, m_score: float, ttm_revenue: float, sector: Sector) -> None:
        threshold = Risk.BENEISH_SECTOR_THRESHOLDS.get(sector.value, Risk.BENEISH_DEFAULT_THRESHOLD)
        if m_score > Risk.BENEISH_EXTREME:
            early_stage = not _finite(ttm_revenue) or ttm_revenue < Risk.EARLY_STAGE_REVENUE
            if early_stage:
                result.warn(
                    "Beneish M-Score",
                    f"Beneish M-Score {m_score:.2f} > {Risk.BENEISH_EXTREME} (high manipulation risk, early stage)",
                    Risk.BENEISH_EARLY_STAGE_PENALTY,
                )
            else:
                result.hard_kill(
                    "Beneish M-Score",
                    f"Beneish M-Score {m_score:.2f} > {Risk.BENEISH_EXTREME} (extreme manipulation risk)",
                    Risk.BENEISH_EARLY_STAGE_PENALTY,
                )
        elif m_score > threshold:
            result.warn(
                "Beneish M-Score",
                f"Beneish M-Score {m_score:.2f} > {threshold} (possible manipulation)",
                Risk.BENEISH_WARNING_PENALTY,
            )

    @staticmethod
    def _evaluate_dilution(result: RiskAssessment, rate: float) -> None:
        if not _finite(rate):
            return
        if rate > Risk.DILUTION_KILL:
            result.hard_kill(
                "Dilution",
                f"Dilution rate {rate:.1%} > {Risk.DILUTION_KILL:.0%} (massive dilution)",
                Risk.DILUTION_HIGH_PENALTY,
            )
        elif rate > Risk.DILUTION_HIGH:
            result.warn(
                "Dilution",
                f"Dilution rate {rate:.1%} > {Risk.DILUTION_HIGH:.0%} (high dilution)",
                Risk.DILUTION_HIGH_PENALTY,
            )
        elif rate > Risk.DILUTION_MODERATE:
            result.warn(
                "Dilution",
                f"Dilution rate {rate:.1%} > {Risk.DILUTION_MODERATE:.0%} (moderate dilution)",
                Risk.DILUTION_MODERATE_PENALTY,
            )

    @staticmethod
    def _evaluate_runway(result: RiskAssessment, runway: float, latest_net_income: float) -> None:
        if math.isnan(runway):
            result.warn("Cash Runway", "Cash runway: insufficient data for runway check")
            return
        if runway >= Risk.RUNWAY_MIN_QUARTERS:
            return
        losing_money = _finite(latest_net_income) and latest_net_income < 0
        if losing_money and runway < Risk.RUNWAY_KILL_QUARTERS:
            result.hard_kill(
                "Cash Runway",
                f"Cash runway {runway:.1f} quarters < 1 (imminent insolvency risk)",
                Risk.RUNWAY_BURNING_PENALTY,
            )
        elif losing_money:
            result.warn("Cash Runway", f"Cash runway tight: {runway:.1f} quarters", Risk.RUNWAY_BURNING_PENALTY)
        else:
            result.warn("Cash Runway", f"Cash runway low: {runway:.1f} quarters", Risk.RUNWAY_LOW_PENALTY)

    @staticmethod
    def _evaluate_altman(result: RiskAssessment, z: float, market_cap: float) -> None:
        if not _finite(z):
            result.warn("Altman Z-Score", "Altman Z-Score: insufficient data for distress check")
            return
        small_or_mid = not _finite(market_cap) or market_cap < Risk.ALTMAN_LARGE_CAP
        if z < Risk.ALTMAN_KILL and small_or_mid:
            result.hard_kill("Altman Z-Score", f"Altman Z-Score {z:.2f} < 0 (severe distress)", Risk.ALTMAN_PENALTY)
        elif z < Risk.ALTMAN_DISTRESS:
            result.warn(
                "Altman Z-Score",
                f"Altman Z-Score {z:.2f} < {Risk.ALTMAN_DISTRESS} (distress zone)",
                Risk.ALTMAN_PENALTY,
            )

    @staticmethod
    def _evaluate_short_interest(result: RiskAssessment, short_interest: float) -> None:
        if short_interest > Risk.SHORT_INTEREST_EXTREME:
            result.warn(
                "Short Interest",
                f"Short interest {short_interest:.1%} > {Risk.SHORT_INTEREST_EXTREME:.0%} (extreme bearish sentiment)",
                Risk.SHORT_INTEREST_PENALTY,
            )
        elif short_interest > Risk.SHORT_INTEREST_HIGH:
            result.warn("Short Interest", f"High short interest: {short_interest:.1%}")

    @staticmethod
    def _evaluate_earnings(result: RiskAssessment, status: QualityOfEarnings, paper_tigers: int) -> None:
        if status is QualityOfEarnings.FAIL:
            result.warn(
                "Quality of Earnings",
                "Quality of earnings fail: TTM net income positive while operating cash flow negative",
                Risk.QOE_FAIL_PENALTY,
            )
        elif status is QualityOfEarnings.WARN:
            result.warn(
                "Quality of Earnings",
                f"Quality of earnings warning: {paper_tigers} recent periods of profit without operating cash",
            )
        elif status is QualityOfEarnings.UNAVAILABLE:
            result.warn("Quality of Earnings", "Quality of earnings: insufficient data for earnings check")


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def _positive(value: Optional[float]) -> bool:
    return _finite(value) and value > 0  # type: ignore[operator]


def _zero_if_nan(value: float) -> float:
    return value if _finite(value) else 0.0


def _gross_margin(stmt: StatementPeriod) -> float:
    revenue = stmt.get("revenue")
    gross_profit = stmt.get("gross_profit")
    if not _finite(gross_profit):
        gross_profit = revenue - stmt.get("cost_of_revenue")
    return sdiv(gross_profit, revenue, positive_only=True)


def _soft_asset_ratio(stmt: StatementPeriod) -> float:
    total_assets = stmt.get("total_assets")
    if not _positive(total_assets):
        return float("nan")
    hard_assets = np.nansum([stmt.get("current_assets"), stmt.get("ppe_net")])
    return 1.0 - float(hard_assets) / total_assets


def _depreciation_rate(income: StatementPeriod, balance: StatementPeriod) -> float:
    dep = income.get("depreciation_amortization")
    ppe = balance.get("ppe_net")
    if not _finite(dep) or not _finite(ppe):
        return float("nan")
    return sdiv(dep, dep + ppe, positive_only=True)


def _total_accruals(
    income: StatementPeriod,
    balance: StatementPeriod,
    prior_balance: StatementPeriod,
    cash_flow: Optional[StatementPeriod],
) -> float:
    """(Net income - operating cash flow) / total assets, with a cash-change proxy."""
    net_income = income.get("net_income")
    total_assets = balance.get("total_assets")
    if not _finite(net_income) or not _positive(total_assets):
        return float("nan")
    ocf = cash_flow.get("operating_cash_flow") if cash_flow is not None else float("nan")
    if _finite(ocf):
        return (net_income - ocf) / total_assets
    cash_change = balance.get("cash_and_equivalents") - prior_balance.get("cash_and_equivalents")
    if not _finite(cash_change):
        return float("nan")
    return (net_income - cash_change) / total_assets


def _free_cash_flow(stmt: StatementPeriod) -> float:
    fcf = stmt.get("free_cash_flow")
    if _finite(fcf):
        return fcf
    ocf = stmt.get("operating_cash_flow")
    if not _finite(ocf):
        return float("nan")
    capex = stmt.get("capital_expenditures")
    return ocf - (abs(capex) if _finite(capex) else 0.0)
