"""Financial metrics extraction.

Derives the single-snapshot view consumed by the risk engine and pillar scorer:

- trailing-twelve-month aggregates (revenue, net income, operating and free cash flow)
- dynamic-window revenue CAGR (3y, falling back to 2y then 1y, tagged as partial)
- latest YoY growth, gross margin level, volatility and trend
- leverage, R&D intensity, ROE, ROIC and FCF margin

Frames are kept newest-first so row ``i`` is "i periods ago". Values that cannot
be computed because of missing or zero denominators are ``float('nan')``.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from multibagger.domain.models.financials import (
    BALANCE_KEYS,
    CASH_FLOW_KEYS,
    INCOME_KEYS,
    CagrResult,
    ExtractedMetrics,
    FinancialDataset,
)
from multibagger.domain.models.scoring import Sector
from multibagger.settings.strategy import Growth, Quality


class MetricsExtractor:
    """Compute ExtractedMetrics from newest-first statement series."""

    def extract(self, dataset: FinancialDataset, sector: object) -> ExtractedMetrics:
        sector_tag = Sector.parse(sector)
        annual = dataset.is_annual()

        inc_df = _frame_from_statements(dataset.income_statements, INCOME_KEYS)
        bs_df = _frame_from_statements(dataset.balance_sheets, BALANCE_KEYS)
        cf_df = _frame_from_statements(dataset.cash_flows, CASH_FLOW_KEYS)

        inc_ttm = _ttm_from_df(
            inc_df,
            keys=["revenue", "gross_profit", "net_income", "operating_income", "ebit", "ebitda",
                  "rd_expense", "depreciation_amortization"],
            annual=annual,
        )
        cf_ttm = _ttm_from_df(
            cf_df,
            keys=["operating_cash_flow", "capital_expenditures", "free_cash_flow", "depreciation_amortization"],
            annual=annual,
        )
        latest_bs = bs_df.iloc[0].to_dict() if not bs_df.empty else {}

        revenue = inc_ttm.get("revenue", float("nan"))
        net_income = inc_ttm.get("net_income", float("nan"))
        ocf = cf_ttm.get("operating_cash_flow", float("nan"))
        fcf = cf_ttm.get("free_cash_flow", float("nan"))
        if np.isnan(fcf):
            capex = cf_ttm.get("capital_expenditures", float("nan"))
            if not np.isnan(ocf):
                fcf = ocf - (abs(capex) if not np.isnan(capex) else 0.0)

        revenue_history = _series(inc_df, "revenue")
        margins = _gross_margins(inc_df)

        return ExtractedMetrics(
            ticker=dataset.ticker,
            sector=sector_tag.value,
            periods_available=len(inc_df),
            revenue_cagr=dynamic_cagr(revenue_history, annual=annual),
            latest_yoy_growth=_yoy(revenue_history, annual=annual),
            gross_margin=_ttm_gross_margin(inc_ttm, margins),
            gross_margin_std=_margin_std(margins),
            gross_margin_trend=_margin_trend(margins, annual=annual),
            net_debt_to_ebitda=_net_debt_to_ebitda(latest_bs, inc_ttm, cf_ttm),
            rd_intensity=sdiv(inc_ttm.get("rd_expense", float("nan")), revenue, positive_only=True),
            ttm_revenue=revenue,
            ttm_net_income=net_income,
            ttm_operating_cash_flow=ocf,
            ttm_free_cash_flow=fcf,
            return_on_equity=sdiv(net_income, _g(latest_bs, "total_equity"), positive_only=True),
            return_on_invested_capital=_roic(latest_bs, inc_ttm),
            fcf_margin=sdiv(fcf, revenue, positive_only=True),
            latest_period=(
                pd.to_datetime(inc_df["period"].iloc[0]).date() if not inc_df.empty else None
            ),
        )


def dynamic_cagr(values: Sequence[float], *, annual: bool = False) -> CagrResult:
    """CAGR over the longest available window, newest-first input.

    Quarterly history uses a 12/8/4 quarter window (3y/2y/1y) with growing
    penalties; shorter windows are flagged partial. A non-positive oldest value
    yields 0 rather than an error.
    """
    count = len(values)
    if count < 2:
        return CagrResult(0.0, 0.0, count, True, Growth.SHORT_HISTORY_PENALTY)

    if annual:
        years = min(3, count - 1)
        oldest_index = years
        penalty = {3: 0, 2: -2, 1: -4}[years]
        window = years + 1
        years_used = float(years)
    else:
        for min_quarters, window_quarters, years, window_penalty in Growth.CAGR_WINDOWS:
            if count >= min_quarters:
                oldest_index = window_quarters - 1
                years_used = float(years)
                penalty = window_penalty
                window = window_quarters
                break
        else:
            oldest_index = count - 1
            years_used = count / 4.0
            penalty = Growth.SHORT_HISTORY_PENALTY
            window = count

    latest = _to_float(values[0])
    oldest = _to_float(values[oldest_index])
    if np.isnan(latest) or np.isnan(oldest) or oldest <= 0 or years_used <= 0:
        return CagrResult(0.0, 0.0, window, True, Growth.SHORT_HISTORY_PENALTY)

    ratio = max(latest, 0.0) / oldest
    cagr = ratio ** (1.0 / years_used) - 1.0
    return CagrResult(float(cagr), years_used, window, years_used < 3, penalty)


def trailing_sum(statements: Sequence, key: str, *, annual: bool) -> float:
    """TTM value of one line item straight from newest-first statements."""
    df = _frame_from_statements(statements, [key])
    return _ttm_from_df(df, [key], annual=annual).get(key, float("nan"))


def sdiv(a: float, b: float, *, positive_only: bool = False) -> float:
    """NaN-safe division; ``positive_only`` also rejects non-positive denominators."""
    if a is None or b is None:
        return float("nan")
    a = _to_float(a)
    b = _to_float(b)
    if np.isnan(a) or np.isnan(b) or b == 0.0:
        return float("nan")
    if positive_only and b < 0:
        return float("nan")
    return a / b


def _to_float(value: object) -> float:
    try:
        if value is None:
            return float("nan")
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float("nan")
    return result


def _g(row: Dict[str, float], key: str) -> float:
    return _to_float(row.get(key)) if row else float("nan")


def _frame_from_statements(statements: Iterable, keys: List[str]) -> pd.DataFrame:
    rows: List[Dict[str, float]] = []
    for s in statements:
        row: Dict[str, float] = {k: _to_float(s.metrics.get(k)) for k in keys}
        row["period"] = s.period
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["period", *keys])
    df = pd.DataFrame(rows)
    df["period"] = pd.to_datetime(df["period"])
    df = df.sort_values("period", ascending=False).reset_index(drop=True)
    if "gross_profit" in df and "cost_of_revenue" in df:
        derived = df["revenue"] - df["cost_of_revenue"]
        df["gross_profit"] = df["gross_profit"].fillna(derived)
    return df


def _series(df: pd.DataFrame, col: str) -> List[float]:
    if df is None or df.empty or col not in df:
        return []
    return [float(v) for v in df[col].tolist()]


def _ttm_from_df(df: pd.DataFrame, keys: List[str], *, annual: bool) -> Dict[str, float]:
    """Trailing-twelve-month sums from the newest four quarters (best-effort).

    Annual series use the latest period as-is. Quarterly windows shorter than
    four periods are scaled up to a full year.
    """
    if df is None or df.empty:
        return {}
    window = df.head(1) if annual else df.head(4)
    totals: Dict[str, float] = {}
    for key in keys:
        if key not in window:
            totals[key] = float("nan")
            continue
        values = [v for v in window[key] if not pd.isna(v)]
        if not values:
            totals[key] = float("nan")
            continue
        total = float(np.nansum(values))
        if not annual and len(window) < 4:
            total = total * 4.0 / len(window)
        totals[key] = total
    return totals


def _yoy(values: Sequence[float], *, annual: bool) -> float:
    prior_index = 1 if annual else 4
    if len(values) <= prior_index:
        return float("nan")
    latest = _to_float(values[0])
    prior = _to_float(values[prior_index])
    if np.isnan(latest) or np.isnan(prior) or prior <= 0:
        return float("nan")
    return latest / prior - 1.0


def _gross_margins(inc_df: pd.DataFrame) -> List[float]:
    """Per-period gross margin ratios, newest-first; NaN where revenue is missing."""
    if inc_df.empty or "gross_profit" not in inc_df:
        return []
    margins: List[float] = []
    for revenue, gross_profit in zip(inc_df["revenue"], inc_df["gross_profit"]):
        margins.append(sdiv(gross_profit, revenue, positive_only=True))
    return margins


def _ttm_gross_margin(inc_ttm: Dict[str, float], margins: List[float]) -> float:
    margin = sdiv(inc_ttm.get("gross_profit", float("nan")), inc_ttm.get("revenue", float("nan")), positive_only=True)
    if np.isnan(margin) and margins:
        return margins[0]
    return margin


def _margin_std(margins: List[float]) -> float:
    """Population standard deviation of the last four margins."""
    recent = [m for m in margins[:4] if not np.isnan(m)]
    if len(recent) < 2:
        return float("nan")
    return float(np.std(recent, ddof=0))


def _margin_trend(margins: List[float], *, annual: bool) -> str:
    prior_index = 1 if annual else 4
    if len(margins) <= prior_index:
        return "Unknown"
    latest, prior = margins[0], margins[prior_index]
    if np.isnan(latest) or np.isnan(prior):
        return "Unknown"
    if latest - prior > Quality.TREND_TOLERANCE:
        return "Expanding"
    if prior - latest > Quality.TREND_TOLERANCE:
        return "Contracting"
    return "Stable"


def _ebitda(inc_ttm: Dict[str, float], cf_ttm: Dict[str, float]) -> float:
    ebitda = inc_ttm.get("ebitda", float("nan"))
    if not np.isnan(ebitda):
        return ebitda
    ebit = inc_ttm.get("ebit", float("nan"))
    if np.isnan(ebit):
        ebit = inc_ttm.get("operating_income", float("nan"))
    dep = inc_ttm.get("depreciation_amortization", float("nan"))
    if np.isnan(dep):
        dep = cf_ttm.get("depreciation_amortization", float("nan"))
    if np.isnan(ebit):
        return float("nan")
    return ebit + (dep if not np.isnan(dep) else 0.0)


def _net_debt_to_ebitda(latest_bs: Dict[str, float], inc_ttm: Dict[str, float], cf_ttm: Dict[str, float]) -> float:
    debt = _g(latest_bs, "total_debt")
    if np.isnan(debt):
        return float("nan")
    cash = np.nansum([_g(latest_bs, "cash_and_equivalents"), _g(latest_bs, "short_term_investments")])
    ebitda = _ebitda(inc_ttm, cf_ttm)
    if np.isnan(ebitda) or ebitda <= 0:
        return float("nan")
    return float((debt - cash) / ebitda)


def _roic(latest_bs: Dict[str, float], inc_ttm: Dict[str, float]) -> float:
    """Pre-tax return on invested capital (operating income over equity + net debt)."""
    operating = inc_ttm.get("operating_income", float("nan"))
    if np.isnan(operating):
        operating = inc_ttm.get("ebit", float("nan"))
    equity = _g(latest_bs, "total_equity")
    if np.isnan(operating) or np.isnan(equity):
        return float("nan")
    debt = _g(latest_bs, "total_debt")
    cash = _g(latest_bs, "cash_and_equivalents")
    invested = equity + (0.0 if math.isnan(debt) else debt) - (0.0 if math.isnan(cash) else cash)
    if invested <= 0:
        return float("nan")
    return operating / invested
