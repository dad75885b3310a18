"""Hand-built statement fixtures shared by the test modules."""
from __future__ import annotations

from datetime import date
from typing import Dict, List

from multibagger.domain.models.financials import (
    CagrResult,
    ExtractedMetrics,
    FinancialDataset,
    MarketSnapshot,
    StatementPeriod,
)
from multibagger.domain.models.scoring import QualitativeInputs
from multibagger.domain.models.subject import SubjectBundle

_QUARTER_END_DAY = {3: 31, 6: 30, 9: 30, 12: 31}


def quarter_end(index: int, latest=(2024, 9)) -> date:
    """Quarter-end date ``index`` quarters before the latest one."""
    year, month = latest
    month -= 3 * index
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, _QUARTER_END_DAY[month])


def growing_quarterly_dataset(quarters: int = 12, *, ticker: str = "GROW", quarterly_growth: float = 0.05) -> FinancialDataset:
    """Healthy, self-funding company whose revenue compounds every quarter."""
    incomes: List[StatementPeriod] = []
    balances: List[StatementPeriod] = []
    flows: List[StatementPeriod] = []
    for i in range(quarters):
        period = quarter_end(i)
        revenue = 50e6 * (1 + quarterly_growth) ** (quarters - 1 - i)
        incomes.append(
            StatementPeriod(
                ticker=ticker,
                period=period,
                statement_type="IS",
                metrics={
                    "revenue": revenue,
                    "gross_profit": revenue * 0.78,
                    "operating_income": revenue * 0.20,
                    "net_income": revenue * 0.15,
                    "rd_expense": revenue * 0.18,
                    "sga_expense": revenue * 0.30,
                    "depreciation_amortization": revenue * 0.02,
                    "weighted_diluted_shares": 100e6,
                },
            )
        )
        balances.append(
            StatementPeriod(
                ticker=ticker,
                period=period,
                statement_type="BS",
                metrics={
                    "total_assets": 600e6,
                    "total_liabilities": 150e6,
                    "total_equity": 450e6,
                    "current_assets": 350e6,
                    "current_liabilities": 80e6,
                    "receivables": revenue * 0.5,
                    "ppe_net": 60e6,
                    "retained_earnings": 200e6,
                    "cash_and_equivalents": 250e6,
                    "total_debt": 20e6,
                },
            )
        )
        flows.append(
            StatementPeriod(
                ticker=ticker,
                period=period,
                statement_type="CF",
                metrics={
                    "operating_cash_flow": revenue * 0.22,
                    "capital_expenditures": -revenue * 0.03,
                },
            )
        )
    return FinancialDataset(ticker=ticker, income_statements=incomes, balance_sheets=balances, cash_flows=flows)


def fraud_dataset(ticker: str = "FRAUD") -> FinancialDataset:
    """Two annual periods: receivables outpacing sales, collapsing margin, cash-less profits."""
    scale = 1e6
    current, prior = date(2024, 12, 31), date(2023, 12, 31)

    def annual(period: date, statement_type: str, values: Dict[str, float]) -> StatementPeriod:
        return StatementPeriod(
            ticker=ticker,
            period=period,
            statement_type=statement_type,
            metrics={key: value * scale for key, value in values.items()},
            frequency="annual",
        )

    incomes = [
        annual(current, "IS", {
            "revenue": 1200, "gross_profit": 180, "operating_income": 30, "net_income": 60,
            "sga_expense": 120, "depreciation_amortization": 50, "weighted_diluted_shares": 100,
        }),
        annual(prior, "IS", {
            "revenue": 1000, "gross_profit": 400, "net_income": 50,
            "sga_expense": 100, "depreciation_amortization": 50, "weighted_diluted_shares": 100,
        }),
    ]
    balances = [
        annual(current, "BS", {
            "receivables": 160, "current_assets": 700, "ppe_net": 300, "total_assets": 1200,
            "total_liabilities": 480, "current_liabilities": 300, "retained_earnings": 200,
            "total_equity": 720, "cash_and_equivalents": 300,
        }),
        annual(prior, "BS", {
            "receivables": 100, "current_assets": 500, "ppe_net": 300, "total_assets": 1000,
            "total_liabilities": 400,
        }),
    ]
    flows = [
        annual(current, "CF", {"operating_cash_flow": -200, "capital_expenditures": -50}),
        annual(prior, "CF", {"operating_cash_flow": 60}),
    ]
    return FinancialDataset(ticker=ticker, income_statements=incomes, balance_sheets=balances, cash_flows=flows)


def make_metrics(**overrides) -> ExtractedMetrics:
    values = dict(
        ticker="TEST",
        sector="SaaS",
        periods_available=12,
        revenue_cagr=CagrResult(0.25, 3.0, 12, False, 0),
        latest_yoy_growth=0.25,
        gross_margin=0.70,
        gross_margin_std=0.01,
        gross_margin_trend="Stable",
        net_debt_to_ebitda=0.5,
        rd_intensity=0.10,
        ttm_revenue=500e6,
        ttm_net_income=50e6,
        ttm_operating_cash_flow=80e6,
        ttm_free_cash_flow=70e6,
        return_on_equity=0.18,
        return_on_invested_capital=0.14,
        fcf_margin=0.14,
        latest_period=date(2024, 9, 30),
    )
    values.update(overrides)
    return ExtractedMetrics(**values)


def make_bundle(dataset: FinancialDataset, *, sector_tag: str = "SaaS", market_cap: float = 5e9, **qualitative) -> SubjectBundle:
    return SubjectBundle(
        ticker=dataset.ticker,
        company_name=f"{dataset.ticker} Corp",
        sector_tag=sector_tag,
        sector_text="Technology",
        industry_text="Software",
        market=MarketSnapshot(price=50.0, market_cap=market_cap, trailing_pe=40.0, forward_pe=32.0),
        dataset=dataset,
        qualitative=QualitativeInputs(**qualitative),
    )
