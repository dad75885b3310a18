"""Domain models describing the financial data exchanged between services."""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from multibagger.domain.errors import MalformedStatementError

STATEMENT_TYPES = ("IS", "BS", "CF")

# Sentinel for a self-funding company (non-negative average free cash flow).
RUNWAY_INFINITE = math.inf

INCOME_KEYS = [
    "revenue",
    "cost_of_revenue",
    "gross_profit",
    "operating_income",
    "ebit",
    "ebitda",
    "net_income",
    "rd_expense",
    "sga_expense",
    "depreciation_amortization",
    "interest_expense",
    "weighted_diluted_shares",
]
BALANCE_KEYS = [
    "total_assets",
    "total_liabilities",
    "total_equity",
    "current_assets",
    "current_liabilities",
    "receivables",
    "ppe_net",
    "retained_earnings",
    "cash_and_equivalents",
    "short_term_investments",
    "total_debt",
    "shares_outstanding",
]
CASH_FLOW_KEYS = [
    "operating_cash_flow",
    "capital_expenditures",
    "free_cash_flow",
    "depreciation_amortization",
]


@dataclass(frozen=True)
class StatementPeriod:
    """One reporting period's raw line items for a single statement type."""

    ticker: str
    period: date
    statement_type: str  # "IS", "BS" or "CF"
    metrics: Dict[str, float] = field(default_factory=dict)
    frequency: str = "quarterly"  # or "annual"
    filed_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.statement_type not in STATEMENT_TYPES:
            raise MalformedStatementError(
                "Unknown statement type",
                {"ticker": self.ticker, "statement_type": self.statement_type},
            )
        if not isinstance(self.period, date):
            raise MalformedStatementError(
                "Statement period must be a date",
                {"ticker": self.ticker, "period": repr(self.period)},
            )
        if not isinstance(self.metrics, dict):
            raise MalformedStatementError(
                "Statement metrics must be a mapping",
                {"ticker": self.ticker, "period": self.period.isoformat()},
            )
        for key, value in self.metrics.items():
            if value is None:
                continue
            # bool is an int subclass but never a valid line item.
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise MalformedStatementError(
                    "Non-numeric line item",
                    {"ticker": self.ticker, "period": self.period.isoformat(), "field": key},
                )

    def get(self, key: str) -> float:
        """Return a line item as float, NaN when missing."""
        value = self.metrics.get(key)
        if value is None:
            return float("nan")
        return float(value)


@dataclass
class FinancialDataset:
    """Newest-first statement series for one subject; index i is i periods ago."""

    ticker: str
    income_statements: List[StatementPeriod] = field(default_factory=list)
    balance_sheets: List[StatementPeriod] = field(default_factory=list)
    cash_flows: List[StatementPeriod] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.income_statements = _newest_first(self.income_statements, "IS")
        self.balance_sheets = _newest_first(self.balance_sheets, "BS")
        self.cash_flows = _newest_first(self.cash_flows, "CF")

    def is_complete(self) -> bool:
        """Quick validity check for downstream services."""
        return all([
            len(self.income_statements) > 0,
            len(self.balance_sheets) > 0,
            len(self.cash_flows) > 0,
        ])

    def is_annual(self) -> bool:
        if not self.income_statements:
            return False
        return self.income_statements[0].frequency == "annual"

    def prior_year_index(self, statements: List[StatementPeriod]) -> Optional[int]:
        """Index of the period one year back (4 when quarterly, falling back to 1)."""
        if len(statements) < 2:
            return None
        if self.is_annual():
            return 1
        return 4 if len(statements) > 4 else 1

    def latest_filing(self) -> Optional[date]:
        if not self.income_statements:
            return None
        latest = self.income_statements[0]
        return latest.filed_date or latest.period


def _newest_first(statements: List[StatementPeriod], expected_type: str) -> List[StatementPeriod]:
    """Validate, deduplicate by period (latest filing wins) and sort newest-first."""
    best: Dict[date, StatementPeriod] = {}
    for stmt in statements:
        if not isinstance(stmt, StatementPeriod):
            raise MalformedStatementError(
                "Expected StatementPeriod record",
                {"got": type(stmt).__name__, "statement_type": expected_type},
            )
        if stmt.statement_type != expected_type:
            raise MalformedStatementError(
                "Statement placed in the wrong series",
                {"expected": expected_type, "got": stmt.statement_type, "period": stmt.period.isoformat()},
            )
        prev = best.get(stmt.period)
        if prev is None:
            best[stmt.period] = stmt
            continue
        prev_filed = prev.filed_date or date.min
        filed = stmt.filed_date or date.min
        if filed >= prev_filed:
            best[stmt.period] = stmt
    return sorted(best.values(), key=lambda s: s.period, reverse=True)


@dataclass(frozen=True)
class MarketSnapshot:
    """Market data supplied by the quote collaborator."""

    price: float
    market_cap: float
    trailing_pe: Optional[float] = None
    forward_pe: Optional[float] = None
    price_to_sales: Optional[float] = None
    enterprise_value: Optional[float] = None
    short_interest: Optional[float] = None  # fraction of float


@dataclass(frozen=True)
class InsiderTrade:
    insider: str
    transaction_date: date
    transaction_type: str  # "P" purchase, "S" sale
    shares: float
    price: float = 0.0

    @property
    def value(self) -> float:
        return abs(self.shares) * (self.price or 0.0)

    @property
    def is_purchase(self) -> bool:
        return self.transaction_type.upper().startswith("P")

    @property
    def is_sale(self) -> bool:
        return self.transaction_type.upper().startswith("S")


@dataclass(frozen=True)
class CagrResult:
    """Dynamic-window CAGR with its confidence tag."""

    cagr: float
    years_used: float
    window_quarters: int
    is_partial: bool
    penalty: int


@dataclass(frozen=True)
class ExtractedMetrics:
    """Single-snapshot metrics derived once per run; NaN marks unavailable values."""

    ticker: str
    sector: str
    periods_available: int
    revenue_cagr: CagrResult
    latest_yoy_growth: float
    gross_margin: float
    gross_margin_std: float
    gross_margin_trend: str
    net_debt_to_ebitda: float
    rd_intensity: float
    ttm_revenue: float
    ttm_net_income: float
    ttm_operating_cash_flow: float
    ttm_free_cash_flow: float
    return_on_equity: float
    return_on_invested_capital: float
    fcf_margin: float
    latest_period: Optional[date] = None

    @property
    def is_profitable(self) -> bool:
        return math.isfinite(self.ttm_net_income) and self.ttm_net_income > 0

    @property
    def growth_rate(self) -> float:
        """Latest YoY growth, falling back to CAGR when YoY is unavailable."""
        if math.isfinite(self.latest_yoy_growth):
            return self.latest_yoy_growth
        return self.revenue_cagr.cagr
