"""Load subject bundles from JSON files exported by upstream fetchers.

Expected layout of one bundle file::

    {
      "ticker": "ACME",
      "frequency": "quarterly",
      "profile": {"companyName": "...", "sector": "...", "industry": "...", "ceo": "..."},
      "quote": {"price": 12.5, "marketCap": 1.2e9, "trailingPE": 40, "forwardPE": 30},
      "income": [{"period": "2024-09-30", "revenue": 1.0e8, ...}],
      "balance": [...],
      "cashFlow": [...],
      "insiderTrades": [{"insider": "...", "date": "2024-08-01", "type": "P", "shares": 1000, "price": 10}],
      "qualitative": {"tamPenetration": "1-5%", "revenueType": "Recurring", ...}
    }

Series are read independently; one bad series is recorded and does not stop
the others ("all settled"), then the required subset is validated.
"""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from multibagger.domain.errors import MalformedStatementError, MissingSubjectDataError
from multibagger.domain.models.financials import (
    FinancialDataset,
    InsiderTrade,
    MarketSnapshot,
    StatementPeriod,
)
from multibagger.domain.models.scoring import QualitativeInputs
from multibagger.domain.models.subject import SubjectBundle

logger = logging.getLogger(__name__)

# camelCase provider keys -> canonical line items.
FIELD_ALIASES: Dict[str, str] = {
    "costOfRevenue": "cost_of_revenue",
    "grossProfit": "gross_profit",
    "operatingIncome": "operating_income",
    "netIncome": "net_income",
    "researchAndDevelopmentExpenses": "rd_expense",
    "sellingGeneralAndAdministrativeExpenses": "sga_expense",
    "depreciationAndAmortization": "depreciation_amortization",
    "interestExpense": "interest_expense",
    "weightedAverageShsOutDil": "weighted_diluted_shares",
    "totalAssets": "total_assets",
    "totalLiabilities": "total_liabilities",
    "totalStockholdersEquity": "total_equity",
    "totalCurrentAssets": "current_assets",
    "totalCurrentLiabilities": "current_liabilities",
    "netReceivables": "receivables",
    "propertyPlantEquipmentNet": "ppe_net",
    "retainedEarnings": "retained_earnings",
    "cashAndCashEquivalents": "cash_and_equivalents",
    "shortTermInvestments": "short_term_investments",
    "totalDebt": "total_debt",
    "operatingCashFlow": "operating_cash_flow",
    "capitalExpenditure": "capital_expenditures",
    "freeCashFlow": "free_cash_flow",
}

QUALITATIVE_ALIASES: Dict[str, str] = {
    "tamPenetration": "tam_penetration",
    "revenueType": "revenue_type",
    "netDollarRetention": "net_dollar_retention",
    "founderLed": "founder_led",
    "insiderOwnership": "insider_ownership",
    "insiderOwnershipSource": "insider_ownership_source",
    "institutionalOwnership": "institutional_ownership",
    "institutionalOwnershipSource": "institutional_ownership_source",
    "shortInterest": "short_interest",
    "shortInterestSource": "short_interest_source",
    "catalystDensity": "catalyst_density",
    "asymmetry": "asymmetry",
    "asymmetryScore": "asymmetry",
    "pricingPower": "pricing_power",
}

_META_KEYS = {
    "period", "date", "filed_date", "fillingDate", "filingDate", "acceptedDate", "frequency",
    "symbol", "ticker", "cik", "reportedCurrency", "calendarYear", "link", "finalLink",
}


@dataclass
class SettledResult:
    value: Any = None
    exception: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.exception is None

    @property
    def error(self) -> Optional[str]:
        if self.exception is None:
            return None
        return f"{type(self.exception).__name__}: {self.exception}"


def gather_settled(tasks: Dict[str, Callable[[], Any]], *, max_workers: int = 4) -> Dict[str, SettledResult]:
    """Run independent fetches concurrently and capture each outcome.

    A failing task never cancels the others; its exception text is kept on
    the corresponding SettledResult.
    """
    results: Dict[str, SettledResult] = {}
    if not tasks:
        return results
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as pool:
        futures = {name: pool.submit(task) for name, task in tasks.items()}
        for name, future in futures.items():
            try:
                results[name] = SettledResult(value=future.result())
            except Exception as exc:  # pylint: disable=broad-except
                logger.debug("Series %s failed: %s", name, exc)
                results[name] = SettledResult(exception=exc)
    return results


class JsonBundleProvider:
    """Read one subject bundle per JSON file."""

    def __init__(self, *, max_workers: int = 4) -> None:
        self._max_workers = max_workers

    def load(self, path: Path) -> SubjectBundle:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise MissingSubjectDataError("Bundle must be a JSON object", {"path": str(path)})
        ticker = str(raw.get("ticker") or Path(path).stem).upper()
        return self.from_payload(ticker, raw)

    def from_payload(self, ticker: str, raw: Dict[str, Any]) -> SubjectBundle:
        frequency = str(raw.get("frequency") or "quarterly")
        tasks: Dict[str, Callable[[], Any]] = {
            "profile": lambda: _required_mapping(raw, "profile"),
            "quote": lambda: _parse_quote(_required_mapping(raw, "quote")),
            "income": lambda: _parse_statements(ticker, raw.get("income"), "IS", frequency),
            "balance": lambda: _parse_statements(ticker, raw.get("balance"), "BS", frequency),
            "cash_flow": lambda: _parse_statements(ticker, raw.get("cashFlow", raw.get("cash_flow")), "CF", frequency),
            "insider_trades": lambda: _parse_trades(raw.get("insiderTrades", raw.get("insider_trades"))),
            "qualitative": lambda: _parse_qualitative(raw.get("qualitative")),
        }
        settled = gather_settled(tasks, max_workers=self._max_workers)

        # Malformed statements are programming errors upstream, never degraded input.
        for name in ("income", "balance", "cash_flow"):
            if isinstance(settled[name].exception, MalformedStatementError):
                raise settled[name].exception

        errors = {name: result.error for name, result in settled.items() if not result.ok}
        for name in ("profile", "quote"):
            if not settled[name].ok:
                raise MissingSubjectDataError(
                    f"Required {name} data missing", {"ticker": ticker, "error": settled[name].error}
                )
        statements = {name: settled[name].value or [] for name in ("income", "balance", "cash_flow")}
        if not any(statements.values()):
            raise MissingSubjectDataError("No financial statements available", {"ticker": ticker})
        for name, series in statements.items():
            if not series and name not in errors:
                errors[name] = "empty series"

        profile: Dict[str, Any] = settled["profile"].value
        dataset = FinancialDataset(
            ticker=ticker,
            income_statements=statements["income"],
            balance_sheets=statements["balance"],
            cash_flows=statements["cash_flow"],
        )
        bundle = SubjectBundle(
            ticker=ticker,
            company_name=str(profile.get("companyName") or profile.get("company_name") or ticker),
            sector_tag=profile.get("sectorTag") or profile.get("sector_tag"),
            sector_text=str(profile.get("sector") or ""),
            industry_text=str(profile.get("industry") or ""),
            market=settled["quote"].value,
            dataset=dataset,
            insider_trades=settled["insider_trades"].value or [],
            qualitative=settled["qualitative"].value or QualitativeInputs(),
            profile=profile,
            fetch_errors=errors,
        )
        logger.debug("Loaded bundle %s (%s series failed)", ticker, len(errors))
        return bundle


def _required_mapping(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    if not isinstance(value, dict) or not value:
        raise MissingSubjectDataError(f"{key} missing or empty")
    return value


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def _optional_float(payload: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return float(value)
    return None


def _parse_quote(payload: Dict[str, Any]) -> MarketSnapshot:
    price = _optional_float(payload, "price")
    market_cap = _optional_float(payload, "marketCap", "market_cap")
    if price is None or market_cap is None:
        raise MissingSubjectDataError("Quote requires price and market cap")
    return MarketSnapshot(
        price=price,
        market_cap=market_cap,
        trailing_pe=_optional_float(payload, "trailingPE", "pe", "trailing_pe"),
        forward_pe=_optional_float(payload, "forwardPE", "forward_pe"),
        price_to_sales=_optional_float(payload, "priceToSales", "price_to_sales"),
        enterprise_value=_optional_float(payload, "enterpriseValue", "enterprise_value"),
        short_interest=_optional_float(payload, "shortInterest", "short_interest"),
    )


def _parse_statements(ticker: str, rows: Any, statement_type: str, frequency: str) -> List[StatementPeriod]:
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise MalformedStatementError("Statement series must be a list", {"ticker": ticker, "type": statement_type})
    statements: List[StatementPeriod] = []
    for row in rows:
        if not isinstance(row, dict):
            raise MalformedStatementError("Statement row must be an object", {"ticker": ticker, "type": statement_type})
        period = _parse_date(row.get("period") or row.get("date"))
        if period is None:
            raise MalformedStatementError("Statement row missing period", {"ticker": ticker, "type": statement_type})
        metrics = {
            FIELD_ALIASES.get(key, key): value
            for key, value in row.items()
            if key not in _META_KEYS
        }
        statements.append(
            StatementPeriod(
                ticker=ticker,
                period=period,
                statement_type=statement_type,
                metrics=metrics,
                frequency=str(row.get("frequency") or frequency),
                filed_date=_parse_date(row.get("filed_date") or row.get("fillingDate") or row.get("filingDate")),
            )
        )
    return statements


def _parse_trades(rows: Any) -> List[InsiderTrade]:
    trades: List[InsiderTrade] = []
    for row in rows or []:
        trade_date = _parse_date(row.get("date") or row.get("transactionDate"))
        if trade_date is None:
            continue
        trades.append(
            InsiderTrade(
                insider=str(row.get("insider") or row.get("name") or "unknown"),
                transaction_date=trade_date,
                transaction_type=str(row.get("type") or row.get("transactionType") or ""),
                shares=float(row.get("shares") or 0.0),
                price=float(row.get("price") or 0.0),
            )
        )
    return trades


def _parse_qualitative(payload: Any) -> QualitativeInputs:
    if not payload:
        return QualitativeInputs()
    kwargs = {QUALITATIVE_ALIASES.get(key, key): value for key, value in payload.items()}
    known = set(QualitativeInputs.__dataclass_fields__)
    return QualitativeInputs(**{key: value for key, value in kwargs.items() if key in known})
