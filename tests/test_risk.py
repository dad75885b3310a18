import math
from datetime import date

import pytest

from multibagger.domain.models.financials import FinancialDataset, StatementPeriod
from multibagger.domain.models.scoring import QualityOfEarnings, RiskAssessment, Sector
from multibagger.domain.services.metrics import MetricsExtractor
from multibagger.domain.services.risk import (
    RiskEngine,
    altman_z_score,
    beneish_m_score,
    cash_runway_quarters,
)

from factories import fraud_dataset, growing_quarterly_dataset, quarter_end


def _assess(dataset, sector="SaaS", **kwargs):
    metrics = MetricsExtractor().extract(dataset, sector)
    kwargs.setdefault("market_cap", 5e9)
    return RiskEngine().assess(dataset, metrics, **kwargs)


def test_beneish_flags_receivables_and_accrual_pressure():
    dataset = fraud_dataset()
    breakdown = beneish_m_score(
        dataset.income_statements[0],
        dataset.income_statements[1],
        dataset.balance_sheets[0],
        dataset.balance_sheets[1],
        dataset.cash_flows[0],
    )
    assert breakdown.dsri == pytest.approx(4 / 3)
    assert breakdown.gmi == pytest.approx(0.4 / 0.15)
    assert breakdown.defaulted == 0
    assert breakdown.m_score == pytest.approx(-0.1685, abs=1e-3)
    assert breakdown.m_score > -0.5


def test_extreme_m_score_disqualifies_established_company():
    risk = _assess(fraud_dataset())
    assert risk.disqualified
    assert any("Beneish" in reason for reason in risk.disqualify_reasons)
    assert risk.quality_of_earnings is QualityOfEarnings.FAIL
    assert risk.risk_penalty == pytest.approx(-15)


def test_extreme_m_score_only_warns_for_early_stage_company():
    risk = _assess(fraud_dataset(), ttm_revenue=10e6)
    assert not risk.disqualified
    assert risk.risk_penalty <= -10
    assert any("early stage" in warning for warning in risk.warnings)


def test_altman_non_manufacturing_model_for_software():
    dataset = fraud_dataset()
    z, model = altman_z_score(dataset.balance_sheets[0], 30e6, 1200e6, 5e9, Sector.SAAS)
    assert model == "non-manufacturing"
    assert z == pytest.approx(4.473, abs=1e-3)


def test_self_funding_company_has_infinite_runway():
    dataset = growing_quarterly_dataset()
    runway = cash_runway_quarters(dataset.balance_sheets[0], dataset.cash_flows)
    assert math.isinf(runway)

    risk = _assess(dataset)
    assert not risk.disqualified
    assert not any("runway" in warning.lower() for warning in risk.warnings)


def test_burning_company_with_losses_is_disqualified_on_runway():
    incomes, balances, flows = [], [], []
    for i in range(4):
        period = quarter_end(i)
        incomes.append(StatementPeriod("BURN", period, "IS", {"revenue": 5e6, "net_income": -20e6}))
        balances.append(StatementPeriod("BURN", period, "BS", {"cash_and_equivalents": 10e6, "total_assets": 50e6}))
        flows.append(StatementPeriod("BURN", period, "CF", {"operating_cash_flow": -18e6, "capital_expenditures": -2e6}))
    dataset = FinancialDataset("BURN", incomes, balances, flows)

    risk = _assess(dataset, market_cap=100e6)
    assert risk.cash_runway_quarters == pytest.approx(0.5)
    assert risk.disqualified
    assert any("insolvency" in reason for reason in risk.disqualify_reasons)


def test_dilution_penalty_never_shrinks_as_dilution_grows():
    penalties = []
    for rate in (0.0, 0.05, 0.15, 0.5, 4.0):
        risk = RiskAssessment()
        RiskEngine._evaluate_dilution(risk, rate)
        penalties.append(risk.risk_penalty)
    assert penalties == sorted(penalties, reverse=True)
    assert penalties[0] == 0
    assert penalties[-1] <= penalties[-2]

    killed = RiskAssessment()
    RiskEngine._evaluate_dilution(killed, 4.0)
    assert killed.disqualified


def test_missing_prior_period_warns_without_disqualifying():
    dataset = FinancialDataset(
        "THIN",
        income_statements=[StatementPeriod("THIN", date(2024, 9, 30), "IS", {"revenue": 10e6, "net_income": 1e6})],
    )
    risk = _assess(dataset, market_cap=50e6)
    assert not risk.disqualified
    assert math.isnan(risk.beneish_m_score)
    assert "Beneish M-Score: insufficient data for fraud check" in risk.warnings
    assert risk.risk_penalty == 0


def test_extreme_short_interest_is_penalized():
    risk = _assess(growing_quarterly_dataset(), short_interest=0.30)
    assert risk.short_interest == pytest.approx(0.30)
    assert risk.risk_penalty == pytest.approx(-5)
    assert not risk.disqualified


def _distressed_dataset():
    period = date(2024, 9, 30)
    return FinancialDataset(
        "DIST",
        income_statements=[
            StatementPeriod("DIST", period, "IS", {"revenue": 20e6, "operating_income": -30e6, "net_income": -30e6}),
        ],
        balance_sheets=[
            StatementPeriod("DIST", period, "BS", {
                "total_assets": 100e6, "current_assets": 20e6, "current_liabilities": 60e6,
                "retained_earnings": -200e6, "total_liabilities": 90e6, "total_equity": 10e6,
            }),
        ],
    )


def test_negative_altman_z_disqualifies_small_cap():
    risk = _assess(_distressed_dataset(), market_cap=500e6)
    assert risk.altman_model == "non-manufacturing"
    assert risk.altman_z_score < 0
    assert risk.disqualified
    assert any("severe distress" in reason for reason in risk.disqualify_reasons)
    assert risk.risk_penalty == pytest.approx(-5)


def test_negative_altman_z_only_warns_for_large_cap():
    risk = _assess(_distressed_dataset(), market_cap=25e9)
    assert risk.altman_z_score < 0
    assert not risk.disqualified
    assert any("distress zone" in warning for warning in risk.warnings)
    assert risk.risk_penalty == pytest.approx(-5)


@pytest.mark.parametrize("sector", ["Industrial", "Hardware", "SpaceTech", "Consumer"])
def test_asset_heavy_sectors_use_manufacturing_altman(sector):
    risk = _assess(_distressed_dataset(), sector, market_cap=500e6)
    assert risk.altman_model == "manufacturing"


@pytest.mark.parametrize("sector", ["SaaS", "Biotech", "FinTech"])
def test_asset_light_sectors_use_non_manufacturing_altman(sector):
    risk = _assess(_distressed_dataset(), sector, market_cap=500e6)
    assert risk.altman_model == "non-manufacturing"


def _accrual_heavy_dataset():
    """Flat annual periods; only total accruals of 0.18 move the M-Score (about -1.64)."""
    current, prior = date(2024, 12, 31), date(2023, 12, 31)

    def annual(period, statement_type, values):
        return StatementPeriod("ACCR", period, statement_type, values, frequency="annual")

    return FinancialDataset(
        "ACCR",
        income_statements=[
            annual(current, "IS", {"revenue": 1000e6, "operating_income": 150e6, "net_income": 200e6}),
            annual(prior, "IS", {"revenue": 1000e6, "operating_income": 150e6, "net_income": 200e6}),
        ],
        balance_sheets=[
            annual(current, "BS", {"total_assets": 1000e6, "retained_earnings": 600e6}),
            annual(prior, "BS", {"total_assets": 1000e6, "retained_earnings": 600e6}),
        ],
        cash_flows=[
            annual(current, "CF", {"operating_cash_flow": 20e6}),
            annual(prior, "CF", {"operating_cash_flow": 20e6}),
        ],
    )


def test_beneish_warning_zone_is_sector_adjusted():
    saas = _assess(_accrual_heavy_dataset(), "SaaS")
    assert saas.beneish_m_score == pytest.approx(-2.48 + 4.679 * 0.18)
    assert not any("possible manipulation" in warning for warning in saas.warnings)
    assert saas.risk_penalty == 0

    industrial = _assess(_accrual_heavy_dataset(), "Industrial")
    assert any("> -1.78 (possible manipulation)" in warning for warning in industrial.warnings)
    assert industrial.risk_penalty == pytest.approx(-5)
    assert not industrial.disqualified


def test_repeated_paper_tiger_quarters_warn_without_penalty():
    dataset = growing_quarterly_dataset(8)
    flows = [
        StatementPeriod("GROW", stmt.period, "CF", {"operating_cash_flow": -1e6, "capital_expenditures": -1e6})
        if idx >= 4
        else stmt
        for idx, stmt in enumerate(dataset.cash_flows)
    ]
    dataset = FinancialDataset("GROW", dataset.income_statements, dataset.balance_sheets, flows)

    risk = _assess(dataset)
    assert risk.quality_of_earnings is QualityOfEarnings.WARN
    assert any("4 recent periods" in warning for warning in risk.warnings)
    assert risk.risk_penalty == 0
    assert not risk.disqualified
