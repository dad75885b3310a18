import math

import pytest

from multibagger.domain.services.metrics import MetricsExtractor, dynamic_cagr, sdiv, trailing_sum

from factories import fraud_dataset, growing_quarterly_dataset


def test_six_quarters_fall_back_to_one_year_partial_window():
    revenue = [100 * 1.05 ** (5 - i) for i in range(6)]
    result = dynamic_cagr(revenue)
    assert result.window_quarters == 4
    assert result.years_used == 1.0
    assert result.is_partial
    assert result.penalty == -4
    assert abs(result.cagr - (1.05 ** 3 - 1)) < 1e-9


def test_twelve_quarters_use_full_three_year_window():
    revenue = [100 * 1.05 ** (11 - i) for i in range(12)]
    result = dynamic_cagr(revenue)
    assert not result.is_partial
    assert result.penalty == 0
    assert abs(result.cagr - (1.05 ** 11) ** (1 / 3) + 1) < 1e-9


def test_annual_cagr_uses_year_count():
    result = dynamic_cagr([200.0, 150.0, 100.0], annual=True)
    assert result.years_used == 2.0
    assert result.penalty == -2
    assert abs(result.cagr - (2 ** 0.5 - 1)) < 1e-9


def test_non_positive_oldest_revenue_yields_zero_cagr():
    result = dynamic_cagr([120.0, 90.0, 40.0, 0.0])
    assert result.cagr == 0.0
    assert result.is_partial


def test_single_period_is_short_history():
    result = dynamic_cagr([10.0])
    assert result.cagr == 0.0
    assert result.penalty == -5


def test_trailing_sum_scales_short_quarterly_windows():
    dataset = growing_quarterly_dataset(quarters=2, quarterly_growth=0.0)
    ttm = trailing_sum(dataset.income_statements, "revenue", annual=False)
    assert ttm == pytest.approx(4 * 50e6)


def test_sdiv_rejects_missing_and_negative_denominators():
    assert math.isnan(sdiv(1.0, 0.0))
    assert math.isnan(sdiv(1.0, None))
    assert math.isnan(sdiv(1.0, -2.0, positive_only=True))
    assert sdiv(1.0, -2.0) == -0.5


def test_extractor_builds_ttm_view_for_quarterly_company():
    dataset = growing_quarterly_dataset()
    metrics = MetricsExtractor().extract(dataset, "saas")

    expected_ttm = sum(50e6 * 1.05 ** (11 - i) for i in range(4))
    assert metrics.sector == "SaaS"
    assert metrics.periods_available == 12
    assert metrics.ttm_revenue == pytest.approx(expected_ttm)
    assert metrics.gross_margin == pytest.approx(0.78)
    assert metrics.gross_margin_trend == "Stable"
    assert metrics.latest_yoy_growth == pytest.approx(1.05 ** 4 - 1)
    assert metrics.fcf_margin == pytest.approx(0.19)
    assert metrics.is_profitable
    assert math.isfinite(metrics.return_on_invested_capital)


def test_extractor_uses_latest_period_for_annual_series():
    metrics = MetricsExtractor().extract(fraud_dataset(), "SaaS")
    assert metrics.ttm_revenue == pytest.approx(1200e6)
    assert metrics.gross_margin == pytest.approx(0.15)
    assert metrics.gross_margin_trend == "Contracting"
    assert metrics.latest_yoy_growth == pytest.approx(0.2)
    assert metrics.revenue_cagr.penalty == -4
