from multibagger.domain.models.financials import CagrResult, MarketSnapshot
from multibagger.domain.models.scoring import QualitativeInputs
from multibagger.domain.services.pillars import PillarScorer

from factories import make_metrics


def test_tam_penetration_prefers_early_but_proven_markets():
    scorer = PillarScorer()
    metrics = make_metrics()
    scores = {
        bucket: scorer.growth(metrics, QualitativeInputs(tam_penetration=bucket)).score
        for bucket in ("<1%", "1-5%", "5-10%", ">10%")
    }
    assert scores["1-5%"] > scores["<1%"] > scores["5-10%"] > scores[">10%"]
    unknown = scorer.growth(metrics, QualitativeInputs()).score
    assert unknown == scores["5-10%"]


def test_growth_score_never_drops_as_latest_growth_rises():
    scorer = PillarScorer()
    previous = -1.0
    for yoy in (-0.10, 0.10, 0.25, 0.40, 0.80):
        pillar = scorer.growth(make_metrics(latest_yoy_growth=yoy), QualitativeInputs())
        assert pillar.score >= previous
        previous = pillar.score


def test_partial_history_penalty_reduces_cagr_points():
    scorer = PillarScorer()
    full = make_metrics(revenue_cagr=CagrResult(0.40, 3.0, 12, False, 0), latest_yoy_growth=0.40)
    partial = make_metrics(revenue_cagr=CagrResult(0.40, 1.0, 4, True, -4), latest_yoy_growth=0.40)
    assert scorer.growth(full, QualitativeInputs()).score - scorer.growth(partial, QualitativeInputs()).score == 4


def test_quality_rewards_margin_moat_and_returns_within_cap():
    pillar = PillarScorer().quality(
        make_metrics(gross_margin=0.80, rd_intensity=0.20, return_on_invested_capital=0.25),
        QualitativeInputs(net_dollar_retention=1.30),
    )
    # 10 margin + 10 moat + 2 leverage + 2 R&D + 5 ROIC
    assert pillar.score == 29
    assert pillar.score <= pillar.max_score


def test_founder_ownership_ladder_has_strict_top_rung():
    scorer = PillarScorer()
    at_ten = scorer.alignment(QualitativeInputs(insider_ownership=0.10), insider_activity="Neutral", founder_led=True)
    above_ten = scorer.alignment(QualitativeInputs(insider_ownership=0.12), insider_activity="Neutral", founder_led=True)
    manager = scorer.alignment(QualitativeInputs(insider_ownership=0.12), insider_activity="Neutral", founder_led=False)
    assert at_ten.score == 5 + 2
    assert above_ten.score == 7 + 2
    assert manager.score == 4 + 2


def test_missing_institutional_ownership_scores_zero():
    scorer = PillarScorer()
    missing = scorer.alignment(QualitativeInputs(), insider_activity="Cluster Buy", founder_led=False)
    in_band = scorer.alignment(
        QualitativeInputs(institutional_ownership=0.50), insider_activity="Cluster Buy", founder_led=False
    )
    crowded = scorer.alignment(
        QualitativeInputs(institutional_ownership=0.95), insider_activity="Cluster Buy", founder_led=False
    )
    assert missing.score == 5
    assert any("unavailable" in line for line in missing.details)
    assert in_band.score == 8
    assert crowded.score == 6


def test_value_trap_guard_caps_cheap_slow_growers():
    metrics = make_metrics(
        latest_yoy_growth=0.03,
        fcf_margin=0.30,
        ttm_revenue=1e9,
    )
    pillar = PillarScorer().valuation(metrics, MarketSnapshot(price=10.0, market_cap=1e9))
    # PEG 1 / 33 would earn 10; capped to 5, plus neutral P/E 4
    assert pillar.score == 9


def test_extreme_price_to_sales_removes_valuation_credit():
    metrics = make_metrics(latest_yoy_growth=0.80, fcf_margin=0.20, ttm_revenue=100e6)
    market = MarketSnapshot(price=10.0, market_cap=4e9, trailing_pe=50.0, forward_pe=60.0)
    pillar = PillarScorer().valuation(metrics, market)
    assert pillar.score == 0


def test_catalysts_are_capped_at_fifteen():
    pillar = PillarScorer().catalysts(
        QualitativeInputs(catalyst_density="High", asymmetry="High", pricing_power="Strong"),
        short_interest=0.25,
    )
    assert pillar.score == 15


def test_weak_pricing_power_never_goes_negative():
    pillar = PillarScorer().catalysts(QualitativeInputs(asymmetry="Low", pricing_power="Weak"))
    assert pillar.score == 0
