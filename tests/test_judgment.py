import pytest

from multibagger.domain.models.scoring import JudgmentStatus, PillarScore, QualitativeVerdict, RiskAssessment
from multibagger.domain.services.composite import CompositeAggregator, tier_for
from multibagger.domain.services.judgment import (
    JudgmentIntegrator,
    apply_profitability_cap,
    determine_verdict,
    position_size,
)
from multibagger.domain.services.pillars import ALIGNMENT, CATALYSTS, GROWTH, QUALITY, VALUATION

from factories import make_metrics


def _penalized_risk(*penalties):
    risk = RiskAssessment()
    for idx, penalty in enumerate(penalties):
        risk.warn(f"Check {idx}", f"warning {idx}", penalty)
    return risk


def test_strong_pass_adds_at_most_five_points():
    verdict = QualitativeVerdict(JudgmentStatus.STRONG_PASS, "Tier 1", 100.0)
    outcome = JudgmentIntegrator().integrate(40.0, RiskAssessment(), verdict)
    assert outcome.ai_adjustment == pytest.approx(5.0)
    assert outcome.raw_score == pytest.approx(45.0)
    assert tier_for(outcome.raw_score, False) == "Not Interesting"


def test_soft_pass_boost_scales_with_conviction():
    verdict = QualitativeVerdict(JudgmentStatus.SOFT_PASS, "Tier 2", 50.0)
    outcome = JudgmentIntegrator().integrate(60.0, RiskAssessment(), verdict)
    assert outcome.ai_adjustment == pytest.approx(1.5)


def test_neutral_verdict_applies_monitor_penalty():
    outcome = JudgmentIntegrator().integrate(60.0, RiskAssessment(), QualitativeVerdict.neutral("offline"))
    assert outcome.ai_adjustment == pytest.approx(-2.0)
    assert outcome.raw_score == pytest.approx(58.0)
    assert "offline" in outcome.adjustments[0].detail


def test_combined_penalties_are_floored_at_minus_twenty():
    risk = _penalized_risk(-10, -10, -5)
    verdict = QualitativeVerdict(JudgmentStatus.AVOID, "Not Interesting", 90.0)
    outcome = JudgmentIntegrator().integrate(50.0, risk, verdict)

    assert outcome.ai_adjustment == pytest.approx(-5.0)
    assert outcome.penalty_refund == pytest.approx(10.0)
    assert risk.risk_penalty + outcome.ai_adjustment + outcome.penalty_refund == pytest.approx(-20.0)
    assert outcome.raw_score == pytest.approx(50.0 - 5.0 + 10.0)


def test_disqualified_subject_gets_no_refund():
    risk = _penalized_risk(-10, -10, -5)
    risk.hard_kill("Dilution", "massive dilution", -10)
    outcome = JudgmentIntegrator().integrate(0.0, risk, QualitativeVerdict.neutral())
    assert outcome.penalty_refund == 0.0


def test_unprofitable_subject_is_capped_below_tier_one_strong_buy():
    score, adjustments = apply_profitability_cap(95.0, make_metrics(return_on_equity=-0.10))
    assert score == 89.0
    assert adjustments[0].magnitude == pytest.approx(-6.0)

    untouched, none = apply_profitability_cap(95.0, make_metrics())
    assert untouched == 95.0
    assert none == []

    below_cap, _ = apply_profitability_cap(70.0, make_metrics(fcf_margin=-0.05))
    assert below_cap == 70.0


def test_verdict_and_position_follow_tier():
    assert determine_verdict(85.0, False, "Tier 1") == "Strong Buy"
    assert determine_verdict(70.0, False, "Tier 2") == "Buy"
    assert determine_verdict(60.0, False, "Tier 3") == "Watch"
    assert determine_verdict(30.0, False, "Not Interesting") == "Pass"
    assert determine_verdict(0.0, True, "Disqualified") == "Disqualified"

    assert position_size("Tier 1", False) == "5-8%"
    assert position_size("Not Interesting", False) == "0%"
    assert position_size("Tier 1", True) == "0% (Disqualified)"


def test_conviction_is_clamped_to_valid_range():
    assert QualitativeVerdict(JudgmentStatus.SOFT_PASS, conviction=150.0).conviction == 100.0
    assert QualitativeVerdict(JudgmentStatus.SOFT_PASS, conviction=-3.0).conviction == 0.0
    assert QualitativeVerdict(JudgmentStatus.SOFT_PASS, conviction=float("nan")).conviction == 0.0


def test_penalty_floor_only_refunds_penalty_the_clamp_applied():
    pillars = [
        PillarScore(GROWTH, 3, 25),
        PillarScore(QUALITY, 4, 30),
        PillarScore(ALIGNMENT, 3, 15),
        PillarScore(VALUATION, 3, 20),
        PillarScore(CATALYSTS, 2, 15),
    ]
    risk = _penalized_risk(-10, -10, -10)
    composite = CompositeAggregator().aggregate(pillars, make_metrics(), risk)
    assert composite.bonus is None
    assert composite.pre_penalty_score == pytest.approx(15.0)
    assert composite.total_score == 0.0

    outcome = JudgmentIntegrator().integrate(
        composite.total_score,
        risk,
        QualitativeVerdict.neutral(),
        pre_penalty_score=composite.pre_penalty_score,
    )
    assert outcome.penalty_refund == 0.0
    assert outcome.raw_score == pytest.approx(-2.0)
    assert outcome.raw_score <= max(0.0, composite.pre_penalty_score - 20.0)


def test_penalty_floor_refunds_in_full_when_nothing_was_clamped():
    risk = _penalized_risk(-10, -10, -5)
    verdict = QualitativeVerdict(JudgmentStatus.AVOID, "Not Interesting", 90.0)
    outcome = JudgmentIntegrator().integrate(50.0, risk, verdict, pre_penalty_score=75.0)
    assert outcome.penalty_refund == pytest.approx(10.0)
    assert outcome.raw_score == pytest.approx(55.0)
