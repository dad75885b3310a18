"""Centralized scoring and risk thresholds.

Every constant used by the risk engine, pillar scorer, composite aggregator and
judgment integrator lives here so tuning never requires touching the logic.
Rates, margins and returns are fractions (0.30 == 30%).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class SectorThresholds:
    gross_margin_top: float
    gross_margin_mid: float
    roic_top: float
    roic_mid: float


@dataclass(frozen=True)
class GrowthTiers:
    elite: float
    high: float
    moderate: float


SECTOR_THRESHOLDS: Dict[str, SectorThresholds] = {
    "SaaS": SectorThresholds(0.75, 0.60, 0.20, 0.12),
    "Biotech": SectorThresholds(0.85, 0.70, 0.15, 0.08),
    "SpaceTech": SectorThresholds(0.40, 0.25, 0.15, 0.08),
    "Quantum": SectorThresholds(0.50, 0.30, 0.15, 0.08),
    "Hardware": SectorThresholds(0.45, 0.30, 0.15, 0.08),
    "FinTech": SectorThresholds(0.60, 0.45, 0.18, 0.10),
    "Consumer": SectorThresholds(0.50, 0.35, 0.15, 0.08),
    "Industrial": SectorThresholds(0.35, 0.20, 0.12, 0.06),
    "Other": SectorThresholds(0.50, 0.30, 0.15, 0.08),
}

DEFAULT_GROWTH_TIERS = GrowthTiers(elite=0.30, high=0.20, moderate=0.15)

SECTOR_GROWTH_TIERS: Dict[str, GrowthTiers] = {
    "SaaS": GrowthTiers(0.35, 0.25, 0.15),
    "Biotech": GrowthTiers(0.40, 0.25, 0.15),
    "SpaceTech": GrowthTiers(0.40, 0.25, 0.15),
    "Quantum": GrowthTiers(0.40, 0.25, 0.15),
    "Industrial": GrowthTiers(0.20, 0.12, 0.08),
    "Consumer": GrowthTiers(0.20, 0.12, 0.08),
}

# Asset-heavy sectors scored with the five-ratio manufacturing Altman model.
MANUFACTURING_SECTORS = frozenset({"Industrial", "Hardware", "SpaceTech", "Consumer"})


class Growth:
    # (min quarters, window quarters, years, penalty)
    CAGR_WINDOWS: Tuple[Tuple[int, int, int, int], ...] = (
        (12, 12, 3, 0),
        (8, 8, 2, -2),
        (4, 4, 1, -4),
    )
    SHORT_HISTORY_PENALTY = -5
    CAGR_POINTS = (10, 7, 4)
    CAGR_MAX = 10
    ACCELERATION_BASE = 3
    ACCELERATION_STRONG = 7
    ACCELERATION_ABOVE_TREND = 5
    ACCELERATION_FACTOR = 1.2
    # Execution-risk-aware table: the 1-5% band is the sweet spot.
    TAM_POINTS: Dict[str, int] = {
        "1-5%": 8,
        "<1%": 5,
        "5-10%": 4,
        ">10%": 2,
    }
    TAM_UNKNOWN_POINTS = 4
    TAM_MAX = 8
    MAX_SCORE = 25


class Quality:
    GROSS_MARGIN_TOP_POINTS = 10
    GROSS_MARGIN_MID_POINTS = 5
    NDR_STRONG = 1.20
    NDR_POINTS = 5
    REVENUE_TYPE_POINTS: Dict[str, int] = {
        "Recurring": 5,
        "Consumable": 4,
        "Transactional": 3,
        "One-time": 1,
        "Project-based": 0,
    }
    STABILITY_MAX_STD = 0.02
    STABILITY_MIN_MARGIN = 0.40
    STABILITY_POINTS = 5
    MOAT_MAX = 10
    NET_DEBT_EBITDA_STRONG = 1.0
    NET_DEBT_EBITDA_WEAK = 4.0
    LEVERAGE_POINTS = 2
    RND_INTENSITY_HIGH = 0.15
    RND_POINTS = 2
    ROIC_TOP_POINTS = 5
    ROIC_MID_POINTS = 3
    TREND_TOLERANCE = 0.01
    MAX_SCORE = 30


class Alignment:
    FOUNDER_OWNERSHIP_POINTS = ((0.10, 7), (0.03, 5), (0.005, 2))
    MANAGER_OWNERSHIP_POINTS = ((0.10, 4), (0.03, 2), (0.005, 1))
    INSIDER_ACTIVITY_POINTS: Dict[str, int] = {
        "Cluster Buy": 5,
        "Buying": 4,
        "Neutral": 2,
        "Selling": 0,
    }
    INSTITUTIONAL_BAND = (0.30, 0.85)
    INSTITUTIONAL_IN_BAND_POINTS = 3
    INSTITUTIONAL_OUT_OF_BAND_POINTS = 1
    CLUSTER_WINDOW_DAYS = 14
    CLUSTER_MIN_INSIDERS = 2
    LOOKBACK_DAYS = 180
    SELLING_RATIO = 2.0
    FOUNDER_NAME_POINTS = 90
    FOUNDER_KEYWORD_POINTS = 80
    YOUNG_COMPANY_POINTS = 20
    YOUNG_COMPANY_YEARS = 8
    FOUNDER_CONFIDENCE_THRESHOLD = 50
    FOUNDER_KEYWORDS = ("founder", "co-founder", "founded by", "co-founded")
    MAX_SCORE = 15


class Valuation:
    # (upper bound, points); first matching bound wins.
    PEG_LADDER: Tuple[Tuple[float, int], ...] = (
        (0.3, 10),
        (0.6, 8),
        (1.0, 5),
        (1.5, 2),
    )
    LOW_GROWTH_FLOOR = 0.05
    LOW_GROWTH_CAP = 5
    PS_EXTREME = 30.0
    PE_EXPANSION_STRONG = 1.1
    PE_EXPANSION_FLAT = 1.0
    PE_STRONG_POINTS = 10
    PE_FLAT_POINTS = 6
    PE_NEUTRAL_POINTS = 4
    MAX_SCORE = 20


class Catalysts:
    DENSITY_POINTS: Dict[str, int] = {"High": 8, "Medium": 4}
    ASYMMETRY_POINTS: Dict[str, int] = {"High": 7, "Medium": 4}
    ASYMMETRY_MAX = 7
    PRICING_POWER_ADJUST = 2
    SQUEEZE_SHORT_INTEREST = 0.20
    SQUEEZE_POINTS = 2
    MAX_SCORE = 15


class Risk:
    BENEISH_EXTREME = -0.5
    BENEISH_DEFAULT_THRESHOLD = -1.78
    BENEISH_SECTOR_THRESHOLDS: Dict[str, float] = {
        "SaaS": -1.50,
        "Biotech": -1.40,
        "SpaceTech": -1.60,
    }
    EARLY_STAGE_REVENUE = 50_000_000.0
    BENEISH_EARLY_STAGE_PENALTY = -10
    BENEISH_WARNING_PENALTY = -5

    ALTMAN_KILL = 0.0
    ALTMAN_DISTRESS = 1.8
    ALTMAN_LARGE_CAP = 20_000_000_000.0
    ALTMAN_PENALTY = -5

    DILUTION_KILL = 3.00
    DILUTION_HIGH = 0.25
    DILUTION_MODERATE = 0.10
    DILUTION_HIGH_PENALTY = -10
    DILUTION_MODERATE_PENALTY = -5

    RUNWAY_KILL_QUARTERS = 1.0
    RUNWAY_MIN_QUARTERS = 4.0
    RUNWAY_BURNING_PENALTY = -10
    RUNWAY_LOW_PENALTY = -5
    RUNWAY_WINDOW = 4

    QOE_FAIL_PENALTY = -5
    QOE_LOOKBACK = 8
    QOE_WARN_COUNT = 4

    SHORT_INTEREST_EXTREME = 0.25
    SHORT_INTEREST_HIGH = 0.15
    SHORT_INTEREST_PENALTY = -5


@dataclass(frozen=True)
class BonusRule:
    name: str
    value: int
    description: str


class Bonus:
    QUALITY_COMPOUNDER = BonusRule("Quality Compounder", 15, "CAGR >= 25%, GM >= 60%, ROE >= 20%, FCF margin >= 15%")
    SECTOR_LEADER = BonusRule("Sector Leader", 10, "Growth pillar >= 20 and quality pillar >= 24")
    SAAS_COMPOUNDER = BonusRule("SaaS Compounder", 10, "SaaS with CAGR >= 30% and GM >= 70%")
    CAPITAL_EFFICIENCY = BonusRule("Capital Efficiency", 8, "ROE >= 35%, FCF margin >= 25%, growth >= 5%")
    QUALITY_GROWTH = BonusRule("Quality Growth", 5, "Profitable, high ROIC or GM, growth pillar >= 8")

    QC_MIN_CAGR = 0.25
    QC_MIN_GROSS_MARGIN = 0.60
    QC_MIN_ROE = 0.20
    QC_MIN_FCF_MARGIN = 0.15
    LEADER_MIN_GROWTH = 20
    LEADER_MIN_QUALITY = 24
    SAAS_MIN_CAGR = 0.30
    SAAS_MIN_GROSS_MARGIN = 0.70
    CE_MIN_ROE = 0.35
    CE_MIN_FCF_MARGIN = 0.25
    CE_MIN_GROWTH = 0.05
    QG_MIN_ROIC = 0.15
    QG_MIN_GROSS_MARGIN = 0.60
    QG_MIN_GROWTH_PILLAR = 8


class Judgment:
    STRONG_PASS_CAP = 5.0
    SOFT_PASS_CAP = 3.0
    MONITOR_PENALTY = -2.0
    AVOID_PENALTY = -5.0
    COMBINED_PENALTY_FLOOR = -20.0
    PROFITABILITY_CAP = 89.0


# Ordered ladder; first threshold met wins.
TIER_LADDER: Tuple[Tuple[float, str], ...] = (
    (80.0, "Tier 1"),
    (65.0, "Tier 2"),
    (55.0, "Tier 3"),
)
TIER_NOT_INTERESTING = "Not Interesting"
TIER_DISQUALIFIED = "Disqualified"
STRONG_BUY_SCORE = 80.0

POSITION_SIZES: Dict[str, str] = {
    "Tier 1": "5-8%",
    "Tier 2": "3-5%",
    "Tier 3": "1-3%",
}
