"""Scoring, risk and judgment models shared by the engine services."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from multibagger.domain.errors import InvalidSectorError


class Sector(str, Enum):
    SAAS = "SaaS"
    BIOTECH = "Biotech"
    SPACETECH = "SpaceTech"
    QUANTUM = "Quantum"
    HARDWARE = "Hardware"
    FINTECH = "FinTech"
    CONSUMER = "Consumer"
    INDUSTRIAL = "Industrial"
    OTHER = "Other"

    @classmethod
    def parse(cls, tag: object) -> "Sector":
        """Accept a closed-set tag (case-insensitive); anything else is fatal."""
        if isinstance(tag, Sector):
            return tag
        if isinstance(tag, str):
            wanted = tag.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        raise InvalidSectorError("Unsupported sector tag", {"sector": repr(tag)})


class AdjustmentKind(str, Enum):
    BONUS = "bonus"
    PENALTY = "penalty"
    WARNING = "warning"
    HARD_KILL = "hard_kill"


@dataclass(frozen=True)
class ScoreAdjustment:
    """Tagged bonus/penalty/warning entry in the report trail."""

    kind: AdjustmentKind
    name: str
    magnitude: float
    detail: str

    def describe(self) -> str:
        if self.kind in (AdjustmentKind.WARNING, AdjustmentKind.HARD_KILL) and self.magnitude == 0:
            return f"{self.name}: {self.detail}"
        return f"{self.name} ({self.magnitude:+g}): {self.detail}"


class QualityOfEarnings(str, Enum):
    PASS = "Pass"
    WARN = "Warn"
    FAIL = "Fail"
    UNAVAILABLE = "Unavailable"


@dataclass
class RiskAssessment:
    """Risk Engine output; hard kills and soft warnings are kept apart."""

    beneish_m_score: float = float("nan")
    altman_z_score: float = float("nan")
    altman_model: str = "unavailable"
    dilution_rate: float = float("nan")
    cash_runway_quarters: float = float("nan")
    quality_of_earnings: QualityOfEarnings = QualityOfEarnings.UNAVAILABLE
    earnings_conversion: float = float("nan")
    short_interest: float = float("nan")
    disqualify_reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    adjustments: List[ScoreAdjustment] = field(default_factory=list)
    beneish_defaulted_indices: int = 0

    @property
    def disqualified(self) -> bool:
        return len(self.disqualify_reasons) > 0

    @property
    def risk_penalty(self) -> float:
        return float(sum(
            adj.magnitude for adj in self.adjustments if adj.kind is AdjustmentKind.PENALTY
        ))

    def hard_kill(self, name: str, detail: str, penalty: float = 0.0) -> None:
        """Disqualify; an optional penalty still accrues to risk_penalty."""
        self.disqualify_reasons.append(detail)
        self.adjustments.append(ScoreAdjustment(AdjustmentKind.HARD_KILL, name, 0.0, detail))
        if penalty < 0:
            self.adjustments.append(ScoreAdjustment(AdjustmentKind.PENALTY, name, float(penalty), detail))

    def warn(self, name: str, detail: str, penalty: float = 0.0) -> None:
        self.warnings.append(detail)
        if penalty < 0:
            self.adjustments.append(ScoreAdjustment(AdjustmentKind.PENALTY, name, float(penalty), detail))
        else:
            self.adjustments.append(ScoreAdjustment(AdjustmentKind.WARNING, name, 0.0, detail))


@dataclass
class PillarScore:
    name: str
    score: float
    max_score: float
    details: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.score < 0 or self.score > self.max_score:
            raise ValueError(f"Pillar {self.name} score {self.score} outside [0, {self.max_score}]")


@dataclass
class CompositeScore:
    pillars: List[PillarScore]
    pillar_total: float
    bonus: Optional[ScoreAdjustment]
    matched_bonuses: List[str]
    risk_penalty: float
    total_score: float
    tier: str
    # Clamped pillars plus bonus, before the risk penalty.
    pre_penalty_score: float = 0.0

    def pillar(self, name: str) -> PillarScore:
        for item in self.pillars:
            if item.name == name:
                return item
        raise KeyError(name)


@dataclass(frozen=True)
class QualitativeInputs:
    """Structured qualitative facts supplied by research collaborators.

    Ownership and short-interest values are fractions; ``None`` means unavailable.
    """

    tam_penetration: Optional[str] = None  # "<1%", "1-5%", "5-10%", ">10%"
    revenue_type: Optional[str] = None
    net_dollar_retention: Optional[float] = None
    founder_led: Optional[bool] = None
    insider_ownership: Optional[float] = None
    insider_ownership_source: str = "unavailable"
    institutional_ownership: Optional[float] = None
    institutional_ownership_source: str = "unavailable"
    short_interest: Optional[float] = None
    short_interest_source: str = "unavailable"
    catalyst_density: Optional[str] = None  # "High", "Medium", "Low"
    asymmetry: Optional[str] = None
    pricing_power: Optional[str] = None  # "Strong", "Neutral", "Weak"
    ceo_name: Optional[str] = None
    company_name: Optional[str] = None
    description: Optional[str] = None
    company_age_years: Optional[float] = None


class JudgmentStatus(str, Enum):
    STRONG_PASS = "STRONG_PASS"
    SOFT_PASS = "SOFT_PASS"
    MONITOR_ONLY = "MONITOR_ONLY"
    AVOID = "AVOID"

    @classmethod
    def coerce(cls, value: object) -> "JudgmentStatus":
        text = str(value or "").strip().upper().replace(" ", "_")
        for member in cls:
            if member.value == text:
                return member
        return cls.MONITOR_ONLY


@dataclass(frozen=True)
class QualitativeVerdict:
    """External judgment triple; untrusted, bounded-influence input."""

    status: JudgmentStatus = JudgmentStatus.MONITOR_ONLY
    tier: str = "Not Interesting"
    conviction: float = 0.0
    thesis: str = ""
    error: Optional[str] = None

    def __post_init__(self) -> None:
        conviction = self.conviction if math.isfinite(self.conviction) else 0.0
        object.__setattr__(self, "conviction", min(100.0, max(0.0, float(conviction))))

    @classmethod
    def neutral(cls, error: Optional[str] = None) -> "QualitativeVerdict":
        return cls(JudgmentStatus.MONITOR_ONLY, "Not Interesting", 0.0, "", error)


@dataclass
class JudgmentOutcome:
    verdict: QualitativeVerdict
    ai_adjustment: float
    penalty_refund: float
    raw_score: float
    adjustments: List[ScoreAdjustment] = field(default_factory=list)


@dataclass
class DataQuality:
    insider_ownership_source: str = "unavailable"
    institutional_ownership_source: str = "unavailable"
    short_interest_source: str = "unavailable"
    beneish_reliability: str = "unavailable"
    overall_confidence: str = "low"
    warnings: List[str] = field(default_factory=list)
