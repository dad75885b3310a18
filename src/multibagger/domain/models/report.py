"""Final analysis artifact handed to presentation and CLI collaborators."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List

from multibagger.domain.models.financials import ExtractedMetrics
from multibagger.domain.models.scoring import (
    CompositeScore,
    DataQuality,
    QualitativeVerdict,
    RiskAssessment,
    ScoreAdjustment,
)


@dataclass(frozen=True)
class AnalysisReport:
    ticker: str
    sector: str
    as_of: date
    metrics: ExtractedMetrics
    risk: RiskAssessment
    composite: CompositeScore
    verdict_input: QualitativeVerdict
    quant_score: float
    raw_score: float
    final_score: float
    tier: str
    verdict: str
    position_size: str
    data_quality: DataQuality
    trail: List[ScoreAdjustment] = field(default_factory=list)
    breakdown: List[str] = field(default_factory=list)

    @property
    def disqualified(self) -> bool:
        return self.risk.disqualified

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe view: NaN -> None, infinite runway -> "infinite"."""
        payload = {
            "ticker": self.ticker,
            "sector": self.sector,
            "as_of": self.as_of,
            "quant_score": self.quant_score,
            "raw_score": self.raw_score,
            "final_score": self.final_score,
            "tier": self.tier,
            "verdict": self.verdict,
            "position_size": self.position_size,
            "disqualified": self.disqualified,
            "risk": {
                **asdict(self.risk),
                "disqualified": self.risk.disqualified,
                "risk_penalty": self.risk.risk_penalty,
            },
            "pillars": [asdict(p) for p in self.composite.pillars],
            "bonus": asdict(self.composite.bonus) if self.composite.bonus else None,
            "matched_bonuses": list(self.composite.matched_bonuses),
            "qualitative_verdict": asdict(self.verdict_input),
            "metrics": asdict(self.metrics),
            "data_quality": asdict(self.data_quality),
            "trail": [asdict(item) for item in self.trail],
            "breakdown": list(self.breakdown),
        }
        return _json_safe(payload)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if math.isinf(value):
            return "infinite" if value > 0 else "-infinite"
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if is_dataclass(value):
        return _json_safe(asdict(value))
    return value
