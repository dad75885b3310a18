"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from datetime import date
from typing import List, Optional, TypedDict

from multibagger.domain.models.financials import ExtractedMetrics
from multibagger.domain.models.report import AnalysisReport
from multibagger.domain.models.scoring import (
    CompositeScore,
    JudgmentOutcome,
    PillarScore,
    QualitativeVerdict,
    RiskAssessment,
    Sector,
)
from multibagger.domain.models.subject import SubjectBundle


class ScoringState(TypedDict, total=False):
    ticker: str
    as_of: date
    bundle: SubjectBundle
    sector: Sector

    insider_activity: str
    founder_led: bool
    founder_confidence: int
    short_interest: Optional[float]
    short_interest_source: str

    metrics: ExtractedMetrics
    risk: RiskAssessment
    pillars: List[PillarScore]
    composite: CompositeScore
    verdict: QualitativeVerdict
    judgment: JudgmentOutcome
    report: AnalysisReport

    data_quality_warnings: List[str]
    stage_order: List[str]

    logs: List[str]
    errors: List[str]
