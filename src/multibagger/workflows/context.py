"""Workflow dependency container."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import Config
from multibagger.domain.services.composite import CompositeAggregator
from multibagger.domain.services.judgment import JudgmentIntegrator
from multibagger.domain.services.metrics import MetricsExtractor
from multibagger.domain.services.pillars import PillarScorer
from multibagger.domain.services.risk import RiskEngine
from multibagger.infrastructure.llm.gemini_client import GeminiClient
from multibagger.infrastructure.llm.judge import QualitativeJudge
from multibagger.infrastructure.sector import SectorMapper


@dataclass
class WorkflowContext:
    """Holds the scoring services shared by LangGraph nodes.

    Everything here is stateless apart from the judge's client, so one
    context can serve concurrent subjects.
    """

    config: Config
    sector_mapper: SectorMapper
    extractor: MetricsExtractor
    risk_engine: RiskEngine
    pillar_scorer: PillarScorer
    aggregator: CompositeAggregator
    integrator: JudgmentIntegrator
    judge: QualitativeJudge
    gemini: Optional[GeminiClient] = None

    def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        if self.gemini is not None:
            self.gemini.close()
