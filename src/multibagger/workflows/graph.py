"""LangGraph workflow assembly for the single-subject scoring pipeline."""
from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from langgraph.graph import END, StateGraph

from config import Config
from multibagger.domain.models.report import AnalysisReport
from multibagger.domain.models.subject import SubjectBundle
from multibagger.domain.services.composite import CompositeAggregator
from multibagger.domain.services.judgment import JudgmentIntegrator
from multibagger.domain.services.metrics import MetricsExtractor
from multibagger.domain.services.pillars import PillarScorer
from multibagger.domain.services.risk import RiskEngine
from multibagger.infrastructure.llm.gemini_client import GeminiClient
from multibagger.infrastructure.llm.judge import QualitativeJudge
from multibagger.infrastructure.llm.rate_limiter import RequestSpacingLimiter
from multibagger.infrastructure.sector import SectorMapper
from multibagger.workflows import context as context_module
from multibagger.workflows.blueprint import StageSpec, build_default_stages
from multibagger.workflows.state import ScoringState

logger = logging.getLogger(__name__)


class ScoringWorkflow:
    """Compose LangGraph nodes into a runnable scoring workflow."""

    def __init__(
        self,
        config: Config,
        *,
        judge: Optional[QualitativeJudge] = None,
        limiter: Optional[RequestSpacingLimiter] = None,
    ) -> None:
        self._config = config
        self._context = self._build_context(judge, limiter)
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @property
    def context(self) -> context_module.WorkflowContext:
        return self._context

    def _build_context(
        self,
        judge: Optional[QualitativeJudge],
        limiter: Optional[RequestSpacingLimiter],
    ) -> context_module.WorkflowContext:
        gemini_client: Optional[GeminiClient] = None
        if judge is None:
            try:
                gemini_client = GeminiClient(
                    api_key=self._config.poe_api_key or "",
                    model=self._config.judgment_model,
                    limiter=limiter or RequestSpacingLimiter(self._config.judgment_min_interval_seconds),
                    proxy_url=self._config.proxy_url,
                    max_retries=self._config.judgment_max_retries,
                    backoff_seconds=self._config.judgment_backoff_seconds,
                )
            except ValueError:
                logger.info("POE_API_KEY not set; qualitative judgment uses the neutral verdict")
                gemini_client = None
            judge = QualitativeJudge(gemini_client)

        return context_module.WorkflowContext(
            config=self._config,
            sector_mapper=SectorMapper(),
            extractor=MetricsExtractor(),
            risk_engine=RiskEngine(),
            pillar_scorer=PillarScorer(),
            aggregator=CompositeAggregator(),
            integrator=JudgmentIntegrator(),
            judge=judge,
            gemini=gemini_client,
        )

    def _build_graph(self):
        builder = StateGraph(dict)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage.handler))

        # Stages run strictly in declared order; each reads only upstream keys.
        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, func: Callable[[ScoringState, context_module.WorkflowContext], ScoringState]):
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            return func(state, self._context)

        return wrapper

    def run(self, bundle: SubjectBundle, as_of: Optional[date] = None) -> ScoringState:
        """Execute the workflow for a single subject.

        Fatal input errors (invalid sector, malformed statements) propagate.
        """
        initial_state: ScoringState = {
            "ticker": bundle.ticker,
            "as_of": as_of or date.today(),
            "bundle": bundle,
            "logs": [],
            "errors": [],
            "data_quality_warnings": [],
            "stage_order": [stage.key for stage in self._stages],
        }
        result: ScoringState = self._graph.invoke(initial_state)
        return result  # type: ignore[return-value]

    def score(self, bundle: SubjectBundle, as_of: Optional[date] = None) -> AnalysisReport:
        return self.run(bundle, as_of)["report"]

    def persist_report(self, report: AnalysisReport, path: Path) -> None:
        """Serialize the report to JSON for dashboards or auditing."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
        path.write_text(payload, encoding="utf-8")

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return [f"{stage.key}: {stage.description}" for stage in self._stages]

    def close(self) -> None:
        self._context.close()
