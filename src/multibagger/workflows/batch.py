"""Bounded cross-subject scoring."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from multibagger.domain.models.report import AnalysisReport
from multibagger.domain.models.subject import SubjectBundle
from multibagger.workflows.graph import ScoringWorkflow

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    reports: List[AnalysisReport] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class BatchRunner:
    """Score many subjects with at most ``max_concurrency`` in flight.

    A failure (fatal input error or loader error) is recorded against its
    subject and never aborts the others.
    """

    def __init__(
        self,
        workflow: ScoringWorkflow,
        loader: Callable[[Path], SubjectBundle],
        *,
        max_concurrency: int = 3,
    ) -> None:
        self._workflow = workflow
        self._loader = loader
        self._max_concurrency = max(1, max_concurrency)

    def run(self, sources: Sequence[Path], as_of: Optional[date] = None) -> BatchResult:
        as_of = as_of or date.today()
        result = BatchResult()
        if not sources:
            return result

        with ThreadPoolExecutor(max_workers=self._max_concurrency) as pool:
            futures = [(str(source), pool.submit(self._score_one, source, as_of)) for source in sources]
            for name, future in futures:
                try:
                    result.reports.append(future.result())
                except Exception as exc:  # pylint: disable=broad-except
                    logger.warning("Scoring %s failed: %s", name, exc)
                    result.failures[name] = str(exc)

        result.reports.sort(key=lambda report: (-report.final_score, report.ticker))
        return result

    def _score_one(self, source: Path, as_of: date) -> AnalysisReport:
        bundle = self._loader(source)
        return self._workflow.score(bundle, as_of)
