"""Per-subject input bundle assembled by data providers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from multibagger.domain.models.financials import FinancialDataset, InsiderTrade, MarketSnapshot
from multibagger.domain.models.scoring import QualitativeInputs


@dataclass
class SubjectBundle:
    """Everything the scoring workflow reads for one ticker.

    ``fetch_errors`` records series that failed or came back empty; the
    workflow reports them as data-quality warnings.
    """

    ticker: str
    company_name: str
    sector_tag: Optional[str]
    sector_text: str
    industry_text: str
    market: MarketSnapshot
    dataset: FinancialDataset
    insider_trades: List[InsiderTrade] = field(default_factory=list)
    qualitative: QualitativeInputs = field(default_factory=QualitativeInputs)
    profile: Dict[str, Any] = field(default_factory=dict)
    fetch_errors: Dict[str, str] = field(default_factory=dict)
