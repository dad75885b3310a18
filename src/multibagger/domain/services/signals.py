"""Auxiliary signals: insider clusters, founder detection and filing staleness."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from multibagger.domain.models.financials import InsiderTrade
from multibagger.settings.strategy import Alignment

logger = logging.getLogger(__name__)

CLUSTER_BUY = "Cluster Buy"
BUYING = "Buying"
SELLING = "Selling"
NEUTRAL = "Neutral"


def detect_insider_activity(
    trades: Iterable[InsiderTrade],
    as_of: date,
    *,
    lookback_days: int = Alignment.LOOKBACK_DAYS,
) -> str:
    """Classify recent open-market insider activity.

    Cluster Buy wins over net buying: two or more distinct insiders purchasing
    inside any rolling 14-day window of the lookback period.
    """
    start = as_of - timedelta(days=lookback_days)
    recent = [t for t in trades if start <= t.transaction_date <= as_of]
    purchases = sorted((t for t in recent if t.is_purchase), key=lambda t: t.transaction_date)
    sales = [t for t in recent if t.is_sale]

    if _has_cluster(purchases):
        return CLUSTER_BUY

    bought = sum(_amount(t) for t in purchases)
    sold = sum(_amount(t) for t in sales)
    if bought - sold > 0:
        return BUYING
    if sold > 0 and sold >= Alignment.SELLING_RATIO * bought:
        return SELLING
    return NEUTRAL


def _has_cluster(purchases: List[InsiderTrade]) -> bool:
    window = timedelta(days=Alignment.CLUSTER_WINDOW_DAYS)
    for idx, anchor in enumerate(purchases):
        insiders = {
            t.insider.strip().lower()
            for t in purchases[idx:]
            if t.transaction_date - anchor.transaction_date <= window
        }
        if len(insiders) >= Alignment.CLUSTER_MIN_INSIDERS:
            return True
    return False


def _amount(trade: InsiderTrade) -> float:
    # Filings without a price still count by share volume.
    return trade.value if trade.value > 0 else abs(trade.shares)


def detect_founder_status(
    ceo_name: Optional[str],
    company_name: Optional[str],
    description: Optional[str] = None,
    company_age_years: Optional[float] = None,
) -> Tuple[bool, int]:
    """Heuristic founder-led check; returns (is_founder_led, confidence 0-100)."""
    confidence = 0
    if ceo_name and company_name:
        last_name = ceo_name.strip().split()[-1].lower() if ceo_name.strip() else ""
        if len(last_name) > 2 and last_name in company_name.lower():
            confidence += Alignment.FOUNDER_NAME_POINTS
    if description:
        text = description.lower()
        if any(keyword in text for keyword in Alignment.FOUNDER_KEYWORDS):
            confidence += Alignment.FOUNDER_KEYWORD_POINTS
    if company_age_years is not None and 0 <= company_age_years < Alignment.YOUNG_COMPANY_YEARS:
        confidence += Alignment.YOUNG_COMPANY_POINTS
    confidence = min(100, confidence)
    return confidence > Alignment.FOUNDER_CONFIDENCE_THRESHOLD, confidence


def is_stale(latest_filing: Optional[date], as_of: date, max_age_days: int) -> bool:
    """True when the newest filing is older than ``max_age_days`` at ``as_of``."""
    if latest_filing is None:
        return True
    age = (as_of - latest_filing).days
    if age > max_age_days:
        logger.debug("Latest filing %s is %s days old at %s", latest_filing, age, as_of)
        return True
    return False
