"""LangGraph node validating inputs and deriving auxiliary signals."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from multibagger.domain.services.signals import detect_founder_status, detect_insider_activity, is_stale
from multibagger.workflows.context import WorkflowContext
from multibagger.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    quality_notes = state.setdefault("data_quality_warnings", [])
    bundle = state["bundle"]
    as_of = state["as_of"]

    # Invalid sector tags are fatal and propagate to the caller.
    sector = context.sector_mapper.resolve(bundle.sector_tag, bundle.sector_text, bundle.industry_text)
    state["sector"] = sector
    logs.append(f"IntakeAgent -> {bundle.ticker} mapped to sector {sector.value}")

    for series, error in sorted(bundle.fetch_errors.items()):
        quality_notes.append(f"{series} data unavailable ({error})")

    latest_filing = bundle.dataset.latest_filing()
    if is_stale(latest_filing, as_of, context.config.stale_filing_days):
        quality_notes.append(
            f"Latest filing {latest_filing.isoformat() if latest_filing else 'unknown'} is older than "
            f"{context.config.stale_filing_days} days"
        )

    activity = detect_insider_activity(bundle.insider_trades, as_of)
    state["insider_activity"] = activity
    logs.append(f"IntakeAgent -> insider activity {activity} ({len(bundle.insider_trades)} trades)")

    qualitative = bundle.qualitative
    if qualitative.founder_led is not None:
        state["founder_led"] = bool(qualitative.founder_led)
        state["founder_confidence"] = 100 if qualitative.founder_led else 0
    else:
        founder_led, confidence = detect_founder_status(
            qualitative.ceo_name or bundle.profile.get("ceo"),
            qualitative.company_name or bundle.company_name,
            qualitative.description or bundle.profile.get("description"),
            qualitative.company_age_years if qualitative.company_age_years is not None else _age_years(bundle.profile.get("ipoDate"), as_of),
        )
        state["founder_led"] = founder_led
        state["founder_confidence"] = confidence
        logs.append(f"IntakeAgent -> founder heuristic confidence {confidence}")

    if qualitative.short_interest is not None:
        state["short_interest"] = float(qualitative.short_interest)
        source = qualitative.short_interest_source
        state["short_interest_source"] = "estimated" if source == "unavailable" else source
    elif bundle.market.short_interest is not None:
        state["short_interest"] = float(bundle.market.short_interest)
        state["short_interest_source"] = "real"
    else:
        state["short_interest"] = None
        state["short_interest_source"] = "unavailable"
    return state


def _age_years(ipo_date: Optional[str], as_of) -> Optional[float]:
    if not ipo_date:
        return None
    try:
        listed = datetime.strptime(str(ipo_date)[:10], "%Y-%m-%d").date()
    except ValueError:
        return None
    return (as_of - listed).days / 365.25
