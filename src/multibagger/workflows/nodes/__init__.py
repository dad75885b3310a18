"""Convenience re-exports for workflow nodes."""
from __future__ import annotations

from . import (
    composite,
    intake,
    judgment,
    metrics,
    pillars,
    report,
    risk,
)

__all__ = [
    "composite",
    "intake",
    "judgment",
    "metrics",
    "pillars",
    "report",
    "risk",
]
