"""Settings helpers to centralize configuration access."""
from __future__ import annotations

from typing import Optional

from config import Config


def load_settings(
    debug_override: Optional[bool] = None,
    *,
    max_concurrency: Optional[int] = None,
    min_interval_seconds: Optional[float] = None,
) -> Config:
    """Return a Config instance, applying optional runtime overrides."""
    config = Config.from_env()
    if debug_override is not None:
        config.debug = debug_override
    if max_concurrency is not None:
        config.max_concurrency = max(1, int(max_concurrency))
    if min_interval_seconds is not None:
        config.judgment_min_interval_seconds = max(0.0, float(min_interval_seconds))
    return config
