"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Base directory for resolving relative paths.
BASE_DIR = Path(__file__).resolve().parent


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    # Normalize non-string inputs (e.g., int defaults) before parsing.
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    """Safely parse an integer env var, returning the default on failure."""
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _to_float(value: Optional[str], default: float) -> float:
    """Safely parse a float env var, returning the default on failure."""
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    poe_api_key: Optional[str] = None
    proxy_url: Optional[str] = None
    judgment_model: str = "gemini-2.5-pro"
    judgment_min_interval_seconds: float = 6.0
    judgment_max_retries: int = 3
    judgment_backoff_seconds: float = 1.0
    max_concurrency: int = 3
    stale_filing_days: int = 180
    output_dir: Path = BASE_DIR / "reports"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        output_dir = Path(os.getenv("OUTPUT_DIR", BASE_DIR / "reports"))

        config = cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            poe_api_key=os.getenv("POE_API_KEY"),
            proxy_url=os.getenv("PROXY_URL"),
            judgment_model=os.getenv("JUDGMENT_MODEL", "gemini-2.5-pro"),
            judgment_min_interval_seconds=_to_float(os.getenv("JUDGMENT_MIN_INTERVAL"), 6.0),
            judgment_max_retries=_to_int(os.getenv("JUDGMENT_MAX_RETRIES"), 3) or 0,
            judgment_backoff_seconds=_to_float(os.getenv("JUDGMENT_BACKOFF_SECONDS"), 1.0),
            max_concurrency=max(1, _to_int(os.getenv("MAX_CONCURRENCY"), 3) or 1),
            stale_filing_days=_to_int(os.getenv("STALE_FILING_DAYS"), 180) or 180,
            output_dir=output_dir,
        )
        return config

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
