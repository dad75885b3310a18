"""Exception types raised by the scoring engine and its collaborators."""
from __future__ import annotations

from typing import Any, Dict, Optional


class MultibaggerError(Exception):
    """Base error carrying a message plus structured details for logs."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extras = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({extras})"


class InvalidSectorError(MultibaggerError, ValueError):
    """Sector tag outside the closed set of supported sectors."""


class MalformedStatementError(MultibaggerError, TypeError):
    """Statement record with the wrong shape or non-numeric line items."""


class MissingSubjectDataError(MultibaggerError):
    """Required collaborator data (profile/quote) missing for a subject."""


class JudgmentProviderError(MultibaggerError):
    """Qualitative provider failed or returned an unusable reply."""


class RateLimitExceededError(JudgmentProviderError):
    """Provider kept answering with rate-limit responses after all retries."""
