"""Qualitative verdict provider backed by a chat model."""
from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Protocol

from multibagger.domain.errors import JudgmentProviderError
from multibagger.domain.models.scoring import JudgmentStatus, QualitativeVerdict

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a skeptical growth-equity analyst screening for multi-bagger candidates. "
    "Respond with a single JSON object and nothing else."
)

RESPONSE_SCHEMA = """{
  "aiStatus": "STRONG_PASS | SOFT_PASS | MONITOR_ONLY | AVOID",
  "aiTier": "Tier 1 | Tier 2 | Tier 3 | Not Interesting",
  "aiConviction": 0-100,
  "thesisSummary": "two sentences"
}"""


class ChatClient(Protocol):
    def generate(self, messages: List[Dict[str, str]], *, temperature: float = 0.2) -> str:
        ...


def clean_llm_output(text: str) -> str:
    """Remove 'Thinking.../Planning' scaffolding, quote lines and code fences."""
    if not text:
        return ""
    cleaned = str(text).strip()
    cleaned = re.sub(r"(?is)^\s*\*?(?:Thinking|Planning)[^.]*\*?.*?(?:\n{2,}|$)", "", cleaned)
    cleaned = re.sub(r"(?im)^>.*\n", "", cleaned)
    cleaned = re.sub(r"(?m)^\s*```[a-zA-Z]*\s*$", "", cleaned)
    return cleaned.strip()


def parse_verdict(text: str) -> QualitativeVerdict:
    """Parse the model reply; raises JudgmentProviderError when no JSON object is found."""
    cleaned = clean_llm_output(text)
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise JudgmentProviderError("No JSON object in judgment reply", {"reply": cleaned[:120]})
    try:
        payload = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise JudgmentProviderError("Malformed JSON in judgment reply", {"error": str(exc)}) from exc
    if not isinstance(payload, dict):
        raise JudgmentProviderError("Judgment reply is not a JSON object")

    return QualitativeVerdict(
        status=JudgmentStatus.coerce(payload.get("aiStatus")),
        tier=str(payload.get("aiTier") or "Not Interesting"),
        conviction=_conviction(payload.get("aiConviction")),
        thesis=str(payload.get("thesisSummary") or ""),
    )


def _conviction(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


class QualitativeJudge:
    """Ask the chat model for a status/tier/conviction triple.

    Every failure collapses to the neutral MONITOR_ONLY verdict with the error
    recorded, so the quantitative path never depends on the provider.
    """

    def __init__(self, client: Optional[ChatClient]) -> None:
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None

    def assess(self, ticker: str, facts: Dict[str, Any]) -> QualitativeVerdict:
        if self._client is None:
            return QualitativeVerdict.neutral("judgment provider not configured")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Assess {ticker} as a potential multi-bagger over a 3-5 year horizon.\n"
                    "Weigh durability of growth, moat evidence and management alignment; "
                    "be conservative when data is missing.\n\n"
                    f"COMPANY DATA:\n{json.dumps(facts, default=str, ensure_ascii=False)}\n\n"
                    f"SCHEMA:\n{RESPONSE_SCHEMA}"
                ),
            },
        ]
        try:
            reply = self._client.generate(messages, temperature=0.2)
            verdict = parse_verdict(reply)
        except JudgmentProviderError as exc:
            logger.warning("Qualitative judgment for %s failed: %s", ticker, exc)
            return QualitativeVerdict.neutral(str(exc))
        logger.info(
            "Qualitative judgment for %s: %s (conviction %.0f)", ticker, verdict.status.value, verdict.conviction
        )
        return verdict
