"""
Text-understanding provider.

Responsibilities:
- Define the TextUnderstandingService interface consumed by RemoteTextAnalyzer
- HTTP client (httpx) posting {transcript, context}
- Validate and sanitize the provider's analysis into a TextAnalysis

Wire format (response):
    {"success": bool, "data": {version, themes, keywords, risk_level,
     direction_of_change, mood_score, text_score, uncertainty,
     drivers_positive, drivers_negative, conversation_summary, notable_quotes}}

Invariants:
- The client fails closed: transport and HTTP errors raise
- Sanitized results always satisfy the TextAnalysis value ranges
"""

import logging
from typing import Any, Mapping, Protocol

import httpx

from mindcheck.models import RISK_LEVELS, TEXT_DIRECTIONS, TEXT_RESULT_VERSION, TextAnalysis
from mindcheck.utils import is_finite_number


logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Check-in completed."


class TextUnderstandingService(Protocol):
    """Anything that can analyse a transcript with short context."""

    async def analyze(self, transcript: str, context: Mapping[str, Any]) -> Mapping[str, Any]:
        ...


class HttpTextUnderstandingClient:
    """Text-understanding service reached over HTTP."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid text service URL: {url}. Must start with http:// or https://")
        self.url = url
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self._transport = transport

    async def analyze(self, transcript: str, context: Mapping[str, Any]) -> Mapping[str, Any]:
        """
        POST the transcript and return the decoded response body.

        Raises:
            httpx.HTTPStatusError: Non-2xx response
            httpx.RequestError: Transport failure
            ValueError: Body is not JSON
        """
        payload = {"transcript": transcript, "context": dict(context)}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            logger.info("Sending transcript (%d chars) to text service", len(transcript))
            response = await client.post(self.url, json=payload, headers=self.headers)
        response.raise_for_status()
        return response.json()


# =============================================================================
# Sanitization
# =============================================================================


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


def sanitize_understanding(data: Mapping[str, Any]) -> TextAnalysis:
    """
    Validate a provider analysis and coerce it into a TextAnalysis.

    Rules:
        - mood_score outside 1-10 (or non-numeric) → 5, else rounded
        - text_score outside 0-100 → 50 and uncertainty raised to ≥ 0.6
        - uncertainty outside 0-1 → 0.5
        - missing lists → empty; missing summary → "Check-in completed."
        - unknown risk level → "none"; unknown direction → "unclear"
    """
    mood = data.get("mood_score")
    if not is_finite_number(mood) or mood < 1 or mood > 10:
        logger.warning("Invalid mood_score %r, defaulting to 5", mood)
        mood_score = 5
    else:
        mood_score = int(round(mood))

    uncertainty = data.get("uncertainty")
    text_score = data.get("text_score")
    if not is_finite_number(text_score) or text_score < 0 or text_score > 100:
        logger.warning("Invalid text_score %r, defaulting to 50", text_score)
        text_score = 50.0
        uncertainty = max(uncertainty, 0.6) if is_finite_number(uncertainty) else 0.6

    if not is_finite_number(uncertainty) or uncertainty < 0 or uncertainty > 1:
        logger.warning("Invalid uncertainty %r, defaulting to 0.5", uncertainty)
        uncertainty = 0.5

    risk_level = data.get("risk_level") or "none"
    if risk_level not in RISK_LEVELS:
        logger.warning("Unknown risk_level %r, defaulting to none", risk_level)
        risk_level = "none"

    direction = data.get("direction_of_change") or "unclear"
    if direction not in TEXT_DIRECTIONS:
        direction = "unclear"

    themes = _string_list(data.get("themes"))
    return TextAnalysis(
        summary=str(data.get("conversation_summary") or DEFAULT_SUMMARY),
        keywords=_string_list(data.get("keywords")),
        themes=themes,
        positive_drivers=_string_list(data.get("drivers_positive")),
        negative_drivers=_string_list(data.get("drivers_negative")),
        risk_level=risk_level,
        risk_reasons=_string_list(data.get("risk_reasons")),
        mood_score=mood_score,
        text_score=float(text_score),
        uncertainty=float(uncertainty),
        direction_of_change=direction,
        notable_quotes=_string_list(data.get("notable_quotes")),
        version=str(data.get("version") or TEXT_RESULT_VERSION),
    )
