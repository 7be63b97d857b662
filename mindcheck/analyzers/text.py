"""
Text analysis via an external text-understanding service.

Responsibilities:
- TextAnalyzer interface shared by both strategies
- Neutral result for transcripts too short to analyse
- RemoteTextAnalyzer: delegate to the provider, sanitize its answer

Failure semantics:
- None / non-string transcript → EMPTY_TRANSCRIPT (not recoverable)
- < 10 characters after stripping → neutral result
- Provider call fails → TEXT_ANALYSIS_FAILED (recoverable, propagates)
- Provider answers without usable content → neutral result
"""

import logging
import re
from dataclasses import replace
from typing import Protocol

from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.models import CheckinContext, TextAnalysis
from mindcheck.providers.text import TextUnderstandingService, sanitize_understanding


logger = logging.getLogger(__name__)


MIN_TRANSCRIPT_CHARS = 10

SHORT_TRANSCRIPT_SUMMARY = (
    "There was not enough information in this check in to understand how the student is feeling."
)
UNUSABLE_RESPONSE_SUMMARY = "Text analysis did not return usable content for this check in."
UNAVAILABLE_SUMMARY = "Text analysis was not available for this check in."

NEUTRAL_TEXT_SCORE = 50.0
NEUTRAL_MOOD_SCORE = 5
NEUTRAL_UNCERTAINTY = 0.9

_SPEAKER_MARKER = re.compile(r"(?:agent|user):\s*", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s'-]")
_SENTENCE_END = re.compile(r"[.!?]+")


class TextAnalyzer(Protocol):
    """Transcript → TextAnalysis, identical result shape for every strategy."""

    async def analyze(self, transcript: str, context: CheckinContext | None = None) -> TextAnalysis:
        ...


def neutral_result(summary: str) -> TextAnalysis:
    """Score 50, mood 5, uncertainty 0.9, nothing extracted."""
    return TextAnalysis(
        summary=summary,
        risk_level="none",
        mood_score=NEUTRAL_MOOD_SCORE,
        text_score=NEUTRAL_TEXT_SCORE,
        uncertainty=NEUTRAL_UNCERTAINTY,
        direction_of_change="unclear",
    )


def require_transcript(transcript: object) -> str:
    """
    Raises:
        EnrichmentError: EMPTY_TRANSCRIPT when no transcript string was given
    """
    if transcript is None or not isinstance(transcript, str):
        raise EnrichmentError(
            "No transcript provided",
            ErrorCode.EMPTY_TRANSCRIPT,
            recoverable=False,
            component="text",
        )
    return transcript


def is_too_short(transcript: str) -> bool:
    return len(transcript.strip()) < MIN_TRANSCRIPT_CHARS


# =============================================================================
# Transcript Helpers
# =============================================================================


def clean_transcript(transcript: str) -> str:
    """Strip "agent:" / "user:" speaker markers and collapse whitespace."""
    cleaned = _SPEAKER_MARKER.sub("", transcript)
    return " ".join(cleaned.split())


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens; apostrophes and hyphens stay inside words."""
    return _NON_WORD.sub(" ", text.lower()).split()


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_END.split(text) if s.strip()]


# =============================================================================
# RemoteTextAnalyzer
# =============================================================================


class RemoteTextAnalyzer:
    """Delegate transcript understanding to a TextUnderstandingService."""

    def __init__(self, service: TextUnderstandingService):
        self.service = service

    async def analyze(self, transcript: str, context: CheckinContext | None = None) -> TextAnalysis:
        """
        Analyse a transcript remotely.

        Raises:
            EnrichmentError: EMPTY_TRANSCRIPT, or TEXT_ANALYSIS_FAILED when the
                provider call itself fails
        """
        transcript = require_transcript(transcript)
        if is_too_short(transcript):
            logger.warning("Transcript too short (%d chars), returning neutral result", len(transcript.strip()))
            return neutral_result(SHORT_TRANSCRIPT_SUMMARY)

        context = context or CheckinContext()
        try:
            body = await self.service.analyze(transcript, context.to_request_dict())
        except EnrichmentError:
            raise
        except Exception as e:
            logger.error("Text service call failed: %s", e)
            raise EnrichmentError(
                f"Text analysis failed: {e}",
                ErrorCode.TEXT_ANALYSIS_FAILED,
                recoverable=True,
                component="text",
            ) from e

        if not isinstance(body, dict) or not body.get("success") or not isinstance(body.get("data"), dict):
            logger.error("Text service returned an unsuccessful result")
            return neutral_result(UNUSABLE_RESPONSE_SUMMARY)

        cleaned = clean_transcript(transcript)
        words = tokenize(cleaned)
        sentences = split_sentences(cleaned)
        return replace(
            sanitize_understanding(body["data"]),
            transcript_length=len(words),
            average_sentence_length=len(words) / max(1, len(sentences)),
        )
