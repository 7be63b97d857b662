"""
MindCheck v1 Text Analyzer Tests

Both strategies return the same TextAnalysis shape.

Coverage:
- Lexicon analyzer: sentiment, keywords, drivers, linguistic features, risk
- Remote analyzer: sanitization, neutral results, failure propagation
- Short/missing transcripts
- HTTP text client (mock transport)
"""

import asyncio
import json

import httpx
import pytest

from mindcheck.analyzers.lexicon import LexiconTextAnalyzer, analyze_sentiment, assess_risk, extract_keywords
from mindcheck.analyzers.text import (
    SHORT_TRANSCRIPT_SUMMARY,
    UNUSABLE_RESPONSE_SUMMARY,
    RemoteTextAnalyzer,
    clean_transcript,
    tokenize,
)
from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.models import CheckinContext, LinguisticFeatures, TextAnalysis, VerbTense
from mindcheck.providers.text import DEFAULT_SUMMARY, HttpTextUnderstandingClient, sanitize_understanding


POSITIVE = "I am doing well today. Feeling good about my studies."
STRESSED = (
    "Work is so stressful and I am always worried about money. "
    "I feel lonely and tired all the time. Nothing ever goes right."
)


def provider_body(**data) -> dict:
    base = {
        "version": "v1.0",
        "themes": ["exams", "sleep"],
        "keywords": ["exams"],
        "risk_level": "mild",
        "direction_of_change": "better",
        "mood_score": 7,
        "text_score": 68,
        "uncertainty": 0.25,
        "drivers_positive": ["friends"],
        "drivers_negative": ["exam pressure"],
        "conversation_summary": "Busy week with exams, but friends helped.",
        "notable_quotes": ["my friends kept me going"],
    }
    base.update(data)
    return {"success": True, "data": base}


# =============================================================================
# Transcript Helpers
# =============================================================================


class TestTranscriptHelpers:
    """Test cleaning and tokenization."""

    def test_speaker_markers_are_removed(self):
        cleaned = clean_transcript("agent: How are you?\nUSER:   I feel  good")
        assert cleaned == "How are you? I feel good"

    def test_tokenize_keeps_apostrophes(self):
        assert tokenize("I don't know, really!") == ["i", "don't", "know", "really"]


# =============================================================================
# Lexicon Analyzer
# =============================================================================


class TestLexiconAnalyzer:
    """LexiconTextAnalyzer end to end."""

    def test_positive_transcript(self):
        result = asyncio.run(LexiconTextAnalyzer().analyze(POSITIVE))

        assert isinstance(result, TextAnalysis)
        assert result.positive_drivers == ("positive mood",)
        assert result.negative_drivers == ()
        assert result.keywords == ("mood",)
        assert result.themes == result.keywords
        assert result.risk_level == "none"
        assert result.text_score == pytest.approx(80.0)
        assert result.mood_score == 8
        assert result.uncertainty == pytest.approx(1 - 0.6 * 0.8)
        assert result.transcript_length == 10
        assert result.average_sentence_length == pytest.approx(5.0)
        assert result.summary.startswith("You shared positive experiences including mood.")

    def test_positive_linguistic_features(self):
        linguistic = LexiconTextAnalyzer().analyze_text(POSITIVE).linguistic

        assert linguistic.sentiment_score == pytest.approx(0.1)
        assert linguistic.positive_word_ratio == pytest.approx(0.1)
        assert linguistic.negative_word_ratio == 0.0
        assert linguistic.lexical_diversity == pytest.approx(1.0)
        assert linguistic.first_person_pronouns == 2
        assert linguistic.verb_tense.present == pytest.approx(1.0)
        assert linguistic.engagement_score == pytest.approx(0.2)
        assert linguistic.cognitive_complexity == pytest.approx(0.25)

    def test_stressed_transcript_is_high_risk(self):
        result = LexiconTextAnalyzer().analyze_text(STRESSED)

        assert result.positive_drivers == ()
        assert result.negative_drivers == ("stress/pressure", "anxiety", "fatigue")
        assert result.risk_level == "high"
        assert "Sustained negative emotional state" in result.risk_reasons
        assert "Absolutist thinking patterns" in result.risk_reasons
        assert "Multiple stressors with no positive factors" in result.risk_reasons
        assert result.summary.startswith("You mentioned challenges with stress/pressure and anxiety.")
        assert result.text_score < 50

    def test_harm_language_is_high_risk(self):
        result = LexiconTextAnalyzer().analyze_text("Some days I just want to hurt myself and disappear.")

        assert result.risk_level == "high"
        assert result.risk_reasons[0] == "Explicit mention of self-harm or suicidal ideation"

    def test_mixed_drivers_summary(self):
        result = LexiconTextAnalyzer().analyze_text(
            "I went to the gym and felt great. But deadlines at work are hard and stressful."
        )
        assert result.positive_drivers
        assert result.negative_drivers
        assert result.summary.startswith("You're experiencing both positive aspects")

    def test_short_transcript_returns_neutral(self):
        result = LexiconTextAnalyzer().analyze_text("ok")

        assert result.summary == SHORT_TRANSCRIPT_SUMMARY
        assert result.text_score == 50.0
        assert result.mood_score == 5
        assert result.uncertainty == 0.9
        assert result.themes == ()
        assert result.linguistic is None

    def test_punctuation_only_returns_neutral(self):
        result = LexiconTextAnalyzer().analyze_text("!!!!!!!!!!!!!!!")
        assert result.summary == SHORT_TRANSCRIPT_SUMMARY

    def test_missing_transcript_is_not_recoverable(self):
        with pytest.raises(EnrichmentError) as exc_info:
            LexiconTextAnalyzer().analyze_text(None)
        assert exc_info.value.code == ErrorCode.EMPTY_TRANSCRIPT
        assert exc_info.value.recoverable is False

    def test_deterministic(self):
        analyzer = LexiconTextAnalyzer()
        assert analyzer.analyze_text(STRESSED) == analyzer.analyze_text(STRESSED)


class TestLexiconComponents:
    """Test sentiment and keyword helpers."""

    def test_sentiment_without_emotional_words_is_zero(self):
        assert analyze_sentiment("the cat sat on the mat") == (0.0, 0.0)

    def test_keywords_ordered_by_frequency(self):
        words = tokenize("work deadline meeting sleep boss")
        assert extract_keywords(words) == ["work", "sleep"]


class TestAssessRisk:
    """Additive risk score against the level thresholds."""

    @staticmethod
    def features(**overrides) -> LinguisticFeatures:
        values = dict(
            sentiment_score=0.0,
            sentiment_intensity=0.0,
            emotional_words=0,
            negative_word_ratio=0.0,
            positive_word_ratio=0.0,
            cognitive_complexity=0.0,
            lexical_diversity=0.0,
            verb_tense=VerbTense(),
            first_person_pronouns=0,
            negation_frequency=0.0,
            absolutism_words=0,
            tentative_words=0,
            certainty_score=0.0,
            coherence_score=0.0,
            expressivity_score=0.0,
            engagement_score=0.0,
        )
        values.update(overrides)
        return LinguisticFeatures(**values)

    def assess(self, **overrides) -> tuple[str, list[str]]:
        return assess_risk("", (0.0, 0.0), self.features(**overrides), [], [])

    def test_no_signals_is_none(self):
        assert self.assess() == ("none", [])

    def test_negation_alone_is_mild(self):
        level, reasons = self.assess(negation_frequency=0.06)

        assert level == "mild"
        assert reasons == ["Frequent use of negation"]

    def test_past_focus_alone_is_mild(self):
        level, reasons = self.assess(verb_tense=VerbTense(past=0.7, present=0.3))

        assert level == "mild"
        assert reasons == ["Strong focus on the past (possible rumination)"]

    def test_increment_thresholds_are_strict(self):
        assert self.assess(negation_frequency=0.05, verb_tense=VerbTense(past=0.6, present=0.4))[0] == "none"

    def test_one_point_is_still_mild(self):
        assert self.assess(negative_word_ratio=0.2)[0] == "mild"

    def test_one_and_a_half_is_moderate(self):
        level, reasons = self.assess(negative_word_ratio=0.2, negation_frequency=0.06)

        assert level == "moderate"
        assert reasons == ["High frequency of negative language", "Frequent use of negation"]

    def test_two_and_a_half_is_still_moderate(self):
        level, _ = self.assess(
            negative_word_ratio=0.2,
            absolutism_words=3,
            verb_tense=VerbTense(past=0.7, present=0.3),
        )
        assert level == "moderate"

    def test_three_is_high(self):
        level, reasons = self.assess(
            negative_word_ratio=0.2,
            absolutism_words=3,
            negation_frequency=0.06,
            verb_tense=VerbTense(past=0.7, present=0.3),
        )

        assert level == "high"
        assert len(reasons) == 4

    def test_stressors_without_positive_factors(self):
        features = self.features()
        level, reasons = assess_risk("", (0.0, 0.0), features, [], ["work stress", "fatigue", "anxiety"])

        assert level == "mild"
        assert reasons == ["Multiple stressors with no positive factors"]


# =============================================================================
# Remote Analyzer
# =============================================================================


class TestRemoteTextAnalyzer:
    """RemoteTextAnalyzer against an in-process service."""

    def test_successful_response_is_sanitized(self, text_service_factory):
        service = text_service_factory(body=provider_body())

        result = asyncio.run(RemoteTextAnalyzer(service).analyze(POSITIVE))

        assert result.text_score == 68.0
        assert result.mood_score == 7
        assert result.uncertainty == 0.25
        assert result.risk_level == "mild"
        assert result.direction_of_change == "better"
        assert result.themes == ("exams", "sleep")
        assert result.positive_drivers == ("friends",)
        assert result.summary == "Busy week with exams, but friends helped."
        assert result.transcript_length == 10

    def test_context_is_forwarded(self, text_service_factory):
        service = text_service_factory(body=provider_body())
        context = CheckinContext(
            checkin_id="c-1",
            student_first_name="Sam",
            previous_themes=("exams",),
            previous_score=61.0,
            previous_direction="same",
        )

        asyncio.run(RemoteTextAnalyzer(service).analyze(POSITIVE, context))

        transcript, sent = service.calls[0]
        assert transcript == POSITIVE
        assert sent == {
            "checkin_id": "c-1",
            "student_first_name": "Sam",
            "previous_text_themes": ["exams"],
            "previous_mind_measure_score": 61.0,
            "previous_direction_of_change": "same",
        }

    def test_unsuccessful_response_returns_neutral(self, text_service_factory):
        service = text_service_factory(body={"success": False, "error": "quota"})

        result = asyncio.run(RemoteTextAnalyzer(service).analyze(POSITIVE))

        assert result.summary == UNUSABLE_RESPONSE_SUMMARY
        assert result.text_score == 50.0
        assert result.uncertainty == 0.9

    def test_provider_failure_propagates(self, text_service_factory):
        service = text_service_factory(error=ConnectionError("unreachable"))

        with pytest.raises(EnrichmentError) as exc_info:
            asyncio.run(RemoteTextAnalyzer(service).analyze(POSITIVE))

        assert exc_info.value.code == ErrorCode.TEXT_ANALYSIS_FAILED
        assert exc_info.value.recoverable is True
        assert exc_info.value.component == "text"

    def test_short_transcript_skips_provider(self, text_service_factory):
        service = text_service_factory(body=provider_body())

        result = asyncio.run(RemoteTextAnalyzer(service).analyze("   hi   "))

        assert result.summary == SHORT_TRANSCRIPT_SUMMARY
        assert service.calls == []


class TestSanitizeUnderstanding:
    """Test sanitize_understanding defaults."""

    def test_out_of_range_values_are_defaulted(self):
        result = sanitize_understanding({
            "mood_score": 15,
            "text_score": 150,
            "uncertainty": 0.2,
            "risk_level": "extreme",
            "direction_of_change": "sideways",
        })

        assert result.mood_score == 5
        assert result.text_score == 50.0
        assert result.uncertainty == 0.6
        assert result.risk_level == "none"
        assert result.direction_of_change == "unclear"

    def test_invalid_uncertainty_is_defaulted(self):
        result = sanitize_understanding({"text_score": 70, "uncertainty": 2.0, "mood_score": 6.6})
        assert result.uncertainty == 0.5
        assert result.mood_score == 7

    def test_missing_fields_become_empty(self):
        result = sanitize_understanding({})

        assert result.summary == DEFAULT_SUMMARY
        assert result.keywords == ()
        assert result.positive_drivers == ()
        assert result.notable_quotes == ()
        assert result.risk_level == "none"

    def test_non_numeric_scores_are_rejected(self):
        result = sanitize_understanding({"text_score": "high", "mood_score": True})
        assert result.text_score == 50.0
        assert result.mood_score == 5


class TestHttpTextUnderstandingClient:
    """HTTP client against httpx.MockTransport."""

    def test_posts_transcript_and_context(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json=provider_body())

        client = HttpTextUnderstandingClient("https://text.example.test/analyze", transport=httpx.MockTransport(handler))
        result = asyncio.run(RemoteTextAnalyzer(client).analyze(POSITIVE, CheckinContext(checkin_id="c-9")))

        assert seen["transcript"] == POSITIVE
        assert seen["context"]["checkin_id"] == "c-9"
        assert result.text_score == 68.0

    def test_http_error_becomes_text_analysis_failed(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "down"}))
        client = HttpTextUnderstandingClient("https://text.example.test/analyze", transport=transport)

        with pytest.raises(EnrichmentError) as exc_info:
            asyncio.run(RemoteTextAnalyzer(client).analyze(POSITIVE))

        assert exc_info.value.code == ErrorCode.TEXT_ANALYSIS_FAILED
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
