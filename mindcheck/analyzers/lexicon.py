"""
Local lexicon-based text analysis.

Responsibilities:
- Word-list sentiment, topic keywords and pattern-matched drivers
- 16 linguistic features for fusion scoring
- Rule-based risk assessment and a templated user-facing summary

Produces the same TextAnalysis shape as RemoteTextAnalyzer without any
network call, so it doubles as the offline strategy.

Invariants:
- Deterministic: identical transcripts give identical results
- Keywords are capped at 5, drivers at 3 per polarity
- text_score uses the same linear rule as fusion text normalization
"""

import logging
import re

from mindcheck.analyzers.text import (
    SHORT_TRANSCRIPT_SUMMARY,
    clean_transcript,
    is_too_short,
    neutral_result,
    require_transcript,
    split_sentences,
    tokenize,
)
from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.fusion import score_linguistic
from mindcheck.models import CheckinContext, LinguisticFeatures, TextAnalysis, VerbTense
from mindcheck.utils import clamp, round_half_up


logger = logging.getLogger(__name__)


# =============================================================================
# Lexicons (FROZEN)
# =============================================================================

SENTIMENT_POSITIVE = (
    "good", "great", "happy", "better", "love", "excellent", "wonderful", "enjoy",
    "excited", "positive", "amazing", "fantastic", "proud", "comfortable",
    "confident", "grateful", "hopeful", "peaceful",
)
SENTIMENT_NEGATIVE = (
    "bad", "worse", "sad", "angry", "hate", "terrible", "awful", "difficult",
    "hard", "stress", "worried", "anxious", "depressed", "lonely", "frustrated",
    "overwhelmed", "exhausted", "hopeless",
)

TOPIC_CATEGORIES = {
    "sleep": ("sleep", "insomnia", "tired", "fatigue", "rest", "wake", "dream"),
    "work": ("work", "job", "career", "boss", "colleague", "meeting", "deadline", "project"),
    "relationships": ("relationship", "partner", "friend", "family", "parent", "child", "spouse"),
    "health": ("health", "exercise", "gym", "run", "walk", "eat", "diet", "fitness"),
    "mood": ("mood", "feeling", "emotion", "happy", "sad", "angry", "anxious"),
    "stress": ("stress", "pressure", "overwhelm", "burden", "worry", "anxiety"),
    "social": ("social", "people", "friends", "alone", "lonely", "isolated"),
    "money": ("money", "financial", "bills", "debt", "pay", "budget", "afford"),
}

POSITIVE_DRIVERS = (
    (re.compile(r"sleep.*(?:well|better|good)", re.IGNORECASE), "sleeping well"),
    (re.compile(r"exercise|gym|workout|run|active", re.IGNORECASE), "physical activity"),
    (re.compile(r"(?:feel|feeling).*(?:good|great|better)", re.IGNORECASE), "positive mood"),
    (re.compile(r"(?:work|job).*(?:good|well|better)", re.IGNORECASE), "work going well"),
    (re.compile(r"friend|social.*(?:good|fun|enjoy)", re.IGNORECASE), "social connections"),
    (re.compile(r"energy|energetic|motivated", re.IGNORECASE), "good energy"),
    (re.compile(r"accomplish|achieve|progress", re.IGNORECASE), "sense of achievement"),
    (re.compile(r"relax|calm|peaceful", re.IGNORECASE), "feeling relaxed"),
)
NEGATIVE_DRIVERS = (
    (re.compile(r"sleep.*(?:bad|poor|trouble|insomnia)", re.IGNORECASE), "sleep problems"),
    (re.compile(r"stress|pressure|overwhelm", re.IGNORECASE), "stress/pressure"),
    (re.compile(r"anxious|anxiety|worry|worried", re.IGNORECASE), "anxiety"),
    (re.compile(r"sad|down|depressed|low", re.IGNORECASE), "low mood"),
    (re.compile(r"tired|fatigue|exhaust", re.IGNORECASE), "fatigue"),
    (re.compile(r"work.*(?:hard|difficult|stress)", re.IGNORECASE), "work stress"),
    (re.compile(r"lonely|alone|isolated", re.IGNORECASE), "loneliness"),
    (re.compile(r"money|financial|debt|bills", re.IGNORECASE), "financial concerns"),
)

EMOTION_WORDS = ("feel", "feeling", "emotion", "happy", "sad", "angry", "anxious", "worried")
RATIO_POSITIVE = ("good", "great", "happy", "better", "love", "enjoy", "positive")
RATIO_NEGATIVE = ("bad", "worse", "sad", "hate", "difficult", "stress", "anxious")

PAST_MARKERS = frozenset({"was", "were", "had", "did"})
PRESENT_MARKERS = frozenset({"am", "is", "are", "do", "does"})
FUTURE_MARKERS = frozenset({"will", "shall", "going"})
FIRST_PERSON = frozenset({"i", "me", "my", "mine", "myself"})
NEGATIONS = frozenset({"not", "no", "never", "nothing", "none", "nobody", "don't", "can't", "won't"})
ABSOLUTISMS = frozenset({"always", "never", "all", "none", "every", "nothing", "everything"})
TENTATIVES = frozenset({"maybe", "perhaps", "might", "could", "possibly", "uncertain"})

HARM_PATTERNS = (
    re.compile(r"hurt.*(?:myself|self)", re.IGNORECASE),
    re.compile(r"(?:kill|end).*(?:myself|life)", re.IGNORECASE),
    re.compile(r"suicide|suicidal", re.IGNORECASE),
    re.compile(r"self.*harm", re.IGNORECASE),
    re.compile(r"(?:want|wish).*(?:die|dead)", re.IGNORECASE),
)

MAX_KEYWORDS = 5
MAX_DRIVERS = 3


def _contains_any(word: str, stems: tuple[str, ...]) -> bool:
    return any(stem in word for stem in stems)


# =============================================================================
# Components
# =============================================================================


def analyze_sentiment(text: str) -> tuple[float, float]:
    """
    Lexicon sentiment over whitespace-split words.

    Returns:
        (score in [-1, 1], intensity in [0, 1]); score is 0 without any
        emotional word
    """
    words = text.lower().split()
    if not words:
        return 0.0, 0.0
    positive = sum(1 for w in words if _contains_any(w, SENTIMENT_POSITIVE))
    negative = sum(1 for w in words if _contains_any(w, SENTIMENT_NEGATIVE))
    emotional = positive + negative
    score = (positive - negative) / len(words) if emotional > 0 else 0.0
    return clamp(score, -1.0, 1.0), clamp(emotional / len(words), 0.0, 1.0)


def extract_keywords(words: list[str]) -> list[str]:
    """Topic categories ordered by how many words hit them (ties keep table order)."""
    counts = []
    for topic, stems in TOPIC_CATEGORIES.items():
        count = sum(1 for w in words if _contains_any(w, stems))
        if count > 0:
            counts.append((topic, count))
    counts.sort(key=lambda item: item[1], reverse=True)
    return [topic for topic, _ in counts]


def extract_drivers(text: str) -> tuple[list[str], list[str]]:
    positive = [driver for pattern, driver in POSITIVE_DRIVERS if pattern.search(text)]
    negative = [driver for pattern, driver in NEGATIVE_DRIVERS if pattern.search(text)]
    return positive, negative


def extract_linguistic(words: list[str], sentences: list[str], sentiment: tuple[float, float]) -> LinguisticFeatures:
    """16 linguistic features; words must be non-empty."""
    total = len(words)
    emotional = sum(1 for w in words if _contains_any(w, EMOTION_WORDS))
    positive = sum(1 for w in words if _contains_any(w, RATIO_POSITIVE))
    negative = sum(1 for w in words if _contains_any(w, RATIO_NEGATIVE))

    average_sentence = total / max(1, len(sentences))
    diversity = len(set(words)) / total

    past = sum(1 for w in words if w.endswith("ed") or w in PAST_MARKERS)
    present = sum(1 for w in words if w in PRESENT_MARKERS)
    future = sum(1 for w in words if w in FUTURE_MARKERS)
    verbs = (past + present + future) or 1

    tentative = sum(1 for w in words if w in TENTATIVES)
    score, intensity = sentiment

    return LinguisticFeatures(
        sentiment_score=score,
        sentiment_intensity=intensity,
        emotional_words=emotional,
        negative_word_ratio=negative / total,
        positive_word_ratio=positive / total,
        cognitive_complexity=min(1.0, average_sentence / 20),
        lexical_diversity=diversity,
        verb_tense=VerbTense(past=past / verbs, present=present / verbs, future=future / verbs),
        first_person_pronouns=sum(1 for w in words if w in FIRST_PERSON),
        negation_frequency=sum(1 for w in words if w in NEGATIONS) / total,
        absolutism_words=sum(1 for w in words if w in ABSOLUTISMS),
        tentative_words=tentative,
        certainty_score=max(0.0, 1 - tentative / total * 10),
        coherence_score=min(1.0, 0.5 + diversity * 0.5),
        expressivity_score=min(1.0, emotional / total * 10),
        engagement_score=min(1.0, total / 50 * diversity),
    )


def assess_risk(
    text: str,
    sentiment: tuple[float, float],
    linguistic: LinguisticFeatures,
    positive: list[str],
    negative: list[str],
) -> tuple[str, list[str]]:
    """
    Additive risk score mapped to a level.

    Levels:
        >= 3 high, >= 1.5 moderate, >= 0.5 mild, else none
    """
    reasons: list[str] = []
    risk = 0.0

    if any(pattern.search(text) for pattern in HARM_PATTERNS):
        reasons.append("Explicit mention of self-harm or suicidal ideation")
        risk += 3
    score, intensity = sentiment
    if score < -0.1 and intensity > 0.05:
        reasons.append("Sustained negative emotional state")
        risk += 1
    if linguistic.negative_word_ratio > 0.1:
        reasons.append("High frequency of negative language")
        risk += 1
    if linguistic.absolutism_words > 2:
        reasons.append("Absolutist thinking patterns")
        risk += 1
    if linguistic.negation_frequency > 0.05:
        reasons.append("Frequent use of negation")
        risk += 0.5
    if linguistic.verb_tense.past > 0.6:
        reasons.append("Strong focus on the past (possible rumination)")
        risk += 0.5
    if len(negative) >= 3 and not positive:
        reasons.append("Multiple stressors with no positive factors")
        risk += 1

    if risk >= 3:
        level = "high"
    elif risk >= 1.5:
        level = "moderate"
    elif risk >= 0.5:
        level = "mild"
    else:
        level = "none"
    return level, reasons


def generate_summary(keywords: list[str], positive: list[str], negative: list[str]) -> str:
    topics = keywords[:2]
    if not positive and not negative:
        about = " and ".join(topics) if topics else "how things are going"
        return f"You shared thoughts on {about}. Keep checking in to track your wellbeing over time."
    if positive and not negative:
        about = ", ".join(topics) if topics else positive[0]
        return f"You shared positive experiences including {about}. Keep checking in to track your wellbeing over time."
    if negative and not positive:
        concerns = " and ".join(negative[:2])
        return f"You mentioned challenges with {concerns}. Consider reaching out for support if these concerns persist."
    return (
        f"You're experiencing both positive aspects ({positive[0]}) and challenges ({negative[0]}). "
        "This is normal - keep tracking to see patterns."
    )


def compute_quality(words: list[str], sentences: list[str]) -> float:
    """
    Penalties:
        ×0.6  fewer than 20 words
        ×0.9  more than 500 words
        ×0.8  fewer than 3 sentences
    Floored at 0.3.
    """
    quality = 1.0
    if len(words) < 20:
        quality *= 0.6
    if len(words) > 500:
        quality *= 0.9
    if len(sentences) < 3:
        quality *= 0.8
    return clamp(quality, 0.3, 1.0)


# =============================================================================
# LexiconTextAnalyzer
# =============================================================================


class LexiconTextAnalyzer:
    """TextAnalyzer strategy built from word lists and heuristics."""

    async def analyze(self, transcript: str, context: CheckinContext | None = None) -> TextAnalysis:
        return self.analyze_text(transcript)

    def analyze_text(self, transcript: str) -> TextAnalysis:
        """
        Raises:
            EnrichmentError: EMPTY_TRANSCRIPT, or TEXT_ANALYSIS_FAILED on an
                unexpected error
        """
        transcript = require_transcript(transcript)
        if is_too_short(transcript):
            logger.warning("Transcript too short (%d chars), returning neutral result", len(transcript.strip()))
            return neutral_result(SHORT_TRANSCRIPT_SUMMARY)

        try:
            return self._analyze(transcript)
        except EnrichmentError:
            raise
        except Exception as e:
            logger.error("Lexicon analysis failed: %s", e)
            raise EnrichmentError(
                f"Text analysis failed: {e}",
                ErrorCode.TEXT_ANALYSIS_FAILED,
                recoverable=True,
                component="text",
            ) from e

    def _analyze(self, transcript: str) -> TextAnalysis:
        cleaned = clean_transcript(transcript)
        words = tokenize(cleaned)
        if not words:
            return neutral_result(SHORT_TRANSCRIPT_SUMMARY)
        sentences = split_sentences(cleaned)

        sentiment = analyze_sentiment(cleaned)
        keywords = extract_keywords(words)[:MAX_KEYWORDS]
        positive, negative = extract_drivers(cleaned)
        linguistic = extract_linguistic(words, sentences, sentiment)
        risk_level, risk_reasons = assess_risk(cleaned, sentiment, linguistic, positive, negative)

        text_score = score_linguistic(linguistic, risk_level, len(words))
        quality = compute_quality(words, sentences)

        return TextAnalysis(
            summary=generate_summary(keywords, positive, negative),
            keywords=tuple(keywords),
            themes=tuple(keywords),
            positive_drivers=tuple(positive[:MAX_DRIVERS]),
            negative_drivers=tuple(negative[:MAX_DRIVERS]),
            risk_level=risk_level,
            risk_reasons=tuple(risk_reasons),
            mood_score=int(clamp(round_half_up(text_score / 10), 1, 10)),
            text_score=text_score,
            uncertainty=1.0 - quality,
            direction_of_change="unclear",
            linguistic=linguistic,
            transcript_length=len(words),
            average_sentence_length=len(words) / max(1, len(sentences)),
        )
