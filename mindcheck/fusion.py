"""
MindCheck v1 Fusion Engine

Combines per-modality scores into one 0-100 score with uncertainty,
direction-of-change and qualitative insights.

Public seams:
    - normalize_modality(features, baseline) -> 0-100 score
    - fuse(scores, confidences, ...) -> FusionResult
    - FusionEngine.fuse_checkin(text, audio, visual, baseline) -> FusionResult

Strategies (chosen by which modalities produced output):
    quality-weighted  text + audio + visual; weights are confidence shares
    equal             text + one of audio/visual; plain means
    text-only         text alone

INVARIANTS:
    - Text is mandatory; without it fusion fails with NO_VALID_MODALITIES
    - Final score is clamped to [0, 100] and rounded (halves up)
    - Uncertainty never decreases when a modality or the baseline is removed
    - Insights are capped at 5 contributing factors and 3 improvement areas
"""

import logging
import math
import time
from dataclasses import replace
from typing import Mapping

from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.models import (
    AudioFeatures,
    FeatureStat,
    FusionResult,
    LinguisticFeatures,
    TextAnalysis,
    UserBaseline,
    VisualFeatures,
)
from mindcheck.utils import clamp, round_half_up


logger = logging.getLogger(__name__)


MODALITIES = ("text", "audio", "visual")

NEUTRAL_SCORE = 50.0
Z_SCORE_SCALE = 25.0
FALLBACK_CONFIDENCE = 0.5
MISSING_MODALITY_PENALTY = 0.1
NO_BASELINE_PENALTY = 0.1
DIRECTION_THRESHOLD = 5.0

RISK_PENALTIES = {"high": 30.0, "moderate": 15.0, "mild": 5.0}

MAX_CONTRIBUTING_FACTORS = 5
MAX_IMPROVEMENT_AREAS = 3


# =============================================================================
# Per-Modality Normalization
# =============================================================================


def zscore_score(values: Mapping[str, float], stats: Mapping[str, FeatureStat]) -> float:
    """
    Map the mean z-score of matching features to 50 + 25 × mean(z).

    Rules:
        - Features with sigma <= 0 are ignored
        - No matching feature → 50
    """
    z_scores = [
        (value - stats[name].mu) / stats[name].sigma
        for name, value in values.items()
        if name in stats and stats[name].sigma > 0
    ]
    if not z_scores:
        return NEUTRAL_SCORE
    return clamp(NEUTRAL_SCORE + sum(z_scores) / len(z_scores) * Z_SCORE_SCALE, 0.0, 100.0)


def score_audio(features: AudioFeatures) -> float:
    """Rule-based audio score around 50."""
    score = 50.0
    if 40 < features.pitch_variability < 80:
        score += 10
    if 100 < features.speaking_rate < 150:
        score += 10
    elif features.speaking_rate < 80 or features.speaking_rate > 180:
        score -= 10
    if 5 < features.pause_frequency < 20:
        score += 5
    if 0.2 < features.pause_duration < 0.5:
        score += 5
    if 0.001 < features.voice_energy < 0.01:
        score += 10
    if features.energy_variability < 0.005:
        score += 5
    if features.harmonic_ratio > 0.05:
        score += 10
    return clamp(score, 0.0, 100.0)


def score_visual(features: VisualFeatures) -> float:
    """Rule-based visual score around 50."""
    score = 50.0
    if features.smile_frequency > 0.1:
        score += 15 * features.smile_frequency
    if features.smile_intensity > 0.5:
        score += 10 * features.smile_intensity
    if features.eye_contact > 0.5:
        score += 10
    if features.gaze_stability > 0.5:
        score += 5
    if features.head_stability > 0.5:
        score += 10
    score += 15 * features.emotional_valence
    if features.emotional_stability > 0.5:
        score += 10
    return clamp(score, 0.0, 100.0)


def score_linguistic(features: LinguisticFeatures, risk_level: str, word_count: int) -> float:
    """Linear text score around 50 from linguistic features and risk level."""
    score = 50.0
    score += features.sentiment_score * 30
    score += (features.positive_word_ratio - features.negative_word_ratio) * 100
    score += features.engagement_score * 10
    score += features.expressivity_score * 5
    score += features.coherence_score * 5
    score += features.certainty_score * 5
    score -= features.negation_frequency * 50
    if word_count > 0:
        score -= features.absolutism_words / word_count * 100
    score -= RISK_PENALTIES.get(risk_level, 0.0)
    return clamp(score, 0.0, 100.0)


def normalize_modality(
    features: AudioFeatures | VisualFeatures | TextAnalysis,
    baseline: UserBaseline | None = None,
) -> float:
    """
    Normalize one modality's output to a 0-100 score.

    A personal baseline with statistics for the modality switches to the
    z-score mapping. Text without linguistic features keeps its own
    text_score.
    """
    if isinstance(features, AudioFeatures):
        if baseline is not None and baseline.audio:
            return zscore_score(features.numeric_items(), baseline.audio)
        return score_audio(features)

    if isinstance(features, VisualFeatures):
        if baseline is not None and baseline.visual:
            return zscore_score(features.numeric_items(), baseline.visual)
        return score_visual(features)

    if isinstance(features, TextAnalysis):
        if baseline is not None and baseline.text and features.linguistic is not None:
            return zscore_score(features.linguistic.numeric_items(), baseline.text)
        return clamp(features.text_score, 0.0, 100.0)

    raise TypeError(f"Cannot normalize {type(features).__name__}")


def modality_confidence(features: AudioFeatures | VisualFeatures | TextAnalysis | None) -> float:
    """Confidence carried by a modality's own quality metadata (0 when absent)."""
    if features is None:
        return 0.0
    if isinstance(features, AudioFeatures):
        return clamp(features.quality, 0.0, 1.0)
    if isinstance(features, VisualFeatures):
        return clamp(features.overall_quality, 0.0, 1.0)
    return features.quality


# =============================================================================
# Fusion
# =============================================================================


def _usable(score: float | None) -> bool:
    return score is not None and not math.isnan(score)


def compute_uncertainty(confidence: float, modality_count: int, has_baseline: bool) -> float:
    """1 - confidence, +0.1 per missing modality, +0.1 without baseline; clamped."""
    uncertainty = 1.0 - confidence
    uncertainty += MISSING_MODALITY_PENALTY * (len(MODALITIES) - modality_count)
    if not has_baseline:
        uncertainty += NO_BASELINE_PENALTY
    return clamp(uncertainty, 0.0, 1.0)


def direction_of_change(score: float, baseline_score: float | None) -> str:
    """Compare against a reference score; "same" without one."""
    if baseline_score is None:
        return "same"
    diff = score - baseline_score
    if diff > DIRECTION_THRESHOLD:
        return "better"
    if diff < -DIRECTION_THRESHOLD:
        return "worse"
    return "same"


def fuse(
    scores: Mapping[str, float | None],
    confidences: Mapping[str, float],
    *,
    has_baseline: bool = False,
    baseline_score: float | None = None,
) -> FusionResult:
    """
    Fuse per-modality scores into one FusionResult (without insights).

    Args:
        scores: "text" / "audio" / "visual" → 0-100 score, None when absent
        confidences: Same keys → 0-1 confidence
        has_baseline: Whether a personal baseline informed normalization
        baseline_score: Reference score for direction-of-change

    Raises:
        EnrichmentError: NO_VALID_MODALITIES when text has no usable score
    """
    text = scores.get("text")
    audio = scores.get("audio")
    visual = scores.get("visual")
    has_text, has_audio, has_visual = _usable(text), _usable(audio), _usable(visual)

    text_conf = confidences.get("text", 0.0)
    audio_conf = confidences.get("audio", 0.0) if has_audio else 0.0
    visual_conf = confidences.get("visual", 0.0) if has_visual else 0.0

    if not has_text:
        raise EnrichmentError(
            "No valid modalities for fusion",
            ErrorCode.NO_VALID_MODALITIES,
            recoverable=False,
            component="fusion",
        )

    if has_audio and has_visual:
        method = "quality-weighted"
        total = audio_conf + visual_conf + text_conf
        if total == 0:
            raw = (audio + visual + text) / 3
            confidence = FALLBACK_CONFIDENCE
        else:
            raw = (audio * audio_conf + visual * visual_conf + text * text_conf) / total
            confidence = total / 3
    elif has_audio or has_visual:
        method = "equal"
        pairs = [(text, text_conf)]
        if has_audio:
            pairs.append((audio, audio_conf))
        if has_visual:
            pairs.append((visual, visual_conf))
        raw = sum(s for s, _ in pairs) / len(pairs)
        confidence = sum(c for _, c in pairs) / len(pairs)
    else:
        method = "text-only"
        raw = text
        confidence = text_conf

    score = round_half_up(clamp(raw, 0.0, 100.0))
    modality_count = 1 + int(has_audio) + int(has_visual)

    return FusionResult(
        score=score,
        direction_of_change=direction_of_change(score, baseline_score),
        uncertainty=compute_uncertainty(confidence, modality_count, has_baseline),
        audio_score=round_half_up(audio) if has_audio else None,
        visual_score=round_half_up(visual) if has_visual else None,
        text_score=round_half_up(text),
        audio_confidence=audio_conf,
        visual_confidence=visual_conf,
        text_confidence=text_conf,
        overall_confidence=clamp(confidence, 0.0, 1.0),
        fusion_method=method,
    )


# =============================================================================
# Insights
# =============================================================================


def contributing_factors(
    text: TextAnalysis,
    audio_score: float | None,
    visual: VisualFeatures | None,
) -> list[str]:
    """Rule list over drivers, sentiment and per-modality thresholds (max 5)."""
    factors: list[str] = []

    if text.positive_drivers:
        factors.append(f"Positive factors: {', '.join(text.positive_drivers[:2])}")
    if text.negative_drivers:
        factors.append(f"Challenges: {', '.join(text.negative_drivers[:2])}")

    if audio_score is not None:
        if audio_score > 60:
            factors.append("Energetic and expressive speech")
        elif audio_score < 40:
            factors.append("Low vocal energy or monotone speech")

    if visual is not None:
        if visual.smile_frequency > 0.2:
            factors.append("Frequent smiling")
        if visual.emotional_valence < -0.2:
            factors.append("Negative facial expressions")

    if text.linguistic is not None:
        if text.linguistic.sentiment_score > 0.1:
            factors.append("Positive language and sentiment")
        elif text.linguistic.sentiment_score < -0.1:
            factors.append("Negative language patterns")

    return factors[:MAX_CONTRIBUTING_FACTORS]


def improvement_areas(text: TextAnalysis) -> list[str]:
    """Suggested focus areas from risk, drivers and language (max 3)."""
    areas: list[str] = []

    if text.risk_level in ("high", "moderate"):
        areas.append("Consider reaching out to a mental health professional")
    if "sleep problems" in text.negative_drivers:
        areas.append("Focus on sleep hygiene and routine")
    if "stress/pressure" in text.negative_drivers:
        areas.append("Explore stress management techniques")
    if "loneliness" in text.negative_drivers:
        areas.append("Prioritize social connections")

    if text.linguistic is not None:
        if text.linguistic.engagement_score < 0.3:
            areas.append("Share more about your experiences in check-ins")
        if text.linguistic.negative_word_ratio > 0.1:
            areas.append("Notice and acknowledge positive moments")

    return areas[:MAX_IMPROVEMENT_AREAS]


# =============================================================================
# FusionEngine
# =============================================================================


class FusionEngine:
    """Normalize, fuse and explain one check-in."""

    def fuse_checkin(
        self,
        text: TextAnalysis,
        audio: AudioFeatures | None = None,
        visual: VisualFeatures | None = None,
        baseline: UserBaseline | None = None,
    ) -> FusionResult:
        """
        Raises:
            EnrichmentError: NO_VALID_MODALITIES, or FUSION_FAILED wrapping
                any unexpected error (never recoverable)
        """
        started = time.perf_counter()
        try:
            audio_score = normalize_modality(audio, baseline) if audio is not None else None
            visual_score = normalize_modality(visual, baseline) if visual is not None else None
            text_score = normalize_modality(text, baseline)

            result = fuse(
                {"text": text_score, "audio": audio_score, "visual": visual_score},
                {
                    "text": modality_confidence(text),
                    "audio": modality_confidence(audio),
                    "visual": modality_confidence(visual),
                },
                has_baseline=baseline is not None,
                baseline_score=baseline.reference_score if baseline is not None else None,
            )

            return replace(
                result,
                contributing_factors=tuple(contributing_factors(text, audio_score, visual)),
                improvement_areas=tuple(improvement_areas(text)),
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )
        except EnrichmentError:
            raise
        except Exception as e:
            logger.error("Fusion failed: %s", e)
            raise EnrichmentError(
                f"Fusion failed: {e}",
                ErrorCode.FUSION_FAILED,
                recoverable=False,
                component="fusion",
            ) from e
