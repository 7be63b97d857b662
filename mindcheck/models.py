"""
MindCheck v1 Data Model.

Responsibilities:
- Immutable value types flowing through the pipeline
- JSON-safe serialization (snake_case keys) for storage and display

Invariants:
- Every type is a frozen dataclass; sequences are tuples
- Feature sets are constructed once per check-in and never mutated
- Placeholder feature sets are all-zero (jitter absent) so the stored
  record shape is always structurally complete
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Mapping

from mindcheck import ENRICHMENT_MODE


RISK_LEVELS = ("none", "mild", "moderate", "high")
DIRECTIONS = ("better", "same", "worse")
TEXT_DIRECTIONS = ("better", "worse", "same", "unclear")
FUSION_METHODS = ("quality-weighted", "equal", "text-only")

TEXT_RESULT_VERSION = "v1.0"


# =============================================================================
# Input
# =============================================================================


@dataclass(frozen=True)
class CapturedMedia:
    """
    Raw media captured for one check-in.

    Attributes:
        audio: Encoded audio byte stream (WAV/FLAC/OGG), or None
        video_frames: Ordered encoded frame images (JPEG/PNG bytes)
        duration: Total capture duration in seconds
        start_time: Capture start (epoch seconds)
        end_time: Capture end (epoch seconds)

    Rules:
        - Read-only view for extractors
        - Never persisted
    """
    audio: bytes | None = None
    video_frames: tuple[bytes, ...] = ()
    duration: float = 0.0
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)

    @property
    def has_video(self) -> bool:
        return len(self.video_frames) > 0


@dataclass(frozen=True)
class CheckinContext:
    """Short conversational context forwarded to the text-understanding service."""
    checkin_id: str = "unknown"
    student_first_name: str | None = None
    previous_themes: tuple[str, ...] = ()
    previous_score: float | None = None
    previous_direction: str | None = None

    def to_request_dict(self) -> dict[str, Any]:
        return {
            "checkin_id": self.checkin_id,
            "student_first_name": self.student_first_name,
            "previous_text_themes": list(self.previous_themes),
            "previous_mind_measure_score": self.previous_score,
            "previous_direction_of_change": self.previous_direction,
        }


# =============================================================================
# Baseline
# =============================================================================


@dataclass(frozen=True)
class FeatureStat:
    """Per-feature baseline statistics."""
    mu: float
    sigma: float


@dataclass(frozen=True)
class UserBaseline:
    """
    Personal baseline for z-score normalization and direction-of-change.

    Attributes:
        user_id: Owner of the baseline
        audio: Feature name -> FeatureStat for audio features
        visual: Feature name -> FeatureStat for visual features
        text: Feature name -> FeatureStat for linguistic features
        reference_score: Historical score used for direction-of-change
        sample_count: Number of check-ins the baseline was built from
    """
    user_id: str
    audio: Mapping[str, FeatureStat] = field(default_factory=dict)
    visual: Mapping[str, FeatureStat] = field(default_factory=dict)
    text: Mapping[str, FeatureStat] = field(default_factory=dict)
    reference_score: float | None = None
    sample_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserBaseline":
        def stats(table: Mapping[str, Any] | None) -> dict[str, FeatureStat]:
            return {
                name: FeatureStat(mu=float(entry["mu"]), sigma=float(entry["sigma"]))
                for name, entry in (table or {}).items()
            }

        reference = data.get("reference_score")
        return cls(
            user_id=str(data.get("user_id", "")),
            audio=stats(data.get("audio")),
            visual=stats(data.get("visual")),
            text=stats(data.get("text")),
            reference_score=None if reference is None else float(reference),
            sample_count=int(data.get("sample_count", 0)),
        )


# =============================================================================
# Feature Sets
# =============================================================================


def _numeric_items(obj: Any) -> dict[str, float]:
    """Flat name -> value map of the numeric fields of a dataclass."""
    items: dict[str, float] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            items[f.name] = float(value)
    return items


@dataclass(frozen=True)
class AudioFeatures:
    """
    23 audio features plus quality metadata.

    Groups:
        pitch/prosody (8), timing/rhythm (7), energy/intensity (5),
        voice quality (3)

    Rules:
        - jitter is None when fewer than two pitch samples exist
        - shimmer and harmonic_ratio are reserved (always 0)
    """
    # Pitch/prosody
    mean_pitch: float
    pitch_range: float
    pitch_variability: float
    pitch_contour_slope: float
    jitter: float | None
    shimmer: float
    harmonic_ratio: float
    pitch_dynamics: float

    # Timing/rhythm
    speaking_rate: float
    articulation_rate: float
    pause_frequency: float
    pause_duration: float
    speech_ratio: float
    filled_pause_rate: float
    silence_duration: float

    # Energy/intensity
    voice_energy: float
    energy_variability: float
    energy_contour: float
    dynamic_range: float
    stress_patterns: float

    # Voice quality
    spectral_centroid: float
    spectral_flux: float
    voiced_ratio: float

    # Metadata
    quality: float
    duration: float

    @classmethod
    def placeholder(cls) -> "AudioFeatures":
        """All-zero feature set for a modality that was never produced."""
        values = {f.name: 0.0 for f in fields(cls)}
        values["jitter"] = None
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def numeric_items(self) -> dict[str, float]:
        return _numeric_items(self)


@dataclass(frozen=True)
class VisualFeatures:
    """
    13 visual features plus quality metadata.

    Groups:
        facial expression (6), gaze/attention (2), movement/behavior (2),
        affect (3)
    """
    # Facial expression
    smile_frequency: float
    smile_intensity: float
    eyebrow_raise_frequency: float
    eyebrow_furrow_frequency: float
    mouth_tension: float
    facial_symmetry: float

    # Gaze/attention
    eye_contact: float
    gaze_stability: float

    # Movement/behavior
    head_movement: float
    head_stability: float

    # Affect
    emotional_valence: float
    emotional_arousal: float
    emotional_stability: float

    # Metadata
    face_presence_quality: float
    overall_quality: float
    frames_analyzed: int

    @classmethod
    def placeholder(cls) -> "VisualFeatures":
        """All-zero feature set for a modality that was never produced."""
        values: dict[str, Any] = {f.name: 0.0 for f in fields(cls)}
        values["frames_analyzed"] = 0
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def numeric_items(self) -> dict[str, float]:
        return _numeric_items(self)


@dataclass(frozen=True)
class VerbTense:
    """Share of past/present/future verb markers (sums to 1 when any exist)."""
    past: float = 0.0
    present: float = 0.0
    future: float = 0.0


@dataclass(frozen=True)
class LinguisticFeatures:
    """16 linguistic features used only for fusion scoring."""
    sentiment_score: float
    sentiment_intensity: float
    emotional_words: int
    negative_word_ratio: float
    positive_word_ratio: float
    cognitive_complexity: float
    lexical_diversity: float
    verb_tense: VerbTense
    first_person_pronouns: int
    negation_frequency: float
    absolutism_words: int
    tentative_words: int
    certainty_score: float
    coherence_score: float
    expressivity_score: float
    engagement_score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def numeric_items(self) -> dict[str, float]:
        items = _numeric_items(self)
        items["verb_tense_past"] = self.verb_tense.past
        items["verb_tense_present"] = self.verb_tense.present
        items["verb_tense_future"] = self.verb_tense.future
        return items


@dataclass(frozen=True)
class TextAnalysis:
    """
    Text understanding result, identical in shape for every analyzer strategy.

    Attributes:
        summary: Natural-language summary for the user
        keywords / themes: Main topics
        positive_drivers / negative_drivers: Things going well / concerns
        risk_level: One of RISK_LEVELS
        risk_reasons: Why that risk level was assigned
        mood_score: 1-10 mood rating
        text_score: 0-100 text-only score
        uncertainty: 0-1, higher means less sure
        direction_of_change: One of TEXT_DIRECTIONS
        linguistic: Linguistic features (None when the provider returns none)
        transcript_length: Word count
        average_sentence_length: Words per sentence
    """
    summary: str
    keywords: tuple[str, ...] = ()
    themes: tuple[str, ...] = ()
    positive_drivers: tuple[str, ...] = ()
    negative_drivers: tuple[str, ...] = ()
    risk_level: str = "none"
    risk_reasons: tuple[str, ...] = ()
    mood_score: int = 5
    text_score: float = 50.0
    uncertainty: float = 0.9
    direction_of_change: str = "unclear"
    notable_quotes: tuple[str, ...] = ()
    linguistic: LinguisticFeatures | None = None
    transcript_length: int = 0
    average_sentence_length: float = 0.0
    version: str = TEXT_RESULT_VERSION

    @property
    def quality(self) -> float:
        """Confidence in the analysis (1 - uncertainty)."""
        return max(0.0, min(1.0, 1.0 - self.uncertainty))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        data["quality"] = self.quality
        return data


# =============================================================================
# Fusion and Output
# =============================================================================


@dataclass(frozen=True)
class FusionResult:
    """Fused score with per-modality breakdown and insights."""
    score: int
    direction_of_change: str
    uncertainty: float
    audio_score: int | None
    visual_score: int | None
    text_score: int
    audio_confidence: float
    visual_confidence: float
    text_confidence: float
    overall_confidence: float
    fusion_method: str
    contributing_factors: tuple[str, ...] = ()
    improvement_areas: tuple[str, ...] = ()
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["contributing_factors"] = list(self.contributing_factors)
        data["improvement_areas"] = list(self.improvement_areas)
        return data


@dataclass(frozen=True)
class DashboardRecord:
    """
    Storage/display-ready result of one check-in.

    Rules:
        - audio_features / visual_features are always present; placeholders
          stand in for modalities that were never produced
    """
    check_in_id: str
    user_id: str
    timestamp: str
    score: int
    direction_of_change: str
    summary: str
    keywords: tuple[str, ...]
    themes: tuple[str, ...]
    positive_drivers: tuple[str, ...]
    negative_drivers: tuple[str, ...]
    risk_level: str
    risk_reasons: tuple[str, ...]
    contributing_factors: tuple[str, ...]
    improvement_areas: tuple[str, ...]
    mood_score: int
    uncertainty: float
    confidence: float
    audio_features: AudioFeatures
    visual_features: VisualFeatures
    text_analysis: TextAnalysis
    fusion_result: FusionResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_in_id": self.check_in_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "score": self.score,
            "direction_of_change": self.direction_of_change,
            "summary": self.summary,
            "keywords": list(self.keywords),
            "themes": list(self.themes),
            "positive_drivers": list(self.positive_drivers),
            "negative_drivers": list(self.negative_drivers),
            "risk_level": self.risk_level,
            "risk_reasons": list(self.risk_reasons),
            "contributing_factors": list(self.contributing_factors),
            "improvement_areas": list(self.improvement_areas),
            "mood_score": self.mood_score,
            "uncertainty": self.uncertainty,
            "confidence": self.confidence,
            "full_analysis": {
                "audio_features": self.audio_features.to_dict(),
                "visual_features": self.visual_features.to_dict(),
                "text_analysis": self.text_analysis.to_dict(),
                "fusion_result": self.fusion_result.to_dict(),
            },
        }


@dataclass(frozen=True)
class CheckinRequest:
    """
    Caller input for one enrichment.

    Attributes:
        user_id: Owner of the check-in
        transcript: Conversation transcript (required)
        audio: Optional encoded audio bytes
        video_frames: Optional ordered encoded frames
        duration: Conversation duration in seconds
        start_time / end_time: Capture start and end (epoch seconds)
        session_id: Conversation/session identifier
        check_in_id: Explicit check-in id (generated when None)
        context: Prior check-in context for text understanding
        baseline: Personal baseline, if one exists
    """
    user_id: str
    transcript: str
    audio: bytes | None = None
    video_frames: tuple[bytes, ...] = ()
    duration: float = 0.0
    start_time: float = 0.0
    end_time: float = 0.0
    session_id: str | None = None
    check_in_id: str | None = None
    context: CheckinContext | None = None
    baseline: UserBaseline | None = None


@dataclass(frozen=True)
class ModalityScore:
    """Normalized score and confidence of one modality."""
    score: float
    confidence: float


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Orchestrator output: the record plus run metadata.

    Attributes:
        record: Assembled DashboardRecord
        audio_features / visual_features: Extracted features, None when absent
        modalities: Per-modality score/confidence for modalities used
        warnings: Structured warnings from degraded extraction
        transcript_length: Transcript length in characters
    """
    record: DashboardRecord
    audio_features: AudioFeatures | None
    visual_features: VisualFeatures | None
    modalities: Mapping[str, ModalityScore]
    warnings: tuple[dict, ...]
    started_at: str
    processing_time_ms: float
    transcript_length: int
    duration: float
    session_id: str | None
    assessment_type: str = "checkin"
    enrichment_mode: str = ENRICHMENT_MODE

    @property
    def final_score(self) -> int:
        return self.record.score

    @property
    def modalities_used(self) -> tuple[str, ...]:
        return tuple(self.modalities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "record": self.record.to_dict(),
            "final_score": self.final_score,
            "audio_features": None if self.audio_features is None else self.audio_features.to_dict(),
            "visual_features": None if self.visual_features is None else self.visual_features.to_dict(),
            "modalities": {
                name: {"score": m.score, "confidence": m.confidence}
                for name, m in self.modalities.items()
            },
            "modalities_used": list(self.modalities_used),
            "warnings": list(self.warnings),
            "started_at": self.started_at,
            "processing_time_ms": self.processing_time_ms,
            "transcript_length": self.transcript_length,
            "duration": self.duration,
            "session_id": self.session_id,
            "assessment_type": self.assessment_type,
            "enrichment_mode": self.enrichment_mode,
        }
