"""
Visual Feature Extractor

Responsibilities:
    - Sample at most 20 frames evenly (first and last always included)
    - Submit them to the face-attribute service in one batch
    - Compute 13 features: facial expression (6), gaze/attention (2),
      movement/behavior (2), affect (3)
    - Score face presence and overall visual quality

Invariants:
    - Only frames with a detected face ("valid frames") contribute features
    - Valence is clamped to [-1, 1]; every other feature to its natural range
    - Zero analysable faces fails with recoverable REKOGNITION_NO_FACES
    - Any other failure surfaces as recoverable VISUAL_EXTRACTION_FAILED

Note:
    Still frames at ~0.5 fps cannot support blink rate, fidgeting or gesture
    features, so none are computed.
"""

import logging
from typing import Sequence, TypeVar

from mindcheck.config import DEFAULT_MAX_FRAMES
from mindcheck.contracts import VISUAL_CONTRACT, Extractor, MediaValidator
from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.models import CapturedMedia, VisualFeatures
from mindcheck.providers.face import FaceAnalysisBatch, FaceAttributeService, FaceObservation
from mindcheck.utils import clamp, mean, population_std


logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Thresholds (FROZEN)
# =============================================================================

SMILE_CONFIDENCE = 50.0
MOUTH_OPEN_CONFIDENCE = 50.0
EMOTION_CONFIDENCE = 30.0
EYE_CONTACT_DEGREES = 15.0
ANGLE_NORMALIZER = 30.0
ROLL_NORMALIZER = 30.0

POSITIVE_EMOTIONS = ("HAPPY", "CALM")
NEGATIVE_EMOTIONS = ("SAD", "ANGRY", "DISGUSTED", "FEAR")
HIGH_AROUSAL_EMOTIONS = ("ANGRY", "FEAR", "SURPRISED", "HAPPY")
LOW_AROUSAL_EMOTIONS = ("CALM", "SAD")
AROUSAL_EPSILON = 0.001

DEFAULT_IMAGE_QUALITY = 50.0


def sample_frames(frames: Sequence[T], max_frames: int = DEFAULT_MAX_FRAMES) -> list[T]:
    """
    Evenly sample at most max_frames frames.

    Rules:
        - All frames are kept when there are no more than max_frames
        - Otherwise index i = floor(i * len / max_frames)
        - The first and last captured frames are always included
    """
    if len(frames) <= max_frames:
        return list(frames)

    step = len(frames) / max_frames
    sampled = [frames[int(i * step)] for i in range(max_frames)]
    sampled[0] = frames[0]
    sampled[-1] = frames[-1]
    return sampled


# =============================================================================
# Feature Groups
# =============================================================================


def _has_emotion(face: FaceObservation, labels: Sequence[str]) -> bool:
    return any(label in labels and conf > EMOTION_CONFIDENCE for label, conf in face.emotions)


def expression_features(faces: list[FaceObservation]) -> dict:
    """Facial expression group (6 features)."""
    n = len(faces)
    smiling = [f for f in faces if f.smile and f.smile.value and f.smile.confidence > SMILE_CONFIDENCE]
    mouth_open = [
        f for f in faces
        if f.mouth_open and f.mouth_open.value and f.mouth_open.confidence > MOUTH_OPEN_CONFIDENCE
    ]

    symmetry = []
    for face in faces:
        if face.pose is None or face.pose.roll is None:
            symmetry.append(1.0)
        else:
            symmetry.append(max(0.0, 1 - abs(face.pose.roll) / ROLL_NORMALIZER))

    return {
        "smile_frequency": len(smiling) / n,
        "smile_intensity": mean([f.smile.confidence / 100 for f in smiling]),
        "eyebrow_raise_frequency": sum(1 for f in faces if _has_emotion(f, ("SURPRISED",))) / n,
        "eyebrow_furrow_frequency": sum(1 for f in faces if _has_emotion(f, ("ANGRY", "CONFUSED"))) / n,
        "mouth_tension": 1 - len(mouth_open) / n,
        "facial_symmetry": mean(symmetry),
    }


def gaze_features(faces: list[FaceObservation]) -> dict:
    """Gaze/attention group (2 features)."""
    contact = 0
    for face in faces:
        if face.pose is None:
            continue
        if abs(face.pose.yaw or 0.0) < EYE_CONTACT_DEGREES and abs(face.pose.pitch or 0.0) < EYE_CONTACT_DEGREES:
            contact += 1

    yaws = [f.pose.yaw for f in faces if f.pose and f.pose.yaw is not None]
    pitches = [f.pose.pitch for f in faces if f.pose and f.pose.pitch is not None]
    average_std = (population_std(yaws) + population_std(pitches)) / 2

    return {
        "eye_contact": contact / len(faces),
        "gaze_stability": max(0.0, 1 - average_std / ANGLE_NORMALIZER),
    }


def movement_features(faces: list[FaceObservation]) -> dict:
    """Movement/behavior group (2 features) from consecutive valid frames."""
    changes = []
    for prev, curr in zip(faces, faces[1:]):
        if prev.pose is None or curr.pose is None:
            continue
        if prev.pose.yaw is None or curr.pose.yaw is None:
            continue
        changes.append(
            abs(curr.pose.yaw - prev.pose.yaw)
            + abs((curr.pose.pitch or 0.0) - (prev.pose.pitch or 0.0))
            + abs((curr.pose.roll or 0.0) - (prev.pose.roll or 0.0))
        )

    head_movement = mean(changes)
    return {
        "head_movement": head_movement,
        "head_stability": max(0.0, 1 - head_movement / ANGLE_NORMALIZER),
    }


def affect_features(faces: list[FaceObservation]) -> dict:
    """Affect group (3 features) from per-label mean emotion confidence."""
    by_label: dict[str, list[float]] = {}
    for face in faces:
        for label, confidence in face.emotions:
            by_label.setdefault(label, []).append(confidence / 100)
    avg = {label: mean(values) for label, values in by_label.items()}

    def total(labels: Sequence[str]) -> float:
        return sum(avg.get(label, 0.0) for label in labels)

    valence = total(POSITIVE_EMOTIONS) - total(NEGATIVE_EMOTIONS)
    high = total(HIGH_AROUSAL_EMOTIONS)
    arousal = high / (high + total(LOW_AROUSAL_EMOTIONS) + AROUSAL_EPSILON)

    frame_valence = [
        sum(f.emotion(label) for label in POSITIVE_EMOTIONS) / 100
        - sum(f.emotion(label) for label in NEGATIVE_EMOTIONS) / 100
        for f in faces
    ]
    stability = 1 - population_std(frame_valence)

    return {
        "emotional_valence": clamp(valence, -1.0, 1.0),
        "emotional_arousal": clamp(arousal, 0.0, 1.0),
        "emotional_stability": clamp(stability, 0.0, 1.0),
    }


def overall_quality(faces: list[FaceObservation], presence: float) -> float:
    """
    0.4 × presence + 0.3 × mean detection confidence + 0.3 × mean image quality.

    Image quality per frame is (brightness + sharpness) / 200, or 0.5 when the
    provider reported no quality block.
    """
    if not faces:
        return 0.0
    confidence = mean([f.confidence / 100 for f in faces])
    image = mean([
        ((f.brightness or DEFAULT_IMAGE_QUALITY) + (f.sharpness or DEFAULT_IMAGE_QUALITY)) / 200
        if f.has_quality else 0.5
        for f in faces
    ])
    return clamp(0.4 * presence + 0.3 * confidence + 0.3 * image, 0.0, 1.0)


def features_from_batch(batch: FaceAnalysisBatch, sampled: int) -> VisualFeatures:
    """
    Derive VisualFeatures from one provider batch.

    Raises:
        EnrichmentError: REKOGNITION_NO_FACES when no frame holds a face
    """
    faces = batch.valid_faces
    if batch.analyzed_frames == 0 or not faces:
        raise EnrichmentError(
            "Face service did not find a face in any frame",
            ErrorCode.REKOGNITION_NO_FACES,
            recoverable=True,
            component="visual",
        )

    total = batch.total_frames or sampled
    presence = clamp(len(faces) / total, 0.0, 1.0)

    return VisualFeatures(
        **expression_features(faces),
        **gaze_features(faces),
        **movement_features(faces),
        **affect_features(faces),
        face_presence_quality=presence,
        overall_quality=overall_quality(faces, presence),
        frames_analyzed=batch.analyzed_frames,
    )


# =============================================================================
# VisualFeatureExtractor
# =============================================================================


class VisualFeatureExtractor(Extractor[VisualFeatures]):
    """
    Extract VisualFeatures from CapturedMedia.video_frames.

    Contract:
        - Requires: media.video_frames (at least one)
        - Fails with: NO_VIDEO_DATA (not recoverable), REKOGNITION_NO_FACES
          and VISUAL_EXTRACTION_FAILED (recoverable)
    """

    contract = VISUAL_CONTRACT

    def __init__(
        self,
        service: FaceAttributeService,
        max_frames: int = DEFAULT_MAX_FRAMES,
        validator: MediaValidator | None = None,
    ):
        self.service = service
        self.max_frames = max_frames
        self.validator = validator or MediaValidator()

    async def extract(self, media: CapturedMedia) -> VisualFeatures:
        self.validator.validate(self.contract, media)

        frames = sample_frames(media.video_frames, self.max_frames)
        try:
            batch = await self.service.analyze_frames(frames)
            features = features_from_batch(batch, len(frames))
        except EnrichmentError:
            raise
        except Exception as e:
            logger.warning("Visual extraction failed: %s", e)
            raise EnrichmentError(
                f"Visual extraction failed: {e}",
                ErrorCode.VISUAL_EXTRACTION_FAILED,
                recoverable=True,
                component="visual",
            ) from e

        logger.debug(
            "Visual features: %d/%d frames with a face, quality %.2f",
            features.frames_analyzed, len(frames), features.overall_quality,
        )
        return features
