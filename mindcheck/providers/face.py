"""
Face-attribute recognition provider.

Responsibilities:
- Define the FaceAttributeService interface consumed by the visual extractor
- Parse the provider's per-frame face attribute payload into frozen values
- HTTP client (httpx) submitting one batch of base64 frames per check-in

Wire format (response):
    {
      "totalFrames": int,
      "analyzedFrames": int,
      "analyses": [{"frameIndex": int, "faceDetails": {...} | null}, ...]
    }
    faceDetails keys: Confidence, BoundingBox, Landmarks, Pose{Roll,Yaw,Pitch},
    Quality{Brightness,Sharpness}, Smile{Value,Confidence},
    MouthOpen{Value,Confidence}, EyesOpen{Value,Confidence},
    Emotions[{Type,Confidence}]
"""

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import httpx


logger = logging.getLogger(__name__)


# =============================================================================
# Parsed Values
# =============================================================================


@dataclass(frozen=True)
class Attribute:
    """Boolean attribute with provider confidence (0-100)."""
    value: bool
    confidence: float


@dataclass(frozen=True)
class Pose:
    """Head pose in degrees; None when the provider omitted an angle."""
    roll: float | None = None
    yaw: float | None = None
    pitch: float | None = None


@dataclass(frozen=True)
class FaceObservation:
    """Attributes of the face detected in one frame."""
    confidence: float = 0.0
    pose: Pose | None = None
    brightness: float | None = None
    sharpness: float | None = None
    smile: Attribute | None = None
    mouth_open: Attribute | None = None
    eyes_open: Attribute | None = None
    emotions: tuple[tuple[str, float], ...] = ()
    bounding_box: Mapping[str, float] | None = None
    landmarks: tuple[Mapping[str, Any], ...] = ()
    has_quality: bool = False

    def emotion(self, label: str) -> float:
        """Confidence (0-100) of an emotion label, 0 when absent."""
        for name, confidence in self.emotions:
            if name == label:
                return confidence
        return 0.0


@dataclass(frozen=True)
class FrameAnalysis:
    """Provider verdict for one submitted frame (face is None for "no face")."""
    frame_index: int
    face: FaceObservation | None


@dataclass(frozen=True)
class FaceAnalysisBatch:
    """Provider response for one batch of frames."""
    total_frames: int
    analyzed_frames: int
    analyses: tuple[FrameAnalysis, ...]

    @property
    def valid_faces(self) -> list[FaceObservation]:
        return [a.face for a in self.analyses if a.face is not None]


class FaceAttributeService(Protocol):
    """Anything that can analyse an ordered batch of encoded frames."""

    async def analyze_frames(self, frames: Sequence[bytes]) -> FaceAnalysisBatch:
        ...


# =============================================================================
# Parsing
# =============================================================================


def _attribute(raw: Any) -> Attribute | None:
    if not isinstance(raw, Mapping) or "Value" not in raw:
        return None
    return Attribute(value=bool(raw["Value"]), confidence=float(raw.get("Confidence") or 0.0))


def _optional_float(raw: Mapping[str, Any], key: str) -> float | None:
    value = raw.get(key)
    return None if value is None else float(value)


def parse_face_details(raw: Mapping[str, Any]) -> FaceObservation:
    """Convert one provider faceDetails object into a FaceObservation."""
    pose_raw = raw.get("Pose")
    pose = None
    if isinstance(pose_raw, Mapping):
        pose = Pose(
            roll=_optional_float(pose_raw, "Roll"),
            yaw=_optional_float(pose_raw, "Yaw"),
            pitch=_optional_float(pose_raw, "Pitch"),
        )

    quality = raw.get("Quality")
    has_quality = isinstance(quality, Mapping)
    quality = quality if has_quality else {}

    emotions = tuple(
        (str(e.get("Type", "")).upper(), float(e.get("Confidence") or 0.0))
        for e in raw.get("Emotions") or []
        if isinstance(e, Mapping)
    )

    return FaceObservation(
        confidence=float(raw.get("Confidence") or 0.0),
        pose=pose,
        brightness=_optional_float(quality, "Brightness"),
        sharpness=_optional_float(quality, "Sharpness"),
        smile=_attribute(raw.get("Smile")),
        mouth_open=_attribute(raw.get("MouthOpen")),
        eyes_open=_attribute(raw.get("EyesOpen")),
        emotions=emotions,
        bounding_box=raw.get("BoundingBox"),
        landmarks=tuple(raw.get("Landmarks") or ()),
        has_quality=has_quality,
    )


def parse_face_response(payload: Mapping[str, Any]) -> FaceAnalysisBatch:
    """
    Convert the provider response into a FaceAnalysisBatch.

    Raises:
        ValueError: If the payload is not a face analysis response
    """
    if not isinstance(payload, Mapping) or "analyses" not in payload:
        raise ValueError("Face service response is missing 'analyses'")

    analyses = []
    for position, entry in enumerate(payload["analyses"]):
        details = entry.get("faceDetails")
        analyses.append(FrameAnalysis(
            frame_index=int(entry.get("frameIndex", position)),
            face=parse_face_details(details) if isinstance(details, Mapping) else None,
        ))

    analyzed = payload.get("analyzedFrames")
    if analyzed is None:
        analyzed = sum(1 for a in analyses if a.face is not None)

    return FaceAnalysisBatch(
        total_frames=int(payload.get("totalFrames", len(analyses))),
        analyzed_frames=int(analyzed),
        analyses=tuple(analyses),
    )


# =============================================================================
# HTTP Client
# =============================================================================


class HttpFaceAttributeClient:
    """
    Face-attribute service reached over HTTP.

    One POST per check-in with body {"frames": [base64, ...]}. Cancelling the
    awaiting task cancels the in-flight request.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        payload_warn_bytes: int = int(4.5 * 1024 * 1024),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid face service URL: {url}. Must start with http:// or https://")
        self.url = url
        self.payload_warn_bytes = payload_warn_bytes
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self._transport = transport

    async def analyze_frames(self, frames: Sequence[bytes]) -> FaceAnalysisBatch:
        """
        Submit frames and parse the per-frame face attributes.

        Raises:
            RuntimeError: If the provider answers with a non-2xx status
            httpx.RequestError: On transport failure
            ValueError: If the response body is not a face analysis
        """
        encoded = [base64.b64encode(frame).decode("ascii") for frame in frames]
        body = json.dumps({"frames": encoded})

        if len(body) > self.payload_warn_bytes:
            logger.warning(
                "Face service payload is %d bytes (limit %d); request may time out",
                len(body), self.payload_warn_bytes,
            )

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, content=body, headers=self.headers)

        if response.is_error:
            details = f"Status: {response.status_code} {response.reason_phrase}"
            try:
                details += f", Details: {json.dumps(response.json())}"
            except ValueError:
                details += ", Could not parse error response as JSON"
            raise RuntimeError(f"Face service request failed: {details}")

        return parse_face_response(response.json())
