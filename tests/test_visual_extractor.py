"""
MindCheck v1 Visual Extractor Tests

Coverage:
- Even frame sampling (first and last always kept)
- 13 features from provider face attributes
- No faces → REKOGNITION_NO_FACES (recoverable)
- Provider failure → VISUAL_EXTRACTION_FAILED (recoverable)
- HTTP face client request/response handling (mock transport)
"""

import asyncio
import base64
import json

import httpx
import pytest

from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.extractors.visual import VisualFeatureExtractor, sample_frames
from mindcheck.models import CapturedMedia
from mindcheck.providers.face import HttpFaceAttributeClient, parse_face_response


class TestSampleFrames:
    """Test sample_frames."""

    def test_short_sequences_are_kept_whole(self):
        frames = list(range(7))
        assert sample_frames(frames, 20) == frames

    def test_long_sequences_are_bounded(self):
        frames = list(range(50))

        sampled = sample_frames(frames, 20)

        assert len(sampled) == 20
        assert sampled[0] == 0
        assert sampled[-1] == 49
        assert sampled[1] == 2

    def test_sampled_frames_keep_capture_order(self):
        sampled = sample_frames(list(range(100)), 20)
        assert sampled == sorted(sampled)


class TestVisualFeatureExtractor:
    """Extraction against an in-process face service."""

    def test_features_from_consistent_faces(self, frames, face_service_factory):
        service = face_service_factory()
        extractor = VisualFeatureExtractor(service)

        features = asyncio.run(extractor.extract(CapturedMedia(video_frames=frames)))

        assert features.frames_analyzed == len(frames)
        assert features.smile_frequency == pytest.approx(1.0)
        assert features.smile_intensity == pytest.approx(0.9)
        assert features.mouth_tension == pytest.approx(1.0)
        assert features.facial_symmetry == pytest.approx(1 - 1 / 30)
        assert features.eye_contact == pytest.approx(1.0)
        assert features.gaze_stability == pytest.approx(1.0)
        assert features.head_movement == pytest.approx(0.0)
        assert features.head_stability == pytest.approx(1.0)
        assert features.emotional_valence == pytest.approx(0.85)
        assert features.emotional_arousal == pytest.approx(0.8 / 0.951)
        assert features.emotional_stability == pytest.approx(1.0)
        assert features.face_presence_quality == pytest.approx(1.0)
        assert features.overall_quality == pytest.approx(0.4 + 0.3 * 0.99 + 0.3 * 0.85)

    def test_only_frames_with_faces_contribute(
        self, frames, face_service_factory, face_payload_factory, face_details_factory
    ):
        payload = face_payload_factory([
            face_details_factory(smiling=True),
            None,
            face_details_factory(smiling=False),
            None,
        ])
        extractor = VisualFeatureExtractor(face_service_factory(payload=payload))

        features = asyncio.run(extractor.extract(CapturedMedia(video_frames=frames[:4])))

        assert features.frames_analyzed == 2
        assert features.smile_frequency == pytest.approx(0.5)
        assert features.face_presence_quality == pytest.approx(0.5)

    def test_head_movement_between_frames(
        self, frames, face_service_factory, face_payload_factory, face_details_factory
    ):
        payload = face_payload_factory([
            face_details_factory(yaw=0.0, pitch=0.0, roll=0.0),
            face_details_factory(yaw=10.0, pitch=5.0, roll=0.0),
        ])
        extractor = VisualFeatureExtractor(face_service_factory(payload=payload))

        features = asyncio.run(extractor.extract(CapturedMedia(video_frames=frames[:2])))

        assert features.head_movement == pytest.approx(15.0)
        assert features.head_stability == pytest.approx(0.5)

    def test_frames_sent_to_service_are_bounded(self, face_service_factory):
        service = face_service_factory()
        extractor = VisualFeatureExtractor(service, max_frames=5)
        frames = tuple(f"f{i}".encode() for i in range(12))

        asyncio.run(extractor.extract(CapturedMedia(video_frames=frames)))

        assert len(service.calls) == 1
        sent = service.calls[0]
        assert len(sent) == 5
        assert sent[0] == frames[0]
        assert sent[-1] == frames[-1]

    def test_no_faces_is_recoverable(self, frames, face_service_factory, face_payload_factory):
        payload = face_payload_factory([None] * len(frames))
        extractor = VisualFeatureExtractor(face_service_factory(payload=payload))

        with pytest.raises(EnrichmentError) as exc_info:
            asyncio.run(extractor.extract(CapturedMedia(video_frames=frames)))

        assert exc_info.value.code == ErrorCode.REKOGNITION_NO_FACES
        assert exc_info.value.recoverable is True
        assert exc_info.value.component == "visual"

    def test_service_failure_is_wrapped(self, frames, face_service_factory):
        extractor = VisualFeatureExtractor(face_service_factory(error=ConnectionError("boom")))

        with pytest.raises(EnrichmentError) as exc_info:
            asyncio.run(extractor.extract(CapturedMedia(video_frames=frames)))

        assert exc_info.value.code == ErrorCode.VISUAL_EXTRACTION_FAILED
        assert exc_info.value.recoverable is True
        assert "boom" in exc_info.value.message

    def test_missing_frames_is_not_recoverable(self, face_service_factory):
        extractor = VisualFeatureExtractor(face_service_factory())

        with pytest.raises(EnrichmentError) as exc_info:
            asyncio.run(extractor.extract(CapturedMedia(video_frames=())))

        assert exc_info.value.code == ErrorCode.NO_VIDEO_DATA
        assert exc_info.value.recoverable is False


class TestFaceResponseParsing:
    """Test parse_face_response."""

    def test_parses_attributes(self, face_payload_factory, face_details_factory):
        batch = parse_face_response(face_payload_factory([face_details_factory(), None]))

        assert batch.total_frames == 2
        assert batch.analyzed_frames == 1
        face = batch.analyses[0].face
        assert face.pose.yaw == 2.0
        assert face.smile.value is True
        assert face.emotion("HAPPY") == 80.0
        assert face.emotion("FEAR") == 0.0
        assert face.has_quality
        assert batch.analyses[1].face is None
        assert len(batch.valid_faces) == 1

    def test_missing_analyses_is_rejected(self):
        with pytest.raises(ValueError, match="analyses"):
            parse_face_response({"totalFrames": 1})


class TestHttpFaceAttributeClient:
    """HTTP client against httpx.MockTransport."""

    def test_posts_base64_frames_and_parses_response(self, face_payload_factory, face_details_factory):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=face_payload_factory([face_details_factory()]))

        client = HttpFaceAttributeClient(
            "https://faces.example.test/analyze",
            api_key="secret",
            transport=httpx.MockTransport(handler),
        )

        batch = asyncio.run(client.analyze_frames([b"\xff\xd8frame"]))

        assert seen["body"] == {"frames": [base64.b64encode(b"\xff\xd8frame").decode("ascii")]}
        assert seen["auth"] == "Bearer secret"
        assert batch.analyzed_frames == 1

    def test_error_status_raises_with_details(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, json={"error": "upstream"}))
        client = HttpFaceAttributeClient("https://faces.example.test/analyze", transport=transport)

        with pytest.raises(RuntimeError, match="502"):
            asyncio.run(client.analyze_frames([b"frame"]))

    def test_oversized_payload_is_logged(self, caplog, face_payload_factory, face_details_factory):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=face_payload_factory([face_details_factory()]))
        )
        client = HttpFaceAttributeClient(
            "https://faces.example.test/analyze",
            payload_warn_bytes=10,
            transport=transport,
        )

        with caplog.at_level("WARNING", logger="mindcheck.providers.face"):
            asyncio.run(client.analyze_frames([b"a fairly large frame"]))

        assert "payload" in caplog.text

    def test_rejects_non_http_url(self):
        with pytest.raises(ValueError, match="Invalid face service URL"):
            HttpFaceAttributeClient("ftp://faces.example.test")
