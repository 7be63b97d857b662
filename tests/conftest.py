"""
MindCheck v1 Test Configuration

Provides synthetic audio, face-service payloads and in-process provider
fakes. No test touches the network.
"""

import io
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable

import numpy as np
import pytest
import soundfile as sf

from mindcheck.models import CheckinRequest
from mindcheck.providers.face import FaceAnalysisBatch, parse_face_response


REPO_ROOT = Path(__file__).parent.parent

POSITIVE_TRANSCRIPT = "I am doing well today. Feeling good about my studies."


def run_cli(*args: str, env: dict | None = None) -> subprocess.CompletedProcess:
    """Run mindcheck CLI as subprocess with MINDCHECK_* variables cleared."""
    environ = {k: v for k, v in os.environ.items() if not k.startswith("MINDCHECK_")}
    environ.update(env or {})
    return subprocess.run(
        [sys.executable, "-m", "mindcheck", *args],
        capture_output=True,
        text=True,
        cwd=str(REPO_ROOT),
        env=environ,
    )


@pytest.fixture
def cli() -> Callable[..., subprocess.CompletedProcess]:
    return run_cli


def make_speech_like(duration_sec: float = 3.0, sr: int = 16000, f0: float = 150.0) -> np.ndarray:
    """
    Deterministic "speech": 0.5 s harmonic bursts separated by 0.3 s of
    near-silence.
    """
    num_samples = int(sr * duration_sec)
    samples = np.zeros(num_samples, dtype=np.float32)
    burst = int(0.5 * sr)
    gap = int(0.3 * sr)

    t = np.arange(burst) / sr
    voiced = (
        0.3 * np.sin(2 * np.pi * f0 * t) +
        0.15 * np.sin(2 * np.pi * 2 * f0 * t) +
        0.05 * np.sin(2 * np.pi * 3 * f0 * t)
    ).astype(np.float32)

    start = gap
    while start + burst <= num_samples:
        samples[start:start + burst] = voiced
        start += burst + gap

    rng = np.random.default_rng(0)
    samples += (0.001 * rng.standard_normal(num_samples)).astype(np.float32)
    return samples


def encode_wav(samples: np.ndarray, sr: int) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, samples, sr, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def face_details(
    smiling: bool = True,
    yaw: float = 2.0,
    pitch: float = -3.0,
    roll: float = 1.0,
    happy: float = 80.0,
    sad: float = 5.0,
) -> dict:
    """One provider faceDetails object."""
    return {
        "Confidence": 99.0,
        "BoundingBox": {"Width": 0.4, "Height": 0.5, "Left": 0.3, "Top": 0.2},
        "Landmarks": [{"Type": "eyeLeft", "X": 0.4, "Y": 0.4}],
        "Pose": {"Roll": roll, "Yaw": yaw, "Pitch": pitch},
        "Quality": {"Brightness": 80.0, "Sharpness": 90.0},
        "Smile": {"Value": smiling, "Confidence": 90.0},
        "MouthOpen": {"Value": False, "Confidence": 95.0},
        "EyesOpen": {"Value": True, "Confidence": 98.0},
        "Emotions": [
            {"Type": "HAPPY", "Confidence": happy},
            {"Type": "CALM", "Confidence": 10.0},
            {"Type": "SAD", "Confidence": sad},
        ],
    }


def face_response(details: list[dict | None]) -> dict:
    """Provider response for a batch; None entries are frames without a face."""
    return {
        "totalFrames": len(details),
        "analyzedFrames": sum(1 for d in details if d is not None),
        "analyses": [
            {"frameIndex": i, "faceDetails": d} for i, d in enumerate(details)
        ],
    }


class FakeFaceService:
    """FaceAttributeService answering from a fixed provider payload."""

    def __init__(self, payload: dict | None = None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[list[bytes]] = []

    async def analyze_frames(self, frames) -> FaceAnalysisBatch:
        self.calls.append(list(frames))
        if self.error is not None:
            raise self.error
        if self.payload is None:
            return parse_face_response(face_response([face_details() for _ in frames]))
        return parse_face_response(self.payload)


class FakeTextService:
    """TextUnderstandingService answering with a fixed body (or raising)."""

    def __init__(self, body: Any = None, error: Exception | None = None):
        self.body = body
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    async def analyze(self, transcript, context):
        self.calls.append((transcript, dict(context)))
        if self.error is not None:
            raise self.error
        return self.body


@pytest.fixture
def speech_wav_bytes() -> bytes:
    """3 s of bursty harmonic audio at 16 kHz, WAV-encoded."""
    return encode_wav(make_speech_like(3.0, 16000), 16000)


@pytest.fixture
def frames() -> tuple[bytes, ...]:
    """Opaque stand-ins for encoded frames (the fake service never decodes them)."""
    return tuple(f"frame-{i:02d}".encode() for i in range(6))


@pytest.fixture
def face_service_factory() -> Callable[..., FakeFaceService]:
    return FakeFaceService


@pytest.fixture
def text_service_factory() -> Callable[..., FakeTextService]:
    return FakeTextService


@pytest.fixture
def face_payload_factory() -> Callable[..., dict]:
    """Build provider responses: face_payload_factory([face_details(...), None, ...])."""
    return face_response


@pytest.fixture
def face_details_factory() -> Callable[..., dict]:
    return face_details


@pytest.fixture
def checkin_request() -> Callable[..., CheckinRequest]:
    """CheckinRequest builder with a positive transcript by default."""
    def build(**overrides) -> CheckinRequest:
        values = {"user_id": "user-1", "transcript": POSITIVE_TRANSCRIPT, "session_id": "session-1"}
        values.update(overrides)
        return CheckinRequest(**values)
    return build
