"""
MindCheck v1 Configuration.

Responsibilities:
- Hold deadlines, sampling bounds and provider endpoints in one frozen object
- Build that object from MINDCHECK_* environment variables

Invariants:
- Defaults reproduce the checkin23_bounded mode (6 s audio, 4 s visual, 20 frames)
- No secrets have defaults; endpoints and keys come from the environment only
- Endpoint URLs are stripped of surrounding whitespace and trailing slashes
"""

import os
from dataclasses import dataclass
from typing import Mapping


# =============================================================================
# Defaults (checkin23_bounded)
# =============================================================================

DEFAULT_AUDIO_TIMEOUT_S = 6.0
DEFAULT_VISUAL_TIMEOUT_S = 4.0
DEFAULT_MAX_FRAMES = 20
DEFAULT_PAYLOAD_WARN_BYTES = int(4.5 * 1024 * 1024)
DEFAULT_HTTP_TIMEOUT_S = 10.0

ENV_PREFIX = "MINDCHECK_"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Frozen pipeline configuration.

    Attributes:
        audio_timeout_s: Hard deadline for audio extraction
        visual_timeout_s: Hard deadline for visual extraction
        max_frames: Upper bound on frames submitted to the face service
        payload_warn_bytes: Encoded payload size that triggers a warning
        http_timeout_s: Transport timeout for provider calls
        text_service_url: Text-understanding endpoint (None = not configured)
        face_service_url: Face-attribute endpoint (None = not configured)
        api_key: Optional bearer token sent to both providers
        text_fallback: Substitute the neutral text result on TEXT_ANALYSIS_FAILED
    """
    audio_timeout_s: float = DEFAULT_AUDIO_TIMEOUT_S
    visual_timeout_s: float = DEFAULT_VISUAL_TIMEOUT_S
    max_frames: int = DEFAULT_MAX_FRAMES
    payload_warn_bytes: int = DEFAULT_PAYLOAD_WARN_BYTES
    http_timeout_s: float = DEFAULT_HTTP_TIMEOUT_S
    text_service_url: str | None = None
    face_service_url: str | None = None
    api_key: str | None = None
    text_fallback: bool = False

    def __post_init__(self) -> None:
        if self.audio_timeout_s <= 0 or self.visual_timeout_s <= 0:
            raise ValueError("Deadlines must be positive")
        if self.max_frames < 1:
            raise ValueError("max_frames must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """
        Build configuration from MINDCHECK_* environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        return cls(
            audio_timeout_s=_env_float(env, "AUDIO_TIMEOUT_S", DEFAULT_AUDIO_TIMEOUT_S),
            visual_timeout_s=_env_float(env, "VISUAL_TIMEOUT_S", DEFAULT_VISUAL_TIMEOUT_S),
            max_frames=_env_int(env, "MAX_FRAMES", DEFAULT_MAX_FRAMES),
            http_timeout_s=_env_float(env, "HTTP_TIMEOUT_S", DEFAULT_HTTP_TIMEOUT_S),
            text_service_url=_env_url(env, "TEXT_SERVICE_URL"),
            face_service_url=_env_url(env, "FACE_SERVICE_URL"),
            api_key=(env.get(ENV_PREFIX + "API_KEY") or "").strip() or None,
            text_fallback=(env.get(ENV_PREFIX + "TEXT_FALLBACK") or "").strip().lower() in _TRUTHY,
        )


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _env_url(env: Mapping[str, str], name: str) -> str | None:
    url = (env.get(ENV_PREFIX + name) or "").strip().rstrip("/")
    return url or None
