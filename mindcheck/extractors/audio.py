"""
Audio Feature Extractor

Responsibilities:
    - Decode the captured audio stream (mono)
    - Bound it to <= 30 s (start/centre/end windows) and decimate to 8 kHz
    - Compute 23 features: pitch/prosody (8), timing/rhythm (7),
      energy/intensity (5), voice quality (3)
    - Score overall audio quality in [0.3, 1.0]

Invariants:
    - Features are computed once and returned as a frozen AudioFeatures
    - shimmer and harmonic_ratio are reserved (always 0)
    - Any unexpected failure surfaces as recoverable AUDIO_EXTRACTION_FAILED

Concurrency:
    - CPU work runs in a worker thread (asyncio.to_thread)
    - Cancelling the awaiting task sets a cancellation event; the worker
      stops at its next phase boundary instead of running to completion
"""

import asyncio
import logging
import math
import threading

import numpy as np

from mindcheck import audio
from mindcheck.contracts import AUDIO_CONTRACT, Extractor, MediaValidator
from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.models import AudioFeatures, CapturedMedia
from mindcheck.utils import clamp, mean, population_std


logger = logging.getLogger(__name__)


# =============================================================================
# Heuristics (FROZEN)
# =============================================================================

SYLLABLES_PER_SECOND = 2.5
FILLED_PAUSE_MIN_S = 0.1
FILLED_PAUSE_MAX_S = 0.5

QUALITY_FLOOR = 0.3
QUALITY_PITCH_RANGE = (80.0, 400.0)
QUALITY_MIN_SPEECH_RATIO = 0.3
QUALITY_MIN_ENERGY = 0.001
QUALITY_MIN_SPEECH_SEGMENTS = 3


class ExtractionCancelled(Exception):
    """Raised inside the worker thread once the awaiting task was cancelled."""


def _checkpoint(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ExtractionCancelled()


# =============================================================================
# Feature Groups
# =============================================================================


def pitch_features(f0_series: list[float]) -> dict:
    """Pitch/prosody group from the valid F0 values."""
    valid = audio.valid_pitch(f0_series)
    if not valid:
        return {
            "mean_pitch": 0.0,
            "pitch_range": 0.0,
            "pitch_variability": 0.0,
            "pitch_contour_slope": 0.0,
            "jitter": None,
            "shimmer": 0.0,
            "harmonic_ratio": 0.0,
            "pitch_dynamics": 0.0,
        }
    return {
        "mean_pitch": mean(valid),
        "pitch_range": max(valid) - min(valid),
        "pitch_variability": population_std(valid),
        "pitch_contour_slope": audio.compute_linear_trend(valid),
        "jitter": audio.compute_jitter(valid),
        "shimmer": 0.0,
        "harmonic_ratio": 0.0,
        "pitch_dynamics": audio.compute_pitch_dynamics(valid),
    }


def timing_features(segments: list[audio.Segment], duration: float) -> dict:
    """
    Timing/rhythm group from speech/pause segments.

    Note:
        Speaking and articulation rate use a fixed syllables-per-second
        estimate rather than syllable detection.
    """
    speech = [s for s in segments if s.is_speech]
    pauses = [s for s in segments if not s.is_speech]

    speech_time = sum(s.duration for s in speech)
    pause_time = sum(s.duration for s in pauses)
    est_syllables = max(1, math.floor(speech_time * SYLLABLES_PER_SECOND))

    return {
        "speaking_rate": est_syllables / speech_time * 60 if speech_time > 0 else 0.0,
        "articulation_rate": est_syllables / speech_time if speech_time > 0 else 0.0,
        "pause_frequency": len(pauses) / duration * 60 if duration > 0 else 0.0,
        "pause_duration": pause_time / len(pauses) if pauses else 0.0,
        "speech_ratio": clamp(speech_time / duration, 0.0, 1.0) if duration > 0 else 0.0,
        "filled_pause_rate": float(sum(
            1 for s in speech if FILLED_PAUSE_MIN_S < s.duration < FILLED_PAUSE_MAX_S
        )),
        "silence_duration": pause_time,
    }


def energy_features(energy: list[float], segments: list[audio.Segment]) -> dict:
    """Energy/intensity group over frames that fall inside speech segments."""
    speech_energy = audio.speech_frame_energy(energy, segments)
    if not speech_energy:
        return {
            "voice_energy": 0.0,
            "energy_variability": 0.0,
            "energy_contour": 0.0,
            "dynamic_range": 0.0,
            "stress_patterns": 0.0,
        }
    return {
        "voice_energy": mean(speech_energy),
        "energy_variability": population_std(speech_energy),
        "energy_contour": audio.compute_linear_trend(speech_energy),
        "dynamic_range": max(speech_energy) - min(speech_energy),
        "stress_patterns": float(audio.count_stress_peaks(speech_energy)),
    }


def voice_quality_features(samples: np.ndarray, sample_rate: int, f0_series: list[float]) -> dict:
    """Voice quality group on short sampled windows of the bounded signal."""
    voiced = sum(1 for f0 in f0_series if f0 > 0)
    return {
        "spectral_centroid": audio.compute_spectral_centroid(samples, sample_rate),
        "spectral_flux": audio.compute_spectral_flux(samples, sample_rate),
        "voiced_ratio": voiced / len(f0_series) if f0_series else 0.0,
    }


def compute_quality(mean_pitch: float, speech_ratio: float, voice_energy: float, speech_segments: int) -> float:
    """
    Multiplicative quality penalties, floored at 0.3.

    Penalties:
        ×0.7  mean pitch outside 80-400 Hz (or 0)
        ×0.8  speech ratio < 0.3
        ×0.7  mean voice energy < 0.001
        ×0.6  fewer than 3 speech segments
    """
    quality = 1.0
    low, high = QUALITY_PITCH_RANGE
    if mean_pitch <= 0 or mean_pitch < low or mean_pitch > high:
        quality *= 0.7
    if speech_ratio < QUALITY_MIN_SPEECH_RATIO:
        quality *= 0.8
    if voice_energy < QUALITY_MIN_ENERGY:
        quality *= 0.7
    if speech_segments < QUALITY_MIN_SPEECH_SEGMENTS:
        quality *= 0.6
    return clamp(quality, QUALITY_FLOOR, 1.0)


# =============================================================================
# AudioFeatureExtractor
# =============================================================================


class AudioFeatureExtractor(Extractor[AudioFeatures]):
    """
    Extract AudioFeatures from CapturedMedia.audio.

    Contract:
        - Requires: media.audio
        - Fails with: NO_AUDIO_DATA (not recoverable),
          AUDIO_EXTRACTION_FAILED (recoverable)
    """

    contract = AUDIO_CONTRACT

    def __init__(self, validator: MediaValidator | None = None):
        self.validator = validator or MediaValidator()

    async def extract(self, media: CapturedMedia) -> AudioFeatures:
        self.validator.validate(self.contract, media)

        cancel = threading.Event()
        try:
            return await asyncio.to_thread(self.extract_bytes, media.audio, cancel)
        except asyncio.CancelledError:
            cancel.set()
            raise

    def extract_bytes(self, data: bytes, cancel: threading.Event | None = None) -> AudioFeatures:
        """
        Decode and extract synchronously.

        Raises:
            EnrichmentError: AUDIO_EXTRACTION_FAILED on any decode/extraction error
            ExtractionCancelled: If cancel was set (the result is unwanted)
        """
        try:
            samples, sample_rate = audio.decode_audio(data)
            return self.extract_samples(samples, sample_rate, cancel)
        except (EnrichmentError, ExtractionCancelled):
            raise
        except Exception as e:
            logger.warning("Audio extraction failed: %s", e)
            raise EnrichmentError(
                f"Audio extraction failed: {e}",
                ErrorCode.AUDIO_EXTRACTION_FAILED,
                recoverable=True,
                component="audio",
            ) from e

    def extract_samples(
        self,
        samples: np.ndarray,
        sample_rate: int,
        cancel: threading.Event | None = None,
    ) -> AudioFeatures:
        """
        Extract features from decoded mono samples.

        Args:
            samples: Mono float samples at their native rate
            sample_rate: Native sample rate
            cancel: Optional cancellation event checked between phases
        """
        bounded = audio.bound_duration(samples, sample_rate)
        signal = audio.downsample(bounded, sample_rate, audio.TARGET_SAMPLE_RATE)
        rate = min(sample_rate, audio.TARGET_SAMPLE_RATE)
        duration = len(signal) / rate
        _checkpoint(cancel)

        f0_series = audio.extract_f0_series(signal, rate)
        _checkpoint(cancel)

        energy = audio.compute_frame_energy(signal, rate)
        segments = audio.detect_speech_segments(energy)
        _checkpoint(cancel)

        pitch = pitch_features(f0_series)
        timing = timing_features(segments, duration)
        energy_group = energy_features(energy, segments)
        voice = voice_quality_features(signal, rate, f0_series)
        _checkpoint(cancel)

        quality = compute_quality(
            pitch["mean_pitch"],
            timing["speech_ratio"],
            energy_group["voice_energy"],
            sum(1 for s in segments if s.is_speech),
        )

        logger.debug(
            "Audio features: %.1fs analysed, %d segments, %d pitch frames, quality %.2f",
            duration, len(segments), len(f0_series), quality,
        )

        return AudioFeatures(
            **pitch,
            **timing,
            **energy_group,
            **voice,
            quality=quality,
            duration=duration,
        )
