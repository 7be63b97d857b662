"""
MindCheck v1 Audio Utilities

Bounded, CPU-only audio processing primitives for check-in feature extraction.

Library Stack:
    - soundfile: In-memory decode (libsndfile-backed)
    - numpy: Array operations, magnitude spectra (numpy.fft)
    - scipy.signal.correlate: Frame autocorrelation for F0

INVARIANTS:
    - All operations are deterministic
    - No operation touches more than the bounded (<= 30 s) signal
    - Spectral analysis runs on short sampled windows only
    - Same input → identical output

BOUNDS:
    - Inputs longer than 30 s are reduced to start/centre/end 10 s windows
    - Signals are decimated to 8 kHz before any analysis
    - F0 is estimated on the centre 10 s only
"""

import io
from dataclasses import dataclass

import numpy as np
import soundfile as sf
from scipy.signal import correlate


# =============================================================================
# Constants (FROZEN)
# =============================================================================

TARGET_SAMPLE_RATE = 8000
FRAME_MS = 20
HOP_MS = 20

MAX_DURATION_S = 30.0
WINDOW_DURATION_S = 10.0

PITCH_WINDOW_S = 10.0
PITCH_FRAME_S = 0.03
PITCH_HOP_S = 0.1
MIN_PITCH_HZ = 80.0
MAX_PITCH_HZ = 500.0

ENERGY_PERCENTILE = 0.4
ENERGY_THRESHOLD_FACTOR = 1.5
MIN_SEGMENT_S = 0.2

FFT_SIZE = 2048
FLUX_HOP = 1024
CENTROID_WINDOW_S = 2
FLUX_WINDOW_S = 3

STRESS_PEAK_RATIO = 0.6


# =============================================================================
# Decode
# =============================================================================


def decode_audio(data: bytes) -> tuple[np.ndarray, int]:
    """
    Decode an encoded audio byte stream into mono float32 samples.

    Args:
        data: WAV/FLAC/OGG bytes

    Returns:
        Tuple of (mono samples as float32 in [-1, 1], sample_rate)

    Raises:
        ValueError: If the stream decodes to zero samples
        soundfile.LibsndfileError: If the stream cannot be decoded

    Note:
        - Multi-channel input is downmixed by arithmetic mean
    """
    samples, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=False)
    if samples.ndim > 1:
        samples = np.mean(samples, axis=1).astype(np.float32)
    if samples.size == 0:
        raise ValueError("Decoded audio contains no samples")
    return samples, int(sr)


# =============================================================================
# Bounding
# =============================================================================


def bound_duration(
    samples: np.ndarray,
    sample_rate: int,
    max_duration: float = MAX_DURATION_S,
    window_duration: float = WINDOW_DURATION_S,
) -> np.ndarray:
    """
    Reduce long signals to three windows: start, centre, end.

    Args:
        samples: Input samples (1D)
        sample_rate: Sample rate of samples
        max_duration: Signals at or under this length are returned unchanged
        window_duration: Length of each retained window

    Returns:
        The input array, or the concatenation start + centre + end.
    """
    duration = len(samples) / sample_rate
    if duration <= max_duration:
        return samples

    window = int(window_duration * sample_rate)
    total = len(samples)
    middle_start = (total - window) // 2

    return np.concatenate([
        samples[:window],
        samples[middle_start:middle_start + window],
        samples[total - window:],
    ])


def downsample(data: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """
    Nearest-sample decimation by the rate ratio.

    Returns:
        `data` itself when from_rate <= to_rate, else a new array with
        out[i] = data[floor(i * from_rate / to_rate)].
    """
    if from_rate <= to_rate:
        return data
    factor = from_rate / to_rate
    out_len = int(len(data) // factor)
    idx = np.floor(np.arange(out_len) * factor).astype(np.int64)
    return data[idx]


# =============================================================================
# Pitch
# =============================================================================


def estimate_f0(frame: np.ndarray, sample_rate: int) -> float:
    """
    Estimate F0 of one frame by autocorrelation over the 80-500 Hz lag range.

    Returns:
        sample_rate / best_lag, or 0.0 when no lag has positive correlation.
    """
    min_lag = int(sample_rate // MAX_PITCH_HZ)
    max_lag = int(sample_rate // MIN_PITCH_HZ)
    n = len(frame)
    if n <= min_lag:
        return 0.0

    # full[n - 1 + lag] == sum(frame[i] * frame[i + lag])
    full = correlate(frame, frame, mode="full", method="direct")
    lags = np.arange(min_lag, min(max_lag, n))
    corr = full[n - 1 + lags]

    best = int(np.argmax(corr))
    if corr[best] <= 0:
        return 0.0
    return float(sample_rate / lags[best])


def extract_f0_series(samples: np.ndarray, sample_rate: int) -> list[float]:
    """
    F0 series over the centre 10 s window (30 ms frames, 100 ms hop).

    Returns:
        One F0 value (Hz, 0 for unvoiced) per analysed frame.
    """
    duration = len(samples) / sample_rate
    middle_start = max(0.0, (duration - PITCH_WINDOW_S) / 2)
    start = int(middle_start * sample_rate)
    window = samples[start:start + int(PITCH_WINDOW_S * sample_rate)]

    frame_size = int(sample_rate * PITCH_FRAME_S)
    hop_size = int(sample_rate * PITCH_HOP_S)

    return [
        estimate_f0(window[i:i + frame_size], sample_rate)
        for i in range(0, len(window) - frame_size, hop_size)
    ]


def valid_pitch(f0_series: list[float]) -> list[float]:
    """Keep F0 values inside the voiced pitch range."""
    return [f0 for f0 in f0_series if 0 < f0 < MAX_PITCH_HZ]


def compute_jitter(f0_series: list[float]) -> float | None:
    """
    Mean absolute frame-to-frame F0 change divided by mean F0.

    Returns:
        None for fewer than 2 values or a zero mean.
    """
    if len(f0_series) < 2:
        return None
    values = np.asarray(f0_series, dtype=np.float64)
    avg = float(np.mean(values))
    if avg <= 0:
        return None
    return float(np.mean(np.abs(np.diff(values))) / avg)


def compute_pitch_dynamics(f0_series: list[float]) -> float:
    """Mean absolute frame-to-frame F0 change (unnormalized)."""
    if len(f0_series) < 2:
        return 0.0
    return float(np.mean(np.abs(np.diff(np.asarray(f0_series, dtype=np.float64)))))


def compute_linear_trend(series: list[float]) -> float:
    """
    Least-squares slope of series against its index.

    Returns:
        0.0 for fewer than 2 points.
    """
    n = len(series)
    if n < 2:
        return 0.0
    y = np.asarray(series, dtype=np.float64)
    sum_x = n * (n - 1) / 2
    sum_y = float(np.sum(y))
    sum_xy = float(np.dot(np.arange(n), y))
    sum_x2 = n * (n - 1) * (2 * n - 1) / 6
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


# =============================================================================
# Energy and Segmentation
# =============================================================================


@dataclass(frozen=True)
class Segment:
    """Contiguous speech or pause region (seconds)."""
    start: float
    end: float
    is_speech: bool

    @property
    def duration(self) -> float:
        return self.end - self.start


def compute_frame_energy(
    samples: np.ndarray,
    sample_rate: int,
    frame_ms: int = FRAME_MS,
    hop_ms: int = HOP_MS,
) -> list[float]:
    """
    RMS amplitude per frame (frames fully inside the signal only).

    Returns:
        List of RMS values, one per frame.
    """
    frame_samples = int(sample_rate * frame_ms / 1000)
    hop_samples = int(sample_rate * hop_ms / 1000)
    if frame_samples <= 0 or len(samples) < frame_samples:
        return []

    n_frames = (len(samples) - frame_samples) // hop_samples + 1
    x = samples.astype(np.float64)
    energy = []
    for i in range(n_frames):
        start = i * hop_samples
        frame = x[start:start + frame_samples]
        energy.append(float(np.sqrt(np.mean(frame ** 2))))
    return energy


def energy_threshold(energy: list[float]) -> float:
    """1.5 × the 40th-percentile (lower-index) frame energy."""
    ordered = sorted(energy)
    return ordered[int(len(ordered) * ENERGY_PERCENTILE)] * ENERGY_THRESHOLD_FACTOR


def merge_short_segments(segments: list[Segment], min_duration: float = MIN_SEGMENT_S) -> list[Segment]:
    """
    Fold segments shorter than min_duration into their predecessor.

    Rules:
        - The predecessor's end is extended to the short segment's end
        - A short leading segment (no predecessor) is dropped
        - Segments at or above min_duration are kept as they are
    """
    merged: list[Segment] = []
    for seg in segments:
        if seg.duration >= min_duration:
            merged.append(seg)
        elif merged:
            prev = merged[-1]
            merged[-1] = Segment(prev.start, seg.end, prev.is_speech)
    return merged


def detect_speech_segments(energy: list[float], frame_s: float = FRAME_MS / 1000) -> list[Segment]:
    """
    Classify frames against the energy threshold and build merged segments.

    Args:
        energy: Frame-level RMS series
        frame_s: Frame duration in seconds (frame i starts at i * frame_s)

    Returns:
        Alternating speech/pause segments after short-segment merging.
    """
    if not energy:
        return []

    threshold = energy_threshold(energy)
    segments: list[Segment] = []
    current_start = 0.0
    current_speech = energy[0] > threshold

    for i, value in enumerate(energy[1:], start=1):
        is_speech = value > threshold
        if is_speech != current_speech:
            time = i * frame_s
            segments.append(Segment(current_start, time, current_speech))
            current_start = time
            current_speech = is_speech

    segments.append(Segment(current_start, len(energy) * frame_s, current_speech))
    return merge_short_segments(segments)


def speech_frame_energy(energy: list[float], segments: list[Segment], frame_s: float = FRAME_MS / 1000) -> list[float]:
    """Energy values of frames whose start time lies inside a speech segment."""
    speech = [s for s in segments if s.is_speech]
    return [
        value for i, value in enumerate(energy)
        if any(s.start <= i * frame_s <= s.end for s in speech)
    ]


def count_stress_peaks(series: list[float], ratio: float = STRESS_PEAK_RATIO) -> int:
    """
    Count strict local maxima above ratio × the series maximum.

    Note:
        Plateaus are not peaks (both neighbours must be strictly lower).
    """
    if len(series) < 3:
        return 0
    x = np.asarray(series, dtype=np.float64)
    threshold = float(np.max(x)) * ratio
    mid = x[1:-1]
    peaks = (mid > x[:-2]) & (mid > x[2:]) & (mid > threshold)
    return int(np.count_nonzero(peaks))


# =============================================================================
# Spectral Features
# =============================================================================


def magnitude_spectrum(frame: np.ndarray) -> np.ndarray:
    """
    Magnitude of the DFT bins k < n/2 of a frame.

    Returns:
        Array of length ceil(n / 2).
    """
    n = len(frame)
    if n == 0:
        return np.zeros(0)
    return np.abs(np.fft.rfft(frame.astype(np.float64)))[: (n + 1) // 2]


def _centre_slice(samples: np.ndarray, length: int) -> np.ndarray:
    start = (len(samples) - length) // 2
    end = start + length
    return samples[max(0, start):min(len(samples), end)]


def compute_spectral_centroid(samples: np.ndarray, sample_rate: int) -> float:
    """
    Magnitude-weighted mean frequency of one 2048-sample frame from the centre 2 s.

    Returns:
        Centroid in Hz, 0.0 for a silent frame.
    """
    window = _centre_slice(samples, sample_rate * CENTROID_WINDOW_S)
    spectrum = magnitude_spectrum(window[:FFT_SIZE])
    total = float(np.sum(spectrum))
    if total <= 0:
        return 0.0
    freqs = np.arange(len(spectrum)) * sample_rate / FFT_SIZE
    return float(np.dot(freqs, spectrum) / total)


def compute_spectral_flux(samples: np.ndarray, sample_rate: int) -> float:
    """
    Mean L2 distance between consecutive magnitude spectra over the centre 3 s.

    Frames are 2048 samples with a 1024-sample hop.
    """
    window = _centre_slice(samples, sample_rate * FLUX_WINDOW_S)
    spectra = [
        magnitude_spectrum(window[i:i + FFT_SIZE])
        for i in range(0, len(window) - FFT_SIZE, FLUX_HOP)
    ]
    if len(spectra) < 2:
        return 0.0
    flux = [float(np.sqrt(np.sum((cur - prev) ** 2))) for prev, cur in zip(spectra, spectra[1:])]
    return float(np.mean(flux))
