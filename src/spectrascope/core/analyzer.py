"""
Feature extraction pipeline.

Drives the spectral pass and every derived descriptor: spectral centroid,
rolloff, zero-crossing rate, harmonic complexity, mel-cepstral
coefficients, onsets, tempo and beat positions.  The amplitude envelope is
computed independently of the spectral path and feeds both the result and
the envelope-based onset detector.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from spectrascope.config import AnalysisConfig
from spectrascope.core import cepstrum, rhythm, spectral
from spectrascope.core.envelope import AmplitudeData, extract_amplitude_envelope
from spectrascope.core.spectrum import FrameSegmenter, FrequencyData
from spectrascope.errors import InvalidRequestError
from spectrascope.progress import CancellationToken, ProgressCallback, ProgressTracker

logger = logging.getLogger(__name__)

UNKNOWN_KEY = "Unknown"


@dataclass
class AudioFeatures:
    """Complete feature set for one signal."""

    frequency_data: FrequencyData
    spectral_centroid: np.ndarray    # (n_frames,) Hz
    spectral_rolloff: np.ndarray     # (n_frames,) Hz
    zero_crossing_rate: np.ndarray   # (n_zcr_windows,) crossings/s
    harmonic_complexity: np.ndarray  # (n_frames,)
    mfcc: np.ndarray                 # (n_frames, 13)
    tempo: float                     # BPM, 0 if undetermined
    beat_times: np.ndarray
    onset_times: np.ndarray = field(default_factory=lambda: np.zeros(0))
    # None for feature-only extraction
    amplitude_envelope: Optional[AmplitudeData] = None
    key: str = UNKNOWN_KEY
    duration: float = 0.0

    @property
    def n_frames(self) -> int:
        return self.frequency_data.n_frames

    @property
    def sample_rate(self) -> int:
        return self.frequency_data.sample_rate


def validate_signal(y, sr) -> tuple[np.ndarray, int]:
    """
    Coerce a request's samples and sample rate.

    Raises:
        InvalidRequestError: On missing, multi-channel or non-finite input,
            or a non-positive sample rate.
    """
    if y is None or sr is None:
        raise InvalidRequestError("Missing audio buffer or sample rate")

    samples = np.asarray(y, dtype=np.float32)
    if samples.ndim != 1:
        raise InvalidRequestError(
            f"Expected a mono 1-D signal, got shape {samples.shape}",
            code="INVALID_INPUT",
        )
    if not np.all(np.isfinite(samples)):
        raise InvalidRequestError("Signal contains NaN or infinite samples", code="INVALID_INPUT")

    try:
        rate = int(sr)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid sample rate {sr!r}", code="INVALID_INPUT") from None
    if rate <= 0:
        raise InvalidRequestError(f"Sample rate must be positive, got {sr!r}", code="INVALID_INPUT")

    return samples, rate


class FeatureAnalyzer:
    """
    Extracts the full descriptor set from a mono signal.

    The configuration is fixed at construction; use
    :meth:`AnalysisConfig.merged` to derive per-request variants.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize the analyzer.

        Args:
            config: Segmentation and transform parameters (defaults apply
                when omitted).
        """
        self.config = config or AnalysisConfig()
        self.segmenter = FrameSegmenter(self.config)

    # ------------------------------------------------------------------
    # Individual stages
    # ------------------------------------------------------------------

    def analyze_spectrum(
        self,
        y: np.ndarray,
        sr: int,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> FrequencyData:
        """Magnitude spectrogram of ``y`` (see :class:`FrameSegmenter`)."""
        return self.segmenter.analyze(y, sr, progress=progress, cancel=cancel)

    def extract_envelope(self, y: np.ndarray, sr: int) -> AmplitudeData:
        return extract_amplitude_envelope(y, sr)

    def extract_spectral(self, y: np.ndarray, freq: FrequencyData) -> dict[str, np.ndarray]:
        """
        Per-frame spectral descriptors.

        Returns:
            Mapping with centroid, rolloff, zero-crossing rate, harmonic
            complexity and MFCC arrays.
        """
        return {
            "spectral_centroid": spectral.spectral_centroid(freq),
            "spectral_rolloff": spectral.spectral_rolloff(freq, self.config.rolloff_threshold),
            "zero_crossing_rate": spectral.zero_crossing_rate(y, freq.sample_rate),
            "harmonic_complexity": spectral.harmonic_complexity(freq),
            "mfcc": cepstrum.mfcc(freq),
        }

    def extract_rhythm(
        self,
        freq: FrequencyData,
        amplitude: AmplitudeData,
    ) -> tuple[float, np.ndarray, np.ndarray]:
        """
        Onsets, tempo and beats.

        Returns:
            Tuple of (tempo_bpm, beat_times, onset_times).
        """
        onsets = rhythm.detect_onsets(freq)
        tempo = rhythm.estimate_tempo(amplitude, onsets)
        beats = rhythm.track_beats(tempo, rhythm.detect_envelope_onsets(amplitude))
        return tempo, beats, onsets

    # ------------------------------------------------------------------
    # Main analysis entry point
    # ------------------------------------------------------------------

    def analyze(
        self,
        y: np.ndarray,
        sr: int,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
        include_envelope: bool = True,
    ) -> AudioFeatures:
        """
        Perform complete feature extraction.

        Args:
            y: Mono signal.
            sr: Sample rate in Hz.
            progress: Optional ``callback(percent, message)`` receiving overall
                progress in [0, 100].
            cancel: Optional cancellation token.
            include_envelope: When False the amplitude envelope is still used
                internally but left out of the result.

        Returns:
            AudioFeatures.

        Raises:
            InvalidRequestError: For malformed input.
            AnalysisCancelled: If ``cancel`` fires during the spectral pass.
        """
        y, sr = validate_signal(y, sr)
        started = time.perf_counter()
        tracker = ProgressTracker(callback=progress)

        freq = self.analyze_spectrum(
            y, sr,
            progress=tracker.step_callback("frequency-analysis") if progress else None,
            cancel=cancel,
        )
        tracker.complete("frequency-analysis")

        amplitude = self.extract_envelope(y, sr)
        tracker.complete("amplitude-envelope")

        descriptors = self.extract_spectral(y, freq)
        tracker.complete("feature-extraction")

        if cancel is not None:
            cancel.raise_if_cancelled()
        tempo, beats, onsets = self.extract_rhythm(freq, amplitude)
        tracker.complete("rhythm-analysis")

        logger.debug(
            "Analyzed %.2fs of audio: %d frames, tempo %.1f BPM, %d beats in %.3fs",
            len(y) / sr, freq.n_frames, tempo, len(beats),
            time.perf_counter() - started,
        )

        return AudioFeatures(
            frequency_data=freq,
            tempo=float(tempo),
            beat_times=beats,
            onset_times=onsets,
            amplitude_envelope=amplitude if include_envelope else None,
            duration=len(y) / sr,
            **descriptors,
        )
