"""
Windowing, magnitude transforms and frame segmentation.

Turns a mono signal into a time series of magnitude spectra
(:class:`FrequencyData`).  Two numerically equivalent transforms are
available: ``numpy.fft.rfft`` and a direct O(N^2) DFT built from
precomputed trigonometric tables, kept as the reference the fast path is
validated against.
"""

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import signal as scipy_signal

from spectrascope.config import WINDOW_FUNCTIONS, AnalysisConfig
from spectrascope.errors import ConfigurationError, MemoryLimitError
from spectrascope.progress import CancellationToken, ProgressCallback

logger = logging.getLogger(__name__)

# Frames between progress reports / cancellation checks
PROGRESS_INTERVAL = 50
YIELD_INTERVAL = 100


@dataclass
class FrequencyData:
    """Time series of magnitude spectra."""

    frequencies: np.ndarray   # (n_frames, fft_size // 2)
    time_stamps: np.ndarray   # (n_frames,) frame start times in seconds
    sample_rate: int
    fft_size: int

    @property
    def n_frames(self) -> int:
        return len(self.time_stamps)

    @property
    def n_bins(self) -> int:
        return self.fft_size // 2

    @property
    def bin_frequencies(self) -> np.ndarray:
        """Centre frequency in Hz of every bin."""
        return np.arange(self.n_bins) * self.sample_rate / self.fft_size

    @classmethod
    def empty(cls, sample_rate: int, fft_size: int) -> "FrequencyData":
        return cls(
            frequencies=np.zeros((0, fft_size // 2), dtype=np.float32),
            time_stamps=np.zeros(0, dtype=np.float64),
            sample_rate=sample_rate,
            fft_size=fft_size,
        )


# ---------------------------------------------------------------------------
# Window functions
# ---------------------------------------------------------------------------

_SCIPY_WINDOWS = {
    "rectangular": scipy_signal.windows.boxcar,
    "hann": scipy_signal.windows.hann,
    "hamming": scipy_signal.windows.hamming,
    "blackman": scipy_signal.windows.blackman,
}


@lru_cache(maxsize=32)
def get_window_weights(window: str, n: int) -> np.ndarray:
    """
    Symmetric window weights of length ``n``.

    The symmetric forms use ``N - 1`` in the cosine denominator, e.g. Hann is
    ``0.5 * (1 - cos(2*pi*i / (N - 1)))``.  A single-sample window is 1.

    Raises:
        ConfigurationError: For an unknown window name.
    """
    if window not in _SCIPY_WINDOWS:
        raise ConfigurationError(
            f"Unknown window function {window!r}; "
            f"expected one of {', '.join(WINDOW_FUNCTIONS)}"
        )
    weights = _SCIPY_WINDOWS[window](n, sym=True).astype(np.float64)
    weights.setflags(write=False)
    return weights


def apply_window(frame: np.ndarray, window: str = "hann") -> np.ndarray:
    """
    Return a tapered copy of ``frame``.

    Works on a single frame or on a stack of frames along the last axis.
    """
    frame = np.asarray(frame, dtype=np.float64)
    return frame * get_window_weights(window, frame.shape[-1])


# ---------------------------------------------------------------------------
# Magnitude transforms
# ---------------------------------------------------------------------------

def _check_transform_size(n: int) -> None:
    if n < 2 or n % 2:
        raise ConfigurationError(f"Transform size must be even and >= 2, got {n}")


@lru_cache(maxsize=4)
def _dft_basis(n: int) -> tuple[np.ndarray, np.ndarray]:
    """Cosine and sine matrices of shape (n // 2, n) built from length-n tables."""
    cos_table = np.cos(2 * np.pi * np.arange(n) / n)
    sin_table = np.sin(2 * np.pi * np.arange(n) / n)
    k = np.arange(n // 2)[:, None]
    index = (k * np.arange(n)[None, :]) % n
    cos_basis = cos_table[index]
    sin_basis = sin_table[index]
    cos_basis.setflags(write=False)
    sin_basis.setflags(write=False)
    return cos_basis, sin_basis


def dft_magnitude(frames: np.ndarray) -> np.ndarray:
    """
    Direct DFT magnitude of one frame or a stack of frames.

    For every bin ``k < N/2`` accumulates ``sum x[n] cos(2*pi*k*n/N)`` and
    ``-sum x[n] sin(2*pi*k*n/N)`` and returns ``sqrt(re^2 + im^2)``.
    """
    frames = np.asarray(frames, dtype=np.float64)
    n = frames.shape[-1]
    _check_transform_size(n)
    cos_basis, sin_basis = _dft_basis(n)
    real = frames @ cos_basis.T
    imag = -(frames @ sin_basis.T)
    return np.sqrt(real * real + imag * imag)


def fft_magnitude(frames: np.ndarray) -> np.ndarray:
    """Real-FFT magnitude of one frame or a stack of frames (first N/2 bins)."""
    frames = np.asarray(frames, dtype=np.float64)
    n = frames.shape[-1]
    _check_transform_size(n)
    return np.abs(np.fft.rfft(frames, axis=-1))[..., : n // 2]


_TRANSFORMS = {
    "fft": fft_magnitude,
    "dft": dft_magnitude,
}


def compute_spectrum(
    frame: np.ndarray,
    window: str = "hann",
    transform: str = "fft",
) -> np.ndarray:
    """Window a single frame and return its magnitude spectrum (float32)."""
    if transform not in _TRANSFORMS:
        raise ConfigurationError(f"Unknown transform {transform!r}")
    windowed = apply_window(frame, window)
    return _TRANSFORMS[transform](windowed).astype(np.float32)


# ---------------------------------------------------------------------------
# Frame segmentation
# ---------------------------------------------------------------------------

def count_frames(n_samples: int, fft_size: int, hop_size: int) -> int:
    """Number of full frames that fit in ``n_samples`` (partial tail dropped)."""
    if n_samples < fft_size:
        return 0
    return (n_samples - fft_size) // hop_size + 1


def estimate_memory_usage(n_samples: int, config: AnalysisConfig) -> int:
    """Rough byte count for the signal plus its float32 spectrogram."""
    n_frames = max(0, n_samples // config.hop_size)
    return n_samples * 4 + n_frames * config.fft_size * 4


def check_memory(n_samples: int, config: AnalysisConfig) -> None:
    """
    Reject analyses whose estimate exceeds 70% of ``config.max_memory_bytes``.

    Raises:
        MemoryLimitError: If a budget is configured and would be exceeded.
    """
    if config.max_memory_bytes is None:
        return
    estimated = estimate_memory_usage(n_samples, config)
    if estimated >= config.max_memory_bytes * 0.7:
        raise MemoryLimitError(
            "frequency spectrum analysis", estimated, config.max_memory_bytes
        )


class FrameSegmenter:
    """
    Slices a signal into overlapping frames and transforms each one.

    Frames are processed in blocks: progress is reported every
    ``PROGRESS_INTERVAL`` frames and the cancellation token is honoured every
    ``YIELD_INTERVAL`` frames, so a cancelled analysis stops at a block
    boundary with no partial state leaking out.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self._transform = _TRANSFORMS[self.config.transform]

    def analyze(
        self,
        y: np.ndarray,
        sr: int,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> FrequencyData:
        """
        Compute the magnitude spectrogram of ``y``.

        Args:
            y: Mono signal.
            sr: Sample rate in Hz.
            progress: Optional ``callback(percent, message)``.
            cancel: Optional token checked between blocks.

        Returns:
            FrequencyData with one spectrum per full frame.

        Raises:
            AnalysisCancelled: If ``cancel`` is set during the pass.
            MemoryLimitError: If the configured memory budget is exceeded.
        """
        fft_size = self.config.fft_size
        hop = self.config.hop_size
        y = np.asarray(y, dtype=np.float32)

        check_memory(len(y), self.config)
        if cancel is not None:
            cancel.raise_if_cancelled()

        n_frames = count_frames(len(y), fft_size, hop)
        if n_frames == 0:
            return FrequencyData.empty(sr, fft_size)

        started = time.perf_counter()
        frames = sliding_window_view(y, fft_size)[::hop][:n_frames]
        weights = get_window_weights(self.config.window, fft_size)
        spectra = np.empty((n_frames, fft_size // 2), dtype=np.float32)

        processed = 0
        while processed < n_frames:
            stop = min(processed + PROGRESS_INTERVAL, n_frames)
            block = frames[processed:stop].astype(np.float64) * weights
            spectra[processed:stop] = self._transform(block)
            processed = stop

            if progress is not None and processed % PROGRESS_INTERVAL == 0:
                progress(
                    min(100.0, processed / n_frames * 100.0),
                    f"Analyzing frequency spectrum: {processed}/{n_frames} windows",
                )
            if cancel is not None and processed % YIELD_INTERVAL == 0:
                cancel.raise_if_cancelled()

        time_stamps = np.arange(n_frames) * hop / sr
        logger.debug(
            "Spectral pass: %d frames (fft=%d, hop=%d, %s) in %.3fs",
            n_frames, fft_size, hop, self.config.transform,
            time.perf_counter() - started,
        )
        return FrequencyData(
            frequencies=spectra,
            time_stamps=time_stamps,
            sample_rate=sr,
            fft_size=fft_size,
        )
