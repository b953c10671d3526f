"""
Amplitude envelope extraction.

Computes per-window peak magnitude over fixed 10 ms windows, independent of
the spectral path, along with the overall peak and RMS of the signal.
"""

from dataclasses import dataclass

import numpy as np

ENVELOPE_WINDOW_SECONDS = 0.01


@dataclass
class AmplitudeData:
    """Per-window peak envelope of a signal."""

    envelope: np.ndarray     # (n_windows,) max |x| per window
    time_stamps: np.ndarray  # (n_windows,) window start times in seconds
    peak: float
    rms: float


def envelope_window_size(sr: int) -> int:
    """Samples per envelope window (10 ms, floored)."""
    return int(np.floor(sr * ENVELOPE_WINDOW_SECONDS))


def extract_amplitude_envelope(y: np.ndarray, sr: int) -> AmplitudeData:
    """
    Extract the peak envelope over non-overlapping 10 ms windows.

    The trailing partial window is dropped.  The overall RMS divides the
    windowed sum of squares by the full signal length, so a truncated tail
    pulls it slightly down.

    Args:
        y: Mono signal.
        sr: Sample rate in Hz.

    Returns:
        AmplitudeData; the envelope is empty when the signal is shorter
        than one window.
    """
    y = np.asarray(y, dtype=np.float32)
    window = envelope_window_size(sr)
    n_windows = len(y) // window if window > 0 else 0

    if n_windows == 0:
        return AmplitudeData(
            envelope=np.zeros(0, dtype=np.float32),
            time_stamps=np.zeros(0, dtype=np.float64),
            peak=0.0,
            rms=0.0,
        )

    blocks = y[: n_windows * window].reshape(n_windows, window).astype(np.float64)
    envelope = np.max(np.abs(blocks), axis=1)
    sum_squares = float(np.sum(blocks * blocks))

    return AmplitudeData(
        envelope=envelope.astype(np.float32),
        time_stamps=np.arange(n_windows) * window / sr,
        peak=float(envelope.max()),
        rms=float(np.sqrt(sum_squares / len(y))),
    )
