"""
Per-frame spectral descriptors.

Centroid, rolloff and harmonic complexity are pure functions of a
:class:`FrequencyData`; the zero-crossing rate works on the time-domain
signal.  Every descriptor falls back to 0 on zero-energy input.
"""

import numpy as np

from spectrascope.core.spectrum import FrequencyData

# Harmonic complexity search parameters
FUNDAMENTAL_MIN_HZ = 80.0
FUNDAMENTAL_MAX_HZ = 800.0
N_HARMONICS = 10
HARMONIC_HALF_WIDTH = 3
HARMONIC_PRESENCE_RATIO = 0.1

# Zero-crossing rate parameters
ZCR_WINDOW_SECONDS = 0.025
PRE_EMPHASIS = 0.97


def spectral_centroid(freq: FrequencyData) -> np.ndarray:
    """
    Magnitude-weighted mean frequency of every frame, DC bin excluded.

    Returns:
        (n_frames,) centroid in Hz; 0 for frames with no energy.
    """
    mags = freq.frequencies[:, 1:].astype(np.float64)
    if mags.shape[1] == 0:
        return np.zeros(freq.n_frames, dtype=np.float32)

    weighted = mags @ freq.bin_frequencies[1:]
    total = mags.sum(axis=1)
    centroid = np.divide(weighted, total, out=np.zeros_like(total), where=total > 0)
    return centroid.astype(np.float32)


def spectral_rolloff(freq: FrequencyData, threshold: float = 0.85) -> np.ndarray:
    """
    Frequency below which ``threshold`` of the squared-magnitude energy lies.

    Energy is accumulated from bin 1 upwards; the first bin whose cumulative
    energy reaches the target is reported.

    Returns:
        (n_frames,) rolloff in Hz; 0 for frames with no energy.
    """
    power = freq.frequencies[:, 1:].astype(np.float64) ** 2
    if power.shape[1] == 0:
        return np.zeros(freq.n_frames, dtype=np.float32)

    cumulative = np.cumsum(power, axis=1)
    total = cumulative[:, -1]
    reached = cumulative >= (total * threshold)[:, None]
    rolloff_bin = np.argmax(reached, axis=1) + 1

    rolloff = rolloff_bin * freq.sample_rate / freq.fft_size
    return np.where(total > 0, rolloff, 0.0).astype(np.float32)


def zero_crossing_rate(y: np.ndarray, sr: int) -> np.ndarray:
    """
    Crossings per second over 25 ms windows with 50% overlap.

    The signal is pre-emphasised (``x[n] - 0.97 * x[n-1]``, with the first
    sample using itself as predecessor) and consecutive emphasised samples
    are compared by sign.  A window starting at ``s`` counts crossings at
    ``j = s+1 .. e-1`` where ``e = min(s + W, len(y) - 1)`` and divides by
    ``e - s``.

    Returns:
        (n_windows,) rate in crossings per second; empty for signals shorter
        than one window.
    """
    y = np.asarray(y, dtype=np.float64)
    window = int(np.floor(sr * ZCR_WINDOW_SECONDS))
    hop = window // 2
    if window < 1 or hop < 1 or len(y) < window:
        return np.zeros(0, dtype=np.float32)

    n_windows = (len(y) - window) // hop + 1

    previous = np.concatenate([y[:1], y[:-1]])
    emphasised = y - PRE_EMPHASIS * previous
    positive = emphasised >= 0
    # changes[j - 1] marks a sign change between samples j - 1 and j
    changes = positive[1:] != positive[:-1]
    counts = np.concatenate([[0], np.cumsum(changes)])

    starts = np.arange(n_windows) * hop
    ends = np.minimum(starts + window, len(y) - 1)
    crossings = counts[np.maximum(ends - 1, starts)] - counts[starts]
    span = ends - starts

    rate = np.divide(
        crossings * float(sr), span,
        out=np.zeros(n_windows, dtype=np.float64),
        where=span > 0,
    )
    return rate.astype(np.float32)


def harmonic_complexity(freq: FrequencyData) -> np.ndarray:
    """
    Harmonic richness of every frame.

    The strongest bin between 80 and 800 Hz is taken as the fundamental.
    Harmonics 1-10 whose bin lies inside the spectrum are tested: a harmonic
    is present when the summed magnitude of the +/-3 bins around it exceeds
    10% of the fundamental peak.  The score is the number of present
    harmonics times their share of the frame's total magnitude.

    Returns:
        (n_frames,) complexity; 0 where no fundamental is found.
    """
    spectra = freq.frequencies.astype(np.float64)
    n_frames, n_bins = spectra.shape
    result = np.zeros(n_frames, dtype=np.float64)
    if n_frames == 0:
        return result.astype(np.float32)

    min_bin = int(np.floor(FUNDAMENTAL_MIN_HZ * n_bins * 2 / freq.sample_rate))
    max_bin = min(
        int(np.floor(FUNDAMENTAL_MAX_HZ * n_bins * 2 / freq.sample_rate)), n_bins
    )
    if max_bin <= min_bin:
        return result.astype(np.float32)

    band = spectra[:, min_bin:max_bin]
    fundamental_bin = min_bin + np.argmax(band, axis=1)
    peak = band.max(axis=1)
    voiced = (peak > 0) & (fundamental_bin > 0)
    if not voiced.any():
        return result.astype(np.float32)

    # Harmonic bins grow with h, so the in-range mask is always a prefix
    harmonics = np.arange(1, N_HARMONICS + 1)
    harmonic_bin = fundamental_bin[:, None] * harmonics[None, :]
    in_range = harmonic_bin < n_bins

    lo = np.clip(harmonic_bin - HARMONIC_HALF_WIDTH, 0, n_bins - 1)
    hi = np.clip(harmonic_bin + HARMONIC_HALF_WIDTH, 0, n_bins - 1)
    cumulative = np.concatenate([np.zeros((n_frames, 1)), np.cumsum(spectra, axis=1)], axis=1)
    window_sum = (
        np.take_along_axis(cumulative, hi + 1, axis=1)
        - np.take_along_axis(cumulative, lo, axis=1)
    )

    present = in_range & (window_sum > HARMONIC_PRESENCE_RATIO * peak[:, None])
    harmonic_energy = np.where(present, window_sum, 0.0).sum(axis=1)
    harmonic_count = present.sum(axis=1)
    total = cumulative[:, -1]

    ratio = np.divide(
        harmonic_energy, total, out=np.zeros(n_frames), where=total > 0
    )
    result = np.where(voiced, harmonic_count * ratio, 0.0)
    return result.astype(np.float32)
