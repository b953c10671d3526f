"""
Onset detection, tempo estimation and beat tracking.

Two onset detectors are provided: a spectral-flux detector with an adaptive
``mean + 2 * std`` threshold, and a cheaper peak picker on the amplitude
envelope.  Tempo comes from autocorrelating an onset impulse train, falling
back to mean inter-peak intervals when too few onsets are found.  Beats are
a tempo grid snapped to nearby envelope onsets.
"""

import logging

import numpy as np

from spectrascope.core.envelope import AmplitudeData
from spectrascope.core.spectrum import FrequencyData

logger = logging.getLogger(__name__)

ENVELOPE_ONSET_RATIO = 0.6
FLUX_THRESHOLD_STDS = 2.0

MIN_ENVELOPE_LENGTH = 100
MIN_ONSETS_FOR_AUTOCORRELATION = 4
IMPULSE_RATE = 100  # Hz, 10 ms resolution
MAX_LAG_SECONDS = 2
MIN_BPM = 60
MAX_BPM = 200

BEAT_SNAP_TOLERANCE = 0.3  # fraction of the beat period


# ---------------------------------------------------------------------------
# Onsets
# ---------------------------------------------------------------------------

def spectral_flux(freq: FrequencyData) -> np.ndarray:
    """
    Half-wave rectified frame-to-frame magnitude increase.

    Returns:
        (n_frames - 1,) flux; ``flux[i]`` compares frame ``i + 1`` to frame ``i``.
    """
    if freq.n_frames < 2:
        return np.zeros(0, dtype=np.float64)
    diff = np.diff(freq.frequencies.astype(np.float64), axis=0)
    return np.maximum(diff, 0.0).sum(axis=1)


def adaptive_threshold(values: np.ndarray, n_stds: float = FLUX_THRESHOLD_STDS) -> float:
    """``mean + n_stds * std`` (population standard deviation)."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(values) + n_stds * np.std(values))


def _strict_peaks(values: np.ndarray, threshold: float) -> np.ndarray:
    """Interior indices that exceed ``threshold`` and both neighbours."""
    if len(values) < 3:
        return np.zeros(0, dtype=int)
    mid = values[1:-1]
    is_peak = (mid > threshold) & (mid > values[:-2]) & (mid > values[2:])
    return np.flatnonzero(is_peak) + 1


def detect_onsets(freq: FrequencyData) -> np.ndarray:
    """
    Spectral-flux onsets.

    A flux peak at index ``i`` is reported at the start time of frame
    ``i + 1``, the frame where the new energy appears.

    Returns:
        Onset times in seconds, ascending.
    """
    flux = spectral_flux(freq)
    if len(flux) == 0:
        return np.zeros(0, dtype=np.float64)

    peaks = _strict_peaks(flux, adaptive_threshold(flux))
    return np.asarray(freq.time_stamps, dtype=np.float64)[peaks + 1]


def detect_envelope_onsets(amplitude: AmplitudeData) -> np.ndarray:
    """
    Envelope peaks above 60% of the envelope maximum.

    Returns:
        Onset times in seconds, ascending.
    """
    envelope = np.asarray(amplitude.envelope, dtype=np.float64)
    if len(envelope) < 3:
        return np.zeros(0, dtype=np.float64)

    threshold = envelope.max() * ENVELOPE_ONSET_RATIO
    peaks = _strict_peaks(envelope, threshold)
    return np.asarray(amplitude.time_stamps, dtype=np.float64)[peaks]


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------

def simple_tempo(amplitude: AmplitudeData) -> float:
    """Tempo from the mean interval between envelope peaks; 0 if undetermined."""
    peaks = detect_envelope_onsets(amplitude)
    if len(peaks) < 2:
        return 0.0

    avg_interval = float(np.mean(np.diff(peaks)))
    return 60.0 / avg_interval if avg_interval > 0 else 0.0


def onset_autocorrelation(onsets: np.ndarray) -> np.ndarray:
    """
    Autocorrelation of a 100 Hz impulse train built from ``onsets``.

    The train spans ``first .. last`` onset; lags run from 0 to
    ``min(len // 2, 200) - 1`` with lag 0 left at 0.
    """
    onsets = np.asarray(onsets, dtype=np.float64)
    if len(onsets) == 0:
        return np.zeros(0, dtype=np.float64)

    length = int(np.floor((onsets[-1] - onsets[0]) * IMPULSE_RATE))
    impulses = np.zeros(max(length, 0), dtype=np.float64)
    index = np.floor((onsets - onsets[0]) * IMPULSE_RATE).astype(int)
    index = index[(index >= 0) & (index < length)]
    impulses[index] = 1.0

    max_lag = min(length // 2, IMPULSE_RATE * MAX_LAG_SECONDS)
    autocorr = np.zeros(max(max_lag, 0), dtype=np.float64)
    for lag in range(1, max_lag):
        autocorr[lag] = np.dot(impulses[:-lag], impulses[lag:])
    return autocorr


def autocorrelation_tempo(onsets: np.ndarray) -> float:
    """
    Tempo from the strongest onset periodicity between 60 and 200 BPM.

    Returns:
        ``60 * 100 / best_lag`` or 0 when no positive correlation is found.
    """
    if len(onsets) < MIN_ONSETS_FOR_AUTOCORRELATION:
        return 0.0

    autocorr = onset_autocorrelation(onsets)
    min_lag = int(np.floor(60 * IMPULSE_RATE / MAX_BPM))
    max_lag = min(int(np.floor(60 * IMPULSE_RATE / MIN_BPM)), len(autocorr))
    if max_lag <= min_lag:
        return 0.0

    search = autocorr[min_lag:max_lag]
    best = int(np.argmax(search))
    if search[best] <= 0:
        return 0.0
    return 60.0 * IMPULSE_RATE / (min_lag + best)


def estimate_tempo(amplitude: AmplitudeData, onsets: np.ndarray) -> float:
    """
    Estimate tempo in BPM.

    Args:
        amplitude: Envelope of the signal (gates short inputs and feeds the
            fallback).
        onsets: Spectral-flux onset times.

    Returns:
        Tempo in BPM, 0 when the signal is too short or has no periodicity.
    """
    if len(amplitude.envelope) < MIN_ENVELOPE_LENGTH:
        return 0.0

    if len(onsets) < MIN_ONSETS_FOR_AUTOCORRELATION:
        logger.debug("Only %d onsets, using envelope peak intervals", len(onsets))
        return simple_tempo(amplitude)

    return autocorrelation_tempo(onsets)


# ---------------------------------------------------------------------------
# Beats
# ---------------------------------------------------------------------------

def track_beats(tempo: float, onsets: np.ndarray) -> np.ndarray:
    """
    Snap a beat grid at ``tempo`` to the nearest onsets.

    The grid starts at the first onset and advances by one beat period until
    it passes the last onset.  Each grid point takes the closest onset lying
    within 30% of a period; grid points with no such onset are skipped.

    Returns:
        Beat times in seconds, all within ``[onsets[0], onsets[-1]]``.
    """
    onsets = np.asarray(onsets, dtype=np.float64)
    if tempo <= 0 or len(onsets) < 2:
        return np.zeros(0, dtype=np.float64)

    period = 60.0 / tempo
    tolerance = period * BEAT_SNAP_TOLERANCE

    beats = []
    t = onsets[0]
    while t <= onsets[-1]:
        distance = np.abs(onsets - t)
        nearest = int(np.argmin(distance))
        if distance[nearest] < tolerance:
            beats.append(onsets[nearest])
        t += period

    return np.asarray(beats, dtype=np.float64)
