"""
Mel filter bank and cepstral coefficients.

A lightweight MFCC variant: 26 rectangular averaging filters centred on
mel-spaced frequencies, followed by a 13-point DCT-II without log
compression.
"""

from functools import lru_cache

import librosa
import numpy as np
from scipy import fft as scipy_fft

from spectrascope.core.spectrum import FrequencyData

N_MEL_FILTERS = 26
N_MFCC = 13


def hz_to_mel(hz):
    """HTK mel scale: ``2595 * log10(1 + hz / 700)``."""
    return librosa.hz_to_mel(hz, htk=True)


def mel_to_hz(mel):
    """Inverse HTK mel scale: ``700 * (10 ** (mel / 2595) - 1)``."""
    return librosa.mel_to_hz(mel, htk=True)


@lru_cache(maxsize=16)
def mel_filter_bins(
    n_bins: int,
    sr: int,
    n_filters: int = N_MEL_FILTERS,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Bin ranges ``[lo, hi)`` for every mel filter.

    Centres are evenly spaced in mel between 0 Hz and Nyquist (endpoints
    excluded); each filter spans ``n_bins // n_filters`` bins (at least one)
    either side of its centre bin, clipped to the spectrum.
    """
    mel_points = np.linspace(hz_to_mel(0.0), hz_to_mel(sr / 2), n_filters + 2)
    centre_hz = mel_to_hz(mel_points[1:-1])
    centre_bin = np.floor(centre_hz * n_bins * 2 / sr).astype(int)

    half_width = max(1, n_bins // n_filters)
    lo = np.clip(centre_bin - half_width, 0, n_bins)
    hi = np.clip(centre_bin + half_width, 0, n_bins)
    return lo, hi


def apply_mel_filter_bank(
    spectra: np.ndarray,
    sr: int,
    n_filters: int = N_MEL_FILTERS,
) -> np.ndarray:
    """
    Average spectrum magnitudes inside every mel filter.

    Args:
        spectra: (n_frames, n_bins) magnitudes.
        sr: Sample rate in Hz.

    Returns:
        (n_frames, n_filters) filter outputs; 0 for empty filters.
    """
    spectra = np.atleast_2d(np.asarray(spectra, dtype=np.float64))
    n_frames, n_bins = spectra.shape
    lo, hi = mel_filter_bins(n_bins, sr, n_filters)

    cumulative = np.concatenate([np.zeros((n_frames, 1)), np.cumsum(spectra, axis=1)], axis=1)
    sums = cumulative[:, hi] - cumulative[:, lo]
    counts = (hi - lo).astype(np.float64)
    return np.divide(
        sums, counts,
        out=np.zeros((n_frames, n_filters)),
        where=counts > 0,
    )


def mfcc(freq: FrequencyData, n_mfcc: int = N_MFCC, n_filters: int = N_MEL_FILTERS) -> np.ndarray:
    """
    Cepstral coefficients for every frame.

    ``c_j = sum_k filtered_k * cos(pi * j * (k + 0.5) / n_filters)``, i.e. half
    of scipy's unnormalised DCT-II.

    Returns:
        (n_frames, n_mfcc) float32 array.
    """
    if freq.n_frames == 0:
        return np.zeros((0, n_mfcc), dtype=np.float32)

    filtered = apply_mel_filter_bank(freq.frequencies, freq.sample_rate, n_filters)
    coefficients = 0.5 * scipy_fft.dct(filtered, type=2, axis=1)[:, :n_mfcc]
    return coefficients.astype(np.float32)
