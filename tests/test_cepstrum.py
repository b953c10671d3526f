"""Tests for the mel filter bank and cepstral coefficients."""

import numpy as np
import pytest

from spectrascope.core.cepstrum import (
    N_MEL_FILTERS,
    apply_mel_filter_bank,
    hz_to_mel,
    mel_filter_bins,
    mel_to_hz,
    mfcc,
)
from spectrascope.core.spectrum import FrameSegmenter, FrequencyData


class TestMelScale:
    def test_known_values(self):
        assert hz_to_mel(0.0) == pytest.approx(0.0)
        assert hz_to_mel(700.0) == pytest.approx(2595 * np.log10(2))
        assert hz_to_mel(1000.0) == pytest.approx(1000.0, abs=0.5)

    def test_inverse(self):
        hz = np.array([0.0, 100.0, 440.0, 8000.0])
        np.testing.assert_allclose(mel_to_hz(hz_to_mel(hz)), hz, atol=1e-6)


class TestFilterBank:
    def test_bins_within_spectrum(self):
        lo, hi = mel_filter_bins(1024, 44100)
        assert len(lo) == len(hi) == N_MEL_FILTERS
        assert np.all(lo >= 0)
        assert np.all(hi <= 1024)
        assert np.all(lo < hi)

    def test_centres_ascending(self):
        lo, hi = mel_filter_bins(1024, 44100)
        assert np.all(np.diff(lo + hi) >= 0)

    def test_half_width(self):
        lo, hi = mel_filter_bins(1024, 44100)
        # 1024 // 26 = 39 bins either side, unless clipped
        unclipped = (lo > 0) & (hi < 1024)
        assert np.all((hi - lo)[unclipped] == 78)

    def test_small_spectrum_keeps_one_bin_width(self):
        lo, hi = mel_filter_bins(16, 8000)
        assert np.all(hi - lo <= 2)

    def test_constant_spectrum_gives_constant_outputs(self):
        spectra = np.full((2, 1024), 3.0)
        np.testing.assert_allclose(apply_mel_filter_bank(spectra, 44100), 3.0)


class TestMfcc:
    def test_shape(self, pure_sine):
        y, sr = pure_sine
        freq = FrameSegmenter().analyze(y, sr)
        coefficients = mfcc(freq)
        assert coefficients.shape == (freq.n_frames, 13)
        assert coefficients.dtype == np.float32

    def test_constant_spectrum(self):
        freq = FrequencyData(
            frequencies=np.ones((1, 1024), dtype=np.float32),
            time_stamps=np.zeros(1),
            sample_rate=44100,
            fft_size=2048,
        )
        coefficients = mfcc(freq)[0]
        assert coefficients[0] == pytest.approx(N_MEL_FILTERS)
        np.testing.assert_allclose(coefficients[1:], 0.0, atol=1e-4)

    def test_matches_cosine_sum(self):
        rng = np.random.default_rng(7)
        freq = FrequencyData(
            frequencies=rng.random((3, 512)).astype(np.float32),
            time_stamps=np.arange(3) * 0.01,
            sample_rate=22050,
            fft_size=1024,
        )
        filtered = apply_mel_filter_bank(freq.frequencies, 22050)
        k = np.arange(N_MEL_FILTERS)
        expected = np.stack(
            [filtered @ np.cos(np.pi * j * (k + 0.5) / N_MEL_FILTERS) for j in range(13)],
            axis=1,
        )
        np.testing.assert_allclose(mfcc(freq), expected, rtol=1e-4, atol=1e-5)

    def test_silence(self, silence):
        y, sr = silence
        assert np.all(mfcc(FrameSegmenter().analyze(y, sr)) == 0)

    def test_no_frames(self):
        assert mfcc(FrequencyData.empty(44100, 2048)).shape == (0, 13)
