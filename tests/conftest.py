"""Shared synthetic signals for the analysis tests."""

import numpy as np
import pytest

SINE_SR = 44100

# 16384 Hz with hop 512 puts every 0.5 s click on the same frame phase
CLICK_SR = 16384
CLICK_INTERVAL = 8192  # samples, 0.5 s -> 120 BPM
CLICK_OFFSET = 4096 + 256
N_CLICKS = 16


def make_sine(freq: float, sr: int, duration: float, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(sr * duration)) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


@pytest.fixture
def pure_sine():
    """One second of a 440 Hz sine at 44.1 kHz."""
    return make_sine(440.0, SINE_SR, 1.0), SINE_SR


@pytest.fixture
def silence():
    """One second of digital silence at 44.1 kHz."""
    return np.zeros(SINE_SR, dtype=np.float32), SINE_SR


def make_click_track(
    sr: int,
    bpm: float = 120.0,
    n_clicks: int = N_CLICKS,
    offset: float = 0.25,
) -> np.ndarray:
    """Unit impulses at ``bpm`` starting ``offset`` seconds in."""
    interval = 60.0 / bpm
    y = np.zeros(int(sr * (offset + interval * n_clicks)), dtype=np.float32)
    y[np.round((offset + interval * np.arange(n_clicks)) * sr).astype(int)] = 1.0
    return y


@pytest.fixture
def click_track_at():
    """Factory for click tracks at an arbitrary sample rate."""
    return make_click_track


@pytest.fixture
def click_track():
    """Unit impulses every 0.5 s (120 BPM) at 16384 Hz."""
    n_samples = CLICK_OFFSET + CLICK_INTERVAL * N_CLICKS
    y = np.zeros(n_samples, dtype=np.float32)
    y[CLICK_OFFSET + CLICK_INTERVAL * np.arange(N_CLICKS)] = 1.0
    return y, CLICK_SR


@pytest.fixture
def white_noise():
    rng = np.random.default_rng(1234)
    sr = 22050
    return (0.3 * rng.standard_normal(sr)).astype(np.float32), sr


@pytest.fixture
def harmonic_tone():
    """220 Hz fundamental plus three harmonics with 1/h amplitudes."""
    sr = 22050
    y = sum(make_sine(220.0 * h, sr, 1.0, amplitude=0.4 / h) for h in range(1, 5))
    return y.astype(np.float32), sr
