"""
Low-latency single-frame analysis.

Architecture Overview
---------------------
::

    Audio device / caller
        │
        ▼  (one frame, e.g. 2 048 samples)
    RealtimeAnalyzer.process_frame(frame)
        │
        ├─► window + magnitude transform   (no segmentation, no history)
        ├─► |x| per sample                 (instantaneous amplitude)
        │
        └─► ProcessedFrame  (returned to the caller for rendering)

The path has no suspension points: it runs synchronously on the calling
thread and skips every multi-frame aggregate (onsets, tempo, beats).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from spectrascope.config import AnalysisConfig
from spectrascope.core.spectrum import compute_spectrum
from spectrascope.errors import InvalidRequestError


@dataclass
class ProcessedFrame:
    """Spectrum and rectified samples of one caller-supplied frame."""

    frequency_data: np.ndarray  # (len(frame) // 2,) magnitudes
    amplitude_data: np.ndarray  # (len(frame),) |x|
    timestamp: float            # wall-clock capture time, seconds since epoch


class RealtimeAnalyzer:
    """
    Single-frame analysis for live visualization.

    Parameters
    ----------
    config:
        Window and transform selection.  ``fft_size`` is not enforced: the
        spectrum length follows the frame length.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self._frame_index: int = 0

    @property
    def frames_processed(self) -> int:
        return self._frame_index

    def process_frame(self, frame: np.ndarray) -> ProcessedFrame:
        """
        Window and transform one frame.

        Parameters
        ----------
        frame:
            1-D samples of even length.

        Returns
        -------
        ProcessedFrame

        Raises
        ------
        InvalidRequestError
            If the frame is empty or not one-dimensional.
        """
        samples = np.asarray(frame, dtype=np.float32)
        if samples.ndim != 1 or samples.size == 0:
            raise InvalidRequestError(
                "Real-time processing expects a non-empty 1-D frame"
            )

        spectrum = compute_spectrum(samples, self.config.window, self.config.transform)
        self._frame_index += 1

        return ProcessedFrame(
            frequency_data=spectrum,
            amplitude_data=np.abs(samples),
            timestamp=time.time(),
        )
