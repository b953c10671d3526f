"""
Feature serialization module.

Exports analysis results to JSON (one record per spectral frame plus
summary blocks) or to a NumPy archive for visualization and indexing
layers.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from spectrascope.core.analyzer import AudioFeatures


@dataclass
class FeatureMetadata:
    """Metadata header for the exported feature document."""

    tempo: float
    duration: float
    sample_rate: int
    fft_size: int
    n_frames: int
    key: str
    schema_version: str = "1.0"


class FeatureExporter:
    """
    Exports :class:`AudioFeatures` to JSON-ready dictionaries and files.

    Spectra themselves are large; they are only included in JSON when
    ``include_spectra`` is set, and always in the NumPy archive.
    """

    def __init__(self, precision: int = 4, include_spectra: bool = False):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
            include_spectra: Embed each frame's magnitude spectrum in JSON.
        """
        self.precision = precision
        self.include_spectra = include_spectra

    def _round(self, value: float) -> Optional[float]:
        """Round to configured precision; NaN and inf become None."""
        f = float(value)
        if np.isnan(f) or np.isinf(f):
            return None
        return round(f, self.precision)

    def _round_list(self, values: np.ndarray) -> list[Optional[float]]:
        return [self._round(v) for v in np.asarray(values).ravel()]

    def _build_frame(self, index: int, features: AudioFeatures) -> dict[str, Any]:
        """
        Build a single spectral frame's record.

        Args:
            index: Frame index.
            features: Source features.

        Returns:
            Dictionary with the frame's per-frame descriptors.
        """
        freq = features.frequency_data
        frame: dict[str, Any] = {
            "frame_index": index,
            "time": self._round(freq.time_stamps[index]),
            "spectral_centroid": self._round(features.spectral_centroid[index]),
            "spectral_rolloff": self._round(features.spectral_rolloff[index]),
            "harmonic_complexity": self._round(features.harmonic_complexity[index]),
            "mfcc": self._round_list(features.mfcc[index]),
        }
        if self.include_spectra:
            frame["spectrum"] = self._round_list(freq.frequencies[index])
        return frame

    def to_dict(self, features: AudioFeatures) -> dict[str, Any]:
        """
        Build the complete feature document.

        Args:
            features: Result of :meth:`FeatureAnalyzer.analyze`.

        Returns:
            Dictionary ready for ``json.dump``.
        """
        freq = features.frequency_data
        metadata = FeatureMetadata(
            tempo=self._round(features.tempo),
            duration=self._round(features.duration),
            sample_rate=int(freq.sample_rate),
            fft_size=int(freq.fft_size),
            n_frames=freq.n_frames,
            key=features.key,
        )

        document: dict[str, Any] = {
            "metadata": {
                "tempo": metadata.tempo,
                "duration": metadata.duration,
                "sample_rate": metadata.sample_rate,
                "fft_size": metadata.fft_size,
                "n_frames": metadata.n_frames,
                "key": metadata.key,
                "schema_version": metadata.schema_version,
            },
            "frames": [self._build_frame(i, features) for i in range(freq.n_frames)],
            "rhythm": {
                "tempo": metadata.tempo,
                "beat_times": self._round_list(features.beat_times),
                "onset_times": self._round_list(features.onset_times),
            },
            "zero_crossing_rate": self._round_list(features.zero_crossing_rate),
        }

        amplitude = features.amplitude_envelope
        if amplitude is not None:
            document["amplitude"] = {
                "peak": self._round(amplitude.peak),
                "rms": self._round(amplitude.rms),
                "envelope": self._round_list(amplitude.envelope),
                "time_stamps": self._round_list(amplitude.time_stamps),
            }

        return document

    def export_json(
        self,
        features: AudioFeatures,
        output_path: Union[str, Path],
        indent: int = 2,
    ) -> Path:
        """
        Export features to a JSON file.

        Returns:
            Path to written file.
        """
        document = self.to_dict(features)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=indent)

        return output_path

    def export_numpy(
        self,
        features: AudioFeatures,
        output_path: Union[str, Path],
    ) -> Path:
        """
        Export features as NumPy .npz archive for faster loading.

        Returns:
            Path to written file.
        """
        output_path = Path(output_path)
        freq = features.frequency_data

        arrays: dict[str, Any] = dict(
            frequencies=freq.frequencies,
            time_stamps=freq.time_stamps,
            spectral_centroid=features.spectral_centroid,
            spectral_rolloff=features.spectral_rolloff,
            zero_crossing_rate=features.zero_crossing_rate,
            harmonic_complexity=features.harmonic_complexity,
            mfcc=features.mfcc,
            beat_times=features.beat_times,
            onset_times=features.onset_times,
            tempo=np.array([features.tempo]),
            sample_rate=np.array([freq.sample_rate]),
            fft_size=np.array([freq.fft_size]),
        )

        amplitude = features.amplitude_envelope
        if amplitude is not None:
            arrays["envelope"] = amplitude.envelope
            arrays["envelope_time_stamps"] = amplitude.time_stamps
            arrays["envelope_peak_rms"] = np.array([amplitude.peak, amplitude.rms])

        np.savez_compressed(output_path, **arrays)

        return output_path
