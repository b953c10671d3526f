"""Tests for the feature document and file exports."""

import json

import numpy as np

from spectrascope.core.analyzer import FeatureAnalyzer
from spectrascope.io.exporter import FeatureExporter


def _analyze(signal, **kwargs):
    y, sr = signal
    return FeatureAnalyzer().analyze(y, sr, **kwargs)


def test_metadata_includes_schema_version(pure_sine):
    """Metadata should carry the schema version and analysis parameters."""
    document = FeatureExporter().to_dict(_analyze(pure_sine))
    meta = document["metadata"]

    assert meta["schema_version"] == "1.0"
    assert meta["sample_rate"] == 44100
    assert meta["fft_size"] == 2048
    assert meta["n_frames"] == len(document["frames"])
    assert meta["duration"] == 1.0
    assert meta["key"] == "Unknown"


def test_frame_records(pure_sine):
    features = _analyze(pure_sine)
    frame = FeatureExporter(precision=2).to_dict(features)["frames"][1]

    assert frame["frame_index"] == 1
    assert frame["time"] == round(512 / 44100, 2)
    assert len(frame["mfcc"]) == 13
    assert "spectrum" not in frame
    assert frame["spectral_centroid"] == round(float(features.spectral_centroid[1]), 2)


def test_spectra_included_on_request(pure_sine):
    document = FeatureExporter(include_spectra=True).to_dict(_analyze(pure_sine))
    assert len(document["frames"][0]["spectrum"]) == 1024


def test_amplitude_block_only_with_envelope(pure_sine):
    exporter = FeatureExporter()
    assert "amplitude" in exporter.to_dict(_analyze(pure_sine))
    assert "amplitude" not in exporter.to_dict(_analyze(pure_sine, include_envelope=False))


def test_non_finite_values_become_null():
    exporter = FeatureExporter()
    assert exporter._round(float("nan")) is None
    assert exporter._round(float("inf")) is None
    assert exporter._round(1.23456) == 1.2346


def test_export_json(tmp_path, click_track):
    path = FeatureExporter().export_json(_analyze(click_track), tmp_path / "features.json")

    with open(path, encoding="utf-8") as f:
        document = json.load(f)

    assert document["rhythm"]["tempo"] == document["metadata"]["tempo"]
    assert len(document["rhythm"]["beat_times"]) >= 14
    assert document["amplitude"]["peak"] == 1.0


def test_export_numpy(tmp_path, pure_sine):
    features = _analyze(pure_sine)
    path = FeatureExporter().export_numpy(features, tmp_path / "features.npz")

    with np.load(path) as archive:
        np.testing.assert_array_equal(archive["frequencies"], features.frequency_data.frequencies)
        assert archive["mfcc"].shape == (features.n_frames, 13)
        assert archive["fft_size"][0] == 2048
        assert "envelope" in archive.files
