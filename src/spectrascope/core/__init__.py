"""Core audio analysis modules."""

from spectrascope.core.analyzer import AudioFeatures, FeatureAnalyzer
from spectrascope.core.envelope import AmplitudeData, extract_amplitude_envelope
from spectrascope.core.spectrum import FrameSegmenter, FrequencyData
from spectrascope.core.stream import ProcessedFrame, RealtimeAnalyzer

__all__ = [
    "AmplitudeData",
    "AudioFeatures",
    "FeatureAnalyzer",
    "FrameSegmenter",
    "FrequencyData",
    "ProcessedFrame",
    "RealtimeAnalyzer",
    "extract_amplitude_envelope",
]
