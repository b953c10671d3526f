"""Spectral and rhythmic feature extraction for mono audio buffers."""

from spectrascope.config import AnalysisConfig
from spectrascope.core.analyzer import AudioFeatures, FeatureAnalyzer
from spectrascope.core.envelope import AmplitudeData
from spectrascope.core.spectrum import FrequencyData
from spectrascope.core.stream import ProcessedFrame, RealtimeAnalyzer
from spectrascope.io.exporter import FeatureExporter
from spectrascope.worker import AnalysisRequest, AnalysisResponse, AnalysisWorker

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "AnalysisRequest",
    "AnalysisResponse",
    "AnalysisWorker",
    "AmplitudeData",
    "AudioFeatures",
    "FeatureAnalyzer",
    "FeatureExporter",
    "FrequencyData",
    "ProcessedFrame",
    "RealtimeAnalyzer",
]
