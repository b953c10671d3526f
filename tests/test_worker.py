"""Tests for the request/response worker boundary."""

import threading

import numpy as np
import pytest

from spectrascope.config import AnalysisConfig
from spectrascope.core.analyzer import AudioFeatures
from spectrascope.core.stream import ProcessedFrame, RealtimeAnalyzer
from spectrascope.errors import ErrorCategory, InvalidRequestError
from spectrascope.progress import CancellationToken
from spectrascope.worker import (
    AnalysisRequest,
    AnalysisWorker,
    RequestType,
    ResponseType,
)


class Collector:
    """Records every emitted response."""

    def __init__(self):
        self.responses = []

    def __call__(self, response):
        self.responses.append(response)

    @property
    def final(self):
        return self.responses[-1]

    @property
    def progress(self):
        return [r for r in self.responses if r.type is ResponseType.PROGRESS_UPDATE]


@pytest.fixture
def worker():
    with AnalysisWorker() as w:
        yield w


class TestAnalyzeAudio:
    def test_complete(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit)

        assert emit.final.type is ResponseType.ANALYSIS_COMPLETE
        assert isinstance(emit.final.result, AudioFeatures)
        assert emit.final.result.amplitude_envelope is not None
        assert not emit.final.is_error

    def test_exactly_one_final_response(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(AnalysisRequest("ANALYZE_AUDIO", y, sr, progress_id="job-1"), emit)

        finals = [r for r in emit.responses if r.type is not ResponseType.PROGRESS_UPDATE]
        assert len(finals) == 1
        assert emit.responses[-1] is finals[0]

    def test_progress_only_with_progress_id(self, worker, pure_sine):
        y, sr = pure_sine

        silent = Collector()
        worker.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), silent)
        assert silent.progress == []

        tracked = Collector()
        worker.handle(
            AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr, progress_id="job-2"), tracked
        )
        assert tracked.progress
        assert all(r.progress_id == "job-2" for r in tracked.progress)
        assert all(0 <= r.progress <= 100 for r in tracked.progress)
        assert tracked.final.progress_id == "job-2"

    def test_progress_is_overall_with_stage_message(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(
            AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr, progress_id="job-3"), emit
        )

        values = [r.progress for r in emit.progress]
        assert values == sorted(values)
        assert values[-1] == pytest.approx(100.0)

        # 50 of 83 frames, weighted as 6 of 10 overall
        frame_update = next(r for r in emit.progress if "windows" in r.message)
        assert frame_update.message == (
            "Frequency analysis: Analyzing frequency spectrum: 50/83 windows"
        )
        assert frame_update.progress == pytest.approx(60.0 * 50 / 83)

    def test_missing_input(self, worker):
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, None, 44100), emit)

        assert len(emit.responses) == 1
        assert emit.final.is_error
        assert emit.final.code == "MISSING_INPUT"
        assert emit.final.category is ErrorCategory.VALIDATION

    def test_config_override_is_per_request(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(
            AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr, config={"fft_size": 1024}),
            emit,
        )

        assert emit.final.result.frequency_data.fft_size == 1024
        assert worker.config.fft_size == 2048

    def test_invalid_override(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(
            AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr, config={"fft_size": 1000}),
            emit,
        )
        assert emit.final.code == "INVALID_CONFIG"

    def test_cancelled(self, worker, pure_sine):
        y, sr = pure_sine
        token = CancellationToken()
        token.cancel()
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit, cancel=token)

        assert emit.final.is_error
        assert emit.final.code == "OPERATION_CANCELLED"
        assert emit.final.category is ErrorCategory.AUDIO_PROCESSING

    def test_memory_limit_category(self, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        with AnalysisWorker(AnalysisConfig(max_memory_bytes=1024)) as limited:
            limited.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit)

        assert emit.final.code == "MEMORY_LIMIT"
        assert emit.final.category is ErrorCategory.MEMORY_LIMITATION

    def test_unexpected_failure_becomes_error(self, worker, pure_sine, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("spectrascope.worker.FeatureAnalyzer.analyze", boom)
        y, sr = pure_sine
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit)

        assert emit.final.code == "ANALYSIS_FAILED"
        assert emit.final.error == "Worker error: disk on fire"


class TestExtractFeatures:
    def test_no_envelope(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.EXTRACT_FEATURES, y, sr), emit)

        assert emit.final.type is ResponseType.FEATURES_EXTRACTED
        assert emit.final.result.amplitude_envelope is None

    def test_ignores_overrides(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        worker.handle(
            AnalysisRequest(RequestType.EXTRACT_FEATURES, y, sr, config={"fft_size": 1024}),
            emit,
        )
        assert emit.final.result.frequency_data.fft_size == 2048


class TestRealtime:
    def test_frame(self, worker):
        frame = np.sin(np.linspace(0, 40 * np.pi, 2048)).astype(np.float32)
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.PROCESS_REALTIME, frame), emit)

        result = emit.final.result
        assert emit.final.type is ResponseType.REALTIME_FRAME
        assert isinstance(result, ProcessedFrame)
        assert result.frequency_data.shape == (1024,)
        np.testing.assert_allclose(result.amplitude_data, np.abs(frame))
        assert result.timestamp > 0

    def test_missing_channel_data(self, worker):
        emit = Collector()
        worker.handle(AnalysisRequest(RequestType.PROCESS_REALTIME), emit)
        assert emit.final.code == "MISSING_INPUT"

    def test_analyzer_rejects_empty_frame(self):
        with pytest.raises(InvalidRequestError):
            RealtimeAnalyzer().process_frame(np.zeros(0))

    def test_analyzer_counts_frames(self):
        analyzer = RealtimeAnalyzer(AnalysisConfig(window="blackman"))
        analyzer.process_frame(np.zeros(256))
        analyzer.process_frame(np.zeros(256))
        assert analyzer.frames_processed == 2


class TestDispatch:
    def test_unknown_type(self, worker):
        emit = Collector()
        worker.handle(AnalysisRequest("TRANSCODE"), emit)

        assert emit.final.is_error
        assert emit.final.code == "UNKNOWN_REQUEST"
        assert "TRANSCODE" in emit.final.error
        assert emit.final.category is ErrorCategory.VALIDATION

    def test_submit_runs_in_background(self, worker, pure_sine):
        y, sr = pure_sine
        emit = Collector()
        future, token = worker.submit(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit)

        assert future.result(timeout=60) is None
        assert not token.cancelled
        assert emit.final.type is ResponseType.ANALYSIS_COMPLETE

    def test_submit_cancellation(self, worker, pure_sine):
        y, sr = pure_sine
        gate = threading.Event()
        emit = Collector()

        # Hold the pool with a blocking task so the analysis starts after cancel()
        worker.submit(AnalysisRequest("BLOCK"), lambda r: gate.wait(timeout=10))
        future, token = worker.submit(AnalysisRequest(RequestType.ANALYZE_AUDIO, y, sr), emit)
        token.cancel()
        gate.set()

        future.result(timeout=60)
        assert emit.final.code == "OPERATION_CANCELLED"
