"""
Request/response boundary around the analysis pipeline.

Callers post an :class:`AnalysisRequest` and receive
:class:`AnalysisResponse` messages through an ``emit`` callback: zero or
more progress updates followed by exactly one result or error.  Nothing
raised inside an analysis crosses this boundary; every failure becomes an
``ERROR`` response.

:meth:`AnalysisWorker.submit` runs requests on a thread pool so long
analyses do not block the caller; each submission gets its own
:class:`CancellationToken`.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

import numpy as np

from spectrascope.config import AnalysisConfig
from spectrascope.core.analyzer import FeatureAnalyzer
from spectrascope.core.stream import RealtimeAnalyzer
from spectrascope.errors import ErrorCategory, InvalidRequestError, SpectrascopeError
from spectrascope.progress import CancellationToken

logger = logging.getLogger(__name__)


class RequestType(str, Enum):
    ANALYZE_AUDIO = "ANALYZE_AUDIO"
    PROCESS_REALTIME = "PROCESS_REALTIME"
    EXTRACT_FEATURES = "EXTRACT_FEATURES"


class ResponseType(str, Enum):
    ANALYSIS_COMPLETE = "ANALYSIS_COMPLETE"
    REALTIME_FRAME = "REALTIME_FRAME"
    FEATURES_EXTRACTED = "FEATURES_EXTRACTED"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"
    ERROR = "ERROR"


@dataclass
class AnalysisRequest:
    """One unit of work for the worker."""

    type: Union[RequestType, str]
    samples: Optional[np.ndarray] = None
    sample_rate: Optional[int] = None
    config: Union[AnalysisConfig, Mapping[str, Any], None] = None
    progress_id: Optional[str] = None


@dataclass
class AnalysisResponse:
    """Message emitted back to the caller."""

    type: ResponseType
    result: Any = None
    progress: Optional[float] = None
    progress_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    category: Optional[ErrorCategory] = None

    @property
    def is_error(self) -> bool:
        return self.type is ResponseType.ERROR


Emit = Callable[[AnalysisResponse], None]


def error_response(
    error: str,
    code: str = "ANALYSIS_FAILED",
    progress_id: Optional[str] = None,
    category: ErrorCategory = ErrorCategory.AUDIO_PROCESSING,
) -> AnalysisResponse:
    return AnalysisResponse(
        type=ResponseType.ERROR,
        error=error,
        code=code,
        progress_id=progress_id,
        category=category,
    )


class AnalysisWorker:
    """
    Dispatches analysis requests and reports results as messages.

    Args:
        config: Base configuration; full-analysis requests may override it
            for their own run only.
        max_workers: Thread pool size used by :meth:`submit`.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, max_workers: int = 1):
        self.config = config or AnalysisConfig()
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Synchronous dispatch
    # ------------------------------------------------------------------

    def handle(
        self,
        request: AnalysisRequest,
        emit: Emit,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """
        Process ``request`` on the calling thread.

        ``emit`` receives every progress update and then exactly one final
        response.
        """
        try:
            kind = RequestType(request.type)
        except ValueError:
            emit(error_response(
                f"Unknown message type: {request.type}",
                "UNKNOWN_REQUEST",
                category=ErrorCategory.VALIDATION,
            ))
            return

        try:
            if kind is RequestType.ANALYZE_AUDIO:
                response = self._analyze(request, emit, cancel, include_envelope=True)
            elif kind is RequestType.EXTRACT_FEATURES:
                response = self._analyze(request, emit, cancel, include_envelope=False)
            else:
                response = self._process_realtime(request)
        except SpectrascopeError as exc:
            logger.info("%s request failed: %s (%s)", kind.value, exc.message, exc.code)
            response = error_response(exc.message, exc.code, request.progress_id, exc.category)
        except Exception as exc:
            logger.exception("Unexpected failure while handling %s", kind.value)
            response = error_response(f"Worker error: {exc}", progress_id=request.progress_id)

        emit(response)

    def _analyze(
        self,
        request: AnalysisRequest,
        emit: Emit,
        cancel: Optional[CancellationToken],
        include_envelope: bool,
    ) -> AnalysisResponse:
        if request.samples is None or request.sample_rate is None:
            raise InvalidRequestError("Missing audio buffer or sample rate")

        config = self.config
        if include_envelope:
            config = self.config.merged(request.config)

        def report_progress(percent: float, message: str) -> None:
            emit(AnalysisResponse(
                type=ResponseType.PROGRESS_UPDATE,
                progress=percent,
                progress_id=request.progress_id,
                message=message,
            ))

        features = FeatureAnalyzer(config).analyze(
            request.samples,
            request.sample_rate,
            progress=report_progress if request.progress_id is not None else None,
            cancel=cancel,
            include_envelope=include_envelope,
        )
        logger.info(
            "Analysis complete: %d frames, tempo %.1f BPM",
            features.n_frames, features.tempo,
        )
        return AnalysisResponse(
            type=(
                ResponseType.ANALYSIS_COMPLETE if include_envelope
                else ResponseType.FEATURES_EXTRACTED
            ),
            result=features,
            progress_id=request.progress_id,
        )

    def _process_realtime(self, request: AnalysisRequest) -> AnalysisResponse:
        if request.samples is None:
            raise InvalidRequestError("Missing channel data for real-time processing")

        frame = RealtimeAnalyzer(self.config).process_frame(request.samples)
        return AnalysisResponse(type=ResponseType.REALTIME_FRAME, result=frame)

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def submit(
        self,
        request: AnalysisRequest,
        emit: Emit,
    ) -> tuple[Future, CancellationToken]:
        """
        Run :meth:`handle` on the worker pool.

        Returns:
            Tuple of (future resolving to None once the final response has
            been emitted, token that cancels the analysis).
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="spectrascope"
            )
        token = CancellationToken()
        future = self._executor.submit(self.handle, request, emit, token)
        return future, token

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self) -> "AnalysisWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
