"""
Error types raised by the analysis pipeline.

Every error carries a stable ``code`` and a coarse ``category`` so the worker
boundary can turn it into a structured error response without inspecting
messages.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Coarse classification of analysis failures."""

    VALIDATION = "validation"
    AUDIO_PROCESSING = "audio-processing"
    MEMORY_LIMITATION = "memory-limitation"


class SpectrascopeError(Exception):
    """Base class for all errors raised by spectrascope."""

    code = "ANALYSIS_FAILED"
    category = ErrorCategory.AUDIO_PROCESSING

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidRequestError(SpectrascopeError):
    """A request is missing required input or carries malformed samples."""

    code = "MISSING_INPUT"
    category = ErrorCategory.VALIDATION


class ConfigurationError(SpectrascopeError, ValueError):
    """An analysis parameter is out of range or unknown."""

    code = "INVALID_CONFIG"
    category = ErrorCategory.VALIDATION


class AudioDecodeError(SpectrascopeError):
    """An audio file could not be read or decoded."""

    code = "DECODE_FAILED"
    category = ErrorCategory.AUDIO_PROCESSING


class AnalysisCancelled(SpectrascopeError):
    """Raised at a batch boundary once the cancellation token is set."""

    code = "OPERATION_CANCELLED"
    category = ErrorCategory.AUDIO_PROCESSING

    def __init__(self, message: str = "Audio processing was cancelled by user"):
        super().__init__(message)


class MemoryLimitError(SpectrascopeError):
    """The estimated working set exceeds the configured memory budget."""

    code = "MEMORY_LIMIT"
    category = ErrorCategory.MEMORY_LIMITATION

    def __init__(self, operation: str, estimated: int, available: int):
        super().__init__(
            f"Insufficient memory for {operation}: "
            f"needs ~{estimated / 1024 / 1024:.1f} MB, "
            f"budget {available / 1024 / 1024:.1f} MB"
        )
        self.estimated = estimated
        self.available = available
