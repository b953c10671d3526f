"""
Analysis configuration.

A single immutable value describes how a buffer is segmented and
transformed.  Callers derive per-request variants with
:meth:`AnalysisConfig.merged` instead of mutating shared state.
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping, Optional, Union

from spectrascope.errors import ConfigurationError

WINDOW_FUNCTIONS = ("rectangular", "hann", "hamming", "blackman")
TRANSFORMS = ("fft", "dft")


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters for the spectral pass and derived features.

    Attributes:
        fft_size: Transform size in samples (power of two).
        window: Taper applied to each frame before the transform.
        hop_size: Offset between consecutive frame starts.
        transform: ``"fft"`` (numpy real FFT) or ``"dft"`` (direct summation).
        rolloff_threshold: Energy fraction used by the spectral rolloff.
        max_memory_bytes: Optional working-set budget for the spectral pass.
    """

    fft_size: int = 2048
    window: str = "hann"
    hop_size: int = 512
    transform: str = "fft"
    rolloff_threshold: float = 0.85
    max_memory_bytes: Optional[int] = None

    def __post_init__(self):
        n = self.fft_size
        if not isinstance(n, int) or n < 2 or n & (n - 1):
            raise ConfigurationError(f"fft_size must be a power of two >= 2, got {n!r}")
        if not isinstance(self.hop_size, int) or not 1 <= self.hop_size <= n:
            raise ConfigurationError(
                f"hop_size must be between 1 and fft_size ({n}), got {self.hop_size!r}"
            )
        if self.window not in WINDOW_FUNCTIONS:
            raise ConfigurationError(
                f"Unknown window function {self.window!r}; "
                f"expected one of {', '.join(WINDOW_FUNCTIONS)}"
            )
        if self.transform not in TRANSFORMS:
            raise ConfigurationError(
                f"Unknown transform {self.transform!r}; expected 'fft' or 'dft'"
            )
        if not 0.0 < self.rolloff_threshold <= 1.0:
            raise ConfigurationError(
                f"rolloff_threshold must be in (0, 1], got {self.rolloff_threshold!r}"
            )
        if self.max_memory_bytes is not None and self.max_memory_bytes <= 0:
            raise ConfigurationError("max_memory_bytes must be positive when set")

    def merged(
        self,
        overrides: Union["AnalysisConfig", Mapping[str, Any], None],
    ) -> "AnalysisConfig":
        """
        Return a new config with ``overrides`` applied on top of this one.

        Args:
            overrides: Another config (taken as-is), a mapping of field
                overrides, or None (returns ``self``).

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        if overrides is None:
            return self
        if isinstance(overrides, AnalysisConfig):
            return overrides

        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown config option(s): {', '.join(sorted(unknown))}"
            )
        return replace(self, **dict(overrides))

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view for serialization."""
        return asdict(self)


DEFAULT_CONFIG = AnalysisConfig()
