"""
Progress reporting and cancellation for long analyses.

Progress is reported through a plain ``callback(percent, message)``; the
analysis loop checks a :class:`CancellationToken` at every batch boundary.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from spectrascope.errors import AnalysisCancelled

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class CancellationToken:
    """Thread-safe flag shared between a caller and a running analysis."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`AnalysisCancelled` if :meth:`cancel` was called."""
        if self._event.is_set():
            raise AnalysisCancelled()


@dataclass
class ProgressStep:
    """One weighted stage of an analysis."""

    id: str
    name: str
    weight: float = 1.0
    progress: float = 0.0  # 0-100


ANALYSIS_STEPS = (
    ProgressStep("frequency-analysis", "Frequency analysis", weight=6.0),
    ProgressStep("amplitude-envelope", "Amplitude envelope", weight=0.5),
    ProgressStep("feature-extraction", "Spectral features", weight=1.5),
    ProgressStep("rhythm-analysis", "Tempo and beats", weight=2.0),
)


class ProgressTracker:
    """
    Folds per-step progress into a single 0-100 figure.

    Each step contributes in proportion to its weight.  Updates are
    forwarded to ``callback`` as ``(overall_percent, message)``.
    """

    def __init__(
        self,
        steps: Sequence[ProgressStep] = ANALYSIS_STEPS,
        callback: Optional[ProgressCallback] = None,
    ):
        self.steps = [ProgressStep(s.id, s.name, s.weight) for s in steps]
        self.callback = callback
        self._total_weight = sum(s.weight for s in self.steps) or 1.0

    def _find(self, step_id: str) -> ProgressStep:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(f"Step {step_id} not found")

    @property
    def overall(self) -> float:
        done = sum(s.weight * s.progress for s in self.steps)
        return max(0.0, min(100.0, done / self._total_weight))

    def update(self, step_id: str, progress: float, message: Optional[str] = None) -> None:
        """Set a step's progress (0-100) and notify the callback."""
        step = self._find(step_id)
        step.progress = max(0.0, min(100.0, float(progress)))
        if self.callback is not None:
            self.callback(self.overall, message or step.name)

    def complete(self, step_id: str) -> None:
        step = self._find(step_id)
        self.update(step_id, 100.0, f"{step.name} complete")
        logger.debug("Step %s complete (%.0f%% overall)", step_id, self.overall)

    def step_callback(self, step_id: str) -> ProgressCallback:
        """
        Callback that routes a sub-task's 0-100 progress into ``step_id``.

        The callback forwards the overall percentage, so the sub-task's
        message is prefixed with the step name.
        """
        step = self._find(step_id)

        def report(percent: float, message: str) -> None:
            self.update(step_id, percent, f"{step.name}: {message}")

        return report
