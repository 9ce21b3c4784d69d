"""
Error hierarchy for the forecast-evaluation harness.

Every error carries the model (configuration label) and the pipeline stage
that failed so that a failed entry in a sensitivity sweep can be reproduced
from its message alone.

Stages used throughout the package:
- "load": building or transforming a TimeSeries
- "split": partitioning a series into train/test
- "fit": fitting a backend to the training segment
- "forecast": producing point and interval forecasts
- "score": aligning forecasts with held-out values
"""

from typing import Any


class HarnessError(Exception):
    """Base exception for harness operations."""

    def __init__(self, message: str, model: str | None = None, stage: str | None = None):
        self.model = model
        self.stage = stage
        self.detail = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        context = []
        if self.model is not None:
            context.append(f"model={self.model}")
        if self.stage is not None:
            context.append(f"stage={self.stage}")
        if not context:
            return message
        return f"[{', '.join(context)}] {message}"


class TimeSeriesError(HarnessError):
    """Malformed time series (length, ordering, non-finite values, scale)."""

    def __init__(self, message: str, model: str | None = None, stage: str | None = "load"):
        super().__init__(message, model=model, stage=stage)


class InvalidSplit(HarnessError):
    """Train/test boundary outside 1 <= index < len(series)."""

    def __init__(self, message: str, model: str | None = None, stage: str | None = "split"):
        super().__init__(message, model=model, stage=stage)


class InvalidQuantile(HarnessError):
    """Requested quantile levels outside (0, 1) or not an increasing pair."""

    def __init__(self, message: str, model: str | None = None, stage: str | None = "forecast"):
        super().__init__(message, model=model, stage=stage)


class IndexMismatch(HarnessError):
    """Forecast times cannot be aligned with the held-out test times."""

    def __init__(self, message: str, model: str | None = None, stage: str | None = "score"):
        super().__init__(message, model=model, stage=stage)


class FitFailure(HarnessError):
    """
    Backend failure while fitting or forecasting.

    Covers numerical non-convergence, singular covariance factorisations,
    sampler divergence and per-fit timeouts. Not retried by the harness.

    Attributes:
        reason: Short machine-readable cause ("error", "timeout", "non_finite",
            "divergence")
        config: The model configuration that failed (if available)
    """

    def __init__(
        self,
        message: str,
        model: str | None = None,
        stage: str | None = "fit",
        reason: str = "error",
        config: Any = None,
    ):
        self.reason = reason
        self.config = config
        super().__init__(message, model=model, stage=stage)
