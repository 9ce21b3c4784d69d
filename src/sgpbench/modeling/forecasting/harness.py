"""
Forecast evaluation runs: split, fit, forecast, score per candidate model.

A run applies the modelling scale once, splits the series once, and then pushes
every candidate configuration independently through

    ModelConfig -> FittedModel -> ForecastResult -> ScoreReport

Candidates share no mutable state. ``on_error="raise"`` surfaces the first
backend failure to the caller (single-model semantics); ``on_error="collect"``
records it against the candidate and moves on.

Example:
    ```python
    from sgpbench.config import ARIMAConfig, LatentARConfig
    from sgpbench.data import load_lynx
    from sgpbench.modeling.forecasting.harness import ForecastEvaluation

    evaluation = ForecastEvaluation(split_index=80, scale="log")
    results = evaluation.run(
        load_lynx(),
        {"arima": ARIMAConfig(order=(2, 1, 0)), "ar2": LatentARConfig()},
        on_error="collect",
    )
    print(results.table())
    print(results.best("rmse"))
    ```
"""

import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, TypeVar

import numpy as np
import polars as pl
from loguru import logger

from sgpbench.config import HarnessSettings
from sgpbench.exceptions import FitFailure, IndexMismatch, TimeSeriesError
from sgpbench.timeseries import Split, TimeSeries, split

from .base import DEFAULT_QUANTILES, FittedModel, ForecastResult, validate_quantiles
from .evaluation import ScoreReport, forecast_coverage, score
from .registry import get_forecaster

T = TypeVar("T")

# Per-candidate failures that are recorded rather than raised in "collect" mode
RECOVERABLE_ERRORS = (FitFailure, IndexMismatch, TimeSeriesError)

METRICS = ("mse", "rmse", "mae", "coverage", "fit_seconds")


def call_with_timeout(fn: Callable[[], T], timeout: float | None, model: str, stage: str) -> T:
    """
    Run ``fn`` with an optional wall-clock limit.

    The call runs on a worker thread; on expiry the caller gets a FitFailure
    immediately and the worker is abandoned (Python threads cannot be killed,
    so it finishes in the background).

    Args:
        fn: Zero-argument callable
        timeout: Limit in seconds (None runs ``fn`` inline)
        model: Model label for the error
        stage: Pipeline stage for the error

    Raises:
        FitFailure: With ``reason="timeout"`` when the limit expires
    """
    if timeout is None:
        return fn()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sgpbench-fit")
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        logger.error(f"{model} {stage} exceeded {timeout:g}s timeout")
        raise FitFailure(
            f"{stage} did not finish within {timeout:g}s",
            model=model,
            stage=stage,
            reason="timeout",
        ) from e
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


@dataclass(frozen=True)
class Evaluated:
    """Fitted model, its forecast over the test segment and the resulting scores."""

    fitted: FittedModel
    forecast: ForecastResult
    score: ScoreReport
    coverage: float


def evaluate_config(
    train: TimeSeries,
    test: TimeSeries,
    config: Any,
    quantiles: tuple[float, float] = DEFAULT_QUANTILES,
    fit_timeout: float | None = None,
    horizon: int | None = None,
    grid: np.ndarray | None = None,
) -> Evaluated:
    """
    Fit one configuration on ``train`` and score its forecast on ``test``.

    When neither ``horizon`` nor ``grid`` is given, grid-capable backends
    forecast at the test times and step-based backends ``len(test)`` steps ahead.

    Raises:
        FitFailure: If fitting/forecasting fails or times out
        IndexMismatch: If the forecast does not cover the test times
    """
    forecaster = get_forecaster(config)
    fitted = call_with_timeout(
        lambda: forecaster.fit(train, config), fit_timeout, config.label, "fit"
    )

    if grid is None and horizon is None:
        if forecaster.supports_grid:
            grid = test.time
        else:
            horizon = len(test)

    forecast = forecaster.forecast(fitted, horizon=horizon, quantiles=quantiles, grid=grid)
    return Evaluated(
        fitted=fitted,
        forecast=forecast,
        score=score(forecast, test),
        coverage=forecast_coverage(forecast, test),
    )


@dataclass(frozen=True)
class CandidateResult:
    """
    Outcome for one named candidate of an evaluation run.

    Attributes:
        name: Candidate name
        config: Model configuration
        forecast: ForecastResult over the test segment (None if failed)
        score: ScoreReport (None if failed)
        coverage: Fraction of test values strictly inside the bounds (None if failed)
        fit_seconds: Fitting time (None if fitting failed)
        error: Recorded failure (None if succeeded)
    """

    name: str
    config: Any
    forecast: ForecastResult | None = None
    score: ScoreReport | None = None
    coverage: float | None = None
    fit_seconds: float | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EvaluationResults:
    """Per-candidate results of a ForecastEvaluation run, in candidate order."""

    split: Split
    candidates: dict[str, CandidateResult]
    quantiles: tuple[float, float]
    scale: str

    def __getitem__(self, name: str) -> CandidateResult:
        return self.candidates[name]

    def __len__(self) -> int:
        return len(self.candidates)

    def table(self) -> pl.DataFrame:
        """
        Comparison table, one row per candidate.

        Columns: model, mse, rmse, mae, coverage, fit_seconds, error.
        Failed candidates have null metrics and the error message.
        """
        rows = []
        for name, result in self.candidates.items():
            rows.append(
                {
                    "model": name,
                    "mse": result.score.mse if result.score else None,
                    "rmse": result.score.rmse if result.score else None,
                    "mae": result.score.mae if result.score else None,
                    "coverage": result.coverage,
                    "fit_seconds": result.fit_seconds,
                    "error": str(result.error) if result.error else None,
                }
            )
        schema = {m: pl.Float64 for m in METRICS}
        return pl.DataFrame(rows, schema={"model": pl.Utf8, **schema, "error": pl.Utf8})

    def best(self, metric: str = "rmse") -> str:
        """
        Name of the successful candidate with the lowest ``metric``.

        Raises:
            ValueError: If the metric is unknown or no candidate succeeded
        """
        if metric not in ("mse", "rmse", "mae"):
            raise ValueError(f"metric must be one of mse, rmse, mae, got {metric!r}")
        ok = [r for r in self.candidates.values() if r.ok]
        if not ok:
            raise ValueError("no candidate produced a score")
        return min(ok, key=lambda r: getattr(r.score, metric)).name


class ForecastEvaluation:
    """
    Compare candidate models on one train/test split of a series.

    Args:
        split_index: Length of the training prefix
        scale: Modelling scale applied before splitting ("log" or "natural")
        quantiles: (lower, upper) interval quantiles
        fit_timeout: Per-fit timeout in seconds (None disables)

    Raises:
        InvalidQuantile: If quantiles are invalid
        ValueError: If scale is unknown
    """

    def __init__(
        self,
        split_index: int,
        scale: str = "log",
        quantiles: tuple[float, float] = DEFAULT_QUANTILES,
        fit_timeout: float | None = None,
    ):
        if scale not in ("log", "natural"):
            raise ValueError(f"scale must be 'log' or 'natural', got {scale!r}")
        self.split_index = split_index
        self.scale = scale
        self.quantiles = validate_quantiles(quantiles)
        self.fit_timeout = fit_timeout

    @classmethod
    def from_settings(cls, settings: HarnessSettings) -> "ForecastEvaluation":
        if settings.split_index is None:
            raise ValueError("settings.split_index must be set to build a ForecastEvaluation")
        return cls(
            split_index=settings.split_index,
            scale=settings.scale,
            quantiles=settings.quantiles,
            fit_timeout=settings.fit_timeout,
        )

    def run(
        self,
        series: TimeSeries,
        candidates: Mapping[str, Any],
        on_error: str = "raise",
    ) -> EvaluationResults:
        """
        Evaluate every candidate on the same split.

        Args:
            series: Full series (natural or log scale)
            candidates: Mapping of candidate name to model configuration
            on_error: "raise" to surface the first failure, "collect" to record it

        Returns:
            EvaluationResults in candidate order

        Raises:
            InvalidSplit: If ``split_index`` is invalid for the series
            FitFailure: On the first backend failure when ``on_error="raise"``
        """
        if on_error not in ("raise", "collect"):
            raise ValueError(f"on_error must be 'raise' or 'collect', got {on_error!r}")
        if not candidates:
            raise ValueError("candidates cannot be empty")

        prepared = series.to_scale(self.scale)
        parts = split(prepared, self.split_index)
        train, test = parts

        logger.info(
            f"Evaluating {len(candidates)} candidates on {series.name} "
            f"(scale={self.scale}, train={len(train)}, test={len(test)})"
        )

        start_time = time.time()
        results: dict[str, CandidateResult] = {}
        for name, config in candidates.items():
            try:
                evaluated = evaluate_config(
                    train, test, config, quantiles=self.quantiles, fit_timeout=self.fit_timeout
                )
            except RECOVERABLE_ERRORS as e:
                if on_error == "raise":
                    raise
                logger.warning(f"Candidate {name} failed: {e}")
                results[name] = CandidateResult(name=name, config=config, error=e)
                continue

            results[name] = CandidateResult(
                name=name,
                config=config,
                forecast=evaluated.forecast,
                score=evaluated.score,
                coverage=evaluated.coverage,
                fit_seconds=evaluated.fitted.fit_seconds,
            )
            logger.info(
                f"{name}: RMSE={evaluated.score.rmse:.4f}, MAE={evaluated.score.mae:.4f}, "
                f"coverage={evaluated.coverage:.2f}"
            )

        n_failed = sum(1 for r in results.values() if not r.ok)
        logger.info(
            f"Evaluation complete in {time.time() - start_time:.1f}s "
            f"({len(results) - n_failed} succeeded, {n_failed} failed)"
        )
        return EvaluationResults(
            split=parts, candidates=results, quantiles=self.quantiles, scale=self.scale
        )
