"""
Prior sensitivity sweeps.

A sweep fits an ordered grid of configurations (typically one model with a
varying prior threshold ``u`` and/or exceedance probability ``alpha``) to the
same training segment and scores each forecast on the same test segment.

Entries are independent and may run in parallel on worker threads; the output
always has one entry per grid position, in grid order, so plots and tables
can align results with hyperparameter values positionally. A failed fit is
recorded on its entry and does not abort the other entries unless
``fail_fast`` is set.

Example:
    ```python
    import numpy as np

    from sgpbench.modeling.forecasting.sweep import SensitivitySweep, prior_grid

    grid = prior_grid(base_config, u=np.linspace(0.1, 1.0, 10), alpha=[0.01])
    sweep = SensitivitySweep(quantiles=(0.1, 0.9), max_workers=4)
    entries = sweep.run(train, test, grid)

    summary = sweep.summary(entries, test)
    print(summary.select("u", "mse", "coverage"))
    ```
"""

import itertools
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl
from loguru import logger

from sgpbench.config import HarnessSettings, SeasonalGPConfig
from sgpbench.timeseries import TimeSeries

from .base import DEFAULT_QUANTILES, ForecastResult, validate_quantiles
from .evaluation import ScoreReport, forecast_coverage
from .harness import RECOVERABLE_ERRORS, evaluate_config


@dataclass(frozen=True)
class SweepEntry:
    """
    Result for one grid position.

    Attributes:
        index: Position in the configuration grid
        config: Configuration at that position
        forecast: ForecastResult (None if the entry failed)
        score: ScoreReport (None if the entry failed)
        error: Failure marker (None if the entry succeeded)
    """

    index: int
    config: Any
    forecast: ForecastResult | None = None
    score: ScoreReport | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SensitivitySweep:
    """
    Fit, forecast and score every configuration of a grid.

    Args:
        quantiles: (lower, upper) interval quantiles
        max_workers: Worker threads (1 runs sequentially)
        fit_timeout: Per-fit timeout in seconds (None disables)
        fail_fast: Raise the first failure (by grid index) instead of recording it

    Raises:
        InvalidQuantile: If quantiles are invalid
        ValueError: If max_workers < 1
    """

    def __init__(
        self,
        quantiles: tuple[float, float] = DEFAULT_QUANTILES,
        max_workers: int = 1,
        fit_timeout: float | None = None,
        fail_fast: bool = False,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.quantiles = validate_quantiles(quantiles)
        self.max_workers = max_workers
        self.fit_timeout = fit_timeout
        self.fail_fast = fail_fast

    @classmethod
    def from_settings(
        cls, settings: HarnessSettings, fail_fast: bool = False
    ) -> "SensitivitySweep":
        """Build a sweep from the quantiles, worker count and timeout in ``settings``."""
        return cls(
            quantiles=settings.quantiles,
            max_workers=settings.max_workers,
            fit_timeout=settings.fit_timeout,
            fail_fast=fail_fast,
        )

    def run(
        self,
        train: TimeSeries,
        test: TimeSeries,
        config_grid: Iterable[Any],
        horizon: int | None = None,
        grid: np.ndarray | None = None,
    ) -> list[SweepEntry]:
        """
        Evaluate every configuration of ``config_grid``.

        Args:
            train: Training segment shared by all entries
            test: Test segment shared by all entries
            config_grid: Ordered configurations
            horizon: Forecast steps (default: forecast at the test times)
            grid: Covariate grid for grid-capable backends

        Returns:
            One SweepEntry per configuration, in grid order

        Raises:
            FitFailure: With ``fail_fast=True``, the failure of the lowest failing index
        """
        configs = list(config_grid)
        if not configs:
            return []

        logger.info(
            f"Sweeping {len(configs)} configurations "
            f"(max_workers={self.max_workers}, train={len(train)}, test={len(test)})"
        )

        def evaluate(index: int) -> SweepEntry:
            config = configs[index]
            try:
                evaluated = evaluate_config(
                    train,
                    test,
                    config,
                    quantiles=self.quantiles,
                    fit_timeout=self.fit_timeout,
                    horizon=horizon,
                    grid=grid,
                )
            except RECOVERABLE_ERRORS as e:
                logger.warning(f"Sweep entry {index} ({config.label}) failed: {e}")
                return SweepEntry(index=index, config=config, error=e)

            logger.debug(
                f"Sweep entry {index} ({config.label}): MSE={evaluated.score.mse:.4f}"
            )
            return SweepEntry(
                index=index, config=config, forecast=evaluated.forecast, score=evaluated.score
            )

        if self.max_workers == 1:
            entries = [evaluate(i) for i in range(len(configs))]
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="sgpbench-sweep"
            ) as executor:
                entries = list(executor.map(evaluate, range(len(configs))))

        entries.sort(key=lambda entry: entry.index)

        failed = [entry for entry in entries if not entry.ok]
        if failed and self.fail_fast:
            raise failed[0].error
        logger.info(f"Sweep complete: {len(entries) - len(failed)}/{len(entries)} succeeded")
        return entries

    def coverage(self, entries: Sequence[SweepEntry], test: TimeSeries) -> list[float | None]:
        """Fraction of test values strictly inside each entry's bounds (None if failed)."""
        return [
            forecast_coverage(entry.forecast, test) if entry.ok else None for entry in entries
        ]

    def summary(
        self,
        entries: Sequence[SweepEntry],
        test: TimeSeries,
        params: Sequence[str] = ("u", "alpha"),
    ) -> pl.DataFrame:
        """
        One row per entry: grid index, swept prior parameters, scores, coverage, error.

        Prior parameters are read from the first seasonal term of seasonal GP
        configurations and from top-level config fields otherwise.
        """
        coverages = self.coverage(entries, test)
        rows = []
        for entry, cov in zip(entries, coverages):
            row: dict[str, Any] = {"index": entry.index}
            for param in params:
                row[param] = _config_param(entry.config, param)
            row["mse"] = entry.score.mse if entry.ok else None
            row["rmse"] = entry.score.rmse if entry.ok else None
            row["mae"] = entry.score.mae if entry.ok else None
            row["coverage"] = cov
            row["error"] = None if entry.ok else str(entry.error)
            rows.append(row)

        schema: dict[str, Any] = {"index": pl.Int64}
        schema.update({param: pl.Float64 for param in params})
        schema.update(
            {
                "mse": pl.Float64,
                "rmse": pl.Float64,
                "mae": pl.Float64,
                "coverage": pl.Float64,
                "error": pl.Utf8,
            }
        )
        return pl.DataFrame(rows, schema=schema)


def _config_param(config: Any, param: str) -> float | None:
    if isinstance(config, SeasonalGPConfig):
        prior = config.seasonal_terms[0].prior
        if hasattr(prior, param):
            value = getattr(prior, param)
            return float(value) if value is not None else None
    value = getattr(config, param, None)
    return float(value) if isinstance(value, (int, float)) else None


def prior_grid(
    base: SeasonalGPConfig,
    u: Iterable[float] | None = None,
    alpha: Iterable[float] | None = None,
) -> list[SeasonalGPConfig]:
    """
    Ordered grid of ``base`` with every (u, alpha) combination.

    Combinations follow row-major order of the arguments: ``u`` varies
    slowest, ``alpha`` fastest. An omitted argument keeps the base value.

    Example:
        ```python
        grid = prior_grid(config, u=[0.5, 1.0], alpha=[0.01, 0.1])
        # [(0.5, 0.01), (0.5, 0.1), (1.0, 0.01), (1.0, 0.1)]
        ```
    """
    u_values = [float(v) for v in u] if u is not None else [None]
    alpha_values = [float(v) for v in alpha] if alpha is not None else [None]
    return [
        base.with_prior(u=u_value, alpha=alpha_value)
        for u_value, alpha_value in itertools.product(u_values, alpha_values)
    ]


def sweep(
    train: TimeSeries,
    test: TimeSeries,
    config_grid: Iterable[Any],
    quantiles: tuple[float, float] = DEFAULT_QUANTILES,
    **kwargs: Any,
) -> list[SweepEntry]:
    """Run a SensitivitySweep with default settings; ``kwargs`` go to the constructor."""
    return SensitivitySweep(quantiles=quantiles, **kwargs).run(train, test, config_grid)
