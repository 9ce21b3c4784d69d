"""
Common forecaster interface and result types.

Every modelling backend (seasonal GP, ARIMA, auto-ARIMA, Bayesian ARIMA,
latent AR) is wrapped in a ``BaseForecaster`` subclass exposing the same two
operations:

1. fit(train, config): Fit the backend to a training segment -> FittedModel
2. forecast(model, horizon, quantiles): Point and interval forecasts -> ForecastResult

Backend exceptions never escape these operations raw: they are logged and
re-raised as ``FitFailure`` naming the model and the stage that failed.
Caller errors (bad quantiles, bad horizon, mismatched configuration) are
raised immediately.

Example:
    ```python
    from sgpbench.config import ARIMAConfig
    from sgpbench.data import load_lynx
    from sgpbench.modeling.forecasting.arima import ARIMAForecaster
    from sgpbench.timeseries import split

    train, test = split(load_lynx().log(), 80)

    forecaster = ARIMAForecaster()
    fitted = forecaster.fit(train, ARIMAConfig(order=(2, 1, 0)))
    result = forecaster.forecast(fitted, horizon=len(test), quantiles=(0.1, 0.9))
    ```
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import polars as pl
from loguru import logger
from numpy.typing import NDArray

from sgpbench.exceptions import FitFailure, HarnessError, InvalidQuantile, TimeSeriesError
from sgpbench.timeseries import TimeSeries

DEFAULT_QUANTILES = (0.025, 0.975)


def validate_quantiles(quantiles: Any, model: str | None = None) -> tuple[float, float]:
    """
    Validate a (lower, upper) quantile pair.

    Args:
        quantiles: Two quantile levels
        model: Model label for error messages

    Returns:
        The pair as a tuple of floats

    Raises:
        InvalidQuantile: Unless there are exactly two finite levels, each strictly
            inside (0, 1), with lower < upper
    """
    try:
        levels = tuple(float(q) for q in quantiles)
    except (TypeError, ValueError) as e:
        raise InvalidQuantile(
            f"quantiles must be two numbers, got {quantiles!r}", model=model
        ) from e

    if len(levels) != 2:
        raise InvalidQuantile(
            f"quantiles must be a (lower, upper) pair, got {len(levels)} values", model=model
        )
    for q in levels:
        if not np.isfinite(q) or not 0 < q < 1:
            raise InvalidQuantile(f"quantile levels must lie in (0, 1), got {q}", model=model)
    if not levels[0] < levels[1]:
        raise InvalidQuantile(f"quantiles must satisfy lower < upper, got {levels}", model=model)
    return levels


@dataclass(frozen=True)
class FittedModel:
    """
    Opaque result of fitting one configuration to a training segment.

    Attributes:
        config: The configuration that was fitted
        train: Training segment
        handle: Backend-native fitted object (statsmodels results, PyMC trace, GP model)
        forecaster: Name of the forecaster that produced it
        fit_seconds: Wall-clock fitting time
        info: Backend diagnostics (selected order, fitted sds, divergences, ...)
    """

    config: Any
    train: TimeSeries
    handle: Any
    forecaster: str
    fit_seconds: float
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.config.label


@dataclass(frozen=True)
class ForecastResult:
    """
    Point forecasts and interval bounds over a set of time points.

    Attributes:
        model: Label of the model that produced the forecast
        time: Time points, strictly increasing, shape (n,)
        point: Point estimates (mean or posterior mean), shape (n,)
        lower: Bound at ``quantiles[0]``, shape (n,)
        upper: Bound at ``quantiles[1]``, shape (n,)
        quantiles: (lower, upper) quantile levels
        scale: Scale of the modelled values ("log" or "natural")
        samples: Optional draws of shape (n_draws, n)
    """

    model: str
    time: NDArray[np.floating]
    point: NDArray[np.floating]
    lower: NDArray[np.floating]
    upper: NDArray[np.floating]
    quantiles: tuple[float, float]
    scale: str
    samples: NDArray[np.floating] | None = None

    def __post_init__(self):
        arrays = {}
        for name in ("time", "point", "lower", "upper"):
            arr = np.asarray(getattr(self, name), dtype=np.float64).reshape(-1)
            arr.setflags(write=False)
            arrays[name] = arr
            object.__setattr__(self, name, arr)

        n = len(arrays["time"])
        if any(len(a) != n for a in arrays.values()):
            raise ValueError(
                "time, point, lower and upper must have same length: "
                + ", ".join(f"{k}={len(v)}" for k, v in arrays.items())
            )
        if self.samples is not None:
            samples = np.asarray(self.samples, dtype=np.float64)
            if samples.ndim != 2 or samples.shape[1] != n:
                raise ValueError(f"samples must have shape (n_draws, {n}), got {samples.shape}")
            samples.setflags(write=False)
            object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.time)

    def to_frame(self) -> pl.DataFrame:
        """Return a polars DataFrame with columns time, point, lower, upper."""
        return pl.DataFrame(
            {"time": self.time, "point": self.point, "lower": self.lower, "upper": self.upper}
        )


class BaseForecaster(ABC):
    """
    Abstract base class for all forecasting backends.

    Subclasses set ``name`` and ``config_type`` and implement ``_fit`` and
    ``_forecast``. The public ``fit``/``forecast`` methods validate inputs,
    time the fit, and convert backend exceptions into ``FitFailure``.

    Attributes:
        name: Backend name (matches the configuration ``kind``)
        config_type: Configuration class accepted by ``fit``
        supports_grid: Whether ``forecast`` accepts an arbitrary covariate grid
    """

    name: str = "base"
    config_type: type = object
    supports_grid: bool = False

    def fit(self, train: TimeSeries, config: Any) -> FittedModel:
        """
        Fit the backend to a training segment.

        Args:
            train: Training segment
            config: Backend configuration (instance of ``config_type``)

        Returns:
            FittedModel owned by this forecaster

        Raises:
            TypeError: If config is not a ``config_type``
            FitFailure: If the backend fails (stage="fit")
        """
        if not isinstance(config, self.config_type):
            raise TypeError(
                f"{type(self).__name__} expects {self.config_type.__name__}, "
                f"got {type(config).__name__}"
            )

        label = config.label
        start_time = time.time()
        try:
            handle, info = self._fit(train, config)
        except HarnessError:
            raise
        except Exception as e:
            logger.error(f"{label} fit failed: {e}")
            raise FitFailure(
                f"Failed to fit {label}: {e}", model=label, stage="fit", config=config
            ) from e
        fit_seconds = time.time() - start_time

        logger.info(f"{label} fitted on {len(train)} observations in {fit_seconds:.2f}s")
        return FittedModel(
            config=config,
            train=train,
            handle=handle,
            forecaster=self.name,
            fit_seconds=fit_seconds,
            info=info,
        )

    def forecast(
        self,
        model: FittedModel,
        horizon: int | None = None,
        quantiles: tuple[float, float] = DEFAULT_QUANTILES,
        grid: NDArray[np.floating] | None = None,
        include_train: bool = False,
    ) -> ForecastResult:
        """
        Generate point forecasts and interval bounds.

        Args:
            model: FittedModel produced by this forecaster's ``fit``
            horizon: Number of steps after the training segment (must be > 0)
            quantiles: (lower, upper) quantile levels, each in (0, 1)
            grid: Arbitrary covariate values to forecast at (grid-capable backends only)
            include_train: Also return in-sample summaries over the training times

        Returns:
            ForecastResult on the training segment's scale

        Raises:
            InvalidQuantile: If quantiles are invalid
            ValueError: If horizon/grid are invalid for this backend
            TimeSeriesError: If a step-based forecast is requested on an irregular training segment
            FitFailure: If the backend fails (stage="forecast")
        """
        label = model.label
        levels = validate_quantiles(quantiles, model=label)

        if model.forecaster != self.name:
            raise ValueError(
                f"{type(self).__name__} cannot forecast a model fitted by '{model.forecaster}'"
            )
        if grid is not None:
            if not self.supports_grid:
                raise ValueError(f"{type(self).__name__} forecasts by step count, not on a grid")
            grid = np.asarray(grid, dtype=np.float64).reshape(-1)
            if len(grid) == 0:
                raise ValueError("grid cannot be empty")
        elif horizon is None or horizon <= 0:
            raise ValueError(f"horizon must be > 0, got {horizon}")
        elif not model.train.is_regular:
            raise TimeSeriesError(
                "step-based forecasts need a regularly spaced training segment",
                model=label,
                stage="forecast",
            )

        try:
            result = self._forecast(model, horizon, levels, grid, include_train)
        except HarnessError:
            raise
        except Exception as e:
            logger.error(f"{label} forecast failed: {e}")
            raise FitFailure(
                f"Failed to forecast {label}: {e}",
                model=label,
                stage="forecast",
                config=model.config,
            ) from e

        logger.debug(f"{label} forecast {len(result)} points at quantiles {levels}")
        return result

    @abstractmethod
    def _fit(self, train: TimeSeries, config: Any) -> tuple[Any, dict[str, Any]]:
        """Fit the backend. Returns (native handle, diagnostics dict)."""

    @abstractmethod
    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        """Produce the forecast for already validated arguments."""


def future_times(train: TimeSeries, horizon: int) -> NDArray[np.floating]:
    """
    Time points for ``horizon`` steps after a regularly spaced training segment.

    Raises:
        TimeSeriesError: If the training segment is irregular or too short to infer a step
    """
    if not train.is_regular:
        raise TimeSeriesError(
            "step-based forecasts need a regularly spaced training segment",
            model=train.name,
            stage="forecast",
        )
    return train.time[-1] + train.step * np.arange(1, horizon + 1, dtype=np.float64)
