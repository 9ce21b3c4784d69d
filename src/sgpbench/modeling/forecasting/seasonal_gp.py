"""
Seasonal Gaussian process forecaster.

Wraps the GPyTorch seasonal GP (``sgpbench.ml_models.gaussian_process``) in the
common forecaster interface. Unlike the step-based backends the fitted latent
function is defined on a continuous covariate, so forecasts may be requested
over an arbitrary ``grid`` as well as ``horizon`` steps past the training
segment.

Intervals are quantiles of the Gaussian posterior of the latent function
(the iid observation noise is not added).

Example:
    ```python
    from sgpbench.config import NoiseTerm, PSDPrior, SeasonalGPConfig, SeasonalTerm
    from sgpbench.data import load_lynx
    from sgpbench.modeling.forecasting.seasonal_gp import SeasonalGPForecaster
    from sgpbench.timeseries import split

    series = load_lynx().log()
    train, test = split(series, 80)

    config = SeasonalGPConfig(
        terms=[
            SeasonalTerm(
                period=10,
                k=30,
                region=(1821, 1934),
                prior=PSDPrior(u=1, alpha=0.01),
            ),
            NoiseTerm(),
        ]
    )

    forecaster = SeasonalGPForecaster()
    fitted = forecaster.fit(train, config)
    result = forecaster.forecast(fitted, grid=test.time)
    ```
"""

from typing import Any

import numpy as np
import polars as pl
import torch
from loguru import logger
from numpy.typing import NDArray

from sgpbench.config import SeasonalGPConfig
from sgpbench.ml_models.gaussian_process import (
    SeasonalGPModel,
    build_seasonal_gp,
    predict_latent,
    train_gp_model,
)
from sgpbench.ml_models.gaussian_process.training import offset_covariate, sd_summary
from sgpbench.timeseries import TimeSeries

from .base import (
    DEFAULT_QUANTILES,
    BaseForecaster,
    FittedModel,
    ForecastResult,
    future_times,
    validate_quantiles,
)


def _origin(config: SeasonalGPConfig) -> float:
    return min(t.region[0] for t in config.seasonal_terms)


class SeasonalGPForecaster(BaseForecaster):
    """Seasonal GP regression with PSD-prior MAP fitting (``SeasonalGPConfig``)."""

    name = "seasonal_gp"
    config_type = SeasonalGPConfig
    supports_grid = True

    def _fit(
        self, train: TimeSeries, config: SeasonalGPConfig
    ) -> tuple[SeasonalGPModel, dict[str, Any]]:
        if config.random_seed is not None:
            torch.manual_seed(config.random_seed)

        lo = min(t.region[0] for t in config.seasonal_terms)
        hi = max(t.region[1] for t in config.seasonal_terms)
        outside = int(np.sum((train.time < lo) | (train.time > hi)))
        if outside:
            logger.warning(
                f"{config.label}: {outside} training times fall outside region ({lo:g}, {hi:g})"
            )

        X_train = offset_covariate(train.time, _origin(config))
        y_train = torch.as_tensor(train.values, dtype=torch.float64)

        model, likelihood = build_seasonal_gp(X_train, y_train, config)
        losses = train_gp_model(
            model,
            likelihood,
            X_train,
            y_train,
            n_iter=config.n_iter,
            learning_rate=config.learning_rate,
            cholesky_jitter=config.jitter,
        )

        info = sd_summary(model)
        info["final_loss"] = losses[-1]
        info["sparse"] = model.is_sparse
        logger.debug(f"{config.label} fitted sds: {info}")
        return model, info

    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        train = model.train
        times = grid if grid is not None else future_times(train, horizon)
        if include_train:
            times = np.concatenate([train.time, times])

        summaries = self._summaries(model, times, quantiles, True, 0)
        return ForecastResult(
            model=model.label,
            time=times,
            point=summaries["mean"],
            lower=summaries[f"q{quantiles[0]}"],
            upper=summaries[f"q{quantiles[1]}"],
            quantiles=quantiles,
            scale=train.scale,
        )

    def predict(
        self,
        model: FittedModel,
        grid: NDArray[np.floating],
        include_intercept: bool = True,
        quantiles: tuple[float, float] = DEFAULT_QUANTILES,
        return_samples: bool = False,
        n_samples: int = 100,
    ) -> pl.DataFrame | tuple[pl.DataFrame, NDArray[np.floating]]:
        """
        Posterior summaries of the latent function over a covariate grid.

        Args:
            model: FittedModel produced by this forecaster
            grid: Covariate values
            include_intercept: Include the constant term in the summaries
            quantiles: (lower, upper) quantile levels
            return_samples: Also return posterior draws
            n_samples: Number of draws when ``return_samples`` is True

        Returns:
            DataFrame with columns x, mean, sd, q<lower>, q<upper>; with
            ``return_samples`` a tuple (DataFrame, draws of shape (n_samples, len(grid)))
        """
        levels = validate_quantiles(quantiles, model=model.label)
        grid = np.asarray(grid, dtype=np.float64).reshape(-1)
        if len(grid) == 0:
            raise ValueError("grid cannot be empty")

        summaries = self._summaries(
            model, grid, levels, include_intercept, n_samples if return_samples else 0
        )
        frame = pl.DataFrame(
            {"x": grid, "mean": summaries["mean"], "sd": summaries["sd"]}
            | {f"q{q}": summaries[f"q{q}"] for q in levels}
        )
        if return_samples:
            return frame, summaries["samples"]
        return frame

    def _summaries(
        self,
        model: FittedModel,
        x: NDArray[np.floating],
        quantiles: tuple[float, float],
        include_intercept: bool,
        n_samples: int,
    ) -> dict[str, NDArray[np.floating]]:
        config: SeasonalGPConfig = model.config
        X = offset_covariate(x, _origin(config))
        return predict_latent(
            model.handle,
            X,
            quantiles,
            include_intercept=include_intercept,
            n_samples=n_samples,
            cholesky_jitter=config.jitter,
        )
