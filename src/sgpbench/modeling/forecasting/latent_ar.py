"""
Latent autoregressive forecaster.

The observations are a latent AR(p) process observed with independent
Gaussian noise:

    y_t = x_t + e_t,    e_t ~ N(0, s^2)
    x_t = c + phi_1 x_{t-1} + ... + phi_p x_{t-p} + w_t

Parameters are estimated by maximum likelihood on the training prefix. To
forecast, the series is extended by ``horizon`` missing values and the whole
range is run through the Kalman smoother with the fitted parameters. Summaries
describe the latent process x (``signal_only``), so the measurement noise does
not widen them; the seasonal GP intervals are reported the same way.
"""

import warnings
from typing import Any

import numpy as np
from loguru import logger
from numpy.typing import NDArray
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.statespace.sarimax import SARIMAX

from sgpbench.config import LatentARConfig
from sgpbench.timeseries import TimeSeries

from .arima import _summarize_prediction
from .base import BaseForecaster, FittedModel, ForecastResult, future_times


class LatentARForecaster(BaseForecaster):
    """AR(p) latent process plus iid measurement noise (``LatentARConfig``)."""

    name = "latent_ar"
    config_type = LatentARConfig

    def _fit(self, train: TimeSeries, config: LatentARConfig) -> tuple[Any, dict[str, Any]]:
        min_length = 2 * config.ar_order + 1
        if len(train) < min_length:
            raise ValueError(
                f"y_train has {len(train)} samples but AR({config.ar_order}) "
                f"requires at least {min_length} samples"
            )

        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=ConvergenceWarning)
            warnings.filterwarnings("ignore", category=UserWarning)
            model = SARIMAX(
                train.values,
                order=(config.ar_order, 0, 0),
                trend=config.trend,
                measurement_error=config.include_noise,
            )
            results = model.fit(disp=False)

        if not np.isfinite(results.llf):
            raise FloatingPointError(f"non-finite log likelihood: {results.llf}")

        params = dict(zip(model.param_names, np.asarray(results.params, dtype=float)))
        logger.debug(f"{config.label} parameters: {params}")
        return results, {"params": params, "aic": float(results.aic)}

    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        train = model.train
        n = len(train)
        times = np.concatenate([train.time, future_times(train, horizon)])

        # Held-out responses enter as missing values, parameters stay fixed
        extended = np.concatenate([train.values, np.full(horizon, np.nan)])
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=UserWarning)
            results = model.handle.apply(extended, refit=False)
            smoothed = results.get_prediction(
                start=0,
                end=n + horizon - 1,
                information_set="smoothed",
                signal_only=True,
            )
        point, lower, upper = _summarize_prediction(smoothed, quantiles)

        if not include_train:
            times, point, lower, upper = times[n:], point[n:], lower[n:], upper[n:]

        return ForecastResult(
            model=model.label,
            time=times,
            point=point,
            lower=lower,
            upper=upper,
            quantiles=quantiles,
            scale=train.scale,
        )
