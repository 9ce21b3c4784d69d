"""
ARIMA forecasting backends.

ARIMA (AutoRegressive Integrated Moving Average) models are the classical
baselines the seasonal GP is compared against.

Models included:
- ARIMAForecaster: fixed ARIMA(p,d,q), optionally seasonal SARIMA(p,d,q)(P,D,Q,m)
- AutoARIMAForecaster: stepwise order selection via pmdarima

Both share the statsmodels state-space forecast machinery: bounds are the
predicted mean plus the normal quantile of each requested level times the
forecast standard error.

Example:
    ```python
    from sgpbench.config import ARIMAConfig, AutoARIMAConfig
    from sgpbench.data import load_lynx
    from sgpbench.modeling.forecasting.arima import ARIMAForecaster, AutoARIMAForecaster
    from sgpbench.timeseries import split

    train, test = split(load_lynx().log(), 80)

    # Manual order specification
    arima = ARIMAForecaster()
    fitted = arima.fit(train, ARIMAConfig(order=(2, 1, 0)))
    result = arima.forecast(fitted, horizon=len(test))

    # Automatic order selection
    auto = AutoARIMAForecaster()
    fitted = auto.fit(train, AutoARIMAConfig())
    print(fitted.info["order"])
    ```
"""

import warnings
from typing import Any

import numpy as np
from loguru import logger
from numpy.typing import NDArray
from pmdarima import auto_arima as pmdarima_auto_arima
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.arima.model import ARIMA as StatsmodelsARIMA

from sgpbench.config import ARIMAConfig, AutoARIMAConfig
from sgpbench.timeseries import TimeSeries

from .base import BaseForecaster, FittedModel, ForecastResult, future_times


class ARIMAForecaster(BaseForecaster):
    """
    Fixed-order ARIMA forecaster.

    ARIMA combines three components:
    - AR(p): Autoregression - linear combination of past values
    - I(d): Integration - differencing to achieve stationarity
    - MA(q): Moving Average - linear combination of past forecast errors

    Formula:
        (1 - φ₁L - ... - φₚLᵖ)(1 - L)ᵈ yₜ = (1 + θ₁L + ... + θ_qL^q)εₜ

    The classic Lynx baseline is ARIMA(2,1,0) on log counts.
    """

    name = "arima"
    config_type = ARIMAConfig

    def _fit(self, train: TimeSeries, config: ARIMAConfig) -> tuple[Any, dict[str, Any]]:
        _validate_series_length(train.values, config.order, config.seasonal_order)

        # Suppress convergence warnings, failures surface through the result checks
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=ConvergenceWarning)
            warnings.filterwarnings("ignore", category=UserWarning)

            arima_kwargs = {
                "order": config.order,
                "enforce_stationarity": False,
                "enforce_invertibility": False,
            }
            if config.seasonal_order is not None:
                arima_kwargs["seasonal_order"] = config.seasonal_order

            results = StatsmodelsARIMA(train.values, **arima_kwargs).fit()

        if not np.isfinite(results.llf):
            raise FloatingPointError(f"non-finite log likelihood: {results.llf}")

        logger.info(f"{config.label} fitted (AIC={results.aic:.2f})")
        return results, {"order": config.order, "aic": float(results.aic)}

    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        return _state_space_forecast(model, model.handle, horizon, quantiles, include_train)


class AutoARIMAForecaster(BaseForecaster):
    """
    ARIMA with automatic order selection.

    Uses pmdarima's stepwise search over (p, d, q) minimising the configured
    information criterion; the differencing order is chosen by unit-root
    tests up to ``max_d``. The selected order is recorded in ``FittedModel.info``.
    """

    name = "auto_arima"
    config_type = AutoARIMAConfig

    def _fit(self, train: TimeSeries, config: AutoARIMAConfig) -> tuple[Any, dict[str, Any]]:
        logger.info("Using pmdarima auto_arima for order selection")

        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=ConvergenceWarning)
            warnings.filterwarnings("ignore", category=UserWarning)

            auto_model = pmdarima_auto_arima(
                train.values,
                start_p=0,
                start_q=0,
                max_p=config.max_p,
                max_q=config.max_q,
                max_d=config.max_d,
                seasonal=config.seasonal,
                m=config.period if config.seasonal else 1,
                information_criterion=config.information_criterion,
                stepwise=config.stepwise,
                suppress_warnings=True,
                error_action="ignore",
                trace=False,
            )

        order = tuple(int(o) for o in auto_model.order)
        info = {"order": order, "aic": float(auto_model.aic())}
        if config.seasonal:
            info["seasonal_order"] = tuple(int(o) for o in auto_model.seasonal_order)

        logger.info(f"pmdarima selected order: {order} (AIC={info['aic']:.2f})")
        return auto_model, info

    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        return _state_space_forecast(
            model, model.handle.arima_res_, horizon, quantiles, include_train
        )


def _state_space_forecast(
    model: FittedModel,
    results: Any,
    horizon: int,
    quantiles: tuple[float, float],
    include_train: bool,
) -> ForecastResult:
    """Forecast from fitted statsmodels state-space results."""
    train = model.train
    times = future_times(train, horizon)

    point, lower, upper = _summarize_prediction(results.get_forecast(steps=horizon), quantiles)

    if include_train:
        in_sample = results.get_prediction(start=0, end=len(train) - 1)
        fit_point, fit_lower, fit_upper = _summarize_prediction(in_sample, quantiles)
        times = np.concatenate([train.time, times])
        point = np.concatenate([fit_point, point])
        lower = np.concatenate([fit_lower, lower])
        upper = np.concatenate([fit_upper, upper])

    return ForecastResult(
        model=model.label,
        time=times,
        point=point,
        lower=lower,
        upper=upper,
        quantiles=quantiles,
        scale=train.scale,
    )


def _summarize_prediction(
    prediction: Any, quantiles: tuple[float, float]
) -> tuple[NDArray[np.floating], NDArray[np.floating], NDArray[np.floating]]:
    """Mean and normal-quantile bounds from statsmodels PredictionResults."""
    # Handle both Series and ndarray
    point = np.asarray(getattr(prediction.predicted_mean, "values", prediction.predicted_mean))
    se = np.asarray(getattr(prediction.se_mean, "values", prediction.se_mean))
    if not np.all(np.isfinite(point)):
        raise FloatingPointError("forecast mean contains NaN or Inf")

    lower = point + norm.ppf(quantiles[0]) * se
    upper = point + norm.ppf(quantiles[1]) * se
    return point, lower, upper


def _validate_series_length(
    y_train: NDArray[np.floating],
    order: tuple[int, int, int],
    seasonal_order: tuple[int, int, int, int] | None = None,
) -> None:
    """
    Validate that series is long enough for the requested order.

    Raises:
        ValueError: If series too short
    """
    p, d, q = order
    min_length = max(p, q) + d + 1

    if seasonal_order is not None:
        P, D, Q, m = seasonal_order
        min_length += m * (max(P, Q) + D)

    if len(y_train) < min_length:
        raise ValueError(
            f"y_train has {len(y_train)} samples but order {order} "
            f"requires at least {min_length} samples"
        )

    if len(y_train) < 50:
        logger.warning(
            f"Series has only {len(y_train)} samples. "
            "ARIMA may not perform well on very short series."
        )
