"""
Forecaster selection by configuration kind.

Backends are imported on first use, so selecting an ARIMA forecaster does not
import PyMC or GPyTorch.
"""

import importlib

from .base import BaseForecaster

_FORECASTERS: dict[str, tuple[str, str]] = {
    "arima": ("sgpbench.modeling.forecasting.arima", "ARIMAForecaster"),
    "auto_arima": ("sgpbench.modeling.forecasting.arima", "AutoARIMAForecaster"),
    "bayesian_arima": ("sgpbench.modeling.forecasting.bayesian_arima", "BayesianARIMAForecaster"),
    "latent_ar": ("sgpbench.modeling.forecasting.latent_ar", "LatentARForecaster"),
    "seasonal_gp": ("sgpbench.modeling.forecasting.seasonal_gp", "SeasonalGPForecaster"),
}


def available_kinds() -> list[str]:
    """Configuration kinds with a registered forecaster."""
    return sorted(_FORECASTERS)


def get_forecaster(config) -> BaseForecaster:
    """
    Return a new forecaster for a model configuration.

    Args:
        config: Any ModelConfig (selected by its ``kind``)

    Returns:
        Forecaster instance whose ``config_type`` matches ``config``

    Raises:
        ValueError: If no forecaster is registered for the configuration kind
    """
    kind = getattr(config, "kind", None)
    if kind not in _FORECASTERS:
        raise ValueError(f"Unknown model kind {kind!r}. Choose from {available_kinds()}")

    module_name, class_name = _FORECASTERS[kind]
    forecaster_cls = getattr(importlib.import_module(module_name), class_name)
    return forecaster_cls()
