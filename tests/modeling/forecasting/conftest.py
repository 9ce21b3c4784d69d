"""Fixtures shared by forecasting tests: a minimal last-value backend."""

import time
from dataclasses import dataclass

import numpy as np
import pytest

from sgpbench.modeling.forecasting import harness
from sgpbench.modeling.forecasting.base import BaseForecaster, ForecastResult, future_times
from sgpbench.modeling.forecasting.registry import get_forecaster


@dataclass(frozen=True)
class LastValueConfig:
    kind: str = "last_value"
    fail_fit: bool = False
    fail_forecast: bool = False
    delay: float = 0.0
    u: float | None = None

    @property
    def label(self) -> str:
        return "LastValue" if self.u is None else f"LastValue(u={self.u:g})"


class LastValueForecaster(BaseForecaster):
    """Repeats the last training value (shifted by ``u``) with a unit-width interval."""

    name = "last_value"
    config_type = LastValueConfig

    def _fit(self, train, config):
        if config.delay:
            time.sleep(config.delay)
        if config.fail_fit:
            raise np.linalg.LinAlgError("singular matrix")
        last = float(train.values[-1]) + (config.u or 0.0)
        return last, {"last": last}

    def _forecast(self, model, horizon, quantiles, grid, include_train):
        if model.config.fail_forecast:
            raise FloatingPointError("nan forecast")
        times = future_times(model.train, horizon)
        point = np.full(horizon, model.handle)
        return ForecastResult(
            model=model.label,
            time=times,
            point=point,
            lower=point - 1.0,
            upper=point + 1.0,
            quantiles=quantiles,
            scale=model.train.scale,
        )


@pytest.fixture
def last_value_config():
    """Configuration class of the last-value backend."""
    return LastValueConfig


@pytest.fixture
def last_value_forecaster():
    return LastValueForecaster()


@pytest.fixture
def register_last_value(monkeypatch):
    """Route LastValueConfig through the harness forecaster lookup."""

    def lookup(config):
        if isinstance(config, LastValueConfig):
            return LastValueForecaster()
        return get_forecaster(config)

    monkeypatch.setattr(harness, "get_forecaster", lookup)
    return LastValueConfig
