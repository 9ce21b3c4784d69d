"""
Tests for the latent AR forecaster.

Validates LatentARForecaster:
- Maximum likelihood fit of AR(p) plus measurement noise
- Smoothed forecasts over held-out times
- In-sample summaries with include_train
- Error handling for short series
"""

import numpy as np
import pytest

from sgpbench.config import LatentARConfig
from sgpbench.exceptions import FitFailure
from sgpbench.modeling.forecasting.evaluation import score
from sgpbench.modeling.forecasting.latent_ar import LatentARForecaster
from sgpbench.timeseries import TimeSeries, split


@pytest.fixture
def ar2_split(ar2_series):
    return split(ar2_series, 100)


@pytest.fixture
def fitted(ar2_split):
    forecaster = LatentARForecaster()
    return forecaster, forecaster.fit(ar2_split.train, LatentARConfig())


class TestLatentARFitting:
    """Test suite for fitting."""

    def test_parameters_recorded(self, fitted):
        """Test AR coefficients, noise variance and AIC are recorded."""
        _, model = fitted
        params = model.info["params"]
        assert "ar.L1" in params
        assert "ar.L2" in params
        assert "sigma2" in params
        assert "measurement_variance" in params
        assert np.isfinite(model.info["aic"])

    def test_recovers_quasi_cycle(self, fitted):
        """Test the AR(2) coefficients land near the simulated (1.3, -0.7)."""
        _, model = fitted
        params = model.info["params"]
        assert params["ar.L1"] == pytest.approx(1.3, abs=0.3)
        assert params["ar.L2"] == pytest.approx(-0.7, abs=0.3)

    def test_without_noise(self, ar2_split):
        """Test include_noise=False drops the measurement variance."""
        model = LatentARForecaster().fit(ar2_split.train, LatentARConfig(include_noise=False))
        assert "measurement_variance" not in model.info["params"]

    def test_short_series_raises(self):
        """Test AR(p) needs at least 2p + 1 observations."""
        short = TimeSeries(np.arange(4.0), [1.0, 2.0, 1.0, 2.0])
        with pytest.raises(FitFailure, match="requires at least 5"):
            LatentARForecaster().fit(short, LatentARConfig(ar_order=2))


class TestLatentARForecasting:
    """Test suite for forecasts."""

    def test_forecast_covers_test(self, fitted, ar2_split):
        """Test forecasts at the test times with ordered bounds."""
        forecaster, model = fitted
        result = forecaster.forecast(model, horizon=len(ar2_split.test), quantiles=(0.1, 0.9))

        np.testing.assert_array_equal(result.time, ar2_split.test.time)
        assert np.all(result.lower <= result.point)
        assert np.all(result.point <= result.upper)
        assert np.isfinite(score(result, ar2_split.test).rmse)

    def test_uncertainty_grows_with_horizon(self, fitted):
        """Test interval width does not shrink far beyond the data."""
        forecaster, model = fitted
        result = forecaster.forecast(model, horizon=30)
        width = result.upper - result.lower
        assert width[-1] >= width[0]

    def test_forecast_reverts_to_mean(self, fitted, ar2_split):
        """Test long-range forecasts approach the training mean."""
        forecaster, model = fitted
        result = forecaster.forecast(model, horizon=200)
        assert result.point[-1] == pytest.approx(ar2_split.train.values.mean(), abs=1.0)

    def test_include_train(self, fitted, ar2_split):
        """Test smoothed in-sample summaries precede the forecast."""
        forecaster, model = fitted
        result = forecaster.forecast(model, horizon=5, include_train=True)

        assert len(result) == 105
        np.testing.assert_array_equal(result.time[:100], ar2_split.train.time)
        # Smoothing with measurement noise pulls the signal towards, not onto, the data
        residual = np.abs(result.point[:100] - ar2_split.train.values)
        assert residual.mean() < ar2_split.train.values.std()
