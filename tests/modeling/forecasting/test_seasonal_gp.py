"""
Tests for the seasonal GP forecaster.

Validates SeasonalGPForecaster:
- MAP fitting and recorded standard deviations
- Grid and horizon forecasts with latent intervals
- Posterior summaries over arbitrary covariate grids
- The Lynx tutorial configuration
"""

import numpy as np
import polars as pl
import pytest

from sgpbench.config import NoiseTerm, SeasonalGPConfig, SeasonalTerm
from sgpbench.exceptions import InvalidQuantile
from sgpbench.modeling.forecasting.evaluation import forecast_coverage, score
from sgpbench.modeling.forecasting.seasonal_gp import SeasonalGPForecaster


@pytest.fixture
def fitted(simulated_split, fast_sgp_config):
    forecaster = SeasonalGPForecaster()
    return forecaster, forecaster.fit(simulated_split.train, fast_sgp_config)


class TestSeasonalGPFitting:
    """Test suite for fitting."""

    def test_supports_grid(self):
        """Test the backend forecasts on covariate grids."""
        assert SeasonalGPForecaster.supports_grid

    def test_info(self, fitted):
        """Test fitted sds, loss and sparsity are recorded."""
        _, model = fitted
        assert model.forecaster == "seasonal_gp"
        assert model.info["sgp_sd_0"] > 0
        assert model.info["noise_sd"] > 0
        assert np.isfinite(model.info["final_loss"])
        assert model.info["sparse"] is True

    def test_same_seed_same_fit(self, simulated_split, fast_sgp_config):
        """Test the configured seed makes fits repeatable."""
        forecaster = SeasonalGPForecaster()
        first = forecaster.fit(simulated_split.train, fast_sgp_config)
        second = forecaster.fit(simulated_split.train, fast_sgp_config)
        assert first.info["final_loss"] == pytest.approx(second.info["final_loss"])

    def test_training_outside_region_warns(self, simulated_split):
        """Test training times beyond the region are allowed."""
        config = SeasonalGPConfig(
            terms=[SeasonalTerm(period=10, k=10, region=(0, 50)), NoiseTerm()], n_iter=5
        )
        model = SeasonalGPForecaster().fit(simulated_split.train, config)
        assert model.info["sparse"] is True


class TestSeasonalGPForecasting:
    """Test suite for forecasts."""

    def test_grid_forecast(self, fitted, simulated_split):
        """Test forecasts at the test times score and cover sensibly."""
        forecaster, model = fitted
        test = simulated_split.test
        result = forecaster.forecast(model, grid=test.time, quantiles=(0.1, 0.9))

        np.testing.assert_array_equal(result.time, test.time)
        assert np.all(result.lower <= result.point)
        assert np.all(result.point <= result.upper)
        assert np.isfinite(score(result, test).mse)
        assert 0.0 <= forecast_coverage(result, test) <= 1.0

    def test_horizon_forecast(self, fitted, simulated_split):
        """Test step forecasts continue the regular training grid."""
        forecaster, model = fitted
        result = forecaster.forecast(model, horizon=len(simulated_split.test))
        np.testing.assert_allclose(result.time, simulated_split.test.time)

    def test_include_train(self, fitted, simulated_split):
        """Test in-sample summaries precede the grid forecast."""
        forecaster, model = fitted
        result = forecaster.forecast(model, grid=simulated_split.test.time, include_train=True)
        assert len(result) == len(simulated_split.train) + len(simulated_split.test)
        assert np.all(np.diff(result.time) > 0)

    def test_invalid_quantiles(self, fitted):
        """Test quantiles are validated before prediction."""
        forecaster, model = fitted
        with pytest.raises(InvalidQuantile):
            forecaster.forecast(model, horizon=3, quantiles=(0.0, 0.5))


class TestSeasonalGPPredict:
    """Test posterior summaries over arbitrary grids."""

    def test_frame_columns(self, fitted):
        """Test the summary frame layout."""
        forecaster, model = fitted
        grid = np.linspace(0, 119, 50)
        frame = forecaster.predict(model, grid, quantiles=(0.1, 0.9))

        assert isinstance(frame, pl.DataFrame)
        assert frame.columns == ["x", "mean", "sd", "q0.1", "q0.9"]
        assert frame.height == 50
        assert (frame["sd"] >= 0).all()

    def test_without_intercept(self, fitted):
        """Test excluding the intercept shifts only the mean."""
        forecaster, model = fitted
        grid = np.linspace(10, 90, 9)
        full = forecaster.predict(model, grid)
        centred = forecaster.predict(model, grid, include_intercept=False)

        shift = (full["mean"] - centred["mean"]).to_numpy()
        np.testing.assert_allclose(shift, shift[0])
        np.testing.assert_allclose(full["sd"].to_numpy(), centred["sd"].to_numpy())

    def test_samples(self, fitted):
        """Test posterior draws alongside the summaries."""
        forecaster, model = fitted
        frame, samples = forecaster.predict(
            model, np.linspace(0, 50, 11), return_samples=True, n_samples=20
        )
        assert frame.height == 11
        assert samples.shape == (20, 11)

    def test_empty_grid(self, fitted):
        """Test an empty grid is rejected."""
        forecaster, model = fitted
        with pytest.raises(ValueError, match="grid cannot be empty"):
            forecaster.predict(model, [])


@pytest.mark.slow
class TestLynxSeasonalGP:
    """The Lynx tutorial: log counts, ten-year cycle, 80 training years."""

    def test_forecast_scores(self, lynx_split, lynx_sgp_config):
        """Test the held-out years are scored with finite metrics."""
        forecaster = SeasonalGPForecaster()
        model = forecaster.fit(lynx_split.train, lynx_sgp_config)
        result = forecaster.forecast(model, grid=lynx_split.test.time)

        report = score(result, lynx_split.test)
        assert report.n == 34
        assert np.isfinite(report.rmse)
        assert abs(report.rmse - np.sqrt(report.mse)) <= 1e-9

    def test_stronger_prior_changes_fit(self, lynx_split, lynx_sgp_config):
        """Test the PSD threshold shrinks the seasonal sd."""
        forecaster = SeasonalGPForecaster()
        loose = forecaster.fit(lynx_split.train, lynx_sgp_config.with_prior(u=5.0))
        tight = forecaster.fit(lynx_split.train, lynx_sgp_config.with_prior(u=0.01))
        assert tight.info["sgp_sd_0"] < loose.info["sgp_sd_0"]
