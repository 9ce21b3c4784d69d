"""Tests for forecast and sweep plots."""

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
import pytest

from sgpbench.modeling.forecasting.base import ForecastResult
from sgpbench.reporting import plot_coverage, plot_forecast, plot_sweep
from sgpbench.timeseries import TimeSeries


@pytest.fixture
def series():
    return TimeSeries(np.arange(20.0), np.sin(np.arange(20.0)), scale="log", name="wave")


@pytest.fixture
def forecast():
    point = np.zeros(5)
    return ForecastResult(
        "ARIMA(2, 1, 0)", np.arange(15.0, 20.0), point, point - 1, point + 1, (0.1, 0.9), "log"
    )


@pytest.fixture
def summary():
    return pl.DataFrame(
        {
            "index": [0, 1, 2],
            "u": [0.1, 0.5, 1.0],
            "mse": [0.3, None, 0.2],
            "coverage": [0.8, None, 0.9],
        },
        schema={"index": pl.Int64, "u": pl.Float64, "mse": pl.Float64, "coverage": pl.Float64},
    )


class TestPlotForecast:
    """Test forecast overlay plots."""

    def test_returns_figure(self, series, forecast):
        """Test a figure with observed, forecast, band and split line."""
        fig = plot_forecast(series, forecast, split_index=15)
        assert isinstance(fig, plt.Figure)
        ax = fig.axes[0]
        labels = ax.get_legend_handles_labels()[1]
        assert "Observed" in labels
        assert "ARIMA(2, 1, 0)" in labels
        assert "80% interval" in labels
        assert "Train/test split" in labels
        plt.close(fig)

    def test_draws_on_given_axes(self, series, forecast):
        """Test an existing axes is used."""
        fig, ax = plt.subplots()
        assert plot_forecast(series, forecast, ax=ax) is fig
        plt.close(fig)

    def test_scale_mismatch(self, series, forecast):
        """Test series and forecast must share a scale."""
        with pytest.raises(ValueError, match="scale"):
            plot_forecast(series.exp(), forecast)


class TestPlotSweep:
    """Test sweep plots."""

    def test_metric_line_and_failures(self, summary):
        """Test successful entries form the line and failures are marked."""
        fig = plot_sweep(summary, param="u", metric="mse")
        ax = fig.axes[0]
        line = ax.get_lines()[0]
        np.testing.assert_allclose(line.get_xdata(), [0.1, 1.0])
        assert "Failed fit" in ax.get_legend_handles_labels()[1]
        plt.close(fig)

    def test_unknown_column(self, summary):
        """Test missing columns raise ValueError."""
        with pytest.raises(ValueError, match="no column 'alpha'"):
            plot_sweep(summary, param="alpha")

    def test_coverage_with_nominal(self, summary):
        """Test the nominal reference line and unit y range."""
        fig = plot_coverage(summary, param="u", nominal=0.8)
        ax = fig.axes[0]
        assert ax.get_ylim() == pytest.approx((-0.05, 1.05))
        assert "Nominal 0.8" in ax.get_legend_handles_labels()[1]
        plt.close(fig)
