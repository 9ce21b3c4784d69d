"""Stateless plotting of forecasts and sweep summaries."""

from .plots import plot_coverage, plot_forecast, plot_sweep

__all__ = ["plot_forecast", "plot_sweep", "plot_coverage"]
