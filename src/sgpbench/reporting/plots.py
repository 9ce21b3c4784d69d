"""
Stateless matplotlib reporting for forecasts and sensitivity sweeps.

Every function draws on the ``ax`` it is given (or a fresh figure) and
returns the figure; no global figure or layout state is touched.
"""

import matplotlib.pyplot as plt
import numpy as np
import polars as pl

from sgpbench.modeling.forecasting.base import ForecastResult
from sgpbench.timeseries import TimeSeries


def _axes(ax: plt.Axes | None, figsize: tuple[float, float]) -> tuple[plt.Figure, plt.Axes]:
    if ax is not None:
        return ax.figure, ax
    fig, ax = plt.subplots(figsize=figsize)
    plt.close(fig)  # Prevent double display
    return fig, ax


def plot_forecast(
    series: TimeSeries,
    forecast: ForecastResult,
    split_index: int | None = None,
    ax: plt.Axes | None = None,
    figsize: tuple[float, float] = (12, 5),
) -> plt.Figure:
    """
    Observed series with the forecast mean and interval band.

    Args:
        series: Observed series on the same scale as the forecast
        forecast: ForecastResult to overlay
        split_index: Training prefix length; draws a boundary line when given
        ax: Axes to draw on (default: new figure)
        figsize: Figure size when creating a new figure

    Returns:
        matplotlib Figure
    """
    if series.scale != forecast.scale:
        raise ValueError(
            f"series is on the {series.scale!r} scale "
            f"but forecast is on the {forecast.scale!r} scale"
        )
    fig, ax = _axes(ax, figsize)

    ax.plot(series.time, series.values, "k.", markersize=4, label="Observed")
    ax.plot(forecast.time, forecast.point, color="C0", linewidth=1.5, label=forecast.model)
    lower_q, upper_q = forecast.quantiles
    ax.fill_between(
        forecast.time,
        forecast.lower,
        forecast.upper,
        color="C0",
        alpha=0.25,
        label=f"{100 * (upper_q - lower_q):.0f}% interval",
    )

    if split_index is not None and 0 < split_index < len(series):
        boundary = 0.5 * (series.time[split_index - 1] + series.time[split_index])
        ax.axvline(boundary, color="gray", linestyle="--", linewidth=1, label="Train/test split")

    ax.set_xlabel("Time", fontsize=12, fontweight="bold")
    ax.set_ylabel(f"{series.name} ({series.scale})", fontsize=12, fontweight="bold")
    ax.set_title(f"{forecast.model} forecast", fontsize=13, fontweight="bold")
    ax.grid(True, alpha=0.3, linestyle="--")
    ax.legend(loc="best")
    return fig


def plot_sweep(
    summary: pl.DataFrame,
    param: str = "u",
    metric: str = "mse",
    ax: plt.Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
) -> plt.Figure:
    """
    Sweep metric against a swept prior parameter.

    Failed entries (null metric) are left out of the line and marked along the
    bottom of the axes.

    Args:
        summary: DataFrame from ``SensitivitySweep.summary``
        param: Swept parameter column (x axis)
        metric: Metric column (y axis)
        ax: Axes to draw on (default: new figure)
        figsize: Figure size when creating a new figure

    Returns:
        matplotlib Figure
    """
    for column in (param, metric):
        if column not in summary.columns:
            raise ValueError(f"summary has no column {column!r}; columns: {summary.columns}")
    fig, ax = _axes(ax, figsize)

    ok = summary.filter(pl.col(metric).is_not_null())
    failed = summary.filter(pl.col(metric).is_null())
    ax.plot(ok[param].to_numpy(), ok[metric].to_numpy(), "o-", color="C0", label=metric.upper())
    if len(failed) > 0:
        ax.plot(
            failed[param].to_numpy(),
            np.zeros(len(failed)),
            "x",
            color="C3",
            transform=ax.get_xaxis_transform(),
            clip_on=False,
            label="Failed fit",
        )

    ax.set_xlabel(param, fontsize=12, fontweight="bold")
    ax.set_ylabel(metric.upper(), fontsize=12, fontweight="bold")
    ax.set_title(f"{metric.upper()} sensitivity to {param}", fontsize=13, fontweight="bold")
    ax.grid(True, alpha=0.3, linestyle="--")
    ax.legend(loc="best")
    return fig


def plot_coverage(
    summary: pl.DataFrame,
    param: str = "u",
    nominal: float | None = None,
    ax: plt.Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
) -> plt.Figure:
    """
    Empirical interval coverage against a swept prior parameter.

    Args:
        summary: DataFrame from ``SensitivitySweep.summary``
        param: Swept parameter column (x axis)
        nominal: Nominal coverage level drawn as a reference line (e.g. 0.95)
        ax: Axes to draw on (default: new figure)
        figsize: Figure size when creating a new figure

    Returns:
        matplotlib Figure
    """
    fig = plot_sweep(summary, param=param, metric="coverage", ax=ax, figsize=figsize)
    ax = fig.axes[0] if ax is None else ax

    if nominal is not None:
        ax.axhline(nominal, color="gray", linestyle="--", linewidth=1, label=f"Nominal {nominal:g}")
        ax.legend(loc="best")
    ax.set_ylim(-0.05, 1.05)
    ax.set_ylabel("Coverage", fontsize=12, fontweight="bold")
    ax.set_title(f"Interval coverage vs {param}", fontsize=13, fontweight="bold")
    return fig
