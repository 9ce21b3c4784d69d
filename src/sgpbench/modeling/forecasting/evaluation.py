"""
Forecast scoring.

This module scores point forecasts against a held-out test segment and
provides the interval diagnostic used by sensitivity sweeps:

**Point Forecast Metrics** (actual vs. predicted arrays):
- MSE (Mean Squared Error)
- RMSE (Root Mean Squared Error): exactly sqrt(MSE)
- MAE (Mean Absolute Error)

**Interval Metrics**:
- Coverage: Fraction of actuals strictly inside the interval bounds
- Interval Sharpness: Average interval width

``score(forecast, test)`` aligns a ForecastResult to the test times (the
forecast may cover a superset) and returns a ScoreReport.

Example:
    ```python
    from sgpbench.modeling.forecasting.evaluation import forecast_coverage, score

    report = score(result, test)
    print(f"RMSE: {report.rmse:.4f}  coverage: {forecast_coverage(result, test):.2f}")
    ```
"""

from dataclasses import asdict, dataclass

import numpy as np
from numpy.typing import NDArray

from sgpbench.exceptions import IndexMismatch
from sgpbench.timeseries import TimeSeries

from .base import ForecastResult

# Absolute tolerance when matching forecast times to test times
TIME_TOLERANCE = 1e-9


def mse(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Mean Squared Error (MSE).

    Formula:
        MSE = mean((y_true - y_pred)²)

    Args:
        y_true: Actual values of shape (n_samples,)
        y_pred: Predicted values of shape (n_samples,)

    Returns:
        MSE value as float

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    y_true, y_pred = _validate_arrays(y_true, y_pred)
    return float(np.mean((y_true - y_pred) ** 2))


def rmse(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Root Mean Squared Error (RMSE).

    Formula:
        RMSE = sqrt(mean((y_true - y_pred)²))

    Interpretation:
        Penalizes large errors more than MAE due to squaring.
        Same units as the data. RMSE ≥ MAE always.

    Example:
        ```python
        y_true = np.array([1.0, 2.0, 3.0])
        y_pred = np.array([1.5, 2.0, 2.0])
        print(rmse(y_true, y_pred))  # ~0.645
        ```
    """
    return float(np.sqrt(mse(y_true, y_pred)))


def mae(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Mean Absolute Error (MAE).

    Formula:
        MAE = mean(|y_true - y_pred|)

    Args:
        y_true: Actual values of shape (n_samples,)
        y_pred: Predicted values of shape (n_samples,)

    Returns:
        MAE value as float

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    y_true, y_pred = _validate_arrays(y_true, y_pred)
    return float(np.mean(np.abs(y_true - y_pred)))


def coverage(
    y_true: NDArray[np.floating],
    lower: NDArray[np.floating],
    upper: NDArray[np.floating],
) -> float:
    """
    Prediction Interval Coverage (calibration metric).

    Formula:
        Coverage = (# actuals with lower < y < upper) / (# actuals)

    Interpretation:
        Fraction of actuals strictly inside the interval bounds.
        - A 95% interval should contain ~0.95 of actuals (well-calibrated)
        - Below nominal: intervals too narrow (over-confident)
        - Above nominal: intervals too wide (under-confident)

    Args:
        y_true: Actual values of shape (n_samples,)
        lower: Lower bounds of prediction intervals (n_samples,)
        upper: Upper bounds of prediction intervals (n_samples,)

    Returns:
        Coverage fraction as float in [0, 1]

    Raises:
        ValueError: If arrays are empty or have different shapes

    Example:
        ```python
        y_true = np.array([100, 200, 300, 400, 500])
        lower = np.array([90, 180, 280, 380, 480])
        upper = np.array([110, 220, 320, 420, 520])

        print(coverage(y_true, lower, upper))  # 1.0 (all within bounds)
        ```
    """
    y_true, lower, upper = np.asarray(y_true), np.asarray(lower), np.asarray(upper)
    if len(y_true) == 0:
        raise ValueError("y_true cannot be empty")
    if len(y_true) != len(lower) or len(y_true) != len(upper):
        raise ValueError(
            f"Array shapes must match: y_true={len(y_true)}, "
            f"lower={len(lower)}, upper={len(upper)}"
        )

    within_bounds = (y_true > lower) & (y_true < upper)
    return float(np.mean(within_bounds))


def interval_sharpness(lower: NDArray[np.floating], upper: NDArray[np.floating]) -> float:
    """
    Interval Sharpness (average prediction interval width).

    Lower is better, but only alongside adequate coverage.

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    lower, upper = np.asarray(lower), np.asarray(upper)
    if len(lower) == 0:
        raise ValueError("lower cannot be empty")
    if len(lower) != len(upper):
        raise ValueError(f"Array shapes must match: lower={len(lower)}, upper={len(upper)}")

    return float(np.mean(upper - lower))


@dataclass(frozen=True)
class ScoreReport:
    """
    Point-forecast accuracy over a test segment.

    Attributes:
        mse: Mean squared error
        rmse: Root mean squared error (sqrt of mse)
        mae: Mean absolute error
        n: Number of scored points
    """

    mse: float
    rmse: float
    mae: float
    n: int

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def align_to_test(forecast: ForecastResult, test: TimeSeries) -> NDArray[np.intp]:
    """
    Positions of the test times within the forecast times.

    Args:
        forecast: Forecast covering the test times (possibly a superset)
        test: Test segment

    Returns:
        Integer index array ``idx`` with ``forecast.time[idx] ≈ test.time``

    Raises:
        IndexMismatch: If any test time has no forecast counterpart
    """
    order = np.argsort(forecast.time, kind="stable")
    sorted_time = forecast.time[order]
    pos = np.clip(np.searchsorted(sorted_time, test.time), 0, len(sorted_time) - 1)

    # Nearest neighbour on either side of the insertion point
    left = np.clip(pos - 1, 0, len(sorted_time) - 1)
    use_left = np.abs(sorted_time[left] - test.time) < np.abs(sorted_time[pos] - test.time)
    nearest = np.where(use_left, left, pos)

    matched = np.abs(sorted_time[nearest] - test.time) <= TIME_TOLERANCE
    if not np.all(matched):
        missing = test.time[~matched]
        raise IndexMismatch(
            f"forecast does not cover {len(missing)} of {len(test)} test times "
            f"(first missing: {missing[0]:g})",
            model=forecast.model,
        )
    return order[nearest]


def _check_scale(forecast: ForecastResult, test: TimeSeries) -> None:
    if forecast.scale != test.scale:
        raise ValueError(
            f"forecast is on the {forecast.scale!r} scale but test is on the {test.scale!r} scale"
        )


def score(forecast: ForecastResult, test: TimeSeries) -> ScoreReport:
    """
    Score a forecast against the test segment.

    Args:
        forecast: ForecastResult covering every test time
        test: Held-out test segment on the same scale

    Returns:
        ScoreReport over all test points

    Raises:
        IndexMismatch: If the forecast does not cover the test times
        ValueError: If forecast and test scales differ
    """
    _check_scale(forecast, test)
    idx = align_to_test(forecast, test)
    point = forecast.point[idx]
    mse_value = mse(test.values, point)
    return ScoreReport(
        mse=mse_value,
        rmse=float(np.sqrt(mse_value)),
        mae=mae(test.values, point),
        n=len(test),
    )


def forecast_coverage(forecast: ForecastResult, test: TimeSeries) -> float:
    """Fraction of test values strictly inside the forecast bounds."""
    _check_scale(forecast, test)
    idx = align_to_test(forecast, test)
    return coverage(test.values, forecast.lower[idx], forecast.upper[idx])


def _validate_arrays(
    y_true: NDArray[np.floating], y_pred: NDArray[np.floating]
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Coerce to float arrays; reject empty or mismatched inputs."""
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    if len(y_true) == 0:
        raise ValueError("y_true cannot be empty")
    if len(y_pred) == 0:
        raise ValueError("y_pred cannot be empty")
    if len(y_true) != len(y_pred):
        raise ValueError(
            f"y_true and y_pred must have same shape: y_true={len(y_true)}, y_pred={len(y_pred)}"
        )
    return y_true, y_pred
