"""Core TimeSeries class and the train/test splitter."""

from dataclasses import dataclass

import numpy as np
import polars as pl
from loguru import logger
from numpy.typing import NDArray

from sgpbench.exceptions import InvalidSplit, TimeSeriesError

SCALES = ("natural", "log")


class TimeSeries:
    """
    Ordered (time, value) pairs for a single univariate series.

    Values are stored as float64 and never mutated; transformations return new
    instances. The ``scale`` tag records whether values are natural counts or
    their logarithms so that forecasts on different scales are never compared.

    Attributes:
        time: Strictly increasing time index, shape (n,)
        values: Observed values, shape (n,)
        name: Display name used in logs and plots
        scale: "natural" or "log"
    """

    def __init__(
        self,
        time: NDArray | list,
        values: NDArray | list,
        name: str = "series",
        scale: str = "natural",
    ):
        """
        Initialize and validate a TimeSeries.

        Raises:
            TimeSeriesError: If lengths differ, fewer than 2 observations, values
                are non-finite, time is not strictly increasing or scale unknown
        """
        time_arr = np.asarray(time, dtype=np.float64).reshape(-1)
        values_arr = np.asarray(values, dtype=np.float64).reshape(-1)

        if len(time_arr) != len(values_arr):
            raise TimeSeriesError(
                f"time and values must have same length: "
                f"time={len(time_arr)}, values={len(values_arr)}",
                model=name,
            )
        if len(values_arr) < 2:
            raise TimeSeriesError(
                f"TimeSeries needs at least 2 observations, got {len(values_arr)}", model=name
            )
        if not np.all(np.isfinite(values_arr)) or not np.all(np.isfinite(time_arr)):
            raise TimeSeriesError("time and values must not contain NaN or Inf", model=name)
        if np.any(np.diff(time_arr) <= 0):
            raise TimeSeriesError("time must be strictly increasing", model=name)
        if scale not in SCALES:
            raise TimeSeriesError(f"scale must be one of {SCALES}, got {scale!r}", model=name)

        time_arr.setflags(write=False)
        values_arr.setflags(write=False)
        self._time = time_arr
        self._values = values_arr
        self.name = name
        self.scale = scale

    @classmethod
    def from_dataframe(
        cls,
        df: pl.DataFrame,
        time_col: str = "time",
        value_col: str = "value",
        name: str | None = None,
        scale: str = "natural",
    ) -> "TimeSeries":
        """
        Factory method to create a TimeSeries from a polars DataFrame.

        Rows are sorted by ``time_col`` before conversion.

        Raises:
            TimeSeriesError: If either column is missing
        """
        for col in (time_col, value_col):
            if col not in df.columns:
                raise TimeSeriesError(
                    f"column '{col}' not found in DataFrame columns: {df.columns}", model=name
                )
        df = df.sort(time_col)
        return cls(
            time=df[time_col].cast(pl.Float64).to_numpy(),
            values=df[value_col].cast(pl.Float64).to_numpy(),
            name=name if name is not None else value_col,
            scale=scale,
        )

    def to_frame(self) -> pl.DataFrame:
        """Return a polars DataFrame with ``time`` and ``value`` columns."""
        return pl.DataFrame({"time": self._time, "value": self._values})

    @property
    def time(self) -> NDArray[np.floating]:
        return self._time

    @property
    def values(self) -> NDArray[np.floating]:
        return self._values

    @property
    def is_regular(self) -> bool:
        """Whether consecutive time points are equally spaced."""
        diffs = np.diff(self._time)
        if len(diffs) == 0:
            return False
        return bool(np.allclose(diffs, diffs[0], rtol=1e-9, atol=1e-12))

    @property
    def step(self) -> float:
        """
        Spacing between consecutive time points.

        Raises:
            TimeSeriesError: If the series is irregularly spaced
        """
        if not self.is_regular:
            raise TimeSeriesError("series is irregularly spaced; no single step", model=self.name)
        return float(self._time[1] - self._time[0])

    def log(self, offset: float = 0.0) -> "TimeSeries":
        """
        Return the log-scale series log(values + offset).

        Raises:
            TimeSeriesError: If already on log scale or any value + offset <= 0
        """
        if self.scale == "log":
            raise TimeSeriesError("series is already on log scale", model=self.name)
        shifted = self._values + offset
        if np.any(shifted <= 0):
            raise TimeSeriesError(
                f"log transform needs values + offset > 0 (offset={offset})", model=self.name
            )
        return TimeSeries(self._time, np.log(shifted), name=self.name, scale="log")

    def exp(self) -> "TimeSeries":
        """Return the natural-scale series exp(values)."""
        if self.scale != "log":
            raise TimeSeriesError("series is not on log scale", model=self.name)
        return TimeSeries(self._time, np.exp(self._values), name=self.name, scale="natural")

    def to_scale(self, scale: str) -> "TimeSeries":
        """Return the series on ``scale``, transforming only if needed."""
        if scale == self.scale:
            return self
        return self.log() if scale == "log" else self.exp()

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, key: slice) -> "TimeSeries":
        if not isinstance(key, slice):
            raise TypeError("TimeSeries only supports slicing, e.g. series[10:20]")
        return TimeSeries(self._time[key], self._values[key], name=self.name, scale=self.scale)

    def __repr__(self) -> str:
        return (
            f"TimeSeries(name={self.name!r}, n={len(self)}, scale={self.scale!r}, "
            f"time=[{self._time[0]:g}, {self._time[-1]:g}])"
        )


@dataclass(frozen=True)
class Split:
    """
    A series partitioned into a training prefix and a held-out suffix.

    Unpacks as ``train, test = split(series, index)``.
    """

    train: TimeSeries
    test: TimeSeries
    index: int

    def __iter__(self):
        return iter((self.train, self.test))


def split(series: TimeSeries, index: int) -> Split:
    """
    Partition ``series`` into ``series[:index]`` and ``series[index:]``.

    Args:
        series: Series to split
        index: Length of the training prefix, 1 <= index < len(series)

    Returns:
        Split with train/test preserving original order and time values

    Raises:
        InvalidSplit: If index is outside [1, len(series) - 1]

    Example:
        ```python
        train, test = split(load_lynx().log(), 80)
        assert len(train) == 80 and len(test) == 34
        ```
    """
    n = len(series)
    if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
        raise InvalidSplit(f"split index must be an integer, got {index!r}", model=series.name)
    if not 1 <= index < n:
        raise InvalidSplit(
            f"split index must satisfy 1 <= index < {n}, got {index}", model=series.name
        )

    # Length-1 segments are valid partitions; TimeSeries requires >= 2 points,
    # so build them directly from the arrays.
    train = _segment(series, slice(0, index))
    test = _segment(series, slice(index, n))

    logger.debug(f"Split {series.name}: train={len(train)}, test={len(test)} at index {index}")
    return Split(train=train, test=test, index=int(index))


def _segment(series: TimeSeries, key: slice) -> TimeSeries:
    segment = TimeSeries.__new__(TimeSeries)
    segment._time = series.time[key]
    segment._values = series.values[key]
    segment.name = series.name
    segment.scale = series.scale
    return segment
