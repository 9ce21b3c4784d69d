"""
Datasets used by the seasonal GP tutorials.

- ``load_lynx``: annual Canadian lynx trappings, 1821-1934 (the classic
  quasi-periodic series with a roughly ten-year cycle)
- ``simulate_seasonal_gp``: synthetic series drawn from the exact sGP prior
  plus Gaussian noise, for checking that a fitted model recovers a known
  quasi-periodic signal
"""

import numpy as np
import polars as pl
from loguru import logger
from numpy.typing import NDArray

from sgpbench.timeseries import TimeSeries

# Annual lynx trappings in the Mackenzie River district, 1821-1934
LYNX_START_YEAR = 1821
LYNX_COUNTS = (
    269, 321, 585, 871, 1475, 2821, 3928, 5943, 4950, 2577,
    523, 98, 184, 279, 409, 2285, 2685, 3409, 1824, 409,
    151, 45, 68, 213, 546, 1033, 2129, 2536, 957, 361,
    377, 225, 360, 731, 1638, 2725, 2871, 2119, 684, 299,
    236, 245, 552, 1623, 3311, 6721, 4254, 687, 255, 473,
    358, 784, 1594, 1676, 2251, 1426, 756, 299, 201, 229,
    469, 736, 2042, 2811, 4431, 2511, 389, 73, 39, 49,
    59, 188, 377, 1292, 4031, 3495, 587, 105, 153, 387,
    758, 1307, 3465, 6991, 6313, 3794, 1836, 345, 382, 808,
    1388, 2713, 3800, 3091, 2985, 3790, 674, 81, 80, 108,
    229, 399, 1132, 2432, 3574, 2935, 1537, 529, 485, 662,
    1000, 1590, 2657, 3396,
)  # fmt: skip


def load_lynx() -> TimeSeries:
    """
    Annual Canadian lynx trappings as a natural-scale TimeSeries.

    Returns:
        TimeSeries of 114 counts indexed by year (1821-1934)

    Example:
        ```python
        lynx = load_lynx()
        train, test = split(lynx.log(), 80)  # 1821-1900 / 1901-1934
        ```
    """
    years = np.arange(LYNX_START_YEAR, LYNX_START_YEAR + len(LYNX_COUNTS), dtype=np.float64)
    return TimeSeries(years, np.asarray(LYNX_COUNTS, dtype=np.float64), name="lynx")


def lynx_frame() -> pl.DataFrame:
    """Lynx counts as a polars DataFrame with ``year`` and ``count`` columns."""
    series = load_lynx()
    return pl.DataFrame(
        {"year": series.time.astype(np.int64), "count": series.values.astype(np.int64)}
    )


def seasonal_covariance(
    x1: NDArray[np.floating], x2: NDArray[np.floating], frequency: float, sigma: float = 1.0
) -> NDArray[np.floating]:
    """
    Exact sGP covariance matrix between covariate offsets ``x1`` and ``x2``.

    Same closed form as ``SeasonalKernel``, in numpy for simulation.
    """
    a = frequency
    x1 = np.asarray(x1, dtype=np.float64)[:, None]
    x2 = np.asarray(x2, dtype=np.float64)[None, :]
    s = np.minimum(x1, x2)
    total = x1 + x2
    cov = s * np.cos(a * (x1 - x2)) - (np.sin(a * total) - np.sin(a * (total - 2 * s))) / (2 * a)
    return sigma**2 * cov / (2 * a**2)


def simulate_seasonal_gp(
    n: int = 200,
    period: float = 10.0,
    sigma: float = 0.5,
    noise_sd: float = 0.2,
    x_max: float = 100.0,
    intercept: float = 0.0,
    random_seed: int | None = None,
    return_latent: bool = False,
) -> TimeSeries | tuple[TimeSeries, NDArray[np.floating]]:
    """
    Draw a quasi-periodic series from the sGP prior plus Gaussian noise.

    The covariate is an evenly spaced grid on [0, x_max]; the sGP starts at 0.

    Args:
        n: Number of observations
        period: Cycle length in covariate units
        sigma: Standard deviation of the sGP driving noise
        noise_sd: Observation noise standard deviation
        x_max: Upper end of the covariate grid
        intercept: Constant added to every observation
        random_seed: Seed for ``np.random.default_rng``
        return_latent: Also return the noise-free latent function values

    Returns:
        Natural-scale TimeSeries, or (series, latent) with ``return_latent``
    """
    if n < 2:
        raise ValueError(f"n must be >= 2, got {n}")
    if period <= 0:
        raise ValueError(f"period must be > 0, got {period}")
    if sigma < 0 or noise_sd < 0:
        raise ValueError(f"sigma and noise_sd must be >= 0, got {sigma}, {noise_sd}")
    if x_max <= 0:
        raise ValueError(f"x_max must be > 0, got {x_max}")

    rng = np.random.default_rng(random_seed)
    x = np.linspace(0.0, x_max, n)
    cov = seasonal_covariance(x, x, 2 * np.pi / period, sigma)

    # The variance vanishes at x = 0, so factorise with a small jitter
    chol = np.linalg.cholesky(cov + 1e-9 * np.eye(n))
    latent = intercept + chol @ rng.standard_normal(n)
    y = latent + noise_sd * rng.standard_normal(n)

    logger.debug(
        f"Simulated sGP series: n={n}, period={period:g}, sigma={sigma:g}, noise_sd={noise_sd:g}"
    )
    series = TimeSeries(x, y, name="simulated_sgp")
    if return_latent:
        return series, latent
    return series
