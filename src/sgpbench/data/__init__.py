"""Lynx trappings and synthetic seasonal GP data."""

from .datasets import (
    LYNX_COUNTS,
    LYNX_START_YEAR,
    load_lynx,
    lynx_frame,
    seasonal_covariance,
    simulate_seasonal_gp,
)

__all__ = [
    "LYNX_COUNTS",
    "LYNX_START_YEAR",
    "load_lynx",
    "lynx_frame",
    "seasonal_covariance",
    "simulate_seasonal_gp",
]
