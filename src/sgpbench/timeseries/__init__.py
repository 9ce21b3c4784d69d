"""Time series container and train/test splitting."""

from .core import Split, TimeSeries, split

__all__ = ["TimeSeries", "Split", "split"]
