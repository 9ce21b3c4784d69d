"""sgpbench - Forecast evaluation harness for seasonal Gaussian processes"""

__version__ = "0.1.0"

# Convenience imports
from .config import (
    ARIMAConfig,
    AutoARIMAConfig,
    BayesianARIMAConfig,
    HarnessSettings,
    LatentARConfig,
    NoiseTerm,
    PCPrior,
    PSDPrior,
    SeasonalGPConfig,
    SeasonalTerm,
    load_candidates,
    load_settings,
)
from .data import load_lynx, simulate_seasonal_gp
from .exceptions import (
    FitFailure,
    HarnessError,
    IndexMismatch,
    InvalidQuantile,
    InvalidSplit,
    TimeSeriesError,
)
from .timeseries import Split, TimeSeries, split
from .utils import (
    configure_notebook_logging,
    quiet_library_logging,
    verbose_library_logging,
)

__all__ = [
    "ARIMAConfig",
    "AutoARIMAConfig",
    "BayesianARIMAConfig",
    "HarnessSettings",
    "LatentARConfig",
    "NoiseTerm",
    "PCPrior",
    "PSDPrior",
    "SeasonalGPConfig",
    "SeasonalTerm",
    "load_candidates",
    "load_settings",
    "load_lynx",
    "simulate_seasonal_gp",
    "FitFailure",
    "HarnessError",
    "IndexMismatch",
    "InvalidQuantile",
    "InvalidSplit",
    "TimeSeriesError",
    "Split",
    "TimeSeries",
    "split",
    "configure_notebook_logging",
    "quiet_library_logging",
    "verbose_library_logging",
]
