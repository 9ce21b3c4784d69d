"""Forecast evaluation framework for seasonal GP comparisons.

This module provides:
- A common forecaster interface (fit, forecast) over every backend
- Statistical baselines (ARIMA, auto-ARIMA, latent AR with measurement noise)
- Scoring (MSE, RMSE, MAE) and interval coverage
- Multi-candidate evaluation runs and prior sensitivity sweeps

The Bayesian ARIMA (PyMC) and seasonal GP (GPyTorch) forecasters are imported
from their modules directly, or selected through ``get_forecaster``.
"""

from .arima import ARIMAForecaster, AutoARIMAForecaster
from .base import (
    DEFAULT_QUANTILES,
    BaseForecaster,
    FittedModel,
    ForecastResult,
    validate_quantiles,
)
from .evaluation import (
    ScoreReport,
    coverage,
    forecast_coverage,
    interval_sharpness,
    mae,
    mse,
    rmse,
    score,
)
from .harness import (
    CandidateResult,
    EvaluationResults,
    ForecastEvaluation,
    call_with_timeout,
    evaluate_config,
)
from .latent_ar import LatentARForecaster
from .registry import available_kinds, get_forecaster
from .sweep import SensitivitySweep, SweepEntry, prior_grid, sweep

__all__ = [
    # Forecasters
    "BaseForecaster",
    "ARIMAForecaster",
    "AutoARIMAForecaster",
    "LatentARForecaster",
    "get_forecaster",
    "available_kinds",
    # Results
    "FittedModel",
    "ForecastResult",
    "DEFAULT_QUANTILES",
    "validate_quantiles",
    # Scoring
    "ScoreReport",
    "score",
    "forecast_coverage",
    "mse",
    "rmse",
    "mae",
    "coverage",
    "interval_sharpness",
    # Evaluation runs
    "ForecastEvaluation",
    "EvaluationResults",
    "CandidateResult",
    "evaluate_config",
    "call_with_timeout",
    # Sweeps
    "SensitivitySweep",
    "SweepEntry",
    "prior_grid",
    "sweep",
]
