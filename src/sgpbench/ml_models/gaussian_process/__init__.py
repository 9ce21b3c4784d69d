"""
Seasonal Gaussian process models.

This module provides GPyTorch-based seasonal GP (sGP) regression:
- Exact sGP covariance for quasi-periodic latent trends
- Harmonic fixed effects for the sGP boundary conditions
- PSD/PC prior elicitation for the standard deviations
- MAP hyperparameter fitting and Gaussian latent posterior summaries

References:
- GPyTorch: https://gpytorch.ai/
- Zhang et al. (2024), seasonal Gaussian process
"""

from .kernels import SeasonalKernel, seasonal_sd_at, seasonal_variance
from .models import HarmonicMean, SeasonalGPModel, initialize_inducing_points
from .priors import noise_sd_prior, pc_prior_rate, psd_prior_rate, seasonal_sd_prior
from .training import build_seasonal_gp, predict_latent, train_gp_model

__all__ = [
    "SeasonalKernel",
    "seasonal_sd_at",
    "seasonal_variance",
    "HarmonicMean",
    "SeasonalGPModel",
    "initialize_inducing_points",
    "pc_prior_rate",
    "psd_prior_rate",
    "seasonal_sd_prior",
    "noise_sd_prior",
    "build_seasonal_gp",
    "train_gp_model",
    "predict_latent",
]
