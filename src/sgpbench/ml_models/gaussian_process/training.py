"""
Construction, MAP fitting and prediction for seasonal GP models.

Hyperparameters (kernel standard deviations, harmonic fixed effects, noise
level) are fitted by maximising the exact (or inducing-point) marginal log
likelihood plus the log prior densities registered on the model, i.e. a MAP
estimate. Given those, the latent function posterior is Gaussian.
"""

import math

import gpytorch
import numpy as np
import torch
from gpytorch.constraints import GreaterThan
from gpytorch.mlls import ExactMarginalLogLikelihood
from loguru import logger
from scipy.stats import norm

from sgpbench.config import SeasonalGPConfig

from .kernels import SeasonalKernel, seasonal_sd_at
from .models import SeasonalGPModel, initialize_inducing_points
from .priors import noise_sd_prior, seasonal_sd_prior

# Noise variance used when the model has no iid term
_NOISELESS_VARIANCE = 1e-6


def build_seasonal_gp(
    X_train: torch.Tensor, y_train: torch.Tensor, config: SeasonalGPConfig
) -> tuple[SeasonalGPModel, gpytorch.likelihoods.GaussianLikelihood]:
    """
    Build a SeasonalGPModel and its likelihood from a configuration.

    Covariates must already be offsets from the start of the support
    (``min(region[0])`` across seasonal terms).

    Args:
        X_train: Covariate offsets, shape (n, 1), float64
        y_train: Responses, shape (n,), float64
        config: Seasonal GP configuration

    Returns:
        (model, likelihood), both in float64
    """
    y_sd = float(y_train.std()) if len(y_train) > 1 else 1.0
    y_sd = y_sd if y_sd > 0 else 1.0

    kernels = []
    for term in config.seasonal_terms:
        for j in range(1, term.m + 1):
            kernel = SeasonalKernel(
                frequency=j * term.frequency, sd_prior=seasonal_sd_prior(term, j)
            )
            # Start where the seasonal component moves about half the data sd per lead time
            unit_sd = seasonal_sd_at(term.lead_time, j * term.frequency)
            kernel.sd = 0.5 * y_sd / max(unit_sd, 1e-8)
            kernels.append(kernel)

    noise = config.noise_term
    if noise is not None:
        likelihood = gpytorch.likelihoods.GaussianLikelihood(noise_constraint=GreaterThan(1e-8))
        likelihood.noise_covar.register_prior(
            "noise_sd_prior",
            noise_sd_prior(noise.prior),
            lambda m: m.noise.sqrt(),
            lambda m, v: m._set_noise(v**2),
        )
        likelihood.noise = 0.1 * y_sd**2
    else:
        likelihood = gpytorch.likelihoods.GaussianLikelihood(noise_constraint=GreaterThan(1e-9))
        likelihood.noise = _NOISELESS_VARIANCE
        likelihood.raw_noise.requires_grad_(False)

    origin = min(t.region[0] for t in config.seasonal_terms)
    upper = max(t.region[1] for t in config.seasonal_terms) - origin
    k = max(t.k for t in config.seasonal_terms)

    inducing_points = None
    if k < len(y_train):
        inducing_points = initialize_inducing_points((0.0, upper), k, dtype=torch.float64)

    model = SeasonalGPModel(X_train, y_train, likelihood, kernels, inducing_points)
    model.mean_module.intercept.data.fill_(float(y_train.mean()))
    model = model.double()
    likelihood = likelihood.double()

    return model, likelihood


def train_gp_model(
    model: SeasonalGPModel,
    likelihood: gpytorch.likelihoods.GaussianLikelihood,
    X_train: torch.Tensor,
    y_train: torch.Tensor,
    n_iter: int = 300,
    learning_rate: float = 0.05,
    cholesky_jitter: float = 1e-6,
    verbose: bool = False,
) -> list[float]:
    """
    Fit hyperparameters by Adam on the negative log posterior.

    Args:
        model: SeasonalGPModel instance (holds X_train, y_train as train data)
        likelihood: Gaussian likelihood
        X_train: Training inputs of shape (n, 1)
        y_train: Training outputs of shape (n,)
        n_iter: Optimisation steps
        learning_rate: Adam learning rate
        cholesky_jitter: Jitter added to diagonals for numerical stability
        verbose: Log progress at INFO level every 50 steps (DEBUG otherwise)

    Returns:
        Loss per step (negative MLL plus negative log prior, per observation)

    Raises:
        FloatingPointError: If the loss becomes NaN or Inf
    """
    model.train()
    likelihood.train()

    params = [p for p in model.parameters() if p.requires_grad]
    optimizer = torch.optim.Adam(params, lr=learning_rate)
    mll = ExactMarginalLogLikelihood(likelihood, model)

    log = logger.info if verbose else logger.debug
    losses = []

    with gpytorch.settings.cholesky_jitter(cholesky_jitter, cholesky_jitter):
        for step in range(n_iter):
            optimizer.zero_grad()
            output = model(X_train)
            loss = -mll(output, y_train)
            if not torch.isfinite(loss):
                raise FloatingPointError(f"non-finite loss at step {step}: {loss.item()}")
            loss.backward()
            optimizer.step()
            losses.append(loss.item())

            if (step + 1) % 50 == 0 or step == 0:
                log(f"Step {step + 1:4d}/{n_iter} | Loss: {losses[-1]:10.4f}")

    model.eval()
    likelihood.eval()
    return losses


def predict_latent(
    model: SeasonalGPModel,
    X: torch.Tensor,
    quantiles: tuple[float, ...],
    include_intercept: bool = True,
    n_samples: int = 0,
    cholesky_jitter: float = 1e-6,
) -> dict[str, np.ndarray]:
    """
    Posterior summaries of the latent function at ``X``.

    Args:
        model: Fitted SeasonalGPModel (eval mode)
        X: Covariate offsets, shape (m, 1)
        quantiles: Quantile levels in (0, 1)
        include_intercept: Include the constant term b0 in the summaries
        n_samples: If > 0, also return posterior draws of shape (n_samples, m)
        cholesky_jitter: Jitter for the predictive covariance factorisation

    Returns:
        Dict with "mean", "sd", one array per quantile under "q<level>"
        and "samples" when requested
    """
    model.eval()
    with torch.no_grad(), gpytorch.settings.cholesky_jitter(cholesky_jitter, cholesky_jitter):
        posterior = model(X)
        mean = posterior.mean
        variance = posterior.variance.clamp(min=0)
        shift = 0.0 if include_intercept else float(model.mean_module.intercept.item())

        mean_np = mean.cpu().numpy() - shift
        sd_np = np.sqrt(variance.cpu().numpy())
        result = {"mean": mean_np, "sd": sd_np}
        for q in quantiles:
            result[f"q{q}"] = mean_np + norm.ppf(q) * sd_np

        if n_samples > 0:
            draws = posterior.sample(torch.Size([n_samples]))
            result["samples"] = draws.cpu().numpy() - shift

    return result


def offset_covariate(x: np.ndarray, origin: float) -> torch.Tensor:
    """Covariate offsets from ``origin`` as a float64 (n, 1) tensor."""
    return torch.as_tensor(np.asarray(x, dtype=np.float64) - origin, dtype=torch.float64).reshape(
        -1, 1
    )


def sd_summary(model: SeasonalGPModel) -> dict[str, float]:
    """Fitted standard deviations: one per seasonal kernel and the noise sd."""
    summary = {}
    base = model.base_covar_module
    kernels = base.kernels if hasattr(base, "kernels") else [base]
    for i, kernel in enumerate(kernels):
        summary[f"sgp_sd_{i}"] = float(kernel.sd.item())
    summary["noise_sd"] = float(math.sqrt(model.likelihood.noise.item()))
    return summary
