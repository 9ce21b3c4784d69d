"""
Prior elicitation for seasonal GP standard deviations.

Both priors are exponential on a standard deviation (a Gamma(1, rate) prior
in GPyTorch terms):

- PC prior, P(sd > u) = alpha:          rate = -log(alpha) / u
- PSD prior, P(PSD(h) > u) = alpha:     rate = -log(alpha) * c(h) / u

where c(h) is the unit-sigma predictive standard deviation of the sGP at lead
time h. The PSD prior lets the threshold ``u`` be stated on the scale of the
data (how far the seasonal component may move within h units) instead of on
the abstract sigma.
"""

import math

from gpytorch.priors import GammaPrior

from sgpbench.config import PCPrior, SeasonalTerm

from .kernels import seasonal_sd_at


def pc_prior_rate(u: float, alpha: float) -> float:
    """Rate of the exponential prior with P(sd > u) = alpha."""
    if u <= 0:
        raise ValueError(f"u must be > 0, got {u}")
    if not 0 < alpha < 1:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")
    return -math.log(alpha) / u


def psd_prior_rate(u: float, alpha: float, h: float, frequency: float) -> float:
    """Rate of the exponential prior on sigma with P(sigma * c(h) > u) = alpha."""
    return pc_prior_rate(u, alpha) * seasonal_sd_at(h, frequency)


def seasonal_sd_prior(term: SeasonalTerm, harmonic: int = 1) -> GammaPrior:
    """
    Exponential prior on sigma for one harmonic of a seasonal term.

    Args:
        term: Seasonal term carrying the PSD prior
        harmonic: Harmonic index j (frequency j * a)

    Returns:
        GammaPrior(1, rate)
    """
    rate = psd_prior_rate(
        term.prior.u, term.prior.alpha, term.lead_time, harmonic * term.frequency
    )
    return GammaPrior(1.0, rate)


def noise_sd_prior(prior: PCPrior) -> GammaPrior:
    """Exponential prior on the iid noise standard deviation."""
    return GammaPrior(1.0, pc_prior_rate(prior.u, prior.alpha))
