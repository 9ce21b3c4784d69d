"""
Seasonal Gaussian process kernel.

The seasonal GP (sGP) with frequency ``a`` is the solution of the stochastic
differential equation

    g''(x) + a^2 g(x) = sigma * W(x),    g(0) = g'(0) = 0

driven by Gaussian white noise W. Its covariance has the closed form
(with s = min(x1, x2)):

    C(x1, x2) = sigma^2 / (2 a^2) * [ s cos(a (x1 - x2))
                 - (sin(a (x1 + x2)) - sin(a (x1 + x2 - 2 s))) / (2 a) ]

The process is quasi-periodic: it oscillates at period 2*pi/a with an
amplitude that is free to drift, and its variance grows with distance from
the start of its support. The boundary functions cos(a x) and sin(a x) are
left to the mean function (see ``models.HarmonicMean``).

References:
- Zhang, Stringer, Brown & Stafford (2024), "Efficient modeling of
  quasi-periodic data with seasonal Gaussian process"
"""

import math

import gpytorch
import torch
from gpytorch.constraints import Positive


def seasonal_variance(x: torch.Tensor, frequency: float) -> torch.Tensor:
    """Unit-sigma variance C(x, x) of the sGP at covariate ``x >= 0``."""
    a = frequency
    return (x - torch.sin(2 * a * x) / (2 * a)) / (2 * a**2)


def seasonal_sd_at(h: float, frequency: float) -> float:
    """Unit-sigma predictive standard deviation of the sGP at lead time ``h``."""
    a = frequency
    return math.sqrt((h - math.sin(2 * a * h) / (2 * a)) / (2 * a**2))


class SeasonalKernel(gpytorch.kernels.Kernel):
    """
    Exact covariance of a single-frequency seasonal GP.

    Inputs are covariate offsets from the start of the support; negative
    offsets are clamped to zero (the process is identically zero there).

    Args:
        frequency: Angular frequency a (2*pi/period for the first harmonic)
        sd_prior: Optional prior on the standard deviation sigma
        sd_constraint: Constraint on sigma (default: Positive)

    Attributes:
        sd: Standard deviation sigma of the driving noise
    """

    is_stationary = False

    def __init__(
        self,
        frequency: float,
        sd_prior: gpytorch.priors.Prior | None = None,
        sd_constraint: gpytorch.constraints.Interval | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if frequency <= 0:
            raise ValueError(f"frequency must be > 0, got {frequency}")
        self.frequency = float(frequency)

        self.register_parameter(name="raw_sd", parameter=torch.nn.Parameter(torch.zeros(1)))
        if sd_constraint is None:
            sd_constraint = Positive()
        self.register_constraint("raw_sd", sd_constraint)

        if sd_prior is not None:
            self.register_prior("sd_prior", sd_prior, lambda m: m.sd, lambda m, v: m._set_sd(v))

    @property
    def sd(self) -> torch.Tensor:
        return self.raw_sd_constraint.transform(self.raw_sd)

    @sd.setter
    def sd(self, value: float | torch.Tensor) -> None:
        self._set_sd(value)

    def _set_sd(self, value: float | torch.Tensor) -> None:
        if not torch.is_tensor(value):
            value = torch.as_tensor(value).to(self.raw_sd)
        self.initialize(raw_sd=self.raw_sd_constraint.inverse_transform(value))

    def forward(
        self, x1: torch.Tensor, x2: torch.Tensor, diag: bool = False, **params
    ) -> torch.Tensor:
        a = self.frequency
        t1 = x1[..., 0].clamp(min=0)
        t2 = x2[..., 0].clamp(min=0)

        if diag:
            return self.sd.pow(2) * seasonal_variance(t1, a)

        t1 = t1.unsqueeze(-1)
        t2 = t2.unsqueeze(-2)
        s = torch.minimum(t1, t2)
        total = t1 + t2
        cov = s * torch.cos(a * (t1 - t2)) - (
            torch.sin(a * total) - torch.sin(a * (total - 2 * s))
        ) / (2 * a)
        return self.sd.pow(2) * cov / (2 * a**2)
