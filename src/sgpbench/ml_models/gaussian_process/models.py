"""
Seasonal GP regression model.

The latent function is

    f(x) = b0 + sum_j [c_j cos(a_j x) + s_j sin(a_j x)] + sum_j g_j(x)

where each g_j is a seasonal GP at harmonic frequency a_j (see
``kernels.SeasonalKernel``) and the harmonic fixed effects span the boundary
conditions the sGP leaves free. With ``k`` smaller than the number of
observations the covariance is approximated through ``k`` inducing points
evenly spaced over the model's support (sparse GP regression).
"""

import gpytorch
import torch
from gpytorch.distributions import MultivariateNormal
from gpytorch.kernels import InducingPointKernel
from gpytorch.models import ExactGP

from .kernels import SeasonalKernel


class HarmonicMean(gpytorch.means.Mean):
    """
    Intercept plus cos/sin fixed effects at the given frequencies.

    Args:
        frequencies: Angular frequencies a_j

    Attributes:
        intercept: Constant term b0, shape (1,)
        coefficients: Harmonic coefficients [c_1, s_1, c_2, s_2, ...]
    """

    def __init__(self, frequencies: list[float]):
        super().__init__()
        self.frequencies = [float(f) for f in frequencies]
        self.register_parameter("intercept", torch.nn.Parameter(torch.zeros(1)))
        self.register_parameter(
            "coefficients", torch.nn.Parameter(torch.zeros(2 * len(self.frequencies)))
        )

    def features(self, x: torch.Tensor) -> torch.Tensor:
        t = x[..., 0]
        columns = []
        for a in self.frequencies:
            columns.append(torch.cos(a * t))
            columns.append(torch.sin(a * t))
        return torch.stack(columns, dim=-1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.intercept + self.features(x) @ self.coefficients


class SeasonalGPModel(ExactGP):
    """
    Exact (or inducing-point sparse) GP with additive seasonal kernels.

    Example:
        ```python
        kernels = [SeasonalKernel(frequency=2 * math.pi / 10)]
        likelihood = gpytorch.likelihoods.GaussianLikelihood()
        inducing = initialize_inducing_points((0.0, 120.0), num_inducing=30)
        model = SeasonalGPModel(X_train, y_train, likelihood, kernels, inducing)
        ```

    Args:
        train_x: Covariate offsets from the support start, shape (n, 1)
        train_y: Responses, shape (n,)
        likelihood: Gaussian likelihood (carries the iid noise term)
        kernels: One SeasonalKernel per (term, harmonic)
        inducing_points: Optional inducing locations, shape (k, 1). If None the
            exact covariance is used.

    Attributes:
        mean_module: HarmonicMean over all kernel frequencies
        base_covar_module: Sum of seasonal kernels
        covar_module: base_covar_module, wrapped in InducingPointKernel when sparse
    """

    def __init__(
        self,
        train_x: torch.Tensor,
        train_y: torch.Tensor,
        likelihood: gpytorch.likelihoods.GaussianLikelihood,
        kernels: list[SeasonalKernel],
        inducing_points: torch.Tensor | None = None,
    ):
        super().__init__(train_x, train_y, likelihood)
        if not kernels:
            raise ValueError("at least one SeasonalKernel is required")

        self.mean_module = HarmonicMean(sorted({k.frequency for k in kernels}))

        base = kernels[0]
        for kernel in kernels[1:]:
            base = base + kernel
        if inducing_points is not None:
            self.covar_module = InducingPointKernel(
                base, inducing_points=inducing_points, likelihood=likelihood
            )
            # Inducing points stay on their grid, they play the role of basis knots
            self.covar_module.inducing_points.requires_grad_(False)
        else:
            self.covar_module = base

    def forward(self, x: torch.Tensor) -> MultivariateNormal:
        mean_x = self.mean_module(x)
        covar_x = self.covar_module(x)
        return MultivariateNormal(mean_x, covar_x)

    @property
    def is_sparse(self) -> bool:
        return isinstance(self.covar_module, InducingPointKernel)

    @property
    def base_covar_module(self) -> gpytorch.kernels.Kernel:
        """Sum of seasonal kernels, without the inducing-point approximation."""
        if self.is_sparse:
            return self.covar_module.base_kernel
        return self.covar_module


def initialize_inducing_points(
    region: tuple[float, float], num_inducing: int, dtype: torch.dtype = torch.float64
) -> torch.Tensor:
    """
    Evenly spaced inducing points over ``region``.

    The lower boundary itself is skipped: the sGP variance vanishes there,
    which would make the inducing covariance singular.

    Args:
        region: (lower, upper) in covariate-offset units
        num_inducing: Number of inducing points (k)
        dtype: Tensor dtype

    Returns:
        Inducing points tensor of shape (k, 1)
    """
    lower, upper = region
    if num_inducing < 2:
        raise ValueError(f"num_inducing must be >= 2, got {num_inducing}")
    if not lower < upper:
        raise ValueError(f"region must satisfy lower < upper, got {region}")
    return torch.linspace(lower, upper, num_inducing + 1, dtype=dtype)[1:].reshape(-1, 1)
