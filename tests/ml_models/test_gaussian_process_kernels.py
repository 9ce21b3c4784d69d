"""
Tests for the seasonal GP kernel.

Validates SeasonalKernel behavior including:
- Closed-form covariance against a direct numerical evaluation
- Diagonal consistency with the full matrix
- Positive semi-definite (PSD) property
- Zero variance at the start of the support
- Standard deviation parameter and prior registration
"""

import math

import numpy as np
import pytest
import torch
from gpytorch.priors import GammaPrior
from scipy.integrate import quad

from sgpbench.data import seasonal_covariance
from sgpbench.ml_models.gaussian_process.kernels import (
    SeasonalKernel,
    seasonal_sd_at,
    seasonal_variance,
)

FREQUENCY = 2 * math.pi / 10


def _numerical_covariance(x1: float, x2: float, a: float) -> float:
    """Covariance as the integral of the Green's function product sin(a(x-t))/a."""
    value, _ = quad(lambda t: np.sin(a * (x1 - t)) * np.sin(a * (x2 - t)) / a**2, 0, min(x1, x2))
    return value


class TestSeasonalVariance:
    """Test the unit-sigma variance helpers."""

    def test_variance_zero_at_origin(self):
        """Test the process starts with zero variance."""
        assert seasonal_variance(torch.tensor([0.0]), FREQUENCY).item() == pytest.approx(0.0)

    def test_variance_grows(self):
        """Test variance grows with distance from the origin over whole periods."""
        x = torch.tensor([10.0, 20.0, 40.0], dtype=torch.float64)
        v = seasonal_variance(x, FREQUENCY)
        assert torch.all(v[1:] > v[:-1])

    def test_sd_at_matches_variance(self):
        """Test seasonal_sd_at is the square root of the variance."""
        h = 7.5
        expected = math.sqrt(seasonal_variance(torch.tensor([h], dtype=torch.float64), FREQUENCY))
        assert seasonal_sd_at(h, FREQUENCY) == pytest.approx(expected)


class TestSeasonalKernel:
    """Test suite for SeasonalKernel."""

    def test_invalid_frequency(self):
        """Test frequency must be positive."""
        with pytest.raises(ValueError, match="frequency must be > 0"):
            SeasonalKernel(frequency=0.0)

    def test_sd_setter(self):
        """Test sd can be set and read back."""
        kernel = SeasonalKernel(frequency=FREQUENCY)
        kernel.sd = 2.5
        assert kernel.sd.item() == pytest.approx(2.5, rel=1e-5)

    @pytest.mark.parametrize("x1, x2", [(3.0, 3.0), (4.0, 9.0), (12.5, 6.0)])
    def test_matches_numerical_integral(self, x1, x2):
        """Test the closed form against numerical integration of the SDE solution."""
        kernel = SeasonalKernel(frequency=FREQUENCY).double()
        kernel.sd = 1.0
        K = kernel(
            torch.tensor([[x1]], dtype=torch.float64), torch.tensor([[x2]], dtype=torch.float64)
        ).to_dense()
        assert K.item() == pytest.approx(_numerical_covariance(x1, x2, FREQUENCY), rel=1e-3)

    def test_matches_numpy_covariance(self):
        """Test the torch kernel and the numpy simulator covariance agree."""
        x = np.linspace(0.5, 30, 12)
        kernel = SeasonalKernel(frequency=FREQUENCY).double()
        kernel.sd = 0.7
        K = kernel(torch.as_tensor(x).reshape(-1, 1)).to_dense().detach().numpy()
        np.testing.assert_allclose(K, seasonal_covariance(x, x, FREQUENCY, 0.7), rtol=1e-6)

    def test_diag_matches_full(self):
        """Test diag=True returns the diagonal of the full matrix."""
        kernel = SeasonalKernel(frequency=FREQUENCY).double()
        x = torch.linspace(0.5, 25, 15, dtype=torch.float64).reshape(-1, 1)
        full = kernel(x, x).to_dense().detach()
        diag = kernel(x, x, diag=True).detach()
        torch.testing.assert_close(diag, torch.diagonal(full))

    def test_symmetric_and_psd(self):
        """Test covariance matrices are symmetric and PSD."""
        kernel = SeasonalKernel(frequency=FREQUENCY).double()
        x = torch.linspace(0.5, 40, 30, dtype=torch.float64).reshape(-1, 1)
        K = kernel(x, x).to_dense().detach()
        torch.testing.assert_close(K, K.T)
        eigenvalues = torch.linalg.eigvalsh(K)
        assert torch.all(eigenvalues >= -1e-8), f"min eigenvalue: {eigenvalues.min()}"

    def test_negative_offsets_clamped(self):
        """Test inputs before the support start have zero covariance."""
        kernel = SeasonalKernel(frequency=FREQUENCY).double()
        x = torch.tensor([[-3.0], [5.0]], dtype=torch.float64)
        K = kernel(x, x).to_dense().detach()
        assert K[0, 0].item() == pytest.approx(0.0)
        assert K[0, 1].item() == pytest.approx(0.0)

    def test_prior_registered(self):
        """Test the sd prior contributes to the kernel's named priors."""
        kernel = SeasonalKernel(frequency=FREQUENCY, sd_prior=GammaPrior(1.0, 2.0))
        names = [name for name, *_ in kernel.named_priors()]
        assert "sd_prior" in names
