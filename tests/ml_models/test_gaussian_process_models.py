"""
Tests for seasonal GP model components.

Validates:
- HarmonicMean features and forward pass
- SeasonalGPModel exact vs inducing-point covariance
- Inducing point placement
- PC / PSD prior rates
"""

import math

import gpytorch
import pytest
import torch

from sgpbench.config import PCPrior, PSDPrior, SeasonalTerm
from sgpbench.ml_models.gaussian_process import (
    HarmonicMean,
    SeasonalGPModel,
    SeasonalKernel,
    initialize_inducing_points,
    noise_sd_prior,
    pc_prior_rate,
    psd_prior_rate,
    seasonal_sd_at,
    seasonal_sd_prior,
)

FREQUENCY = 2 * math.pi / 10


@pytest.fixture
def training_data():
    X = torch.linspace(1, 60, 60, dtype=torch.float64).reshape(-1, 1)
    y = torch.sin(FREQUENCY * X.squeeze()) + 0.1 * torch.randn(60, dtype=torch.float64)
    return X, y


class TestHarmonicMean:
    """Test the intercept plus harmonic fixed effects mean."""

    def test_features_shape(self):
        """Test two columns (cos, sin) per frequency."""
        mean = HarmonicMean([FREQUENCY, 2 * FREQUENCY])
        x = torch.linspace(0, 10, 7).reshape(-1, 1)
        assert mean.features(x).shape == (7, 4)

    def test_forward_uses_coefficients(self):
        """Test forward equals intercept + c cos(ax) + s sin(ax)."""
        mean = HarmonicMean([FREQUENCY])
        mean.intercept.data.fill_(2.0)
        mean.coefficients.data = torch.tensor([0.5, -1.0])
        x = torch.tensor([[0.0], [2.5]])
        expected = 2.0 + 0.5 * torch.cos(FREQUENCY * x[:, 0]) - torch.sin(FREQUENCY * x[:, 0])
        torch.testing.assert_close(mean(x), expected)


class TestSeasonalGPModel:
    """Test SeasonalGPModel construction."""

    def test_requires_kernel(self, training_data):
        """Test at least one kernel is required."""
        X, y = training_data
        with pytest.raises(ValueError, match="at least one SeasonalKernel"):
            SeasonalGPModel(X, y, gpytorch.likelihoods.GaussianLikelihood(), [])

    def test_exact_model(self, training_data):
        """Test without inducing points the covariance is the kernel sum."""
        X, y = training_data
        kernels = [SeasonalKernel(FREQUENCY), SeasonalKernel(2 * FREQUENCY)]
        model = SeasonalGPModel(X, y, gpytorch.likelihoods.GaussianLikelihood(), kernels).double()
        assert not model.is_sparse
        assert model.base_covar_module is model.covar_module
        assert model.mean_module.frequencies == sorted([FREQUENCY, 2 * FREQUENCY])

    def test_sparse_model(self, training_data):
        """Test inducing points wrap the kernel sum and stay fixed."""
        X, y = training_data
        inducing = initialize_inducing_points((0.0, 60.0), 20)
        model = SeasonalGPModel(
            X, y, gpytorch.likelihoods.GaussianLikelihood(), [SeasonalKernel(FREQUENCY)], inducing
        ).double()
        assert model.is_sparse
        assert isinstance(model.base_covar_module, SeasonalKernel)
        assert not model.covar_module.inducing_points.requires_grad

    def test_prior_mode_output(self, training_data):
        """Test the model returns a MultivariateNormal over the inputs."""
        X, y = training_data
        model = SeasonalGPModel(
            X, y, gpytorch.likelihoods.GaussianLikelihood(), [SeasonalKernel(FREQUENCY)]
        ).double()
        model.train()
        output = model(X)
        assert output.mean.shape == (60,)


class TestInducingPoints:
    """Test inducing point placement."""

    def test_skips_lower_boundary(self):
        """Test k points evenly spaced over (lower, upper]."""
        points = initialize_inducing_points((0.0, 100.0), 4)
        assert points.shape == (4, 1)
        torch.testing.assert_close(
            points.squeeze(), torch.tensor([25.0, 50.0, 75.0, 100.0], dtype=torch.float64)
        )

    @pytest.mark.parametrize("region, k", [((0.0, 1.0), 1), ((1.0, 1.0), 5)])
    def test_invalid_arguments(self, region, k):
        """Test k >= 2 and lower < upper."""
        with pytest.raises(ValueError):
            initialize_inducing_points(region, k)


class TestPriors:
    """Test prior rate elicitation."""

    def test_pc_rate(self):
        """Test P(sd > u) = alpha under the exponential prior."""
        u, alpha = 1.5, 0.05
        rate = pc_prior_rate(u, alpha)
        assert math.exp(-rate * u) == pytest.approx(alpha)

    def test_psd_rate(self):
        """Test P(sigma * c(h) > u) = alpha under the exponential prior."""
        u, alpha, h = 1.0, 0.01, 10.0
        rate = psd_prior_rate(u, alpha, h, FREQUENCY)
        c = seasonal_sd_at(h, FREQUENCY)
        assert math.exp(-rate * u / c) == pytest.approx(alpha)

    @pytest.mark.parametrize("u, alpha", [(0.0, 0.5), (1.0, 1.0), (1.0, 0.0)])
    def test_invalid_rate_arguments(self, u, alpha):
        """Test u > 0 and 0 < alpha < 1."""
        with pytest.raises(ValueError):
            pc_prior_rate(u, alpha)

    def test_seasonal_sd_prior_per_harmonic(self):
        """Test higher harmonics use their own frequency in c(h)."""
        term = SeasonalTerm(period=10, m=2, region=(0, 100), prior=PSDPrior(u=1, alpha=0.01))
        first = seasonal_sd_prior(term, 1)
        second = seasonal_sd_prior(term, 2)
        assert first.rate.item() == pytest.approx(
            psd_prior_rate(1, 0.01, 10, FREQUENCY)
        )
        assert second.rate.item() == pytest.approx(psd_prior_rate(1, 0.01, 10, 2 * FREQUENCY))

    def test_noise_sd_prior(self):
        """Test the noise prior uses the PC rate."""
        prior = noise_sd_prior(PCPrior(u=1.0, alpha=0.5))
        assert prior.concentration.item() == pytest.approx(1.0)
        assert prior.rate.item() == pytest.approx(math.log(2))
