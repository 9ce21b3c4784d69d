"""Shared fixtures and configuration for tests."""

import os

# MUST set MPLBACKEND before any matplotlib imports
os.environ["MPLBACKEND"] = "Agg"

import numpy as np
import pytest
import torch

from sgpbench.config import NoiseTerm, PSDPrior, SeasonalGPConfig, SeasonalTerm
from sgpbench.data import load_lynx, simulate_seasonal_gp
from sgpbench.timeseries import TimeSeries, split

# Test configuration
pytest.TEST_SEED = 42


@pytest.fixture(autouse=True)
def set_random_seed():
    """Automatically set random seed for reproducible tests."""
    np.random.seed(pytest.TEST_SEED)
    torch.manual_seed(pytest.TEST_SEED)
    yield
    # Reset after test
    np.random.seed(None)
    torch.manual_seed(torch.seed())


# Data Fixtures


@pytest.fixture
def lynx():
    """Natural-scale Lynx series (114 annual counts, 1821-1934)."""
    return load_lynx()


@pytest.fixture
def lynx_split(lynx):
    """Log-scale Lynx split: 80 training years, 34 test years."""
    return split(lynx.log(), 80)


@pytest.fixture
def simulated():
    """Synthetic quasi-periodic series from the sGP prior (natural scale)."""
    return simulate_seasonal_gp(
        n=120, period=10.0, sigma=0.3, noise_sd=0.1, x_max=119.0, random_seed=pytest.TEST_SEED
    )


@pytest.fixture
def simulated_split(simulated):
    """Synthetic series split 100/20."""
    return split(simulated, 100)


@pytest.fixture
def ar2_series():
    """Regular AR(2) series with a ten-step quasi-cycle plus noise."""
    rng = np.random.default_rng(pytest.TEST_SEED)
    n = 120
    x = np.zeros(n)
    for t in range(2, n):
        x[t] = 1.3 * x[t - 1] - 0.7 * x[t - 2] + rng.normal(0, 0.5)
    y = 5.0 + x + rng.normal(0, 0.2, n)
    return TimeSeries(np.arange(n, dtype=float), y, name="ar2")


# Model Fixtures


@pytest.fixture
def fast_sgp_config():
    """Small seasonal GP configuration that trains in well under a second."""
    return SeasonalGPConfig(
        terms=[
            SeasonalTerm(period=10, k=20, region=(0, 120), prior=PSDPrior(u=1.0, alpha=0.01)),
            NoiseTerm(),
        ],
        n_iter=40,
        learning_rate=0.05,
    )


@pytest.fixture
def lynx_sgp_config():
    """Seasonal GP for the Lynx tutorial: ten-year cycle over 1821-1934."""
    return SeasonalGPConfig(
        terms=[
            SeasonalTerm(
                period=10, k=30, region=(1821, 1934), prior=PSDPrior(u=1.0, alpha=0.01)
            ),
            NoiseTerm(),
        ],
        n_iter=60,
    )


# Markers for Test Categories


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
