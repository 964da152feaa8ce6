"""
Shared test fixtures and pytest configuration.
"""

import pytest
import numpy as np

from localvol.local_volatility import DupireLocalVolatilityCalculator
from localvol.synthetic import reference_surfaces


FD_EPS = 1.0e-5
SPOT = 1.40


@pytest.fixture(autouse=True)
def set_random_seed():
    """Ensure test reproducibility."""
    np.random.seed(42)
    yield


@pytest.fixture
def vol_surface():
    """3 strikes x 4 expiries of implied vols, natural spline both ways."""
    return reference_surfaces()[0]


@pytest.fixture
def price_surface():
    """Present-value call prices on the same nodes."""
    return reference_surfaces()[1]


@pytest.fixture
def calc():
    return DupireLocalVolatilityCalculator(fd_eps=FD_EPS)
