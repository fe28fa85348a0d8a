#!/usr/bin/env python3
"""
Tests for the guarded random draws.

A bad variance reaching a draw means an upstream invariant broke, so each
draw must stop with NumericalError rather than return NaN.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from national_dlm.distributions import draw_inverse_gamma, draw_normal
from national_dlm.errors import NumericalError


@pytest.mark.parametrize("shape, scale", [
    (0.0, 1.0),
    (1.0, 0.0),
    (-1.0, 1.0),
    (1.0, -2.0),
    (np.nan, 1.0),
    (1.0, np.nan),
    (np.inf, 1.0),
])
def test_inverse_gamma_rejects_bad_parameters(shape, scale):
    with pytest.raises(NumericalError):
        draw_inverse_gamma(np.random.default_rng(0), shape, scale)


def test_inverse_gamma_draw_is_positive():
    rng = np.random.default_rng(1)

    draws = [draw_inverse_gamma(rng, 3.0, 50.0) for _ in range(200)]

    assert all(d > 0 for d in draws)
    # InverseGamma(3, 50) has mean 25
    assert 15 < np.mean(draws) < 35


@pytest.mark.parametrize("loc, scale", [
    (0.0, 0.0),
    (0.0, -1.0),
    (0.0, np.nan),
    (np.array([0.0, 1.0]), np.array([1.0, 0.0])),
    (np.nan, 1.0),
    (np.inf, 1.0),
    (np.array([0.0, np.nan]), 1.0),
])
def test_normal_rejects_bad_parameters(loc, scale):
    with pytest.raises(NumericalError):
        draw_normal(np.random.default_rng(0), loc, scale)


def test_normal_draw_is_vectorized():
    draws = draw_normal(np.random.default_rng(2), np.zeros(4), np.array([1.0, 2.0, 3.0, 4.0]))

    assert draws.shape == (4,)
    assert np.all(np.isfinite(draws))
