#!/usr/bin/env python3
"""
Validation tests for the seat probability gradients.

The analytic derivatives are compared with finite-difference gradients of
the probability functions themselves.
"""

import sys
from pathlib import Path

import numpy as np
import pytest
from scipy.optimize import approx_fprime

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from national_dlm.seat_probability import (
    expected_seats,
    prob_exceeding_seats,
    prob_exceeding_seats_gradient,
    seat_win_probability,
    seat_win_probability_gradient,
)

PARAMETER_SETS = [
    # (V, delta, sigma)
    (np.array([0.75, 0.45, 0.62]), np.array([0.03, 0.03, 0.03]), 1.0),
    (np.array([0.48, 0.51, 0.50, 0.47, 0.53]), np.array([0.01, -0.02, 0.0, 0.02, -0.01]), 0.5),
    (np.array([0.40, 0.55, 0.49]), np.array([0.0, 0.05, -0.03]), 0.25),
]


def test_seat_win_probability_derivative():
    """dG/du matches a finite difference on a single seat."""
    V, delta, sigma = 0.75, 0.03, 0.061

    numeric = approx_fprime(
        np.array([0.0]),
        lambda u: float(seat_win_probability(u[0], V, delta, sigma)),
    )
    analytic = seat_win_probability_gradient(0.0, V, delta, sigma)

    assert numeric[0] == pytest.approx(float(analytic), abs=1e-6)


@pytest.mark.parametrize("V, delta, sigma", PARAMETER_SETS)
def test_prob_exceeding_seats_gradient_matches_numeric(V, delta, sigma):
    """Analytic gradient of P(seats > k) matches finite differences."""
    u0 = np.zeros(len(V))

    numeric = approx_fprime(u0, lambda u: prob_exceeding_seats(u, V, delta, sigma))
    analytic = prob_exceeding_seats_gradient(u0, V, delta, sigma)

    np.testing.assert_allclose(analytic, numeric, atol=1e-6)


def test_gradient_at_shifted_allocation():
    V, delta, sigma = PARAMETER_SETS[1]
    u0 = np.array([0.01, -0.02, 0.0, 0.03, -0.01])

    numeric = approx_fprime(u0, lambda u: prob_exceeding_seats(u, V, delta, sigma, k=2))
    analytic = prob_exceeding_seats_gradient(u0, V, delta, sigma, k=2)

    np.testing.assert_allclose(analytic, numeric, atol=1e-6)


def test_probabilities_are_sensible():
    V, delta, sigma = PARAMETER_SETS[0]

    G = seat_win_probability(0.0, V, delta, sigma)
    assert np.all((G > 0) & (G < 1))
    assert expected_seats(0.0, V, delta, sigma) == pytest.approx(G.sum())

    p = prob_exceeding_seats(np.zeros(3), V, delta, sigma)
    assert 0 < p < 1
    # Moving every seat toward the opponent lowers the chance of a majority
    assert prob_exceeding_seats(np.full(3, 0.1), V, delta, sigma) < p
    assert np.all(prob_exceeding_seats_gradient(np.zeros(3), V, delta, sigma) < 0)
