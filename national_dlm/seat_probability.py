#!/usr/bin/env python3
"""
Seat probability calculus for campaign resource allocation.

Each seat i is won when the opponent's share falls below one half:

    G_i(u) = P(win seat i) = Phi((1/2 - u_i - V_i - delta_i) / sigma)

where V_i is the opponent's expected share, delta_i a shift, sigma the
forecast error sd, and u_i the resource shift applied to seat i.

The number of seats won S is approximated as Normal(mu_S, s_S^2) with

    mu_S = sum_i G_i,    s_S^2 = sum_i G_i (1 - G_i)

and P(S > k) = 1 - Phi((k - mu_S) / s_S). The analytic gradients below are
what an allocator climbs.
"""

from typing import Optional

import numpy as np
from scipy import stats


def _win_z(u, V, delta, sigma) -> np.ndarray:
    return (0.5 - np.asarray(u, dtype=float) - np.asarray(V, dtype=float) - np.asarray(delta, dtype=float)) / sigma


def seat_win_probability(u, V, delta, sigma: float) -> np.ndarray:
    """Probability of winning each seat."""
    return stats.norm.cdf(_win_z(u, V, delta, sigma))


def seat_win_probability_gradient(u, V, delta, sigma: float) -> np.ndarray:
    """dG_i / du_i. Negative: shifting u toward the opponent lowers the win probability."""
    return -stats.norm.pdf(_win_z(u, V, delta, sigma)) / sigma


def expected_seats(u, V, delta, sigma: float) -> float:
    return float(np.sum(seat_win_probability(u, V, delta, sigma)))


def _seat_count_moments(G: np.ndarray) -> tuple[float, float]:
    return float(np.sum(G)), float(np.sqrt(np.sum(G * (1 - G))))


def prob_exceeding_seats(u, V, delta, sigma: float, k: Optional[float] = None) -> float:
    """
    Probability of winning more than k seats under the normal approximation.

    Args:
        u: Resource shift per seat
        V: Opponent expected share per seat
        delta: Shift per seat
        sigma: Forecast error sd
        k: Seat threshold, defaults to a majority (n + 1) / 2
    """
    G = np.atleast_1d(seat_win_probability(u, V, delta, sigma))
    if k is None:
        k = (len(G) + 1) / 2
    mu_s, sd_s = _seat_count_moments(G)
    return float(1 - stats.norm.cdf((k - mu_s) / sd_s))


def prob_exceeding_seats_gradient(u, V, delta, sigma: float, k: Optional[float] = None) -> np.ndarray:
    """
    Gradient of prob_exceeding_seats with respect to u.

    With x = (k - mu_S) / s_S and g_i = phi(z_i) / sigma:

        dP/du_i = -phi(x) * (g_i / s_S + x (1 - 2 G_i) g_i / (2 s_S^2))
    """
    G = np.atleast_1d(seat_win_probability(u, V, delta, sigma))
    g = -np.atleast_1d(seat_win_probability_gradient(u, V, delta, sigma))
    if k is None:
        k = (len(G) + 1) / 2
    mu_s, sd_s = _seat_count_moments(G)
    x = (k - mu_s) / sd_s

    mean_term = g / sd_s
    spread_term = x * (1 - 2 * G) * g / (2 * sd_s ** 2)
    return -stats.norm.pdf(x) * (mean_term + spread_term)
