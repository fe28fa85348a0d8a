#!/usr/bin/env python3
"""
Forward filter / backward sampler for a random-walk DLM.

Model (one latent state, m observation series, unit loadings):

    theta_t = theta_{t-1} + w_t,          w_t ~ Normal(0, W)
    y_{t,j} = theta_t + v_{t,j},          v_{t,j} ~ Normal(0, V_{t,j})
    theta_0 ~ Normal(m0, C0)

V is diagonal and time-varying. Missing y_{t,j} are skipped through an
explicit observed mask, so a period with no polls only runs the prediction
step.

Because the loadings are all 1 and V is diagonal, the measurement update has
the closed precision form

    C_t = 1 / (1 / R_t + sum_j 1 / V_{t,j})
    m_t = C_t * (a_t / R_t + sum_j y_{t,j} / V_{t,j})

with a_t = m_{t-1} and R_t = C_{t-1} + W. The backward pass draws theta_T
from Normal(m_T, C_T) and then each earlier state from

    theta_t | theta_{t+1} ~ Normal(m_t + C_t / R_{t+1} (theta_{t+1} - a_{t+1}),
                                   C_t W / R_{t+1})
"""

from dataclasses import dataclass, replace

import numpy as np

from . import distributions
from .errors import InputError


@dataclass(frozen=True)
class RandomWalkDLM:
    """Parameter snapshot for one filter pass. Never mutated between iterations."""
    m0: float
    c0: float
    w: float
    obs_variance: np.ndarray  # (T, m), positive everywhere

    def with_innovation_variance(self, w: float) -> "RandomWalkDLM":
        return replace(self, w=w)


@dataclass
class FilteredStates:
    """Forward filter output. Index 0 of m and c is the prior at time 0."""
    m: np.ndarray  # (T+1,) filtered means
    c: np.ndarray  # (T+1,) filtered variances
    a: np.ndarray  # (T,) one-step-ahead means for times 1..T
    r: np.ndarray  # (T,) one-step-ahead variances for times 1..T
    w: float


def forward_filter(y: np.ndarray, model: RandomWalkDLM) -> FilteredStates:
    """
    Run the Kalman filter over a (T x m) observation matrix.

    Args:
        y: Observations, NaN where missing
        model: Parameter snapshot; obs_variance must match y's shape

    Returns:
        FilteredStates for times 0..T
    """
    y = np.asarray(y, dtype=float)
    if y.ndim != 2:
        raise InputError(f"Observation matrix must be 2-D, got shape {y.shape}")
    if model.obs_variance.shape != y.shape:
        raise InputError(
            f"Observation variance shape {model.obs_variance.shape} does not match observations {y.shape}"
        )

    observed = ~np.isnan(y)
    precision = np.where(observed, 1.0 / model.obs_variance, 0.0)
    weighted_obs = np.where(observed, y * precision, 0.0)

    n_time = y.shape[0]
    m = np.empty(n_time + 1)
    c = np.empty(n_time + 1)
    a = np.empty(n_time)
    r = np.empty(n_time)
    m[0] = model.m0
    c[0] = model.c0

    for t in range(n_time):
        # Prediction
        a[t] = m[t]
        r[t] = c[t] + model.w
        # Update with whatever was observed at t
        c[t + 1] = 1.0 / (1.0 / r[t] + precision[t].sum())
        m[t + 1] = c[t + 1] * (a[t] / r[t] + weighted_obs[t].sum())

    return FilteredStates(m=m, c=c, a=a, r=r, w=model.w)


def backward_sample(filtered: FilteredStates, rng: np.random.Generator) -> np.ndarray:
    """Draw one joint trajectory theta_0..theta_T given the filter output."""
    n_states = len(filtered.m)
    theta = np.empty(n_states)
    theta[-1] = distributions.draw_normal(rng, filtered.m[-1], np.sqrt(filtered.c[-1]))

    for t in range(n_states - 2, -1, -1):
        gain = filtered.c[t] / filtered.r[t]
        mean = filtered.m[t] + gain * (theta[t + 1] - filtered.a[t])
        variance = filtered.c[t] * filtered.w / filtered.r[t]
        theta[t] = distributions.draw_normal(rng, mean, np.sqrt(variance))

    return theta


def ffbs(y: np.ndarray, model: RandomWalkDLM, rng: np.random.Generator) -> np.ndarray:
    """Forward-filter backward-sample: one posterior draw of the full trajectory."""
    return backward_sample(forward_filter(y, model), rng)
