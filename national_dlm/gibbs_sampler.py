#!/usr/bin/env python3
"""
Gibbs Sampler for the national polling DLM.

Tracks latent national opinion from a ragged panel of polls while
estimating how fast opinion moves and each pollster's house effect.

Model structure (percentage scale):
- theta_t: latent national vote share, a random walk with variance psi
- lambda_j: house effect of pollster j
- Each poll cell: Y[t, j] ~ Normal(theta_t + lambda_j, V[t, j])

An external regression-based estimate of the election-day result enters as
one extra pseudo-poll in an extra final period, with its house effect fixed
at 0 before centering.

Each iteration:
1. theta | psi, lambda   forward-filter backward-sample on Y - lambda
2. psi | theta           InverseGamma(alpha + T/2, beta + sum(diff(theta)^2)/2)
3. lambda | theta        conjugate Normal per pollster
4. Center lambda (pseudo-poll entry included) so theta carries the level

Steps 2 and 3 both condition on the same theta draw.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import arviz as az
import numpy as np
import pandas as pd

from . import distributions
from .config import PERCENT_SCALE, DLMHyperparameters, SamplerConfig, validate_sampler_inputs
from .errors import InputError
from .poll_panel import PollPanel, build_poll_panel
from .state_space import RandomWalkDLM, ffbs

logger = logging.getLogger(__name__)

# Fills missing entries of the filter's variance matrix. Those cells are
# masked out of the likelihood, so the value is never used as a variance.
MISSING_VARIANCE_PLACEHOLDER = 1.0


@dataclass
class GibbsPosterior:
    """Posterior draws on the proportion scale (0-1)."""
    theta: np.ndarray  # (T+1, n_iterations), rows theta{T} .. theta0
    psi: np.ndarray  # (n_iterations,)
    lam: np.ndarray  # (n_iterations, n_pollsters)
    theta_labels: list[str]
    pollsters: list

    @property
    def n_iterations(self) -> int:
        return len(self.psi)

    def theta_frame(self) -> pd.DataFrame:
        """Trajectory draws with one row per state, labelled by periods to election."""
        return pd.DataFrame(self.theta, index=self.theta_labels)

    def lambda_frame(self) -> pd.DataFrame:
        """House effect draws with one column per pollster."""
        return pd.DataFrame(self.lam, columns=self.pollsters)

    def election_day_draws(self) -> np.ndarray:
        """Draws of the final state (theta0, election day)."""
        return self.theta[-1]

    def to_inference_data(self) -> az.InferenceData:
        """Wrap the draws as a single-chain arviz InferenceData."""
        return az.from_dict(
            posterior={
                "theta": self.theta.T[np.newaxis],
                "psi": self.psi[np.newaxis],
                "house_effect": self.lam[np.newaxis],
            },
            coords={
                "state": self.theta_labels,
                "pollster": [str(p) for p in self.pollsters],
            },
            dims={"theta": ["state"], "house_effect": ["pollster"]},
        )

    def summary(self, hdi_prob: float = 0.9) -> pd.DataFrame:
        """Posterior mean, sd and HDI for every parameter."""
        return az.summary(self.to_inference_data(), kind="stats", hdi_prob=hdi_prob)


def append_final_prior(
    panel: PollPanel,
    final_prior_mean: float,
    final_prior_sd: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Add the election-day pseudo-poll to the panel matrices.

    One row (election day) and one column (pseudo-poll) are appended. The
    new column is missing everywhere except the new row, which holds the
    prior mean and variance on the percentage scale.

    Returns:
        (y, v) arrays of shape (n_periods + 1, n_pollsters + 1)
    """
    n_periods, n_pollsters = panel.n_periods, panel.n_pollsters

    y = np.full((n_periods + 1, n_pollsters + 1), np.nan)
    v = np.full((n_periods + 1, n_pollsters + 1), np.nan)
    y[:-1, :-1] = panel.y.to_numpy(dtype=float)
    v[:-1, :-1] = panel.v.to_numpy(dtype=float)
    y[-1, -1] = PERCENT_SCALE * final_prior_mean
    v[-1, -1] = (PERCENT_SCALE * final_prior_sd) ** 2

    return y, v


def observation_variance(v: np.ndarray, observed: np.ndarray, floor: float) -> np.ndarray:
    """max(V, floor) where observed, the placeholder elsewhere."""
    return np.where(observed, np.maximum(v, floor), MISSING_VARIANCE_PLACEHOLDER)


def draw_house_effects(
    y: np.ndarray,
    theta: np.ndarray,
    precision: np.ndarray,
    bias_prior_sd: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw pollster house effects given a trajectory, then center them.

    Args:
        y: (T x m) observations, last column is the pseudo-poll
        theta: (T+1,) trajectory draw including theta at time 0
        precision: (T x m) observation precision, 0 where missing
        bias_prior_sd: Prior sd of each house effect
        rng: Random generator

    Returns:
        (m,) centered house effects; the pseudo-poll entry is fixed at 0
        before centering
    """
    pollster_precision = precision[:, :-1]
    observed = pollster_precision > 0

    posterior_variance = 1.0 / (pollster_precision.sum(axis=0) + 1.0 / bias_prior_sd ** 2)
    residuals = np.where(observed, (y[:, :-1] - theta[1:, np.newaxis]) * pollster_precision, 0.0)
    posterior_mean = posterior_variance * residuals.sum(axis=0)

    draws = distributions.draw_normal(rng, posterior_mean, np.sqrt(posterior_variance))
    lam = np.append(draws, 0.0)
    return lam - lam.mean()


def gibbs_sample(
    panel: PollPanel,
    iteration_count: int,
    final_prior_mean: float,
    final_prior_sd: float,
    hyperparameters: Optional[DLMHyperparameters] = None,
    rng: Optional[np.random.Generator] = None,
    random_seed: Optional[int] = None,
    progress_every: Optional[int] = None,
) -> GibbsPosterior:
    """
    Run the FFBS-augmented Gibbs sampler.

    Args:
        panel: Poll panel from build_poll_panel
        iteration_count: Number of Gibbs iterations (no burn-in is discarded)
        final_prior_mean: Election-day prior mean, proportion scale
        final_prior_sd: Election-day prior sd, proportion scale
        hyperparameters: Model priors (defaults to DLMHyperparameters())
        rng: Random generator; built from random_seed when omitted
        random_seed: Seed used when rng is not given
        progress_every: Log progress every N iterations

    Returns:
        GibbsPosterior on the proportion scale

    Raises:
        InputError: invalid arguments or a panel without pollsters
        NumericalError: a draw received a non-positive variance
    """
    validate_sampler_inputs(iteration_count, final_prior_mean, final_prior_sd)
    if panel.n_pollsters == 0:
        raise InputError("Poll panel has no pollster columns")
    hyper = hyperparameters if hyperparameters is not None else DLMHyperparameters()
    if rng is None:
        rng = np.random.default_rng(random_seed)
    iteration_count = int(iteration_count)

    y, v = append_final_prior(panel, final_prior_mean, final_prior_sd)
    observed = ~np.isnan(y)
    obs_variance = observation_variance(v, observed, hyper.obs_variance_floor)
    precision = np.where(observed, 1.0 / obs_variance, 0.0)

    n_time, n_cols = y.shape
    n_pollsters = n_cols - 1

    # Innovation variance prior
    alpha = hyper.psi_prior_shape
    beta = hyper.psi_prior_scale
    sd_mean, sd_variance = hyper.psi_prior_moments()

    logger.info(f"Gibbs sampler: {n_time} periods (incl. election day), {n_pollsters} pollsters, "
                f"{iteration_count} iterations")
    logger.info(f"  psi prior: InvGamma({alpha:.2f}, {beta:.2f}), "
                f"implied sd mean {sd_mean:.2f}, variance {sd_variance:.2f}")

    # Starting values
    psi = distributions.draw_inverse_gamma(rng, alpha, beta)
    model = RandomWalkDLM(
        m0=hyper.state_mean,
        c0=hyper.state_variance,
        w=psi,
        obs_variance=obs_variance,
    )
    lam = np.append(distributions.draw_normal(rng, np.zeros(n_pollsters), hyper.bias_prior_sd), 0.0)

    theta_draws = np.empty((n_time + 1, iteration_count))
    psi_draws = np.empty(iteration_count)
    lam_draws = np.empty((iteration_count, n_pollsters))

    start = time.perf_counter()
    for i in range(iteration_count):
        # FFBS
        y_adj = y - lam
        theta = ffbs(y_adj, model, rng)
        theta_draws[:, i] = theta

        # Innovation variance
        ss_theta = float(np.sum(np.diff(theta) ** 2))
        psi = distributions.draw_inverse_gamma(rng, alpha + n_time / 2, beta + ss_theta / 2)
        psi_draws[i] = psi
        model = model.with_innovation_variance(psi)

        # House effects
        lam = draw_house_effects(y, theta, precision, hyper.bias_prior_sd, rng)
        lam_draws[i] = lam[:-1]

        if progress_every and (i + 1) % progress_every == 0:
            logger.info(f"  iteration {i + 1}/{iteration_count}")

    elapsed = time.perf_counter() - start
    logger.info(f"Gibbs sampler finished {iteration_count} iterations in {elapsed:.1f}s")

    posterior = GibbsPosterior(
        theta=theta_draws / PERCENT_SCALE,
        psi=psi_draws / PERCENT_SCALE ** 2,
        lam=lam_draws / PERCENT_SCALE,
        theta_labels=[f"theta{k}" for k in range(n_time, -1, -1)],
        pollsters=panel.pollsters,
    )
    logger.info(f"  Election day: {posterior.election_day_draws().mean():.3f} "
                f"± {posterior.election_day_draws().std():.3f}")
    return posterior


class NationalPollingDLM:
    """
    National opinion tracker: raw polls in, posterior draws out.

    Builds the poll panel for the configured forecast horizon and runs the
    Gibbs sampler on it.
    """

    def __init__(self, polls: pd.DataFrame, config: SamplerConfig):
        """
        Args:
            polls: Raw poll rows (pollster_id, period_index, sample_size, vote_share)
            config: Sampler options and priors
        """
        self.polls = polls
        self.config = config
        self.panel: Optional[PollPanel] = None
        self.posterior: Optional[GibbsPosterior] = None

    def build_panel(self) -> PollPanel:
        self.panel = build_poll_panel(self.polls, self.config.periods_to_election)
        return self.panel

    def fit(self, rng: Optional[np.random.Generator] = None) -> GibbsPosterior:
        """Build the panel if needed and run the sampler."""
        if self.panel is None:
            self.build_panel()

        if rng is None:
            rng = np.random.default_rng(self.config.random_seed)

        self.posterior = gibbs_sample(
            self.panel,
            iteration_count=self.config.iteration_count,
            final_prior_mean=self.config.final_prior_mean,
            final_prior_sd=self.config.final_prior_sd,
            hyperparameters=self.config.hyperparameters,
            rng=rng,
            progress_every=self.config.progress_every,
        )
        return self.posterior


def fit_national_dlm(
    polls: pd.DataFrame,
    config: SamplerConfig,
    rng: Optional[np.random.Generator] = None,
) -> GibbsPosterior:
    """Build the poll panel and sample the national DLM posterior."""
    return NationalPollingDLM(polls, config).fit(rng=rng)
