#!/usr/bin/env python3
"""
Configuration for the national polling DLM.

Model internals run on the 0-100 percentage scale. Poll shares and the
election-day prior are supplied as proportions and multiplied by
PERCENT_SCALE on the way in; posterior draws are divided by it on the way out.

Prior choices:
- Initial state: Normal(50, 16), an even national split with a 4 point sd
- Innovation variance psi: InverseGamma(alpha, beta) with beta = 50 and
  alpha = beta / 25 + 1
- House effects: Normal(0, 5^2) per pollster
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

import numpy as np

from .errors import InputError

PERCENT_SCALE = 100.0

# Initial state prior (percentage points)
PRIOR_STATE_MEAN = 50.0
PRIOR_STATE_VARIANCE = 16.0

# Smallest measurement variance passed to the filter. A poll reporting a
# share of exactly 0 or 1 would otherwise have zero binomial variance.
OBS_VARIANCE_FLOOR = 0.5 ** 2 / 1000

# Inverse-gamma scale for the innovation variance; the shape is derived
PSI_PRIOR_SCALE = 50.0

# House effect prior sd (percentage points)
BIAS_PRIOR_SD = 5.0


@dataclass(frozen=True)
class DLMHyperparameters:
    """Fixed priors of the random-walk DLM, on the percentage scale."""
    state_mean: float = PRIOR_STATE_MEAN
    state_variance: float = PRIOR_STATE_VARIANCE
    obs_variance_floor: float = OBS_VARIANCE_FLOOR
    psi_prior_scale: float = PSI_PRIOR_SCALE
    bias_prior_sd: float = BIAS_PRIOR_SD

    def __post_init__(self):
        for name in ("state_variance", "obs_variance_floor", "psi_prior_scale", "bias_prior_sd"):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise InputError(f"{name} must be positive, got {value}")
        if not np.isfinite(self.state_mean):
            raise InputError(f"state_mean must be finite, got {self.state_mean}")

    @property
    def psi_prior_shape(self) -> float:
        """Inverse-gamma shape, tied to the scale so the prior on sd(psi) stays reasonable."""
        return self.psi_prior_scale / 25 + 1

    def psi_prior_moments(self) -> tuple[float, float]:
        """
        Implied moments of the innovation standard deviation under the prior.

        Returns:
            (mean, variance) as sqrt(beta / (alpha - 1)) and
            beta^2 / ((alpha - 1)^2 (alpha - 2)). The variance is infinite
            when alpha <= 2.
        """
        alpha = self.psi_prior_shape
        beta = self.psi_prior_scale
        mean_sd = float(np.sqrt(beta / (alpha - 1)))
        if alpha <= 2:
            return mean_sd, float("inf")
        variance = beta ** 2 / ((alpha - 1) ** 2 * (alpha - 2))
        return mean_sd, float(variance)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "DLMHyperparameters":
        """Create from dictionary."""
        return cls(**d)


@dataclass(frozen=True)
class SamplerConfig:
    """Options recognized by a sampler run."""
    periods_to_election: int
    iteration_count: int
    final_prior_mean: float
    final_prior_sd: float
    random_seed: Optional[int] = None
    progress_every: Optional[int] = None  # log every N iterations, None = silent
    hyperparameters: DLMHyperparameters = field(default_factory=DLMHyperparameters)

    def __post_init__(self):
        if self.periods_to_election < 1:
            raise InputError(f"periods_to_election must be >= 1, got {self.periods_to_election}")
        validate_sampler_inputs(self.iteration_count, self.final_prior_mean, self.final_prior_sd)
        if self.progress_every is not None and self.progress_every < 1:
            raise InputError(f"progress_every must be >= 1, got {self.progress_every}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "SamplerConfig":
        """Create from dictionary."""
        d = dict(d)
        hyper = d.pop("hyperparameters", None) or {}
        if isinstance(hyper, dict):
            hyper = DLMHyperparameters.from_dict(hyper)
        return cls(hyperparameters=hyper, **d)


def validate_sampler_inputs(
    iteration_count: int,
    final_prior_mean: float,
    final_prior_sd: float,
) -> None:
    """Raise InputError for sampler arguments outside their valid range."""
    if int(iteration_count) != iteration_count or iteration_count < 1:
        raise InputError(f"iteration_count must be an integer >= 1, got {iteration_count}")
    if not 0.0 <= final_prior_mean <= 1.0:
        raise InputError(f"final_prior_mean must lie in [0, 1], got {final_prior_mean}")
    if not np.isfinite(final_prior_sd) or final_prior_sd <= 0:
        raise InputError(f"final_prior_sd must be positive, got {final_prior_sd}")
