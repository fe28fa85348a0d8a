"""
Guarded random draws used by the Gibbs sampler.

Every draw checks its variance inputs first. A non-positive or non-finite
scale means an upstream invariant was broken (for example a missing
observation leaking into a precision sum), so the run stops with
NumericalError instead of producing NaN draws.
"""

import numpy as np
from scipy import stats

from .errors import NumericalError


def draw_normal(rng: np.random.Generator, loc, scale):
    """Draw from Normal(loc, scale**2). Vectorized over loc and scale."""
    scale_arr = np.asarray(scale, dtype=float)
    if not np.all(np.isfinite(scale_arr)) or np.any(scale_arr <= 0):
        raise NumericalError(f"Normal draw requires a positive finite scale, got {scale}")
    if not np.all(np.isfinite(loc)):
        raise NumericalError(f"Normal draw requires a finite mean, got {loc}")
    return rng.normal(loc, scale)


def draw_inverse_gamma(rng: np.random.Generator, shape: float, scale: float) -> float:
    """Draw one value from InverseGamma(shape, scale)."""
    if not np.isfinite(shape) or shape <= 0:
        raise NumericalError(f"Inverse-gamma draw requires a positive shape, got {shape}")
    if not np.isfinite(scale) or scale <= 0:
        raise NumericalError(f"Inverse-gamma draw requires a positive scale, got {scale}")
    return float(stats.invgamma.rvs(shape, scale=scale, random_state=rng))
