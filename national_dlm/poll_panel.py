#!/usr/bin/env python3
"""
Poll Panel Builder.

Aggregates raw poll rows into one cell per (period, pollster) and reshapes
them into two aligned matrices used by the Gibbs sampler:

    Y[t, j]: sample-size-weighted mean vote share of pollster j in period t
    V[t, j]: binomial sampling variance p(1 - p) / n of that mean

Both are on the percentage scale (share x 100, variance x 100^2). Rows run
from the furthest period before the election down to period 1, so moving
down the matrix moves forward in time. Cells with no poll are NaN in both
matrices.

Periods are counted backwards from election day: period 1 is the last
period before the election. Only periods at or beyond the forecast horizon
(periods_to_election) keep their polls. Periods closer to the election stay
in the matrices as all-missing rows so the filter projects across them.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import PERCENT_SCALE
from .errors import InputError

logger = logging.getLogger(__name__)

POLLSTER_COL = "pollster_id"
PERIOD_COL = "period_index"
SAMPLE_SIZE_COL = "sample_size"
SHARE_COL = "vote_share"

REQUIRED_COLUMNS = [POLLSTER_COL, PERIOD_COL, SAMPLE_SIZE_COL, SHARE_COL]


@dataclass(frozen=True)
class PollPanel:
    """Aligned estimate and variance matrices, indexed by descending period."""
    y: pd.DataFrame
    v: pd.DataFrame

    @property
    def pollsters(self) -> list:
        return list(self.y.columns)

    @property
    def periods(self) -> np.ndarray:
        return self.y.index.to_numpy()

    @property
    def n_periods(self) -> int:
        return len(self.y.index)

    @property
    def n_pollsters(self) -> int:
        return len(self.y.columns)

    def observed_mask(self) -> np.ndarray:
        """Boolean (periods x pollsters) array, True where a poll exists."""
        return self.y.notna().to_numpy()

    def summary(self) -> pd.DataFrame:
        """Per-pollster observation counts and mean share (percentage scale)."""
        observed = self.y.notna()
        periods = pd.Series(self.y.index, index=self.y.index)
        return pd.DataFrame({
            "n_periods_observed": observed.sum(axis=0),
            "mean_share": self.y.mean(axis=0, skipna=True),
            "first_period": [periods[observed[c]].max() for c in self.y.columns],
            "last_period": [periods[observed[c]].min() for c in self.y.columns],
        })


def _validate_polls(polls: pd.DataFrame) -> pd.DataFrame:
    """Check the raw panel schema and value ranges."""
    missing = [c for c in REQUIRED_COLUMNS if c not in polls.columns]
    if missing:
        raise InputError(f"Poll panel is missing required columns: {missing}")

    df = polls[REQUIRED_COLUMNS].copy()
    if df.empty:
        raise InputError("Poll panel has no rows")

    if df[POLLSTER_COL].isna().any():
        raise InputError("Poll panel has rows without a pollster id")

    periods = pd.to_numeric(df[PERIOD_COL], errors="coerce")
    if periods.isna().any() or (periods != np.floor(periods)).any():
        raise InputError("period_index must be an integer on every row")
    if (periods < 1).any():
        bad = sorted(periods[periods < 1].unique())
        raise InputError(f"period_index must be >= 1, found {bad}")
    df[PERIOD_COL] = periods.astype(int)

    sizes = pd.to_numeric(df[SAMPLE_SIZE_COL], errors="coerce")
    if sizes.isna().any() or (sizes <= 0).any():
        raise InputError("sample_size must be positive on every row")
    df[SAMPLE_SIZE_COL] = sizes.astype(float)

    shares = pd.to_numeric(df[SHARE_COL], errors="coerce")
    out_of_range = shares.notna() & ((shares < 0) | (shares > 1))
    if out_of_range.any():
        raise InputError(f"vote_share must lie in [0, 1], found {shares[out_of_range].tolist()[:5]}")
    df[SHARE_COL] = shares.astype(float)

    return df


def aggregate_polls(polls: pd.DataFrame, periods_to_election: int) -> pd.DataFrame:
    """
    Combine raw polls into one row per (pollster, period).

    Args:
        polls: Raw poll rows with pollster_id, period_index, sample_size, vote_share
        periods_to_election: Forecast horizon; periods below it are dropped

    Returns:
        DataFrame with pollster_id, period_index, sample_size, share, variance.
        share and variance are on the percentage scale and NaN for cells whose
        polls all lack a vote share. Pollsters with no observed cell are removed.
    """
    df = _validate_polls(polls)

    # Rows without a share contribute neither to the mean nor to the summed n
    has_share = df[SHARE_COL].notna()
    df["weighted_share"] = (df[SHARE_COL] * df[SAMPLE_SIZE_COL]).where(has_share, 0.0)
    df["counted_size"] = df[SAMPLE_SIZE_COL].where(has_share, 0.0)

    cells = (
        df.groupby([POLLSTER_COL, PERIOD_COL], sort=True)
        .agg(weighted_share=("weighted_share", "sum"), sample_size=("counted_size", "sum"))
        .reset_index()
    )
    cells = cells[cells[PERIOD_COL] >= periods_to_election].copy()

    denom = cells["sample_size"].where(cells["sample_size"] > 0)
    share = cells["weighted_share"] / denom
    variance = share * (1 - share) / denom

    cells["share"] = PERCENT_SCALE * share
    cells["variance"] = PERCENT_SCALE ** 2 * variance

    poll_counts = cells.groupby(POLLSTER_COL)["share"].count()
    keep = poll_counts[poll_counts > 0].index
    for pollster in sorted(set(df[POLLSTER_COL]) - set(keep), key=str):
        logger.warning(f"Dropping pollster {pollster!r}: no polls at or beyond period {periods_to_election}")

    cells = cells[cells[POLLSTER_COL].isin(keep)]
    return cells[[POLLSTER_COL, PERIOD_COL, "sample_size", "share", "variance"]].reset_index(drop=True)


def build_poll_panel(polls: pd.DataFrame, periods_to_election: int) -> PollPanel:
    """
    Build the (Y, V) matrix pair for the national DLM.

    Args:
        polls: Raw poll rows (see REQUIRED_COLUMNS)
        periods_to_election: Forecast horizon in periods before the election

    Returns:
        PollPanel with one row per period from the furthest observed period
        down to 1 and one column per pollster with at least one retained poll

    Raises:
        InputError: if the panel is malformed or has no polls at or beyond
            the forecast horizon
    """
    if periods_to_election < 1:
        raise InputError(f"periods_to_election must be >= 1, got {periods_to_election}")

    logger.info(f"Building poll panel from {len(polls)} poll rows (horizon: {periods_to_election} periods)")
    cells = aggregate_polls(polls, periods_to_election)

    if cells["share"].notna().sum() == 0:
        raise InputError(f"No polls remain at or beyond period {periods_to_election}")

    max_period = int(pd.to_numeric(polls[PERIOD_COL]).max())
    period_index = pd.Index(np.arange(max_period, 0, -1), name=PERIOD_COL)

    y = cells.pivot(index=PERIOD_COL, columns=POLLSTER_COL, values="share")
    y = y.reindex(period_index).astype(float)
    v = cells.pivot(index=PERIOD_COL, columns=POLLSTER_COL, values="variance")
    v = v.reindex(index=period_index, columns=y.columns).astype(float)

    panel = PollPanel(y=y, v=v)
    logger.info(
        f"Poll panel: {panel.n_periods} periods ({max_period} to 1), "
        f"{panel.n_pollsters} pollsters, {int(panel.observed_mask().sum())} observed cells"
    )
    return panel
