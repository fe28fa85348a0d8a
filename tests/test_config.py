#!/usr/bin/env python3
"""Tests for sampler configuration and prior hyperparameters."""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from national_dlm.config import DLMHyperparameters, SamplerConfig
from national_dlm.errors import InputError


def create_test_config(**overrides) -> SamplerConfig:
    values = dict(
        periods_to_election=2,
        iteration_count=100,
        final_prior_mean=0.52,
        final_prior_sd=0.03,
        random_seed=42,
    )
    values.update(overrides)
    return SamplerConfig(**values)


def test_psi_prior_shape_is_derived_from_scale():
    default = DLMHyperparameters()
    assert default.psi_prior_scale == 50.0
    assert default.psi_prior_shape == pytest.approx(3.0)

    wider = DLMHyperparameters(psi_prior_scale=100.0)
    assert wider.psi_prior_shape == pytest.approx(5.0)


def test_psi_prior_moments():
    """sd of the innovations has prior mean sqrt(beta/(alpha-1))."""
    mean_sd, variance = DLMHyperparameters().psi_prior_moments()

    assert mean_sd == pytest.approx(5.0)
    assert variance == pytest.approx(50.0 ** 2 / (2.0 ** 2 * 1.0))

    _, heavy_tail = DLMHyperparameters(psi_prior_scale=20.0).psi_prior_moments()
    assert heavy_tail == float("inf")


def test_config_json_round_trip():
    config = create_test_config(hyperparameters=DLMHyperparameters(obs_variance_floor=0.01))

    restored = SamplerConfig.from_dict(json.loads(json.dumps(config.to_dict())))

    assert restored == config
    assert restored.hyperparameters.obs_variance_floor == 0.01


def test_from_dict_without_hyperparameters_uses_defaults():
    restored = SamplerConfig.from_dict({
        "periods_to_election": 1,
        "iteration_count": 10,
        "final_prior_mean": 0.5,
        "final_prior_sd": 0.02,
    })

    assert restored.hyperparameters == DLMHyperparameters()
    assert restored.random_seed is None


@pytest.mark.parametrize("overrides", [
    {"periods_to_election": 0},
    {"iteration_count": 0},
    {"final_prior_mean": 1.2},
    {"final_prior_mean": -0.1},
    {"final_prior_sd": 0.0},
    {"progress_every": 0},
])
def test_invalid_config_raises(overrides):
    with pytest.raises(InputError):
        create_test_config(**overrides)


@pytest.mark.parametrize("field_name", ["state_variance", "obs_variance_floor", "psi_prior_scale", "bias_prior_sd"])
def test_non_positive_hyperparameter_raises(field_name):
    with pytest.raises(InputError):
        DLMHyperparameters(**{field_name: 0.0})
