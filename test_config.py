"""Tests for agent configuration."""

import pytest

from config import AgentConfig, InvalidConfigurationError


def test_defaults():
    config = AgentConfig()
    assert config.discount_factor == 0.95
    assert config.min_iterations == 100
    assert config.validate() is config


def test_from_properties_reads_host_keys():
    config = AgentConfig.from_properties({
        'discount-factor': '0.8',
        'cost-per-km': 3,
        'min-iterations': '150',
        'max-iterations': 2000,
        'tolerance': '1e-10',
        'agent-name': 'reactive-rla',
    })
    assert config.discount_factor == 0.8
    assert config.cost_per_km == 3.0
    assert config.min_iterations == 150
    assert isinstance(config.min_iterations, int)
    assert config.max_iterations == 2000
    assert config.tolerance == 1e-10


def test_missing_discount_defaults():
    assert AgentConfig.from_properties({}).discount_factor == 0.95


def test_overrides():
    config = AgentConfig.from_properties({'discount-factor': 0.5}, verbose=False)
    assert config.verbose is False
    assert config.discount_factor == 0.5


@pytest.mark.parametrize("properties", [
    {'discount-factor': 1.0},
    {'discount-factor': 1.2},
    {'discount-factor': -0.5},
    {'discount-factor': 'high'},
    {'cost-per-km': -1},
    {'min-iterations': 0},
    {'min-iterations': 200, 'max-iterations': 100},
    {'tolerance': -1e-6},
])
def test_invalid_properties_rejected(properties):
    with pytest.raises(InvalidConfigurationError):
        AgentConfig.from_properties(properties)


def test_invalid_configuration_is_a_value_error():
    with pytest.raises(ValueError):
        AgentConfig(report_every=0).validate()
