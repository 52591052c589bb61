"""
Configuration parameters for the reactive delivery agent.

Defaults match the host simulator: a discount factor of 0.95 unless the
agent's property file says otherwise.
"""

from dataclasses import dataclass, fields
from typing import Dict, Any


DEFAULT_DISCOUNT_FACTOR = 0.95
"""Weight of future reward relative to immediate reward, in [0, 1)."""

DEFAULT_COST_PER_KM = 5.0
"""Vehicle operating cost per unit of distance."""

DEFAULT_MIN_ITERATIONS = 100
"""Value iteration never stops before this many sweeps."""

DEFAULT_MAX_ITERATIONS = 100_000
"""Safety cap on value iteration sweeps."""

DEFAULT_TOLERANCE = 1e-12
"""Sweep is converged once sum |V_curr - V_prev| <= tolerance * max(1, sum |V_curr|)."""


class InvalidConfigurationError(ValueError):
    """Agent or solver parameter outside its valid range"""


def validate_solver_parameters(discount_factor: float,
                               min_iterations: int,
                               max_iterations: int,
                               tolerance: float):
    """Raise InvalidConfigurationError for parameters value iteration cannot use"""
    if not 0.0 <= discount_factor < 1.0:
        raise InvalidConfigurationError(
            f"discount factor must lie in [0, 1), got {discount_factor}"
        )
    if min_iterations < 1:
        raise InvalidConfigurationError(f"min_iterations must be >= 1, got {min_iterations}")
    if max_iterations < min_iterations:
        raise InvalidConfigurationError(
            f"max_iterations ({max_iterations}) must be >= min_iterations ({min_iterations})"
        )
    if tolerance < 0:
        raise InvalidConfigurationError(f"tolerance must be non-negative, got {tolerance}")


@dataclass(frozen=True)
class AgentConfig:
    discount_factor: float = DEFAULT_DISCOUNT_FACTOR
    cost_per_km: float = DEFAULT_COST_PER_KM
    min_iterations: int = DEFAULT_MIN_ITERATIONS
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    report_every: int = 10
    verbose: bool = True

    # Property names used by the host's agent settings file
    PROPERTY_NAMES = {
        'discount-factor': 'discount_factor',
        'cost-per-km': 'cost_per_km',
        'min-iterations': 'min_iterations',
        'max-iterations': 'max_iterations',
        'tolerance': 'tolerance',
    }

    def validate(self) -> "AgentConfig":
        validate_solver_parameters(self.discount_factor, self.min_iterations,
                                   self.max_iterations, self.tolerance)
        if self.cost_per_km < 0:
            raise InvalidConfigurationError(f"cost_per_km must be non-negative, got {self.cost_per_km}")
        if self.report_every < 1:
            raise InvalidConfigurationError(f"report_every must be >= 1, got {self.report_every}")
        return self

    @classmethod
    def from_properties(cls, properties: Dict[str, Any], **overrides) -> "AgentConfig":
        """
        Read a host-style property map

        Args:
            properties: e.g. {'discount-factor': '0.9'}; missing keys keep
                        their defaults, unknown keys are ignored
            overrides: Extra keyword fields (e.g. verbose=False)

        Returns:
            Validated AgentConfig
        """
        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for key, field_name in cls.PROPERTY_NAMES.items():
            if key not in properties:
                continue
            raw = properties[key]
            cast = int if types[field_name] in (int, 'int') else float
            try:
                values[field_name] = cast(raw)
            except (TypeError, ValueError) as e:
                raise InvalidConfigurationError(f"Invalid value {raw!r} for '{key}'") from e

        values.update(overrides)
        return cls(**values).validate()
