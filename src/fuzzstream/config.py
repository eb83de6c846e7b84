"""
Immutable configuration for the fuzz transform.

Defaults reproduce the classic fuzzstream tuning: 30% of writes are combined
with the next one, 20% of cut points insert an empty chunk, and delays follow
a mostly-short distribution with a 1% tail of multi-second stalls.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from fuzzstream.errors import ConfigurationError

logger = logging.getLogger(__name__)


class DelayRange(BaseModel):
    """One entry of a delay distribution.

    ``p`` is the probability mass of this entry. The final entry of a
    distribution takes whatever mass is left and normally omits ``p``.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    p: Optional[float] = Field(None, ge=0, le=1, description="Probability mass")
    min_ms: int = Field(..., ge=0, alias="min", description="Lower bound (ms)")
    max_ms: int = Field(..., ge=0, alias="max", description="Upper bound (ms)")

    @model_validator(mode="after")
    def check_bounds(self):
        """Ensure the range is not inverted."""
        if self.max_ms < self.min_ms:
            raise ValueError(f"max ({self.max_ms}) must be >= min ({self.min_ms})")
        return self


DEFAULT_DELAY_DISTRIBUTION: Tuple[DelayRange, ...] = (
    DelayRange(p=0.20, min_ms=0, max_ms=0),        # some don't delay at all
    DelayRange(p=0.64, min_ms=0, max_ms=10),       # most wait up to 10ms
    DelayRange(p=0.15, min_ms=0, max_ms=100),      # some take a bit longer
    DelayRange(min_ms=1000, max_ms=3000),          # 1% take a few seconds
)

NO_DELAY_DISTRIBUTION: Tuple[DelayRange, ...] = (
    DelayRange(min_ms=0, max_ms=0),
)


class FuzzConfig(BaseModel):
    """Static tuning for one FuzzTransform."""
    model_config = ConfigDict(frozen=True)

    p_combine: float = Field(
        0.3,
        ge=0,
        lt=1,
        description="Probability that a write is combined with the next one"
    )
    p_zero: float = Field(
        0.2,
        ge=0,
        lt=1,
        description="Probability of a zero-length piece at each cut point"
    )
    delay_distribution: Tuple[DelayRange, ...] = Field(
        default=DEFAULT_DELAY_DISTRIBUTION,
        description="Ordered delay ranges; the last one is the catch-all"
    )

    @model_validator(mode="after")
    def check_distribution(self):
        """Ensure the distribution partitions [0, 1)."""
        dist = self.delay_distribution
        if len(dist) == 0:
            raise ValueError("delay_distribution must have at least one entry")

        total = 0.0
        for i, entry in enumerate(dist[:-1]):
            if entry.p is None:
                raise ValueError(
                    f"delay_distribution[{i}] needs 'p' (only the last entry may omit it)"
                )
            total += entry.p
        if total >= 1.0:
            raise ValueError(
                f"probabilities before the last entry must sum to < 1, got {total:.3f}"
            )
        return self

    def with_overrides(self, **changes) -> "FuzzConfig":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return FuzzConfig(**data)


def load_config(file_path: str) -> FuzzConfig:
    """
    Load and validate a YAML or JSON configuration file.

    Args:
        file_path: Path to the configuration file

    Returns:
        Validated FuzzConfig

    Raises:
        ConfigurationError: If the file is missing, empty or unparseable
        pydantic.ValidationError: If values are out of range
    """
    path = Path(file_path)
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {file_path}", component="config"
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to parse {file_path}: {e}", component="config"
        ) from e

    if data is None:
        raise ConfigurationError("Configuration file is empty", component="config")
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(data).__name__}",
            component="config",
        )

    logger.debug(f"Loaded fuzz configuration from {file_path}")
    return FuzzConfig(**data)


def config_from_env(base: Optional[FuzzConfig] = None) -> FuzzConfig:
    """
    Apply environment overrides on top of a base configuration.

    Environment Variables:
        FUZZSTREAM_P_COMBINE: combine probability
        FUZZSTREAM_P_ZERO: zero-length piece probability

    Args:
        base: Configuration to start from (defaults to FuzzConfig())

    Returns:
        Validated FuzzConfig

    Raises:
        ConfigurationError: If a variable is not a number
        pydantic.ValidationError: If a value is out of range
    """
    base = base or FuzzConfig()
    overrides = {}
    for field, var in (("p_combine", "FUZZSTREAM_P_COMBINE"), ("p_zero", "FUZZSTREAM_P_ZERO")):
        if var not in os.environ:
            continue
        raw = os.environ[var]
        try:
            overrides[field] = float(raw)
        except ValueError:
            raise ConfigurationError(
                f"{var} must be a number, got {raw!r}",
                component="config",
                context={"variable": var},
            ) from None
    if not overrides:
        return base
    return base.with_overrides(**overrides)
