"""Pass-through byte stream that fuzzes chunk boundaries and timing."""

from fuzzstream.config import (
    DEFAULT_DELAY_DISTRIBUTION,
    NO_DELAY_DISTRIBUTION,
    DelayRange,
    FuzzConfig,
    config_from_env,
    load_config,
)
from fuzzstream.delay import choose_delay_range, sample_delay
from fuzzstream.errors import ConfigurationError, ContractViolation, FuzzStreamError
from fuzzstream.metrics import EmissionCollector, EmissionRecord
from fuzzstream.splitter import split_chunk
from fuzzstream.stream import FuzzStream, fuzz_chunks, pipe
from fuzzstream.transform import FuzzTransform, TransformState

__all__ = [
    "DEFAULT_DELAY_DISTRIBUTION",
    "NO_DELAY_DISTRIBUTION",
    "DelayRange",
    "FuzzConfig",
    "config_from_env",
    "load_config",
    "choose_delay_range",
    "sample_delay",
    "ConfigurationError",
    "ContractViolation",
    "FuzzStreamError",
    "EmissionCollector",
    "EmissionRecord",
    "split_chunk",
    "FuzzStream",
    "fuzz_chunks",
    "pipe",
    "FuzzTransform",
    "TransformState",
]
