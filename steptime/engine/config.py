"""
Harness configuration.

Responsibilities:

- Load start instants and the default tick from YAML or the environment
- Validate structure before any clock is built
- Remain agnostic about what the code under test does with time
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from steptime.engine.clock import ZERO, SteadyClock, SystemClock, parse_duration

ENV_PREFIX = "STEPTIME_"


@dataclass
class HarnessConfig:
    """
    Start instants for both clocks and the tick used when none is given.
    """

    steady_start: timedelta = field(default_factory=lambda: SteadyClock.default_start)
    system_start: timedelta = field(default_factory=lambda: SystemClock.default_start)
    default_tick: timedelta = timedelta(milliseconds=1)

    def __post_init__(self) -> None:
        if self.default_tick <= ZERO:
            raise ValueError("'default_tick' must be a positive duration")

    @classmethod
    def from_mapping(cls, data: Any) -> "HarnessConfig":
        if not isinstance(data, Mapping):
            raise ValueError("Harness configuration must be a mapping (dict)")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(map(str, unknown))}")

        return cls(**{key: parse_duration(value) for key, value in data.items()})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HarnessConfig":
        """
        Build a configuration from ``STEPTIME_*`` environment variables.
        """
        if environ is None:
            environ = os.environ

        data = {}
        for f in fields(cls):
            value = environ.get(ENV_PREFIX + f.name.upper())
            if value:
                data[f.name] = value
        return cls.from_mapping(data)


def load_config(path: Path) -> HarnessConfig:
    """
    Load a harness configuration from a YAML file.

    An empty file yields the defaults.
    """
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        return HarnessConfig()

    return HarnessConfig.from_mapping(data)
