"""Run configuration and its propagation across the process boundary.

``SpawnConfig`` is built once by the launcher. Each worker process gets its
share as a ``ProcessConfig`` serialized into ``FLEET_SIM_*`` environment
variables; the receiving side validates every field before it touches the
data model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping

from .errors import StartupConfigError

IDENTITY_WIDTH = 6
IDENTITY_LIMIT = 10 ** IDENTITY_WIDTH

DEFAULT_ACS_URL = "http://127.0.0.1:7547/"

ACS_URL_PATTERN = re.compile(r"^(http|https)://")

ENV_WORKER_COUNT = "FLEET_SIM_WORKER_COUNT"
ENV_SERIAL_START = "FLEET_SIM_SERIAL_START"
ENV_ACS_URL = "FLEET_SIM_ACS_URL"
ENV_DATA_MODEL = "FLEET_SIM_DATA_MODEL"
ENV_WORKER_DELAY = "FLEET_SIM_WORKER_DELAY_MS"
ENV_LOG_LEVEL = "FLEET_SIM_LOG_LEVEL"


def format_identity(number: int) -> str:
    if number < 0 or number >= IDENTITY_LIMIT:
        raise ValueError(f"identity {number} does not fit in {IDENTITY_WIDTH} digits")
    return str(number).zfill(IDENTITY_WIDTH)


def validate_acs_url(url: str) -> str:
    if not isinstance(url, str) or not ACS_URL_PATTERN.match(url):
        raise StartupConfigError(f"Invalid ACS URL {url!r}: must start with http:// or https://")
    return url


@dataclass(frozen=True)
class ProcessConfig:
    """The share of a run handed to one worker process."""

    worker_count: int
    serial_start: int
    acs_url: str
    data_model: str
    worker_delay_ms: int
    log_level: str = "info"

    @property
    def serial_end(self) -> int:
        return self.serial_start + self.worker_count - 1

    @property
    def label(self) -> str:
        """Identity range owned by this process, e.g. ``000100-000102``."""
        return f"{format_identity(self.serial_start)}-{format_identity(self.serial_end)}"

    def identity(self, index: int) -> str:
        if not 0 <= index < self.worker_count:
            raise IndexError(f"worker index {index} outside 0..{self.worker_count - 1}")
        return format_identity(self.serial_start + index)

    def to_env(self) -> dict[str, str]:
        return {
            ENV_WORKER_COUNT: str(self.worker_count),
            ENV_SERIAL_START: str(self.serial_start),
            ENV_ACS_URL: self.acs_url,
            ENV_DATA_MODEL: str(self.data_model),
            ENV_WORKER_DELAY: str(self.worker_delay_ms),
            ENV_LOG_LEVEL: self.log_level,
        }

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ProcessConfig":
        missing = [
            key
            for key in (ENV_WORKER_COUNT, ENV_SERIAL_START, ENV_ACS_URL, ENV_DATA_MODEL, ENV_WORKER_DELAY)
            if not env.get(key)
        ]
        if missing:
            raise StartupConfigError(f"Missing worker process settings: {', '.join(missing)}")

        def as_int(key: str, minimum: int) -> int:
            raw = env[key]
            try:
                value = int(raw)
            except ValueError:
                raise StartupConfigError(f"{key} must be an integer, got {raw!r}") from None
            if value < minimum:
                raise StartupConfigError(f"{key} must be >= {minimum}, got {value}")
            return value

        config = cls(
            worker_count=as_int(ENV_WORKER_COUNT, 1),
            serial_start=as_int(ENV_SERIAL_START, 0),
            acs_url=validate_acs_url(env[ENV_ACS_URL]),
            data_model=env[ENV_DATA_MODEL],
            worker_delay_ms=as_int(ENV_WORKER_DELAY, 0),
            log_level=env.get(ENV_LOG_LEVEL) or "info",
        )
        if config.serial_end >= IDENTITY_LIMIT:
            raise StartupConfigError(
                f"Identity range {config.serial_start}+{config.worker_count} exceeds {IDENTITY_WIDTH} digits"
            )
        return config


@dataclass(frozen=True)
class SpawnConfig:
    """Immutable configuration of a whole run."""

    acs_url: str
    data_model: str
    processes: int = 1
    workers_per_process: int = 10
    process_delay_ms: int = 5000
    worker_delay_ms: int = 20
    serial_offset: int = 0
    log_level: str = "info"

    @property
    def total_workers(self) -> int:
        return self.processes * self.workers_per_process

    def validate(self) -> "SpawnConfig":
        validate_acs_url(self.acs_url)
        if self.processes < 1:
            raise StartupConfigError(f"Process count must be positive, got {self.processes}")
        if self.workers_per_process < 1:
            raise StartupConfigError(f"Workers per process must be positive, got {self.workers_per_process}")
        if self.process_delay_ms < 0 or self.worker_delay_ms < 0:
            raise StartupConfigError("Spawn delays must not be negative")
        if self.serial_offset < 0:
            raise StartupConfigError(f"Serial offset must not be negative, got {self.serial_offset}")
        if self.serial_offset + self.total_workers > IDENTITY_LIMIT:
            raise StartupConfigError(
                f"Serial offset {self.serial_offset} plus {self.total_workers} workers "
                f"overflows {IDENTITY_WIDTH}-digit identities"
            )
        return self

    def range_start(self, process_index: int) -> int:
        return self.serial_offset + process_index * self.workers_per_process

    def process_config(self, process_index: int) -> ProcessConfig:
        if not 0 <= process_index < self.processes:
            raise IndexError(f"process index {process_index} outside 0..{self.processes - 1}")
        return ProcessConfig(
            worker_count=self.workers_per_process,
            serial_start=self.range_start(process_index),
            acs_url=self.acs_url,
            data_model=str(Path(self.data_model)),
            worker_delay_ms=self.worker_delay_ms,
            log_level=self.log_level,
        )

    def identities(self) -> List[str]:
        return [
            self.process_config(i).identity(j)
            for i in range(self.processes)
            for j in range(self.workers_per_process)
        ]


__all__ = [
    "IDENTITY_WIDTH",
    "IDENTITY_LIMIT",
    "DEFAULT_ACS_URL",
    "ACS_URL_PATTERN",
    "ProcessConfig",
    "SpawnConfig",
    "format_identity",
    "validate_acs_url",
]
