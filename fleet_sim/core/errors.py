"""Error taxonomy shared by the launcher, worker processes and worker units."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class FleetSimError(Exception):
    """Base class for every error raised by the simulator."""


class StartupConfigError(FleetSimError):
    """Configuration is unusable; nothing may be spawned with it."""


class DataModelLoadError(FleetSimError):
    """A data model file could not be read or parsed.

    Fatal to the worker process that owns the file; sibling processes keep
    running.
    """

    def __init__(
        self,
        message: str,
        *,
        source: Union[str, Path, None] = None,
        line: Optional[int] = None,
    ) -> None:
        self.source = str(source) if source is not None else None
        self.line = line
        location = ""
        if self.source is not None:
            location = self.source if line is None else f"{self.source}:{line}"
        super().__init__(f"{location}: {message}" if location else message)


class WorkerRuntimeError(FleetSimError):
    """A worker unit failed while its simulated endpoint was running."""


class EndpointSessionError(WorkerRuntimeError):
    """The management server rejected or dropped a session."""


__all__ = [
    "FleetSimError",
    "StartupConfigError",
    "DataModelLoadError",
    "WorkerRuntimeError",
    "EndpointSessionError",
]
