"""The smallest unit of concurrent execution: one simulated endpoint run."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from .data_model import DeviceModel


class OutcomeKind(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABNORMAL_EXIT = "abnormal_exit"


@dataclass(frozen=True)
class WorkerOutcome:
    """Terminal outcome of one worker unit; exactly one per unit."""

    identity: str
    kind: OutcomeKind
    error: Optional[str] = None
    exit_code: Optional[int] = None
    duration_s: float = 0.0

    @classmethod
    def succeeded(cls, identity: str, duration_s: float = 0.0) -> "WorkerOutcome":
        return cls(identity, OutcomeKind.SUCCEEDED, exit_code=0, duration_s=duration_s)

    @classmethod
    def failed(cls, identity: str, error: BaseException, duration_s: float = 0.0) -> "WorkerOutcome":
        detail = f"{type(error).__name__}: {error}" if str(error) else type(error).__name__
        return cls(identity, OutcomeKind.FAILED, error=detail, duration_s=duration_s)

    @classmethod
    def abnormal_exit(cls, identity: str, exit_code: int, duration_s: float = 0.0) -> "WorkerOutcome":
        return cls(identity, OutcomeKind.ABNORMAL_EXIT, exit_code=exit_code, duration_s=duration_s)


class SimulatedEndpoint(Protocol):
    """Opaque simulated device logic run by a worker unit.

    Returns an exit code; ``None`` or ``0`` means the run completed.
    """

    async def run(self, model: DeviceModel, identity: str, acs_url: str) -> Optional[int]:
        ...


class WorkerUnit:

    def __init__(
        self,
        model: DeviceModel,
        identity: str,
        acs_url: str,
        endpoint: SimulatedEndpoint,
    ) -> None:
        self.model = model
        self.identity = identity
        self.acs_url = acs_url
        self.endpoint = endpoint

    async def run(self) -> WorkerOutcome:
        started = time.monotonic()
        try:
            exit_code = await self.endpoint.run(self.model, self.identity, self.acs_url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return WorkerOutcome.failed(self.identity, exc, time.monotonic() - started)

        elapsed = time.monotonic() - started
        if exit_code:
            return WorkerOutcome.abnormal_exit(self.identity, int(exit_code), elapsed)
        return WorkerOutcome.succeeded(self.identity, elapsed)


__all__ = ["OutcomeKind", "WorkerOutcome", "SimulatedEndpoint", "WorkerUnit"]
