"""Staggered creation of worker units inside one worker process."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .data_model import DeviceModel
from .logging_utils import get_module_logger
from .spawn_config import ProcessConfig
from .status import StatusType
from .worker_unit import OutcomeKind, SimulatedEndpoint, WorkerOutcome, WorkerUnit

Reporter = Callable[[str, Dict[str, Any]], None]


@dataclass
class SpawnSummary:
    identities: List[str] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    abnormal: int = 0

    @property
    def spawned(self) -> int:
        return len(self.identities)

    def as_dict(self) -> Dict[str, int]:
        return {
            "spawned": self.spawned,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "abnormal": self.abnormal,
        }


class WorkerSpawner:
    """Creates ``worker_count`` worker units, one at a time.

    The first unit starts immediately and every later one waits
    ``worker_delay_ms`` first, unlike the launcher, which also waits before
    its first process. Spawning never waits for a unit to finish, and one
    unit's failure never stops the units scheduled after it.
    """

    def __init__(
        self,
        model: DeviceModel,
        config: ProcessConfig,
        endpoint_factory: Callable[[], SimulatedEndpoint],
        reporter: Optional[Reporter] = None,
    ) -> None:
        self.model = model
        self.config = config
        self.endpoint_factory = endpoint_factory
        self.reporter = reporter
        self.summary = SpawnSummary()
        self.outcomes: List[WorkerOutcome] = []
        self.logger = get_module_logger("WorkerSpawner").getChild(config.label)
        self._worker_logger = get_module_logger("Worker")

    @property
    def spawned_identities(self) -> List[str]:
        return list(self.summary.identities)

    async def run(self) -> SpawnSummary:
        delay = self.config.worker_delay_ms / 1000.0
        tasks: List[asyncio.Task] = []

        self.logger.info(
            "Spawning %d workers (stagger %d ms) against %s",
            self.config.worker_count,
            self.config.worker_delay_ms,
            self.config.acs_url,
        )

        for index in range(self.config.worker_count):
            if index > 0:
                await asyncio.sleep(delay)

            identity = self.config.identity(index)
            self.summary.identities.append(identity)
            try:
                endpoint = self.endpoint_factory()
            except Exception as exc:
                self._handle_outcome(WorkerOutcome.failed(identity, exc))
                continue

            unit = WorkerUnit(self.model, identity, self.config.acs_url, endpoint)
            task = asyncio.create_task(unit.run(), name=f"worker-{identity}")
            task.add_done_callback(self._on_worker_done)
            tasks.append(task)

            self._worker_logger.getChild(identity).debug("Started")
            self._report(StatusType.WORKER_STARTED, {"identity": identity})

        await asyncio.gather(*tasks, return_exceptions=True)

        self.logger.info(
            "All workers finished: %d succeeded, %d failed, %d abnormal exits",
            self.summary.succeeded,
            self.summary.failed,
            self.summary.abnormal,
        )
        return self.summary

    def _on_worker_done(self, task: asyncio.Task) -> None:
        identity = task.get_name().removeprefix("worker-")
        if task.cancelled():
            self._worker_logger.getChild(identity).warning("Cancelled before completion")
            return

        exc = task.exception()
        if exc is not None:
            outcome = WorkerOutcome.failed(identity, exc)
        else:
            outcome = task.result()
        self._handle_outcome(outcome)

    def _handle_outcome(self, outcome: WorkerOutcome) -> None:
        self.outcomes.append(outcome)
        log = self._worker_logger.getChild(outcome.identity)

        if outcome.kind is OutcomeKind.SUCCEEDED:
            self.summary.succeeded += 1
            log.info("Completed in %.2fs", outcome.duration_s)
            self._report(
                StatusType.WORKER_DONE,
                {"identity": outcome.identity, "duration_s": round(outcome.duration_s, 3)},
            )
        elif outcome.kind is OutcomeKind.FAILED:
            self.summary.failed += 1
            log.error("Failed: %s", outcome.error)
            self._report(StatusType.WORKER_ERROR, {"identity": outcome.identity, "error": outcome.error})
        else:
            self.summary.abnormal += 1
            log.error("Exited abnormally with code %s", outcome.exit_code)
            self._report(
                StatusType.WORKER_EXIT,
                {"identity": outcome.identity, "exit_code": outcome.exit_code},
            )

    def _report(self, status: str, data: Dict[str, Any]) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter(status, data)
        except Exception as exc:
            self.logger.error("Status reporter failed for %s: %s", status, exc)


__all__ = ["SpawnSummary", "WorkerSpawner"]
