"""Top-level fan-out: staggered worker processes with hard shutdown.

Each ``WorkerProcess`` wraps one ``python -m fleet_sim --run-worker`` child.
Its share of the run travels in ``FLEET_SIM_*`` environment variables, and
the child reports back with JSON status lines on stdout. Processes are
spawned at most once; an exited process is logged, never restarted.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .asyncio_utils import cancel_tasks, create_logged_task
from .errors import StartupConfigError
from .logging_utils import get_module_logger
from .paths import PROJECT_ROOT
from .spawn_config import ProcessConfig, SpawnConfig
from .status import StatusMessage, StatusType

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130

SHUTDOWN_REAP_TIMEOUT = 2.0
READER_DRAIN_TIMEOUT = 1.0


class ProcessState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    CRASHED = "crashed"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass
class ProcessStats:
    succeeded: int = 0
    failed: int = 0
    abnormal: int = 0
    model_error: Optional[str] = None


def describe_exit(returncode: Optional[int]) -> str:
    if returncode is None:
        return "still running"
    if returncode < 0:
        try:
            return f"killed by {signal.Signals(-returncode).name}"
        except ValueError:
            return f"killed by signal {-returncode}"
    return f"exit code {returncode}"


class WorkerProcess:

    def __init__(self, index: int, config: ProcessConfig):
        self.index = index
        self.config = config
        self.label = config.label

        self.logger = get_module_logger("WorkerProcess").getChild(self.label)
        self._worker_logger = get_module_logger("Worker")

        self.process: Optional[asyncio.subprocess.Process] = None
        self.state = ProcessState.STOPPED
        self.stats = ProcessStats()
        self.exit_code: Optional[int] = None

        self.stdout_task: Optional[asyncio.Task] = None
        self.stderr_task: Optional[asyncio.Task] = None
        self.monitor_task: Optional[asyncio.Task] = None

        self._exited = asyncio.Event()
        self._terminate_requested = False

    def build_command(self) -> List[str]:
        return [sys.executable, "-m", "fleet_sim", "--run-worker"]

    def build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update(self.config.to_env())

        paths_to_add = [str(PROJECT_ROOT)]
        existing_pythonpath = env.get("PYTHONPATH")
        if existing_pythonpath:
            paths_to_add.append(existing_pythonpath)
        env["PYTHONPATH"] = os.pathsep.join(paths_to_add)
        return env

    async def start(self) -> bool:
        if self.process is not None:
            self.logger.warning("Process already started")
            return False

        self.state = ProcessState.STARTING
        cmd = self.build_command()
        self.logger.debug("Command: %s", " ".join(cmd))

        try:
            self.process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
            )
        except OSError as e:
            self.logger.error("Failed to start worker process: %s", e)
            self.state = ProcessState.FAILED
            self._exited.set()
            return False

        self.logger.info("Worker process started with PID %d", self.process.pid)

        self.stdout_task = create_logged_task(
            self._stdout_reader(), logger=self.logger, context=f"stdout-{self.label}"
        )
        self.stderr_task = create_logged_task(
            self._stderr_reader(), logger=self.logger, context=f"stderr-{self.label}"
        )
        self.monitor_task = create_logged_task(
            self._process_monitor(), logger=self.logger, context=f"monitor-{self.label}"
        )
        return True

    async def _stdout_reader(self) -> None:
        if not self.process or not self.process.stdout:
            return

        while True:
            line = await self.process.stdout.readline()
            if not line:
                break

            line_str = line.decode(errors="replace").strip()
            if not line_str:
                continue
            status = StatusMessage(line_str)
            if status.is_valid():
                self.handle_status(status)
            else:
                self.logger.debug("Worker process output: %s", line_str)

    async def _stderr_reader(self) -> None:
        if not self.process or not self.process.stderr:
            return

        while True:
            line = await self.process.stderr.readline()
            if not line:
                break

            line_str = line.decode(errors="replace").rstrip()
            if line_str:
                self.logger.warning("stderr: %s", line_str)

    async def _process_monitor(self) -> None:
        if not self.process:
            return

        returncode = await self.process.wait()

        readers = [task for task in (self.stdout_task, self.stderr_task) if task]
        if readers:
            await asyncio.wait(readers, timeout=READER_DRAIN_TIMEOUT)

        self.exit_code = returncode
        if self._terminate_requested:
            self.state = ProcessState.TERMINATED
            self.logger.info("Worker process terminated (%s)", describe_exit(returncode))
        elif returncode == 0:
            self.state = ProcessState.EXITED
            self.logger.info("Worker process exited normally")
        else:
            self.state = ProcessState.CRASHED
            self.logger.error("Worker process exited with %s; not restarting", describe_exit(returncode))

        self._exited.set()

    def handle_status(self, status: StatusMessage) -> None:
        status_type = status.get_status_type()
        payload = status.get_payload()
        identity = str(payload.get("identity", "?"))

        if status_type == StatusType.PROCESS_READY:
            self.state = ProcessState.RUNNING
            self.logger.info(
                "Device model loaded (%s parameters), spawning workers", payload.get("parameters", "?")
            )
        elif status_type == StatusType.WORKER_STARTED:
            self._worker_logger.getChild(identity).debug("Started")
        elif status_type == StatusType.WORKER_DONE:
            self.stats.succeeded += 1
            self._worker_logger.getChild(identity).info("Completed")
        elif status_type == StatusType.WORKER_ERROR:
            self.stats.failed += 1
            self._worker_logger.getChild(identity).error("Failed: %s", payload.get("error"))
        elif status_type == StatusType.WORKER_EXIT:
            self.stats.abnormal += 1
            self._worker_logger.getChild(identity).error(
                "Exited abnormally with code %s", payload.get("exit_code")
            )
        elif status_type == StatusType.MODEL_ERROR:
            self.stats.model_error = status.get_error_message()
            self.logger.error("Data model error: %s", self.stats.model_error)
        elif status_type == StatusType.CONFIG_ERROR:
            self.logger.error("Invalid worker process settings: %s", status.get_error_message())
        elif status_type == StatusType.PROCESS_SUMMARY:
            self.logger.info(
                "Summary: %s spawned, %s succeeded, %s failed, %s abnormal",
                payload.get("spawned"),
                payload.get("succeeded"),
                payload.get("failed"),
                payload.get("abnormal"),
            )
        else:
            self.logger.debug("Unhandled status %s: %s", status_type, payload)

    def terminate(self) -> None:
        """Send SIGTERM without waiting; best-effort."""
        if not self.is_running():
            return
        self._terminate_requested = True
        try:
            self.process.terminate()
        except ProcessLookupError:
            pass

    def is_running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def describe_exit(self) -> str:
        if self.state is ProcessState.FAILED:
            return "failed to start"
        return describe_exit(self.exit_code)

    async def wait(self) -> Optional[int]:
        await self._exited.wait()
        return self.exit_code

    async def close(self) -> None:
        await cancel_tasks([self.stdout_task, self.stderr_task, self.monitor_task])


def terminate_processes(processes: Iterable[WorkerProcess]) -> int:
    """Terminate every running process in ``processes``; return how many."""
    terminated = 0
    for process in processes:
        if process.is_running():
            process.terminate()
            terminated += 1
    return terminated


class ProcessOrchestrator:
    """Spawns ``config.processes`` worker processes and tracks them.

    A ``process_delay_ms`` wait precedes every spawn, the first included.
    Spawning does not wait for earlier processes to finish.
    """

    def __init__(
        self,
        config: SpawnConfig,
        process_factory: Callable[[int, ProcessConfig], WorkerProcess] = WorkerProcess,
    ):
        self.config = config
        self.process_factory = process_factory
        self.processes: List[WorkerProcess] = []
        self.shutdown_event = asyncio.Event()
        self.shutdown_reason: Optional[str] = None
        self.logger = get_module_logger("ProcessOrchestrator")

    async def run(self) -> int:
        try:
            self.config.validate()
        except StartupConfigError as exc:
            self.logger.error("%s; no processes spawned", exc)
            return EXIT_CONFIG_ERROR

        try:
            await self._spawn_all()
            await self._wait_for_exit()
        finally:
            for process in self.processes:
                await process.close()

        self._log_summary()
        return EXIT_INTERRUPTED if self.shutdown_event.is_set() else EXIT_OK

    async def _spawn_all(self) -> None:
        delay = self.config.process_delay_ms / 1000.0

        for index in range(self.config.processes):
            if await self._wait_or_shutdown(delay):
                self.logger.info(
                    "Shutdown during spawn: %d of %d processes spawned",
                    len(self.processes),
                    self.config.processes,
                )
                return

            process = self.process_factory(index, self.config.process_config(index))
            self.processes.append(process)
            self.logger.info(
                "Spawning worker process %d/%d for identities %s",
                index + 1,
                self.config.processes,
                process.label,
            )
            await process.start()

            if self.shutdown_event.is_set():
                # Shutdown arrived while the child was being created.
                process.terminate()

    async def _wait_or_shutdown(self, delay: float) -> bool:
        if self.shutdown_event.is_set():
            return True
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _wait_for_exit(self) -> None:
        if not self.processes:
            return

        waiters = [asyncio.create_task(process.wait()) for process in self.processes]
        all_exited = asyncio.gather(*waiters)
        shutdown_waiter = asyncio.create_task(self.shutdown_event.wait())
        try:
            await asyncio.wait(
                [all_exited, shutdown_waiter],
                return_when=asyncio.FIRST_COMPLETED,
            )
            if self.shutdown_event.is_set():
                # Reap terminated children so their exit is logged.
                await asyncio.wait(waiters, timeout=SHUTDOWN_REAP_TIMEOUT)
        finally:
            await cancel_tasks([*waiters, all_exited, shutdown_waiter])

    def shutdown(self, reason: str = "signal") -> None:
        """Terminate every tracked process immediately; idempotent."""
        if self.shutdown_event.is_set():
            return
        self.shutdown_reason = reason
        self.shutdown_event.set()
        terminated = terminate_processes(self.processes)
        self.logger.warning(
            "Shutdown requested (%s): terminated %d of %d worker processes",
            reason,
            terminated,
            len(self.processes),
        )

    def _log_summary(self) -> None:
        succeeded = sum(p.stats.succeeded for p in self.processes)
        failed = sum(p.stats.failed for p in self.processes)
        abnormal = sum(p.stats.abnormal for p in self.processes)
        model_errors = sum(1 for p in self.processes if p.stats.model_error)

        self.logger.info("=" * 60)
        self.logger.info(
            "Run finished: %d/%d processes spawned%s",
            len(self.processes),
            self.config.processes,
            f" (interrupted: {self.shutdown_reason})" if self.shutdown_event.is_set() else "",
        )
        self.logger.info(
            "Workers: %d succeeded, %d failed, %d abnormal exits; %d processes without a data model",
            succeeded,
            failed,
            abnormal,
            model_errors,
        )
        for process in self.processes:
            self.logger.info("  %s: %s", process.label, process.describe_exit())
        self.logger.info("=" * 60)


__all__ = [
    "EXIT_OK",
    "EXIT_CONFIG_ERROR",
    "EXIT_INTERRUPTED",
    "ProcessOrchestrator",
    "ProcessState",
    "ProcessStats",
    "WorkerProcess",
    "describe_exit",
    "terminate_processes",
]
