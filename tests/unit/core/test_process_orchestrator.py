"""Unit tests for the process orchestrator using in-memory worker processes."""

import asyncio
import json
import os
import signal

import pytest

from fleet_sim.cli.common import install_signal_handlers, remove_signal_handlers
from fleet_sim.core.process_orchestrator import (
    EXIT_CONFIG_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    ProcessOrchestrator,
    ProcessState,
    WorkerProcess,
    describe_exit,
    terminate_processes,
)
from fleet_sim.core.spawn_config import SpawnConfig
from fleet_sim.core.status import StatusMessage


def make_config(**overrides) -> SpawnConfig:
    values = dict(
        acs_url="http://127.0.0.1:7547/",
        data_model="model.csv",
        processes=3,
        workers_per_process=2,
        process_delay_ms=500,
        worker_delay_ms=0,
    )
    values.update(overrides)
    return SpawnConfig(**values)


def status_line(status, **data) -> StatusMessage:
    return StatusMessage(json.dumps({"type": "status", "status": status, "data": data}))


class FakeProcess(WorkerProcess):
    """Worker process that never leaves the interpreter."""

    def __init__(self, index, config, events, hold=False, on_start=None):
        super().__init__(index, config)
        self.events = events
        self.hold = hold
        self.on_start = on_start
        self.running = False
        self.terminated = False

    async def start(self):
        self.events.append(("spawn", self.index))
        self.running = True
        self.state = ProcessState.RUNNING
        if self.on_start is not None:
            self.on_start(self)
        if not self.hold and self.running:
            self.finish(0)
        return True

    def is_running(self):
        return self.running

    def terminate(self):
        if not self.running:
            return
        self.terminated = True
        self._terminate_requested = True
        self.finish(-signal.SIGTERM)

    def finish(self, returncode):
        self.running = False
        self.exit_code = returncode
        self.state = ProcessState.TERMINATED if self._terminate_requested else ProcessState.EXITED
        self._exited.set()


class RecordingOrchestrator(ProcessOrchestrator):
    """Records stagger waits instead of sleeping through them."""

    def __init__(self, config, events, **fake_kwargs):
        super().__init__(config, process_factory=self._make_process)
        self.events = events
        self.fake_kwargs = fake_kwargs

    def _make_process(self, index, process_config):
        return FakeProcess(index, process_config, self.events, **self.fake_kwargs)

    async def _wait_or_shutdown(self, delay):
        self.events.append(("wait", delay))
        return await super()._wait_or_shutdown(0)


class TestSpawning:

    @pytest.mark.asyncio
    async def test_every_spawn_is_preceded_by_a_wait(self):
        events = []
        orchestrator = RecordingOrchestrator(make_config(), events)

        rc = await orchestrator.run()

        assert rc == EXIT_OK
        assert events == [
            ("wait", 0.5), ("spawn", 0),
            ("wait", 0.5), ("spawn", 1),
            ("wait", 0.5), ("spawn", 2),
        ]

    @pytest.mark.asyncio
    async def test_process_shares_are_contiguous(self):
        orchestrator = RecordingOrchestrator(
            make_config(processes=2, workers_per_process=3, serial_offset=100), []
        )

        await orchestrator.run()

        labels = [p.label for p in orchestrator.processes]
        assert labels == ["000100-000102", "000103-000105"]

    @pytest.mark.asyncio
    async def test_spawning_does_not_wait_for_earlier_processes(self):
        events = []
        orchestrator = RecordingOrchestrator(make_config(processes=3), events, hold=True)

        run = asyncio.create_task(orchestrator.run())
        for _ in range(50):
            if len(orchestrator.processes) == 3:
                break
            await asyncio.sleep(0)

        assert [p.is_running() for p in orchestrator.processes] == [True, True, True]
        assert not run.done()

        for process in orchestrator.processes:
            process.finish(0)
        assert await run == EXIT_OK

    @pytest.mark.asyncio
    async def test_invalid_url_spawns_nothing(self):
        def factory(index, config):
            raise AssertionError("no process may be spawned")

        orchestrator = ProcessOrchestrator(make_config(acs_url="ftp://host"), process_factory=factory)

        rc = await orchestrator.run()

        assert rc == EXIT_CONFIG_ERROR
        assert orchestrator.processes == []

    @pytest.mark.asyncio
    async def test_crashed_process_is_not_restarted(self):
        events = []

        def crash_first(process):
            if process.index == 0:
                process.finish(1)

        orchestrator = RecordingOrchestrator(make_config(processes=2), events, on_start=crash_first)

        rc = await orchestrator.run()

        assert rc == EXIT_OK
        assert [e for e in events if e[0] == "spawn"] == [("spawn", 0), ("spawn", 1)]
        assert orchestrator.processes[0].exit_code == 1


class TestShutdown:

    @pytest.mark.asyncio
    async def test_interrupt_during_spawn(self):
        events = []
        holder = {}

        def interrupt_at_second(process):
            if process.index == 1:
                holder["orchestrator"].shutdown("SIGINT")

        orchestrator = RecordingOrchestrator(
            make_config(processes=3), events, hold=True, on_start=interrupt_at_second
        )
        holder["orchestrator"] = orchestrator

        rc = await orchestrator.run()

        assert rc == EXIT_INTERRUPTED
        assert len(orchestrator.processes) == 2
        assert all(p.terminated for p in orchestrator.processes)
        assert ("spawn", 2) not in events
        assert orchestrator.shutdown_reason == "SIGINT"

    @pytest.mark.asyncio
    async def test_interrupt_after_spawn_terminates_all(self):
        holder = {}

        def interrupt_after_last(process):
            if process.index == 2:
                asyncio.get_running_loop().call_soon(holder["orchestrator"].shutdown, "SIGTERM")

        orchestrator = RecordingOrchestrator(make_config(), [], hold=True, on_start=interrupt_after_last)
        holder["orchestrator"] = orchestrator

        rc = await orchestrator.run()

        assert rc == EXIT_INTERRUPTED
        assert len(orchestrator.processes) == 3
        assert all(p.terminated for p in orchestrator.processes)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sig", [signal.SIGINT, signal.SIGTERM])
    async def test_signal_routes_to_shutdown(self, sig):
        def signal_after_last(process):
            if process.index == 2:
                os.kill(os.getpid(), sig)

        orchestrator = RecordingOrchestrator(make_config(), [], hold=True, on_start=signal_after_last)
        loop = asyncio.get_running_loop()
        install_signal_handlers(orchestrator, loop)
        try:
            rc = await asyncio.wait_for(orchestrator.run(), timeout=5)
        finally:
            remove_signal_handlers(loop)

        assert rc == EXIT_INTERRUPTED
        assert orchestrator.shutdown_reason == sig.name
        assert len(orchestrator.processes) == 3
        assert all(p.terminated for p in orchestrator.processes)

    @pytest.mark.asyncio
    async def test_interrupt_before_first_spawn(self):
        events = []
        orchestrator = RecordingOrchestrator(make_config(), events)
        orchestrator.shutdown("SIGINT")

        rc = await orchestrator.run()

        assert rc == EXIT_INTERRUPTED
        assert orchestrator.processes == []

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self):
        events = []
        orchestrator = RecordingOrchestrator(make_config(processes=1), events, hold=True)
        orchestrator.shutdown("SIGINT")
        orchestrator.shutdown("SIGTERM")

        assert orchestrator.shutdown_reason == "SIGINT"

    @pytest.mark.asyncio
    async def test_terminate_processes_skips_exited(self):
        config = make_config()
        events = []
        running = FakeProcess(0, config.process_config(0), events, hold=True)
        exited = FakeProcess(1, config.process_config(1), events, hold=False)
        await running.start()
        await exited.start()

        assert terminate_processes([running, exited]) == 1
        assert running.terminated
        assert not exited.terminated


class TestWorkerProcess:

    def test_status_lines_update_stats(self):
        process = WorkerProcess(0, make_config().process_config(0))

        process.handle_status(status_line("process_ready", parameters=46))
        process.handle_status(status_line("worker_done", identity="000000"))
        process.handle_status(status_line("worker_error", identity="000001", error="refused"))
        process.handle_status(status_line("worker_exit", identity="000001", exit_code=2))

        assert process.state is ProcessState.RUNNING
        assert process.stats.succeeded == 1
        assert process.stats.failed == 1
        assert process.stats.abnormal == 1

    def test_model_error_is_recorded(self):
        process = WorkerProcess(0, make_config().process_config(0))

        process.handle_status(status_line("model_error", range="000000-000001", error="model.csv: cannot read"))

        assert process.stats.model_error == "model.csv: cannot read"

    def test_env_carries_process_share(self, project_root):
        config = make_config(serial_offset=40)
        process = WorkerProcess(1, config.process_config(1))

        env = process.build_env()

        assert env["FLEET_SIM_SERIAL_START"] == "42"
        assert env["FLEET_SIM_WORKER_COUNT"] == "2"
        assert str(project_root) in env["PYTHONPATH"]
        assert process.build_command()[1:] == ["-m", "fleet_sim", "--run-worker"]

    @pytest.mark.asyncio
    async def test_start_failure_is_reported(self, tmp_path, monkeypatch):
        process = WorkerProcess(0, make_config().process_config(0))
        monkeypatch.setattr(process, "build_command", lambda: [str(tmp_path / "missing-interpreter")])

        started = await process.start()

        assert started is False
        assert process.state is ProcessState.FAILED
        assert await process.wait() is None
        assert process.describe_exit() == "failed to start"
        assert not process.is_running()


@pytest.mark.parametrize("returncode, expected", [
    (None, "still running"),
    (0, "exit code 0"),
    (1, "exit code 1"),
    (-signal.SIGTERM, "killed by SIGTERM"),
])
def test_describe_exit(returncode, expected):
    assert describe_exit(returncode) == expected
