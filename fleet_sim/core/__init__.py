"""Core building blocks: data model, spawn configuration and orchestration."""

from .errors import (
    DataModelLoadError,
    EndpointSessionError,
    FleetSimError,
    StartupConfigError,
    WorkerRuntimeError,
)
from .logging_utils import get_module_logger
from .process_orchestrator import ProcessOrchestrator, WorkerProcess, terminate_processes
from .spawn_config import ProcessConfig, SpawnConfig, format_identity
from .worker_spawner import SpawnSummary, WorkerSpawner
from .worker_unit import OutcomeKind, WorkerOutcome, WorkerUnit

__all__ = [
    "DataModelLoadError",
    "EndpointSessionError",
    "FleetSimError",
    "StartupConfigError",
    "WorkerRuntimeError",
    "get_module_logger",
    "ProcessOrchestrator",
    "WorkerProcess",
    "terminate_processes",
    "ProcessConfig",
    "SpawnConfig",
    "format_identity",
    "SpawnSummary",
    "WorkerSpawner",
    "OutcomeKind",
    "WorkerOutcome",
    "WorkerUnit",
]
