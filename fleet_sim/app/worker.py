"""Entry point of a spawned worker process (``python -m fleet_sim --run-worker``)."""

from __future__ import annotations

import asyncio
import os
from typing import Mapping, Optional

from fleet_sim.cli.common import install_exception_handlers
from fleet_sim.core.errors import StartupConfigError
from fleet_sim.core.logging_config import configure_worker_logging
from fleet_sim.core.logging_utils import get_module_logger
from fleet_sim.core.paths import ensure_directories
from fleet_sim.core.process_orchestrator import EXIT_CONFIG_ERROR, EXIT_INTERRUPTED
from fleet_sim.core.spawn_config import ProcessConfig
from fleet_sim.core.status import StatusMessage, StatusType
from fleet_sim.core.worker_process import run_worker_process

logger = get_module_logger("WorkerMain")


def main_worker(environ: Optional[Mapping[str, str]] = None) -> int:
    """Read the propagated settings, set up logging and run the process."""
    environ = os.environ if environ is None else environ

    try:
        config = ProcessConfig.from_env(environ)
    except StartupConfigError as exc:
        StatusMessage.send(StatusType.CONFIG_ERROR, {"error": str(exc)})
        return EXIT_CONFIG_ERROR

    ensure_directories()
    configure_worker_logging(config.label, config.log_level)
    install_exception_handlers(logger)

    logger.info(
        "Worker process %d starting: %d workers, identities %s",
        os.getpid(),
        config.worker_count,
        config.label,
    )

    try:
        return asyncio.run(run_worker_process(config))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
