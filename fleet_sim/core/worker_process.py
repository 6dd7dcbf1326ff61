"""Body of a spawned worker process: load the model, then spawn workers."""

from __future__ import annotations

import os
from typing import Any, Callable, Dict

from .data_model import load_device_model
from .endpoint import HttpEndpoint
from .errors import DataModelLoadError
from .logging_utils import get_module_logger
from .spawn_config import ProcessConfig
from .status import StatusMessage, StatusType
from .worker_spawner import WorkerSpawner
from .worker_unit import SimulatedEndpoint


async def run_worker_process(
    config: ProcessConfig,
    endpoint_factory: Callable[[], SimulatedEndpoint] = HttpEndpoint,
    reporter: Callable[[str, Dict[str, Any]], None] = StatusMessage.send,
) -> int:
    """Run one worker process to completion and return its exit code.

    A data model that cannot be loaded is fatal to this process only: the
    error is logged with the identity range and no worker is started.
    """
    logger = get_module_logger("WorkerProcess").getChild(config.label)

    try:
        model = await load_device_model(config.data_model)
    except DataModelLoadError as exc:
        logger.error("Cannot load data model, no workers started: %s", exc)
        reporter(StatusType.MODEL_ERROR, {"range": config.label, "error": str(exc)})
        return 1

    logger.info("Loaded data model %s (%d parameters)", model.source, len(model))
    reporter(
        StatusType.PROCESS_READY,
        {"range": config.label, "pid": os.getpid(), "parameters": len(model)},
    )

    spawner = WorkerSpawner(model, config, endpoint_factory, reporter=reporter)
    summary = await spawner.run()

    reporter(StatusType.PROCESS_SUMMARY, {"range": config.label, **summary.as_dict()})
    return 0


__all__ = ["run_worker_process"]
