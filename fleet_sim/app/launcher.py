import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from fleet_sim.cli.common import (
    LOG_LEVELS,
    add_logging_arguments,
    install_exception_handlers,
    install_signal_handlers,
    log_startup,
    non_negative_int,
    positive_int,
    remove_signal_handlers,
)
from fleet_sim.core.config_manager import get_config_manager
from fleet_sim.core.logging_config import configure_logging
from fleet_sim.core.logging_utils import get_module_logger
from fleet_sim.core.paths import CONFIG_PATH, DEFAULT_DATA_MODEL, LAUNCHER_LOG_FILE, ensure_directories
from fleet_sim.core.process_orchestrator import EXIT_INTERRUPTED, ProcessOrchestrator
from fleet_sim.core.spawn_config import DEFAULT_ACS_URL, SpawnConfig


logger = get_module_logger("Launcher")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments with config file defaults."""
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="key = value file supplying defaults for the options below (default: config.txt)",
    )
    known, _ = pre_parser.parse_known_args(argv)

    config_manager = get_config_manager()
    config = config_manager.read_config(known.config)

    parser = argparse.ArgumentParser(
        description="Fleet simulator - spawn many simulated devices against a management server",
        parents=[pre_parser],
    )

    parser.add_argument(
        "-u", "--acs-url",
        type=str,
        default=config_manager.get_str(config, 'acs_url', default=DEFAULT_ACS_URL),
        help=f"Management server URL (default: {DEFAULT_ACS_URL})",
    )

    parser.add_argument(
        "-f", "--data-model",
        type=Path,
        default=Path(config_manager.get_str(config, 'data_model', default=str(DEFAULT_DATA_MODEL))),
        help="Data model file: .csv for the tabular format, anything else is read as JSON",
    )

    parser.add_argument(
        "-p", "--processes",
        type=positive_int,
        default=config_manager.get_int(config, 'processes', default=1),
        help="Number of worker processes (default: 1)",
    )

    parser.add_argument(
        "-w", "--workers",
        dest="workers",
        type=positive_int,
        default=config_manager.get_int(config, 'workers', default=10),
        help="Simulated devices per worker process (default: 10)",
    )

    parser.add_argument(
        "--process-delay",
        type=non_negative_int,
        default=config_manager.get_int(config, 'process_delay', default=5000),
        help="Milliseconds to wait before spawning each process (default: 5000)",
    )

    parser.add_argument(
        "--worker-delay",
        type=non_negative_int,
        default=config_manager.get_int(config, 'worker_delay', default=20),
        help="Milliseconds between device spawns within a process (default: 20)",
    )

    parser.add_argument(
        "-s", "--serial-offset",
        type=non_negative_int,
        default=config_manager.get_int(config, 'serial_offset', default=0),
        help="First serial number handed out (default: 0)",
    )

    add_logging_arguments(
        parser,
        default_log_level=config_manager.get_str(config, 'log_level', default='info'),
        default_log_file=LAUNCHER_LOG_FILE,
        default_console_output=config_manager.get_bool(config, 'console_output', default=True),
    )

    args = parser.parse_args(argv)

    # argparse does not check choices against defaults taken from the config file.
    if args.log_level not in LOG_LEVELS:
        parser.error(
            f"invalid log_level {args.log_level!r} in {known.config} "
            f"(choose from {', '.join(sorted(LOG_LEVELS))})"
        )

    return args


def build_spawn_config(args: argparse.Namespace) -> SpawnConfig:
    return SpawnConfig(
        acs_url=args.acs_url,
        data_model=str(args.data_model),
        processes=args.processes,
        workers_per_process=args.workers,
        process_delay_ms=args.process_delay,
        worker_delay_ms=args.worker_delay,
        serial_offset=args.serial_offset,
        log_level=args.log_level,
    )


async def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point of the launcher.

    Validates the run configuration, then hands it to the
    ProcessOrchestrator, which spawns the worker processes one by one.
    SIGINT/SIGTERM terminate every spawned process immediately; there is
    no graceful drain of running devices.

    Returns the process exit code: 0 for a normal run, 1 for an invalid
    configuration (nothing spawned), 130 when interrupted.
    """
    args = parse_args(argv)

    ensure_directories()

    configure_logging(
        args.log_level,
        force=True,
        console=args.console_output,
        log_file=args.log_file,
    )

    spawn_config = build_spawn_config(args)

    log_startup(
        logger,
        "Fleet simulator - launcher starting",
        acs_url=spawn_config.acs_url,
        data_model=spawn_config.data_model,
        processes=spawn_config.processes,
        workers_per_process=spawn_config.workers_per_process,
        process_delay_ms=spawn_config.process_delay_ms,
        worker_delay_ms=spawn_config.worker_delay_ms,
        serial_offset=spawn_config.serial_offset,
        log_file=args.log_file,
    )

    orchestrator = ProcessOrchestrator(spawn_config)

    loop = asyncio.get_running_loop()
    install_exception_handlers(logger, loop)
    install_signal_handlers(orchestrator, loop)
    try:
        exit_code = await orchestrator.run()
    finally:
        remove_signal_handlers(loop)

    logger.info("Launcher stopped (exit code %d)", exit_code)
    return exit_code


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return EXIT_INTERRUPTED
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
