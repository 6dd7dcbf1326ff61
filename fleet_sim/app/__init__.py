"""Application entrypoints for the fleet simulator."""

from .launcher import build_spawn_config, main, parse_args, run
from .worker import main_worker

__all__ = ["build_spawn_config", "main", "main_worker", "parse_args", "run"]
