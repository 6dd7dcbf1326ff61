"""Fleet simulator: many simulated devices, one management server."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

from .app.launcher import main, run as _run_launcher

try:
    __version__ = metadata.version("fleet-sim")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper that runs the async launcher entry point."""
    return _run_launcher(list(argv) if argv is not None else None)


__all__ = ["__version__", "main", "run"]
