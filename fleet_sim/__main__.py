"""Allow ``python -m fleet_sim`` to start the launcher.

The launcher re-invokes this module with ``--run-worker`` for each worker
process; the worker's settings arrive in ``FLEET_SIM_*`` environment
variables.
"""

from __future__ import annotations

import sys


def main() -> None:
    if len(sys.argv) >= 2 and sys.argv[1] == '--run-worker':
        from fleet_sim.app.worker import main_worker
        sys.exit(main_worker())

    from fleet_sim import run
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
