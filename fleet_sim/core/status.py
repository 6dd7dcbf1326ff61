"""Newline-delimited JSON status lines from worker processes to the launcher."""

import datetime
import json
import sys
from typing import Any, Dict, Optional

from fleet_sim.core.logging_utils import get_module_logger

logger = get_module_logger("StatusProtocol")


class StatusType:
    PROCESS_READY = "process_ready"
    WORKER_STARTED = "worker_started"
    WORKER_DONE = "worker_done"
    WORKER_ERROR = "worker_error"
    WORKER_EXIT = "worker_exit"
    MODEL_ERROR = "model_error"
    CONFIG_ERROR = "config_error"
    PROCESS_SUMMARY = "process_summary"


class StatusMessage:

    def __init__(self, raw_json: str):
        self.raw = raw_json.strip()
        self.data = None
        self.status_type = None
        self.payload: Dict[str, Any] = {}
        self.valid = False

        self._parse()

    @staticmethod
    def send(status: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Write one status line to the parent process."""
        message = {
            "type": "status",
            "status": status,
            "timestamp": datetime.datetime.now().isoformat(),
            "data": data or {},
        }
        print(json.dumps(message), file=sys.stdout, flush=True)

    def _parse(self) -> None:
        try:
            self.data = json.loads(self.raw)
        except json.JSONDecodeError:
            # Plain text output from the child, not a status line.
            return

        if not isinstance(self.data, dict):
            logger.debug("Status message is not a dict: %s", self.raw)
            return

        if self.data.get("type") != "status":
            logger.debug("Non-status message: %s", self.data.get("type"))
            return

        self.status_type = self.data.get("status")
        payload = self.data.get("data")
        self.payload = payload if isinstance(payload, dict) else {}
        self.valid = self.status_type is not None

    def is_valid(self) -> bool:
        return self.valid

    def get_status_type(self) -> Optional[str]:
        return self.status_type

    def get_payload(self) -> Dict[str, Any]:
        return self.payload

    def is_error(self) -> bool:
        return self.status_type in (
            StatusType.WORKER_ERROR,
            StatusType.WORKER_EXIT,
            StatusType.MODEL_ERROR,
            StatusType.CONFIG_ERROR,
        )

    def get_error_message(self) -> Optional[str]:
        if not self.is_error():
            return None
        return self.payload.get("error") or self.payload.get("message")
