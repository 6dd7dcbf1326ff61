"""In-process stand-ins for external services."""

from .acs_server import ACS_RECORDER, AcsRecorder, create_acs_app

__all__ = ["ACS_RECORDER", "AcsRecorder", "create_acs_app"]
