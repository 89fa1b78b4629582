"""hclogging - Healthchecks.io dead man's switch for Python logging."""

__version__ = "0.3.0"

from hclogging.client import PingClient, base_url, set_base_url  # noqa: E402
from hclogging.config import HookConfig  # noqa: E402
from hclogging.errors import (  # noqa: E402
    ConfigError, HeartbeatError, PingError, StartupPingError,
)
from hclogging.handler import HealthchecksHandler, install  # noqa: E402
from hclogging.hook import HeartbeatHook, new  # noqa: E402
from hclogging.models import Endpoint, LogEntry, StatusPayload  # noqa: E402
from hclogging.translate import JOB_START_KEY  # noqa: E402

__all__ = [
    "ConfigError", "Endpoint", "HealthchecksHandler", "HeartbeatError",
    "HeartbeatHook", "HookConfig", "JOB_START_KEY", "LogEntry", "PingClient",
    "PingError", "StartupPingError", "StatusPayload", "base_url", "install",
    "new", "set_base_url",
]
