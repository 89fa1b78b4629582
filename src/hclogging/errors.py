"""Exception types for hclogging."""

from typing import Optional


class HeartbeatError(Exception):
    """Base class for all hclogging errors."""


class ConfigError(HeartbeatError):
    """Bad base URL, check id, interval or config file.  Fatal to construction."""


class PingError(HeartbeatError):
    """A single ping could not be delivered.

    Raised by :class:`~hclogging.client.PingClient`; the hook absorbs it so the
    logging call path never sees it.
    """

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class StartupPingError(ConfigError):
    """The mandatory ping performed while constructing a hook failed."""

    def __init__(self, cause: PingError):
        super().__init__(f"startup ping failed: {cause}")
        self.cause = cause
