"""Adapter between the standard ``logging`` module and :class:`HeartbeatHook`."""

import logging
from datetime import datetime, timezone
from typing import Optional

from hclogging.hook import HeartbeatHook, new
from hclogging.models import LogEntry

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime",
}

# Our own diagnostics and the HTTP stack's debug output would otherwise
# turn every ping into another ping.
IGNORED_LOGGERS = ("hclogging", "urllib3", "requests")


def entry_from_record(record: logging.LogRecord) -> LogEntry:
    data = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
    return LogEntry(
        level=record.levelno,
        level_name=record.levelname,
        message=record.getMessage(),
        time=datetime.fromtimestamp(record.created, tz=timezone.utc),
        data=data,
    )


class _IgnoreLoggers(logging.Filter):

    def __init__(self, names=IGNORED_LOGGERS):
        super().__init__()
        self.names = tuple(names)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name or ""
        return not any(name == n or name.startswith(n + ".") for n in self.names)


class HealthchecksHandler(logging.Handler):
    """Forwards every record to a :class:`HeartbeatHook`.

    The handler listens at all levels by default; whether a record fails the
    check is decided by the hook's ``fail_levels``.  Structured attributes
    are taken from ``extra=``, e.g.::

        log.info("backup started", extra={"@hc_job_start": True})
    """

    def __init__(self, hook: HeartbeatHook, level=logging.NOTSET, owns_hook: bool = False):
        super().__init__(level)
        self.hook = hook
        self.owns_hook = owns_hook
        self.addFilter(_IgnoreLoggers())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = entry_from_record(record)
        except Exception:
            self.handleError(record)
            return
        self.hook.handle(entry)

    def close(self) -> None:
        if self.owns_hook:
            self.hook.close()
        super().close()


def install(check_id: str, interval: float, *fail_levels,
            logger: Optional[logging.Logger] = None, **kwargs) -> HealthchecksHandler:
    """Create a hook and attach its handler to *logger* (the root logger by default).

    Extra keyword arguments go to :func:`hclogging.hook.new`.  Closing the
    returned handler closes the hook.
    """
    hook = new(check_id, interval, *fail_levels, **kwargs)
    handler = HealthchecksHandler(hook, owns_hook=True)
    (logger or logging.getLogger()).addHandler(handler)
    return handler
