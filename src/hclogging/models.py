"""Data models for log entries and ping payloads."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

# Level used by the internal ticker and startup payloads.
SENTINEL_LEVEL = -1


class Endpoint(Enum):
    PLAIN = ""
    START = "start"
    FAIL = "fail"

    @property
    def suffix(self) -> str:
        return f"/{self.value}" if self.value else ""


@dataclass(frozen=True)
class LogEntry:
    """A log call as seen by the hook, independent of any logging framework."""

    level: int
    level_name: str
    message: str
    time: datetime
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusPayload:
    level: int
    level_string: str
    time: datetime
    message: str
    data: Optional[Dict[str, Any]] = None
    ticker: bool = False

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "level_string": self.level_string,
            "time": _rfc3339(self.time),
            "message": self.message,
            "data": self.data,
            "ticker": self.ticker,
        }


def _rfc3339(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def ticker_payload() -> StatusPayload:
    """The payload a tick reports when no log record has been seen yet."""
    return StatusPayload(
        level=SENTINEL_LEVEL,
        level_string="ticker",
        time=datetime.now(timezone.utc),
        message="",
        data=None,
        ticker=True,
    )


def startup_payload() -> StatusPayload:
    return StatusPayload(
        level=SENTINEL_LEVEL,
        level_string="startup",
        time=datetime.now(timezone.utc),
        message="healthchecks logging hook created",
        data=None,
        ticker=True,
    )
