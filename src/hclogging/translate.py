"""Map log entries to ping payloads and payloads to endpoint variants."""

import json
import math
from typing import AbstractSet

from hclogging.models import Endpoint, LogEntry, StatusPayload

# Reserved attribute: a record carrying ``{"@hc_job_start": True}`` pings /start.
JOB_START_KEY = "@hc_job_start"


def translate(entry: LogEntry) -> StatusPayload:
    """Build the payload for a log entry.

    Pure: the same entry always yields the same payload.  The attribute
    mapping is copied so later changes to the entry's dict do not leak in.
    """
    return StatusPayload(
        level=entry.level,
        level_string=entry.level_name,
        time=entry.time,
        message=entry.message,
        data=dict(entry.data),
        ticker=False,
    )


def classify(payload: StatusPayload, fail_levels: AbstractSet[int]) -> Endpoint:
    """Pick the endpoint variant for *payload*.

    * ``level`` in *fail_levels* → FAIL, whatever the attributes say.
    * ``@hc_job_start`` set to ``True`` on a non-ticker payload → START.
    * Anything else → PLAIN.
    """
    if payload.level in fail_levels:
        return Endpoint.FAIL
    if not payload.ticker and payload.data and payload.data.get(JOB_START_KEY) is True:
        return Endpoint.START
    return Endpoint.PLAIN


def encode(payload: StatusPayload) -> bytes:
    """Serialize *payload* to the JSON wire body.

    Attribute values JSON cannot represent are sent as their ``str()``:
    non-string keys, NaN/Infinity, arbitrary objects and reference cycles.
    """
    body = payload.to_dict()
    body["data"] = _jsonable(body["data"], set())
    return json.dumps(body, allow_nan=False).encode("utf-8")


def _jsonable(value, seen: set):
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        if id(value) in seen:
            return "<cycle>"
        seen.add(id(value))
        try:
            if isinstance(value, dict):
                return {
                    k if isinstance(k, str) else str(k): _jsonable(v, seen)
                    for k, v in value.items()
                }
            return [_jsonable(v, seen) for v in value]
        finally:
            seen.discard(id(value))
    return str(value)
