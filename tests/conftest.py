"""Shared fixtures for hclogging tests."""

import threading
import time
from datetime import datetime, timezone

import pytest

from hclogging import client as client_mod
from hclogging.errors import PingError
from hclogging.models import LogEntry


class RecordingClient:
    """Stands in for PingClient; records (endpoint, payload) pairs."""

    check_url = "https://hc.example.com/abc"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self._cond = threading.Condition()

    def url_for(self, endpoint):
        return self.check_url + endpoint.suffix

    def send(self, endpoint, payload):
        with self._cond:
            self.sent.append((endpoint, payload))
            self._cond.notify_all()
        if self.fail:
            raise PingError("boom", url=self.url_for(endpoint))

    def wait_for(self, count, timeout=2.0):
        """Block until at least *count* sends were recorded."""
        deadline = time.monotonic() + timeout
        with self._cond:
            while len(self.sent) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def snapshot(self):
        with self._cond:
            return list(self.sent)


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def make_entry():
    """Factory for LogEntry objects with a fixed timestamp."""
    def _make(level=20, level_name="INFO", message="hello", data=None):
        return LogEntry(
            level=level,
            level_name=level_name,
            message=message,
            time=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
            data=data or {},
        )
    return _make


@pytest.fixture(autouse=True)
def _restore_base_url():
    original = client_mod.base_url()
    yield
    client_mod.set_base_url(original)


@pytest.fixture
def failing_client():
    return RecordingClient(fail=True)
