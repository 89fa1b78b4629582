"""Tests for the logging.Handler adapter."""

import logging
from datetime import timezone
from unittest.mock import patch, MagicMock

import pytest

from hclogging.config import HookConfig
from hclogging.handler import HealthchecksHandler, entry_from_record, install
from hclogging.hook import HeartbeatHook
from hclogging.models import Endpoint
from hclogging.translate import JOB_START_KEY


@pytest.fixture
def test_logger():
    """An isolated logger that does not propagate to root."""
    lg = logging.getLogger("tests.hclogging.handler")
    lg.setLevel(logging.DEBUG)
    lg.propagate = False
    yield lg
    for h in lg.handlers[:]:
        lg.removeHandler(h)


class TestEntryFromRecord:
    def test_basic_fields(self):
        record = logging.makeLogRecord({
            "name": "app", "levelno": logging.ERROR, "levelname": "ERROR",
            "msg": "disk %s full", "args": ("sda",), "created": 1714564800.0,
        })
        entry = entry_from_record(record)
        assert entry.level == logging.ERROR
        assert entry.level_name == "ERROR"
        assert entry.message == "disk sda full"
        assert entry.time.tzinfo == timezone.utc
        assert entry.time.timestamp() == 1714564800.0
        assert entry.data == {}

    def test_extra_becomes_data(self):
        record = logging.makeLogRecord({
            "msg": "started", "job": "backup", JOB_START_KEY: True,
        })
        entry = entry_from_record(record)
        assert entry.data == {"job": "backup", JOB_START_KEY: True}

    def test_formatted_message_not_in_data(self):
        record = logging.makeLogRecord({"msg": "x"})
        logging.Formatter("%(asctime)s %(message)s").format(record)
        assert entry_from_record(record).data == {}


class TestHealthchecksHandler:
    def test_forwards_all_levels(self, test_logger):
        hook = MagicMock()
        test_logger.addHandler(HealthchecksHandler(hook))
        test_logger.debug("d")
        test_logger.info("i", extra={"k": 1})
        test_logger.critical("c")
        assert hook.handle.call_count == 3
        entry = hook.handle.call_args_list[1][0][0]
        assert entry.message == "i"
        assert entry.data == {"k": 1}

    @pytest.mark.parametrize("name", ["hclogging", "hclogging.client",
                                      "urllib3.connectionpool", "requests"])
    def test_ignores_own_and_http_loggers(self, name):
        hook = MagicMock()
        handler = HealthchecksHandler(hook)
        handler.handle(logging.makeLogRecord({"name": name, "msg": "x"}))
        hook.handle.assert_not_called()

    def test_similar_names_not_ignored(self):
        hook = MagicMock()
        handler = HealthchecksHandler(hook)
        handler.handle(logging.makeLogRecord({"name": "hclogging_app", "msg": "x"}))
        hook.handle.assert_called_once()

    def test_bad_format_args_use_handle_error(self):
        hook = MagicMock()
        handler = HealthchecksHandler(hook)
        record = logging.makeLogRecord({"msg": "%d", "args": ("nope",)})
        with patch.object(handler, "handleError") as mock_err:
            handler.handle(record)
        mock_err.assert_called_once_with(record)
        hook.handle.assert_not_called()

    def test_close_closes_owned_hook(self):
        hook = MagicMock()
        HealthchecksHandler(hook, owns_hook=True).close()
        hook.close.assert_called_once()

    def test_close_leaves_shared_hook(self):
        hook = MagicMock()
        HealthchecksHandler(hook).close()
        hook.close.assert_not_called()


class TestInstall:
    def test_attaches_handler(self, test_logger):
        with patch("hclogging.handler.new") as mock_new:
            handler = install("abc", 30, logging.ERROR, logger=test_logger, timeout=5)
        mock_new.assert_called_once_with("abc", 30, logging.ERROR, timeout=5)
        assert handler in test_logger.handlers
        assert handler.hook is mock_new.return_value
        assert handler.owns_hook


class TestEndToEnd:
    def test_error_record_pings_fail(self, test_logger, recording_client):
        config = HookConfig(check_id="abc", interval=30, fail_levels=frozenset({logging.ERROR}),
                            base_url="https://hc.example.com")
        hook = HeartbeatHook(config, client=recording_client)
        hook.start()
        handler = HealthchecksHandler(hook, owns_hook=True)
        test_logger.addHandler(handler)
        try:
            test_logger.info("job", extra={JOB_START_KEY: True})
            test_logger.error("broken", extra={"code": 3})
            assert recording_client.wait_for(3)
        finally:
            handler.close()

        sent = recording_client.snapshot()
        endpoints = sorted(e.name for e, _ in sent[1:])
        assert endpoints == ["FAIL", "START"]
        fail_payload = next(p for e, p in sent if e is Endpoint.FAIL)
        assert fail_payload.data == {"code": 3}
        assert fail_payload.level_string == "ERROR"

    def test_error_callback_logging_does_not_feed_back(self, test_logger, recording_client):
        """An on_error that logs to the watched logger must not cause more pings."""
        config = HookConfig(check_id="abc", interval=30, base_url="https://hc.example.com")
        hook = HeartbeatHook(
            config,
            on_error=lambda err: test_logger.warning("heartbeat lost: %s", err),
            client=recording_client,
        )
        hook.start()
        handler = HealthchecksHandler(hook, owns_hook=True)
        test_logger.addHandler(handler)
        recording_client.fail = True
        try:
            test_logger.info("one record")
            assert recording_client.wait_for(2)
        finally:
            handler.close()

        assert len(recording_client.snapshot()) == 2
        assert hook.failed_pings == 1

    def test_other_threads_still_forwarded_during_failures(self, test_logger, recording_client):
        config = HookConfig(check_id="abc", interval=30, base_url="https://hc.example.com")
        hook = HeartbeatHook(config, client=recording_client)
        hook.start()
        handler = HealthchecksHandler(hook, owns_hook=True)
        test_logger.addHandler(handler)
        recording_client.fail = True
        try:
            test_logger.info("first")
            test_logger.info("second")
            assert recording_client.wait_for(3)
        finally:
            handler.close()
        assert hook.failed_pings == 2
