"""The hook: turns log entries into pings and keeps the heartbeat loop fed."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from hclogging.client import PingClient
from hclogging.config import HookConfig
from hclogging.errors import ConfigError, PingError, StartupPingError
from hclogging.loop import HeartbeatLoop
from hclogging.models import Endpoint, LogEntry, StatusPayload, startup_payload
from hclogging.translate import classify, translate

logger = logging.getLogger("hclogging")

MAX_PING_WORKERS = 4

# Sends queued or in flight beyond this are dropped rather than buffered.
MAX_PENDING_PINGS = 64

# Set on threads while they run a send or the error callback, so records the
# callback logs are not turned into more pings.
_sending = threading.local()


class HeartbeatHook:
    """Pings a check on every log entry and re-sends the latest one on a timer.

    Build it with :func:`new` (or :meth:`from_config`), which performs the
    startup ping.  After that, :meth:`handle` never raises: failed pings are
    counted, logged at WARNING and passed to *on_error* if given.
    """

    def __init__(self, config: HookConfig,
                 on_error: Optional[Callable[[PingError], None]] = None,
                 client: Optional[PingClient] = None,
                 max_pending: int = MAX_PENDING_PINGS):
        self.config = config
        self.client = client or PingClient(config.base_url, config.check_id, config.timeout)
        self.on_error = on_error
        self.failed_pings = 0
        self.dropped_pings = 0
        self._counter_lock = threading.Lock()
        self._pending = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=MAX_PING_WORKERS, thread_name_prefix="hclogging-ping",
        )
        self._loop = HeartbeatLoop(config.interval, self._submit)

    @classmethod
    def from_config(cls, config: Dict[str, Any],
                    on_error: Optional[Callable[[PingError], None]] = None) -> "HeartbeatHook":
        """Create and start a hook from a loaded config dict."""
        hook = cls(HookConfig.from_dict(config), on_error=on_error)
        hook.start()
        return hook

    @property
    def interval(self) -> float:
        return self._loop.interval

    def set_interval(self, seconds: float) -> None:
        """Change the heartbeat period, effective from the next tick."""
        try:
            self._loop.set_interval(seconds)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @property
    def running(self) -> bool:
        return self._loop.running

    def start(self) -> None:
        """Send the startup ping, then start the heartbeat loop.

        Raises :class:`StartupPingError` if the ping fails; no thread is left
        running in that case.
        """
        payload = startup_payload()
        try:
            self.client.send(classify(payload, self.config.fail_levels), payload)
        except PingError as e:
            self._executor.shutdown(wait=False)
            raise StartupPingError(e) from e
        self._loop.start()
        logger.info("heartbeat hook started for %s every %gs",
                    self.client.check_url, self.config.interval)

    def handle(self, entry: LogEntry) -> None:
        """Ping for *entry* in the background and make it the next tick's payload.

        Entries logged from inside a send or the *on_error* callback are
        ignored.
        """
        if getattr(_sending, "active", False):
            return
        try:
            payload = translate(entry)
            self._submit(payload)
            self._loop.hand_off(payload)
        except Exception as e:
            logger.warning("heartbeat hook could not handle log entry: %s", e)

    def close(self) -> None:
        """Stop the loop and wait for in-flight pings.  Safe to call twice."""
        self._loop.close()
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _submit(self, payload: StatusPayload) -> None:
        endpoint = classify(payload, self.config.fail_levels)
        if not self._pending.acquire(blocking=False):
            with self._counter_lock:
                self.dropped_pings += 1
            logger.debug("too many pending pings, dropping %s ping", endpoint.name)
            return
        try:
            self._executor.submit(self._send, endpoint, payload)
        except RuntimeError:
            # Executor already shut down.
            self._pending.release()
            logger.debug("hook closed, dropping %s ping", endpoint.name)

    def _send(self, endpoint: Endpoint, payload: StatusPayload) -> None:
        _sending.active = True
        try:
            self.client.send(endpoint, payload)
        except PingError as e:
            self._report(e)
        except Exception as e:
            err = PingError(f"{endpoint.name} ping failed: {e!r}")
            err.__cause__ = e
            self._report(err)
        finally:
            _sending.active = False
            self._pending.release()

    def _report(self, err: PingError) -> None:
        with self._counter_lock:
            self.failed_pings += 1
        logger.warning("heartbeat ping failed: %s", err)
        if self.on_error is None:
            return
        try:
            self.on_error(err)
        except Exception as e:
            logger.warning("heartbeat error callback raised: %s", e)


def new(check_id: str, interval: float, *fail_levels,
        timeout: Optional[float] = None, base_url: Optional[str] = None,
        on_error: Optional[Callable[[PingError], None]] = None) -> HeartbeatHook:
    """Create a started hook pinging *check_id* every *interval* seconds.

    *fail_levels* are logging levels (numbers or names) that mark the check
    as failed.  Raises :class:`ConfigError` for a bad URL, check id or
    interval, and :class:`StartupPingError` if the startup ping fails.
    """
    kwargs: Dict[str, Any] = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    if base_url is not None:
        kwargs["base_url"] = base_url
    config = HookConfig(
        check_id=check_id, interval=interval, fail_levels=frozenset(fail_levels), **kwargs,
    )
    hook = HeartbeatHook(config, on_error=on_error)
    hook.start()
    return hook
