"""The heartbeat loop: a timer raced against log hand-offs in one thread."""

import logging
import queue
import threading
from dataclasses import replace
from typing import Callable, Optional

from hclogging.models import StatusPayload, ticker_payload

logger = logging.getLogger("hclogging")

_CLOSE = object()
_RESET = object()


def check_interval(seconds) -> float:
    """Return *seconds* as a float, raising ``ValueError`` unless positive."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise ValueError(f"interval must be a number of seconds, got {seconds!r}")
    if seconds <= 0:
        raise ValueError(f"interval must be positive, got {seconds}")
    return float(seconds)


class _HandOff:
    __slots__ = ("payload", "taken")

    def __init__(self, payload: StatusPayload):
        self.payload = payload
        self.taken = threading.Event()


class HeartbeatLoop:
    """Re-sends the latest payload every *interval* seconds.

    One daemon thread waits on an inbox with the interval as timeout:

    * timeout: *dispatch* the last payload, re-marked as ticker origin;
    * payload: it replaces the last payload and the timer starts over;
    * interval change: the timer starts over with the new interval;
    * close: the thread exits.

    *dispatch* is called on the loop thread and must not block on I/O.
    """

    def __init__(self, interval: float, dispatch: Callable[[StatusPayload], None],
                 name: str = "hclogging-heartbeat"):
        self._interval = check_interval(interval)
        self._interval_lock = threading.Lock()
        self._dispatch = dispatch
        self._inbox: "queue.Queue" = queue.Queue()
        self._state_lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def interval(self) -> float:
        with self._interval_lock:
            return self._interval

    def set_interval(self, seconds: float) -> None:
        """Change the tick period; the next tick is at most *seconds* away."""
        seconds = check_interval(seconds)
        with self._interval_lock:
            self._interval = seconds
        self._inbox.put(_RESET)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    @property
    def closed(self) -> bool:
        with self._state_lock:
            return self._closed

    def start(self) -> None:
        self._thread.start()

    def hand_off(self, payload: StatusPayload) -> bool:
        """Give *payload* to the loop and wait until it has been taken.

        Returns ``False`` without waiting if the loop is closed or not started.
        """
        msg = _HandOff(payload)
        with self._state_lock:
            if self._closed or not self._thread.is_alive():
                return False
            self._inbox.put(msg)
        # Everything queued before _CLOSE is still taken, so this cannot hang
        # once the thread is running.
        msg.taken.wait()
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the loop.  Safe to call multiple times."""
        with self._state_lock:
            if not self._closed:
                self._closed = True
                self._inbox.put(_CLOSE)
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        last = ticker_payload()
        while True:
            try:
                item = self._inbox.get(timeout=self.interval)
            except queue.Empty:
                self._tick(last)
                continue

            if item is _CLOSE:
                logger.debug("heartbeat loop stopped")
                return
            if item is _RESET:
                continue
            last = item.payload
            item.taken.set()

    def _tick(self, last: StatusPayload) -> None:
        try:
            self._dispatch(replace(last, ticker=True))
        except Exception as e:
            logger.warning("heartbeat tick dispatch failed: %s", e)
