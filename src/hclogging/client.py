"""HTTP client for Healthchecks.io style ping endpoints."""

import logging
import threading
from urllib.parse import quote, urlparse

import requests

from hclogging.errors import ConfigError, PingError
from hclogging.models import Endpoint, StatusPayload
from hclogging.translate import encode

logger = logging.getLogger("hclogging")

DEFAULT_BASE_URL = "https://hc-ping.com"
DEFAULT_TIMEOUT = 2.0

_base_url = DEFAULT_BASE_URL
_base_url_lock = threading.Lock()


def base_url() -> str:
    """Return the process-wide default ping URL."""
    with _base_url_lock:
        return _base_url


def set_base_url(url: str) -> None:
    """Change the process-wide default ping URL.

    Hooks copy this value when they are created, so existing hooks keep
    pinging the URL they started with.
    """
    global _base_url
    with _base_url_lock:
        _base_url = url


def build_check_url(base: str, check_id: str) -> str:
    """Join *base* and *check_id*, raising :class:`ConfigError` if either is unusable."""
    parsed = urlparse(base or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"invalid ping base URL: {base!r}")
    if not isinstance(check_id, str) or not check_id.strip():
        raise ConfigError("check id must be a non-empty string")
    return f"{base.rstrip('/')}/{quote(check_id.strip(), safe='')}"


class PingClient:
    """Sends a single POST per ping.  No retries: a lost ping is tolerated."""

    def __init__(self, base: str, check_id: str, timeout: float = DEFAULT_TIMEOUT):
        self.check_url = build_check_url(base, check_id)
        self.timeout = timeout

    def url_for(self, endpoint: Endpoint) -> str:
        return self.check_url + endpoint.suffix

    def send(self, endpoint: Endpoint, payload: StatusPayload) -> None:
        """POST *payload* to the *endpoint* variant.

        Raises :class:`PingError` when the payload cannot be encoded, and on
        timeout, transport error or a non-2xx response.
        """
        url = self.url_for(endpoint)
        try:
            body = encode(payload)
        except (TypeError, ValueError, RecursionError) as e:
            raise PingError(f"cannot encode payload for {url}: {e}", url=url) from e
        try:
            resp = requests.post(
                url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise PingError(f"ping to {url} timed out after {self.timeout}s", url=url) from e
        except requests.RequestException as e:
            raise PingError(f"ping to {url} failed: {e}", url=url) from e

        if not 200 <= resp.status_code < 300:
            raise PingError(
                f"ping to {url} returned HTTP {resp.status_code}",
                url=url,
                status_code=resp.status_code,
            )
        logger.debug("pinged %s (%s)", url, payload.level_string)
