from __future__ import annotations

"""Fetch error taxonomy and the raw HTTP round trip shared by sources."""

from http.client import HTTPException
import logging
from pathlib import Path
import re
import time
from urllib.error import HTTPError
from urllib.parse import urlparse
from urllib.request import Request, urlopen


LOGGER = logging.getLogger(__name__)
DEBUG_ENABLED = False
DEBUG_DIR = Path("debug/sources")


class FetchError(RuntimeError):
    """Base class for remote fetch failures."""

    retryable = False

    @property
    def description(self) -> str:
        return str(self)


class InvalidEndpointError(FetchError):
    def __init__(self, url: str | None) -> None:
        super().__init__(f"Invalid endpoint URL: {url!r}")
        self.url = url


class HttpStatusError(FetchError):
    retryable = True

    def __init__(self, status_code: int, url: str = "") -> None:
        super().__init__(f"Request failed with HTTP status {status_code}")
        self.status_code = status_code
        self.url = url


class EmptyResponseError(FetchError):
    retryable = True

    def __init__(self) -> None:
        super().__init__("Response body was empty")


class DecodeFailureError(FetchError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Could not decode country list: {reason}")
        self.reason = reason


class TransientFetchError(FetchError):
    """Connection-level failure (timeout, refused, DNS)."""

    retryable = True


def configure_debug(enabled: bool, output_dir: str | Path) -> None:
    global DEBUG_ENABLED, DEBUG_DIR
    DEBUG_ENABLED = enabled
    DEBUG_DIR = Path(output_dir)
    if DEBUG_ENABLED:
        DEBUG_DIR.mkdir(parents=True, exist_ok=True)


def write_debug_snapshot(label: str, content: bytes) -> None:
    if not DEBUG_ENABLED:
        return
    ts = int(time.time() * 1000)
    safe_label = re.sub(r"[^a-zA-Z0-9._-]+", "_", label)[:80]
    DEBUG_DIR.mkdir(parents=True, exist_ok=True)
    (DEBUG_DIR / f"{ts}_{safe_label}.json").write_bytes(content)


def validate_endpoint(url: str | None) -> str:
    if not url or not isinstance(url, str):
        raise InvalidEndpointError(url)
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidEndpointError(url)
    return url.strip()


def fetch_bytes(url: str, *, timeout_seconds: float, user_agent: str) -> bytes:
    """Perform exactly one GET and return the body.

    Raises HttpStatusError for non-2xx responses and TransientFetchError for
    connection-level failures.
    """
    request = Request(validate_endpoint(url), headers={"User-Agent": user_agent})
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            status = int(getattr(response, "status", 200))
            if not (200 <= status < 300):
                raise HttpStatusError(status, url)
            return response.read()
    except HTTPError as exc:
        raise HttpStatusError(exc.code, url) from exc
    except (OSError, HTTPException) as exc:
        # URLError and socket timeouts are OSError subclasses.
        raise TransientFetchError(f"Network request failed: {exc}") from exc
