from __future__ import annotations

"""Runtime configuration defaults and environment overrides."""

from dataclasses import dataclass, replace
import os


DEFAULT_ENDPOINT_URL = (
    "https://gist.githubusercontent.com/peymano-wmt/32dcb892b06648910ddd40406e37fdab/raw/"
    "db25946fd77c5873b0303b858e861ce724e0dcd0/countries.json"
)
USER_AGENT = "country-lookup/0.1 (+rollback list)"


@dataclass(slots=True)
class RuntimeConfig:
    """Settings supplied to the retrieval controller and its sources."""

    endpoint_url: str = DEFAULT_ENDPOINT_URL
    request_timeout_seconds: float = 10.0
    max_retries: int = 2
    retry_delay_seconds: float = 0.3
    retry_backoff_multiplier: float = 1.0
    search_debounce_seconds: float = 0.3
    fallback_path: str | None = None
    user_agent: str = USER_AGENT


DEFAULT_CONFIG = RuntimeConfig()


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError:
        value = default
    return max(low, min(value, high))


def _env_float(name: str, default: float, *, low: float, high: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except ValueError:
        value = default
    return max(low, min(value, high))


def config_from_env(base: RuntimeConfig = DEFAULT_CONFIG) -> RuntimeConfig:
    """Return a copy of ``base`` with COUNTRY_LOOKUP_* overrides applied.

    Malformed numbers keep the base value; valid numbers are clamped.
    """
    return replace(
        base,
        endpoint_url=os.getenv("COUNTRY_LOOKUP_ENDPOINT_URL", base.endpoint_url).strip(),
        request_timeout_seconds=_env_float(
            "COUNTRY_LOOKUP_TIMEOUT_SECONDS", base.request_timeout_seconds, low=1.0, high=120.0
        ),
        max_retries=_env_int("COUNTRY_LOOKUP_MAX_RETRIES", base.max_retries, low=0, high=10),
        retry_delay_seconds=_env_float(
            "COUNTRY_LOOKUP_RETRY_DELAY_SECONDS", base.retry_delay_seconds, low=0.0, high=10.0
        ),
        retry_backoff_multiplier=_env_float(
            "COUNTRY_LOOKUP_RETRY_BACKOFF", base.retry_backoff_multiplier, low=1.0, high=4.0
        ),
        search_debounce_seconds=_env_float(
            "COUNTRY_LOOKUP_DEBOUNCE_SECONDS", base.search_debounce_seconds, low=0.0, high=10.0
        ),
        fallback_path=os.getenv("COUNTRY_LOOKUP_FALLBACK_PATH") or base.fallback_path,
    )
