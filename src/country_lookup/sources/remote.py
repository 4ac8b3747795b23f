from __future__ import annotations

import json
import logging

from country_lookup.config import DEFAULT_CONFIG, RuntimeConfig
from country_lookup.models import Record, decode_records
from country_lookup.sources.base import RemoteSource
from country_lookup.sources.common import (
    DecodeFailureError,
    EmptyResponseError,
    fetch_bytes,
    write_debug_snapshot,
)
from country_lookup.tracing import traceable


LOGGER = logging.getLogger(__name__)


def parse_payload(body: bytes) -> list[Record]:
    """Turn a response body into records, mapping every shape problem to DecodeFailureError."""
    if not body:
        raise EmptyResponseError()
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeFailureError(str(exc)) from exc
    try:
        return decode_records(payload)
    except ValueError as exc:
        raise DecodeFailureError(str(exc)) from exc


class RemoteRecordSource(RemoteSource):
    """Fetches the country list from the configured JSON endpoint.

    Every call performs exactly one HTTP round trip; nothing is cached.
    """

    def __init__(self, config: RuntimeConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    @traceable(name="remote_fetch", run_type="tool")
    def fetch(self) -> list[Record]:
        url = self.config.endpoint_url
        body = fetch_bytes(
            url,
            timeout_seconds=self.config.request_timeout_seconds,
            user_agent=self.config.user_agent,
        )
        write_debug_snapshot("remote_payload", body)
        records = parse_payload(body)
        LOGGER.info("Fetched %d records from %s", len(records), url)
        return records
