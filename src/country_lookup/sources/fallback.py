from __future__ import annotations

import json
import logging
from pathlib import Path

from country_lookup.models import Record, decode_records
from country_lookup.sources.base import FallbackSource
from country_lookup.tracing import traceable


LOGGER = logging.getLogger(__name__)

BUNDLED_COUNTRIES_PATH = Path(__file__).resolve().parent.parent / "data" / "countries.json"

# Shown instead of a blank list when even the bundled data is unusable.
FALLBACK_SENTINEL = Record(
    name="Rollbackland",
    region="Offline",
    code="RB",
    capital="Fallback City",
)


class BundledFallbackSource(FallbackSource):
    """Static country list shipped with the package.

    The data file is read on every call. Any problem (missing file, bad JSON,
    empty array) yields the single sentinel record instead of an error.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else BUNDLED_COUNTRIES_PATH

    @traceable(name="load_fallback", run_type="tool")
    def load_fallback(self) -> list[Record]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            records = decode_records(payload)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError and UnicodeDecodeError are ValueError subclasses.
            LOGGER.warning("Fallback data at %s unusable: %s", self.path, exc)
            return [FALLBACK_SENTINEL]
        if not records:
            LOGGER.warning("Fallback data at %s is empty", self.path)
            return [FALLBACK_SENTINEL]
        return records
