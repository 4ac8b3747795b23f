from __future__ import annotations

from country_lookup.sources.fallback import FALLBACK_SENTINEL, BundledFallbackSource
from country_lookup.sources.remote import RemoteRecordSource

__all__ = [
    "BundledFallbackSource",
    "FALLBACK_SENTINEL",
    "RemoteRecordSource",
]
