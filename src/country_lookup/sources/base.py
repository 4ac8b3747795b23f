from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from country_lookup.models import Record


class RemoteSource(Protocol):
    def fetch(self) -> Sequence[Record]:
        """One network round trip; raises a FetchError subclass on failure."""
        ...


class FallbackSource(Protocol):
    def load_fallback(self) -> Sequence[Record]:
        """Always returns at least one record."""
        ...
