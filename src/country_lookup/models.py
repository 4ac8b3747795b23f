from __future__ import annotations

"""Country record value type and tolerant decoding from JSON payloads."""

from dataclasses import asdict, dataclass
import logging
from typing import Any


LOGGER = logging.getLogger(__name__)

PLACEHOLDER = "N/A"
CODE_FIELD_ALIASES: tuple[str, ...] = ("code", "cc", "alpha2Code", "cca2")


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return PLACEHOLDER
    stripped = value.strip()
    return stripped or PLACEHOLDER


def _clean_code(value: Any) -> str:
    code = _clean(value)
    if code == PLACEHOLDER or not (2 <= len(code) <= 3):
        return PLACEHOLDER
    return code


@dataclass(frozen=True, slots=True)
class Record:
    """Country entry. Every field is trimmed text or the placeholder, never empty."""

    name: str
    region: str
    code: str
    capital: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _clean(self.name))
        object.__setattr__(self, "region", _clean(self.region))
        object.__setattr__(self, "code", _clean_code(self.code))
        object.__setattr__(self, "capital", _clean(self.capital))

    @classmethod
    def normalized(
        cls,
        name: Any = None,
        region: Any = None,
        code: Any = None,
        capital: Any = None,
    ) -> Record:
        """Build a record from loosely typed input; missing values become the placeholder."""
        return cls(name=name, region=region, code=code, capital=capital)

    def matches(self, query: str) -> bool:
        needle = query.casefold()
        return needle in self.name.casefold() or needle in self.capital.casefold()

    def to_dict(self) -> dict:
        return asdict(self)


def _first_code(row: dict[str, Any]) -> Any:
    for key in CODE_FIELD_ALIASES:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def record_from_dict(row: dict[str, Any]) -> Record:
    return Record.normalized(
        name=row.get("name"),
        region=row.get("region"),
        code=_first_code(row),
        capital=row.get("capital"),
    )


def decode_records(payload: Any) -> list[Record]:
    """Decode a JSON array of country objects.

    Raises ValueError when the payload is not an array. Elements that are not
    objects are skipped so one bad entry never fails the whole decode.
    """
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON array, got {type(payload).__name__}")

    records: list[Record] = []
    for index, row in enumerate(payload):
        if not isinstance(row, dict):
            LOGGER.warning("Skipping non-object entry at index %d", index)
            continue
        records.append(record_from_dict(row))
    return records
