from __future__ import annotations

import json
import logging
from pathlib import Path
import random

from country_lookup.models import Record


LOGGER = logging.getLogger(__name__)

DEAL_MESSAGES_PATH = Path(__file__).resolve().parent / "data" / "deal_messages.json"
DEFAULT_DEAL_MESSAGE = "Free shipping to {name}!"


def load_deal_messages(path: str | Path | None = None) -> list[str]:
    """Return bundled templates, or an empty list when the file is unusable."""
    source = Path(path) if path else DEAL_MESSAGES_PATH
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOGGER.warning("Deal messages at %s unusable: %s", source, exc)
        return []
    if not isinstance(payload, list):
        return []
    return [m for m in payload if isinstance(m, str) and "{name}" in m]


def compose_deal_message(
    record: Record,
    templates: list[str] | None = None,
    rng: random.Random | None = None,
) -> str:
    templates = templates or [DEFAULT_DEAL_MESSAGE]
    template = (rng or random).choice(templates)
    return template.replace("{name}", record.name)
