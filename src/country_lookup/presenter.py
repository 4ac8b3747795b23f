from __future__ import annotations

"""Console presentation adapter for the retrieval controller."""

from collections.abc import Callable
import random

from country_lookup.controller import LoadState, LoadStatus, RetrievalController, ViewSnapshot
from country_lookup.deal_messages import compose_deal_message, load_deal_messages
from country_lookup.models import Record


ERROR_NOTICE_SUFFIX = " - bringing you rollback support!"


def format_row(record: Record) -> str:
    return f"{record.name}, {record.region}  [{record.code}]  {record.capital}"


class ConsolePresenter:
    """Subscribes to all controller signals and keeps what a list view would show."""

    def __init__(
        self,
        controller: RetrievalController,
        *,
        emit: Callable[[str], None] | None = None,
        deal_templates: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.controller = controller
        self.rows: list[str] = []
        self.notices: list[str] = []
        self.statuses: list[LoadStatus] = []
        self.last_snapshot: ViewSnapshot | None = None
        self._emit = emit or (lambda _line: None)
        self._deal_templates = deal_templates if deal_templates is not None else load_deal_messages()
        self._rng = rng

        controller.updated.connect(self._on_update)
        controller.failed.connect(self._on_error)
        controller.status_changed.connect(self._on_status)

    def _on_update(self, snapshot: ViewSnapshot) -> None:
        self.last_snapshot = snapshot
        self.rows = [format_row(r) for r in snapshot.filtered]

    def _on_error(self, message: str) -> None:
        notice = f"Oops! {message}{ERROR_NOTICE_SUFFIX}"
        self.notices.append(notice)
        self._emit(notice)

    def _on_status(self, status: LoadStatus) -> None:
        self.statuses.append(status)
        if status.state is LoadState.LOADING:
            self._emit("Loading countries...")

    def show_deal(self) -> str | None:
        """Pick a random country and announce it; None when nothing is loaded."""
        deal = self.controller.pick_random()
        if deal is None:
            return None
        message = f"Deal of the Day! {compose_deal_message(deal, self._deal_templates, self._rng)}"
        self.notices.append(message)
        self._emit(message)
        return message

    def render(self) -> str:
        if not self.rows:
            return "(no countries)"
        return "\n".join(self.rows)
