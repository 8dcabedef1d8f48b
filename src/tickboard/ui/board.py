"""Board and planner screens."""

from __future__ import annotations

import logging

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, HorizontalScroll
from textual.screen import Screen
from textual.widgets import Footer, Input, Static

from tickboard.engine import LOAD_FAILED, BoardReconciler, PlannerReconciler, Reconciler
from tickboard.errors import TickboardError
from tickboard.model.partition import ALL
from tickboard.model.schemes import UNSCHEDULED
from tickboard.model.ticket import Sprint, SprintStatus
from tickboard.ui.card import TicketCard
from tickboard.ui.column import BucketWidget
from tickboard.ui.constants import (
    ICON_BOARD,
    ICON_PLANNER,
    ICON_SPRINT_ACTIVE,
    ICON_SPRINT_COMPLETED,
    ICON_SPRINT_PLANNED,
)
from tickboard.ui.sync_widget import SyncWidget
from tickboard.ui.watcher import PartitionWatcherMixin

logger = logging.getLogger(__name__)

SPRINT_ICONS = {
    SprintStatus.PLANNED: ICON_SPRINT_PLANNED,
    SprintStatus.ACTIVE: ICON_SPRINT_ACTIVE,
    SprintStatus.COMPLETED: ICON_SPRINT_COMPLETED,
}


class TicketsScreen(PartitionWatcherMixin, Screen):
    """Buckets of draggable tickets with a search box and a sync indicator."""

    DEFAULT_CSS = """
    TicketsScreen {
        layers: base overlay;
    }
    TicketsScreen #board-header {
        height: 3;
        padding: 0 1;
    }
    TicketsScreen #board-title {
        width: auto;
        padding: 1 2 0 0;
        text-style: bold;
    }
    TicketsScreen #search {
        width: 40;
    }
    TicketsScreen #search-status {
        width: 1fr;
        padding: 1 1 0 1;
        color: $text-muted;
    }
    TicketsScreen SyncWidget {
        padding: 1 1 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel_drag", "Cancel drag", show=False),
        ("slash", "focus_search", "Search"),
        ("ctrl+r", "refresh", "Refresh"),
    ]

    ICON = ICON_BOARD
    # Planner buckets carry sprint details that change on reload.
    REBUILD_ON_LOAD = False

    def __init__(self, rec: Reconciler, title: str, refresh_interval: int = 0) -> None:
        self._init_watcher()
        super().__init__()
        self.rec = rec
        self.board_title = title
        self.refresh_interval = refresh_interval
        self._active_draggable = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="board-header"):
            yield Static(f"{self.ICON} {self.board_title}", id="board-title")
            yield Input(placeholder="Search title, id or assignee", id="search")
            yield Static("", id="search-status")
            yield SyncWidget(self.rec, id="sync-status")
        with HorizontalScroll(id="columns"):
            for key in self.rec.partition.keys:
                yield self.make_bucket(key)
        yield Footer()

    def make_bucket(self, key: str) -> BucketWidget:
        return BucketWidget(key, self.rec)

    def on_mount(self) -> None:
        self.partition_watch(self.rec.partition, ALL, self._on_rebuilt)
        self.status_watch(self.rec, self._on_status_changed)
        if self.refresh_interval:
            self.set_interval(self.refresh_interval, self._refresh_tick)
        self.call_after_refresh(self._focus_first_card)

    def _focus_first_card(self) -> None:
        for bucket in self.query(BucketWidget):
            cards = list(bucket.query(TicketCard))
            if cards:
                cards[0].focus()
                return

    def _refresh_tick(self) -> None:
        if self.rec.status == "idle":
            self.rec.request_refresh("periodic")

    def _on_rebuilt(self, partition, key, old, new) -> None:
        self.call_later(self.rebuild_buckets)

    async def rebuild_buckets(self) -> None:
        """Recreate bucket widgets if the keys changed, otherwise resync them."""
        container = self.query_one("#columns", HorizontalScroll)
        buckets = list(self.query(BucketWidget))
        if self.REBUILD_ON_LOAD or [b.key for b in buckets] != self.rec.partition.keys:
            await container.remove_children()
            await container.mount_all([self.make_bucket(key) for key in self.rec.partition.keys])
            return
        for bucket in buckets:
            bucket.sync_cards()

    def _on_status_changed(self, old: str, new: str) -> None:
        for card in self.query(TicketCard):
            card.set_class(card.ticket_id in self.rec.in_flight, "pending")

    # -- search --

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "search":
            return
        event.stop()
        self.rec.set_query(event.value)
        for bucket in self.query(BucketWidget):
            bucket.sync_cards()
        status = self.query_one("#search-status", Static)
        if self.rec.drag_enabled:
            status.update("")
        else:
            status.update(f"{self.rec.view().count()} of {len(self.rec.partition)} tickets, drag disabled")

    def action_focus_search(self) -> None:
        self.query_one("#search", Input).focus()

    def action_refresh(self) -> None:
        self.rec.request_refresh("manual")

    # -- Thin delegation: screen routes mouse events to active draggable --

    def on_mouse_move(self, event) -> None:
        if self._active_draggable is not None:
            self._active_draggable.drag_move(event.screen_x, event.screen_y)

    def on_mouse_up(self, event) -> None:
        if self._active_draggable is not None:
            self._active_draggable.drag_finish(event.screen_x, event.screen_y)

    def action_cancel_drag(self) -> None:
        if self._active_draggable is not None:
            self._active_draggable.drag_cancel()
            return
        search = self.query_one("#search", Input)
        if search.value:
            search.value = ""

    def on_ticket_card_selected(self, event: TicketCard.Selected) -> None:
        event.stop()
        ticket = event.card.ticket
        if ticket is None:
            return
        who = ticket.assignee.name if ticket.assignee else "Unassigned"
        self.notify(
            f"{ticket.status.value} / {ticket.priority.value} / {who}\n#{ticket.id}",
            title=ticket.title,
        )


class BoardScreen(TicketsScreen):
    """Kanban board: one column per workflow status."""

    BINDINGS = [
        ("ctrl+n", "next_sprint", "Next sprint"),
    ]

    def __init__(self, rec: BoardReconciler, title: str, refresh_interval: int = 0) -> None:
        super().__init__(rec, title, refresh_interval)

    async def action_next_sprint(self) -> None:
        """Show the next active sprint."""
        try:
            sprint = await self.rec.next_active_sprint()
        except TickboardError as exc:
            logger.warning("cannot list sprints: %s", exc)
            self.notify(LOAD_FAILED, severity="error")
            return
        if sprint is None:
            self.notify("No other active sprint", severity="warning")
            return
        self.board_title = sprint.name
        self.query_one("#board-title", Static).update(f"{self.ICON} {sprint.name}")
        await self.rec.set_scope(sprint_id=sprint.id)


def sprint_subtitle(sprint: Sprint | None) -> str:
    if sprint is None:
        return "Unscheduled tickets"
    parts = [f"{SPRINT_ICONS[sprint.status]} {sprint.status.value.title()}"]
    if sprint.start_date and sprint.end_date:
        parts.append(f"{sprint.start_date:%b %d} - {sprint.end_date:%b %d}")
    return "  ".join(parts)


class PlannerScreen(TicketsScreen):
    """Backlog planner: one bucket per sprint plus the backlog."""

    BINDINGS = [
        ("ctrl+s", "start_sprint", "Start sprint"),
        ("ctrl+e", "complete_sprint", "Complete sprint"),
    ]

    ICON = ICON_PLANNER
    REBUILD_ON_LOAD = True

    def __init__(self, rec: PlannerReconciler, title: str, refresh_interval: int = 0) -> None:
        super().__init__(rec, title, refresh_interval)

    def make_bucket(self, key: str) -> BucketWidget:
        sprint = self.rec.scheme.sprint(key)
        bucket = BucketWidget(key, self.rec, subtitle=sprint_subtitle(sprint))
        if sprint is not None and sprint.goal:
            bucket.tooltip = sprint.goal
        return bucket

    def _focused_sprint(self) -> str | None:
        """Sprint id of the bucket holding focus, if any."""
        widget = self.focused
        while widget is not None:
            if isinstance(widget, BucketWidget):
                return None if widget.key == UNSCHEDULED else widget.key
            widget = widget.parent
        return None

    def _target_sprint(self, status: SprintStatus) -> str | None:
        """The focused sprint, else the first sprint in the given status."""
        key = self._focused_sprint()
        if key is not None:
            return key
        for sprint in self.rec.sprints:
            if sprint.status is status:
                return sprint.id
        return None

    async def action_start_sprint(self) -> None:
        sprint_id = self._target_sprint(SprintStatus.PLANNED)
        if sprint_id is None:
            self.notify("No planned sprint to start", severity="warning")
            return
        await self.rec.start_sprint(sprint_id)

    async def action_complete_sprint(self) -> None:
        sprint_id = self._target_sprint(SprintStatus.ACTIVE)
        if sprint_id is None:
            self.notify("No active sprint to complete", severity="warning")
            return
        await self.rec.complete_sprint(sprint_id)
