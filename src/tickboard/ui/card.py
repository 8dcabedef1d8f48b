"""Ticket card widget."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.text import Text
from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Static

from tickboard.model.partition import ticket_key
from tickboard.model.ticket import Ticket
from tickboard.ui.constants import ICON_TYPE, PRIORITY_CLASSES
from tickboard.ui.drag import DraggableMixin, DragGhost
from tickboard.ui.watcher import PartitionWatcherMixin

if TYPE_CHECKING:
    from tickboard.engine import Reconciler


def card_footer(ticket: Ticket) -> Text:
    """Priority, short id and assignee on one line."""
    text = Text()
    text.append(ticket.priority.value, style="bold")
    text.append(f"  #{ticket.short_id}", style="dim")
    if ticket.assignee:
        text.append(f"  {ticket.assignee.name}")
    return text


class TicketCard(PartitionWatcherMixin, DraggableMixin, Static, can_focus=True):
    """A single ticket in a bucket."""

    class Selected(Message):
        """Posted when a ticket is clicked without dragging."""

        def __init__(self, card: TicketCard) -> None:
            super().__init__()
            self.card = card

    DEFAULT_CSS = """
    TicketCard {
        width: 100%;
        height: auto;
        padding: 0 1;
        margin-bottom: 1;
        background: $surface;
        border-left: tall $surface-lighten-2;
    }
    TicketCard:focus {
        background: $primary;
    }
    TicketCard.dragging {
        display: none;
    }
    TicketCard.pending {
        text-style: italic;
    }
    TicketCard.priority-high {
        border-left: tall $warning;
    }
    TicketCard.priority-critical {
        border-left: tall $error;
    }
    TicketCard #card-footer {
        width: 100%;
        height: 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("space", "select"),
        ("enter", "select"),
    ]

    def __init__(self, ticket_id: str, rec: Reconciler) -> None:
        self._init_watcher()
        Static.__init__(self)
        self._init_draggable()
        self.ticket_id = ticket_id
        self.rec = rec

    @property
    def ticket(self) -> Ticket | None:
        return self.rec.partition.ticket(self.ticket_id)

    def render_title(self) -> str:
        ticket = self.ticket
        if ticket is None:
            return self.ticket_id
        return f"{ICON_TYPE.get(ticket.type.value, '')} {ticket.title}".strip()

    def compose(self) -> ComposeResult:
        yield Static(self.render_title(), id="card-title")
        yield Static(id="card-footer")

    def on_mount(self) -> None:
        self.partition_watch(self.rec.partition, ticket_key(self.ticket_id), self._on_ticket_changed)
        self._refresh_display()

    def _on_ticket_changed(self, partition, key, old, new) -> None:
        if new is not None:
            self._refresh_display()

    def _refresh_display(self) -> None:
        ticket = self.ticket
        if ticket is None:
            return
        self.query_one("#card-title", Static).update(self.render_title())
        self.query_one("#card-footer", Static).update(card_footer(ticket))
        for cls in PRIORITY_CLASSES.values():
            self.remove_class(cls)
        self.add_class(PRIORITY_CLASSES[ticket.priority.value])
        self.set_class(self.ticket_id in self.rec.in_flight, "pending")
        self.tooltip = f"{ticket.title}\n{ticket.status.value}  {ticket.id}"

    def action_select(self) -> None:
        self.draggable_clicked()

    # -- DraggableMixin --

    def draggable_enabled(self) -> bool:
        return self.rec.drag_enabled

    def draggable_make_ghost(self):
        return DragGhost(self)

    def draggable_clicked(self) -> None:
        self.post_message(self.Selected(self))
