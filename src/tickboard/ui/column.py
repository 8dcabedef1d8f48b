"""Bucket widgets: one board column or one planner sprint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Rule, Static

from tickboard.ui.card import TicketCard
from tickboard.ui.constants import ICON_LOCK
from tickboard.ui.drag import CardPlaceholder, DropTarget
from tickboard.ui.watcher import PartitionWatcherMixin

if TYPE_CHECKING:
    from tickboard.engine import Reconciler


class BucketWidget(PartitionWatcherMixin, DropTarget, Vertical):
    """Tickets of one bucket, in partition order, filtered by the search."""

    DEFAULT_CSS = """
    BucketWidget {
        width: 1fr;
        height: auto;
        min-height: 100%;
        min-width: 28;
        max-width: 36;
        padding: 0 1;
        border-right: tall $surface-lighten-1;
    }
    BucketWidget.readonly {
        opacity: 0.7;
    }
    BucketWidget > .bucket-title {
        width: 100%;
        text-align: center;
        text-style: bold;
    }
    BucketWidget > .bucket-subtitle {
        width: 100%;
        text-align: center;
        color: $text-muted;
    }
    BucketWidget > Rule.-horizontal {
        margin: 0;
    }
    BucketWidget > #bucket-end {
        height: 1;
    }
    """

    def __init__(self, key: str, rec: Reconciler, subtitle: str = "") -> None:
        self._init_watcher()
        super().__init__()
        self.key = key
        self.rec = rec
        self.subtitle = subtitle
        self._card_placeholder: CardPlaceholder | None = None

    @property
    def accepts_drops(self) -> bool:
        return self.rec.scheme.accepts(self.key)

    def _title(self) -> str:
        shown = len(self.rec.view().get(self.key, ()))
        total = len(self.rec.partition.bucket(self.key)) if self.key in self.rec.partition.keys else 0
        count = f"{shown}/{total}" if shown != total else str(total)
        lock = f" {ICON_LOCK}" if not self.accepts_drops else ""
        return f"{self.rec.scheme.label(self.key)} ({count}){lock}"

    def compose(self) -> ComposeResult:
        yield Static(self._title(), classes="bucket-title")
        if self.subtitle:
            yield Static(self.subtitle, classes="bucket-subtitle")
        yield Rule()
        for ticket in self.rec.view().get(self.key, ()):
            yield TicketCard(ticket.id, self.rec)
        yield Static(id="bucket-end")

    def on_mount(self) -> None:
        self.set_class(not self.accepts_drops, "readonly")
        self.partition_watch(self.rec.partition, self.key, self._on_bucket_changed)

    def _on_bucket_changed(self, partition, key, old, new) -> None:
        self.sync_cards()

    def sync_cards(self) -> None:
        """Make the card children match the current projection of this bucket."""
        shown = [t.id for t in self.rec.view().get(self.key, ())]
        existing = {c.ticket_id: c for c in self.query(TicketCard)}
        wanted = set(shown)

        for ticket_id, widget in existing.items():
            if ticket_id not in wanted:
                widget.remove()

        anchor = self.query_one("#bucket-end", Static)
        for ticket_id in shown:
            if ticket_id not in existing:
                widget = TicketCard(ticket_id, self.rec)
                self.mount(widget, before=anchor)
                existing[ticket_id] = widget

        for ticket_id in reversed(shown):
            self.move_child(existing[ticket_id], before=anchor)
            anchor = existing[ticket_id]

        self.query_one(".bucket-title", Static).update(self._title())

    # -- DropTarget --

    def _landing(self, draggable, screen_y: int) -> tuple[Static, int]:
        """The child a dropped card would sit before, and its index among the other cards."""
        others = [c for c in self.query_children(TicketCard) if c is not draggable]
        for index, card in enumerate(others):
            if screen_y < card.region.y + card.region.height // 2:
                return card, index
        return self.query_one("#bucket-end", Static), len(others)

    def drag_over(self, draggable, x: int, y: int) -> bool:
        if not isinstance(draggable, TicketCard) or not self.accepts_drops:
            return False
        anchor, _ = self._landing(draggable, y)
        placeholder = self._card_placeholder
        if placeholder is None or placeholder.parent is not self:
            self._remove_placeholder()
            self._card_placeholder = CardPlaceholder()
            self.mount(self._card_placeholder, before=anchor)
        else:
            children = list(self.children)
            if children.index(placeholder) + 1 != children.index(anchor):
                self.move_child(placeholder, before=anchor)
        return True

    def drag_away(self, draggable) -> None:
        self._remove_placeholder()

    def try_drop(self, draggable, x: int, y: int) -> bool:
        if not isinstance(draggable, TicketCard) or not self.accepts_drops:
            return False
        _, index = self._landing(draggable, y)
        source = draggable.parent.key if isinstance(draggable.parent, BucketWidget) else None
        self._remove_placeholder()
        draggable.remove_class("dragging")
        self.rec.drop(draggable.ticket_id, source, self.key, index)
        self.call_after_refresh(self._refocus_card, self, draggable.ticket_id)
        return True

    def _remove_placeholder(self) -> None:
        if self._card_placeholder is not None and self._card_placeholder.parent is not None:
            self._card_placeholder.remove()
        self._card_placeholder = None

    # -- keyboard --

    STEPS = {"up": -1, "down": 1, "left": -1, "right": 1}

    def on_key(self, event) -> None:
        """Arrows move focus; shift+arrows move the focused ticket."""
        moving = event.key.startswith("shift+")
        direction = event.key.removeprefix("shift+")
        if direction not in self.STEPS:
            return
        cards = [c for c in self.children if c.can_focus]
        focused = self.screen.focused
        if focused not in cards:
            return
        event.prevent_default()
        event.stop()

        idx = cards.index(focused)
        step = self.STEPS[direction]
        vertical = direction in ("up", "down")
        if moving:
            self._move_card(focused, idx, step, vertical)
        elif vertical:
            if 0 <= idx + step < len(cards):
                cards[idx + step].focus()
        else:
            target = self._sibling(step)
            target_cards = [c for c in target.children if c.can_focus] if target else []
            if target_cards:
                target_cards[min(idx, len(target_cards) - 1)].focus()

    def _sibling(self, step: int) -> BucketWidget | None:
        buckets = list(self.parent.query_children(BucketWidget))
        index = buckets.index(self) + step
        return buckets[index] if 0 <= index < len(buckets) else None

    def _move_card(self, card: TicketCard, idx: int, step: int, vertical: bool) -> None:
        """Keyboard drop: same path as a mouse drop."""
        ticket_id = card.ticket_id
        if vertical:
            if idx + step >= 0:
                self.rec.drop(ticket_id, self.key, self.key, idx + step)
                self.call_after_refresh(self._refocus_card, self, ticket_id)
            return
        target = self._sibling(step)
        if target is None or not target.accepts_drops:
            return
        index = min(idx, len(self.rec.partition.bucket(target.key)))
        if self.rec.drop(ticket_id, self.key, target.key, index) is not None:
            self.call_after_refresh(self._refocus_card, target, ticket_id)

    @staticmethod
    def _refocus_card(bucket: BucketWidget, ticket_id: str) -> None:
        for card in bucket.query(TicketCard):
            if card.ticket_id == ticket_id:
                card.focus()
                return
