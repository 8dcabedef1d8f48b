"""Mouse drag-and-drop for ticket cards.

A card carries DraggableMixin and tracks one gesture at a time. Buckets
carry DropTarget. While a card is flying the screen owns the mouse and
routes moves and the release to ``screen._active_draggable``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from textual.geometry import Offset
from textual.widgets import Static

if TYPE_CHECKING:
    from textual.widget import Widget


class DropTarget:
    """Mixin for containers that accept dropped cards."""

    def drag_over(self, draggable: DraggableMixin, x: int, y: int) -> bool:
        """Hovered by a flying card. Return True to show a landing spot."""
        return False

    def drag_away(self, draggable: DraggableMixin) -> None:
        """The card left this target."""

    def try_drop(self, draggable: DraggableMixin, x: int, y: int) -> bool:
        """Mouse released over this target. Return True if the drop was taken."""
        return False


@dataclass
class _Flight:
    """One drag in progress."""

    ghost: Widget
    grab: Offset
    target: DropTarget | None = None


class DraggableMixin:
    """Press, move past a small threshold, release.

    A press and release without movement is a click. Subclasses call
    ``_init_draggable()`` and implement ``draggable_make_ghost()`` and
    ``draggable_clicked()``. ``draggable_enabled()`` can veto a drag,
    e.g. while the board is filtered.
    """

    DRAG_THRESHOLD = 2

    def _init_draggable(self) -> None:
        self._press: Offset | None = None
        self._flight: _Flight | None = None

    def draggable_enabled(self) -> bool:
        return True

    def draggable_make_ghost(self) -> Widget:
        raise NotImplementedError

    def draggable_clicked(self) -> None:
        raise NotImplementedError

    # -- press / move / release on the card itself --

    def on_mouse_down(self, event) -> None:
        if event.button != 1:
            return
        event.stop()
        event.prevent_default()
        self._press = Offset(event.screen_x, event.screen_y)
        self.capture_mouse()

    def on_mouse_move(self, event) -> None:
        if self._press is None:
            return
        event.stop()
        event.prevent_default()
        moved = Offset(event.screen_x, event.screen_y) - self._press
        if max(abs(moved.x), abs(moved.y)) <= self.DRAG_THRESHOLD:
            return
        press, self._press = self._press, None
        self.release_mouse()
        if self.draggable_enabled():
            self._take_off(press)

    def on_mouse_up(self, event) -> None:
        event.stop()
        event.prevent_default()
        self.release_mouse()
        if self._press is not None:
            self._press = None
            self.draggable_clicked()

    # -- flying, driven by the screen --

    def _take_off(self, press: Offset) -> None:
        region = self.region
        ghost = self.draggable_make_ghost()
        ghost.styles.width = region.width
        ghost.styles.offset = (region.x, region.y)
        self._flight = _Flight(ghost, press - region.offset)

        self.add_class("dragging")
        self.screen.set_focus(None)
        self.screen.mount(ghost)
        self.screen._active_draggable = self
        self.screen.capture_mouse()

    def drag_move(self, x: int, y: int) -> None:
        flight = self._flight
        if flight is None:
            return
        flight.ghost.styles.offset = (x - flight.grab.x, y - flight.grab.y)
        targets = self._targets_at(x, y)
        if not targets:
            # keep the last landing spot while over gaps
            return
        target = targets[0]
        if target is not flight.target and flight.target is not None:
            flight.target.drag_away(self)
        flight.target = target
        target.drag_over(self, x, y)

    def drag_finish(self, x: int, y: int) -> None:
        """Drop on the innermost target that takes it, else the last one hovered."""
        flight = self._flight
        if flight is None:
            return
        self.screen.release_mouse()
        candidates = self._targets_at(x, y)
        if flight.target is not None and flight.target not in candidates:
            candidates.append(flight.target)
        if any(target.try_drop(self, x, y) for target in candidates):
            flight.target = None
            self._land()
        else:
            self.drag_cancel()

    def drag_cancel(self) -> None:
        """Abandon the drag. Nothing moves."""
        flight = self._flight
        if flight is None:
            return
        self.screen.release_mouse()
        if flight.target is not None:
            flight.target.drag_away(self)
        self._land()

    def _land(self) -> None:
        if self._flight is not None:
            self._flight.ghost.remove()
        self._flight = None
        self.remove_class("dragging")
        self.screen._active_draggable = None

    def _targets_at(self, x: int, y: int) -> list[DropTarget]:
        """Drop targets under a screen point, innermost first, ignoring the ghost."""
        ghost = self._flight.ghost if self._flight else None
        found: list[DropTarget] = []
        for widget, _ in self.screen.get_widgets_at(x, y):
            if ghost is not None and (widget is ghost or ghost in widget.ancestors):
                continue
            for node in (widget, *widget.ancestors):
                if isinstance(node, DropTarget) and node is not self and node not in found:
                    found.append(node)
        return found


class DragGhost(Static):
    """Floating copy of the card title that follows the mouse."""

    DEFAULT_CSS = """
    DragGhost {
        layer: overlay;
        height: auto;
        background: $primary;
        padding: 0 1;
        opacity: 0.9;
    }
    """

    def __init__(self, card):
        super().__init__(card.render_title())


class CardPlaceholder(Static):
    """Dashed line where a dropped card would land."""

    DEFAULT_CSS = """
    CardPlaceholder {
        width: 100%;
        height: 1;
        border-top: dashed $primary;
    }
    """
