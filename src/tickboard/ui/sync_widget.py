"""Sync status indicator widget for the board header."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import Static

from tickboard.engine import Reconciler
from tickboard.ui.constants import ICON_SYNC_ACTIVE, ICON_SYNC_ERROR, ICON_SYNC_IDLE
from tickboard.ui.watcher import PartitionWatcherMixin

STATUS_TOOLTIPS = {
    "idle": "Up to date",
    "load": "Loading tickets",
    "push": "Saving changes",
    "error": "Last change failed",
}


def _current_icon(status: str) -> str:
    """Return the icon for a reconciler status."""
    if status == "error":
        return ICON_SYNC_ERROR
    if status and status != "idle":
        return ICON_SYNC_ACTIVE
    return ICON_SYNC_IDLE


class SyncWidget(PartitionWatcherMixin, Container):
    """Sync status indicator. Click to refresh from the service."""

    DEFAULT_CSS = """
    SyncWidget {
        width: auto;
        height: 1;
        padding: 0 1;
    }
    """

    def __init__(self, rec: Reconciler, **kwargs) -> None:
        self._init_watcher()
        super().__init__(**kwargs)
        self.rec = rec

    def compose(self) -> ComposeResult:
        yield Static(_current_icon(self.rec.status), classes="sync-icon")

    def on_mount(self) -> None:
        self.status_watch(self.rec, self._on_status_changed)
        self._update_display()

    def _on_status_changed(self, old: str, new: str) -> None:
        self.call_later(self._update_display)

    def _update_display(self) -> None:
        status = self.rec.status
        self.query_one(".sync-icon", Static).update(_current_icon(status))
        self.tooltip = STATUS_TOOLTIPS.get(status, status)

    def on_click(self, event) -> None:
        event.stop()
        self.rec.request_refresh("manual")
