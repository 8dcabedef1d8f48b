"""Main Textual application for tickboard."""

from __future__ import annotations

import logging
from typing import Any

from textual.app import App

from tickboard.channel import EventChannel
from tickboard.engine import (
    LOAD_FAILED,
    BoardReconciler,
    PlannerReconciler,
    Reconciler,
    open_board,
    open_planner,
)
from tickboard.errors import TickboardError
from tickboard.events import RemoteEvent
from tickboard.gateway import Gateway
from tickboard.model.scope import Scope
from tickboard.ui.board import BoardScreen, PlannerScreen

logger = logging.getLogger(__name__)


class TickboardApp(App):
    """Kanban board and sprint planner TUI for one project."""

    CSS = """
    Tooltip {
        padding: 0 1;
        margin: 0;
    }
    """

    TITLE = "tickboard"
    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+b", "show_board", "Board"),
        ("ctrl+l", "show_planner", "Planner"),
    ]

    def __init__(
        self,
        cfg: dict[str, Any],
        project_id: str,
        *,
        sprint_id: str | None = None,
        planner: bool = False,
        gateway: Gateway | None = None,
        channel_client: Any = None,
        live: bool = True,
    ) -> None:
        super().__init__()
        self.cfg = cfg
        self.project_id = project_id
        self.sprint_id = sprint_id
        self.start_in_planner = planner
        self.gateway = gateway or Gateway(cfg["url"], token=cfg.get("token"), timeout=cfg["timeout"])
        self.channel_client = channel_client
        self.live = live
        self.board: BoardReconciler | None = None
        self.planner: PlannerReconciler | None = None
        self.channel: EventChannel | None = None

    def _options(self) -> dict[str, Any]:
        return {
            "notify": self.notify,
            "queue_size": self.cfg["queue_size"],
            "reject_stale_events": self.cfg["reject_stale_events"],
        }

    async def on_mount(self) -> None:
        self.sub_title = self.project_id
        self.board = await self._open_board()
        self.planner = await self._open_planner()

        for rec in (self.board, self.planner):
            self.run_worker(rec.run(), group="reconcile", exit_on_error=False)

        interval = self.cfg["refresh_interval"]
        self.install_screen(BoardScreen(self.board, self._board_title(), interval), name="board")
        self.install_screen(PlannerScreen(self.planner, "Backlog", interval), name="planner")
        self.push_screen("planner" if self.start_in_planner else "board")

        if self.live:
            self.channel = EventChannel(
                self.cfg["url"],
                self._on_remote_event,
                project_id=self.project_id,
                user_id=self.cfg.get("user"),
                token=self.cfg.get("token"),
                client=self.channel_client,
            )
            self.run_worker(self._connect(), group="channel", exit_on_error=False)

    async def _open_board(self) -> BoardReconciler:
        """The active sprint's board, or the whole project when none is active."""
        try:
            rec = await open_board(self.gateway, self.project_id, self.sprint_id, False, **self._options())
            if rec is not None:
                return rec
            self.notify("No active sprint, showing all tickets", severity="warning")
            return await open_board(self.gateway, self.project_id, None, True, **self._options())
        except TickboardError as exc:
            logger.warning("board load failed: %s", exc)
            self.notify(LOAD_FAILED, severity="error")
            return BoardReconciler(self.gateway, Scope(self.project_id, self.sprint_id), **self._options())

    async def _open_planner(self) -> PlannerReconciler:
        try:
            return await open_planner(self.gateway, self.project_id, **self._options())
        except TickboardError as exc:
            logger.warning("planner load failed: %s", exc)
            self.notify(LOAD_FAILED, severity="error")
            return PlannerReconciler(self.gateway, Scope(self.project_id), **self._options())

    def _board_title(self) -> str:
        sprint_id = self.board.scope.sprint_id
        if sprint_id is None:
            return "All tickets"
        sprint = self.planner.scheme.sprint(sprint_id) if self.planner else None
        return sprint.name if sprint else sprint_id

    @property
    def reconcilers(self) -> list[Reconciler]:
        return [rec for rec in (self.board, self.planner) if rec is not None]

    async def _on_remote_event(self, event: RemoteEvent) -> None:
        for rec in self.reconcilers:
            await rec.post(event)

    async def _connect(self) -> None:
        try:
            await self.channel.connect()
        except TickboardError as exc:
            logger.warning("live updates unavailable: %s", exc)
            self.notify("Live updates unavailable", severity="warning")

    def action_show_board(self) -> None:
        if self.is_screen_installed("board"):
            self.switch_screen("board")

    def action_show_planner(self) -> None:
        if self.is_screen_installed("planner"):
            self.switch_screen("planner")

    async def action_quit(self) -> None:
        """Disconnect, cancel background work and quit."""
        if self.channel is not None:
            await self.channel.disconnect()
        for rec in self.reconcilers:
            await rec.close()
        await self.gateway.aclose()
        self.exit()
