"""Optimistic drag-and-drop with server and live-event reconciliation.

A Reconciler owns one Partition. User drops mutate it immediately; the
service call runs in the background and its outcome, like every remote
ticket event and refresh request, is posted to a bounded queue that
``run()`` consumes one message at a time.

Move lifecycle: idle -> optimistic -> idle on confirmation, or
optimistic -> reverting (full refetch) -> idle on failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from tickboard.errors import InvalidTransition, NotFound, TickboardError
from tickboard.events import (
    Message,
    MoveConfirmed,
    MoveFailed,
    Refresh,
    RemoteEvent,
    TicketCreated,
    TicketUpdated,
)
from tickboard.gateway import Gateway
from tickboard.model.partition import Partition
from tickboard.model.schemes import Scheme, SprintScheme, StatusScheme, pick_board_sprint
from tickboard.model.scope import Scope
from tickboard.model.search import Projection, project
from tickboard.model.ticket import Sprint, SprintStatus, Ticket

logger = logging.getLogger(__name__)

MOVE_FAILED = "Failed to move ticket"
LOAD_FAILED = "Failed to load tickets"

StatusCallback = Callable[[str, str], None]


def _log_notice(message: str, *, severity: str = "information") -> None:
    level = logging.ERROR if severity == "error" else logging.INFO
    logger.log(level, "%s", message)


class Reconciler:
    """Keeps a local partition consistent with the service and other clients."""

    # notice shown when the service confirms a move
    MOVED: str | None = None

    def __init__(
        self,
        scheme: Scheme,
        gateway: Gateway,
        scope: Scope,
        *,
        notify: Callable[..., Any] | None = None,
        queue_size: int = 256,
        reject_stale_events: bool = True,
    ) -> None:
        self.gateway = gateway
        self.scope = scope
        self.partition = Partition(scheme)
        self.queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=queue_size)
        self.reject_stale_events = reject_stale_events
        self.in_flight: dict[str, int] = {}
        self.query = ""
        self.status = "idle"
        self.loaded = False
        self._notify = notify or _log_notice
        self._status_watchers: list[StatusCallback] = []
        self._tasks: set[asyncio.Task] = set()
        self._refresh_pending = False

    @property
    def scheme(self) -> Scheme:
        return self.partition.scheme

    # -- status --

    def watch_status(self, callback: StatusCallback) -> Callable[[], None]:
        """Watch status changes. Returns an unwatch callable."""
        self._status_watchers.append(callback)
        return lambda: callback in self._status_watchers and self._status_watchers.remove(callback)

    def _set_status(self, status: str) -> None:
        old = self.status
        if old == status:
            return
        self.status = status
        for cb in list(self._status_watchers):
            cb(old, status)

    def _settle(self) -> None:
        self._set_status("push" if self.in_flight else "idle")

    def _notice(self, message: str, severity: str = "error") -> None:
        self._notify(message, severity=severity)

    # -- search --

    def set_query(self, query: str) -> None:
        self.query = query or ""

    @property
    def drag_enabled(self) -> bool:
        """Dragging is disabled everywhere while a search is active."""
        return not self.query.strip()

    def view(self) -> Projection:
        return project(self.partition, self.query)

    # -- loading --

    async def load(self) -> bool:
        """Fetch the scope and rebuild the partition.

        Returns False when the scope changed while the fetch was running
        (the result is then discarded). Raises TickboardError on failure.
        """
        scope = self.scope
        self._set_status("load")
        try:
            scheme, tickets = await self.scheme.fetch(self.gateway, scope)
        except TickboardError:
            self._set_status("error")
            raise
        if not self.scope.matches(scope.generation):
            logger.debug("discarding load for old scope %s", scope)
            return False
        self.partition.initialize([t for t in tickets if scheme.includes(t, scope)], scheme=scheme)
        self.loaded = True
        self._settle()
        return True

    async def resync(self) -> None:
        """Full refetch; failures are logged and reported, never raised."""
        try:
            await self.load()
        except TickboardError as exc:
            logger.warning("refresh failed: %s", exc)
            self._notice(LOAD_FAILED)

    async def set_scope(self, sprint_id: str | None = None, project_id: str | None = None) -> None:
        """Switch scope: discard the partition and load the new one.

        Results still pending for the old scope are ignored when they land.
        """
        self.scope = self.scope.changed(project_id=project_id, sprint_id=sprint_id)
        self.in_flight.clear()
        self._refresh_pending = False
        self.loaded = False
        self.partition.initialize([])
        await self.resync()

    # -- local drops --

    def drop(self, ticket_id: str, source: str, destination: str | None, index: int = 0) -> Ticket | None:
        """Apply a user drop optimistically and persist it in the background.

        A drop with no destination, while searching, or onto a bucket
        that does not accept drops changes nothing. Reorders inside a
        bucket stay local. Returns the moved ticket, or None when
        nothing moved.
        """
        if destination is None:
            return None
        if not self.drag_enabled:
            logger.debug("drop of %s ignored while searching", ticket_id)
            return None
        scheme = self.scheme
        if not scheme.accepts(destination):
            logger.debug("bucket %s does not accept drops", destination)
            return None

        try:
            moved = self.partition.move_ticket(ticket_id, source, destination, index)
        except NotFound as exc:
            logger.warning("stale move: %s", exc)
            self._notice(MOVE_FAILED)
            self.request_refresh("stale move")
            return None

        if source == destination:
            return moved

        self.in_flight[ticket_id] = self.in_flight.get(ticket_id, 0) + 1
        self._set_status("push")
        self._spawn(self._persist(scheme, ticket_id, destination, self.scope.generation))
        return moved

    async def _persist(self, scheme: Scheme, ticket_id: str, bucket: str, generation: int) -> None:
        try:
            ticket = await scheme.patch(self.gateway, ticket_id, bucket)
        except TickboardError as exc:
            await self.queue.put(MoveFailed(ticket_id, bucket, generation, exc))
        else:
            await self.queue.put(MoveConfirmed(ticket_id, bucket, generation, ticket))

    # -- posting --

    async def post(self, message: Message) -> None:
        """Queue a message for the loop. Waits while the queue is full."""
        await self.queue.put(message)

    def request_refresh(self, reason: str = "") -> None:
        """Queue a full refresh unless one is already waiting."""
        if self._refresh_pending:
            return
        self._refresh_pending = True
        message = Refresh(self.scope.generation, reason)
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self._spawn(self.queue.put(message))

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- the loop --

    async def run(self) -> None:
        """Consume messages forever, in arrival order."""
        while True:
            message = await self.queue.get()
            try:
                await self.handle(message)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("failed to handle %r", message)
            finally:
                self.queue.task_done()

    async def drain(self) -> None:
        """Handle everything queued or in flight, then return. Used by the CLI and tests."""
        while True:
            if not self.queue.empty():
                message = self.queue.get_nowait()
                try:
                    await self.handle(message)
                finally:
                    self.queue.task_done()
                continue
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    async def handle(self, message: Message) -> None:
        match message:
            case TicketCreated(ticket=ticket) | TicketUpdated(ticket=ticket):
                self.apply_remote(ticket)
            case MoveConfirmed():
                self._on_confirmed(message)
            case MoveFailed():
                await self._on_failed(message)
            case Refresh():
                self._refresh_pending = False
                if self.scope.matches(message.generation):
                    await self.resync()
            case _:
                logger.warning("unknown message %r", message)

    def apply_remote(self, ticket: Ticket) -> None:
        """Merge a ticket pushed by another client (or echoed back to us).

        The payload's own field decides its bucket. If the same ticket is
        being moved locally the payload still wins.
        """
        if not self.scheme.includes(ticket, self.scope):
            self.partition.remove_ticket(ticket.id)
            return
        if self.reject_stale_events and self._is_stale(ticket):
            logger.debug("skipping stale update for %s", ticket.id)
            return
        if ticket.id in self.in_flight:
            logger.debug("remote update for in-flight ticket %s", ticket.id)
        if self.partition.upsert_ticket(ticket) is None:
            self.request_refresh(f"unknown bucket for {ticket.id}")

    def _is_stale(self, ticket: Ticket) -> bool:
        held = self.partition.ticket(ticket.id)
        if held is None or held.updated_at is None or ticket.updated_at is None:
            return False
        return ticket.updated_at < held.updated_at

    def _finish(self, ticket_id: str) -> int:
        """Mark one move of ticket_id as settled. Returns moves still pending for it."""
        remaining = self.in_flight.get(ticket_id, 0) - 1
        if remaining > 0:
            self.in_flight[ticket_id] = remaining
        else:
            self.in_flight.pop(ticket_id, None)
        return max(remaining, 0)

    def _on_confirmed(self, message: MoveConfirmed) -> None:
        if not self.scope.matches(message.generation):
            logger.debug("ignoring confirmation from old scope: %s", message.ticket_id)
            return
        remaining = self._finish(message.ticket_id)
        # the confirmed ticket stays where it was dropped
        if message.ticket is not None and remaining == 0 and not self.partition.replace_ticket(message.ticket):
            self.apply_remote(message.ticket)
        self._settle()
        if self.MOVED is not None:
            self._notice(self.MOVED, severity="information")
        if self.scheme.refresh_after_move:
            self.request_refresh("move confirmed")

    async def _on_failed(self, message: MoveFailed) -> None:
        if not self.scope.matches(message.generation):
            logger.debug("ignoring failure from old scope: %s", message.ticket_id)
            return
        self._finish(message.ticket_id)
        logger.warning("move of %s to %s failed: %s", message.ticket_id, message.bucket, message.error)
        self._notice(MOVE_FAILED)
        self._set_status("error")
        await self.resync()

    async def close(self) -> None:
        """Cancel background work."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class BoardReconciler(Reconciler):
    """Kanban board: tickets bucketed by workflow status."""

    def __init__(self, gateway: Gateway, scope: Scope, **kwargs) -> None:
        super().__init__(StatusScheme(), gateway, scope, **kwargs)

    async def next_active_sprint(self) -> Sprint | None:
        """The active sprint after the one shown, wrapping around.

        Returns None when no other active sprint exists. Raises
        TickboardError when the sprint list cannot be fetched.
        """
        active = [s for s in await self.gateway.list_sprints(self.scope.project_id) if s.status is SprintStatus.ACTIVE]
        ids = [s.id for s in active]
        if self.scope.sprint_id in ids:
            i = ids.index(self.scope.sprint_id)
            active = active[i + 1 :] + active[:i]
        return active[0] if active else None


class PlannerReconciler(Reconciler):
    """Backlog planner: tickets bucketed by sprint, plus sprint lifecycle actions."""

    MOVED = "Ticket moved successfully"

    def __init__(self, gateway: Gateway, scope: Scope, **kwargs) -> None:
        super().__init__(SprintScheme(), gateway, scope, **kwargs)

    @property
    def sprints(self) -> list[Sprint]:
        scheme = self.scheme
        return [scheme.sprints[k] for k in scheme.keys if k in scheme.sprints]

    async def start_sprint(self, sprint_id: str) -> bool:
        """Planned -> Active."""
        return await self._advance(
            sprint_id, SprintStatus.ACTIVE, self.gateway.start_sprint, "Sprint started!", "Failed to start sprint"
        )

    async def complete_sprint(self, sprint_id: str) -> bool:
        """Active -> Completed, then refetch to see unfinished tickets back in the backlog."""
        return await self._advance(
            sprint_id,
            SprintStatus.COMPLETED,
            self.gateway.complete_sprint,
            "Sprint completed!",
            "Failed to complete sprint",
        )

    async def _advance(
        self,
        sprint_id: str,
        to_status: SprintStatus,
        call: Callable[[str], Awaitable[Any]],
        success: str,
        failure: str,
    ) -> bool:
        sprint = self.scheme.sprint(sprint_id)
        if sprint is None:
            self._notice(f"Unknown sprint {sprint_id}")
            return False
        try:
            sprint.advance(to_status)
        except InvalidTransition as exc:
            logger.warning("%s", exc)
            self._notice(failure)
            return False
        try:
            await call(sprint_id)
        except TickboardError as exc:
            logger.warning("%s %s: %s", to_status.value, sprint_id, exc)
            self._notice(failure)
            return False
        self._notice(success, severity="information")
        await self.resync()
        return True


async def open_board(gateway: Gateway, project_id: str, sprint_id: str | None, whole_project: bool, **kwargs):
    """Load a board reconciler for the requested (or first active) sprint.

    Returns None when no sprint is active and none was requested.
    """
    if not whole_project:
        sprint_id = pick_board_sprint(await gateway.list_sprints(project_id), sprint_id)
        if sprint_id is None:
            return None
    else:
        sprint_id = None
    rec = BoardReconciler(gateway, Scope(project_id, sprint_id), **kwargs)
    await rec.load()
    return rec


async def open_planner(gateway: Gateway, project_id: str, **kwargs) -> PlannerReconciler:
    rec = PlannerReconciler(gateway, Scope(project_id), **kwargs)
    await rec.load()
    return rec
