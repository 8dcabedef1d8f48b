"""Bucket schemes: how tickets map to board columns or planner sprints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from tickboard.model.scope import Scope
from tickboard.model.ticket import Sprint, SprintStatus, Ticket, TicketStatus

if TYPE_CHECKING:
    from tickboard.gateway import Gateway

UNSCHEDULED = "backlog"

STATUS_LABELS = {
    TicketStatus.UNSTARTED: "To Do",
    TicketStatus.IN_PROGRESS: "In Progress",
    TicketStatus.IN_REVIEW: "In Review",
    TicketStatus.COMPLETE: "Done",
}


class Scheme(Protocol):
    """What a Partition and Reconciler need to know about bucket keys."""

    keys: list[str]
    refresh_after_move: bool

    def key_for(self, ticket: Ticket) -> str: ...

    def assign(self, ticket: Ticket, key: str) -> Ticket: ...

    def accepts(self, key: str) -> bool: ...

    def includes(self, ticket: Ticket, scope: Scope) -> bool: ...

    def label(self, key: str) -> str: ...

    async def patch(self, gateway: Gateway, ticket_id: str, key: str) -> Ticket: ...

    async def fetch(self, gateway: Gateway, scope: Scope) -> tuple[Scheme, list[Ticket]]: ...


def _in_project(ticket: Ticket, scope: Scope) -> bool:
    return ticket.project_id is None or ticket.project_id == scope.project_id


class StatusScheme:
    """Kanban board columns, one per workflow status."""

    refresh_after_move = False

    def __init__(self) -> None:
        self.keys = [status.value for status in TicketStatus]

    def key_for(self, ticket: Ticket) -> str:
        return ticket.status.value

    def assign(self, ticket: Ticket, key: str) -> Ticket:
        return ticket.with_status(TicketStatus(key))

    def accepts(self, key: str) -> bool:
        return key in self.keys

    def includes(self, ticket: Ticket, scope: Scope) -> bool:
        if not _in_project(ticket, scope):
            return False
        return scope.sprint_id is None or ticket.sprint_id == scope.sprint_id

    def label(self, key: str) -> str:
        return STATUS_LABELS[TicketStatus(key)]

    async def patch(self, gateway: Gateway, ticket_id: str, key: str) -> Ticket:
        """Send only the status field."""
        return await gateway.update_ticket_status(ticket_id, TicketStatus(key))

    async def fetch(self, gateway: Gateway, scope: Scope) -> tuple[StatusScheme, list[Ticket]]:
        return self, await gateway.list_tickets(scope.project_id, scope.sprint_id)


class SprintScheme:
    """Planner buckets: open sprints, then the backlog, then completed sprints.

    Open sprints are ordered active first, then planned, each in the
    order the service lists them. Completed sprints are shown but do
    not accept drops.
    """

    refresh_after_move = True

    def __init__(self, sprints: list[Sprint] | None = None) -> None:
        self.sprints: dict[str, Sprint] = {}
        self.keys: list[str] = []
        self.set_sprints(sprints or [])

    def set_sprints(self, sprints: list[Sprint]) -> None:
        active = [s for s in sprints if s.status is SprintStatus.ACTIVE]
        planned = [s for s in sprints if s.status is SprintStatus.PLANNED]
        completed = [s for s in sprints if s.status is SprintStatus.COMPLETED]
        self.sprints = {s.id: s for s in sprints}
        self.keys = [s.id for s in active + planned] + [UNSCHEDULED] + [s.id for s in completed]

    def key_for(self, ticket: Ticket) -> str:
        return ticket.sprint_id or UNSCHEDULED

    def assign(self, ticket: Ticket, key: str) -> Ticket:
        return ticket.with_sprint(None if key == UNSCHEDULED else key)

    def accepts(self, key: str) -> bool:
        if key == UNSCHEDULED:
            return True
        sprint = self.sprints.get(key)
        return sprint is not None and sprint.status is not SprintStatus.COMPLETED

    def includes(self, ticket: Ticket, scope: Scope) -> bool:
        return _in_project(ticket, scope)

    def label(self, key: str) -> str:
        if key == UNSCHEDULED:
            return "Backlog"
        sprint = self.sprints.get(key)
        return sprint.name if sprint else key

    def sprint(self, key: str) -> Sprint | None:
        return self.sprints.get(key)

    async def patch(self, gateway: Gateway, ticket_id: str, key: str) -> Ticket:
        """Send only the sprint assignment; the backlog is a null sprint."""
        return await gateway.assign_sprint(ticket_id, None if key == UNSCHEDULED else key)

    async def fetch(self, gateway: Gateway, scope: Scope) -> tuple[SprintScheme, list[Ticket]]:
        """Fetch sprints and tickets. Returns a new scheme for the current sprint list."""
        sprints = await gateway.list_sprints(scope.project_id)
        tickets = await gateway.list_tickets(scope.project_id)
        return SprintScheme(sprints), tickets


def pick_board_sprint(sprints: list[Sprint], requested: str | None = None) -> str | None:
    """The sprint a board shows: the requested one, else the first active one.

    None means no sprint is active and nothing was requested.
    """
    if requested:
        return requested
    for sprint in sprints:
        if sprint.status is SprintStatus.ACTIVE:
            return sprint.id
    return None
