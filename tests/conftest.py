"""Shared fixtures: an in-memory service and a small project."""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from tickboard.errors import GatewayError
from tickboard.model.ticket import (
    Assignee,
    Priority,
    Sprint,
    SprintStatus,
    Ticket,
    TicketStatus,
    TicketType,
)

PROJECT = "p1"


class FakeGateway:
    """Stands in for the REST service.

    Add method names to ``fail`` to make them raise GatewayError. Set
    ``hold`` to an Event to keep mutations waiting until it is set.
    """

    def __init__(self, tickets=(), sprints=()):
        self.tickets = {t.id: t for t in tickets}
        self.sprints = {s.id: s for s in sprints}
        self.calls = []
        self.fail = set()
        self.hold: asyncio.Event | None = None

    async def _enter(self, name, *args):
        self.calls.append((name, *args))
        if self.hold is not None:
            await self.hold.wait()
        if name in self.fail:
            raise GatewayError(f"{name} failed", status=500)

    def mutations(self):
        return [c for c in self.calls if not c[0].startswith("list_")]

    async def list_tickets(self, project_id, sprint_id=None):
        self.calls.append(("list_tickets", project_id, sprint_id))
        if "list_tickets" in self.fail:
            raise GatewayError("list_tickets failed", status=500)
        return [t for t in self.tickets.values() if sprint_id is None or t.sprint_id == sprint_id]

    async def list_sprints(self, project_id):
        self.calls.append(("list_sprints", project_id))
        if "list_sprints" in self.fail:
            raise GatewayError("list_sprints failed", status=500)
        return list(self.sprints.values())

    async def update_ticket_status(self, ticket_id, status):
        await self._enter("update_ticket_status", ticket_id, status)
        ticket = self.tickets[ticket_id].with_status(status)
        self.tickets[ticket_id] = ticket
        return ticket

    async def assign_sprint(self, ticket_id, sprint_id):
        await self._enter("assign_sprint", ticket_id, sprint_id)
        ticket = self.tickets[ticket_id].with_sprint(sprint_id)
        self.tickets[ticket_id] = ticket
        return ticket

    async def start_sprint(self, sprint_id):
        await self._enter("start_sprint", sprint_id)
        sprint = replace(self.sprints[sprint_id], status=SprintStatus.ACTIVE)
        self.sprints[sprint_id] = sprint
        return sprint

    async def complete_sprint(self, sprint_id):
        """Completing sends unfinished tickets back to the backlog."""
        await self._enter("complete_sprint", sprint_id)
        sprint = replace(self.sprints[sprint_id], status=SprintStatus.COMPLETED)
        self.sprints[sprint_id] = sprint
        for tid, t in self.tickets.items():
            if t.sprint_id == sprint_id and t.status is not TicketStatus.COMPLETE:
                self.tickets[tid] = t.with_sprint(None)
        return sprint

    async def aclose(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        pass


@pytest.fixture
def make_ticket():
    def _make(ticket_id, title=None, status=TicketStatus.UNSTARTED, sprint=None, **kwargs):
        return Ticket(
            id=ticket_id,
            title=title or f"Ticket {ticket_id}",
            status=status,
            sprint_id=sprint,
            project_id=PROJECT,
            **kwargs,
        )

    return _make


@pytest.fixture
def sprints():
    return [
        Sprint("s0", "Sprint 0", date(2026, 9, 15), date(2026, 9, 28), SprintStatus.COMPLETED, project_id=PROJECT),
        Sprint("s1", "Sprint 1", date(2026, 10, 1), date(2026, 10, 14), SprintStatus.ACTIVE, "Ship login", PROJECT),
        Sprint("s2", "Sprint 2", date(2026, 10, 15), date(2026, 10, 28), SprintStatus.PLANNED, project_id=PROJECT),
    ]


@pytest.fixture
def tickets(make_ticket):
    """Four tickets in the active sprint, one planned, one in the backlog, one done in the past."""
    return [
        make_ticket("t1", "Login page", priority=Priority.HIGH, sprint="s1", assignee=Assignee("Alice", "a@x.io")),
        make_ticket(
            "t2",
            "Fix crash on save",
            TicketStatus.IN_PROGRESS,
            "s1",
            priority=Priority.CRITICAL,
            type=TicketType.BUG,
            assignee=Assignee("Bob", "b@x.io"),
        ),
        make_ticket("t3", "Write docs", TicketStatus.IN_REVIEW, "s1", priority=Priority.LOW),
        make_ticket("t4", "Release notes", TicketStatus.COMPLETE, "s1"),
        make_ticket("t5", "Search API", sprint="s2"),
        make_ticket("t6", "Dark mode"),
        make_ticket("t7", "Old task", TicketStatus.COMPLETE, "s0"),
    ]


@pytest.fixture
def gateway(tickets, sprints):
    return FakeGateway(tickets, sprints)
