"""Tickets, sprints and the partitions they are grouped into."""

from tickboard.model.partition import Partition
from tickboard.model.schemes import UNSCHEDULED, SprintScheme, StatusScheme
from tickboard.model.scope import Scope
from tickboard.model.search import Projection, project
from tickboard.model.ticket import (
    Assignee,
    Priority,
    Sprint,
    SprintStatus,
    Ticket,
    TicketStatus,
    TicketType,
)

__all__ = [
    "Assignee",
    "Partition",
    "Priority",
    "Projection",
    "Scope",
    "Sprint",
    "SprintScheme",
    "SprintStatus",
    "StatusScheme",
    "Ticket",
    "TicketStatus",
    "TicketType",
    "UNSCHEDULED",
    "project",
]
