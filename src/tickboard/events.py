"""Messages consumed by the reconciliation loop.

Remote ticket events arrive from the event channel; move results and
refresh requests are posted by the reconciler itself. Every message is
handled in arrival order by one consumer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from tickboard.errors import PayloadError
from tickboard.model.ticket import Ticket

TICKET_CREATED = "ticket_created"
TICKET_UPDATED = "ticket_updated"
TICKET_EVENTS = (TICKET_CREATED, TICKET_UPDATED)


@dataclass(frozen=True)
class TicketCreated:
    ticket: Ticket


@dataclass(frozen=True)
class TicketUpdated:
    ticket: Ticket


RemoteEvent = Union[TicketCreated, TicketUpdated]


@dataclass(frozen=True)
class MoveConfirmed:
    """The service accepted a cross-bucket move."""

    ticket_id: str
    bucket: str
    generation: int
    ticket: Ticket | None = None


@dataclass(frozen=True)
class MoveFailed:
    """The service rejected a move, or it could not be applied locally."""

    ticket_id: str
    bucket: str
    generation: int
    error: Exception | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Refresh:
    """Refetch the scope and rebuild the partition."""

    generation: int
    reason: str = ""


Message = Union[TicketCreated, TicketUpdated, MoveConfirmed, MoveFailed, Refresh]


def parse_event(name: str, payload: Any) -> RemoteEvent:
    """Validate a channel event into a typed message.

    Raises PayloadError for unknown event names or bad ticket payloads.
    """
    if name == TICKET_CREATED:
        return TicketCreated(Ticket.from_payload(payload))
    if name == TICKET_UPDATED:
        return TicketUpdated(Ticket.from_payload(payload))
    raise PayloadError(f"unknown event {name!r}")
