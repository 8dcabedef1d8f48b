"""Ticket and sprint records as they arrive from the service."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Any

from tickboard.errors import InvalidTransition, PayloadError


class TicketStatus(Enum):
    """Workflow status. Values are the strings the service uses."""

    UNSTARTED = "To Do"
    IN_PROGRESS = "In Progress"
    IN_REVIEW = "In Review"
    COMPLETE = "Done"


@total_ordering
class Priority(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank


class TicketType(Enum):
    TASK = "Task"
    BUG = "Bug"
    STORY = "Story"


class SprintStatus(Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


VALID_TRANSITIONS: frozenset[tuple[SprintStatus, SprintStatus]] = frozenset(
    {
        (SprintStatus.PLANNED, SprintStatus.ACTIVE),  # start
        (SprintStatus.ACTIVE, SprintStatus.COMPLETED),  # complete
    }
)


def validate_transition(sprint_id: str, from_status: SprintStatus, to_status: SprintStatus) -> None:
    """Raise InvalidTransition unless the sprint may move forward to to_status."""
    if (from_status, to_status) not in VALID_TRANSITIONS:
        raise InvalidTransition(sprint_id, from_status, to_status)


@dataclass(frozen=True)
class Assignee:
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class Ticket:
    """A ticket. Sprint membership lives here, not on the sprint."""

    id: str
    title: str
    status: TicketStatus = TicketStatus.UNSTARTED
    priority: Priority = Priority.MEDIUM
    sprint_id: str | None = None
    assignee: Assignee | None = None
    project_id: str | None = None
    type: TicketType = TicketType.TASK
    updated_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Ticket:
        """Build a Ticket from a service payload, validating required fields."""
        if not isinstance(payload, dict):
            raise PayloadError(f"ticket payload must be an object, got {type(payload).__name__}")
        ticket_id = _ref_id(payload.get("_id", payload.get("id")))
        if not ticket_id:
            raise PayloadError("ticket payload has no _id")
        title = payload.get("title")
        if not isinstance(title, str):
            raise PayloadError(f"ticket {ticket_id} has no title")
        return cls(
            id=ticket_id,
            title=title,
            status=_enum(TicketStatus, payload.get("status"), TicketStatus.UNSTARTED, ticket_id),
            priority=_enum(Priority, payload.get("priority"), Priority.MEDIUM, ticket_id),
            sprint_id=_ref_id(payload.get("sprintId")),
            assignee=_assignee(payload.get("assignee")),
            project_id=_ref_id(payload.get("projectId")),
            type=_enum(TicketType, payload.get("type"), TicketType.TASK, ticket_id),
            updated_at=_timestamp(payload.get("updatedAt")),
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the service's field names."""
        data: dict[str, Any] = {
            "_id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "type": self.type.value,
            "sprintId": self.sprint_id,
        }
        if self.project_id is not None:
            data["projectId"] = self.project_id
        if self.assignee is not None:
            data["assignee"] = {"name": self.assignee.name, "email": self.assignee.email}
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at.isoformat()
        return data

    def with_status(self, status: TicketStatus) -> Ticket:
        return replace(self, status=status)

    def with_sprint(self, sprint_id: str | None) -> Ticket:
        return replace(self, sprint_id=sprint_id)

    @property
    def short_id(self) -> str:
        """Last four characters of the id, as shown on cards."""
        return self.id[-4:]


@dataclass(frozen=True)
class Sprint:
    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    status: SprintStatus = SprintStatus.PLANNED
    goal: str = ""
    project_id: str | None = None

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise PayloadError(f"sprint {self.id} starts after it ends")

    @classmethod
    def from_payload(cls, payload: Any) -> Sprint:
        """Build a Sprint from a service payload, validating required fields."""
        if not isinstance(payload, dict):
            raise PayloadError(f"sprint payload must be an object, got {type(payload).__name__}")
        sprint_id = _ref_id(payload.get("_id", payload.get("id")))
        if not sprint_id:
            raise PayloadError("sprint payload has no _id")
        start = _timestamp(payload.get("startDate"))
        end = _timestamp(payload.get("endDate"))
        return cls(
            id=sprint_id,
            name=payload.get("name") or sprint_id,
            start_date=start.date() if start else None,
            end_date=end.date() if end else None,
            status=_enum(SprintStatus, payload.get("status"), SprintStatus.PLANNED, sprint_id),
            goal=payload.get("goal") or "",
            project_id=_ref_id(payload.get("projectId")),
        )

    def advance(self, to_status: SprintStatus) -> Sprint:
        """Return a copy in to_status, enforcing forward-only transitions."""
        validate_transition(self.id, self.status, to_status)
        return replace(self, status=to_status)


def _ref_id(value: Any) -> str | None:
    """Accept either a bare id or a populated document with _id."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return _ref_id(value.get("_id", value.get("id")))
    return str(value)


def _enum(enum_cls, raw: Any, default, owner: str):
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        raise PayloadError(f"{owner}: unknown {enum_cls.__name__} {raw!r}") from None


def _assignee(raw: Any) -> Assignee | None:
    if not isinstance(raw, dict):
        return None
    return Assignee(name=raw.get("name") or "", email=raw.get("email") or "")


def _timestamp(raw: Any) -> datetime | None:
    """Parse ISO-8601 timestamps as the service sends them. Values without an offset are UTC."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
