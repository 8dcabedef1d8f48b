"""Read-only filtered view over a partition."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterator

from tickboard.model.partition import Partition
from tickboard.model.ticket import Ticket


def matches(ticket: Ticket, query: str) -> bool:
    """Case-insensitive substring match on title, id or assignee name.

    query must already be lower-cased.
    """
    if query in ticket.title.lower() or query in ticket.id.lower():
        return True
    return ticket.assignee is not None and query in ticket.assignee.name.lower()


class Projection(Mapping):
    """Bucket key -> tickets, as displayed.

    A projection with an active query is not a drag source or target:
    its indices do not line up with the partition's.
    """

    def __init__(self, buckets: dict[str, tuple[Ticket, ...]], query: str = "") -> None:
        self._buckets = buckets
        self.query = query

    @property
    def drag_enabled(self) -> bool:
        return not self.query

    def __getitem__(self, key: str) -> tuple[Ticket, ...]:
        return self._buckets[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def ids(self) -> dict[str, tuple[str, ...]]:
        """Bucket layout as ticket ids, comparable with Partition.snapshot()."""
        return {key: tuple(t.id for t in tickets) for key, tickets in self._buckets.items()}

    def count(self) -> int:
        return sum(len(tickets) for tickets in self._buckets.values())


def project(partition: Partition, query: str | None) -> Projection:
    """Filter every bucket down to tickets matching query.

    A blank query keeps everything. The partition is only read.
    """
    q = (query or "").strip().lower()
    buckets = {}
    for key in partition.keys:
        tickets = partition.tickets(key)
        if q:
            tickets = [t for t in tickets if matches(t, q)]
        buckets[key] = tuple(tickets)
    return Projection(buckets, q)
