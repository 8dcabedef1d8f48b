"""Ordered buckets of tickets with change notification.

A Partition assigns every in-scope ticket to exactly one bucket. Bucket
keys come from a scheme (workflow status, or sprint assignment) which
also knows how to read and rewrite the ticket field that decides
membership.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from tickboard.errors import NotFound
from tickboard.model.ticket import Ticket

if TYPE_CHECKING:
    from tickboard.model.schemes import Scheme

logger = logging.getLogger(__name__)

ALL = "*"

Callback = Callable[["Partition", str, Any, Any], None]


def ticket_key(ticket_id: str) -> str:
    """Watch key for changes to a single ticket's payload."""
    return f"ticket:{ticket_id}"


class Partition:
    """Tickets grouped into ordered, keyed buckets.

    Buckets are ordered sequences so manual reordering inside a bucket
    survives. Each mutation replaces the affected bucket tuples in one
    step, then fires watchers for the keys that changed.
    """

    def __init__(self, scheme: Scheme) -> None:
        self.scheme = scheme
        self._buckets: dict[str, tuple[str, ...]] = {key: () for key in scheme.keys}
        self._tickets: dict[str, Ticket] = {}
        self._where: dict[str, str] = {}
        self._watchers: dict[str, list[Callback]] = {}
        self._version = 0

    # -- reads --

    @property
    def keys(self) -> list[str]:
        return list(self._buckets)

    @property
    def version(self) -> int:
        return self._version

    def bucket(self, key: str) -> tuple[str, ...]:
        """Ticket ids in bucket order. Unknown keys raise KeyError."""
        return self._buckets[key]

    def tickets(self, key: str) -> list[Ticket]:
        return [self._tickets[tid] for tid in self._buckets[key]]

    def ticket(self, ticket_id: str) -> Ticket | None:
        return self._tickets.get(ticket_id)

    def locate(self, ticket_id: str) -> tuple[str, int] | None:
        """Return (bucket, index) of a ticket, or None if absent."""
        key = self._where.get(ticket_id)
        if key is None:
            return None
        return key, self._buckets[key].index(ticket_id)

    def snapshot(self) -> dict[str, tuple[str, ...]]:
        """A copy of the bucket layout, for comparisons and rendering."""
        return dict(self._buckets)

    def __contains__(self, ticket_id: str) -> bool:
        return ticket_id in self._where

    def __len__(self) -> int:
        return len(self._where)

    def __repr__(self) -> str:
        sizes = ", ".join(f"{k}={len(v)}" for k, v in self._buckets.items())
        return f"<Partition [{sizes}]>"

    # -- watching --

    def watch(self, key: str, callback: Callback) -> Callable[[], None]:
        """Watch a bucket (or ``"*"`` for full rebuilds). Returns an unwatch callable."""
        self._watchers.setdefault(key, []).append(callback)
        return lambda: callback in self._watchers.get(key, ()) and self._watchers[key].remove(callback)

    def _emit(self, key: str, old: Any, new: Any) -> None:
        for cb in list(self._watchers.get(key, ())):
            cb(self, key, old, new)

    def _set_bucket(self, key: str, ids: Iterable[str]) -> None:
        old = self._buckets[key]
        new = tuple(ids)
        if old == new:
            return
        self._buckets[key] = new
        self._version += 1
        self._emit(key, old, new)

    def _set_ticket(self, ticket: Ticket) -> None:
        old = self._tickets.get(ticket.id)
        self._tickets[ticket.id] = ticket
        if old != ticket:
            self._emit(ticket_key(ticket.id), old, ticket)

    # -- mutations --

    def initialize(
        self,
        tickets: Iterable[Ticket],
        bucket_key: Callable[[Ticket], str] | None = None,
        *,
        scheme: Scheme | None = None,
    ) -> None:
        """Discard every bucket and rebuild from tickets.

        bucket_key defaults to the scheme's own key function. Passing a
        new scheme replaces the bucket keys (the planner does this when
        the sprint list changes). A ticket id seen twice keeps its last
        occurrence.
        """
        if scheme is not None:
            self.scheme = scheme
        key_fn = bucket_key or self.scheme.key_for

        old = dict(self._buckets)
        layout: dict[str, list[str]] = {key: [] for key in self.scheme.keys}
        by_id: dict[str, Ticket] = {}
        where: dict[str, str] = {}

        for ticket in tickets:
            key = key_fn(ticket)
            if key not in layout:
                logger.warning("ticket %s has unknown bucket %r, skipping", ticket.id, key)
                continue
            previous = where.get(ticket.id)
            if previous is not None:
                layout[previous].remove(ticket.id)
            layout[key].append(ticket.id)
            by_id[ticket.id] = ticket
            where[ticket.id] = key

        self._buckets = {key: tuple(ids) for key, ids in layout.items()}
        self._tickets = by_id
        self._where = where
        self._version += 1
        self._emit(ALL, old, self.snapshot())

    def move_ticket(self, ticket_id: str, from_bucket: str, to_bucket: str, target_index: int) -> Ticket:
        """Move a ticket between buckets (or within one) and rewrite its field.

        target_index is clamped to the destination length. Same bucket
        and same index succeeds without changing anything.
        """
        if from_bucket not in self._buckets or self._where.get(ticket_id) != from_bucket:
            raise NotFound(ticket_id, from_bucket)
        if to_bucket not in self._buckets:
            raise NotFound(ticket_id, to_bucket)

        if from_bucket == to_bucket:
            ids = list(self._buckets[from_bucket])
            ids.remove(ticket_id)
            ids.insert(max(0, min(target_index, len(ids))), ticket_id)
            self._set_bucket(from_bucket, ids)
            return self._tickets[ticket_id]

        source = list(self._buckets[from_bucket])
        source.remove(ticket_id)
        dest = list(self._buckets[to_bucket])
        dest.insert(max(0, min(target_index, len(dest))), ticket_id)

        moved = self.scheme.assign(self._tickets[ticket_id], to_bucket)
        self._where[ticket_id] = to_bucket
        self._set_bucket(from_bucket, source)
        self._set_bucket(to_bucket, dest)
        self._set_ticket(moved)
        return moved

    def upsert_ticket(self, ticket: Ticket) -> str | None:
        """Place a ticket in the bucket its own field names.

        Trusts the payload, not any stale local placement: the ticket is
        removed from wherever it sits and appended to the implied bucket.
        Returns the bucket key, or None when the payload's key is not a
        bucket here (the ticket is then removed).
        """
        key = self.scheme.key_for(ticket)
        current = self._where.get(ticket.id)

        if key not in self._buckets:
            logger.debug("ticket %s names unknown bucket %r", ticket.id, key)
            self.remove_ticket(ticket.id)
            return None

        if current is not None and current != key:
            self._set_bucket(current, (tid for tid in self._buckets[current] if tid != ticket.id))
        self._where[ticket.id] = key
        self._set_bucket(key, tuple(tid for tid in self._buckets[key] if tid != ticket.id) + (ticket.id,))
        self._set_ticket(ticket)
        return key

    def replace_ticket(self, ticket: Ticket) -> bool:
        """Swap in a newer payload without moving the ticket.

        Only applies when the ticket already sits in the bucket its
        payload implies. Returns False (and changes nothing) otherwise.
        """
        if self._where.get(ticket.id) != self.scheme.key_for(ticket):
            return False
        self._set_ticket(ticket)
        return True

    def remove_ticket(self, ticket_id: str) -> None:
        """Delete a ticket from whichever bucket holds it. Absent ids are ignored."""
        key = self._where.pop(ticket_id, None)
        if key is None:
            return
        old = self._tickets.pop(ticket_id, None)
        self._set_bucket(key, (tid for tid in self._buckets[key] if tid != ticket_id))
        self._emit(ticket_key(ticket_id), old, None)
