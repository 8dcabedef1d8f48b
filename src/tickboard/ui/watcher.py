"""Mixin that manages partition and status watches with auto-cleanup."""

from __future__ import annotations

from typing import Callable

from tickboard.engine import Reconciler, StatusCallback
from tickboard.model.partition import Callback, Partition


class PartitionWatcherMixin:
    """Mixin for widgets that watch a Partition or a Reconciler's status.

    Subclasses should:
    - Call ``_init_watcher()`` in ``__init__``
    - Use ``self.partition_watch(partition, key, callback)`` instead of ``partition.watch(...)``
    - Skip writing ``on_unmount`` -- the mixin handles cleanup
    """

    def _init_watcher(self) -> None:
        self._watches: list[Callable[[], None]] = []

    def partition_watch(self, partition: Partition, key: str, callback: Callback) -> None:
        """Register a watch that is removed when the widget unmounts."""
        self._watches.append(partition.watch(key, callback))

    def status_watch(self, rec: Reconciler, callback: StatusCallback) -> None:
        self._watches.append(rec.watch_status(callback))

    def on_unmount(self) -> None:
        for unwatch in self._watches:
            unwatch()
        self._watches.clear()
