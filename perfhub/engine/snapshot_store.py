from __future__ import annotations

import threading

from perfhub.models.metrics import MetricsSnapshot


class LatestSnapshotStore:
    """Holds the most recent snapshot for any number of concurrent readers.

    The snapshot and its publish version live in one tuple that is replaced
    wholesale, so a reader always sees a pair that was published together.
    Readers never lock; the lock only orders writers.
    """

    def __init__(self, initial: MetricsSnapshot | None = None) -> None:
        self._entry: tuple[int, MetricsSnapshot] = (0, initial or MetricsSnapshot())
        self._write_lock = threading.Lock()

    def publish(self, snapshot: MetricsSnapshot) -> int:
        with self._write_lock:
            version = self._entry[0] + 1
            self._entry = (version, snapshot)
        return version

    def current(self) -> MetricsSnapshot:
        return self._entry[1]

    def current_versioned(self) -> tuple[int, MetricsSnapshot]:
        return self._entry

    @property
    def version(self) -> int:
        return self._entry[0]
