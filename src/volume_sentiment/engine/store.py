from __future__ import annotations

import logging

from volume_sentiment.core.models import Snapshot
from volume_sentiment.core.time_utils import now_ms

DEFAULT_RETENTION_MS = 300_000
DEFAULT_CAPACITY = 1000

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Bounded, arrival-ordered buffer of admitted snapshots.

    Every mutation bumps ``revision`` so readers holding derived state can tell
    when it went stale.
    """

    def __init__(self, *, retention_ms: int = DEFAULT_RETENTION_MS, capacity: int = DEFAULT_CAPACITY) -> None:
        self._retention_ms = retention_ms
        self._capacity = max(1, capacity)
        self._snapshots: list[Snapshot] = []
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def retention_ms(self) -> int:
        return self._retention_ms

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._snapshots)

    def admit(self, snapshot: Snapshot, now: int | None = None) -> None:
        reference = now if now is not None else now_ms()
        cutoff = reference - self._retention_ms

        self._snapshots.append(snapshot)
        kept = [item for item in self._snapshots if item.timestamp > cutoff]
        if len(kept) > self._capacity:
            kept = kept[-self._capacity :]

        dropped = len(self._snapshots) - len(kept)
        if dropped:
            logger.debug("Pruned snapshots", extra={"dropped": dropped, "cutoff_ms": cutoff})
        self._snapshots = kept
        self._revision += 1

    def reset(self) -> None:
        self._snapshots = []
        self._revision += 1

    def all(self) -> tuple[Snapshot, ...]:
        return tuple(self._snapshots)

    def since(self, cutoff_ms: int, *, exchange: str | None = None) -> list[Snapshot]:
        return [
            item
            for item in self._snapshots
            if item.timestamp > cutoff_ms and (exchange is None or item.exchange == exchange)
        ]
