from __future__ import annotations

from datetime import UTC, datetime

SECOND_MS = 1_000


def now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


def floor_to_second_ms(value_ms: int) -> int:
    return (value_ms // SECOND_MS) * SECOND_MS
