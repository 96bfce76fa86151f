from __future__ import annotations

import random
from typing import Any, Protocol

DEFAULT_EXCHANGES: tuple[str, ...] = ("binance", "coinbase", "kraken", "bybit", "okx")


class SnapshotSource(Protocol):
    def next_payload(self, now_ms: int) -> dict[str, Any]: ...


class RandomSnapshotSource:
    """Plausible-looking venue snapshots for keeping the display alive offline."""

    def __init__(
        self,
        *,
        exchanges: tuple[str, ...] = DEFAULT_EXCHANGES,
        base_price: float = 27_000.0,
        price_spread: float = 1_000.0,
        max_volume: float = 3.0,
        rng: random.Random | None = None,
    ) -> None:
        if not exchanges:
            raise ValueError("exchanges must not be empty")
        self._exchanges = exchanges
        self._base_price = base_price
        self._price_spread = price_spread
        self._max_volume = max_volume
        self._rng = rng or random.Random()

    def next_payload(self, now_ms: int) -> dict[str, Any]:
        rng = self._rng
        mid = self._base_price + rng.random() * self._price_spread
        volume = rng.random() * self._max_volume
        return {
            "exchange": rng.choice(self._exchanges),
            "timestamp": now_ms,
            "buy_volume": volume if rng.random() > 0.5 else 0.0,
            "sell_volume": volume if rng.random() > 0.5 else 0.0,
            "buy_avg_price": mid + rng.random() * 10,
            "sell_avg_price": mid - rng.random() * 10,
            "buy_count": rng.randrange(5),
            "sell_count": rng.randrange(5),
        }
