from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum


class Window(IntEnum):
    """Trailing windows used to slice the snapshot history, in seconds."""

    TEN_SECONDS = 10
    THIRTY_SECONDS = 30
    TWO_MINUTES = 120
    FIVE_MINUTES = 300

    @property
    def milliseconds(self) -> int:
        return int(self) * 1000


class PriceMode(StrEnum):
    MEAN = "mean"
    VWAP = "vwap"


class TradeSide(StrEnum):
    BUY = "BUY"
    SELL = "SELL"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionPhase(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def status(self) -> ConnectionStatus:
        if self is ConnectionPhase.CONNECTING:
            return ConnectionStatus.CONNECTING
        if self is ConnectionPhase.CONNECTED:
            return ConnectionStatus.CONNECTED
        return ConnectionStatus.DISCONNECTED


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One venue's volume/price observation at one instant.

    Average prices of 0 mean the side carried no price. The optional min/max
    fields are only populated by feeds that send them and stay 0 otherwise.
    """

    exchange: str
    timestamp: int
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    buy_avg_price: float = 0.0
    sell_avg_price: float = 0.0
    buy_count: int = 0
    sell_count: int = 0
    buy_min_price: float = 0.0
    buy_max_price: float = 0.0
    sell_min_price: float = 0.0
    sell_max_price: float = 0.0

    @property
    def has_valid_buy(self) -> bool:
        return self.buy_volume > 0 and self.buy_avg_price > 0

    @property
    def has_valid_sell(self) -> bool:
        return self.sell_volume > 0 and self.sell_avg_price > 0

    @property
    def total_volume(self) -> float:
        return self.buy_volume + self.sell_volume


@dataclass(frozen=True, slots=True)
class WindowMetrics:
    buy_volume_total: float = 0.0
    sell_volume_total: float = 0.0
    avg_price: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0

    @property
    def total_volume(self) -> float:
        return self.buy_volume_total + self.sell_volume_total


EMPTY_METRICS = WindowMetrics()


@dataclass(frozen=True, slots=True)
class Trade:
    side: TradeSide
    volume: float
    count: int
    price: float
    timestamp: int


@dataclass(frozen=True, slots=True)
class VolumeDiff:
    magnitude: float
    sign: int


@dataclass(frozen=True, slots=True)
class CenteredBar:
    """Left offset and width, both in percent, of a bar anchored at the 50% mark."""

    offset: float
    width: float
    positive: bool


@dataclass(frozen=True, slots=True)
class RangeOverlay:
    left: float
    width: float


@dataclass(frozen=True, slots=True)
class ExchangeRollup:
    name: str
    total_volume: float
    last_price: float
    diff_from_global_avg_percent: float
