from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from volume_sentiment.core.config import Settings
from volume_sentiment.core.models import (
    CenteredBar,
    ConnectionStatus,
    ExchangeRollup,
    RangeOverlay,
    Snapshot,
    Trade,
    TradeSide,
    VolumeDiff,
    Window,
    WindowMetrics,
)
from volume_sentiment.core.time_utils import now_ms
from volume_sentiment.engine import exchanges, trades, windows
from volume_sentiment.engine.store import SnapshotStore
from volume_sentiment.engine.windows import WindowAggregator
from volume_sentiment.sources.synthetic import SnapshotSource
from volume_sentiment.sources.websocket import ConnectFactory, ConnectionManager

logger = logging.getLogger(__name__)

VOLUME_WINDOWS: tuple[Window, ...] = (Window.THIRTY_SECONDS, Window.TWO_MINUTES, Window.FIVE_MINUTES)


@dataclass(frozen=True, slots=True)
class WindowView:
    window: Window
    metrics: WindowMetrics
    buy_percent: float
    volume_diff: VolumeDiff
    volume_bar: CenteredBar
    price_diff: float
    price_bar: CenteredBar
    completeness: float


@dataclass(frozen=True, slots=True)
class DashboardView:
    now_ms: int
    status: ConnectionStatus
    data_stale: bool
    connection_error: str | None
    synthetic: bool
    ten_seconds: WindowMetrics
    price_drift_10s_vs_30s: float
    buy_trades_10s: int
    sell_trades_10s: int
    trade_diff_10s: int
    trade_diff_bar: CenteredBar
    windows: tuple[WindowView, ...]
    ten_second_range: RangeOverlay
    price_marker: float
    buy_trades: tuple[Trade, ...]
    sell_trades: tuple[Trade, ...]
    max_trade_volume: float
    exchanges: tuple[ExchangeRollup, ...]


class SentimentSession:
    """Wires the feed to the store and exposes read-only views for rendering.

    All accessors take an optional ``now`` in epoch milliseconds and default to
    the session clock.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        connect_factory: ConnectFactory | None = None,
        synthetic_source: SnapshotSource | None = None,
        on_tick: Callable[[SentimentSession], None] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._clock = clock
        self._on_tick = on_tick

        self.store = SnapshotStore(
            retention_ms=self._settings.retention_ms,
            capacity=self._settings.store_capacity,
        )
        self.aggregator = WindowAggregator(
            self.store,
            cache_capacity=self._settings.cache_capacity,
            price_mode=self._settings.price_mode,
        )
        self.connection = ConnectionManager(
            url=self._settings.websocket_url,
            store=self.store,
            on_snapshot=self._handle_snapshot,
            on_connected=self._handle_connected,
            on_error=self._handle_error,
            max_reconnect_attempts=self._settings.max_reconnect_attempts,
            reconnect_base_ms=self._settings.reconnect_base_ms,
            mock_interval_ms=self._settings.mock_interval_ms,
            synthetic_source=synthetic_source,
            connect_factory=connect_factory,
            clock=clock,
            debug=self._settings.debug,
        )

        self._start_ms: int | None = None
        self._last_message_ms: int | None = None
        self._connection_error: str | None = None
        self._current_ms = clock()
        self._tick_task: asyncio.Task[None] | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def current_ms(self) -> int:
        """Wall clock as of the last tick."""
        return self._current_ms

    @property
    def last_message_ms(self) -> int | None:
        return self._last_message_ms

    @property
    def start_ms(self) -> int | None:
        return self._start_ms

    @property
    def connection_error(self) -> str | None:
        return self._connection_error

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    def start(self) -> None:
        if self._tick_task is None:
            self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop(), name="volume-sentiment-tick")
        self.connection.connect()

    async def stop(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.connection.disconnect()
        self.aggregator.invalidate()

    async def _tick_loop(self) -> None:
        interval = self._settings.tick_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self._current_ms = self._clock()
            if self._on_tick is None:
                continue
            try:
                self._on_tick(self)
            except Exception:
                logger.exception("Tick callback failed")

    def _handle_snapshot(self, snapshot: Snapshot) -> None:
        received = self._clock()
        self._last_message_ms = received
        if self._start_ms is None:
            self._start_ms = received

    def _handle_connected(self) -> None:
        self._connection_error = None
        self._start_ms = None
        self._last_message_ms = None
        self.store.reset()
        self.aggregator.invalidate()

    def _handle_error(self, exc: Exception) -> None:
        self._connection_error = str(exc) or exc.__class__.__name__

    def _now(self, now: int | None) -> int:
        return now if now is not None else self._clock()

    def is_data_stale(self, now: int | None = None) -> bool:
        if self._last_message_ms is None:
            return True
        return self._now(now) - self._last_message_ms > self._settings.stale_after_ms

    def metrics(self, window: Window, now: int | None = None) -> WindowMetrics:
        return self.aggregator.metrics_for(window, self._now(now))

    def buy_percent(self, window: Window, now: int | None = None) -> float:
        return windows.metrics_buy_percent(self.metrics(window, now))

    def volume_diff(self, window: Window, now: int | None = None) -> VolumeDiff:
        metrics = self.metrics(window, now)
        return windows.volume_diff(metrics.buy_volume_total, metrics.sell_volume_total)

    def trade_counts_10s(self, now: int | None = None) -> tuple[int, int]:
        return windows.trade_counts(self.aggregator.snapshots_for(Window.TEN_SECONDS, self._now(now)))

    def recent_trades(self, now: int | None = None) -> list[Trade]:
        return trades.extract_trades(self.aggregator.snapshots_for(Window.FIVE_MINUTES, self._now(now)))

    def limited_trades(self, side: TradeSide, now: int | None = None) -> list[Trade]:
        return trades.limit_trades(self.recent_trades(now), side, self._settings.trade_display_limit)

    def exchange_rollups(self, now: int | None = None) -> list[ExchangeRollup]:
        reference = self._now(now)
        return exchanges.rollup(
            self.aggregator.snapshots_for(Window.FIVE_MINUTES, reference),
            self.metrics(Window.FIVE_MINUTES, reference).avg_price,
        )

    def exchange_buy_percent(self, exchange: str, window: Window, now: int | None = None) -> float:
        return exchanges.buy_percent_for(self.store, exchange, window, self._now(now))

    def completeness(self, window: Window, now: int | None = None) -> float:
        return windows.completeness_percent(self._start_ms, self._now(now), window)

    def window_view(self, window: Window, now: int | None = None) -> WindowView:
        reference = self._now(now)
        metrics = self.metrics(window, reference)
        price_diff = windows.price_centered_diff(metrics)
        return WindowView(
            window=window,
            metrics=metrics,
            buy_percent=windows.metrics_buy_percent(metrics),
            volume_diff=windows.volume_diff(metrics.buy_volume_total, metrics.sell_volume_total),
            volume_bar=windows.centered_bar(windows.volume_bar_diff(metrics)),
            price_diff=price_diff,
            price_bar=windows.centered_bar(price_diff),
            completeness=self.completeness(window, reference),
        )

    def dashboard(self, now: int | None = None) -> DashboardView:
        reference = self._now(now)
        ten = self.metrics(Window.TEN_SECONDS, reference)
        thirty = self.metrics(Window.THIRTY_SECONDS, reference)
        two = self.metrics(Window.TWO_MINUTES, reference)
        buy_count, sell_count = self.trade_counts_10s(reference)
        recent = self.recent_trades(reference)
        limit = self._settings.trade_display_limit

        return DashboardView(
            now_ms=reference,
            status=self.status,
            data_stale=self.is_data_stale(reference),
            connection_error=self._connection_error,
            synthetic=self.connection.mock_active,
            ten_seconds=ten,
            price_drift_10s_vs_30s=windows.price_drift_percent(ten, thirty),
            buy_trades_10s=buy_count,
            sell_trades_10s=sell_count,
            trade_diff_10s=buy_count - sell_count,
            trade_diff_bar=windows.trade_diff_bar(buy_count, sell_count),
            windows=tuple(self.window_view(window, reference) for window in VOLUME_WINDOWS),
            ten_second_range=windows.range_overlay(ten, two),
            price_marker=windows.price_marker(ten, two),
            buy_trades=tuple(trades.limit_trades(recent, TradeSide.BUY, limit)),
            sell_trades=tuple(trades.limit_trades(recent, TradeSide.SELL, limit)),
            max_trade_volume=trades.max_volume(recent),
            exchanges=tuple(self.exchange_rollups(reference)),
        )
