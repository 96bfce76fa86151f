from __future__ import annotations

import pytest

from volume_sentiment.core.config import Settings
from volume_sentiment.core.models import PriceMode


def test_settings_defaults_match_feed_contract() -> None:
    settings = Settings(_env_file=None)

    assert settings.max_reconnect_attempts == 5
    assert settings.reconnect_base_ms == 1000
    assert settings.retention_ms == 300_000
    assert settings.store_capacity == 1000
    assert settings.cache_capacity == 10
    assert settings.stale_after_ms == 10_000
    assert settings.price_mode is PriceMode.MEAN


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VSM_WEBSOCKET_URL", "wss://example.test/ws")
    monkeypatch.setenv("VSM_PRICE_MODE", "vwap")
    monkeypatch.setenv("VSM_TRADE_DISPLAY_LIMIT", "50")

    settings = Settings(_env_file=None)

    assert settings.websocket_url == "wss://example.test/ws"
    assert settings.price_mode is PriceMode.VWAP
    assert settings.trade_display_limit == 50
