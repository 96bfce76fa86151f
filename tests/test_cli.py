from __future__ import annotations

import json
import logging

from typer.testing import CliRunner

from volume_sentiment.cli.app import _format_diff, app
from volume_sentiment.core.logging import configure_logging


def test_format_diff_signs_values() -> None:
    assert _format_diff(0.0) == "(0)"
    assert _format_diff(1.234) == "(+1.23%)"
    assert _format_diff(-2.5) == "(-2.50%)"


def test_synthetic_command_prints_valid_payloads() -> None:
    result = CliRunner().invoke(app, ["synthetic", "--count", "1", "--seed", "3"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["exchange"] in {"binance", "coinbase", "kraken", "bybit", "okx"}
    assert payload["buy_avg_price"] > 0


def test_configure_logging_installs_one_handler() -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        configure_logging("debug")
        configure_logging("info")
        added = [handler for handler in root.handlers if handler not in before]
        assert len(added) == 1
        assert root.level == logging.INFO
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
