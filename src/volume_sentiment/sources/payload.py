from __future__ import annotations

import json
import math
from typing import Any

from volume_sentiment.core.models import Snapshot

_FLOAT_FIELDS = (
    "buy_volume",
    "sell_volume",
    "buy_avg_price",
    "sell_avg_price",
    "buy_min_price",
    "buy_max_price",
    "sell_min_price",
    "sell_max_price",
)
_INT_FIELDS = ("buy_count", "sell_count")


class PayloadValidationError(ValueError):
    """Raised when an inbound message cannot be admitted as a snapshot."""


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def _optional_number(payload: dict[str, Any], key: str) -> float:
    value = payload.get(key)
    if value is None:
        return 0.0
    if not _is_number(value):
        raise PayloadValidationError(f"{key} must be a number, got {value!r}")
    if value < 0:
        raise PayloadValidationError(f"{key} must be >= 0, got {value!r}")
    return float(value)


def _side_is_plausible(payload: dict[str, Any], volume_key: str, price_key: str) -> bool:
    volume = payload.get(volume_key)
    if not _is_number(volume):
        return False
    if volume == 0:
        return True
    price = payload.get(price_key)
    return _is_number(price) and price > 0


def decode_payload(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadValidationError("payload is not valid UTF-8") from exc

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PayloadValidationError(f"payload is not valid JSON: {exc.msg}") from exc

    if not isinstance(decoded, dict):
        raise PayloadValidationError(f"payload must be a JSON object, got {type(decoded).__name__}")
    return decoded


def parse_snapshot(raw: str | bytes | dict[str, Any]) -> Snapshot:
    """Validate one inbound message and build the snapshot it describes.

    Both wire shapes are accepted: the plain one carrying per-side averages and
    the richer one that also carries per-side min/max prices. Missing optional
    fields are read as zero.
    """
    payload = decode_payload(raw)

    exchange = payload.get("exchange")
    if not isinstance(exchange, str) or not exchange.strip():
        raise PayloadValidationError("exchange must be a non-empty string")

    timestamp = payload.get("timestamp")
    if not _is_number(timestamp) or timestamp <= 0:
        raise PayloadValidationError(f"timestamp must be a positive number, got {timestamp!r}")

    if not (
        _side_is_plausible(payload, "buy_volume", "buy_avg_price")
        or _side_is_plausible(payload, "sell_volume", "sell_avg_price")
    ):
        raise PayloadValidationError("no side carries a plausible volume/price pair")

    floats = {key: _optional_number(payload, key) for key in _FLOAT_FIELDS}
    ints = {key: int(_optional_number(payload, key)) for key in _INT_FIELDS}

    return Snapshot(exchange=exchange, timestamp=int(timestamp), **floats, **ints)
