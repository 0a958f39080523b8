from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any


def sha256_bytes(value: bytes) -> str:
    return hashlib.sha256(value).hexdigest()


def stable_json_dumps(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def stable_hash(payload: Any) -> str:
    return sha256_bytes(stable_json_dumps(payload).encode("utf-8"))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def map_linear(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_utc(value: str) -> datetime:
    """Parse DONKI-style timestamps such as ``2024-05-10T06:36Z`` as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    return ensure_utc(datetime.fromisoformat(text))
