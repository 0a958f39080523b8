from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    scene_scale: float = 3.0
    earth_directed_lon_deg: float = 45.0
    earth_directed_lat_deg: float = 30.0
    default_half_angle_deg: float = 30.0
    impact_window_au: float = 0.2
    timeline_lookahead_days: int = 3
    default_range_days: int = 3
    log_level: str = "INFO"
    log_file: str | None = None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def load_settings() -> Settings:
    return Settings(
        scene_scale=_env_float("CME_SCENE_SCALE", 3.0),
        earth_directed_lon_deg=_env_float("CME_EARTH_DIRECTED_LON_DEG", 45.0),
        earth_directed_lat_deg=_env_float("CME_EARTH_DIRECTED_LAT_DEG", 30.0),
        default_half_angle_deg=_env_float("CME_DEFAULT_HALF_ANGLE_DEG", 30.0),
        impact_window_au=_env_float("CME_IMPACT_WINDOW_AU", 0.2),
        timeline_lookahead_days=_env_int("CME_TIMELINE_LOOKAHEAD_DAYS", 3),
        default_range_days=_env_int("CME_DEFAULT_RANGE_DAYS", 3),
        log_level=os.environ.get("CME_LOG_LEVEL", "INFO").upper(),
        log_file=os.environ.get("CME_LOG_FILE") or None,
    )
