from __future__ import annotations

from typing import Iterable

import numpy as np

from ..models import CmeFrameState
from .units import AU_KM


def direction_vector(longitude_deg: float, latitude_deg: float) -> np.ndarray:
    lon = np.radians(longitude_deg)
    lat = np.radians(latitude_deg)
    return np.array([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])


def angle_from_earth_line(
    longitude_deg: float,
    latitude_deg: float,
    earth_longitude_deg: float = 0.0,
    earth_latitude_deg: float = 0.0,
) -> float:
    cme_dir = direction_vector(longitude_deg, latitude_deg)
    earth_dir = direction_vector(earth_longitude_deg, earth_latitude_deg)
    cos_angle = float(np.clip(np.dot(cme_dir, earth_dir), -1.0, 1.0))
    return float(np.degrees(np.arccos(cos_angle)))


def within_impact_shell(distance_km: float, window_au: float = 0.2, earth_orbital_radius_km: float = AU_KM) -> bool:
    window_km = window_au * AU_KM
    return earth_orbital_radius_km - window_km <= distance_km <= earth_orbital_radius_km + window_km


def impacts_earth(
    distance_km: float,
    longitude_deg: float,
    latitude_deg: float,
    half_angle_deg: float,
    *,
    window_au: float = 0.2,
    earth_orbital_radius_km: float = AU_KM,
    earth_longitude_deg: float = 0.0,
) -> bool:
    if half_angle_deg <= 0:
        return False
    if not within_impact_shell(distance_km, window_au, earth_orbital_radius_km):
        return False
    return angle_from_earth_line(longitude_deg, latitude_deg, earth_longitude_deg) <= half_angle_deg


def max_impact_speed(states: Iterable[CmeFrameState]) -> float:
    speeds = [state.classification.speedKmPerSec for state in states if state.visible and state.impactsEarth]
    return max(speeds, default=0.0)
