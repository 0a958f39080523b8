"""
Kinematic propagation of a CME front away from the Sun.

Distances are returned in km (the speed unit times seconds). Conversion to
AU or scene units is left to callers, see ``units``.

Every function here is pure and total over floats: invalid numbers are
clamped, never raised, so a bad telemetry record can only ever produce a
front sitting at distance zero.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

import numpy as np

from ..errors import InvalidModeForEventError
from ..models import CmeEvent, PropagationMode
from ..utils import ensure_utc
from .units import AU_KM

# Ambient solar-wind speed; slower fronts coast rather than decelerate.
MIN_SPEED_KM_S = 300.0
MAX_SPEED_KM_S = 299_792.458
DRAG_INTERCEPT_M_S2 = 1.41
DRAG_SLOPE = 0.0035


def _sanitize_speed(speed_km_s: float) -> float:
    if speed_km_s is None or math.isnan(speed_km_s) or speed_km_s <= 0:
        return 0.0
    return min(speed_km_s, MAX_SPEED_KM_S)


def _sanitize_elapsed(elapsed_seconds: float) -> float:
    if elapsed_seconds is None or not math.isfinite(elapsed_seconds) or elapsed_seconds <= 0:
        return 0.0
    return elapsed_seconds


def _sanitize_radius(radius_km: float) -> float:
    if radius_km is None or not math.isfinite(radius_km) or radius_km <= 0:
        return 0.0
    return radius_km


def drag_acceleration(speed_km_s: float) -> float:
    """Acceleration in km/s^2 of the linear drag-like model."""
    return (DRAG_INTERCEPT_M_S2 - DRAG_SLOPE * speed_km_s) / 1000.0


def floor_time_seconds(speed_km_s: float) -> float | None:
    """Seconds until a decelerating front reaches MIN_SPEED_KM_S, or None if it never decelerates."""
    speed = _sanitize_speed(speed_km_s)
    if speed <= MIN_SPEED_KM_S:
        return None
    accel = drag_acceleration(speed)
    if accel >= 0:
        return None
    return (MIN_SPEED_KM_S - speed) / accel


def ballistic_distance(speed_km_s: float, elapsed_seconds: float) -> float:
    speed = _sanitize_speed(speed_km_s)
    t = _sanitize_elapsed(elapsed_seconds)
    if speed == 0.0 or t == 0.0:
        return 0.0
    return speed * t


def decelerating_distance(speed_km_s: float, elapsed_seconds: float) -> float:
    speed = _sanitize_speed(speed_km_s)
    t = _sanitize_elapsed(elapsed_seconds)
    if speed == 0.0 or t == 0.0:
        return 0.0
    if speed <= MIN_SPEED_KM_S:
        return speed * t

    accel = drag_acceleration(speed)
    if accel >= 0:
        return speed * t + 0.5 * accel * t * t

    t_floor = (MIN_SPEED_KM_S - speed) / accel
    if t <= t_floor:
        return speed * t + 0.5 * accel * t * t
    floor_distance = speed * t_floor + 0.5 * accel * t_floor * t_floor
    return floor_distance + MIN_SPEED_KM_S * (t - t_floor)


def interpolated_distance(
    elapsed_seconds: float,
    total_travel_seconds: float | None,
    earth_orbital_radius_km: float = AU_KM,
) -> float:
    if total_travel_seconds is None or not math.isfinite(total_travel_seconds) or total_travel_seconds <= 0:
        return 0.0
    radius = _sanitize_radius(earth_orbital_radius_km)
    t = _sanitize_elapsed(elapsed_seconds)
    progress = min(1.0, t / total_travel_seconds)
    return progress * radius


def propagate(
    event: CmeEvent,
    elapsed_seconds: float,
    mode: PropagationMode | str = PropagationMode.ballistic,
    earth_orbital_radius_km: float = AU_KM,
) -> float:
    mode = PropagationMode(mode)
    if mode == PropagationMode.ballistic:
        return ballistic_distance(event.speed, elapsed_seconds)
    if mode == PropagationMode.decelerating:
        return decelerating_distance(event.speed, elapsed_seconds)
    if event.predictedArrivalTime is None:
        raise InvalidModeForEventError(event.id, mode.value)
    return interpolated_distance(elapsed_seconds, event.travel_window_seconds, earth_orbital_radius_km)


def is_mode_available(event: CmeEvent, mode: PropagationMode | str, require_earth_directed: bool = False) -> bool:
    mode = PropagationMode(mode)
    if mode != PropagationMode.interpolated:
        return True
    if require_earth_directed and not event.isEarthDirected:
        return False
    return event.has_arrival_prediction


def resolve_mode(
    event: CmeEvent,
    requested: PropagationMode | str,
    fallback: PropagationMode | str = PropagationMode.ballistic,
    require_earth_directed: bool = False,
) -> PropagationMode:
    requested = PropagationMode(requested)
    if is_mode_available(event, requested, require_earth_directed=require_earth_directed):
        return requested
    fallback = PropagationMode(fallback)
    if fallback == PropagationMode.interpolated:
        return PropagationMode.ballistic
    return fallback


def current_speed(
    event: CmeEvent,
    elapsed_seconds: float,
    mode: PropagationMode | str = PropagationMode.ballistic,
    earth_orbital_radius_km: float = AU_KM,
) -> float:
    """Front speed in km/s implied by ``mode`` at ``elapsed_seconds``; zero before launch."""
    mode = PropagationMode(mode)
    if elapsed_seconds is None or not math.isfinite(elapsed_seconds) or elapsed_seconds < 0:
        return 0.0
    speed = _sanitize_speed(event.speed)

    if mode == PropagationMode.ballistic:
        return speed
    if mode == PropagationMode.decelerating:
        if speed <= MIN_SPEED_KM_S:
            return speed
        accel = drag_acceleration(speed)
        t_floor = floor_time_seconds(speed)
        if t_floor is None or elapsed_seconds <= t_floor:
            return speed + accel * elapsed_seconds
        return MIN_SPEED_KM_S

    if event.predictedArrivalTime is None:
        raise InvalidModeForEventError(event.id, mode.value)
    total = event.travel_window_seconds
    if total is None or elapsed_seconds > total:
        return 0.0
    return _sanitize_radius(earth_orbital_radius_km) / total


def elapsed_since(start: datetime, now: datetime) -> float:
    return (ensure_utc(now) - ensure_utc(start)).total_seconds()


def focused_elapsed(clock_seconds: float, simulation_start_time: float | None = None) -> float:
    """Elapsed seconds of a focused replay; an unset start means the replay starts now."""
    start = clock_seconds if simulation_start_time is None else simulation_start_time
    elapsed = clock_seconds - start
    if not math.isfinite(elapsed) or elapsed < 0:
        return 0.0
    return elapsed


def propagation_profile(
    event: CmeEvent,
    elapsed_seconds: Iterable[float] | np.ndarray,
    mode: PropagationMode | str = PropagationMode.ballistic,
    earth_orbital_radius_km: float = AU_KM,
) -> np.ndarray:
    mode = PropagationMode(mode)
    t = np.asarray(list(elapsed_seconds) if not isinstance(elapsed_seconds, np.ndarray) else elapsed_seconds, dtype=float)
    t = np.where(np.isfinite(t), t, 0.0)
    t = np.maximum(t, 0.0)
    speed = _sanitize_speed(event.speed)

    if mode == PropagationMode.interpolated:
        if event.predictedArrivalTime is None:
            raise InvalidModeForEventError(event.id, mode.value)
        total = event.travel_window_seconds
        if total is None:
            return np.zeros_like(t)
        return np.clip(t / total, 0.0, 1.0) * _sanitize_radius(earth_orbital_radius_km)

    if speed == 0.0:
        return np.zeros_like(t)

    with np.errstate(over="ignore", invalid="ignore"):
        if mode == PropagationMode.ballistic or speed <= MIN_SPEED_KM_S:
            return np.where(t == 0.0, 0.0, speed * t)

        accel = drag_acceleration(speed)
        free = speed * t + 0.5 * accel * t * t
        if accel >= 0:
            return np.where(t == 0.0, 0.0, free)

        t_floor = (MIN_SPEED_KM_S - speed) / accel
        floor_distance = speed * t_floor + 0.5 * accel * t_floor * t_floor
        coasting = floor_distance + MIN_SPEED_KM_S * (t - t_floor)
        return np.where(t <= t_floor, free, coasting)
