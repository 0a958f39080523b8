from __future__ import annotations

import math
from datetime import timedelta

from ..models import ArrivalForecast, ArrivalMilestone, ArrivalParameters
from ..utils import clamp
from .units import AU_KM, SECONDS_PER_HOUR

FRACTION_STOPS = (0.0, 0.25, 0.5, 0.75, 1.0)
ZERO_ACCELERATION = 1e-6


def transit_seconds(initial_speed: float, acceleration: float, distance_km: float = AU_KM) -> float:
    ballistic = distance_km / max(initial_speed, 1.0)
    if abs(acceleration) < ZERO_ACCELERATION:
        return ballistic

    # Drag strong enough to stop the front short of 1 AU has no real root; the
    # clamped discriminant then yields the stopping time -v0 / a.
    discriminant = initial_speed * initial_speed + 2.0 * acceleration * distance_km
    root = math.sqrt(max(0.0, discriminant))
    candidate = (-initial_speed + root) / acceleration
    if candidate > 0:
        return candidate
    return ballistic


def front_speed(initial_speed: float, acceleration: float, elapsed_seconds: float) -> float:
    return max(0.0, initial_speed + acceleration * elapsed_seconds)


def kp_estimate(params: ArrivalParameters) -> int:
    raw = (
        2.0
        + params.density * 0.1
        + params.angularWidth * 0.02
        + params.initialSpeed * 0.002
        - params.acceleration * 900.0
    )
    return int(round(clamp(raw, 1.0, 9.0)))


def predict_arrival(params: ArrivalParameters, distance_km: float = AU_KM) -> ArrivalForecast:
    v0 = params.initialSpeed
    accel = params.acceleration
    transit = transit_seconds(v0, accel, distance_km)

    milestones: list[ArrivalMilestone] = []
    for fraction in FRACTION_STOPS:
        t = transit * fraction
        milestones.append(
            ArrivalMilestone(
                label="Arrival" if fraction == 1.0 else f"{round(fraction * 100)}% distance",
                timeHours=t / SECONDS_PER_HOUR,
                distanceAu=distance_km * fraction / AU_KM,
                speed=front_speed(v0, accel, t),
            )
        )

    return ArrivalForecast(
        arrival=params.launchTime + timedelta(seconds=transit),
        transitHours=transit / SECONDS_PER_HOUR,
        finalSpeed=front_speed(v0, accel, transit),
        kpEstimate=kp_estimate(params),
        milestones=milestones,
    )
