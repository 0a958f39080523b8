from __future__ import annotations

import math

from ..models import SpeedBand, SpeedClassification
from ..utils import clamp, map_linear

DISPLAY_MIN_SPEED = 300.0
DISPLAY_MAX_SPEED = 3000.0
MIN_OPACITY = 0.06
MAX_OPACITY = 0.65
MIN_PARTICLES = 1600
MAX_PARTICLES = 8000
MIN_PARTICLE_SIZE = 0.035
MAX_PARTICLE_SIZE = 0.085

TRANSITION_LOW = 350.0
TRANSITION_HIGH = 500.0

# First match wins; speeds below the last threshold are transitional or slow.
BAND_THRESHOLDS: tuple[tuple[float, SpeedBand], ...] = (
    (2500.0, SpeedBand.extreme),
    (1800.0, SpeedBand.major),
    (1000.0, SpeedBand.strong),
    (800.0, SpeedBand.moderate),
    (500.0, SpeedBand.mild),
)

BAND_COLORS: dict[SpeedBand, tuple[int, int, int]] = {
    SpeedBand.extreme: (0xFF, 0x69, 0xB4),
    SpeedBand.major: (0x93, 0x70, 0xDB),
    SpeedBand.strong: (0xFF, 0x45, 0x00),
    SpeedBand.moderate: (0xFF, 0xA5, 0x00),
    SpeedBand.mild: (0xFF, 0xFF, 0x00),
    SpeedBand.slow: (0x80, 0x80, 0x80),
}


def sanitize_speed(speed_km_s: float) -> float:
    if speed_km_s is None or math.isnan(speed_km_s) or speed_km_s < 0:
        return 0.0
    return speed_km_s


def speed_band(speed_km_s: float) -> SpeedBand:
    speed = sanitize_speed(speed_km_s)
    for threshold, band in BAND_THRESHOLDS:
        if speed >= threshold:
            return band
    if speed < TRANSITION_LOW:
        return SpeedBand.slow
    return SpeedBand.transitional


def interpolation_fraction(speed_km_s: float) -> float:
    speed = sanitize_speed(speed_km_s)
    return clamp((speed - TRANSITION_LOW) / (TRANSITION_HIGH - TRANSITION_LOW), 0.0, 1.0)


def _display_speed(speed_km_s: float) -> float:
    return clamp(sanitize_speed(speed_km_s), DISPLAY_MIN_SPEED, DISPLAY_MAX_SPEED)


def speed_opacity(speed_km_s: float) -> float:
    return map_linear(_display_speed(speed_km_s), DISPLAY_MIN_SPEED, DISPLAY_MAX_SPEED, MIN_OPACITY, MAX_OPACITY)


def particle_density(speed_km_s: float) -> int:
    count = map_linear(_display_speed(speed_km_s), DISPLAY_MIN_SPEED, DISPLAY_MAX_SPEED, MIN_PARTICLES, MAX_PARTICLES)
    return int(math.floor(count))


def particle_size_factor(speed_km_s: float) -> float:
    return map_linear(
        _display_speed(speed_km_s), DISPLAY_MIN_SPEED, DISPLAY_MAX_SPEED, MIN_PARTICLE_SIZE, MAX_PARTICLE_SIZE
    )


def _hex(rgb: tuple[int, int, int]) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def core_color(speed_km_s: float) -> str:
    band = speed_band(speed_km_s)
    if band != SpeedBand.transitional:
        return _hex(BAND_COLORS[band])
    t = interpolation_fraction(speed_km_s)
    low = BAND_COLORS[SpeedBand.slow]
    high = BAND_COLORS[SpeedBand.mild]
    blended = tuple(int(round(a + (b - a) * t)) for a, b in zip(low, high))
    return _hex(blended)  # type: ignore[arg-type]


def classify_speed(speed_km_s: float) -> SpeedClassification:
    speed = sanitize_speed(speed_km_s)
    return SpeedClassification(
        speedKmPerSec=speed if math.isfinite(speed) else DISPLAY_MAX_SPEED,
        band=speed_band(speed),
        interpolationFraction=interpolation_fraction(speed),
        opacity=speed_opacity(speed),
        particleDensity=particle_density(speed),
        particleSizeFactor=particle_size_factor(speed),
        coreColor=core_color(speed),
    )
