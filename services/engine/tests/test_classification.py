from __future__ import annotations

import math

import pytest

from cme_modeler_engine.models import SpeedBand
from cme_modeler_engine.modules.classification import (
    MAX_OPACITY,
    MAX_PARTICLES,
    MIN_OPACITY,
    MIN_PARTICLES,
    classify_speed,
    core_color,
    particle_density,
    speed_opacity,
)


@pytest.mark.parametrize(
    ("speed", "band"),
    [
        (0.0, SpeedBand.slow),
        (349.999, SpeedBand.slow),
        (350.0, SpeedBand.transitional),
        (499.999, SpeedBand.transitional),
        (500.0, SpeedBand.mild),
        (799.999, SpeedBand.mild),
        (800.0, SpeedBand.moderate),
        (999.999, SpeedBand.moderate),
        (1000.0, SpeedBand.strong),
        (1799.999, SpeedBand.strong),
        (1800.0, SpeedBand.major),
        (2499.999, SpeedBand.major),
        (2500.0, SpeedBand.extreme),
        (5000.0, SpeedBand.extreme),
    ],
)
def test_band_boundaries(speed, band):
    assert classify_speed(speed).band == band


def test_transitional_fraction_blends_grey_to_yellow():
    start = classify_speed(350.0)
    middle = classify_speed(425.0)

    assert start.interpolationFraction == 0.0
    assert start.coreColor == "#808080"
    assert middle.interpolationFraction == pytest.approx(0.5)
    assert middle.coreColor == "#c0c040"
    assert classify_speed(500.0).coreColor == "#ffff00"


@pytest.mark.parametrize("speed", [-100.0, float("nan"), float("-inf")])
def test_invalid_speeds_clamp_to_lowest_band(speed):
    result = classify_speed(speed)

    assert result.band == SpeedBand.slow
    assert result.speedKmPerSec == 0.0
    assert result.interpolationFraction == 0.0
    assert result.opacity == pytest.approx(MIN_OPACITY)
    assert result.particleDensity == MIN_PARTICLES
    assert not math.isnan(result.particleSizeFactor)


def test_infinite_speed_clamps_to_top_band():
    result = classify_speed(float("inf"))

    assert result.band == SpeedBand.extreme
    assert math.isfinite(result.speedKmPerSec)
    assert result.opacity == pytest.approx(MAX_OPACITY)
    assert result.particleDensity == MAX_PARTICLES


def test_opacity_and_density_are_monotonic_and_clamped():
    speeds = [0.0, 300.0, 450.0, 900.0, 1500.0, 2200.0, 3000.0, 4500.0]
    opacities = [speed_opacity(speed) for speed in speeds]
    densities = [particle_density(speed) for speed in speeds]

    assert all(b >= a for a, b in zip(opacities, opacities[1:]))
    assert all(b >= a for a, b in zip(densities, densities[1:]))
    assert opacities[0] == opacities[1] == pytest.approx(MIN_OPACITY)
    assert opacities[-1] == opacities[-2] == pytest.approx(MAX_OPACITY)
    assert densities[0] == MIN_PARTICLES
    assert densities[-1] == MAX_PARTICLES


def test_band_colors():
    assert core_color(3000.0) == "#ff69b4"
    assert core_color(2000.0) == "#9370db"
    assert core_color(1200.0) == "#ff4500"
    assert core_color(900.0) == "#ffa500"
    assert core_color(100.0) == "#808080"
