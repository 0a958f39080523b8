from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from cme_modeler_engine.errors import InvalidModeForEventError
from cme_modeler_engine.models import CmeEvent, PropagationMode
from cme_modeler_engine.modules.propagation import (
    MIN_SPEED_KM_S,
    ballistic_distance,
    current_speed,
    decelerating_distance,
    drag_acceleration,
    floor_time_seconds,
    focused_elapsed,
    propagate,
    propagation_profile,
    resolve_mode,
)
from cme_modeler_engine.modules.units import AU_KM

T0 = datetime(2024, 5, 10, 6, 36, tzinfo=timezone.utc)


def _event(speed: float = 1000.0, arrival_after: timedelta | None = None, **overrides) -> CmeEvent:
    payload = {
        "id": "2024-05-10T06:36:00-CME-001",
        "startTime": T0,
        "speed": speed,
        "longitude": 10.0,
        "latitude": -5.0,
        "halfAngle": 40.0,
        "isEarthDirected": True,
        "predictedArrivalTime": T0 + arrival_after if arrival_after is not None else None,
    }
    payload.update(overrides)
    return CmeEvent(**payload)


def test_ballistic_distance_is_speed_times_time():
    assert propagate(_event(speed=500.0), 3600.0, PropagationMode.ballistic) == 1_800_000.0
    assert ballistic_distance(500.0, 3600.0) == 1_800_000.0


def test_negative_elapsed_is_not_yet_visible():
    event = _event(speed=800.0, arrival_after=timedelta(days=1))
    for mode in PropagationMode:
        assert propagate(event, -3600.0, mode) == 0.0


@pytest.mark.parametrize("speed", [0.0, -250.0, float("nan"), float("-inf")])
def test_degenerate_speed_yields_zero_distance(speed):
    event = _event(speed=speed)
    assert propagate(event, 10_000.0, PropagationMode.ballistic) == 0.0
    assert propagate(event, 10_000.0, PropagationMode.decelerating) == 0.0


def test_infinite_speed_stays_finite():
    distance = propagate(_event(speed=float("inf")), 60.0, PropagationMode.ballistic)
    assert math.isfinite(distance)
    assert distance > 0


def test_nan_elapsed_yields_zero_distance():
    assert propagate(_event(), float("nan"), PropagationMode.decelerating) == 0.0


@pytest.mark.parametrize("elapsed", [float("inf"), float("-inf")])
def test_infinite_elapsed_yields_zero_distance(elapsed):
    event = _event(speed=900.0, arrival_after=timedelta(days=1))
    for mode in PropagationMode:
        assert propagate(event, elapsed, mode) == 0.0
        assert current_speed(event, elapsed, mode) == 0.0

    profile = propagation_profile(event, [0.0, elapsed, 3600.0], "ballistic")
    assert np.all(np.isfinite(profile))
    np.testing.assert_allclose(profile, [0.0, 0.0, 900.0 * 3600.0])


def test_deceleration_reaches_floor_and_coasts():
    speed = 1000.0
    accel = drag_acceleration(speed)
    assert accel == pytest.approx(-0.00209)

    t_floor = floor_time_seconds(speed)
    assert t_floor == pytest.approx(334_928.2, rel=1e-6)

    floor_distance = speed * t_floor + 0.5 * accel * t_floor**2
    expected = floor_distance + MIN_SPEED_KM_S * (1_000_000.0 - t_floor)
    assert decelerating_distance(speed, 1_000_000.0) == pytest.approx(expected)

    later = decelerating_distance(speed, 2_000_000.0)
    assert later - decelerating_distance(speed, 1_000_000.0) == pytest.approx(300.0 * 1_000_000.0)


def test_deceleration_before_floor_uses_quadratic():
    speed = 1000.0
    t = 100_000.0
    accel = drag_acceleration(speed)
    assert decelerating_distance(speed, t) == pytest.approx(speed * t + 0.5 * accel * t * t)


def test_slow_cme_does_not_decelerate():
    assert propagate(_event(speed=200.0), 1000.0, PropagationMode.decelerating) == 200_000.0
    assert decelerating_distance(MIN_SPEED_KM_S, 1000.0) == 300_000.0
    assert floor_time_seconds(250.0) is None


def test_moderate_cme_accelerates_without_floor():
    # 350 km/s gives 1.41 - 1.225 > 0 m/s^2.
    speed = 350.0
    accel = drag_acceleration(speed)
    assert accel > 0
    assert floor_time_seconds(speed) is None
    assert decelerating_distance(speed, 3600.0) == pytest.approx(speed * 3600.0 + 0.5 * accel * 3600.0**2)


def test_interpolated_progress_is_linear_and_clamped():
    event = _event(arrival_after=timedelta(seconds=86_400))
    radius = 149_597_870.7

    assert propagate(event, 0.0, PropagationMode.interpolated, radius) == 0.0
    assert propagate(event, 43_200.0, PropagationMode.interpolated, radius) == radius * 0.5
    assert propagate(event, 86_400.0, PropagationMode.interpolated, radius) == radius
    assert propagate(event, 200_000.0, PropagationMode.interpolated, radius) == radius


def test_interpolated_ignores_speed():
    slow = _event(speed=300.0, arrival_after=timedelta(hours=20))
    fast = _event(speed=3000.0, arrival_after=timedelta(hours=20))
    assert propagate(slow, 36_000.0, "interpolated") == propagate(fast, 36_000.0, "interpolated")


def test_interpolated_without_prediction_is_rejected():
    event = _event(arrival_after=None)
    with pytest.raises(InvalidModeForEventError) as exc_info:
        propagate(event, 100.0, PropagationMode.interpolated)
    assert exc_info.value.code == "invalid-mode-for-event"


def test_interpolated_with_non_positive_window_is_zero():
    event = _event(arrival_after=timedelta(hours=-2))
    assert not event.has_arrival_prediction
    assert propagate(event, 50_000.0, PropagationMode.interpolated) == 0.0


def test_resolve_mode_falls_back_when_prediction_missing():
    with_prediction = _event(arrival_after=timedelta(days=2))
    without = _event(arrival_after=None)

    assert resolve_mode(with_prediction, "interpolated") == PropagationMode.interpolated
    assert resolve_mode(without, "interpolated") == PropagationMode.ballistic
    assert resolve_mode(without, "interpolated", "decelerating") == PropagationMode.decelerating
    assert resolve_mode(without, "interpolated", "interpolated") == PropagationMode.ballistic

    not_earth = _event(arrival_after=timedelta(days=2), isEarthDirected=False)
    assert resolve_mode(not_earth, "interpolated", require_earth_directed=True) == PropagationMode.ballistic


@pytest.mark.parametrize("mode", ["ballistic", "decelerating", "interpolated"])
@pytest.mark.parametrize("speed", [150.0, 450.0, 1000.0, 2800.0])
def test_distance_is_monotonic_and_non_negative(mode, speed):
    event = _event(speed=speed, arrival_after=timedelta(hours=40))
    times = np.linspace(-86_400.0, 20 * 86_400.0, 400)
    distances = [propagate(event, float(t), mode) for t in times]

    assert min(distances) >= 0.0
    assert all(b >= a for a, b in zip(distances, distances[1:]))
    if mode == "interpolated":
        assert max(distances) <= AU_KM


@pytest.mark.parametrize("mode", ["ballistic", "decelerating", "interpolated"])
def test_profile_matches_scalar_propagation(mode):
    event = _event(speed=1400.0, arrival_after=timedelta(hours=30))
    times = np.linspace(-3600.0, 600_000.0, 97)
    profile = propagation_profile(event, times, mode)

    expected = [propagate(event, float(t), mode) for t in times]
    np.testing.assert_allclose(profile, expected, rtol=1e-12)


def test_propagate_is_idempotent():
    event = _event(speed=1234.5, arrival_after=timedelta(hours=33))
    for mode in PropagationMode:
        first = propagate(event, 123_456.7, mode)
        second = propagate(event, 123_456.7, mode)
        assert first == second


def test_current_speed_by_mode():
    event = _event(speed=1000.0, arrival_after=timedelta(seconds=100_000))

    assert current_speed(event, 5000.0, "ballistic") == 1000.0
    assert current_speed(event, 1_000_000.0, "decelerating") == MIN_SPEED_KM_S
    assert current_speed(event, 0.0, "decelerating") == 1000.0
    assert current_speed(event, 50_000.0, "interpolated") == pytest.approx(AU_KM / 100_000.0)
    assert current_speed(event, 200_000.0, "interpolated") == 0.0
    assert current_speed(event, -10.0, "ballistic") == 0.0


def test_focused_elapsed_uses_explicit_start():
    assert focused_elapsed(500.0, 200.0) == 300.0
    assert focused_elapsed(500.0, None) == 0.0
    assert focused_elapsed(100.0, 200.0) == 0.0
