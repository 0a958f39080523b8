from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable

from ..models import CmeEvent, TimelineWindow
from ..utils import clamp, ensure_utc
from .units import SECONDS_PER_HOUR

SCRUBBER_MAX = 1000.0
# Playback covers three simulated hours per wall-clock second at speed 1.
SIM_HOURS_PER_SECOND = 3.0
ZERO_SPAN_STEP = 10.0


def build_window(
    events: Iterable[CmeEvent],
    now: datetime,
    range_days: int,
    lookahead_days: int = 3,
) -> TimelineWindow:
    now = ensure_utc(now)
    start = now - timedelta(days=range_days)
    earliest = min((event.startTime for event in events), default=now)
    return TimelineWindow(minTime=min(start, earliest), maxTime=now + timedelta(days=lookahead_days))


def time_at(window: TimelineWindow, value: float) -> datetime:
    value = clamp(0.0 if math.isnan(value) else value, 0.0, SCRUBBER_MAX)
    offset = window.span_seconds * (value / SCRUBBER_MAX)
    return window.minTime + timedelta(seconds=offset)


def value_at(window: TimelineWindow, instant: datetime) -> float:
    span = window.span_seconds
    if span <= 0:
        return 0.0
    offset = (ensure_utc(instant) - window.minTime).total_seconds()
    return clamp(offset / span * SCRUBBER_MAX, 0.0, SCRUBBER_MAX)


def step_value(window: TimelineWindow, value: float, direction: int) -> float:
    direction = 1 if direction >= 0 else -1
    span = window.span_seconds
    if span > 0:
        step = (SECONDS_PER_HOUR / span) * SCRUBBER_MAX
    else:
        step = ZERO_SPAN_STEP
    return clamp(value + direction * step, 0.0, SCRUBBER_MAX)


def advance_value(
    window: TimelineWindow,
    value: float,
    delta_seconds: float,
    playback_speed: float = 1.0,
) -> tuple[float, bool]:
    """Advance a playing scrubber by one wall-clock delta; returns (value, reached_end)."""
    if value >= SCRUBBER_MAX:
        return SCRUBBER_MAX, True
    span = window.span_seconds
    if span <= 0 or delta_seconds <= 0:
        return value, False

    simulated_seconds = delta_seconds * SIM_HOURS_PER_SECOND * playback_speed * SECONDS_PER_HOUR
    new_value = value + (simulated_seconds / span) * SCRUBBER_MAX
    if new_value >= SCRUBBER_MAX:
        return SCRUBBER_MAX, True
    return new_value, False
