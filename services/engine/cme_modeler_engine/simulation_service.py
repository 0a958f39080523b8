from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Iterable, Iterator

import numpy as np

from .catalog import CmeCatalog
from .errors import InvalidModeForEventError
from .models import (
    ArrivalForecast,
    ArrivalParameters,
    CmeEvent,
    CmeFilter,
    CmeFrameState,
    LiveFrameRequest,
    ProfilePoint,
    PropagateRequest,
    PropagationMode,
    PropagationProfile,
    PropagationResult,
    SimulationFrame,
    TimelineFrameRequest,
    TimelineStep,
    TimelineStepRequest,
    TimelineWindow,
    ValidationReport,
)
from .modules.arrival import predict_arrival
from .modules.classification import classify_speed
from .modules.donki import normalize_catalog
from .modules.impact import impacts_earth, max_impact_speed
from .modules.propagation import (
    MIN_SPEED_KM_S,
    current_speed,
    drag_acceleration,
    elapsed_since,
    focused_elapsed,
    is_mode_available,
    propagate,
    propagation_profile,
    resolve_mode,
)
from .modules.timeline import SCRUBBER_MAX, advance_value, build_window, step_value, time_at, value_at
from .modules.units import AU_KM, SECONDS_PER_HOUR, km_to_au, km_to_scene
from .modules.validation import summarize_severity, validate_catalog
from .settings import Settings
from .utils import ensure_utc, stable_hash, utc_now

ENGINE_VERSION = "0.1.0"
MODEL_VERSION = "cme-kinematics-v1"

logger = logging.getLogger(__name__)


class SimulationService:
    def __init__(self, settings: Settings, catalog: CmeCatalog | None = None):
        self.settings = settings
        self.catalog = catalog if catalog is not None else CmeCatalog()

    def ingest_donki(self, payload: Iterable[dict[str, Any]]) -> list[CmeEvent]:
        events = normalize_catalog(payload, self.settings)
        self.catalog.replace(events)
        return events

    def upsert_event(self, event_id: str, event: CmeEvent) -> CmeEvent:
        if event.id != event_id:
            raise ValueError(f"event id {event.id} does not match path id {event_id}")
        version = self.catalog.upsert(event)
        logger.info("Upserted %s (catalog version %d)", event.id, version)
        return event

    def replace_events(self, events: Iterable[CmeEvent]) -> list[CmeEvent]:
        self.catalog.replace(events)
        return self.catalog.list()

    def _require_mode(self, event: CmeEvent, mode: PropagationMode) -> None:
        if not is_mode_available(event, mode):
            raise InvalidModeForEventError(event.id, mode.value)

    def event_state(
        self,
        event: CmeEvent,
        elapsed_seconds: float,
        mode: PropagationMode = PropagationMode.ballistic,
    ) -> CmeFrameState:
        distance_km = propagate(event, elapsed_seconds, mode, AU_KM)
        visible = math.isfinite(elapsed_seconds) and elapsed_seconds >= 0
        return CmeFrameState(
            eventId=event.id,
            visible=visible,
            mode=mode,
            elapsedSeconds=elapsed_seconds,
            distanceKm=distance_km,
            distanceAu=km_to_au(distance_km),
            distanceScene=km_to_scene(distance_km, self.settings.scene_scale),
            longitude=event.longitude,
            latitude=event.latitude,
            halfAngle=event.halfAngle,
            isEarthDirected=event.isEarthDirected,
            impactsEarth=visible
            and impacts_earth(
                distance_km,
                event.longitude,
                event.latitude,
                event.halfAngle,
                window_au=self.settings.impact_window_au,
            ),
            classification=classify_speed(event.speed),
        )

    def propagate_event(self, request: PropagateRequest) -> PropagationResult:
        event = request.event
        query = request.query
        if request.fallbackMode is not None:
            mode = resolve_mode(event, query.mode, request.fallbackMode)
        else:
            mode = query.mode
            self._require_mode(event, mode)

        elapsed = query.elapsedSeconds if math.isfinite(query.elapsedSeconds) else 0.0
        distance_km = propagate(event, elapsed, mode, query.earthOrbitalRadiusKm)
        return PropagationResult(
            eventId=event.id,
            mode=mode,
            elapsedSeconds=elapsed,
            distanceKm=distance_km,
            distanceAu=km_to_au(distance_km),
            distanceScene=km_to_scene(distance_km, self.settings.scene_scale),
            currentSpeedKmPerSec=current_speed(event, elapsed, mode, query.earthOrbitalRadiusKm),
        )

    def timeline_window(self, range_days: int, now: datetime | None = None, cme_filter: CmeFilter = CmeFilter.all) -> TimelineWindow:
        now = ensure_utc(now) if now is not None else utc_now()
        return build_window(
            self.catalog.list(cme_filter),
            now,
            range_days,
            lookahead_days=self.settings.timeline_lookahead_days,
        )

    def _frame(
        self,
        time: datetime,
        states: list[CmeFrameState],
        *,
        scrubber_value: float | None = None,
        window: TimelineWindow | None = None,
        focus_event_id: str | None = None,
    ) -> SimulationFrame:
        hash_payload = {
            "engineVersion": ENGINE_VERSION,
            "modelVersion": MODEL_VERSION,
            "time": time.isoformat(),
            "focusEventId": focus_event_id,
            "states": [state.model_dump(mode="json") for state in states],
        }
        return SimulationFrame(
            time=time,
            scrubberValue=scrubber_value,
            window=window,
            focusEventId=focus_event_id,
            states=states,
            maxImpactSpeed=max_impact_speed(states),
            frameHash=stable_hash(hash_payload),
        )

    def timeline_frame(self, request: TimelineFrameRequest) -> SimulationFrame:
        window = request.window or self.timeline_window(request.rangeDays, request.now, request.filter)
        value = value_at(window, request.time) if request.time is not None else request.value
        frame_time = time_at(window, value)

        states: list[CmeFrameState] = []
        for event in self.catalog.list(request.filter):
            mode = resolve_mode(event, request.mode, PropagationMode.ballistic)
            states.append(self.event_state(event, elapsed_since(event.startTime, frame_time), mode))

        return self._frame(frame_time, states, scrubber_value=value, window=window)

    def step_timeline(self, request: TimelineStepRequest) -> TimelineStep:
        window = request.window or self.timeline_window(request.rangeDays, request.now, request.filter)
        value = step_value(window, request.value, request.direction)
        return TimelineStep(value=value, time=time_at(window, value), window=window)

    def playback_frames(
        self,
        request: TimelineFrameRequest,
        playback_speed: float = 1.0,
        tick_seconds: float = 0.5,
        max_frames: int = 2000,
    ) -> Iterator[SimulationFrame]:
        """Frames of a playing scrubber, one per wall-clock tick, ending at the window end."""
        window = request.window or self.timeline_window(request.rangeDays, request.now, request.filter)
        value = value_at(window, request.time) if request.time is not None else request.value
        for _ in range(max_frames):
            yield self.timeline_frame(request.model_copy(update={"value": value, "window": window, "time": None}))
            if value >= SCRUBBER_MAX or tick_seconds <= 0 or playback_speed <= 0:
                return
            value, _reached_end = advance_value(window, value, tick_seconds, playback_speed)
        logger.warning("Playback stopped after %d frames before reaching the window end", max_frames)

    def live_frame(self, request: LiveFrameRequest) -> SimulationFrame:
        now = ensure_utc(request.now) if request.now is not None else utc_now()

        if request.focusEventId is None:
            states = [
                self.event_state(event, elapsed_since(event.startTime, now), PropagationMode.ballistic)
                for event in self.catalog.list(request.filter)
            ]
            return self._frame(now, states)

        event = self.catalog.get(request.focusEventId)
        if request.clockSeconds is None:
            raise ValueError("clockSeconds is required when focusEventId is set")
        elapsed = focused_elapsed(request.clockSeconds, request.simulationStartTime)
        mode = resolve_mode(event, request.focusMode, request.fallbackMode, require_earth_directed=True)
        logger.debug("Focused replay of %s in %s mode at %.1fs", event.id, mode.value, elapsed)
        return self._frame(now, [self.event_state(event, elapsed, mode)], focus_event_id=event.id)

    def profile(
        self,
        event_id: str,
        hours: float = 96.0,
        step_minutes: float = 60.0,
        mode: PropagationMode = PropagationMode.ballistic,
    ) -> PropagationProfile:
        if not hours > 0 or not step_minutes > 0:
            raise ValueError("hours and stepMinutes must be positive")
        event = self.catalog.get(event_id)
        self._require_mode(event, mode)

        step = step_minutes * 60.0
        times = np.arange(0.0, hours * SECONDS_PER_HOUR + step / 2.0, step)
        distances = propagation_profile(event, times, mode, AU_KM)
        points = [
            ProfilePoint(
                elapsedSeconds=float(t),
                distanceKm=float(d),
                distanceAu=km_to_au(float(d)),
                speedKmPerSec=current_speed(event, float(t), mode, AU_KM),
            )
            for t, d in zip(times, distances)
        ]
        return PropagationProfile(eventId=event.id, mode=mode, points=points)

    def forecast(self, params: ArrivalParameters) -> ArrivalForecast:
        return predict_arrival(params)

    def event_forecast(self, event_id: str) -> ArrivalForecast:
        event = self.catalog.get(event_id)
        speed = event.speed if math.isfinite(event.speed) and event.speed > 0 else 0.0
        acceleration = drag_acceleration(speed) if speed > MIN_SPEED_KM_S else 0.0
        params = ArrivalParameters(
            launchTime=event.startTime,
            initialSpeed=speed,
            acceleration=acceleration,
            angularWidth=2.0 * event.halfAngle,
        )
        return predict_arrival(params)

    def validate(self) -> ValidationReport:
        report = validate_catalog(self.catalog.list(), self.settings)
        severity = summarize_severity(report.issues)
        if severity["error"]:
            logger.warning(
                "Catalog validation found %d errors and %d warnings", severity["error"], severity["warning"]
            )
        return report
