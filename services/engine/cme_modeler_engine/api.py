from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, AsyncGenerator, Callable, TypeVar

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from .catalog import CmeCatalog
from .errors import EventNotFoundError, InvalidModeForEventError
from .logging_config import setup_logging
from .models import (
    ArrivalForecast,
    ArrivalParameters,
    CatalogSummary,
    CmeEvent,
    CmeFilter,
    LiveFrameRequest,
    PropagateRequest,
    PropagationMode,
    PropagationProfile,
    PropagationQuery,
    PropagationResult,
    SimulationFrame,
    SpeedClassification,
    TimelineFrameRequest,
    TimelineStep,
    TimelineStepRequest,
    TimelineWindow,
    ValidationReport,
)
from .modules.classification import classify_speed
from .settings import Settings, load_settings
from .simulation_service import ENGINE_VERSION, SimulationService

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _call(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except EventNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidModeForEventError as exc:
        logger.info("Rejected request: %s", exc)
        raise HTTPException(status_code=409, detail={"code": exc.code, "message": str(exc)}) from exc
    except ValueError as exc:
        logger.info("Bad request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_file)
    catalog = CmeCatalog()
    simulation = SimulationService(settings, catalog)

    app = FastAPI(title="CME Modeler Engine", version=ENGINE_VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.catalog = catalog
    app.state.simulation = simulation

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/catalog/donki", response_model=CatalogSummary)
    def ingest_donki(payload: list[dict[str, Any]] = Body(...)) -> CatalogSummary:
        simulation.ingest_donki(payload)
        return catalog.summary()

    @app.put("/v1/catalog/events", response_model=CatalogSummary)
    def replace_events(events: list[CmeEvent]) -> CatalogSummary:
        simulation.replace_events(events)
        return catalog.summary()

    @app.put("/v1/catalog/events/{event_id}", response_model=CmeEvent)
    def upsert_event(event_id: str, event: CmeEvent) -> CmeEvent:
        return _call(lambda: simulation.upsert_event(event_id, event))

    @app.delete("/v1/catalog", response_model=CatalogSummary)
    def clear_catalog() -> CatalogSummary:
        catalog.clear()
        return catalog.summary()

    @app.get("/v1/catalog/events", response_model=CatalogSummary)
    def list_events(filter: CmeFilter = CmeFilter.all) -> CatalogSummary:
        return catalog.summary(filter)

    @app.get("/v1/catalog/events/{event_id}", response_model=CmeEvent)
    def get_event(event_id: str) -> CmeEvent:
        return _call(lambda: catalog.get(event_id))

    @app.get("/v1/catalog/validation", response_model=ValidationReport)
    def validate_catalog() -> ValidationReport:
        return simulation.validate()

    @app.post("/v1/propagate", response_model=PropagationResult)
    def propagate(request: PropagateRequest) -> PropagationResult:
        return _call(lambda: simulation.propagate_event(request))

    @app.get("/v1/catalog/events/{event_id}/propagation", response_model=PropagationResult)
    def event_propagation(
        event_id: str,
        elapsedSeconds: float,
        mode: PropagationMode = PropagationMode.ballistic,
    ) -> PropagationResult:
        def run() -> PropagationResult:
            event = catalog.get(event_id)
            query = PropagationQuery(elapsedSeconds=elapsedSeconds, mode=mode)
            return simulation.propagate_event(PropagateRequest(event=event, query=query))

        return _call(run)

    @app.get("/v1/catalog/events/{event_id}/profile", response_model=PropagationProfile)
    def event_profile(
        event_id: str,
        hours: float = Query(default=96.0, gt=0, le=24 * 30),
        stepMinutes: float = Query(default=60.0, gt=0),
        mode: PropagationMode = PropagationMode.ballistic,
    ) -> PropagationProfile:
        return _call(lambda: simulation.profile(event_id, hours=hours, step_minutes=stepMinutes, mode=mode))

    @app.get("/v1/catalog/events/{event_id}/forecast", response_model=ArrivalForecast)
    def event_forecast(event_id: str) -> ArrivalForecast:
        return _call(lambda: simulation.event_forecast(event_id))

    @app.get("/v1/classify", response_model=SpeedClassification)
    def classify(speed: float) -> SpeedClassification:
        return classify_speed(speed)

    @app.post("/v1/forecast", response_model=ArrivalForecast)
    def forecast(params: ArrivalParameters) -> ArrivalForecast:
        return simulation.forecast(params)

    @app.get("/v1/timeline/window", response_model=TimelineWindow)
    def timeline_window(
        rangeDays: int = Query(default=settings.default_range_days, ge=1, le=31),
        filter: CmeFilter = CmeFilter.all,
        now: datetime | None = None,
    ) -> TimelineWindow:
        return simulation.timeline_window(rangeDays, now, filter)

    @app.post("/v1/timeline/frame", response_model=SimulationFrame)
    def timeline_frame(request: TimelineFrameRequest) -> SimulationFrame:
        return _call(lambda: simulation.timeline_frame(request))

    @app.post("/v1/timeline/step", response_model=TimelineStep)
    def timeline_step(request: TimelineStepRequest) -> TimelineStep:
        return simulation.step_timeline(request)

    @app.post("/v1/live/frame", response_model=SimulationFrame)
    def live_frame(request: LiveFrameRequest) -> SimulationFrame:
        return _call(lambda: simulation.live_frame(request))

    @app.get("/v1/timeline/stream")
    async def stream_timeline(
        value: float = Query(default=0.0, ge=0.0, le=1000.0),
        rangeDays: int = Query(default=settings.default_range_days, ge=1, le=31),
        filter: CmeFilter = CmeFilter.all,
        mode: PropagationMode = PropagationMode.ballistic,
        playbackSpeed: float = Query(default=1.0, gt=0, le=20.0),
        tickSeconds: float = Query(default=0.5, gt=0, le=5.0),
        realtime: bool = True,
    ) -> StreamingResponse:
        request = TimelineFrameRequest(value=value, rangeDays=rangeDays, filter=filter, mode=mode)

        async def event_gen() -> AsyncGenerator[str, None]:
            for frame in simulation.playback_frames(request, playbackSpeed, tickSeconds):
                payload = frame.model_dump(mode="json")
                yield f"event: frame\ndata: {json.dumps(payload)}\n\n"
                if realtime:
                    await asyncio.sleep(tickSeconds)
            yield "event: end\ndata: {}\n\n"

        return StreamingResponse(event_gen(), media_type="text/event-stream")

    return app
