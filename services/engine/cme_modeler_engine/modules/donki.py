from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from pydantic import ValidationError

from ..models import CmeEvent, DonkiAnalysis, DonkiCme
from ..settings import Settings
from ..utils import parse_utc

logger = logging.getLogger(__name__)

STORM_MARKER = "-GST"


def select_analysis(analyses: list[DonkiAnalysis] | None) -> DonkiAnalysis | None:
    if not analyses:
        return None
    for analysis in analyses:
        if analysis.isMostAccurate:
            return analysis
    return analyses[0]


def is_earth_directed(longitude: float, latitude: float, lon_limit_deg: float = 45.0, lat_limit_deg: float = 30.0) -> bool:
    return abs(longitude) < lon_limit_deg and abs(latitude) < lat_limit_deg


def parse_storm_arrival(activity_id: str) -> datetime | None:
    index = activity_id.find(STORM_MARKER)
    if index <= 0:
        return None
    try:
        return parse_utc(activity_id[:index])
    except ValueError:
        logger.warning("Could not parse predicted arrival time from %s", activity_id)
        return None


def predicted_arrival_time(cme: DonkiCme) -> datetime | None:
    if not cme.linkedEvents:
        return None
    for linked in cme.linkedEvents:
        if STORM_MARKER in linked.activityID:
            arrival = parse_storm_arrival(linked.activityID)
            if arrival is not None and arrival <= cme.startTime:
                logger.info("Dropping arrival %s not after start of %s", arrival.isoformat(), cme.activityID)
                return None
            return arrival
    return None


def normalize_cme(cme: DonkiCme, settings: Settings | None = None) -> CmeEvent | None:
    settings = settings or Settings()
    analysis = select_analysis(cme.cmeAnalyses)
    if analysis is None:
        return None
    if analysis.speed is None or analysis.longitude is None or analysis.latitude is None:
        return None

    half_angle = analysis.halfAngle
    if half_angle is None or half_angle <= 0:
        half_angle = settings.default_half_angle_deg

    instruments = "N/A"
    if cme.instruments:
        instruments = ", ".join(item.displayName for item in cme.instruments)

    return CmeEvent(
        id=cme.activityID,
        startTime=cme.startTime,
        speed=analysis.speed,
        longitude=analysis.longitude,
        latitude=analysis.latitude,
        halfAngle=half_angle,
        isEarthDirected=is_earth_directed(
            analysis.longitude,
            analysis.latitude,
            settings.earth_directed_lon_deg,
            settings.earth_directed_lat_deg,
        ),
        predictedArrivalTime=predicted_arrival_time(cme),
        note=cme.note or "No additional details.",
        link=cme.link or "",
        instruments=instruments,
        sourceLocation=cme.sourceLocation or "N/A",
    )


def normalize_catalog(payload: Iterable[dict[str, Any]], settings: Settings | None = None) -> list[CmeEvent]:
    events: list[CmeEvent] = []
    skipped = 0
    for raw in payload:
        try:
            cme = DonkiCme.model_validate(raw)
        except ValidationError as exc:
            skipped += 1
            logger.warning("Skipping malformed CME record: %s", exc.errors()[0].get("msg", "invalid"))
            continue
        event = normalize_cme(cme, settings)
        if event is None:
            skipped += 1
            logger.debug("Skipping %s: no modelable analysis", cme.activityID)
            continue
        events.append(event)

    if skipped:
        logger.info("Normalized %d CMEs, skipped %d", len(events), skipped)
    return sorted(events, key=lambda item: item.startTime, reverse=True)
