from __future__ import annotations

import math
from typing import Iterable

from ..models import CmeEvent, ValidationIssue, ValidationReport
from ..settings import Settings
from .donki import is_earth_directed

MAX_PLAUSIBLE_SPEED_KM_S = 4000.0


def validate_event(event: CmeEvent, settings: Settings | None = None) -> list[ValidationIssue]:
    settings = settings or Settings()
    issues: list[ValidationIssue] = []

    if not math.isfinite(event.speed) or event.speed <= 0:
        issues.append(
            ValidationIssue(
                code="invalid_speed",
                severity="error",
                message=f"CME {event.id} has no usable speed; it will be drawn at the Sun",
                eventId=event.id,
                details={"speed": str(event.speed)},
            )
        )
    elif event.speed > MAX_PLAUSIBLE_SPEED_KM_S:
        issues.append(
            ValidationIssue(
                code="implausible_speed",
                severity="warning",
                message=f"CME {event.id} speed exceeds {MAX_PLAUSIBLE_SPEED_KM_S:.0f} km/s",
                eventId=event.id,
                details={"speed": event.speed},
            )
        )

    if not event.halfAngle > 0:
        issues.append(
            ValidationIssue(
                code="invalid_half_angle",
                severity="error",
                message=f"CME {event.id} half-angle must be positive",
                eventId=event.id,
                details={"halfAngle": str(event.halfAngle)},
            )
        )

    if not -180.0 < event.longitude <= 180.0:
        issues.append(
            ValidationIssue(
                code="longitude_out_of_range",
                severity="error",
                message=f"CME {event.id} longitude is outside (-180, 180]",
                eventId=event.id,
                details={"longitude": str(event.longitude)},
            )
        )

    if not -90.0 <= event.latitude <= 90.0:
        issues.append(
            ValidationIssue(
                code="latitude_out_of_range",
                severity="error",
                message=f"CME {event.id} latitude is outside [-90, 90]",
                eventId=event.id,
                details={"latitude": str(event.latitude)},
            )
        )

    if event.predictedArrivalTime is not None and not event.has_arrival_prediction:
        issues.append(
            ValidationIssue(
                code="arrival_not_after_start",
                severity="warning",
                message=f"CME {event.id} predicted arrival is not after its start; prediction ignored",
                eventId=event.id,
                details={
                    "startTime": event.startTime.isoformat(),
                    "predictedArrivalTime": event.predictedArrivalTime.isoformat(),
                },
            )
        )

    if math.isfinite(event.longitude) and math.isfinite(event.latitude):
        expected = is_earth_directed(
            event.longitude,
            event.latitude,
            settings.earth_directed_lon_deg,
            settings.earth_directed_lat_deg,
        )
        if expected != event.isEarthDirected:
            issues.append(
                ValidationIssue(
                    code="earth_directed_mismatch",
                    severity="warning",
                    message=f"CME {event.id} earth-directed flag disagrees with its launch direction",
                    eventId=event.id,
                    details={"longitude": event.longitude, "latitude": event.latitude},
                )
            )

    return issues


def summarize_severity(issues: Iterable[ValidationIssue]) -> dict[str, int]:
    summary = {"error": 0, "warning": 0}
    for issue in issues:
        summary[issue.severity] += 1
    return summary


def validate_catalog(events: Iterable[CmeEvent], settings: Settings | None = None) -> ValidationReport:
    issues: list[ValidationIssue] = []
    count = 0
    for event in events:
        count += 1
        issues.extend(validate_event(event, settings))
    return ValidationReport(eventCount=count, issues=issues)
