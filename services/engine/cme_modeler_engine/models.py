from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .modules.units import AU_KM
from .utils import ensure_utc, parse_utc


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PropagationMode(str, Enum):
    ballistic = "ballistic"
    decelerating = "decelerating"
    interpolated = "interpolated"


class SpeedBand(str, Enum):
    slow = "slow"
    transitional = "transitional"
    mild = "mild"
    moderate = "moderate"
    strong = "strong"
    major = "major"
    extreme = "extreme"


class CmeFilter(str, Enum):
    all = "all"
    earthDirected = "earthDirected"
    notEarthDirected = "notEarthDirected"


class CmeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    startTime: datetime
    speed: float
    longitude: float = 0.0
    latitude: float = 0.0
    halfAngle: float = 30.0
    isEarthDirected: bool = False
    predictedArrivalTime: datetime | None = None
    note: str = ""
    link: str = ""
    instruments: str = "N/A"
    sourceLocation: str = "N/A"

    @field_validator("startTime")
    @classmethod
    def _start_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("predictedArrivalTime")
    @classmethod
    def _arrival_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @property
    def travel_window_seconds(self) -> float | None:
        if self.predictedArrivalTime is None:
            return None
        total = (self.predictedArrivalTime - self.startTime).total_seconds()
        if total <= 0 or not math.isfinite(total):
            return None
        return total

    @property
    def has_arrival_prediction(self) -> bool:
        return self.travel_window_seconds is not None


class PropagationQuery(BaseModel):
    elapsedSeconds: float
    mode: PropagationMode = PropagationMode.ballistic
    earthOrbitalRadiusKm: float = AU_KM

    @model_validator(mode="after")
    def validate_radius(self) -> "PropagationQuery":
        if not self.earthOrbitalRadiusKm > 0:
            raise ValueError("earthOrbitalRadiusKm must be positive")
        return self


class SpeedClassification(BaseModel):
    speedKmPerSec: float
    band: SpeedBand
    interpolationFraction: float = Field(ge=0.0, le=1.0)
    opacity: float
    particleDensity: int
    particleSizeFactor: float
    coreColor: str


class PropagateRequest(BaseModel):
    event: CmeEvent
    query: PropagationQuery
    fallbackMode: PropagationMode | None = None


class PropagationResult(BaseModel):
    eventId: str
    mode: PropagationMode
    elapsedSeconds: float
    distanceKm: float
    distanceAu: float
    distanceScene: float
    currentSpeedKmPerSec: float


class CmeFrameState(BaseModel):
    eventId: str
    visible: bool
    mode: PropagationMode
    elapsedSeconds: float
    distanceKm: float
    distanceAu: float
    distanceScene: float
    longitude: float
    latitude: float
    halfAngle: float
    isEarthDirected: bool
    impactsEarth: bool = False
    classification: SpeedClassification


class TimelineWindow(BaseModel):
    minTime: datetime
    maxTime: datetime

    @field_validator("minTime", "maxTime")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def span_seconds(self) -> float:
        return (self.maxTime - self.minTime).total_seconds()


class TimelineFrameRequest(BaseModel):
    value: float = Field(default=0.0, ge=0.0, le=1000.0)
    rangeDays: int = Field(default=3, ge=1, le=31)
    filter: CmeFilter = CmeFilter.all
    mode: PropagationMode = PropagationMode.ballistic
    now: datetime | None = None
    window: TimelineWindow | None = None
    # Jump target; when set it overrides ``value``.
    time: datetime | None = None

    @field_validator("time")
    @classmethod
    def _time_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class TimelineStepRequest(BaseModel):
    value: float = Field(default=0.0, ge=0.0, le=1000.0)
    direction: Literal[-1, 1] = 1
    rangeDays: int = Field(default=3, ge=1, le=31)
    filter: CmeFilter = CmeFilter.all
    now: datetime | None = None
    window: TimelineWindow | None = None


class TimelineStep(BaseModel):
    value: float
    time: datetime
    window: TimelineWindow


class LiveFrameRequest(BaseModel):
    now: datetime | None = None
    filter: CmeFilter = CmeFilter.all
    focusEventId: str | None = None
    clockSeconds: float | None = None
    simulationStartTime: float | None = None
    focusMode: PropagationMode = PropagationMode.interpolated
    fallbackMode: PropagationMode = PropagationMode.ballistic

    @model_validator(mode="after")
    def validate_focus_clock(self) -> "LiveFrameRequest":
        if self.focusEventId is not None and self.clockSeconds is None:
            raise ValueError("clockSeconds is required when focusEventId is set")
        return self


class SimulationFrame(BaseModel):
    time: datetime
    scrubberValue: float | None = None
    window: TimelineWindow | None = None
    focusEventId: str | None = None
    states: list[CmeFrameState] = Field(default_factory=list)
    maxImpactSpeed: float = 0.0
    frameHash: str


class ProfilePoint(BaseModel):
    elapsedSeconds: float
    distanceKm: float
    distanceAu: float
    speedKmPerSec: float


class PropagationProfile(BaseModel):
    eventId: str
    mode: PropagationMode
    points: list[ProfilePoint] = Field(default_factory=list)


class ArrivalParameters(BaseModel):
    launchTime: datetime
    initialSpeed: float
    acceleration: float = 0.0
    angularWidth: float = 60.0
    density: float = 10.0

    @field_validator("launchTime")
    @classmethod
    def _launch_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ArrivalMilestone(BaseModel):
    label: str
    timeHours: float
    distanceAu: float
    speed: float


class ArrivalForecast(BaseModel):
    arrival: datetime
    transitHours: float
    finalSpeed: float
    kpEstimate: int = Field(ge=1, le=9)
    milestones: list[ArrivalMilestone] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    code: str
    severity: Literal["error", "warning"]
    message: str
    eventId: str | None = None
    details: dict[str, float | str] = Field(default_factory=dict)


class ValidationReport(BaseModel):
    checkedAt: str = Field(default_factory=utc_now_iso)
    eventCount: int = 0
    issues: list[ValidationIssue] = Field(default_factory=list)


class CatalogSummary(BaseModel):
    version: int
    catalogHash: str
    count: int
    events: list[CmeEvent] = Field(default_factory=list)


class DonkiAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time21_5: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    halfAngle: float | None = None
    speed: float | None = None
    type: str | None = None
    isMostAccurate: bool = False
    note: str | None = None


class DonkiLinkedEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    activityID: str


class DonkiInstrument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    displayName: str


class DonkiCme(BaseModel):
    model_config = ConfigDict(extra="ignore")

    activityID: str
    startTime: datetime
    catalog: str | None = None
    sourceLocation: str | None = None
    activeRegionNum: int | None = None
    link: str | None = None
    note: str | None = None
    instruments: list[DonkiInstrument] | None = None
    cmeAnalyses: list[DonkiAnalysis] | None = None
    linkedEvents: list[DonkiLinkedEvent] | None = None

    @field_validator("startTime", mode="before")
    @classmethod
    def _start_utc(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_utc(value)
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value
