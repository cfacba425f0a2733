"""Domain vocabulary and schemas for activity recommendations.

This module defines the contract between the data sources, the pure scoring
engine and the outer surfaces (CLI, HTTP API, result files): the fixed activity
set, the forecast payload accepted at the boundary, and the Pydantic models for
every scoring output. No scoring logic lives here.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="domain")


class _StrictBaseModel(BaseModel):
    """Base model for engine outputs: no extras, no mutation."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class _LenientBaseModel(BaseModel):
    """Base model for upstream payloads: unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class Activity(str, Enum):
    """The fixed set of recommendable activities, in scoring order."""
    SURFING = "Surfing"
    SKIING = "Skiing"
    OUTDOOR_SIGHTSEEING = "Outdoor sightseeing"
    INDOOR_SIGHTSEEING = "Indoor sightseeing"


# Order used by human-readable summaries.
DISPLAY_ORDER: tuple[Activity, ...] = (
    Activity.SURFING,
    Activity.SKIING,
    Activity.OUTDOOR_SIGHTSEEING,
    Activity.INDOOR_SIGHTSEEING,
)


class InvalidForecastError(ValueError):
    """Raised when a forecast payload lacks the structure the engine needs."""


def _coerce_number(value: Any) -> Optional[float]:
    """Return value as float, or None when it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        logger.debug("Non-numeric forecast value treated as missing", extra={"value": repr(value)})
        return None


class ForecastHourly(_LenientBaseModel):
    """Parallel hourly series as returned by the Open-Meteo forecast API.

    Every optional series is aligned by index with `time`; a series may be
    absent, shorter than `time`, or contain nulls.
    """
    time: List[str]
    temperature_2m: Optional[List[Optional[float]]] = None
    visibility: Optional[List[Optional[float]]] = None
    wind_speed_10m: Optional[List[Optional[float]]] = None
    cloud_cover: Optional[List[Optional[float]]] = None
    precipitation: Optional[List[Optional[float]]] = None
    snowfall: Optional[List[Optional[float]]] = None
    cloud_cover_low: Optional[List[Optional[float]]] = None
    wind_gusts_10m: Optional[List[Optional[float]]] = None

    @field_validator(
        "temperature_2m",
        "visibility",
        "wind_speed_10m",
        "cloud_cover",
        "precipitation",
        "snowfall",
        "cloud_cover_low",
        "wind_gusts_10m",
        mode="before",
    )
    @classmethod
    def coerce_series(cls, v: Any) -> Optional[List[Optional[float]]]:
        """Normalize a series so malformed entries become missing values."""
        if v is None:
            return None
        if not isinstance(v, (list, tuple)):
            logger.debug("Forecast series is not a list; treating as absent", extra={"type": type(v).__name__})
            return None
        return [_coerce_number(item) for item in v]


class ForecastPayload(_LenientBaseModel):
    """Forecast response envelope; only `hourly` is required."""
    latitude: float | None = None
    longitude: float | None = None
    elevation: float | None = None
    timezone: str | None = None
    hourly: ForecastHourly


def parse_forecast(raw: Any) -> ForecastPayload:
    """Validate a raw forecast payload at the boundary of the scoring engine.

    Missing or malformed numeric values are tolerated; a payload without an
    `hourly.time` list is a contract violation and raises InvalidForecastError.
    """
    if isinstance(raw, ForecastPayload):
        return raw
    try:
        return ForecastPayload.model_validate(raw)
    except ValidationError as exc:
        raise InvalidForecastError(f"Forecast payload is missing hourly.time: {exc.error_count()} error(s)") from exc


class SiteMetadata(_LenientBaseModel):
    """Location metadata the scorer needs alongside the forecast."""
    latitude: float = 0.0
    longitude: float = 0.0
    elevation: float = 0.0

    @field_validator("elevation", mode="before")
    @classmethod
    def default_elevation(cls, v: Any) -> float:
        """Unknown elevation counts as sea level."""
        if v is None:
            return 0.0
        return v


class HourScore(_StrictBaseModel):
    """Per-activity scores for one forecast hour."""
    time: str
    scores: Dict[Activity, float]


class RankedHour(_StrictBaseModel):
    """One hour within an activity ranking."""
    time: str
    score: float


class RankedEntry(_StrictBaseModel):
    """One numbered entry of the recommended activity's top hours."""
    rank: int = Field(ge=1)
    time: str
    score: float


class ActivityScoreResult(_StrictBaseModel):
    """Final recommendation for one forecast payload.

    `recommended_activity` is None when the forecast had no hours.
    """
    recommended_activity: Activity | None = None
    top10: List[RankedEntry] = Field(default_factory=list)


class ScoringDebug(_StrictBaseModel):
    """Intermediate scoring data, useful for snapshots and troubleshooting."""
    hourly_scores: List[HourScore] = Field(default_factory=list)
    activity_rankings: Dict[Activity, List[RankedHour]] = Field(default_factory=dict)
    activity_top_avg: Dict[Activity, float] = Field(default_factory=dict)
    adjusted_activity_top_avg: Dict[Activity, float] = Field(default_factory=dict)


class ScoredForecast(_StrictBaseModel):
    """Recommendation plus the debug payload it was derived from."""
    result: ActivityScoreResult
    debug: ScoringDebug


class GeoLocation(BaseModel):
    """A geocoding candidate; API fields beyond the known ones are preserved."""
    model_config = ConfigDict(extra="allow")

    latitude: float
    longitude: float
    elevation: float | None = None
    name: str | None = None
    country_code: str | None = None
    timezone: str | None = None

    def to_site(self) -> SiteMetadata:
        """Project the candidate onto the metadata the scorer uses."""
        return SiteMetadata(latitude=self.latitude, longitude=self.longitude, elevation=self.elevation)

    def for_output(self) -> Dict[str, Any]:
        """Serialize for result files, leaving out bulky postcode lists."""
        data = self.model_dump(mode="json", exclude_none=True)
        data.pop("postcodes", None)
        return data


class CityRequest(_LenientBaseModel):
    """One city to process in a batch run."""
    name: str
    country_code: str | None = None
