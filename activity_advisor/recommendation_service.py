"""Geocode cities, fetch their forecasts and score them, one isolated outcome per city."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from activity_advisor import config
from activity_advisor.data_sources import (
    EmptyResult,
    InvalidPayload,
    Success,
    WeatherDataSource,
    build_data_source,
)
from activity_advisor.domain import CityRequest, GeoLocation, ScoredForecast
from activity_advisor.scoring_engine import score_hourly_activities_debug
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="recommendation_service")


class OutcomeStatus(str, Enum):
    """How processing a single city ended."""
    SUCCESS = "success"
    GEOCODE_ERROR = "geocode_error"
    NO_GEOCODE = "no_geocode"
    FORECAST_ERROR = "forecast_error"
    NO_FORECAST = "no_forecast"


@dataclass
class CityOutcome:
    """Result of processing one city; exactly one per city in a batch."""
    city: CityRequest
    status: OutcomeStatus
    location: Optional[GeoLocation] = None
    scored: Optional[ScoredForecast] = None
    error: Optional[str] = None
    raw: Any = None  # upstream body when it held no usable data

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class ResultSink(Protocol):
    """Anything that can persist a city outcome."""

    def record(self, outcome: CityOutcome) -> None:
        ...


def _failure_message(outcome: Any) -> str:
    """Human-readable message for a failed fetch outcome."""
    return outcome.message or outcome.kind.value


def recommend_for_city(city: CityRequest, data_source: WeatherDataSource) -> CityOutcome:
    """Run geocode -> forecast -> score for one city without raising on upstream failures."""
    logger.info("Processing city", extra={"city": city.name, "country_code": city.country_code})

    try:
        geo = data_source.geocode(city.name, city.country_code)
    except ValueError as exc:
        logger.warning("Geocoding rejected city", extra={"city": city.name, "error": str(exc)})
        return CityOutcome(city=city, status=OutcomeStatus.GEOCODE_ERROR, error=str(exc))

    if isinstance(geo, EmptyResult):
        logger.warning("No geocoding results", extra={"city": city.name})
        return CityOutcome(city=city, status=OutcomeStatus.NO_GEOCODE, raw=geo.raw)
    if not isinstance(geo, Success):
        logger.warning("Geocoding failed", extra={"city": city.name, "error": _failure_message(geo)})
        return CityOutcome(city=city, status=OutcomeStatus.GEOCODE_ERROR, error=_failure_message(geo))

    location = geo.payload[0]

    try:
        forecast = data_source.fetch_forecast(location.latitude, location.longitude)
    except ValueError as exc:
        logger.warning("Forecast request rejected", extra={"city": city.name, "error": str(exc)})
        return CityOutcome(city=city, status=OutcomeStatus.FORECAST_ERROR, location=location, error=str(exc))

    if isinstance(forecast, EmptyResult):
        logger.warning("No forecast data", extra={"city": city.name})
        return CityOutcome(city=city, status=OutcomeStatus.NO_FORECAST, location=location, raw=forecast.raw)
    if not isinstance(forecast, Success):
        status = OutcomeStatus.NO_FORECAST if isinstance(forecast, InvalidPayload) else OutcomeStatus.FORECAST_ERROR
        logger.warning("Forecast unusable", extra={"city": city.name, "error": _failure_message(forecast)})
        return CityOutcome(city=city, status=status, location=location, error=_failure_message(forecast))

    scored = score_hourly_activities_debug(forecast.payload, location.to_site())
    recommended = scored.result.recommended_activity
    logger.info(
        "Scored city",
        extra={"city": city.name, "recommended": recommended.value if recommended else None},
    )
    return CityOutcome(city=city, status=OutcomeStatus.SUCCESS, location=location, scored=scored)


def run_batch(
    cities: Iterable[CityRequest],
    data_source: WeatherDataSource,
    sink: ResultSink | None = None,
) -> List[CityOutcome]:
    """Process cities sequentially; a failing city never stops the rest."""
    outcomes: List[CityOutcome] = []
    for city in cities:
        outcome = recommend_for_city(city, data_source)
        if sink is not None:
            try:
                sink.record(outcome)
            except OSError as exc:
                logger.warning("Could not record city outcome", extra={"city": city.name, "error": str(exc)})
        outcomes.append(outcome)

    failed = sum(1 for o in outcomes if not o.ok)
    logger.info("Batch finished", extra={"cities": len(outcomes), "failed": failed})
    return outcomes


def run_batch_with_settings(
    cities: Iterable[CityRequest],
    *,
    settings: config.Settings | None = None,
    sink: ResultSink | None = None,
) -> List[CityOutcome]:
    """Run a batch with a data source scoped to this call."""
    with build_data_source(settings) as data_source:
        return run_batch(cities, data_source, sink)


def load_cities(path: str | Path) -> List[CityRequest]:
    """Load a JSON list of {"name", "country_code"} objects."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Cities file {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ValueError(f"Cities file {path} must contain a JSON list")
    return [CityRequest.model_validate(item) for item in raw]
