"""Client for the Open-Meteo geocoding and forecast APIs."""
from __future__ import annotations

import math
from typing import Any, List, Optional

import requests
import requests_cache
from pydantic import ValidationError
from retry_requests import retry

from activity_advisor import config
from activity_advisor.data_sources.base import (
    EmptyResult,
    FetchOutcome,
    InvalidPayload,
    NetworkFailure,
    Success,
)
from activity_advisor.domain import ForecastPayload, GeoLocation, InvalidForecastError, parse_forecast
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="open_meteo_client")

# Hourly variables requested from the forecast API; the scorer reads all but wind direction.
HOURLY_VARIABLES = [
    "temperature_2m",
    "visibility",
    "wind_speed_10m",
    "wind_direction_10m",
    "cloud_cover",
    "precipitation",
    "snowfall",
    "cloud_cover_low",
    "wind_gusts_10m",
]

EXPECTED_HOURLY_UNITS = {
    "temperature_2m": "°C",
    "visibility": "m",
    "wind_speed_10m": "km/h",
    "cloud_cover": "%",
    "precipitation": "mm",
    "snowfall": "cm",
    "cloud_cover_low": "%",
    "wind_gusts_10m": "km/h",
}

# Acceptable alternative spellings that should not trigger warnings.
ALLOWED_HOURLY_UNIT_SYNONYMS = {
    "temperature_2m": {"°C"},
    "visibility": {"m", "meters"},
    "wind_speed_10m": {"km/h", "kmh"},
    "cloud_cover": {"%", "percent"},
    "precipitation": {"mm"},
    "snowfall": {"cm"},
    "cloud_cover_low": {"%", "percent"},
    "wind_gusts_10m": {"km/h", "kmh"},
}


def build_session(settings: config.Settings) -> requests.Session:
    """Create a cached, retrying HTTP session for Open-Meteo calls."""
    cache_session = requests_cache.CachedSession(
        settings.http_cache_path,
        expire_after=settings.http_cache_ttl_seconds,
    )
    logger.debug(
        "Built cached Open-Meteo session",
        extra={"cache": settings.http_cache_path, "retries": settings.http_retries},
    )
    return retry(cache_session, retries=settings.http_retries, backoff_factor=settings.http_backoff_factor)


def _warn_on_unexpected_units(units: Optional[dict], *, context: str) -> None:
    """Log a warning if Open-Meteo returns units the scoring thresholds do not assume."""
    if not units:
        return
    for field, expected in EXPECTED_HOURLY_UNITS.items():
        actual = units.get(field)
        if not actual or actual == expected:
            continue
        allowed = ALLOWED_HOURLY_UNIT_SYNONYMS.get(field, set())
        if actual not in allowed:
            logger.warning(
                "Unexpected Open-Meteo unit",
                extra={"context": context, "field": field, "unit": actual, "expected": expected},
            )


class OpenMeteoClient:
    """Geocoding + forecast client owning one HTTP session.

    Use as a context manager so the session is closed on every exit path:

        with OpenMeteoClient(settings) as client:
            outcome = client.geocode("Lisbon", "PT")
    """

    def __init__(self, settings: config.Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or config.settings
        self._session = session if session is not None else build_session(self.settings)
        self._closed = False

    def __enter__(self) -> "OpenMeteoClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP session (idempotent)."""
        if self._closed:
            return
        self._session.close()
        self._closed = True
        logger.debug("Closed Open-Meteo session")

    def _get_json(self, url: str, params: dict, *, context: str) -> FetchOutcome[Any]:
        """GET url and decode JSON, mapping every failure to a tagged outcome."""
        if self._closed:
            raise RuntimeError("OpenMeteoClient is closed")
        try:
            resp = self._session.get(url, params=params, timeout=self.settings.request_timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("Open-Meteo request failed", extra={"context": context, "error": str(exc)})
            return NetworkFailure(message=f"{context} request failed: {exc}")

        if not resp.ok:
            body = resp.text or ""
            logger.warning(
                "Open-Meteo returned non-success status",
                extra={"context": context, "status_code": resp.status_code},
            )
            return NetworkFailure(
                message=f"{context} request failed ({resp.status_code}): {body}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            return Success(resp.json())
        except ValueError as exc:
            logger.warning("Open-Meteo returned invalid JSON", extra={"context": context, "error": str(exc)})
            return InvalidPayload(message=f"{context} response is not valid JSON: {exc}")

    def geocode(self, name: str, country_code: str | None = None) -> FetchOutcome[List[GeoLocation]]:
        """Resolve a place name (optionally restricted to a country) into candidates."""
        if not name:
            raise ValueError("geocode: name is required")

        params = {
            "name": str(name),
            "count": 1,
            "language": self.settings.geocoding_language,
            "format": "json",
        }
        if country_code:
            params[self.settings.geocoding_country_param] = str(country_code)

        logger.info("Geocoding place", extra={"place": name, "country_code": country_code})
        outcome = self._get_json(f"{self.settings.geocoding_base_url}/search", params, context="Geocoding")
        if not isinstance(outcome, Success):
            return outcome

        data = outcome.payload
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            logger.info("Geocoding returned no results", extra={"place": name})
            return EmptyResult(raw=data)

        try:
            locations = [GeoLocation.model_validate(r) for r in results]
        except ValidationError as exc:
            return InvalidPayload(message=f"Geocoding result is malformed: {exc.error_count()} error(s)")
        return Success(locations)

    def fetch_forecast(self, latitude: float, longitude: float) -> FetchOutcome[ForecastPayload]:
        """Fetch the hourly forecast for the coordinates, in the location's local time."""
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError):
            raise ValueError("fetch_forecast: latitude and longitude must be numbers") from None
        if math.isnan(lat) or math.isnan(lon):
            raise ValueError("fetch_forecast: latitude and longitude must be numbers")

        params = {
            "latitude": lat,
            "longitude": lon,
            "hourly": ",".join(HOURLY_VARIABLES),
            "timezone": "auto",
        }

        logger.info("Fetching hourly forecast", extra={"latitude": lat, "longitude": lon})
        outcome = self._get_json(f"{self.settings.forecast_base_url}/forecast", params, context="Forecast")
        if not isinstance(outcome, Success):
            return outcome

        data = outcome.payload
        if not isinstance(data, dict) or not data.get("hourly"):
            logger.info("Forecast response has no hourly data", extra={"latitude": lat, "longitude": lon})
            return EmptyResult(raw=data)

        _warn_on_unexpected_units(data.get("hourly_units"), context="forecast_hourly")
        try:
            return Success(parse_forecast(data))
        except InvalidForecastError as exc:
            return InvalidPayload(message=str(exc))
