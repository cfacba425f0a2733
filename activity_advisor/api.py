"""HTTP API exposing the activity scoring engine."""

import hmac
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from .config import settings
from .data_sources import EmptyResult, Success, WeatherDataSource
from .domain import (
    ActivityScoreResult,
    GeoLocation,
    InvalidForecastError,
    ScoringDebug,
    SiteMetadata,
    parse_forecast,
)
from .scoring_engine import score_hourly_activities_debug
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate the X-API-Key header against the configured key, if any."""
    if not settings.api_key:
        logger.debug("No API key configured; allowing all requests")
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def get_data_source(request: Request) -> WeatherDataSource:
    """Return the data source owned by the application lifespan."""
    source = getattr(request.app.state, "data_source", None)
    if source is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Data source not ready")
    return source


router = APIRouter(dependencies=[Depends(require_api_key)])


class ScoreRequest(BaseModel):
    """Forecast payload plus site metadata to score."""
    forecast: Dict[str, Any]
    site: SiteMetadata = Field(default_factory=SiteMetadata)
    include_debug: bool = False


class ScoreResponse(BaseModel):
    """Recommendation with optional debug data."""
    result: ActivityScoreResult
    debug: Optional[ScoringDebug] = None


class RecommendationResponse(BaseModel):
    """Recommendation for a geocoded place."""
    location: Dict[str, Any]
    result: ActivityScoreResult
    debug: Optional[ScoringDebug] = None


@router.post("/score", response_model=ScoreResponse)
def score_forecast(req: ScoreRequest) -> ScoreResponse:
    """Score a forecast payload supplied by the caller."""
    try:
        payload = parse_forecast(req.forecast)
    except InvalidForecastError as exc:
        logger.info("Rejected forecast payload", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    scored = score_hourly_activities_debug(payload, req.site)
    return ScoreResponse(result=scored.result, debug=scored.debug if req.include_debug else None)


@router.get("/recommendation", response_model=RecommendationResponse)
def recommend_place(
    name: str = Query(..., description="Place name to geocode"),
    country_code: str | None = Query(default=None),
    include_debug: bool = Query(default=False),
    data_source: WeatherDataSource = Depends(get_data_source),
) -> RecommendationResponse:
    """Geocode a place, fetch its forecast and recommend an activity."""
    try:
        geo = data_source.geocode(name, country_code)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if isinstance(geo, EmptyResult):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No location found for '{name}'")
    if not isinstance(geo, Success):
        logger.warning("Geocoding failed", extra={"place": name, "error": geo.message})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=geo.message)

    location: GeoLocation = geo.payload[0]
    try:
        forecast = data_source.fetch_forecast(location.latitude, location.longitude)
    except ValueError as exc:
        logger.warning("Forecast request rejected", extra={"place": name, "error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if isinstance(forecast, EmptyResult):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No forecast data for '{name}'")
    if not isinstance(forecast, Success):
        logger.warning("Forecast failed", extra={"place": name, "error": forecast.message})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=forecast.message)

    scored = score_hourly_activities_debug(forecast.payload, location.to_site())
    return RecommendationResponse(
        location=location.for_output(),
        result=scored.result,
        debug=scored.debug if include_debug else None,
    )
