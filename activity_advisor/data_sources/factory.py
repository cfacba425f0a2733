"""Factory helpers for choosing a weather data source at startup."""

from __future__ import annotations

from activity_advisor import config
from activity_advisor.data_sources.base import WeatherDataSource
from activity_advisor.data_sources.open_meteo_client import OpenMeteoClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "open_meteo"


def build_data_source(settings: config.Settings | None = None) -> WeatherDataSource:
    """Instantiate the configured data source; the caller owns (and must close) it."""
    settings = settings or config.settings
    source = (settings.forecast_source or DEFAULT_SOURCE_NAME).lower()

    if source == "open_meteo":
        logger.info(
            "Using Open-Meteo data source",
            extra={"geocoding_url": settings.geocoding_base_url, "forecast_url": settings.forecast_base_url},
        )
        return OpenMeteoClient(settings)

    raise ValueError(f"Unknown forecast source '{source}'")
