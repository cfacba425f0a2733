"""Weather data sources and their tagged fetch outcomes."""

from .base import (
    EmptyResult,
    FetchOutcome,
    FetchStatus,
    InvalidPayload,
    NetworkFailure,
    Success,
    WeatherDataSource,
)
from .factory import build_data_source
from .open_meteo_client import HOURLY_VARIABLES, OpenMeteoClient, build_session

__all__ = [
    "build_data_source",
    "build_session",
    "WeatherDataSource",
    "OpenMeteoClient",
    "HOURLY_VARIABLES",
    "FetchOutcome",
    "FetchStatus",
    "Success",
    "EmptyResult",
    "NetworkFailure",
    "InvalidPayload",
]
