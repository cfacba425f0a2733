"""Interfaces and tagged fetch outcomes for weather data sources."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Generic, List, Protocol, TypeVar, Union

from activity_advisor.domain import ForecastPayload, GeoLocation

T = TypeVar("T")


class FetchStatus(str, Enum):
    """Discriminator carried by every fetch outcome."""
    SUCCESS = "success"
    EMPTY_RESULT = "empty_result"
    NETWORK_FAILURE = "network_failure"
    INVALID_PAYLOAD = "invalid_payload"


@dataclass(frozen=True)
class Success(Generic[T]):
    """The upstream call worked and returned usable data."""
    payload: T
    kind: ClassVar[FetchStatus] = FetchStatus.SUCCESS


@dataclass(frozen=True)
class EmptyResult:
    """The upstream call worked but returned nothing usable."""
    raw: Any = None
    kind: ClassVar[FetchStatus] = FetchStatus.EMPTY_RESULT


@dataclass(frozen=True)
class NetworkFailure:
    """Transport error or non-success HTTP status."""
    message: str
    status_code: int | None = None
    body: str | None = None
    kind: ClassVar[FetchStatus] = FetchStatus.NETWORK_FAILURE


@dataclass(frozen=True)
class InvalidPayload:
    """The upstream answered with a body we could not interpret."""
    message: str
    kind: ClassVar[FetchStatus] = FetchStatus.INVALID_PAYLOAD


FetchOutcome = Union[Success[T], EmptyResult, NetworkFailure, InvalidPayload]


class WeatherDataSource(Protocol):
    """Interface for anything that can geocode places and provide hourly forecasts.

    Implementations own their transport resources and release them on close();
    use them as context managers so every exit path closes them.
    """

    def geocode(self, name: str, country_code: str | None = None) -> FetchOutcome[List[GeoLocation]]:
        """Resolve a place name into candidate locations."""
        ...

    def fetch_forecast(self, latitude: float, longitude: float) -> FetchOutcome[ForecastPayload]:
        """Return the hourly forecast for the coordinates."""
        ...

    def close(self) -> None:
        """Release transport resources."""
        ...

    def __enter__(self) -> "WeatherDataSource":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...
