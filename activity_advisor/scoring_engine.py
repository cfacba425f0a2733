"""Deterministic hourly activity scoring and recommendation.

This module turns a validated forecast payload into per-hour activity scores,
per-activity rankings, top-10 aggregates and a single recommended activity.
Everything here is pure: no I/O, no shared state, identical output for
identical input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence

from activity_advisor.domain import (
    Activity,
    ActivityScoreResult,
    ForecastHourly,
    ForecastPayload,
    HourScore,
    RankedEntry,
    RankedHour,
    ScoredForecast,
    ScoringDebug,
    SiteMetadata,
    parse_forecast,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scoring_engine")

TOP_N = 10

# Subtracted from the outdoor sightseeing aggregate before selection (policy, not mechanism).
OUTDOOR_SIGHTSEEING_PENALTY = 3.0

DEFAULT_TEMPERATURE = math.nan
DEFAULT_VISIBILITY = 0.0
DEFAULT_WIND_SPEED = 0.0
DEFAULT_CLOUD_COVER = 100.0
DEFAULT_PRECIPITATION = 0.0
DEFAULT_SNOWFALL = 0.0
DEFAULT_WIND_GUSTS = 0.0


@dataclass(frozen=True)
class HourlyReading:
    """Resolved weather values for a single forecast hour."""
    time: str
    temperature: float  # °C, NaN when unknown
    visibility: float  # m
    wind_speed: float  # km/h
    cloud_cover: float  # %
    precipitation: float  # mm
    snowfall: float  # cm
    cloud_cover_low: float  # %
    wind_gusts: float  # km/h

    @property
    def temperature_known(self) -> bool:
        """True when a temperature reading was available for this hour."""
        return not math.isnan(self.temperature)


def _value_at(series: Sequence[float | None] | None, index: int, default: float) -> float:
    """Return series[index], or default when the series or entry is missing."""
    if series is None or index >= len(series):
        return default
    value = series[index]
    return default if value is None else value


def extract_hour(hourly: ForecastHourly, index: int) -> HourlyReading:
    """Read hour `index` from the parallel series, applying per-field defaults."""
    cloud = _value_at(hourly.cloud_cover, index, DEFAULT_CLOUD_COVER)
    return HourlyReading(
        time=hourly.time[index],
        temperature=_value_at(hourly.temperature_2m, index, DEFAULT_TEMPERATURE),
        visibility=_value_at(hourly.visibility, index, DEFAULT_VISIBILITY),
        wind_speed=_value_at(hourly.wind_speed_10m, index, DEFAULT_WIND_SPEED),
        cloud_cover=cloud,
        precipitation=_value_at(hourly.precipitation, index, DEFAULT_PRECIPITATION),
        snowfall=_value_at(hourly.snowfall, index, DEFAULT_SNOWFALL),
        # Low cloud falls back to the hour's overall cloud cover.
        cloud_cover_low=_value_at(hourly.cloud_cover_low, index, cloud),
        wind_gusts=_value_at(hourly.wind_gusts_10m, index, DEFAULT_WIND_GUSTS),
    )


def _score_surfing(r: HourlyReading) -> float:
    """Warm, fairly clear, steady breeze, little rain."""
    score = 0.0
    if r.temperature_known and r.temperature > 22:
        score += 3
    if r.cloud_cover < 60:
        score += 1
    if 10 <= r.wind_speed <= 25:
        score += 2
    if r.precipitation < 1:
        score += 2
    # moderate gusts help; extreme gusts earn nothing
    if 20 <= r.wind_gusts <= 45:
        score += 1
    if r.visibility >= 10000:
        score += 0.5
    return score


def _score_skiing(r: HourlyReading, site: SiteMetadata) -> float:
    """Cold, snowing, at altitude."""
    score = 0.0
    if r.temperature_known and r.temperature < 5:
        score += 3
    if r.snowfall > 0:
        score += 4
    if r.precipitation > 0:
        score += 1
    if site.elevation >= 500:
        score += 1
    if r.visibility >= 10000:
        score += 0.5
    return score


def _score_outdoor_sightseeing(r: HourlyReading) -> float:
    """Mild, mostly clear, calm and dry; heavy low cloud costs a point."""
    score = 0.0
    if r.temperature_known and 10 <= r.temperature <= 25:
        score += 4
    if r.cloud_cover < 50:
        score += 2
    if r.wind_speed < 20:
        score += 1
    if r.precipitation == 0:
        score += 2
    if r.visibility >= 15000:
        score += 1
    if r.cloud_cover_low >= 50:
        score -= 1
    return score


def _score_indoor_sightseeing(r: HourlyReading) -> float:
    """Overcast, wet, gusty, murky or uncomfortable temperatures."""
    score = 0.0
    if r.cloud_cover > 80:
        score += 3
    if r.precipitation >= 1:
        score += 3
    if r.wind_gusts >= 40:
        score += 1
    if r.visibility <= 5000:
        score += 1
    if r.temperature_known and (r.temperature <= 0 or r.temperature >= 32):
        score += 1
    return score


def score_hour(reading: HourlyReading, site: SiteMetadata) -> Dict[Activity, float]:
    """Score one hour for every activity; scores are floored at 0."""
    scores = {
        Activity.SURFING: _score_surfing(reading),
        Activity.SKIING: _score_skiing(reading, site),
        Activity.OUTDOOR_SIGHTSEEING: _score_outdoor_sightseeing(reading),
        Activity.INDOOR_SIGHTSEEING: _score_indoor_sightseeing(reading),
    }
    return {activity: max(0.0, score) for activity, score in scores.items()}


def score_hours(forecast: ForecastPayload, site: SiteMetadata) -> list[HourScore]:
    """Score every forecast hour, preserving chronological input order."""
    hourly = forecast.hourly
    return [
        HourScore(time=reading.time, scores=score_hour(reading, site))
        for reading in (extract_hour(hourly, i) for i in range(len(hourly.time)))
    ]


def rank_activities(hourly_scores: Sequence[HourScore]) -> Dict[Activity, list[RankedHour]]:
    """
    Rank hours per activity: highest score first, ties by earliest time.

    Times compare as plain strings, so callers must supply one consistent
    timestamp format. Activities come from the first hour's keys.
    """
    if not hourly_scores:
        return {}

    activities = list(hourly_scores[0].scores.keys())
    rankings: Dict[Activity, list[RankedHour]] = {}
    for activity in activities:
        entries = [RankedHour(time=h.time, score=h.scores[activity]) for h in hourly_scores]
        entries.sort(key=lambda e: (-e.score, e.time))
        rankings[activity] = entries
    return rankings


def top_averages(rankings: Mapping[Activity, Sequence[RankedHour]], *, top_n: int = TOP_N) -> Dict[Activity, float]:
    """Mean score of each activity's best `top_n` hours (0 when it has none)."""
    averages: Dict[Activity, float] = {}
    for activity, ranked in rankings.items():
        top = ranked[:top_n]
        averages[activity] = sum(e.score for e in top) / len(top) if top else 0.0
    return averages


def adjust_top_averages(
    top_avg: Mapping[Activity, float],
    *,
    penalty: float = OUTDOOR_SIGHTSEEING_PENALTY,
) -> Dict[Activity, float]:
    """Copy of top_avg with the outdoor sightseeing penalty applied (floored at 0)."""
    adjusted = dict(top_avg)
    if Activity.OUTDOOR_SIGHTSEEING in adjusted:
        adjusted[Activity.OUTDOOR_SIGHTSEEING] = max(0.0, adjusted[Activity.OUTDOOR_SIGHTSEEING] - penalty)
    return adjusted


def select_recommendation(
    adjusted_top_avg: Mapping[Activity, float],
    rankings: Mapping[Activity, Sequence[RankedHour]],
    *,
    top_n: int = TOP_N,
) -> ActivityScoreResult:
    """
    Pick the activity with the strictly highest adjusted aggregate.

    Activities are scanned in ranking order; on a tie the earlier one stays.
    With no known activities there is no recommendation.
    """
    best: Activity | None = None
    for activity in rankings:
        if best is None or adjusted_top_avg[activity] > adjusted_top_avg[best]:
            best = activity

    if best is None:
        return ActivityScoreResult(recommended_activity=None, top10=[])

    top10 = [
        RankedEntry(rank=idx, time=e.time, score=e.score)
        for idx, e in enumerate(rankings[best][:top_n], start=1)
    ]
    return ActivityScoreResult(recommended_activity=best, top10=top10)


def score_hourly_activities_debug(forecast: Any, site: SiteMetadata | Mapping[str, Any]) -> ScoredForecast:
    """Score a forecast and return the recommendation together with debug data."""
    payload = parse_forecast(forecast)
    site_meta = site if isinstance(site, SiteMetadata) else SiteMetadata.model_validate(site)

    hourly_scores = score_hours(payload, site_meta)
    rankings = rank_activities(hourly_scores)
    top_avg = top_averages(rankings)
    adjusted = adjust_top_averages(top_avg)
    result = select_recommendation(adjusted, rankings)

    if result.recommended_activity is None:
        logger.warning("Forecast has no hours; no recommendation produced")
    else:
        logger.debug(
            "Scored forecast",
            extra={
                "hours": len(hourly_scores),
                "recommended": result.recommended_activity.value,
                "adjusted_top_avg": {a.value: v for a, v in adjusted.items()},
            },
        )

    return ScoredForecast(
        result=result,
        debug=ScoringDebug(
            hourly_scores=hourly_scores,
            activity_rankings=rankings,
            activity_top_avg=top_avg,
            adjusted_activity_top_avg=adjusted,
        ),
    )


def score_hourly_activities(forecast: Any, site: SiteMetadata | Mapping[str, Any]) -> ActivityScoreResult:
    """Score a forecast and return only the recommendation."""
    return score_hourly_activities_debug(forecast, site).result
