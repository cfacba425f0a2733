"""
Activity Advisor command line.

    activity-advisor run-batch --cities testdata/cities.json
    activity-advisor recommend Lisbon --country-code PT
    activity-advisor score-file saved_forecast.json --elevation 1200
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from activity_advisor import config
from activity_advisor.data_sources import build_data_source
from activity_advisor.domain import CityRequest, InvalidForecastError, SiteMetadata
from activity_advisor.recommendation_service import (
    OutcomeStatus,
    load_cities,
    recommend_for_city,
    run_batch,
)
from activity_advisor.reporting import FileResultSink
from activity_advisor.scoring_engine import score_hourly_activities_debug
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="cli")

app = typer.Typer(
    name="activity-advisor",
    help="Recommend the best activity for a place from its hourly forecast.",
    add_completion=False,
)


def _configure_logging(job_name: str) -> None:
    setup_logging(level=config.settings.log_level, job_name=job_name)


@app.command("run-batch")
def run_batch_command(
    cities_file: Path = typer.Option(..., "--cities", "-c", help="JSON list of {name, country_code} objects."),
    results_dir: Optional[Path] = typer.Option(
        None,
        "--results-dir",
        help="Where to write result files (default: ADVISOR_RESULTS_DIR or ./results).",
    ),
) -> None:
    """Score every city in the file and write per-city result files."""
    _configure_logging("run_batch")

    if not cities_file.exists():
        typer.echo(f"[ERROR] Cities file not found: {cities_file}", err=True)
        raise typer.Exit(code=1)

    try:
        cities = load_cities(cities_file)
    except ValueError as exc:
        typer.echo(f"[ERROR] Could not load cities: {exc}", err=True)
        raise typer.Exit(code=1)

    if not cities:
        typer.echo("No cities provided - nothing to do.")
        return

    sink = FileResultSink(results_dir or config.settings.results_dir)
    with build_data_source(config.settings) as data_source:
        outcomes = run_batch(cities, data_source, sink)
    summary_path = sink.write_batch_summary(outcomes)

    for outcome in outcomes:
        if outcome.ok:
            recommended = outcome.scored.result.recommended_activity
            label = recommended.value if recommended else "no recommendation"
            typer.echo(f"  {outcome.city.name}: {label}")
        else:
            typer.echo(f"  {outcome.city.name}: {outcome.status.value}")
    typer.echo(f"Summary written to {summary_path}")


@app.command("recommend")
def recommend_command(
    name: str = typer.Argument(..., help="Place name to geocode."),
    country_code: Optional[str] = typer.Option(None, "--country-code", help="ISO country code filter."),
    debug: bool = typer.Option(False, "--debug", help="Include per-hour scores and rankings."),
) -> None:
    """Recommend an activity for a single place and print it as JSON."""
    _configure_logging("recommend")

    with build_data_source(config.settings) as data_source:
        outcome = recommend_for_city(CityRequest(name=name, country_code=country_code), data_source)

    if outcome.status != OutcomeStatus.SUCCESS:
        typer.echo(f"[ERROR] {outcome.status.value}: {outcome.error or 'no data'}", err=True)
        raise typer.Exit(code=1)

    out = {
        "city": outcome.city.model_dump(mode="json"),
        "loc": outcome.location.for_output(),
        "result": outcome.scored.result.model_dump(mode="json"),
    }
    if debug:
        out["debug"] = outcome.scored.debug.model_dump(mode="json")
    typer.echo(json.dumps(out, indent=2, ensure_ascii=False))


@app.command("score-file")
def score_file_command(
    forecast_file: Path = typer.Argument(..., help="Saved forecast JSON (Open-Meteo format)."),
    latitude: float = typer.Option(0.0, "--latitude"),
    longitude: float = typer.Option(0.0, "--longitude"),
    elevation: Optional[float] = typer.Option(
        None,
        "--elevation",
        help="Site elevation in metres (default: the payload's elevation, else 0).",
    ),
    debug: bool = typer.Option(False, "--debug", help="Include per-hour scores and rankings."),
) -> None:
    """Score a saved forecast payload without any network access."""
    _configure_logging("score_file")

    if not forecast_file.exists():
        typer.echo(f"[ERROR] Forecast file not found: {forecast_file}", err=True)
        raise typer.Exit(code=1)

    try:
        raw = json.loads(forecast_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.echo(f"[ERROR] Forecast file is not valid JSON: {exc}", err=True)
        raise typer.Exit(code=1)

    site_elevation = elevation if elevation is not None else (raw.get("elevation") if isinstance(raw, dict) else None)
    try:
        site = SiteMetadata(latitude=latitude, longitude=longitude, elevation=site_elevation)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid site metadata: {exc.error_count()} error(s)", err=True)
        raise typer.Exit(code=1)

    try:
        scored = score_hourly_activities_debug(raw, site)
    except InvalidForecastError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    out = {"result": scored.result.model_dump(mode="json")}
    if debug:
        out["debug"] = scored.debug.model_dump(mode="json")
    typer.echo(json.dumps(out, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
