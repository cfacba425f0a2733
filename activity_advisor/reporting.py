"""Write per-city result snapshots and human-readable ranked summaries."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from activity_advisor.domain import DISPLAY_ORDER, Activity, RankedHour, ScoredForecast
from activity_advisor.recommendation_service import CityOutcome, OutcomeStatus
from activity_advisor.scoring_engine import TOP_N
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="reporting")

BATCH_SUMMARY_FILE = "batch_summary.json"

# File suffix written for each non-success outcome.
FAILURE_SUFFIXES = {
    OutcomeStatus.GEOCODE_ERROR: "geocode_error",
    OutcomeStatus.NO_GEOCODE: "no_geocode",
    OutcomeStatus.FORECAST_ERROR: "forecast_error",
    OutcomeStatus.NO_FORECAST: "no_forecast",
}


def safe_file_stem(name: str) -> str:
    """City name reduced to a single file name component (no separators)."""
    return re.sub(r"[^\w.-]+", "_", name.strip())


def format_score(score: float) -> str:
    """Integral scores without decimals, everything else with one."""
    if float(score).is_integer():
        return str(int(score))
    return f"{score:.1f}"


def format_text_summary(
    city_name: str,
    recommended: Activity | None,
    rankings: Mapping[Activity, Sequence[RankedHour]],
    *,
    top_n: int = TOP_N,
) -> str:
    """Render the recommendation and each activity's top hours as plain text."""
    lines = [
        f"City Name: {city_name}",
        f"Recommended Activity: {recommended.value if recommended else 'none'}",
        "",
    ]
    for activity in DISPLAY_ORDER:
        ranking = rankings.get(activity) or []
        lines.append(f"{activity.value}:")
        if not ranking:
            lines.append("  No data available")
        else:
            for idx, entry in enumerate(ranking[:top_n], start=1):
                lines.append(f"  {idx}: {entry.time} (score: {format_score(entry.score)})")
        lines.append("")
    return "\n".join(lines) + "\n"


def build_snapshot(outcome: CityOutcome) -> Dict[str, Any]:
    """Machine-readable snapshot of a successful outcome."""
    scored: ScoredForecast = outcome.scored
    result = scored.result.model_dump(mode="json")
    return {
        "city": outcome.city.model_dump(mode="json"),
        "loc": outcome.location.for_output() if outcome.location else None,
        "recommended": result["recommended_activity"],
        "ranked": result["top10"],
        "debug": scored.debug.model_dump(mode="json"),
    }


def build_failure_record(outcome: CityOutcome) -> Dict[str, Any]:
    """Machine-readable record of a failed outcome."""
    record: Dict[str, Any] = {"city": outcome.city.model_dump(mode="json")}
    if outcome.location is not None:
        record["loc"] = outcome.location.for_output()
    if outcome.status == OutcomeStatus.NO_GEOCODE:
        record["geo"] = outcome.raw
    elif outcome.status == OutcomeStatus.NO_FORECAST and outcome.error is None:
        record["forecast"] = outcome.raw
    else:
        record["error"] = outcome.error
    return record


class FileResultSink:
    """Result sink that writes one set of files per city into a directory."""

    def __init__(self, results_dir: str | Path):
        self.results_dir = Path(results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.written: List[Path] = []

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        self.written.append(path)

    def record(self, outcome: CityOutcome) -> None:
        """Write the files for one outcome."""
        stem = safe_file_stem(outcome.city.name)

        if outcome.status != OutcomeStatus.SUCCESS:
            path = self.results_dir / f"{stem}_{FAILURE_SUFFIXES[outcome.status]}.json"
            self._write_json(path, build_failure_record(outcome))
            logger.info("Wrote failure record", extra={"city": outcome.city.name, "path": str(path)})
            return

        json_path = self.results_dir / f"{stem}_result.json"
        self._write_json(json_path, build_snapshot(outcome))

        text_path = self.results_dir / f"{stem}_result.txt"
        text_path.write_text(
            format_text_summary(
                outcome.city.name,
                outcome.scored.result.recommended_activity,
                outcome.scored.debug.activity_rankings,
            ),
            encoding="utf-8",
        )
        self.written.append(text_path)
        logger.info(
            "Wrote results",
            extra={"city": outcome.city.name, "json": str(json_path), "text": str(text_path)},
        )

    def write_batch_summary(self, outcomes: Iterable[CityOutcome]) -> Path:
        """Write one status row per processed city."""
        rows = [
            {"city": o.city.name, "status": o.status.value, "error": o.error}
            for o in outcomes
        ]
        path = self.results_dir / BATCH_SUMMARY_FILE
        self._write_json(path, rows)
        return path
