import json
import tempfile
import unittest
from pathlib import Path

from activity_advisor.data_sources import EmptyResult, InvalidPayload, NetworkFailure, Success
from activity_advisor.domain import Activity, CityRequest, GeoLocation, parse_forecast
from activity_advisor.recommendation_service import (
    OutcomeStatus,
    load_cities,
    recommend_for_city,
    run_batch,
)
from activity_advisor.reporting import FileResultSink


def _forecast(hours=3, temperature=25.0):
    return parse_forecast({
        "hourly": {
            "time": [f"2024-07-01T{h:02d}:00" for h in range(hours)],
            "temperature_2m": [temperature] * hours,
            "cloud_cover": [30.0] * hours,
            "wind_speed_10m": [15.0] * hours,
            "precipitation": [0.0] * hours,
            "visibility": [12000.0] * hours,
            "wind_gusts_10m": [25.0] * hours,
        }
    })


class FakeDataSource:
    """Data source whose answers are keyed by city name."""

    def __init__(self, geocode=None, forecast=None):
        self.geocode_outcomes = geocode or {}
        self.forecast_outcome = forecast
        self.forecast_calls = []
        self.closed = False

    def geocode(self, name, country_code=None):
        if not name:
            raise ValueError("geocode: name is required")
        return self.geocode_outcomes[name]

    def fetch_forecast(self, latitude, longitude):
        self.forecast_calls.append((latitude, longitude))
        return self.forecast_outcome

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


LISBON = GeoLocation(name="Lisbon", latitude=38.7, longitude=-9.1, elevation=45.0)


class TestRecommendForCity(unittest.TestCase):
    def test_success(self):
        ds = FakeDataSource(geocode={"Lisbon": Success([LISBON])}, forecast=Success(_forecast()))
        outcome = recommend_for_city(CityRequest(name="Lisbon", country_code="PT"), ds)

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.location, LISBON)
        self.assertEqual(outcome.scored.result.recommended_activity, Activity.SURFING)
        self.assertEqual(ds.forecast_calls, [(38.7, -9.1)])

    def test_geocode_failure(self):
        ds = FakeDataSource(geocode={"Lisbon": NetworkFailure(message="Simulated geocoding API failure")})
        outcome = recommend_for_city(CityRequest(name="Lisbon"), ds)
        self.assertEqual(outcome.status, OutcomeStatus.GEOCODE_ERROR)
        self.assertIn("Simulated", outcome.error)
        self.assertEqual(ds.forecast_calls, [])

    def test_empty_name_is_geocode_error(self):
        outcome = recommend_for_city(CityRequest(name=""), FakeDataSource())
        self.assertEqual(outcome.status, OutcomeStatus.GEOCODE_ERROR)

    def test_no_geocode_results(self):
        ds = FakeDataSource(geocode={"@@@@@@": EmptyResult(raw={"generationtime_ms": 0.1})})
        outcome = recommend_for_city(CityRequest(name="@@@@@@", country_code="ZZ"), ds)
        self.assertEqual(outcome.status, OutcomeStatus.NO_GEOCODE)
        self.assertEqual(outcome.raw, {"generationtime_ms": 0.1})

    def test_forecast_failure(self):
        ds = FakeDataSource(
            geocode={"Lisbon": Success([LISBON])},
            forecast=NetworkFailure(message="Forecast request failed (503): busy", status_code=503),
        )
        outcome = recommend_for_city(CityRequest(name="Lisbon"), ds)
        self.assertEqual(outcome.status, OutcomeStatus.FORECAST_ERROR)
        self.assertEqual(outcome.location, LISBON)

    def test_no_forecast(self):
        ds = FakeDataSource(geocode={"Lisbon": Success([LISBON])}, forecast=EmptyResult(raw={}))
        self.assertEqual(recommend_for_city(CityRequest(name="Lisbon"), ds).status, OutcomeStatus.NO_FORECAST)

        ds.forecast_outcome = InvalidPayload(message="Forecast payload is missing hourly.time")
        outcome = recommend_for_city(CityRequest(name="Lisbon"), ds)
        self.assertEqual(outcome.status, OutcomeStatus.NO_FORECAST)
        self.assertIn("hourly.time", outcome.error)


class RecordingSink:
    def __init__(self):
        self.recorded = []

    def record(self, outcome):
        self.recorded.append(outcome)


class TestRunBatch(unittest.TestCase):
    def test_one_failure_does_not_stop_the_batch(self):
        ds = FakeDataSource(
            geocode={
                "Lisbon": Success([LISBON]),
                "Nowhere": EmptyResult(),
                "Broken": NetworkFailure(message="down"),
                "Porto": Success([GeoLocation(name="Porto", latitude=41.1, longitude=-8.6)]),
            },
            forecast=Success(_forecast()),
        )
        cities = [CityRequest(name=n) for n in ("Lisbon", "Nowhere", "Broken", "Porto")]
        sink = RecordingSink()

        outcomes = run_batch(cities, ds, sink)

        self.assertEqual(
            [o.status for o in outcomes],
            [OutcomeStatus.SUCCESS, OutcomeStatus.NO_GEOCODE, OutcomeStatus.GEOCODE_ERROR, OutcomeStatus.SUCCESS],
        )
        self.assertEqual(sink.recorded, outcomes)

    def test_city_names_with_separators_stay_inside_results_dir(self):
        ds = FakeDataSource(
            geocode={"Frankfurt/Oder": Success([LISBON]), "../Lisbon": EmptyResult(), "Lisbon": Success([LISBON])},
            forecast=Success(_forecast()),
        )
        cities = [CityRequest(name=n) for n in ("Frankfurt/Oder", "../Lisbon", "Lisbon")]
        with tempfile.TemporaryDirectory() as tmp:
            results = Path(tmp) / "results"
            outcomes = run_batch(cities, ds, FileResultSink(results))

            written = sorted(p.name for p in results.iterdir())
            self.assertEqual(
                written,
                sorted([
                    "Frankfurt_Oder_result.json",
                    "Frankfurt_Oder_result.txt",
                    ".._Lisbon_no_geocode.json",
                    "Lisbon_result.json",
                    "Lisbon_result.txt",
                ]),
            )
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["results"])
        self.assertEqual(len(outcomes), 3)

    def test_sink_write_failure_does_not_stop_the_batch(self):
        class FailingSink(RecordingSink):
            def record(self, outcome):
                if outcome.city.name == "Lisbon":
                    raise OSError("disk full")
                super().record(outcome)

        ds = FakeDataSource(
            geocode={"Lisbon": Success([LISBON]), "Nowhere": EmptyResult()},
            forecast=Success(_forecast()),
        )
        sink = FailingSink()

        outcomes = run_batch([CityRequest(name="Lisbon"), CityRequest(name="Nowhere")], ds, sink)

        self.assertEqual([o.status for o in outcomes], [OutcomeStatus.SUCCESS, OutcomeStatus.NO_GEOCODE])
        self.assertEqual([o.city.name for o in sink.recorded], ["Nowhere"])

    def test_empty_city_list(self):
        self.assertEqual(run_batch([], FakeDataSource()), [])


class TestLoadCities(unittest.TestCase):
    def test_loads_list(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cities.json"
            path.write_text(json.dumps([{"name": "Lisbon", "country_code": "PT"}, {"name": "Oslo"}]))
            cities = load_cities(path)
        self.assertEqual([c.name for c in cities], ["Lisbon", "Oslo"])
        self.assertIsNone(cities[1].country_code)

    def test_rejects_non_list(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cities.json"
            path.write_text(json.dumps({"name": "Lisbon"}))
            with self.assertRaises(ValueError):
                load_cities(path)

    def test_rejects_malformed_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cities.json"
            path.write_text('[{"name": ')
            with self.assertRaisesRegex(ValueError, "not valid JSON"):
                load_cities(path)


if __name__ == "__main__":
    unittest.main()
