"""
Heat Impact API Tests

    POST /v1/heat-impact/analyze
    POST /v1/activities/{id}/heat-impact
    GET  /v1/activities/{id}/heat-impact
    GET  /v1/activities/{id}/heat-impact/recommendations
    GET  /v1/athletes/{id}/heat-acclimation

The DB session is a MagicMock (dependency override); store calls are patched.
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fastapi.testclient import TestClient

from main import app
from core.database import get_db
from services.heat_impact import StreamStructureError
from services.historical_weather import WeatherProviderError
from fixtures.stream_fixtures import START, make_hourly_weather, make_steady_run_stream

client = TestClient(app)


def _weather_json(temperature_c=12.0, humidity_percent=50.0):
    return [
        {
            "timestamp": o.timestamp.isoformat(),
            "temperature_c": o.temperature_c,
            "humidity_percent": o.humidity_percent,
        }
        for o in make_hourly_weather(temperature_c=temperature_c, humidity_percent=humidity_percent)
    ]


def _analyze_body(**overrides):
    body = {
        "start_time": START.isoformat(),
        "stream_data": make_steady_run_stream(),
        "hourly_weather": _weather_json(),
        "activity_duration_minutes": 120,
    }
    body.update(overrides)
    return body


@pytest.fixture
def db():
    session = MagicMock()
    app.dependency_overrides[get_db] = lambda: session
    yield session
    app.dependency_overrides.clear()


class TestAnalyzePayload:
    """Stateless analysis of posted streams."""

    def test_cool_run(self):
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body())

        assert response.status_code == 200
        data = response.json()
        assert data["heat_impact_score"]["severity"] == "LOW"
        assert data["physiological_stress"]["indicator_count"] == 0
        assert data["recommendations"] == ["Continue current heat management strategies"]
        assert "weather_stream" not in data

    def test_include_weather(self):
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body(include_weather=True))
        assert response.status_code == 200
        assert len(response.json()["weather_stream"]) == 720

    def test_historical_scores(self):
        response = client.post(
            "/v1/heat-impact/analyze", json=_analyze_body(historical_scores=[10, 20, 30]))
        assert response.json()["historical_comparison"]["percentile"] == 0.0

    def test_no_history_neutral_comparison(self):
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body())
        assert response.json()["historical_comparison"] == {
            "percentile": 50.0,
            "interpretation": "No historical data available for comparison",
        }

    def test_duration_defaults_to_elapsed(self):
        body = _analyze_body()
        del body["activity_duration_minutes"]
        response = client.post("/v1/heat-impact/analyze", json=body)
        assert response.status_code == 200
        assert response.json()["duration_minutes"] == pytest.approx(7190 / 60)

    def test_misaligned_streams_422(self):
        stream = make_steady_run_stream()
        stream["heartrate"] = stream["heartrate"][:-5]
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body(stream_data=stream))
        assert response.status_code == 422
        assert "heart_rate" in response.json()["detail"]

    def test_null_time_sample_422(self):
        stream = make_steady_run_stream()
        stream["time"][5] = None
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body(stream_data=stream))
        assert response.status_code == 422
        assert "time stream has 1 null samples" in response.json()["detail"]

    def test_empty_weather_422(self):
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body(hourly_weather=[]))
        assert response.status_code == 422

    def test_humidity_out_of_range_422(self):
        weather = _weather_json()
        weather[0]["humidity_percent"] = 120
        response = client.post("/v1/heat-impact/analyze", json=_analyze_body(hourly_weather=weather))
        assert response.status_code == 422


class TestAnalyzeActivity:
    """Analyze and persist a stored activity."""

    def _found(self, db):
        activity = SimpleNamespace(id=uuid4(), athlete_id=uuid4())
        stream_row = SimpleNamespace(stream_data={})
        db.query.return_value.filter.return_value.first.side_effect = [activity, stream_row]
        return activity, stream_row

    def test_activity_not_found(self, db):
        db.query.return_value.filter.return_value.first.return_value = None
        response = client.post(f"/v1/activities/{uuid4()}/heat-impact", json={})
        assert response.status_code == 404

    def test_stream_not_found(self, db):
        db.query.return_value.filter.return_value.first.side_effect = [SimpleNamespace(id=uuid4()), None]
        response = client.post(f"/v1/activities/{uuid4()}/heat-impact", json={})
        assert response.status_code == 404
        assert "stream" in response.json()["detail"]

    @patch("services.heat_impact_store.get_or_compute_analysis")
    def test_success(self, mock_compute, db):
        activity, stream_row = self._found(db)
        mock_compute.return_value = {"heat_impact_score": {"overall_score": 64, "severity": "HIGH"}}

        response = client.post(
            f"/v1/activities/{activity.id}/heat-impact",
            json={"force_recompute": True, "base_elevation_m": 300},
        )

        assert response.status_code == 200
        assert response.json()["heat_impact_score"]["severity"] == "HIGH"
        args, kwargs = mock_compute.call_args
        assert args[0] is activity
        assert args[1] is stream_row
        assert kwargs["hourly_weather"] is None
        assert kwargs["base_elevation"] == 300
        assert kwargs["force_recompute"] is True

    @patch("services.heat_impact_store.get_or_compute_analysis")
    def test_posted_weather_is_sorted(self, mock_compute, db):
        activity, _ = self._found(db)
        mock_compute.return_value = {}
        weather = list(reversed(_weather_json()))

        client.post(f"/v1/activities/{activity.id}/heat-impact", json={"hourly_weather": weather})

        observations = mock_compute.call_args.kwargs["hourly_weather"]
        assert [o.timestamp for o in observations] == sorted(o.timestamp for o in observations)

    @patch("services.heat_impact_store.get_or_compute_analysis")
    def test_weather_provider_down_503(self, mock_compute, db):
        activity, _ = self._found(db)
        mock_compute.side_effect = WeatherProviderError("read timed out")

        response = client.post(f"/v1/activities/{activity.id}/heat-impact", json={})

        assert response.status_code == 503
        assert "Weather provider" in response.json()["detail"]

    @patch("services.heat_impact_store.get_or_compute_analysis")
    def test_malformed_stream_422(self, mock_compute, db):
        activity, _ = self._found(db)
        mock_compute.side_effect = StreamStructureError("time stream is empty")

        response = client.post(f"/v1/activities/{activity.id}/heat-impact", json={})
        assert response.status_code == 422

    @patch("services.heat_impact_store.get_or_compute_analysis")
    def test_no_location_422(self, mock_compute, db):
        activity, _ = self._found(db)
        mock_compute.side_effect = ValueError("activity has no start location for a weather lookup")

        response = client.post(f"/v1/activities/{activity.id}/heat-impact", json={})
        assert response.status_code == 422

    def test_invalid_uuid_422(self, db):
        response = client.post("/v1/activities/not-a-uuid/heat-impact", json={})
        assert response.status_code == 422


class TestGetActivityHeatImpact:
    """Stored analysis reads."""

    @patch("services.heat_impact_store.get_analysis")
    def test_stored(self, mock_get, db):
        mock_get.return_value = {"heat_impact_score": {"overall_score": 12}}
        response = client.get(f"/v1/activities/{uuid4()}/heat-impact")
        assert response.status_code == 200
        assert response.json()["heat_impact_score"]["overall_score"] == 12

    @patch("services.heat_impact_store.get_analysis", return_value=None)
    def test_not_analyzed(self, mock_get, db):
        response = client.get(f"/v1/activities/{uuid4()}/heat-impact")
        assert response.status_code == 404


class TestPersonalizedRecommendations:
    """Advice for a stored analysis."""

    @patch("services.heat_impact_store.get_personalized_recommendations")
    def test_success(self, mock_advise, db):
        activity_id = uuid4()
        mock_advise.return_value = {
            "activity_id": str(activity_id),
            "heat_acclimation_index": 50,
            "hydration": ["Based on your weight (70kg), aim for 560-660ml per hour"],
            "pacing": [],
            "cooling": [],
            "clothing": [],
            "acclimation": [],
            "personalization_factors": ["body_weight:70kg"],
        }

        response = client.get(
            f"/v1/activities/{activity_id}/heat-impact/recommendations", params={"body_weight_kg": 70})

        assert response.status_code == 200
        data = response.json()
        assert data["activity_id"] == str(activity_id)
        assert data["personalization_factors"] == ["body_weight:70kg"]
        assert mock_advise.call_args.args[0] == activity_id
        assert mock_advise.call_args.kwargs["body_weight_kg"] == 70.0

    @patch("services.heat_impact_store.get_personalized_recommendations", return_value=None)
    def test_not_analyzed(self, mock_advise, db):
        response = client.get(f"/v1/activities/{uuid4()}/heat-impact/recommendations")
        assert response.status_code == 404
        assert mock_advise.call_args.kwargs["body_weight_kg"] is None

    def test_non_positive_weight_422(self, db):
        response = client.get(
            f"/v1/activities/{uuid4()}/heat-impact/recommendations", params={"body_weight_kg": 0})
        assert response.status_code == 422


class TestHeatAcclimation:
    """Athlete acclimation index."""

    @patch("services.heat_impact_store.get_acclimation_history", return_value=[])
    def test_neutral_without_history(self, mock_history, db):
        athlete_id = uuid4()
        response = client.get(f"/v1/athletes/{athlete_id}/heat-acclimation")

        assert response.status_code == 200
        data = response.json()
        assert data["athlete_id"] == str(athlete_id)
        assert data["acclimation_index"] == 50
        assert data["recent_heat_exposures"] == 0


class TestHealth:
    """Load balancer health check."""

    @patch("main.check_db_connection", return_value=True)
    def test_healthy(self, mock_check):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @patch("main.check_db_connection", return_value=False)
    def test_database_down(self, mock_check):
        response = client.get("/health")
        assert response.status_code == 503
