"""
Tests for the heat stress timeline (chart data).
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from services.heat_impact.timeline import _nearest_index, generate_heat_stress_timeline, point_heat_stress
from fixtures.stream_fixtures import make_weather_points


class TestPointHeatStress:
    """Piecewise-linear heat index mapping plus humidity/temperature bumps."""

    @pytest.mark.parametrize("heat_index,humidity,temperature,expected", [
        (18.0, 50.0, 18.0, 0.0),
        (23.5, 50.0, 23.5, 10.0),
        (30.0, 75.0, 30.0, 34.0),
        (36.5, 85.0, 33.0, 60.0),
        (60.0, 50.0, 40.0, 100.0),
    ])
    def test_mapping(self, heat_index, humidity, temperature, expected):
        point = make_weather_points([heat_index], humidity=[humidity], temperature=[temperature])[0]
        assert point_heat_stress(point) == pytest.approx(expected)


class TestTimeline:
    """Sampling interval depends on activity length."""

    def test_short_activity_quarter_km(self):
        n = 501  # 5 km at 10 m spacing
        points = make_weather_points([30.0] * n, humidity=[75.0] * n)
        timeline = generate_heat_stress_timeline(points, [i * 10.0 for i in range(n)])

        assert len(timeline) == 21
        assert timeline[0].km == 0.0
        assert timeline[-1].km == 5.0
        assert all(p.heat_stress == 34 for p in timeline)

    def test_long_activity_half_km(self):
        n = 2001  # 20 km
        points = make_weather_points([20.0] * n)
        timeline = generate_heat_stress_timeline(points, [i * 10.0 for i in range(n)])
        assert len(timeline) == 41
        assert all(p.heat_stress == 0 for p in timeline)

    def test_smoothing(self):
        n = 501
        heat = [20.0] * 250 + [41.0] * 251
        points = make_weather_points(heat, temperature=[20.0] * n)
        timeline = generate_heat_stress_timeline(points, [i * 10.0 for i in range(n)])
        stresses = [p.heat_stress for p in timeline]
        assert stresses[0] == 0
        assert stresses[-1] == 70
        assert 0 < stresses[10] < 70

    def test_empty(self):
        assert generate_heat_stress_timeline([], []) == []


class TestNearestIndex:
    """Nearest-distance lookup over a cumulative distance stream."""

    @pytest.mark.parametrize("target,expected", [
        (-5.0, 0),
        (0.0, 0),
        (14.0, 1),
        (15.0, 1),   # tie goes to the earlier sample
        (16.0, 2),
        (25.0, 2),   # first of a stationary run
        (1000.0, 5),
    ])
    def test_lookup(self, target, expected):
        distance = [0.0, 10.0, 20.0, 20.0, 20.0, 40.0]
        assert _nearest_index(distance, target) == expected

    def test_stationary_finish(self):
        assert _nearest_index([0.0, 10.0, 10.0, 10.0], 50.0) == 1

    def test_timeline_uses_first_sample_of_a_stop(self):
        # 900 m with a 100-sample stop at 250 m; only the stop's first sample is hot
        distance = [i * 10.0 for i in range(26)] + [250.0] * 100 + [250.0 + i * 10.0 for i in range(1, 66)]
        heat = [20.0] * len(distance)
        heat[25] = 41.0
        points = make_weather_points(heat, temperature=[20.0] * len(distance))

        timeline = generate_heat_stress_timeline(points, distance)

        # 4 points (0, 0.25, 0.5, 0.75 km): too few to smooth
        assert [p.heat_stress for p in timeline] == [0, 70, 0, 0]
