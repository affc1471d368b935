"""
Tests for the environmental correlation engine.

Tests:
    1. SpikeDetector cooldown state machine
    2. Heat and humidity spike identification
    3. Correlation strength (preceding-spike window + sustained heat bonus)
    4. Primary factor attribution
    5. Confidence score and summary text
    6. End-to-end correlate_environment_with_stress
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from services.heat_impact.correlation import (
    CorrelationEvent,
    CorrelationEventType,
    EnvironmentalContext,
    PrimaryFactor,
    SpikeDetector,
    calculate_confidence_score,
    calculate_correlation_strength,
    correlate_environment_with_stress,
    determine_primary_factor,
    generate_correlation_summary,
    identify_heat_spikes,
    identify_humidity_spikes,
)
from services.heat_impact.stress_detection import (
    CadenceDrop,
    HRDrift,
    PaceDegradation,
    PhysiologicalStress,
    VAMDecline,
)
from fixtures.stream_fixtures import START, make_weather_points


def _stress(hr=False, pace=False, cadence=False, sustained=False, hr_index=0, pace_index=0):
    return PhysiologicalStress(
        hr_drift=HRDrift(detected=hr, magnitude_bpm=15.0 if hr else 0.0,
                         start_index=hr_index, sustained=sustained),
        pace_degradation=PaceDegradation(detected=pace, degradation_percent=18.0 if pace else 0.0,
                                         start_index=pace_index, degraded_pace_min_km=6.5),
        vam_decline=VAMDecline(),
        cadence_drop=CadenceDrop(detected=cadence, drop_percent=9.0 if cadence else 0.0,
                                 dropped_cadence=158.0),
    )


def _event(km: float, event_type: CorrelationEventType) -> CorrelationEvent:
    return CorrelationEvent(
        km=km,
        timestamp=START,
        event_type=event_type,
        description="",
        environmental_context=EnvironmentalContext(temperature_c=30.0, humidity_percent=60.0, heat_index_c=32.0),
    )


def _distance(n: int, step_m: float = 100.0):
    return [i * step_m for i in range(n)]


class TestSpikeDetector:
    """At most one spike per cooldown window."""

    def test_continuous_trigger_emits_after_cooldown(self):
        detector = SpikeDetector(cooldown_samples=10)
        emitted = [i for i in range(30) if detector.step(True)]
        assert emitted == [0, 11, 22]

    def test_no_trigger_no_spike(self):
        detector = SpikeDetector(cooldown_samples=10)
        assert not any(detector.step(False) for _ in range(20))
        assert not detector.cooling_down

    def test_triggers_ignored_while_cooling_down(self):
        detector = SpikeDetector(cooldown_samples=3)
        assert detector.step(True)
        assert detector.cooling_down
        assert [detector.step(True) for _ in range(3)] == [False, False, False]
        assert detector.step(True)


class TestHeatSpikes:
    """Heat index >5°C above the first-30% baseline."""

    def test_sustained_excursion_emits_every_eleven_samples(self):
        heat = [25.0] * 30 + [31.0] * 70
        spikes = identify_heat_spikes(make_weather_points(heat), _distance(100))

        indices = [round(s.km * 10) for s in spikes]
        assert indices == [30, 41, 52, 63, 74, 85, 96]
        assert all(s.event_type == CorrelationEventType.HEAT_SPIKE for s in spikes)
        assert spikes[0].description == "Heat index increased by 6.0°C"
        assert spikes[0].environmental_context.heat_index_c == 31.0

    def test_below_threshold(self):
        heat = [25.0] * 30 + [30.0] * 70
        assert identify_heat_spikes(make_weather_points(heat), _distance(100)) == []

    def test_too_short_for_baseline(self):
        assert identify_heat_spikes(make_weather_points([25.0, 40.0, 40.0]), _distance(3)) == []


class TestHumiditySpikes:
    """Crossings into the >=80% band."""

    def test_crossings(self):
        humidity = [70.0] * 5 + [85.0] * 5 + [70.0] * 20 + [82.0] * 5
        points = make_weather_points([25.0] * len(humidity), humidity=humidity)
        spikes = identify_humidity_spikes(points, _distance(len(humidity)))

        assert [round(s.km * 10) for s in spikes] == [5, 30]
        assert spikes[0].description == "Humidity reached 85%"

    def test_starting_humid_is_not_a_crossing(self):
        points = make_weather_points([25.0] * 10, humidity=[90.0] * 10)
        assert identify_humidity_spikes(points, _distance(10)) == []

    def test_crossing_during_cooldown_suppressed(self):
        humidity = [70.0, 85.0, 70.0, 85.0, 70.0]
        points = make_weather_points([25.0] * 5, humidity=humidity)
        assert len(identify_humidity_spikes(points, _distance(5))) == 1


class TestCorrelationStrength:
    """Stress onsets preceded by an environmental spike within 5 km."""

    def test_spike_two_km_before_onset(self):
        events = [_event(10.0, CorrelationEventType.HR_DRIFT_START), _event(8.0, CorrelationEventType.HEAT_SPIKE)]
        strength = calculate_correlation_strength(events, make_weather_points([25.0] * 10), _stress(hr=True))
        assert strength == pytest.approx(0.5)

    def test_spike_six_km_before_onset(self):
        events = [_event(10.0, CorrelationEventType.HR_DRIFT_START), _event(4.0, CorrelationEventType.HEAT_SPIKE)]
        strength = calculate_correlation_strength(events, make_weather_points([25.0] * 10), _stress(hr=True))
        assert strength == 0.0

    def test_spike_after_onset_does_not_count(self):
        events = [_event(10.0, CorrelationEventType.HR_DRIFT_START), _event(11.0, CorrelationEventType.HEAT_SPIKE)]
        strength = calculate_correlation_strength(events, make_weather_points([25.0] * 10), _stress(hr=True))
        assert strength == 0.0

    def test_sustained_heat_bonus(self):
        events = [_event(10.0, CorrelationEventType.HR_DRIFT_START)]
        # avg heat index 33: both bonuses, (0 + 1.0) / 2
        strength = calculate_correlation_strength(events, make_weather_points([33.0] * 10), _stress(hr=True))
        assert strength == pytest.approx(0.5)

    def test_capped_at_one(self):
        events = [_event(10.0, CorrelationEventType.HR_DRIFT_START), _event(9.0, CorrelationEventType.HEAT_SPIKE)]
        strength = calculate_correlation_strength(events, make_weather_points([33.0] * 10), _stress(hr=True))
        assert strength == 1.0

    def test_no_stress_is_zero(self):
        events = [_event(9.0, CorrelationEventType.HEAT_SPIKE)]
        assert calculate_correlation_strength(events, make_weather_points([40.0] * 10), _stress()) == 0.0


class TestPrimaryFactor:
    """Attribution from mean conditions."""

    @pytest.mark.parametrize("heat_index,temperature,humidity,expected", [
        (34.0, 30.0, 75.0, PrimaryFactor.COMBINED),
        (34.0, 30.0, 50.0, PrimaryFactor.HEAT),
        (26.0, 26.0, 50.0, PrimaryFactor.HEAT),
        (20.0, 20.0, 75.0, PrimaryFactor.HUMIDITY),
        (15.0, 15.0, 50.0, PrimaryFactor.NONE),
    ])
    def test_factor(self, heat_index, temperature, humidity, expected):
        points = make_weather_points([heat_index] * 5, humidity=[humidity] * 5, temperature=[temperature] * 5)
        assert determine_primary_factor(points) == expected

    def test_empty_stream(self):
        assert determine_primary_factor([]) == PrimaryFactor.NONE


class TestConfidence:
    """Base 0.5 adjusted by data volume, indicators and spikes."""

    def test_full_evidence(self):
        events = [_event(8.0, CorrelationEventType.HEAT_SPIKE)]
        points = make_weather_points([30.0] * 150)
        confidence = calculate_confidence_score(events, points, _stress(hr=True, pace=True, sustained=True))
        assert confidence == pytest.approx(0.9)

    def test_no_environmental_spike_penalty(self):
        points = make_weather_points([30.0] * 150)
        confidence = calculate_confidence_score([], points, _stress(hr=True, pace=True, sustained=True))
        assert confidence == pytest.approx(0.7)

    def test_clamped_to_zero_one(self):
        events = [_event(8.0, CorrelationEventType.HEAT_SPIKE)]
        points = make_weather_points([30.0] * 150)
        stress = _stress(hr=True, pace=True, cadence=True, sustained=True)
        stress.vam_decline.detected = True
        assert calculate_confidence_score(events, points, stress) == 1.0


class TestSummary:
    """One-paragraph description of the correlation."""

    def test_weak(self):
        assert generate_correlation_summary([], 0.2, PrimaryFactor.HEAT) == (
            "Limited evidence of environmental impact on performance"
        )

    def test_strong(self):
        events = [
            _event(10.0, CorrelationEventType.HR_DRIFT_START),
            _event(8.0, CorrelationEventType.HEAT_SPIKE),
            _event(9.0, CorrelationEventType.HUMIDITY_SPIKE),
        ]
        assert generate_correlation_summary(events, 0.8, PrimaryFactor.HEAT) == (
            "Strong correlation detected between heat stress and performance degradation. "
            "1 physiological stress indicator identified. "
            "2 environmental stress events detected."
        )


class TestCorrelateEnvironmentWithStress:
    """End-to-end correlation over a weather stream."""

    def test_spike_before_drift(self):
        heat = [25.0] * 30 + [33.0] * 70
        points = make_weather_points(heat)
        distance = _distance(100)
        hr = [150.0] * 100
        correlation = correlate_environment_with_stress(
            points, distance, _stress(hr=True, hr_index=40), heart_rate=hr)

        kms = [e.km for e in correlation.events]
        assert kms == sorted(kms)
        onset = next(e for e in correlation.events if e.event_type == CorrelationEventType.HR_DRIFT_START)
        assert onset.km == pytest.approx(4.0)
        assert onset.physiological_context.hr_bpm == 150.0
        assert correlation.correlation_strength > 0.5
        assert correlation.confidence_score > 0

    def test_no_stress(self):
        correlation = correlate_environment_with_stress(
            make_weather_points([20.0] * 50), _distance(50), _stress())
        assert correlation.correlation_strength == 0.0
        assert correlation.primary_factor == PrimaryFactor.NONE
        assert correlation.summary == "Limited evidence of environmental impact on performance"
