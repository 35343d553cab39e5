"""Tests for event property parsing and the impact function library."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from neuro_primitives.estimation.errors import MalformedEventError
from neuro_primitives.estimation.impacts import (
    A1_ED50_MG,
    A2A_ED50_MG,
    compute_impacts,
    impacts_for,
    exercise_cortisol,
    receptor_occupancy,
    stress_cortisol_multiplier,
)
from neuro_primitives.estimation.properties import SleepQuality, parse_event
from neuro_primitives.models import Event, EventType, HealthMetric, PrimitiveKind

DA = PrimitiveKind.DOPAMINE
HT = PrimitiveKind.SEROTONIN
NE = PrimitiveKind.NOREPINEPHRINE
ADO = PrimitiveKind.ADENOSINE
CORT = PrimitiveKind.CORTISOL
GLU = PrimitiveKind.GLUCOSE
CIRC = PrimitiveKind.CIRCADIAN_PHASE

MORNING = datetime(2026, 1, 10, 8, 0)
EVENING = datetime(2026, 1, 10, 19, 0)


# ── Event model ──────────────────────────────────────────────


class TestEventModel:
    def test_legacy_type_aliases(self):
        e = Event(event_type="light_exposure", timestamp=MORNING)
        assert e.event_type == EventType.LIGHT
        e = Event(event_type="stress_event", timestamp=MORNING)
        assert e.event_type == EventType.STRESS

    def test_health_prefix_sets_metric(self):
        e = Event(event_type="health_hrv", timestamp=MORNING, properties={"value": 40})
        assert e.event_type == EventType.HEALTH
        assert e.metric == HealthMetric.HRV

    def test_naive_timestamp_is_utc(self):
        e = Event(event_type="wake", timestamp=MORNING)
        assert e.timestamp.tzinfo is not None
        assert e.hour_of_day == 8.0

    def test_event_is_frozen(self):
        e = Event(event_type="wake", timestamp=MORNING)
        with pytest.raises(ValidationError):
            e.event_id = "other"

    def test_event_log_from_json(self):
        from neuro_primitives.models import EventLog

        log = EventLog.model_validate_json(
            '{"user_id": "u1", "events": [{"event_id": "c1", "event_type": "caffeine",'
            ' "timestamp": "2026-01-10T08:00:00Z", "properties": {"dose_mg": 80}}]}'
        )
        assert log.user_id == "u1"
        assert log.events[0].event_type == EventType.CAFFEINE


# ── Property parsing ─────────────────────────────────────────


class TestPropertyParsing:
    def test_sleep_defaults_efficiency(self, make_event):
        parsed = parse_event(make_event("sleep", MORNING, duration_hours=7, quality="good"))
        assert parsed.props.efficiency == pytest.approx(0.85)
        assert parsed.props.quality == SleepQuality.GOOD

    def test_missing_required_property_is_malformed(self, make_event):
        with pytest.raises(MalformedEventError) as exc:
            parse_event(make_event("sleep", MORNING, duration_hours=7))
        assert "quality" in exc.value.reason

    def test_negative_duration_is_malformed(self, make_event):
        with pytest.raises(MalformedEventError):
            parse_event(make_event("nap", MORNING, duration_minutes=-20))

    def test_unknown_enum_is_malformed(self, make_event):
        with pytest.raises(MalformedEventError):
            parse_event(make_event("sleep", MORNING, duration_hours=7, quality="superb"))

    def test_malformed_error_is_value_error(self, make_event):
        with pytest.raises(ValueError):
            parse_event(make_event("caffeine", MORNING, dose_mg="lots"))

    def test_excessive_dose_is_clamped_and_flagged(self, make_event):
        parsed = parse_event(make_event("caffeine", MORNING, event_id="big", dose_mg=1500))
        assert parsed.props.dose_mg == 1000.0
        assert len(parsed.flags) == 1
        flag = parsed.flags[0]
        assert flag.event_id == "big"
        assert flag.field == "dose_mg"
        assert flag.original == 1500
        assert flag.adjusted == 1000.0

    def test_percentage_efficiency_is_converted(self, make_event):
        parsed = parse_event(make_event("sleep", MORNING, duration_hours=8, quality="good", efficiency=92))
        assert parsed.props.efficiency == pytest.approx(0.92)
        assert parsed.flags[0].field == "efficiency"

    def test_duration_derived_from_end_timestamp(self, make_event):
        parsed = parse_event(
            make_event("sleep", MORNING - timedelta(hours=6, minutes=30), end=MORNING, quality="fair")
        )
        assert parsed.props.duration_hours == pytest.approx(6.5)
        assert parsed.effective_time == parsed.event.end_timestamp

    def test_nap_end_from_duration(self, make_event):
        parsed = parse_event(make_event("nap", MORNING, duration_minutes=30))
        assert parsed.end == parsed.start + timedelta(minutes=30)
        assert parsed.effective_time == parsed.end

    def test_exercise_requires_intensity_or_vo2max(self, make_event):
        with pytest.raises(MalformedEventError):
            parse_event(make_event("exercise", MORNING, type="cardio", duration_minutes=30))

    def test_vo2max_takes_precedence_over_label(self, make_event):
        parsed = parse_event(
            make_event(
                "exercise", MORNING, type="cardio", duration_minutes=30,
                intensity="light", vo2max_percentage=82,
            )
        )
        assert parsed.props.intensity_percent == 82

    def test_stress_severity_label(self, make_event):
        parsed = parse_event(
            make_event("stress", MORNING, severity="severe", controllable=True, social_evaluative=False)
        )
        assert parsed.props.severity == pytest.approx(1.3)

    def test_health_without_metric_is_malformed(self):
        event = Event(event_type="health", timestamp=MORNING, properties={"value": 60})
        with pytest.raises(MalformedEventError):
            parse_event(event)


# ── Caffeine ─────────────────────────────────────────────────


class TestCaffeine:
    def test_a2a_occupancy_half_at_ed50(self):
        assert receptor_occupancy(65, A2A_ED50_MG) == 0.5

    def test_a1_occupancy_half_at_ed50(self):
        assert receptor_occupancy(450, A1_ED50_MG) == 0.5

    def test_occupancy_monotonic(self):
        doses = [0, 25, 65, 100, 200, 400]
        occ = [receptor_occupancy(d, A2A_ED50_MG) for d in doses]
        assert occ == sorted(occ)
        assert occ[0] == 0.0

    def test_dose_terms(self, make_event):
        impacts = compute_impacts(make_event("caffeine", MORNING, dose_mg=100), 0.0)
        assert impacts[DA] == pytest.approx(0.075)
        assert impacts[NE] == pytest.approx(0.125)
        assert impacts[CORT] == pytest.approx(0.075 + 0.1 * 100 / 550)
        assert impacts[ADO] == pytest.approx(-0.5 * 100 / 165)

    def test_norepinephrine_cap(self, make_event):
        impacts = compute_impacts(make_event("caffeine", MORNING, dose_mg=800), 0.0)
        assert impacts[NE] == pytest.approx(0.25 * 1.3)
        assert impacts[DA] == pytest.approx(0.15)


# ── Sleep ────────────────────────────────────────────────────


class TestSleep:
    def test_full_sleep_restores_dopamine(self, make_event):
        impacts = compute_impacts(make_event("sleep", MORNING, duration_hours=8, quality="excellent"), 0.0)
        assert impacts[DA] == pytest.approx(0.3)
        assert impacts[HT] == pytest.approx(0.25)
        assert impacts[CORT] == pytest.approx(-0.12)
        assert impacts[GLU] == pytest.approx(0.2)

    def test_six_hour_branch(self, make_event):
        impacts = compute_impacts(make_event("sleep", MORNING, duration_hours=6.5, quality="good"), 0.0)
        assert impacts[DA] == pytest.approx(0.15 * 0.8)

    def test_short_poor_sleep_hurts(self, make_event):
        impacts = compute_impacts(make_event("sleep", MORNING, duration_hours=5, quality="poor"), 0.0)
        assert impacts[DA] == pytest.approx(-0.2 * 0.6)
        assert impacts[CORT] == pytest.approx(0.15 * 0.6)
        assert impacts[GLU] == pytest.approx(-0.3 * (1 - 5 / 6))

    def test_low_efficiency_loses_glucose_restoration(self, make_event):
        impacts = compute_impacts(
            make_event("sleep", MORNING, duration_hours=8, quality="good", efficiency=0.6), 0.0
        )
        assert impacts.get(GLU, 0.0) == pytest.approx(0.0)

    def test_late_onset_delays_phase(self, make_event):
        onset = datetime(2026, 1, 10, 2, 0)
        impacts = compute_impacts(make_event("sleep", onset, duration_hours=7, quality="good"), 0.0)
        assert impacts[CIRC] == pytest.approx(0.2)

    @pytest.mark.parametrize("hour,expected", [(0, 0.0), (1, 0.1), (2, 0.2), (3, 0.0), (22, 0.0)])
    def test_onset_hour_phase_shift(self, make_event, hour, expected):
        onset = datetime(2026, 1, 10, hour, 30)
        impacts = compute_impacts(make_event("sleep", onset, duration_hours=7, quality="good"), 0.0)
        assert impacts.get(CIRC, 0.0) == pytest.approx(expected)


# ── Exercise ─────────────────────────────────────────────────


class TestExercise:
    def test_cortisol_reduced_at_low_intensity(self):
        assert exercise_cortisol(60, 60) == pytest.approx(-0.08)

    def test_cortisol_rises_above_60(self):
        assert exercise_cortisol(70, 45) == pytest.approx(0.1)

    def test_cortisol_escalates_above_80(self):
        assert exercise_cortisol(85, 45) == pytest.approx(0.3)
        below = exercise_cortisol(80, 45) - exercise_cortisol(79, 45)
        above = exercise_cortisol(81, 45) - exercise_cortisol(80, 45)
        assert above > below

    def test_hiit_dopamine(self, make_event):
        impacts = compute_impacts(
            make_event("exercise", MORNING, type="hiit", intensity="high_intensity", duration_minutes=30), 0.0
        )
        assert impacts[DA] == pytest.approx(0.35 * 30 / 45)
        assert impacts[NE] == pytest.approx(0.4 * 0.85)

    def test_morning_exercise_advances_phase(self, make_event):
        impacts = compute_impacts(
            make_event("exercise", MORNING, type="cardio", intensity="moderate", duration_minutes=60), 0.0
        )
        assert impacts[CIRC] == pytest.approx(-0.25)
        assert impacts[NE] == pytest.approx(0.2)


# ── Meal ─────────────────────────────────────────────────────


class TestMeal:
    def test_carb_heavy_low_protein_boosts_serotonin(self, make_event):
        impacts = compute_impacts(
            make_event("meal", MORNING, protein_percentage=5, carb_percentage=60, glycemic_index="high"), 0.0
        )
        assert impacts[HT] == pytest.approx(0.35 * 0.75)
        assert impacts[GLU] == pytest.approx(0.3)
        assert impacts[DA] == pytest.approx(0.05 + 0.1)

    def test_high_protein_lowers_serotonin(self, make_event):
        impacts = compute_impacts(
            make_event("meal", MORNING, protein_percentage=40, carb_percentage=30, glycemic_index="low"), 0.0
        )
        assert impacts[HT] == pytest.approx(-0.15)
        assert impacts[GLU] == pytest.approx(0.1 + 0.03)
        assert impacts[DA] == pytest.approx(0.15 + 0.03)


# ── Light ────────────────────────────────────────────────────


class TestLight:
    def test_morning_bright_light_advances(self, make_event):
        impacts = compute_impacts(make_event("light", MORNING, intensity_lux=10000, duration_minutes=60), 0.0)
        assert impacts[CIRC] == pytest.approx(-0.4)
        assert impacts[HT] == pytest.approx(0.25)
        assert impacts[CORT] == pytest.approx(0.08)

    def test_evening_bright_light_delays(self, make_event):
        impacts = compute_impacts(make_event("light", EVENING, intensity_lux=3000, duration_minutes=120), 0.0)
        assert impacts[CIRC] == pytest.approx(0.6)
        assert HT not in impacts

    def test_dim_light_has_no_phase_effect(self, make_event):
        impacts = compute_impacts(make_event("light", EVENING, intensity_lux=50, duration_minutes=60), 0.0)
        assert CIRC not in impacts


# ── Stress ───────────────────────────────────────────────────


class TestStress:
    @pytest.mark.parametrize(
        "controllable,social,expected",
        [(True, False, 1.0), (True, True, 1.5), (False, False, 2.0), (False, True, 3.0)],
    )
    def test_multiplier_table(self, controllable, social, expected):
        assert stress_cortisol_multiplier(controllable, social) == expected

    def test_uncontrollable_social_evaluative_at_peak(self, make_event):
        event = make_event(
            "stress", MORNING, severity=1.0, controllable=False,
            social_evaluative=True, duration_minutes=45,
        )
        impacts = compute_impacts(event, 25 / 60)
        assert impacts[CORT] / (0.15 * 1.0) == pytest.approx(3.0)

    def test_cortisol_builds_before_peak(self, make_event):
        event = make_event("stress", MORNING, severity=1.0, controllable=True, social_evaluative=False)
        early = compute_impacts(event, 5 / 60)[CORT]
        peak = compute_impacts(event, 25 / 60)[CORT]
        assert early < peak
        assert early == pytest.approx(0.15 * 0.2)

    def test_glucose_capped(self, make_event):
        event = make_event("stress", MORNING, severity=1.3, controllable=False, social_evaluative=True)
        glucose = compute_impacts(event, 1.0)[GLU]
        assert glucose == pytest.approx(0.25 * 1.3 * 1.2)
        assert glucose <= 0.4


# ── Social / screen / nap / interruption ─────────────────────


class TestOtherEvents:
    def test_positive_reciprocal_social(self, make_event):
        impacts = compute_impacts(
            make_event("social", MORNING, interaction_type="reciprocal", quality="positive", duration_minutes=120), 0.0
        )
        assert impacts[HT] == pytest.approx(0.21)
        assert impacts[DA] == pytest.approx(0.14)
        assert impacts[CORT] == pytest.approx(-0.14)

    def test_passive_social_is_weaker(self, make_event):
        reciprocal = compute_impacts(
            make_event("social", MORNING, interaction_type="reciprocal", quality="positive", duration_minutes=60), 0.0
        )
        passive = compute_impacts(
            make_event("social", MORNING, interaction_type="passive", quality="positive", duration_minutes=60), 0.0
        )
        assert passive[DA] == pytest.approx(reciprocal[DA] * 0.3)

    def test_negative_social_raises_cortisol(self, make_event):
        impacts = compute_impacts(
            make_event("social", MORNING, interaction_type="reciprocal", quality="negative", duration_minutes=30), 0.0
        )
        assert impacts[CORT] == pytest.approx(0.2)
        assert impacts[HT] == pytest.approx(-0.15)

    def test_screen_before_sleep_delays(self, make_event):
        impacts = compute_impacts(
            make_event(
                "screen", datetime(2026, 1, 10, 15, 0), duration_minutes=60,
                content_type="reading", blue_light_intensity="high", hours_before_sleep=1.5,
            ),
            0.0,
        )
        assert impacts[CIRC] == pytest.approx(0.125)

    def test_evening_gaming(self, make_event):
        impacts = compute_impacts(
            make_event(
                "screen", datetime(2026, 1, 10, 21, 0), duration_minutes=60,
                content_type="gaming", blue_light_intensity="medium",
            ),
            0.0,
        )
        assert impacts[CIRC] == pytest.approx(0.15)
        assert impacts[NE] == pytest.approx(0.1)

    def test_long_nap_delays_phase(self, make_event):
        impacts = compute_impacts(make_event("nap", MORNING, duration_minutes=60), 0.0)
        assert impacts[CIRC] == pytest.approx(0.15)
        assert -1.0 < impacts[ADO] < 0.0

    def test_interruptions(self, make_event):
        impacts = compute_impacts(make_event("interruption", MORNING, frequency=5), 0.0)
        assert impacts[CORT] == pytest.approx(0.1)
        assert impacts[DA] == pytest.approx(-0.075)

    def test_markers_have_no_impact(self, make_event):
        assert compute_impacts(make_event("wake", MORNING), 0.0) == {}
        assert compute_impacts(make_event("health_heart_rate", MORNING, value=70), 0.0) == {}

    def test_malformed_event_has_zero_impact(self, make_event):
        assert compute_impacts(make_event("sleep", MORNING, duration_hours=8), 0.0) == {}

    def test_impacts_bounded(self, make_event):
        extreme = [
            make_event("caffeine", MORNING, dose_mg=5000),
            make_event("exercise", MORNING, type="hiit", vo2max_percentage=150, duration_minutes=900),
            make_event("stress", MORNING, severity=5, controllable=False, social_evaluative=True),
            make_event("light", MORNING, intensity_lux=1e7, duration_minutes=10000),
            make_event("interruption", MORNING, frequency=1e6),
        ]
        for event in extreme:
            for value in compute_impacts(event, 1.0).values():
                assert abs(value) <= 1.0

    def test_empty_registry_means_no_impacts(self, make_event):
        parsed = parse_event(make_event("caffeine", MORNING, dose_mg=200))
        assert impacts_for(parsed, 1.0, {}) == {}
        assert impacts_for(parsed, 1.0)[DA] > 0.0
