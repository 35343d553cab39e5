"""Tests for the sleep-pressure, circadian and cortisol-rhythm process models."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from neuro_primitives.estimation.errors import MalformedEventError
from neuro_primitives.estimation.models import SleepDriveStatus
from neuro_primitives.estimation.processes import (
    awakening_boost,
    circadian_phase,
    circadian_pressure,
    cortisol_diurnal_multiplier,
    cortisol_rhythm_score,
    latest_wake,
    light_sensitivity,
    sleep_drive,
    sleep_pressure,
)
from neuro_primitives.estimation.properties import parse_event

Q = datetime(2026, 1, 10, 8, 0, tzinfo=timezone.utc)


def _parsed(events):
    return [parse_event(e) for e in events]


# ── Process S ────────────────────────────────────────────────


class TestSleepPressure:
    def test_empty_history_is_saturated(self, config):
        result = sleep_pressure([], Q, config)
        assert result.score == pytest.approx(0.85)
        assert result.contributions == ()
        assert result.confidence == 0.0

    def test_single_night_clears_pressure(self, make_event, config):
        events = _parsed([
            make_event("sleep", Q - timedelta(hours=8), end=Q, duration_hours=8, quality="excellent"),
        ])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 * math.exp(-8 / 7.5 * 0.85))

    def test_pressure_rebuilds_while_awake(self, make_event, config):
        events = _parsed([
            make_event("sleep", Q - timedelta(hours=12), end=Q - timedelta(hours=4),
                       duration_hours=8, quality="excellent"),
        ])
        result = sleep_pressure(events, Q, config)
        clearance = 0.85 * (1 - math.exp(-8 / 7.5 * 0.85))
        assert result.score == pytest.approx(0.85 - clearance * math.exp(-4 / 16))

    def test_poor_sleep_clears_less(self, make_event, config):
        good = _parsed([make_event("sleep", Q - timedelta(hours=7), end=Q, duration_hours=7, quality="good")])
        poor = _parsed([make_event("sleep", Q - timedelta(hours=7), end=Q, duration_hours=7, quality="poor")])
        assert sleep_pressure(poor, Q, config).score > sleep_pressure(good, Q, config).score

    def test_sleep_in_progress_uses_elapsed_time(self, make_event, config):
        events = _parsed([make_event("sleep", Q - timedelta(hours=3), duration_hours=8, quality="good")])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 * math.exp(-3 / 7.5 * 0.8 * 0.85))

    def test_nap_clearance(self, make_event, config):
        events = _parsed([make_event("nap", Q - timedelta(minutes=30), duration_minutes=30)])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 * math.exp(-0.0077 * 30))

    def test_caffeine_blockade(self, make_event, config):
        events = _parsed([make_event("caffeine", Q, dose_mg=100)])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 - 0.5 * 100 / 165)
        assert result.notes == ()

    def test_caffeine_blockade_capped(self, make_event, config):
        events = _parsed([make_event("caffeine", Q, dose_mg=400) for _ in range(5)])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.25)
        assert any(n.startswith("caffeine_blockade_cap") for n in result.notes)

    @pytest.mark.parametrize("doses", [[100], [400] * 5])
    def test_contributions_explain_score(self, make_event, config, doses):
        events = _parsed(
            [make_event("sleep", Q - timedelta(hours=20), end=Q - timedelta(hours=12),
                        duration_hours=8, quality="good")]
            + [make_event("caffeine", Q - timedelta(minutes=30), dose_mg=d) for d in doses]
        )
        result = sleep_pressure(events, Q, config)
        total = sum(c.decayed_impact for c in result.contributions)
        assert result.score == pytest.approx(0.85 + total)

    def test_old_episode_outside_window(self, make_event, config):
        events = _parsed([
            make_event("sleep", Q - timedelta(hours=60), end=Q - timedelta(hours=52),
                       duration_hours=8, quality="excellent"),
        ])
        assert sleep_pressure(events, Q, config).score == pytest.approx(0.85)

    def test_end_before_start_rejected(self, make_event):
        reversed_night = make_event(
            "sleep", Q - timedelta(hours=4), end=Q - timedelta(hours=12), duration_hours=8, quality="excellent",
        )
        with pytest.raises(MalformedEventError, match="end_timestamp"):
            parse_event(reversed_night)

    def test_wake_marker_restarts_pressure(self, make_event, config):
        events = _parsed([make_event("wake", Q - timedelta(hours=1), event_id="alarm")])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 * (1 - math.exp(-1 / 16)))
        assert [c.event_id for c in result.contributions] == ["alarm"]
        assert result.contributions[0].impact == pytest.approx(-0.85)

    def test_wake_marker_after_logged_sleep(self, make_event, config):
        events = _parsed([
            make_event("sleep", Q - timedelta(hours=14), end=Q - timedelta(hours=8),
                       duration_hours=6, quality="poor"),
            make_event("wake", Q - timedelta(hours=2)),
        ])
        result = sleep_pressure(events, Q, config)
        assert result.score == pytest.approx(0.85 * (1 - math.exp(-2 / 16)))
        assert result.score == pytest.approx(0.85 + sum(c.decayed_impact for c in result.contributions))

    def test_wake_marker_at_sleep_end_ignored(self, make_event, config):
        night = make_event("sleep", Q - timedelta(hours=8), end=Q, duration_hours=8, quality="excellent")
        with_marker = _parsed([night, make_event("wake", Q)])
        assert sleep_pressure(with_marker, Q, config).score == pytest.approx(
            sleep_pressure(_parsed([night]), Q, config).score
        )


# ── Process C ────────────────────────────────────────────────


class TestCircadianPhase:
    def test_empty_history_drifts_late(self, config):
        result = circadian_phase([], Q, config, adenosine=0.3)
        assert result.score == pytest.approx(0.53)
        assert result.raw == pytest.approx(0.3)
        assert any(n.startswith("natural_drift") for n in result.notes)

    def test_morning_light_suppresses_drift(self, make_event, config):
        events = _parsed([
            make_event("light", Q - timedelta(hours=1), intensity_lux=500, duration_minutes=20),
        ])
        result = circadian_phase(events, Q, config, adenosine=0.3)
        assert not any(n.startswith("natural_drift") for n in result.notes)
        assert result.raw == pytest.approx(-0.3 * 2 ** (-1 / 72))

    def test_light_gated_by_sleep_pressure(self, make_event, config):
        query = datetime(2026, 1, 10, 20, 0, tzinfo=timezone.utc)
        events = _parsed([
            make_event("light", query - timedelta(hours=1), intensity_lux=3000, duration_minutes=120),
        ])
        rested = circadian_phase(events, query, config, adenosine=0.2)
        tired = circadian_phase(events, query, config, adenosine=0.8)
        ratio = tired.contributions[0].decayed_impact / rested.contributions[0].decayed_impact
        assert ratio == pytest.approx(0.5)
        assert any(n.startswith("light_gating") for n in tired.notes)

    def test_score_bounded(self, make_event, config):
        query = datetime(2026, 1, 10, 22, 0, tzinfo=timezone.utc)
        events = _parsed([
            make_event("light", query - timedelta(days=d, hours=2), intensity_lux=5000, duration_minutes=120)
            for d in range(6)
        ])
        result = circadian_phase(events, query, config, adenosine=0.2)
        assert result.score == pytest.approx(0.7)
        assert result.raw > 2.0

    @pytest.mark.parametrize("adenosine,expected", [(0.2, 1.0), (0.5, 0.75), (0.7, 0.75), (0.71, 0.5)])
    def test_light_sensitivity(self, adenosine, expected):
        assert light_sensitivity(adenosine) == expected


# ── Sleep drive ──────────────────────────────────────────────


class TestSleepDrive:
    def test_circadian_pressure_peaks_at_three(self):
        assert circadian_pressure(3.0, 0.0) == pytest.approx(0.7)
        assert circadian_pressure(15.0, 0.0) == pytest.approx(0.3)

    def test_phase_delay_shifts_peak(self):
        assert circadian_pressure(5.0, 2.0) == pytest.approx(0.7)

    def test_combination(self, config):
        query = datetime(2026, 1, 10, 3, 0, tzinfo=timezone.utc)
        drive = sleep_drive(0.5, 0.5, query, config)
        assert drive.homeostatic == pytest.approx(0.5)
        assert drive.circadian == pytest.approx(0.7)
        assert drive.combined == pytest.approx(0.6 * 0.5 + 0.4 * 0.7)
        assert drive.status == SleepDriveStatus.MODERATE

    def test_status_bands(self, config):
        query = datetime(2026, 1, 10, 3, 0, tzinfo=timezone.utc)
        assert sleep_drive(0.9, 0.5, query, config).status == SleepDriveStatus.VERY_HIGH
        afternoon = datetime(2026, 1, 10, 15, 0, tzinfo=timezone.utc)
        assert sleep_drive(0.1, 0.5, afternoon, config).status == SleepDriveStatus.LOW


# ── Cortisol rhythm ──────────────────────────────────────────


class TestCortisolRhythm:
    def test_diurnal_curve_landmarks(self):
        assert cortisol_diurnal_multiplier(1.0) == pytest.approx(0.25)
        assert cortisol_diurnal_multiplier(7.5) == pytest.approx(1.0)
        assert cortisol_diurnal_multiplier(12.0) == pytest.approx(0.7)
        assert cortisol_diurnal_multiplier(18.0) == pytest.approx(0.45)

    @pytest.mark.parametrize(
        "minutes,expected",
        [(None, 1.0), (0.0, 1.0), (35.0, 1.75), (60.0, 1.4), (120.0, 1.0), (180.0, 1.0)],
    )
    def test_awakening_boost(self, minutes, expected):
        assert awakening_boost(minutes) == pytest.approx(expected)

    def test_latest_wake(self, make_event):
        events = _parsed([
            make_event("wake", Q - timedelta(hours=3)),
            make_event("sleep", Q - timedelta(hours=8), end=Q - timedelta(minutes=40),
                       duration_hours=7, quality="good"),
        ])
        assert latest_wake(events, Q) == Q - timedelta(minutes=40)
        assert latest_wake(events[:1], Q) is None

    def test_rhythm_score(self):
        assert cortisol_rhythm_score(0.0, 7.5, None) == pytest.approx(0.65)
        assert cortisol_rhythm_score(0.1, 7.5, 35.0) == pytest.approx(0.65 + 0.1 * 1.75)
        assert cortisol_rhythm_score(-0.5, 1.0, None) == pytest.approx(0.15)
        assert cortisol_rhythm_score(5.0, 7.5, 35.0) == 1.0
