"""Sequence pattern detection over the full event history.

Unlike windowed aggregation, pattern detection looks at how events relate to
each other in time.  It is a read-only pass over every well-formed event up
to the query time; each pattern is evaluated independently and several may
fire together, their deltas adding up.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

import structlog

from neuro_primitives.estimation.models import PatternKind, SequenceAdjustment
from neuro_primitives.estimation.properties import SleepQuality
from neuro_primitives.models import EventType, PrimitiveKind

if TYPE_CHECKING:
    from neuro_primitives.estimation.config import PatternConfig
    from neuro_primitives.estimation.properties import ParsedEvent

logger = structlog.get_logger(__name__)


def _hours_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 3600.0


def _of_type(events: Sequence[ParsedEvent], event_type: EventType) -> list[ParsedEvent]:
    return [e for e in events if e.event_type == event_type]


# ── Individual patterns ──────────────────────────────────────


def detect_sleep_deprivation(
    events: Sequence[ParsedEvent], query_time: datetime, cfg: PatternConfig
) -> SequenceAdjustment | None:
    """Three or more poor, fair or short sleeps ending within the trailing 72h."""
    poor = [
        e
        for e in _of_type(events, EventType.SLEEP)
        if 0.0 <= _hours_between(query_time, e.end) <= cfg.sleep_deprivation_lookback_hours
        and (e.props.quality in (SleepQuality.POOR, SleepQuality.FAIR) or e.props.duration_hours < cfg.poor_sleep_hours)
    ]
    if len(poor) < cfg.poor_sleep_count:
        return None
    return SequenceAdjustment(
        pattern=PatternKind.CHRONIC_SLEEP_DEPRIVATION,
        intensity=1.0,
        deltas={PrimitiveKind.DOPAMINE: -0.25, PrimitiveKind.SEROTONIN: -0.20},
        event_ids=[e.event_id for e in poor],
        rationale=(
            f"{len(poor)} poor, fair or short (<{cfg.poor_sleep_hours:g}h) sleeps in the last "
            f"{cfg.sleep_deprivation_lookback_hours:g}h deplete dopamine and serotonin"
        ),
    )


def withdrawal_intensity(gap_hours: float, cfg: PatternConfig) -> float:
    """Withdrawal intensity: 1.0 at 48h into the gap, decaying either side."""
    return math.exp(-cfg.withdrawal_decay_rate * abs(gap_hours - cfg.withdrawal_peak_hours))


def detect_caffeine_withdrawal(
    events: Sequence[ParsedEvent], query_time: datetime, cfg: PatternConfig
) -> SequenceAdjustment | None:
    """Habitual use (≥7 doses, ≥100 mg/day over a week) followed by a 24–168h gap."""
    caffeine = [e for e in _of_type(events, EventType.CAFFEINE) if e.start <= query_time]
    if not caffeine:
        return None
    last = max(caffeine, key=lambda e: e.start)
    gap = _hours_between(query_time, last.start)
    if not cfg.withdrawal_gap_min_hours <= gap <= cfg.withdrawal_gap_max_hours:
        return None

    week = [e for e in caffeine if 0.0 <= _hours_between(last.start, e.start) <= 168.0]
    daily_mg = sum(e.props.dose_mg for e in week) / 7.0
    if len(week) < cfg.withdrawal_min_events or daily_mg < cfg.withdrawal_min_daily_mg:
        return None

    intensity = withdrawal_intensity(gap, cfg)
    return SequenceAdjustment(
        pattern=PatternKind.CAFFEINE_WITHDRAWAL,
        intensity=intensity,
        deltas={
            PrimitiveKind.DOPAMINE: -0.20 * intensity,
            PrimitiveKind.SEROTONIN: -0.15 * intensity,
            PrimitiveKind.NOREPINEPHRINE: -0.20 * intensity,
            PrimitiveKind.CORTISOL: 0.15 * intensity,
        },
        event_ids=[e.event_id for e in week],
        rationale=(
            f"{len(week)} caffeine doses averaging {daily_mg:.0f} mg/day, then no caffeine "
            f"for {gap:.1f}h (intensity {intensity:.2f})"
        ),
    )


def detect_late_caffeine(
    events: Sequence[ParsedEvent], query_time: datetime, cfg: PatternConfig
) -> SequenceAdjustment | None:
    """Caffeine within 9h before a poor or fair sleep that ended in the last 24h."""
    disrupted = [
        e
        for e in _of_type(events, EventType.SLEEP)
        if e.props.quality in (SleepQuality.POOR, SleepQuality.FAIR)
        and 0.0 <= _hours_between(query_time, e.end) <= cfg.late_caffeine_lookback_hours
    ]
    caffeine = _of_type(events, EventType.CAFFEINE)

    best: tuple[float, ParsedEvent, ParsedEvent, float] | None = None
    for sleep in disrupted:
        for dose in caffeine:
            hours_before = _hours_between(sleep.start, dose.start)
            if not 0.0 <= hours_before <= cfg.late_caffeine_hours:
                continue
            strength = min(
                1.0,
                (dose.props.dose_mg / 100.0) * (1.0 - hours_before / cfg.late_caffeine_hours),
            )
            if best is None or strength > best[0]:
                best = (strength, sleep, dose, hours_before)

    if best is None:
        return None
    strength, sleep, dose, hours_before = best
    return SequenceAdjustment(
        pattern=PatternKind.LATE_CAFFEINE_SLEEP_DISRUPTION,
        intensity=strength,
        deltas={PrimitiveKind.CORTISOL: 0.10 + 0.10 * strength},
        event_ids=[dose.event_id, sleep.event_id],
        rationale=(
            f"{dose.props.dose_mg:.0f} mg caffeine {hours_before:.1f}h before a "
            f"{sleep.props.quality.value} sleep"
        ),
    )


def detect_sleep_exercise_synergy(
    events: Sequence[ParsedEvent], query_time: datetime, cfg: PatternConfig
) -> SequenceAdjustment | None:
    """A full night's sleep followed by exercise within 6h of waking."""
    sleeps = [
        e for e in _of_type(events, EventType.SLEEP)
        if e.props.duration_hours >= cfg.synergy_min_sleep_hours and e.end <= query_time
    ]
    workouts = [
        e for e in _of_type(events, EventType.EXERCISE)
        if 0.0 <= _hours_between(query_time, e.start) <= cfg.synergy_lookback_hours
    ]
    for workout in sorted(workouts, key=lambda e: e.start, reverse=True):
        for sleep in sleeps:
            if 0.0 <= _hours_between(workout.start, sleep.end) <= cfg.synergy_max_gap_hours:
                return SequenceAdjustment(
                    pattern=PatternKind.SLEEP_EXERCISE_SYNERGY,
                    intensity=1.0,
                    deltas={PrimitiveKind.DOPAMINE: 0.15},
                    event_ids=[sleep.event_id, workout.event_id],
                    rationale=(
                        f"{sleep.props.duration_hours:.1f}h sleep followed by exercise "
                        f"{_hours_between(workout.start, sleep.end):.1f}h after waking"
                    ),
                )
    return None


_DETECTORS = (
    detect_sleep_deprivation,
    detect_caffeine_withdrawal,
    detect_late_caffeine,
    detect_sleep_exercise_synergy,
)


def detect_patterns(
    events: Sequence[ParsedEvent], query_time: datetime, cfg: PatternConfig
) -> list[SequenceAdjustment]:
    """Run every detector; return the patterns that fired, in a fixed order."""
    found = []
    for detector in _DETECTORS:
        adjustment = detector(events, query_time, cfg)
        if adjustment is not None:
            logger.debug(
                "patterns.detected",
                pattern=adjustment.pattern.value,
                intensity=round(adjustment.intensity, 3),
            )
            found.append(adjustment)
    return found


def combined_deltas(adjustments: Sequence[SequenceAdjustment]) -> dict[PrimitiveKind, float]:
    """Sum the deltas of co-triggering patterns per primitive."""
    totals: dict[PrimitiveKind, float] = {}
    for adj in adjustments:
        for kind, delta in adj.deltas.items():
            totals[kind] = totals.get(kind, 0.0) + delta
    return totals
