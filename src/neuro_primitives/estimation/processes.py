"""Special process models: sleep pressure, circadian phase and cortisol rhythm.

Adenosine and circadian phase are not plain decayed sums:

- **Process S** replays sleep and nap episodes against an exponential
  saturating accumulation of sleep pressure, then subtracts a capped caffeine
  receptor blockade.
- **Process C** accumulates signed phase shifts (hours) from light, screen,
  exercise and sleep timing, with light attenuated under high sleep pressure
  and a natural drift delay when no morning light was seen.

Both feed the two-process **sleep drive**.  Cortisol additionally follows a
diurnal curve with an awakening response on top of its event sum.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable

from neuro_primitives.estimation.decay import (
    clamp,
    decay,
    evidence_confidence,
    in_window,
    sort_contributions,
)
from neuro_primitives.estimation.impacts import (
    A2A_ED50_MG,
    caffeine_plasma,
    impacts_for,
    receptor_occupancy,
)
from neuro_primitives.estimation.models import Contribution, SleepDrive, SleepDriveStatus
from neuro_primitives.models import EventType, PrimitiveKind

if TYPE_CHECKING:
    from neuro_primitives.estimation.config import EngineConfig
    from neuro_primitives.estimation.properties import ParsedEvent

_CAR_LOOKBACK = timedelta(hours=2)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Output of a process model for one primitive."""

    kind: PrimitiveKind
    score: float
    raw: float  # pressure before blockade / phase offset in hours
    contributions: tuple[Contribution, ...]
    evidence: int
    notes: tuple[str, ...] = ()

    @property
    def confidence(self) -> float:
        return evidence_confidence(self.evidence)


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600.0


# ── Process S ────────────────────────────────────────────────


def sleep_pressure(
    events: Iterable[ParsedEvent],
    query_time: datetime,
    config: EngineConfig,
) -> ProcessResult:
    """Homeostatic sleep pressure (adenosine) at *query_time*.

    Pressure starts saturated (unbounded prior wakefulness) and is replayed
    through every sleep / nap episode ending inside the window:

    - awake for Δh: ``A ← S − (S − A)·exp(−Δh/τ)``
    - asleep: ``A ← A·r`` with retention ``r = exp(−(d/7.5)·q·0.85)`` for
      sleep and ``exp(−0.0077·minutes)`` for naps; an episode still in
      progress uses its elapsed duration.
    - a wake marker later than every replayed episode stands for unlogged
      sleep: pressure restarts from zero at the marker.

    Because both steps are affine in the deficit ``S − A``, each episode's
    clearance ``−S·(1 − r)`` is carried forward exactly and reported as that
    episode's contribution.  Caffeine blockade ``min(0.6, 0.5·Σ occupancy)``
    is subtracted last.
    """
    sp = config.sleep_pressure
    window = config.windows[PrimitiveKind.ADENOSINE].window_hours
    saturation = sp.saturation
    tau = sp.time_constant_hours

    episodes: list[tuple[datetime, str, ParsedEvent, datetime, float | None]] = []
    caffeine: list[tuple[ParsedEvent, float]] = []
    for parsed in events:
        if parsed.event_type == EventType.CAFFEINE:
            h = parsed.hours_ago(query_time)
            if in_window(h, window):
                caffeine.append((parsed, h))
            continue
        if parsed.event_type == EventType.WAKE:
            if parsed.start <= query_time and _hours(query_time - parsed.start) <= window:
                episodes.append((parsed.start, parsed.event_id, parsed, parsed.start, None))
            continue
        if parsed.event_type not in (EventType.SLEEP, EventType.NAP):
            continue
        start = parsed.start
        end = min(parsed.end, query_time)
        if start > query_time or _hours(query_time - end) > window:
            continue
        elapsed = _hours(end - start)
        if parsed.event_type == EventType.SLEEP:
            retention = math.exp(
                -(elapsed / sp.sleep_cycle_hours)
                * parsed.props.quality_factor
                * sp.sleep_clearance_scale
            )
        else:
            retention = math.exp(-sp.nap_clearance_per_minute * elapsed * 60.0)
        episodes.append((start, parsed.event_id, parsed, end, retention))

    episodes.sort(key=lambda e: (e[0], e[1]))

    # [parsed, raw clearance, carried-forward value, hours since episode end]
    terms: list[list] = []
    cursor: datetime | None = None
    for start, _, parsed, end, retention in episodes:
        if retention is None and cursor is not None and start <= cursor:
            # Wake marker closing an episode that was already replayed.
            continue
        if cursor is not None:
            relax = math.exp(-max(_hours(start - cursor), 0.0) / tau)
            for term in terms:
                term[2] *= relax
        if retention is None:
            # Unlogged sleep before the marker: pressure restarts from zero.
            clearance = -(saturation + sum(term[2] for term in terms))
        else:
            for term in terms:
                term[2] *= retention
            clearance = -saturation * (1.0 - retention)
        terms.append([parsed, clearance, clearance, _hours(query_time - end)])
        cursor = end if cursor is None else max(cursor, end)

    if cursor is not None:
        relax = math.exp(-max(_hours(query_time - cursor), 0.0) / tau)
        for term in terms:
            term[2] *= relax

    pressure = saturation + sum(term[2] for term in terms)

    occupancies = [
        receptor_occupancy(caffeine_plasma(p.props.dose_mg, h), A2A_ED50_MG)
        for p, h in caffeine
    ]
    total = sp.caffeine_blockade_scale * sum(occupancies)
    blockade = min(sp.caffeine_blockade_cap, total)
    share = blockade / total if total > 0.0 else 0.0

    contributions = [
        Contribution(
            event_id=parsed.event_id,
            event_type=parsed.event_type,
            hours_ago=hours_ago,
            impact=raw,
            decayed_impact=value,
        )
        for parsed, raw, value, hours_ago in terms
    ]
    contributions.extend(
        Contribution(
            event_id=parsed.event_id,
            event_type=parsed.event_type,
            hours_ago=h,
            impact=-sp.caffeine_blockade_scale * occ,
            decayed_impact=-sp.caffeine_blockade_scale * occ * share,
        )
        for (parsed, h), occ in zip(caffeine, occupancies)
    )

    notes: list[str] = []
    if total > sp.caffeine_blockade_cap:
        notes.append(
            f"caffeine_blockade_cap: blockade {total:.2f} capped at {sp.caffeine_blockade_cap:.2f}"
        )

    return ProcessResult(
        kind=PrimitiveKind.ADENOSINE,
        score=clamp(pressure - blockade),
        raw=pressure,
        contributions=sort_contributions(contributions),
        evidence=len(contributions),
        notes=tuple(notes),
    )


# ── Process C ────────────────────────────────────────────────


def light_sensitivity(adenosine: float) -> float:
    """Photic sensitivity under sleep pressure."""
    if adenosine > 0.7:
        return 0.5
    if adenosine >= 0.5:
        return 0.75
    return 1.0


def circadian_phase(
    events: Iterable[ParsedEvent],
    query_time: datetime,
    config: EngineConfig,
    adenosine: float,
) -> ProcessResult:
    """Circadian phase score from accumulated phase shifts.

    ``raw`` is the signed offset in hours (positive = delayed) after adenosine
    gating of light and the natural drift term; the score is
    ``clamp(0.5 + offset / 10, 0.3, 0.7)``.
    """
    cc = config.circadian
    wc = config.windows[PrimitiveKind.CIRCADIAN_PHASE]
    gate = light_sensitivity(adenosine)

    offset = 0.0
    morning_light = False
    contributions: list[Contribution] = []
    for parsed in events:
        h = parsed.hours_ago(query_time)
        if not in_window(h, wc.window_hours):
            continue
        is_light = parsed.event_type == EventType.LIGHT
        if (
            is_light
            and 6.0 <= parsed.hour_of_day < 12.0
            and parsed.props.intensity_lux >= cc.morning_light_min_lux
        ):
            morning_light = True
        shift = impacts_for(parsed, h, config.impact_functions).get(PrimitiveKind.CIRCADIAN_PHASE, 0.0)
        if shift == 0.0:
            continue
        value = shift * decay(h, wc.half_life_hours) * (gate if is_light else 1.0)
        offset += value
        contributions.append(
            Contribution(
                event_id=parsed.event_id,
                event_type=parsed.event_type,
                hours_ago=h,
                impact=shift,
                decayed_impact=value,
            )
        )

    notes: list[str] = []
    if gate < 1.0:
        notes.append(f"light_gating: adenosine {adenosine:.2f} limits photic sensitivity to {gate:.0%}")
    if not morning_light:
        offset += cc.natural_drift_hours
        notes.append(f"natural_drift: no morning light in window, +{cc.natural_drift_hours:g}h delay")

    return ProcessResult(
        kind=PrimitiveKind.CIRCADIAN_PHASE,
        score=clamp(0.5 + offset / cc.hours_per_unit, cc.score_min, cc.score_max),
        raw=offset,
        contributions=sort_contributions(contributions),
        evidence=len(contributions),
        notes=tuple(notes),
    )


# ── Sleep drive ──────────────────────────────────────────────


def circadian_pressure(hour_of_day: float, phase_offset_hours: float) -> float:
    """Sinusoidal circadian sleep pressure, 0.3–0.7, peaking at 03:00 biological time."""
    adjusted = (hour_of_day - phase_offset_hours + 24.0) % 24.0
    raw = math.cos(2.0 * math.pi * (adjusted - 3.0) / 24.0)
    return 0.3 + 0.4 * (raw + 1.0) / 2.0


def sleep_drive_status(drive: float) -> SleepDriveStatus:
    if drive >= 0.75:
        return SleepDriveStatus.VERY_HIGH
    if drive >= 0.6:
        return SleepDriveStatus.HIGH
    if drive >= 0.4:
        return SleepDriveStatus.MODERATE
    return SleepDriveStatus.LOW


def sleep_drive(
    adenosine: float,
    phase_score: float,
    query_time: datetime,
    config: EngineConfig,
) -> SleepDrive:
    cc = config.circadian
    hour = query_time.hour + query_time.minute / 60.0
    component = circadian_pressure(hour, (phase_score - 0.5) * cc.hours_per_unit)
    combined = clamp(cc.homeostatic_weight * adenosine + (1.0 - cc.homeostatic_weight) * component)
    return SleepDrive(
        homeostatic=clamp(adenosine),
        circadian=clamp(component),
        combined=combined,
        status=sleep_drive_status(combined),
    )


# ── Cortisol rhythm ──────────────────────────────────────────


def cortisol_diurnal_multiplier(hour: float) -> float:
    """Diurnal cortisol multiplier: 0.25 nadir around midnight, 1.0 at 07:30."""
    if hour < 2.0:
        return 0.25
    if hour < 6.0:
        return 0.25 + 0.35 * (hour - 2.0) / 4.0
    if hour < 9.0:
        progress = (hour - 6.0) / 3.0
        if progress < 0.5:
            return 0.6 + 0.8 * progress
        return 1.0 - 0.2 * (progress - 0.5)
    if hour < 12.0:
        return 0.9 - 0.2 * (hour - 9.0) / 3.0
    if hour < 18.0:
        return 0.7 - 0.25 * (hour - 12.0) / 6.0
    if hour < 22.0:
        return 0.45 - 0.15 * (hour - 18.0) / 4.0
    return 0.3 - 0.05 * (hour - 22.0) / 2.0


def awakening_boost(minutes_since_wake: float | None) -> float:
    """Cortisol awakening response multiplier (1.0–1.75, peak 35 min after waking)."""
    if minutes_since_wake is None or minutes_since_wake < 0.0 or minutes_since_wake > 120.0:
        return 1.0
    if minutes_since_wake <= 35.0:
        return 1.0 + 0.75 * minutes_since_wake / 35.0
    if minutes_since_wake <= 60.0:
        return 1.75 - 0.35 * (minutes_since_wake - 35.0) / 25.0
    return 1.4 - 0.4 * (minutes_since_wake - 60.0) / 60.0


def latest_wake(events: Iterable[ParsedEvent], query_time: datetime) -> datetime | None:
    """Most recent wake transition (wake marker or sleep end) within 2h."""
    latest: datetime | None = None
    for parsed in events:
        if parsed.event_type == EventType.WAKE:
            t = parsed.start
        elif parsed.event_type == EventType.SLEEP:
            t = parsed.end
        else:
            continue
        if query_time - _CAR_LOOKBACK <= t <= query_time and (latest is None or t > latest):
            latest = t
    return latest


def cortisol_rhythm_score(event_sum: float, hour: float, minutes_since_wake: float | None) -> float:
    """Cortisol score shaped by the diurnal curve and awakening response.

    Positive event load is amplified by the awakening response and by
    time-of-day sensitivity; relaxation can lower the curve by at most 0.15.
    """
    m = cortisol_diurnal_multiplier(hour)
    healthy = 0.15 + 0.5 * m
    load = max(event_sum, 0.0) * awakening_boost(minutes_since_wake) * (0.5 + 0.5 * m)
    relief = max(min(event_sum, 0.0), -0.15)
    return clamp(healthy + load + relief, 0.15, 1.0)
