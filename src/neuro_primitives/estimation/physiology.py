"""Physiological validation layer.

Recent health measurements are ground truth that the behavioural model must
respect.  The most recent measurement of each metric inside its recency
window is turned into constraints:

====================  =================  =========================================
Metric                Condition          Constraint
====================  =================  =========================================
HRV                   < 30 ms            cortisol floor 0.6, adenosine penalty 0.7
HRV                   > 70 ms            cortisol ceiling 0.4
Heart rate            > 80 bpm           norepinephrine floor 0.5, adenosine penalty 0.6
Heart rate            < 55 bpm           norepinephrine ceiling 0.4
Blood glucose         < 70 mg/dL         cortisol floor 0.6
Blood glucose         outside 100–140    glucose override (70/30 measured/predicted)
Blood oxygen (sleep)  < 92 %             dopamine penalty 0.5
Respiratory rate      > 18 /min          cortisol floor 0.5, serotonin penalty 0.7
Body temperature      < 36.5 °C          circadian penalty 0.8
Steps (day)           < 2000             dopamine penalty 0.6
====================  =================  =========================================

Constraints are applied per primitive in the order override → ceiling →
floor, so a floor has the last word.  Penalties only scale confidence.  A
metric with no recent measurement yields no constraint at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from neuro_primitives.estimation.decay import clamp
from neuro_primitives.estimation.models import (
    AppliedConstraint,
    ConstraintKind,
    PhysiologicalConstraint,
)
from neuro_primitives.estimation.properties import ParsedEvent
from neuro_primitives.models import EventType, HealthMetric, PrimitiveKind

# ── Constants ─────────────────────────────────────────────────

RECENCY_HOURS: dict[HealthMetric, float] = {
    HealthMetric.HEART_RATE: 1.0,
    HealthMetric.HRV: 2.0,
    HealthMetric.BLOOD_GLUCOSE: 2.0,
    HealthMetric.RESPIRATORY_RATE: 1.0,
    HealthMetric.BODY_TEMPERATURE: 4.0,
    HealthMetric.BLOOD_OXYGEN: 12.0,
    HealthMetric.STEPS: 24.0,
}

OVERRIDE_MEASURED_WEIGHT = 0.7
BINDING_CONFIDENCE_FACTOR = 0.8
OVERRIDE_CONFIDENCE_BONUS = 0.3

_APPLICATION_ORDER = {
    ConstraintKind.OVERRIDE: 0,
    ConstraintKind.CEILING: 1,
    ConstraintKind.FLOOR: 2,
    ConstraintKind.CONFIDENCE_PENALTY: 3,
}


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    scores: dict[PrimitiveKind, float]
    confidences: dict[PrimitiveKind, float]
    applied: tuple[AppliedConstraint, ...]


# ── Measurement selection ────────────────────────────────────


def _during_sleep(measurement: ParsedEvent, episodes: Sequence[ParsedEvent]) -> bool:
    if measurement.props.during_sleep:
        return True
    t = measurement.start
    return any(ep.start <= t <= ep.end for ep in episodes)


def latest_measurements(
    events: Sequence[ParsedEvent], query_time: datetime
) -> dict[HealthMetric, ParsedEvent]:
    """Most recent in-window measurement per metric."""
    episodes = [e for e in events if e.event_type in (EventType.SLEEP, EventType.NAP)]
    latest: dict[HealthMetric, ParsedEvent] = {}
    for parsed in events:
        if parsed.event_type != EventType.HEALTH:
            continue
        metric = parsed.event.metric
        age = query_time - parsed.start
        if not timedelta(0) <= age <= timedelta(hours=RECENCY_HOURS[metric]):
            continue
        if metric == HealthMetric.BLOOD_OXYGEN and not _during_sleep(parsed, episodes):
            continue
        current = latest.get(metric)
        if current is None or parsed.start > current.start:
            latest[metric] = parsed
    return latest


# ── Constraint derivation ────────────────────────────────────


def glucose_score(mg_dl: float) -> float | None:
    """Map a blood glucose reading to the glucose primitive scale.

    Readings between 100 and 140 mg/dL carry no override.
    """
    if mg_dl < 70.0:
        return 0.2
    if mg_dl <= 100.0:
        return 0.5 + clamp((mg_dl - 85.0) / 30.0, -0.3, 0.3)
    if mg_dl > 140.0:
        return 0.8
    return None


def _constraint(
    m: ParsedEvent, target: PrimitiveKind, kind: ConstraintKind, value: float, rationale: str
) -> PhysiologicalConstraint:
    return PhysiologicalConstraint(
        target=target,
        kind=kind,
        value=value,
        metric=m.event.metric,
        measured_value=m.props.value,
        source_event_id=m.event_id,
        rationale=rationale,
    )


def derive_constraints(measurements: dict[HealthMetric, ParsedEvent]) -> list[PhysiologicalConstraint]:
    """Translate the selected measurements into constraints."""
    out: list[PhysiologicalConstraint] = []
    floor, ceiling = ConstraintKind.FLOOR, ConstraintKind.CEILING
    override, penalty = ConstraintKind.OVERRIDE, ConstraintKind.CONFIDENCE_PENALTY

    if (m := measurements.get(HealthMetric.HRV)) is not None:
        v = m.props.value
        if v < 30.0:
            out.append(_constraint(m, PrimitiveKind.CORTISOL, floor, 0.6, f"HRV {v:.0f} ms < 30 indicates sympathetic stress"))
            out.append(_constraint(m, PrimitiveKind.ADENOSINE, penalty, 0.7, f"HRV {v:.0f} ms < 30 makes sleep-pressure estimate less reliable"))
        elif v > 70.0:
            out.append(_constraint(m, PrimitiveKind.CORTISOL, ceiling, 0.4, f"HRV {v:.0f} ms > 70 indicates parasympathetic recovery"))

    if (m := measurements.get(HealthMetric.HEART_RATE)) is not None:
        v = m.props.value
        if v > 80.0:
            out.append(_constraint(m, PrimitiveKind.NOREPINEPHRINE, floor, 0.5, f"resting HR {v:.0f} bpm > 80 indicates sympathetic arousal"))
            out.append(_constraint(m, PrimitiveKind.ADENOSINE, penalty, 0.6, f"resting HR {v:.0f} bpm > 80 masks sleepiness"))
        elif v < 55.0:
            out.append(_constraint(m, PrimitiveKind.NOREPINEPHRINE, ceiling, 0.4, f"resting HR {v:.0f} bpm < 55 indicates low arousal"))

    if (m := measurements.get(HealthMetric.BLOOD_GLUCOSE)) is not None:
        v = m.props.value
        if v < 70.0:
            out.append(_constraint(m, PrimitiveKind.CORTISOL, floor, 0.6, f"glucose {v:.0f} mg/dL < 70 triggers counter-regulatory cortisol"))
        if (measured := glucose_score(v)) is not None:
            out.append(_constraint(m, PrimitiveKind.GLUCOSE, override, measured, f"measured glucose {v:.0f} mg/dL"))

    if (m := measurements.get(HealthMetric.BLOOD_OXYGEN)) is not None:
        v = m.props.value
        if v < 92.0:
            out.append(_constraint(m, PrimitiveKind.DOPAMINE, penalty, 0.5, f"SpO2 {v:.0f}% < 92 during sleep suggests disrupted sleep"))

    if (m := measurements.get(HealthMetric.RESPIRATORY_RATE)) is not None:
        v = m.props.value
        if v > 18.0:
            out.append(_constraint(m, PrimitiveKind.CORTISOL, floor, 0.5, f"respiratory rate {v:.0f}/min > 18 indicates stress"))
            out.append(_constraint(m, PrimitiveKind.SEROTONIN, penalty, 0.7, f"respiratory rate {v:.0f}/min > 18 makes mood estimate less reliable"))

    if (m := measurements.get(HealthMetric.BODY_TEMPERATURE)) is not None:
        v = m.props.value
        if v < 36.5:
            out.append(_constraint(m, PrimitiveKind.CIRCADIAN_PHASE, penalty, 0.8, f"body temperature {v:.1f} °C < 36.5 suggests circadian trough"))

    if (m := measurements.get(HealthMetric.STEPS)) is not None:
        v = m.props.value
        if v < 2000.0:
            out.append(_constraint(m, PrimitiveKind.DOPAMINE, penalty, 0.6, f"{v:.0f} steps < 2000 today"))

    return out


# ── Application ──────────────────────────────────────────────


def apply_constraints(
    constraints: Sequence[PhysiologicalConstraint],
    scores: dict[PrimitiveKind, float],
    confidences: dict[PrimitiveKind, float],
) -> ValidationOutcome:
    """Apply *constraints* and return new score / confidence maps.

    Only constraints that change something are reported.
    """
    scores = dict(scores)
    confidences = dict(confidences)
    applied: list[AppliedConstraint] = []

    for c in sorted(constraints, key=lambda c: _APPLICATION_ORDER[c.kind]):
        score = scores[c.target]
        conf = confidences[c.target]
        new_score, new_conf = score, conf

        if c.kind == ConstraintKind.OVERRIDE:
            new_score = OVERRIDE_MEASURED_WEIGHT * c.value + (1.0 - OVERRIDE_MEASURED_WEIGHT) * score
            new_conf = min(1.0, conf + OVERRIDE_CONFIDENCE_BONUS)
        elif c.kind == ConstraintKind.CEILING:
            if score > c.value:
                new_score = c.value
                new_conf = conf * BINDING_CONFIDENCE_FACTOR
        elif c.kind == ConstraintKind.FLOOR:
            if score < c.value:
                new_score = c.value
                new_conf = conf * BINDING_CONFIDENCE_FACTOR
        else:
            new_conf = conf * c.value

        if new_score == score and new_conf == conf:
            continue
        new_score, new_conf = clamp(new_score), clamp(new_conf)
        scores[c.target] = new_score
        confidences[c.target] = new_conf
        applied.append(
            AppliedConstraint(
                constraint=c,
                original_score=score,
                adjusted_score=new_score,
                confidence_before=conf,
                confidence_after=new_conf,
            )
        )

    return ValidationOutcome(scores=scores, confidences=confidences, applied=tuple(applied))
