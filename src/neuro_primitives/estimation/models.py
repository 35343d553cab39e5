"""Pydantic models for estimation output.

These models represent:
- Per-primitive estimates with confidence and explainable contributors
- Detected sequence patterns and their adjustment deltas
- Cross-primitive modifier and physiological constraint applications
- Sleep drive breakdown and functional-state classification
- Skipped events and out-of-range value flags
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from neuro_primitives.models import EventType, HealthMetric, PrimitiveKind


# ── Enums ─────────────────────────────────────────────────────


class PatternKind(str, Enum):
    """Multi-event sequences recognised over the full history."""

    CHRONIC_SLEEP_DEPRIVATION = "chronic_sleep_deprivation"
    CAFFEINE_WITHDRAWAL = "caffeine_withdrawal"
    LATE_CAFFEINE_SLEEP_DISRUPTION = "late_caffeine_sleep_disruption"
    SLEEP_EXERCISE_SYNERGY = "sleep_exercise_synergy"


class ConstraintKind(str, Enum):
    FLOOR = "floor"
    CEILING = "ceiling"
    OVERRIDE = "override"
    CONFIDENCE_PENALTY = "confidence_penalty"


class FunctionalState(str, Enum):
    """Joint dopamine / serotonin balance classification."""

    PEAK_PERFORMANCE = "peak_performance"
    DEPLETED = "depleted"
    DRIVEN_BUT_ANXIOUS = "driven_but_anxious"
    CALM_BUT_UNMOTIVATED = "calm_but_unmotivated"
    BALANCED_DA_LEANING = "balanced_da_leaning"
    BALANCED_5HT_LEANING = "balanced_5ht_leaning"
    WELL_BALANCED = "well_balanced"


class SleepDriveStatus(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


# ── Contributions & estimates ────────────────────────────────


class Contribution(BaseModel):
    """One event's share of a primitive's score at query time."""

    event_id: str
    event_type: EventType
    hours_ago: float
    impact: float = Field(description="Raw impact before decay.")
    decayed_impact: float = Field(description="Impact after decay / weighting.")


class PrimitiveEstimate(BaseModel):
    """Final estimate for a single primitive."""

    kind: PrimitiveKind
    score: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    level: str = ""
    base_score: float = Field(
        ge=0.0, le=1.0, description="Aggregated score before any adjustment."
    )
    acute_score: float | None = None
    chronic_score: float | None = None
    effective_score: float | None = Field(
        None, description="Score after reciprocal inhibition (dopamine / serotonin)."
    )
    contributions: list[Contribution] = Field(default_factory=list)
    adjustments: list[str] = Field(default_factory=list)


# ── Adjustments ──────────────────────────────────────────────


class SequenceAdjustment(BaseModel):
    """A detected pattern and the deltas it adds to primitive scores."""

    pattern: PatternKind
    intensity: float = Field(ge=0.0, le=1.0)
    deltas: dict[PrimitiveKind, float] = Field(default_factory=dict)
    event_ids: list[str] = Field(default_factory=list)
    rationale: str


class ModifierApplication(BaseModel):
    """A cross-primitive multiplicative correction that fired."""

    rule: str
    factor: float
    targets: list[PrimitiveKind]
    rationale: str


class PhysiologicalConstraint(BaseModel):
    """A constraint derived from one recent health measurement."""

    target: PrimitiveKind
    kind: ConstraintKind
    value: float
    metric: HealthMetric
    measured_value: float
    source_event_id: str
    rationale: str


class AppliedConstraint(BaseModel):
    """A constraint that actually changed a score or a confidence."""

    constraint: PhysiologicalConstraint
    original_score: float
    adjusted_score: float
    confidence_before: float
    confidence_after: float


# ── Derived states ───────────────────────────────────────────


class SleepDrive(BaseModel):
    homeostatic: float = Field(ge=0.0, le=1.0)
    circadian: float = Field(ge=0.0, le=1.0)
    combined: float = Field(ge=0.0, le=1.0)
    status: SleepDriveStatus


class FunctionalStateResult(BaseModel):
    """Classification of the effective dopamine / serotonin balance."""

    state: FunctionalState
    label: str
    description: str
    recommendations: list[str] = Field(default_factory=list)
    dopamine: float
    serotonin: float
    ratio: float = Field(description="dopamine / serotonin; inf when guarded.")


# ── Data quality ─────────────────────────────────────────────


class SkippedEvent(BaseModel):
    """An event excluded from estimation because it was malformed."""

    event_id: str
    event_type: EventType
    reason: str


class ValueFlag(BaseModel):
    """A property value that was clamped into its physically valid range."""

    event_id: str
    field: str
    original: float
    adjusted: float
    reason: str


# ── Result ───────────────────────────────────────────────────


class EstimationResult(BaseModel):
    """Complete output of one ``estimate(events, query_time)`` call."""

    user_id: str | None = None
    timestamp: datetime
    primitives: dict[PrimitiveKind, PrimitiveEstimate]
    sleep_drive: SleepDrive
    functional_state: FunctionalStateResult
    patterns: list[SequenceAdjustment] = Field(default_factory=list)
    modifiers: list[ModifierApplication] = Field(default_factory=list)
    constraints: list[AppliedConstraint] = Field(default_factory=list)
    skipped_events: list[SkippedEvent] = Field(default_factory=list)
    value_flags: list[ValueFlag] = Field(default_factory=list)
    model_version: str = "rule_v1"

    def score(self, kind: PrimitiveKind) -> float:
        """Shortcut for ``primitives[kind].score``."""
        return self.primitives[kind].score
