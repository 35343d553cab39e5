"""Type-specific event property models and parsing.

Every activity type has a small pydantic model describing the properties its
impact formulas need.  Parsing follows two rules:

- A required property that is missing, has the wrong type, carries an
  unknown enum label, or is negative makes the event **malformed**: it raises
  :class:`MalformedEventError` and the engine skips the event.
- A value above a physically plausible maximum is **clamped** to that maximum
  and recorded as a :class:`ValueFlag`; the event still counts.

Durations may be omitted when the event carries an ``end_timestamp``; they
are then derived from the interval.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator

from neuro_primitives.estimation.errors import MalformedEventError
from neuro_primitives.estimation.models import ValueFlag
from neuro_primitives.models import Event, EventType

# ── Enumerated property values ───────────────────────────────


class SleepQuality(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class ExerciseType(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    HIIT = "hiit"
    YOGA = "yoga"
    WALKING = "walking"
    SPORTS = "sports"
    OTHER = "other"


class ExerciseIntensity(str, Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    VIGOROUS = "vigorous"
    HIGH_INTENSITY = "high_intensity"


class GlycemicIndex(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InteractionType(str, Enum):
    RECIPROCAL = "reciprocal"
    UNILATERAL = "unilateral"
    PASSIVE = "passive"


class SocialQuality(str, Enum):
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"


class ScreenContent(str, Enum):
    SOCIAL_MEDIA = "social_media"
    VIDEO = "video"
    GAMING = "gaming"
    WORK = "work"
    READING = "reading"


class BlueLight(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SLEEP_QUALITY_FACTOR = {
    SleepQuality.POOR: 0.4,
    SleepQuality.FAIR: 0.6,
    SleepQuality.GOOD: 0.8,
    SleepQuality.EXCELLENT: 1.0,
}

EXERCISE_INTENSITY_PERCENT = {
    ExerciseIntensity.LIGHT: 40.0,
    ExerciseIntensity.MODERATE: 65.0,
    ExerciseIntensity.VIGOROUS: 75.0,
    ExerciseIntensity.HIGH_INTENSITY: 85.0,
}

STRESS_SEVERITY = {
    "mild": 0.3,
    "moderate": 0.6,
    "high": 1.0,
    "severe": 1.3,
}

_DEFAULT_SLEEP_EFFICIENCY = 0.85


# ── Clamping helper ──────────────────────────────────────────


def _cap(value: float, maximum: float, info: ValidationInfo) -> float:
    """Clamp *value* to *maximum*, recording a flag in the validation context."""
    if value <= maximum:
        return value
    flags = (info.context or {}).get("flags")
    if flags is not None:
        flags.append((info.field_name, value, maximum, f"above plausible maximum {maximum:g}"))
    return maximum


# ── Property models ──────────────────────────────────────────


class _Properties(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class SleepProperties(_Properties):
    duration_hours: float = Field(ge=0.0)
    quality: SleepQuality
    efficiency: float = Field(_DEFAULT_SLEEP_EFFICIENCY, ge=0.0)

    @field_validator("duration_hours")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 24.0, info)

    @field_validator("efficiency")
    @classmethod
    def _normalise_efficiency(cls, v: float, info: ValidationInfo) -> float:
        if v <= 1.0:
            return v
        if v <= 100.0:
            flags = (info.context or {}).get("flags")
            if flags is not None:
                flags.append(("efficiency", v, v / 100.0, "percentage converted to fraction"))
            return v / 100.0
        return _cap(v, 1.0, info)

    @property
    def quality_factor(self) -> float:
        return SLEEP_QUALITY_FACTOR[self.quality]


class CaffeineProperties(_Properties):
    dose_mg: float = Field(ge=0.0)

    @field_validator("dose_mg")
    @classmethod
    def _cap_dose(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 1000.0, info)


class ExerciseProperties(_Properties):
    type: ExerciseType
    duration_minutes: float = Field(ge=0.0)
    intensity: ExerciseIntensity | None = None
    vo2max_percentage: float | None = Field(None, ge=0.0)

    @field_validator("duration_minutes")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 480.0, info)

    @field_validator("vo2max_percentage")
    @classmethod
    def _cap_vo2max(cls, v: float | None, info: ValidationInfo) -> float | None:
        return None if v is None else _cap(v, 100.0, info)

    @model_validator(mode="after")
    def _require_intensity(self) -> ExerciseProperties:
        if self.intensity is None and self.vo2max_percentage is None:
            raise ValueError("either intensity or vo2max_percentage is required")
        return self

    @property
    def intensity_percent(self) -> float:
        """Effort as %VO2max; an explicit percentage wins over the label."""
        if self.vo2max_percentage is not None:
            return self.vo2max_percentage
        return EXERCISE_INTENSITY_PERCENT[self.intensity]


class MealProperties(_Properties):
    protein_percentage: float = Field(ge=0.0)
    carb_percentage: float = Field(ge=0.0)
    fat_percentage: float = Field(0.0, ge=0.0)
    glycemic_index: GlycemicIndex
    meal_type: str | None = None

    @field_validator("protein_percentage", "carb_percentage", "fat_percentage")
    @classmethod
    def _cap_percentage(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 100.0, info)


class LightProperties(_Properties):
    intensity_lux: float = Field(ge=0.0)
    duration_minutes: float = Field(ge=0.0)

    @field_validator("intensity_lux")
    @classmethod
    def _cap_lux(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 100_000.0, info)

    @field_validator("duration_minutes")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 720.0, info)


class StressProperties(_Properties):
    severity: float = Field(ge=0.0)
    controllable: bool
    social_evaluative: bool

    @field_validator("severity", mode="before")
    @classmethod
    def _severity_label(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in STRESS_SEVERITY:
            return STRESS_SEVERITY[v.strip().lower()]
        return v

    @field_validator("severity")
    @classmethod
    def _cap_severity(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 1.3, info)


class SocialProperties(_Properties):
    interaction_type: InteractionType
    quality: SocialQuality
    duration_minutes: float = Field(ge=0.0)

    @field_validator("duration_minutes")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 720.0, info)


class ScreenProperties(_Properties):
    duration_minutes: float = Field(ge=0.0)
    content_type: ScreenContent
    blue_light_intensity: BlueLight
    hours_before_sleep: float | None = Field(None, ge=0.0)

    @field_validator("duration_minutes")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 1440.0, info)


class NapProperties(_Properties):
    duration_minutes: float = Field(ge=0.0)

    @field_validator("duration_minutes")
    @classmethod
    def _cap_duration(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 240.0, info)


class InterruptionProperties(_Properties):
    frequency: float = Field(ge=0.0)
    total_disruption_minutes: float | None = Field(None, ge=0.0)

    @field_validator("frequency")
    @classmethod
    def _cap_frequency(cls, v: float, info: ValidationInfo) -> float:
        return _cap(v, 100.0, info)


class WakeProperties(_Properties):
    pass


class HealthProperties(_Properties):
    value: float = Field(ge=0.0)
    unit: str | None = None
    during_sleep: bool = False


PROPERTY_MODELS: dict[EventType, type[_Properties]] = {
    EventType.SLEEP: SleepProperties,
    EventType.CAFFEINE: CaffeineProperties,
    EventType.EXERCISE: ExerciseProperties,
    EventType.MEAL: MealProperties,
    EventType.LIGHT: LightProperties,
    EventType.STRESS: StressProperties,
    EventType.SOCIAL: SocialProperties,
    EventType.SCREEN: ScreenProperties,
    EventType.NAP: NapProperties,
    EventType.INTERRUPTION: InterruptionProperties,
    EventType.WAKE: WakeProperties,
    EventType.HEALTH: HealthProperties,
}


# ── Parsed events ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ParsedEvent:
    """An event paired with its validated properties."""

    event: Event
    props: Any
    flags: tuple[ValueFlag, ...] = field(default_factory=tuple)

    @property
    def event_id(self) -> str:
        return self.event.event_id

    @property
    def event_type(self) -> EventType:
        return self.event.event_type

    @property
    def start(self) -> datetime:
        return self.event.timestamp

    @property
    def end(self) -> datetime:
        """End of the episode (sleep / nap); the start for point events."""
        if self.event.end_timestamp is not None:
            return self.event.end_timestamp
        if self.event_type == EventType.SLEEP:
            return self.start + timedelta(hours=self.props.duration_hours)
        if self.event_type == EventType.NAP:
            return self.start + timedelta(minutes=self.props.duration_minutes)
        return self.start

    @property
    def effective_time(self) -> datetime:
        """Instant from which elapsed time is measured.

        Sleep and naps act when they end; everything else when it starts.
        """
        if self.event_type in (EventType.SLEEP, EventType.NAP):
            return self.end
        return self.start

    @property
    def hour_of_day(self) -> float:
        return self.event.hour_of_day

    def hours_ago(self, query_time: datetime) -> float:
        return (query_time - self.effective_time).total_seconds() / 3600.0


# Property name filled from ``end_timestamp`` when absent.
_DERIVED_DURATION = {
    EventType.SLEEP: ("duration_hours", 3600.0),
    EventType.NAP: ("duration_minutes", 60.0),
    EventType.LIGHT: ("duration_minutes", 60.0),
    EventType.EXERCISE: ("duration_minutes", 60.0),
    EventType.SOCIAL: ("duration_minutes", 60.0),
    EventType.SCREEN: ("duration_minutes", 60.0),
}


def _with_derived_duration(event: Event) -> dict[str, Any]:
    data = dict(event.properties)
    derived = _DERIVED_DURATION.get(event.event_type)
    if derived is None or event.end_timestamp is None:
        return data
    name, seconds_per_unit = derived
    if data.get(name) is None:
        data[name] = (event.end_timestamp - event.timestamp).total_seconds() / seconds_per_unit
    return data


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "properties"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_event(event: Event) -> ParsedEvent:
    """Validate *event*'s properties for its type.

    Raises :class:`MalformedEventError` when the event cannot be used.
    """
    if event.event_type == EventType.HEALTH and event.metric is None:
        raise MalformedEventError(event.event_id, event.event_type.value, "health event without metric")
    if event.end_timestamp is not None and event.end_timestamp < event.timestamp:
        raise MalformedEventError(event.event_id, event.event_type.value, "end_timestamp precedes timestamp")

    model = PROPERTY_MODELS[event.event_type]
    raw_flags: list[tuple[str, float, float, str]] = []
    try:
        props = model.model_validate(
            _with_derived_duration(event), context={"flags": raw_flags}
        )
    except ValidationError as exc:
        raise MalformedEventError(event.event_id, event.event_type.value, _describe(exc)) from exc

    flags = tuple(
        ValueFlag(
            event_id=event.event_id,
            field=name,
            original=original,
            adjusted=adjusted,
            reason=reason,
        )
        for name, original, adjusted, reason in raw_flags
    )
    return ParsedEvent(event=event, props=props, flags=flags)
