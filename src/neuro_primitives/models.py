"""Shared domain models: primitives, event types and the input event log."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── Enums ─────────────────────────────────────────────────────


class PrimitiveKind(str, Enum):
    """The seven latent state variables estimated by the engine."""

    DOPAMINE = "dopamine"
    SEROTONIN = "serotonin"
    NOREPINEPHRINE = "norepinephrine"
    ADENOSINE = "adenosine"
    CORTISOL = "cortisol"
    GLUCOSE = "glucose"
    CIRCADIAN_PHASE = "circadian_phase"


class EventType(str, Enum):
    SLEEP = "sleep"
    CAFFEINE = "caffeine"
    EXERCISE = "exercise"
    MEAL = "meal"
    LIGHT = "light"
    STRESS = "stress"
    SOCIAL = "social"
    SCREEN = "screen"
    NAP = "nap"
    INTERRUPTION = "interruption"
    WAKE = "wake"
    HEALTH = "health"


class HealthMetric(str, Enum):
    """Physiological measurement kinds carried by ``health`` events."""

    HEART_RATE = "heart_rate"
    HRV = "hrv"
    BLOOD_OXYGEN = "blood_oxygen"
    BLOOD_GLUCOSE = "blood_glucose"
    RESPIRATORY_RATE = "respiratory_rate"
    STEPS = "steps"
    BODY_TEMPERATURE = "body_temperature"


# Wire names used by older event logs.
_EVENT_TYPE_ALIASES = {
    "light_exposure": EventType.LIGHT.value,
    "stress_event": EventType.STRESS.value,
    "social_interaction": EventType.SOCIAL.value,
    "screen_time": EventType.SCREEN.value,
}
_HEALTH_PREFIX = "health_"


# ── Events ────────────────────────────────────────────────────


class Event(BaseModel):
    """A single timestamped activity or health-measurement record.

    Events are immutable.  ``properties`` holds the type-specific fields
    (duration, dose, quality, ...) which are validated lazily by the engine so
    that one malformed record never prevents a whole history from loading.
    Naive timestamps are interpreted as UTC.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: EventType
    timestamp: datetime
    end_timestamp: datetime | None = None
    metric: HealthMetric | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise_event_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw = data.get("event_type")
        if not isinstance(raw, str):
            return data
        data = dict(data)
        if raw.startswith(_HEALTH_PREFIX):
            data["event_type"] = EventType.HEALTH.value
            if data.get("metric") is None:
                data["metric"] = raw[len(_HEALTH_PREFIX):]
        elif raw in _EVENT_TYPE_ALIASES:
            data["event_type"] = _EVENT_TYPE_ALIASES[raw]
        return data

    @field_validator("timestamp", "end_timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def hour_of_day(self) -> float:
        """Fractional local hour of the start timestamp (0–24)."""
        return self.timestamp.hour + self.timestamp.minute / 60.0


class EventLog(BaseModel):
    """A user's event history as exchanged with external collaborators."""

    user_id: str
    events: list[Event] = Field(default_factory=list)
