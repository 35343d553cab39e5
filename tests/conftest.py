"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import pytest

from neuro_primitives.estimation.config import EngineConfig
from neuro_primitives.estimation.engine import PrimitiveEstimator
from neuro_primitives.models import Event


@pytest.fixture
def t0() -> datetime:
    """Morning wake-up time used as the anchor for scenario histories."""
    return datetime(2026, 1, 10, 7, 0)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    counter = {"n": 0}

    def _make(
        event_type: str,
        at: datetime,
        *,
        end: datetime | None = None,
        metric: str | None = None,
        event_id: str | None = None,
        **properties: Any,
    ) -> Event:
        counter["n"] += 1
        return Event(
            event_id=event_id or f"{event_type}-{counter['n']:03d}",
            event_type=event_type,
            timestamp=at,
            end_timestamp=end,
            metric=metric,
            properties=properties,
        )

    return _make


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def estimator(config: EngineConfig) -> PrimitiveEstimator:
    return PrimitiveEstimator(config)


@pytest.fixture
def restful_morning(make_event, t0) -> list[Event]:
    """8h excellent sleep ending at t0, then 100 mg caffeine at t0 + 1h."""
    return [
        make_event(
            "sleep",
            t0 - timedelta(hours=8),
            end=t0,
            event_id="night",
            duration_hours=8.0,
            quality="excellent",
            efficiency=0.95,
        ),
        make_event("caffeine", t0 + timedelta(hours=1), event_id="coffee", dose_mg=100),
    ]


@pytest.fixture
def busy_day(make_event, t0) -> list[Event]:
    """A varied day touching every event type plus health measurements."""
    return [
        make_event("sleep", t0 - timedelta(hours=7), end=t0, duration_hours=7.0, quality="good", efficiency=0.9),
        make_event("wake", t0),
        make_event("light", t0 + timedelta(minutes=30), intensity_lux=8000, duration_minutes=30),
        make_event("caffeine", t0 + timedelta(hours=1), dose_mg=150),
        make_event(
            "meal", t0 + timedelta(hours=1, minutes=15),
            protein_percentage=20, carb_percentage=50, fat_percentage=30, glycemic_index="medium",
        ),
        make_event("exercise", t0 + timedelta(hours=2), type="cardio", intensity="vigorous", duration_minutes=40),
        make_event("interruption", t0 + timedelta(hours=4), frequency=6),
        make_event(
            "stress", t0 + timedelta(hours=5),
            severity="moderate", controllable=False, social_evaluative=True,
        ),
        make_event(
            "social", t0 + timedelta(hours=6),
            interaction_type="reciprocal", quality="positive", duration_minutes=60,
        ),
        make_event("nap", t0 + timedelta(hours=7), duration_minutes=20),
        make_event(
            "screen", t0 + timedelta(hours=13),
            duration_minutes=90, content_type="social_media", blue_light_intensity="high",
        ),
        make_event("health_heart_rate", t0 + timedelta(hours=13, minutes=30), value=84),
        make_event("health_hrv", t0 + timedelta(hours=13), value=45),
        make_event("health_blood_glucose", t0 + timedelta(hours=13, minutes=30), value=92),
    ]
