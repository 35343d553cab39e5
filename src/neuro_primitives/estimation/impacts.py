"""Impact function library: one formula set per activity event type.

Each function maps a parsed event and the hours elapsed since its effective
time to a signed impact vector over the primitives.  Functions are pure and
total: a primitive the event does not affect is simply absent from the
returned dict.  ``circadian_phase`` entries are phase shifts in hours
(positive = delay, negative = advance) rather than score deltas.

The thresholds and multipliers below are the documented contract of the
model and are pinned by the test-suite; they are not tuning knobs.

==============  ============================================================
Event           Primitives touched
==============  ============================================================
sleep           adenosine, dopamine, serotonin, cortisol, glucose, circadian
caffeine        adenosine, dopamine, norepinephrine, cortisol
exercise        dopamine, norepinephrine, serotonin, cortisol, glucose, circadian
meal            glucose, serotonin, dopamine
light           circadian, serotonin, cortisol
stress          cortisol, norepinephrine, dopamine, serotonin, glucose
social          serotonin, dopamine, cortisol
screen          circadian, dopamine, serotonin, norepinephrine, cortisol
nap             adenosine, circadian
interruption    cortisol, dopamine
==============  ============================================================
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Callable

from neuro_primitives.estimation.errors import MalformedEventError
from neuro_primitives.estimation.properties import (
    BlueLight,
    ExerciseType,
    GlycemicIndex,
    InteractionType,
    ParsedEvent,
    ScreenContent,
    SocialQuality,
    parse_event,
)
from neuro_primitives.models import Event, EventType, PrimitiveKind

Impacts = dict[PrimitiveKind, float]

_DA = PrimitiveKind.DOPAMINE
_5HT = PrimitiveKind.SEROTONIN
_NE = PrimitiveKind.NOREPINEPHRINE
_ADO = PrimitiveKind.ADENOSINE
_CORT = PrimitiveKind.CORTISOL
_GLU = PrimitiveKind.GLUCOSE
_CIRC = PrimitiveKind.CIRCADIAN_PHASE

# ── Constants ─────────────────────────────────────────────────

A2A_ED50_MG = 65.0  # adenosine A2A receptor (wakefulness)
A1_ED50_MG = 450.0  # adenosine A1 receptor (HPA axis)
CAFFEINE_ELIMINATION_RATE = 0.15  # per hour, plasma = dose * exp(-k * h)

SLEEP_CYCLE_HOURS = 7.5
SLEEP_CLEARANCE_SCALE = 0.85
NAP_CLEARANCE_PER_MINUTE = 0.0077

STRESS_PEAK_MINUTES = 25.0

_GLYCEMIC_FACTOR = {
    GlycemicIndex.LOW: 0.3,
    GlycemicIndex.MEDIUM: 0.6,
    GlycemicIndex.HIGH: 1.0,
}

_SOCIAL_QUALITY = {
    SocialQuality.VERY_POSITIVE: 1.0,
    SocialQuality.POSITIVE: 0.7,
    SocialQuality.NEUTRAL: 0.0,
    SocialQuality.NEGATIVE: -0.5,
    SocialQuality.VERY_NEGATIVE: -1.0,
}

_INTERACTION_FACTOR = {
    InteractionType.RECIPROCAL: 1.0,
    InteractionType.UNILATERAL: 0.6,
    InteractionType.PASSIVE: 0.3,
}

_BLUE_LIGHT = {
    BlueLight.LOW: 0.3,
    BlueLight.MEDIUM: 0.6,
    BlueLight.HIGH: 1.0,
}

# (controllable, social_evaluative) -> cortisol multiplier
_STRESS_CORTISOL_MULTIPLIER = {
    (True, False): 1.0,
    (True, True): 1.5,
    (False, False): 2.0,
    (False, True): 3.0,
}


# ── Helpers ───────────────────────────────────────────────────


def receptor_occupancy(dose_mg: float, ed50_mg: float) -> float:
    """Fractional receptor occupancy ``dose / (dose + ED50)``."""
    if dose_mg <= 0.0:
        return 0.0
    return dose_mg / (dose_mg + ed50_mg)


def caffeine_plasma(dose_mg: float, hours_ago: float) -> float:
    """Remaining plasma caffeine after first-order elimination."""
    return dose_mg * math.exp(-CAFFEINE_ELIMINATION_RATE * max(hours_ago, 0.0))


def sleep_retention(duration_hours: float, quality_factor: float) -> float:
    """Fraction of sleep pressure that survives a sleep episode."""
    return math.exp(-(duration_hours / SLEEP_CYCLE_HOURS) * quality_factor * SLEEP_CLEARANCE_SCALE)


def nap_retention(duration_minutes: float) -> float:
    return math.exp(-NAP_CLEARANCE_PER_MINUTE * duration_minutes)


def stress_cortisol_multiplier(controllable: bool, social_evaluative: bool) -> float:
    return _STRESS_CORTISOL_MULTIPLIER[(controllable, social_evaluative)]


def _is_morning(hour: float) -> bool:
    return 6.0 <= hour < 12.0


def _clean(impacts: Impacts) -> Impacts:
    return {k: v for k, v in impacts.items() if v != 0.0}


# ── Sleep ─────────────────────────────────────────────────────


def sleep_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    d = p.duration_hours
    q = p.quality_factor

    if d >= 7.0:
        dopamine = 0.3 * q
    elif d >= 6.0:
        dopamine = 0.15 * q
    else:
        dopamine = -0.2 * (1.0 - q)

    cortisol = -0.12 if q >= 0.7 else 0.15 * (1.0 - q)

    if d >= 6.0 and p.efficiency >= 0.67:
        glucose = 0.2
    else:
        glucose = -0.3 * (1.0 - min(d / 6.0, 1.0))

    # Sleep timing: onset in the small hours delays the clock.
    onset_hour = parsed.start.hour
    circadian = 0.2 * onset_hour / 2.0 if onset_hour <= 2 else 0.0

    return _clean({
        _ADO: -(1.0 - sleep_retention(d, q)),
        _DA: dopamine,
        _5HT: 0.25 * q * min(d / SLEEP_CYCLE_HOURS, 1.0),
        _CORT: cortisol,
        _GLU: glucose,
        _CIRC: circadian,
    })


# ── Caffeine ──────────────────────────────────────────────────


def caffeine_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    dose = parsed.props.dose_mg
    plasma = caffeine_plasma(dose, hours_ago)
    return _clean({
        _ADO: -0.5 * receptor_occupancy(plasma, A2A_ED50_MG),
        _DA: 0.15 * min(dose / 200.0, 1.0),
        _NE: 0.25 * min(dose / 200.0, 1.3),
        _CORT: 0.15 * min(dose / 200.0, 1.0) + 0.1 * receptor_occupancy(dose, A1_ED50_MG),
    })


# ── Exercise ──────────────────────────────────────────────────


def exercise_cortisol(intensity_percent: float, duration_minutes: float) -> float:
    """Cortisol response: mild reduction at low effort, sharp rise above 80%."""
    i = intensity_percent
    if i <= 60.0:
        return -0.08 * min(duration_minutes / 60.0, 1.0)
    dose = min(duration_minutes / 45.0, 1.0)
    if i <= 80.0:
        return 0.2 * ((i - 60.0) / 20.0) * dose
    return (0.2 + 0.4 * (i - 80.0) / 20.0) * dose


def exercise_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    i = p.intensity_percent
    t = p.duration_minutes
    hour_fraction = min(t / 60.0, 1.0)

    if p.type == ExerciseType.HIIT:
        dopamine = 0.35 * min(t / 45.0, 1.0)
    elif i >= 70.0:
        dopamine = 0.25 * hour_fraction
    else:
        dopamine = 0.15 * hour_fraction

    hour = parsed.hour_of_day
    if _is_morning(hour):
        circadian = -0.25 * hour_fraction
    elif 19.0 <= hour < 24.0:
        circadian = 0.25 * hour_fraction
    else:
        circadian = 0.0

    return _clean({
        _DA: dopamine,
        _NE: 0.4 * i / 100.0 if i >= 70.0 else 0.2,
        _5HT: 0.2 * hour_fraction,
        _CORT: exercise_cortisol(i, t),
        _GLU: -0.3 * (i / 100.0) * hour_fraction,
        _CIRC: circadian,
    })


# ── Meal ──────────────────────────────────────────────────────


def meal_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    gi = _GLYCEMIC_FACTOR[p.glycemic_index]
    protein = p.protein_percentage

    if protein >= 35.0:
        glucose = 0.1 + gi * 0.1
    else:
        glucose = 0.15 + gi * 0.15

    # Tryptophan reaches the brain best with carbs and little competing protein.
    if protein < 10.0 and p.carb_percentage > 40.0:
        serotonin = 0.35 * max(0.0, 1.0 - protein / 20.0)
    elif protein > 25.0:
        serotonin = -0.15
    else:
        serotonin = 0.1

    tyrosine = 0.15 * min(protein / 40.0, 1.0) if protein >= 15.0 else 0.05

    return _clean({
        _GLU: glucose,
        _5HT: serotonin,
        _DA: tyrosine + gi * 0.1,
    })


# ── Light ─────────────────────────────────────────────────────


def light_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    lux = p.intensity_lux
    t = p.duration_minutes
    hour = parsed.hour_of_day
    morning = _is_morning(hour)
    evening = 18.0 <= hour < 23.0

    if lux >= 2000.0:
        if morning:
            circadian = -0.8 * min(t / 120.0, 1.0)
        elif evening:
            circadian = 0.6 * min(t / 120.0, 1.0)
        else:
            circadian = -0.2
    elif lux >= 100.0:
        circadian = -0.3 if morning else 0.3 if evening else 0.0
    else:
        circadian = 0.0

    impacts: Impacts = {_CIRC: circadian}
    if morning:
        if lux >= 2000.0:
            impacts[_5HT] = 0.25 * min(lux / 10000.0, 1.0) * min(t / 30.0, 1.0)
        if lux >= 5000.0:
            impacts[_CORT] = 0.08
        elif lux >= 800.0:
            impacts[_CORT] = 0.05
        else:
            impacts[_CORT] = 0.02
    return _clean(impacts)


# ── Stress ────────────────────────────────────────────────────


def stress_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    s = p.severity
    multiplier = stress_cortisol_multiplier(p.controllable, p.social_evaluative)
    # Cortisol rises over the first ~25 minutes after onset, then plateaus
    # and is left to the decay half-life.
    response = min(1.0, max(hours_ago, 0.0) * 60.0 / STRESS_PEAK_MINUTES)
    return _clean({
        _CORT: 0.15 * s * multiplier * response,
        _NE: 0.3 * s,
        _DA: -0.2 * s,
        _5HT: -0.25 * s,
        _GLU: min(0.4, 0.25 * s * min(multiplier / 2.0, 1.2)),
    })


# ── Social ────────────────────────────────────────────────────


def social_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    q = _SOCIAL_QUALITY[p.quality]
    f = _INTERACTION_FACTOR[p.interaction_type]
    hours = p.duration_minutes / 60.0

    if q > 0.0:
        return _clean({
            _5HT: 0.3 * q * min(hours / 2.0, 1.0) * f,
            _DA: 0.2 * q * f,
            _CORT: -0.2 * q * f,
        })
    if q < 0.0:
        return _clean({
            _5HT: 0.3 * q * f,
            _CORT: -0.4 * q * f,
        })
    return {}


# ── Screen ────────────────────────────────────────────────────


def screen_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    p = parsed.props
    blue = _BLUE_LIGHT[p.blue_light_intensity]
    exposure = min(p.duration_minutes / 60.0, 1.0)
    hour = parsed.hour_of_day

    if p.hours_before_sleep is not None and p.hours_before_sleep <= 3.0:
        circadian = 0.25 * blue * (1.0 - p.hours_before_sleep / 3.0)
    elif hour >= 20.0 or hour < 2.0:
        circadian = 0.25 * blue * exposure
    else:
        circadian = 0.0

    impacts: Impacts = {_CIRC: circadian}
    if p.content_type == ScreenContent.SOCIAL_MEDIA:
        impacts[_DA] = 0.1 * exposure
        impacts[_5HT] = -0.05 * exposure
    elif p.content_type == ScreenContent.GAMING:
        impacts[_DA] = 0.1 * exposure
        impacts[_NE] = 0.1 * exposure
    elif p.content_type == ScreenContent.WORK:
        impacts[_CORT] = 0.05 * exposure
    return _clean(impacts)


# ── Nap / interruption / markers ─────────────────────────────


def nap_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    t = parsed.props.duration_minutes
    return _clean({
        _ADO: -(1.0 - nap_retention(t)),
        _CIRC: 0.15 if t >= 60.0 else 0.0,
    })


def interruption_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    sf = min(parsed.props.frequency / 10.0, 1.0)
    return _clean({
        _CORT: 0.2 * sf,
        _DA: -0.15 * sf,
    })


def no_impacts(parsed: ParsedEvent, hours_ago: float) -> Impacts:
    """Wake markers and health measurements carry no behavioural impact."""
    return {}


# ── Registry ──────────────────────────────────────────────────

_REGISTRY: MappingProxyType[EventType, Callable[[ParsedEvent, float], Impacts]] = MappingProxyType({
    EventType.SLEEP: sleep_impacts,
    EventType.CAFFEINE: caffeine_impacts,
    EventType.EXERCISE: exercise_impacts,
    EventType.MEAL: meal_impacts,
    EventType.LIGHT: light_impacts,
    EventType.STRESS: stress_impacts,
    EventType.SOCIAL: social_impacts,
    EventType.SCREEN: screen_impacts,
    EventType.NAP: nap_impacts,
    EventType.INTERRUPTION: interruption_impacts,
    EventType.WAKE: no_impacts,
    EventType.HEALTH: no_impacts,
})


def default_impact_functions() -> dict[EventType, Callable[[ParsedEvent, float], Impacts]]:
    """Return a fresh copy of the built-in formula set."""
    return dict(_REGISTRY)


def impacts_for(
    parsed: ParsedEvent,
    hours_ago: float,
    functions: dict[EventType, Callable[[ParsedEvent, float], Impacts]] | None = None,
) -> Impacts:
    """Dispatch a parsed event to its impact function."""
    registry = _REGISTRY if functions is None else functions
    fn = registry.get(parsed.event_type, no_impacts)
    return fn(parsed, hours_ago)


def compute_impacts(event: Event, hours_ago: float) -> Impacts:
    """Impact vector of a raw event; malformed events have no impact."""
    try:
        parsed = parse_event(event)
    except MalformedEventError:
        return {}
    return impacts_for(parsed, hours_ago)
