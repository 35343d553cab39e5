"""Reciprocal inhibition and functional-state classification.

Dopamine and serotonin suppress each other asymmetrically once either is
high.  The effective pair is then classified into one of seven functional
states by a fixed priority order; the first match wins, which resolves the
overlap between the absolute-level states and the ratio-based states.
"""

from __future__ import annotations

import math

from neuro_primitives.estimation.models import FunctionalState, FunctionalStateResult

# ── Constants ─────────────────────────────────────────────────

RATIO_GUARD = 1e-3  # effective serotonin at or below this routes straight to DA-dominant

_STATE_INFO: dict[FunctionalState, tuple[str, str, list[str]]] = {
    FunctionalState.PEAK_PERFORMANCE: (
        "Peak Performance",
        "Both motivation and mood are strong. Ideal state for productivity and well-being.",
        [
            "Maintain current patterns",
            "This is a good time for challenging work or important decisions",
        ],
    ),
    FunctionalState.DEPLETED: (
        "Depleted",
        "Both motivation and mood are low. Recovery is the priority.",
        [
            "Prioritize rest and sleep",
            "Avoid demanding decisions or high-stress situations",
            "Gentle exercise, social connection, and balanced nutrition",
        ],
    ),
    FunctionalState.DRIVEN_BUT_ANXIOUS: (
        "Driven but Anxious",
        "High motivation but low contentment. Risk of stress and burnout.",
        [
            "Practice stress-reduction techniques",
            "Increase serotonin: social connection, outdoor time, balanced meals",
            "Avoid overcommitting to new projects",
        ],
    ),
    FunctionalState.CALM_BUT_UNMOTIVATED: (
        "Calm but Unmotivated",
        "Good mood but low drive. May struggle with initiation and focus.",
        [
            "Boost dopamine: exercise (especially HIIT), achievement tasks, protein-rich meals",
            "Set small, concrete goals to build momentum",
            "Consider caffeine in moderation (morning only)",
        ],
    ),
    FunctionalState.BALANCED_DA_LEANING: (
        "Balanced (DA-leaning)",
        "Balanced overall with a tilt toward drive and reward-seeking.",
        [
            "Good window for goal-directed work",
            "Balance effort with a social or outdoor break",
        ],
    ),
    FunctionalState.BALANCED_5HT_LEANING: (
        "Balanced (5HT-leaning)",
        "Balanced overall with a tilt toward contentment and calm.",
        [
            "Good window for reflective or collaborative work",
            "A short burst of activity can lift drive",
        ],
    ),
    FunctionalState.WELL_BALANCED: (
        "Well-Balanced",
        "Motivation and mood are in proportion.",
        ["Maintain current patterns"],
    ),
}


def reciprocal_inhibition(dopamine: float, serotonin: float) -> tuple[float, float]:
    """Return ``(dopamine_effective, serotonin_effective)``.

    Both suppressions are computed from the pre-inhibition values.
    """
    da_eff = dopamine
    if serotonin > 0.6:
        da_eff = dopamine * (1.0 - 0.25 * (serotonin - 0.6) / 0.4)
    ht_eff = serotonin
    if dopamine > 0.7:
        ht_eff = serotonin * (1.0 - 0.15 * (dopamine - 0.7) / 0.3)
    return da_eff, ht_eff


def _classify(da: float, ht: float, ratio: float) -> FunctionalState:
    if math.isinf(ratio):
        return FunctionalState.DRIVEN_BUT_ANXIOUS
    if da >= 0.65 and ht >= 0.65:
        return FunctionalState.PEAK_PERFORMANCE
    if da <= 0.40 and ht <= 0.40:
        return FunctionalState.DEPLETED
    if (da >= 0.65 and ht <= 0.45) or ratio > 1.4:
        return FunctionalState.DRIVEN_BUT_ANXIOUS
    if (da <= 0.45 and ht >= 0.65) or ratio < 0.65:
        return FunctionalState.CALM_BUT_UNMOTIVATED
    if 1.1 <= ratio <= 1.4:
        return FunctionalState.BALANCED_DA_LEANING
    if 0.75 <= ratio <= 0.9:
        return FunctionalState.BALANCED_5HT_LEANING
    return FunctionalState.WELL_BALANCED


def classify(dopamine_effective: float, serotonin_effective: float) -> FunctionalStateResult:
    """Classify an (already inhibited) dopamine / serotonin pair."""
    if serotonin_effective <= RATIO_GUARD:
        ratio = math.inf
    else:
        ratio = dopamine_effective / serotonin_effective
    state = _classify(dopamine_effective, serotonin_effective, ratio)
    label, description, recommendations = _STATE_INFO[state]
    return FunctionalStateResult(
        state=state,
        label=label,
        description=description,
        recommendations=list(recommendations),
        dopamine=dopamine_effective,
        serotonin=serotonin_effective,
        ratio=ratio,
    )
