"""Human-readable level descriptions for primitive scores."""

from __future__ import annotations

from neuro_primitives.models import PrimitiveKind

# (high >= 0.7, moderate >= 0.5, low >= 0.3, very low)
_LEVELS: dict[PrimitiveKind, tuple[str, str, str, str]] = {
    PrimitiveKind.DOPAMINE: (
        "High (good for focus/work)",
        "Moderate",
        "Low (may affect motivation)",
        "Very low (impaired motivation/focus)",
    ),
    PrimitiveKind.SEROTONIN: (
        "High (stable mood)",
        "Moderate",
        "Low (may affect mood)",
        "Very low (mood instability risk)",
    ),
    PrimitiveKind.NOREPINEPHRINE: (
        "High (alert and focused)",
        "Moderate",
        "Low (reduced alertness)",
        "Very low (drowsy)",
    ),
    PrimitiveKind.CORTISOL: (
        "High (stressed/activated)",
        "Moderate (normal stress response)",
        "Low (relaxed)",
        "Very low (calm/depleted)",
    ),
    PrimitiveKind.ADENOSINE: (
        "High pressure (need sleep)",
        "Moderate pressure (building)",
        "Low pressure (alert)",
        "Very low pressure (recently rested)",
    ),
    PrimitiveKind.GLUCOSE: (
        "High (good energy availability)",
        "Moderate",
        "Low (may need food)",
        "Very low (depleted)",
    ),
}


def describe_circadian(score: float) -> str:
    if score > 0.55:
        return "Delayed (night-owl shift)"
    if score < 0.45:
        return "Advanced (early-bird shift)"
    return "Aligned"


def describe_level(kind: PrimitiveKind, score: float) -> str:
    """Describe *score* for *kind* in plain words."""
    if kind == PrimitiveKind.CIRCADIAN_PHASE:
        return describe_circadian(score)
    high, moderate, low, very_low = _LEVELS[kind]
    if score >= 0.7:
        return high
    if score >= 0.5:
        return moderate
    if score >= 0.3:
        return low
    return very_low
