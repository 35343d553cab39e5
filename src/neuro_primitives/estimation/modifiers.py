"""Cross-primitive modifier pass.

Second-pass multiplicative corrections for interactions between primitives.
Every rule reads the scores as they stand before the pass, so rules are
order-independent; when several rules hit the same primitive their factors
multiply.
"""

from __future__ import annotations

from typing import Mapping

from neuro_primitives.estimation.models import ModifierApplication
from neuro_primitives.models import PrimitiveKind

_MONOAMINES = [PrimitiveKind.DOPAMINE, PrimitiveKind.SEROTONIN, PrimitiveKind.NOREPINEPHRINE]


def evaluate_modifiers(scores: Mapping[PrimitiveKind, float]) -> list[ModifierApplication]:
    """Return the modifier rules that fire for *scores*."""
    fired: list[ModifierApplication] = []

    circadian = scores[PrimitiveKind.CIRCADIAN_PHASE]
    if not 0.35 <= circadian <= 0.65:
        fired.append(ModifierApplication(
            rule="circadian_misalignment",
            factor=0.85,
            targets=list(_MONOAMINES),
            rationale=f"circadian phase {circadian:.2f} outside [0.35, 0.65] dampens monoamines",
        ))

    glucose = scores[PrimitiveKind.GLUCOSE]
    if glucose < 0.4:
        fired.append(ModifierApplication(
            rule="low_glucose",
            factor=0.70,
            targets=list(_MONOAMINES),
            rationale=f"glucose {glucose:.2f} < 0.40 limits neurotransmitter synthesis",
        ))

    adenosine = scores[PrimitiveKind.ADENOSINE]
    if adenosine > 0.7:
        factor = 0.7 + 0.3 * ((adenosine - 0.7) / 0.3)
        fired.append(ModifierApplication(
            rule="high_sleep_pressure",
            factor=factor,
            targets=[PrimitiveKind.DOPAMINE],
            rationale=f"adenosine {adenosine:.2f} > 0.70 suppresses dopamine signalling",
        ))

    cortisol = scores[PrimitiveKind.CORTISOL]
    if cortisol > 0.7:
        fired.append(ModifierApplication(
            rule="high_cortisol",
            factor=0.85,
            targets=[PrimitiveKind.DOPAMINE, PrimitiveKind.SEROTONIN],
            rationale=f"cortisol {cortisol:.2f} > 0.70 suppresses dopamine and serotonin",
        ))

    return fired


def combined_factors(applications: list[ModifierApplication]) -> dict[PrimitiveKind, float]:
    """Product of all factors per target primitive."""
    factors: dict[PrimitiveKind, float] = {}
    for app in applications:
        for target in app.targets:
            factors[target] = factors.get(target, 1.0) * app.factor
    return factors
