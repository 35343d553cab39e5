"""Temporal decay and windowed aggregation.

A primitive's aggregated score is its baseline plus the sum of every in-window
event's impact, each attenuated by exponential decay.  Dopamine and serotonin
run the sum twice, over a short *acute* and a long *chronic* window, and blend
the two clamped results with a fixed weighting (0.7 acute / 0.3 chronic).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from neuro_primitives.estimation.impacts import impacts_for
from neuro_primitives.estimation.models import Contribution
from neuro_primitives.models import PrimitiveKind

if TYPE_CHECKING:
    from neuro_primitives.estimation.config import EngineConfig
    from neuro_primitives.estimation.properties import ParsedEvent

_LN2 = math.log(2.0)


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def decay(hours_ago: float, half_life_hours: float) -> float:
    """Exponential decay factor; exactly 1.0 at ``hours_ago == 0``."""
    return math.exp(-_LN2 * hours_ago / half_life_hours)


def in_window(hours_ago: float, window_hours: float) -> bool:
    return 0.0 <= hours_ago <= window_hours


def evidence_confidence(n_events: int) -> float:
    """Confidence from the number of contributing events: ``1 - 0.5**n``."""
    return 1.0 - 0.5 ** n_events if n_events > 0 else 0.0


@dataclass(frozen=True, slots=True)
class Aggregate:
    """Result of aggregating one primitive over its window(s)."""

    kind: PrimitiveKind
    score: float
    raw_sum: float  # decayed impact sum before baseline / clamp
    acute: float | None
    chronic: float | None
    contributions: tuple[Contribution, ...]
    evidence: int

    @property
    def confidence(self) -> float:
        return evidence_confidence(self.evidence)


def _decayed(
    entries: list[tuple[ParsedEvent, float, float]],
    window_hours: float,
    half_life_hours: float,
) -> list[float]:
    return [
        impact * decay(h, half_life_hours) if in_window(h, window_hours) else 0.0
        for _, h, impact in entries
    ]


def sort_contributions(contributions: Iterable[Contribution]) -> tuple[Contribution, ...]:
    """Order by |decayed impact| descending, event id as tie-breaker."""
    return tuple(sorted(contributions, key=lambda c: (-abs(c.decayed_impact), c.event_id)))


def aggregate(
    kind: PrimitiveKind,
    events: Iterable[ParsedEvent],
    query_time: datetime,
    config: EngineConfig,
) -> Aggregate:
    """Windowed, decayed aggregation of *kind* at *query_time*.

    Parameters
    ----------
    kind:
        Primitive to aggregate.  Its :class:`WindowConfig` must carry a
        half-life.
    events:
        Parsed, well-formed events (order irrelevant).
    query_time:
        Instant at which elapsed hours are measured.
    config:
        Engine configuration providing windows, baselines and formulas.
    """
    wc = config.windows[kind]
    if wc.half_life_hours is None:
        raise ValueError(f"{kind.value} has no decay half-life; it is computed by a process model")
    baseline = config.baselines[kind]

    entries: list[tuple[ParsedEvent, float, float]] = []
    for parsed in events:
        h = parsed.hours_ago(query_time)
        if not in_window(h, wc.max_window_hours):
            continue
        impact = impacts_for(parsed, h, config.impact_functions).get(kind, 0.0)
        if impact != 0.0:
            entries.append((parsed, h, impact))

    acute_parts = _decayed(entries, wc.window_hours, wc.half_life_hours)
    acute_sum = sum(acute_parts)

    if wc.has_dual_timescale:
        chronic_parts = _decayed(entries, wc.chronic_window_hours, wc.chronic_half_life_hours)
        chronic_sum = sum(chronic_parts)
        acute = clamp(baseline + acute_sum)
        chronic = clamp(baseline + chronic_sum)
        w = config.acute_weight
        score = w * acute + (1.0 - w) * chronic
        shares = [w * a + (1.0 - w) * c for a, c in zip(acute_parts, chronic_parts)]
        raw_sum = w * acute_sum + (1.0 - w) * chronic_sum
    else:
        acute = chronic = None
        score = clamp(baseline + acute_sum)
        shares = acute_parts
        raw_sum = acute_sum

    contributions = [
        Contribution(
            event_id=parsed.event_id,
            event_type=parsed.event_type,
            hours_ago=h,
            impact=impact,
            decayed_impact=share,
        )
        for (parsed, h, impact), share in zip(entries, shares)
        if share != 0.0
    ]
    return Aggregate(
        kind=kind,
        score=clamp(score),
        raw_sum=raw_sum,
        acute=acute,
        chronic=chronic,
        contributions=sort_contributions(contributions),
        evidence=len(contributions),
    )
