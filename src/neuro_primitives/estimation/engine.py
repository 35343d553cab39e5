"""Estimation orchestrator: composes every stage into one pure query.

:class:`PrimitiveEstimator` turns an event history and a query timestamp into
an :class:`EstimationResult`.  Each stage is a pure function from one
immutable :class:`PipelineState` to the next:

1. Parse and validate events (malformed ones are skipped and recorded)
2. Process S → Process C → sleep drive
3. Windowed aggregation (dopamine / serotonin on the dual timescale)
4. Reciprocal inhibition and functional-state classification
5. Sequence pattern adjustments
6. Cross-primitive modifiers
7. Physiological validation
8. Final clamp, level descriptions and top contributors

The estimator holds no mutable state and never reads the clock, so identical
inputs always produce identical outputs and one instance can serve
concurrent queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Mapping

import structlog

from neuro_primitives.config import Settings, get_settings
from neuro_primitives.estimation.classifier import classify, reciprocal_inhibition
from neuro_primitives.estimation.config import EngineConfig
from neuro_primitives.estimation.decay import aggregate, clamp
from neuro_primitives.estimation.errors import MalformedEventError
from neuro_primitives.estimation.interpretation import describe_level
from neuro_primitives.estimation.models import (
    AppliedConstraint,
    Contribution,
    EstimationResult,
    FunctionalStateResult,
    ModifierApplication,
    PrimitiveEstimate,
    SequenceAdjustment,
    SkippedEvent,
    SleepDrive,
    ValueFlag,
)
from neuro_primitives.estimation.modifiers import combined_factors, evaluate_modifiers
from neuro_primitives.estimation.patterns import combined_deltas, detect_patterns
from neuro_primitives.estimation.physiology import (
    apply_constraints,
    derive_constraints,
    latest_measurements,
)
from neuro_primitives.estimation.processes import (
    awakening_boost,
    circadian_phase,
    cortisol_diurnal_multiplier,
    cortisol_rhythm_score,
    latest_wake,
    sleep_drive,
    sleep_pressure,
)
from neuro_primitives.estimation.properties import ParsedEvent, parse_event
from neuro_primitives.logger import setup_logging
from neuro_primitives.models import Event, EventLog, PrimitiveKind

logger = structlog.get_logger(__name__)

_DA = PrimitiveKind.DOPAMINE
_5HT = PrimitiveKind.SEROTONIN

# Primitives computed by windowed aggregation (the rest come from process models).
_WINDOWED = (
    PrimitiveKind.DOPAMINE,
    PrimitiveKind.SEROTONIN,
    PrimitiveKind.NOREPINEPHRINE,
    PrimitiveKind.CORTISOL,
    PrimitiveKind.GLUCOSE,
)


@dataclass(frozen=True)
class PipelineState:
    """Estimate-in-progress passed between stages.  Never mutated."""

    query_time: datetime
    events: tuple[ParsedEvent, ...] = ()
    skipped: tuple[SkippedEvent, ...] = ()
    flags: tuple[ValueFlag, ...] = ()
    scores: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    confidences: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    base_scores: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    acute: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    chronic: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    effective: Mapping[PrimitiveKind, float] = field(default_factory=dict)
    contributions: Mapping[PrimitiveKind, tuple[Contribution, ...]] = field(default_factory=dict)
    adjustments: Mapping[PrimitiveKind, tuple[str, ...]] = field(default_factory=dict)
    sleep_drive: SleepDrive | None = None
    functional_state: FunctionalStateResult | None = None
    patterns: tuple[SequenceAdjustment, ...] = ()
    modifiers: tuple[ModifierApplication, ...] = ()
    constraints: tuple[AppliedConstraint, ...] = ()


def _note(
    adjustments: Mapping[PrimitiveKind, tuple[str, ...]],
    kind: PrimitiveKind,
    *reasons: str,
) -> dict[PrimitiveKind, tuple[str, ...]]:
    updated = dict(adjustments)
    updated[kind] = updated.get(kind, ()) + reasons
    return updated


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class PrimitiveEstimator:
    """Pure, configurable estimator of the seven primitives.

    Parameters
    ----------
    config : EngineConfig | None
        Windows, baselines and formula set.  Defaults to the documented model.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PrimitiveEstimator:
        """Configure logging and build an estimator from runtime settings."""
        settings = settings or get_settings()
        setup_logging(settings.log_level, log_format=settings.log_format)
        return cls(EngineConfig.from_settings(settings))

    @property
    def config(self) -> EngineConfig:
        return self._config

    def estimate(
        self,
        events: Iterable[Event] | EventLog,
        query_time: datetime,
        *,
        user_id: str | None = None,
    ) -> EstimationResult:
        """Estimate every primitive at *query_time* from *events*."""
        if isinstance(events, EventLog):
            user_id = user_id or events.user_id
            events = events.events

        state = self._parse(list(events), _as_utc(query_time))
        for stage in (
            self._run_processes,
            self._aggregate,
            self._inhibit_and_classify,
            self._apply_patterns,
            self._apply_modifiers,
            self._validate,
        ):
            state = stage(state)
        result = self._finalise(state, user_id)

        logger.info(
            "estimation.complete",
            user=user_id,
            query_time=result.timestamp.isoformat(),
            events=len(state.events),
            skipped=len(result.skipped_events),
            functional_state=result.functional_state.state.value,
            patterns=[p.pattern.value for p in result.patterns],
            constraints=len(result.constraints),
        )
        return result

    # ── Stage 1: parsing ──────────────────────────────────────

    def _parse(self, events: list[Event], query_time: datetime) -> PipelineState:
        if not events:
            logger.info("estimation.empty_history", query_time=query_time.isoformat())

        parsed: list[ParsedEvent] = []
        skipped: list[SkippedEvent] = []
        flags: list[ValueFlag] = []
        for event in sorted(events, key=lambda e: (e.timestamp, e.event_id)):
            if event.timestamp > query_time:
                continue
            try:
                p = parse_event(event)
            except MalformedEventError as exc:
                logger.warning(
                    "estimation.event_skipped",
                    event_id=exc.event_id,
                    event_type=exc.event_type,
                    reason=exc.reason,
                )
                skipped.append(
                    SkippedEvent(event_id=event.event_id, event_type=event.event_type, reason=exc.reason)
                )
                continue
            parsed.append(p)
            flags.extend(p.flags)

        return PipelineState(
            query_time=query_time,
            events=tuple(parsed),
            skipped=tuple(skipped),
            flags=tuple(flags),
        )

    # ── Stage 2: process models ───────────────────────────────

    def _run_processes(self, state: PipelineState) -> PipelineState:
        cfg = self._config
        adenosine = sleep_pressure(state.events, state.query_time, cfg)
        circadian = circadian_phase(state.events, state.query_time, cfg, adenosine.score)
        drive = sleep_drive(adenosine.score, circadian.score, state.query_time, cfg)

        adjustments = dict(state.adjustments)
        contributions = dict(state.contributions)
        scores = dict(state.scores)
        confidences = dict(state.confidences)
        base = dict(state.base_scores)
        for result in (adenosine, circadian):
            scores[result.kind] = base[result.kind] = result.score
            confidences[result.kind] = result.confidence
            contributions[result.kind] = result.contributions
            if result.notes:
                adjustments = _note(adjustments, result.kind, *result.notes)

        return replace(
            state,
            scores=scores,
            confidences=confidences,
            base_scores=base,
            contributions=contributions,
            adjustments=adjustments,
            sleep_drive=drive,
        )

    # ── Stage 3: windowed aggregation ─────────────────────────

    def _aggregate(self, state: PipelineState) -> PipelineState:
        cfg = self._config
        scores = dict(state.scores)
        confidences = dict(state.confidences)
        base = dict(state.base_scores)
        contributions = dict(state.contributions)
        acute = dict(state.acute)
        chronic = dict(state.chronic)
        adjustments = state.adjustments

        for kind in _WINDOWED:
            agg = aggregate(kind, state.events, state.query_time, cfg)
            score = agg.score
            if kind == PrimitiveKind.CORTISOL and cfg.cortisol_diurnal_rhythm:
                score, notes = self._cortisol_rhythm(state, agg.raw_sum)
                adjustments = _note(adjustments, kind, *notes)
            scores[kind] = base[kind] = score
            confidences[kind] = agg.confidence
            contributions[kind] = agg.contributions
            if agg.acute is not None:
                acute[kind] = agg.acute
                chronic[kind] = agg.chronic

        return replace(
            state,
            scores=scores,
            confidences=confidences,
            base_scores=base,
            contributions=contributions,
            acute=acute,
            chronic=chronic,
            adjustments=adjustments,
        )

    def _cortisol_rhythm(self, state: PipelineState, event_sum: float) -> tuple[float, list[str]]:
        query_time = state.query_time
        hour = query_time.hour + query_time.minute / 60.0
        wake = latest_wake(state.events, query_time)
        minutes = None if wake is None else (query_time - wake).total_seconds() / 60.0
        score = cortisol_rhythm_score(event_sum, hour, minutes)

        notes = [f"diurnal_rhythm: multiplier {cortisol_diurnal_multiplier(hour):.2f} at {hour:.1f}h"]
        boost = awakening_boost(minutes)
        if boost > 1.0:
            notes.append(f"awakening_response: ×{boost:.2f} at {minutes:.0f} min after waking")
        return score, notes

    # ── Stage 4: reciprocal inhibition & classification ──────

    def _inhibit_and_classify(self, state: PipelineState) -> PipelineState:
        da, ht = state.scores[_DA], state.scores[_5HT]
        da_eff, ht_eff = reciprocal_inhibition(da, ht)

        adjustments = state.adjustments
        if da_eff != da:
            adjustments = _note(
                adjustments, _DA,
                f"reciprocal_inhibition: serotonin {ht:.2f} > 0.60 suppresses dopamine ×{da_eff / da:.3f}",
            )
        if ht_eff != ht:
            adjustments = _note(
                adjustments, _5HT,
                f"reciprocal_inhibition: dopamine {da:.2f} > 0.70 suppresses serotonin ×{ht_eff / ht:.3f}",
            )

        scores = dict(state.scores)
        scores[_DA], scores[_5HT] = da_eff, ht_eff
        return replace(
            state,
            scores=scores,
            effective={_DA: da_eff, _5HT: ht_eff},
            adjustments=adjustments,
            functional_state=classify(da_eff, ht_eff),
        )

    # ── Stage 5: sequence patterns ────────────────────────────

    def _apply_patterns(self, state: PipelineState) -> PipelineState:
        found = detect_patterns(state.events, state.query_time, self._config.patterns)
        if not found:
            return state

        scores = dict(state.scores)
        for kind, delta in combined_deltas(found).items():
            scores[kind] = clamp(scores[kind] + delta)
        adjustments = state.adjustments
        for adj in found:
            for kind, delta in adj.deltas.items():
                adjustments = _note(adjustments, kind, f"pattern:{adj.pattern.value} {delta:+.3f}")

        return replace(state, scores=scores, adjustments=adjustments, patterns=tuple(found))

    # ── Stage 6: cross-primitive modifiers ────────────────────

    def _apply_modifiers(self, state: PipelineState) -> PipelineState:
        fired = evaluate_modifiers(state.scores)
        if not fired:
            return state

        scores = dict(state.scores)
        for kind, factor in combined_factors(fired).items():
            scores[kind] = clamp(scores[kind] * factor)
        adjustments = state.adjustments
        for app in fired:
            for kind in app.targets:
                adjustments = _note(adjustments, kind, f"modifier:{app.rule} ×{app.factor:.3f}")

        return replace(state, scores=scores, adjustments=adjustments, modifiers=tuple(fired))

    # ── Stage 7: physiological validation ─────────────────────

    def _validate(self, state: PipelineState) -> PipelineState:
        constraints = derive_constraints(latest_measurements(state.events, state.query_time))
        if not constraints:
            return state

        outcome = apply_constraints(constraints, dict(state.scores), dict(state.confidences))
        adjustments = state.adjustments
        for applied in outcome.applied:
            c = applied.constraint
            adjustments = _note(
                adjustments, c.target, f"physiology:{c.metric.value} {c.kind.value}: {c.rationale}"
            )

        return replace(
            state,
            scores=outcome.scores,
            confidences=outcome.confidences,
            adjustments=adjustments,
            constraints=outcome.applied,
        )

    # ── Stage 8: finalisation ─────────────────────────────────

    def _finalise(self, state: PipelineState, user_id: str | None) -> EstimationResult:
        top_n = self._config.top_contributors
        primitives: dict[PrimitiveKind, PrimitiveEstimate] = {}
        for kind in PrimitiveKind:
            score = clamp(state.scores[kind])
            primitives[kind] = PrimitiveEstimate(
                kind=kind,
                score=score,
                confidence=clamp(state.confidences[kind]),
                level=describe_level(kind, score),
                base_score=clamp(state.base_scores[kind]),
                acute_score=state.acute.get(kind),
                chronic_score=state.chronic.get(kind),
                effective_score=state.effective.get(kind),
                contributions=list(state.contributions.get(kind, ())[:top_n]),
                adjustments=list(state.adjustments.get(kind, ())),
            )

        return EstimationResult(
            user_id=user_id,
            timestamp=state.query_time,
            primitives=primitives,
            sleep_drive=state.sleep_drive,
            functional_state=state.functional_state,
            patterns=list(state.patterns),
            modifiers=list(state.modifiers),
            constraints=list(state.constraints),
            skipped_events=list(state.skipped),
            value_flags=list(state.flags),
        )


def estimate(
    events: Iterable[Event] | EventLog,
    query_time: datetime,
    config: EngineConfig | None = None,
    *,
    user_id: str | None = None,
) -> EstimationResult:
    """Module-level convenience wrapper around :class:`PrimitiveEstimator`."""
    return PrimitiveEstimator(config).estimate(events, query_time, user_id=user_id)
