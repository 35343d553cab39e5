"""Estimation engine: neurochemical and sleep-regulation state from event logs.

This package turns a history of activity events (sleep, caffeine, exercise,
meals, light, stress, social contact, screens, naps, interruptions) and
optional health measurements into point-in-time scores for seven
primitives: dopamine, serotonin, norepinephrine, adenosine, cortisol,
glucose and circadian phase.

Architecture
------------
1. **Properties** (`properties.py`)
   - Per-type property validation; malformed events are skipped, implausible
     values clamped and flagged

2. **Impact functions** (`impacts.py`)
   - One threshold-driven formula set per event type, held in a registry
     that :class:`EngineConfig` can override

3. **Decay & aggregation** (`decay.py`)
   - Windowed exponential decay with the acute / chronic dual timescale

4. **Process models** (`processes.py`)
   - Process S (adenosine), Process C (circadian phase), sleep drive and the
     diurnal cortisol rhythm

5. **Second passes**
   - Reciprocal inhibition + functional state (`classifier.py`)
   - Sequence patterns over the full history (`patterns.py`)
   - Cross-primitive modifiers (`modifiers.py`)
   - Physiological constraints from health measurements (`physiology.py`)

6. **Orchestrator** (`engine.py`)
   - :class:`PrimitiveEstimator` runs the stages as pure passes over an
     immutable pipeline state

Every estimate is deterministic, bounded to [0, 1] and explainable through
its contributors and adjustment reasons.
"""

from neuro_primitives.estimation.config import (
    CircadianConfig,
    EngineConfig,
    PatternConfig,
    SleepPressureConfig,
    WindowConfig,
)
from neuro_primitives.estimation.engine import PrimitiveEstimator, estimate
from neuro_primitives.estimation.errors import EstimationError, MalformedEventError
from neuro_primitives.estimation.impacts import compute_impacts, receptor_occupancy
from neuro_primitives.estimation.models import (
    AppliedConstraint,
    ConstraintKind,
    Contribution,
    EstimationResult,
    FunctionalState,
    FunctionalStateResult,
    ModifierApplication,
    PatternKind,
    PhysiologicalConstraint,
    PrimitiveEstimate,
    SequenceAdjustment,
    SkippedEvent,
    SleepDrive,
    SleepDriveStatus,
    ValueFlag,
)

__all__ = [
    "AppliedConstraint",
    "CircadianConfig",
    "ConstraintKind",
    "Contribution",
    "EngineConfig",
    "EstimationError",
    "EstimationResult",
    "FunctionalState",
    "FunctionalStateResult",
    "MalformedEventError",
    "ModifierApplication",
    "PatternConfig",
    "PatternKind",
    "PhysiologicalConstraint",
    "PrimitiveEstimate",
    "PrimitiveEstimator",
    "SequenceAdjustment",
    "SkippedEvent",
    "SleepDrive",
    "SleepDriveStatus",
    "SleepPressureConfig",
    "ValueFlag",
    "WindowConfig",
    "compute_impacts",
    "estimate",
    "receptor_occupancy",
]
