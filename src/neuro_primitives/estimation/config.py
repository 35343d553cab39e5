"""Engine configuration: windows, half-lives, baselines and formula set.

Every tunable of the estimation pipeline lives here as an explicit, frozen
value that is injected into :class:`~neuro_primitives.estimation.engine.PrimitiveEstimator`.
The documented thresholds of the impact formulas themselves are fixed in
:mod:`neuro_primitives.estimation.impacts`; swapping ``impact_functions``
replaces whole formulas for calibration experiments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict, Field

from neuro_primitives.estimation.impacts import default_impact_functions
from neuro_primitives.models import EventType, PrimitiveKind

if TYPE_CHECKING:
    from neuro_primitives.config import Settings

ImpactFunction = Callable[..., dict[PrimitiveKind, float]]


class WindowConfig(BaseModel):
    """Lookback window and decay half-life(s) for one primitive.

    ``half_life_hours`` is ``None`` for primitives computed by a dedicated
    process model instead of a decayed sum.  A chronic window turns on the
    dual (acute + chronic) timescale.
    """

    model_config = ConfigDict(frozen=True)

    window_hours: float = Field(gt=0.0)
    half_life_hours: float | None = Field(None, gt=0.0)
    chronic_window_hours: float | None = Field(None, gt=0.0)
    chronic_half_life_hours: float | None = Field(None, gt=0.0)

    @property
    def has_dual_timescale(self) -> bool:
        return self.chronic_window_hours is not None and self.chronic_half_life_hours is not None

    @property
    def max_window_hours(self) -> float:
        return max(self.window_hours, self.chronic_window_hours or 0.0)


def _default_windows() -> dict[PrimitiveKind, WindowConfig]:
    return {
        PrimitiveKind.DOPAMINE: WindowConfig(
            window_hours=12, half_life_hours=6, chronic_window_hours=72, chronic_half_life_hours=24
        ),
        PrimitiveKind.SEROTONIN: WindowConfig(
            window_hours=16, half_life_hours=8, chronic_window_hours=96, chronic_half_life_hours=36
        ),
        PrimitiveKind.NOREPINEPHRINE: WindowConfig(window_hours=12, half_life_hours=4),
        PrimitiveKind.CORTISOL: WindowConfig(window_hours=48, half_life_hours=12),
        PrimitiveKind.GLUCOSE: WindowConfig(window_hours=8, half_life_hours=2),
        PrimitiveKind.ADENOSINE: WindowConfig(window_hours=48),
        PrimitiveKind.CIRCADIAN_PHASE: WindowConfig(window_hours=168, half_life_hours=72),
    }


def _default_baselines() -> dict[PrimitiveKind, float]:
    return {
        PrimitiveKind.DOPAMINE: 0.5,
        PrimitiveKind.SEROTONIN: 0.5,
        PrimitiveKind.NOREPINEPHRINE: 0.5,
        PrimitiveKind.CORTISOL: 0.4,
        PrimitiveKind.GLUCOSE: 0.5,
        PrimitiveKind.ADENOSINE: 0.0,
        PrimitiveKind.CIRCADIAN_PHASE: 0.5,
    }


class SleepPressureConfig(BaseModel):
    """Process S (homeostatic adenosine) parameters."""

    model_config = ConfigDict(frozen=True)

    saturation: float = 0.85
    time_constant_hours: float = 16.0
    sleep_cycle_hours: float = 7.5
    sleep_clearance_scale: float = 0.85
    nap_clearance_per_minute: float = 0.0077
    caffeine_blockade_scale: float = 0.5
    caffeine_blockade_cap: float = 0.6


class CircadianConfig(BaseModel):
    """Process C (circadian phase) parameters."""

    model_config = ConfigDict(frozen=True)

    natural_drift_hours: float = 0.3
    morning_light_min_lux: float = 100.0
    score_min: float = 0.3
    score_max: float = 0.7
    hours_per_unit: float = 10.0  # phase offset hours per unit of score
    homeostatic_weight: float = 0.6  # sleep drive = 0.6 * S + 0.4 * C


class PatternConfig(BaseModel):
    """Sequence pattern thresholds and deltas."""

    model_config = ConfigDict(frozen=True)

    poor_sleep_hours: float = 6.0
    poor_sleep_count: int = 3
    sleep_deprivation_lookback_hours: float = 72.0

    withdrawal_min_events: int = 7
    withdrawal_min_daily_mg: float = 100.0
    withdrawal_gap_min_hours: float = 24.0
    withdrawal_gap_max_hours: float = 168.0
    withdrawal_peak_hours: float = 48.0
    withdrawal_decay_rate: float = 0.02

    late_caffeine_hours: float = 9.0
    late_caffeine_lookback_hours: float = 24.0

    synergy_min_sleep_hours: float = 7.0
    synergy_max_gap_hours: float = 6.0
    synergy_lookback_hours: float = 24.0


class EngineConfig(BaseModel):
    """Complete, immutable configuration of one estimator instance."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    windows: dict[PrimitiveKind, WindowConfig] = Field(default_factory=_default_windows)
    baselines: dict[PrimitiveKind, float] = Field(default_factory=_default_baselines)
    acute_weight: float = Field(0.7, ge=0.0, le=1.0)
    top_contributors: int = Field(5, ge=1)
    cortisol_diurnal_rhythm: bool = True
    sleep_pressure: SleepPressureConfig = Field(default_factory=SleepPressureConfig)
    circadian: CircadianConfig = Field(default_factory=CircadianConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    impact_functions: dict[EventType, ImpactFunction] = Field(
        default_factory=default_impact_functions
    )

    @property
    def chronic_weight(self) -> float:
        return 1.0 - self.acute_weight

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        """Build an engine configuration from runtime settings."""
        return cls(
            top_contributors=settings.top_contributors,
            cortisol_diurnal_rhythm=settings.cortisol_diurnal_rhythm,
        )
