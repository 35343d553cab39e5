"""Analysis helpers: pandas-based utilities for research workflows."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable

import pandas as pd

from neuro_primitives.estimation.engine import PrimitiveEstimator
from neuro_primitives.models import Event, PrimitiveKind

_PRIMITIVE_COLUMNS = [kind.value for kind in PrimitiveKind]


def estimate_timeline(
    events: Iterable[Event],
    start: datetime,
    end: datetime,
    *,
    resolution_hours: float = 1.0,
    estimator: PrimitiveEstimator | None = None,
) -> pd.DataFrame:
    """Sample primitive estimates from *start* to *end* (inclusive).

    Columns: one score per primitive, ``sleep_drive`` and
    ``functional_state``.  The ``timestamp`` column is set as the index for
    easy time-series work.
    """
    if resolution_hours <= 0:
        raise ValueError("resolution_hours must be positive")
    estimator = estimator or PrimitiveEstimator()
    events = list(events)
    step = timedelta(hours=resolution_hours)

    records = []
    t = start
    while t <= end:
        result = estimator.estimate(events, t)
        row: dict[str, Any] = {"timestamp": result.timestamp}
        for kind, est in result.primitives.items():
            row[kind.value] = est.score
        row["sleep_drive"] = result.sleep_drive.combined
        row["functional_state"] = result.functional_state.state.value
        records.append(row)
        t += step

    df = pd.DataFrame(records)
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        df = df.set_index("timestamp").sort_index()
    return df


def compute_summary(df: pd.DataFrame) -> dict[str, dict[str, Any]]:
    """Return per-primitive summary statistics for a timeline DataFrame."""
    summary: dict[str, dict[str, Any]] = {}
    for column in _PRIMITIVE_COLUMNS + ["sleep_drive"]:
        if df.empty or column not in df.columns:
            summary[column] = {"count": 0}
            continue
        series = df[column]
        summary[column] = {
            "count": int(series.count()),
            "mean": round(float(series.mean()), 3),
            "std": round(float(series.std()), 3) if series.count() > 1 else 0.0,
            "min": float(series.min()),
            "max": float(series.max()),
            "median": float(series.median()),
        }
    return summary


def resample_timeline(df: pd.DataFrame, rule: str = "1D") -> pd.DataFrame:
    """Resample a timeline DataFrame to a coarser resolution (mean per bin).

    Parameters
    ----------
    df:
        DataFrame with a ``DatetimeIndex`` as returned by :func:`estimate_timeline`.
    rule:
        Pandas offset alias (``'6h'``, ``'1D'``, etc.).
    """
    if df.empty:
        return df
    numeric = [c for c in _PRIMITIVE_COLUMNS + ["sleep_drive"] if c in df.columns]
    return df[numeric].resample(rule).mean()
