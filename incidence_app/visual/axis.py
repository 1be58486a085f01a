"""Axis break helpers for incidence charts.

Provides "pretty" break sequences for numeric and date axes, and the
approximate calendar step used as tick generator for month, quarter and year
incidence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from incidence_app.core.models import DateKind, IntervalRule

# Rounding bias towards the larger unit, as in the classic "pretty" algorithm
_HIGH_BIAS = 1.5
_HIGH_BIAS_5 = 0.5 + 1.5 * _HIGH_BIAS

# Candidate calendar steps for date axes, finest first
_DATE_STEPS: tuple[tuple[str, int], ...] = (
    ("day", 1),
    ("day", 2),
    ("week", 1),
    ("month", 1),
    ("month", 3),
    ("month", 6),
    ("year", 1),
    ("year", 2),
    ("year", 5),
    ("year", 10),
    ("year", 20),
    ("year", 50),
    ("year", 100),
)


@dataclass(frozen=True, slots=True)
class DateStep:
    """Calendar distance between ticks, e.g. ``DateStep("month", 2)``."""

    unit: str
    step: int

    def __str__(self) -> str:
        return f"{self.step} {self.unit}{'s' if self.step != 1 else ''}"


def pretty_numeric(low: float, high: float, n: int = 5) -> list[float]:
    """Round, evenly spaced values covering ``[low, high]``.

    The spacing is 1, 2 or 5 times a power of ten, chosen so that roughly
    ``n`` intervals cover the range.

    Examples
    --------
    >>> pretty_numeric(1, 3, 6)
    [1.0, 1.5, 2.0, 2.5, 3.0]
    """
    low, high = float(low), float(high)
    if high < low:
        low, high = high, low
    if math.isclose(low, high):
        return [low]
    cell = (high - low) / max(int(n), 1)
    unit = 10 ** math.floor(math.log10(cell))
    if 2 * unit - cell < _HIGH_BIAS * (cell - unit):
        unit *= 2
        if 5 * unit / 2 - cell < _HIGH_BIAS_5 * (cell - unit):
            unit = unit * 5 / 2
            if 10 * unit / 5 - cell < _HIGH_BIAS * (cell - unit):
                unit = unit * 2
    start = math.floor(low / unit + 1e-7)
    stop = math.ceil(high / unit - 1e-7)
    return [round(k * unit, 10) for k in range(start, stop + 1)]


def _floor_to_step(ts: pd.Timestamp, unit: str, step: int) -> pd.Timestamp:
    ts = ts.normalize()
    if unit == "week":
        return ts - pd.Timedelta(days=ts.weekday())
    if unit == "month":
        return ts.replace(month=step * ((ts.month - 1) // step) + 1, day=1)
    if unit == "year":
        return ts.replace(year=step * (ts.year // step), month=1, day=1)
    return ts


def _offset(unit: str, step: int) -> pd.DateOffset:
    if unit == "day":
        return pd.DateOffset(days=step)
    if unit == "week":
        return pd.DateOffset(weeks=step)
    if unit == "month":
        return pd.DateOffset(months=step)
    return pd.DateOffset(years=step)


def _date_ticks(low: pd.Timestamp, high: pd.Timestamp, unit: str, step: int) -> list[pd.Timestamp]:
    first = _floor_to_step(low, unit, step)
    offset = _offset(unit, step)
    ticks = [first]
    while ticks[-1] < high:
        ticks.append(ticks[-1] + offset)
    return ticks


def pretty_dates(low, high, n: int = 5) -> list[pd.Timestamp]:
    """Calendar-aligned breaks (days, weeks, months or years) covering ``[low, high]``."""
    low, high = pd.Timestamp(low), pd.Timestamp(high)
    if high < low:
        low, high = high, low
    if low == high:
        return [low]
    target = max(int(n), 1)
    best: list[pd.Timestamp] = []
    best_score = math.inf
    for unit, step in _DATE_STEPS:
        ticks = _date_ticks(low, high, unit, step)
        score = abs(len(ticks) - 1 - target)
        if score < best_score:
            best, best_score = ticks, score
        if len(ticks) - 1 < target:
            break
    return best


def pretty_breaks(dates, kind: DateKind, n: int = 5) -> list:
    """Pretty breaks over the range of ``dates`` for the given axis type."""
    values = pd.Series(dates)
    if values.empty:
        return []
    if kind.is_temporal:
        return pretty_dates(values.min(), values.max(), n)
    return pretty_numeric(values.min(), values.max(), n)


def date_break_step(rule: IntervalRule, timespan: int, widths, n_breaks: int) -> DateStep | None:
    """Approximate tick spacing for calendar-unit incidence.

    Parameters
    ----------
    rule : IntervalRule
        Interval of the table; only calendar rules get a step.
    timespan : int
        Days between the first and last bucket starts.
    widths : array-like
        Day width of every bucket.
    n_breaks : int
        Target number of breaks.

    Returns
    -------
    DateStep or None
        ``ceil(timespan / (n_breaks * mean width))`` units (at least one);
        quarters are expressed as three months each.
    """
    if not rule.is_calendar:
        return None
    mean_width = float(np.mean(widths)) if len(widths) else 0.0
    if mean_width <= 0:
        return None
    raw = timespan / (max(int(n_breaks), 1) * mean_width)
    step = max(math.ceil(raw), 1)
    if rule.unit == "quarter":
        return DateStep("month", step * 3)
    return DateStep(rule.unit, step)
