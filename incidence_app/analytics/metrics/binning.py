"""Time binning utilities.

This module builds bucket boundaries for an interval rule, assigns values to
buckets, and computes the day-span of each bucket. Fixed-day rules give
constant widths; month, quarter and year buckets vary with the calendar.

Day arithmetic on tz-aware timestamps runs on local wall-clock values, so a
daylight-saving change never shortens a bucket or moves its start off
midnight.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from incidence_app.core.config import SECONDS_PER_DAY
from incidence_app.core.models import DateKind, IntervalRule

ONE_DAY = pd.Timedelta(days=1)


def _wall_clock(stamps):
    """Drop the time zone of ``stamps``, keeping local wall-clock values."""
    if isinstance(stamps, pd.Timestamp):
        return stamps.tz_localize(None) if stamps.tzinfo is not None else stamps
    stamps = pd.DatetimeIndex(stamps)
    return stamps.tz_localize(None) if stamps.tz is not None else stamps


def _localize(stamps: pd.DatetimeIndex, tz) -> pd.DatetimeIndex:
    if tz is None:
        return stamps
    # some zones skip or repeat midnight on a DST change
    return stamps.tz_localize(tz, ambiguous=np.ones(len(stamps), dtype=bool), nonexistent="shift_forward")


def day_span(start, end) -> int:
    """Calendar days from bucket start ``start`` to bucket start ``end``."""
    return int((_wall_clock(pd.Timestamp(end)) - _wall_clock(pd.Timestamp(start))) // ONE_DAY)


def _calendar_boundary(origin: pd.Timestamp, rule: IntervalRule, k: int) -> pd.Timestamp:
    # Offsets are taken from the origin each time so a day-31 origin does not drift.
    return origin + pd.DateOffset(months=k * rule.months)


def bucket_boundaries(origin, rule: IntervalRule, n_buckets: int, kind: DateKind):
    """Build ``n_buckets + 1`` contiguous boundaries starting at ``origin``.

    Parameters
    ----------
    origin : int or pd.Timestamp
        Start of the first bucket.
    rule : IntervalRule
        Resolved interval.
    n_buckets : int
        Number of buckets to cover.
    kind : DateKind
        Type of the binned values.

    Returns
    -------
    np.ndarray or pd.DatetimeIndex
        Integer boundaries for numeric values, timestamps otherwise (in the
        origin's time zone).
    """
    steps = np.arange(n_buckets + 1, dtype="int64")
    if not kind.is_temporal:
        return int(origin) + steps * rule.days
    origin = pd.Timestamp(origin)
    wall = _wall_clock(origin)
    if rule.is_calendar:
        naive = pd.DatetimeIndex([_calendar_boundary(wall, rule, int(k)) for k in steps])
    else:
        naive = pd.DatetimeIndex(wall + pd.to_timedelta(steps * rule.days, unit="D"))
    return _localize(naive, origin.tz)


def count_buckets(origin, last, rule: IntervalRule, kind: DateKind) -> int:
    """Number of buckets from ``origin`` needed to cover ``last``."""
    if not kind.is_temporal:
        return int((int(last) - int(origin)) // rule.days) + 1
    origin = _wall_clock(pd.Timestamp(origin))
    last = _wall_clock(pd.Timestamp(last))
    if not rule.is_calendar:
        return int((last - origin).days // rule.days) + 1
    month_gap = (last.year - origin.year) * 12 + (last.month - origin.month)
    n = max(month_gap // rule.months, 0) + 1
    while _calendar_boundary(origin, rule, n) <= last:
        n += 1
    while n > 1 and _calendar_boundary(origin, rule, n - 1) > last:
        n -= 1
    return n


def assign_buckets(values, origin, boundaries, rule: IntervalRule, kind: DateKind) -> np.ndarray:
    """Index of the half-open bucket ``[b[i], b[i+1])`` holding each value.

    Fixed rules use offset arithmetic, calendar rules a binary search over
    the boundaries. A value equal to a boundary belongs to the bucket that
    starts there.
    """
    if not kind.is_temporal:
        offsets = np.asarray(values, dtype="int64") - int(origin)
        return offsets // rule.days
    stamps = _wall_clock(values)
    if not rule.is_calendar:
        offsets = (stamps - _wall_clock(pd.Timestamp(origin))) // ONE_DAY
        return np.asarray(offsets, dtype="int64") // rule.days
    edges = _wall_clock(boundaries)
    positions = edges.as_unit("ns").searchsorted(stamps.as_unit("ns"), side="right")
    return np.asarray(positions, dtype="int64") - 1


def bucket_widths(dates, rule: IntervalRule, kind: DateKind, end=None) -> np.ndarray:
    """Day-span of each bucket.

    Parameters
    ----------
    dates : pd.Series
        Bucket starts, contiguous and increasing.
    rule : IntervalRule
        Interval the buckets were built with.
    kind : DateKind
        Type of the bucket starts.
    end : pd.Timestamp, optional
        Exclusive end of the last bucket.

    Returns
    -------
    np.ndarray
        One integer width per bucket. For calendar rules the width of bucket
        ``i`` is ``dates[i+1] - dates[i]`` and the last bucket runs to
        ``end``; without ``end`` it is measured by projecting one more
        boundary forward from the last start.
    """
    n = len(dates)
    if not rule.is_calendar:
        return np.full(n, rule.days, dtype="int64")
    if n == 0:
        return np.zeros(0, dtype="int64")
    starts = _wall_clock(dates)
    if end is None:
        last = starts[-1] + pd.DateOffset(months=rule.months)
    else:
        last = _wall_clock(pd.Timestamp(end))
    ends = starts[1:].append(pd.DatetimeIndex([last]))
    return np.asarray((ends - starts) // ONE_DAY, dtype="int64")


def axis_widths(widths, kind: DateKind) -> np.ndarray:
    """Express day widths in x-axis units (seconds on a date-time axis)."""
    out = np.asarray(widths, dtype="float64")
    if kind is DateKind.DATETIME:
        return out * SECONDS_PER_DAY
    return out


def shift_by_days(dates, days, kind: DateKind):
    """Add a (possibly fractional) number of days to each bucket start."""
    if not kind.is_temporal:
        return pd.Series(pd.Series(dates).to_numpy(dtype="float64") + np.asarray(days, dtype="float64"))
    offsets = pd.to_timedelta(np.asarray(days, dtype="float64") * SECONDS_PER_DAY, unit="s")
    stamps = pd.DatetimeIndex(dates)
    return pd.Series(_localize(_wall_clock(stamps) + offsets, stamps.tz))
