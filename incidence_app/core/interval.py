"""Interval resolution: turn a user interval into a concrete binning rule.

An interval is either a positive number of days or a calendar unit name
("day", "week", "month", "quarter", "year"; singular or plural, any case).
Day and week resolve to fixed rules of 1 and 7 days. Month, quarter and year
stay calendar rules whose buckets vary in length and are only meaningful for
date inputs.
"""

from __future__ import annotations

import math
import numbers
import re

import pandas as pd

from .config import CALENDAR_UNIT_MONTHS, FIXED_UNIT_DAYS, INTERVAL_UNITS, ISO_WEEK_DAYS
from .errors import InvalidInterval
from .models import DateKind, IntervalRule


def normalize_unit(value: str) -> str:
    """Case-fold a unit name and strip its plural "s".

    Examples
    --------
    >>> normalize_unit("  Weeks ")
    'week'
    >>> normalize_unit("QUARTERS")
    'quarter'
    """
    text = str(value).strip().lower()
    return re.sub(r"^([a-z]+?)s*$", r"\1", text)


def _fixed_rule(days, original) -> IntervalRule:
    if days <= 0:
        raise InvalidInterval(f"Interval must be a positive number of days, got {original!r}")
    return IntervalRule(days=int(days))


def resolve_interval(interval, kind: DateKind = DateKind.DATE) -> IntervalRule:
    """Resolve ``interval`` into an :class:`IntervalRule`.

    Parameters
    ----------
    interval : int or str
        Number of days per bucket, or a unit name.
    kind : DateKind
        Type of the values being binned; calendar units require dates.

    Returns
    -------
    IntervalRule
        A new rule; ``interval`` itself is never modified.

    Raises
    ------
    InvalidInterval
        For unknown units, non-positive or fractional day counts, booleans,
        and calendar units requested on numeric values.
    """
    if isinstance(interval, bool) or interval is None:
        raise InvalidInterval(f"Interval must be a positive integer or a unit name, got {interval!r}")

    if isinstance(interval, str):
        text = interval.strip().lower()
        if text.isdigit():
            return _fixed_rule(int(text), interval)
        unit = normalize_unit(text)
        if unit in FIXED_UNIT_DAYS:
            return IntervalRule(days=FIXED_UNIT_DAYS[unit])
        if unit in CALENDAR_UNIT_MONTHS:
            if kind is DateKind.NUMERIC:
                raise InvalidInterval(
                    f"Interval {interval!r} is a calendar unit and needs dates, not numeric values"
                )
            return IntervalRule(unit=unit)
        raise InvalidInterval(
            f"Unrecognised interval {interval!r}; expected a number of days or one of: "
            + ", ".join(INTERVAL_UNITS)
        )

    if isinstance(interval, numbers.Integral):
        return _fixed_rule(int(interval), interval)
    if isinstance(interval, numbers.Real):
        value = float(interval)
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidInterval(f"Interval must be a whole number of days, got {interval!r}")
        return _fixed_rule(int(value), interval)

    raise InvalidInterval(
        f"Interval must be a positive integer or a unit name, not {type(interval).__name__}"
    )


def aligns_to_weeks(rule: IntervalRule, kind: DateKind, standard: bool) -> bool:
    """True when buckets start on ISO week Mondays."""
    return (
        standard
        and kind.is_temporal
        and not rule.is_calendar
        and rule.days % ISO_WEEK_DAYS == 0
    )


def has_isoweeks(rule: IntervalRule, kind: DateKind, standard: bool) -> bool:
    return aligns_to_weeks(rule, kind, standard) and rule.days == ISO_WEEK_DAYS


def standard_origin(reference, rule: IntervalRule, kind: DateKind, standard: bool = True):
    """Return the first bucket start for a reference value.

    With ``standard`` on date inputs the reference is snapped back to the
    start of the calendar unit containing it: the Monday of its ISO week for
    week-multiple rules, the 1st of its month, quarter or year for calendar
    rules. Otherwise the reference is the origin.
    """
    if not standard or not kind.is_temporal:
        return reference

    ts = pd.Timestamp(reference).normalize()
    if rule.is_calendar:
        if rule.unit == "month":
            return ts.replace(day=1)
        if rule.unit == "quarter":
            return ts.replace(month=3 * ((ts.month - 1) // 3) + 1, day=1)
        return ts.replace(month=1, day=1)
    if rule.days % ISO_WEEK_DAYS == 0:
        return ts - pd.DateOffset(days=ts.weekday())
    return ts
