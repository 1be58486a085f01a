"""Incidence aggregation: count dated events per time bucket and group."""

from __future__ import annotations

import datetime as dt
import logging
import warnings

import numpy as np
import pandas as pd
import pytz
from pandas.api.types import is_bool_dtype, is_datetime64_any_dtype, is_numeric_dtype

from incidence_app.analytics.metrics.binning import assign_buckets, bucket_boundaries, count_buckets, day_span
from incidence_app.analytics.metrics.isoweek import iso_week_labels
from incidence_app.core.config import DEFAULT_TIMEZONE, MISSING_GROUP_LABEL, UNGROUPED_COLUMN
from incidence_app.core.errors import EmptyInputError, InconsistentGroupLength
from incidence_app.core.interval import has_isoweeks, resolve_interval, standard_origin
from incidence_app.core.models import DateKind, IncidenceTable

logger = logging.getLogger(__name__)


def _as_series(values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.reset_index(drop=True).copy()
    if isinstance(values, (pd.Index, np.ndarray, pd.Categorical)):
        return pd.Series(values).copy()
    return pd.Series(list(values))


def _warn(message: str) -> None:
    logger.debug(message)
    warnings.warn(message, UserWarning, stacklevel=3)


def detect_kind(values: pd.Series) -> DateKind:
    """Classify event values as numeric, calendar dates, or date-times.

    Naive datetime64 values that all fall on midnight are calendar dates;
    ``datetime.date`` objects and ISO date strings are calendar dates as well.
    """
    non_null = values.dropna()
    if is_bool_dtype(values):
        raise TypeError("Event values must be numbers or dates, not booleans")
    if is_datetime64_any_dtype(values):
        stamps = pd.DatetimeIndex(non_null)
        if stamps.tz is None and (stamps == stamps.normalize()).all():
            return DateKind.DATE
        return DateKind.DATETIME
    if is_numeric_dtype(values):
        return DateKind.NUMERIC
    if non_null.empty:
        return DateKind.NUMERIC
    if all(isinstance(v, dt.datetime) for v in non_null):
        return DateKind.DATETIME
    if all(isinstance(v, dt.date) for v in non_null):
        return DateKind.DATE
    if all(isinstance(v, str) for v in non_null):
        stamps = pd.DatetimeIndex(pd.to_datetime(non_null, format="ISO8601"))
        if stamps.tz is None and (stamps == stamps.normalize()).all():
            return DateKind.DATE
        return DateKind.DATETIME
    kinds = sorted({type(v).__name__ for v in non_null})
    raise TypeError(f"Event values must share one numeric or date type, got: {', '.join(kinds)}")


def _to_timestamps(values: pd.Series) -> pd.Series:
    """Convert temporal values to datetime64, unifying mixed time zones."""
    if is_datetime64_any_dtype(values):
        return values
    if values.map(lambda v: isinstance(v, str)).all():
        return pd.to_datetime(values, format="ISO8601")
    zones = {str(v.tzinfo) for v in values if getattr(v, "tzinfo", None) is not None}
    if len(zones) > 1:
        logger.debug("Converting date-times from %d time zones to %s", len(zones), DEFAULT_TIMEZONE)
        return pd.to_datetime(values, utc=True).dt.tz_convert(pytz.timezone(DEFAULT_TIMEZONE))
    return pd.to_datetime(values)


def _coerce_bound(value, kind: DateKind, tz):
    if value is None:
        return None
    if not kind.is_temporal:
        return int(np.floor(float(value)))
    ts = pd.Timestamp(value)
    if tz is not None:
        ts = ts.tz_localize(tz) if ts.tzinfo is None else ts.tz_convert(tz)
    elif ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def _group_order(labels: pd.Series) -> list:
    if isinstance(labels.dtype, pd.CategoricalDtype):
        return list(labels.cat.categories)
    return list(pd.Categorical(labels.dropna()).categories)


def _missing_group_label(group_names: list[str]) -> str:
    label = MISSING_GROUP_LABEL
    suffix = 0
    while label in group_names:
        suffix += 1
        label = f"{MISSING_GROUP_LABEL}.{suffix}"
    if suffix:
        logger.warning(
            'A group is already named "%s"; events without a group are counted as "%s".',
            MISSING_GROUP_LABEL,
            label,
        )
    return label


def incidence(
    dates,
    interval=1,
    *,
    groups=None,
    standard: bool = True,
    first_date=None,
    last_date=None,
    na_as_group: bool = True,
) -> IncidenceTable:
    """Bin event dates into contiguous buckets and count them.

    Parameters
    ----------
    dates : sequence
        Event values: integers, floats, ``date``/``datetime`` objects,
        datetime64 values, or ISO date strings (one type per call).
    interval : int or str
        Days per bucket, or "day", "week", "month", "quarter", "year".
    groups : sequence, optional
        Group label of every event; a pandas Categorical keeps its category
        order, other labels are sorted.
    standard : bool
        Snap the first bucket to the start of its calendar unit (ISO week
        Monday, first of month/quarter/year) instead of the first date.
    first_date, last_date : optional
        Bounds of the counted range; events outside are dropped with a
        warning. Buckets extend up to ``last_date`` when given.
    na_as_group : bool
        Count events without a group label in their own "NA" group instead of
        dropping them.

    Returns
    -------
    IncidenceTable
        Counts per bucket (rows) and group (columns).

    Raises
    ------
    InconsistentGroupLength
        When ``groups`` and ``dates`` differ in length.
    InvalidInterval
        When ``interval`` cannot be resolved.
    EmptyInputError
        When no event is left after dropping invalid or out-of-range values.
    """
    values = _as_series(dates)
    labels = None
    if groups is not None:
        labels = _as_series(groups)
        if len(labels) != len(values):
            raise InconsistentGroupLength(len(values), len(labels))

    kind = detect_kind(values)
    rule = resolve_interval(interval, kind)

    frame = pd.DataFrame({"value": values})
    if labels is not None:
        frame["group"] = labels

    missing = frame["value"].isna()
    if missing.any():
        _warn(f"{int(missing.sum())} missing observations were removed.")
        frame = frame.loc[~missing]

    group_names: list[str] = []
    if labels is not None:
        order = _group_order(frame["group"])
        no_group = frame["group"].isna()
        if no_group.any() and not na_as_group:
            _warn(f"{int(no_group.sum())} observations with a missing group were removed.")
            frame = frame.loc[~no_group]
        group_names = [str(g) for g in order]
        group_col = frame["group"].astype(object).map(str, na_action="ignore")
        if no_group.any() and na_as_group:
            missing_label = _missing_group_label(group_names)
            group_col = group_col.fillna(missing_label)
            group_names.append(missing_label)
        frame = frame.assign(group=group_col)

    tz = None
    if kind.is_temporal:
        stamps = _to_timestamps(frame["value"])
        tz = stamps.dt.tz
        frame = frame.assign(value=stamps.dt.normalize())
    else:
        numeric = frame["value"].astype("float64")
        fractional = numeric != np.floor(numeric)
        if fractional.any():
            _warn(f"{int(fractional.sum())} non-integer values were floored to the nearest integer below.")
        frame = frame.assign(value=np.floor(numeric).astype("int64"))

    first = _coerce_bound(first_date, kind, tz)
    last = _coerce_bound(last_date, kind, tz)
    outside = pd.Series(False, index=frame.index)
    if first is not None:
        outside |= frame["value"] < first
    if last is not None:
        outside |= frame["value"] > last
    if outside.any():
        _warn(f"{int(outside.sum())} observations outside of [{first}, {last}] were removed.")
        frame = frame.loc[~outside]

    if frame.empty:
        raise EmptyInputError("No observations left to compute incidence from")

    reference = first if first is not None else frame["value"].min()
    upper = last if last is not None else frame["value"].max()
    origin = standard_origin(reference, rule, kind, standard)
    n_buckets = count_buckets(origin, upper, rule, kind)
    boundaries = bucket_boundaries(origin, rule, n_buckets, kind)
    frame = frame.assign(bucket=assign_buckets(frame["value"], origin, boundaries, rule, kind))
    logger.debug("Binned %d observations into %d buckets of %s", len(frame), n_buckets, rule.value)

    if labels is None:
        counts = (
            frame.groupby("bucket").size().reindex(range(n_buckets), fill_value=0).to_frame(UNGROUPED_COLUMN)
        )
    else:
        counts = (
            frame.groupby(["bucket", "group"]).size()
            .unstack("group", fill_value=0)
            .reindex(index=range(n_buckets), columns=group_names, fill_value=0)
        )
    counts = counts.astype("int64").reset_index(drop=True)
    counts.columns = pd.Index([str(c) for c in counts.columns])

    starts = boundaries[:-1]
    if kind.is_temporal:
        bucket_dates = pd.Series(starts, name="dates")
        timespan = day_span(starts[0], starts[-1])
    else:
        bucket_dates = pd.Series(starts, dtype="int64", name="dates")
        timespan = int(starts[-1] - starts[0])

    isoweeks = None
    if has_isoweeks(rule, kind, standard):
        isoweeks = tuple(iso_week_labels(bucket_dates))

    return IncidenceTable(
        dates=bucket_dates,
        counts=counts,
        rule=rule,
        date_kind=kind,
        timespan=timespan,
        n=int(counts.to_numpy().sum()),
        group_names=tuple(group_names),
        isoweeks=isoweeks,
        end=boundaries[-1] if kind.is_temporal else int(boundaries[-1]),
    )
