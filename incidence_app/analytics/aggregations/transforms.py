"""Derived views and transforms of incidence tables (pure functions)."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

import numpy as np
import pandas as pd

from incidence_app.analytics.metrics.binning import day_span
from incidence_app.analytics.metrics.isoweek import iso_week_labels
from incidence_app.core.config import UNGROUPED_COLUMN
from incidence_app.core.errors import EmptyInputError
from incidence_app.core.models import IncidenceTable


def to_long_frame(table: IncidenceTable) -> pd.DataFrame:
    """One row per bucket and group, zero counts included.

    Columns are ``dates``, ``counts`` and, for grouped tables, ``groups``
    (categorical, ordered as the table's groups). Rows are bucket-major.
    """
    n_buckets = len(table.dates)
    n_groups = table.n_groups
    dates = table.dates.reset_index(drop=True)
    out = pd.DataFrame(
        {
            "dates": dates.repeat(n_groups).reset_index(drop=True),
            "counts": table.counts.to_numpy().reshape(-1),
        }
    )
    if table.group_names:
        labels = list(table.group_names) * n_buckets
        out.insert(1, "groups", pd.Categorical(labels, categories=list(table.group_names)))
    return out


def to_frame(table: IncidenceTable) -> pd.DataFrame:
    """Wide frame: ``dates``, ``isoweeks`` when available, then one count column per group."""
    out = pd.DataFrame({"dates": table.dates.reset_index(drop=True)})
    if table.isoweeks is not None:
        out["isoweeks"] = list(table.isoweeks)
    return pd.concat([out, table.counts.reset_index(drop=True)], axis=1)


def cumulate(table: IncidenceTable) -> IncidenceTable:
    """Running totals of counts per group, flagged as cumulative."""
    if table.cumulative:
        raise ValueError("Incidence table is already cumulative")
    return replace(table, counts=table.counts.cumsum(), cumulative=True)


def _select_groups(table: IncidenceTable, groups) -> list[str]:
    if isinstance(groups, (str, int)):
        groups = [groups]
    selected: list[str] = []
    for g in groups:
        if isinstance(g, int) and not isinstance(g, bool):
            if not 0 <= g < table.n_groups:
                raise IndexError(f"Group position {g} out of range for {table.n_groups} groups")
            selected.append(table.counts.columns[g])
        elif str(g) in table.counts.columns:
            selected.append(str(g))
        else:
            raise KeyError(f"Unknown group: {g!r}")
    return selected


def subset(
    table: IncidenceTable,
    start=None,
    end=None,
    groups: Sequence | str | int | None = None,
) -> IncidenceTable:
    """Keep buckets starting within ``[start, end]`` and, optionally, some groups.

    Groups are selected by name or by position.
    """
    dates = table.dates.reset_index(drop=True)
    mask = pd.Series(True, index=dates.index)
    if start is not None:
        mask &= dates >= _bound(start, dates)
    if end is not None:
        mask &= dates <= _bound(end, dates)
    if not mask.any():
        raise EmptyInputError(f"No bucket starts within [{start}, {end}]")

    counts = table.counts.reset_index(drop=True).loc[mask]
    group_names = table.group_names
    if groups is not None:
        if not table.group_names:
            raise KeyError("Cannot select groups from an ungrouped incidence table")
        columns = _select_groups(table, groups)
        counts = counts[columns]
        group_names = tuple(columns)

    kept = dates.loc[mask].reset_index(drop=True)
    after = int(np.flatnonzero(mask.to_numpy())[-1]) + 1
    end = dates.iloc[after] if after < len(dates) else table.end
    if table.date_kind.is_temporal:
        timespan = day_span(kept.iloc[0], kept.iloc[-1])
    else:
        timespan = int(kept.iloc[-1] - kept.iloc[0])
    isoweeks = None
    if table.isoweeks is not None:
        isoweeks = tuple(iso_week_labels(kept))
    # a cumulative table carries its running total in the last row
    n = counts.iloc[-1].sum() if table.cumulative else counts.to_numpy().sum()
    return replace(
        table,
        dates=kept,
        counts=counts.reset_index(drop=True),
        timespan=timespan,
        n=int(n),
        group_names=group_names,
        isoweeks=isoweeks,
        end=end,
    )


def _bound(value, dates: pd.Series):
    if pd.api.types.is_datetime64_any_dtype(dates):
        ts = pd.Timestamp(value)
        tz = dates.dt.tz
        if tz is not None:
            return ts.tz_localize(tz) if ts.tzinfo is None else ts.tz_convert(tz)
        return ts
    return value


def pool(table: IncidenceTable) -> IncidenceTable:
    """Sum all groups into a single ungrouped count column."""
    pooled = table.counts.sum(axis=1).to_frame(UNGROUPED_COLUMN)
    return replace(table, counts=pooled, group_names=())
