"""ISO 8601 week labels and axis breaks for weekly incidence."""

from __future__ import annotations

import math
from dataclasses import dataclass

import pandas as pd


@dataclass(slots=True)
class IsoBreaks:
    breaks: list
    labels: list[str]


def iso_week_labels(dates) -> list[str]:
    """Format dates as ISO weeks ``yyyy-Www``.

    The year is the ISO year, which differs from the calendar year for dates
    close to January 1st.

    Examples
    --------
    >>> iso_week_labels(["2019-12-30", "2021-01-03"])
    ['2020-W01', '2020-W53']
    """
    stamps = pd.Series(pd.to_datetime(pd.Series(dates)))
    if stamps.empty:
        return []
    iso = stamps.dt.isocalendar()
    return [f"{int(year):04d}-W{int(week):02d}" for year, week in zip(iso["year"], iso["week"])]


def make_iso_breaks(dates, n_breaks: int) -> IsoBreaks:
    """Pick a reduced, evenly spaced set of bucket starts for the x axis.

    Parameters
    ----------
    dates : sequence
        Bucket start dates.
    n_breaks : int
        Target number of breaks (a hint, not exact).

    Returns
    -------
    IsoBreaks
        Break positions (always including the first date) and their ISO week
        labels, of equal length.
    """
    values = list(pd.Series(dates))
    if not values:
        return IsoBreaks([], [])
    stride = max(1, math.ceil(len(values) / max(int(n_breaks), 1)))
    breaks = values[::stride]
    return IsoBreaks(breaks=breaks, labels=iso_week_labels(breaks))
