"""Domain data models for incidence tables, interval rules, and fit overlays."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from .config import CALENDAR_UNIT_MONTHS
from .errors import InvalidFitInput


class DateKind(Enum):
    NUMERIC = "numeric"
    DATE = "date"
    DATETIME = "datetime"

    @property
    def is_temporal(self) -> bool:
        return self is not DateKind.NUMERIC


@dataclass(frozen=True, slots=True)
class IntervalRule:
    """Resolved binning rule: a fixed number of days or a calendar unit."""

    days: int | None = None
    unit: str | None = None

    @property
    def is_calendar(self) -> bool:
        return self.unit is not None

    @property
    def months(self) -> int | None:
        if self.unit is None:
            return None
        return CALENDAR_UNIT_MONTHS[self.unit]

    @property
    def value(self) -> int | str:
        return self.unit if self.unit is not None else self.days


@dataclass(frozen=True, slots=True)
class IncidenceTable:
    dates: pd.Series
    counts: pd.DataFrame
    rule: IntervalRule
    date_kind: DateKind
    timespan: int
    n: int
    group_names: tuple[str, ...] = ()
    isoweeks: tuple[str, ...] | None = None
    cumulative: bool = False
    end: Any = None  # exclusive end of the last bucket

    def __post_init__(self):
        if len(self.dates) != len(self.counts):
            raise ValueError(f"{len(self.dates)} bucket dates for {len(self.counts)} rows of counts")
        if self.isoweeks is not None and len(self.isoweeks) != len(self.dates):
            raise ValueError("isoweeks must have one label per bucket")

    @property
    def interval(self) -> int | str:
        return self.rule.value

    @property
    def n_groups(self) -> int:
        return self.counts.shape[1]

    @property
    def widths(self) -> np.ndarray:
        """Day-span of every bucket."""
        from incidence_app.analytics.metrics.binning import bucket_widths

        return bucket_widths(self.dates, self.rule, self.date_kind, self.end)


@dataclass(frozen=True, slots=True)
class FitResult:
    """Predictions of an externally fitted log-linear model.

    ``predictions`` holds one row per date with the predicted value (``fit``)
    and its confidence bounds (``lwr``, ``upr``); a ``groups`` column is
    optional.
    """

    predictions: pd.DataFrame

    REQUIRED_COLUMNS = ("dates", "fit", "lwr", "upr")

    def __post_init__(self):
        if not isinstance(self.predictions, pd.DataFrame):
            raise InvalidFitInput(
                f"Fit predictions must be a DataFrame, not {type(self.predictions).__name__}"
            )
        missing = [c for c in self.REQUIRED_COLUMNS if c not in self.predictions.columns]
        if missing:
            raise InvalidFitInput(f"Fit predictions lack column(s): {', '.join(missing)}")

    @property
    def groups(self) -> tuple[str, ...] | None:
        if "groups" not in self.predictions.columns:
            return None
        col = self.predictions["groups"]
        if isinstance(col.dtype, pd.CategoricalDtype):
            return tuple(str(c) for c in col.cat.categories)
        return tuple(str(g) for g in pd.unique(col.dropna()))


@dataclass(frozen=True, slots=True)
class FitResultList:
    """Several fits overlaid together, e.g. before and after a peak."""

    fits: tuple[FitResult, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for pos, item in enumerate(self.fits, start=1):
            if not isinstance(item, FitResult):
                raise InvalidFitInput(
                    f"The {pos}-th item of the fit list is not a FitResult, but a {type(item).__name__}"
                )
