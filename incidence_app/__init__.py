"""Incidence curves: bin dated events, then chart them with optional trend fits."""

from incidence_app.analytics.aggregations.incidence import incidence
from incidence_app.analytics.aggregations.transforms import cumulate, pool, subset, to_frame, to_long_frame
from incidence_app.core.errors import (
    EmptyInputError,
    IncidenceError,
    IncompatibleOptions,
    InconsistentGroupLength,
    InvalidFitInput,
    InvalidInterval,
)
from incidence_app.core.models import DateKind, FitResult, FitResultList, IncidenceTable, IntervalRule
from incidence_app.visual.charts import add_incidence_fit, build_fit_chart, build_incidence_chart
from incidence_app.visual.palettes import incidence_pal1, incidence_pal1_dark, incidence_pal1_light
from incidence_app.visual.render import to_altair

__all__ = [
    "DateKind",
    "EmptyInputError",
    "FitResult",
    "FitResultList",
    "IncidenceError",
    "IncidenceTable",
    "IncompatibleOptions",
    "InconsistentGroupLength",
    "IntervalRule",
    "InvalidFitInput",
    "InvalidInterval",
    "add_incidence_fit",
    "build_fit_chart",
    "build_incidence_chart",
    "cumulate",
    "incidence",
    "incidence_pal1",
    "incidence_pal1_dark",
    "incidence_pal1_light",
    "pool",
    "subset",
    "to_altair",
    "to_frame",
    "to_long_frame",
]
