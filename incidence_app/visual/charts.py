"""Chart builders for incidence tables and fitted trends.

The builders return a :class:`ChartSpec`: a declarative description made of
layers (data + mark + channel mapping), scales and labels. It can be rendered
with :func:`incidence_app.visual.render.to_altair`.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np
import pandas as pd

from incidence_app.analytics.aggregations.transforms import to_long_frame
from incidence_app.analytics.metrics.binning import axis_widths, shift_by_days
from incidence_app.analytics.metrics.isoweek import make_iso_breaks
from incidence_app.core.config import (
    DEFAULT_ALPHA,
    DEFAULT_CASE_BORDER,
    DEFAULT_COLOR,
    DEFAULT_FIT_COLOR,
    DEFAULT_N_BREAKS,
    FIT_ONLY_LABEL,
    FIXED_PERIOD_LABEL,
    INCIDENCE_LABELS,
    UNGROUPED_COLUMN,
)
from incidence_app.core.errors import IncompatibleOptions, InvalidFitInput
from incidence_app.core.models import DateKind, FitResult, FitResultList, IncidenceTable
from incidence_app.visual.axis import DateStep, date_break_step, pretty_breaks
from incidence_app.visual.palettes import Palette, incidence_pal1

logger = logging.getLogger(__name__)

DASHED = (4, 4)


@dataclass(slots=True)
class LayerSpec:
    """One geometry layer.

    ``encoding`` maps visual channels (x, x2, y, y2, fill, color, ...) to
    columns of ``data``; ``params`` holds constant mark properties.
    """

    name: str
    mark: str
    data: pd.DataFrame
    encoding: dict[str, str]
    position: str | None = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AxisSpec:
    kind: DateKind
    breaks: list = field(default_factory=list)
    labels: list[str] | None = None
    date_step: DateStep | None = None
    iso_weeks: bool = False


@dataclass(slots=True)
class ColorScaleSpec:
    domain: list[str]
    range: list[str]
    legend: bool = True


@dataclass(slots=True)
class ChartSpec:
    layers: list[LayerSpec]
    xlab: str = ""
    ylab: str = ""
    x_axis: AxisSpec | None = None
    fill_scale: ColorScaleSpec | None = None
    color_scale: ColorScaleSpec | None = None

    def layer(self, name: str) -> LayerSpec | None:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    @property
    def layer_names(self) -> list[str]:
        return [layer.name for layer in self.layers]


# ------------------ Labels ------------------
def incidence_label(table: IncidenceTable) -> str:
    """Default y-axis label for the table's interval.

    Examples: 1 day → "Daily incidence", 14 days → "Biweekly incidence",
    10 days → "Incidence by period of 10 days", "month" → "Monthly incidence".
    """
    value = table.interval
    label = INCIDENCE_LABELS.get(value)
    if label is None:
        label = FIXED_PERIOD_LABEL % value
    if table.cumulative:
        if "incidence" in label:
            label = label.replace("incidence", "cumulative incidence", 1)
        else:
            label = "Cumulative " + label[0].lower() + label[1:]
    return label


# ------------------ Fit inputs ------------------
def normalize_fits(fit) -> list[FitResult]:
    """Flatten the ``fit`` argument into a list of :class:`FitResult`.

    Accepts None, a FitResult, a FitResultList, or a list/tuple of those.
    """
    if fit is None:
        return []
    if isinstance(fit, FitResult):
        return [fit]
    if isinstance(fit, FitResultList):
        return list(fit.fits)
    if isinstance(fit, (list, tuple)):
        out: list[FitResult] = []
        for pos, item in enumerate(fit, start=1):
            if isinstance(item, FitResult):
                out.append(item)
            elif isinstance(item, FitResultList):
                out.extend(item.fits)
            else:
                raise InvalidFitInput(
                    f"The {pos}-th item in 'fit' is not a FitResult object, but a {type(item).__name__}"
                )
        return out
    raise InvalidFitInput(
        f"Fit must be a FitResult object, or a list of these, not {type(fit).__name__}"
    )


# ------------------ Colors ------------------
def _is_default_color(color) -> bool:
    return isinstance(color, str) and color == DEFAULT_COLOR


def resolve_group_colors(color, group_names: Sequence[str], col_pal: Palette = incidence_pal1) -> list[str]:
    """Pick one color per group.

    ``color`` may be a single color, a sequence (applied by position) or a
    mapping from group name to color. Names that match no group are reported
    and ignored. When the number of colors does not match the number of
    groups the palette ``col_pal`` is used instead.
    """
    n_groups = len(group_names)
    if isinstance(color, str):
        colors = [color]
    elif isinstance(color, Mapping):
        unused = [name for name in color if name not in group_names]
        if unused:
            removed = '", "'.join(f'{name}" = "{color[name]}' for name in unused)
            logger.warning('%d colors were not used: "%s"', len(unused), removed)
        colors = [color[name] for name in group_names if name in color]
    elif isinstance(color, Sequence):
        colors = [str(c) for c in color]
    else:
        raise TypeError(f"Colors must be a string, a sequence or a mapping, not {type(color).__name__}")

    if len(colors) == n_groups:
        return colors
    if not _is_default_color(color):
        logger.warning(
            "The number of colors (%d) did not match the number of groups (%d).\nUsing `col_pal` instead.",
            len(colors),
            n_groups,
        )
    palette = list(col_pal(n_groups))
    if len(palette) != n_groups:
        raise ValueError(f"Palette returned {len(palette)} colors for {n_groups} groups")
    return palette


def _single_color(color) -> str:
    if isinstance(color, str):
        return color
    if isinstance(color, Mapping):
        values = list(color.values())
    elif isinstance(color, Sequence):
        values = list(color)
    else:
        raise TypeError(f"Colors must be a string, a sequence or a mapping, not {type(color).__name__}")
    if not values:
        raise ValueError("At least one color is required")
    return str(values[0])


# ------------------ Geometry ------------------
def bar_frame(table: IncidenceTable, stack: bool = True) -> pd.DataFrame:
    """Long-format bar data with left-aligned geometry.

    Each row is one bucket × group. ``x`` is the bucket start shifted by half
    its width so the bar's left edge sits on the date the bucket refers to;
    ``width`` is the bucket width in axis units. ``xmin``/``xmax`` and
    ``ymin``/``ymax`` are the rectangle extents for the requested layout.
    """
    long = to_long_frame(table)
    if "groups" not in long.columns:
        long.insert(1, "groups", pd.Categorical([UNGROUPED_COLUMN] * len(long)))
    n_groups = table.n_groups
    kind = table.date_kind

    days = np.repeat(table.widths, n_groups).astype("float64")
    long["interval_days"] = days
    long["width"] = axis_widths(days, kind)
    long["x"] = shift_by_days(long["dates"], days / 2, kind)

    slot = np.tile(np.arange(n_groups), len(table.dates))
    counts = long["counts"].to_numpy(dtype="float64")
    if stack:
        bucket = np.repeat(np.arange(len(table.dates)), n_groups)
        top = pd.Series(counts).groupby(bucket).cumsum().to_numpy()
        long["xmin"] = long["dates"]
        long["xmax"] = shift_by_days(long["dates"], days, kind)
        long["ymin"] = top - counts
        long["ymax"] = top
    else:
        share = days / n_groups
        long["xmin"] = shift_by_days(long["dates"], share * slot, kind)
        long["xmax"] = shift_by_days(long["dates"], share * (slot + 1), kind)
        long["ymin"] = 0.0
        long["ymax"] = counts
    return long


def case_frame(bars: pd.DataFrame) -> pd.DataFrame:
    """Expand stacked bars into one unit-height row per case."""
    counts = bars["counts"].astype("int64").clip(lower=0)
    cases = bars.loc[bars.index.repeat(counts.to_numpy())].copy()
    offset = cases.groupby(level=0).cumcount().to_numpy(dtype="float64")
    cases["ymin"] = cases["ymin"].to_numpy() + offset
    cases["ymax"] = cases["ymin"] + 1.0
    cases["counts"] = 1
    return cases.reset_index(drop=True)


# ------------------ Axis ------------------
def build_x_axis(table: IncidenceTable, labels_iso: bool, n_breaks: int) -> AxisSpec:
    if labels_iso and table.isoweeks is not None:
        iso = make_iso_breaks(table.dates, n_breaks)
        return AxisSpec(kind=table.date_kind, breaks=iso.breaks, labels=iso.labels, iso_weeks=True)
    breaks = pretty_breaks(table.dates, table.date_kind, n_breaks)
    step = None
    if table.date_kind.is_temporal:
        step = date_break_step(table.rule, table.timespan, table.widths, n_breaks)
    return AxisSpec(kind=table.date_kind, breaks=breaks, date_step=step)


def _fit_axis_kind(fits: list[FitResult]) -> DateKind:
    for item in fits:
        dates = item.predictions["dates"]
        if pd.api.types.is_datetime64_any_dtype(dates) or pd.api.types.is_object_dtype(dates):
            return DateKind.DATE
    return DateKind.NUMERIC


# ------------------ Fit overlay ------------------
def _fit_color_scale(
    fits: list[FitResult],
    fill_scale: ColorScaleSpec | None,
    col_pal: Palette,
) -> ColorScaleSpec | None:
    fit_groups: list[str] = []
    for item in fits:
        for g in item.groups or ():
            if g not in fit_groups:
                fit_groups.append(g)
    if not fit_groups:
        return None
    known: dict[str, str] = {}
    if fill_scale is not None and fill_scale.legend:
        known = dict(zip(fill_scale.domain, fill_scale.range))
    domain = list(known) + [g for g in fit_groups if g not in known]
    palette = list(col_pal(len(domain)))
    colors = [known.get(g, palette[i]) for i, g in enumerate(domain)]
    return ColorScaleSpec(domain=domain, range=colors, legend=True)


def _fit_layers(fits: list[FitResult]) -> list[LayerSpec]:
    layers: list[LayerSpec] = []
    for idx, item in enumerate(fits, start=1):
        df = item.predictions.copy()
        grouped = "groups" in df.columns
        if grouped:
            df["groups"] = df["groups"].astype(str)
        for column, dash in (("fit", None), ("lwr", DASHED), ("upr", DASHED)):
            encoding = {"x": "dates", "y": column}
            params: dict[str, Any] = {"stroke_dash": dash}
            if grouped:
                encoding["color"] = "groups"
            else:
                params["stroke"] = DEFAULT_FIT_COLOR
            layers.append(
                LayerSpec(name=f"fit{idx}_{column}", mark="line", data=df, encoding=encoding, params=params)
            )
    return layers


def add_incidence_fit(chart: ChartSpec, fit, col_pal: Palette = incidence_pal1) -> ChartSpec:
    """Return a copy of ``chart`` with trend lines for every fit in ``fit``.

    Each fit adds a solid line for the prediction and dashed lines for the
    lower and upper bounds. Grouped fits are colored by group, reusing the
    bar colors where the groups match.
    """
    fits = normalize_fits(fit)
    if not fits:
        return chart
    color_scale = _fit_color_scale(fits, chart.fill_scale, col_pal)
    if chart.color_scale is not None and color_scale is not None:
        merged = dict(zip(chart.color_scale.domain, chart.color_scale.range))
        for g, c in zip(color_scale.domain, color_scale.range):
            merged.setdefault(g, c)
        color_scale = ColorScaleSpec(domain=list(merged), range=list(merged.values()))
    return replace(
        chart,
        layers=chart.layers + _fit_layers(fits),
        color_scale=color_scale or chart.color_scale,
    )


def build_fit_chart(fit, col_pal: Palette = incidence_pal1) -> ChartSpec:
    """Chart of fitted trends alone."""
    fits = normalize_fits(fit)
    if not fits:
        raise InvalidFitInput("At least one fit is required")
    base = ChartSpec(layers=[], xlab="", ylab=FIT_ONLY_LABEL, x_axis=AxisSpec(kind=_fit_axis_kind(fits)))
    return add_incidence_fit(base, fits, col_pal)


# ------------------ Incidence chart ------------------
def build_incidence_chart(
    table: IncidenceTable,
    fit=None,
    *,
    stack: bool | None = None,
    color=DEFAULT_COLOR,
    border: str | None = None,
    col_pal: Palette = incidence_pal1,
    alpha: float = DEFAULT_ALPHA,
    xlab: str = "",
    ylab: str | None = None,
    labels_iso: bool | None = None,
    show_cases: bool = False,
    n_breaks: int = DEFAULT_N_BREAKS,
) -> ChartSpec:
    """Describe a bar chart of an incidence table.

    Parameters
    ----------
    table : IncidenceTable
        Aggregated counts.
    fit : FitResult, FitResultList or sequence of these, optional
        Trend fits drawn over the bars.
    stack : bool, optional
        Stack groups in each bucket (default) or place them side by side.
        Defaults to False when fits are given.
    color : str, sequence or mapping
        Bar fill: one color, one per group, or a mapping group → color.
    border : str, optional
        Bar outline color; no outline by default.
    col_pal : callable
        Palette used when ``color`` does not give one color per group.
    alpha : float
        Fill opacity.
    xlab, ylab : str
        Axis titles; ``ylab`` is derived from the interval when omitted.
    labels_iso : bool, optional
        Label the x axis with ISO weeks; defaults to True for ISO-weekly
        tables.
    show_cases : bool
        Outline every case inside stacked bars.
    n_breaks : int
        Target number of x-axis breaks.

    Returns
    -------
    ChartSpec
        Layers ("bars", optionally "cases" and fit lines), scales and labels.
    """
    fits = normalize_fits(fit)
    if stack is None:
        stack = not fits
    if ylab is None:
        ylab = incidence_label(table)
    if labels_iso is None:
        labels_iso = table.isoweeks is not None

    bars = bar_frame(table, stack=stack)
    bar_params: dict[str, Any] = {"opacity": alpha}
    if border is not None:
        bar_params["stroke"] = border
    layers = [
        LayerSpec(
            name="bars",
            mark="bar",
            data=bars,
            encoding={"x": "xmin", "x2": "xmax", "y": "ymin", "y2": "ymax", "fill": "groups"},
            position="stack" if stack else "dodge",
            params=bar_params,
        )
    ]

    if show_cases and stack:
        layers.append(
            LayerSpec(
                name="cases",
                mark="bar",
                data=case_frame(bars),
                encoding={"x": "xmin", "x2": "xmax", "y": "ymin", "y2": "ymax"},
                position="stack",
                params={"fill": None, "stroke": border if border is not None else DEFAULT_CASE_BORDER},
            )
        )
    elif show_cases:
        message = "the argument `show_cases` requires the argument `stack = True`"
        logger.warning(message)
        warnings.warn(message, IncompatibleOptions, stacklevel=2)

    if table.n_groups < 2 and not table.group_names:
        fill_scale = ColorScaleSpec(domain=[UNGROUPED_COLUMN], range=[_single_color(color)], legend=False)
    else:
        names = list(table.group_names) or list(table.counts.columns)
        fill_scale = ColorScaleSpec(domain=names, range=resolve_group_colors(color, names, col_pal))

    chart = ChartSpec(
        layers=layers,
        xlab=xlab,
        ylab=ylab,
        x_axis=build_x_axis(table, labels_iso, n_breaks),
        fill_scale=fill_scale,
    )
    logger.debug("Built incidence chart with layers %s", chart.layer_names)
    return add_incidence_fit(chart, fits, col_pal)
