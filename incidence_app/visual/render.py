"""Altair rendering of chart descriptions."""

from __future__ import annotations

import altair as alt
import pandas as pd

from incidence_app.core.config import SETTINGS
from incidence_app.core.models import DateKind
from incidence_app.visual.charts import AxisSpec, ChartSpec, ColorScaleSpec, LayerSpec

# d3 time format of ISO 8601 weeks, e.g. 2020-W01
ISO_WEEK_FORMAT = "%G-W%V"


def _field_type(kind: DateKind | None) -> str:
    return "T" if kind is not None and kind.is_temporal else "Q"


def _axis_value(value, kind: DateKind):
    if not kind.is_temporal:
        return float(value)
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
        return alt.DateTime(
            year=ts.year, month=ts.month, date=ts.day, hours=ts.hour, minutes=ts.minute, utc=True
        )
    return alt.DateTime(year=ts.year, month=ts.month, date=ts.day, hours=ts.hour, minutes=ts.minute)


def _axis(spec: AxisSpec | None) -> alt.Axis:
    if spec is None:
        return alt.Axis()
    if spec.date_step is not None:
        # a calendar step wins over the individual breaks
        return alt.Axis(tickCount=alt.TimeIntervalStep(interval=spec.date_step.unit, step=spec.date_step.step))
    kwargs = {}
    if spec.breaks:
        kwargs["values"] = [_axis_value(v, spec.kind) for v in spec.breaks]
    if spec.iso_weeks:
        kwargs["format"] = ISO_WEEK_FORMAT
    return alt.Axis(**kwargs)


def _color(channel, column: str, scale: ColorScaleSpec | None):
    if scale is None:
        return channel(f"{column}:N")
    return channel(
        f"{column}:N",
        scale=alt.Scale(domain=scale.domain, range=scale.range),
        legend=alt.Legend(title=column.title()) if scale.legend else None,
    )


def _bar_layer(layer: LayerSpec, spec: ChartSpec, x_type: str) -> alt.Chart:
    mark = {}
    if "opacity" in layer.params:
        mark["fillOpacity"] = layer.params["opacity"]
    if "fill" in layer.params and layer.params["fill"] is None:
        mark["fillOpacity"] = 0
    if layer.params.get("stroke") is not None:
        mark["stroke"] = layer.params["stroke"]
    enc = layer.encoding
    channels = {
        "x": alt.X(f"{enc['x']}:{x_type}", title=spec.xlab, axis=_axis(spec.x_axis)),
        "x2": alt.X2(enc["x2"]),
        "y": alt.Y(f"{enc['y']}:Q", title=spec.ylab),
        "y2": alt.Y2(enc["y2"]),
    }
    if "fill" in enc:
        channels["fill"] = _color(alt.Fill, enc["fill"], spec.fill_scale)
        channels["tooltip"] = [
            alt.Tooltip(f"dates:{x_type}", title="Date"),
            alt.Tooltip("groups:N", title="Group"),
            alt.Tooltip("counts:Q", title="Count"),
        ]
    return alt.Chart(layer.data).mark_rect(**mark).encode(**channels)


def _line_layer(layer: LayerSpec, spec: ChartSpec, x_type: str) -> alt.Chart:
    mark = {}
    if layer.params.get("stroke_dash"):
        mark["strokeDash"] = list(layer.params["stroke_dash"])
    if layer.params.get("stroke") is not None:
        mark["color"] = layer.params["stroke"]
    enc = layer.encoding
    channels = {
        "x": alt.X(f"{enc['x']}:{x_type}", title=spec.xlab, axis=_axis(spec.x_axis)),
        "y": alt.Y(f"{enc['y']}:Q", title=spec.ylab),
    }
    if "color" in enc:
        channels["color"] = _color(alt.Color, enc["color"], spec.color_scale)
    return alt.Chart(layer.data).mark_line(**mark).encode(**channels)


def to_altair(spec: ChartSpec) -> alt.LayerChart:
    """Render a :class:`ChartSpec` as a layered Altair chart."""
    kind = spec.x_axis.kind if spec.x_axis is not None else None
    x_type = _field_type(kind)
    charts = []
    for layer in spec.layers:
        if layer.mark == "bar":
            charts.append(_bar_layer(layer, spec, x_type))
        elif layer.mark == "line":
            charts.append(_line_layer(layer, spec, x_type))
        else:
            raise ValueError(f"Unsupported mark: {layer.mark}")
    return alt.layer(*charts).properties(height=SETTINGS.height, width=SETTINGS.width)
