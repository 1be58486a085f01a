import logging
import re
from dataclasses import fields
from datetime import date, datetime

import altair as alt
import pandas as pd
import pytest

from incidence_app.analytics.aggregations.incidence import incidence
from incidence_app.analytics.aggregations.transforms import cumulate
from incidence_app.core.errors import IncompatibleOptions, InvalidFitInput
from incidence_app.core.models import FitResult, FitResultList
from incidence_app.visual.charts import (
    bar_frame,
    build_fit_chart,
    build_incidence_chart,
    incidence_label,
    normalize_fits,
    resolve_group_colors,
)
from incidence_app.visual.palettes import incidence_pal1
from incidence_app.visual.render import to_altair


def _grouped():
    return incidence([1, 1, 1, 2], groups=["a", "b", "b", "a"])


def _fit(groups=None):
    data = {
        "dates": [1.5, 2.5, 3.5],
        "fit": [1.0, 2.0, 4.0],
        "lwr": [0.5, 1.5, 3.0],
        "upr": [1.5, 2.5, 5.0],
    }
    if groups is not None:
        data["groups"] = groups
    return FitResult(pd.DataFrame(data))


def _weekly_dates():
    return [date(2020, 1, 1), date(2020, 1, 2), date(2020, 1, 8), date(2020, 1, 20), date(2020, 2, 3)]


def test_bars_are_left_aligned():
    bars = bar_frame(incidence([0, 1, 8], interval=7))
    assert bars["x"].tolist() == [3.5, 10.5]
    assert bars["width"].tolist() == [7.0, 7.0]
    assert bars["xmin"].tolist() == [0, 7]
    assert bars["xmax"].tolist() == [7.0, 14.0]
    assert bars["ymax"].tolist() == [2.0, 1.0]


def test_stacked_geometry():
    bars = bar_frame(_grouped(), stack=True)
    assert bars["groups"].tolist() == ["a", "b", "a", "b"]
    assert bars["ymin"].tolist() == [0.0, 1.0, 0.0, 1.0]
    assert bars["ymax"].tolist() == [1.0, 3.0, 1.0, 1.0]


def test_dodged_geometry():
    bars = bar_frame(_grouped(), stack=False)
    assert bars["xmin"].tolist() == [1.0, 1.5, 2.0, 2.5]
    assert bars["xmax"].tolist() == [1.5, 2.0, 2.5, 3.0]
    assert bars["ymin"].tolist() == [0.0] * 4


def test_datetime_widths_in_seconds():
    inc = incidence([datetime(2020, 1, 1, 5), datetime(2020, 1, 4, 18)], interval=2)
    bars = bar_frame(inc)
    assert bars["interval_days"].tolist() == [2.0, 2.0]
    assert bars["width"].tolist() == [172800.0, 172800.0]
    assert bars["x"].iloc[0] == pd.Timestamp("2020-01-02")


def test_show_cases_adds_unit_squares():
    chart = build_incidence_chart(_grouped(), show_cases=True)
    cases = chart.layer("cases")
    assert cases is not None
    assert len(cases.data) == 4
    assert (cases.data["counts"] == 1).all()
    assert (cases.data["ymax"] - cases.data["ymin"] == 1).all()
    b_first = cases.data[(cases.data["groups"] == "b") & (cases.data["dates"] == 1)]
    assert b_first["ymin"].tolist() == [1.0, 2.0]
    assert cases.params["stroke"] == "white"


def test_show_cases_uses_given_border():
    chart = build_incidence_chart(_grouped(), show_cases=True, border="black")
    assert chart.layer("cases").params["stroke"] == "black"
    assert chart.layer("bars").params["stroke"] == "black"


def test_show_cases_with_dodge_is_skipped():
    with pytest.warns(IncompatibleOptions):
        chart = build_incidence_chart(_grouped(), stack=False, show_cases=True)
    assert chart.layer_names == ["bars"]
    plain = build_incidence_chart(_grouped(), stack=False)
    pd.testing.assert_frame_equal(chart.layer("bars").data, plain.layer("bars").data)


def test_color_count_mismatch_falls_back_to_palette(caplog):
    with caplog.at_level(logging.WARNING):
        chart = build_incidence_chart(_grouped(), color=["red", "green", "blue"])
    assert "did not match the number of groups" in caplog.text
    assert chart.fill_scale.range == incidence_pal1(2)
    assert len(set(chart.fill_scale.range)) == 2


def test_default_color_uses_palette_quietly(caplog):
    with caplog.at_level(logging.WARNING):
        colors = resolve_group_colors("black", ["a", "b", "c"])
    assert colors == incidence_pal1(3)
    assert caplog.records == []


def test_named_colors_report_unused(caplog):
    with caplog.at_level(logging.WARNING):
        colors = resolve_group_colors({"b": "blue", "c": "green", "a": "red"}, ["a", "b"])
    assert colors == ["red", "blue"]
    assert '1 colors were not used: "c" = "green"' in caplog.text


def test_positional_colors():
    chart = build_incidence_chart(_grouped(), color=["red", "blue"])
    assert chart.fill_scale.domain == ["a", "b"]
    assert chart.fill_scale.range == ["red", "blue"]
    assert chart.fill_scale.legend


def test_single_group_flat_color_without_legend():
    chart = build_incidence_chart(incidence([1, 2, 2]), color="steelblue")
    assert chart.fill_scale.range == ["steelblue"]
    assert not chart.fill_scale.legend


def test_invalid_color_type():
    with pytest.raises(TypeError):
        build_incidence_chart(_grouped(), color=5)


@pytest.mark.parametrize(
    "interval, label",
    [
        (1, "Daily incidence"),
        (7, "Weekly incidence"),
        (14, "Biweekly incidence"),
        (10, "Incidence by period of 10 days"),
        (21, "Incidence by period of 21 days"),
    ],
)
def test_fixed_interval_labels(interval, label):
    assert incidence_label(incidence([1, 30], interval=interval)) == label


def test_calendar_and_cumulative_labels():
    monthly = incidence([date(2020, 1, 5), date(2020, 3, 5)], interval="month")
    assert incidence_label(monthly) == "Monthly incidence"
    quarterly = incidence([date(2020, 1, 5)], interval="quarter")
    assert incidence_label(quarterly) == "Quarterly incidence"
    assert incidence_label(cumulate(incidence([1, 2]))) == "Daily cumulative incidence"
    assert incidence_label(cumulate(incidence([1, 30], interval=10))) == "Cumulative incidence by period of 10 days"
    chart = build_incidence_chart(monthly, ylab="Cases")
    assert chart.ylab == "Cases"


def test_fit_overlay_lines():
    chart = build_incidence_chart(incidence([1, 2, 2, 3]), fit=_fit())
    assert chart.layer("bars").position == "dodge"
    assert chart.layer_names[1:] == ["fit1_fit", "fit1_lwr", "fit1_upr"]
    assert chart.layer("fit1_fit").params["stroke_dash"] is None
    assert chart.layer("fit1_upr").params["stroke_dash"] == (4, 4)
    assert chart.layer("fit1_lwr").encoding == {"x": "dates", "y": "lwr"}


def test_fit_list_and_nested_lists():
    fits = normalize_fits([_fit(), FitResultList((_fit(), _fit()))])
    assert len(fits) == 3
    assert normalize_fits(None) == []


def test_invalid_fit_inputs():
    with pytest.raises(InvalidFitInput, match="2-th item"):
        build_incidence_chart(incidence([1, 2]), fit=[_fit(), "not a fit"])
    with pytest.raises(InvalidFitInput):
        build_incidence_chart(incidence([1, 2]), fit=42)
    with pytest.raises(InvalidFitInput):
        FitResult(pd.DataFrame({"dates": [1], "fit": [1.0]}))


def test_grouped_fit_reuses_bar_colors():
    chart = build_incidence_chart(_grouped(), fit=_fit(groups=["a", "b", "a"]), color=["red", "blue"])
    assert chart.color_scale.domain == ["a", "b"]
    assert chart.color_scale.range == ["red", "blue"]
    assert chart.layer("fit1_fit").encoding["color"] == "groups"


def test_iso_week_axis():
    inc = incidence(_weekly_dates(), interval=7)
    chart = build_incidence_chart(inc, n_breaks=2)
    axis = chart.x_axis
    assert axis.iso_weeks
    assert axis.breaks[0] == inc.dates.iloc[0]
    assert all(re.match(r"^\d{4}-W\d{2}$", label) for label in axis.labels)
    assert len(axis.breaks) == len(axis.labels) < len(inc.dates)


def test_iso_labels_can_be_disabled():
    chart = build_incidence_chart(incidence(_weekly_dates(), interval=7), labels_iso=False)
    assert not chart.x_axis.iso_weeks
    assert chart.x_axis.labels is None
    assert chart.x_axis.breaks


def test_monthly_axis_has_calendar_step():
    dates = pd.Series(pd.date_range("2019-01-15", "2020-12-15", freq="15D"))
    chart = build_incidence_chart(incidence(dates, interval="month"))
    step = chart.x_axis.date_step
    assert step is not None and step.unit == "month" and step.step >= 1


def test_fit_only_chart():
    chart = build_fit_chart(_fit())
    assert chart.ylab == "Predicted incidence"
    assert len(chart.layers) == 3
    with pytest.raises(InvalidFitInput):
        build_fit_chart([])


def test_altair_rendering_weekly_grouped():
    inc = incidence(_weekly_dates(), interval="week", groups=["x", "y", "x", "y", "x"])
    chart = to_altair(build_incidence_chart(inc, show_cases=True))
    assert isinstance(chart, alt.LayerChart)
    spec = chart.to_dict()
    assert len(spec["layer"]) == 2


def test_altair_rendering_monthly_with_fit():
    dates = pd.Series(pd.date_range("2020-01-03", "2020-06-20", freq="4D"))
    inc = incidence(dates, interval="month")
    fit = FitResult(
        pd.DataFrame(
            {
                "dates": pd.to_datetime(["2020-01-16", "2020-03-16", "2020-05-16"]),
                "fit": [7.0, 7.5, 8.0],
                "lwr": [6.0, 6.5, 7.0],
                "upr": [8.0, 8.5, 9.0],
            }
        )
    )
    spec = to_altair(build_incidence_chart(inc, fit=fit)).to_dict()
    assert len(spec["layer"]) == 4


def test_bars_meet_across_dst_change():
    dates = pd.Series(pd.to_datetime(["2021-03-27 12:00", "2021-03-28 12:00", "2021-03-29 12:00"]))
    bars = bar_frame(incidence(dates.dt.tz_localize("Europe/Paris")))
    assert bars["xmax"].iloc[:-1].tolist() == bars["xmin"].iloc[1:].tolist()
    assert bars["counts"].tolist() == [1, 1, 1]


def test_fit_result_holds_predictions_only():
    assert [f.name for f in fields(FitResult)] == ["predictions"]
    with pytest.raises(TypeError):
        FitResult(_fit().predictions, "exponential")
