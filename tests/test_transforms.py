from datetime import date

import pandas as pd
import pytest

from incidence_app.analytics.aggregations.incidence import incidence
from incidence_app.analytics.aggregations.transforms import cumulate, pool, subset, to_frame, to_long_frame
from incidence_app.core.errors import EmptyInputError


def _grouped():
    return incidence([1, 1, 2, 3, 3, 4], groups=["a", "b", "a", "a", "b", "b"])


def test_long_frame_one_row_per_bucket_and_group():
    long = to_long_frame(_grouped())
    assert list(long.columns) == ["dates", "groups", "counts"]
    assert len(long) == 4 * 2
    assert long["dates"].tolist()[:4] == [1, 1, 2, 2]
    assert long["groups"].tolist()[:2] == ["a", "b"]
    assert long["counts"].sum() == 6


def test_long_frame_ungrouped_has_no_group_column():
    long = to_long_frame(incidence([1, 2, 2]))
    assert list(long.columns) == ["dates", "counts"]


def test_to_frame_includes_isoweeks():
    inc = incidence([date(2020, 1, 1), date(2020, 1, 9)], interval=7)
    frame = to_frame(inc)
    assert list(frame.columns) == ["dates", "isoweeks", "counts"]
    assert frame["isoweeks"].tolist() == ["2020-W01", "2020-W02"]


def test_cumulate_running_totals():
    cum = cumulate(_grouped())
    assert cum.cumulative
    assert cum.counts["a"].tolist() == [1, 2, 3, 3]
    assert cum.counts["b"].tolist() == [1, 1, 2, 3]
    with pytest.raises(ValueError):
        cumulate(cum)


def test_subset_by_range_and_group():
    sub = subset(_grouped(), start=2, end=3, groups="b")
    assert sub.dates.tolist() == [2, 3]
    assert sub.group_names == ("b",)
    assert sub.counts["b"].tolist() == [0, 1]
    assert sub.n == 1
    assert sub.timespan == 1


def test_subset_by_group_position_and_dates():
    inc = incidence(
        [date(2020, 1, 1), date(2020, 1, 15), date(2020, 2, 1)],
        interval=7,
        groups=["x", "y", "y"],
    )
    sub = subset(inc, start="2020-01-10", groups=[1])
    assert sub.group_names == ("y",)
    assert sub.n == 2
    assert sub.isoweeks[0] == "2020-W03"


def test_subset_empty_range():
    with pytest.raises(EmptyInputError):
        subset(_grouped(), start=10)


def test_pool_sums_groups():
    pooled = pool(_grouped())
    assert pooled.group_names == ()
    assert pooled.counts["counts"].tolist() == [2, 1, 2, 1]
    assert pooled.n == 6
    assert isinstance(pooled.counts, pd.DataFrame)


def test_subset_keeps_bucket_end():
    inc = incidence(
        [date(2021, 1, 31), date(2021, 2, 28), date(2021, 4, 2)],
        interval="month",
        standard=False,
    )
    assert inc.widths.tolist() == [28, 31, 30]
    head = subset(inc, end="2021-02-28")
    assert head.end == pd.Timestamp("2021-03-31")
    assert head.widths.tolist() == [28, 31]
    tail = subset(inc, start="2021-03-01")
    assert tail.widths.tolist() == [30]
    assert tail.timespan == 0
