"""Central configuration, constants, and shared chart defaults."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

# =============================================================================
# Interval Settings
# =============================================================================
# Canonical interval units, shortest first
INTERVAL_UNITS: Sequence[str] = ("day", "week", "month", "quarter", "year")

# Units binned by a fixed number of days
FIXED_UNIT_DAYS: dict[str, int] = {
    "day": 1,
    "week": 7,
}

# Units binned by calendar months (variable width)
CALENDAR_UNIT_MONTHS: dict[str, int] = {
    "month": 1,
    "quarter": 3,
    "year": 12,
}

# Length of an ISO 8601 week; fixed intervals of this many days get isoweeks
ISO_WEEK_DAYS: int = 7

SECONDS_PER_DAY: int = 86400  # 24h * 60m * 60s

# =============================================================================
# Axis Labels
# =============================================================================
# Keys are interval values (days for fixed rules, unit name for calendar ones)
INCIDENCE_LABELS: dict[int | str, str] = {
    1: "Daily incidence",
    7: "Weekly incidence",
    14: "Biweekly incidence",
    "day": "Daily incidence",
    "week": "Weekly incidence",
    "month": "Monthly incidence",
    "quarter": "Quarterly incidence",
    "year": "Yearly incidence",
}
FIXED_PERIOD_LABEL = "Incidence by period of %d days"
FIT_ONLY_LABEL = "Predicted incidence"

# =============================================================================
# Aggregation Defaults
# =============================================================================
# Label given to observations without a group when na_as_group is enabled
MISSING_GROUP_LABEL = "NA"

# Column name used for the count column of ungrouped tables
UNGROUPED_COLUMN = "counts"

# Common zone for tz-aware date-times carrying different offsets
DEFAULT_TIMEZONE = "UTC"

# =============================================================================
# Chart Defaults
# =============================================================================
DEFAULT_N_BREAKS: int = 6
DEFAULT_ALPHA: float = 0.7
DEFAULT_COLOR = "black"
DEFAULT_CASE_BORDER = "white"  # outline of per-case squares when no border is set
DEFAULT_FIT_COLOR = "black"

# Base colors of the default group palette; interpolated for larger groups
PALETTE_BASE: Sequence[str] = (
    "#304e60",
    "#c4a22d",
    "#5591a6",
    "#95221f",
    "#698a39",
    "#7c5eb0",
    "#b7b7b7",
    "#c97e39",
    "#a65e5e",
    "#29383f",
)
PALETTE_LIGHT_MIX: float = 0.45  # share of white blended into the light palette
PALETTE_DARK_MIX: float = 0.35  # share of black blended into the dark palette


@dataclass(slots=True)
class ChartSettings:
    height: int = 300
    width: int | str = "container"


SETTINGS = ChartSettings()
