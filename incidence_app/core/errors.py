"""Exception types raised while computing and charting incidence."""

from __future__ import annotations


class IncidenceError(Exception):
    """Base class for all incidence errors."""


class InvalidInterval(IncidenceError, ValueError):
    """Interval is not a positive integer nor a known calendar unit."""


class EmptyInputError(IncidenceError, ValueError):
    """No observation is left to count."""


class InconsistentGroupLength(IncidenceError, ValueError):
    def __init__(self, n_dates: int, n_groups: int):
        super().__init__(
            f"'groups' has {n_groups} values but 'dates' has {n_dates}; they must have the same length"
        )
        self.n_dates = n_dates
        self.n_groups = n_groups


class InvalidFitInput(IncidenceError, TypeError):
    """Trend overlay is not a fit result (or a sequence of them)."""


class IncompatibleOptions(IncidenceError, UserWarning):
    """Chart options that cannot be honoured together.

    Reported as a diagnostic; the chart is still built without the offending
    option.
    """
