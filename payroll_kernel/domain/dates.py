"""
Calendar-month arithmetic.

Due dates, anniversaries and elapsed-installment counts all move in whole
calendar months.  The month-end rule is explicit rather than left to a
date library: when the target month is shorter than the anchor day, the
day is clamped to the last day of that month.

    add_months(date(2024, 1, 31), 1)  -> date(2024, 2, 29)
    add_months(date(2024, 1, 31), 2)  -> date(2024, 3, 31)

Offsets are always taken from the original anchor, never chained from a
previously clamped date, so a 31st-of-month schedule returns to the 31st
whenever the month allows it.
"""

from __future__ import annotations

import calendar
from datetime import date


def add_months(anchor: date, months: int) -> date:
    """Return ``anchor`` shifted by ``months`` calendar months (day clamped)."""
    year = anchor.year + (anchor.month - 1 + months) // 12
    month = (anchor.month - 1 + months) % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def whole_months_between(start: date, end: date) -> int:
    """
    Number of whole calendar months elapsed from ``start`` to ``end``.

    Returns the largest ``k`` such that ``add_months(start, k) <= end``, or 0
    when ``end`` precedes ``start``.  Consistent with ``add_months`` for
    month-end anchors: from 31 Jan, one whole month has elapsed on 28 Feb.
    """
    if end < start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, months) > end:
        months -= 1
    return max(0, months)
