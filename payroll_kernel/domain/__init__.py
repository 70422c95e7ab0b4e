"""
Pure domain layer.

Value helpers, calendar arithmetic and the clock abstraction.  No I/O and
no ORM; everything here is deterministic for identical inputs.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.dates import add_months, whole_months_between
from payroll_kernel.domain.values import (
    CENT,
    ZERO,
    require_amount,
    require_rate,
    round_money,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "add_months",
    "whole_months_between",
    "CENT",
    "ZERO",
    "require_amount",
    "require_rate",
    "round_money",
]
