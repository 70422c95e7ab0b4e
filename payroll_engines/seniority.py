"""
Seniority allowance.

Years of service are counted as completed anniversaries of the hire date
under the same month-end clamp used for due dates, so an employee hired on
29 February completes a year on 28 February of a non-leap year.  The
allowance is the base salary times the rate of the band that contains the
completed years.

Bands are half-open ``[min_years, max_years)``, contiguous from 0; only the
last band may be open-ended.  A value that no band covers is a defect in
the scale, not in the employee record, and raises ConfigurationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dates import add_months
from payroll_kernel.domain.values import ZERO, require_amount, round_money
from payroll_kernel.exceptions import ConfigurationError, InvalidInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.seniority")


@dataclass(frozen=True)
class SeniorityBand:
    min_years: int
    max_years: int | None  # None = open-ended
    rate: Decimal

    def contains(self, years: int) -> bool:
        if years < self.min_years:
            return False
        return self.max_years is None or years < self.max_years


@dataclass(frozen=True)
class SeniorityScale:
    """Validated, contiguous seniority scale."""

    name: str
    bands: tuple[SeniorityBand, ...]

    def __post_init__(self) -> None:
        if not self.bands:
            raise ConfigurationError(self.name, "seniority scale is empty")
        if self.bands[0].min_years != 0:
            raise ConfigurationError(self.name, "first band must start at 0 years")
        for index, band in enumerate(self.bands):
            if not ZERO <= band.rate <= Decimal("1"):
                raise ConfigurationError(
                    self.name, f"band {index} rate {band.rate} outside [0, 1]"
                )
            if band.max_years is None:
                if index != len(self.bands) - 1:
                    raise ConfigurationError(
                        self.name, f"band {index} is open-ended but is not the last"
                    )
                continue
            if band.max_years <= band.min_years:
                raise ConfigurationError(
                    self.name, f"band {index} is empty or reversed"
                )
            if index + 1 < len(self.bands) and self.bands[index + 1].min_years != band.max_years:
                raise ConfigurationError(
                    self.name,
                    f"bands {index} and {index + 1} are not contiguous",
                )

    def band_for(self, years: int) -> SeniorityBand:
        for band in self.bands:
            if band.contains(years):
                return band
        raise ConfigurationError(
            self.name, f"no band covers {years} years of service"
        )


@dataclass(frozen=True)
class SeniorityAllowance:
    years_of_service: int
    rate: Decimal
    amount: Decimal


def years_of_service(hire_date: date, as_of: date) -> int:
    """
    Completed anniversaries of ``hire_date`` on ``as_of``.

    Raises:
        InvalidInputError: ``hire_date`` is after ``as_of``.
    """
    if hire_date > as_of:
        raise InvalidInputError(
            "hire_date", hire_date, f"is after the as-of date {as_of.isoformat()}"
        )
    years = as_of.year - hire_date.year
    if add_months(hire_date, years * 12) > as_of:
        years -= 1
    return years


class SeniorityAllowanceCalculator:
    """Seniority bonus for one pay period."""

    @traced_engine(
        "seniority",
        "1.0",
        fingerprint_fields=("base_salary", "hire_date", "as_of", "scale"),
    )
    def calculate(
        self,
        *,
        base_salary: Decimal,
        hire_date: date,
        as_of: date,
        scale: SeniorityScale,
    ) -> SeniorityAllowance:
        base_salary = require_amount(base_salary, "base_salary")
        years = years_of_service(hire_date, as_of)
        band = scale.band_for(years)
        amount = round_money(base_salary * band.rate)
        logger.debug(
            "seniority_allowance_computed",
            extra={
                "years_of_service": years,
                "rate": str(band.rate),
                "amount": str(amount),
            },
        )
        return SeniorityAllowance(years_of_service=years, rate=band.rate, amount=amount)
