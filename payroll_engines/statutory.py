"""
Statutory contribution calculation (social security, health, levies).

Responsibility:
    Applies a jurisdiction's table of contribution lines to one period's
    pay.  The same engine serves the employee side (withheld from pay) and
    the employer side (added to employer cost); the two tables are
    independent and the employer table may carry lines with no employee
    counterpart (training levy, work-injury cover).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Contribution bases are tiered: ``clamp(pay - floor, 0, ceiling - floor)``;
      a line with only a ceiling is a plain cap.
    - Each line is computed at full precision and rounded once, half away
      from zero, to cents.  Totals are sums of the rounded lines, so the
      itemized payslip always adds up.
    - A line whose subject flag the employee does not carry, or whose pay
      is at or below its minimum threshold, contributes nothing and is
      omitted from the result.

Failure modes:
    - InvalidInputError for negative or non-finite pay amounts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.values import ZERO, require_amount, round_money
from payroll_kernel.exceptions import ConfigurationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.statutory")


class ContributionBase(str, Enum):
    """Which pay figure a contribution line is assessed on."""

    GROSS = "gross"
    TAXABLE_GROSS = "taxable_gross"


class SubjectFlag(str, Enum):
    """Per-employee registration that switches a contribution line on."""

    SOCIAL_SECURITY = "social_security"
    HEALTH = "health"
    HOUSING_LEVY = "housing_levy"


@dataclass(frozen=True)
class ContributionLine:
    """
    One row of a contribution table.

    ``floor``/``ceiling`` define the band of pay the rate applies to.
    ``tax_deductible`` only has meaning on the employee side, where it
    reduces the taxable net.
    """

    code: str
    label: str
    rate: Decimal
    base: ContributionBase = ContributionBase.TAXABLE_GROSS
    floor: Decimal | None = None
    ceiling: Decimal | None = None
    subject_to: SubjectFlag | None = None
    minimum_threshold: Decimal | None = None
    tax_deductible: bool = False

    def __post_init__(self) -> None:
        if not ZERO <= self.rate <= Decimal("1"):
            raise ConfigurationError(
                f"contribution {self.code}", f"rate {self.rate} outside [0, 1]"
            )
        if (
            self.floor is not None
            and self.ceiling is not None
            and self.ceiling <= self.floor
        ):
            raise ConfigurationError(
                f"contribution {self.code}",
                f"ceiling {self.ceiling} not above floor {self.floor}",
            )

    def assessable(self, pay: Decimal) -> Decimal:
        """Portion of ``pay`` the rate applies to."""
        if self.floor is not None:
            portion = max(ZERO, pay - self.floor)
            if self.ceiling is not None:
                portion = min(portion, self.ceiling - self.floor)
            return portion
        if self.ceiling is not None:
            return min(pay, self.ceiling)
        return pay


@dataclass(frozen=True)
class ContributionAmount:
    """Computed contribution for one line, rounded to cents."""

    code: str
    label: str
    base_amount: Decimal
    rate: Decimal
    amount: Decimal
    tax_deductible: bool = False


@dataclass(frozen=True)
class ContributionResult:
    """Itemized contributions for one side (employee or employer)."""

    lines: tuple[ContributionAmount, ...]
    total: Decimal
    deductible_total: Decimal  # lines that reduce the taxable net

    @classmethod
    def of(cls, lines: Sequence[ContributionAmount]) -> ContributionResult:
        return cls(
            lines=tuple(lines),
            total=sum((line.amount for line in lines), ZERO),
            deductible_total=sum(
                (line.amount for line in lines if line.tax_deductible), ZERO
            ),
        )

    def amount_for(self, code: str) -> Decimal:
        """Amount of the line with ``code``, 0 if the line was not applied."""
        for line in self.lines:
            if line.code == code:
                return line.amount
        return ZERO


class StatutoryDeductionCalculator:
    """
    Apply a contribution table to gross and taxable gross pay.

    Contract:
        Pure function of its arguments; the table is static configuration.

    Non-goals:
        - Year-to-date ceilings (every period is assessed independently).
    """

    @traced_engine(
        "statutory",
        "1.0",
        fingerprint_fields=("gross", "taxable_gross", "lines", "subject_flags"),
    )
    def calculate(
        self,
        *,
        gross: Decimal,
        taxable_gross: Decimal,
        lines: Sequence[ContributionLine],
        subject_flags: frozenset[SubjectFlag] = frozenset(SubjectFlag),
    ) -> ContributionResult:
        """
        Compute every applicable line.

        Preconditions:
            - ``gross`` and ``taxable_gross`` are finite, non-negative.
        Postconditions:
            - ``result.total`` equals the sum of the rounded line amounts.
        """
        gross = require_amount(gross, "gross")
        taxable_gross = require_amount(taxable_gross, "taxable_gross")

        computed: list[ContributionAmount] = []
        for line in lines:
            if line.subject_to is not None and line.subject_to not in subject_flags:
                continue
            pay = gross if line.base is ContributionBase.GROSS else taxable_gross
            if line.minimum_threshold is not None and pay <= line.minimum_threshold:
                continue
            assessable = line.assessable(pay)
            computed.append(
                ContributionAmount(
                    code=line.code,
                    label=line.label,
                    base_amount=assessable,
                    rate=line.rate,
                    amount=round_money(assessable * line.rate),
                    tax_deductible=line.tax_deductible,
                )
            )

        result = ContributionResult.of(computed)
        logger.debug(
            "statutory_contributions_computed",
            extra={
                "gross": str(gross),
                "taxable_gross": str(taxable_gross),
                "line_count": len(result.lines),
                "total": str(result.total),
            },
        )
        return result
