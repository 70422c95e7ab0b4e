"""
Amortization Schedule Engine -- level-payment loan schedules.

Responsibility:
    Derives the level monthly payment of a loan and the installment-by-
    installment schedule: due date, principal, interest, informational tax
    on interest, insurance premium, total payment and remaining principal.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Cent-precision recursion: each installment's interest is the
      outstanding balance times the monthly rate, rounded half away from
      zero; principal is the level payment minus that interest.
    - The final installment (or any installment whose principal would
      exceed the balance) takes exactly the remaining balance, so the
      balance is never negative, never increases and ends at exactly 0.
    - ``principal + interest == total_payment - interest_tax - insurance``
      for every installment.
    - Due dates are ``add_months(start_date, i)``, always from the original
      anchor, with the month-end clamp.
    - No calibration constants: with the analytic payment, 500,000 at 6%
      over 120 months pays 5,551.03 a month and 2,500.00 interest first.

Failure modes:
    - InvalidInputError: principal <= 0, negative or non-finite rate, term
      outside 1..600 months (or a tighter policy limit).
    - DegenerateLoanError: a monthly payment, stored or derived, that is
      <= 0 or does not cover the first period's interest (the loan would
      never amortize).

Usage:
    from payroll_engines.amortization import AmortizationScheduleGenerator, LoanContract

    loan = LoanContract(
        principal=Decimal("500000"),
        annual_rate=Decimal("0.06"),
        term_months=120,
        start_date=date(2025, 1, 15),
    )
    schedule = AmortizationScheduleGenerator().generate(loan=loan)
    schedule.installments[0].interest   # Decimal("2500.00")
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_engines.rendering import render_to_dict
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dates import add_months
from payroll_kernel.domain.values import ZERO, require_amount, require_rate, round_money
from payroll_kernel.exceptions import DegenerateLoanError, InvalidInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.amortization")

MAX_TERM_MONTHS = 600
MONTHS_PER_YEAR = Decimal("12")


class InsuranceBasis(str, Enum):
    """What the monthly insurance premium is assessed on."""

    INITIAL_PRINCIPAL = "initial_principal"
    OUTSTANDING_BALANCE = "outstanding_balance"


def level_payment(principal: Decimal, monthly_rate: Decimal, term_months: int) -> Decimal:
    """
    Analytic level payment, rounded to the cent.

    ``P * r / (1 - (1 + r) ** -n)``, or ``P / n`` when the rate is zero.
    """
    if monthly_rate == ZERO:
        return round_money(principal / Decimal(term_months))
    factor = (Decimal(1) + monthly_rate) ** -term_months
    return round_money(principal * monthly_rate / (Decimal(1) - factor))


@dataclass(frozen=True)
class LoanContract:
    """
    Terms of a loan or credit line repaid in monthly installments.

    Rates are fractions (0.06 for 6% a year).  ``stored_monthly_payment``
    overrides the analytic payment when the contract fixes one.

    Construction does not validate: the progress calculator must be able
    to describe degenerate contracts.  The generator validates.
    """

    principal: Decimal
    annual_rate: Decimal
    term_months: int
    start_date: date
    annual_insurance_rate: Decimal = ZERO
    stored_monthly_payment: Decimal | None = None
    insurance_basis: InsuranceBasis = InsuranceBasis.INITIAL_PRINCIPAL
    loan_id: str | None = None

    @property
    def monthly_rate(self) -> Decimal:
        return self.annual_rate / MONTHS_PER_YEAR

    @property
    def monthly_payment(self) -> Decimal:
        """Stored payment, else the analytic one; 0 when the principal or term admits none."""
        if self.stored_monthly_payment is not None:
            return self.stored_monthly_payment
        if self.principal <= ZERO or not 1 <= self.term_months <= MAX_TERM_MONTHS:
            return ZERO
        return level_payment(self.principal, self.monthly_rate, self.term_months)

    @property
    def end_date(self) -> date:
        """Due date of the last installment."""
        return add_months(self.start_date, self.term_months)


@dataclass(frozen=True)
class AmortizationInstallment:
    index: int  # 1-based
    due_date: date
    principal: Decimal
    interest: Decimal
    interest_tax: Decimal
    insurance: Decimal
    total_payment: Decimal
    remaining_balance: Decimal


@dataclass(frozen=True)
class ScheduleSummary:
    installment_count: int
    total_principal: Decimal
    total_interest: Decimal
    total_interest_tax: Decimal
    total_insurance: Decimal
    total_cost: Decimal
    end_date: date


@dataclass(frozen=True)
class AmortizationSchedule:
    loan: LoanContract
    monthly_payment: Decimal
    installments: tuple[AmortizationInstallment, ...]
    summary: ScheduleSummary

    def to_rows(self) -> list[dict[str, Any]]:
        """One plain dict per installment (Decimal amounts preserved)."""
        return [render_to_dict(installment) for installment in self.installments]


@dataclass(frozen=True)
class ScheduledPosition:
    """Where the schedule stands after ``installments_paid`` installments."""

    installments_paid: int
    principal_repaid: Decimal
    interest_paid: Decimal
    remaining_balance: Decimal


def validate_contract(loan: LoanContract, max_term_months: int = MAX_TERM_MONTHS) -> Decimal:
    """
    Check a contract can be scheduled and return its monthly payment.

    The stored payment and the analytic one pass the same amortization
    check, so a loan too small to carry a cent a month over its term is
    rejected rather than scheduled as a run of zero installments.

    Raises:
        InvalidInputError: principal, rate or term out of range.
        DegenerateLoanError: the monthly payment cannot amortize the principal.
    """
    principal = require_amount(loan.principal, "principal")
    if principal <= ZERO:
        raise InvalidInputError("principal", loan.principal, "must be positive")
    require_amount(loan.annual_rate, "annual_rate")
    require_rate(loan.annual_insurance_rate, "annual_insurance_rate")
    if isinstance(loan.term_months, bool) or not isinstance(loan.term_months, int):
        raise InvalidInputError("term_months", loan.term_months, "must be an integer")
    limit = min(max_term_months, MAX_TERM_MONTHS)
    if not 1 <= loan.term_months <= limit:
        raise InvalidInputError(
            "term_months", loan.term_months, f"must be between 1 and {limit}"
        )

    if loan.stored_monthly_payment is None:
        payment = loan.monthly_payment
    else:
        payment = require_amount(
            loan.stored_monthly_payment, "stored_monthly_payment", allow_negative=True
        )
    if payment <= ZERO:
        raise DegenerateLoanError(principal, payment, "monthly payment must be positive")
    first_interest = round_money(principal * loan.monthly_rate)
    if payment <= first_interest:
        raise DegenerateLoanError(
            principal,
            payment,
            f"payment does not cover first-period interest {first_interest}",
        )
    return payment


def _iterate(
    loan: LoanContract,
    payment: Decimal,
    interest_tax_rate: Decimal,
) -> Iterator[AmortizationInstallment]:
    monthly_rate = loan.monthly_rate
    insurance_rate = loan.annual_insurance_rate / MONTHS_PER_YEAR
    balance = loan.principal

    for index in range(1, loan.term_months + 1):
        if balance <= ZERO:
            return
        interest = round_money(balance * monthly_rate)
        principal = payment - interest
        if index == loan.term_months or principal > balance:
            principal = balance
        if loan.insurance_basis is InsuranceBasis.OUTSTANDING_BALANCE:
            insurance = round_money(balance * insurance_rate)
        else:
            insurance = round_money(loan.principal * insurance_rate)
        interest_tax = round_money(interest * interest_tax_rate)
        balance = balance - principal

        yield AmortizationInstallment(
            index=index,
            due_date=add_months(loan.start_date, index),
            principal=principal,
            interest=interest,
            interest_tax=interest_tax,
            insurance=insurance,
            total_payment=principal + interest + interest_tax + insurance,
            remaining_balance=balance,
        )


def scheduled_position(loan: LoanContract, installments_paid: int) -> ScheduledPosition:
    """
    Schedule position after ``installments_paid`` installments.

    Uses the same cent-precision recursion as the generator.  Counts beyond
    the end of the schedule report the fully repaid position.
    """
    payment = validate_contract(loan)
    principal_repaid = ZERO
    interest_paid = ZERO
    paid = 0
    if installments_paid > 0:
        for installment in _iterate(loan, payment, ZERO):
            principal_repaid += installment.principal
            interest_paid += installment.interest
            paid = installment.index
            if paid >= installments_paid:
                break
    return ScheduledPosition(
        installments_paid=paid,
        principal_repaid=principal_repaid,
        interest_paid=interest_paid,
        remaining_balance=loan.principal - principal_repaid,
    )


class AmortizationScheduleGenerator:
    """
    Build the full amortization schedule of a loan.

    Contract:
        Pure function of the contract and the interest-tax rate.

    Guarantees:
        - Installment indexes are contiguous from 1.
        - Sum of principal portions equals the principal exactly.
        - Remaining balance is non-increasing and ends at exactly 0.

    Non-goals:
        - Variable-rate loans, payment holidays, early-repayment penalties.
    """

    @traced_engine(
        "amortization",
        "1.0",
        fingerprint_fields=("loan", "interest_tax_rate", "max_term_months"),
        context_fields={"loan_id": "loan.loan_id"},
    )
    def generate(
        self,
        *,
        loan: LoanContract,
        interest_tax_rate: Decimal = ZERO,
        max_term_months: int = MAX_TERM_MONTHS,
    ) -> AmortizationSchedule:
        """
        Schedule of ``loan``.

        ``max_term_months`` is the lender's policy limit; it can only tighten
        the hard 600-month bound.
        """
        payment = validate_contract(loan, max_term_months)
        interest_tax_rate = require_rate(interest_tax_rate, "interest_tax_rate")

        installments = tuple(_iterate(loan, payment, interest_tax_rate))
        summary = ScheduleSummary(
            installment_count=len(installments),
            total_principal=sum((i.principal for i in installments), ZERO),
            total_interest=sum((i.interest for i in installments), ZERO),
            total_interest_tax=sum((i.interest_tax for i in installments), ZERO),
            total_insurance=sum((i.insurance for i in installments), ZERO),
            total_cost=sum((i.total_payment for i in installments), ZERO),
            end_date=installments[-1].due_date,
        )

        logger.debug(
            "amortization_schedule_generated",
            extra={
                "principal": str(loan.principal),
                "monthly_payment": str(payment),
                "installment_count": summary.installment_count,
                "total_interest": str(summary.total_interest),
            },
        )
        return AmortizationSchedule(
            loan=loan,
            monthly_payment=payment,
            installments=installments,
            summary=summary,
        )
