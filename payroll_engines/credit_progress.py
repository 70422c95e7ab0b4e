"""
Credit Progress Engine -- point-in-time repayment assessment.

Responsibility:
    Given a loan contract, the amount the borrower has actually repaid and
    an explicit "now", reports how far along the loan is against its
    schedule: elapsed installments, expected repayment, delinquency,
    months in arrears, lifecycle status and the next due date.  Also
    assesses salary advances, which carry a remaining balance rather than
    a repayment total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The snapshot is a derived
    view; persisting a status change is the caller's decision.

Invariants enforced:
    - Elapsed installments count the due dates ``add_months(start, i)``
      on or before ``now``, clamped to ``[0, term]``.
    - ``delinquent`` implies at least one installment has fallen due.
    - Months in arrears never exceed elapsed installments.
    - Status precedence: PAID_OFF > SUSPENDED > ACTIVE.

Failure modes:
    - Principal or monthly payment <= 0, or a term outside 1..600 months,
      is not an error: the result is a well-defined zero snapshot flagged
      ``is_degenerate``.  The schedule generator rejects exactly these
      loans, with InvalidInputError or DegenerateLoanError.
    - InvalidInputError for a negative or non-finite repaid amount, and for
      an advance whose remaining balance exceeds its amount.
    - DegenerateLoanError when a positive payment, stored or derived, does
      not cover the first period's interest (the scheduled position does
      not exist).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

from payroll_engines.amortization import (
    MAX_TERM_MONTHS,
    LoanContract,
    scheduled_position,
)
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dates import add_months, whole_months_between
from payroll_kernel.domain.values import HUNDRED, ZERO, require_amount, round_money
from payroll_kernel.exceptions import InvalidInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.credit_progress")

DEFAULT_SUSPENSION_THRESHOLD_MONTHS = 3


class CreditStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    PAID_OFF = "PAID_OFF"


class AdvanceStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    REPAID = "REPAID"


def next_due_date(start_date: date, paid_installments: int) -> date:
    """Due date of the installment after ``paid_installments`` paid ones."""
    if paid_installments < 0:
        raise InvalidInputError("paid_installments", paid_installments, "must not be negative")
    return add_months(start_date, paid_installments + 1)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return round_money(min(HUNDRED, part / whole * HUNDRED))


@dataclass(frozen=True)
class CreditProgressSnapshot:
    """
    Repayment progress of one loan on one date.

    ``scheduled_*`` figures come from the amortization recursion after
    ``elapsed_installments`` installments; ``amount_repaid`` is what the
    caller reports was actually received.
    """

    as_of: date
    elapsed_installments: int
    monthly_payment: Decimal
    expected_repaid: Decimal
    amount_repaid: Decimal
    remaining_balance: Decimal
    scheduled_remaining_balance: Decimal
    scheduled_principal_repaid: Decimal
    scheduled_interest_due: Decimal
    progress_percent: Decimal
    is_delinquent: bool
    months_in_arrears: int
    status: CreditStatus
    next_due_date: date | None
    is_degenerate: bool = False


@dataclass(frozen=True)
class SalaryAdvance:
    amount: Decimal
    remaining_balance: Decimal
    installment_count: int
    advance_date: date
    advance_id: str | None = None


@dataclass(frozen=True)
class AdvanceProgress:
    amount_repaid: Decimal
    progress_percent: Decimal
    months_elapsed: int
    expected_progress_percent: Decimal
    is_late: bool
    status: AdvanceStatus


class CreditProgressCalculator:
    """
    Assess loans and salary advances against their repayment schedules.

    Contract:
        ``now`` / ``as_of`` are explicit arguments; the same inputs always
        produce the same snapshot.

    Non-goals:
        - Allocating individual receipts to installments.
        - Persisting status transitions.
    """

    @traced_engine(
        "credit_progress",
        "1.0",
        fingerprint_fields=("loan", "amount_repaid", "now", "suspension_threshold_months"),
        context_fields={"loan_id": "loan.loan_id"},
    )
    def assess(
        self,
        *,
        loan: LoanContract,
        amount_repaid: Decimal,
        now: date,
        suspension_threshold_months: int = DEFAULT_SUSPENSION_THRESHOLD_MONTHS,
    ) -> CreditProgressSnapshot:
        """
        Progress snapshot of ``loan`` on ``now``.

        Preconditions:
            - ``amount_repaid`` is finite and non-negative.
        Postconditions:
            - ``0 <= elapsed_installments <= term_months``.
            - ``months_in_arrears <= elapsed_installments``.
        """
        repaid = require_amount(amount_repaid, "amount_repaid")
        principal = require_amount(loan.principal, "principal", allow_negative=True)
        require_amount(loan.annual_rate, "annual_rate")

        payment = self._monthly_payment(loan)
        if (
            principal <= ZERO
            or not 1 <= loan.term_months <= MAX_TERM_MONTHS
            or payment <= ZERO
        ):
            logger.debug(
                "credit_progress_degenerate",
                extra={"principal": str(principal)},
            )
            return CreditProgressSnapshot(
                as_of=now,
                elapsed_installments=0,
                monthly_payment=max(payment, ZERO),
                expected_repaid=ZERO,
                amount_repaid=repaid,
                remaining_balance=max(principal, ZERO),
                scheduled_remaining_balance=max(principal, ZERO),
                scheduled_principal_repaid=ZERO,
                scheduled_interest_due=ZERO,
                progress_percent=ZERO,
                is_delinquent=False,
                months_in_arrears=0,
                status=CreditStatus.ACTIVE,
                next_due_date=None,
                is_degenerate=True,
            )

        elapsed = min(whole_months_between(loan.start_date, now), loan.term_months)
        expected = elapsed * payment
        is_delinquent = elapsed > 0 and repaid < expected

        arrears = 0
        if is_delinquent:
            shortfall = (expected - repaid) / payment
            arrears = min(int(shortfall.to_integral_value(rounding=ROUND_FLOOR)), elapsed)

        if repaid >= principal:
            status = CreditStatus.PAID_OFF
        elif now > loan.end_date or arrears > suspension_threshold_months:
            status = CreditStatus.SUSPENDED
        else:
            status = CreditStatus.ACTIVE

        position = scheduled_position(loan, elapsed)

        upcoming: date | None = None
        if status is not CreditStatus.PAID_OFF:
            paid = int((repaid / payment).to_integral_value(rounding=ROUND_FLOOR))
            if paid < loan.term_months:
                upcoming = next_due_date(loan.start_date, paid)

        snapshot = CreditProgressSnapshot(
            as_of=now,
            elapsed_installments=elapsed,
            monthly_payment=payment,
            expected_repaid=expected,
            amount_repaid=repaid,
            remaining_balance=max(principal - repaid, ZERO),
            scheduled_remaining_balance=position.remaining_balance,
            scheduled_principal_repaid=position.principal_repaid,
            scheduled_interest_due=position.interest_paid,
            progress_percent=_percent(repaid, principal),
            is_delinquent=is_delinquent,
            months_in_arrears=arrears,
            status=status,
            next_due_date=upcoming,
        )
        logger.debug(
            "credit_progress_assessed",
            extra={
                "elapsed_installments": elapsed,
                "expected_repaid": str(expected),
                "amount_repaid": str(repaid),
                "months_in_arrears": arrears,
                "status": status.value,
            },
        )
        return snapshot

    @staticmethod
    def _monthly_payment(loan: LoanContract) -> Decimal:
        if loan.stored_monthly_payment is not None:
            return require_amount(
                loan.stored_monthly_payment, "stored_monthly_payment", allow_negative=True
            )
        return loan.monthly_payment

    @traced_engine(
        "advance_progress",
        "1.0",
        fingerprint_fields=("advance", "as_of"),
        context_fields={"advance_id": "advance.advance_id"},
    )
    def assess_advance(self, *, advance: SalaryAdvance, as_of: date) -> AdvanceProgress:
        """
        Repayment progress of a salary advance.

        Expected progress assumes one installment falls due per whole month
        since the advance date.

        Raises:
            InvalidInputError: non-positive amount or installment count,
                remaining balance negative or above the amount.
        """
        amount = require_amount(advance.amount, "amount")
        if amount <= ZERO:
            raise InvalidInputError("amount", advance.amount, "must be positive")
        remaining = require_amount(advance.remaining_balance, "remaining_balance")
        if remaining > amount:
            raise InvalidInputError(
                "remaining_balance",
                advance.remaining_balance,
                f"cannot exceed the advance amount {amount}",
            )
        if advance.installment_count <= 0:
            raise InvalidInputError(
                "installment_count", advance.installment_count, "must be positive"
            )

        repaid = amount - remaining
        progress = _percent(repaid, amount)
        months = whole_months_between(advance.advance_date, as_of)
        expected = _percent(Decimal(months), Decimal(advance.installment_count))
        status = AdvanceStatus.REPAID if remaining == ZERO else AdvanceStatus.IN_PROGRESS

        return AdvanceProgress(
            amount_repaid=repaid,
            progress_percent=progress,
            months_elapsed=months,
            expected_progress_percent=expected,
            is_late=status is AdvanceStatus.IN_PROGRESS and progress < expected,
            status=status,
        )
