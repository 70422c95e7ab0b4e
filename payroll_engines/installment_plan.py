"""
Manual installment plans.

Not every credit is amortized: some are repaid in equal amounts agreed by
hand, or in a list of custom amounts.  These plans use the same due-date
rule as the amortization engine (``add_months(start_date, i)``) and are
tracked by which installment numbers have been paid.

An unpaid installment whose due date is strictly before ``as_of`` is
overdue; one due on ``as_of`` is still current.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from payroll_engines.amortization import MAX_TERM_MONTHS
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dates import add_months
from payroll_kernel.domain.values import HUNDRED, ZERO, require_amount, round_money
from payroll_kernel.exceptions import InvalidInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.installment_plan")


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


@dataclass(frozen=True)
class PlanInstallment:
    number: int  # 1-based
    due_date: date
    amount: Decimal


@dataclass(frozen=True)
class InstallmentPlan:
    start_date: date
    installments: tuple[PlanInstallment, ...]

    @property
    def total(self) -> Decimal:
        return sum((i.amount for i in self.installments), ZERO)


@dataclass(frozen=True)
class PlanSummary:
    total_installments: int
    paid_count: int
    paid_amount: Decimal
    remaining_amount: Decimal
    overdue_count: int
    overdue_amount: Decimal
    next_installment: PlanInstallment | None
    progress_percent: Decimal

    @property
    def is_overdue(self) -> bool:
        return self.overdue_count > 0


def custom_plan(*, start_date: date, amounts: Sequence[Decimal]) -> InstallmentPlan:
    """Plan with one installment per amount, due monthly after ``start_date``."""
    if not amounts:
        raise InvalidInputError("amounts", amounts, "at least one installment is required")
    if len(amounts) > MAX_TERM_MONTHS:
        raise InvalidInputError(
            "amounts", len(amounts), f"at most {MAX_TERM_MONTHS} installments"
        )
    installments = []
    for index, raw in enumerate(amounts, start=1):
        amount = require_amount(raw, f"amounts[{index - 1}]")
        if amount <= ZERO:
            raise InvalidInputError(f"amounts[{index - 1}]", raw, "must be positive")
        installments.append(
            PlanInstallment(
                number=index,
                due_date=add_months(start_date, index),
                amount=round_money(amount),
            )
        )
    return InstallmentPlan(start_date=start_date, installments=tuple(installments))


def fixed_plan(
    *,
    start_date: date,
    monthly_amount: Decimal,
    installment_count: int,
) -> InstallmentPlan:
    """Plan of ``installment_count`` equal installments."""
    if not 1 <= installment_count <= MAX_TERM_MONTHS:
        raise InvalidInputError(
            "installment_count",
            installment_count,
            f"must be between 1 and {MAX_TERM_MONTHS}",
        )
    return custom_plan(start_date=start_date, amounts=[monthly_amount] * installment_count)


def _paid_set(plan: InstallmentPlan, paid_numbers: Iterable[int]) -> frozenset[int]:
    paid = frozenset(paid_numbers)
    count = len(plan.installments)
    for number in paid:
        if not 1 <= number <= count:
            raise InvalidInputError(
                "paid_numbers", number, f"no installment {number} in a plan of {count}"
            )
    return paid


def installment_status(
    installment: PlanInstallment, paid_numbers: frozenset[int], as_of: date
) -> InstallmentStatus:
    if installment.number in paid_numbers:
        return InstallmentStatus.PAID
    if installment.due_date < as_of:
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def current_installment(
    *,
    plan: InstallmentPlan,
    paid_numbers: Iterable[int],
    as_of: date,
) -> PlanInstallment | None:
    """
    The installment to collect next.

    The earliest unpaid installment already due on ``as_of``; failing
    that, the earliest unpaid one; None when everything is paid.
    """
    paid = _paid_set(plan, paid_numbers)
    unpaid = [i for i in plan.installments if i.number not in paid]
    for installment in unpaid:
        if installment.due_date <= as_of:
            return installment
    return unpaid[0] if unpaid else None


@traced_engine(
    "installment_plan", "1.0", fingerprint_fields=("plan", "paid_numbers", "as_of")
)
def summarize_plan(
    *,
    plan: InstallmentPlan,
    paid_numbers: frozenset[int],
    as_of: date,
) -> PlanSummary:
    """Paid, remaining and overdue totals of ``plan`` on ``as_of``."""
    paid = _paid_set(plan, paid_numbers)
    paid_amount = ZERO
    remaining = ZERO
    overdue_count = 0
    overdue_amount = ZERO
    upcoming: PlanInstallment | None = None

    for installment in plan.installments:
        status = installment_status(installment, paid, as_of)
        if status is InstallmentStatus.PAID:
            paid_amount += installment.amount
            continue
        remaining += installment.amount
        if upcoming is None:
            upcoming = installment
        if status is InstallmentStatus.OVERDUE:
            overdue_count += 1
            overdue_amount += installment.amount

    total = len(plan.installments)
    summary = PlanSummary(
        total_installments=total,
        paid_count=len(paid),
        paid_amount=paid_amount,
        remaining_amount=remaining,
        overdue_count=overdue_count,
        overdue_amount=overdue_amount,
        next_installment=upcoming,
        progress_percent=round_money(Decimal(len(paid)) / Decimal(total) * HUNDRED),
    )
    logger.debug(
        "installment_plan_summarized",
        extra={
            "paid_count": summary.paid_count,
            "overdue_count": overdue_count,
            "remaining_amount": str(remaining),
        },
    )
    return summary
