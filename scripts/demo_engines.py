#!/usr/bin/env python3
"""
Payroll and credit engine walkthrough using the real configuration.

Loads a jurisdiction's YAML tables, then runs the three engine families
end to end and prints what a payroll administrator would see:

  - payslip      gross-to-net for one employee
  - schedule     amortization schedule of a loan (first rows + summary)
  - progress     repayment progress and delinquency on a given date

Usage:
    python3 scripts/demo_engines.py
    python3 scripts/demo_engines.py --jurisdiction MA --base-salary 12000
    python3 scripts/demo_engines.py --principal 24000 --rate 0 --term 24 \\
        --start 2025-09-17 --as-of 2026-10-17 --repaid 8000
    python3 scripts/demo_engines.py --verbose    # JSON trace records on stderr
"""

import argparse
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from payroll_config import get_jurisdiction  # noqa: E402
from payroll_engines import (  # noqa: E402
    AmortizationScheduleGenerator,
    CreditProgressCalculator,
    EmployeeCompensationProfile,
    LoanContract,
    PayrollCalculator,
)
from payroll_kernel.exceptions import PayrollKernelError  # noqa: E402
from payroll_kernel.logging_config import LogContext, configure_logging  # noqa: E402

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_AS_OF = date(2026, 10, 17)
DEFAULT_HIRE_DATE = date(2025, 3, 1)
DEFAULT_LOAN_START = date(2025, 9, 17)


def _money(amount: Decimal) -> str:
    return f"{amount:>14,.2f}"


def _print_payslip(result, currency: str) -> None:
    print()
    print(f"  PAYSLIP  employee={result.employee_id}  ({result.jurisdiction}, {currency})")
    print(f"    Years of service            {result.years_of_service:>14d}")
    print(f"    Gross salary                {_money(result.gross_salary)}")
    print(f"    Taxable gross               {_money(result.taxable_gross)}")
    for line in result.deduction_lines:
        print(f"    - {line.label:<26s}{_money(line.amount)}   [{line.category.value}]")
    print(f"    Total deductions            {_money(result.total_deductions)}")
    print(f"    NET SALARY PAYABLE          {_money(result.net_salary_payable)}")
    print(f"    Employer contributions      {_money(result.employer_contributions.total)}")
    print(f"    Total employer cost         {_money(result.total_employer_cost)}")


def _print_schedule(schedule, rows: int) -> None:
    print()
    print(f"  SCHEDULE  monthly payment {_money(schedule.monthly_payment).strip()}")
    print("      #  due date       principal       interest            tax      insurance        balance")
    for inst in schedule.installments[:rows]:
        print(
            f"    {inst.index:>3d}  {inst.due_date.isoformat()}"
            f"{_money(inst.principal)} {_money(inst.interest)} {_money(inst.interest_tax)}"
            f" {_money(inst.insurance)} {_money(inst.remaining_balance)}"
        )
    if len(schedule.installments) > rows:
        print(f"    ... {len(schedule.installments) - rows} more installments")
    summary = schedule.summary
    print(f"    Total interest              {_money(summary.total_interest)}")
    print(f"    Total cost                  {_money(summary.total_cost)}")
    print(f"    Last installment due        {summary.end_date.isoformat():>14s}")


def _print_progress(snapshot) -> None:
    print()
    print(f"  PROGRESS  as of {snapshot.as_of.isoformat()}")
    print(f"    Elapsed installments        {snapshot.elapsed_installments:>14d}")
    print(f"    Expected repaid             {_money(snapshot.expected_repaid)}")
    print(f"    Actually repaid             {_money(snapshot.amount_repaid)}")
    print(f"    Progress                    {snapshot.progress_percent:>13}%")
    print(f"    Months in arrears           {snapshot.months_in_arrears:>14d}")
    print(f"    Status                      {snapshot.status.value:>14s}")
    if snapshot.next_due_date is not None:
        print(f"    Next due date               {snapshot.next_due_date.isoformat():>14s}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Payroll & credit engine demo")
    parser.add_argument("--jurisdiction", default="KE", help="Jurisdiction code (KE, MA)")
    parser.add_argument("--as-of", type=date.fromisoformat, default=DEFAULT_AS_OF,
                        help="Calculation date (YYYY-MM-DD)")
    parser.add_argument("--base-salary", type=Decimal, default=Decimal("50000"))
    parser.add_argument("--hire-date", type=date.fromisoformat, default=DEFAULT_HIRE_DATE)
    parser.add_argument("--dependents", type=int, default=0)
    parser.add_argument("--principal", type=Decimal, default=Decimal("500000"))
    parser.add_argument("--rate", type=Decimal, default=Decimal("0.06"),
                        help="Annual interest rate as a fraction (0.06 = 6%%)")
    parser.add_argument("--term", type=int, default=120, help="Term in months")
    parser.add_argument("--start", type=date.fromisoformat, default=DEFAULT_LOAN_START,
                        help="Loan start date (YYYY-MM-DD)")
    parser.add_argument("--repaid", type=Decimal, default=Decimal("0"),
                        help="Amount actually repaid so far")
    parser.add_argument("--rows", type=int, default=6, help="Schedule rows to print")
    parser.add_argument("--run-id", default="demo",
                        help="Run identifier stamped on every log record")
    parser.add_argument("--verbose", action="store_true",
                        help="Emit structured trace records on stderr")
    return parser


def _run(args: argparse.Namespace) -> None:
    config = get_jurisdiction(args.jurisdiction)
    print()
    print(f"  [1/3] Loaded {config.scope.name} ({config.scope.regime})")
    print(f"        checksum {config.checksum[:16]}")

    result = PayrollCalculator().calculate(
        profile=EmployeeCompensationProfile(
            employee_id="DEMO-001",
            base_salary=args.base_salary,
            hire_date=args.hire_date,
            dependents=args.dependents,
        ),
        rules=config.payroll,
        as_of=args.as_of,
    )
    print("  [2/3] Payroll calculated")
    _print_payslip(result, config.scope.currency)

    loan = LoanContract(
        principal=args.principal,
        annual_rate=args.rate,
        term_months=args.term,
        start_date=args.start,
        insurance_basis=config.credit.insurance_basis,
        loan_id="DEMO-LOAN",
    )
    schedule = AmortizationScheduleGenerator().generate(
        loan=loan,
        interest_tax_rate=config.credit.interest_tax_rate,
        max_term_months=config.credit.max_term_months,
    )
    snapshot = CreditProgressCalculator().assess(
        loan=loan,
        amount_repaid=args.repaid,
        now=args.as_of,
        suspension_threshold_months=config.credit.suspension_threshold_months,
    )
    print()
    print("  [3/3] Loan scheduled and assessed")
    _print_schedule(schedule, args.rows)
    _print_progress(snapshot)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        configure_logging(level=logging.DEBUG)

    with LogContext.bind(run_id=args.run_id):
        try:
            _run(args)
        except PayrollKernelError as exc:
            print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
            return 1

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
