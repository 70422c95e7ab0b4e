"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    calculation engine sub-modules.  This is the canonical import surface
    for callers (web handlers, batch runs, document generators).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel (and sibling engine modules).
    MUST NOT import payroll_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Now" and "as of" dates are passed in as explicit parameters.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``; floats
      are rejected at the boundary.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - InvalidInputError / ConfigurationError / DegenerateLoanError from
      ``payroll_kernel.exceptions``, propagated unchanged.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``payroll_engines.tracer``), emitting PAYROLL_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from payroll_engines.payroll import PayrollCalculator
    from payroll_engines.amortization import AmortizationScheduleGenerator
    from payroll_engines.credit_progress import CreditProgressCalculator
"""

from payroll_kernel.logging_config import get_logger

logger = get_logger("engines")

from payroll_engines.amortization import (
    MAX_TERM_MONTHS,
    AmortizationInstallment,
    AmortizationSchedule,
    AmortizationScheduleGenerator,
    InsuranceBasis,
    LoanContract,
    ScheduledPosition,
    ScheduleSummary,
    level_payment,
    scheduled_position,
)
from payroll_engines.credit_progress import (
    AdvanceProgress,
    AdvanceStatus,
    CreditProgressCalculator,
    CreditProgressSnapshot,
    CreditStatus,
    SalaryAdvance,
    next_due_date,
)
from payroll_engines.installment_plan import (
    InstallmentPlan,
    InstallmentStatus,
    PlanInstallment,
    PlanSummary,
    current_installment,
    custom_plan,
    fixed_plan,
    summarize_plan,
)
from payroll_engines.payroll import (
    Allowance,
    AllowanceCeiling,
    DeductibleInterestRule,
    DeductionCategory,
    DeductionLine,
    EarningsBreakdown,
    ElectiveDeductions,
    EmployeeCompensationProfile,
    MaritalStatus,
    OptionalInsurance,
    OtherDeduction,
    PayrollCalculator,
    PayrollResult,
    PayrollRules,
    ProfessionalExpenseTier,
    ReliefRule,
    TaxCalculation,
    VariableElement,
    VariableElementType,
)
from payroll_engines.rendering import render_to_dict
from payroll_engines.seniority import (
    SeniorityAllowance,
    SeniorityAllowanceCalculator,
    SeniorityBand,
    SeniorityScale,
    years_of_service,
)
from payroll_engines.statutory import (
    ContributionAmount,
    ContributionBase,
    ContributionLine,
    ContributionResult,
    StatutoryDeductionCalculator,
    SubjectFlag,
)
from payroll_engines.tax_brackets import (
    BracketTap,
    TaxBracket,
    TaxBracketResolver,
    TaxBracketTable,
)
from payroll_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Tax brackets
    "BracketTap",
    "TaxBracket",
    "TaxBracketResolver",
    "TaxBracketTable",
    # Statutory contributions
    "ContributionAmount",
    "ContributionBase",
    "ContributionLine",
    "ContributionResult",
    "StatutoryDeductionCalculator",
    "SubjectFlag",
    # Seniority
    "SeniorityAllowance",
    "SeniorityAllowanceCalculator",
    "SeniorityBand",
    "SeniorityScale",
    "years_of_service",
    # Payroll
    "Allowance",
    "AllowanceCeiling",
    "DeductibleInterestRule",
    "DeductionCategory",
    "DeductionLine",
    "EarningsBreakdown",
    "ElectiveDeductions",
    "EmployeeCompensationProfile",
    "MaritalStatus",
    "OptionalInsurance",
    "OtherDeduction",
    "PayrollCalculator",
    "PayrollResult",
    "PayrollRules",
    "ProfessionalExpenseTier",
    "ReliefRule",
    "TaxCalculation",
    "VariableElement",
    "VariableElementType",
    # Amortization
    "MAX_TERM_MONTHS",
    "AmortizationInstallment",
    "AmortizationSchedule",
    "AmortizationScheduleGenerator",
    "InsuranceBasis",
    "LoanContract",
    "ScheduledPosition",
    "ScheduleSummary",
    "level_payment",
    "scheduled_position",
    # Credit progress
    "AdvanceProgress",
    "AdvanceStatus",
    "CreditProgressCalculator",
    "CreditProgressSnapshot",
    "CreditStatus",
    "SalaryAdvance",
    "next_due_date",
    # Installment plans
    "InstallmentPlan",
    "InstallmentStatus",
    "PlanInstallment",
    "PlanSummary",
    "current_installment",
    "custom_plan",
    "fixed_plan",
    "summarize_plan",
    # Infrastructure
    "compute_input_fingerprint",
    "render_to_dict",
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 7,
    "modules": [
        "tax_brackets", "statutory", "seniority", "payroll",
        "amortization", "credit_progress", "installment_plan",
    ],
})
