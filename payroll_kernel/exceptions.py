"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll and credit figures end up on payslips and bank files.  Callers need
to tell "the loan amount must be positive" apart from "the Kenyan bracket
table has a gap" without parsing message strings, so that a screen can show
a precise message for the first and page an administrator for the second.

Every exception therefore:
  1. Has its own class (catch by type, not by message).
  2. Has a ``code`` class attribute (machine-readable, API-safe).
  3. Carries structured attributes describing the offending value.

Example:
    try:
        schedule = generate_schedule(loan=loan)
    except InvalidInputError as e:
        return {"error": e.code, "field": e.field, "reason": e.reason}
    except DegenerateLoanError as e:
        return {"error": e.code, "monthly_payment": str(e.monthly_payment)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- InvalidInputError
    |
    +-- ConfigurationError
    |   +-- JurisdictionNotFoundError
    |
    +-- DegenerateLoanError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Negative / non-finite / float amount,
                |                             | term outside 1..600, hire date in future
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Empty, gapped or unordered bracket or
                |                             | rate table; seniority outside the scale
                | JURISDICTION_NOT_FOUND      | No YAML table set for the requested code
----------------|-----------------------------|-----------------------------------------
Loan            | DEGENERATE_LOAN             | Stored monthly payment <= 0 or too small
                |                             | to ever amortize the principal

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError.  Domain errors are catchable as
   a group without catching programming errors.

2. ``DegenerateLoanError`` is the recoverable kind: the contract itself is
   well formed, only its monthly payment cannot amortize it.  A stored
   payment is usually replaced by the analytic one and retried; an analytic
   payment that rounds to nothing needs a shorter term.
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


class InvalidInputError(PayrollKernelError):
    """A caller-supplied value is outside its valid domain."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class ConfigurationError(PayrollKernelError):
    """
    A jurisdiction table is structurally defective.

    Raised for empty, gapped, overlapping or unordered bracket tables and
    for seniority values that no band covers.  These indicate a defect in
    the jurisdiction configuration, never a user error.
    """

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Configuration error in {table}: {reason}")


class JurisdictionNotFoundError(ConfigurationError):
    """No configuration file exists for the requested jurisdiction code."""

    code: str = "JURISDICTION_NOT_FOUND"

    def __init__(self, jurisdiction: str, searched: str):
        self.jurisdiction = jurisdiction
        self.searched = searched
        super().__init__(
            table=f"jurisdiction {jurisdiction}",
            reason=f"no configuration found in {searched}",
        )


class DegenerateLoanError(PayrollKernelError):
    """
    Loan contract whose monthly payment can never amortize the principal.

    The contract's principal, rate and term are valid, but the monthly
    payment (stored, or derived and rounded to the cent) is zero, negative,
    or does not cover the first period's interest.
    """

    code: str = "DEGENERATE_LOAN"

    def __init__(self, principal: object, monthly_payment: object, reason: str):
        self.principal = principal
        self.monthly_payment = monthly_payment
        self.reason = reason
        super().__init__(
            f"Degenerate loan (principal={principal}, "
            f"monthly_payment={monthly_payment}): {reason}"
        )
