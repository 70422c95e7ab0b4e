"""
Configuration Validator (``payroll_config.validator``).

Responsibility
--------------
Validates a raw jurisdiction document before it is parsed, so that a
missing key or a misspelt enum value is reported as a list of readable
problems instead of the first ``KeyError`` the parser would hit.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``payroll_config.get_jurisdiction`` after loading and before parsing.

Invariants enforced
-------------------
* Required sections and keys are present.
* Numeric values parse as Decimal; rates lie in ``[0, 1]``.
* Enum-valued keys (contribution base, subject flag, allowance kind,
  insurance kind, bracket form) name known values.
* Contribution codes are unique on each side.

Structural table invariants (bracket contiguity, band coverage, tier
ordering) are enforced by the engine dataclasses themselves when the
document is parsed.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  jurisdiction MUST NOT be used.
* Validation warnings (``ConfigValidationResult.warnings``)  -> usable,
  but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_config.loader import parse_date, parse_decimal
from payroll_engines.amortization import MAX_TERM_MONTHS, InsuranceBasis
from payroll_engines.payroll import Allowance, OptionalInsurance
from payroll_engines.statutory import ContributionBase, SubjectFlag

_BRACKET_FORMS = frozenset({"marginal", "deduction"})
_SCOPE_KEYS = ("code", "name", "currency", "regime", "effective_from")
_PAYROLL_KEYS = (
    "income_tax",
    "seniority_scale",
    "employee_contributions",
    "professional_expenses",
)


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_jurisdiction(data: dict[str, Any]) -> ConfigValidationResult:
    """
    Validate a raw jurisdiction document.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises for bad
          content, only collects errors and warnings.
    """
    result = ConfigValidationResult()

    scope = data.get("scope")
    if not isinstance(scope, dict):
        result.add_error("missing 'scope' section")
    else:
        _validate_scope(scope, result)

    payroll = data.get("payroll")
    if not isinstance(payroll, dict):
        result.add_error("missing 'payroll' section")
    else:
        _validate_payroll(payroll, result)

    credit = data.get("credit")
    if credit is None:
        result.add_warning("no 'credit' section; credit defaults apply")
    elif not isinstance(credit, dict):
        result.add_error("'credit' must be a mapping")
    else:
        _validate_credit(credit, result)

    return result


def _check_number(
    value: Any,
    where: str,
    result: ConfigValidationResult,
    *,
    is_rate: bool = False,
) -> None:
    try:
        number = parse_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        result.add_error(f"{where}: {value!r} is not a number")
        return
    if not number.is_finite():
        result.add_error(f"{where}: {value!r} is not finite")
    elif number < 0:
        result.add_error(f"{where}: {value} must not be negative")
    elif is_rate and number > Decimal("1"):
        result.add_error(f"{where}: rate {value} must be a fraction in [0, 1]")


def _check_enum(
    value: Any,
    enum_values: frozenset[str],
    where: str,
    result: ConfigValidationResult,
) -> None:
    if value not in enum_values:
        result.add_error(
            f"{where}: unknown value {value!r} (expected one of {sorted(enum_values)})"
        )


def _validate_scope(scope: dict[str, Any], result: ConfigValidationResult) -> None:
    for key in _SCOPE_KEYS:
        if key not in scope:
            result.add_error(f"scope.{key} is required")
    try:
        start = parse_date(scope["effective_from"]) if "effective_from" in scope else None
        end = parse_date(scope["effective_to"]) if scope.get("effective_to") else None
    except ValueError as exc:
        result.add_error(f"scope: {exc}")
        return
    if start and end and end < start:
        result.add_error("scope.effective_to precedes scope.effective_from")


def _validate_payroll(payroll: dict[str, Any], result: ConfigValidationResult) -> None:
    for key in _PAYROLL_KEYS:
        if key not in payroll:
            result.add_error(f"payroll.{key} is required")

    income_tax = payroll.get("income_tax")
    if isinstance(income_tax, dict):
        _validate_income_tax(income_tax, result)
    elif income_tax is not None:
        result.add_error("payroll.income_tax must be a mapping")

    for index, band in enumerate(payroll.get("seniority_scale") or []):
        where = f"payroll.seniority_scale[{index}]"
        if "min_years" not in band or "rate" not in band:
            result.add_error(f"{where}: min_years and rate are required")
            continue
        _check_number(band["rate"], f"{where}.rate", result, is_rate=True)

    employee = payroll.get("employee_contributions") or []
    employer = payroll.get("employer_contributions") or []
    if "employee_contributions" in payroll and not employee:
        result.add_warning("payroll.employee_contributions is empty")
    if not employer:
        result.add_warning("payroll.employer_contributions is empty; employer cost equals gross")
    _validate_contributions("employee_contributions", employee, result)
    _validate_contributions("employer_contributions", employer, result)

    for index, tier in enumerate(payroll.get("professional_expenses") or []):
        where = f"payroll.professional_expenses[{index}]"
        if "rate" not in tier:
            result.add_error(f"{where}.rate is required")
            continue
        _check_number(tier["rate"], f"{where}.rate", result, is_rate=True)
        for key in ("annual_threshold", "annual_ceiling"):
            if tier.get(key) is not None:
                _check_number(tier[key], f"{where}.{key}", result)

    relief = payroll.get("relief") or {}
    grants_relief = False
    for key in ("personal_relief", "per_dependent"):
        if key in relief:
            _check_number(relief[key], f"payroll.relief.{key}", result)
            try:
                grants_relief = grants_relief or parse_decimal(relief[key]) > 0
            except (InvalidOperation, ValueError):
                pass  # already reported by _check_number
    if not grants_relief:
        result.add_warning("payroll.relief grants no relief")

    interest = payroll.get("deductible_interest") or {}
    if "share_of_taxable_net" in interest:
        _check_number(
            interest["share_of_taxable_net"],
            "payroll.deductible_interest.share_of_taxable_net",
            result,
            is_rate=True,
        )

    allowances = frozenset(a.value for a in Allowance)
    for kind, ceiling in (payroll.get("allowance_ceilings") or {}).items():
        _check_enum(kind, allowances, "payroll.allowance_ceilings", result)
        if ceiling.get("share_of_base") is not None:
            _check_number(
                ceiling["share_of_base"],
                f"payroll.allowance_ceilings.{kind}.share_of_base",
                result,
                is_rate=True,
            )
    for kind in payroll.get("non_taxable_allowances") or []:
        _check_enum(kind, allowances, "payroll.non_taxable_allowances", result)

    insurances = frozenset(i.value for i in OptionalInsurance)
    for kind, rate in (payroll.get("optional_insurance_rates") or {}).items():
        _check_enum(kind, insurances, "payroll.optional_insurance_rates", result)
        _check_number(rate, f"payroll.optional_insurance_rates.{kind}", result, is_rate=True)

    standard_days = payroll.get("standard_days", 26)
    if not isinstance(standard_days, int) or standard_days <= 0:
        result.add_error(f"payroll.standard_days: {standard_days!r} must be a positive integer")


def _validate_income_tax(income_tax: dict[str, Any], result: ConfigValidationResult) -> None:
    form = income_tax.get("form", "marginal")
    _check_enum(form, _BRACKET_FORMS, "payroll.income_tax.form", result)
    brackets = income_tax.get("brackets")
    if not brackets:
        result.add_error("payroll.income_tax.brackets must not be empty")
        return
    for index, row in enumerate(brackets):
        where = f"payroll.income_tax.brackets[{index}]"
        required = ("lower", "rate", "deduction") if form == "deduction" else ("lower", "rate")
        missing = [key for key in required if key not in row]
        if missing:
            result.add_error(f"{where}: missing {', '.join(missing)}")
            continue
        _check_number(row["lower"], f"{where}.lower", result)
        _check_number(row["rate"], f"{where}.rate", result, is_rate=True)
        if row.get("upper") is not None:
            _check_number(row["upper"], f"{where}.upper", result)


def _validate_contributions(
    side: str,
    lines: list[dict[str, Any]],
    result: ConfigValidationResult,
) -> None:
    bases = frozenset(b.value for b in ContributionBase)
    flags = frozenset(f.value for f in SubjectFlag)
    seen: set[str] = set()
    for index, line in enumerate(lines):
        where = f"payroll.{side}[{index}]"
        code = line.get("code")
        if not code:
            result.add_error(f"{where}.code is required")
        elif code in seen:
            result.add_error(f"{where}: duplicate contribution code {code!r}")
        else:
            seen.add(code)
        if "rate" not in line:
            result.add_error(f"{where}.rate is required")
        else:
            _check_number(line["rate"], f"{where}.rate", result, is_rate=True)
        if "base" in line:
            _check_enum(line["base"], bases, f"{where}.base", result)
        if line.get("subject_to") is not None:
            _check_enum(line["subject_to"], flags, f"{where}.subject_to", result)
        for key in ("floor", "ceiling", "minimum_threshold"):
            if line.get(key) is not None:
                _check_number(line[key], f"{where}.{key}", result)
        if side == "employer_contributions" and line.get("tax_deductible"):
            result.add_warning(f"{where}: tax_deductible has no effect on employer lines")


def _validate_credit(credit: dict[str, Any], result: ConfigValidationResult) -> None:
    if "interest_tax_rate" in credit:
        _check_number(
            credit["interest_tax_rate"], "credit.interest_tax_rate", result, is_rate=True
        )
    threshold = credit.get("suspension_threshold_months", 0)
    if not isinstance(threshold, int) or threshold < 0:
        result.add_error(
            f"credit.suspension_threshold_months: {threshold!r} must be a non-negative integer"
        )
    max_term = credit.get("max_term_months", MAX_TERM_MONTHS)
    if not isinstance(max_term, int) or not 1 <= max_term <= MAX_TERM_MONTHS:
        result.add_error(
            f"credit.max_term_months: {max_term!r} must be between 1 and {MAX_TERM_MONTHS}"
        )
    if "insurance_basis" in credit:
        _check_enum(
            credit["insurance_basis"],
            frozenset(b.value for b in InsuranceBasis),
            "credit.insurance_basis",
            result,
        )
