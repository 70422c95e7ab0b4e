"""
Payroll Engine -- gross-to-net payslip calculation.

Responsibility:
    Turns an employee's compensation snapshot for one period into a fully
    itemized payslip: earnings, gross and taxable gross, statutory
    contributions on both sides, the income-tax worksheet, elective
    deductions, net salary payable and total employer cost.

    One data-driven engine serves every jurisdiction.  Everything that
    differs between regimes (bracket table and its published form,
    contribution lines, professional-expense tiers, reliefs, allowance
    ceilings) arrives as a ``PayrollRules`` value built by the config layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is the explicit
    ``as_of`` argument; the engine never reads the clock.

Processing order:
    1. seniority bonus from completed years of service on ``as_of``
    2. allowance ceilings; gross = base + seniority + allowances + gains
    3. taxable gross = gross - non-taxable allowances; statutory
       contributions for employee and employer
    4. professional expenses (tier chosen on annualized taxable gross);
       taxable net = taxable gross - professional expenses -
       tax-deductible employee contributions, floored at 0
    5. deductible interest; net taxable income
    6. theoretical tax (prorated by days worked when supplied), relief,
       income tax
    7. elective deductions
    8. total deductions = statutory + income tax + elective lines
    9. net payable = gross - total deductions; employer cost

Invariants enforced:
    - Decimal-only arithmetic.  Intermediates stay at full precision; each
      published line is rounded once, half away from zero, to cents.
    - Gross is the sum of the rounded earnings lines.
    - ``total_deductions`` is exactly the sum of ``deduction_lines`` and
      ``net_salary_payable == gross_salary - total_deductions``.
    - Inputs are never mutated; identical inputs give identical results.

Failure modes:
    - InvalidInputError: negative or non-finite amounts, negative
      dependents or days worked, hire date after ``as_of``.
    - ConfigurationError: defective tables, seniority outside the scale,
      an enabled optional insurance with no configured rate.

Usage:
    from payroll_config import get_jurisdiction
    from payroll_engines.payroll import EmployeeCompensationProfile, PayrollCalculator

    rules = get_jurisdiction("KE").payroll
    result = PayrollCalculator().calculate(
        profile=EmployeeCompensationProfile(
            employee_id="EMP-001",
            base_salary=Decimal("50000"),
            hire_date=date(2025, 1, 6),
        ),
        rules=rules,
        as_of=date(2025, 10, 31),
    )
    print(result.net_salary_payable)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_engines.rendering import render_to_dict
from payroll_engines.seniority import SeniorityAllowanceCalculator, SeniorityScale
from payroll_engines.statutory import (
    ContributionLine,
    ContributionResult,
    StatutoryDeductionCalculator,
    SubjectFlag,
)
from payroll_engines.tax_brackets import TaxBracketResolver, TaxBracketTable
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.values import ZERO, require_amount, round_money
from payroll_kernel.exceptions import ConfigurationError, InvalidInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.payroll")

MONTHS_PER_YEAR = Decimal("12")


# =============================================================================
# Enumerations
# =============================================================================


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class Allowance(str, Enum):
    """Fixed monthly allowances carried on the employee record."""

    HOUSING = "housing"
    MEAL = "meal"
    TRANSPORT = "transport"
    REPRESENTATION = "representation"


class OptionalInsurance(str, Enum):
    """Elective insurance covers an employee may subscribe to."""

    COMPREHENSIVE_HEALTH = "comprehensive_health"
    FOREIGN_HEALTH_COVER = "foreign_health_cover"
    ENHANCED_DISABILITY = "enhanced_disability"


class VariableElementType(str, Enum):
    """Kinds of one-off items entered for a single pay period."""

    OVERTIME = "OVERTIME"
    BONUS = "BONUS"
    EXCEPTIONAL_BONUS = "EXCEPTIONAL_BONUS"
    ABSENCE = "ABSENCE"
    LATENESS = "LATENESS"
    ADVANCE = "ADVANCE"
    LEAVE = "LEAVE"  # signed: positive pays out, negative withholds
    OTHER = "OTHER"  # signed


class DeductionCategory(str, Enum):
    STATUTORY = "statutory"
    INCOME_TAX = "income_tax"
    ELECTIVE = "elective"


_SIGNED_ELEMENTS = frozenset({VariableElementType.LEAVE, VariableElementType.OTHER})


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class VariableElement:
    element_type: VariableElementType
    amount: Decimal
    label: str = ""


@dataclass(frozen=True)
class OtherDeduction:
    """Ad-hoc deduction already resolved by the caller (union dues, fines)."""

    code: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class EmployeeCompensationProfile:
    """
    Immutable snapshot of everything the engine needs about one employee
    for one pay period.

    ``loan_installments`` and ``advance_installments`` are the period's
    totals, already resolved from the credit schedules by the caller.
    ``deductible_interest`` is the mortgage interest paid in the period.
    ``days_worked`` is None for a full period.
    """

    employee_id: str
    base_salary: Decimal
    hire_date: date
    housing_allowance: Decimal = ZERO
    meal_allowance: Decimal = ZERO
    transport_allowance: Decimal = ZERO
    representation_allowance: Decimal = ZERO
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    dependents: int = 0
    subject_flags: frozenset[SubjectFlag] = frozenset(SubjectFlag)
    insurances: frozenset[OptionalInsurance] = frozenset()
    variable_elements: tuple[VariableElement, ...] = ()
    loan_installments: Decimal = ZERO
    advance_installments: Decimal = ZERO
    other_deductions: tuple[OtherDeduction, ...] = ()
    deductible_interest: Decimal = ZERO
    days_worked: int | None = None

    def allowance(self, kind: Allowance) -> Decimal:
        return {
            Allowance.HOUSING: self.housing_allowance,
            Allowance.MEAL: self.meal_allowance,
            Allowance.TRANSPORT: self.transport_allowance,
            Allowance.REPRESENTATION: self.representation_allowance,
        }[kind]


# =============================================================================
# Rules
# =============================================================================


@dataclass(frozen=True)
class AllowanceCeiling:
    """Cap on an allowance: a share of base salary and/or an absolute amount."""

    share_of_base: Decimal | None = None
    absolute: Decimal | None = None

    def apply(self, requested: Decimal, base_salary: Decimal) -> Decimal:
        capped = requested
        if self.share_of_base is not None:
            capped = min(capped, base_salary * self.share_of_base)
        if self.absolute is not None:
            capped = min(capped, self.absolute)
        return capped


@dataclass(frozen=True)
class ProfessionalExpenseTier:
    """
    Flat-rate professional expense allowance.

    Applies while annualized taxable gross is below ``annual_threshold``
    (None = no upper limit).  The deduction is ``rate * taxable gross``
    capped at ``annual_ceiling / 12``.
    """

    annual_threshold: Decimal | None
    rate: Decimal
    annual_ceiling: Decimal | None = None

    def amount(self, taxable_gross: Decimal) -> Decimal:
        expense = taxable_gross * self.rate
        if self.annual_ceiling is not None:
            expense = min(expense, self.annual_ceiling / MONTHS_PER_YEAR)
        return expense


@dataclass(frozen=True)
class DeductibleInterestRule:
    """Mortgage interest relief: ``min(interest, share * taxable net, ceiling)``."""

    share_of_taxable_net: Decimal = Decimal("0.10")
    monthly_ceiling: Decimal | None = None

    def apply(self, interest: Decimal, taxable_net: Decimal) -> Decimal:
        allowed = min(interest, taxable_net * self.share_of_taxable_net)
        if self.monthly_ceiling is not None:
            allowed = min(allowed, self.monthly_ceiling)
        return allowed


@dataclass(frozen=True)
class ReliefRule:
    """Monthly tax relief: personal relief plus a per-dependent amount."""

    personal_relief: Decimal = ZERO
    per_dependent: Decimal = ZERO
    max_dependents: int | None = None
    married_counts_as_dependent: bool = False

    def relief_for(self, marital_status: MaritalStatus, dependents: int) -> Decimal:
        count = dependents
        if self.married_counts_as_dependent and marital_status is MaritalStatus.MARRIED:
            count += 1
        if self.max_dependents is not None:
            count = min(count, self.max_dependents)
        return self.personal_relief + self.per_dependent * count


@dataclass(frozen=True)
class PayrollRules:
    """
    Everything jurisdiction-specific the payroll engine needs.

    Contract:
        Built once per jurisdiction by ``payroll_config``; treated as
        static, read-only configuration by the engine.

    Guarantees:
        - Professional-expense tiers are non-empty, ordered by threshold,
          and the last tier has no threshold.
        - ``standard_days`` is positive.
    """

    name: str
    tax_table: TaxBracketTable
    seniority_scale: SeniorityScale
    employee_contributions: tuple[ContributionLine, ...]
    employer_contributions: tuple[ContributionLine, ...]
    professional_expense_tiers: tuple[ProfessionalExpenseTier, ...]
    relief: ReliefRule = ReliefRule()
    deductible_interest: DeductibleInterestRule = DeductibleInterestRule()
    allowance_ceilings: Mapping[Allowance, AllowanceCeiling] = field(default_factory=dict)
    non_taxable_allowances: frozenset[Allowance] = frozenset()
    optional_insurance_rates: Mapping[OptionalInsurance, Decimal] = field(
        default_factory=dict
    )
    standard_days: int = 26

    def __post_init__(self) -> None:
        table = f"{self.name}.professional_expenses"
        tiers = self.professional_expense_tiers
        if not tiers:
            raise ConfigurationError(table, "no professional expense tiers")
        if tiers[-1].annual_threshold is not None:
            raise ConfigurationError(table, "last tier must have no threshold")
        thresholds = [t.annual_threshold for t in tiers[:-1]]
        if None in thresholds:
            raise ConfigurationError(table, "only the last tier may omit its threshold")
        if any(a >= b for a, b in zip(thresholds, thresholds[1:])):
            raise ConfigurationError(table, "tier thresholds must be strictly ascending")
        if self.standard_days <= 0:
            raise ConfigurationError(
                f"{self.name}.standard_days", "must be a positive number of days"
            )

    def professional_expense_tier(self, annual_taxable_gross: Decimal) -> ProfessionalExpenseTier:
        for tier in self.professional_expense_tiers:
            if tier.annual_threshold is None or annual_taxable_gross < tier.annual_threshold:
                return tier
        return self.professional_expense_tiers[-1]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class EarningsBreakdown:
    """Earnings lines, each rounded to cents."""

    base_salary: Decimal
    seniority_bonus: Decimal
    housing_allowance: Decimal
    meal_allowance: Decimal
    transport_allowance: Decimal
    representation_allowance: Decimal
    overtime: Decimal
    bonus: Decimal
    exceptional_bonus: Decimal
    other_earnings: Decimal
    total: Decimal

    def allowance(self, kind: Allowance) -> Decimal:
        return {
            Allowance.HOUSING: self.housing_allowance,
            Allowance.MEAL: self.meal_allowance,
            Allowance.TRANSPORT: self.transport_allowance,
            Allowance.REPRESENTATION: self.representation_allowance,
        }[kind]


@dataclass(frozen=True)
class TaxCalculation:
    """Income-tax worksheet, published figures rounded to cents."""

    professional_expenses: Decimal
    taxable_net: Decimal
    deductible_interest: Decimal
    net_taxable_income: Decimal
    theoretical_tax: Decimal
    relief: Decimal
    income_tax: Decimal


@dataclass(frozen=True)
class ElectiveDeductions:
    loan_installments: Decimal
    advance_installments: Decimal
    optional_insurance: Decimal
    variable_deductions: Decimal
    other_deductions: Decimal
    total: Decimal


@dataclass(frozen=True)
class DeductionLine:
    code: str
    label: str
    category: DeductionCategory
    amount: Decimal


@dataclass(frozen=True)
class PayrollResult:
    """
    Complete payslip figures for one employee and one period.

    ``net_salary_payable == gross_salary - total_deductions`` and
    ``total_deductions`` is the exact sum of ``deduction_lines``.
    """

    employee_id: str
    jurisdiction: str
    as_of: date
    years_of_service: int
    earnings: EarningsBreakdown
    gross_salary: Decimal
    taxable_gross: Decimal
    employee_contributions: ContributionResult
    employer_contributions: ContributionResult
    tax_calculation: TaxCalculation
    elective_deductions: ElectiveDeductions
    deduction_lines: tuple[DeductionLine, ...]
    total_deductions: Decimal
    net_salary_payable: Decimal
    total_employer_cost: Decimal

    def lines_in(self, category: DeductionCategory) -> tuple[DeductionLine, ...]:
        return tuple(line for line in self.deduction_lines if line.category is category)

    def to_dict(self) -> dict[str, Any]:
        """Plain nested data (Decimal amounts preserved) for collaborators."""
        return render_to_dict(self)


# =============================================================================
# Engine
# =============================================================================


@dataclass(frozen=True)
class _VariableTotals:
    overtime: Decimal = ZERO
    bonus: Decimal = ZERO
    exceptional_bonus: Decimal = ZERO
    other_earnings: Decimal = ZERO
    absence: Decimal = ZERO
    lateness: Decimal = ZERO
    advance: Decimal = ZERO
    other_deductions: Decimal = ZERO


def _sum_variable_elements(elements: tuple[VariableElement, ...]) -> _VariableTotals:
    totals: dict[str, Decimal] = {}

    def add(key: str, amount: Decimal) -> None:
        totals[key] = totals.get(key, ZERO) + amount

    for index, element in enumerate(elements):
        amount = require_amount(
            element.amount,
            f"variable_elements[{index}].amount",
            allow_negative=element.element_type in _SIGNED_ELEMENTS,
        )
        kind = element.element_type
        if kind is VariableElementType.OVERTIME:
            add("overtime", amount)
        elif kind is VariableElementType.BONUS:
            add("bonus", amount)
        elif kind is VariableElementType.EXCEPTIONAL_BONUS:
            add("exceptional_bonus", amount)
        elif kind is VariableElementType.ABSENCE:
            add("absence", amount)
        elif kind is VariableElementType.LATENESS:
            add("lateness", amount)
        elif kind is VariableElementType.ADVANCE:
            add("advance", amount)
        elif amount >= ZERO:
            add("other_earnings", amount)
        else:
            add("other_deductions", -amount)
    return _VariableTotals(**totals)


class PayrollCalculator:
    """
    Gross-to-net calculator.

    Contract:
        ``calculate`` is a pure function of ``profile``, ``rules`` and
        ``as_of``.

    Non-goals:
        - Year-to-date cumulative tax, multi-currency pay, arrears
          recalculation of earlier periods.
    """

    def __init__(self) -> None:
        self._seniority = SeniorityAllowanceCalculator()
        self._statutory = StatutoryDeductionCalculator()
        self._tax = TaxBracketResolver()

    @traced_engine(
        "payroll",
        "1.0",
        fingerprint_fields=("profile", "rules", "as_of"),
        context_fields={"employee_id": "profile.employee_id", "jurisdiction": "rules.name"},
    )
    def calculate(
        self,
        *,
        profile: EmployeeCompensationProfile,
        rules: PayrollRules,
        as_of: date,
    ) -> PayrollResult:
        """
        Compute the payslip for ``profile`` under ``rules`` on ``as_of``.

        Preconditions:
            - Monetary fields are finite and non-negative (LEAVE and OTHER
              variable elements may be negative).
            - ``dependents >= 0``; ``days_worked`` is None or >= 0.
        Postconditions:
            - ``net_salary_payable == gross_salary - total_deductions``.
        Raises:
            InvalidInputError, ConfigurationError.
        """
        base = require_amount(profile.base_salary, "base_salary")
        if profile.dependents < 0:
            raise InvalidInputError("dependents", profile.dependents, "must not be negative")
        if profile.days_worked is not None and profile.days_worked < 0:
            raise InvalidInputError("days_worked", profile.days_worked, "must not be negative")

        # 1-2. earnings and gross
        seniority = self._seniority.calculate(
            base_salary=base,
            hire_date=profile.hire_date,
            as_of=as_of,
            scale=rules.seniority_scale,
        )
        allowances: dict[Allowance, Decimal] = {}
        for kind in Allowance:
            requested = require_amount(profile.allowance(kind), f"{kind.value}_allowance")
            ceiling = rules.allowance_ceilings.get(kind)
            if ceiling is not None:
                requested = ceiling.apply(requested, base)
            allowances[kind] = round_money(requested)

        variable = _sum_variable_elements(profile.variable_elements)
        earnings_lines = {
            "base_salary": round_money(base),
            "seniority_bonus": seniority.amount,
            "housing_allowance": allowances[Allowance.HOUSING],
            "meal_allowance": allowances[Allowance.MEAL],
            "transport_allowance": allowances[Allowance.TRANSPORT],
            "representation_allowance": allowances[Allowance.REPRESENTATION],
            "overtime": round_money(variable.overtime),
            "bonus": round_money(variable.bonus),
            "exceptional_bonus": round_money(variable.exceptional_bonus),
            "other_earnings": round_money(variable.other_earnings),
        }
        gross = sum(earnings_lines.values(), ZERO)
        earnings = EarningsBreakdown(**earnings_lines, total=gross)

        # 3. taxable gross and contributions
        non_taxable = sum(
            (allowances[kind] for kind in rules.non_taxable_allowances), ZERO
        )
        taxable_gross = gross - non_taxable
        employee = self._statutory.calculate(
            gross=gross,
            taxable_gross=taxable_gross,
            lines=rules.employee_contributions,
            subject_flags=profile.subject_flags,
        )
        employer = self._statutory.calculate(
            gross=gross,
            taxable_gross=taxable_gross,
            lines=rules.employer_contributions,
            subject_flags=profile.subject_flags,
        )

        # 4-6. income tax worksheet
        tax_calculation = self._income_tax(
            profile=profile,
            rules=rules,
            taxable_gross=taxable_gross,
            deductible_contributions=employee.deductible_total,
        )

        # 7. elective deductions
        elective_lines = self._elective_lines(
            profile=profile,
            rules=rules,
            taxable_gross=taxable_gross,
            variable=variable,
        )
        elective = ElectiveDeductions(
            loan_installments=_sum_codes(elective_lines, {"loan_installments"}),
            advance_installments=_sum_codes(elective_lines, {"advance_installments"}),
            optional_insurance=_sum_codes(elective_lines, {i.value for i in OptionalInsurance}),
            variable_deductions=_sum_codes(elective_lines, _VARIABLE_DEDUCTION_CODES),
            other_deductions=sum(
                (line.amount for line in elective_lines if line.code.startswith("other:")),
                ZERO,
            ),
            total=sum((line.amount for line in elective_lines), ZERO),
        )

        # 8-9. totals
        deduction_lines = (
            tuple(
                DeductionLine(c.code, c.label, DeductionCategory.STATUTORY, c.amount)
                for c in employee.lines
            )
            + (
                DeductionLine(
                    "income_tax",
                    "Income tax",
                    DeductionCategory.INCOME_TAX,
                    tax_calculation.income_tax,
                ),
            )
            + elective_lines
        )
        total_deductions = sum((line.amount for line in deduction_lines), ZERO)

        result = PayrollResult(
            employee_id=profile.employee_id,
            jurisdiction=rules.name,
            as_of=as_of,
            years_of_service=seniority.years_of_service,
            earnings=earnings,
            gross_salary=gross,
            taxable_gross=taxable_gross,
            employee_contributions=employee,
            employer_contributions=employer,
            tax_calculation=tax_calculation,
            elective_deductions=elective,
            deduction_lines=deduction_lines,
            total_deductions=total_deductions,
            net_salary_payable=gross - total_deductions,
            total_employer_cost=gross + employer.total,
        )

        logger.debug(
            "payroll_calculated",
            extra={
                "gross_salary": str(result.gross_salary),
                "income_tax": str(tax_calculation.income_tax),
                "total_deductions": str(result.total_deductions),
                "net_salary_payable": str(result.net_salary_payable),
            },
        )
        return result

    def _income_tax(
        self,
        *,
        profile: EmployeeCompensationProfile,
        rules: PayrollRules,
        taxable_gross: Decimal,
        deductible_contributions: Decimal,
    ) -> TaxCalculation:
        tier = rules.professional_expense_tier(taxable_gross * MONTHS_PER_YEAR)
        professional = tier.amount(taxable_gross)
        taxable_net = max(ZERO, taxable_gross - professional - deductible_contributions)

        interest = rules.deductible_interest.apply(
            require_amount(profile.deductible_interest, "deductible_interest"),
            taxable_net,
        )
        net_taxable = taxable_net - interest

        theoretical = self._tax.resolve(amount=net_taxable, table=rules.tax_table)
        if profile.days_worked is not None:
            days = min(profile.days_worked, rules.standard_days)
            theoretical = theoretical * Decimal(days) / Decimal(rules.standard_days)

        relief = rules.relief.relief_for(profile.marital_status, profile.dependents)
        income_tax = max(ZERO, theoretical - relief)

        return TaxCalculation(
            professional_expenses=round_money(professional),
            taxable_net=round_money(taxable_net),
            deductible_interest=round_money(interest),
            net_taxable_income=round_money(net_taxable),
            theoretical_tax=round_money(theoretical),
            relief=round_money(relief),
            income_tax=round_money(income_tax),
        )

    @staticmethod
    def _elective_lines(
        *,
        profile: EmployeeCompensationProfile,
        rules: PayrollRules,
        taxable_gross: Decimal,
        variable: _VariableTotals,
    ) -> tuple[DeductionLine, ...]:
        candidates: list[tuple[str, str, Decimal]] = [
            (
                "loan_installments",
                "Loan installments",
                require_amount(profile.loan_installments, "loan_installments"),
            ),
            (
                "advance_installments",
                "Salary advance installments",
                require_amount(profile.advance_installments, "advance_installments"),
            ),
        ]

        for insurance in sorted(profile.insurances, key=lambda i: i.value):
            rate = rules.optional_insurance_rates.get(insurance)
            if rate is None:
                raise ConfigurationError(
                    f"{rules.name}.optional_insurance_rates",
                    f"no rate configured for {insurance.value}",
                )
            candidates.append(
                (insurance.value, insurance.value.replace("_", " ").capitalize(), taxable_gross * rate)
            )

        candidates.extend(
            [
                ("absence", "Absences", variable.absence),
                ("lateness", "Lateness", variable.lateness),
                ("variable_advance", "Advance (variable element)", variable.advance),
                ("other_variable_deductions", "Other variable deductions", variable.other_deductions),
            ]
        )

        for index, other in enumerate(profile.other_deductions):
            candidates.append(
                (
                    f"other:{other.code}",
                    other.label,
                    require_amount(other.amount, f"other_deductions[{index}].amount"),
                )
            )

        lines: list[DeductionLine] = []
        for code, label, amount in candidates:
            rounded = round_money(amount)
            if rounded > ZERO:
                lines.append(DeductionLine(code, label, DeductionCategory.ELECTIVE, rounded))
        return tuple(lines)


_VARIABLE_DEDUCTION_CODES = frozenset(
    {"absence", "lateness", "variable_advance", "other_variable_deductions"}
)


def _sum_codes(lines: tuple[DeductionLine, ...], codes: set[str] | frozenset[str]) -> Decimal:
    return sum((line.amount for line in lines if line.code in codes), ZERO)
