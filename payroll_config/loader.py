"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads jurisdiction YAML files and parses them into the frozen dataclasses
of ``payroll_config.schema`` and ``payroll_engines``.  Callers should not
use this module directly; the single public entry point is
``payroll_config.get_jurisdiction()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the engines only
for their parameter dataclasses; the engines never import this package.

Invariants enforced
-------------------
* Monetary amounts and rates are parsed to ``Decimal`` through ``str`` so
  that a YAML float never leaks binary noise into a table.
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structurally defective tables  -> ``ConfigurationError`` from the
  engine dataclass constructors.

Missing keys and unknown enum values are reported by
``payroll_config.validator`` before parsing is attempted.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import CreditPolicy, JurisdictionConfig, JurisdictionScope
from payroll_engines.amortization import MAX_TERM_MONTHS, InsuranceBasis
from payroll_engines.credit_progress import DEFAULT_SUSPENSION_THRESHOLD_MONTHS
from payroll_engines.payroll import (
    Allowance,
    AllowanceCeiling,
    DeductibleInterestRule,
    OptionalInsurance,
    PayrollRules,
    ProfessionalExpenseTier,
    ReliefRule,
)
from payroll_engines.seniority import SeniorityBand, SeniorityScale
from payroll_engines.statutory import ContributionBase, ContributionLine, SubjectFlag
from payroll_engines.tax_brackets import TaxBracketTable
from payroll_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Parse a YAML scalar (quoted string, int or float) to Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse a number from {value!r}")
    return Decimal(str(value))


def parse_optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_scope(data: dict[str, Any]) -> JurisdictionScope:
    """Parse a JurisdictionScope from a dict."""
    return JurisdictionScope(
        code=str(data["code"]).upper(),
        name=data["name"],
        currency=data["currency"],
        regime=data["regime"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_tax_table(name: str, data: dict[str, Any]) -> TaxBracketTable:
    """
    Parse the income-tax table in either published form.

    ``form: marginal`` rows carry ``lower``/``upper``/``rate``;
    ``form: deduction`` rows also carry the published ``deduction``.
    """
    form = data.get("form", "marginal")
    rows = data["brackets"]
    if form == "marginal":
        return TaxBracketTable.from_marginal(
            name=name,
            rows=[
                (
                    parse_decimal(row["lower"]),
                    parse_optional_decimal(row.get("upper")),
                    parse_decimal(row["rate"]),
                )
                for row in rows
            ],
        )
    if form == "deduction":
        return TaxBracketTable.from_deduction(
            name=name,
            rows=[
                (
                    parse_decimal(row["lower"]),
                    parse_optional_decimal(row.get("upper")),
                    parse_decimal(row["rate"]),
                    parse_decimal(row["deduction"]),
                )
                for row in rows
            ],
        )
    raise ConfigurationError(name, f"unknown bracket table form {form!r}")


def parse_seniority_scale(name: str, rows: list[dict[str, Any]]) -> SeniorityScale:
    return SeniorityScale(
        name=name,
        bands=tuple(
            SeniorityBand(
                min_years=int(row["min_years"]),
                max_years=int(row["max_years"]) if row.get("max_years") is not None else None,
                rate=parse_decimal(row["rate"]),
            )
            for row in rows
        ),
    )


def parse_contribution_line(data: dict[str, Any]) -> ContributionLine:
    """Parse one contribution line; optional keys default to 'not set'."""
    subject = data.get("subject_to")
    return ContributionLine(
        code=data["code"],
        label=data.get("label", data["code"]),
        rate=parse_decimal(data["rate"]),
        base=ContributionBase(data.get("base", ContributionBase.TAXABLE_GROSS.value)),
        floor=parse_optional_decimal(data.get("floor")),
        ceiling=parse_optional_decimal(data.get("ceiling")),
        subject_to=SubjectFlag(subject) if subject else None,
        minimum_threshold=parse_optional_decimal(data.get("minimum_threshold")),
        tax_deductible=bool(data.get("tax_deductible", False)),
    )


def parse_professional_tiers(rows: list[dict[str, Any]]) -> tuple[ProfessionalExpenseTier, ...]:
    return tuple(
        ProfessionalExpenseTier(
            annual_threshold=parse_optional_decimal(row.get("annual_threshold")),
            rate=parse_decimal(row["rate"]),
            annual_ceiling=parse_optional_decimal(row.get("annual_ceiling")),
        )
        for row in rows
    )


def parse_relief(data: dict[str, Any]) -> ReliefRule:
    max_dependents = data.get("max_dependents")
    return ReliefRule(
        personal_relief=parse_decimal(data.get("personal_relief", "0")),
        per_dependent=parse_decimal(data.get("per_dependent", "0")),
        max_dependents=int(max_dependents) if max_dependents is not None else None,
        married_counts_as_dependent=bool(data.get("married_counts_as_dependent", False)),
    )


def parse_deductible_interest(data: dict[str, Any]) -> DeductibleInterestRule:
    return DeductibleInterestRule(
        share_of_taxable_net=parse_decimal(data.get("share_of_taxable_net", "0.10")),
        monthly_ceiling=parse_optional_decimal(data.get("monthly_ceiling")),
    )


def parse_payroll_rules(code: str, data: dict[str, Any]) -> PayrollRules:
    """
    Parse the ``payroll`` section into engine ``PayrollRules``.

    Raises:
        KeyError: if required keys are missing.
        ConfigurationError: if a table violates its structural invariants.
    """
    ceilings = {
        Allowance(kind): AllowanceCeiling(
            share_of_base=parse_optional_decimal(spec.get("share_of_base")),
            absolute=parse_optional_decimal(spec.get("absolute")),
        )
        for kind, spec in (data.get("allowance_ceilings") or {}).items()
    }
    insurance_rates = {
        OptionalInsurance(kind): parse_decimal(rate)
        for kind, rate in (data.get("optional_insurance_rates") or {}).items()
    }
    return PayrollRules(
        name=code,
        tax_table=parse_tax_table(f"{code}.income_tax", data["income_tax"]),
        seniority_scale=parse_seniority_scale(f"{code}.seniority_scale", data["seniority_scale"]),
        employee_contributions=tuple(
            parse_contribution_line(line) for line in data["employee_contributions"]
        ),
        employer_contributions=tuple(
            parse_contribution_line(line) for line in data.get("employer_contributions") or []
        ),
        professional_expense_tiers=parse_professional_tiers(data["professional_expenses"]),
        relief=parse_relief(data.get("relief") or {}),
        deductible_interest=parse_deductible_interest(data.get("deductible_interest") or {}),
        allowance_ceilings=ceilings,
        non_taxable_allowances=frozenset(
            Allowance(kind) for kind in data.get("non_taxable_allowances") or []
        ),
        optional_insurance_rates=insurance_rates,
        standard_days=int(data.get("standard_days", 26)),
    )


def parse_credit_policy(data: dict[str, Any]) -> CreditPolicy:
    return CreditPolicy(
        interest_tax_rate=parse_decimal(data.get("interest_tax_rate", "0")),
        suspension_threshold_months=int(
            data.get("suspension_threshold_months", DEFAULT_SUSPENSION_THRESHOLD_MONTHS)
        ),
        max_term_months=int(data.get("max_term_months", MAX_TERM_MONTHS)),
        insurance_basis=InsuranceBasis(
            data.get("insurance_basis", InsuranceBasis.INITIAL_PRINCIPAL.value)
        ),
    )


def parse_jurisdiction(data: dict[str, Any]) -> JurisdictionConfig:
    """Parse a whole jurisdiction document (already validated)."""
    scope = parse_scope(data["scope"])
    return JurisdictionConfig(
        scope=scope,
        payroll=parse_payroll_rules(scope.code, data["payroll"]),
        credit=parse_credit_policy(data.get("credit") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
