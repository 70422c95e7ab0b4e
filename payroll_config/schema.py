"""
Configuration Schema (``payroll_config.schema``).

Frozen dataclasses describing one jurisdiction's configuration.  The
payroll side reuses the engine's own parameter objects
(``payroll_engines.payroll.PayrollRules``) so that the engine never has to
know this package exists; this module adds the scope and credit policy
around it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_engines.amortization import MAX_TERM_MONTHS, InsuranceBasis
from payroll_engines.credit_progress import DEFAULT_SUSPENSION_THRESHOLD_MONTHS
from payroll_engines.payroll import PayrollRules


@dataclass(frozen=True)
class JurisdictionScope:
    """Which regime a configuration file describes."""

    code: str  # KE, MA
    name: str
    currency: str  # ISO 4217
    regime: str
    effective_from: date
    effective_to: date | None = None


@dataclass(frozen=True)
class CreditPolicy:
    """
    Jurisdiction-level parameters for loans and credit progress.

    ``max_term_months`` is passed to the schedule generator and may only
    tighten its hard 600-month bound.
    """

    interest_tax_rate: Decimal
    suspension_threshold_months: int = DEFAULT_SUSPENSION_THRESHOLD_MONTHS
    max_term_months: int = MAX_TERM_MONTHS
    insurance_basis: InsuranceBasis = InsuranceBasis.INITIAL_PRINCIPAL


@dataclass(frozen=True)
class JurisdictionConfig:
    """
    A loaded, validated jurisdiction.

    ``checksum`` is the SHA-256 of the canonical JSON of the source
    document; two configs with the same checksum were built from the same
    tables.
    """

    scope: JurisdictionScope
    payroll: PayrollRules
    credit: CreditPolicy
    checksum: str
