"""
Pytest fixtures for the payroll and credit engine test suite.

Provides:
- A deterministic clock (engines never read the wall clock; tests take
  their "today" from here)
- Loaded Kenya and Morocco jurisdictions from the shipped YAML tables
- Sample employee profiles
- Log capture for the payroll_kernel logger hierarchy
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from payroll_config import JurisdictionConfig, get_jurisdiction
from payroll_engines.payroll import EmployeeCompensationProfile, PayrollCalculator
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.logging_config import LogContext, reset_logging


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed at 17 October 2026, 09:00 UTC."""
    return DeterministicClock(datetime(2026, 10, 17, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def as_of(deterministic_clock) -> date:
    return deterministic_clock.today()


@pytest.fixture(scope="session")
def kenya() -> JurisdictionConfig:
    return get_jurisdiction("KE")


@pytest.fixture(scope="session")
def morocco() -> JurisdictionConfig:
    return get_jurisdiction("MA")


@pytest.fixture
def payroll_calculator() -> PayrollCalculator:
    return PayrollCalculator()


@pytest.fixture
def recent_hire() -> EmployeeCompensationProfile:
    """Base salary only, hired well inside the first seniority band."""
    return EmployeeCompensationProfile(
        employee_id="EMP-001",
        base_salary=Decimal("50000"),
        hire_date=date(2025, 3, 1),
    )


@pytest.fixture
def senior_employee() -> EmployeeCompensationProfile:
    """Seven years of service, allowances and a family."""
    return EmployeeCompensationProfile(
        employee_id="EMP-002",
        base_salary=Decimal("80000"),
        hire_date=date(2019, 6, 1),
        housing_allowance=Decimal("25000"),
        meal_allowance=Decimal("3000"),
        transport_allowance=Decimal("4000"),
        representation_allowance=Decimal("5000"),
        dependents=2,
    )


@pytest.fixture
def caplog_payroll(caplog):
    """caplog capturing DEBUG and above from the payroll_kernel hierarchy."""
    reset_logging()
    LogContext.clear()
    caplog.set_level(logging.DEBUG, logger="payroll_kernel")
    yield caplog
    LogContext.clear()
    reset_logging()
