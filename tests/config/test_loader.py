"""
Tests for the YAML configuration loader.

Covers:
- Scalar parsing (Decimal through str, dates)
- Both bracket table forms
- Contribution line defaults
- Whole-document parsing and checksums
"""

import copy
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

import payroll_config
from payroll_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_contribution_line,
    parse_credit_policy,
    parse_date,
    parse_decimal,
    parse_jurisdiction,
    parse_relief,
    parse_tax_table,
)
from payroll_engines.amortization import InsuranceBasis
from payroll_engines.payroll import Allowance, OptionalInsurance
from payroll_engines.statutory import ContributionBase, SubjectFlag
from payroll_kernel.exceptions import ConfigurationError

JURISDICTIONS_DIR = Path(payroll_config.__file__).parent / "jurisdictions"


class TestScalarParsing:

    def test_decimal_from_quoted_string(self):
        assert parse_decimal("0.0275") == Decimal("0.0275")

    def test_decimal_from_yaml_float_has_no_binary_noise(self):
        assert parse_decimal(0.1) == Decimal("0.1")

    def test_decimal_from_int(self):
        assert parse_decimal(26) == Decimal("26")

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValueError):
            parse_decimal(True)

    def test_date_from_string_and_date(self):
        assert parse_date("2025-01-01") == date(2025, 1, 1)
        assert parse_date(date(2025, 1, 1)) == date(2025, 1, 1)

    def test_date_from_other_type(self):
        with pytest.raises(ValueError):
            parse_date(20250101)


class TestTableParsing:

    def test_marginal_form(self):
        table = parse_tax_table(
            "t",
            {
                "form": "marginal",
                "brackets": [
                    {"lower": "0", "upper": "1000", "rate": "0"},
                    {"lower": "1000", "upper": None, "rate": "0.1"},
                ],
            },
        )
        assert table.brackets[1].deduction == Decimal("100.0")

    def test_form_defaults_to_marginal(self):
        table = parse_tax_table("t", {"brackets": [{"lower": "0", "rate": "0.1"}]})
        assert table.brackets[0].upper is None

    def test_deduction_form(self):
        table = parse_tax_table(
            "t",
            {
                "form": "deduction",
                "brackets": [
                    {"lower": "0", "upper": "1000", "rate": "0", "deduction": "0"},
                    {"lower": "1000", "upper": None, "rate": "0.1", "deduction": "100"},
                ],
            },
        )
        assert table.brackets[1].deduction == Decimal("100")

    def test_unknown_form(self):
        with pytest.raises(ConfigurationError):
            parse_tax_table("t", {"form": "lookup", "brackets": []})

    def test_contribution_line_defaults(self):
        line = parse_contribution_line({"code": "levy", "rate": "0.01"})
        assert line.label == "levy"
        assert line.base is ContributionBase.TAXABLE_GROSS
        assert line.subject_to is None
        assert line.floor is None and line.ceiling is None
        assert line.tax_deductible is False

    def test_contribution_line_full(self):
        line = parse_contribution_line(
            {
                "code": "nssf",
                "label": "NSSF",
                "rate": "0.06",
                "base": "gross",
                "floor": "8000",
                "ceiling": "72000",
                "subject_to": "social_security",
                "tax_deductible": True,
            }
        )
        assert line.base is ContributionBase.GROSS
        assert line.subject_to is SubjectFlag.SOCIAL_SECURITY
        assert line.ceiling == Decimal("72000")

    def test_relief_defaults(self):
        relief = parse_relief({})
        assert relief.personal_relief == Decimal("0")
        assert relief.max_dependents is None

    def test_credit_policy_defaults(self):
        policy = parse_credit_policy({})
        assert policy.interest_tax_rate == Decimal("0")
        assert policy.suspension_threshold_months == 3
        assert policy.max_term_months == 600
        assert policy.insurance_basis is InsuranceBasis.INITIAL_PRINCIPAL


class TestDocumentParsing:

    def setup_method(self):
        self.kenya_doc = load_yaml_file(JURISDICTIONS_DIR / "kenya.yaml")

    def test_kenya_document(self):
        config = parse_jurisdiction(self.kenya_doc)
        assert config.scope.code == "KE"
        assert config.scope.currency == "KES"
        assert config.scope.effective_from == date(2025, 1, 1)
        assert config.payroll.name == "KE"
        assert len(config.payroll.employee_contributions) == 4
        assert len(config.payroll.employer_contributions) == 7
        assert config.payroll.non_taxable_allowances == frozenset(
            {Allowance.TRANSPORT, Allowance.REPRESENTATION}
        )
        assert config.payroll.optional_insurance_rates[
            OptionalInsurance.COMPREHENSIVE_HEALTH
        ] == Decimal("0.025")
        assert config.payroll.relief.personal_relief == Decimal("2400")

    def test_checksum_deterministic(self):
        assert compute_checksum(self.kenya_doc) == compute_checksum(copy.deepcopy(self.kenya_doc))

    def test_checksum_changes_with_content(self):
        changed = copy.deepcopy(self.kenya_doc)
        changed["payroll"]["relief"]["personal_relief"] = "2500"
        assert compute_checksum(changed) != compute_checksum(self.kenya_doc)

    def test_structural_defect_raises(self):
        broken = copy.deepcopy(self.kenya_doc)
        broken["payroll"]["income_tax"]["brackets"][1]["lower"] = "25000"
        with pytest.raises(ConfigurationError) as exc_info:
            parse_jurisdiction(broken)
        assert "gap" in exc_info.value.reason

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "absent.yaml")

    def test_empty_file_is_empty_document(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_file(path) == {}
