"""
Tests for statutory contribution calculation.

Covers:
- Tiered bases (floor and ceiling) and plain caps
- Subject flags switching lines on and off
- Minimum pay thresholds
- Gross versus taxable gross bases
- Per-line rounding and totals
"""

from decimal import Decimal

import pytest

from payroll_engines.statutory import (
    ContributionBase,
    ContributionLine,
    StatutoryDeductionCalculator,
    SubjectFlag,
)
from payroll_kernel.exceptions import ConfigurationError, InvalidInputError


class TestTieredContributions:
    """Tests for lines assessed on a band of pay."""

    def setup_method(self):
        self.calculator = StatutoryDeductionCalculator()
        self.lines = (
            ContributionLine(
                code="tier_1",
                label="Tier I",
                rate=Decimal("0.06"),
                base=ContributionBase.GROSS,
                ceiling=Decimal("8000"),
                subject_to=SubjectFlag.SOCIAL_SECURITY,
                tax_deductible=True,
            ),
            ContributionLine(
                code="tier_2",
                label="Tier II",
                rate=Decimal("0.06"),
                base=ContributionBase.GROSS,
                floor=Decimal("8000"),
                ceiling=Decimal("72000"),
                subject_to=SubjectFlag.SOCIAL_SECURITY,
                tax_deductible=True,
            ),
        )

    def _run(self, gross: str):
        amount = Decimal(gross)
        return self.calculator.calculate(gross=amount, taxable_gross=amount, lines=self.lines)

    def test_pay_spanning_both_tiers(self):
        result = self._run("50000")
        assert result.amount_for("tier_1") == Decimal("480.00")
        assert result.amount_for("tier_2") == Decimal("2520.00")
        assert result.total == Decimal("3000.00")

    def test_pay_below_second_tier(self):
        """The upper tier assesses nothing but the line is still itemized."""
        result = self._run("5000")
        assert result.amount_for("tier_1") == Decimal("300.00")
        assert result.amount_for("tier_2") == Decimal("0.00")
        assert len(result.lines) == 2

    def test_pay_above_ceiling(self):
        result = self._run("100000")
        assert result.amount_for("tier_2") == Decimal("3840.00")
        tier_2 = [line for line in result.lines if line.code == "tier_2"][0]
        assert tier_2.base_amount == Decimal("64000")

    def test_subject_flag_absent_omits_lines(self):
        result = self.calculator.calculate(
            gross=Decimal("50000"),
            taxable_gross=Decimal("50000"),
            lines=self.lines,
            subject_flags=frozenset({SubjectFlag.HEALTH}),
        )
        assert result.lines == ()
        assert result.total == Decimal("0")

    def test_deductible_total(self):
        result = self._run("50000")
        assert result.deductible_total == result.total


class TestThresholdsAndBases:
    """Tests for minimum thresholds, bases and rounding."""

    def setup_method(self):
        self.calculator = StatutoryDeductionCalculator()

    def test_minimum_threshold_is_exclusive(self):
        line = ContributionLine(
            code="retraite",
            label="Retraite",
            rate=Decimal("0.06"),
            minimum_threshold=Decimal("6000"),
        )
        at = self.calculator.calculate(
            gross=Decimal("6000"), taxable_gross=Decimal("6000"), lines=[line]
        )
        above = self.calculator.calculate(
            gross=Decimal("6000.01"), taxable_gross=Decimal("6000.01"), lines=[line]
        )
        assert at.lines == ()
        assert above.amount_for("retraite") == Decimal("360.00")

    def test_base_selection(self):
        lines = [
            ContributionLine("on_gross", "G", Decimal("0.01"), base=ContributionBase.GROSS),
            ContributionLine(
                "on_taxable", "T", Decimal("0.01"), base=ContributionBase.TAXABLE_GROSS
            ),
        ]
        result = self.calculator.calculate(
            gross=Decimal("10000"), taxable_gross=Decimal("8000"), lines=lines
        )
        assert result.amount_for("on_gross") == Decimal("100.00")
        assert result.amount_for("on_taxable") == Decimal("80.00")

    def test_each_line_rounded_once(self):
        line = ContributionLine("shif", "SHIF", Decimal("0.0275"))
        result = self.calculator.calculate(
            gross=Decimal("33333"), taxable_gross=Decimal("33333"), lines=[line]
        )
        assert result.amount_for("shif") == Decimal("916.66")

    def test_non_deductible_excluded_from_deductible_total(self):
        lines = [
            ContributionLine("a", "A", Decimal("0.01"), tax_deductible=True),
            ContributionLine("b", "B", Decimal("0.02")),
        ]
        result = self.calculator.calculate(
            gross=Decimal("1000"), taxable_gross=Decimal("1000"), lines=lines
        )
        assert result.total == Decimal("30.00")
        assert result.deductible_total == Decimal("10.00")

    def test_unknown_code_is_zero(self):
        result = self.calculator.calculate(
            gross=Decimal("1000"), taxable_gross=Decimal("1000"), lines=[]
        )
        assert result.amount_for("missing") == Decimal("0")

    def test_negative_gross_rejected(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(
                gross=Decimal("-1"), taxable_gross=Decimal("0"), lines=[]
            )

    def test_kenya_employee_table(self, kenya):
        result = self.calculator.calculate(
            gross=Decimal("50000"),
            taxable_gross=Decimal("50000"),
            lines=kenya.payroll.employee_contributions,
        )
        assert [line.code for line in result.lines] == [
            "nssf_tier_1",
            "nssf_tier_2",
            "shif",
            "housing_levy",
        ]
        assert result.total == Decimal("5125.00")


class TestContributionLineValidation:

    def test_ceiling_not_above_floor(self):
        with pytest.raises(ConfigurationError):
            ContributionLine(
                "bad", "Bad", Decimal("0.1"), floor=Decimal("100"), ceiling=Decimal("100")
            )

    def test_rate_out_of_range(self):
        with pytest.raises(ConfigurationError):
            ContributionLine("bad", "Bad", Decimal("1.5"))

    def test_plain_cap(self):
        line = ContributionLine("cap", "Cap", Decimal("0.1"), ceiling=Decimal("6000"))
        assert line.assessable(Decimal("10000")) == Decimal("6000")
        assert line.assessable(Decimal("4000")) == Decimal("4000")
