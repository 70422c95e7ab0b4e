"""
Property-based tests of the engine invariants.

Boundaries fuzzed here:
- Calendar: add_months / whole_months_between agree for any anchor
- Tax tables: randomly generated marginal tables are continuous and
  non-decreasing, and their breakdown sums to the resolved tax
- Amortization: principal portions sum to the loan, balance is
  non-increasing and ends at exactly 0
- Credit progress: elapsed, arrears and delinquency stay consistent
- Payroll: net = gross - deductions and totals match their lines for
  random employees in both shipped jurisdictions
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from payroll_config import get_jurisdiction
from payroll_engines.amortization import AmortizationScheduleGenerator, LoanContract
from payroll_engines.credit_progress import CreditProgressCalculator, CreditStatus
from payroll_engines.payroll import (
    EmployeeCompensationProfile,
    MaritalStatus,
    PayrollCalculator,
)
from payroll_engines.tax_brackets import TaxBracketResolver, TaxBracketTable
from payroll_kernel.domain.dates import add_months, whole_months_between

AS_OF = date(2026, 10, 17)
JURISDICTIONS = {code: get_jurisdiction(code) for code in ("KE", "MA")}

dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31))


def money(min_value: str, max_value: str):
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


@st.composite
def marginal_tables(draw):
    bounds = sorted(
        draw(
            st.sets(
                st.integers(min_value=1, max_value=200_000),
                min_size=0,
                max_size=6,
            )
        )
    )
    rates = draw(
        st.lists(
            st.decimals(min_value=Decimal("0"), max_value=Decimal("0.6"), places=3),
            min_size=len(bounds) + 1,
            max_size=len(bounds) + 1,
        )
    )
    lowers = [Decimal(0)] + [Decimal(b) for b in bounds]
    uppers = [Decimal(b) for b in bounds] + [None]
    rows = list(zip(lowers, uppers, rates))
    return TaxBracketTable.from_marginal(name="generated", rows=rows)


class TestCalendarProperties:

    @given(start=dates, months=st.integers(min_value=0, max_value=600))
    def test_months_round_trip(self, start, months):
        assert whole_months_between(start, add_months(start, months)) == months

    @given(start=dates, months=st.integers(min_value=0, max_value=600))
    def test_due_day_never_after_anchor_day(self, start, months):
        assert add_months(start, months).day <= start.day


class TestTaxTableProperties:

    @given(table=marginal_tables(), a=money("0", "300000"), b=money("0", "300000"))
    @settings(max_examples=200, deadline=None)
    def test_non_decreasing(self, table, a, b):
        resolver = TaxBracketResolver()
        low, high = min(a, b), max(a, b)
        assert resolver.resolve(amount=low, table=table) <= resolver.resolve(
            amount=high, table=table
        )

    @given(table=marginal_tables())
    @settings(max_examples=100, deadline=None)
    def test_continuous_at_every_boundary(self, table):
        for below, above in zip(table.brackets, table.brackets[1:]):
            boundary = above.lower
            assert below.tax_for(boundary) == above.tax_for(boundary)

    @given(table=marginal_tables(), amount=money("0", "300000"))
    @settings(max_examples=200, deadline=None)
    def test_breakdown_matches_resolution(self, table, amount):
        resolver = TaxBracketResolver()
        taps = resolver.marginal_breakdown(amount=amount, table=table)
        assert sum((t.tax for t in taps), Decimal(0)) == resolver.resolve(
            amount=amount, table=table
        )


class TestAmortizationProperties:

    @given(
        principal=money("1000", "1000000"),
        annual_rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("0.24"), places=4),
        term=st.integers(min_value=1, max_value=120),
        start=dates,
    )
    @settings(max_examples=150, deadline=None)
    def test_schedule_invariants(self, principal, annual_rate, term, start):
        loan = LoanContract(
            principal=principal,
            annual_rate=annual_rate,
            term_months=term,
            start_date=start,
        )
        schedule = AmortizationScheduleGenerator().generate(loan=loan)
        installments = schedule.installments

        assert 1 <= len(installments) <= term
        assert sum((i.principal for i in installments), Decimal(0)) == principal
        assert installments[-1].remaining_balance == Decimal(0)
        balances = [principal] + [i.remaining_balance for i in installments]
        assert all(a >= b for a, b in zip(balances, balances[1:]))
        for inst in installments:
            assert inst.due_date == add_months(start, inst.index)
            assert inst.interest >= 0


class TestCreditProgressProperties:

    @given(
        principal=money("100", "100000"),
        term=st.integers(min_value=1, max_value=60),
        start=dates,
        now=dates,
        repaid_share=st.decimals(min_value=Decimal("0"), max_value=Decimal("1.2"), places=2),
        threshold=st.integers(min_value=0, max_value=6),
    )
    @settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_snapshot_consistency(self, principal, term, start, now, repaid_share, threshold):
        loan = LoanContract(
            principal=principal,
            annual_rate=Decimal("0"),
            term_months=term,
            start_date=start,
        )
        repaid = (principal * repaid_share).quantize(Decimal("0.01"))
        snapshot = CreditProgressCalculator().assess(
            loan=loan,
            amount_repaid=repaid,
            now=now,
            suspension_threshold_months=threshold,
        )
        assert 0 <= snapshot.elapsed_installments <= term
        assert 0 <= snapshot.months_in_arrears <= snapshot.elapsed_installments
        if snapshot.is_delinquent:
            assert snapshot.elapsed_installments > 0
        if repaid >= principal:
            assert snapshot.status is CreditStatus.PAID_OFF
        if snapshot.status is CreditStatus.PAID_OFF:
            assert snapshot.next_due_date is None
        assert Decimal(0) <= snapshot.progress_percent <= Decimal(100)


class TestPayrollProperties:

    @given(
        code=st.sampled_from(sorted(JURISDICTIONS)),
        base=money("0", "500000"),
        housing=money("0", "50000"),
        transport=money("0", "20000"),
        representation=money("0", "20000"),
        hire_date=st.dates(min_value=date(1980, 1, 1), max_value=AS_OF),
        marital=st.sampled_from(list(MaritalStatus)),
        dependents=st.integers(min_value=0, max_value=10),
        days=st.one_of(st.none(), st.integers(min_value=0, max_value=31)),
        interest=money("0", "20000"),
        loan=money("0", "20000"),
    )
    @settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_payslip_identities(
        self,
        code,
        base,
        housing,
        transport,
        representation,
        hire_date,
        marital,
        dependents,
        days,
        interest,
        loan,
    ):
        profile = EmployeeCompensationProfile(
            employee_id="FUZZ",
            base_salary=base,
            hire_date=hire_date,
            housing_allowance=housing,
            transport_allowance=transport,
            representation_allowance=representation,
            marital_status=marital,
            dependents=dependents,
            days_worked=days,
            deductible_interest=interest,
            loan_installments=loan,
        )
        result = PayrollCalculator().calculate(
            profile=profile, rules=JURISDICTIONS[code].payroll, as_of=AS_OF
        )

        assert result.total_deductions == sum(
            (line.amount for line in result.deduction_lines), Decimal(0)
        )
        assert result.net_salary_payable == result.gross_salary - result.total_deductions
        assert result.gross_salary == result.earnings.total
        assert Decimal(0) <= result.taxable_gross <= result.gross_salary
        assert result.tax_calculation.income_tax >= 0
        assert result.tax_calculation.deductible_interest <= interest
        assert result.total_employer_cost >= result.gross_salary
        for line in result.deduction_lines:
            assert line.amount == line.amount.quantize(Decimal("0.01"))
