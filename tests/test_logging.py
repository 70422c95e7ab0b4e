"""
Tests for payroll and credit logging (payroll_kernel/logging_config.py).

Covers:
- LogContext binding: nesting, restoration, ignored None values
- Engine traces carrying the employee, loan or advance being processed,
  including the sub-engines a payroll run calls
- JSON output: subject context stamped on engine debug records, exact
  money strings, kernel error fields
- configure_logging / reset_logging lifecycle
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from payroll_engines.amortization import AmortizationScheduleGenerator, LoanContract
from payroll_engines.credit_progress import CreditProgressCalculator, SalaryAdvance
from payroll_kernel.exceptions import DegenerateLoanError
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _loan(**overrides) -> LoanContract:
    values = {
        "principal": Decimal("24000"),
        "annual_rate": Decimal("0"),
        "term_months": 24,
        "start_date": date(2025, 9, 17),
        "loan_id": "LN-7",
    }
    values.update(overrides)
    return LoanContract(**values)


def _traces(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.getMessage() == "PAYROLL_ENGINE_TRACE"]


@pytest.fixture
def json_stream():
    """JSON handler on the payroll_kernel hierarchy at DEBUG."""
    reset_logging()
    LogContext.clear()
    stream = StringIO()
    configure_logging(handler=logging.StreamHandler(stream), level=logging.DEBUG)
    yield stream
    LogContext.clear()
    reset_logging()


def _lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestLogContext:

    def setup_method(self):
        LogContext.clear()

    def teardown_method(self):
        LogContext.clear()

    def test_bind_nests_and_restores(self):
        with LogContext.bind(run_id="RUN-10", jurisdiction="KE"):
            with LogContext.bind(employee_id="EMP-001"):
                assert LogContext.current() == {
                    "run_id": "RUN-10",
                    "jurisdiction": "KE",
                    "employee_id": "EMP-001",
                }
            assert "employee_id" not in LogContext.current()
        assert LogContext.current() == {}

    def test_none_keeps_outer_value(self):
        """A loan without an id does not erase the loan bound by the caller."""
        with LogContext.bind(loan_id="LN-1"):
            with LogContext.bind(loan_id=None):
                assert LogContext.current()["loan_id"] == "LN-1"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            with LogContext.bind(payslip_id="P-1"):
                pass

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(advance_id="ADV-1"):
                raise RuntimeError("boom")
        assert LogContext.current() == {}


class TestEngineTraceContext:
    """PAYROLL_ENGINE_TRACE records identify what was processed."""

    def test_payroll_run_traces_carry_employee(
        self, caplog_payroll, payroll_calculator, recent_hire, kenya, as_of
    ):
        payroll_calculator.calculate(profile=recent_hire, rules=kenya.payroll, as_of=as_of)

        traces = _traces(caplog_payroll)
        engines = {t.engine_name for t in traces}
        assert {"payroll", "seniority", "statutory"} <= engines
        for trace in traces:
            assert trace.employee_id == "EMP-001"
            assert trace.jurisdiction == "KE"

    def test_schedule_and_progress_traces_carry_loan(self, caplog_payroll):
        loan = _loan()
        AmortizationScheduleGenerator().generate(loan=loan)
        CreditProgressCalculator().assess(
            loan=loan, amount_repaid=Decimal("8000"), now=date(2026, 10, 17)
        )

        traces = _traces(caplog_payroll)
        assert [t.engine_name for t in traces] == ["amortization", "credit_progress"]
        assert all(t.loan_id == "LN-7" for t in traces)

    def test_advance_trace_carries_advance(self, caplog_payroll):
        CreditProgressCalculator().assess_advance(
            advance=SalaryAdvance(
                amount=Decimal("6000"),
                remaining_balance=Decimal("4000"),
                installment_count=6,
                advance_date=date(2026, 7, 17),
                advance_id="ADV-3",
            ),
            as_of=date(2026, 10, 17),
        )
        (trace,) = _traces(caplog_payroll)
        assert trace.advance_id == "ADV-3"

    def test_caller_run_id_flows_into_trace(self, caplog_payroll):
        with LogContext.bind(run_id="PAYRUN-2026-10"):
            AmortizationScheduleGenerator().generate(loan=_loan())
        (trace,) = _traces(caplog_payroll)
        assert trace.run_id == "PAYRUN-2026-10"
        assert trace.loan_id == "LN-7"

    def test_anonymous_loan_has_no_loan_id(self, caplog_payroll):
        AmortizationScheduleGenerator().generate(loan=_loan(loan_id=None))
        (trace,) = _traces(caplog_payroll)
        assert not hasattr(trace, "loan_id")

    def test_failed_call_leaves_no_trace_and_no_context(self, caplog_payroll):
        with pytest.raises(DegenerateLoanError):
            AmortizationScheduleGenerator().generate(
                loan=_loan(stored_monthly_payment=Decimal("0"))
            )
        assert _traces(caplog_payroll) == []
        assert LogContext.current() == {}


class TestJsonOutput:

    def test_engine_debug_records_stamped_with_subject(
        self, json_stream, payroll_calculator, recent_hire, kenya, as_of
    ):
        with LogContext.bind(run_id="PAYRUN-2026-10"):
            payroll_calculator.calculate(profile=recent_hire, rules=kenya.payroll, as_of=as_of)
        get_logger("batch").info("payroll_batch_closed")

        records = _lines(json_stream)
        seniority = next(r for r in records if r["message"] == "seniority_allowance_computed")
        assert seniority["employee_id"] == "EMP-001"
        assert seniority["jurisdiction"] == "KE"
        assert seniority["run_id"] == "PAYRUN-2026-10"
        assert seniority["logger"] == "payroll_kernel.engines.seniority"

        closed = records[-1]
        assert closed["message"] == "payroll_batch_closed"
        assert "employee_id" not in closed
        assert "run_id" not in closed

    def test_money_and_dates_exact(self, json_stream):
        get_logger("engines.payroll").info(
            "payslip_issued",
            extra={"net_salary_payable": Decimal("41685.42"), "pay_date": date(2026, 2, 28)},
        )
        (record,) = _lines(json_stream)
        assert record["net_salary_payable"] == "41685.42"
        assert record["pay_date"] == "2026-02-28"

    def test_degenerate_loan_error_fields(self, json_stream):
        generator = AmortizationScheduleGenerator()
        try:
            generator.generate(
                loan=_loan(principal=Decimal("1"), term_months=600, loan_id="LN-TINY")
            )
        except DegenerateLoanError:
            with LogContext.bind(loan_id="LN-TINY"):
                get_logger("batch").error("loan_rejected", exc_info=True)

        (record,) = _lines(json_stream)
        assert record["loan_id"] == "LN-TINY"
        assert record["error_code"] == "DEGENERATE_LOAN"
        assert record["error_type"] == "DegenerateLoanError"
        assert record["error_monthly_payment"] == "0.00"
        assert "traceback" in record


class TestConfigureLogging:

    def setup_method(self):
        reset_logging()

    def teardown_method(self):
        reset_logging()

    def test_idempotent(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert len(logging.getLogger("payroll_kernel").handlers) == 1

    def test_handler_uses_structured_formatter(self):
        handler = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_reset_restores_propagation(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert not logging.getLogger("payroll_kernel").propagate
        reset_logging()
        root = logging.getLogger("payroll_kernel")
        assert root.propagate
        assert root.handlers == []

    def test_default_level_drops_engine_debug(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream))
        AmortizationScheduleGenerator().generate(loan=_loan())
        messages = [json.loads(line)["message"] for line in stream.getvalue().splitlines()]
        assert messages == ["PAYROLL_ENGINE_TRACE"]
