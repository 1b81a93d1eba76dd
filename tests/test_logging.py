"""Structured JSON logging: record shape, run context and configuration."""

import contextvars
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from payroll_kernel.domain.run import RunStatus
from payroll_kernel.exceptions import NegativeNetPayError
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

RUN_ID = "6f1c1b7e-0000-4000-8000-000000000001"


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


class _Sink:
    """StringIO-backed handler whose output is read back as JSON records."""

    def __init__(self):
        self.stream = StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.handler.setFormatter(StructuredFormatter())

    def records(self) -> list[dict]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    def only(self) -> dict:
        records = self.records()
        assert len(records) == 1, records
        return records[0]


@pytest.fixture
def sink():
    target = _Sink()
    configure_logging(handler=target.handler, level=logging.DEBUG)
    return target


class TestRecordShape:

    def test_header_fields(self, sink):
        get_logger("services.payroll_run").info("payroll_run_compute_started")

        record = sink.only()
        assert record["message"] == "payroll_run_compute_started"
        assert record["level"] == "INFO"
        assert record["logger"] == "payroll_kernel.services.payroll_run"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_extras_merged_at_top_level(self, sink):
        get_logger("engines.overtime").debug(
            "overtime_computed",
            extra={"employee_id": "E002", "hours": 12, "night_shift": True},
        )

        record = sink.only()
        assert record["hours"] == 12
        assert record["night_shift"] is True
        assert record["level"] == "DEBUG"

    def test_money_and_dates_serialized_as_text(self, sink):
        get_logger("services.payroll_run").info("payroll_run_compute_completed", extra={
            "run_uuid": UUID(RUN_ID),
            "as_of": date(2025, 1, 31),
            "net_pay": Decimal("25285.36"),
            "status": RunStatus.APPROVED,
            "run_types": {"ordinary", "extraordinary"},
        })

        record = sink.only()
        assert record["run_uuid"] == RUN_ID
        assert record["as_of"] == "2025-01-31"
        assert record["net_pay"] == "25285.36"
        assert record["status"] == "approved"
        assert record["run_types"] == ["extraordinary", "ordinary"]

    def test_plain_exception(self, sink):
        try:
            int("not a number")
        except ValueError:
            get_logger("config.loader").exception("rule_set_parse_failed")

        record = sink.only()
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "ValueError"
        assert "not a number" in record["exc_message"]
        assert "Traceback" in record["traceback"]
        assert "exc_code" not in record

    def test_kernel_error_attributes_exposed(self, sink):
        try:
            raise NegativeNetPayError("E009", Decimal("100.00"), Decimal("150.00"))
        except NegativeNetPayError:
            get_logger("services.payroll_run").error("employee_ledger_failed", exc_info=True)

        record = sink.only()
        assert record["exc_code"] == "NEGATIVE_NET_PAY"
        assert record["exc_type"] == "NegativeNetPayError"
        assert record["exc_employee_id"] == "E009"
        assert record["exc_deductions"] == "150.00"

    def test_records_below_level_dropped(self):
        target = _Sink()
        configure_logging(handler=target.handler, level="warning")
        logger = get_logger("engines.accruals")
        logger.info("accruals_computed")
        logger.warning("accrual_rate_missing", extra={"code": "VACATION"})

        assert [r["message"] for r in target.records()] == ["accrual_rate_missing"]


class TestRunContext:

    def test_bound_fields_appear_on_records(self, sink):
        with LogContext.bind(run_id=RUN_ID, actor_id="payroll-admin"):
            get_logger("services.payroll_run").info("payroll_run_approved")

        record = sink.only()
        assert record["run_id"] == RUN_ID
        assert record["actor_id"] == "payroll-admin"
        assert "employee_id" not in record

    def test_extra_does_not_override_context(self, sink):
        with LogContext.bind(employee_id="E001"):
            get_logger("engines.concept_lines").info("line_built", extra={"employee_id": "E999"})

        assert sink.only()["employee_id"] == "E001"

    def test_nested_bind_restores_outer_fields(self):
        with LogContext.bind(run_id=RUN_ID):
            with LogContext.bind(employee_id="E003"):
                assert LogContext.get_all() == {"run_id": RUN_ID, "employee_id": "E003"}
            assert LogContext.get_all() == {"run_id": RUN_ID}
        assert LogContext.get_all() == {}

    def test_set_accumulates_until_cleared(self):
        LogContext.set(actor_id="payroll-admin")
        LogContext.set(correlation_id="req-7", trace_id=None)
        assert LogContext.get_all() == {"correlation_id": "req-7", "actor_id": "payroll-admin"}

        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_fields_returned_in_declaration_order(self):
        LogContext.set(trace_id="t", employee_id="E001", correlation_id="c")
        assert list(LogContext.get_all()) == ["correlation_id", "employee_id", "trace_id"]

    def test_values_stored_as_strings(self):
        LogContext.set(run_id=UUID(RUN_ID))
        assert LogContext.get_all()["run_id"] == RUN_ID

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="period"):
            LogContext.set(period="2025-01")
        with pytest.raises(TypeError, match="period"):
            with LogContext.bind(period="2025-01"):
                pass

    def test_context_follows_copied_context_into_worker(self):
        with LogContext.bind(run_id=RUN_ID):
            ctx = contextvars.copy_context()
        with ThreadPoolExecutor(max_workers=1) as pool:
            seen = pool.submit(ctx.run, LogContext.get_all).result()
            bare = pool.submit(LogContext.get_all).result()

        assert seen == {"run_id": RUN_ID}
        assert bare == {}


class TestConfiguration:

    def test_first_configuration_wins(self):
        first, second = _Sink(), _Sink()
        configure_logging(handler=first.handler)
        configure_logging(handler=second.handler)

        get_logger("services.run_store").info("run_saved")
        root = logging.getLogger("payroll_kernel")
        assert root.handlers == [first.handler]
        assert second.records() == []

    def test_logger_names_share_one_namespace(self):
        assert get_logger("engines.tax_brackets").name == "payroll_kernel.engines.tax_brackets"

    def test_records_do_not_reach_the_root_logger(self, sink):
        assert logging.getLogger("payroll_kernel").propagate is False

    def test_unknown_level_name_rejected(self):
        with pytest.raises(ValueError, match="log level"):
            configure_logging(level="chatty")

    def test_reset_allows_reconfiguration(self):
        first = _Sink()
        configure_logging(handler=first.handler)
        reset_logging()
        second = _Sink()
        configure_logging(handler=second.handler)

        get_logger("config.repository").info("rule_set_registered")
        assert first.records() == []
        assert second.only()["message"] == "rule_set_registered"

    def test_default_stream_is_stderr(self, capsys):
        configure_logging()
        get_logger("services").info("to_stderr", extra={"jurisdiction": "GT"})

        line = capsys.readouterr().err.strip()
        assert json.loads(line)["jurisdiction"] == "GT"

    def test_utc_timestamp(self, sink):
        get_logger("clock").info("tick")
        ts = datetime.fromisoformat(sink.only()["ts"])
        assert ts.utcoffset() == timezone.utc.utcoffset(None)
