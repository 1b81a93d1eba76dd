"""
Pytest fixtures for the payroll engine test suite.

Provides:
- Structured logging configured for the whole session
- The packaged Guatemala rule set and a builder for ad-hoc rule sets
- Compensation profiles, period inputs and a wired PayrollRunService
- A deterministic clock so run timestamps are reproducible
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from payroll_config import bootstrap_rule_sets
from payroll_config.settings import EngineSettings
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.compensation import EmployeeCompensationProfile, PeriodInputs
from payroll_kernel.domain.labor_rules import (
    EmployerRate,
    LaborRuleSet,
    TaxBracket,
    TaxBracketTable,
)
from payroll_kernel.domain.run import PeriodSpec
from payroll_kernel.domain.values import RoundingPolicy
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_services.collaborators import InMemoryAdjustmentSource, InMemoryEmployeeSource
from payroll_services.payroll_run_service import PayrollRunService
from payroll_services.run_store import InMemoryPayrollRunStore

TEST_ACTOR = "payroll-admin"
JANUARY_2025 = PeriodSpec(2025, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.compute_run(JANUARY_2025)
            logs = captured_logs()
            assert any(r["message"] == "payroll_run_compute_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Rule sets
# =============================================================================


@pytest.fixture(scope="session")
def rule_repository_factory():
    """Fresh repository loaded from the packaged rule-set files."""
    return bootstrap_rule_sets


@pytest.fixture
def rule_repository(rule_repository_factory):
    return rule_repository_factory()


@pytest.fixture(scope="session")
def gt_rules(rule_repository_factory):
    """The Guatemala 2025 rule set (immutable, shared by the session)."""
    return rule_repository_factory().resolve("GT", date(2025, 1, 31))


def make_rule_set(**overrides) -> LaborRuleSet:
    """
    A small, easy-to-reason-about rule set.

    Employee 5%, employer 10%, cap 5000, surcharges 1% each, flat 10% tax
    up to 10000 and 20% above, no statutory bonus and no accruals.
    """
    fields = dict(
        jurisdiction="XX",
        version="test.1",
        effective_from=date(2025, 1, 1),
        employee_social_security_rate=Decimal("0.05"),
        employer_social_security_rate=Decimal("0.10"),
        social_security_base_cap=Decimal("5000"),
        surcharge_rates=(
            EmployerRate("SURCHARGE_A", "Surcharge A", Decimal("0.01")),
            EmployerRate("SURCHARGE_B", "Surcharge B", Decimal("0.01")),
        ),
        tax_brackets=TaxBracketTable.of(
            TaxBracket(Decimal("0"), Decimal("0.10")),
            TaxBracket(Decimal("10000"), Decimal("0.20"), base_tax=Decimal("1000")),
        ),
        rounding=RoundingPolicy(2),
        monthly_standard_hours=Decimal("160"),
    )
    fields.update(overrides)
    return LaborRuleSet(**fields)


@pytest.fixture
def rule_set_factory():
    return make_rule_set


@pytest.fixture
def simple_rules():
    return make_rule_set()


# =============================================================================
# Employees
# =============================================================================


def make_profile(employee_id: str, salary: str, **overrides) -> EmployeeCompensationProfile:
    fields = dict(
        employee_id=employee_id,
        profile_id=f"{employee_id}-p1",
        valid_from=date(2024, 1, 1),
        base_monthly_salary=Decimal(salary),
    )
    fields.update(overrides)
    return EmployeeCompensationProfile(**fields)


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def employee_source():
    """Three employees: one below the cap, one above it, one in sales."""
    source = InMemoryEmployeeSource()
    source.add_profile(make_profile("E001", "4000.00", department_id="OPS"))
    source.add_profile(make_profile("E002", "8000.00", department_id="OPS"))
    source.add_profile(make_profile("E003", "12000.00", department_id="SALES"))
    source.set_inputs(
        JANUARY_2025,
        PeriodInputs(
            employee_id="E003",
            ordinary_overtime_hours=Decimal("10"),
            commissions=Decimal("1500.00"),
        ),
    )
    return source


@pytest.fixture
def adjustment_source():
    return InMemoryAdjustmentSource()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 1, 31, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def run_store():
    return InMemoryPayrollRunStore()


@pytest.fixture
def service(rule_repository, employee_source, adjustment_source, run_store, deterministic_clock):
    return PayrollRunService(
        rules=rule_repository,
        employees=employee_source,
        adjustments=adjustment_source,
        store=run_store,
        clock=deterministic_clock,
        settings=EngineSettings(max_workers=4),
    )
