"""
Tests for run-level value objects and the run lifecycle definition.

Covers:
- PeriodSpec dates, fraction and key for monthly and half-monthly periods
- EmployeeSelection normalisation and matching
- Compensation profile windows and period input validation
- The payroll run workflow table
- The deterministic clock used for audit timestamps
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from payroll_kernel.domain.clock import DEFAULT_TEST_TIME, DeterministicClock
from payroll_kernel.domain.compensation import (
    EmployeeCompensationProfile,
    FixedDeduction,
    IncomeItem,
    PeriodInputs,
)
from payroll_kernel.domain.run import EmployeeSelection, PeriodSpec
from payroll_kernel.domain.workflow import Transition, Workflow
from payroll_kernel.exceptions import InvalidPeriodInputError
from payroll_services.workflows import (
    ACTION_APPEND_ADJUSTMENT,
    ACTION_APPROVE,
    ACTION_MARK_PAID,
    ACTION_RECOMPUTE,
    ACTION_VOID,
    PAYROLL_RUN_WORKFLOW,
)


class TestPeriodSpec:

    def test_full_month(self):
        period = PeriodSpec(2025, 2)
        assert period.start_date == date(2025, 2, 1)
        assert period.end_date == date(2025, 2, 28)
        assert period.fraction == Decimal("1")
        assert period.key == "2025-02"

    def test_leap_february(self):
        assert PeriodSpec(2024, 2).end_date == date(2024, 2, 29)

    def test_first_half(self):
        period = PeriodSpec(2025, 1, half=1)
        assert period.start_date == date(2025, 1, 1)
        assert period.end_date == date(2025, 1, 15)
        assert period.fraction == Decimal("0.5")
        assert period.key == "2025-01-H1"

    def test_second_half(self):
        period = PeriodSpec(2025, 4, half=2)
        assert period.start_date == date(2025, 4, 16)
        assert period.end_date == date(2025, 4, 30)
        assert period.key == "2025-04-H2"

    @pytest.mark.parametrize("kwargs", [{"month": 13}, {"month": 0}, {"month": 1, "half": 3}])
    def test_invalid_period(self, kwargs):
        with pytest.raises(ValueError):
            PeriodSpec(year=2025, **kwargs)


class TestEmployeeSelection:

    def test_everyone(self):
        selection = EmployeeSelection.everyone()
        assert selection.is_everyone
        assert selection.includes("ANY", None)

    def test_ids_sorted_and_deduplicated(self):
        assert EmployeeSelection.of("E2", "E1", "E2").employee_ids == ("E1", "E2")

    def test_union_of_ids_and_departments(self):
        selection = EmployeeSelection(employee_ids=("E1",), department_ids=("SALES",))
        assert selection.includes("E1", "OPS")
        assert selection.includes("E9", "SALES")
        assert not selection.includes("E9", "OPS")
        assert not selection.includes("E9", None)


class TestCompensationProfile:

    def test_window_half_open(self):
        profile = EmployeeCompensationProfile(
            "E1", "p1", date(2025, 1, 1), Decimal("4000"), valid_to=date(2025, 7, 1),
        )
        assert profile.is_valid_on(date(2025, 6, 30))
        assert not profile.is_valid_on(date(2025, 7, 1))
        assert not profile.is_valid_on(date(2024, 12, 31))

    def test_hourly_rate_uses_profile_hours_when_given(self):
        profile = EmployeeCompensationProfile(
            "E1", "p1", date(2025, 1, 1), Decimal("4000"),
            standard_monthly_hours=Decimal("160"),
        )
        assert profile.hourly_rate(Decimal("173.33")) == Decimal("25")

    def test_hourly_rate_is_not_rounded(self):
        profile = EmployeeCompensationProfile("E1", "p1", date(2025, 1, 1), Decimal("12000"))
        rate = profile.hourly_rate(Decimal("173.33"))
        assert rate == Decimal("12000") / Decimal("173.33")
        assert rate.as_tuple().exponent < -2

    def test_negative_salary_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            EmployeeCompensationProfile("E1", "p1", date(2025, 1, 1), Decimal("-1"))

    def test_fixed_deduction_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            FixedDeduction("LOAN", "Loan", Decimal("0"))


class TestPeriodInputs:

    def test_empty(self):
        inputs = PeriodInputs.empty("E1")
        assert inputs.ordinary_overtime_hours == Decimal("0")
        assert inputs.other_income == ()

    @pytest.mark.parametrize(
        "field", ["ordinary_overtime_hours", "night_overtime_hours", "commissions"]
    )
    def test_negative_values_rejected(self, field):
        with pytest.raises(InvalidPeriodInputError) as exc:
            PeriodInputs(employee_id="E1", **{field: Decimal("-1")})
        assert exc.value.field == field
        assert exc.value.employee_id == "E1"

    def test_negative_income_item_rejected(self):
        with pytest.raises(InvalidPeriodInputError, match="other_income.ALLOWANCE"):
            PeriodInputs(
                employee_id="E1",
                other_income=(IncomeItem("ALLOWANCE", "Allowance", Decimal("-5")),),
            )


class TestPayrollRunWorkflow:

    @pytest.mark.parametrize(
        "state, action, target",
        [
            ("draft", ACTION_RECOMPUTE, "draft"),
            ("draft", ACTION_APPEND_ADJUSTMENT, "draft"),
            ("draft", ACTION_APPROVE, "approved"),
            ("draft", ACTION_VOID, "voided"),
            ("approved", ACTION_APPEND_ADJUSTMENT, "approved"),
            ("approved", ACTION_MARK_PAID, "paid"),
            ("approved", ACTION_VOID, "voided"),
        ],
    )
    def test_allowed_transitions(self, state, action, target):
        transition = PAYROLL_RUN_WORKFLOW.find_transition(state, action)
        assert transition is not None
        assert transition.to_state == target

    @pytest.mark.parametrize(
        "state, action",
        [
            ("draft", ACTION_MARK_PAID),
            ("approved", ACTION_RECOMPUTE),
            ("approved", ACTION_APPROVE),
            ("paid", ACTION_VOID),
            ("paid", ACTION_APPEND_ADJUSTMENT),
            ("voided", ACTION_APPROVE),
        ],
    )
    def test_disallowed_transitions(self, state, action):
        assert PAYROLL_RUN_WORKFLOW.find_transition(state, action) is None

    def test_void_requires_reason(self):
        assert PAYROLL_RUN_WORKFLOW.find_transition("draft", ACTION_VOID).requires_reason

    def test_approval_is_guarded(self):
        transition = PAYROLL_RUN_WORKFLOW.find_transition("draft", ACTION_APPROVE)
        assert transition.guard is not None
        assert transition.guard.name == "run_reconciled"

    def test_terminal_states_have_no_actions(self):
        assert PAYROLL_RUN_WORKFLOW.actions_from("paid") == ()
        assert PAYROLL_RUN_WORKFLOW.actions_from("voided") == ()

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="bad", description="", initial_state="a", states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_outgoing_rejected(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="bad", description="", initial_state="a", states=("a", "b"),
                transitions=(Transition("b", "a", action="reopen"),),
                terminal_states=("b",),
            )


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now() == DEFAULT_TEST_TIME
        assert clock.advance(90) == DEFAULT_TEST_TIME + timedelta(seconds=90)

    def test_normalised_to_utc(self):
        local = datetime(2025, 1, 31, 6, 0, tzinfo=timezone(timedelta(hours=-6)))
        assert DeterministicClock(local).now() == DEFAULT_TEST_TIME

    def test_naive_time_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            DeterministicClock(datetime(2025, 1, 31))

    def test_never_moves_backwards(self):
        with pytest.raises(ValueError):
            DeterministicClock().advance(-1)
