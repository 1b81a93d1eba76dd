"""
Tests for the payroll run aggregator.

Covers:
- Totals as exact sums of ledger figures (including the empty run)
- Employer summary by concept in rule-set order
- Reconciliation issues and verify()
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from payroll_engines.aggregation import PayrollRunAggregator
from payroll_engines.concept_lines import ConceptLineBuilder
from payroll_kernel.domain.compensation import PeriodInputs
from payroll_kernel.domain.run import PeriodSpec, RunTotals

JANUARY = PeriodSpec(2025, 1)


@pytest.fixture
def ledgers(gt_rules, profile_factory):
    builder = ConceptLineBuilder()
    inputs = {
        "E003": PeriodInputs(
            employee_id="E003",
            ordinary_overtime_hours=Decimal("10"),
            commissions=Decimal("1500.00"),
        ),
    }
    return tuple(
        builder.build(
            profile_factory(eid, salary),
            inputs.get(eid, PeriodInputs.empty(eid)),
            gt_rules,
            JANUARY,
        )
        for eid, salary in (("E001", "4000.00"), ("E002", "8000.00"), ("E003", "12000.00"))
    )


class TestAggregate:

    def setup_method(self):
        self.aggregator = PayrollRunAggregator()

    def test_totals(self, ledgers, gt_rules):
        totals = self.aggregator.aggregate(ledgers, gt_rules).totals

        assert totals.gross_earnings == Decimal("27288.48")
        assert totals.total_deductions == Decimal("2003.12")
        assert totals.net_pay == Decimal("25285.36")
        assert totals.employee_count == 3

    def test_employer_summary(self, ledgers, gt_rules):
        summary = self.aggregator.aggregate(ledgers, gt_rules).employer_summary

        assert summary.social_security == Decimal("1493.80")
        assert [c.concept_code for c in summary.surcharges] == ["IRTRA", "INTECAP"]
        assert summary.amount_for("IRTRA") == Decimal("265.38")
        assert summary.amount_for("YEAR_END_BONUS") == Decimal("2210.66")
        assert summary.amount_for("VACATION") == Decimal("1106.65")
        assert summary.total == sum((l.employer_cost for l in ledgers), Decimal("0"))

    def test_empty_run(self, gt_rules):
        result = self.aggregator.aggregate((), gt_rules)

        assert result.totals == RunTotals()
        assert result.employer_summary.total == Decimal("0")
        # every configured concept is listed even when zero
        assert len(result.employer_summary.surcharges) == 2
        assert len(result.employer_summary.accruals) == 4

    def test_sum_of_rounded_lines(self, ledgers, gt_rules):
        totals = self.aggregator.aggregate(ledgers, gt_rules).totals
        line_sum = sum(
            (line.signed_amount for ledger in ledgers for line in ledger.lines), Decimal("0"),
        )
        assert totals.net_pay == line_sum


class TestVerify:

    def setup_method(self):
        self.aggregator = PayrollRunAggregator()

    def test_consistent_run_verifies(self, ledgers, gt_rules):
        result = self.aggregator.aggregate(ledgers, gt_rules)
        assert self.aggregator.verify(ledgers, result.totals, result.employer_summary)

    def test_tampered_totals_reported(self, ledgers, gt_rules):
        result = self.aggregator.aggregate(ledgers, gt_rules)
        tampered = replace(result.totals, net_pay=result.totals.net_pay + Decimal("0.01"))

        issues = self.aggregator.reconciliation_issues(ledgers, tampered, result.employer_summary)
        scopes = {issue.scope for issue in issues}
        assert "totals:net_pay" in scopes
        assert "totals:identity" in scopes
        assert not self.aggregator.verify(ledgers, tampered, result.employer_summary)

    def test_missing_ledger_reported(self, ledgers, gt_rules):
        result = self.aggregator.aggregate(ledgers, gt_rules)
        issues = self.aggregator.reconciliation_issues(
            ledgers[:2], result.totals, result.employer_summary,
        )
        assert "totals:employee_count" in {issue.scope for issue in issues}

    def test_tampered_employer_summary_reported(self, ledgers, gt_rules):
        result = self.aggregator.aggregate(ledgers, gt_rules)
        summary = replace(result.employer_summary, social_security=Decimal("0"))

        issues = self.aggregator.reconciliation_issues(ledgers, result.totals, summary)
        assert {"employer:social_security", "employer:total"} <= {i.scope for i in issues}
