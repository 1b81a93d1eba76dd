"""
Payroll Run Aggregator - Sum employee ledgers into run totals.

Pure functions with no I/O.  Every figure summed here is already rounded
on its ledger line, so run totals are exact sums (sum-of-rounded, never
round-of-sum) and reconcile with the ledgers to the cent.

Usage:
    from payroll_engines.aggregation import PayrollRunAggregator

    aggregator = PayrollRunAggregator()
    result = aggregator.aggregate(ledgers, rule_set)
    assert aggregator.verify(ledgers, result.totals, result.employer_summary)
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.labor_rules import LaborRuleSet
from payroll_kernel.domain.ledger import ConceptCode, EmployeeLedger
from payroll_kernel.domain.run import ConceptTotal, EmployerContributionSummary, RunTotals
from payroll_kernel.domain.values import ZERO
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")


@dataclass(frozen=True)
class AggregationResult:
    """Run totals and the employer summary computed together."""

    totals: RunTotals
    employer_summary: EmployerContributionSummary


@dataclass(frozen=True)
class ReconciliationIssue:
    """One figure that does not reconcile."""

    scope: str
    expected: Decimal
    actual: Decimal


class PayrollRunAggregator:
    """Aggregate ledgers and check that the aggregates reconcile."""

    @traced_engine("aggregation", "1.0")
    def aggregate(
        self,
        ledgers: Sequence[EmployeeLedger],
        rule_set: LaborRuleSet,
    ) -> AggregationResult:
        """
        Sum ledger gross, deductions and net; sum employer lines by concept.

        Surcharges and accruals are listed in the rule set's declared order,
        each present even when its total is zero.
        """
        totals = RunTotals(
            gross_earnings=sum((l.gross_earnings for l in ledgers), ZERO),
            total_deductions=sum((l.total_deductions for l in ledgers), ZERO),
            net_pay=sum((l.net_pay for l in ledgers), ZERO),
            employee_count=len(ledgers),
        )

        by_concept: OrderedDict[str, Decimal] = OrderedDict()
        for ledger in ledgers:
            for line in ledger.employer_lines:
                by_concept[line.concept_code] = by_concept.get(line.concept_code, ZERO) + line.amount

        summary = EmployerContributionSummary(
            social_security=by_concept.get(ConceptCode.SOCIAL_SECURITY_EMPLOYER.value, ZERO),
            surcharges=tuple(
                ConceptTotal(r.code, r.label, by_concept.get(r.code, ZERO))
                for r in rule_set.surcharge_rates
            ),
            accruals=tuple(
                ConceptTotal(r.code, r.label, by_concept.get(r.code, ZERO))
                for r in rule_set.accrual_rates
            ),
        )

        logger.info("payroll_run_aggregated", extra={
            "employee_count": totals.employee_count,
            "gross_earnings": str(totals.gross_earnings),
            "total_deductions": str(totals.total_deductions),
            "net_pay": str(totals.net_pay),
            "employer_total": str(summary.total),
        })
        return AggregationResult(totals=totals, employer_summary=summary)

    def reconciliation_issues(
        self,
        ledgers: Sequence[EmployeeLedger],
        totals: RunTotals,
        employer_summary: EmployerContributionSummary,
    ) -> list[ReconciliationIssue]:
        """Every figure that fails to reconcile (empty when all agree)."""
        issues: list[ReconciliationIssue] = []

        for ledger in ledgers:
            expected_net = ledger.gross_earnings - ledger.total_deductions
            if ledger.net_pay != expected_net:
                issues.append(ReconciliationIssue(
                    f"ledger:{ledger.employee_id}:net_pay", expected_net, ledger.net_pay,
                ))

        checks = (
            ("totals:gross_earnings", sum((l.gross_earnings for l in ledgers), ZERO), totals.gross_earnings),
            ("totals:total_deductions", sum((l.total_deductions for l in ledgers), ZERO), totals.total_deductions),
            ("totals:net_pay", sum((l.net_pay for l in ledgers), ZERO), totals.net_pay),
            ("totals:identity", totals.gross_earnings - totals.total_deductions, totals.net_pay),
            ("totals:employee_count", Decimal(len(ledgers)), Decimal(totals.employee_count)),
        )
        for scope, expected, actual in checks:
            if expected != actual:
                issues.append(ReconciliationIssue(scope, expected, actual))

        employer_lines = [line for l in ledgers for line in l.employer_lines]
        expected_ss = sum(
            (x.amount for x in employer_lines
             if x.concept_code == ConceptCode.SOCIAL_SECURITY_EMPLOYER.value),
            ZERO,
        )
        if expected_ss != employer_summary.social_security:
            issues.append(ReconciliationIssue(
                "employer:social_security", expected_ss, employer_summary.social_security,
            ))
        for concept in employer_summary.surcharges + employer_summary.accruals:
            expected = sum(
                (x.amount for x in employer_lines if x.concept_code == concept.concept_code),
                ZERO,
            )
            if expected != concept.amount:
                issues.append(ReconciliationIssue(
                    f"employer:{concept.concept_code}", expected, concept.amount,
                ))
        expected_employer_total = sum((x.amount for x in employer_lines), ZERO)
        if expected_employer_total != employer_summary.total:
            issues.append(ReconciliationIssue(
                "employer:total", expected_employer_total, employer_summary.total,
            ))
        return issues

    def verify(
        self,
        ledgers: Sequence[EmployeeLedger],
        totals: RunTotals,
        employer_summary: EmployerContributionSummary,
    ) -> bool:
        """True if totals and the employer summary reconcile with the ledgers."""
        issues = self.reconciliation_issues(ledgers, totals, employer_summary)
        for issue in issues:
            logger.warning("payroll_run_reconciliation_failed", extra={
                "scope": issue.scope,
                "expected": str(issue.expected),
                "actual": str(issue.actual),
            })
        return not issues
