"""
Concept Line Builder - Assemble an itemized employee ledger.

Pure functions with no I/O.  Merges the outputs of the tax bracket,
contribution, overtime and accrual calculators into one EmployeeLedger in
canonical order:

    Earnings    base salary, ordinary overtime, night overtime,
                commissions, other income items, statutory bonus,
                earning adjustments
    Deductions  employee social security, income tax, fixed deductions,
                deduction adjustments
    Employer    employer social security, surcharges, accruals

Run types:
    ordinary         everything above
    extraordinary    no flat statutory bonus, fixed deductions,
                     surcharges or accruals
    statutory_bonus  a single bonus payment, exempt from social security,
                     taxed only on the part above the annual exemption;
                     the base defaults to the monthly salary when the
                     caller supplies none

Net pay is gross earnings minus deductions and is never clamped: a negative
result raises NegativeNetPayError.

Usage:
    from payroll_engines.concept_lines import ConceptLineBuilder

    builder = ConceptLineBuilder()
    ledger = builder.build(profile, inputs, rule_set, PeriodSpec(2025, 1), RunType.ORDINARY)
    print(ledger.net_pay)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Sequence

from payroll_engines.accruals import AccrualCalculator
from payroll_engines.contributions import ContributionCalculator
from payroll_engines.overtime import OvertimeCalculator
from payroll_engines.tax_brackets import TaxBracketCalculator, TaxBracketResult
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.compensation import EmployeeCompensationProfile, PeriodInputs
from payroll_kernel.domain.labor_rules import LaborRuleSet
from payroll_kernel.domain.ledger import (
    ConceptCode,
    EmployeeLedger,
    LineKind,
    ManualAdjustment,
    PayLedgerLine,
)
from payroll_kernel.domain.run import PeriodSpec, RunType
from payroll_kernel.domain.values import ZERO, RoundingPolicy
from payroll_kernel.exceptions import NegativeNetPayError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.concept_lines")

FULL_PERIOD = Decimal("1")


@dataclass
class _LineSink:
    """Collects lines of one section and numbers them in order."""

    kind: LineKind
    lines: list[PayLedgerLine] = field(default_factory=list)

    def add(
        self,
        concept_code: str,
        label: str,
        amount: Decimal,
        base: Decimal | None = None,
        rate: Decimal | None = None,
        *,
        note: str | None = None,
        is_manual: bool = False,
        taxable: bool = False,
        contributory: bool = False,
    ) -> PayLedgerLine:
        line = PayLedgerLine(
            concept_code=concept_code,
            label=label,
            kind=self.kind,
            amount=amount,
            base=base,
            rate=rate,
            is_manual=is_manual,
            note=note,
            taxable=taxable,
            contributory=contributory,
        )
        self.lines.append(line)
        return line

    def total(self) -> Decimal:
        return sum((l.amount for l in self.lines), ZERO)


def _fraction_or_none(fraction: Decimal) -> Decimal | None:
    return None if fraction == FULL_PERIOD else fraction


def _describe_bracket(result: TaxBracketResult) -> str:
    rate_pct = (result.rate * 100).normalize()
    return (
        f"bracket {result.bracket_index + 1}: {result.base_tax} + "
        f"{rate_pct}% over {result.threshold}"
    )


class ConceptLineBuilder:
    """
    Build one employee's ledger for one run.

    Pure functions - no I/O.  Calculators are injectable so the builder can
    be exercised with doubles in tests.
    """

    def __init__(
        self,
        tax_calculator: TaxBracketCalculator | None = None,
        contribution_calculator: ContributionCalculator | None = None,
        overtime_calculator: OvertimeCalculator | None = None,
        accrual_calculator: AccrualCalculator | None = None,
    ) -> None:
        self._tax = tax_calculator or TaxBracketCalculator()
        self._contributions = contribution_calculator or ContributionCalculator()
        self._overtime = overtime_calculator or OvertimeCalculator()
        self._accruals = accrual_calculator or AccrualCalculator()

    @traced_engine("concept_lines", "1.0", fingerprint_fields=("profile", "period", "run_type"))
    def build(
        self,
        profile: EmployeeCompensationProfile,
        inputs: PeriodInputs,
        rule_set: LaborRuleSet,
        period: PeriodSpec,
        run_type: RunType = RunType.ORDINARY,
        adjustments: Sequence[ManualAdjustment] = (),
    ) -> EmployeeLedger:
        """
        Compute every line for the employee and return the ledger.

        Raises:
            InvalidPeriodInputError: Negative hours in the period inputs.
            InvalidContributionBaseError: Inconsistent contribution base.
            NegativeNetPayError: Deductions exceed gross earnings.
        """
        employee_id = profile.employee_id
        rounding = rule_set.rounding
        fraction = period.fraction

        earnings = _LineSink(LineKind.EARNING)
        deductions = _LineSink(LineKind.DEDUCTION)
        employer = _LineSink(LineKind.EMPLOYER)

        if run_type == RunType.STATUTORY_BONUS:
            self._statutory_bonus_payment(profile, inputs, rule_set, earnings)
        else:
            self._ordinary_earnings(profile, inputs, rule_set, period, run_type, earnings)

        for adj in adjustments:
            if adj.kind == LineKind.EARNING:
                earnings.add(
                    adj.concept_code, adj.label, rounding.apply(adj.amount),
                    note=adj.reason or None, is_manual=True,
                    taxable=adj.taxable, contributory=adj.contributory,
                )

        gross = earnings.total()
        exempt_from_contributions = sum(
            (l.amount for l in earnings.lines if not l.contributory), ZERO
        )
        exempt_from_tax = sum((l.amount for l in earnings.lines if not l.taxable), ZERO)

        employee_social_security = ZERO
        if profile.social_security_affiliated and run_type != RunType.STATUTORY_BONUS:
            ss = self._contributions.social_security(
                gross, exempt_from_contributions, rule_set, cap_fraction=fraction
            )
            deductions.add(
                ConceptCode.SOCIAL_SECURITY_EMPLOYEE, ss.employee.label,
                ss.employee.amount, ss.employee.base, ss.employee.rate,
                note="base capped" if ss.employee.cap_applied else None,
            )
            employer.add(
                ConceptCode.SOCIAL_SECURITY_EMPLOYER, ss.employer.label,
                ss.employer.amount, ss.employer.base, ss.employer.rate,
                note="base capped" if ss.employer.cap_applied else None,
            )
            employee_social_security = ss.employee.amount

        if run_type == RunType.STATUTORY_BONUS:
            self._statutory_bonus_tax(profile, inputs, rule_set, gross, deductions)
        else:
            taxable = gross - exempt_from_tax
            if rule_set.social_security_deductible_from_taxable_base:
                taxable -= employee_social_security
            # Tax base floors at zero.
            taxable = max(taxable, ZERO)
            result = self._tax.calculate(taxable, rule_set.tax_brackets, rounding, fraction)
            self._income_tax_line(profile, result, rounding, deductions)

        if run_type == RunType.ORDINARY:
            for deduction in profile.fixed_deductions:
                deductions.add(
                    deduction.code, deduction.label,
                    rounding.apply(deduction.amount * fraction),
                    deduction.amount, _fraction_or_none(fraction),
                    note=deduction.kind.value,
                )

        for adj in adjustments:
            if adj.kind == LineKind.DEDUCTION:
                deductions.add(
                    adj.concept_code, adj.label, rounding.apply(adj.amount),
                    note=adj.reason or None, is_manual=True,
                )

        total_deductions = deductions.total()
        if gross - total_deductions < ZERO:
            logger.error("negative_net_pay", extra={
                "employee_id": employee_id,
                "gross_earnings": str(gross),
                "total_deductions": str(total_deductions),
            })
            raise NegativeNetPayError(employee_id, gross, total_deductions)

        if run_type == RunType.ORDINARY:
            surcharge_base = self._contributions.contributory_base(gross, exempt_from_contributions)
            for surcharge in self._contributions.employer_rates(
                surcharge_base, rule_set.surcharge_rates, rounding
            ):
                employer.add(
                    surcharge.code, surcharge.label, surcharge.amount, surcharge.base, surcharge.rate
                )

            accruable = sum(
                (
                    l.amount for l in earnings.lines
                    if not l.is_manual and l.concept_code != ConceptCode.STATUTORY_BONUS.value
                ),
                ZERO,
            )
            for accrual in self._accruals.calculate(
                employee_id, accruable, rule_set.accrual_rates, rounding
            ):
                employer.add(accrual.code, accrual.label, accrual.amount, accrual.base, accrual.rate)

        ledger = EmployeeLedger(
            employee_id=employee_id,
            profile_id=profile.profile_id,
            lines=self._numbered(earnings.lines + deductions.lines),
            employer_lines=self._numbered(employer.lines),
        )

        logger.debug("employee_ledger_built", extra={
            "employee_id": employee_id,
            "run_type": run_type.value,
            "period": period.key,
            "gross_earnings": str(ledger.gross_earnings),
            "total_deductions": str(ledger.total_deductions),
            "net_pay": str(ledger.net_pay),
            "line_count": len(ledger.lines),
            "employer_line_count": len(ledger.employer_lines),
        })
        return ledger

    def _ordinary_earnings(
        self,
        profile: EmployeeCompensationProfile,
        inputs: PeriodInputs,
        rule_set: LaborRuleSet,
        period: PeriodSpec,
        run_type: RunType,
        earnings: _LineSink,
    ) -> None:
        rounding = rule_set.rounding
        fraction = period.fraction
        salary = profile.base_monthly_salary

        earnings.add(
            ConceptCode.BASE_SALARY, "Base salary",
            rounding.apply(salary * fraction), salary, _fraction_or_none(fraction),
            taxable=True, contributory=True,
        )

        for ot in self._overtime.calculate(
            employee_id=profile.employee_id,
            base_salary=salary,
            standard_hours=profile.hours_basis(rule_set.monthly_standard_hours),
            ordinary_hours=inputs.ordinary_overtime_hours,
            night_hours=inputs.night_overtime_hours,
            multipliers=rule_set.overtime,
            rounding=rounding,
        ):
            earnings.add(
                ot.concept_code, ot.label, ot.amount, ot.hours, ot.multiplier,
                note=f"hourly rate {ot.hourly_rate}",
                taxable=True, contributory=True,
            )

        if inputs.commissions > ZERO:
            earnings.add(
                ConceptCode.COMMISSIONS, "Commissions", rounding.apply(inputs.commissions),
                taxable=True, contributory=True,
            )

        for item in inputs.other_income:
            if item.amount > ZERO:
                earnings.add(
                    item.code, item.label, rounding.apply(item.amount),
                    taxable=item.taxable, contributory=item.contributory,
                )

        bonus = rule_set.statutory_bonus_amount
        if (
            run_type == RunType.ORDINARY
            and profile.receives_statutory_bonus
            and not inputs.statutory_bonus_paid
            and bonus > ZERO
        ):
            earnings.add(
                ConceptCode.STATUTORY_BONUS, "Statutory bonus",
                rounding.apply(bonus * fraction), bonus, _fraction_or_none(fraction),
            )

    def _statutory_bonus_payment(
        self,
        profile: EmployeeCompensationProfile,
        inputs: PeriodInputs,
        rule_set: LaborRuleSet,
        earnings: _LineSink,
    ) -> None:
        base = inputs.statutory_bonus_base
        if base is None:
            base = profile.base_monthly_salary
        earnings.add(
            ConceptCode.STATUTORY_BONUS_PAYMENT, "Statutory bonus payment",
            rule_set.rounding.apply(base), base,
            taxable=True, contributory=False,
        )

    def _statutory_bonus_tax(
        self,
        profile: EmployeeCompensationProfile,
        inputs: PeriodInputs,
        rule_set: LaborRuleSet,
        payment: Decimal,
        deductions: _LineSink,
    ) -> None:
        exemption = rule_set.statutory_bonus_annual_tax_exemption or ZERO
        year_to_date = (inputs.statutory_bonus_ytd or ZERO) + payment
        if year_to_date <= exemption:
            taxable = ZERO
        else:
            taxable = min(year_to_date - exemption, payment)

        result = self._tax.calculate(taxable, rule_set.tax_brackets, rule_set.rounding)
        if not profile.tax_exempt and taxable == ZERO:
            deductions.add(
                ConceptCode.INCOME_TAX, "Income tax", rule_set.rounding.zero(), ZERO,
                note=f"within annual exemption of {exemption}",
            )
            return
        self._income_tax_line(profile, result, rule_set.rounding, deductions)

    def _income_tax_line(
        self,
        profile: EmployeeCompensationProfile,
        result: TaxBracketResult,
        rounding: RoundingPolicy,
        deductions: _LineSink,
    ) -> None:
        if profile.tax_exempt:
            deductions.add(
                ConceptCode.INCOME_TAX, "Income tax", rounding.zero(), result.taxable_income,
                note=f"exempt: {profile.tax_exemption_reason or 'unspecified'}",
            )
            return
        deductions.add(
            ConceptCode.INCOME_TAX, "Income tax", result.tax, result.taxable_income,
            note=_describe_bracket(result),
        )

    @staticmethod
    def _numbered(lines: list[PayLedgerLine]) -> tuple[PayLedgerLine, ...]:
        return tuple(replace(line, display_order=i) for i, line in enumerate(lines, start=1))
