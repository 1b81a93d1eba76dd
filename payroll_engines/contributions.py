"""
Contribution Engine - Social-security contributions and employer surcharges.

Pure functions with no I/O - rates, cap and rounding are provided as
parameters.

Formulas:
    contributory base = gross earnings - exempt earnings
    employee          = employee rate * min(contributory base, cap)
    employer          = employer rate * min(contributory base, cap)
                        (or the uncapped base when the rule set says so)
    surcharge         = surcharge rate * contributory base (never capped)

Exempt earnings are removed before the cap is applied.  Each contribution
is rounded once, independently of the others.

Usage:
    from payroll_engines.contributions import ContributionCalculator

    calculator = ContributionCalculator()
    result = calculator.social_security(
        gross=Decimal("3000"), exempt=Decimal("250"), rule_set=rule_set,
    )
    print(result.employee.amount)  # Decimal('132.83')
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.labor_rules import EmployerRate, LaborRuleSet
from payroll_kernel.domain.values import ZERO, RoundingPolicy, to_decimal
from payroll_kernel.exceptions import InvalidContributionBaseError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.contributions")


@dataclass(frozen=True)
class ContributionResult:
    """One calculated contribution: ``amount == rounding(base * rate)``."""

    code: str
    label: str
    base: Decimal
    rate: Decimal
    amount: Decimal
    cap_applied: bool = False


@dataclass(frozen=True)
class SocialSecurityResult:
    """Employee and employer social-security contributions for one employee."""

    contributory_base: Decimal
    employee: ContributionResult
    employer: ContributionResult


class ContributionCalculator:
    """
    Calculate social-security contributions and employer surcharges.

    Pure functions - no I/O, no database access.
    """

    EMPLOYEE_CODE = "SOCIAL_SECURITY_EMPLOYEE"
    EMPLOYER_CODE = "SOCIAL_SECURITY_EMPLOYER"

    def contributory_base(self, gross: Decimal, exempt: Decimal = ZERO) -> Decimal:
        """
        Gross minus exempt earnings.

        Raises:
            InvalidContributionBaseError: If gross is negative or exempt
                earnings are negative or exceed gross.
        """
        gross = to_decimal(gross, "gross")
        exempt = to_decimal(exempt, "exempt")
        if gross < ZERO or exempt < ZERO or exempt > gross:
            logger.error("contribution_invalid_base", extra={
                "gross_earnings": str(gross),
                "exempt_earnings": str(exempt),
            })
            raise InvalidContributionBaseError(gross, exempt)
        return gross - exempt

    def contribution(
        self,
        code: str,
        label: str,
        base: Decimal,
        rate: Decimal,
        rounding: RoundingPolicy,
        cap: Decimal | None = None,
    ) -> ContributionResult:
        """Apply rate to base, limited by cap when given, and round once."""
        cap_applied = cap is not None and base > cap
        applied_base = cap if cap_applied else base
        return ContributionResult(
            code=code,
            label=label,
            base=applied_base,
            rate=rate,
            amount=rounding.apply(applied_base * rate),
            cap_applied=cap_applied,
        )

    @traced_engine("contributions", "1.0", fingerprint_fields=("gross", "exempt", "cap_fraction"))
    def social_security(
        self,
        gross: Decimal,
        exempt: Decimal,
        rule_set: LaborRuleSet,
        cap_fraction: Decimal = Decimal("1"),
    ) -> SocialSecurityResult:
        """
        Employee and employer contributions under a rule set.

        ``cap_fraction`` scales the monthly cap for partial periods.

        Raises:
            InvalidContributionBaseError: On a negative or inconsistent base.
        """
        base = self.contributory_base(gross, exempt)
        cap = rule_set.social_security_base_cap * to_decimal(cap_fraction, "cap_fraction")

        employee = self.contribution(
            self.EMPLOYEE_CODE,
            "Social security (employee)",
            base,
            rule_set.employee_social_security_rate,
            rule_set.rounding,
            cap=cap,
        )
        employer = self.contribution(
            self.EMPLOYER_CODE,
            "Social security (employer)",
            base,
            rule_set.employer_social_security_rate,
            rule_set.rounding,
            cap=cap if rule_set.employer_contribution_capped else None,
        )

        logger.debug("social_security_calculated", extra={
            "contributory_base": str(base),
            "cap": str(cap),
            "cap_applied": employee.cap_applied,
            "employee_amount": str(employee.amount),
            "employer_amount": str(employer.amount),
        })
        return SocialSecurityResult(contributory_base=base, employee=employee, employer=employer)

    def employer_rates(
        self,
        base: Decimal,
        rates: Sequence[EmployerRate],
        rounding: RoundingPolicy,
    ) -> tuple[ContributionResult, ...]:
        """
        Flat employer charges (surcharges or accruals) on an uncapped base.

        Raises:
            InvalidContributionBaseError: If base is negative.
        """
        base = self.contributory_base(base)
        return tuple(
            self.contribution(rate.code, rate.label, base, rate.rate, rounding)
            for rate in rates
        )
