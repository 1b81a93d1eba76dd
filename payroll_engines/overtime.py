"""
Overtime Engine - Hourly rate and overtime pay.

Pure functions with no I/O.

    hourly rate = monthly salary / standard monthly hours   (never rounded)
    overtime    = hours * hourly rate * multiplier           (rounded once)

Ordinary and night overtime are separate categories, each producing its own
result (and ledger line).  Zero hours produce no result.

Usage:
    from payroll_engines.overtime import OvertimeCalculator

    calculator = OvertimeCalculator()
    lines = calculator.calculate(
        employee_id="E-001",
        base_salary=Decimal("12000"),
        standard_hours=Decimal("173.33"),
        ordinary_hours=Decimal("10"),
        night_hours=Decimal("0"),
        multipliers=rule_set.overtime,
        rounding=rule_set.rounding,
    )
    print(lines[0].amount)  # Decimal('1038.48')
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.labor_rules import OvertimeMultipliers
from payroll_kernel.domain.ledger import ConceptCode
from payroll_kernel.domain.values import ZERO, RoundingPolicy, to_decimal
from payroll_kernel.exceptions import InvalidPeriodInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.overtime")


@dataclass(frozen=True)
class OvertimeResult:
    """Overtime pay for one category (ordinary or night)."""

    concept_code: ConceptCode
    hours: Decimal
    hourly_rate: Decimal
    multiplier: Decimal
    amount: Decimal

    @property
    def label(self) -> str:
        if self.concept_code == ConceptCode.OVERTIME_NIGHT:
            return "Night overtime"
        return "Ordinary overtime"


class OvertimeCalculator:
    """Calculate overtime pay.  Pure functions - no I/O."""

    def hourly_rate(self, base_salary: Decimal, standard_hours: Decimal) -> Decimal:
        """Unrounded hourly rate."""
        standard_hours = to_decimal(standard_hours, "standard_hours")
        if standard_hours <= ZERO:
            raise ValueError(f"standard_hours must be positive, got {standard_hours}")
        return to_decimal(base_salary, "base_salary") / standard_hours

    @traced_engine(
        "overtime", "1.0",
        fingerprint_fields=("employee_id", "base_salary", "ordinary_hours", "night_hours"),
    )
    def calculate(
        self,
        employee_id: str,
        base_salary: Decimal,
        standard_hours: Decimal,
        ordinary_hours: Decimal,
        night_hours: Decimal,
        multipliers: OvertimeMultipliers,
        rounding: RoundingPolicy,
    ) -> tuple[OvertimeResult, ...]:
        """
        Overtime results for the categories with hours worked.

        Raises:
            InvalidPeriodInputError: If either hour count is negative.
        """
        categories = (
            (ConceptCode.OVERTIME_ORDINARY, "ordinary_overtime_hours", ordinary_hours, multipliers.ordinary),
            (ConceptCode.OVERTIME_NIGHT, "night_overtime_hours", night_hours, multipliers.night),
        )
        rate = self.hourly_rate(base_salary, standard_hours)

        results: list[OvertimeResult] = []
        for code, field_name, hours, multiplier in categories:
            hours = to_decimal(hours, field_name)
            if hours < ZERO:
                logger.warning("overtime_negative_hours", extra={
                    "employee_id": employee_id,
                    "field": field_name,
                    "hours": str(hours),
                })
                raise InvalidPeriodInputError(employee_id, field_name, str(hours))
            if hours == ZERO:
                continue
            results.append(OvertimeResult(
                concept_code=code,
                hours=hours,
                hourly_rate=rate,
                multiplier=multiplier,
                amount=rounding.apply(hours * rate * multiplier),
            ))

        if results:
            logger.debug("overtime_calculated", extra={
                "employee_id": employee_id,
                "hourly_rate": str(rate),
                "categories": [r.concept_code.value for r in results],
                "amounts": [str(r.amount) for r in results],
            })
        return tuple(results)
