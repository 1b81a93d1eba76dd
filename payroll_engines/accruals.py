"""
Accrual Engine - Employer liabilities accrued each ordinary period.

Pure functions with no I/O.  Year-end bonus, mid-year bonus, vacation and
severance are provisioned as a flat share of the employee's accruable
earnings (ordinary earnings excluding the flat statutory bonus).  The
results become employer lines; they never affect gross or net pay.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.labor_rules import EmployerRate
from payroll_kernel.domain.values import ZERO, RoundingPolicy, to_decimal
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.accruals")


@dataclass(frozen=True)
class AccrualResult:
    """One accrued liability."""

    code: str
    label: str
    base: Decimal
    rate: Decimal
    amount: Decimal


class AccrualCalculator:
    """Calculate employer accrual liabilities."""

    @traced_engine("accruals", "1.0", fingerprint_fields=("employee_id", "accruable_earnings"))
    def calculate(
        self,
        employee_id: str,
        accruable_earnings: Decimal,
        rates: Sequence[EmployerRate],
        rounding: RoundingPolicy,
    ) -> tuple[AccrualResult, ...]:
        """
        One result per configured rate, rounded independently.

        Raises:
            ValueError: If accruable earnings are negative.
        """
        base = to_decimal(accruable_earnings, "accruable_earnings")
        if base < ZERO:
            raise ValueError(f"Accruable earnings cannot be negative: {base}")

        results = tuple(
            AccrualResult(
                code=rate.code,
                label=rate.label,
                base=base,
                rate=rate.rate,
                amount=rounding.apply(base * rate.rate),
            )
            for rate in rates
        )
        logger.debug("accruals_calculated", extra={
            "employee_id": employee_id,
            "accruable_earnings": str(base),
            "accruals": {r.code: str(r.amount) for r in results},
        })
        return results
