"""
Compensation Domain Models (``payroll_kernel.domain.compensation``).

Responsibility
--------------
Frozen value objects describing what an employee is paid and what happened
during a pay period: the effective-dated compensation profile, fixed
recurring deductions, additional income items, and per-period inputs
(overtime hours, commissions, statutory-bonus state).

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Supplied
by the employee source collaborator and consumed by the calculation
engines.

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Profiles are valid over a half-open window [valid_from, valid_to).
* Hours and amounts in period inputs are non-negative.

Failure modes
-------------
* ``ValueError`` for a malformed profile (negative salary, bad window).
* ``InvalidPeriodInputError`` for negative hours or amounts in period inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from payroll_kernel.domain.values import ZERO, to_decimal
from payroll_kernel.exceptions import InvalidPeriodInputError
from payroll_kernel.logging_config import get_logger

logger = get_logger("domain.compensation")


class PaymentMethod(str, Enum):
    """How net pay reaches the employee."""
    TRANSFER = "transfer"
    CASH = "cash"
    CHECK = "check"


class DeductionKind(str, Enum):
    """Kinds of fixed recurring deduction."""
    LOAN = "loan"
    ADVANCE = "advance"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class FixedDeduction:
    """A recurring deduction taken from every ordinary run (monthly amount)."""
    code: str
    label: str
    amount: Decimal
    kind: DeductionKind = DeductionKind.OTHER

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount, f"fixed_deduction.{self.code}")
        if amount <= ZERO:
            raise ValueError(f"Fixed deduction {self.code} must be positive, got {amount}")
        object.__setattr__(self, "amount", amount)
        if not isinstance(self.kind, DeductionKind):
            object.__setattr__(self, "kind", DeductionKind(self.kind))


@dataclass(frozen=True, slots=True)
class IncomeItem:
    """
    Additional income for one period (bonus, allowance, reimbursement).

    ``taxable`` and ``contributory`` state whether the item enters the
    income tax base and the social-security base respectively.
    """
    code: str
    label: str
    amount: Decimal
    taxable: bool = True
    contributory: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, f"income.{self.code}"))


@dataclass(frozen=True, slots=True)
class EmployeeCompensationProfile:
    """
    Effective-dated compensation parameters for one employee.

    Contract:
        At most one profile per employee is valid on any date; historical
        profiles are kept by the employee source, never overwritten.

    Guarantees:
        ``hourly_rate`` is ``base_monthly_salary / standard hours`` and is
        never rounded.
    """
    employee_id: str
    profile_id: str
    valid_from: date
    base_monthly_salary: Decimal
    valid_to: date | None = None
    standard_monthly_hours: Decimal | None = None
    social_security_affiliated: bool = True
    tax_exempt: bool = False
    tax_exemption_reason: str | None = None
    fixed_deductions: tuple[FixedDeduction, ...] = ()
    payment_method: PaymentMethod = PaymentMethod.TRANSFER
    receives_statutory_bonus: bool = True
    department_id: str | None = None

    def __post_init__(self) -> None:
        if not self.employee_id:
            raise ValueError("employee_id is required")
        salary = to_decimal(self.base_monthly_salary, "base_monthly_salary")
        if salary < ZERO:
            logger.warning("profile_negative_salary", extra={
                "employee_id": self.employee_id,
                "profile_id": self.profile_id,
                "base_monthly_salary": str(salary),
            })
            raise ValueError("base_monthly_salary cannot be negative")
        object.__setattr__(self, "base_monthly_salary", salary)

        if self.standard_monthly_hours is not None:
            hours = to_decimal(self.standard_monthly_hours, "standard_monthly_hours")
            if hours <= ZERO:
                raise ValueError("standard_monthly_hours must be positive")
            object.__setattr__(self, "standard_monthly_hours", hours)

        if self.valid_to is not None and self.valid_to <= self.valid_from:
            raise ValueError(
                f"valid_to {self.valid_to} must be after valid_from {self.valid_from}"
            )
        object.__setattr__(self, "fixed_deductions", tuple(self.fixed_deductions))
        if not isinstance(self.payment_method, PaymentMethod):
            object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))

    def is_valid_on(self, as_of: date) -> bool:
        """True if as_of is inside [valid_from, valid_to)."""
        if as_of < self.valid_from:
            return False
        return self.valid_to is None or as_of < self.valid_to

    def hours_basis(self, default_hours: Decimal) -> Decimal:
        """Monthly hours used for the hourly rate (profile override or rule set)."""
        return self.standard_monthly_hours or default_hours

    def hourly_rate(self, default_hours: Decimal) -> Decimal:
        """Unrounded hourly rate derived from the monthly salary."""
        return self.base_monthly_salary / self.hours_basis(default_hours)


@dataclass(frozen=True, slots=True)
class PeriodInputs:
    """
    What happened for one employee in one pay period.

    ``statutory_bonus_paid`` marks the flat statutory bonus as already paid
    this period (it is then not paid again).  The ``statutory_bonus_*``
    fields drive statutory-bonus runs: ``statutory_bonus_base`` is the
    payment base and ``statutory_bonus_ytd`` the amount already paid this
    year, used against the annual tax exemption.  Left as None, the run
    service derives both from the employee's committed runs.
    """
    employee_id: str
    ordinary_overtime_hours: Decimal = ZERO
    night_overtime_hours: Decimal = ZERO
    commissions: Decimal = ZERO
    other_income: tuple[IncomeItem, ...] = ()
    statutory_bonus_paid: bool = False
    statutory_bonus_base: Decimal | None = None
    statutory_bonus_ytd: Decimal | None = None

    def __post_init__(self) -> None:
        for name in (
            "ordinary_overtime_hours",
            "night_overtime_hours",
            "commissions",
        ):
            self._set_non_negative(name, getattr(self, name))
        for name in ("statutory_bonus_base", "statutory_bonus_ytd"):
            if getattr(self, name) is not None:
                self._set_non_negative(name, getattr(self, name))

        object.__setattr__(self, "other_income", tuple(self.other_income))
        for item in self.other_income:
            if item.amount < ZERO:
                raise InvalidPeriodInputError(
                    self.employee_id, f"other_income.{item.code}", str(item.amount)
                )

    def _set_non_negative(self, name: str, value: Decimal) -> None:
        value = to_decimal(value, name)
        if value < ZERO:
            logger.warning("period_input_negative", extra={
                "employee_id": self.employee_id,
                "field": name,
                "value": str(value),
            })
            raise InvalidPeriodInputError(self.employee_id, name, str(value))
        object.__setattr__(self, name, value)

    @classmethod
    def empty(cls, employee_id: str) -> PeriodInputs:
        """Inputs for an employee with nothing beyond the base salary."""
        return cls(employee_id=employee_id)
