"""
Ledger -- Itemized payslip lines and per-employee ledgers.

Responsibility:
    Defines PayLedgerLine (one traceable concept on a payslip), the
    EmployeeLedger that owns an employee's lines for one run, and
    ManualAdjustment (an operator-supplied line appended to a ledger).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Produced by ``payroll_engines.concept_lines``; summed by
    ``payroll_engines.aggregation``; stored on PayrollRun.

Invariants enforced:
    - Every line amount is a non-negative Decimal already rounded by the
      rule set's RoundingPolicy; direction comes from ``kind``.
    - ``gross_earnings``, ``total_deductions`` and ``net_pay`` are derived
      from the lines at construction, never supplied by the caller.
    - Employer lines never affect gross, deductions or net.
    - A ledger is never edited in place: an appended adjustment produces a
      new ledger with ``version + 1``.

Failure modes:
    - ValueError for a negative line amount or a line of the wrong kind.
    - TypeError when a float reaches a monetary field.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_kernel.domain.values import ZERO, to_decimal


class LineKind(str, Enum):
    """Direction of a ledger line."""

    EARNING = "earning"
    DEDUCTION = "deduction"
    EMPLOYER = "employer"


class ConceptCode(str, Enum):
    """Built-in concept codes.  Income items and fixed deductions carry their own."""

    BASE_SALARY = "BASE_SALARY"
    OVERTIME_ORDINARY = "OVERTIME_ORDINARY"
    OVERTIME_NIGHT = "OVERTIME_NIGHT"
    COMMISSIONS = "COMMISSIONS"
    STATUTORY_BONUS = "STATUTORY_BONUS"
    STATUTORY_BONUS_PAYMENT = "STATUTORY_BONUS_PAYMENT"
    SOCIAL_SECURITY_EMPLOYEE = "SOCIAL_SECURITY_EMPLOYEE"
    INCOME_TAX = "INCOME_TAX"
    SOCIAL_SECURITY_EMPLOYER = "SOCIAL_SECURITY_EMPLOYER"


@dataclass(frozen=True, slots=True)
class PayLedgerLine:
    """
    A single itemized payslip concept.

    ``base`` and ``rate`` make the line traceable: for rate-driven lines
    ``amount == rounding(base * rate)``; fixed amounts leave ``rate`` None.
    ``taxable`` and ``contributory`` record how an earning entered the
    income tax and social-security bases.
    """

    concept_code: str
    label: str
    kind: LineKind
    amount: Decimal
    base: Decimal | None = None
    rate: Decimal | None = None
    is_manual: bool = False
    display_order: int = 0
    note: str | None = None
    taxable: bool = False
    contributory: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.concept_code, ConceptCode):
            object.__setattr__(self, "concept_code", self.concept_code.value)
        if not isinstance(self.kind, LineKind):
            object.__setattr__(self, "kind", LineKind(self.kind))
        amount = to_decimal(self.amount, f"{self.concept_code}.amount")
        if amount < ZERO:
            raise ValueError(
                f"Ledger line {self.concept_code} amount cannot be negative: {amount}"
            )
        object.__setattr__(self, "amount", amount)
        if self.base is not None:
            object.__setattr__(self, "base", to_decimal(self.base, f"{self.concept_code}.base"))
        if self.rate is not None:
            object.__setattr__(self, "rate", to_decimal(self.rate, f"{self.concept_code}.rate"))

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign it has on net pay (deductions negative)."""
        return -self.amount if self.kind == LineKind.DEDUCTION else self.amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept_code": self.concept_code,
            "label": self.label,
            "kind": self.kind.value,
            "base": self.base,
            "rate": self.rate,
            "amount": self.amount,
            "is_manual": self.is_manual,
            "display_order": self.display_order,
            "note": self.note,
            "taxable": self.taxable,
            "contributory": self.contributory,
        }


@dataclass(frozen=True, slots=True)
class ManualAdjustment:
    """
    Operator-supplied earning or deduction for one employee.

    Adjustments are appended to the ledger as manual lines after the
    computed lines of the same kind.
    """

    employee_id: str
    concept_code: str
    label: str
    kind: LineKind
    amount: Decimal
    reason: str = ""
    taxable: bool = False
    contributory: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.kind, LineKind):
            object.__setattr__(self, "kind", LineKind(self.kind))
        if self.kind == LineKind.EMPLOYER:
            raise ValueError("Manual adjustments must be earnings or deductions")
        amount = to_decimal(self.amount, "adjustment.amount")
        if amount <= ZERO:
            raise ValueError(f"Adjustment amount must be positive, got {amount}")
        object.__setattr__(self, "amount", amount)


@dataclass(frozen=True, slots=True)
class EmployeeLedger:
    """
    All lines computed for one employee in one payroll run.

    Contract:
        ``lines`` holds earnings then deductions in canonical display
        order; ``employer_lines`` holds employer-side costs.

    Guarantees:
        - ``net_pay == gross_earnings - total_deductions`` exactly.
        - Totals are sums of already-rounded line amounts.
    """

    employee_id: str
    profile_id: str
    lines: tuple[PayLedgerLine, ...]
    employer_lines: tuple[PayLedgerLine, ...] = ()
    version: int = 1
    gross_earnings: Decimal = field(init=False)
    total_deductions: Decimal = field(init=False)
    net_pay: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "employer_lines", tuple(self.employer_lines))
        for line in self.lines:
            if line.kind == LineKind.EMPLOYER:
                raise ValueError(
                    f"Employer line {line.concept_code} placed among employee lines"
                )
        for line in self.employer_lines:
            if line.kind != LineKind.EMPLOYER:
                raise ValueError(
                    f"{line.kind.value} line {line.concept_code} placed among employer lines"
                )

        gross = sum((l.amount for l in self.lines if l.kind == LineKind.EARNING), ZERO)
        deductions = sum((l.amount for l in self.lines if l.kind == LineKind.DEDUCTION), ZERO)
        object.__setattr__(self, "gross_earnings", gross)
        object.__setattr__(self, "total_deductions", deductions)
        object.__setattr__(self, "net_pay", gross - deductions)

    @property
    def earnings(self) -> tuple[PayLedgerLine, ...]:
        return tuple(l for l in self.lines if l.kind == LineKind.EARNING)

    @property
    def deductions(self) -> tuple[PayLedgerLine, ...]:
        return tuple(l for l in self.lines if l.kind == LineKind.DEDUCTION)

    @property
    def employer_cost(self) -> Decimal:
        return sum((l.amount for l in self.employer_lines), ZERO)

    def line_for(self, concept_code: str) -> PayLedgerLine | None:
        """First line (employee or employer) with the given concept code."""
        code = concept_code.value if isinstance(concept_code, ConceptCode) else concept_code
        for line in self.lines + self.employer_lines:
            if line.concept_code == code:
                return line
        return None

    def amount_for(self, concept_code: str) -> Decimal:
        """Sum of all lines carrying the concept code (zero if none)."""
        code = concept_code.value if isinstance(concept_code, ConceptCode) else concept_code
        return sum(
            (l.amount for l in self.lines + self.employer_lines if l.concept_code == code),
            ZERO,
        )

    def with_line(self, line: PayLedgerLine) -> EmployeeLedger:
        """
        New ledger version with line appended after the last line of its kind.

        Display orders of later lines shift by one so the ordering stays
        contiguous.
        """
        kinds = [l.kind for l in self.lines]
        insert_at = len(self.lines)
        if line.kind == LineKind.EARNING and LineKind.DEDUCTION in kinds:
            insert_at = kinds.index(LineKind.DEDUCTION)

        before = list(self.lines[:insert_at])
        after = list(self.lines[insert_at:])
        order = before[-1].display_order + 1 if before else 1
        placed = replace(line, display_order=order)
        shifted = [replace(l, display_order=l.display_order + 1) for l in after]
        return EmployeeLedger(
            employee_id=self.employee_id,
            profile_id=self.profile_id,
            lines=tuple(before + [placed] + shifted),
            employer_lines=self.employer_lines,
            version=self.version + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "profile_id": self.profile_id,
            "version": self.version,
            "lines": [l.to_dict() for l in self.lines],
            "employer_lines": [l.to_dict() for l in self.employer_lines],
            "gross_earnings": self.gross_earnings,
            "total_deductions": self.total_deductions,
            "net_pay": self.net_pay,
        }
