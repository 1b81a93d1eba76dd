"""
Payroll Run Domain Models (``payroll_kernel.domain.run``).

Responsibility
--------------
Frozen value objects for one payroll run: the period it covers, the run
type, its lifecycle status, the employee selection, run totals, the
employer contribution summary and the audit trail.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Built by
``payroll_services.payroll_run_service`` from the aggregator's output and
returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True``; status changes produce a new PayrollRun.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* A run references exactly one rule-set version (plus its checksum).
* ``void_reason`` is set if and only if the run is VOIDED.

Failure modes
-------------
* ``ValueError`` for an invalid period (month outside 1..12, half not 1/2).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_kernel.domain.ledger import EmployeeLedger
from payroll_kernel.domain.values import ZERO, to_decimal


class RunType(str, Enum):
    """Kinds of payroll run."""
    ORDINARY = "ordinary"
    EXTRAORDINARY = "extraordinary"
    STATUTORY_BONUS = "statutory_bonus"


class RunStatus(str, Enum):
    """Payroll run lifecycle states."""
    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"
    VOIDED = "voided"


@dataclass(frozen=True, slots=True)
class PeriodSpec:
    """
    A monthly or half-monthly pay period.

    ``half`` is None for a full month, 1 for days 1-15, 2 for day 16 to
    month end.
    """
    year: int
    month: int
    half: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be within 1..12, got {self.month}")
        if not 1900 <= self.year <= 9999:
            raise ValueError(f"year out of range: {self.year}")
        if self.half not in (None, 1, 2):
            raise ValueError(f"half must be None, 1 or 2, got {self.half}")

    @property
    def fraction(self) -> Decimal:
        """Share of a month this period covers."""
        return Decimal("1") if self.half is None else Decimal("0.5")

    @property
    def start_date(self) -> date:
        return date(self.year, self.month, 16 if self.half == 2 else 1)

    @property
    def end_date(self) -> date:
        last_day = calendar.monthrange(self.year, self.month)[1]
        return date(self.year, self.month, 15 if self.half == 1 else last_day)

    @property
    def key(self) -> str:
        """Stable identifier, e.g. ``2025-01`` or ``2025-01-H2``."""
        base = f"{self.year:04d}-{self.month:02d}"
        return base if self.half is None else f"{base}-H{self.half}"


@dataclass(frozen=True, slots=True)
class EmployeeSelection:
    """
    Which employees a run covers.

    Explicit ids and department ids combine as a union; both empty
    selects every employee with a valid profile.
    """
    employee_ids: tuple[str, ...] = ()
    department_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "employee_ids", tuple(sorted(set(self.employee_ids))))
        object.__setattr__(self, "department_ids", tuple(sorted(set(self.department_ids))))

    @property
    def is_everyone(self) -> bool:
        return not self.employee_ids and not self.department_ids

    def includes(self, employee_id: str, department_id: str | None) -> bool:
        if self.is_everyone:
            return True
        if employee_id in self.employee_ids:
            return True
        return department_id is not None and department_id in self.department_ids

    @classmethod
    def everyone(cls) -> EmployeeSelection:
        return cls()

    @classmethod
    def of(cls, *employee_ids: str) -> EmployeeSelection:
        return cls(employee_ids=employee_ids)


@dataclass(frozen=True, slots=True)
class ConceptTotal:
    """Run-level total for one employer concept."""
    concept_code: str
    label: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class EmployerContributionSummary:
    """
    Employer-side costs of a run, summed from ledger employer lines.

    Derived data: recomputed with the run, never edited.
    """
    social_security: Decimal = ZERO
    surcharges: tuple[ConceptTotal, ...] = ()
    accruals: tuple[ConceptTotal, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "social_security", to_decimal(self.social_security))

    @property
    def surcharge_total(self) -> Decimal:
        return sum((c.amount for c in self.surcharges), ZERO)

    @property
    def accrual_total(self) -> Decimal:
        return sum((c.amount for c in self.accruals), ZERO)

    @property
    def total(self) -> Decimal:
        return self.social_security + self.surcharge_total + self.accrual_total

    def amount_for(self, concept_code: str) -> Decimal:
        for concept in self.surcharges + self.accruals:
            if concept.concept_code == concept_code:
                return concept.amount
        return ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "social_security": self.social_security,
            "surcharges": {c.concept_code: c.amount for c in self.surcharges},
            "accruals": {c.concept_code: c.amount for c in self.accruals},
            "total": self.total,
        }


@dataclass(frozen=True, slots=True)
class RunTotals:
    """Sums of ledger figures across a run."""
    gross_earnings: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO
    employee_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross_earnings": self.gross_earnings,
            "total_deductions": self.total_deductions,
            "net_pay": self.net_pay,
            "employee_count": self.employee_count,
        }


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """
    One recorded change to a run.

    Transitions record ``action`` with old/new status; adjustments record
    the employee, the field (concept code) and old/new amounts.
    """
    actor: str
    at: datetime
    action: str
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    employee_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class PayrollRun:
    """
    A payroll run and everything computed for it.

    Contract:
        Ledgers are sorted by employee id.  ``fingerprint`` is the
        deterministic hash of ledgers and totals, stable across
        recomputation with unchanged inputs.
    """
    run_id: UUID
    period: PeriodSpec
    run_type: RunType
    jurisdiction: str
    as_of: date
    selection: EmployeeSelection
    ledgers: tuple[EmployeeLedger, ...]
    totals: RunTotals
    employer_summary: EmployerContributionSummary
    rule_set_version: str
    rule_set_checksum: str
    fingerprint: str
    created_at: datetime
    computed_at: datetime
    status: RunStatus = RunStatus.DRAFT
    created_by: str | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    audit_trail: tuple[AuditEntry, ...] = field(default_factory=tuple)

    @property
    def is_live(self) -> bool:
        """Live runs count toward the one-run-per-period-and-type rule."""
        return self.status != RunStatus.VOIDED

    @property
    def period_key(self) -> str:
        return self.period.key

    @property
    def employee_ids(self) -> tuple[str, ...]:
        return tuple(l.employee_id for l in self.ledgers)

    def ledger_for(self, employee_id: str) -> EmployeeLedger | None:
        for ledger in self.ledgers:
            if ledger.employee_id == employee_id:
                return ledger
        return None
