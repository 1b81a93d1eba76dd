"""
Pure domain layer.

This module contains the immutable value types of the payroll engine with
NO dependencies on:
- Persistence
- Time/clock (the Clock abstraction is injected by services)
- I/O

All domain objects are immutable and deterministic.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.compensation import (
    DeductionKind,
    EmployeeCompensationProfile,
    FixedDeduction,
    IncomeItem,
    PaymentMethod,
    PeriodInputs,
)
from payroll_kernel.domain.labor_rules import (
    EmployerRate,
    LaborRuleSet,
    OvertimeMultipliers,
    TaxBracket,
    TaxBracketTable,
)
from payroll_kernel.domain.ledger import (
    ConceptCode,
    EmployeeLedger,
    LineKind,
    ManualAdjustment,
    PayLedgerLine,
)
from payroll_kernel.domain.run import (
    AuditEntry,
    ConceptTotal,
    EmployeeSelection,
    EmployerContributionSummary,
    PayrollRun,
    PeriodSpec,
    RunStatus,
    RunTotals,
    RunType,
)
from payroll_kernel.domain.values import ZERO, RoundingMode, RoundingPolicy, to_decimal
from payroll_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Values
    "ZERO",
    "RoundingMode",
    "RoundingPolicy",
    "to_decimal",
    # Labor rules
    "EmployerRate",
    "LaborRuleSet",
    "OvertimeMultipliers",
    "TaxBracket",
    "TaxBracketTable",
    # Compensation
    "DeductionKind",
    "EmployeeCompensationProfile",
    "FixedDeduction",
    "IncomeItem",
    "PaymentMethod",
    "PeriodInputs",
    # Ledger
    "ConceptCode",
    "EmployeeLedger",
    "LineKind",
    "ManualAdjustment",
    "PayLedgerLine",
    # Run
    "AuditEntry",
    "ConceptTotal",
    "EmployeeSelection",
    "EmployerContributionSummary",
    "PayrollRun",
    "PeriodSpec",
    "RunStatus",
    "RunTotals",
    "RunType",
    # Workflow
    "Guard",
    "Transition",
    "Workflow",
]
