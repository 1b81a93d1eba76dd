"""
payroll_services -- orchestration of payroll runs.

Responsibility:
    Wires the pure engines to injected collaborators (rule repository,
    employee source, adjustment source, run store, clock) and owns the run
    lifecycle.  ``PayrollRunService`` is the single public entry point.

Architecture position:
    Services layer -- imports ``payroll_kernel``, ``payroll_engines`` and
    ``payroll_config``; nothing below imports it.
"""

from payroll_services.collaborators import (
    AdjustmentSource,
    EmployeeSource,
    InMemoryAdjustmentSource,
    InMemoryEmployeeSource,
    RuleRepository,
)
from payroll_services.payroll_run_service import PayrollRunService
from payroll_services.run_store import InMemoryPayrollRunStore
from payroll_services.workflows import PAYROLL_RUN_WORKFLOW

__all__ = [
    "AdjustmentSource",
    "EmployeeSource",
    "InMemoryAdjustmentSource",
    "InMemoryEmployeeSource",
    "InMemoryPayrollRunStore",
    "PAYROLL_RUN_WORKFLOW",
    "PayrollRunService",
    "RuleRepository",
]
