"""Payroll Run Workflow.

State machine for the payroll run lifecycle:

    draft --approve--> approved --mark_paid--> paid
    draft --void-----> voided
    approved --void--> voided

``recompute`` and ``append_adjustment`` are self-transitions; recompute is
only allowed in draft, adjustments in draft or approved.
"""

from payroll_kernel.domain.run import RunStatus
from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

RUN_RECONCILED = Guard(
    name="run_reconciled",
    description=(
        "Every selected employee has a ledger, no net pay is negative, and run "
        "totals and the employer summary equal the sums of ledger lines"
    ),
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={"guards": [RUN_RECONCILED.name]},
)


# -----------------------------------------------------------------------------
# Payroll Run Workflow
# -----------------------------------------------------------------------------

ACTION_APPROVE = "approve"
ACTION_MARK_PAID = "mark_paid"
ACTION_VOID = "void"
ACTION_RECOMPUTE = "recompute"
ACTION_APPEND_ADJUSTMENT = "append_adjustment"

_DRAFT = RunStatus.DRAFT.value
_APPROVED = RunStatus.APPROVED.value
_PAID = RunStatus.PAID.value
_VOIDED = RunStatus.VOIDED.value

PAYROLL_RUN_WORKFLOW = Workflow(
    name="payroll_run",
    description="Payroll run lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _APPROVED, _PAID, _VOIDED),
    transitions=(
        Transition(_DRAFT, _DRAFT, action=ACTION_RECOMPUTE),
        Transition(_DRAFT, _DRAFT, action=ACTION_APPEND_ADJUSTMENT),
        Transition(_DRAFT, _APPROVED, action=ACTION_APPROVE, guard=RUN_RECONCILED),
        Transition(_DRAFT, _VOIDED, action=ACTION_VOID, requires_reason=True),
        Transition(_APPROVED, _APPROVED, action=ACTION_APPEND_ADJUSTMENT),
        Transition(_APPROVED, _PAID, action=ACTION_MARK_PAID),
        Transition(_APPROVED, _VOIDED, action=ACTION_VOID, requires_reason=True),
    ),
    terminal_states=(_PAID, _VOIDED),
)

logger.info(
    "payroll_run_workflow_registered",
    extra={
        "workflow_name": PAYROLL_RUN_WORKFLOW.name,
        "states": list(PAYROLL_RUN_WORKFLOW.states),
        "transition_count": len(PAYROLL_RUN_WORKFLOW.transitions),
    },
)
