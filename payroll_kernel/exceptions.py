"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors have legal and financial consequences. The engine never
guesses a "reasonable" value when inputs are inconsistent: it fails closed
and tells the caller exactly which employee, rule set or run is at fault.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        run = service.compute_run(period, "GT", selection)
    except NegativeNetPayError as e:
        report(employee=e.employee_id, gross=e.gross, deductions=e.deductions)
    except NoApplicableRuleSetError as e:
        report(jurisdiction=e.jurisdiction, as_of=e.as_of)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- RuleSetError
    |   +-- NoApplicableRuleSetError
    |   +-- AmbiguousRuleSetError
    |   +-- InvalidBracketTableError
    |   +-- InvalidRuleSetError
    |   +-- RuleSetOverlapError
    |   +-- RuleSetImmutableError
    |
    +-- CalculationError
    |   +-- InvalidContributionBaseError
    |   +-- NegativeNetPayError
    |   +-- InvalidPeriodInputError
    |
    +-- ProfileError
    |   +-- StaleProfileReferenceError
    |
    +-- PayrollRunError
        +-- InvalidStateTransitionError
        +-- PayrollRunNotFoundError
        +-- DuplicatePayrollRunError
        +-- LedgerNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When Raised
------------|----------------------------|-----------------------------------------
Rule set    | NO_APPLICABLE_RULE_SET     | No window contains the as-of date
            | AMBIGUOUS_RULE_SET         | More than one window contains the date
            | INVALID_BRACKET_TABLE      | Bracket table fails structural checks
            | INVALID_RULE_SET           | Rate/cap/hours/window out of range
            | RULE_SET_OVERLAP           | New window overlaps a registered one
            | RULE_SET_IMMUTABLE         | Replacing a set used by a final run
------------|----------------------------|-----------------------------------------
Calculation | INVALID_CONTRIBUTION_BASE  | Negative contribution base
            | NEGATIVE_NET_PAY           | Deductions exceed gross earnings
            | INVALID_PERIOD_INPUT       | Negative hours/commissions/amounts
------------|----------------------------|-----------------------------------------
Profile     | STALE_PROFILE_REFERENCE    | Profile not valid on the run's as-of
------------|----------------------------|-----------------------------------------
Run         | INVALID_STATE_TRANSITION   | Action not allowed from current status
            | PAYROLL_RUN_NOT_FOUND      | Unknown run id
            | DUPLICATE_PAYROLL_RUN      | Live run already exists for key
            | LEDGER_NOT_FOUND           | Employee has no ledger in the run

===============================================================================
HANDLING PATTERNS
===============================================================================

Run-level computation is all-or-nothing: a CalculationError or ProfileError
raised for one employee aborts the run and leaves any stored run untouched.
Callers report the failing employee and halt approval until the data is
corrected. PayrollRunError subclasses are caller mistakes against the run
lifecycle and are safe to surface directly.
"""

from datetime import date
from decimal import Decimal


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Rule-set exceptions


class RuleSetError(PayrollKernelError):
    """Base exception for labor rule set errors."""

    code: str = "RULE_SET_ERROR"


class NoApplicableRuleSetError(RuleSetError):
    """No rule set is effective for the jurisdiction on the given date."""

    code: str = "NO_APPLICABLE_RULE_SET"

    def __init__(self, jurisdiction: str, as_of: date):
        self.jurisdiction = jurisdiction
        self.as_of = as_of.isoformat()
        super().__init__(
            f"No labor rule set for {jurisdiction} effective on {self.as_of}"
        )


class AmbiguousRuleSetError(RuleSetError):
    """
    More than one rule set is effective for the same date.

    Data-integrity violation: the write path rejects overlapping windows,
    but the read path must never pick one silently.
    """

    code: str = "AMBIGUOUS_RULE_SET"

    def __init__(self, jurisdiction: str, as_of: date, versions: list[str]):
        self.jurisdiction = jurisdiction
        self.as_of = as_of.isoformat()
        self.versions = versions
        super().__init__(
            f"Ambiguous labor rule sets for {jurisdiction} on {self.as_of}: "
            f"{', '.join(versions)}"
        )


class InvalidBracketTableError(RuleSetError):
    """Tax bracket table failed structural validation."""

    code: str = "INVALID_BRACKET_TABLE"

    def __init__(self, reason: str, bracket_index: int | None = None):
        self.reason = reason
        self.bracket_index = bracket_index
        where = f" (bracket {bracket_index})" if bracket_index is not None else ""
        super().__init__(f"Invalid tax bracket table{where}: {reason}")


class InvalidRuleSetError(RuleSetError):
    """A rule set parameter is out of its allowed range."""

    code: str = "INVALID_RULE_SET"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid rule set field '{field}': {reason}")


class RuleSetOverlapError(RuleSetError):
    """A new rule set window overlaps an existing one."""

    code: str = "RULE_SET_OVERLAP"

    def __init__(self, jurisdiction: str, new_version: str, existing_version: str):
        self.jurisdiction = jurisdiction
        self.new_version = new_version
        self.existing_version = existing_version
        super().__init__(
            f"Rule set {new_version} for {jurisdiction} overlaps "
            f"existing rule set {existing_version}"
        )


class RuleSetImmutableError(RuleSetError):
    """Rule set is referenced by a finalized run and cannot be replaced."""

    code: str = "RULE_SET_IMMUTABLE"

    def __init__(self, jurisdiction: str, version: str):
        self.jurisdiction = jurisdiction
        self.version = version
        super().__init__(
            f"Rule set {version} for {jurisdiction} is referenced by a "
            f"finalized payroll run; create a new version instead"
        )


# Calculation exceptions


class CalculationError(PayrollKernelError):
    """Base exception for per-employee calculation failures."""

    code: str = "CALCULATION_ERROR"


class InvalidContributionBaseError(CalculationError):
    """Contribution base would be negative."""

    code: str = "INVALID_CONTRIBUTION_BASE"

    def __init__(self, gross_earnings: Decimal, exempt_earnings: Decimal = Decimal("0")):
        self.gross_earnings = str(gross_earnings)
        self.exempt_earnings = str(exempt_earnings)
        super().__init__(
            f"Invalid contribution base: gross={gross_earnings}, "
            f"exempt={exempt_earnings}"
        )


class NegativeNetPayError(CalculationError):
    """Deductions exceed gross earnings for an employee."""

    code: str = "NEGATIVE_NET_PAY"

    def __init__(self, employee_id: str, gross: Decimal, deductions: Decimal):
        self.employee_id = employee_id
        self.gross = str(gross)
        self.deductions = str(deductions)
        super().__init__(
            f"Negative net pay for employee {employee_id}: "
            f"gross={gross}, deductions={deductions}"
        )


class InvalidPeriodInputError(CalculationError):
    """Reported hours, commissions or amounts for the period are invalid."""

    code: str = "INVALID_PERIOD_INPUT"

    def __init__(self, employee_id: str, field: str, value: str):
        self.employee_id = employee_id
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid period input for employee {employee_id}: {field}={value}"
        )


# Profile exceptions


class ProfileError(PayrollKernelError):
    """Base exception for compensation profile errors."""

    code: str = "PROFILE_ERROR"


class StaleProfileReferenceError(ProfileError):
    """Compensation profile is not valid as of the run's period."""

    code: str = "STALE_PROFILE_REFERENCE"

    def __init__(self, employee_id: str, profile_id: str | None, as_of: date):
        self.employee_id = employee_id
        self.profile_id = profile_id
        self.as_of = as_of.isoformat()
        super().__init__(
            f"No valid compensation profile for employee {employee_id} "
            f"on {self.as_of} (profile={profile_id})"
        )


# Payroll run exceptions


class PayrollRunError(PayrollKernelError):
    """Base exception for payroll run lifecycle errors."""

    code: str = "PAYROLL_RUN_ERROR"


class InvalidStateTransitionError(PayrollRunError):
    """Requested action is not allowed from the run's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, run_id: str, current_status: str, action: str, reason: str = ""):
        self.run_id = run_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Cannot {action} payroll run {run_id} in status "
            f"'{current_status}'{detail}"
        )


class PayrollRunNotFoundError(PayrollRunError):
    """Payroll run with given ID was not found."""

    code: str = "PAYROLL_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Payroll run not found: {run_id}")


class DuplicatePayrollRunError(PayrollRunError):
    """A live (non-voided) run already exists for the period and type."""

    code: str = "DUPLICATE_PAYROLL_RUN"

    def __init__(self, period_key: str, run_type: str, existing_run_id: str):
        self.period_key = period_key
        self.run_type = run_type
        self.existing_run_id = existing_run_id
        super().__init__(
            f"Payroll run {existing_run_id} already exists for "
            f"{run_type} {period_key}"
        )


class LedgerNotFoundError(PayrollRunError):
    """Employee has no ledger in the given run."""

    code: str = "LEDGER_NOT_FOUND"

    def __init__(self, run_id: str, employee_id: str):
        self.run_id = run_id
        self.employee_id = employee_id
        super().__init__(
            f"No ledger for employee {employee_id} in payroll run {run_id}"
        )
