"""
Collaborators -- Outer-layer sources the payroll run service depends on.

The service never reads persistence, files or clocks directly.  It receives:

* a rule repository (jurisdiction + as-of date -> LaborRuleSet),
* an employee source (selection + as-of date -> compensation profiles, and
  per-period inputs),
* an adjustment source (period + run type -> manual adjustments).

In-memory implementations are provided for bootstrap and tests; production
deployments supply their own implementations of the same protocols.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import date
from typing import Protocol, runtime_checkable

from payroll_kernel.domain.compensation import EmployeeCompensationProfile, PeriodInputs
from payroll_kernel.domain.labor_rules import LaborRuleSet
from payroll_kernel.domain.ledger import ManualAdjustment
from payroll_kernel.domain.run import EmployeeSelection, PeriodSpec, RunType
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")


@runtime_checkable
class RuleRepository(Protocol):
    """Resolves the labor rules governing a jurisdiction on a date.

    Implementations: ``payroll_config.RuleSetRepository``.
    """

    def resolve(self, jurisdiction: str, as_of: date) -> LaborRuleSet:
        """Return the unique rule set effective on as_of.

        Raises:
            NoApplicableRuleSetError: When no version covers as_of.
            AmbiguousRuleSetError: When more than one version covers as_of.
        """
        ...

    def mark_referenced(self, jurisdiction: str, version: str) -> None:
        """Pin a version once an approved run depends on it."""
        ...


@runtime_checkable
class EmployeeSource(Protocol):
    """Supplies compensation profiles and period inputs."""

    def profiles(
        self, selection: EmployeeSelection, as_of: date
    ) -> list[EmployeeCompensationProfile]:
        """Profiles valid on as_of for the selected employees."""
        ...

    def period_inputs(
        self, employee_id: str, period: PeriodSpec, run_type: RunType
    ) -> PeriodInputs:
        """What happened for the employee in the period (empty if nothing)."""
        ...


@runtime_checkable
class AdjustmentSource(Protocol):
    """Supplies manual adjustments recorded before a run is computed."""

    def adjustments_for(
        self, period: PeriodSpec, run_type: RunType
    ) -> list[ManualAdjustment]:
        ...


class InMemoryEmployeeSource:
    """EmployeeSource backed by dictionaries.

    Keeps every profile version of an employee; at most one may be valid on
    any date.
    """

    def __init__(self) -> None:
        self._profiles: dict[str, list[EmployeeCompensationProfile]] = defaultdict(list)
        self._inputs: dict[tuple[str, str, RunType], PeriodInputs] = {}
        self._lock = threading.Lock()

    def add_profile(self, profile: EmployeeCompensationProfile) -> None:
        """
        Register a profile version.

        Raises:
            ValueError: If its window overlaps another version of the same
                employee.
        """
        with self._lock:
            for other in self._profiles[profile.employee_id]:
                other_end = other.valid_to or date.max
                new_end = profile.valid_to or date.max
                if profile.valid_from < other_end and other.valid_from < new_end:
                    raise ValueError(
                        f"Profile {profile.profile_id} overlaps {other.profile_id} "
                        f"for employee {profile.employee_id}"
                    )
            self._profiles[profile.employee_id].append(profile)

    def set_inputs(
        self,
        period: PeriodSpec,
        inputs: PeriodInputs,
        run_type: RunType = RunType.ORDINARY,
    ) -> None:
        with self._lock:
            self._inputs[(inputs.employee_id, period.key, run_type)] = inputs

    def profile_history(self, employee_id: str) -> list[EmployeeCompensationProfile]:
        with self._lock:
            return sorted(self._profiles.get(employee_id, []), key=lambda p: p.valid_from)

    def profiles(
        self, selection: EmployeeSelection, as_of: date
    ) -> list[EmployeeCompensationProfile]:
        with self._lock:
            result = []
            for employee_id in sorted(self._profiles):
                for profile in self._profiles[employee_id]:
                    if profile.is_valid_on(as_of) and selection.includes(
                        employee_id, profile.department_id
                    ):
                        result.append(profile)
            return result

    def period_inputs(
        self, employee_id: str, period: PeriodSpec, run_type: RunType
    ) -> PeriodInputs:
        with self._lock:
            inputs = self._inputs.get((employee_id, period.key, run_type))
        return inputs or PeriodInputs.empty(employee_id)


class InMemoryAdjustmentSource:
    """AdjustmentSource backed by a dictionary keyed by (period, run type)."""

    def __init__(self) -> None:
        self._adjustments: dict[tuple[str, RunType], list[ManualAdjustment]] = defaultdict(list)
        self._lock = threading.Lock()

    def add(
        self,
        period: PeriodSpec,
        adjustment: ManualAdjustment,
        run_type: RunType = RunType.ORDINARY,
    ) -> None:
        with self._lock:
            self._adjustments[(period.key, run_type)].append(adjustment)

    def adjustments_for(
        self, period: PeriodSpec, run_type: RunType
    ) -> list[ManualAdjustment]:
        with self._lock:
            return list(self._adjustments.get((period.key, run_type), []))
