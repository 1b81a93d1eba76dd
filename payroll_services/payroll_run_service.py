"""
Payroll Run Service (``payroll_services.payroll_run_service``).

Responsibility
--------------
Orchestrates payroll runs: resolves the governing rule set, loads the
selected employees' profiles and period inputs, computes every ledger in
parallel through ``ConceptLineBuilder``, aggregates totals through
``PayrollRunAggregator`` and drives the run through its lifecycle
(``payroll_services.workflows.PAYROLL_RUN_WORKFLOW``).

Architecture position
---------------------
**Services layer** -- thin orchestration.  Pure computation lives in
``payroll_engines``; rules, employees, adjustments and run persistence are
injected collaborators; time comes from an injected ``Clock``.

Invariants enforced
-------------------
* One as-of date per run: rule-set resolution and profile lookups all use
  the run's as-of date (default: the period end date).
* All-or-nothing: if any employee's ledger fails, nothing is stored and the
  first failure in employee order is raised.
* At most one live (non-voided) run per (period, run type).
* Recomputing a draft with unchanged inputs reproduces identical ledgers,
  totals and fingerprint under the same run id.  An adjustment appended
  to a draft is one of those inputs, so appending and recomputing agree.
* Statutory-bonus runs take the payment base and the year-to-date amount
  from approved and paid runs unless the period inputs supply them.
* Every state change and adjustment appends an ``AuditEntry``.

Failure modes
-------------
* ``NoApplicableRuleSetError`` / ``AmbiguousRuleSetError`` -- rule resolution.
* ``StaleProfileReferenceError`` -- a selected employee has no valid profile.
* ``NegativeNetPayError`` / ``InvalidPeriodInputError`` /
  ``InvalidContributionBaseError`` -- calculation failures (run not stored).
* ``DuplicatePayrollRunError`` -- a live approved/paid run exists.
* ``InvalidStateTransitionError`` -- action not allowed in current status,
  guard not satisfied, or void without a reason.
* ``PayrollRunNotFoundError`` / ``LedgerNotFoundError`` -- unknown ids.

Usage::

    service = PayrollRunService(
        rules=bootstrap_rule_sets(),
        employees=employee_source,
        clock=DeterministicClock(),
    )
    run = service.compute_run(PeriodSpec(2025, 1), jurisdiction="GT")
    run = service.approve_run(run.run_id, actor="payroll-admin")
"""

from __future__ import annotations

import contextvars
import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from payroll_config.settings import EngineSettings
from payroll_engines.aggregation import AggregationResult, PayrollRunAggregator
from payroll_engines.concept_lines import ConceptLineBuilder
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.compensation import EmployeeCompensationProfile, PeriodInputs
from payroll_kernel.domain.labor_rules import LaborRuleSet
from payroll_kernel.domain.ledger import EmployeeLedger, ManualAdjustment, PayLedgerLine
from payroll_kernel.domain.run import (
    AuditEntry,
    EmployeeSelection,
    EmployerContributionSummary,
    PayrollRun,
    PeriodSpec,
    RunStatus,
    RunTotals,
    RunType,
)
from payroll_kernel.domain.values import ZERO
from payroll_kernel.domain.workflow import Transition
from payroll_kernel.exceptions import (
    DuplicatePayrollRunError,
    InvalidStateTransitionError,
    LedgerNotFoundError,
    NegativeNetPayError,
    PayrollKernelError,
    PayrollRunNotFoundError,
    StaleProfileReferenceError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.utils.hashing import hash_payroll_run
from payroll_services.collaborators import AdjustmentSource, EmployeeSource, RuleRepository
from payroll_services.run_store import InMemoryPayrollRunStore
from payroll_services.workflows import (
    ACTION_APPEND_ADJUSTMENT,
    ACTION_APPROVE,
    ACTION_MARK_PAID,
    ACTION_RECOMPUTE,
    ACTION_VOID,
    PAYROLL_RUN_WORKFLOW,
)

logger = get_logger("services.payroll_run")

SYSTEM_ACTOR = "system"

# Runs whose figures feed statutory-bonus bases and year-to-date amounts.
COMMITTED_STATUSES = (RunStatus.APPROVED, RunStatus.PAID)


def _one_year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:  # 29 February
        return day.replace(year=day.year - 1, day=28)


@dataclass(frozen=True)
class _Computation:
    """Everything calculated for one run, before lifecycle metadata."""

    rule_set: LaborRuleSet
    ledgers: tuple[EmployeeLedger, ...]
    aggregation: AggregationResult
    fingerprint: str


class PayrollRunService:
    """
    Sole public entry point for payroll run operations.

    Contract:
        Collaborators are injected; the service holds no global state.
        Calculations are synchronous; ledgers of one run are computed in
        parallel with a thread pool sized by ``EngineSettings.max_workers``.
    """

    def __init__(
        self,
        rules: RuleRepository,
        employees: EmployeeSource,
        adjustments: AdjustmentSource | None = None,
        store: InMemoryPayrollRunStore | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        builder: ConceptLineBuilder | None = None,
        aggregator: PayrollRunAggregator | None = None,
    ) -> None:
        self._rules = rules
        self._employees = employees
        self._adjustments = adjustments
        self._store = store or InMemoryPayrollRunStore()
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._builder = builder or ConceptLineBuilder()
        self._aggregator = aggregator or PayrollRunAggregator()

    # =========================================================================
    # Computation
    # =========================================================================

    def compute_run(
        self,
        period: PeriodSpec,
        jurisdiction: str | None = None,
        selection: EmployeeSelection | None = None,
        run_type: RunType = RunType.ORDINARY,
        as_of: date | None = None,
        actor: str | None = None,
    ) -> PayrollRun:
        """
        Compute and store a draft run for (period, run type).

        An existing draft for the same (period, run type) is recomputed in
        place under its run id with the given parameters, jurisdiction
        included.

        Raises:
            DuplicatePayrollRunError: A live approved or paid run exists.
        """
        jurisdiction = (jurisdiction or self._settings.default_jurisdiction).strip().upper()
        selection = selection or EmployeeSelection.everyone()
        as_of = as_of or period.end_date
        actor = actor or SYSTEM_ACTOR

        with self._store.lock:
            existing = self._store.find_live(period.key, run_type)
            if existing is not None and existing.status != RunStatus.DRAFT:
                logger.warning("payroll_run_duplicate", extra={
                    "period": period.key,
                    "run_type": run_type.value,
                    "existing_run_id": str(existing.run_id),
                    "existing_status": existing.status.value,
                })
                raise DuplicatePayrollRunError(period.key, run_type.value, str(existing.run_id))

            run_id = existing.run_id if existing is not None else uuid4()
            with LogContext.bind(run_id=str(run_id), actor_id=actor):
                t0 = time.monotonic()
                logger.info("payroll_run_compute_started", extra={
                    "period": period.key,
                    "run_type": run_type.value,
                    "jurisdiction": jurisdiction,
                    "as_of": as_of.isoformat(),
                    "recompute_existing_draft": existing is not None,
                    "previous_jurisdiction": existing.jurisdiction if existing else None,
                })

                appended = self._store.appended_adjustments(run_id) if existing else []
                computation = self._compute(
                    period, jurisdiction, selection, run_type, as_of, appended
                )
                now = self._clock.now()
                if existing is None:
                    run = self._new_run(
                        run_id, period, jurisdiction, selection, run_type, as_of,
                        computation, actor,
                    )
                    run = replace(run, audit_trail=(
                        AuditEntry(actor=actor, at=now, action="create",
                                   field="status", new_value=RunStatus.DRAFT.value),
                    ))
                else:
                    run = self._recomputed(
                        existing, computation, actor, now,
                        jurisdiction=jurisdiction, selection=selection, as_of=as_of,
                    )
                self._store.save(run)

                logger.info("payroll_run_compute_completed", extra={
                    "period": period.key,
                    "run_type": run_type.value,
                    "employee_count": run.totals.employee_count,
                    "gross_earnings": str(run.totals.gross_earnings),
                    "net_pay": str(run.totals.net_pay),
                    "rule_set_version": run.rule_set_version,
                    "fingerprint": run.fingerprint,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                })
                return run

    def recompute_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """
        Recompute a draft run with its stored parameters.

        Raises:
            InvalidStateTransitionError: The run is not a draft.
        """
        actor = actor or SYSTEM_ACTOR
        with self._store.lock, LogContext.bind(run_id=str(run_id), actor_id=actor):
            run = self._require_run(run_id)
            self._check_transition(run, ACTION_RECOMPUTE)
            computation = self._compute(
                run.period, run.jurisdiction, run.selection, run.run_type, run.as_of,
                self._store.appended_adjustments(run_id),
            )
            updated = self._recomputed(run, computation, actor, self._clock.now())
            self._store.save(updated)
            logger.info("payroll_run_recomputed", extra={
                "fingerprint_before": run.fingerprint,
                "fingerprint_after": updated.fingerprint,
                "unchanged": run.fingerprint == updated.fingerprint,
            })
            return updated

    def simulate_run(
        self,
        period: PeriodSpec,
        jurisdiction: str | None = None,
        selection: EmployeeSelection | None = None,
        run_type: RunType = RunType.ORDINARY,
        as_of: date | None = None,
    ) -> PayrollRun:
        """Compute a preview run without storing it or checking uniqueness."""
        jurisdiction = (jurisdiction or self._settings.default_jurisdiction).strip().upper()
        selection = selection or EmployeeSelection.everyone()
        as_of = as_of or period.end_date
        run_id = uuid4()
        with LogContext.bind(run_id=str(run_id)):
            computation = self._compute(period, jurisdiction, selection, run_type, as_of, [])
            run = self._new_run(
                run_id, period, jurisdiction, selection, run_type, as_of,
                computation, SYSTEM_ACTOR,
            )
            logger.info("payroll_run_simulated", extra={
                "period": period.key,
                "run_type": run_type.value,
                "employee_count": run.totals.employee_count,
                "net_pay": str(run.totals.net_pay),
            })
            return run

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def approve_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """
        Approve a draft run.

        Raises:
            InvalidStateTransitionError: Not a draft, or the run does not
                reconcile (missing ledgers, negative net, totals mismatch).
        """
        actor = actor or SYSTEM_ACTOR
        with self._store.lock, LogContext.bind(run_id=str(run_id), actor_id=actor):
            run = self._require_run(run_id)
            transition = self._check_transition(run, ACTION_APPROVE)
            self._check_reconciled(run)

            now = self._clock.now()
            approved = replace(
                run,
                status=RunStatus.APPROVED,
                approved_at=now,
                audit_trail=run.audit_trail + (
                    self._status_entry(actor, now, transition.action, run.status, RunStatus.APPROVED),
                ),
            )
            self._rules.mark_referenced(run.jurisdiction, run.rule_set_version)
            self._store.save(approved)
            logger.info("payroll_run_approved", extra={
                "period": run.period_key,
                "net_pay": str(run.totals.net_pay),
                "rule_set_version": run.rule_set_version,
            })
            return approved

    def mark_paid(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Record payment of an approved run (status and timestamp only)."""
        actor = actor or SYSTEM_ACTOR
        with self._store.lock, LogContext.bind(run_id=str(run_id), actor_id=actor):
            run = self._require_run(run_id)
            transition = self._check_transition(run, ACTION_MARK_PAID)
            now = self._clock.now()
            paid = replace(
                run,
                status=RunStatus.PAID,
                paid_at=now,
                audit_trail=run.audit_trail + (
                    self._status_entry(actor, now, transition.action, run.status, RunStatus.PAID),
                ),
            )
            self._store.save(paid)
            logger.info("payroll_run_paid", extra={"period": run.period_key})
            return paid

    def void_run(self, run_id: UUID, reason: str, actor: str | None = None) -> PayrollRun:
        """
        Void a draft or approved run.  Voided runs are terminal.

        Raises:
            InvalidStateTransitionError: Paid/voided run, or empty reason.
        """
        actor = actor or SYSTEM_ACTOR
        with self._store.lock, LogContext.bind(run_id=str(run_id), actor_id=actor):
            run = self._require_run(run_id)
            transition = self._check_transition(run, ACTION_VOID, reason=reason)
            now = self._clock.now()
            voided = replace(
                run,
                status=RunStatus.VOIDED,
                voided_at=now,
                void_reason=reason.strip(),
                audit_trail=run.audit_trail + (
                    self._status_entry(
                        actor, now, transition.action, run.status, RunStatus.VOIDED,
                        note=reason.strip(),
                    ),
                ),
            )
            self._store.save(voided)
            logger.info("payroll_run_voided", extra={
                "period": run.period_key,
                "previous_status": run.status.value,
                "reason": reason.strip(),
            })
            return voided

    def append_adjustment(
        self,
        run_id: UUID,
        employee_id: str,
        adjustment: ManualAdjustment,
        actor: str,
    ) -> PayrollRun:
        """
        Append a manual line to one employee's ledger (draft or approved run).

        On a draft the whole run is rebuilt with the adjustment among its
        stored inputs, so income tax and contributions see a taxable or
        contributory earning and the result equals a later
        ``recompute_run``.  On an approved run the line is appended as is;
        computed lines are not touched.  Either way the ledger gets a new
        version, totals and fingerprint follow, and an audit entry records
        old and new amounts of the concept.

        Raises:
            LedgerNotFoundError: The employee has no ledger in the run.
            NegativeNetPayError: The adjustment would make net pay negative.
        """
        if adjustment.employee_id != employee_id:
            raise ValueError(
                f"Adjustment is for {adjustment.employee_id}, not {employee_id}"
            )
        with self._store.lock, LogContext.bind(
            run_id=str(run_id), actor_id=actor, employee_id=employee_id
        ):
            run = self._require_run(run_id)
            self._check_transition(run, ACTION_APPEND_ADJUSTMENT)
            ledger = run.ledger_for(employee_id)
            if ledger is None:
                raise LedgerNotFoundError(str(run_id), employee_id)

            now = self._clock.now()
            if run.status == RunStatus.DRAFT:
                changes = self._rebuilt_with(run, adjustment, now)
            else:
                changes = self._appended_line(run, ledger, adjustment)
            updated_ledger = next(
                (l for l in changes["ledgers"] if l.employee_id == employee_id), None
            )
            if updated_ledger is None:
                raise LedgerNotFoundError(str(run_id), employee_id)

            entry = AuditEntry(
                actor=actor,
                at=now,
                action=ACTION_APPEND_ADJUSTMENT,
                field=adjustment.concept_code,
                old_value=str(ledger.amount_for(adjustment.concept_code)),
                new_value=str(updated_ledger.amount_for(adjustment.concept_code)),
                employee_id=employee_id,
                note=adjustment.reason or None,
            )
            updated = replace(run, audit_trail=run.audit_trail + (entry,), **changes)
            self._store.append_adjustment(run_id, adjustment)
            self._store.save(updated)
            logger.info("payroll_adjustment_appended", extra={
                "concept_code": adjustment.concept_code,
                "kind": adjustment.kind.value,
                "amount": str(adjustment.amount),
                "run_status": run.status.value,
                "ledger_version": updated_ledger.version,
                "net_pay": str(updated_ledger.net_pay),
            })
            return updated

    def _rebuilt_with(
        self, run: PayrollRun, adjustment: ManualAdjustment, now: datetime
    ) -> dict[str, object]:
        appended = self._store.appended_adjustments(run.run_id) + [adjustment]
        try:
            computation = self._compute(
                run.period, run.jurisdiction, run.selection, run.run_type, run.as_of, appended
            )
        except NegativeNetPayError as exc:
            logger.error("adjustment_negative_net_pay", extra={
                "concept_code": adjustment.concept_code,
                "amount": str(adjustment.amount),
                "gross_earnings": str(exc.gross),
                "total_deductions": str(exc.deductions),
            })
            raise
        return {
            "ledgers": computation.ledgers,
            "totals": computation.aggregation.totals,
            "employer_summary": computation.aggregation.employer_summary,
            "rule_set_version": computation.rule_set.version,
            "rule_set_checksum": computation.rule_set.checksum,
            "fingerprint": computation.fingerprint,
            "computed_at": now,
        }

    def _appended_line(
        self, run: PayrollRun, ledger: EmployeeLedger, adjustment: ManualAdjustment
    ) -> dict[str, object]:
        rule_set = self._rules.resolve(run.jurisdiction, run.as_of)
        line = PayLedgerLine(
            concept_code=adjustment.concept_code,
            label=adjustment.label,
            kind=adjustment.kind,
            amount=rule_set.rounding.apply(adjustment.amount),
            is_manual=True,
            note=adjustment.reason or None,
            taxable=adjustment.taxable,
            contributory=adjustment.contributory,
        )
        updated_ledger = ledger.with_line(line)
        if updated_ledger.net_pay < ZERO:
            logger.error("adjustment_negative_net_pay", extra={
                "concept_code": adjustment.concept_code,
                "amount": str(line.amount),
                "gross_earnings": str(updated_ledger.gross_earnings),
                "total_deductions": str(updated_ledger.total_deductions),
            })
            raise NegativeNetPayError(
                ledger.employee_id, updated_ledger.gross_earnings, updated_ledger.total_deductions
            )

        ledgers = tuple(
            updated_ledger if l.employee_id == ledger.employee_id else l for l in run.ledgers
        )
        aggregation = self._aggregator.aggregate(ledgers, rule_set)
        return {
            "ledgers": ledgers,
            "totals": aggregation.totals,
            "employer_summary": aggregation.employer_summary,
            "fingerprint": self._fingerprint(ledgers, aggregation, run.rule_set_checksum),
        }

    # =========================================================================
    # Projections
    # =========================================================================

    def get_run(self, run_id: UUID) -> PayrollRun:
        return self._require_run(run_id)

    def get_ledger(self, run_id: UUID, employee_id: str) -> EmployeeLedger:
        ledger = self._require_run(run_id).ledger_for(employee_id)
        if ledger is None:
            raise LedgerNotFoundError(str(run_id), employee_id)
        return ledger

    def get_run_totals(self, run_id: UUID) -> RunTotals:
        return self._require_run(run_id).totals

    def get_employer_summary(self, run_id: UUID) -> EmployerContributionSummary:
        return self._require_run(run_id).employer_summary

    def list_runs(
        self,
        status: RunStatus | None = None,
        period: PeriodSpec | None = None,
    ) -> list[PayrollRun]:
        return self._store.list(status=status, period_key=period.key if period else None)

    # =========================================================================
    # Internals
    # =========================================================================

    def _compute(
        self,
        period: PeriodSpec,
        jurisdiction: str,
        selection: EmployeeSelection,
        run_type: RunType,
        as_of: date,
        appended: Sequence[ManualAdjustment],
    ) -> _Computation:
        rule_set = self._rules.resolve(jurisdiction, as_of)
        profiles = self._select_profiles(selection, as_of)

        adjustments: dict[str, list[ManualAdjustment]] = defaultdict(list)
        pending = list(self._adjustments.adjustments_for(period, run_type)) if self._adjustments else []
        selected_ids = {p.employee_id for p in profiles}
        for adjustment in pending + list(appended):
            if adjustment.employee_id in selected_ids:
                adjustments[adjustment.employee_id].append(adjustment)

        ledgers = self._build_ledgers(profiles, rule_set, period, run_type, as_of, adjustments)
        # Each appended adjustment is one ledger version, however it was applied.
        versions = Counter(a.employee_id for a in appended)
        ledgers = tuple(
            replace(l, version=1 + versions[l.employee_id]) if versions[l.employee_id] else l
            for l in ledgers
        )
        aggregation = self._aggregator.aggregate(ledgers, rule_set)
        return _Computation(
            rule_set=rule_set,
            ledgers=ledgers,
            aggregation=aggregation,
            fingerprint=self._fingerprint(ledgers, aggregation, rule_set.checksum),
        )

    def _select_profiles(
        self, selection: EmployeeSelection, as_of: date
    ) -> list[EmployeeCompensationProfile]:
        profiles = sorted(self._employees.profiles(selection, as_of), key=lambda p: p.employee_id)

        seen: set[str] = set()
        for profile in profiles:
            if profile.employee_id in seen:
                raise StaleProfileReferenceError(profile.employee_id, profile.profile_id, as_of)
            seen.add(profile.employee_id)
            if not profile.is_valid_on(as_of):
                raise StaleProfileReferenceError(profile.employee_id, profile.profile_id, as_of)

        for employee_id in selection.employee_ids:
            if employee_id not in seen:
                logger.error("employee_profile_missing", extra={
                    "employee_id": employee_id,
                    "as_of": as_of.isoformat(),
                })
                raise StaleProfileReferenceError(employee_id, None, as_of)
        return profiles

    def _build_ledgers(
        self,
        profiles: list[EmployeeCompensationProfile],
        rule_set: LaborRuleSet,
        period: PeriodSpec,
        run_type: RunType,
        as_of: date,
        adjustments: dict[str, list[ManualAdjustment]],
    ) -> tuple[EmployeeLedger, ...]:
        jobs = [
            (
                profile,
                self._inputs_for(profile, period, run_type, rule_set, as_of),
                adjustments.get(profile.employee_id, []),
            )
            for profile in profiles
        ]
        if not jobs:
            return ()

        workers = min(self._settings.max_workers, len(jobs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="payroll-ledger") as executor:
            futures = [
                executor.submit(
                    contextvars.copy_context().run,
                    self._build_one, profile, inputs, rule_set, period, run_type, adjs,
                )
                for profile, inputs, adjs in jobs
            ]
            ledgers: list[EmployeeLedger] = []
            try:
                for future in futures:
                    ledgers.append(future.result())
            except PayrollKernelError:
                executor.shutdown(wait=True, cancel_futures=True)
                raise
        return tuple(ledgers)

    def _inputs_for(
        self,
        profile: EmployeeCompensationProfile,
        period: PeriodSpec,
        run_type: RunType,
        rule_set: LaborRuleSet,
        as_of: date,
    ) -> PeriodInputs:
        inputs = self._employees.period_inputs(profile.employee_id, period, run_type)
        if inputs.employee_id != profile.employee_id:
            raise ValueError(
                f"Period inputs for {inputs.employee_id} returned for {profile.employee_id}"
            )
        if run_type != RunType.STATUTORY_BONUS:
            return inputs
        if inputs.statutory_bonus_base is not None and inputs.statutory_bonus_ytd is not None:
            return inputs

        average, year_to_date = self._statutory_bonus_history(profile.employee_id, as_of)
        base = inputs.statutory_bonus_base
        if base is None and average is not None:
            base = rule_set.rounding.apply(average)
        ytd = inputs.statutory_bonus_ytd
        if ytd is None:
            ytd = year_to_date
        logger.debug("statutory_bonus_history_applied", extra={
            "employee_id": profile.employee_id,
            "base": str(base) if base is not None else None,
            "base_from_history": inputs.statutory_bonus_base is None and average is not None,
            "year_to_date": str(ytd),
        })
        return replace(inputs, statutory_bonus_base=base, statutory_bonus_ytd=ytd)

    def _statutory_bonus_history(
        self, employee_id: str, as_of: date
    ) -> tuple[Decimal | None, Decimal]:
        """
        Average monthly ordinary gross and statutory-bonus payments so far.

        Only approved and paid runs count.  The average covers ordinary
        runs with an as-of date in the twelve months ending at ``as_of``,
        summed per calendar month (two half-month runs make one month); it
        is None when there are none.  The year-to-date amount sums
        statutory-bonus runs of the same calendar year up to ``as_of``.
        """
        window_start = _one_year_before(as_of)
        monthly: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        year_to_date = ZERO
        for run in self._store.list():
            if run.status not in COMMITTED_STATUSES:
                continue
            ledger = run.ledger_for(employee_id)
            if ledger is None:
                continue
            if run.run_type == RunType.ORDINARY and window_start < run.as_of <= as_of:
                monthly[(run.period.year, run.period.month)] += ledger.gross_earnings
            elif (
                run.run_type == RunType.STATUTORY_BONUS
                and run.as_of.year == as_of.year
                and run.as_of <= as_of
            ):
                year_to_date += ledger.gross_earnings
        if not monthly:
            return None, year_to_date
        return sum(monthly.values(), ZERO) / len(monthly), year_to_date

    def _build_one(
        self,
        profile: EmployeeCompensationProfile,
        inputs: PeriodInputs,
        rule_set: LaborRuleSet,
        period: PeriodSpec,
        run_type: RunType,
        adjustments: list[ManualAdjustment],
    ) -> EmployeeLedger:
        with LogContext.bind(employee_id=profile.employee_id):
            try:
                return self._builder.build(
                    profile, inputs, rule_set, period, run_type, tuple(adjustments)
                )
            except PayrollKernelError as exc:
                logger.warning("employee_ledger_failed", extra={
                    "error_code": exc.code,
                    "error": str(exc),
                })
                raise

    def _fingerprint(
        self,
        ledgers: Sequence[EmployeeLedger],
        aggregation: AggregationResult,
        rule_set_checksum: str,
    ) -> str:
        totals = aggregation.totals.to_dict()
        totals["employer"] = aggregation.employer_summary.to_dict()
        totals["rule_set_checksum"] = rule_set_checksum
        return hash_payroll_run([l.to_dict() for l in ledgers], totals)

    def _new_run(
        self,
        run_id: UUID,
        period: PeriodSpec,
        jurisdiction: str,
        selection: EmployeeSelection,
        run_type: RunType,
        as_of: date,
        computation: _Computation,
        actor: str,
    ) -> PayrollRun:
        now = self._clock.now()
        return PayrollRun(
            run_id=run_id,
            period=period,
            run_type=run_type,
            jurisdiction=jurisdiction,
            as_of=as_of,
            selection=selection,
            ledgers=computation.ledgers,
            totals=computation.aggregation.totals,
            employer_summary=computation.aggregation.employer_summary,
            rule_set_version=computation.rule_set.version,
            rule_set_checksum=computation.rule_set.checksum,
            fingerprint=computation.fingerprint,
            created_at=now,
            computed_at=now,
            created_by=actor,
        )

    def _recomputed(
        self,
        run: PayrollRun,
        computation: _Computation,
        actor: str,
        now: datetime,
        jurisdiction: str | None = None,
        selection: EmployeeSelection | None = None,
        as_of: date | None = None,
    ) -> PayrollRun:
        entry = AuditEntry(
            actor=actor,
            at=now,
            action=ACTION_RECOMPUTE,
            field="fingerprint",
            old_value=run.fingerprint,
            new_value=computation.fingerprint,
        )
        return replace(
            run,
            jurisdiction=jurisdiction or run.jurisdiction,
            selection=selection or run.selection,
            as_of=as_of or run.as_of,
            ledgers=computation.ledgers,
            totals=computation.aggregation.totals,
            employer_summary=computation.aggregation.employer_summary,
            rule_set_version=computation.rule_set.version,
            rule_set_checksum=computation.rule_set.checksum,
            fingerprint=computation.fingerprint,
            computed_at=now,
            audit_trail=run.audit_trail + (entry,),
        )

    def _require_run(self, run_id: UUID) -> PayrollRun:
        run = self._store.get(run_id)
        if run is None:
            raise PayrollRunNotFoundError(str(run_id))
        return run

    def _check_transition(
        self, run: PayrollRun, action: str, reason: str | None = None
    ) -> Transition:
        transition = PAYROLL_RUN_WORKFLOW.find_transition(run.status.value, action)
        if transition is None:
            logger.warning("payroll_run_transition_rejected", extra={
                "status": run.status.value,
                "action": action,
                "allowed_actions": list(PAYROLL_RUN_WORKFLOW.actions_from(run.status.value)),
            })
            raise InvalidStateTransitionError(str(run.run_id), run.status.value, action)
        if transition.requires_reason and not (reason or "").strip():
            raise InvalidStateTransitionError(
                str(run.run_id), run.status.value, action, "a non-empty reason is required"
            )
        return transition

    def _check_reconciled(self, run: PayrollRun) -> None:
        expected = {p.employee_id for p in self._employees.profiles(run.selection, run.as_of)}
        expected.update(run.selection.employee_ids)
        missing = sorted(expected - set(run.employee_ids))
        if missing:
            raise InvalidStateTransitionError(
                str(run.run_id), run.status.value, ACTION_APPROVE,
                f"missing ledgers for {', '.join(missing)}; recompute the run",
            )
        negative = [l.employee_id for l in run.ledgers if l.net_pay < ZERO]
        if negative:
            raise InvalidStateTransitionError(
                str(run.run_id), run.status.value, ACTION_APPROVE,
                f"negative net pay for {', '.join(negative)}",
            )
        if not self._aggregator.verify(run.ledgers, run.totals, run.employer_summary):
            raise InvalidStateTransitionError(
                str(run.run_id), run.status.value, ACTION_APPROVE,
                "totals do not reconcile with ledgers",
            )

    @staticmethod
    def _status_entry(
        actor: str,
        at: datetime,
        action: str,
        old: RunStatus,
        new: RunStatus,
        note: str | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            actor=actor,
            at=at,
            action=action,
            field="status",
            old_value=old.value,
            new_value=new.value,
            note=note,
        )
