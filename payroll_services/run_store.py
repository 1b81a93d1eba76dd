"""
Payroll run store -- in-memory persistence boundary for payroll runs.

Holds every run version by id plus the adjustments appended to each run
after computation.  Persistence mechanics are an outer concern; this store
implements the minimal contract the service needs so that a database-backed
store can replace it.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from uuid import UUID

from payroll_kernel.domain.ledger import ManualAdjustment
from payroll_kernel.domain.run import PayrollRun, RunStatus, RunType
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.run_store")


class InMemoryPayrollRunStore:
    """Thread-safe dictionary store for PayrollRun snapshots."""

    def __init__(self) -> None:
        self._runs: dict[UUID, PayrollRun] = {}
        self._appended: dict[UUID, list[ManualAdjustment]] = defaultdict(list)
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Held by the service across check-then-write sequences."""
        return self._lock

    def save(self, run: PayrollRun) -> None:
        with self._lock:
            self._runs[run.run_id] = run
        logger.debug("payroll_run_saved", extra={
            "run_id": str(run.run_id),
            "status": run.status.value,
            "fingerprint": run.fingerprint,
        })

    def get(self, run_id: UUID) -> PayrollRun | None:
        with self._lock:
            return self._runs.get(run_id)

    def find_live(self, period_key: str, run_type: RunType) -> PayrollRun | None:
        """The non-voided run for (period, type), if any."""
        with self._lock:
            for run in self._runs.values():
                if run.is_live and run.period_key == period_key and run.run_type == run_type:
                    return run
        return None

    def list(
        self,
        status: RunStatus | None = None,
        period_key: str | None = None,
    ) -> list[PayrollRun]:
        """Runs ordered by creation time, optionally filtered."""
        with self._lock:
            runs = list(self._runs.values())
        if status is not None:
            runs = [r for r in runs if r.status == status]
        if period_key is not None:
            runs = [r for r in runs if r.period_key == period_key]
        return sorted(runs, key=lambda r: (r.created_at, str(r.run_id)))

    def append_adjustment(self, run_id: UUID, adjustment: ManualAdjustment) -> None:
        with self._lock:
            self._appended[run_id].append(adjustment)

    def appended_adjustments(self, run_id: UUID) -> list[ManualAdjustment]:
        with self._lock:
            return list(self._appended.get(run_id, []))
