"""
Rule-Set Repository (``payroll_config.repository``).

Responsibility
--------------
Holds every known LaborRuleSet version per jurisdiction and answers
"which rules govern jurisdiction J on date D".  Enforces the versioning
discipline on write:

* windows of one jurisdiction never overlap (``RuleSetOverlapError``);
* a version referenced by an approved or paid run can never be replaced
  (``RuleSetImmutableError``);
* a change in rules is a new version registered through ``supersede``,
  which closes the open window of the version it replaces.

Architecture position
---------------------
**Config layer** -- in-memory registry, thread-safe.  Implements the rule
repository collaborator protocol used by ``payroll_services``.

Failure modes
-------------
* ``NoApplicableRuleSetError`` -- no version covers the date.
* ``AmbiguousRuleSetError`` -- more than one version covers the date (only
  reachable if the write-side checks were bypassed).
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date

from payroll_kernel.domain.labor_rules import LaborRuleSet
from payroll_kernel.exceptions import (
    AmbiguousRuleSetError,
    NoApplicableRuleSetError,
    RuleSetImmutableError,
    RuleSetOverlapError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.repository")


class RuleSetRepository:
    """Effective-dated registry of labor rule sets."""

    def __init__(self, rule_sets: list[LaborRuleSet] | None = None) -> None:
        self._sets: dict[str, list[LaborRuleSet]] = {}
        self._referenced: set[tuple[str, str]] = set()
        self._lock = threading.RLock()
        for rule_set in rule_sets or ():
            self.register(rule_set)

    def register(self, rule_set: LaborRuleSet) -> None:
        """
        Add a rule-set version.

        Re-registering an identical version is a no-op.  Registering a
        different set under an existing (jurisdiction, version) replaces it
        unless that version is referenced by an approved run.

        Raises:
            RuleSetOverlapError: window overlaps another version.
            RuleSetImmutableError: version is referenced and would change.
        """
        with self._lock:
            versions = self._sets.setdefault(rule_set.jurisdiction, [])
            existing = next((s for s in versions if s.version == rule_set.version), None)
            if existing is not None:
                if existing == rule_set:
                    return
                if rule_set.key in self._referenced:
                    logger.error("rule_set_replace_rejected", extra={
                        "jurisdiction": rule_set.jurisdiction,
                        "version": rule_set.version,
                    })
                    raise RuleSetImmutableError(rule_set.jurisdiction, rule_set.version)

            for other in versions:
                if other.version != rule_set.version and other.overlaps(rule_set):
                    logger.error("rule_set_overlap", extra={
                        "jurisdiction": rule_set.jurisdiction,
                        "new_version": rule_set.version,
                        "existing_version": other.version,
                    })
                    raise RuleSetOverlapError(
                        rule_set.jurisdiction, rule_set.version, other.version
                    )

            if existing is not None:
                versions.remove(existing)
            versions.append(rule_set)
            versions.sort(key=lambda s: s.effective_from)

        logger.info("rule_set_registered", extra={
            "jurisdiction": rule_set.jurisdiction,
            "version": rule_set.version,
            "effective_from": rule_set.effective_from.isoformat(),
            "effective_to": rule_set.effective_to.isoformat() if rule_set.effective_to else None,
        })

    def supersede(self, new_set: LaborRuleSet) -> LaborRuleSet | None:
        """
        Register new_set, closing the open-ended version it follows.

        The open version whose window starts before ``new_set.effective_from``
        gets ``effective_to = new_set.effective_from``.  Closing a window does
        not change any parameter, so it is allowed on referenced versions.

        Returns:
            The closed predecessor, or None if there was none.
        """
        with self._lock:
            versions = self._sets.get(new_set.jurisdiction, [])
            predecessor = next(
                (
                    s for s in versions
                    if s.effective_to is None and s.effective_from < new_set.effective_from
                ),
                None,
            )
            closed = None
            if predecessor is not None:
                closed = replace(predecessor, effective_to=new_set.effective_from)
                versions[versions.index(predecessor)] = closed
                logger.info("rule_set_superseded", extra={
                    "jurisdiction": new_set.jurisdiction,
                    "closed_version": predecessor.version,
                    "effective_to": new_set.effective_from.isoformat(),
                    "new_version": new_set.version,
                })
            try:
                self.register(new_set)
            except Exception:
                if predecessor is not None:
                    versions[versions.index(closed)] = predecessor
                raise
            return closed

    def resolve(self, jurisdiction: str, as_of: date) -> LaborRuleSet:
        """
        The unique rule set effective for jurisdiction on as_of.

        Raises:
            NoApplicableRuleSetError: no version covers as_of.
            AmbiguousRuleSetError: more than one version covers as_of.
        """
        code = jurisdiction.strip().upper()
        with self._lock:
            matches = [s for s in self._sets.get(code, []) if s.is_effective_on(as_of)]

        if not matches:
            logger.warning("rule_set_not_found", extra={
                "jurisdiction": code,
                "as_of": as_of.isoformat(),
            })
            raise NoApplicableRuleSetError(code, as_of)
        if len(matches) > 1:
            logger.error("rule_set_ambiguous", extra={
                "jurisdiction": code,
                "as_of": as_of.isoformat(),
                "versions": [s.version for s in matches],
            })
            raise AmbiguousRuleSetError(code, as_of, [s.version for s in matches])
        return matches[0]

    def get(self, jurisdiction: str, version: str) -> LaborRuleSet | None:
        with self._lock:
            for rule_set in self._sets.get(jurisdiction.strip().upper(), []):
                if rule_set.version == version:
                    return rule_set
        return None

    def versions(self, jurisdiction: str) -> list[LaborRuleSet]:
        """All versions of a jurisdiction, ordered by effective_from."""
        with self._lock:
            return list(self._sets.get(jurisdiction.strip().upper(), []))

    def jurisdictions(self) -> list[str]:
        with self._lock:
            return sorted(self._sets)

    def mark_referenced(self, jurisdiction: str, version: str) -> None:
        """Pin a version as used by an approved run (no further replacement)."""
        with self._lock:
            self._referenced.add((jurisdiction.strip().upper(), version))

    def is_referenced(self, jurisdiction: str, version: str) -> bool:
        with self._lock:
            return (jurisdiction.strip().upper(), version) in self._referenced
