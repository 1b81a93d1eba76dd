"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    ``payroll_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel (domain, exceptions, logging) and
    sibling engine modules.  MUST NOT import payroll_services or
    payroll_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The as-of date of a run is resolved by the service and passed in.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``;
      floats are rejected at the domain boundary.
    - Determinism: identical inputs always produce identical outputs.
    - Rounding happens once per ledger line, through the rule set's
      RoundingPolicy.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``payroll_engines.tracer``), emitting PAYROLL_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from payroll_engines import ConceptLineBuilder, PayrollRunAggregator
    from payroll_engines import TaxBracketCalculator, ContributionCalculator
"""

from payroll_engines.accruals import AccrualCalculator, AccrualResult
from payroll_engines.aggregation import (
    AggregationResult,
    PayrollRunAggregator,
    ReconciliationIssue,
)
from payroll_engines.concept_lines import ConceptLineBuilder
from payroll_engines.contributions import (
    ContributionCalculator,
    ContributionResult,
    SocialSecurityResult,
)
from payroll_engines.overtime import OvertimeCalculator, OvertimeResult
from payroll_engines.tax_brackets import TaxBracketCalculator, TaxBracketResult
from payroll_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Accruals
    "AccrualCalculator",
    "AccrualResult",
    # Aggregation
    "AggregationResult",
    "PayrollRunAggregator",
    "ReconciliationIssue",
    # Concept lines
    "ConceptLineBuilder",
    # Contributions
    "ContributionCalculator",
    "ContributionResult",
    "SocialSecurityResult",
    # Overtime
    "OvertimeCalculator",
    "OvertimeResult",
    # Tax brackets
    "TaxBracketCalculator",
    "TaxBracketResult",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
]
