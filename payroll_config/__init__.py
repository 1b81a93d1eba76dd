"""
payroll_config -- labor rule sets and engine settings.

Responsibility:
    Provides the explicit bootstrap of labor rule sets from versioned YAML
    files into a ``RuleSetRepository``, and the ``EngineSettings`` schema.
    No component reads rule-set files, environment variables or globals
    directly; services receive a repository and settings at construction.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and below
    ``payroll_services``.  The kernel and the engines MUST NEVER import
    from ``payroll_config``.

Invariants enforced:
    - Every rule set is validated (bracket continuity, rate ranges,
      windows) while it is loaded, so an invalid file fails bootstrap.
    - Windows of one jurisdiction never overlap once registered.

Failure modes:
    - ``FileNotFoundError`` -- the sets directory does not exist.
    - ``InvalidRuleSetError`` / ``InvalidBracketTableError`` -- a file is invalid.
    - ``RuleSetOverlapError`` -- two files cover the same dates.

Audit relevance:
    Every bootstrap emits a ``PAYROLL_CONFIG_TRACE`` log entry listing the
    loaded (jurisdiction, version, checksum) triples.  Payroll runs record
    the version and checksum of the rule set that governed them.
"""

from __future__ import annotations

from pathlib import Path

from payroll_config.loader import load_rule_sets
from payroll_config.repository import RuleSetRepository
from payroll_config.settings import EngineSettings
from payroll_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default rule-set directory
DEFAULT_SETS_DIR = Path(__file__).parent / "sets"


def bootstrap_rule_sets(sets_dir: Path | None = None) -> RuleSetRepository:
    """
    Load every rule-set file and return a populated repository.

    Args:
        sets_dir: Directory holding ``<JURISDICTION>/<version>.yaml`` files.
            Defaults to the packaged ``payroll_config/sets``.

    Raises:
        FileNotFoundError: If sets_dir does not exist.
    """
    directory = Path(sets_dir or DEFAULT_SETS_DIR)
    if not directory.is_dir():
        raise FileNotFoundError(f"Rule-set directory not found: {directory}")

    rule_sets = load_rule_sets(directory)
    repository = RuleSetRepository(rule_sets)

    _logger.info("PAYROLL_CONFIG_TRACE", extra={
        "trace_type": "PAYROLL_CONFIG_TRACE",
        "sets_dir": str(directory),
        "rule_sets": [
            {"jurisdiction": s.jurisdiction, "version": s.version, "checksum": s.checksum}
            for s in rule_sets
        ],
    })
    return repository


__all__ = [
    "DEFAULT_SETS_DIR",
    "EngineSettings",
    "RuleSetRepository",
    "bootstrap_rule_sets",
]
