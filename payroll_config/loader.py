"""
Rule-Set Loader (``payroll_config.loader``).

Responsibility
--------------
Loads labor rule-set YAML files and parses them into frozen
``payroll_kernel.domain.labor_rules.LaborRuleSet`` instances.  All
structural validation (bracket continuity, rate ranges, windows) happens
in the domain constructors; the loader only maps keys to fields.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by
``payroll_config.bootstrap_rule_sets``.  Depends on the kernel domain, never
on engines or services.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from the kernel domain.
* Numbers are parsed into ``Decimal`` from their textual form; YAML floats
  are converted through ``str`` so ``0.0483`` stays exactly ``0.0483``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required key  -> ``InvalidRuleSetError``.
* Invalid bracket table  -> ``InvalidBracketTableError``.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_kernel.domain.labor_rules import (
    EmployerRate,
    LaborRuleSet,
    OvertimeMultipliers,
    TaxBracket,
    TaxBracketTable,
)
from payroll_kernel.domain.values import RoundingMode, RoundingPolicy, to_decimal
from payroll_kernel.exceptions import InvalidRuleSetError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.utils.hashing import hash_payload

logger = get_logger("config.loader")

# Accepted spellings of the rounding mode (English and the original
# Spanish labels used in legacy configuration).
_ROUNDING_MODES = {
    "nearest": RoundingMode.NEAREST,
    "normal": RoundingMode.NEAREST,
    "up": RoundingMode.UP,
    "arriba": RoundingMode.UP,
    "down": RoundingMode.DOWN,
    "abajo": RoundingMode.DOWN,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar into an exact Decimal."""
    if isinstance(value, float):
        value = str(value)
    return to_decimal(value, field)


def parse_rounding(data: dict[str, Any] | None) -> RoundingPolicy:
    """Parse the ``rounding`` section (defaults: 2 places, nearest)."""
    if not data:
        return RoundingPolicy()
    mode_name = str(data.get("mode", "nearest")).strip().lower()
    if mode_name not in _ROUNDING_MODES:
        raise InvalidRuleSetError("rounding.mode", f"unknown rounding mode {mode_name!r}")
    return RoundingPolicy(
        decimal_places=int(data.get("decimal_places", 2)),
        mode=_ROUNDING_MODES[mode_name],
    )


def parse_brackets(data: list[dict[str, Any]]) -> TaxBracketTable:
    """Parse ``income_tax.brackets`` into a validated TaxBracketTable."""
    brackets = []
    for i, item in enumerate(data):
        prefix = f"income_tax.brackets[{i}]"
        brackets.append(TaxBracket(
            lower_bound=parse_decimal(_require(item, "lower_bound", prefix), f"{prefix}.lower_bound"),
            rate=parse_decimal(_require(item, "rate", prefix), f"{prefix}.rate"),
            base_tax=parse_decimal(item.get("base_tax", "0"), f"{prefix}.base_tax"),
            threshold=(
                parse_decimal(item["threshold"], f"{prefix}.threshold")
                if item.get("threshold") is not None else None
            ),
            upper_bound=(
                parse_decimal(item["upper_bound"], f"{prefix}.upper_bound")
                if item.get("upper_bound") is not None else None
            ),
        ))
    return TaxBracketTable(brackets=tuple(brackets))


def parse_employer_rates(data: list[dict[str, Any]] | None, section: str) -> tuple[EmployerRate, ...]:
    """Parse a list of ``{code, label, rate}`` entries."""
    rates = []
    for i, item in enumerate(data or ()):
        prefix = f"{section}[{i}]"
        code = str(_require(item, "code", prefix))
        rates.append(EmployerRate(
            code=code,
            label=str(item.get("label", code)),
            rate=parse_decimal(_require(item, "rate", prefix), f"{prefix}.rate"),
        ))
    return tuple(rates)


def parse_rule_set(data: dict[str, Any]) -> LaborRuleSet:
    """
    Parse a ``LaborRuleSet`` from a YAML document.

    Raises:
        InvalidRuleSetError: if required keys are missing or out of range.
        InvalidBracketTableError: if the bracket table is invalid.
    """
    social = _require(data, "social_security")
    income_tax = _require(data, "income_tax")
    overtime = data.get("overtime") or {}
    bonus = data.get("statutory_bonus") or {}

    exemption = bonus.get("annual_tax_exemption")
    minimum_wage = data.get("minimum_monthly_wage")
    effective_to = data.get("effective_to")

    return LaborRuleSet(
        jurisdiction=str(_require(data, "jurisdiction")),
        version=str(_require(data, "version")),
        effective_from=parse_date(_require(data, "effective_from")),
        effective_to=parse_date(effective_to) if effective_to else None,
        currency=str(data.get("currency", "GTQ")),
        employee_social_security_rate=parse_decimal(
            _require(social, "employee_rate", "social_security"), "social_security.employee_rate"
        ),
        employer_social_security_rate=parse_decimal(
            _require(social, "employer_rate", "social_security"), "social_security.employer_rate"
        ),
        social_security_base_cap=parse_decimal(
            _require(social, "base_cap", "social_security"), "social_security.base_cap"
        ),
        employer_contribution_capped=bool(social.get("employer_contribution_capped", True)),
        social_security_deductible_from_taxable_base=bool(
            social.get("deductible_from_taxable_base", False)
        ),
        surcharge_rates=parse_employer_rates(_require(data, "surcharges"), "surcharges"),
        accrual_rates=parse_employer_rates(data.get("accruals"), "accruals"),
        tax_brackets=parse_brackets(_require(income_tax, "brackets", "income_tax")),
        overtime=OvertimeMultipliers(
            ordinary=parse_decimal(overtime.get("ordinary", "1.5"), "overtime.ordinary"),
            night=parse_decimal(overtime.get("night", "2.0"), "overtime.night"),
        ),
        statutory_bonus_amount=parse_decimal(
            bonus.get("monthly_amount", "0"), "statutory_bonus.monthly_amount"
        ),
        statutory_bonus_annual_tax_exemption=(
            parse_decimal(exemption, "statutory_bonus.annual_tax_exemption")
            if exemption is not None else None
        ),
        rounding=parse_rounding(data.get("rounding")),
        monthly_standard_hours=parse_decimal(
            data.get("monthly_standard_hours", "173.33"), "monthly_standard_hours"
        ),
        minimum_monthly_wage=(
            parse_decimal(minimum_wage, "minimum_monthly_wage") if minimum_wage is not None else None
        ),
    )


def load_rule_set(path: Path) -> LaborRuleSet:
    """Load and parse one rule-set YAML file."""
    data = load_yaml_file(path)
    rule_set = parse_rule_set(data)
    logger.info("rule_set_loaded", extra={
        "path": str(path),
        "jurisdiction": rule_set.jurisdiction,
        "version": rule_set.version,
        "effective_from": rule_set.effective_from.isoformat(),
        "source_checksum": compute_checksum(data),
        "checksum": rule_set.checksum,
    })
    return rule_set


def load_rule_sets(directory: Path) -> list[LaborRuleSet]:
    """Load every ``*.yaml`` file under directory, in sorted path order."""
    return [load_rule_set(path) for path in sorted(Path(directory).rglob("*.yaml"))]


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 checksum of the canonical JSON form of a raw YAML document.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)


def _require(data: dict[str, Any], key: str, section: str = "") -> Any:
    if not isinstance(data, dict) or data.get(key) is None:
        name = f"{section}.{key}" if section else key
        raise InvalidRuleSetError(name, "required key is missing")
    return data[key]
