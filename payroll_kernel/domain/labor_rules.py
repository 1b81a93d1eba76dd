"""
Labor Rules -- Versioned, immutable tax and contribution parameters.

Responsibility:
    Defines the LaborRuleSet for a jurisdiction and its parts: the income
    tax bracket table, overtime multipliers, employer surcharges and
    employer accrual rates.  Every structural invariant is checked at
    construction so that calculators can trust the data they receive.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  Built by
    ``payroll_config.loader`` from YAML and resolved by
    ``payroll_config.repository``; read by every calculation engine.

Invariants enforced:
    - Bracket table is contiguous and ordered ascending by lower bound,
      starts at 0 and ends with an unbounded bracket (covers [0, +inf)).
    - Each bracket computes ``base_tax + rate * (income - threshold)`` and
      the formula is continuous at every boundary within one rounding
      quantum of the rule set.
    - Effective window is half-open: [effective_from, effective_to).
    - All rates are within [0, 1]; cap, hours and multipliers are positive.

Failure modes:
    - InvalidBracketTableError for any bracket table violation.
    - InvalidRuleSetError for any other out-of-range parameter.
    - TypeError when a float reaches a monetary or rate field.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from decimal import Decimal

from payroll_kernel.domain.values import RoundingPolicy, ZERO, to_decimal
from payroll_kernel.exceptions import InvalidBracketTableError, InvalidRuleSetError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.utils.hashing import hash_payload

logger = get_logger("domain.labor_rules")

ONE = Decimal("1")


@dataclass(frozen=True, slots=True)
class TaxBracket:
    """
    One tier of a progressive income tax table.

    ``threshold`` is the amount the marginal rate applies above ("excess
    over"); it defaults to the lower bound.  ``upper_bound`` is exclusive
    and filled in by TaxBracketTable from the next bracket's lower bound
    when not given; ``None`` means unbounded.
    """

    lower_bound: Decimal
    rate: Decimal
    base_tax: Decimal = ZERO
    threshold: Decimal | None = None
    upper_bound: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lower_bound", to_decimal(self.lower_bound, "lower_bound"))
        object.__setattr__(self, "rate", to_decimal(self.rate, "rate"))
        object.__setattr__(self, "base_tax", to_decimal(self.base_tax, "base_tax"))
        if self.threshold is None:
            object.__setattr__(self, "threshold", self.lower_bound)
        else:
            object.__setattr__(self, "threshold", to_decimal(self.threshold, "threshold"))
        if self.upper_bound is not None:
            object.__setattr__(self, "upper_bound", to_decimal(self.upper_bound, "upper_bound"))

    def contains(self, income: Decimal) -> bool:
        """True if income falls in [lower_bound, upper_bound)."""
        if income < self.lower_bound:
            return False
        return self.upper_bound is None or income < self.upper_bound

    def tax_at(self, income: Decimal) -> Decimal:
        """Unrounded tax for income evaluated with this bracket's formula."""
        return self.base_tax + self.rate * (income - self.threshold)


@dataclass(frozen=True, slots=True)
class TaxBracketTable:
    """
    Ordered, contiguous sequence of tax brackets covering [0, +inf).

    Contract:
        Construction validates ordering, coverage and per-bracket ranges.
        Continuity depends on the rule set's rounding precision and is
        checked by ``validate_continuity`` (called by LaborRuleSet).
    """

    brackets: tuple[TaxBracket, ...]

    def __post_init__(self) -> None:
        brackets = tuple(self.brackets)
        if not brackets:
            raise InvalidBracketTableError("table must contain at least one bracket")

        if brackets[0].lower_bound != ZERO:
            raise InvalidBracketTableError(
                f"first bracket must start at 0, starts at {brackets[0].lower_bound}", 0
            )

        normalized: list[TaxBracket] = []
        for i, bracket in enumerate(brackets):
            if not ZERO <= bracket.rate <= ONE:
                raise InvalidBracketTableError(f"rate {bracket.rate} outside [0, 1]", i)
            if bracket.base_tax < ZERO:
                raise InvalidBracketTableError(f"base tax {bracket.base_tax} is negative", i)
            if bracket.threshold < ZERO or bracket.threshold > bracket.lower_bound:
                raise InvalidBracketTableError(
                    f"threshold {bracket.threshold} must be within [0, {bracket.lower_bound}]", i
                )

            is_last = i == len(brackets) - 1
            if is_last:
                if bracket.upper_bound is not None:
                    raise InvalidBracketTableError(
                        f"last bracket must be unbounded, has upper bound {bracket.upper_bound}", i
                    )
                normalized.append(bracket)
                continue

            nxt = brackets[i + 1]
            if nxt.lower_bound <= bracket.lower_bound:
                raise InvalidBracketTableError(
                    f"lower bounds must be strictly ascending "
                    f"({bracket.lower_bound} then {nxt.lower_bound})", i + 1
                )
            if bracket.upper_bound is not None and bracket.upper_bound != nxt.lower_bound:
                kind = "gap" if bracket.upper_bound < nxt.lower_bound else "overlap"
                raise InvalidBracketTableError(
                    f"{kind} between upper bound {bracket.upper_bound} "
                    f"and next lower bound {nxt.lower_bound}", i
                )
            if nxt.base_tax < bracket.base_tax:
                raise InvalidBracketTableError(
                    f"base tax decreases from {bracket.base_tax} to {nxt.base_tax}", i + 1
                )
            normalized.append(replace(bracket, upper_bound=nxt.lower_bound))

        object.__setattr__(self, "brackets", tuple(normalized))

    @classmethod
    def of(cls, *brackets: TaxBracket) -> TaxBracketTable:
        """Build a table from brackets in ascending order."""
        return cls(brackets=tuple(brackets))

    def validate_continuity(self, tolerance: Decimal) -> None:
        """
        Check the tax formula agrees at every boundary.

        At each boundary b (the next bracket's lower bound) the previous
        bracket's formula and the next bracket's formula, each with its own
        base tax, must agree within ``tolerance``.

        Raises:
            InvalidBracketTableError: on the first discontinuous boundary.
        """
        for i in range(1, len(self.brackets)):
            prev, cur = self.brackets[i - 1], self.brackets[i]
            boundary = cur.lower_bound
            from_below = prev.tax_at(boundary)
            from_above = cur.tax_at(boundary)
            if abs(from_below - from_above) > tolerance:
                logger.error("tax_bracket_discontinuity", extra={
                    "bracket_index": i,
                    "boundary": str(boundary),
                    "tax_from_below": str(from_below),
                    "tax_from_above": str(from_above),
                    "tolerance": str(tolerance),
                })
                raise InvalidBracketTableError(
                    f"discontinuous at {boundary}: {from_below} from below, "
                    f"{from_above} from above (tolerance {tolerance})", i
                )

    def locate(self, income: Decimal) -> TaxBracket:
        """
        Return the bracket containing income.

        A boundary income belongs to the upper bracket (lower bounds are
        inclusive).
        """
        if income < ZERO:
            raise ValueError(f"Income cannot be negative: {income}")
        lowers = [b.lower_bound for b in self.brackets]
        return self.brackets[bisect_right(lowers, income) - 1]

    def __len__(self) -> int:
        return len(self.brackets)


@dataclass(frozen=True, slots=True)
class OvertimeMultipliers:
    """Pay multipliers applied to the hourly rate for overtime hours."""

    ordinary: Decimal = Decimal("1.5")
    night: Decimal = Decimal("2.0")

    def __post_init__(self) -> None:
        for name in ("ordinary", "night"):
            value = to_decimal(getattr(self, name), f"overtime.{name}")
            if value <= ZERO:
                raise InvalidRuleSetError(f"overtime.{name}", "multiplier must be positive")
            object.__setattr__(self, name, value)


@dataclass(frozen=True, slots=True)
class EmployerRate:
    """
    Named employer-side flat rate.

    Used for payroll surcharges (e.g. training/recreation institutes) and
    for accrual liabilities (year-end bonus, vacation, severance).
    """

    code: str
    label: str
    rate: Decimal

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise InvalidRuleSetError("code", "employer rate code is required")
        rate = to_decimal(self.rate, f"{self.code}.rate")
        if not ZERO <= rate <= ONE:
            raise InvalidRuleSetError(self.code, f"rate {rate} outside [0, 1]")
        object.__setattr__(self, "code", self.code.strip().upper())
        object.__setattr__(self, "rate", rate)


@dataclass(frozen=True, slots=True)
class LaborRuleSet:
    """
    Versioned tax/contribution parameters for one jurisdiction.

    Contract:
        Valid over the half-open window [effective_from, effective_to).
        At most one rule set per jurisdiction is effective on any date
        (enforced on write by RuleSetRepository, defended on read).
        Immutable: a change is a new version with a later effective_from.

    Guarantees:
        - All monetary and rate fields are Decimal.
        - The bracket table is continuous under this set's rounding quantum.
        - Exactly two employer surcharges are configured.
    """

    jurisdiction: str
    version: str
    effective_from: date
    employee_social_security_rate: Decimal
    employer_social_security_rate: Decimal
    social_security_base_cap: Decimal
    surcharge_rates: tuple[EmployerRate, ...]
    tax_brackets: TaxBracketTable
    overtime: OvertimeMultipliers = field(default_factory=OvertimeMultipliers)
    statutory_bonus_amount: Decimal = ZERO
    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)
    monthly_standard_hours: Decimal = Decimal("173.33")
    effective_to: date | None = None
    currency: str = "GTQ"
    minimum_monthly_wage: Decimal | None = None
    accrual_rates: tuple[EmployerRate, ...] = ()
    statutory_bonus_annual_tax_exemption: Decimal | None = None
    employer_contribution_capped: bool = True
    social_security_deductible_from_taxable_base: bool = False

    def __post_init__(self) -> None:
        if not self.jurisdiction or not self.jurisdiction.strip():
            raise InvalidRuleSetError("jurisdiction", "jurisdiction code is required")
        object.__setattr__(self, "jurisdiction", self.jurisdiction.strip().upper())
        if not self.version:
            raise InvalidRuleSetError("version", "version label is required")

        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise InvalidRuleSetError(
                "effective_to",
                f"{self.effective_to} must be after effective_from {self.effective_from}",
            )

        for name in ("employee_social_security_rate", "employer_social_security_rate"):
            rate = to_decimal(getattr(self, name), name)
            if not ZERO <= rate <= ONE:
                raise InvalidRuleSetError(name, f"rate {rate} outside [0, 1]")
            object.__setattr__(self, name, rate)

        cap = to_decimal(self.social_security_base_cap, "social_security_base_cap")
        if cap <= ZERO:
            raise InvalidRuleSetError("social_security_base_cap", "cap must be positive")
        object.__setattr__(self, "social_security_base_cap", cap)

        bonus = to_decimal(self.statutory_bonus_amount, "statutory_bonus_amount")
        if bonus < ZERO:
            raise InvalidRuleSetError("statutory_bonus_amount", "amount cannot be negative")
        object.__setattr__(self, "statutory_bonus_amount", bonus)

        hours = to_decimal(self.monthly_standard_hours, "monthly_standard_hours")
        if hours <= ZERO:
            raise InvalidRuleSetError("monthly_standard_hours", "hours must be positive")
        object.__setattr__(self, "monthly_standard_hours", hours)

        object.__setattr__(self, "surcharge_rates", tuple(self.surcharge_rates))
        if len(self.surcharge_rates) != 2:
            raise InvalidRuleSetError(
                "surcharge_rates",
                f"exactly two employer surcharges required, got {len(self.surcharge_rates)}",
            )
        object.__setattr__(self, "accrual_rates", tuple(self.accrual_rates))
        codes = [r.code for r in self.surcharge_rates + self.accrual_rates]
        if len(codes) != len(set(codes)):
            raise InvalidRuleSetError("surcharge_rates", f"duplicate employer rate codes: {codes}")

        if self.minimum_monthly_wage is not None:
            object.__setattr__(
                self, "minimum_monthly_wage",
                to_decimal(self.minimum_monthly_wage, "minimum_monthly_wage"),
            )
        if self.statutory_bonus_annual_tax_exemption is not None:
            exemption = to_decimal(
                self.statutory_bonus_annual_tax_exemption, "statutory_bonus_annual_tax_exemption"
            )
            if exemption < ZERO:
                raise InvalidRuleSetError(
                    "statutory_bonus_annual_tax_exemption", "exemption cannot be negative"
                )
            object.__setattr__(self, "statutory_bonus_annual_tax_exemption", exemption)

        self.tax_brackets.validate_continuity(self.rounding.tolerance)

        logger.debug("labor_rule_set_validated", extra={
            "jurisdiction": self.jurisdiction,
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
            "effective_to": self.effective_to.isoformat() if self.effective_to else None,
            "bracket_count": len(self.tax_brackets),
        })

    def is_effective_on(self, as_of: date) -> bool:
        """True if as_of is inside [effective_from, effective_to)."""
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of < self.effective_to

    def overlaps(self, other: LaborRuleSet) -> bool:
        """True if both sets share a jurisdiction and their windows intersect."""
        if self.jurisdiction != other.jurisdiction:
            return False
        self_end = self.effective_to or date.max
        other_end = other.effective_to or date.max
        return self.effective_from < other_end and other.effective_from < self_end

    @property
    def checksum(self) -> str:
        """
        SHA-256 of the canonical form of the parameters (version identity).

        The closing date is excluded: superseding a version closes its
        window without changing what it computes.
        """
        payload = asdict(self)
        payload.pop("effective_to")
        return hash_payload(payload)

    @property
    def key(self) -> tuple[str, str]:
        """(jurisdiction, version) identity of this rule set."""
        return (self.jurisdiction, self.version)

    def surcharge(self, code: str) -> EmployerRate:
        """Look up a surcharge by code."""
        for rate in self.surcharge_rates:
            if rate.code == code.upper():
                return rate
        raise KeyError(code)
