"""
Values -- Immutable, self-validating monetary value helpers.

Responsibility:
    Provides the one rounding policy every monetary line in the engine is
    passed through, and the Decimal coercion used by every domain type at
    its construction boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module and by the calculation engines.

Invariants enforced:
    - Money is Decimal, never float: ``to_decimal`` rejects floats outright
      instead of converting them.
    - Rounding happens once, at each monetary line's final value, with the
      precision and mode of the governing labor rule set.  Intermediates
      (hourly rates, raw tax, raw contributions) are never rounded.
    - ``RoundingPolicy.apply`` is idempotent: an already-rounded figure is
      returned unchanged.

Failure modes:
    - TypeError when a float (or other non-numeric type) reaches a money field.
    - ValueError when a string cannot be parsed as a Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce an int/str/Decimal into a Decimal.

    Floats are refused: they cannot represent most cent amounts exactly.

    Raises:
        TypeError: If value is a float or an unsupported type.
        ValueError: If value is a string that is not a valid number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"{field} must be Decimal, str or int, got bool")
    if isinstance(value, float):
        raise TypeError(f"{field} must not be a float (got {value!r}); use Decimal or str")
    if isinstance(value, (int, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
    raise TypeError(f"{field} must be Decimal, str or int, got {type(value).__name__}")


class RoundingMode(str, Enum):
    """How a monetary value is brought to the rule set's precision."""

    NEAREST = "nearest"  # half away from zero
    UP = "up"  # towards +infinity
    DOWN = "down"  # towards -infinity


_DECIMAL_ROUNDING = {
    RoundingMode.NEAREST: ROUND_HALF_UP,
    RoundingMode.UP: ROUND_CEILING,
    RoundingMode.DOWN: ROUND_FLOOR,
}


@dataclass(frozen=True, slots=True)
class RoundingPolicy:
    """
    Shared rounding function for every monetary line.

    Contract:
        ``apply`` quantizes to ``decimal_places`` using ``mode``.  All
        calculators call it exactly once on each line's final amount, and
        run totals are sums of already-rounded lines (sum-of-rounded, never
        round-of-sum).

    Guarantees:
        - Immutable and hashable.
        - ``apply(apply(x)) == apply(x)``.
    """

    decimal_places: int = 2
    mode: RoundingMode = RoundingMode.NEAREST

    def __post_init__(self) -> None:
        if isinstance(self.mode, str) and not isinstance(self.mode, RoundingMode):
            object.__setattr__(self, "mode", RoundingMode(self.mode))
        if not isinstance(self.decimal_places, int) or isinstance(self.decimal_places, bool):
            raise TypeError("decimal_places must be an int")
        if not 0 <= self.decimal_places <= 6:
            raise ValueError(
                f"decimal_places must be between 0 and 6, got {self.decimal_places}"
            )

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01') for 2 places."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def tolerance(self) -> Decimal:
        """Tolerance used when validating continuity of derived tables."""
        return self.quantum

    def apply(self, value: Decimal) -> Decimal:
        """Round a Decimal to the policy's precision and mode."""
        value = to_decimal(value, "value")
        return value.quantize(self.quantum, rounding=_DECIMAL_ROUNDING[self.mode])

    def is_rounded(self, value: Decimal) -> bool:
        """True if value already carries no more precision than the policy."""
        return self.apply(value) == value

    def zero(self) -> Decimal:
        """Zero at the policy's precision (e.g. Decimal('0.00'))."""
        return ZERO.quantize(self.quantum)
