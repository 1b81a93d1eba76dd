"""
Tax Bracket Engine - Progressive income tax from a bracket table.

Pure functions with no I/O - the bracket table and rounding policy are
provided as parameters by the caller (normally taken from the governing
LaborRuleSet).

Each bracket computes ``base_tax + rate * (income - threshold)``.  The
bracket is located by lower bound (inclusive); an income exactly on a
boundary belongs to the upper bracket.  Continuity at boundaries is a
property of the table and is validated when the rule set is built, not
here.

Usage:
    from payroll_engines.tax_brackets import TaxBracketCalculator

    calculator = TaxBracketCalculator()
    tax = calculator.tax_for(Decimal("30000"), rule_set.tax_brackets, rule_set.rounding)
    # Decimal('1600.00')
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.labor_rules import TaxBracketTable
from payroll_kernel.domain.values import ZERO, RoundingPolicy, to_decimal
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax_brackets")

FULL_PERIOD = Decimal("1")


@dataclass(frozen=True)
class TaxBracketResult:
    """
    Calculated income tax for one taxable amount.

    ``raw_tax`` is the unrounded formula value (already scaled for partial
    periods); ``tax`` is the single rounded figure that goes on the ledger.
    """

    taxable_income: Decimal
    bracket_index: int
    rate: Decimal
    base_tax: Decimal
    threshold: Decimal
    raw_tax: Decimal
    tax: Decimal
    period_fraction: Decimal = FULL_PERIOD

    @property
    def effective_rate(self) -> Decimal:
        """Tax as a share of taxable income (zero for zero income)."""
        if self.taxable_income == ZERO:
            return ZERO
        return self.tax / self.taxable_income


class TaxBracketCalculator:
    """
    Calculate progressive income tax.

    Pure functions - no I/O, no clock, no rule-set lookup.
    """

    def raw_tax(self, income: Decimal, table: TaxBracketTable) -> Decimal:
        """
        Unrounded tax for income.

        Raises:
            ValueError: If income is negative.
        """
        income = to_decimal(income, "income")
        if income < ZERO:
            logger.error("tax_negative_income", extra={"income": str(income)})
            raise ValueError(f"Taxable income cannot be negative: {income}")
        if income == ZERO:
            return ZERO
        return table.locate(income).tax_at(income)

    def marginal_rate(self, income: Decimal, table: TaxBracketTable) -> Decimal:
        """Marginal rate of the bracket containing income."""
        return table.locate(to_decimal(income, "income")).rate

    @traced_engine("tax_brackets", "1.0", fingerprint_fields=("income", "period_fraction"))
    def calculate(
        self,
        income: Decimal,
        table: TaxBracketTable,
        rounding: RoundingPolicy,
        period_fraction: Decimal = FULL_PERIOD,
    ) -> TaxBracketResult:
        """
        Calculate tax for the income of one pay period.

        For a partial period (``period_fraction`` < 1) the income is
        annualised to its monthly equivalent, taxed with the monthly table
        and the result scaled back by the fraction.  Rounding is applied
        once, to the final figure.

        Args:
            income: Taxable income for the period.
            table: Monthly bracket table.
            rounding: Rounding policy of the governing rule set.
            period_fraction: Share of a month covered by the period.

        Raises:
            ValueError: If income is negative or the fraction is outside (0, 1].
        """
        income = to_decimal(income, "income")
        fraction = to_decimal(period_fraction, "period_fraction")
        if not ZERO < fraction <= FULL_PERIOD:
            raise ValueError(f"period_fraction must be within (0, 1], got {fraction}")

        monthly_income = income if fraction == FULL_PERIOD else income / fraction
        raw = self.raw_tax(monthly_income, table)
        if fraction != FULL_PERIOD:
            raw = raw * fraction

        bracket_index = 0
        if monthly_income > ZERO:
            bracket = table.locate(monthly_income)
            bracket_index = table.brackets.index(bracket)
        bracket = table.brackets[bracket_index]

        result = TaxBracketResult(
            taxable_income=income,
            bracket_index=bracket_index,
            rate=bracket.rate,
            base_tax=bracket.base_tax,
            threshold=bracket.threshold,
            raw_tax=raw,
            tax=rounding.apply(raw),
            period_fraction=fraction,
        )

        logger.debug("tax_calculated", extra={
            "taxable_income": str(income),
            "bracket_index": bracket_index,
            "rate": str(bracket.rate),
            "raw_tax": str(raw),
            "tax": str(result.tax),
            "period_fraction": str(fraction),
        })
        return result

    def tax_for(
        self,
        income: Decimal,
        table: TaxBracketTable,
        rounding: RoundingPolicy,
    ) -> Decimal:
        """Rounded tax for a full-month income."""
        return self.calculate(income, table, rounding).tax
