"""
Tests for RoundingPolicy and Decimal coercion.

Covers:
- Each rounding mode at the half-cent boundary
- Idempotence of apply()
- Float rejection at the domain boundary
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from payroll_kernel.domain.values import RoundingMode, RoundingPolicy, to_decimal


class TestRoundingModes:
    """Tests for nearest / up / down rounding."""

    @pytest.mark.parametrize(
        "mode, value, expected",
        [
            (RoundingMode.NEAREST, "1038.475", "1038.48"),
            (RoundingMode.NEAREST, "1038.474", "1038.47"),
            (RoundingMode.NEAREST, "-2.345", "-2.35"),
            (RoundingMode.UP, "10.001", "10.01"),
            (RoundingMode.UP, "-10.009", "-10.00"),
            (RoundingMode.DOWN, "10.009", "10.00"),
            (RoundingMode.DOWN, "-10.001", "-10.01"),
        ],
    )
    def test_mode_at_two_places(self, mode, value, expected):
        policy = RoundingPolicy(2, mode)
        assert policy.apply(Decimal(value)) == Decimal(expected)

    def test_zero_places(self):
        policy = RoundingPolicy(0)
        assert policy.apply(Decimal("249.5")) == Decimal("250")
        assert policy.quantum == Decimal("1")

    def test_mode_from_string(self):
        assert RoundingPolicy(2, "up").mode == RoundingMode.UP

    def test_quantum_and_tolerance(self):
        policy = RoundingPolicy(3)
        assert policy.quantum == Decimal("0.001")
        assert policy.tolerance == policy.quantum

    def test_zero_has_policy_precision(self):
        assert str(RoundingPolicy(2).zero()) == "0.00"

    def test_is_rounded(self):
        policy = RoundingPolicy(2)
        assert policy.is_rounded(Decimal("10.50"))
        assert not policy.is_rounded(Decimal("10.505"))

    @pytest.mark.parametrize("places", [-1, 7])
    def test_decimal_places_out_of_range(self, places):
        with pytest.raises(ValueError, match="decimal_places"):
            RoundingPolicy(places)

    def test_apply_rejects_float(self):
        with pytest.raises(TypeError, match="float"):
            RoundingPolicy(2).apply(1.005)

    @given(
        st.decimals(min_value=-10**9, max_value=10**9, allow_nan=False, allow_infinity=False, places=6),
        st.sampled_from(list(RoundingMode)),
    )
    def test_apply_is_idempotent(self, value, mode):
        policy = RoundingPolicy(2, mode)
        once = policy.apply(value)
        assert policy.apply(once) == once


class TestToDecimal:
    """Tests for the monetary coercion helper."""

    def test_accepts_str_int_decimal(self):
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(3) == Decimal("3")
        assert to_decimal(Decimal("1.1")) == Decimal("1.1")

    def test_strips_whitespace(self):
        assert to_decimal(" 7.25 ") == Decimal("7.25")

    def test_rejects_float(self):
        with pytest.raises(TypeError, match="float"):
            to_decimal(0.1, "rate")

    def test_rejects_bool(self):
        with pytest.raises(TypeError, match="bool"):
            to_decimal(True)

    def test_rejects_garbage_string(self):
        with pytest.raises(ValueError, match="Invalid salary"):
            to_decimal("abc", "salary")
