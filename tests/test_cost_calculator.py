"""Tests for :func:`services.cost_calculator.compute`."""

from decimal import Decimal

import pytest

from core.exceptions import InvalidInput
from services.cost_calculator import compute, round_money, to_decimal


def test_five_percent_with_fee():
    cost = compute(Decimal("1000.00"), Decimal("0.05"), Decimal("10.00"))

    assert cost.tariff_amount == Decimal("50.00")
    assert cost.total_cost == Decimal("1060.00")
    assert cost.additional_fee == Decimal("10.00")


def test_larger_declared_value():
    cost = compute(Decimal("2500.00"), Decimal("0.05"), Decimal("10.00"))

    assert cost.tariff_amount == Decimal("125.00")
    assert cost.total_cost == Decimal("2635.00")


def test_half_up_on_tariff_amount():
    # 10.10 * 0.0525 = 0.53025 -> 0.53; 2.50 * 0.05 = 0.125 -> 0.13
    assert compute("10.10", "0.0525", "0").tariff_amount == Decimal("0.53")
    assert compute("2.50", "0.05", "0").tariff_amount == Decimal("0.13")


def test_sum_is_rounded_after_tariff():
    # 100.005 is not pre-rounded: 100.005 * 0.1 = 10.0005 -> 10.00, total 110.005 -> 110.01
    cost = compute("100.005", "0.1", "0")

    assert cost.tariff_amount == Decimal("10.00")
    assert cost.total_cost == Decimal("110.01")


def test_amounts_have_two_places():
    cost = compute(1000, "0.05", 10)

    assert str(cost.tariff_amount) == "50.00"
    assert str(cost.total_cost) == "1060.00"


def test_float_inputs_do_not_drift():
    cost = compute(0.1, 0.1, 0.2)

    assert cost.tariff_amount == Decimal("0.01")
    assert cost.total_cost == Decimal("0.31")


def test_compute_is_repeatable():
    first = compute("1234.56", "0.0375", "12.34")
    second = compute("1234.56", "0.0375", "12.34")

    assert first == second
    assert str(first.total_cost) == str(second.total_cost)


@pytest.mark.parametrize("value", ["0", "-1", Decimal("-0.01"), 0])
def test_non_positive_declared_value_rejected(value):
    with pytest.raises(InvalidInput) as exc_info:
        compute(value, "0.05", "10")

    assert exc_info.value.field == "declared_value"
    assert "greater than 0" in str(exc_info.value)


def test_non_numeric_input_rejected():
    with pytest.raises(InvalidInput) as exc_info:
        to_decimal("abc", "declared_value")
    assert exc_info.value.field == "declared_value"

    with pytest.raises(InvalidInput):
        to_decimal(None, "base_rate")
    with pytest.raises(InvalidInput):
        to_decimal("NaN", "base_rate")


def test_round_money_half_up():
    assert round_money(Decimal("0.005")) == Decimal("0.01")
    assert round_money(Decimal("0.0049")) == Decimal("0.00")
    assert round_money(Decimal("-0.005")) == Decimal("-0.01")


def test_large_value_is_priced_exactly():
    cost = compute(Decimal("1e27"), "0.05", "0")

    assert cost.tariff_amount == Decimal("50000000000000000000000000.00")
    assert cost.total_cost == Decimal("1050000000000000000000000000.00")


def test_long_product_is_rounded_once():
    # Exact product 4999999900000000000000.0049999999; a 28-digit context would
    # first round it to ...0.005000 and HALF_UP would then give .01
    cost = compute("1000000000000000000000001", "0.0049999999", "0")

    assert cost.tariff_amount == Decimal("4999999900000000000000.00")
    assert cost.total_cost == Decimal("1004999999900000000000001.00")


def test_value_beyond_precision_rejected():
    with pytest.raises(InvalidInput) as exc_info:
        compute(Decimal("1e80"), "0.05", "0")

    assert exc_info.value.field == "declared_value"
    assert "too large" in str(exc_info.value)
