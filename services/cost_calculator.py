# WORKFLOW: Fixed-point landed cost calculation.
# Used by: Tariff service calculate()
# Functions:
# 1. to_decimal() - Convert caller input to Decimal without float drift
# 2. round_money() - Two-place HALF_UP rounding
# 3. compute() - declared value + tariff + fee -> CostBreakdown
#
# Rounding order: tariff_amount = round(value * rate); total = round(value + tariff_amount + fee).
# Inputs are never pre-rounded; only the product and then the sum are rounded.
# Arithmetic runs in a local context wide enough that neither step is rounded twice.

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any

from core.exceptions import InvalidInput
from schemas.response import CostBreakdown

MONEY_QUANTUM = Decimal("0.01")
# Digits carried through the multiply and add; amounts needing more are rejected
CALCULATION_PRECISION = 60


def to_decimal(value: Any, field: str) -> Decimal:
    """Convert ``value`` to Decimal, going through str() for floats."""
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{field} is required", field=field, value=value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInput(f"{field} must be a number: {value}", field=field, value=value)
    if not result.is_finite():
        raise InvalidInput(f"{field} must be a finite number: {value}", field=field, value=value)
    return result


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def compute(declared_value: Any, base_rate: Any, additional_fee: Any) -> CostBreakdown:
    """
    Compute the tariff amount and landed total for a shipment.

    Args:
        declared_value: Shipment value, strictly positive
        base_rate: Fractional rate (0.05 means 5%)
        additional_fee: Flat per-shipment fee

    Returns:
        CostBreakdown with two-place HALF_UP amounts
    """
    value = to_decimal(declared_value, "declared_value")
    if value <= 0:
        raise InvalidInput("Declared value must be greater than 0", field="declared_value", value=declared_value)
    rate = to_decimal(base_rate, "base_rate")
    fee = to_decimal(additional_fee, "additional_fee")

    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        try:
            tariff_amount = round_money(value * rate)
            total_cost = round_money(value + tariff_amount + fee)
        except InvalidOperation:
            raise InvalidInput(
                f"Declared value {value} is too large to price",
                field="declared_value",
                value=declared_value
            )

    return CostBreakdown(
        tariff_amount=tariff_amount,
        additional_fee=fee,
        total_cost=total_cost
    )
