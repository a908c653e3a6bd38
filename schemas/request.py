# WORKFLOW: Pydantic input schemas for administrative tariff rule mutations.
# Used by: Tariff service create_rule()/update_rule(), tests
# Schemas include:
# 1. TariffRuleInput - Route codes, rate, fee and effective window for a rule
#
# Field shape is checked here; business validation (known codes, non-negative
# amounts, ordered window, uniqueness) happens in the tariff service so every
# failure surfaces as InvalidInput with the offending field.

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class TariffRuleInput(BaseModel):
    """Payload for creating or replacing a tariff rule."""
    origin_code: Optional[str] = Field(None, description="Origin country code")
    destination_code: Optional[str] = Field(None, description="Destination country code")
    category_code: Optional[str] = Field(None, description="Product category code")
    base_rate: Optional[Decimal] = Field(None, description="Fractional rate, 0.05 = 5%")
    additional_fee: Decimal = Field(Decimal("0"), description="Flat per-shipment fee")
    effective_from: Optional[date] = Field(None, description="First day the rule applies")
    effective_to: Optional[date] = Field(None, description="Last day the rule applies, open-ended if null")
