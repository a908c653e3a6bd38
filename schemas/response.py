# WORKFLOW: Pydantic result schemas for tariff resolution, calculation and audit views.
# Used by: Tariff service, rate resolver, cost calculator, audit recorder, summary pipeline
# Schemas include:
# 1. QueryType - Audit entry types
# 2. ResolvedRate - Governing rule identity plus effective (possibly fallback) values
# 3. CostBreakdown - Rounded tariff amount and total cost
# 4. CalculationResult - Immutable calculation outcome returned to callers and audited
# 5. TariffRuleView - Flattened rule for search and mutation responses
# 6. QueryAuditView - Audit entry with parsed parameter fields
#
# All monetary values are Decimal; JSON dumps render them as strings so snapshots
# round-trip without float drift.

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class QueryType(str, Enum):
    CALCULATE = "CALCULATE"
    SEARCH = "SEARCH"
    CREATE_TARIFF = "CREATE_TARIFF"
    UPDATE_TARIFF = "UPDATE_TARIFF"
    DELETE_TARIFF = "DELETE_TARIFF"


class ResolvedRate(BaseModel):
    rule_id: int
    origin_code: str
    destination_code: str
    category_code: str
    effective_from: date
    effective_to: Optional[date] = None
    base_rate: Decimal
    additional_fee: Decimal
    fallback_rule_id: Optional[int] = None

    class Config:
        frozen = True

    @property
    def fallback_applied(self) -> bool:
        return self.fallback_rule_id is not None


class CostBreakdown(BaseModel):
    tariff_amount: Decimal
    additional_fee: Decimal
    total_cost: Decimal

    class Config:
        frozen = True


class CalculationResult(BaseModel):
    origin_code: str
    destination_code: str
    category_code: str
    effective_date: date
    declared_value: Decimal
    base_rate: Decimal
    additional_fee: Decimal
    tariff_amount: Decimal
    total_cost: Decimal
    notes: str
    ai_summary: Optional[str] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "origin_code": "SGP",
                "destination_code": "USA",
                "category_code": "ELEC",
                "effective_date": "2024-06-01",
                "declared_value": "1000.00",
                "base_rate": "0.0500",
                "additional_fee": "10.00",
                "tariff_amount": "50.00",
                "total_cost": "1060.00",
                "notes": "Total = declaredValue + (declaredValue * baseRate) + additionalFee"
            }
        }


class TariffRuleView(BaseModel):
    id: int
    origin_code: str
    destination_code: str
    category_code: str
    base_rate: Decimal
    additional_fee: Decimal
    effective_from: date
    effective_to: Optional[date] = None

    @classmethod
    def from_rule(cls, rule) -> "TariffRuleView":
        return cls(
            id=rule.id,
            origin_code=rule.origin.code,
            destination_code=rule.destination.code,
            category_code=rule.category.code,
            base_rate=rule.base_rate,
            additional_fee=rule.additional_fee,
            effective_from=rule.effective_from,
            effective_to=rule.effective_to
        )


class QueryAuditView(BaseModel):
    id: int
    type: str
    raw_params: str
    result_snapshot: Optional[str] = None
    actor_user_id: Optional[int] = None
    origin_code: Optional[str] = None
    destination_code: Optional[str] = None
    created_at: datetime

    # Parsed from raw_params
    action: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    category: Optional[str] = None
    value: Optional[str] = None
    effective_date: Optional[str] = None
