# WORKFLOW: Tariff service, the entry point callers use for quotes, searches and rule administration.
# Used by: Embedding applications (HTTP layer, scripts), tests
# Functions:
# 1. calculate() - Validate -> resolve rule -> compute cost -> optional summary -> audit
# 2. search() - Validate optional filters -> catalog query -> audit
# 3. get_rule() - Read one rule by id
# 4. create_rule() / update_rule() / delete_rule() - Validate -> catalog write -> audit
# 5. generate_summary() - Standalone summary for an existing result
# 6. list_audit_entries() - Newest-first audit views
#
# Calculation flow: Codes + value + date -> InvalidInput checks -> RateResolver ->
# CostCalculator -> SummaryPipeline (optional) -> AuditRecorder -> CalculationResult
# Validation failures raise before any catalog lookup or audit write; audit and
# summary failures never reach the caller.

from datetime import date, datetime
from typing import Any, List, Optional
import logging

from sqlalchemy.orm import Session

from core.exceptions import InvalidInput, RateNotFound
from db.audit_store import create_audit_store
from db.catalog import RateCatalog, create_rate_catalog
from db.models import Country, ProductCategory, TariffRule
from schemas.request import TariffRuleInput
from schemas.response import CalculationResult, QueryAuditView, QueryType, TariffRuleView
from services.audit_recorder import AuditRecorder, create_audit_recorder
from services.cost_calculator import compute, to_decimal
from services.rate_resolver import RateResolver
from services.summary_pipeline import SummaryPipeline, create_summary_pipeline

logger = logging.getLogger(__name__)

FORMULA_NOTE = "Total = declaredValue + (declaredValue * baseRate) + additionalFee"

_FIELD_LABELS = {
    "origin_code": "Origin country code",
    "destination_code": "Destination country code",
    "category_code": "Product category code",
}


def _require_code(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{_FIELD_LABELS[field]} is required", field=field, value=value)
    return str(value).strip().upper()


def _as_date(value: Any) -> Optional[date]:
    # datetime is a date subclass; rule windows compare calendar days only
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidInput(f"Invalid date: {value}", field="date", value=value)


def _optional_code(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return str(value).strip().upper()


class TariffService:
    """Tariff quoting, search and rule administration."""

    def __init__(self, catalog: RateCatalog, audit_recorder: AuditRecorder,
                 summary_pipeline: Optional[SummaryPipeline] = None,
                 resolver: Optional[RateResolver] = None):
        self.catalog = catalog
        self.audit_recorder = audit_recorder
        self.summary_pipeline = summary_pipeline
        self.resolver = resolver or RateResolver(catalog)

    # ----- lookups -----

    def _country(self, code: str, field: str) -> Country:
        country = self.catalog.find_country_by_code(code)
        if country is None:
            label = "origin" if field == "origin_code" else "destination"
            raise InvalidInput(f"Unknown {label} country code: {code}", field=field, value=code)
        return country

    def _category(self, code: str) -> ProductCategory:
        category = self.catalog.find_category_by_code(code)
        if category is None:
            raise InvalidInput(f"Unknown product category code: {code}", field="category_code", value=code)
        return category

    def _existing_rule(self, rule_id: int) -> TariffRule:
        rule = self.catalog.get_rule(rule_id)
        if rule is None:
            raise RateNotFound(f"Tariff not found with id {rule_id}", rule_id=rule_id)
        return rule

    # ----- calculation -----

    def calculate(self, origin_code: Optional[str], destination_code: Optional[str],
                  category_code: Optional[str], declared_value: Any,
                  as_of: Any = None, include_summary: bool = False,
                  actor: Optional[int] = None) -> CalculationResult:
        """
        Quote the landed cost of a shipment.

        Args:
            origin_code: Origin country code
            destination_code: Destination country code
            category_code: Product category code
            declared_value: Shipment value, strictly positive
            as_of: Date (or ISO string) the rule must be in force on, today if omitted
            include_summary: Attach an AI summary (one bounded LLM call)
            actor: Authenticated user id for the audit entry

        Returns:
            CalculationResult

        Raises:
            InvalidInput: missing/unknown codes or non-positive declared value
            RateNotFound: no rule covers the route, category and date
        """
        origin_code = _require_code(origin_code, "origin_code")
        destination_code = _require_code(destination_code, "destination_code")
        category_code = _require_code(category_code, "category_code")
        value = to_decimal(declared_value, "declared_value")
        if value <= 0:
            raise InvalidInput("Declared value must be greater than 0", field="declared_value", value=declared_value)

        effective_date = _as_date(as_of) or date.today()
        logger.info(
            f"Calculate request: {origin_code}->{destination_code}, category={category_code}, "
            f"value={value}, date={effective_date}"
        )

        origin = self._country(origin_code, "origin_code")
        destination = self._country(destination_code, "destination_code")
        category = self._category(category_code)

        resolved = self.resolver.resolve(origin, destination, category, effective_date)
        cost = compute(value, resolved.base_rate, resolved.additional_fee)

        notes = FORMULA_NOTE
        if resolved.fallback_applied:
            notes = (
                f"{FORMULA_NOTE}. Rule {resolved.rule_id} has zero rate and fee; "
                f"category rate taken from rule {resolved.fallback_rule_id}"
            )

        result = CalculationResult(
            origin_code=origin.code,
            destination_code=destination.code,
            category_code=category.code,
            effective_date=effective_date,
            declared_value=value,
            base_rate=resolved.base_rate,
            additional_fee=cost.additional_fee,
            tariff_amount=cost.tariff_amount,
            total_cost=cost.total_cost,
            notes=notes
        )

        if include_summary:
            result = result.model_copy(update={"ai_summary": self.generate_summary(result)})

        self.audit_recorder.record(
            QueryType.CALCULATE,
            {
                "origin": origin.code,
                "destination": destination.code,
                "category": category.code,
                "declared_value": str(value),
                "date": effective_date.isoformat(),
                "rule_id": resolved.rule_id,
                "fallback_rule_id": resolved.fallback_rule_id,
                "include_summary": include_summary,
            },
            result,
            origin_code=origin.code,
            destination_code=destination.code,
            actor=actor
        )
        return result

    def generate_summary(self, result: CalculationResult) -> str:
        """Sanitized HTML summary for ``result``; never raises."""
        if self.summary_pipeline is None:
            self.summary_pipeline = create_summary_pipeline()
        return self.summary_pipeline.summarize(result)

    # ----- search and read -----

    def search(self, origin_code: Optional[str] = None, destination_code: Optional[str] = None,
               category_code: Optional[str] = None, actor: Optional[int] = None) -> List[TariffRuleView]:
        """
        List rules matching the given filters; blank filters are ignored.

        Raises:
            InvalidInput: a given code is unknown
        """
        origin_code = _optional_code(origin_code)
        destination_code = _optional_code(destination_code)
        category_code = _optional_code(category_code)

        origin = self._country(origin_code, "origin_code") if origin_code else None
        destination = self._country(destination_code, "destination_code") if destination_code else None
        category = self._category(category_code) if category_code else None

        views = [TariffRuleView.from_rule(rule) for rule in self.catalog.search(origin, destination, category)]
        logger.info(f"Search {origin_code}/{destination_code}/{category_code} returned {len(views)} rules")

        self.audit_recorder.record(
            QueryType.SEARCH,
            {"origin": origin_code, "destination": destination_code, "category": category_code},
            views,
            origin_code=origin_code,
            destination_code=destination_code,
            actor=actor
        )
        return views

    def get_rule(self, rule_id: int) -> TariffRuleView:
        return TariffRuleView.from_rule(self._existing_rule(rule_id))

    # ----- administration -----

    def _validated_fields(self, payload: TariffRuleInput, exclude_id: Optional[int] = None) -> dict:
        origin = self._country(_require_code(payload.origin_code, "origin_code"), "origin_code")
        destination = self._country(_require_code(payload.destination_code, "destination_code"), "destination_code")
        category = self._category(_require_code(payload.category_code, "category_code"))

        base_rate = to_decimal(payload.base_rate, "base_rate")
        if base_rate < 0:
            raise InvalidInput("Base rate must not be negative", field="base_rate", value=payload.base_rate)
        additional_fee = to_decimal(payload.additional_fee, "additional_fee")
        if additional_fee < 0:
            raise InvalidInput("Additional fee must not be negative", field="additional_fee",
                               value=payload.additional_fee)

        if payload.effective_from is None:
            raise InvalidInput("Effective from date is required", field="effective_from")
        if payload.effective_to is not None and payload.effective_to < payload.effective_from:
            raise InvalidInput(
                f"Effective to date {payload.effective_to} is before effective from date {payload.effective_from}",
                field="effective_to",
                value=payload.effective_to
            )

        if self.catalog.find_duplicate(origin, destination, category, payload.effective_from, exclude_id):
            raise InvalidInput(
                f"A tariff rule for {origin.code} -> {destination.code}, category {category.code} "
                f"starting {payload.effective_from} already exists",
                field="effective_from",
                value=payload.effective_from
            )

        return {
            "origin": origin,
            "destination": destination,
            "category": category,
            "base_rate": base_rate,
            "additional_fee": additional_fee,
            "effective_from": payload.effective_from,
            "effective_to": payload.effective_to,
        }

    def create_rule(self, payload: TariffRuleInput, actor: Optional[int] = None) -> TariffRuleView:
        """Create a tariff rule. Raises InvalidInput on any invalid field."""
        fields = self._validated_fields(payload)
        saved = self.catalog.save(TariffRule(**fields))
        view = TariffRuleView.from_rule(saved)
        logger.info(f"Created tariff rule {view.id} {view.origin_code}->{view.destination_code} {view.category_code}")

        self.audit_recorder.record(
            QueryType.CREATE_TARIFF,
            {"id": view.id, **payload.model_dump(mode="json")},
            view,
            origin_code=view.origin_code,
            destination_code=view.destination_code,
            actor=actor
        )
        return view

    def update_rule(self, rule_id: int, payload: TariffRuleInput, actor: Optional[int] = None) -> TariffRuleView:
        """Replace all fields of rule ``rule_id``. Raises RateNotFound or InvalidInput."""
        existing = self._existing_rule(rule_id)
        fields = self._validated_fields(payload, exclude_id=rule_id)
        for name, value in fields.items():
            setattr(existing, name, value)
        saved = self.catalog.save(existing)
        view = TariffRuleView.from_rule(saved)
        logger.info(f"Updated tariff rule {view.id}")

        self.audit_recorder.record(
            QueryType.UPDATE_TARIFF,
            {"id": view.id, **payload.model_dump(mode="json")},
            view,
            origin_code=view.origin_code,
            destination_code=view.destination_code,
            actor=actor
        )
        return view

    def delete_rule(self, rule_id: int, actor: Optional[int] = None) -> None:
        """Delete rule ``rule_id``. Raises RateNotFound if it does not exist."""
        view = TariffRuleView.from_rule(self._existing_rule(rule_id))
        self.catalog.delete(rule_id)
        logger.info(f"Deleted tariff rule {rule_id}")

        self.audit_recorder.record(
            QueryType.DELETE_TARIFF,
            {"id": rule_id},
            view,
            origin_code=view.origin_code,
            destination_code=view.destination_code,
            actor=actor
        )

    # ----- audit -----

    def list_audit_entries(self, limit: int = 50) -> List[QueryAuditView]:
        return self.audit_recorder.list_recent(limit)


# Factory function
def create_tariff_service(db: Session, summary_pipeline: Optional[SummaryPipeline] = None) -> TariffService:
    """Create tariff service instance bound to one database session."""
    catalog = create_rate_catalog(db)
    recorder = create_audit_recorder(create_audit_store(db))
    return TariffService(catalog, recorder, summary_pipeline)
