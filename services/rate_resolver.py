# WORKFLOW: Temporal tariff rule resolution with the zero-rate fallback policy.
# Used by: Tariff service calculate()
# Functions:
# 1. resolve() - Select the governing rule for (origin, destination, category, date)
# 2. apply_zero_rate_fallback() - Category-level substitution for all-zero rules
#
# Resolution flow: Covering rules (latest effective_from first) -> First candidate ->
# Zero-rate fallback -> ResolvedRate (original identity, effective values)
# The caller supplies the as-of date; defaulting to today is not done here.

from datetime import date
from decimal import Decimal
from typing import Optional
import logging

from core.config import settings
from core.exceptions import RateNotFound
from db.catalog import RateCatalog
from db.models import Country, ProductCategory, TariffRule
from schemas.response import ResolvedRate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _to_resolved(rule: TariffRule) -> ResolvedRate:
    return ResolvedRate(
        rule_id=rule.id,
        origin_code=rule.origin.code,
        destination_code=rule.destination.code,
        category_code=rule.category.code,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        base_rate=rule.base_rate,
        additional_fee=rule.additional_fee
    )


def apply_zero_rate_fallback(resolved: ResolvedRate, catalog: RateCatalog,
                             category: ProductCategory) -> ResolvedRate:
    """
    Substitute a category-level non-zero rate for an all-zero rule.

    When the resolved rule has base_rate == 0 and additional_fee == 0, the most
    recently started rule of the same category with base_rate > 0 (on any route,
    regardless of its window) supplies base_rate and additional_fee. The resolved
    rule's identity is kept. With no such rule the zeros stand.
    """
    if resolved.base_rate != ZERO or resolved.additional_fee != ZERO:
        return resolved

    fallback = catalog.find_fallback_rule(category, ZERO)
    if fallback is None:
        logger.info(f"Rule {resolved.rule_id} is all-zero and category {category.code} has no non-zero rule")
        return resolved

    logger.info(
        f"Zero-rate fallback: rule {resolved.rule_id} takes base_rate={fallback.base_rate} "
        f"additional_fee={fallback.additional_fee} from rule {fallback.id}"
    )
    return resolved.model_copy(update={
        "base_rate": fallback.base_rate,
        "additional_fee": fallback.additional_fee,
        "fallback_rule_id": fallback.id
    })


class RateResolver:
    """Selects the single governing tariff rule for a query."""

    def __init__(self, catalog: RateCatalog, fallback_enabled: Optional[bool] = None):
        self.catalog = catalog
        self.fallback_enabled = settings.zero_rate_fallback_enabled if fallback_enabled is None else fallback_enabled

    def resolve(self, origin: Country, destination: Country, category: ProductCategory,
                as_of: date) -> ResolvedRate:
        """
        Resolve the governing rule on ``as_of``.

        Raises:
            RateNotFound: no rule window covers ``as_of`` for the exact triple
        """
        rules = self.catalog.find_applicable_rules(origin, destination, category, as_of)
        if not rules:
            raise RateNotFound(
                f"No applicable tariff rate found for route {origin.code} -> {destination.code}, "
                f"category {category.code} on {as_of}",
                origin=origin.code,
                destination=destination.code,
                category=category.code,
                as_of=as_of
            )

        # Latest effective rule wins, also for overlapping windows
        selected = max(rules, key=lambda r: (r.effective_from, r.id))
        resolved = _to_resolved(selected)

        if self.fallback_enabled:
            resolved = apply_zero_rate_fallback(resolved, self.catalog, category)

        return resolved


# Factory function
def create_rate_resolver(catalog: RateCatalog) -> RateResolver:
    """Create rate resolver instance."""
    return RateResolver(catalog)
