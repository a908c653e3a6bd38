# WORKFLOW: Rate catalog backed by the tariff_rules table.
# Used by: Rate resolver, tariff service (search and administrative mutations)
# Functions:
# 1. find_country_by_code() / find_category_by_code() - Reference lookups by natural key
# 2. find_applicable_rules() - Rules whose window covers a date, latest start first
# 3. find_fallback_rule() - Latest rule of a category with base_rate above a threshold
# 4. search() - Optional-filter listing of rules
# 5. get_rule() / find_duplicate() / save() / delete() - Administrative access
#
# Query flow: Codes -> Reference rows -> Rule queries ordered by effective_from DESC, id DESC
# The id tie-break keeps repeated reads stable when two rules share a start date.

from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from db.models import Country, ProductCategory, TariffRule

logger = logging.getLogger(__name__)


class RateCatalog:
    """Read and write access to countries, categories and tariff rules."""

    def __init__(self, db: Session):
        self.db = db

    def find_country_by_code(self, code: str) -> Optional[Country]:
        return self.db.query(Country).filter(Country.code == code).first()

    def find_category_by_code(self, code: str) -> Optional[ProductCategory]:
        return self.db.query(ProductCategory).filter(ProductCategory.code == code).first()

    def find_applicable_rules(self, origin: Country, destination: Country,
                              category: ProductCategory, as_of: date) -> List[TariffRule]:
        """Rules for the exact triple whose window covers ``as_of``, latest start first."""
        rules = self.db.query(TariffRule).filter(
            and_(
                TariffRule.origin_id == origin.id,
                TariffRule.destination_id == destination.id,
                TariffRule.category_id == category.id,
                TariffRule.effective_from <= as_of,
                or_(
                    TariffRule.effective_to.is_(None),
                    TariffRule.effective_to >= as_of
                )
            )
        ).order_by(TariffRule.effective_from.desc(), TariffRule.id.desc()).all()

        logger.debug(
            f"Found {len(rules)} applicable rules for {origin.code}->{destination.code} "
            f"{category.code} on {as_of}"
        )
        return rules

    def find_fallback_rule(self, category: ProductCategory,
                           min_base_rate: Decimal = Decimal("0")) -> Optional[TariffRule]:
        """Latest rule of ``category`` on any route with base_rate above ``min_base_rate``."""
        return self.db.query(TariffRule).filter(
            and_(
                TariffRule.category_id == category.id,
                TariffRule.base_rate > min_base_rate
            )
        ).order_by(TariffRule.effective_from.desc(), TariffRule.id.desc()).first()

    def search(self, origin: Optional[Country] = None, destination: Optional[Country] = None,
               category: Optional[ProductCategory] = None) -> List[TariffRule]:
        query = self.db.query(TariffRule)
        if origin is not None:
            query = query.filter(TariffRule.origin_id == origin.id)
        if destination is not None:
            query = query.filter(TariffRule.destination_id == destination.id)
        if category is not None:
            query = query.filter(TariffRule.category_id == category.id)
        return query.order_by(TariffRule.effective_from.desc(), TariffRule.id.desc()).all()

    def get_rule(self, rule_id: int) -> Optional[TariffRule]:
        return self.db.get(TariffRule, rule_id)

    def find_duplicate(self, origin: Country, destination: Country, category: ProductCategory,
                       effective_from: date, exclude_id: Optional[int] = None) -> Optional[TariffRule]:
        """Rule sharing the uniqueness key (route, category, effective_from), if any."""
        query = self.db.query(TariffRule).filter(
            and_(
                TariffRule.origin_id == origin.id,
                TariffRule.destination_id == destination.id,
                TariffRule.category_id == category.id,
                TariffRule.effective_from == effective_from
            )
        )
        if exclude_id is not None:
            query = query.filter(TariffRule.id != exclude_id)
        return query.first()

    def save(self, rule: TariffRule) -> TariffRule:
        try:
            self.db.add(rule)
            self.db.commit()
            self.db.refresh(rule)
            return rule
        except Exception as e:
            logger.error(f"Failed to save tariff rule: {e}")
            self.db.rollback()
            raise

    def delete(self, rule_id: int) -> None:
        try:
            rule = self.db.get(TariffRule, rule_id)
            if rule is not None:
                self.db.delete(rule)
                self.db.commit()
        except Exception as e:
            logger.error(f"Failed to delete tariff rule {rule_id}: {e}")
            self.db.rollback()
            raise


# Factory function
def create_rate_catalog(db: Session) -> RateCatalog:
    """Create rate catalog instance."""
    return RateCatalog(db)
