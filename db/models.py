# WORKFLOW: Database models for the tariff catalog and the query audit trail.
# Used by: Rate catalog, audit store, tariff service, tests
# Models represent:
# 1. countries - Country reference data keyed by 3-letter code
# 2. product_categories - Product category reference data keyed by short code
# 3. tariff_rules - Rate records for one (origin, destination, category) over a date window
# 4. query_audit_log - Append-only audit entries for calculations, searches and mutations
#
# Data flow: Administrative writes -> tariff_rules -> Rate resolution -> Audit entries

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class Country(Base):
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(3), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(16), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)


class TariffRule(Base):
    __tablename__ = "tariff_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    origin_id = Column(Integer, ForeignKey("countries.id"), nullable=False)
    destination_id = Column(Integer, ForeignKey("countries.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("product_categories.id"), nullable=False)
    base_rate = Column(Numeric(10, 4), nullable=False)  # fraction, 0.0500 = 5%
    additional_fee = Column(Numeric(12, 2), nullable=False)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)  # NULL = open-ended

    # Relationships
    origin = relationship("Country", foreign_keys=[origin_id], lazy="joined")
    destination = relationship("Country", foreign_keys=[destination_id], lazy="joined")
    category = relationship("ProductCategory", lazy="joined")

    __table_args__ = (
        UniqueConstraint('origin_id', 'destination_id', 'category_id', 'effective_from',
                         name='uq_tariff_rule_route_start'),
        Index('idx_rule_route', 'origin_id', 'destination_id', 'category_id'),
        Index('idx_rule_validity', 'effective_from', 'effective_to'),
        Index('idx_rule_category_rate', 'category_id', 'base_rate'),
    )


class QueryAuditEntry(Base):
    __tablename__ = "query_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_user_id = Column(Integer, nullable=True)
    type = Column(String(32), nullable=False)
    params_snapshot = Column(String(2048), nullable=False)
    result_snapshot = Column(Text, nullable=True)
    origin_code = Column(String(3), nullable=True)
    destination_code = Column(String(3), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_audit_created', 'created_at'),
        Index('idx_audit_type', 'type'),
    )
