"""Shared fixtures: an in-memory SQLite catalog seeded with reference data.

Each test gets a fresh database so audit entries and rules never leak between
tests. ``make_rule`` inserts a tariff rule directly, bypassing service
validation, which lets tests set up overlapping or all-zero rows on purpose.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.catalog import RateCatalog
from db.models import Base, Country, ProductCategory, TariffRule
from db.session import init_db


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    session.add_all([
        Country(code="SGP", name="Singapore"),
        Country(code="USA", name="United States"),
        Country(code="CHN", name="China"),
        ProductCategory(code="ELEC", name="Electronics"),
        ProductCategory(code="AGRI", name="Agriculture"),
    ])
    session.commit()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def catalog(db):
    return RateCatalog(db)


@pytest.fixture
def make_rule(db):
    """Insert a tariff rule for codes; returns the stored row."""

    def _make(origin="SGP", destination="USA", category="ELEC", base_rate="0.05",
              additional_fee="10.00", effective_from=date(2024, 1, 1), effective_to=None):
        rule = TariffRule(
            origin=db.query(Country).filter_by(code=origin).one(),
            destination=db.query(Country).filter_by(code=destination).one(),
            category=db.query(ProductCategory).filter_by(code=category).one(),
            base_rate=Decimal(base_rate),
            additional_fee=Decimal(additional_fee),
            effective_from=effective_from,
            effective_to=effective_to,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make


@pytest.fixture
def country(db):
    def _get(code):
        return db.query(Country).filter_by(code=code).one()
    return _get


@pytest.fixture
def category(db):
    def _get(code):
        return db.query(ProductCategory).filter_by(code=code).one()
    return _get
