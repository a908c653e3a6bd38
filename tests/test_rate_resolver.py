"""Tests for rate resolution and the zero-rate fallback policy."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from core.exceptions import RateNotFound
from services.rate_resolver import RateResolver, apply_zero_rate_fallback


def _resolve(catalog, country, category, as_of, origin="SGP", destination="USA", cat="ELEC", **kwargs):
    resolver = RateResolver(catalog, **kwargs)
    return resolver.resolve(country(origin), country(destination), category(cat), as_of)


class TestWindowSelection:

    def test_single_open_ended_rule(self, catalog, country, category, make_rule):
        rule = make_rule()

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.rule_id == rule.id
        assert resolved.base_rate == Decimal("0.05")
        assert resolved.additional_fee == Decimal("10.00")
        assert resolved.fallback_rule_id is None
        assert not resolved.fallback_applied

    def test_latest_started_window_wins_on_overlap(self, catalog, country, category, make_rule):
        make_rule(base_rate="0.05", effective_from=date(2023, 1, 1))
        newer = make_rule(base_rate="0.08", effective_from=date(2024, 3, 1), effective_to=date(2024, 12, 31))

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.rule_id == newer.id
        assert resolved.base_rate == Decimal("0.08")

    def test_expired_newer_window_is_skipped(self, catalog, country, category, make_rule):
        older = make_rule(base_rate="0.05", effective_from=date(2023, 1, 1))
        make_rule(base_rate="0.08", effective_from=date(2024, 3, 1), effective_to=date(2024, 5, 31))

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.rule_id == older.id

    def test_window_bounds_are_inclusive(self, catalog, country, category, make_rule):
        rule = make_rule(effective_from=date(2024, 1, 1), effective_to=date(2024, 1, 31))

        assert _resolve(catalog, country, category, date(2024, 1, 1)).rule_id == rule.id
        assert _resolve(catalog, country, category, date(2024, 1, 31)).rule_id == rule.id
        with pytest.raises(RateNotFound):
            _resolve(catalog, country, category, date(2024, 2, 1))
        with pytest.raises(RateNotFound):
            _resolve(catalog, country, category, date(2023, 12, 31))

    def test_other_routes_do_not_match(self, catalog, country, category, make_rule):
        make_rule(origin="CHN", destination="USA")
        make_rule(origin="SGP", destination="USA", category="AGRI")

        with pytest.raises(RateNotFound) as exc_info:
            _resolve(catalog, country, category, date(2024, 6, 1))

        error = exc_info.value
        assert (error.origin, error.destination, error.category) == ("SGP", "USA", "ELEC")
        assert error.as_of == date(2024, 6, 1)
        assert "SGP -> USA" in str(error)

    def test_identical_start_dates_resolve_stably(self):
        # The unique constraint prevents this in the table; a stub catalog returns both rows
        def rule(rule_id, rate):
            return SimpleNamespace(
                id=rule_id, origin=SimpleNamespace(code="SGP"), destination=SimpleNamespace(code="USA"),
                category=SimpleNamespace(code="ELEC"), effective_from=date(2024, 1, 1), effective_to=None,
                base_rate=Decimal(rate), additional_fee=Decimal("0.00")
            )

        stub = SimpleNamespace(find_applicable_rules=lambda *args: [rule(3, "0.05"), rule(7, "0.07")])
        resolver = RateResolver(stub, fallback_enabled=False)
        keys = (SimpleNamespace(code="SGP"), SimpleNamespace(code="USA"), SimpleNamespace(code="ELEC"))

        picks = {resolver.resolve(*keys, date(2024, 6, 1)).rule_id for _ in range(3)}

        assert picks == {7}


class TestZeroRateFallback:

    def test_zero_rule_takes_latest_category_rate_from_any_route(self, catalog, country, category, make_rule):
        zero = make_rule(base_rate="0", additional_fee="0", effective_from=date(2024, 1, 1))
        make_rule(origin="CHN", destination="USA", base_rate="0.03", additional_fee="5.00",
                  effective_from=date(2022, 1, 1))
        latest = make_rule(origin="CHN", destination="SGP", base_rate="0.07", additional_fee="2.50",
                           effective_from=date(2023, 6, 1))

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.rule_id == zero.id
        assert resolved.origin_code == "SGP"
        assert resolved.destination_code == "USA"
        assert resolved.base_rate == Decimal("0.07")
        assert resolved.additional_fee == Decimal("2.50")
        assert resolved.fallback_rule_id == latest.id
        assert resolved.fallback_applied

    def test_fallback_is_scoped_to_category(self, catalog, country, category, make_rule):
        make_rule(base_rate="0", additional_fee="0")
        make_rule(category="AGRI", base_rate="0.20", additional_fee="1.00")

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.base_rate == Decimal("0")
        assert resolved.additional_fee == Decimal("0")
        assert resolved.fallback_rule_id is None

    def test_zero_rate_with_fee_is_kept(self, catalog, country, category, make_rule):
        rule = make_rule(base_rate="0", additional_fee="15.00")
        make_rule(origin="CHN", base_rate="0.10", additional_fee="1.00")

        resolved = _resolve(catalog, country, category, date(2024, 6, 1))

        assert resolved.rule_id == rule.id
        assert resolved.base_rate == Decimal("0")
        assert resolved.additional_fee == Decimal("15.00")
        assert resolved.fallback_rule_id is None

    def test_fallback_can_be_switched_off(self, catalog, country, category, make_rule):
        make_rule(base_rate="0", additional_fee="0")
        make_rule(origin="CHN", base_rate="0.10", additional_fee="1.00")

        resolved = _resolve(catalog, country, category, date(2024, 6, 1), fallback_enabled=False)

        assert resolved.base_rate == Decimal("0")
        assert resolved.fallback_rule_id is None

    def test_policy_function_leaves_non_zero_rules_alone(self, catalog, country, category, make_rule):
        make_rule(origin="CHN", base_rate="0.10", additional_fee="1.00")
        rule = make_rule(base_rate="0.04", additional_fee="0")
        resolved = _resolve(catalog, country, category, date(2024, 6, 1), fallback_enabled=False)

        assert apply_zero_rate_fallback(resolved, catalog, category("ELEC")) is resolved
        assert resolved.rule_id == rule.id
