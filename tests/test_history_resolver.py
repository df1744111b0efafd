"""
Tests for History Resolver

Point-in-time lookups over effective-dated item cost and configuration logs:
- Generic resolution (in force / before the log / empty log / ties)
- Item cost resolution with live catalog fallback
- Configuration resolution, whole-date and month-scoped
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from profitability_models import ItemCostRecord, LiveItem, ConfigRecord, LiveConfig
from history_resolver import (
    resolve_effective,
    sort_effective_desc,
    ItemCostResolver,
    resolve_item_cost,
    has_resolvable_cost,
    resolve_config,
    resolve_config_for_month,
)


def cost(description, effective_date, material="0", labor="0", recorded_at=None):
    return ItemCostRecord(
        item_key=description,
        description=description,
        effective_date=effective_date,
        recorded_at=recorded_at,
        material_unit_cost=Decimal(material),
        labor_unit_cost=Decimal(labor),
    )


def config(effective_date, fixed="0", material_tax="0", service_tax="0", recorded_at=None):
    return ConfigRecord(
        effective_date=effective_date,
        recorded_at=recorded_at,
        monthly_fixed_cost=Decimal(fixed),
        material_tax_percent=Decimal(material_tax),
        service_tax_percent=Decimal(service_tax),
    )


# =============================================================================
# TEMPORAL VALUE RESOLVER
# =============================================================================

class TestResolveEffective:
    """Tests for resolve_effective"""

    @pytest.fixture
    def series(self):
        # Deliberately unsorted
        return [
            config(date(2024, 6, 1), fixed="300"),
            config(date(2024, 1, 1), fixed="100"),
            config(date(2024, 3, 1), fixed="200"),
        ]

    def test_returns_record_in_force(self, series):
        """d2 <= r < d3 resolves to the d2 record"""
        result = resolve_effective(series, date(2024, 4, 15))
        assert result.monthly_fixed_cost == Decimal("200")

    def test_reference_on_effective_date_is_inclusive(self, series):
        result = resolve_effective(series, date(2024, 3, 1))
        assert result.monthly_fixed_cost == Decimal("200")

    def test_reference_after_latest_record(self, series):
        result = resolve_effective(series, date(2030, 1, 1))
        assert result.monthly_fixed_cost == Decimal("300")

    def test_reference_before_whole_log_returns_oldest(self, series):
        """Before any logged change, the oldest record was in force"""
        result = resolve_effective(series, date(2023, 12, 31))
        assert result is not None
        assert result.monthly_fixed_cost == Decimal("100")

    def test_empty_series_returns_none(self):
        assert resolve_effective([], date(2024, 1, 1)) is None

    def test_missing_reference_date_raises(self, series):
        """A missing date is a caller error, never silently replaced by today"""
        with pytest.raises(ValueError):
            resolve_effective(series, None)

    def test_non_date_reference_raises(self, series):
        with pytest.raises(ValueError):
            resolve_effective(series, "2024-01-01")

    def test_datetime_reference_is_truncated_to_date(self, series):
        result = resolve_effective(series, datetime(2024, 3, 1, 23, 59))
        assert result.monthly_fixed_cost == Decimal("200")

    def test_input_is_not_mutated(self, series):
        before = list(series)
        resolve_effective(series, date(2024, 4, 1))
        assert series == before


class TestTieBreaking:
    """Records sharing an effective date: latest-inserted wins"""

    def test_later_position_wins_without_recorded_at(self):
        series = [
            config(date(2024, 1, 1), fixed="100"),
            config(date(2024, 1, 1), fixed="150"),
        ]
        assert resolve_effective(series, date(2024, 2, 1)).monthly_fixed_cost == Decimal("150")

    def test_later_recorded_at_wins_over_position(self):
        series = [
            config(date(2024, 1, 1), fixed="150", recorded_at=datetime(2024, 1, 2, 9, 0)),
            config(date(2024, 1, 1), fixed="100", recorded_at=datetime(2024, 1, 1, 9, 0)),
        ]
        assert resolve_effective(series, date(2024, 2, 1)).monthly_fixed_cost == Decimal("150")

    def test_tie_on_oldest_date_before_log(self):
        series = [
            config(date(2024, 1, 1), fixed="100"),
            config(date(2024, 1, 1), fixed="150"),
            config(date(2024, 5, 1), fixed="900"),
        ]
        assert resolve_effective(series, date(2023, 1, 1)).monthly_fixed_cost == Decimal("150")

    def test_sort_is_deterministic(self):
        series = [
            config(date(2024, 1, 1), fixed="1"),
            config(date(2024, 3, 1), fixed="3"),
            config(date(2024, 1, 1), fixed="2"),
        ]
        ordered = sort_effective_desc(series)
        assert [r.monthly_fixed_cost for r in ordered] == [Decimal("3"), Decimal("2"), Decimal("1")]


# =============================================================================
# ITEM COST RESOLVER
# =============================================================================

class TestItemCostResolver:
    """Tests for ItemCostResolver and the one-off helpers"""

    def test_resolves_cost_at_issue_date(self):
        """Extinguisher bought in March uses the January cost"""
        history = [
            cost("Extinguisher 6kg", date(2024, 1, 1), material="80"),
            cost("Extinguisher 6kg", date(2024, 6, 1), material="100"),
        ]
        result = resolve_item_cost("Extinguisher 6kg", date(2024, 3, 15), history, [])
        assert result.material_unit_cost == Decimal("80")
        assert result.labor_unit_cost == Decimal("0")

    def test_key_is_case_and_whitespace_insensitive(self):
        history = [cost("Extinguisher 6kg", date(2024, 1, 1), material="80")]
        result = resolve_item_cost("  EXTINGUISHER 6KG ", date(2024, 3, 15), history, [])
        assert result.material_unit_cost == Decimal("80")

    def test_other_items_history_is_ignored(self):
        history = [
            cost("Hose", date(2024, 1, 1), material="50"),
            cost("Extinguisher 6kg", date(2024, 1, 1), material="80"),
        ]
        resolver = ItemCostResolver(history, [])
        assert resolver.resolve("hose", date(2024, 2, 1)).material_unit_cost == Decimal("50")

    def test_resolver_method_normalizes_key(self):
        """Raw descriptions resolve the same through the class and the helper"""
        history = [cost("Hose", date(2024, 1, 1), material="5")]
        resolver = ItemCostResolver(history, [])

        assert resolver.resolve("Hose ", date(2024, 2, 1)).material_unit_cost == Decimal("5")
        assert resolver.has_resolvable_cost("  HOSE", date(2024, 2, 1)) is True

    def test_empty_history_falls_back_to_live_item(self):
        live = [LiveItem(item_key="Hose", material_unit_cost=Decimal("12"), labor_unit_cost=Decimal("3"))]
        result = resolve_item_cost("hose", date(2024, 2, 1), [], live)
        assert result.material_unit_cost == Decimal("12")
        assert result.labor_unit_cost == Decimal("3")

    def test_zero_cost_history_falls_back_to_live_item(self):
        history = [cost("Hose", date(2024, 1, 1), material="0", labor="0")]
        live = [LiveItem(item_key="hose", material_unit_cost=Decimal("12"))]
        result = resolve_item_cost("hose", date(2024, 2, 1), history, live)
        assert result.material_unit_cost == Decimal("12")

    def test_labor_only_cost_counts_as_cost(self):
        history = [cost("Installation", date(2024, 1, 1), labor="40")]
        assert has_resolvable_cost("installation", date(2024, 2, 1), history, []) is True

    def test_unknown_item_resolves_to_zero(self):
        result = resolve_item_cost("unknown", date(2024, 2, 1), [], [])
        assert result.material_unit_cost == Decimal("0")
        assert result.labor_unit_cost == Decimal("0")
        assert has_resolvable_cost("unknown", date(2024, 2, 1), [], []) is False

    def test_zero_history_and_no_live_item_is_not_resolvable(self):
        history = [cost("Hose", date(2024, 1, 1))]
        assert has_resolvable_cost("hose", date(2024, 2, 1), history, []) is False


# =============================================================================
# CONFIGURATION RESOLVER
# =============================================================================

class TestResolveConfig:
    """Tests for resolve_config"""

    def test_resolves_history_at_reference_date(self):
        history = [
            config(date(2024, 1, 1), material_tax="10", service_tax="5"),
            config(date(2024, 7, 1), material_tax="12", service_tax="6"),
        ]
        result = resolve_config(date(2024, 3, 15), history, None)
        assert result.material_tax_percent == Decimal("10")
        assert result.service_tax_percent == Decimal("5")

    def test_empty_history_uses_live_config(self):
        live = LiveConfig(monthly_fixed_cost=Decimal("2500"), material_tax_percent=Decimal("8"))
        result = resolve_config(date(2024, 3, 15), [], live)
        assert result.monthly_fixed_cost == Decimal("2500")
        assert result.material_tax_percent == Decimal("8")

    def test_zero_values_in_history_are_not_replaced_by_live(self):
        """Zero tax is a legitimate configuration"""
        history = [config(date(2024, 1, 1), material_tax="0", service_tax="0")]
        live = LiveConfig(material_tax_percent=Decimal("8"), service_tax_percent=Decimal("4"))
        result = resolve_config(date(2024, 3, 15), history, live)
        assert result.material_tax_percent == Decimal("0")
        assert result.service_tax_percent == Decimal("0")

    def test_no_history_and_no_live_config_is_all_zero(self):
        result = resolve_config(date(2024, 3, 15), [], None)
        assert result.monthly_fixed_cost == Decimal("0")
        assert result.material_tax_percent == Decimal("0")


class TestResolveConfigForMonth:
    """Tests for resolve_config_for_month"""

    def test_change_inside_month_applies_to_whole_month(self):
        history = [
            config(date(2024, 1, 1), fixed="3000"),
            config(date(2024, 3, 20), fixed="3500"),
        ]
        result = resolve_config_for_month(date(2024, 3, 1), date(2024, 3, 31), history, None)
        assert result.monthly_fixed_cost == Decimal("3500")

    def test_most_recent_change_inside_month_wins(self):
        history = [
            config(date(2024, 3, 5), fixed="3200"),
            config(date(2024, 3, 25), fixed="3400"),
        ]
        result = resolve_config_for_month(date(2024, 3, 1), date(2024, 3, 31), history, None)
        assert result.monthly_fixed_cost == Decimal("3400")

    def test_without_change_uses_value_at_month_end(self):
        history = [
            config(date(2024, 1, 1), fixed="3000"),
            config(date(2024, 5, 1), fixed="4000"),
        ]
        result = resolve_config_for_month(date(2024, 3, 1), date(2024, 3, 31), history, None)
        assert result.monthly_fixed_cost == Decimal("3000")

    def test_month_before_whole_log_uses_oldest(self):
        history = [config(date(2024, 5, 1), fixed="3000")]
        result = resolve_config_for_month(date(2024, 4, 1), date(2024, 4, 30), history, None)
        assert result.monthly_fixed_cost == Decimal("3000")

    def test_empty_history_uses_live_config(self):
        live = LiveConfig(monthly_fixed_cost=Decimal("1800"))
        result = resolve_config_for_month(date(2024, 4, 1), date(2024, 4, 30), [], live)
        assert result.monthly_fixed_cost == Decimal("1800")
