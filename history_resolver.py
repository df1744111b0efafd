"""
Quote Profitability - History Resolver
Point-in-time lookups over effective-dated history logs.

Item costs and the global configuration change over time. Every change is
appended to a history log as a record with an effective date. To price a past
quote we need the values that were in force on its issue date:

1. Sort the series by effective_date, most recent first
2. Take the first record with effective_date <= reference date
3. If the reference date precedes every record, take the OLDEST record:
   it holds the values that were in force before any change was logged
4. If the series is empty, the caller falls back to the live value

Records sharing an effective_date are ordered by recorded_at, then by their
position in the input; the latest-inserted record wins.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from profitability_models import (
    EffectiveDatedRecord,
    ItemCostRecord,
    LiveItem,
    ConfigRecord,
    LiveConfig,
    ResolvedCost,
    ResolvedConfig,
    normalize_item_key,
)

R = TypeVar("R", bound=EffectiveDatedRecord)

ZERO_COST = ResolvedCost(material_unit_cost=Decimal("0"), labor_unit_cost=Decimal("0"))


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def require_date(value, name: str = "reference_date") -> date:
    """Validate a reference date. Never substitutes today for a missing date."""
    if value is None:
        raise ValueError(f"{name} is required")
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise ValueError(f"{name} must be a date, got {type(value).__name__}")
    return value


def _recorded_sort_value(record: EffectiveDatedRecord) -> float:
    if record.recorded_at is None:
        return float("-inf")
    return record.recorded_at.timestamp()


def sort_effective_desc(series: Iterable[R]) -> List[R]:
    """Sort records most recent first, latest-inserted first among equal dates"""
    indexed = list(enumerate(series))
    indexed.sort(
        key=lambda pair: (pair[1].effective_date, _recorded_sort_value(pair[1]), pair[0]),
        reverse=True
    )
    return [record for _, record in indexed]


def _pick_effective(ordered: Sequence[R], reference_date: date) -> Optional[R]:
    """Resolve over a series already sorted by sort_effective_desc"""
    if not ordered:
        return None

    for record in ordered:
        if record.effective_date <= reference_date:
            return record

    # Reference date precedes the whole log: the oldest record was in force.
    # Among records tied on the oldest date, keep the tie-break winner.
    oldest_date = ordered[-1].effective_date
    for record in ordered:
        if record.effective_date == oldest_date:
            return record
    return ordered[-1]


# ============================================================================
# TEMPORAL VALUE RESOLVER
# ============================================================================

def resolve_effective(series: Iterable[R], reference_date: date) -> Optional[R]:
    """
    Return the record in force on reference_date.

    Args:
        series: Effective-dated records of one key, in any order
        reference_date: Date the lookup is evaluated at

    Returns:
        The record in force, the oldest record if reference_date precedes
        the whole series, or None for an empty series
    """
    reference_date = require_date(reference_date)
    return _pick_effective(sort_effective_desc(series), reference_date)


# ============================================================================
# ITEM COST RESOLVER
# ============================================================================

class ItemCostResolver:
    """
    Resolves per-item unit costs over one snapshot of the cost history and
    the live catalog. History is grouped by item key and sorted once.
    """

    def __init__(self, historical_records: Iterable[ItemCostRecord], live_items: Iterable[LiveItem]):
        grouped: Dict[str, List[ItemCostRecord]] = {}
        for record in historical_records:
            grouped.setdefault(record.item_key, []).append(record)
        self._history = {key: sort_effective_desc(records) for key, records in grouped.items()}
        self._live = {item.item_key: item for item in live_items}

    def _live_cost(self, item_key: str) -> ResolvedCost:
        item = self._live.get(item_key)
        if item is None:
            return ZERO_COST
        return ResolvedCost(
            material_unit_cost=item.material_unit_cost,
            labor_unit_cost=item.labor_unit_cost
        )

    def resolve(self, item_key: str, reference_date: date) -> ResolvedCost:
        """
        Unit costs of item_key in force on reference_date.

        A resolved history record with both costs at zero does not count as a
        cost basis; the live catalog is used instead.
        """
        item_key = normalize_item_key(item_key)
        reference_date = require_date(reference_date)
        record = _pick_effective(self._history.get(item_key, ()), reference_date)
        if record is not None:
            cost = ResolvedCost(
                material_unit_cost=record.material_unit_cost,
                labor_unit_cost=record.labor_unit_cost
            )
            if cost.has_cost:
                return cost
        return self._live_cost(item_key)

    def has_resolvable_cost(self, item_key: str, reference_date: date) -> bool:
        return self.resolve(item_key, reference_date).has_cost


def resolve_item_cost(
    item_key: str,
    reference_date: date,
    historical_records: Iterable[ItemCostRecord],
    live_items: Iterable[LiveItem]
) -> ResolvedCost:
    """One-off item cost lookup. Use ItemCostResolver for repeated lookups."""
    return ItemCostResolver(historical_records, live_items).resolve(item_key, reference_date)


def has_resolvable_cost(
    item_key: str,
    reference_date: date,
    historical_records: Iterable[ItemCostRecord],
    live_items: Iterable[LiveItem]
) -> bool:
    return resolve_item_cost(item_key, reference_date, historical_records, live_items).has_cost


# ============================================================================
# CONFIGURATION RESOLVER
# ============================================================================

def _config_values(source) -> ResolvedConfig:
    if source is None:
        return ResolvedConfig()
    return ResolvedConfig(
        monthly_fixed_cost=source.monthly_fixed_cost,
        material_tax_percent=source.material_tax_percent,
        service_tax_percent=source.service_tax_percent
    )


def resolve_config(
    reference_date: date,
    historical_configs: Iterable[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> ResolvedConfig:
    """
    Configuration in force on reference_date.

    Falls back to live_config only when the history is empty: zero taxes or
    zero fixed cost are legitimate configured values.
    """
    record = resolve_effective(historical_configs, reference_date)
    if record is None:
        return _config_values(live_config)
    return _config_values(record)


def resolve_config_for_month(
    month_start: date,
    month_end: date,
    historical_configs: Iterable[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> ResolvedConfig:
    """
    Configuration that applies to a whole calendar month.

    A change logged inside [month_start, month_end] applies to the entire
    month (the most recent such change wins). Without one, the configuration
    in force at month_end applies.
    """
    month_start = require_date(month_start, "month_start")
    month_end = require_date(month_end, "month_end")

    ordered = sort_effective_desc(historical_configs)
    if not ordered:
        return _config_values(live_config)

    for record in ordered:
        if month_start <= record.effective_date <= month_end:
            return _config_values(record)

    return _config_values(_pick_effective(ordered, month_end))


__all__ = [
    'require_date',
    'sort_effective_desc',
    'resolve_effective',
    'ItemCostResolver',
    'resolve_item_cost',
    'has_resolvable_cost',
    'resolve_config',
    'resolve_config_for_month',
]
