"""
Cost History Service

Read access to the snapshots the profitability engine runs over:
- item cost history and configuration history (append-only logs)
- live service item catalog and live company settings (fallbacks)
- quotes of a reporting period with their items

Histories are fetched in full, not filtered by period: the record in force
for a quote may have been logged long before the period starts (or, for
quotes older than the whole log, after it). The engine re-filters.
"""

from datetime import date
from typing import List, Optional

from profitability_models import ItemCostRecord, ConfigRecord, LiveItem, LiveConfig, Quote
from profitability_mapper import (
    map_item_cost_row,
    map_config_row,
    map_live_item_row,
    map_live_config_row,
    map_quote_row,
    map_rows,
)
from .database import get_supabase


QUOTE_SELECT = (
    "id, number, issued_at, accepted_at, valid_until, status, version, total_value, client_id, "
    "customers(name), "
    "quote_items(description, quantity, material_sale_total, labor_sale_total)"
)


def get_item_cost_history(org_id: str) -> List[ItemCostRecord]:
    """All item cost records of an organization, most recent first"""
    supabase = get_supabase()

    result = supabase.table("item_cost_history") \
        .select("*") \
        .eq("organization_id", org_id) \
        .order("effective_date", desc=True) \
        .execute()

    return map_rows(result.data, map_item_cost_row)


def get_config_history(org_id: str) -> List[ConfigRecord]:
    """All configuration records of an organization, most recent first"""
    supabase = get_supabase()

    result = supabase.table("config_history") \
        .select("*") \
        .eq("organization_id", org_id) \
        .order("effective_date", desc=True) \
        .execute()

    return map_rows(result.data, map_config_row)


def get_live_items(org_id: str) -> List[LiveItem]:
    """Current service item catalog"""
    supabase = get_supabase()

    result = supabase.table("service_items") \
        .select("id, description, material_unit_cost, labor_unit_cost, material_unit_price, labor_unit_price") \
        .eq("organization_id", org_id) \
        .execute()

    return map_rows(result.data, map_live_item_row)


def get_live_config(org_id: str) -> Optional[LiveConfig]:
    """Current company settings, None if the organization has none"""
    supabase = get_supabase()

    result = supabase.table("company_settings") \
        .select("monthly_fixed_cost, material_tax_percent, service_tax_percent") \
        .eq("organization_id", org_id) \
        .limit(1) \
        .execute()

    return map_live_config_row(result.data[0] if result.data else None)


def get_quotes_for_period(
    org_id: str,
    period_start: date,
    period_end: date
) -> List[Quote]:
    """
    Quotes issued within [period_start, period_end], with their items.

    Args:
        org_id: Organization UUID
        period_start: First day of the period (inclusive)
        period_end: Last day of the period (inclusive)

    Returns:
        List of Quote ordered by number desc
    """
    supabase = get_supabase()

    result = supabase.table("quotes") \
        .select(QUOTE_SELECT) \
        .eq("organization_id", org_id) \
        .gte("issued_at", period_start.isoformat()) \
        .lte("issued_at", f"{period_end.isoformat()}T23:59:59.999999") \
        .order("number", desc=True) \
        .execute()

    return [map_quote_row(row) for row in result.data or []]
