"""
Profitability Report Service

Builds the reporting page data for one organization and period:
KPIs, rankings, per-quote profitability and period net profit.

Fetching happens here; everything after the fetch is the pure engine.
The returned dict carries plain numbers (float) and ISO date strings so that
table, card and CSV consumers never receive pre-formatted values.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
import logging

from pydantic import BaseModel

from profitability_engine import analyze, compute_net_profit, quote_export_rows
from report_kpis import (
    compute_kpis,
    value_by_status,
    daily_evolution,
    rank_clients,
    rank_products,
    total_accepted_revenue,
)
from .cost_history_service import (
    get_item_cost_history,
    get_config_history,
    get_live_items,
    get_live_config,
    get_quotes_for_period,
)

logger = logging.getLogger(__name__)


def report_to_dict(value: Any) -> Any:
    """Convert engine results to JSON-friendly values (Decimal -> float, date -> ISO)"""
    if isinstance(value, BaseModel):
        return {k: report_to_dict(v) for k, v in value.model_dump().items()}
    if isinstance(value, dict):
        return {k: report_to_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [report_to_dict(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def build_profitability_report(org_id: str, period_start: date, period_end: date) -> Dict[str, Any]:
    """
    Build the profitability report for a period.

    Args:
        org_id: Organization UUID
        period_start: First day of the period (inclusive)
        period_end: Last day of the period (inclusive)

    Returns:
        Dict with period, kpis, value_by_status, daily_evolution, top_clients,
        top_products, profitability (None when no accepted quote has a complete
        cost basis), net_profit and export_rows (one row per quote, any status)
    """
    if period_start > period_end:
        raise ValueError(f"period_start {period_start} is after period_end {period_end}")

    quotes = get_quotes_for_period(org_id, period_start, period_end)
    item_history = get_item_cost_history(org_id)
    config_history = get_config_history(org_id)
    live_items = get_live_items(org_id)
    live_config = get_live_config(org_id)

    logger.info(
        f"Profitability report {org_id} {period_start}..{period_end}: {len(quotes)} quotes, "
        f"{len(item_history)} item cost records, {len(config_history)} config records"
    )

    aggregate = analyze(quotes, item_history, live_items, config_history, live_config)
    net_profit = compute_net_profit(
        period_start,
        period_end,
        aggregate,
        total_accepted_revenue(quotes),
        config_history,
        live_config
    )

    return {
        "period": {"start": period_start.isoformat(), "end": period_end.isoformat()},
        "kpis": report_to_dict(compute_kpis(quotes)),
        "value_by_status": report_to_dict(value_by_status(quotes)),
        "daily_evolution": report_to_dict(daily_evolution(quotes)),
        "top_clients": report_to_dict(rank_clients(quotes)),
        "top_products": report_to_dict(rank_products(quotes)),
        "profitability": report_to_dict(aggregate) if aggregate.included_count > 0 else None,
        "excluded_quotes": aggregate.excluded_count,
        "net_profit": report_to_dict(net_profit),
        "export_rows": report_to_dict(
            quote_export_rows(quotes, item_history, live_items, config_history, live_config)
        ),
    }
