"""
Quote Profitability - Row Mapping Module

This module handles:
- Safe conversion of persisted values (numbers stored as strings/floats, ISO dates)
- Status normalization (legacy Portuguese values still present in older rows)
- Mapping database rows to the read-only snapshots the engine consumes

Item keys are normalized here, once, when rows become models.

Quotes without an issue date are rejected. A caller that wants to treat a
missing date as today must pass fallback_issue_date explicitly; the engine
itself never looks at the clock.
"""

from typing import Dict, Any, Optional, List
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import logging

from profitability_models import (
    QuoteStatus,
    ItemCostRecord,
    LiveItem,
    ConfigRecord,
    LiveConfig,
    Quote,
    QuoteLineItem,
)

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to Decimal"""
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if value is None or value == "":
        return default
    return str(value)


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int"""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp column. Empty values give None, garbage raises ValueError."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def parse_date(value: Any) -> Optional[date]:
    """Parse a date or timestamp column into a date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_datetime(text).date()


# ============================================================================
# STATUS NORMALIZATION
# ============================================================================

# Map database values to enum values (older rows use the Portuguese names)
QUOTE_STATUS_MAPPING = {
    "aberto": QuoteStatus.OPEN,
    "aceito": QuoteStatus.ACCEPTED,
    "recusado": QuoteStatus.REJECTED,
    "expirado": QuoteStatus.EXPIRED,
}


def normalize_status(value: Any) -> QuoteStatus:
    """
    Normalize a persisted status to QuoteStatus.

    Raises:
        ValueError: for unknown statuses
    """
    text = safe_str(value).strip().lower()
    if text in QUOTE_STATUS_MAPPING:
        logger.debug(f"Legacy quote status '{value}' mapped to '{QUOTE_STATUS_MAPPING[text].value}'")
        return QUOTE_STATUS_MAPPING[text]
    try:
        return QuoteStatus(text)
    except ValueError:
        raise ValueError(f"Unknown quote status: {value!r}")


# ============================================================================
# ROW MAPPERS
# ============================================================================

def _require(row: Dict[str, Any], field_name: str, value: Any) -> Any:
    if value is None:
        raise ValueError(f"Row {row.get('id')!r} has no {field_name}")
    return value


def map_item_cost_row(row: Dict[str, Any]) -> ItemCostRecord:
    """Map an item_cost_history row"""
    description = safe_str(row.get('description'))
    return ItemCostRecord(
        item_key=description,
        description=description,
        effective_date=_require(row, 'effective_date', parse_date(row.get('effective_date'))),
        recorded_at=parse_datetime(row.get('created_at')),
        material_unit_cost=safe_decimal(row.get('material_unit_cost')),
        labor_unit_cost=safe_decimal(row.get('labor_unit_cost')),
        material_unit_price=safe_decimal(row.get('material_unit_price'), None),
        labor_unit_price=safe_decimal(row.get('labor_unit_price'), None),
    )


def map_live_item_row(row: Dict[str, Any]) -> LiveItem:
    """Map a service_items (catalog) row"""
    description = safe_str(row.get('description'))
    return LiveItem(
        item_key=description,
        description=description,
        material_unit_cost=safe_decimal(row.get('material_unit_cost')),
        labor_unit_cost=safe_decimal(row.get('labor_unit_cost')),
        material_unit_price=safe_decimal(row.get('material_unit_price')),
        labor_unit_price=safe_decimal(row.get('labor_unit_price')),
    )


def map_config_row(row: Dict[str, Any]) -> ConfigRecord:
    """Map a config_history row"""
    return ConfigRecord(
        effective_date=_require(row, 'effective_date', parse_date(row.get('effective_date'))),
        recorded_at=parse_datetime(row.get('created_at')),
        monthly_fixed_cost=safe_decimal(row.get('monthly_fixed_cost')),
        material_tax_percent=safe_decimal(row.get('material_tax_percent')),
        service_tax_percent=safe_decimal(row.get('service_tax_percent')),
    )


def map_live_config_row(row: Optional[Dict[str, Any]]) -> Optional[LiveConfig]:
    """Map the company_settings row; None when the company has no settings yet"""
    if not row:
        return None
    return LiveConfig(
        monthly_fixed_cost=safe_decimal(row.get('monthly_fixed_cost')),
        material_tax_percent=safe_decimal(row.get('material_tax_percent')),
        service_tax_percent=safe_decimal(row.get('service_tax_percent')),
    )


def map_line_item_row(row: Dict[str, Any]) -> QuoteLineItem:
    return QuoteLineItem(
        description=safe_str(row.get('description')),
        quantity=safe_decimal(row.get('quantity')),
        material_sale_total=safe_decimal(row.get('material_sale_total')),
        labor_sale_total=safe_decimal(row.get('labor_sale_total')),
    )


def _client_name(row: Dict[str, Any]) -> str:
    # Joined select returns the customer as a nested dict
    customer = row.get('customers')
    if isinstance(customer, dict) and customer.get('name'):
        return safe_str(customer.get('name'))
    return safe_str(row.get('client_name'))


def map_quote_row(row: Dict[str, Any], fallback_issue_date: Optional[date] = None) -> Quote:
    """
    Map a quotes row (with its quote_items) to a Quote snapshot.

    Args:
        row: Quote row, optionally joined with quote_items and customers
        fallback_issue_date: Issue date to use when the row has none.
            Without it such rows raise ValueError.

    Returns:
        Quote
    """
    issued_at = parse_date(row.get('issued_at'))
    if issued_at is None:
        if fallback_issue_date is None:
            raise ValueError(f"Quote {row.get('number')!r} has no issue date")
        logger.warning(f"Quote {row.get('number')!r} has no issue date, using {fallback_issue_date}")
        issued_at = fallback_issue_date

    total_value = row.get('total_value')

    return Quote(
        id=safe_str(row.get('id')),
        number=safe_int(row.get('number')),
        issued_at=issued_at,
        status=normalize_status(row.get('status')),
        line_items=[map_line_item_row(item) for item in row.get('quote_items') or []],
        client_id=row.get('client_id'),
        client_name=_client_name(row),
        accepted_at=parse_date(row.get('accepted_at')),
        valid_until=parse_date(row.get('valid_until')),
        version=safe_int(row.get('version')),
        total_value=safe_decimal(total_value) if total_value not in (None, "") else None,
    )


def map_rows(rows: Optional[List[Dict[str, Any]]], mapper) -> List[Any]:
    return [mapper(row) for row in rows or []]
