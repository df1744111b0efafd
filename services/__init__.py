"""
Reporting Services

Database access and report assembly for the profitability analysis engine.
"""

from .database import get_supabase
from .cost_history_service import (
    get_item_cost_history,
    get_config_history,
    get_live_items,
    get_live_config,
    get_quotes_for_period,
)
from .profitability_report_service import build_profitability_report, report_to_dict

__all__ = [
    'get_supabase',
    # History and snapshot reads
    'get_item_cost_history',
    'get_config_history',
    'get_live_items',
    'get_live_config',
    'get_quotes_for_period',
    # Report
    'build_profitability_report',
    'report_to_dict',
]
