"""
Quote Profitability - Calculation Engine
Profit of accepted quotes and net profit of a reporting period.

HISTORICAL VALUES:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Costs and taxes are resolved as of each quote's ISSUE DATE, never today.
A quote issued in March is priced against March costs and March tax rates,
even if the catalog or configuration changed since (see history_resolver).

Flow:
1. Quote analysis: per accepted quote, resolve unit costs and tax rates,
   compute sale / cost / tax / profit split by material and labor
2. Aggregation: element-wise sums of the per-quote figures only
3. Net profit: whole-month fixed costs over the period, subtracted from the
   gross profit, or from a revenue-based approximation when no quote has a
   complete cost basis

Quotes where any line item has no resolvable cost are excluded and counted,
never raised: their profit cannot be computed reliably.
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional
from datetime import date
import calendar
import logging

from profitability_models import (
    Quote,
    QuoteStatus,
    ItemCostRecord,
    LiveItem,
    ConfigRecord,
    LiveConfig,
    ResolvedConfig,
    QuoteProfitability,
    AggregateProfitability,
    QuoteExportRow,
    MonthBucket,
    NetProfitResult,
)
from history_resolver import (
    ItemCostResolver,
    require_date,
    resolve_config,
    resolve_config_for_month,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Fields of QuoteProfitability summed into AggregateProfitability
SUMMED_FIELDS = (
    "material_sale",
    "labor_sale",
    "material_cost",
    "labor_cost",
    "material_tax",
    "labor_tax",
    "material_profit",
    "labor_profit",
    "total_profit",
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 4) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP."""
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return amount * percent / HUNDRED


def margin_percent(profit: Decimal, sale: Decimal) -> Decimal:
    """Profit as % of sale, 0 when there is no sale. Not rounded."""
    if sale == 0:
        return ZERO
    return profit / sale * HUNDRED


def _quote_figures(lines, config: ResolvedConfig) -> dict:
    """
    Sale, cost, tax and profit split by material and labor over
    (line item, resolved cost) pairs. Cost = unit cost * quantity.
    """
    material_sale = ZERO
    labor_sale = ZERO
    material_cost = ZERO
    labor_cost = ZERO
    for item, cost in lines:
        material_sale += item.material_sale_total
        labor_sale += item.labor_sale_total
        material_cost += cost.material_unit_cost * item.quantity
        labor_cost += cost.labor_unit_cost * item.quantity

    material_tax = percent_of(material_sale, config.material_tax_percent)
    labor_tax = percent_of(labor_sale, config.service_tax_percent)

    material_profit = material_sale - material_cost - material_tax
    labor_profit = labor_sale - labor_cost - labor_tax
    total_profit = material_profit + labor_profit

    return {
        "material_sale": material_sale,
        "labor_sale": labor_sale,
        "material_cost": material_cost,
        "labor_cost": labor_cost,
        "material_tax": material_tax,
        "labor_tax": labor_tax,
        "material_profit": material_profit,
        "labor_profit": labor_profit,
        "total_profit": total_profit,
        "margin": margin_percent(total_profit, material_sale + labor_sale),
    }


# ============================================================================
# QUOTE PROFITABILITY ANALYZER
# ============================================================================

def analyze_quote(
    quote: Quote,
    costs: ItemCostResolver,
    historical_configs: List[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> Optional[QuoteProfitability]:
    """
    Profitability of one quote, or None when any line item has no
    resolvable cost at the quote's issue date.

    Steps:
    1. Every line must have a nonzero material or labor unit cost
    2. Tax rates in force at issue date
    3. Sales and costs summed over lines (cost = unit cost * quantity)
    4. Taxes on sales, profit = sale - cost - tax, per material/labor
    5. Margin = total profit / total sale * 100 (0 without sales)
    """
    reference_date = require_date(quote.issued_at, "issued_at")

    resolved_costs = []
    for item in quote.line_items:
        cost = costs.resolve(item.item_key, reference_date)
        if not cost.has_cost:
            logger.debug(
                f"Quote {quote.number} excluded: no cost for '{item.description}' at {reference_date}"
            )
            return None
        resolved_costs.append((item, cost))

    config = resolve_config(reference_date, historical_configs, live_config)

    return QuoteProfitability(
        quote_id=quote.id,
        quote_number=quote.number,
        client_name=quote.client_name,
        issued_at=quote.issued_at,
        accepted_at=quote.accepted_at,
        version=quote.version,
        **_quote_figures(resolved_costs, config)
    )


def aggregate_profitability(
    results: List[QuoteProfitability],
    excluded_count: int = 0,
    accepted_count: Optional[int] = None
) -> AggregateProfitability:
    """
    Sum per-quote results. Totals are never recomputed from raw sales, so the
    aggregate always matches the per-quote table.
    """
    totals = {name: sum((getattr(r, name) for r in results), ZERO) for name in SUMMED_FIELDS}
    total_sale = totals["material_sale"] + totals["labor_sale"]

    return AggregateProfitability(
        **totals,
        total_tax=totals["material_tax"] + totals["labor_tax"],
        overall_margin=margin_percent(totals["total_profit"], total_sale),
        included_count=len(results),
        excluded_count=excluded_count,
        accepted_count=accepted_count if accepted_count is not None else len(results) + excluded_count,
        quotes=sorted(results, key=lambda r: r.quote_number, reverse=True)
    )


def analyze(
    quotes: Iterable[Quote],
    historical_item_costs: Iterable[ItemCostRecord],
    live_items: Iterable[LiveItem],
    historical_configs: Iterable[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> AggregateProfitability:
    """
    Profitability of every accepted quote in the working set.

    Args:
        quotes: Quotes of the period (non-accepted quotes are ignored)
        historical_item_costs: Item cost history (superset is fine)
        live_items: Current catalog, fallback for items without history
        historical_configs: Configuration history
        live_config: Current configuration, fallback for an empty history

    Returns:
        AggregateProfitability with the per-quote results in .quotes
    """
    costs = ItemCostResolver(historical_item_costs, live_items)
    configs = list(historical_configs)

    included: List[QuoteProfitability] = []
    excluded_count = 0
    accepted_count = 0

    for quote in quotes:
        if quote.status != QuoteStatus.ACCEPTED:
            continue
        accepted_count += 1

        result = analyze_quote(quote, costs, configs, live_config)
        if result is None:
            excluded_count += 1
        else:
            included.append(result)

    aggregate = aggregate_profitability(included, excluded_count, accepted_count)
    logger.info(
        f"Profitability: {aggregate.included_count} of {accepted_count} accepted quotes analyzed, "
        f"{excluded_count} excluded for incomplete cost data"
    )
    return aggregate


# ============================================================================
# EXPORT ROWS
# ============================================================================

def quote_export_rows(
    quotes: Iterable[Quote],
    historical_item_costs: Iterable[ItemCostRecord],
    live_items: Iterable[LiveItem],
    historical_configs: Iterable[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> List[QuoteExportRow]:
    """
    One export row per quote, in input order, whatever its status.

    Unlike analyze(), nothing is excluded: a line without a resolvable cost
    counts as zero cost and the row is flagged with cost_complete=False.
    """
    costs = ItemCostResolver(historical_item_costs, live_items)
    configs = list(historical_configs)

    rows = []
    for quote in quotes:
        reference_date = require_date(quote.issued_at, "issued_at")
        lines = [(item, costs.resolve(item.item_key, reference_date)) for item in quote.line_items]
        config = resolve_config(reference_date, configs, live_config)
        figures = _quote_figures(lines, config)

        rows.append(QuoteExportRow(
            quote_id=quote.id,
            quote_number=quote.number,
            client_name=quote.client_name,
            status=quote.status,
            issued_at=quote.issued_at,
            valid_until=quote.valid_until,
            total_value=quote.revenue,
            material_sale=figures["material_sale"],
            labor_sale=figures["labor_sale"],
            material_cost=figures["material_cost"],
            labor_cost=figures["labor_cost"],
            total_cost=figures["material_cost"] + figures["labor_cost"],
            material_tax_percent=config.material_tax_percent,
            service_tax_percent=config.service_tax_percent,
            material_tax=figures["material_tax"],
            labor_tax=figures["labor_tax"],
            total_tax=figures["material_tax"] + figures["labor_tax"],
            gross_profit=figures["total_profit"],
            margin=figures["margin"],
            cost_complete=all(cost.has_cost for _, cost in lines)
        ))
    return rows


# ============================================================================
# PERIOD NET-PROFIT CALCULATOR
# ============================================================================

def month_bounds(day: date):
    """First and last day of the calendar month containing day"""
    last = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1), date(day.year, day.month, last)


def partition_months(period_start: date, period_end: date) -> List[MonthBucket]:
    """
    One bucket per calendar month touched by [period_start, period_end].

    Buckets always span the full month: a month only partially covered by
    the period still counts once, with no proration by days.
    """
    period_start = require_date(period_start, "period_start")
    period_end = require_date(period_end, "period_end")
    if period_start > period_end:
        raise ValueError(f"period_start {period_start} is after period_end {period_end}")

    buckets = []
    current = period_start.replace(day=1)
    while current <= period_end:
        month_start, month_end = month_bounds(current)
        buckets.append(MonthBucket(month_start=month_start, month_end=month_end))
        current = _next_month(current)
    return buckets


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def compute_net_profit(
    period_start: date,
    period_end: date,
    aggregate: Optional[AggregateProfitability],
    total_accepted_revenue: Decimal,
    historical_configs: Iterable[ConfigRecord],
    live_config: Optional[LiveConfig]
) -> NetProfitResult:
    """
    Net profit of a period.

    Fixed cost: one full monthly fixed cost per calendar month touched, each
    month resolved with resolve_config_for_month.

    With cost-based profitability (at least one quote included):
        net = gross profit - fixed costs
    Without it, taxes are approximated on accepted revenue using the average
    of the material and service rates in force at period_end:
        net = revenue - revenue * avg_rate / 100 - fixed costs
    """
    configs = list(historical_configs)

    months = []
    total_fixed_cost = ZERO
    for bucket in partition_months(period_start, period_end):
        config = resolve_config_for_month(bucket.month_start, bucket.month_end, configs, live_config)
        months.append(bucket.model_copy(update={"resolved_fixed_cost": config.monthly_fixed_cost}))
        total_fixed_cost += config.monthly_fixed_cost

    month_count = len(months)
    average_fixed_cost = total_fixed_cost / month_count if month_count else ZERO

    end_config = resolve_config(period_end, configs, live_config)
    revenue = total_accepted_revenue if total_accepted_revenue is not None else ZERO

    if aggregate is not None and aggregate.included_count > 0:
        gross_profit = aggregate.total_profit
        approximate_taxes = None
        net_profit = gross_profit - total_fixed_cost
    else:
        average_rate = (end_config.material_tax_percent + end_config.service_tax_percent) / 2
        gross_profit = None
        approximate_taxes = percent_of(revenue, average_rate)
        net_profit = revenue - approximate_taxes - total_fixed_cost
        logger.debug(f"Net profit {period_start}..{period_end}: no cost basis, using revenue approximation")

    return NetProfitResult(
        total_fixed_cost=total_fixed_cost,
        month_count=month_count,
        gross_profit=gross_profit,
        approximate_taxes=approximate_taxes,
        net_profit=net_profit,
        average_monthly_fixed_cost=round_decimal(average_fixed_cost, 2),
        material_tax_percent=end_config.material_tax_percent,
        service_tax_percent=end_config.service_tax_percent,
        total_accepted_revenue=revenue,
        months=months
    )


# ============================================================================
# EXPORT FOR USE IN API
# ============================================================================

__all__ = [
    'analyze',
    'analyze_quote',
    'aggregate_profitability',
    'quote_export_rows',
    'partition_months',
    'compute_net_profit',
    'round_decimal',
]
