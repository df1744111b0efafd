"""
Quote Profitability - Report KPIs
Headline figures of the reporting page: counts by status, conversion rate,
average ticket, value by status, daily evolution, top clients and top products.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from profitability_models import (
    Quote,
    QuoteStatus,
    ReportKpis,
    StatusTotal,
    ClientRanking,
    ProductRanking,
    DailyValue,
)
from profitability_engine import round_decimal

ZERO = Decimal("0")
DEFAULT_RANKING_LIMIT = 10


def _accepted(quotes: Iterable[Quote]) -> List[Quote]:
    return [q for q in quotes if q.status == QuoteStatus.ACCEPTED]


def total_accepted_revenue(quotes: Iterable[Quote]) -> Decimal:
    """Sum of the value of accepted quotes"""
    return sum((q.revenue for q in _accepted(quotes)), ZERO)


def compute_kpis(quotes: Iterable[Quote]) -> ReportKpis:
    quotes = list(quotes)
    counts = {status: 0 for status in QuoteStatus}
    for quote in quotes:
        counts[quote.status] += 1

    total = len(quotes)
    accepted = counts[QuoteStatus.ACCEPTED]
    total_value = sum((q.revenue for q in quotes), ZERO)
    accepted_value = total_accepted_revenue(quotes)

    conversion_rate = round_decimal(Decimal(accepted) / Decimal(total) * 100) if total else ZERO
    average_ticket = round_decimal(accepted_value / accepted, 2) if accepted else ZERO

    return ReportKpis(
        total=total,
        open=counts[QuoteStatus.OPEN],
        accepted=accepted,
        rejected=counts[QuoteStatus.REJECTED],
        expired=counts[QuoteStatus.EXPIRED],
        total_value=total_value,
        accepted_value=accepted_value,
        conversion_rate=conversion_rate,
        average_ticket=average_ticket
    )


def value_by_status(quotes: Iterable[Quote]) -> List[StatusTotal]:
    """Count and value per status; statuses without quotes are omitted"""
    counts: Dict[QuoteStatus, int] = {status: 0 for status in QuoteStatus}
    values: Dict[QuoteStatus, Decimal] = {status: ZERO for status in QuoteStatus}
    for quote in quotes:
        counts[quote.status] += 1
        values[quote.status] += quote.revenue

    return [
        StatusTotal(status=status, count=counts[status], value=values[status])
        for status in QuoteStatus
        if counts[status] > 0
    ]


def rank_clients(quotes: Iterable[Quote], limit: int = DEFAULT_RANKING_LIMIT) -> List[ClientRanking]:
    """Clients by accepted value, highest first"""
    stats: Dict[str, dict] = {}
    for quote in _accepted(quotes):
        key = quote.client_id or quote.client_name
        entry = stats.setdefault(key, {
            "client_id": quote.client_id,
            "client_name": quote.client_name,
            "value": ZERO,
            "quote_count": 0,
        })
        entry["value"] += quote.revenue
        entry["quote_count"] += 1

    ranked = sorted(stats.values(), key=lambda s: s["value"], reverse=True)
    return [ClientRanking(**entry) for entry in ranked[:limit]]


def rank_products(quotes: Iterable[Quote], limit: int = DEFAULT_RANKING_LIMIT) -> List[ProductRanking]:
    """Items of accepted quotes by sold value, highest first"""
    stats: Dict[str, dict] = {}
    for quote in _accepted(quotes):
        for item in quote.line_items:
            # first-seen description is displayed
            entry = stats.setdefault(item.item_key, {
                "item_key": item.item_key,
                "description": item.description,
                "quantity": ZERO,
                "value": ZERO,
            })
            entry["quantity"] += item.quantity
            entry["value"] += item.line_total

    ranked = sorted(stats.values(), key=lambda s: s["value"], reverse=True)
    return [ProductRanking(**entry) for entry in ranked[:limit]]


def daily_evolution(quotes: Iterable[Quote]) -> List[DailyValue]:
    """Total and accepted value per issue day, oldest day first. Days without quotes are absent."""
    totals: Dict[date, Decimal] = {}
    accepted: Dict[date, Decimal] = {}
    for quote in quotes:
        day = quote.issued_at
        totals[day] = totals.get(day, ZERO) + quote.revenue
        accepted.setdefault(day, ZERO)
        if quote.status == QuoteStatus.ACCEPTED:
            accepted[day] += quote.revenue

    return [
        DailyValue(day=day, total_value=totals[day], accepted_value=accepted[day])
        for day in sorted(totals)
    ]
