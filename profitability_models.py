"""
Quote Profitability - Models
Pydantic models for the profitability analysis engine: effective-dated history
records, quote snapshots, and the results the engine produces.

All money, percentage and quantity values are Decimal. All dates are date.
Models are frozen: the engine runs over read-only snapshots.
"""

from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from enum import Enum


def normalize_item_key(description: Optional[str]) -> str:
    """Normalize an item description into its lookup key (trim + case-fold)."""
    if not description:
        return ""
    return description.strip().casefold()


# ============================================================================
# ENUMS
# ============================================================================

class QuoteStatus(str, Enum):
    """Quote lifecycle status"""
    OPEN = "open"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Snapshot(BaseModel):
    """Base for every engine input/output model"""
    model_config = ConfigDict(frozen=True)


# ============================================================================
# HISTORY RECORDS
# ============================================================================

class EffectiveDatedRecord(Snapshot):
    """A value that is authoritative from effective_date onwards"""
    effective_date: date = Field(..., description="Date the values took effect")
    recorded_at: Optional[datetime] = Field(default=None, description="When the record was written")


class ItemCostRecord(EffectiveDatedRecord):
    """Historical material/labor cost of one catalog item"""
    item_key: str = Field(..., description="Normalized item description")
    description: str = Field(default="", description="Item description as recorded")
    material_unit_cost: Decimal = Field(default=Decimal("0"), ge=0, description="Material cost per unit")
    labor_unit_cost: Decimal = Field(default=Decimal("0"), ge=0, description="Labor cost per unit")
    material_unit_price: Optional[Decimal] = Field(default=None, description="Material sale price per unit")
    labor_unit_price: Optional[Decimal] = Field(default=None, description="Labor sale price per unit")

    @field_validator('item_key')
    @classmethod
    def normalize_key(cls, v):
        return normalize_item_key(v)


class ConfigRecord(EffectiveDatedRecord):
    """Historical global configuration (fixed cost and tax rates)"""
    monthly_fixed_cost: Decimal = Field(default=Decimal("0"), ge=0, description="Company fixed cost per month")
    material_tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Tax on material sales %")
    service_tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Tax on service (labor) sales %")


# ============================================================================
# LIVE VALUES (FALLBACKS)
# ============================================================================

class LiveItem(Snapshot):
    """Current catalog entry, used only when history does not resolve a cost"""
    item_key: str
    description: str = ""
    material_unit_cost: Decimal = Field(default=Decimal("0"), ge=0)
    labor_unit_cost: Decimal = Field(default=Decimal("0"), ge=0)
    material_unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    labor_unit_price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator('item_key')
    @classmethod
    def normalize_key(cls, v):
        return normalize_item_key(v)


class LiveConfig(Snapshot):
    """Current global configuration, used only when the history is empty"""
    monthly_fixed_cost: Decimal = Field(default=Decimal("0"), ge=0)
    material_tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    service_tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)


# ============================================================================
# QUOTES
# ============================================================================

class QuoteLineItem(Snapshot):
    """One line of a quote, with material and labor sale totals split"""
    description: str
    item_key: str = Field(default="", validate_default=True, description="Derived from description")
    quantity: Decimal = Field(..., ge=0)
    material_sale_total: Decimal = Field(default=Decimal("0"), ge=0)
    labor_sale_total: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator('item_key')
    @classmethod
    def derive_key(cls, v, info: ValidationInfo):
        return normalize_item_key(v or info.data.get('description'))

    @property
    def line_total(self) -> Decimal:
        return self.material_sale_total + self.labor_sale_total


class Quote(Snapshot):
    """Quote snapshot as seen by the reporting engine"""
    id: str
    number: int
    issued_at: date = Field(..., description="Issue date, reference date for cost/tax lookups")
    status: QuoteStatus
    line_items: List[QuoteLineItem] = Field(default_factory=list)
    client_id: Optional[str] = None
    client_name: str = ""
    accepted_at: Optional[date] = None
    valid_until: Optional[date] = None
    version: int = 0
    total_value: Optional[Decimal] = Field(default=None, description="Persisted quote total, if any")

    @property
    def revenue(self) -> Decimal:
        """Quote value: persisted total when present, else the sum of its lines"""
        if self.total_value is not None:
            return self.total_value
        return sum((item.line_total for item in self.line_items), Decimal("0"))


# ============================================================================
# RESOLVED VALUES
# ============================================================================

class ResolvedCost(Snapshot):
    """Unit costs in force for one item at one reference date"""
    material_unit_cost: Decimal = Decimal("0")
    labor_unit_cost: Decimal = Decimal("0")

    @property
    def has_cost(self) -> bool:
        return self.material_unit_cost > 0 or self.labor_unit_cost > 0


class ResolvedConfig(Snapshot):
    """Configuration in force at one reference date (or for one month)"""
    monthly_fixed_cost: Decimal = Decimal("0")
    material_tax_percent: Decimal = Decimal("0")
    service_tax_percent: Decimal = Decimal("0")


# ============================================================================
# RESULTS
# ============================================================================

class QuoteProfitability(Snapshot):
    """Profitability of one accepted quote with a complete cost basis"""
    quote_id: str
    quote_number: int
    client_name: str = ""
    issued_at: date
    accepted_at: Optional[date] = None
    version: int = 0

    material_sale: Decimal
    labor_sale: Decimal
    material_cost: Decimal
    labor_cost: Decimal
    material_tax: Decimal
    labor_tax: Decimal
    material_profit: Decimal
    labor_profit: Decimal
    total_profit: Decimal
    margin: Decimal = Field(..., description="total_profit / total sale * 100, 0 when no sales")

    @property
    def total_sale(self) -> Decimal:
        return self.material_sale + self.labor_sale


class AggregateProfitability(Snapshot):
    """Element-wise sums over the included QuoteProfitability entries"""
    material_sale: Decimal = Decimal("0")
    labor_sale: Decimal = Decimal("0")
    material_cost: Decimal = Decimal("0")
    labor_cost: Decimal = Decimal("0")
    material_tax: Decimal = Decimal("0")
    labor_tax: Decimal = Decimal("0")
    material_profit: Decimal = Decimal("0")
    labor_profit: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    overall_margin: Decimal = Decimal("0")

    included_count: int = 0
    excluded_count: int = Field(default=0, description="Accepted quotes skipped for incomplete cost data")
    accepted_count: int = 0

    quotes: List[QuoteProfitability] = Field(default_factory=list)


class MonthBucket(Snapshot):
    """One calendar month touched by a reporting period"""
    month_start: date
    month_end: date
    resolved_fixed_cost: Decimal = Decimal("0")


class NetProfitResult(Snapshot):
    """Net profit over a period after whole-month fixed costs"""
    total_fixed_cost: Decimal
    month_count: int
    gross_profit: Optional[Decimal] = Field(None, description="Set when cost-based profitability was available")
    approximate_taxes: Optional[Decimal] = Field(None, description="Set when falling back to the revenue approximation")
    net_profit: Decimal

    average_monthly_fixed_cost: Decimal = Decimal("0")
    material_tax_percent: Decimal = Decimal("0")
    service_tax_percent: Decimal = Decimal("0")
    total_accepted_revenue: Decimal = Decimal("0")
    months: List[MonthBucket] = Field(default_factory=list)


# ============================================================================
# REPORT KPIs
# ============================================================================

class ReportKpis(Snapshot):
    """Headline figures of the reporting page"""
    total: int = 0
    open: int = 0
    accepted: int = 0
    rejected: int = 0
    expired: int = 0
    total_value: Decimal = Decimal("0")
    accepted_value: Decimal = Decimal("0")
    conversion_rate: Decimal = Field(default=Decimal("0"), description="accepted / total * 100")
    average_ticket: Decimal = Field(default=Decimal("0"), description="accepted_value / accepted")


class StatusTotal(Snapshot):
    status: QuoteStatus
    count: int
    value: Decimal


class ClientRanking(Snapshot):
    client_id: Optional[str] = None
    client_name: str
    value: Decimal
    quote_count: int


class ProductRanking(Snapshot):
    item_key: str
    description: str
    quantity: Decimal
    value: Decimal


class DailyValue(Snapshot):
    """Quote value issued on one day"""
    day: date
    total_value: Decimal = Decimal("0")
    accepted_value: Decimal = Decimal("0")


# ============================================================================
# EXPORT
# ============================================================================

class QuoteExportRow(Snapshot):
    """
    Numeric export line for one quote of the period, any status.

    Costs and tax rates are resolved at the issue date. Lines without a
    resolvable cost contribute zero cost (cost_complete is then False),
    so gross_profit may overstate the real profit of such quotes.
    """
    quote_id: str
    quote_number: int
    client_name: str = ""
    status: QuoteStatus
    issued_at: date
    valid_until: Optional[date] = None
    total_value: Decimal

    material_sale: Decimal
    labor_sale: Decimal
    material_cost: Decimal
    labor_cost: Decimal
    total_cost: Decimal
    material_tax_percent: Decimal
    service_tax_percent: Decimal
    material_tax: Decimal
    labor_tax: Decimal
    total_tax: Decimal
    gross_profit: Decimal
    margin: Decimal
    cost_complete: bool = Field(..., description="Every line item had a resolvable cost")
