"""
Shared pytest fixtures for profitability tests.

Provides:
- Mock Supabase client
- Row factories (rows as stored in the database)
"""

import pytest
import os
import sys
from datetime import datetime
from uuid import uuid4

# Supabase settings before importing services
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# MOCK FACTORIES
# ============================================================================

def make_uuid():
    """Generate a UUID string."""
    return str(uuid4())


def make_item_cost_row(
    description="Test Item",
    effective_date="2024-01-01",
    material_unit_cost="10.00",
    labor_unit_cost="5.00",
    organization_id=None,
    created_at=None
):
    """Create an item_cost_history row."""
    return {
        "id": make_uuid(),
        "organization_id": organization_id,
        "item_id": make_uuid(),
        "description": description,
        "effective_date": effective_date,
        "material_unit_cost": material_unit_cost,
        "labor_unit_cost": labor_unit_cost,
        "material_unit_price": None,
        "labor_unit_price": None,
        "created_at": created_at or datetime.now().isoformat(),
    }


def make_config_row(
    effective_date="2024-01-01",
    monthly_fixed_cost="3000.00",
    material_tax_percent="10",
    service_tax_percent="5",
    organization_id=None,
    created_at=None
):
    """Create a config_history row."""
    return {
        "id": make_uuid(),
        "organization_id": organization_id,
        "effective_date": effective_date,
        "monthly_fixed_cost": monthly_fixed_cost,
        "material_tax_percent": material_tax_percent,
        "service_tax_percent": service_tax_percent,
        "created_at": created_at or datetime.now().isoformat(),
    }


def make_live_item_row(
    description="Test Item",
    material_unit_cost="10.00",
    labor_unit_cost="5.00",
    organization_id=None
):
    """Create a service_items row."""
    return {
        "id": make_uuid(),
        "organization_id": organization_id,
        "description": description,
        "material_unit_cost": material_unit_cost,
        "labor_unit_cost": labor_unit_cost,
        "material_unit_price": "20.00",
        "labor_unit_price": "10.00",
    }


def make_quote_item_row(
    description="Test Item",
    quantity=1,
    material_sale_total="20.00",
    labor_sale_total="10.00"
):
    """Create a quote_items row."""
    return {
        "description": description,
        "quantity": quantity,
        "material_sale_total": material_sale_total,
        "labor_sale_total": labor_sale_total,
    }


def make_quote_row(
    number=1,
    status="accepted",
    issued_at="2024-03-15T10:00:00Z",
    items=None,
    customer_name="Test Customer",
    organization_id=None,
    total_value=None,
    valid_until="2024-04-15"
):
    """Create a quotes row joined with customers and quote_items."""
    return {
        "id": make_uuid(),
        "organization_id": organization_id,
        "number": number,
        "status": status,
        "issued_at": issued_at,
        "accepted_at": None,
        "valid_until": valid_until,
        "version": 1,
        "total_value": total_value,
        "client_id": make_uuid(),
        "customers": {"name": customer_name},
        "quote_items": items if items is not None else [make_quote_item_row()],
    }


# ============================================================================
# SUPABASE MOCK
# ============================================================================

class MockSupabaseResponse:
    """Mock response from Supabase queries."""
    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error


class MockSupabaseQuery:
    """Mock Supabase query builder."""

    def __init__(self, table_name, data=None):
        self.table_name = table_name
        self._data = data or []
        self._filters = {}
        self._ranges = []
        self._limit = None

    def select(self, columns="*"):
        return self

    def eq(self, column, value):
        self._filters[column] = value
        return self

    def gte(self, column, value):
        self._ranges.append((column, lambda v, bound=value: v is not None and str(v) >= bound))
        return self

    def lte(self, column, value):
        self._ranges.append((column, lambda v, bound=value: v is not None and str(v) <= bound))
        return self

    def order(self, column, desc=False):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        # Filter data based on eq()/gte()/lte() calls
        result = self._data
        for col, val in self._filters.items():
            result = [r for r in result if r.get(col) == val]
        for col, check in self._ranges:
            result = [r for r in result if check(r.get(col))]
        if self._limit is not None:
            result = result[:self._limit]
        return MockSupabaseResponse(data=result)


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name, data):
        """Set mock data for a table."""
        self._tables[table_name] = data

    def table(self, name):
        """Return a mock query for the table."""
        return MockSupabaseQuery(name, self._tables.get(name, []))


@pytest.fixture
def org_id():
    return make_uuid()


@pytest.fixture
def mock_supabase():
    """Create a mock Supabase client."""
    return MockSupabaseClient()
