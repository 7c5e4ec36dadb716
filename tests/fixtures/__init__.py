"""
Shared Test Fixtures

Centralized factories used across all test layers.

Structure:
    - common.py: Base ID generators
    - {service}_fixtures.py: Per-service factories
"""

# Common utilities
from .common import (
    make_user_id,
    make_email,
    make_idempotency_key,
)

# Purchase service fixtures
from .purchase_fixtures import (
    make_company_name,
    make_product_row,
    make_order_row,
    make_reconciliation_row,
    make_account_profile,
    make_purchase_request,
)
