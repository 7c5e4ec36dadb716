"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers (Top-Down TDD):
    - integration/: Service integration tests (real DB, mocked external)
    - component/  : Component tests (mocked dependencies)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys
from datetime import datetime
from typing import Any, Dict, List

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Import shared fixtures from tests/fixtures
from tests.fixtures import (
    make_user_id,
    make_idempotency_key,
    make_product_row,
    make_account_profile,
    make_purchase_request,
)


# =============================================================================
# Test Configuration
# =============================================================================

class TestConfig:
    """Centralized test configuration"""

    # Service URLs (port registry)
    SERVICES = {
        "purchase_service": 8000,
        "account_service": 8202,
    }

    # Infrastructure
    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
    NATS_URL = os.getenv("NATS_URL", "nats://localhost:4222")

    # Timeouts
    HTTP_TIMEOUT = 30
    DB_TIMEOUT = 10

    @classmethod
    def get_service_url(cls, service_name: str) -> str:
        port = cls.SERVICES.get(service_name)
        if not port:
            raise ValueError(f"Unknown service: {service_name}")
        return f"http://localhost:{port}"


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration"""
    return TestConfig()


# =============================================================================
# Test Data Generators
# =============================================================================

class TestDataGenerator:
    """Generate unique test data"""

    _counter = 0

    @classmethod
    def _next_id(cls) -> str:
        cls._counter += 1
        return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{cls._counter:04d}"

    @classmethod
    def buyer_id(cls) -> str:
        return f"usr_test_{cls._next_id()}"

    @classmethod
    def idempotency_key(cls) -> str:
        return f"idem_test_{cls._next_id()}"

    @classmethod
    def product_name(cls) -> str:
        return f"Widget-{cls._next_id()}"


@pytest.fixture
def generate() -> TestDataGenerator:
    """Provide test data generator"""
    return TestDataGenerator()


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def sample_buyer_profile() -> Dict[str, Any]:
    """account_service profile of an active buyer"""
    return make_account_profile(user_id=make_user_id(), name="Test Buyer")


@pytest.fixture
def sample_product_row() -> Dict[str, Any]:
    """Widget with 5 units in stock"""
    return make_product_row(name="Widget", quantity=5)


@pytest.fixture
def sample_purchase_body(sample_buyer_profile: Dict) -> Dict[str, Any]:
    """Purchase of one Widget by the sample buyer"""
    return make_purchase_request(
        buyer_id=sample_buyer_profile["user_id"],
        product_name="Widget",
        quantity=1,
        idempotency_key=make_idempotency_key(),
    )


# =============================================================================
# Assertion Helpers
# =============================================================================

class AssertionHelpers:
    """Custom assertion helpers for tests"""

    @staticmethod
    def assert_http_status(response, expected_status: int):
        """Assert HTTP response status"""
        assert response.status_code == expected_status, \
            f"Expected {expected_status}, got {response.status_code}: {response.text}"

    @staticmethod
    def assert_has_fields(data: Dict, fields: List[str]):
        """Assert dict has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def assertions() -> AssertionHelpers:
    """Provide assertion helpers"""
    return AssertionHelpers()


# =============================================================================
# Skip Markers Based on Environment
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "requires_db: Needs a reachable PostgreSQL")


def pytest_collection_modifyitems(config, items):
    """Modify test collection based on markers and environment"""
    skip_db = pytest.mark.skip(reason="PostgreSQL tests disabled (SKIP_DB_TESTS)")

    for item in items:
        if "requires_db" in item.keywords and os.getenv("SKIP_DB_TESTS"):
            item.add_marker(skip_db)
