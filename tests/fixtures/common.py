"""
Common/Shared Fixtures

Base factories and generators used across multiple test layers.
"""
import uuid
from typing import Optional


def make_user_id() -> str:
    """Generate a unique user ID"""
    return f"usr_test_{uuid.uuid4().hex[:12]}"


def make_email(prefix: Optional[str] = None) -> str:
    """Generate a unique email"""
    prefix = prefix or f"test_{uuid.uuid4().hex[:8]}"
    return f"{prefix}@example.com"


def make_idempotency_key() -> str:
    """Generate a unique idempotency key"""
    return f"idem_test_{uuid.uuid4().hex}"
