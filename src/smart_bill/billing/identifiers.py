"""Billing ID and timestamp generation for callers that omit them."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Optional


def generate_billing_id(prefix: str = "BILL", now: Optional[datetime] = None) -> str:
    """Return an ID of the form PREFIX-YYYYMMDD-HHMMSS-NNNN."""
    moment = now or datetime.now()
    suffix = random.randint(1000, 9999)
    return f"{prefix}-{moment:%Y%m%d-%H%M%S}-{suffix}"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 creation time in UTC."""
    moment = now or datetime.now(timezone.utc)
    return moment.isoformat()
