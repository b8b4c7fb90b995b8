# Overview: Service-layer operations for document numbers (sales, receipts).

"""
Human-readable document numbers.

Format: <PREFIX>-<year>-<6 random digits>, e.g. ADK-2026-004211, R-2026-870012.

Numbers are random, not sequential, so no counter row is contended by
concurrent checkouts. Uniqueness is guaranteed by the unique constraints on
sales.sale_no and receipts.receipt_no: a candidate already in use is skipped
here, and a collision that slips through at commit time surfaces as an
IntegrityError that the caller retries with fresh numbers.
"""

from __future__ import annotations

import secrets

from ..extensions import db
from kiosk.time_utils import utcnow


class NumberAllocationError(RuntimeError):
    """No free number found within the allowed attempts."""


def generate_number(prefix: str, year: int | None = None) -> str:
    year = year or utcnow().year
    return f"{prefix}-{year}-{secrets.randbelow(1_000_000):06d}"


def allocate_unique_number(column, prefix: str, *, attempts: int = 5, year: int | None = None) -> str:
    """
    Generate a number not currently present in `column` (e.g. Sale.sale_no).

    Raises NumberAllocationError after `attempts` collisions in a row.
    """
    for _ in range(max(1, attempts)):
        candidate = generate_number(prefix, year)
        exists = db.session.query(column).filter(column == candidate).first()
        if exists is None:
            return candidate
    raise NumberAllocationError(f"Could not allocate a unique {prefix} number after {attempts} attempts")
