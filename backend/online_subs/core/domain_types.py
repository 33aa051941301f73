"""Domain Types - identity types, sort tokens, and month-granular dates.

Invariants:
    - SubscriptionId wraps the sequence-assigned integer primary key
    - UserId wraps a UUID - never a bare string in domain logic
    - Every date that enters the domain is canonicalized to the 1st of its month
    - Wire format for months is MM-YYYY

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enum for sort tokens: the query string value IS the enum value
"""

from datetime import date, datetime
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

SubscriptionId = NewType("SubscriptionId", int)
UserId = NewType("UserId", UUID)


# ─── Constants ───────────────────────────────────────────────────

MONTH_FORMAT = "%m-%Y"  # MM-YYYY on the wire
MONTHS_PER_YEAR = 12


# ─── Enums ───────────────────────────────────────────────────────

class SortOrder(str, Enum):
    """List ordering tokens. Anything else falls back to START_DATE_DESC."""
    COST_ASC = "cost_asc"
    COST_DESC = "cost_desc"
    SERVICE_ASC = "service_asc"
    SERVICE_DESC = "service_desc"
    START_DATE = "start_date"
    START_DATE_DESC = "start_date_desc"

    @classmethod
    def from_token(cls, token: str | None) -> "SortOrder":
        """Resolve a sort token. Absent or unknown tokens yield the default."""
        if not token:
            return cls.START_DATE_DESC
        try:
            return cls(token)
        except ValueError:
            return cls.START_DATE_DESC


# ─── Month helpers ───────────────────────────────────────────────

def to_month(value: date) -> date:
    """Canonicalize a date (or datetime) to the first day of its month."""
    if isinstance(value, datetime):
        value = value.date()
    return value.replace(day=1)


def parse_month(raw: str) -> date:
    """Parse MM-YYYY into the first day of that month.

    Raises ValueError on anything else, including surrounding whitespace.
    """
    return datetime.strptime(raw, MONTH_FORMAT).date()


def format_month(value: date) -> str:
    return value.strftime(MONTH_FORMAT)
