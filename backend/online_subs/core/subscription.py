"""Subscription Values - request-scoped copies of persisted subscriptions and query criteria.

Invariants:
    - Subscription.start_date and end_date are month-canonical (day == 1)
    - Subscription.id is None until the store assigns one
    - Every SubscriptionFilter field defaults to None ("no constraint")
    - SubscriptionsPage.total and sum_cost ignore limit/offset

Design Decisions:
    - Dataclasses, not ORM rows: core never touches the session, rows are copied out
    - One Optional field per filter dimension over a dict of criteria: presence is
      explicit and type-checked
    - Filter dates are canonicalized on construction so every consumer sees months
"""

from dataclasses import dataclass, field
from datetime import date

from online_subs.core.domain_types import (
    SubscriptionId, UserId, SortOrder, to_month,
)


@dataclass
class Subscription:
    """A subscription record - service, cost, owner, and active months."""
    service: str
    cost: int
    user_id: UserId
    start_date: date
    end_date: date | None = None
    id: SubscriptionId | None = None

    def __post_init__(self):
        self.start_date = to_month(self.start_date)
        if self.end_date is not None:
            self.end_date = to_month(self.end_date)


@dataclass
class SubscriptionFilter:
    """Sparse query criteria shared by lookup, listing, and aggregation.

    start_date/end_date are a query window for list and total cost,
    but an exact natural-key match for read_by_params.
    """
    service: str | None = None
    cost: int | None = None
    user_id: UserId | None = None
    start_date: date | None = None
    end_date: date | None = None

    # listing only
    limit: int | None = None
    offset: int | None = None
    sort: str | None = None

    def __post_init__(self):
        if self.start_date is not None:
            self.start_date = to_month(self.start_date)
        if self.end_date is not None:
            self.end_date = to_month(self.end_date)

    @property
    def has_natural_key(self) -> bool:
        return (
            self.service is not None
            and self.user_id is not None
            and self.start_date is not None
        )

    @property
    def has_window(self) -> bool:
        """True when both window bounds are present (required for total cost)."""
        return self.start_date is not None and self.end_date is not None

    def window(self) -> tuple[date, date] | None:
        """Resolve the query window. A single bound collapses onto itself."""
        if self.start_date is None and self.end_date is None:
            return None
        start = self.start_date if self.start_date is not None else self.end_date
        end = self.end_date if self.end_date is not None else self.start_date
        return start, end

    @property
    def sort_order(self) -> SortOrder:
        return SortOrder.from_token(self.sort)


@dataclass
class SubscriptionsPage:
    """One page of list results plus totals over every match."""
    subscriptions: list[Subscription] = field(default_factory=list)
    total: int = 0
    sum_cost: int = 0
