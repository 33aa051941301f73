"""Boundary Protocols - the contract between the API layer and the subscription store.

Invariants:
    - Routes depend on SubscriptionRepository, never on SQLAlchemy
    - Failures are raised as core.errors types, never returned

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: implementations do IO
"""

from typing import Protocol

from online_subs.core.domain_types import SubscriptionId
from online_subs.core.subscription import (
    Subscription, SubscriptionFilter, SubscriptionsPage,
)


class SubscriptionRepository(Protocol):
    """Contract for subscription persistence - implemented by SubscriptionStore."""
    async def create(self, subscription: Subscription) -> SubscriptionId: ...
    async def read_by_id(self, subscription_id: SubscriptionId) -> Subscription: ...
    async def read_by_params(self, subscription_filter: SubscriptionFilter) -> Subscription: ...
    async def update(
        self, subscription_id: SubscriptionId, subscription_updated: Subscription,
    ) -> None: ...
    async def delete_by_id(self, subscription_id: SubscriptionId) -> None: ...
    async def list(self, subscription_filter: SubscriptionFilter) -> SubscriptionsPage: ...
    async def get_total_cost(self, subscription_filter: SubscriptionFilter) -> int: ...
