"""Subscription Schemas - request bodies and response envelopes for /subscriptions/v1.

Invariants:
    - SubscriptionPayload.service_name: 1-255 chars, stripped, non-empty
    - price >= 0
    - start_date/end_date accept MM-YYYY only; end_date, when given, not before start_date
    - Responses render months back as MM-YYYY

Design Decisions:
    - field_validator(mode="before") parses MM-YYYY so handlers receive dates
    - JSON names (service_name, price) kept stable for existing clients; domain names
      (service, cost) stay internal
"""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from online_subs.core.domain_types import (
    UserId, format_month, parse_month,
)
from online_subs.core.subscription import Subscription

MESSAGE_SUCCESS = "success"


def _coerce_month(value: object) -> date | None:
    """MM-YYYY strings only. Numbers and ISO dates never reach date coercion."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("invalid date format, expected MM-YYYY")
    try:
        return parse_month(value)
    except ValueError:
        raise ValueError("invalid date format, expected MM-YYYY")


class SubscriptionPayload(BaseModel):
    """Create/update body - a full subscription minus its id."""
    service_name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    user_id: UUID
    start_date: date
    end_date: date | None = None

    @field_validator("service_name")
    @classmethod
    def strip_service_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("service_name cannot be empty or whitespace")
        return v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_months(cls, v: object) -> date | None:
        return _coerce_month(v)

    @model_validator(mode="after")
    def validate_period(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot precede start_date")
        return self

    def to_domain(self) -> Subscription:
        return Subscription(
            service=self.service_name,
            cost=self.price,
            user_id=UserId(self.user_id),
            start_date=self.start_date,
            end_date=self.end_date,
        )


class SubscriptionOut(BaseModel):
    """Public shape of a stored subscription."""
    id: int
    service_name: str
    price: int
    user_id: UUID
    start_date: str
    end_date: str | None = None

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionOut":
        return cls(
            id=subscription.id,
            service_name=subscription.service,
            price=subscription.cost,
            user_id=subscription.user_id,
            start_date=format_month(subscription.start_date),
            end_date=(
                format_month(subscription.end_date)
                if subscription.end_date else None
            ),
        )


class BasicResponse(BaseModel):
    message: str = MESSAGE_SUCCESS
    id: int


class SubscriptionResponse(BaseModel):
    message: str = MESSAGE_SUCCESS
    subscription: SubscriptionOut


class ListMeta(BaseModel):
    """Pagination metadata; total and sum_cost cover every match, not just the page."""
    total: int
    page: int
    limit: int
    pages: int
    sum_cost: int


class ListResponse(BaseModel):
    message: str = MESSAGE_SUCCESS
    subscriptions: list[SubscriptionOut]
    meta: ListMeta


class CostResponse(BaseModel):
    message: str = MESSAGE_SUCCESS
    sum_cost: int
