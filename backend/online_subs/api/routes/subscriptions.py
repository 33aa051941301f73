"""Subscriptions Routes - HTTP surface over the subscription store.

Invariants:
    - Query params use the public names service, userID, startDate, endDate, price
    - Months on the wire are MM-YYYY; malformed months → 400 validation error
    - /get/query requires service, userID and startDate; /total requires startDate and endDate
    - limit is clamped to max_page_limit and the page offset bounded to BIGINT
      before either reaches the store
    - Store errors are raised, not caught: global handlers map them to status codes

Design Decisions:
    - get_store as a FastAPI dependency: tests override it with a store on SQLite
    - /get/query declared before /get/{subscription_id} so the literal path wins
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.exceptions import RequestValidationError

from online_subs.config import get_settings
from online_subs.core.domain_types import SubscriptionId, UserId, parse_month
from online_subs.core.errors import WrongParamsError
from online_subs.core.pagination import count_pages, offset_in_range, page_offset
from online_subs.core.repository_protocols import SubscriptionRepository
from online_subs.core.subscription import SubscriptionFilter
from online_subs.infrastructure.database import get_db_manager
from online_subs.infrastructure.subscription_store import SubscriptionStore
from online_subs.schemas.subscription import (
    BasicResponse, CostResponse, ListMeta, ListResponse,
    SubscriptionOut, SubscriptionPayload, SubscriptionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscriptions/v1", tags=["subscriptions"])


def get_store() -> SubscriptionRepository:
    """FastAPI dependency for the subscription store."""
    settings = get_settings()
    return SubscriptionStore(
        get_db_manager(), timeout_seconds=settings.store_timeout_seconds,
    )


def subscription_filter_query(
    service: str | None = Query(None),
    user_id: UUID | None = Query(None, alias="userID"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    price: int | None = Query(None, ge=0),
    sort: str | None = Query(None),
) -> SubscriptionFilter:
    """Build a filter from query params. Empty strings count as absent."""
    return SubscriptionFilter(
        service=service or None,
        cost=price,
        user_id=UserId(user_id) if user_id else None,
        start_date=_month_param("startDate", start_date),
        end_date=_month_param("endDate", end_date),
        sort=sort or None,
    )


def _month_param(name: str, raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return parse_month(raw)
    except ValueError:
        raise RequestValidationError([{
            "loc": ("query", name),
            "msg": "invalid date format, expected MM-YYYY",
            "type": "value_error",
        }])


@router.post(
    "/create", response_model=BasicResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    body: SubscriptionPayload,
    store: SubscriptionRepository = Depends(get_store),
):
    """Create a subscription. 409 if the user already has this service from this month."""
    subscription_id = await store.create(body.to_domain())
    logger.info(
        f"Created subscription {subscription_id}",
        extra={"subscription_id": subscription_id},
    )
    return BasicResponse(id=subscription_id)


@router.get("/get/query", response_model=SubscriptionResponse)
async def get_subscription_by_params(
    subscription_filter: SubscriptionFilter = Depends(subscription_filter_query),
    store: SubscriptionRepository = Depends(get_store),
):
    """Get a subscription by its natural key (service, userID, startDate)."""
    if not subscription_filter.has_natural_key:
        missing = [
            name for name, value in (
                ("service", subscription_filter.service),
                ("userID", subscription_filter.user_id),
                ("startDate", subscription_filter.start_date),
            )
            if value is None
        ]
        raise WrongParamsError(missing)
    subscription = await store.read_by_params(subscription_filter)
    return SubscriptionResponse(
        subscription=SubscriptionOut.from_domain(subscription),
    )


@router.get("/get/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: int,
    store: SubscriptionRepository = Depends(get_store),
):
    subscription = await store.read_by_id(SubscriptionId(subscription_id))
    return SubscriptionResponse(
        subscription=SubscriptionOut.from_domain(subscription),
    )


@router.patch("/update/{subscription_id}", response_model=BasicResponse)
async def update_subscription(
    subscription_id: int,
    body: SubscriptionPayload,
    store: SubscriptionRepository = Depends(get_store),
):
    """Replace every field of a subscription."""
    await store.update(SubscriptionId(subscription_id), body.to_domain())
    return BasicResponse(id=subscription_id)


@router.delete("/delete/{subscription_id}", response_model=BasicResponse)
async def delete_subscription(
    subscription_id: int,
    store: SubscriptionRepository = Depends(get_store),
):
    await store.delete_by_id(SubscriptionId(subscription_id))
    return BasicResponse(id=subscription_id)


@router.get("/list", response_model=ListResponse)
async def list_subscriptions(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    subscription_filter: SubscriptionFilter = Depends(subscription_filter_query),
    store: SubscriptionRepository = Depends(get_store),
):
    """List subscriptions with filters, sort and page/limit pagination."""
    settings = get_settings()
    limit = min(limit or settings.default_page_limit, settings.max_page_limit)
    subscription_filter.limit = limit
    offset = page_offset(page, limit)
    if not offset_in_range(offset):
        raise RequestValidationError([{
            "loc": ("query", "page"),
            "msg": "page is out of range",
            "type": "value_error",
        }])
    subscription_filter.offset = offset

    subs_page = await store.list(subscription_filter)
    return ListResponse(
        subscriptions=[
            SubscriptionOut.from_domain(s) for s in subs_page.subscriptions
        ],
        meta=ListMeta(
            total=subs_page.total,
            page=page,
            limit=limit,
            pages=count_pages(subs_page.total, limit),
            sum_cost=subs_page.sum_cost,
        ),
    )


@router.get("/total", response_model=CostResponse)
async def get_total_cost(
    subscription_filter: SubscriptionFilter = Depends(subscription_filter_query),
    store: SubscriptionRepository = Depends(get_store),
):
    """Total cost over [startDate, endDate], weighted by months of overlap."""
    if not subscription_filter.has_window:
        missing = [
            name for name, value in (
                ("startDate", subscription_filter.start_date),
                ("endDate", subscription_filter.end_date),
            )
            if value is None
        ]
        raise WrongParamsError(missing)
    sum_cost = await store.get_total_cost(subscription_filter)
    return CostResponse(sum_cost=sum_cost)
