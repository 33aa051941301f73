"""Subscription Store - CRUD, listing, and total cost against a real SQLite database.

Invariants:
    - Duplicate natural key → AlreadyExistsError, row count unchanged
    - Zero rows touched by read/update/delete → NotFoundError
    - list short-circuits on zero matches (invalid sort token is harmless there)
    - get_total_cost weights each match by months of overlap with the window
    - Deadline overrun → StoreTimeoutError, which is a StoreError
    - Only unique violations (by driver error code) become AlreadyExistsError on update
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from online_subs.core.domain_types import SubscriptionId, UserId
from online_subs.core.errors import (
    AlreadyExistsError, NotFoundError, StoreError, StoreTimeoutError,
    WrongParamsError,
)
from online_subs.core.subscription import SubscriptionFilter
from online_subs.infrastructure.subscription_store import (
    SubscriptionStore, _is_unique_violation,
)


# ─── create / read ──────────────────────────────────────────────

async def test_create_then_read_returns_inserted_subscription(store, make_subscription):
    sub = make_subscription(end_date=date(2024, 6, 1))

    sub_id = await store.create(sub)
    stored = await store.read_by_id(sub_id)

    assert stored.id == sub_id
    assert stored.service == sub.service
    assert stored.cost == sub.cost
    assert stored.user_id == sub.user_id
    assert stored.start_date == date(2024, 1, 1)
    assert stored.end_date == date(2024, 6, 1)


async def test_create_assigns_distinct_ids(store, make_subscription):
    first = await store.create(make_subscription(start_date=date(2024, 1, 1)))
    second = await store.create(make_subscription(start_date=date(2024, 2, 1)))
    assert first != second


async def test_duplicate_natural_key_raises_already_exists(store, make_subscription):
    await store.create(make_subscription(cost=400))

    with pytest.raises(AlreadyExistsError):
        await store.create(make_subscription(cost=999))

    page = await store.list(SubscriptionFilter())
    assert page.total == 1
    assert page.subscriptions[0].cost == 400


async def test_duplicate_detected_at_month_granularity(store, make_subscription):
    await store.create(make_subscription(start_date=date(2024, 3, 2)))

    with pytest.raises(AlreadyExistsError):
        await store.create(make_subscription(start_date=date(2024, 3, 28)))


async def test_same_service_for_another_user_is_allowed(store, make_subscription):
    await store.create(make_subscription())
    await store.create(make_subscription(user_id=UserId(uuid4())))

    page = await store.list(SubscriptionFilter())
    assert page.total == 2


async def test_read_missing_id_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.read_by_id(SubscriptionId(404))


# ─── read_by_params ─────────────────────────────────────────────

async def test_read_by_params_finds_natural_key(store, make_subscription):
    sub = make_subscription(service="Spotify", start_date=date(2024, 5, 1))
    sub_id = await store.create(sub)

    found = await store.read_by_params(SubscriptionFilter(
        service="Spotify", user_id=sub.user_id, start_date=date(2024, 5, 17),
    ))
    assert found.id == sub_id


@pytest.mark.parametrize("missing", ["service", "user_id", "start_date"])
async def test_read_by_params_requires_full_natural_key(store, missing):
    fields = {
        "service": "Spotify",
        "user_id": UserId(uuid4()),
        "start_date": date(2024, 5, 1),
    }
    fields[missing] = None

    with pytest.raises(WrongParamsError) as exc_info:
        await store.read_by_params(SubscriptionFilter(**fields))
    assert exc_info.value.missing == [missing]


async def test_read_by_params_uses_equality_not_window(store, make_subscription):
    """A subscription active in March but started in January is not a match for March."""
    sub = make_subscription(start_date=date(2024, 1, 1))
    await store.create(sub)

    with pytest.raises(NotFoundError):
        await store.read_by_params(SubscriptionFilter(
            service=sub.service, user_id=sub.user_id, start_date=date(2024, 3, 1),
        ))


# ─── update ─────────────────────────────────────────────────────

async def test_update_replaces_fields_and_keeps_id(store, make_subscription):
    sub_id = await store.create(make_subscription(end_date=date(2024, 12, 1)))
    replacement = make_subscription(
        service="Kinopoisk", cost=299, start_date=date(2024, 2, 1), end_date=None,
    )
    replacement.id = SubscriptionId(sub_id + 100)

    await store.update(sub_id, replacement)
    stored = await store.read_by_id(sub_id)

    assert stored.id == sub_id
    assert stored.service == "Kinopoisk"
    assert stored.cost == 299
    assert stored.start_date == date(2024, 2, 1)
    assert stored.end_date is None
    with pytest.raises(NotFoundError):
        await store.read_by_id(SubscriptionId(sub_id + 100))


async def test_update_with_identical_values_succeeds(store, make_subscription):
    sub = make_subscription()
    sub_id = await store.create(sub)

    await store.update(sub_id, sub)

    assert (await store.read_by_id(sub_id)).cost == sub.cost


async def test_update_missing_id_raises_not_found(store, make_subscription):
    with pytest.raises(NotFoundError):
        await store.update(SubscriptionId(404), make_subscription())


async def test_update_onto_existing_natural_key_raises_already_exists(
    store, make_subscription,
):
    await store.create(make_subscription(start_date=date(2024, 1, 1)))
    other_id = await store.create(make_subscription(start_date=date(2024, 2, 1)))

    with pytest.raises(AlreadyExistsError):
        await store.update(other_id, make_subscription(start_date=date(2024, 1, 1)))

    assert (await store.read_by_id(other_id)).start_date == date(2024, 2, 1)


async def test_update_violating_check_constraint_raises_store_error(
    store, make_subscription,
):
    sub_id = await store.create(make_subscription())

    with pytest.raises(StoreError) as exc_info:
        await store.update(sub_id, make_subscription(cost=-1))

    assert not isinstance(exc_info.value, AlreadyExistsError)
    assert (await store.read_by_id(sub_id)).cost == 400


class _DriverError(Exception):
    def __init__(self, message: str, **codes):
        super().__init__(message)
        for name, value in codes.items():
            setattr(self, name, value)


@pytest.mark.parametrize("orig, expected", [
    (_DriverError("duplicate key value", sqlstate="23505"), True),
    (_DriverError("UNIQUE constraint failed",
                  sqlite_errorname="SQLITE_CONSTRAINT_UNIQUE"), True),
    (_DriverError('violates check constraint "ck_unique_cost"',
                  sqlstate="23514"), False),
    (_DriverError("CHECK constraint failed: ck_unique_cost",
                  sqlite_errorname="SQLITE_CONSTRAINT_CHECK"), False),
    (_DriverError("unique"), False),
])
def test_unique_violation_detected_by_error_code(orig, expected):
    error = IntegrityError("UPDATE subscriptions", {}, orig)
    assert _is_unique_violation(error) is expected


# ─── delete ─────────────────────────────────────────────────────

async def test_delete_then_read_raises_not_found(store, make_subscription):
    sub_id = await store.create(make_subscription())

    await store.delete_by_id(sub_id)

    with pytest.raises(NotFoundError):
        await store.read_by_id(sub_id)


async def test_delete_missing_id_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.delete_by_id(SubscriptionId(404))


# ─── list ───────────────────────────────────────────────────────

async def test_list_with_no_matches_returns_empty_page(store, make_subscription):
    await store.create(make_subscription(service="Netflix"))

    page = await store.list(SubscriptionFilter(service="Missing", sort="not_a_sort"))

    assert page.subscriptions == []
    assert page.total == 0
    assert page.sum_cost == 0


async def test_list_defaults_to_start_date_descending(store, make_subscription):
    for month in (3, 1, 2):
        await store.create(make_subscription(start_date=date(2024, month, 1)))

    page = await store.list(SubscriptionFilter())

    starts = [s.start_date for s in page.subscriptions]
    assert starts == [date(2024, 3, 1), date(2024, 2, 1), date(2024, 1, 1)]


async def test_list_unknown_sort_falls_back_to_default(store, make_subscription):
    for month in (1, 2):
        await store.create(make_subscription(start_date=date(2024, month, 1)))

    page = await store.list(SubscriptionFilter(sort="price_asc"))

    assert [s.start_date.month for s in page.subscriptions] == [2, 1]


async def test_list_cost_ascending(store, make_subscription):
    for i, cost in enumerate((500, 100, 300)):
        await store.create(make_subscription(
            cost=cost, start_date=date(2024, i + 1, 1),
        ))

    page = await store.list(SubscriptionFilter(sort="cost_asc"))

    costs = [s.cost for s in page.subscriptions]
    assert costs == sorted(costs)


async def test_list_service_descending(store, make_subscription):
    for service in ("Apple Music", "YouTube Premium", "Netflix"):
        await store.create(make_subscription(service=service))

    page = await store.list(SubscriptionFilter(sort="service_desc"))

    assert [s.service for s in page.subscriptions] == [
        "YouTube Premium", "Netflix", "Apple Music",
    ]


async def test_list_pagination_window_keeps_totals(store, make_subscription):
    for month in range(1, 6):
        await store.create(make_subscription(
            cost=month * 100, start_date=date(2024, month, 1),
        ))

    page = await store.list(SubscriptionFilter(sort="start_date", limit=2, offset=2))

    assert [s.start_date.month for s in page.subscriptions] == [3, 4]
    assert page.total == 5
    assert page.sum_cost == 1500


async def test_list_non_positive_limit_and_offset_mean_unbounded(
    store, make_subscription,
):
    for month in range(1, 4):
        await store.create(make_subscription(start_date=date(2024, month, 1)))

    page = await store.list(SubscriptionFilter(limit=0, offset=-1))

    assert len(page.subscriptions) == 3


async def test_list_filters_by_equality_fields(store, make_subscription):
    user = UserId(uuid4())
    await store.create(make_subscription(service="Netflix", cost=799, user_id=user))
    await store.create(make_subscription(service="Netflix", cost=599))
    await store.create(make_subscription(service="Spotify", cost=799, user_id=user))

    page = await store.list(SubscriptionFilter(service="Netflix", user_id=user))
    assert page.total == 1

    page = await store.list(SubscriptionFilter(cost=799))
    assert page.total == 2


async def test_list_window_matches_intersecting_subscriptions(store, make_subscription):
    await store.create(make_subscription(
        service="ended-before", start_date=date(2023, 1, 1), end_date=date(2023, 12, 1),
    ))
    await store.create(make_subscription(
        service="ends-on-window-start", start_date=date(2023, 6, 1), end_date=date(2024, 1, 1),
    ))
    await store.create(make_subscription(
        service="open-ended", start_date=date(2022, 1, 1),
    ))
    await store.create(make_subscription(
        service="starts-after", start_date=date(2024, 7, 1),
    ))

    page = await store.list(SubscriptionFilter(
        start_date=date(2024, 1, 1), end_date=date(2024, 6, 1), sort="service_asc",
    ))

    assert [s.service for s in page.subscriptions] == [
        "ends-on-window-start", "open-ended",
    ]


async def test_list_single_date_means_active_on_that_month(store, make_subscription):
    await store.create(make_subscription(
        service="active", start_date=date(2024, 1, 1), end_date=date(2024, 6, 1),
    ))
    await store.create(make_subscription(
        service="not-yet", start_date=date(2024, 4, 1),
    ))

    page = await store.list(SubscriptionFilter(end_date=date(2024, 3, 1)))

    assert [s.service for s in page.subscriptions] == ["active"]


# ─── get_total_cost ─────────────────────────────────────────────

async def test_total_cost_weights_by_overlapped_months(store, make_subscription):
    await store.create(make_subscription(
        service="summer", cost=100,
        start_date=date(2024, 6, 1), end_date=date(2024, 8, 1),
    ))
    await store.create(make_subscription(
        service="forever", cost=10, start_date=date(2023, 1, 1),
    ))
    await store.create(make_subscription(
        service="next-year", cost=1000, start_date=date(2025, 1, 1),
    ))

    total = await store.get_total_cost(SubscriptionFilter(
        start_date=date(2024, 1, 1), end_date=date(2024, 12, 1),
    ))

    assert total == 100 * 3 + 10 * 12


async def test_total_cost_applies_non_date_filters(store, make_subscription):
    user = UserId(uuid4())
    await store.create(make_subscription(service="Netflix", cost=10, user_id=user))
    await store.create(make_subscription(service="Spotify", cost=20, user_id=user))
    await store.create(make_subscription(service="Netflix", cost=40))

    total = await store.get_total_cost(SubscriptionFilter(
        service="Netflix", user_id=user,
        start_date=date(2024, 1, 1), end_date=date(2024, 2, 1),
    ))

    assert total == 10 * 2


async def test_total_cost_with_inverted_window_is_zero(store, make_subscription):
    await store.create(make_subscription(cost=100, start_date=date(2020, 1, 1)))

    total = await store.get_total_cost(SubscriptionFilter(
        start_date=date(2024, 12, 1), end_date=date(2024, 1, 1),
    ))

    assert total == 0


@pytest.mark.parametrize("bounds,missing", [
    ({"start_date": date(2024, 1, 1)}, ["end_date"]),
    ({"end_date": date(2024, 1, 1)}, ["start_date"]),
    ({}, ["start_date", "end_date"]),
])
async def test_total_cost_requires_both_window_bounds(store, bounds, missing):
    with pytest.raises(WrongParamsError) as exc_info:
        await store.get_total_cost(SubscriptionFilter(**bounds))
    assert exc_info.value.missing == missing


# ─── deadline ───────────────────────────────────────────────────

class _StalledSessionManager:
    """Session manager whose sessions never become available in time."""

    @asynccontextmanager
    async def session(self):
        await asyncio.sleep(10)
        yield None


async def test_operation_past_deadline_raises_store_timeout():
    store = SubscriptionStore(_StalledSessionManager(), timeout_seconds=0.05)

    with pytest.raises(StoreTimeoutError) as exc_info:
        await store.read_by_id(SubscriptionId(1))

    assert isinstance(exc_info.value, StoreError)
    assert not isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.context.operation == "read_by_id"


async def test_list_past_deadline_raises_store_timeout():
    store = SubscriptionStore(_StalledSessionManager(), timeout_seconds=0.05)

    with pytest.raises(StoreTimeoutError):
        await store.list(SubscriptionFilter())
