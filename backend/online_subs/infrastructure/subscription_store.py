"""Subscription Store - SQLAlchemy-backed CRUD, filtered listing, and period cost totals.

Invariants:
    - Stateless: every call opens and closes its own session, nothing cached between calls
    - Every operation runs under a deadline from call entry; overrun → StoreTimeoutError
    - Create is one INSERT ... ON CONFLICT DO NOTHING RETURNING id; zero returned rows
      means the natural key is taken (never a read-then-write)
    - Update/Delete report NotFound when the statement touches zero rows
    - Windowed predicates (list, get_total_cost) and natural-key equality
      (read_by_params) are built by separate functions
    - No retries, no local recovery: every failure leaves as a core.errors type

Design Decisions:
    - Dialect insert (postgresql/sqlite) for the conflict clause: both backends speak
      ON CONFLICT, the generic insert() does not
    - asyncio.timeout over per-statement timeouts: one bound covers connect, query, commit
    - Ordering always ends with id ASC so pages do not shuffle between requests
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from online_subs.core.cost_overlap import weighted_total_cost
from online_subs.core.domain_types import SortOrder, SubscriptionId, UserId
from online_subs.core.errors import (
    AlreadyExistsError, ErrorContext, NotFoundError, StoreError,
    StoreTimeoutError, WrongParamsError,
)
from online_subs.core.subscription import (
    Subscription, SubscriptionFilter, SubscriptionsPage,
)
from online_subs.infrastructure.database import DatabaseSessionManager
from online_subs.models.subscription import SubscriptionRecord

logger = logging.getLogger(__name__)

SLA_TIMEOUT_SECONDS = 5.0

_NATURAL_KEY = ("service", "user_id", "start_date")

_PG_UNIQUE_VIOLATION = "23505"
_SQLITE_UNIQUE_VIOLATION = "SQLITE_CONSTRAINT_UNIQUE"

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_ORDERINGS = {
    SortOrder.COST_ASC: SubscriptionRecord.cost.asc(),
    SortOrder.COST_DESC: SubscriptionRecord.cost.desc(),
    SortOrder.SERVICE_ASC: SubscriptionRecord.service.asc(),
    SortOrder.SERVICE_DESC: SubscriptionRecord.service.desc(),
    SortOrder.START_DATE: SubscriptionRecord.start_date.asc(),
    SortOrder.START_DATE_DESC: SubscriptionRecord.start_date.desc(),
}


class SubscriptionStore:
    """Stateless façade over the subscriptions table."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        timeout_seconds: float = SLA_TIMEOUT_SECONDS,
    ):
        self._db = db
        self.timeout_seconds = timeout_seconds

    @asynccontextmanager
    async def _session(
        self, operation: str, subscription_id: int | None = None,
    ) -> AsyncGenerator[AsyncSession, None]:
        """Session bounded by the store deadline."""
        try:
            async with asyncio.timeout(self.timeout_seconds):
                async with self._db.session() as db:
                    yield db
        except TimeoutError:
            logger.error(
                f"Store {operation} exceeded {self.timeout_seconds:g}s deadline",
                extra={"operation": operation, "subscription_id": subscription_id},
            )
            raise StoreTimeoutError(
                operation, self.timeout_seconds,
                ErrorContext(operation=operation, subscription_id=subscription_id),
            )

    # ─── CRUD ────────────────────────────────────────────────────

    async def create(self, subscription: Subscription) -> SubscriptionId:
        """Insert one subscription; AlreadyExistsError if its natural key is taken."""
        logger.debug(
            f"Create subscription {subscription.service!r}",
            extra={"operation": "create", "user_id": subscription.user_id},
        )
        async with self._session("create") as db:
            insert = _dialect_insert(db)
            stmt = (
                insert(SubscriptionRecord)
                .values(**_row_values(subscription))
                .on_conflict_do_nothing(index_elements=list(_NATURAL_KEY))
                .returning(SubscriptionRecord.id)
            )
            result = await db.execute(stmt)
            inserted = result.scalars().all()
            if len(inserted) != 1:
                logger.warning(
                    f"Subscription {subscription.service!r} already exists",
                    extra={"operation": "create", "user_id": subscription.user_id},
                )
                raise AlreadyExistsError(ErrorContext(operation="create"))
            await db.commit()

        subscription_id = SubscriptionId(inserted[0])
        logger.info(
            f"Subscription {subscription_id} created",
            extra={"operation": "create", "subscription_id": subscription_id},
        )
        return subscription_id

    async def read_by_id(self, subscription_id: SubscriptionId) -> Subscription:
        logger.debug(
            f"Read subscription {subscription_id}",
            extra={"operation": "read_by_id", "subscription_id": subscription_id},
        )
        async with self._session("read_by_id", subscription_id) as db:
            result = await db.execute(
                select(SubscriptionRecord)
                .where(SubscriptionRecord.id == subscription_id),
            )
            record = result.scalar_one_or_none()
            if record is None:
                logger.warning(
                    f"Subscription {subscription_id} not found",
                    extra={"operation": "read_by_id", "subscription_id": subscription_id},
                )
                raise NotFoundError(ErrorContext(
                    operation="read_by_id", subscription_id=subscription_id,
                ))
            return _to_domain(record)

    async def read_by_params(self, subscription_filter: SubscriptionFilter) -> Subscription:
        """Point lookup of the natural key. Filter dates are equality here, not a window."""
        logger.debug(
            "Read subscription by natural key",
            extra={"operation": "read_by_params", "service": subscription_filter.service},
        )
        if not subscription_filter.has_natural_key:
            missing = [
                name for name in _NATURAL_KEY
                if getattr(subscription_filter, name) is None
            ]
            logger.error(
                f"Natural key lookup missing {missing}",
                extra={"operation": "read_by_params"},
            )
            raise WrongParamsError(missing, ErrorContext(operation="read_by_params"))

        async with self._session("read_by_params") as db:
            result = await db.execute(
                select(SubscriptionRecord)
                .where(*_natural_key_clauses(subscription_filter)),
            )
            record = result.scalar_one_or_none()
            if record is None:
                logger.warning(
                    f"Subscription {subscription_filter.service!r} not found by params",
                    extra={"operation": "read_by_params", "user_id": subscription_filter.user_id},
                )
                raise NotFoundError(ErrorContext(operation="read_by_params"))
            return _to_domain(record)

    async def update(
        self, subscription_id: SubscriptionId, subscription_updated: Subscription,
    ) -> None:
        """Replace every mutable field of one row. Any id on subscription_updated is ignored."""
        logger.debug(
            f"Update subscription {subscription_id}",
            extra={"operation": "update", "subscription_id": subscription_id},
        )
        context = ErrorContext(operation="update", subscription_id=subscription_id)
        async with self._session("update", subscription_id) as db:
            try:
                result = await db.execute(
                    update(SubscriptionRecord)
                    .where(SubscriptionRecord.id == subscription_id)
                    .values(**_row_values(subscription_updated)),
                )
            except IntegrityError as e:
                if not _is_unique_violation(e):
                    raise
                logger.warning(
                    f"Update of {subscription_id} collides with an existing natural key",
                    extra={"operation": "update", "subscription_id": subscription_id},
                )
                raise AlreadyExistsError(context)
            if result.rowcount == 0:
                logger.warning(
                    f"Subscription {subscription_id} not found for update",
                    extra={"operation": "update", "subscription_id": subscription_id},
                )
                raise NotFoundError(context)
            await db.commit()

        logger.info(
            f"Subscription {subscription_id} updated",
            extra={"operation": "update", "subscription_id": subscription_id},
        )

    async def delete_by_id(self, subscription_id: SubscriptionId) -> None:
        logger.debug(
            f"Delete subscription {subscription_id}",
            extra={"operation": "delete_by_id", "subscription_id": subscription_id},
        )
        async with self._session("delete_by_id", subscription_id) as db:
            result = await db.execute(
                delete(SubscriptionRecord)
                .where(SubscriptionRecord.id == subscription_id),
            )
            if result.rowcount == 0:
                logger.warning(
                    f"Subscription {subscription_id} not found for delete",
                    extra={"operation": "delete_by_id", "subscription_id": subscription_id},
                )
                raise NotFoundError(ErrorContext(
                    operation="delete_by_id", subscription_id=subscription_id,
                ))
            await db.commit()

        logger.info(
            f"Subscription {subscription_id} deleted",
            extra={"operation": "delete_by_id", "subscription_id": subscription_id},
        )

    # ─── Aggregation ─────────────────────────────────────────────

    async def get_total_cost(self, subscription_filter: SubscriptionFilter) -> int:
        """Sum cost * overlapped months across the filter window.

        Requires both window bounds. Candidates are selected with the same
        window predicate as list(), then weighted by months of overlap.
        """
        logger.debug(
            "Get total cost of subscriptions",
            extra={"operation": "get_total_cost"},
        )
        if not subscription_filter.has_window:
            missing = [
                name for name in ("start_date", "end_date")
                if getattr(subscription_filter, name) is None
            ]
            logger.error(
                f"Total cost requested without window bounds {missing}",
                extra={"operation": "get_total_cost"},
            )
            raise WrongParamsError(missing, ErrorContext(operation="get_total_cost"))

        async with self._session("get_total_cost") as db:
            result = await db.execute(
                select(
                    SubscriptionRecord.cost,
                    SubscriptionRecord.start_date,
                    SubscriptionRecord.end_date,
                ).where(*_window_clauses(subscription_filter)),
            )
            rows = result.all()

        total_cost = weighted_total_cost(
            subscription_filter.start_date, subscription_filter.end_date,
            ((row.cost, row.start_date, row.end_date) for row in rows),
        )
        logger.info(
            f"Total cost {total_cost} over {len(rows)} subscriptions",
            extra={"operation": "get_total_cost", "total": total_cost},
        )
        return total_cost

    async def list(self, subscription_filter: SubscriptionFilter) -> SubscriptionsPage:
        """Filtered, ordered, paginated listing with totals over every match.

        Returns an empty page without the ordered fetch when nothing matches.
        """
        logger.debug("List subscriptions", extra={"operation": "list"})
        clauses = _window_clauses(subscription_filter)

        async with self._session("list") as db:
            total = await db.scalar(
                select(func.count())
                .select_from(SubscriptionRecord)
                .where(*clauses),
            )
            if not total:
                logger.debug(
                    "No subscriptions match filter",
                    extra={"operation": "list", "total": 0},
                )
                return SubscriptionsPage()

            sum_cost = await db.scalar(
                select(func.coalesce(func.sum(SubscriptionRecord.cost), 0))
                .where(*clauses),
            )

            query = (
                select(SubscriptionRecord)
                .where(*clauses)
                .order_by(
                    _ORDERINGS[subscription_filter.sort_order],
                    SubscriptionRecord.id.asc(),
                )
            )
            if subscription_filter.limit is not None and subscription_filter.limit > 0:
                query = query.limit(subscription_filter.limit)
            if subscription_filter.offset is not None and subscription_filter.offset > 0:
                query = query.offset(subscription_filter.offset)

            result = await db.execute(query)
            records = result.scalars().all()

        logger.info(
            f"Listed {len(records)} of {total} subscriptions",
            extra={"operation": "list", "total": total},
        )
        return SubscriptionsPage(
            subscriptions=[_to_domain(r) for r in records],
            total=int(total),
            sum_cost=int(sum_cost),
        )


# ─── Query composition ──────────────────────────────────────────

def _window_clauses(subscription_filter: SubscriptionFilter) -> list:
    """Conjunctive predicates with dates as an intersecting window."""
    clauses = _equality_clauses(subscription_filter)
    window = subscription_filter.window()
    if window is not None:
        window_start, window_end = window
        clauses.append(SubscriptionRecord.start_date <= window_end)
        clauses.append(or_(
            SubscriptionRecord.end_date.is_(None),
            SubscriptionRecord.end_date >= window_start,
        ))
    return clauses


def _natural_key_clauses(subscription_filter: SubscriptionFilter) -> list:
    """Exact match on (service, user_id, start_date)."""
    return [
        SubscriptionRecord.service == subscription_filter.service,
        SubscriptionRecord.user_id == subscription_filter.user_id,
        SubscriptionRecord.start_date == subscription_filter.start_date,
    ]


def _equality_clauses(subscription_filter: SubscriptionFilter) -> list:
    clauses = []
    if subscription_filter.service is not None:
        clauses.append(SubscriptionRecord.service == subscription_filter.service)
    if subscription_filter.user_id is not None:
        clauses.append(SubscriptionRecord.user_id == subscription_filter.user_id)
    if subscription_filter.cost is not None:
        clauses.append(SubscriptionRecord.cost == subscription_filter.cost)
    return clauses


# ─── Row mapping ────────────────────────────────────────────────

def _dialect_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise StoreError(f"dialect {dialect!r} has no conflict clause", "create")
    return insert


def _row_values(subscription: Subscription) -> dict:
    return {
        "service": subscription.service,
        "cost": subscription.cost,
        "user_id": subscription.user_id,
        "start_date": subscription.start_date,
        "end_date": subscription.end_date,
    }


def _to_domain(record: SubscriptionRecord) -> Subscription:
    return Subscription(
        id=SubscriptionId(record.id),
        service=record.service,
        cost=record.cost,
        user_id=UserId(record.user_id),
        start_date=record.start_date,
        end_date=record.end_date,
    )


def _is_unique_violation(error: IntegrityError) -> bool:
    """Match on driver error codes: SQLSTATE 23505 (asyncpg) or SQLite's extended code name."""
    orig = error.orig
    if getattr(orig, "sqlstate", None) == _PG_UNIQUE_VIOLATION:
        return True
    return getattr(orig, "sqlite_errorname", None) == _SQLITE_UNIQUE_VIOLATION
