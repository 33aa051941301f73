"""Subscription ORM - one row per (service, user, start month).

Invariants:
    - id is a sequence-assigned BIGINT, never supplied by callers
    - (service, user_id, start_date) is unique - backs ON CONFLICT DO NOTHING on create
    - start_date/end_date hold the 1st of their month; end_date NULL = open-ended
    - cost >= 0 and end_date >= start_date enforced by check constraints

Design Decisions:
    - Unique constraint at the storage layer: concurrent creates of the same key are
      resolved by the database, not by a read-then-write in the store
    - BIGINT with an INTEGER variant on SQLite: SQLite only autoincrements
      INTEGER PRIMARY KEY columns
    - Date, not DateTime: month granularity has no time-of-day or timezone
"""

import uuid
from datetime import date

from sqlalchemy import (
    BigInteger, CheckConstraint, Date, Integer, String, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from online_subs.db.base import Base


class SubscriptionRecord(Base):
    """Persisted subscription row."""
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint(
            "service", "user_id", "start_date", name="uq_subscriptions_natural_key",
        ),
        CheckConstraint("cost >= 0", name="ck_subscriptions_cost_non_negative"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_subscriptions_end_after_start",
        ),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True, autoincrement=True,
    )
    service: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
