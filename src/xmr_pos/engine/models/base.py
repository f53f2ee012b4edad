"""Declarative base and timestamp mixin."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    # Every datetime column stores an aware timestamp.
    type_annotation_map = {datetime: DateTime(timezone=True)}


class TimestampMixin:
    """``created_at`` (indexed for the retention sweep) and ``updated_at``.

    Values are stamped in Python with microseconds; SQLite's
    ``CURRENT_TIMESTAMP`` only has whole seconds, which would skew the
    LWS match window. The server defaults cover rows written outside the ORM.
    """

    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )
