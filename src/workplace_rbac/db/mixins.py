"""Reusable SQLAlchemy mixins and helpers for models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import ClassVar

from sqlalchemy import String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from ulid import ULID

from .types import UTCDateTime

__all__ = [
    "generate_ulid",
    "utc_now",
    "TimestampMixin",
    "ULIDPrimaryKeyMixin",
]


def generate_ulid() -> str:
    """Return a lexicographically sortable ULID string."""

    return str(ULID())


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ULIDPrimaryKeyMixin:
    """Mixin that supplies a ULID-backed primary key column."""

    __ulid_field__: ClassVar[str] = "id"

    @declared_attr.directive
    def id(cls) -> Mapped[str]:  # noqa: N805 - SQLAlchemy declared attr
        column_name = getattr(cls, "__ulid_field__", "id")
        return mapped_column(
            column_name,
            String(26),
            primary_key=True,
            default=generate_ulid,
        )


class TimestampMixin:
    """Mixin that records created/updated timestamps as timezone-aware datetimes."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )
