"""
Declarative base and column types shared by the registry ORM models.

Every table gets a surrogate ``id`` (uuid4, stored as 36-character text so
SQLite and PostgreSQL behave the same).  Business identifiers such as
``workflow_id`` and ``issue_id`` are separate unique columns.

Timestamps are declared ``DateTime(timezone=True)``.  SQLite hands them
back naive; ``as_utc`` restores the UTC zone before they reach a DTO.
"""

from datetime import datetime, timezone
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat a naive timestamp from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
