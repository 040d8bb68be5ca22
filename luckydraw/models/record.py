"""Database model backing the key/value persistence store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base


class StoredRecord(Base):
    """One serialized record (configuration or winner ledger) addressed by key."""

    __tablename__ = "stored_records"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    """Record key, optionally prefixed with a namespace."""

    payload: Mapped[str] = mapped_column(Text, nullable=False)
    """JSON document exactly as written by the store."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the first write."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    """Timestamp bumped on every overwrite."""

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<StoredRecord(key={key}, size={size})>".format(
            key=self.key,
            size=len(self.payload or ""),
        )

    @classmethod
    def get_by_key(cls, session: Session, key: str) -> Optional["StoredRecord"]:
        """Return the record stored under ``key`` if it exists."""

        return session.scalar(select(cls).where(cls.key == key))
