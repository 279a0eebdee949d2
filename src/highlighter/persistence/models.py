"""SQLAlchemy model for the primary structured store."""

from datetime import datetime, timezone

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Record(Base):
    """One keyed JSON document ("layers", "groups")."""

    __tablename__ = "records"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow)
