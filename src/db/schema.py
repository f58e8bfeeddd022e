"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBSession(Base):
    """One negotiated game, as seen by the local player. The hash is shared with the opponent."""

    __tablename__ = "sessions"
    hash: Mapped[str] = mapped_column(primary_key=True)
    local_color: Mapped[str]
    last_turn: Mapped[Optional[str]]
    curr_turn: Mapped[Optional[str]]
    status: Mapped[str]
    en_passant: Mapped[Optional[str]]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
