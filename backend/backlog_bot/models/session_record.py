"""Session Record ORM: one row per persisted conversation state.

Invariants:
    - key is the primary key ("state:{user_id}")
    - value holds the serialized state exactly as written (round-trips byte-for-byte)

Design Decisions:
    - Generic key/value table: the store owns key format and serialization
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backlog_bot.db.base import Base


class SessionRecord(Base):
    __tablename__ = "session_records"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
