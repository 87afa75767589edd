# backend/chat_api/models/block.py
from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chat_api.db.base import Base
from chat_api.models.util import utcnow


class BlockRelation(Base):
    __tablename__ = "blocked_users"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_blocked_users_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    blocker_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    blocked_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
