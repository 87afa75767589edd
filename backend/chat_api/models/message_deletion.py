# backend/chat_api/models/message_deletion.py
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_api.db.base import Base
from chat_api.models.util import utcnow


class MessageDeletion(Base):
    """One row per user who hid a message from their own view. Insert-only."""
    __tablename__ = "message_deletions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_deletions_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    message_id: Mapped[int] = mapped_column(ForeignKey("messages.id"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    message = relationship("Message", back_populates="deletions")
