# backend/chat_api/models/message.py
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_api.db.base import Base
from chat_api.models.util import utcnow


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    room_id: Mapped[int] = mapped_column(ForeignKey("chat_rooms.id"), index=True, nullable=False)
    sender_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{"name": ..., "mime_type": ..., "url": ...}] in upload order
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Back-reference only, the target is not required to exist
    reply_to_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    room = relationship("ChatRoom", back_populates="messages")
    deletions = relationship("MessageDeletion", back_populates="message", lazy="selectin")

    @property
    def deleted_by(self) -> frozenset[str]:
        return frozenset(d.user_id for d in self.deletions)
