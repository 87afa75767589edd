# backend/chat_api/models/chat_room.py
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_api.db.base import Base
from chat_api.models.util import utcnow


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order two participant ids so {a, b} and {b, a} map to the same key."""
    return (a, b) if a <= b else (b, a)


class ChatRoom(Base):
    __tablename__ = "chat_rooms"
    __table_args__ = (
        UniqueConstraint("participant_low", "participant_high", name="uq_chat_rooms_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Unordered pair stored in canonical order (low <= high)
    participant_low: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    participant_high: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    last_message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True, nullable=False)
    last_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    messages = relationship("Message", back_populates="room")

    @property
    def participants(self) -> frozenset[str]:
        return frozenset((self.participant_low, self.participant_high))

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def other_participant(self, user_id: str) -> str | None:
        others = self.participants - {user_id}
        if len(others) != 1:
            return None
        return next(iter(others))
