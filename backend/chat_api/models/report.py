# backend/chat_api/models/report.py
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_api.db.base import Base
from chat_api.models.util import utcnow

REPORTABLE_ITEM_TYPES = ("message", "chat")


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(primary_key=True)

    reporter_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    item_type: Mapped[str] = mapped_column(String(16), nullable=False)
    # Not a foreign key: reports may point at rooms or messages
    item_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
