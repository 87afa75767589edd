# backend/chat_api/db/init_db.py
from sqlalchemy.engine import Engine

from chat_api.db.base import Base
from chat_api.db.session import engine

# models must be imported so the tables are registered on Base.metadata
from chat_api import models  # noqa: F401


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)
