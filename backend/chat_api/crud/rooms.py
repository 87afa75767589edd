# backend/chat_api/crud/rooms.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chat_api.core.errors import Forbidden, InvalidArgument
from chat_api.core.locks import room_pair_locks
from chat_api.crud.moderation import is_blocked
from chat_api.models.chat_room import ChatRoom, canonical_pair
from chat_api.models.util import utcnow

logger = logging.getLogger(__name__)

NOT_A_PARTICIPANT = "Forbidden: You are not a participant in this chat room."


def get_room(db: Session, room_id: int) -> ChatRoom | None:
    return db.get(ChatRoom, room_id)


def get_room_for_pair(db: Session, a: str, b: str) -> ChatRoom | None:
    low, high = canonical_pair(a, b)
    stmt = select(ChatRoom).where(
        ChatRoom.participant_low == low,
        ChatRoom.participant_high == high,
    )
    return db.execute(stmt).scalar_one_or_none()


def require_participant(db: Session, room_id: int, user_id: str) -> ChatRoom:
    """
    Return the room if ``user_id`` takes part in it.
    A missing room answers the same as a foreign one, so room ids can't be discovered by guessing.
    """
    room = get_room(db, room_id)
    if room is None or not room.has_participant(user_id):
        raise Forbidden(NOT_A_PARTICIPANT)
    return room


def find_or_create_room(
    db: Session,
    caller_id: str,
    other_id: str | None,
    enforce_blocks: bool = False,
) -> tuple[ChatRoom, bool]:
    """
    Return the room shared by the two users, creating it on first contact.

    Returns (room, created). Concurrent calls for the same pair are serialized
    by a per-pair lock; across processes the unique constraint on the pair
    decides and the losing insert re-reads the winner's row.
    """
    if not other_id or other_id == caller_id:
        raise InvalidArgument("Invalid otherParticipantId.")

    if enforce_blocks and is_blocked(db, caller_id, other_id):
        raise Forbidden("Forbidden: One of the users has blocked the other.")

    low, high = canonical_pair(caller_id, other_id)

    with room_pair_locks.hold((low, high)):
        room = get_room_for_pair(db, low, high)
        if room is not None:
            return room, False

        now = utcnow()
        room = ChatRoom(
            participant_low=low,
            participant_high=high,
            last_message="",
            last_message_at=now,
            created_at=now,
        )
        db.add(room)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            room = get_room_for_pair(db, low, high)
            if room is None:
                raise
            logger.info("Chat room for %s/%s created concurrently, reusing %s", low, high, room.id)
            return room, False

        db.refresh(room)
        logger.info("Created chat room %s", room.id)
        return room, True


def list_rooms_for(db: Session, user_id: str) -> list[tuple[ChatRoom, str]]:
    """
    Rooms the user takes part in, most recently active first,
    each paired with the other participant's id.
    """
    stmt = (
        select(ChatRoom)
        .where(or_(ChatRoom.participant_low == user_id, ChatRoom.participant_high == user_id))
        .order_by(ChatRoom.last_message_at.desc(), ChatRoom.id.desc())
    )

    result = []
    for room in db.execute(stmt).scalars():
        other_id = room.other_participant(user_id)
        if other_id is None:
            # malformed room (same id on both sides), skip it
            logger.warning("Chat room %s has no other participant for %s", room.id, user_id)
            continue
        result.append((room, other_id))
    return result


def touch_room(
    db: Session,
    room_id: int,
    preview: str,
    timestamp: datetime,
    message_id: int | None = None,
) -> bool:
    """
    Record the room's latest activity.

    Applied only if (timestamp, message_id) is newer than what the room holds,
    so a delayed touch from an earlier message never overwrites a later one.
    Returns whether the row changed.
    """
    if message_id is None:
        same_instant = ChatRoom.last_message_at == timestamp
    else:
        same_instant = and_(
            ChatRoom.last_message_at == timestamp,
            or_(ChatRoom.last_message_id.is_(None), ChatRoom.last_message_id < message_id),
        )

    stmt = (
        update(ChatRoom)
        .where(ChatRoom.id == room_id)
        .where(or_(ChatRoom.last_message_at < timestamp, same_instant))
        .values(last_message=preview, last_message_at=timestamp, last_message_id=message_id)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    applied = result.rowcount == 1
    if not applied:
        logger.debug("Skipped stale touch for room %s (message %s)", room_id, message_id)
    return applied
