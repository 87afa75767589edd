# backend/chat_api/crud/moderation.py
from __future__ import annotations

import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chat_api.core.errors import InvalidArgument
from chat_api.models.block import BlockRelation
from chat_api.models.report import REPORTABLE_ITEM_TYPES, Report
from chat_api.models.util import utcnow

logger = logging.getLogger(__name__)


def get_block(db: Session, blocker_id: str, blocked_id: str) -> BlockRelation | None:
    stmt = select(BlockRelation).where(
        BlockRelation.blocker_id == blocker_id,
        BlockRelation.blocked_id == blocked_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def is_blocked(db: Session, a: str, b: str) -> bool:
    """True if either user has blocked the other."""
    stmt = select(BlockRelation.id).where(
        or_(
            and_(BlockRelation.blocker_id == a, BlockRelation.blocked_id == b),
            and_(BlockRelation.blocker_id == b, BlockRelation.blocked_id == a),
        )
    ).limit(1)
    return db.execute(stmt).first() is not None


def block_user(db: Session, blocker_id: str, blocked_id: str | None) -> bool:
    """Record that blocker blocked blocked. Returns False if it was already recorded."""
    if not blocked_id or blocker_id == blocked_id:
        raise InvalidArgument("Invalid blockedUserId.")

    if get_block(db, blocker_id, blocked_id) is not None:
        return False

    db.add(BlockRelation(blocker_id=blocker_id, blocked_id=blocked_id, created_at=utcnow()))
    try:
        db.commit()
    except IntegrityError:
        # lost a race with an identical block, same outcome
        db.rollback()
        return False

    logger.info("User %s blocked %s", blocker_id, blocked_id)
    return True


def report_item(db: Session, reporter_id: str, item_type: str, item_id: str | None, reason: str | None) -> Report:
    if item_type not in REPORTABLE_ITEM_TYPES or not item_id or not reason or not reason.strip():
        raise InvalidArgument('itemType ("message" or "chat"), itemId, and reason are required.')

    report = Report(
        reporter_id=reporter_id,
        item_type=item_type,
        item_id=str(item_id),
        reason=reason,
        created_at=utcnow(),
    )
    db.add(report)
    db.commit()
    db.refresh(report)

    logger.info("Report %s filed by %s against %s %s", report.id, reporter_id, item_type, item_id)
    return report
