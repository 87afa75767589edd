# backend/chat_api/crud/messages.py
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chat_api.core.errors import Forbidden, InvalidArgument, NotFound, UploadFailed
from chat_api.core.locks import room_write_locks
from chat_api.crud.moderation import is_blocked
from chat_api.crud.rooms import NOT_A_PARTICIPANT, require_participant, touch_room
from chat_api.models.message import Message
from chat_api.models.message_deletion import MessageDeletion
from chat_api.models.util import utcnow
from chat_api.security.sanitizer import InputSanitizer
from chat_api.storage.blob import BlobStore, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttachmentFile:
    """An incoming file, already read into memory."""
    filename: str
    content_type: str
    data: bytes


def get_message(db: Session, message_id: int) -> Message | None:
    return db.get(Message, message_id)


def list_messages(db: Session, room_id: int, viewer_id: str) -> list[Message]:
    """Messages of a room in send order, minus the ones the viewer hid."""
    require_participant(db, room_id, viewer_id)

    hidden = select(MessageDeletion.message_id).where(MessageDeletion.user_id == viewer_id)
    stmt = (
        select(Message)
        .where(Message.room_id == room_id, Message.id.not_in(hidden))
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(db.execute(stmt).scalars())


def build_preview(text: str | None, attachment_count: int, limit: int = 100) -> str:
    if text:
        return text[:limit]
    if attachment_count:
        return f"Sent {attachment_count} file(s)"
    return ""


def _storage_paths(room_id: int, sender_id: str, files: Sequence[AttachmentFile]) -> list[str]:
    stamp = int(time.time() * 1000)
    paths = []
    seen = set()
    for f in files:
        try:
            name = InputSanitizer.sanitize_filename(f.filename)
        except ValueError as e:
            raise InvalidArgument(f"Invalid file name {f.filename!r}: {e}")

        path = f"{room_id}/{sender_id}/{stamp}-{name}"
        n = 1
        while path in seen:
            path = f"{room_id}/{sender_id}/{stamp}-{n}-{name}"
            n += 1
        seen.add(path)
        paths.append(path)
    return paths


def upload_attachments(
    store: BlobStore,
    bucket: str,
    room_id: int,
    sender_id: str,
    files: Sequence[AttachmentFile],
    workers: int = 4,
) -> list[dict]:
    """
    Upload every file and return their attachment records in input order.

    Files go up concurrently; the call returns only when all of them are
    stored. Any failure raises UploadFailed. Files stored before the failure
    are left in place.
    """
    if not files:
        return []

    paths = _storage_paths(room_id, sender_id, files)

    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(files)))) as pool:
        futures = [
            pool.submit(store.put, bucket, path, f.data, f.content_type)
            for f, path in zip(files, paths)
        ]

        attachments = []
        for f, future in zip(files, futures):
            try:
                url = future.result()
            except StorageError as e:
                logger.error("Error uploading %s to storage: %s", f.filename, e)
                raise UploadFailed(f"Failed to upload file {f.filename}.")
            except Exception:
                logger.exception("Unexpected error uploading %s to storage", f.filename)
                raise UploadFailed(f"Failed to upload file {f.filename}.")
            attachments.append({"name": f.filename, "mime_type": f.content_type, "url": url})

    return attachments


def send_message(
    db: Session,
    store: BlobStore,
    room_id: int,
    sender_id: str,
    text: str | None = None,
    files: Sequence[AttachmentFile] = (),
    reply_to_message_id: int | None = None,
    *,
    bucket: str,
    preview_length: int = 100,
    upload_workers: int = 4,
    enforce_blocks: bool = False,
) -> Message:
    """
    Post a message into a room.

    Attachments are uploaded first; the message row is written only after all
    of them are stored. Insertion and the room touch run under the room's
    write lock so created_at/id grow in send order and the room preview
    follows the last message. Not idempotent: a retried call posts twice.
    """
    room = require_participant(db, room_id, sender_id)

    if not text and not files:
        raise InvalidArgument("Message needs text or at least one file.")

    if enforce_blocks:
        other_id = room.other_participant(sender_id)
        if other_id and is_blocked(db, sender_id, other_id):
            raise Forbidden("Forbidden: One of the users has blocked the other.")

    attachments = upload_attachments(store, bucket, room_id, sender_id, files, workers=upload_workers)

    with room_write_locks.hold(room_id):
        msg = Message(
            room_id=room_id,
            sender_id=sender_id,
            text=text or None,
            attachments=attachments,
            reply_to_message_id=reply_to_message_id,
            created_at=utcnow(),
            is_edited=False,
            is_pinned=False,
        )
        db.add(msg)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(msg)

        preview = build_preview(text, len(attachments), preview_length)
        try:
            touch_room(db, room_id, preview, msg.created_at, msg.id)
        except SQLAlchemyError:
            # the message itself is stored, so the send still succeeds
            db.rollback()
            logger.exception("Error updating chat room %s after message %s", room_id, msg.id)

    logger.info("Message %s sent to room %s (%d attachment(s))", msg.id, room_id, len(attachments))
    return msg


def edit_message(db: Session, message_id: int, caller_id: str, new_text: str | None) -> Message:
    """Replace the text of the caller's own message. The old text is not kept."""
    msg = get_message(db, message_id)
    if msg is None or msg.sender_id != caller_id:
        raise Forbidden("Forbidden: You can only edit your own messages.")

    if not new_text:
        raise InvalidArgument("newText is required.")
    try:
        new_text = InputSanitizer.sanitize_text(new_text)
    except ValueError as e:
        raise InvalidArgument(f"Invalid newText: {e}")
    if not new_text.strip():
        raise InvalidArgument("newText is required.")

    msg.text = new_text
    msg.is_edited = True
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


def _check_membership(msg: Message, caller_id: str, required: bool, action: str) -> None:
    if msg.room.has_participant(caller_id):
        return
    if required:
        raise Forbidden(NOT_A_PARTICIPANT)
    logger.warning(
        "User %s %s message %s without being a room participant (check disabled)",
        caller_id, action, msg.id,
    )


def soft_delete_for_user(
    db: Session,
    message_id: int,
    caller_id: str,
    participant_required: bool = True,
) -> bool:
    """
    Hide a message from the caller's own listing. The row and the other
    participant's view are untouched. Returns False if it was already hidden.
    """
    msg = get_message(db, message_id)
    if msg is None:
        raise NotFound("Message not found.")

    _check_membership(msg, caller_id, participant_required, "deleted")

    if caller_id in msg.deleted_by:
        return False

    db.add(MessageDeletion(message_id=msg.id, user_id=caller_id, created_at=utcnow()))
    try:
        db.commit()
    except IntegrityError:
        # concurrent delete by the same user
        db.rollback()
        return False
    return True


def set_pinned(
    db: Session,
    message_id: int,
    caller_id: str,
    pinned: bool,
    participant_required: bool = True,
) -> Message:
    msg = get_message(db, message_id)
    if msg is None:
        raise NotFound("Message not found.")

    _check_membership(msg, caller_id, participant_required, "pinned" if pinned else "unpinned")

    msg.is_pinned = pinned
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg
