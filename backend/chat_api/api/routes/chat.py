from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from chat_api.core.config import settings
from chat_api.core.errors import InvalidArgument, RateLimited
from chat_api.core.security import get_current_user_id
from chat_api.crud import messages as message_log
from chat_api.crud import moderation
from chat_api.crud import rooms as room_registry
from chat_api.db.session import get_db
from chat_api.schemas.chat import (
    AuthStatusResponse,
    AuthStatusUser,
    BlockUserRequest,
    ChatRoomResponse,
    ConnectionOut,
    ConnectionsResponse,
    CreateChatRoomRequest,
    EditMessageRequest,
    EditMessageResponse,
    MessageOut,
    ParticipantOut,
    PinMessageRequest,
    ReportItemRequest,
    SendMessageResponse,
    StatusMessage,
    as_utc,
)
from chat_api.security.rate_limiter import get_rate_limiter
from chat_api.security.sanitizer import InputSanitizer
from chat_api.storage.blob import BlobStore, get_blob_store
from chat_api.storage.profiles import ProfileDirectory, get_profile_directory

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/chat', tags=['chat'])

PLACEHOLDER_AVATAR = 'https://placehold.co/40x40/e2e8f0/000000?text={initial}'


def _enforce_rate_limit(user_id: str, operation: str, limit: int) -> None:
    allowed = get_rate_limiter().is_allowed(
        user_id,
        operation,
        max_attempts=limit,
        window_seconds=settings.send_rate_window_seconds,
    )
    if not allowed:
        logger.warning('Rate limit hit: %s on %s', user_id, operation)
        raise RateLimited(f'Too many {operation} requests. Try again later.')


def _participant_card(profiles: ProfileDirectory, user_id: str) -> ParticipantOut:
    profile = profiles.lookup(user_id)
    name = profile.name if profile and profile.name else None
    avatar = profile.avatar_url if profile and profile.avatar_url else None
    return ParticipantOut(
        id=user_id,
        name=name or 'Unknown User',
        profile_pic=avatar or PLACEHOLDER_AVATAR.format(initial=name[0] if name else 'U'),
    )


def _read_files(uploads: Optional[List[UploadFile]]) -> list[message_log.AttachmentFile]:
    uploads = [u for u in (uploads or []) if u is not None and u.filename]
    if len(uploads) > settings.max_attachments:
        raise InvalidArgument(f'Too many files (max {settings.max_attachments}).')

    files = []
    for upload in uploads:
        data = upload.file.read()
        if len(data) > settings.max_attachment_bytes:
            raise InvalidArgument(f'File {upload.filename} is too large.')
        files.append(message_log.AttachmentFile(
            filename=upload.filename,
            content_type=upload.content_type or 'application/octet-stream',
            data=data,
        ))
    return files


@router.post('/check-status', response_model=AuthStatusResponse)
def check_status(user_id: str = Depends(get_current_user_id)):
    """Lets the frontend confirm its token is still accepted."""
    return AuthStatusResponse(authenticated=True, user=AuthStatusUser(id=user_id))


@router.get('/chat-connections', response_model=ConnectionsResponse)
def list_connections(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileDirectory = Depends(get_profile_directory),
):
    connections = [
        ConnectionOut(
            id=room.id,
            other_participant=_participant_card(profiles, other_id),
            last_message=room.last_message or '',
            time=as_utc(room.last_message_at),
            unread=0,
        )
        for room, other_id in room_registry.list_rooms_for(db, user_id)
    ]
    return ConnectionsResponse(connections=connections, requests=[])


@router.get('/get-messages/{chat_id}', response_model=List[MessageOut])
def get_messages(
    chat_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return [MessageOut.from_message(m, user_id) for m in message_log.list_messages(db, chat_id, user_id)]


@router.post('/send-message', status_code=status.HTTP_201_CREATED, response_model=SendMessageResponse)
def send_message(
    chat_room_id: int = Form(..., alias='chatRoomId'),
    text: Optional[str] = Form(None),
    reply_to_message_id: Optional[int] = Form(None, alias='replyToMessageId'),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    store: BlobStore = Depends(get_blob_store),
):
    """
    Send a message with text and/or files (multipart form).
    Files are stored before the message becomes visible.
    """
    _enforce_rate_limit(user_id, 'send_message', settings.send_rate_limit)

    if text:
        try:
            text = InputSanitizer.sanitize_text(text)
        except ValueError as e:
            raise InvalidArgument(str(e))

    msg = message_log.send_message(
        db,
        store,
        chat_room_id,
        user_id,
        text=text or None,
        files=_read_files(files),
        reply_to_message_id=reply_to_message_id,
        bucket=settings.storage_bucket,
        preview_length=settings.preview_length,
        upload_workers=settings.upload_workers,
        enforce_blocks=settings.ENFORCE_BLOCKS,
    )
    return SendMessageResponse(
        message='Message sent successfully!',
        sent_message=MessageOut.from_message(msg, user_id),
    )


@router.post('/create-chat-room', status_code=status.HTTP_201_CREATED, response_model=ChatRoomResponse)
def create_chat_room(
    req: CreateChatRoomRequest,
    response: Response,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    room, created = room_registry.find_or_create_room(
        db, user_id, req.other_participant_id, enforce_blocks=settings.ENFORCE_BLOCKS
    )
    if not created:
        response.status_code = status.HTTP_200_OK
        return ChatRoomResponse(message='Chat room already exists.', chat_room_id=room.id)
    return ChatRoomResponse(message='Chat room created successfully.', chat_room_id=room.id)


@router.put('/edit-message/{message_id}', response_model=EditMessageResponse)
def edit_message(
    message_id: int,
    req: EditMessageRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    msg = message_log.edit_message(db, message_id, user_id, req.new_text)
    return EditMessageResponse(
        message='Message edited successfully.',
        updated_message=MessageOut.from_message(msg, user_id),
    )


@router.delete('/delete-message/{message_id}', response_model=StatusMessage)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Hide a message for the caller only."""
    hidden = message_log.soft_delete_for_user(
        db, message_id, user_id, participant_required=settings.DELETE_REQUIRES_PARTICIPANT
    )
    if not hidden:
        return StatusMessage(message='Message already deleted by this user.')
    return StatusMessage(message='Message deleted for this user successfully.')


@router.put('/pin-message/{message_id}', response_model=StatusMessage)
def pin_message(
    message_id: int,
    req: PinMessageRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    message_log.set_pinned(
        db, message_id, user_id, req.pin, participant_required=settings.PIN_REQUIRES_PARTICIPANT
    )
    return StatusMessage(message=f"Message {'pinned' if req.pin else 'unpinned'} successfully.")


@router.post('/block-user', status_code=status.HTTP_201_CREATED, response_model=StatusMessage)
def block_user(
    req: BlockUserRequest,
    response: Response,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    if not moderation.block_user(db, user_id, req.blocked_user_id):
        response.status_code = status.HTTP_200_OK
        return StatusMessage(message='User already blocked.')
    return StatusMessage(message='User blocked successfully.')


@router.post('/report-item', status_code=status.HTTP_201_CREATED, response_model=StatusMessage)
def report_item(
    req: ReportItemRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    _enforce_rate_limit(user_id, 'report_item', settings.report_rate_limit)

    moderation.report_item(db, user_id, req.item_type, req.item_id, req.reason)
    return StatusMessage(message=f'{req.item_type} reported successfully.')
