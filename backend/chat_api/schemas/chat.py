from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel

from chat_api.security.sanitizer import InputSanitizer


class CamelModel(BaseModel):
    """Wire format uses camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')


# --- requests ---

class CreateChatRoomRequest(RequestModel):
    other_participant_id: Optional[str] = None

    @field_validator('other_participant_id')
    @classmethod
    def validate_other_participant_id(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.sanitize_identifier(v) if v else v


class EditMessageRequest(RequestModel):
    # Checked in edit_message, after the ownership check
    new_text: Optional[str] = Field(None, description='Replacement text (newlines allowed)')


class PinMessageRequest(RequestModel):
    pin: StrictBool


class BlockUserRequest(RequestModel):
    blocked_user_id: Optional[str] = None

    @field_validator('blocked_user_id')
    @classmethod
    def validate_blocked_user_id(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.sanitize_identifier(v) if v else v


class ReportItemRequest(RequestModel):
    item_type: str
    item_id: Union[str, int]
    reason: str

    @field_validator('item_id')
    @classmethod
    def validate_item_id(cls, v: Union[str, int]) -> str:
        return InputSanitizer.sanitize_identifier(str(v))

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return InputSanitizer.sanitize_reason(v)


# --- responses ---

class AttachmentOut(CamelModel):
    name: str
    mime_type: str
    url: str


class ReplyRef(CamelModel):
    message_id: int


class MessageOut(CamelModel):
    """A message as one participant sees it."""
    id: int
    chat_id: int
    sender_id: str
    direction: Literal['mine', 'theirs']
    text: Optional[str] = None
    attachments: List[AttachmentOut] = []
    reply_to: Optional[ReplyRef] = None
    time: datetime
    is_edited: bool
    is_pinned: bool

    @classmethod
    def from_message(cls, msg, viewer_id: str) -> 'MessageOut':
        return cls(
            id=msg.id,
            chat_id=msg.room_id,
            sender_id=msg.sender_id,
            direction='mine' if msg.sender_id == viewer_id else 'theirs',
            text=msg.text,
            attachments=[AttachmentOut(**a) for a in (msg.attachments or [])],
            reply_to=ReplyRef(message_id=msg.reply_to_message_id) if msg.reply_to_message_id else None,
            time=as_utc(msg.created_at),
            is_edited=bool(msg.is_edited),
            is_pinned=bool(msg.is_pinned),
        )


class ParticipantOut(CamelModel):
    id: str
    name: str
    profile_pic: str


class ConnectionOut(CamelModel):
    id: int
    other_participant: ParticipantOut
    last_message: str = ''
    time: Optional[datetime] = None
    unread: int = 0


class ConnectionsResponse(CamelModel):
    connections: List[ConnectionOut]
    # Connection requests are not modelled yet; always empty
    requests: List[ConnectionOut] = []


class StatusMessage(CamelModel):
    message: str


class ChatRoomResponse(StatusMessage):
    chat_room_id: int


class SendMessageResponse(StatusMessage):
    sent_message: MessageOut


class EditMessageResponse(StatusMessage):
    updated_message: MessageOut


class AuthStatusUser(CamelModel):
    id: str


class AuthStatusResponse(CamelModel):
    authenticated: bool
    user: AuthStatusUser


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
