# backend/chat_api/models/__init__.py
from .chat_room import ChatRoom
from .message import Message
from .message_deletion import MessageDeletion
from .block import BlockRelation
from .report import Report

__all__ = ["ChatRoom", "Message", "MessageDeletion", "BlockRelation", "Report"]
