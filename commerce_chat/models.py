from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_CamelModel):
    # Optional here so missing fields map to 400 in the route rather than 422
    user_id: Optional[int] = None
    message: Optional[str] = None
    conversation_id: Optional[int] = None


class ChatResponse(_CamelModel):
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None
    response: str
    timestamp: Optional[datetime] = None
    sender: Optional[str] = None


class MessageDTO(_CamelModel):
    id: int
    sequence_number: int
    sender: str
    content: str
    timestamp: datetime
    metadata: Optional[str] = None


class ConversationDTO(_CamelModel):
    id: int
    user_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    title: Optional[str] = None
    messages: List[MessageDTO]


# Explicit exports
__all__ = [
    "ChatRequest",
    "ChatResponse",
    "MessageDTO",
    "ConversationDTO",
]
