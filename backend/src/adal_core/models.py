"""API-specific request and response models."""

from typing import Literal

from pydantic import BaseModel, Field

from adal_models import Conversation, Message


class ConversationListResponse(BaseModel):
    """Response model for list of conversations."""

    conversations: list[Conversation]
    total: int
    limit: int | None = Field(None, description="Tier limit, None when unlimited")


class ConversationCreate(BaseModel):
    """Request model for creating a conversation."""

    title: str | None = Field(None, description="First user message, cleaned server-side")
    user_id: str | None = Field(None, description="Must match the token identity when sent")


class MessageCreate(BaseModel):
    """Request model for persisting a message."""

    role: Literal["user", "assistant"]
    content: str
    model: str | None = None
    is_error: bool = False


class MessageListResponse(BaseModel):
    conversation_id: str
    messages: list[Message] = Field(default_factory=list)


class PurgeResponse(BaseModel):
    deleted: int
