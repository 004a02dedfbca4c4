"""Conversation, message and profile models."""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single chat message.

    Persisted messages are immutable. The assistant placeholder used while a
    reply streams is the only instance whose content changes, and it lives
    on the client only.
    """

    id: str = Field(default_factory=_uuid, description="Unique message ID")
    conversation_id: str | None = Field(None, description="Parent conversation ID")
    role: Literal["user", "assistant"] = Field(..., description="Message role")
    content: str = Field("", description="Message content")
    created_at: datetime = Field(default_factory=_now, description="Creation timestamp")
    model: str | None = Field(None, description="Provider tag, e.g. GEMINI or SYSTEM")
    is_error: bool = Field(False, description="Whether this message reports a failure")


class Conversation(BaseModel):
    """A conversation thread owned by one user."""

    id: str = Field(default_factory=_uuid, description="Unique conversation ID")
    user_id: str = Field(..., description="Owner user ID from the identity service")
    title: str = Field("Nuevo Comando", description="Conversation title")
    is_favorite: bool = Field(False, description="Pinned by the user")
    archived: bool = Field(False, description="Soft-deleted by the tier limit policy")
    created_at: datetime = Field(default_factory=_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=_now, description="Last update timestamp")


class Profile(BaseModel):
    """Membership data that decides the conversation limit."""

    id: str
    username: str | None = None
    plan: str | None = Field(None, description="Membership tier name")
    is_admin: bool = False
